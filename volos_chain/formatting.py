"""Display conversion for digit-string amounts.

This is the only place raw integers become human-scale numbers. Rounding is
half-even at the requested number of places.
"""
from __future__ import annotations

from decimal import ROUND_HALF_EVEN, Decimal, localcontext

from .schema import validate_uint

RATE_DECIMALS = 18

# enough digits for any uint256 plus scale
_PRECISION = 200


def to_decimal_amount(raw: str, decimals: int) -> Decimal:
    """Shift a raw digit string by ``decimals`` places, exactly."""
    if decimals < 0:
        raise ValueError(f"decimals must be non-negative, got {decimals}")
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        return Decimal(validate_uint(raw, "amount")).scaleb(-decimals)


def _round(value: Decimal, places: int) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_EVEN)


def format_token_amount(raw: str, decimals: int, places: int = 2) -> str:
    """e.g. ``format_token_amount("1234567", 6)`` → ``"1.23"``"""
    return f"{_round(to_decimal_amount(raw, decimals), places):f}"


def format_rate(raw: str, places: int = 2) -> str:
    """Render a 1e18-scaled fraction as a percentage, e.g. ``"5.00%"``."""
    return f"{_round(to_decimal_amount(raw, RATE_DECIMALS - 2), places):f}%"


def to_float(raw: str, decimals: int) -> float:
    """Lossy conversion for chart libraries that only take floats."""
    return float(to_decimal_amount(raw, decimals))
