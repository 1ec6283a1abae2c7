"""Schema validation for realm payloads. Pure functions, no I/O.

Every validator takes already-decoded JSON and a dotted ``path`` used in
error messages. Extra keys are ignored; missing or mistyped required keys
raise :class:`SchemaValidationError`. Nothing is coerced silently.
"""
from __future__ import annotations

import re
from typing import Any, Callable, TypeVar

from .exceptions import SchemaValidationError
from .models import (
    HealthFactor,
    LoanAmount,
    Market,
    MarketInfo,
    MarketParams,
    Position,
    UnsignedBigInt,
    UserLoan,
)

ROOT = "<result>"

_UINT_RE = re.compile(r"[0-9]+")
_DECIMAL_RE = re.compile(r"[0-9]+(\.[0-9]+)?")

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Primitive validators
# ---------------------------------------------------------------------------


def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def validate_uint(value: Any, path: str) -> UnsignedBigInt:
    """Accept only a string of ASCII digits and return it unchanged."""
    if not isinstance(value, str) or not _UINT_RE.fullmatch(value):
        raise SchemaValidationError(path, value, "expected unsigned integer digit string")
    return value


def validate_decimal_string(value: Any, path: str) -> str:
    if not isinstance(value, str) or not _DECIMAL_RE.fullmatch(value):
        raise SchemaValidationError(path, value, "expected non-negative decimal string")
    return value


def _require_object(raw: Any, path: str) -> dict[str, Any]:
    if not isinstance(raw, dict):
        raise SchemaValidationError(path, raw, "expected object")
    return raw


def _field(raw: dict[str, Any], key: str, path: str) -> Any:
    if key not in raw:
        raise SchemaValidationError(_join(path, key), None, "required field missing")
    return raw[key]


def _uint_field(raw: dict[str, Any], key: str, path: str) -> UnsignedBigInt:
    return validate_uint(_field(raw, key, path), _join(path, key))


def _str_field(raw: dict[str, Any], key: str, path: str, *, non_empty: bool = False) -> str:
    value = _field(raw, key, path)
    if not isinstance(value, str):
        raise SchemaValidationError(_join(path, key), value, "expected string")
    if non_empty and not value:
        raise SchemaValidationError(_join(path, key), value, "expected non-empty string")
    return value


def _bool_field(raw: dict[str, Any], key: str, path: str) -> bool:
    value = _field(raw, key, path)
    if not isinstance(value, bool):
        raise SchemaValidationError(_join(path, key), value, "expected boolean")
    return value


def _non_negative_int_field(raw: dict[str, Any], key: str, path: str) -> int:
    value = _field(raw, key, path)
    # bool is an int subclass; a JSON true must not pass as 1
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise SchemaValidationError(_join(path, key), value, "expected non-negative integer")
    return value


def _timestamp_field(raw: dict[str, Any], key: str, path: str) -> UnsignedBigInt:
    """Accept a non-negative JSON integer or a digit string, normalized to a digit string."""
    value = _field(raw, key, path)
    if isinstance(value, int) and not isinstance(value, bool):
        if value < 0:
            raise SchemaValidationError(_join(path, key), value, "expected non-negative integer")
        return str(value)
    return validate_uint(value, _join(path, key))


def _list(raw: Any, path: str) -> list[Any]:
    if not isinstance(raw, list):
        raise SchemaValidationError(path, raw, "expected array")
    return raw


def _keyed_records(
    raw: Any, path: str, parse: Callable[[Any, str, str], T]
) -> dict[str, T]:
    """Parse ``[{"<id>": {...}}, ...]`` into an ordered ``{id: record}`` map."""
    records: dict[str, T] = {}
    for i, entry in enumerate(_list(raw, path)):
        entry_path = f"{path}[{i}]"
        for key, value in _require_object(entry, entry_path).items():
            if key in records:
                raise SchemaValidationError(_join(entry_path, key), key, "duplicate id")
            records[key] = parse(value, key, _join(entry_path, key))
    return records


# ---------------------------------------------------------------------------
# Domain validators
# ---------------------------------------------------------------------------


def parse_market(raw: Any, path: str = ROOT) -> Market:
    obj = _require_object(raw, path)
    return Market(
        total_supply_assets=_uint_field(obj, "totalSupplyAssets", path),
        total_supply_shares=_uint_field(obj, "totalSupplyShares", path),
        total_borrow_assets=_uint_field(obj, "totalBorrowAssets", path),
        total_borrow_shares=_uint_field(obj, "totalBorrowShares", path),
        last_update=_timestamp_field(obj, "lastUpdate", path),
        fee=_uint_field(obj, "fee", path),
    )


def parse_market_params(raw: Any, path: str = ROOT) -> MarketParams:
    obj = _require_object(raw, path)
    return MarketParams(
        pool_path=_str_field(obj, "poolPath", path, non_empty=True),
        irm=_str_field(obj, "irm", path),
        lltv=_uint_field(obj, "lltv", path),
        is_token0_loan=_bool_field(obj, "isToken0Loan", path),
    )


def parse_market_info(raw: Any, market_id: str, path: str = ROOT) -> MarketInfo:
    """Validate a MarketInfo payload.

    ``market_id`` is used when the payload does not carry its own ``marketId``.
    """
    obj = _require_object(raw, path)
    market = parse_market(obj, path)
    params = parse_market_params(obj, path)

    payload_id = obj.get("marketId")
    if payload_id is not None and not isinstance(payload_id, str):
        raise SchemaValidationError(_join(path, "marketId"), payload_id, "expected string")

    return MarketInfo(
        market_id=payload_id or market_id,
        total_supply_assets=market.total_supply_assets,
        total_supply_shares=market.total_supply_shares,
        total_borrow_assets=market.total_borrow_assets,
        total_borrow_shares=market.total_borrow_shares,
        last_update=market.last_update,
        fee=market.fee,
        pool_path=params.pool_path,
        irm=params.irm,
        lltv=params.lltv,
        is_token0_loan=params.is_token0_loan,
        loan_token=_str_field(obj, "loanToken", path),
        collateral_token=_str_field(obj, "collateralToken", path),
        current_price=validate_decimal_string(
            _field(obj, "currentPrice", path), _join(path, "currentPrice")
        ),
        borrow_apr=_uint_field(obj, "borrowAPR", path),
        supply_apr=_uint_field(obj, "supplyAPR", path),
        utilization=_uint_field(obj, "utilization", path),
        loan_token_name=_str_field(obj, "loanTokenName", path),
        loan_token_symbol=_str_field(obj, "loanTokenSymbol", path),
        loan_token_decimals=_non_negative_int_field(obj, "loanTokenDecimals", path),
        collateral_token_name=_str_field(obj, "collateralTokenName", path),
        collateral_token_symbol=_str_field(obj, "collateralTokenSymbol", path),
        collateral_token_decimals=_non_negative_int_field(
            obj, "collateralTokenDecimals", path
        ),
    )


def parse_position(raw: Any, path: str = ROOT) -> Position:
    obj = _require_object(raw, path)
    return Position(
        supply_shares=_uint_field(obj, "supplyShares", path),
        borrow_shares=_uint_field(obj, "borrowShares", path),
        collateral=_uint_field(obj, "collateral", path),
    )


def parse_health_factor(raw: Any, path: str = ROOT) -> HealthFactor:
    """Validate a health factor; ``None`` means no queryable position."""
    if raw is None:
        return HealthFactor()
    obj = _require_object(raw, path)
    value = _field(obj, "healthFactor", path)
    if value == "":
        return HealthFactor()
    return HealthFactor(value=validate_decimal_string(value, _join(path, "healthFactor")))


def parse_loan_amount(raw: Any, path: str = ROOT) -> LoanAmount:
    obj = _require_object(raw, path)
    return LoanAmount(amount=_uint_field(obj, "amount", path))


def parse_user_loans(raw: Any, path: str = ROOT) -> list[UserLoan]:
    loans: list[UserLoan] = []
    for i, entry in enumerate(_list(raw, path)):
        entry_path = f"{path}[{i}]"
        obj = _require_object(entry, entry_path)
        loans.append(
            UserLoan(
                token=_str_field(obj, "token", entry_path, non_empty=True),
                amount=_uint_field(obj, "amount", entry_path),
            )
        )
    return loans


def parse_markets_list(raw: Any, path: str = ROOT) -> dict[str, Market]:
    """Validate ``{"markets": [{"<id>": Market}, ...]}``."""
    obj = _require_object(raw, path)
    markets_path = _join(path, "markets")
    return _keyed_records(
        _field(obj, "markets", path),
        markets_path,
        lambda value, _key, item_path: parse_market(value, item_path),
    )


def parse_markets_info_list(raw: Any, path: str = ROOT) -> dict[str, MarketInfo]:
    """Validate ``[{"<id>": MarketInfo}, ...]``."""
    return _keyed_records(raw, path, parse_market_info)
