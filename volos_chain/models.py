"""Data models — all frozen (immutable).

Arbitrary-precision quantities stay digit strings (``UnsignedBigInt``) until
they reach the display or aggregation boundary.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Generic, TypeVar

from .exceptions import MalformedEventError

UnsignedBigInt = str

ZERO: UnsignedBigInt = "0"


@dataclass(frozen=True)
class Market:
    """On-chain accounting snapshot of one market."""

    total_supply_assets: UnsignedBigInt
    total_supply_shares: UnsignedBigInt
    total_borrow_assets: UnsignedBigInt
    total_borrow_shares: UnsignedBigInt
    last_update: UnsignedBigInt
    fee: UnsignedBigInt


@dataclass(frozen=True)
class MarketParams:
    """Slow-changing configuration of a market."""

    pool_path: str
    irm: str
    lltv: UnsignedBigInt
    is_token0_loan: bool


@dataclass(frozen=True)
class MarketInfo:
    """Denormalized market view: state, params, token metadata and rates.

    ``borrow_apr``, ``supply_apr`` and ``utilization`` are fixed point values
    scaled by ``10**RATE_DECIMALS``.
    """

    market_id: str
    # state
    total_supply_assets: UnsignedBigInt
    total_supply_shares: UnsignedBigInt
    total_borrow_assets: UnsignedBigInt
    total_borrow_shares: UnsignedBigInt
    last_update: UnsignedBigInt
    fee: UnsignedBigInt
    # params
    pool_path: str
    irm: str
    lltv: UnsignedBigInt
    is_token0_loan: bool
    # derived
    loan_token: str
    collateral_token: str
    current_price: str
    borrow_apr: UnsignedBigInt
    supply_apr: UnsignedBigInt
    utilization: UnsignedBigInt
    # token metadata
    loan_token_name: str
    loan_token_symbol: str
    loan_token_decimals: int
    collateral_token_name: str
    collateral_token_symbol: str
    collateral_token_decimals: int

    @property
    def market(self) -> Market:
        return Market(
            total_supply_assets=self.total_supply_assets,
            total_supply_shares=self.total_supply_shares,
            total_borrow_assets=self.total_borrow_assets,
            total_borrow_shares=self.total_borrow_shares,
            last_update=self.last_update,
            fee=self.fee,
        )

    @property
    def params(self) -> MarketParams:
        return MarketParams(
            pool_path=self.pool_path,
            irm=self.irm,
            lltv=self.lltv,
            is_token0_loan=self.is_token0_loan,
        )


@dataclass(frozen=True)
class Position:
    """A single user's stake in one market."""

    supply_shares: UnsignedBigInt
    borrow_shares: UnsignedBigInt
    collateral: UnsignedBigInt

    @property
    def has_position(self) -> bool:
        """False only when both collateral and borrow shares are zero."""
        return not (self.collateral == ZERO and self.borrow_shares == ZERO)


@dataclass(frozen=True)
class HealthFactor:
    """Risk indicator for a position, as a non-negative decimal string."""

    value: str = ZERO

    @property
    def is_zero(self) -> bool:
        return Decimal(self.value) == 0


@dataclass(frozen=True)
class LoanAmount:
    amount: UnsignedBigInt


@dataclass(frozen=True)
class UserLoan:
    token: str
    amount: UnsignedBigInt


class EventKind(str, Enum):
    """Recognized lending event kinds."""

    SUPPLY = "supply"
    WITHDRAW = "withdraw"
    BORROW = "borrow"
    REPAY = "repay"
    LIQUIDATE = "liquidate"
    SUPPLY_COLLATERAL = "supply_collateral"
    WITHDRAW_COLLATERAL = "withdraw_collateral"
    ACCRUE_INTEREST = "accrue_interest"
    UNKNOWN = "unknown"

    @classmethod
    def classify(cls, event_type: str) -> EventKind:
        """Map a raw event type (``Supply``, ``supply_collateral``...) to a kind."""
        normalized = event_type.replace("_", "").replace("-", "").lower()
        return _KIND_BY_NORMALIZED.get(normalized, cls.UNKNOWN)


_KIND_BY_NORMALIZED: dict[str, EventKind] = {
    kind.value.replace("_", ""): kind for kind in EventKind if kind is not EventKind.UNKNOWN
}


@dataclass(frozen=True)
class IndexedEvent:
    """One decoded event from an indexed transaction."""

    block_height: int
    tx_hash: str
    tx_index: int
    event_index: int
    type: str
    kind: EventKind
    attrs: tuple[tuple[str, str], ...] = ()
    timestamp: datetime | None = None
    success: bool = True
    caller: str = ""
    pkg_path: str = ""
    func: str = ""

    def attr(self, name: str, default: str | None = None) -> str | None:
        """Return the first attribute value with ``name``."""
        for key, value in self.attrs:
            if key == name:
                return value
        return default

    @property
    def market_id(self) -> str | None:
        return self.attr("market_id")

    @property
    def sort_key(self) -> tuple[int, int, int]:
        return (self.block_height, self.tx_index, self.event_index)


@dataclass(frozen=True)
class TimeSeriesPoint:
    """One aggregated observation for charting."""

    timestamp: datetime
    value: Decimal
    label: str | None = None


@dataclass(frozen=True)
class PositionSnapshot:
    """Replayed state of one user's position after a bucket of events."""

    timestamp: datetime
    block_height: int
    supply_shares: int
    borrow_shares: int
    collateral: int

    @property
    def has_position(self) -> bool:
        return not (self.collateral == 0 and self.borrow_shares == 0)


@dataclass(frozen=True)
class AprPoint:
    """Annualized borrow and supply rates after an interest accrual.

    Both rates are fractions, e.g. ``Decimal("0.052")`` for 5.2%.
    """

    timestamp: datetime
    block_height: int
    borrow_apr: Decimal
    supply_apr: Decimal


@dataclass(frozen=True)
class MarketActivity:
    """A discrete activity record for a market feed."""

    type: str
    kind: EventKind
    amount: UnsignedBigInt
    is_amount_in_shares: bool
    caller: str
    tx_hash: str
    block_height: int
    timestamp: datetime | None


T = TypeVar("T")


@dataclass(frozen=True)
class AggregationResult(Generic[T]):
    """Output of an aggregation run plus the events it had to skip."""

    items: tuple[T, ...] = ()
    skipped: tuple[MalformedEventError, ...] = ()
