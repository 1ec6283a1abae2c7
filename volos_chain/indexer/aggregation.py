"""Reduce ordered lending events into chart series. Pure functions, no I/O.

Amounts are exact Python ints throughout. Rounding happens only where a
ratio leaves the integers: utilization is quantized half-even to
``UTILIZATION_PLACES`` decimal places and APRs to ``APR_PLACES``.

Events that cannot be aggregated (missing timestamp, missing or non-numeric
amount) are skipped and returned in ``AggregationResult.skipped``.
"""
from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_EVEN, Decimal, localcontext
from typing import Any

from ..exceptions import MalformedEventError, SchemaValidationError
from ..formatting import RATE_DECIMALS
from ..models import (
    AggregationResult,
    AprPoint,
    EventKind,
    IndexedEvent,
    MarketActivity,
    PositionSnapshot,
    TimeSeriesPoint,
)
from ..schema import validate_uint
from .parser import sort_events

UTILIZATION_PLACES = 6
_UTILIZATION_QUANTUM = Decimal(1).scaleb(-UTILIZATION_PLACES)

APR_PLACES = 6
_APR_QUANTUM = Decimal(1).scaleb(-APR_PLACES)
SECONDS_PER_YEAR = 365 * 24 * 60 * 60

ASSET_ATTRS = ("assets", "amount")
SHARE_ATTRS = ("shares",)
OWNER_ATTRS = ("on_behalf", "onBehalf", "user")
ACTIVITY_AMOUNT_ATTRS = ("amount", "assets", "shares")
RATE_ATTRS = ("prev_borrow_rate", "prevBorrowRate", "borrow_rate", "borrowRate")

_DIGITS_RE = re.compile(r"[0-9]+")

# (group key, point timestamp) for an event
Bucketer = Callable[[IndexedEvent], tuple[Any, datetime]]


# ---------------------------------------------------------------------------
# Bucketing
# ---------------------------------------------------------------------------


def _timestamp(event: IndexedEvent) -> datetime:
    if event.timestamp is None:
        raise MalformedEventError(
            f"tx {event.tx_hash}: no timestamp for block {event.block_height}", event
        )
    return event.timestamp


def bucket_by_timestamp(event: IndexedEvent) -> tuple[Any, datetime]:
    ts = _timestamp(event)
    return ts, ts


def bucket_by_block(event: IndexedEvent) -> tuple[Any, datetime]:
    return event.block_height, _timestamp(event)


def fixed_interval(interval: timedelta) -> Bucketer:
    """Bucket events into fixed windows aligned to the Unix epoch."""
    seconds = int(interval.total_seconds())
    if seconds <= 0:
        raise ValueError(f"interval must be at least one second, got {interval}")

    def bucket(event: IndexedEvent) -> tuple[Any, datetime]:
        epoch = int(_timestamp(event).timestamp())
        start = epoch - epoch % seconds
        return start, datetime.fromtimestamp(start, tz=timezone.utc)

    return bucket


@dataclass
class _Bucket:
    key: Any
    timestamp: datetime
    block_height: int
    events: list[IndexedEvent]


def _group(
    events: Iterable[IndexedEvent],
    bucket: Bucketer,
    skipped: list[MalformedEventError],
) -> list[_Bucket]:
    """Group chronologically sorted events; buckets come out timestamp-ascending."""
    buckets: dict[Any, _Bucket] = {}
    for event in sort_events(events):
        try:
            key, ts = bucket(event)
        except MalformedEventError as e:
            skipped.append(e)
            continue
        current = buckets.get(key)
        if current is None:
            buckets[key] = _Bucket(key, ts, event.block_height, [event])
        else:
            current.events.append(event)
            current.block_height = event.block_height
            if ts > current.timestamp:
                current.timestamp = ts
    # sorted() is stable, so equal timestamps keep block order
    return sorted(buckets.values(), key=lambda b: b.timestamp)


# ---------------------------------------------------------------------------
# Amount extraction
# ---------------------------------------------------------------------------


def event_amount(event: IndexedEvent, names: Sequence[str]) -> int:
    """Return the first of ``names`` present on the event as an exact int."""
    for name in names:
        value = event.attr(name)
        if value is None:
            continue
        if not _DIGITS_RE.fullmatch(value):
            raise MalformedEventError(
                f"tx {event.tx_hash}: non-numeric {name} {value!r} on {event.type}", event
            )
        return int(value)
    raise MalformedEventError(
        f"tx {event.tx_hash}: {event.type} event has none of {', '.join(names)}", event
    )


# ---------------------------------------------------------------------------
# Flow series
# ---------------------------------------------------------------------------

SUPPLY_FLOWS: dict[EventKind, tuple[int, tuple[str, ...]]] = {
    EventKind.SUPPLY: (1, ASSET_ATTRS),
    EventKind.WITHDRAW: (-1, ASSET_ATTRS),
}

BORROW_FLOWS: dict[EventKind, tuple[int, tuple[str, ...]]] = {
    EventKind.BORROW: (1, ASSET_ATTRS),
    EventKind.REPAY: (-1, ASSET_ATTRS),
    EventKind.LIQUIDATE: (-1, ("repaid_assets", "repaidAssets")),
}


def _bucket_delta(
    events: Iterable[IndexedEvent],
    flows: dict[EventKind, tuple[int, tuple[str, ...]]],
    skipped: list[MalformedEventError],
) -> int | None:
    """Sum the signed flows of one bucket; ``None`` when nothing contributed."""
    total: int | None = None
    for event in events:
        flow = flows.get(event.kind)
        if flow is None:
            continue
        sign, names = flow
        try:
            amount = event_amount(event, names)
        except MalformedEventError as e:
            skipped.append(e)
            continue
        total = (total or 0) + sign * amount
    return total


def _flow_series(
    events: Iterable[IndexedEvent],
    flows: dict[EventKind, tuple[int, tuple[str, ...]]],
    bucket: Bucketer,
    label: str | None,
) -> AggregationResult[TimeSeriesPoint]:
    skipped: list[MalformedEventError] = []
    points: list[TimeSeriesPoint] = []
    running = 0
    for b in _group(events, bucket, skipped):
        delta = _bucket_delta(b.events, flows, skipped)
        if delta is None:
            continue
        running += delta
        points.append(TimeSeriesPoint(timestamp=b.timestamp, value=Decimal(running), label=label))
    return AggregationResult(items=tuple(points), skipped=tuple(skipped))


def net_supply_series(
    events: Iterable[IndexedEvent],
    bucket: Bucketer = bucket_by_timestamp,
    label: str | None = "net_supply",
) -> AggregationResult[TimeSeriesPoint]:
    """Cumulative supplied minus withdrawn assets, one point per bucket."""
    return _flow_series(events, SUPPLY_FLOWS, bucket, label)


def net_borrow_series(
    events: Iterable[IndexedEvent],
    bucket: Bucketer = bucket_by_timestamp,
    label: str | None = "net_borrow",
) -> AggregationResult[TimeSeriesPoint]:
    """Cumulative borrowed minus repaid (incl. liquidation repayments) assets."""
    return _flow_series(events, BORROW_FLOWS, bucket, label)


def utilization_ratio(borrowed: int, supplied: int) -> Decimal:
    """Borrowed / supplied, half-even to ``UTILIZATION_PLACES``; zero when supply is not positive."""
    if supplied <= 0:
        return Decimal(0).quantize(_UTILIZATION_QUANTUM)
    with localcontext() as ctx:
        ctx.prec = 200
        ratio = Decimal(max(borrowed, 0)) / Decimal(supplied)
        return ratio.quantize(_UTILIZATION_QUANTUM, rounding=ROUND_HALF_EVEN)


def utilization_series(
    events: Iterable[IndexedEvent],
    bucket: Bucketer = bucket_by_timestamp,
    label: str | None = "utilization",
) -> AggregationResult[TimeSeriesPoint]:
    """Utilization after each bucket that moved supply or borrow."""
    skipped: list[MalformedEventError] = []
    points: list[TimeSeriesPoint] = []
    supplied = 0
    borrowed = 0
    for b in _group(events, bucket, skipped):
        supply_delta = _bucket_delta(b.events, SUPPLY_FLOWS, skipped)
        borrow_delta = _bucket_delta(b.events, BORROW_FLOWS, skipped)
        if supply_delta is None and borrow_delta is None:
            continue
        supplied += supply_delta or 0
        borrowed += borrow_delta or 0
        points.append(
            TimeSeriesPoint(
                timestamp=b.timestamp,
                value=utilization_ratio(borrowed, supplied),
                label=label,
            )
        )
    return AggregationResult(items=tuple(points), skipped=tuple(skipped))


# ---------------------------------------------------------------------------
# Interest rates
# ---------------------------------------------------------------------------


def annualize_rate(rate_per_second: int) -> Decimal:
    """1e18-scaled per-second rate → simple annual fraction, half-even to ``APR_PLACES``."""
    with localcontext() as ctx:
        ctx.prec = 200
        apr = Decimal(rate_per_second * SECONDS_PER_YEAR).scaleb(-RATE_DECIMALS)
        return apr.quantize(_APR_QUANTUM, rounding=ROUND_HALF_EVEN)


def apr_series(
    events: Iterable[IndexedEvent],
    fee: str = "0",
    bucket: Bucketer = bucket_by_timestamp,
) -> AggregationResult[AprPoint]:
    """Borrow and supply APR after each bucket holding an interest accrual.

    The borrow rate is the last accrual's per-second rate in the bucket.
    Supply APR is ``borrow_apr * utilization * (1 - fee)``, with utilization
    replayed from the same events and ``fee`` the market's 1e18-scaled fee.
    """
    fee_value = int(validate_uint(fee, "fee"))
    if fee_value > 10**RATE_DECIMALS:
        raise SchemaValidationError("fee", fee, "fee above 100%")

    skipped: list[MalformedEventError] = []
    points: list[AprPoint] = []
    supplied = 0
    borrowed = 0
    for b in _group(events, bucket, skipped):
        supplied += _bucket_delta(b.events, SUPPLY_FLOWS, skipped) or 0
        borrowed += _bucket_delta(b.events, BORROW_FLOWS, skipped) or 0

        rate: int | None = None
        for event in b.events:
            if event.kind is not EventKind.ACCRUE_INTEREST:
                continue
            try:
                rate = event_amount(event, RATE_ATTRS)
            except MalformedEventError as e:
                skipped.append(e)
                continue
            # accrued interest grows both sides of the market
            interest = event.attr("interest")
            if interest is not None and _DIGITS_RE.fullmatch(interest):
                supplied += int(interest)
                borrowed += int(interest)
        if rate is None:
            continue

        borrow_apr = annualize_rate(rate)
        with localcontext() as ctx:
            ctx.prec = 200
            keep = Decimal(10**RATE_DECIMALS - fee_value).scaleb(-RATE_DECIMALS)
            supply_apr = (borrow_apr * utilization_ratio(borrowed, supplied) * keep).quantize(
                _APR_QUANTUM, rounding=ROUND_HALF_EVEN
            )
        points.append(
            AprPoint(
                timestamp=b.timestamp,
                block_height=b.block_height,
                borrow_apr=borrow_apr,
                supply_apr=supply_apr,
            )
        )
    return AggregationResult(items=tuple(points), skipped=tuple(skipped))


# ---------------------------------------------------------------------------
# Position replay
# ---------------------------------------------------------------------------


def position_owner(event: IndexedEvent) -> str:
    """Address whose position the event changes."""
    if event.kind is EventKind.LIQUIDATE:
        borrower = event.attr("borrower")
        if borrower:
            return borrower
    for name in OWNER_ATTRS:
        value = event.attr(name)
        if value:
            return value
    return event.caller


@dataclass
class _PositionState:
    supply_shares: int = 0
    borrow_shares: int = 0
    collateral: int = 0

    def apply(self, event: IndexedEvent) -> bool:
        """Apply one event; returns False when the event does not touch a position."""
        kind = event.kind
        if kind is EventKind.SUPPLY:
            self.supply_shares += event_amount(event, SHARE_ATTRS)
        elif kind is EventKind.WITHDRAW:
            self.supply_shares = max(0, self.supply_shares - event_amount(event, SHARE_ATTRS))
        elif kind is EventKind.BORROW:
            self.borrow_shares += event_amount(event, SHARE_ATTRS)
        elif kind is EventKind.REPAY:
            self.borrow_shares = max(0, self.borrow_shares - event_amount(event, SHARE_ATTRS))
        elif kind is EventKind.SUPPLY_COLLATERAL:
            self.collateral += event_amount(event, ASSET_ATTRS)
        elif kind is EventKind.WITHDRAW_COLLATERAL:
            self.collateral = max(0, self.collateral - event_amount(event, ASSET_ATTRS))
        elif kind is EventKind.LIQUIDATE:
            repaid = event_amount(event, ("repaid_shares", "repaidShares"))
            seized = event_amount(event, ("seized_assets", "seizedAssets"))
            self.borrow_shares = max(0, self.borrow_shares - repaid)
            self.collateral = max(0, self.collateral - seized)
        else:
            return False
        return True


def position_history(
    events: Iterable[IndexedEvent],
    user_address: str,
    bucket: Bucketer = bucket_by_timestamp,
) -> AggregationResult[PositionSnapshot]:
    """Replay one user's events into position snapshots.

    One snapshot per bucket holding the state after the bucket's last event.
    Pass events already restricted to a single market.
    """
    skipped: list[MalformedEventError] = []
    snapshots: list[PositionSnapshot] = []
    state = _PositionState()
    own_events = [e for e in events if position_owner(e) == user_address]
    for b in _group(own_events, bucket, skipped):
        changed = False
        for event in b.events:
            # apply on a copy so a malformed event leaves the state untouched
            trial = _PositionState(state.supply_shares, state.borrow_shares, state.collateral)
            try:
                touched = trial.apply(event)
            except MalformedEventError as e:
                skipped.append(e)
                continue
            if touched:
                state = trial
                changed = True
        if changed:
            snapshots.append(
                PositionSnapshot(
                    timestamp=b.timestamp,
                    block_height=b.block_height,
                    supply_shares=state.supply_shares,
                    borrow_shares=state.borrow_shares,
                    collateral=state.collateral,
                )
            )
    return AggregationResult(items=tuple(snapshots), skipped=tuple(skipped))


# ---------------------------------------------------------------------------
# Activity feed
# ---------------------------------------------------------------------------


def _activity_amount(event: IndexedEvent) -> tuple[str, bool]:
    """Last non-zero of amount/assets/shares in attribute order.

    Values that are not plain digit strings are passed over, so a record is
    always produced.
    """
    amount = "0"
    in_shares = False
    for key, value in event.attrs:
        if key not in ACTIVITY_AMOUNT_ATTRS or not _DIGITS_RE.fullmatch(value):
            continue
        if int(value) != 0:
            amount = str(int(value))
            in_shares = key == "shares"
    return amount, in_shares


def market_activity(events: Iterable[IndexedEvent]) -> AggregationResult[MarketActivity]:
    """One activity record per event, oldest first, any kind included."""
    records: list[MarketActivity] = []
    for event in sort_events(events):
        amount, in_shares = _activity_amount(event)
        records.append(
            MarketActivity(
                type=event.type,
                kind=event.kind,
                amount=amount,
                is_amount_in_shares=in_shares,
                caller=event.caller,
                tx_hash=event.tx_hash,
                block_height=event.block_height,
                timestamp=event.timestamp,
            )
        )
    return AggregationResult(items=tuple(records))
