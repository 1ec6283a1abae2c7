"""Pure parsing of tx-indexer results into ``IndexedEvent`` records; no I/O.

A structurally malformed transaction or event is skipped and reported in
``ParseResult.skipped``; it never aborts the whole result set.
"""
from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from ..exceptions import MalformedEventError, SchemaValidationError
from ..models import EventKind, IndexedEvent

# RFC 3339 with optional fractional seconds of any length (the indexer emits nanoseconds)
_RFC3339_RE = re.compile(
    r"(\d{4}-\d{2}-\d{2})[Tt ](\d{2}:\d{2}:\d{2})(?:\.(\d+))?([Zz]|[+-]\d{2}:\d{2})"
)


@dataclass(frozen=True)
class ParseResult:
    events: tuple[IndexedEvent, ...] = ()
    skipped: tuple[MalformedEventError, ...] = ()


def parse_timestamp(value: str) -> datetime:
    """Parse an RFC 3339 timestamp into an aware UTC datetime.

    Fractional seconds beyond microseconds are truncated.
    """
    match = _RFC3339_RE.fullmatch(value.strip()) if isinstance(value, str) else None
    if match is None:
        raise ValueError(f"invalid RFC 3339 timestamp: {value!r}")
    date, time, fraction, offset = match.groups()
    micros = (fraction or "").ljust(6, "0")[:6]
    if offset in ("Z", "z"):
        offset = "+00:00"
    parsed = datetime.fromisoformat(f"{date}T{time}.{micros}{offset}")
    return parsed.astimezone(timezone.utc)


def parse_block_times(blocks: Any) -> dict[int, datetime]:
    """Validate ``getBlocks`` results into a ``{height: time}`` map."""
    if not isinstance(blocks, list):
        raise SchemaValidationError("data.getBlocks", blocks, "expected array")
    times: dict[int, datetime] = {}
    for i, block in enumerate(blocks):
        path = f"data.getBlocks[{i}]"
        if not isinstance(block, dict):
            raise SchemaValidationError(path, block, "expected object")
        height = block.get("height")
        if isinstance(height, bool) or not isinstance(height, int):
            raise SchemaValidationError(f"{path}.height", height, "expected integer")
        try:
            times[height] = parse_timestamp(block.get("time"))
        except ValueError as e:
            raise SchemaValidationError(f"{path}.time", block.get("time"), str(e)) from e
    return times


def _tx_caller(tx: dict[str, Any]) -> str:
    messages = tx.get("messages")
    if not isinstance(messages, list) or not messages:
        return ""
    first = messages[0]
    value = first.get("value") if isinstance(first, dict) else None
    caller = value.get("caller") if isinstance(value, dict) else None
    return caller if isinstance(caller, str) else ""


def _parse_attrs(raw: Any, tx_hash: str) -> tuple[tuple[str, str], ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise MalformedEventError(f"tx {tx_hash}: attrs is not a list", raw)
    attrs: list[tuple[str, str]] = []
    for attr in raw:
        if (
            not isinstance(attr, dict)
            or not isinstance(attr.get("key"), str)
            or not isinstance(attr.get("value"), str)
        ):
            raise MalformedEventError(f"tx {tx_hash}: malformed attribute {attr!r}", attr)
        attrs.append((attr["key"], attr["value"]))
    return tuple(attrs)


def _parse_transaction(
    tx: Any, position: int, block_times: dict[int, datetime]
) -> tuple[list[IndexedEvent], list[MalformedEventError]]:
    if not isinstance(tx, dict):
        raise MalformedEventError(f"transaction #{position} is not an object", tx)

    height = tx.get("block_height")
    tx_hash = tx.get("hash")
    if isinstance(height, bool) or not isinstance(height, int):
        raise MalformedEventError(f"transaction #{position}: missing block_height", tx)
    if not isinstance(tx_hash, str):
        raise MalformedEventError(f"transaction #{position}: missing hash", tx)

    tx_index = tx.get("index")
    if isinstance(tx_index, bool) or not isinstance(tx_index, int):
        tx_index = position

    response = tx.get("response")
    raw_events = response.get("events") if isinstance(response, dict) else None
    if raw_events is None:
        return [], []
    if not isinstance(raw_events, list):
        raise MalformedEventError(f"tx {tx_hash}: events is not a list", tx)

    caller = _tx_caller(tx)
    success = tx.get("success", True) is not False

    events: list[IndexedEvent] = []
    skipped: list[MalformedEventError] = []
    for event_index, raw in enumerate(raw_events):
        if raw == {}:
            # non-Gno event: the query only selects fields on GnoEvent
            continue
        try:
            if not isinstance(raw, dict):
                raise MalformedEventError(f"tx {tx_hash}: event is not an object", raw)
            event_type = raw.get("type")
            if not isinstance(event_type, str) or not event_type:
                raise MalformedEventError(f"tx {tx_hash}: event without type", raw)
            pkg_path = raw.get("pkg_path")
            func = raw.get("func")
            events.append(
                IndexedEvent(
                    block_height=height,
                    tx_hash=tx_hash,
                    tx_index=tx_index,
                    event_index=event_index,
                    type=event_type,
                    kind=EventKind.classify(event_type),
                    attrs=_parse_attrs(raw.get("attrs"), tx_hash),
                    timestamp=block_times.get(height),
                    success=success,
                    caller=caller,
                    pkg_path=pkg_path if isinstance(pkg_path, str) else "",
                    func=func if isinstance(func, str) else "",
                )
            )
        except MalformedEventError as e:
            skipped.append(e)
    return events, skipped


def sort_events(events: Iterable[IndexedEvent]) -> list[IndexedEvent]:
    """Order by block height, then transaction index, then position in the tx."""
    return sorted(events, key=lambda e: e.sort_key)


def _wanted_types(event_types: Iterable[str | EventKind] | None) -> set[str] | None:
    if event_types is None:
        return None
    return {t.value if isinstance(t, EventKind) else str(t) for t in event_types}


def parse_transactions(
    transactions: Iterable[Any],
    *,
    market_id: str | None = None,
    event_types: Iterable[str | EventKind] | None = None,
    include_all_events: bool = False,
    block_times: dict[int, datetime] | None = None,
) -> ParseResult:
    """Flatten raw ``getTransactions`` entries into ordered events.

    Args:
        transactions: Raw transaction objects from the indexer.
        market_id: Keep only events whose ``market_id`` attribute equals this.
        event_types: Keep only events whose kind (e.g. ``"supply"``) or raw
            type (e.g. ``"Supply"``) is listed.
        include_all_events: Keep events of unrecognized kinds too.
        block_times: ``{height: time}`` used to timestamp events.

    All supplied filters apply together.
    """
    times = block_times or {}
    wanted = _wanted_types(event_types)

    events: list[IndexedEvent] = []
    skipped: list[MalformedEventError] = []
    for position, tx in enumerate(transactions):
        try:
            tx_events, tx_skipped = _parse_transaction(tx, position, times)
        except MalformedEventError as e:
            skipped.append(e)
            continue
        skipped.extend(tx_skipped)

        for event in tx_events:
            if market_id is not None and event.market_id != market_id:
                continue
            if wanted is not None:
                if event.kind.value not in wanted and event.type not in wanted:
                    continue
            elif event.kind is EventKind.UNKNOWN and not include_all_events:
                continue
            events.append(event)

    return ParseResult(events=tuple(sort_events(events)), skipped=tuple(skipped))
