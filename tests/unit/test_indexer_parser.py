"""Unit tests for tx-indexer result parsing."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable

import pytest

from volos_chain.exceptions import SchemaValidationError
from volos_chain.indexer.parser import (
    parse_block_times,
    parse_timestamp,
    parse_transactions,
)
from volos_chain.models import EventKind

MakeTx = Callable[..., dict[str, Any]]
MakeEvent = Callable[..., dict[str, Any]]


class TestParseTimestamp:
    def test_zulu_with_nanoseconds(self) -> None:
        ts = parse_timestamp("2025-01-01T12:30:45.123456789Z")
        assert ts == datetime(2025, 1, 1, 12, 30, 45, 123456, tzinfo=timezone.utc)

    def test_offset_converted_to_utc(self) -> None:
        ts = parse_timestamp("2025-01-01T02:00:00+02:00")
        assert ts == datetime(2025, 1, 1, 0, 0, 0, tzinfo=timezone.utc)

    def test_no_fraction(self) -> None:
        assert parse_timestamp("2025-01-01T00:00:00Z").microsecond == 0

    @pytest.mark.parametrize("value", ["", "yesterday", "2025-01-01", None])
    def test_invalid(self, value: Any) -> None:
        with pytest.raises(ValueError):
            parse_timestamp(value)


class TestParseBlockTimes:
    def test_valid(self) -> None:
        times = parse_block_times(
            [
                {"height": 1, "time": "2025-01-01T00:00:00Z"},
                {"height": 2, "time": "2025-01-01T00:00:05.5Z"},
            ]
        )
        assert times[2] == datetime(2025, 1, 1, 0, 0, 5, 500000, tzinfo=timezone.utc)

    def test_bad_time(self) -> None:
        with pytest.raises(SchemaValidationError) as exc_info:
            parse_block_times([{"height": 1, "time": "nope"}])
        assert exc_info.value.path == "data.getBlocks[0].time"

    def test_bad_height(self) -> None:
        with pytest.raises(SchemaValidationError):
            parse_block_times([{"height": "1", "time": "2025-01-01T00:00:00Z"}])

    def test_not_a_list(self) -> None:
        with pytest.raises(SchemaValidationError):
            parse_block_times({})


class TestParseTransactions:
    def test_flattens_and_classifies(self, make_tx: MakeTx, make_raw_event: MakeEvent) -> None:
        txs = [
            make_tx(
                10,
                [
                    make_raw_event("Supply", market_id="m1", assets="100", shares="100"),
                    make_raw_event("Borrow", market_id="m1", assets="40", shares="40"),
                ],
            )
        ]
        result = parse_transactions(txs)
        assert [e.kind for e in result.events] == [EventKind.SUPPLY, EventKind.BORROW]
        first = result.events[0]
        assert first.block_height == 10
        assert first.tx_hash == "hash-10-0"
        assert first.attr("assets") == "100"
        assert first.caller.startswith("g1user")
        assert first.pkg_path == "gno.land/r/gnolend"
        assert result.skipped == ()

    def test_market_filter(self, make_tx: MakeTx, make_raw_event: MakeEvent) -> None:
        txs = [
            make_tx(1, [make_raw_event("Supply", market_id="m1", assets="1")]),
            make_tx(2, [make_raw_event("Supply", market_id="m2", assets="2")]),
            make_tx(3, [make_raw_event("Supply", assets="3")]),
        ]
        result = parse_transactions(txs, market_id="m1")
        assert len(result.events) == 1
        assert all(e.market_id == "m1" for e in result.events)

    def test_type_filter_by_kind_or_raw_type(
        self, make_tx: MakeTx, make_raw_event: MakeEvent
    ) -> None:
        txs = [
            make_tx(
                1,
                [
                    make_raw_event("Supply", assets="1"),
                    make_raw_event("Repay", assets="1"),
                    make_raw_event("CreateMarket"),
                ],
            )
        ]
        by_kind = parse_transactions(txs, event_types=[EventKind.REPAY])
        assert [e.type for e in by_kind.events] == ["Repay"]
        by_raw = parse_transactions(txs, event_types=["CreateMarket", "supply"])
        assert [e.type for e in by_raw.events] == ["Supply", "CreateMarket"]

    def test_unknown_kinds_dropped_by_default(
        self, make_tx: MakeTx, make_raw_event: MakeEvent
    ) -> None:
        txs = [make_tx(1, [make_raw_event("CreateMarket"), make_raw_event("Supply", assets="1")])]
        assert [e.type for e in parse_transactions(txs).events] == ["Supply"]
        everything = parse_transactions(txs, include_all_events=True)
        assert [e.kind for e in everything.events] == [EventKind.UNKNOWN, EventKind.SUPPLY]

    def test_sorted_by_height_then_index(
        self, make_tx: MakeTx, make_raw_event: MakeEvent
    ) -> None:
        txs = [
            make_tx(5, [make_raw_event("Supply", assets="3")], index=1),
            make_tx(5, [make_raw_event("Supply", assets="2")], index=0),
            make_tx(2, [make_raw_event("Supply", assets="1")]),
        ]
        result = parse_transactions(txs)
        assert [e.attr("assets") for e in result.events] == ["1", "2", "3"]

    def test_block_times_applied(self, make_tx: MakeTx, make_raw_event: MakeEvent) -> None:
        ts = datetime(2025, 1, 1, tzinfo=timezone.utc)
        result = parse_transactions(
            [make_tx(7, [make_raw_event("Supply", assets="1")])], block_times={7: ts}
        )
        assert result.events[0].timestamp == ts

    def test_malformed_event_skipped_not_fatal(
        self, make_tx: MakeTx, make_raw_event: MakeEvent
    ) -> None:
        bad_attrs = make_raw_event("Supply")
        bad_attrs["attrs"] = [{"key": "assets", "value": 5}]
        txs = [
            make_tx(1, [bad_attrs, {"pkg_path": "x"}, make_raw_event("Supply", assets="1")]),
            {"hash": "noheight", "response": {"events": []}},
            "not a tx",
        ]
        result = parse_transactions(txs)
        assert len(result.events) == 1
        assert len(result.skipped) == 4

    def test_empty_non_gno_events_ignored(self, make_tx: MakeTx, make_raw_event: MakeEvent) -> None:
        result = parse_transactions([make_tx(1, [{}, make_raw_event("Supply", assets="1")])])
        assert len(result.events) == 1
        assert result.events[0].event_index == 1
        assert result.skipped == ()

    def test_transaction_without_events(self, make_tx: MakeTx) -> None:
        tx = make_tx(1, [])
        tx["response"] = None
        assert parse_transactions([tx]).events == ()
