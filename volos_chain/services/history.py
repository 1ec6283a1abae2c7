"""Market history series built from indexed lending events."""
from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from ..exceptions import MalformedEventError
from ..indexer import aggregation
from ..indexer.aggregation import Bucketer, bucket_by_timestamp
from ..indexer.fields import MARKET_ACTIVITY_FIELDS, UNIVERSAL_TRANSACTION_FIELDS
from ..indexer.parser import parse_transactions
from ..indexer.query_builder import TransactionQuery
from ..interfaces.indexer import IndexerTransport
from ..models import (
    AggregationResult,
    AprPoint,
    EventKind,
    IndexedEvent,
    MarketActivity,
    PositionSnapshot,
    TimeSeriesPoint,
)

logger = logging.getLogger(__name__)

FLOW_KINDS = (
    EventKind.SUPPLY,
    EventKind.WITHDRAW,
    EventKind.BORROW,
    EventKind.REPAY,
    EventKind.LIQUIDATE,
)

POSITION_KINDS = FLOW_KINDS + (
    EventKind.SUPPLY_COLLATERAL,
    EventKind.WITHDRAW_COLLATERAL,
)

APR_KINDS = FLOW_KINDS + (EventKind.ACCRUE_INTEREST,)


class HistoryService:
    """Fetch a market's events from the indexer and aggregate them.

    Every getter is single-shot: a transport failure raises and no partial
    series is returned. Malformed events are dropped and logged.
    """

    def __init__(self, indexer: IndexerTransport) -> None:
        self._indexer = indexer

    @staticmethod
    def _log_skipped(name: str, market_id: str, skipped: Iterable[MalformedEventError]) -> None:
        for error in skipped:
            logger.warning("%s(%s): skipped event: %s", name, market_id, error)

    async def fetch_market_events(
        self,
        market_id: str,
        *,
        event_types: Iterable[str | EventKind] | None = None,
        include_all_events: bool = False,
        fields: str = UNIVERSAL_TRANSACTION_FIELDS,
        operation_name: str = "getMarketEvents",
        timeout: float | None = None,
    ) -> list[IndexedEvent]:
        """Return the market's successful events in chronological order."""
        query = TransactionQuery(operation_name, fields).success().market_id(market_id)
        transactions = await self._indexer.execute(query, timeout=timeout)

        heights = {
            tx["block_height"]
            for tx in transactions
            if isinstance(tx, dict) and isinstance(tx.get("block_height"), int)
        }
        block_times = await self._indexer.fetch_block_times(heights, timeout=timeout)

        result = parse_transactions(
            transactions,
            market_id=market_id,
            event_types=event_types,
            include_all_events=include_all_events,
            block_times=block_times,
        )
        self._log_skipped(operation_name, market_id, result.skipped)
        logger.info(
            "%s(%s): %d events from %d transactions",
            operation_name, market_id, len(result.events), len(transactions),
        )
        return list(result.events)

    def _finish(self, name: str, market_id: str, result: AggregationResult[Any]) -> list[Any]:
        self._log_skipped(name, market_id, result.skipped)
        return list(result.items)

    async def get_net_supply_history(
        self,
        market_id: str,
        *,
        bucket: Bucketer = bucket_by_timestamp,
        timeout: float | None = None,
    ) -> list[TimeSeriesPoint]:
        events = await self.fetch_market_events(
            market_id, event_types=FLOW_KINDS, operation_name="getNetSupplyHistory",
            timeout=timeout,
        )
        return self._finish(
            "getNetSupplyHistory", market_id, aggregation.net_supply_series(events, bucket)
        )

    async def get_net_borrow_history(
        self,
        market_id: str,
        *,
        bucket: Bucketer = bucket_by_timestamp,
        timeout: float | None = None,
    ) -> list[TimeSeriesPoint]:
        events = await self.fetch_market_events(
            market_id, event_types=FLOW_KINDS, operation_name="getNetBorrowHistory",
            timeout=timeout,
        )
        return self._finish(
            "getNetBorrowHistory", market_id, aggregation.net_borrow_series(events, bucket)
        )

    async def get_utilization_history(
        self,
        market_id: str,
        *,
        bucket: Bucketer = bucket_by_timestamp,
        timeout: float | None = None,
    ) -> list[TimeSeriesPoint]:
        events = await self.fetch_market_events(
            market_id, event_types=FLOW_KINDS, operation_name="getUtilizationHistory",
            timeout=timeout,
        )
        return self._finish(
            "getUtilizationHistory", market_id, aggregation.utilization_series(events, bucket)
        )

    async def get_apr_history(
        self,
        market_id: str,
        *,
        fee: str = "0",
        bucket: Bucketer = bucket_by_timestamp,
        timeout: float | None = None,
    ) -> list[AprPoint]:
        """Borrow and supply APR after each interest accrual.

        ``fee`` is the market's 1e18-scaled protocol fee, as read from realm
        state; it only affects the supply side.
        """
        events = await self.fetch_market_events(
            market_id, event_types=APR_KINDS, operation_name="getAprHistory",
            timeout=timeout,
        )
        return self._finish(
            "getAprHistory", market_id, aggregation.apr_series(events, fee, bucket)
        )

    async def get_market_activity(
        self, market_id: str, *, timeout: float | None = None
    ) -> list[MarketActivity]:
        """All activity for the market, oldest first, unknown kinds included."""
        events = await self.fetch_market_events(
            market_id,
            include_all_events=True,
            fields=MARKET_ACTIVITY_FIELDS,
            operation_name="getMarketActivity",
            timeout=timeout,
        )
        return self._finish("getMarketActivity", market_id, aggregation.market_activity(events))

    async def get_position_history(
        self,
        market_id: str,
        user_address: str,
        *,
        bucket: Bucketer = bucket_by_timestamp,
        timeout: float | None = None,
    ) -> list[PositionSnapshot]:
        events = await self.fetch_market_events(
            market_id, event_types=POSITION_KINDS, operation_name="getPositionHistory",
            timeout=timeout,
        )
        return self._finish(
            "getPositionHistory",
            market_id,
            aggregation.position_history(events, user_address, bucket),
        )
