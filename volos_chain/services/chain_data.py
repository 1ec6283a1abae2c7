"""Consumer-facing entry point bundling state queries and history series."""
from __future__ import annotations

import logging
from typing import Any

from ..chains.gno import GnoClient
from ..config import AppConfig
from ..indexer.aggregation import Bucketer, bucket_by_timestamp
from ..indexer.client import IndexerClient
from ..models import (
    AprPoint,
    HealthFactor,
    LoanAmount,
    Market,
    MarketActivity,
    MarketInfo,
    MarketParams,
    Position,
    PositionSnapshot,
    TimeSeriesPoint,
    UserLoan,
)
from .history import HistoryService
from .state_query import StateQueryClient

logger = logging.getLogger(__name__)


class ChainData:
    """Single-shot typed getters for the dashboard layer.

    Holds only read-only configuration; concurrent calls share nothing else.
    Caching, polling and retries belong to the caller.
    """

    def __init__(
        self,
        state: StateQueryClient,
        history: HistoryService,
    ) -> None:
        self._state = state
        self._history = history

    @classmethod
    def from_config(cls, config: AppConfig) -> ChainData:
        state = StateQueryClient(
            GnoClient(config.state_query), realm_path=config.state_query.realm_path
        )
        history = HistoryService(IndexerClient(config.indexer))
        logger.debug(
            "ChainData using realm %s via %s, indexer %s",
            config.state_query.realm_path, config.state_query.rpc_url, config.indexer.url,
        )
        return cls(state, history)

    # ------------------------------------------------------------------
    # State getters
    # ------------------------------------------------------------------

    async def get_market(self, market_id: str, *, timeout: float | None = None) -> Market:
        return await self._state.get_market(market_id, timeout=timeout)

    async def get_market_params(
        self, market_id: str, *, timeout: float | None = None
    ) -> MarketParams:
        return await self._state.get_market_params(market_id, timeout=timeout)

    async def get_market_info(
        self, market_id: str, *, timeout: float | None = None
    ) -> MarketInfo:
        return await self._state.get_market_info(market_id, timeout=timeout)

    async def get_position(
        self, market_id: str, user_address: str, *, timeout: float | None = None
    ) -> Position:
        return await self._state.get_position(market_id, user_address, timeout=timeout)

    async def get_health_factor(
        self, market_id: str, user_address: str, *, timeout: float | None = None
    ) -> HealthFactor:
        return await self._state.get_health_factor(market_id, user_address, timeout=timeout)

    async def get_loan_amount(
        self, market_id: str, user_address: str, *, timeout: float | None = None
    ) -> LoanAmount:
        return await self._state.get_loan_amount(market_id, user_address, timeout=timeout)

    async def list_markets(self, *, timeout: float | None = None) -> dict[str, Market]:
        return await self._state.list_markets(timeout=timeout)

    async def list_markets_info(
        self, *, timeout: float | None = None
    ) -> dict[str, MarketInfo]:
        return await self._state.list_markets_info(timeout=timeout)

    async def get_user_loans(
        self, user_address: str, *, timeout: float | None = None
    ) -> list[UserLoan]:
        return await self._state.get_user_loans(user_address, timeout=timeout)

    async def get_fee_recipient(self, *, timeout: float | None = None) -> str:
        return await self._state.get_fee_recipient(timeout=timeout)

    # ------------------------------------------------------------------
    # Series getters
    # ------------------------------------------------------------------

    async def get_net_supply_history(
        self, market_id: str, *, bucket: Bucketer = bucket_by_timestamp,
        timeout: float | None = None,
    ) -> list[TimeSeriesPoint]:
        return await self._history.get_net_supply_history(
            market_id, bucket=bucket, timeout=timeout
        )

    async def get_net_borrow_history(
        self, market_id: str, *, bucket: Bucketer = bucket_by_timestamp,
        timeout: float | None = None,
    ) -> list[TimeSeriesPoint]:
        return await self._history.get_net_borrow_history(
            market_id, bucket=bucket, timeout=timeout
        )

    async def get_utilization_history(
        self, market_id: str, *, bucket: Bucketer = bucket_by_timestamp,
        timeout: float | None = None,
    ) -> list[TimeSeriesPoint]:
        return await self._history.get_utilization_history(
            market_id, bucket=bucket, timeout=timeout
        )

    async def get_apr_history(
        self, market_id: str, *, bucket: Bucketer = bucket_by_timestamp,
        timeout: float | None = None,
    ) -> list[AprPoint]:
        """APR series; the supply side uses the market's current fee from realm state."""
        market = await self._state.get_market(market_id, timeout=timeout)
        return await self._history.get_apr_history(
            market_id, fee=market.fee, bucket=bucket, timeout=timeout
        )

    async def get_market_activity(
        self, market_id: str, *, timeout: float | None = None
    ) -> list[MarketActivity]:
        return await self._history.get_market_activity(market_id, timeout=timeout)

    async def get_position_history(
        self, market_id: str, user_address: str, *, bucket: Bucketer = bucket_by_timestamp,
        timeout: float | None = None,
    ) -> list[PositionSnapshot]:
        return await self._history.get_position_history(
            market_id, user_address, bucket=bucket, timeout=timeout
        )

    async def __aenter__(self) -> ChainData:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        # sessions are per request; nothing to release
        return None
