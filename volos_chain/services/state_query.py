"""Typed getters over the lending realm's read-only API."""
from __future__ import annotations

import logging
from typing import Any, Callable, TypeVar

from ..chains.gno import build_call, parse_json_result, parse_string_result
from ..config import DEFAULT_REALM_PATH
from ..exceptions import ChainDataError
from ..interfaces.chain import StateTransport
from ..models import (
    HealthFactor,
    LoanAmount,
    Market,
    MarketInfo,
    MarketParams,
    Position,
    UserLoan,
)
from .. import schema

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StateQueryClient:
    """Query market and position state from the lending realm.

    Transport failures surface as ``RemoteQueryError``, shape mismatches as
    ``SchemaValidationError``. Nothing is retried here.
    """

    def __init__(
        self, transport: StateTransport, realm_path: str = DEFAULT_REALM_PATH
    ) -> None:
        self._transport = transport
        self.realm_path = realm_path

    async def _evaluate(self, function: str, *args: str, timeout: float | None = None) -> str:
        expression = build_call(function, *args)
        return await self._transport.evaluate(self.realm_path, expression, timeout=timeout)

    async def _query_json(
        self,
        function: str,
        args: tuple[str, ...],
        validate: Callable[[Any], T],
        timeout: float | None,
    ) -> T:
        try:
            raw = await self._evaluate(function, *args, timeout=timeout)
            return validate(parse_json_result(raw))
        except ChainDataError as e:
            logger.error("%s%r failed: %s", function, args, e)
            raise

    # ------------------------------------------------------------------
    # Market state
    # ------------------------------------------------------------------

    async def get_market(self, market_id: str, *, timeout: float | None = None) -> Market:
        return await self._query_json(
            "ApiGetMarket", (market_id,), schema.parse_market, timeout
        )

    async def get_market_params(
        self, market_id: str, *, timeout: float | None = None
    ) -> MarketParams:
        return await self._query_json(
            "ApiGetMarketParams", (market_id,), schema.parse_market_params, timeout
        )

    async def get_market_info(
        self, market_id: str, *, timeout: float | None = None
    ) -> MarketInfo:
        return await self._query_json(
            "ApiGetMarketInfo",
            (market_id,),
            lambda raw: schema.parse_market_info(raw, market_id),
            timeout,
        )

    async def list_markets(self, *, timeout: float | None = None) -> dict[str, Market]:
        return await self._query_json(
            "ApiListMarkets", (), schema.parse_markets_list, timeout
        )

    async def list_markets_info(
        self, *, timeout: float | None = None
    ) -> dict[str, MarketInfo]:
        return await self._query_json(
            "ApiListMarketsInfo", (), schema.parse_markets_info_list, timeout
        )

    # ------------------------------------------------------------------
    # User state
    # ------------------------------------------------------------------

    async def get_position(
        self, market_id: str, user_address: str, *, timeout: float | None = None
    ) -> Position:
        return await self._query_json(
            "ApiGetPosition", (market_id, user_address), schema.parse_position, timeout
        )

    async def get_health_factor(
        self, market_id: str, user_address: str, *, timeout: float | None = None
    ) -> HealthFactor:
        """Return the health factor; zero when the user has no position."""
        try:
            raw = await self._evaluate(
                "ApiGetHealthFactor", market_id, user_address, timeout=timeout
            )
            if not raw.strip():
                return HealthFactor()
            return schema.parse_health_factor(parse_json_result(raw))
        except ChainDataError as e:
            logger.error("ApiGetHealthFactor(%r, %r) failed: %s", market_id, user_address, e)
            raise

    async def get_loan_amount(
        self, market_id: str, user_address: str, *, timeout: float | None = None
    ) -> LoanAmount:
        return await self._query_json(
            "ApiGetLoanAmount", (market_id, user_address), schema.parse_loan_amount, timeout
        )

    async def get_user_loans(
        self, user_address: str, *, timeout: float | None = None
    ) -> list[UserLoan]:
        return await self._query_json(
            "ApiGetUserLoans", (user_address,), schema.parse_user_loans, timeout
        )

    # ------------------------------------------------------------------
    # Plain getters
    # ------------------------------------------------------------------

    async def get_fee_recipient(self, *, timeout: float | None = None) -> str:
        try:
            return parse_string_result(
                await self._evaluate("GetFeeRecipient", timeout=timeout)
            )
        except ChainDataError as e:
            logger.error("GetFeeRecipient() failed: %s", e)
            raise
