"""Indexer transport protocol — transaction and block lookups."""
from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Any, Protocol

from ..indexer.query_builder import TransactionQuery


class IndexerTransport(Protocol):
    """Run transaction queries and resolve block times against the indexer."""

    async def execute(
        self,
        query: TransactionQuery,
        variables: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> list[dict[str, Any]]: ...

    async def fetch_block_times(
        self, heights: Iterable[int], timeout: float | None = None
    ) -> dict[int, datetime]: ...
