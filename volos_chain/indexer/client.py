"""tx-indexer GraphQL client."""
from __future__ import annotations

import asyncio
import logging
import ssl
from collections.abc import Iterable
from datetime import datetime
from typing import Any

import aiohttp
import certifi

from ..config import IndexerConfig
from ..exceptions import IndexerQueryError, SchemaValidationError
from .parser import parse_block_times
from .query_builder import TransactionQuery, build_block_times_query

logger = logging.getLogger(__name__)

GRAPHQL_PATH = "/graphql/query"

BLOCK_TIMES_BATCH_SIZE = 100


def _data_field(document: dict[str, Any], name: str) -> Any:
    payload = document.get("data")
    if payload is None:
        return None
    if not isinstance(payload, dict):
        raise SchemaValidationError("data", payload, "expected object")
    return payload.get(name)


class IndexerClient:
    """POST GraphQL queries to the transaction indexer."""

    def __init__(self, config: IndexerConfig) -> None:
        self.endpoint = f"{config.url.rstrip('/')}{GRAPHQL_PATH}"
        self.timeout = config.timeout

    async def post_graphql_query(
        self,
        query: str,
        operation_name: str,
        variables: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """Send one GraphQL request and return the decoded response document.

        Raises:
            IndexerQueryError: On network failure, timeout, non-2xx status,
                a non-JSON body or a GraphQL ``errors`` array.

        """
        payload = {"query": query, "operationName": operation_name, "variables": variables}

        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)
        client_timeout = aiohttp.ClientTimeout(total=timeout or self.timeout)

        try:
            async with aiohttp.ClientSession(connector=connector) as session:
                async with session.post(
                    self.endpoint, json=payload, timeout=client_timeout
                ) as response:
                    status = response.status
                    if status < 200 or status >= 300:
                        body = await response.text()
                        logger.error(
                            "Indexer query %s failed: HTTP %s, body: %s",
                            operation_name, status, body,
                        )
                        raise IndexerQueryError(
                            f"HTTP {status}", endpoint=self.endpoint, status=status, body=body
                        )
                    try:
                        data = await response.json(content_type=None)
                    except ValueError as e:
                        logger.error(
                            "Indexer query %s returned non-JSON body (HTTP %s)",
                            operation_name, status,
                        )
                        raise IndexerQueryError(
                            f"response is not JSON: {e}", endpoint=self.endpoint, status=status
                        ) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error("Indexer query %s to %s failed: %s", operation_name, self.endpoint, e)
            raise IndexerQueryError(f"request failed: {e!r}", endpoint=self.endpoint) from e

        if not isinstance(data, dict):
            raise IndexerQueryError(
                "malformed GraphQL envelope", endpoint=self.endpoint, status=status
            )
        if data.get("errors"):
            logger.error("Indexer query %s returned errors: %s", operation_name, data["errors"])
            raise IndexerQueryError(
                f"GraphQL errors: {data['errors']}",
                endpoint=self.endpoint,
                status=status,
                body=str(data["errors"]),
            )
        return data

    async def execute(
        self,
        query: TransactionQuery,
        variables: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> list[dict[str, Any]]:
        """Run a transaction query and return the raw ``getTransactions`` list."""
        data = await self.post_graphql_query(
            query.build(), query.operation_name, variables, timeout=timeout
        )
        transactions = _data_field(data, "getTransactions")
        if transactions is None:
            return []
        if not isinstance(transactions, list):
            raise SchemaValidationError(
                "data.getTransactions", transactions, "expected array"
            )
        logger.debug("%s returned %d transactions", query.operation_name, len(transactions))
        return transactions

    async def fetch_block_times(
        self, heights: Iterable[int], timeout: float | None = None
    ) -> dict[int, datetime]:
        """Resolve block heights to their (UTC) block times.

        Heights are requested individually, ``BLOCK_TIMES_BATCH_SIZE`` per
        query, so sparse heights never pull the blocks in between.
        """
        wanted = set(heights)
        ordered = sorted(wanted)
        times: dict[int, datetime] = {}
        for start in range(0, len(ordered), BLOCK_TIMES_BATCH_SIZE):
            batch = ordered[start:start + BLOCK_TIMES_BATCH_SIZE]
            query = build_block_times_query(batch)
            data = await self.post_graphql_query(query, "getBlockTimes", timeout=timeout)
            times.update(parse_block_times(_data_field(data, "getBlocks") or []))
        missing = wanted - times.keys()
        if missing:
            logger.warning("No block time for %d block(s): %s", len(missing), sorted(missing)[:10])
        return {h: t for h, t in times.items() if h in wanted}
