"""Gno ledger RPC client for read-only realm evaluation."""
from __future__ import annotations

import asyncio
import base64
import logging
import ssl
from typing import Any

import aiohttp
import certifi

from ...config import StateQueryConfig
from ...exceptions import RemoteQueryError

logger = logging.getLogger(__name__)

QEVAL_PATH = "vm/qeval"


class GnoClient:
    """Evaluate read-only expressions against a realm over tm2 JSON-RPC."""

    def __init__(self, config: StateQueryConfig) -> None:
        self.endpoint = config.rpc_url
        self.timeout = config.timeout

    async def rpc_call(
        self, method: str, params: dict[str, Any], timeout: float | None = None
    ) -> dict[str, Any]:
        """Make a single JSON-RPC call and return its ``result`` object."""
        payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}

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
                            "RPC %s failed: HTTP %s, body: %s",
                            method, status, body,
                        )
                        raise RemoteQueryError(
                            f"HTTP {status}",
                            endpoint=self.endpoint,
                            status=status,
                            body=body,
                        )
                    try:
                        result = await response.json(content_type=None)
                    except ValueError as e:
                        raise RemoteQueryError(
                            f"response is not JSON: {e}",
                            endpoint=self.endpoint,
                            status=status,
                        ) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error("RPC %s to %s failed: %s", method, self.endpoint, e)
            raise RemoteQueryError(
                f"request failed: {e!r}", endpoint=self.endpoint
            ) from e

        if not isinstance(result, dict):
            raise RemoteQueryError("malformed JSON-RPC envelope", endpoint=self.endpoint)
        if result.get("error"):
            logger.error("RPC %s returned error: %s", method, result["error"])
            raise RemoteQueryError(
                f"RPC error: {result['error']}", endpoint=self.endpoint, status=status
            )
        rpc_result = result.get("result")
        if not isinstance(rpc_result, dict):
            raise RemoteQueryError("JSON-RPC result missing", endpoint=self.endpoint)
        return rpc_result

    async def evaluate(
        self, realm_path: str, expression: str, timeout: float | None = None
    ) -> str:
        """Evaluate ``expression`` in ``realm_path`` and return the raw result text."""
        data = base64.b64encode(f"{realm_path}.{expression}".encode()).decode()
        logger.debug("qeval %s.%s", realm_path, expression)

        result = await self.rpc_call(
            "abci_query", {"path": QEVAL_PATH, "data": data}, timeout=timeout
        )

        response = result.get("response")
        response_base = response.get("ResponseBase") if isinstance(response, dict) else None
        if not isinstance(response_base, dict):
            raise RemoteQueryError("ABCI response missing", endpoint=self.endpoint)

        if response_base.get("Error"):
            log = response_base.get("Log", "")
            logger.error("qeval %s.%s failed: %s", realm_path, expression, log)
            raise RemoteQueryError(
                f"ABCI error: {log or response_base['Error']}",
                endpoint=self.endpoint,
                body=str(log),
            )

        encoded = response_base.get("Data")
        if not encoded:
            return ""
        try:
            return base64.b64decode(encoded).decode()
        except (ValueError, UnicodeDecodeError) as e:
            raise RemoteQueryError(
                f"ABCI data is not base64 text: {e}", endpoint=self.endpoint
            ) from e
