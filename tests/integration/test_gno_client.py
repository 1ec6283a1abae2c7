"""Integration tests for the Gno RPC client — qeval and error handling."""
from __future__ import annotations

import asyncio
import base64
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from volos_chain.chains.gno.client import GnoClient
from volos_chain.config import StateQueryConfig
from volos_chain.exceptions import RemoteQueryError

REALM = "gno.land/r/gnolend"


@pytest.fixture()
def client(sample_state_query_config: StateQueryConfig) -> GnoClient:
    return GnoClient(sample_state_query_config)


def _b64(text: str) -> str:
    return base64.b64encode(text.encode()).decode()


def _abci(data: str | None = None, error: Any = None, log: str = "") -> dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "id": 1,
        "result": {
            "response": {
                "ResponseBase": {"Error": error, "Data": data, "Log": log, "Info": ""},
                "Key": None,
                "Value": None,
                "Height": "0",
            }
        },
    }


def _mock_session(
    response_data: Any = None,
    status: int = 200,
    text: str = "",
    error: Exception | None = None,
    json_error: Exception | None = None,
):
    """Create a mock aiohttp session that returns given data or raises error."""
    mock_response = AsyncMock()
    mock_response.status = status
    mock_response.text = AsyncMock(return_value=text)
    if json_error:
        mock_response.json = AsyncMock(side_effect=json_error)
    else:
        mock_response.json = AsyncMock(return_value=response_data)
    mock_response.__aenter__ = AsyncMock(return_value=mock_response)
    mock_response.__aexit__ = AsyncMock(return_value=None)

    mock_session = AsyncMock()
    if error:
        mock_session.post = MagicMock(side_effect=error)
    else:
        mock_session.post = MagicMock(return_value=mock_response)
    mock_session.__aenter__ = AsyncMock(return_value=mock_session)
    mock_session.__aexit__ = AsyncMock(return_value=None)

    return mock_session


class TestRpcCall:
    @pytest.mark.asyncio
    async def test_successful_call(self, client: GnoClient) -> None:
        mock_session = _mock_session({"jsonrpc": "2.0", "result": {"data": "ok"}})

        with patch("volos_chain.chains.gno.client.aiohttp.ClientSession", return_value=mock_session):
            with patch("volos_chain.chains.gno.client.aiohttp.TCPConnector"):
                result = await client.rpc_call("status", {})

        assert result == {"data": "ok"}
        payload = mock_session.post.call_args.kwargs["json"]
        assert payload["method"] == "status"
        assert mock_session.post.call_args.args[0] == "https://rpc.example.com"

    @pytest.mark.asyncio
    async def test_http_error_raises(self, client: GnoClient) -> None:
        mock_session = _mock_session(status=502, text="bad gateway")

        with patch("volos_chain.chains.gno.client.aiohttp.ClientSession", return_value=mock_session):
            with patch("volos_chain.chains.gno.client.aiohttp.TCPConnector"):
                with pytest.raises(RemoteQueryError) as exc_info:
                    await client.rpc_call("status", {})

        assert exc_info.value.status == 502
        assert exc_info.value.body == "bad gateway"

    @pytest.mark.asyncio
    async def test_any_2xx_status_accepted(self, client: GnoClient) -> None:
        mock_session = _mock_session({"jsonrpc": "2.0", "result": {"data": "ok"}}, status=201)

        with patch("volos_chain.chains.gno.client.aiohttp.ClientSession", return_value=mock_session):
            with patch("volos_chain.chains.gno.client.aiohttp.TCPConnector"):
                result = await client.rpc_call("status", {})

        assert result == {"data": "ok"}

    @pytest.mark.asyncio
    async def test_http_3xx_raises(self, client: GnoClient) -> None:
        mock_session = _mock_session(status=304)

        with patch("volos_chain.chains.gno.client.aiohttp.ClientSession", return_value=mock_session):
            with patch("volos_chain.chains.gno.client.aiohttp.TCPConnector"):
                with pytest.raises(RemoteQueryError) as exc_info:
                    await client.rpc_call("status", {})

        assert exc_info.value.status == 304

    @pytest.mark.asyncio
    async def test_rpc_error_raises(self, client: GnoClient) -> None:
        mock_session = _mock_session(
            {"jsonrpc": "2.0", "error": {"code": -32603, "message": "bad"}}
        )

        with patch("volos_chain.chains.gno.client.aiohttp.ClientSession", return_value=mock_session):
            with patch("volos_chain.chains.gno.client.aiohttp.TCPConnector"):
                with pytest.raises(RemoteQueryError, match="RPC error"):
                    await client.rpc_call("status", {})

    @pytest.mark.asyncio
    async def test_connection_error_raises(self, client: GnoClient) -> None:
        mock_session = _mock_session(error=aiohttp.ClientConnectionError("refused"))

        with patch("volos_chain.chains.gno.client.aiohttp.ClientSession", return_value=mock_session):
            with patch("volos_chain.chains.gno.client.aiohttp.TCPConnector"):
                with pytest.raises(RemoteQueryError, match="request failed") as exc_info:
                    await client.rpc_call("status", {})

        assert isinstance(exc_info.value.__cause__, aiohttp.ClientConnectionError)

    @pytest.mark.asyncio
    async def test_timeout_raises(self, client: GnoClient) -> None:
        mock_session = _mock_session(error=asyncio.TimeoutError())

        with patch("volos_chain.chains.gno.client.aiohttp.ClientSession", return_value=mock_session):
            with patch("volos_chain.chains.gno.client.aiohttp.TCPConnector"):
                with pytest.raises(RemoteQueryError):
                    await client.rpc_call("status", {})

    @pytest.mark.asyncio
    async def test_non_json_body_raises(self, client: GnoClient) -> None:
        mock_session = _mock_session(json_error=ValueError("Expecting value"))

        with patch("volos_chain.chains.gno.client.aiohttp.ClientSession", return_value=mock_session):
            with patch("volos_chain.chains.gno.client.aiohttp.TCPConnector"):
                with pytest.raises(RemoteQueryError, match="not JSON"):
                    await client.rpc_call("status", {})

    @pytest.mark.asyncio
    async def test_missing_result_raises(self, client: GnoClient) -> None:
        mock_session = _mock_session({"jsonrpc": "2.0", "id": 1})

        with patch("volos_chain.chains.gno.client.aiohttp.ClientSession", return_value=mock_session):
            with patch("volos_chain.chains.gno.client.aiohttp.TCPConnector"):
                with pytest.raises(RemoteQueryError, match="result missing"):
                    await client.rpc_call("status", {})


class TestEvaluate:
    @pytest.mark.asyncio
    async def test_sends_qeval_and_decodes_data(self, client: GnoClient) -> None:
        mock_session = _mock_session(_abci(data=_b64('("g1fee" string)')))

        with patch("volos_chain.chains.gno.client.aiohttp.ClientSession", return_value=mock_session):
            with patch("volos_chain.chains.gno.client.aiohttp.TCPConnector"):
                raw = await client.evaluate(REALM, 'ApiGetMarket("m1")')

        assert raw == '("g1fee" string)'
        payload = mock_session.post.call_args.kwargs["json"]
        assert payload["method"] == "abci_query"
        assert payload["params"]["path"] == "vm/qeval"
        decoded = base64.b64decode(payload["params"]["data"]).decode()
        assert decoded == 'gno.land/r/gnolend.ApiGetMarket("m1")'

    @pytest.mark.asyncio
    async def test_empty_data_returns_empty_string(self, client: GnoClient) -> None:
        mock_session = _mock_session(_abci(data=None))

        with patch("volos_chain.chains.gno.client.aiohttp.ClientSession", return_value=mock_session):
            with patch("volos_chain.chains.gno.client.aiohttp.TCPConnector"):
                assert await client.evaluate(REALM, "GetFeeRecipient()") == ""

    @pytest.mark.asyncio
    async def test_abci_error_raises_with_log(self, client: GnoClient) -> None:
        mock_session = _mock_session(
            _abci(error={"@type": "/vm.UnknownError"}, log="market not found")
        )

        with patch("volos_chain.chains.gno.client.aiohttp.ClientSession", return_value=mock_session):
            with patch("volos_chain.chains.gno.client.aiohttp.TCPConnector"):
                with pytest.raises(RemoteQueryError, match="market not found"):
                    await client.evaluate(REALM, 'ApiGetMarket("nope")')

    @pytest.mark.asyncio
    async def test_missing_response_base_raises(self, client: GnoClient) -> None:
        mock_session = _mock_session({"jsonrpc": "2.0", "result": {"response": "odd"}})

        with patch("volos_chain.chains.gno.client.aiohttp.ClientSession", return_value=mock_session):
            with patch("volos_chain.chains.gno.client.aiohttp.TCPConnector"):
                with pytest.raises(RemoteQueryError, match="ABCI response missing"):
                    await client.evaluate(REALM, "GetFeeRecipient()")

    @pytest.mark.asyncio
    async def test_invalid_base64_raises(self, client: GnoClient) -> None:
        mock_session = _mock_session(_abci(data="!!!not-base64!!!"))

        with patch("volos_chain.chains.gno.client.aiohttp.ClientSession", return_value=mock_session):
            with patch("volos_chain.chains.gno.client.aiohttp.TCPConnector"):
                with pytest.raises(RemoteQueryError, match="base64"):
                    await client.evaluate(REALM, "GetFeeRecipient()")
