"""Shared test fixtures and sample data."""
from __future__ import annotations

import json
import textwrap
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable

import pytest

from volos_chain.config import AppConfig, IndexerConfig, StateQueryConfig
from volos_chain.models import EventKind, IndexedEvent

MARKET_ID = "gno.land/r/demo/market1"
USER = "g1user0000000000000000000000000000000000"

T0 = datetime(2025, 1, 1, 0, 0, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_state_query_config() -> StateQueryConfig:
    return StateQueryConfig(
        rpc_url="https://rpc.example.com",
        realm_path="gno.land/r/gnolend",
        timeout=10.0,
    )


@pytest.fixture()
def sample_indexer_config() -> IndexerConfig:
    return IndexerConfig(url="https://indexer.example.com", timeout=10.0)


@pytest.fixture()
def sample_app_config(
    sample_state_query_config: StateQueryConfig,
    sample_indexer_config: IndexerConfig,
) -> AppConfig:
    return AppConfig(state_query=sample_state_query_config, indexer=sample_indexer_config)


SAMPLE_YAML = textwrap.dedent("""\
    state_query:
      rpc_url: "https://rpc.example.com/"
      realm_path: gno.land/r/gnolend
      timeout: 15
    indexer:
      url: "https://indexer.example.com"
      timeout: 20
""")


@pytest.fixture()
def sample_yaml_path(tmp_path: Path) -> Path:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(SAMPLE_YAML)
    return cfg_file


# ---------------------------------------------------------------------------
# Realm payloads
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_market_json() -> dict[str, Any]:
    return {
        "totalSupplyAssets": "1000000000000000000000000",
        "totalSupplyShares": "1000000000000000000000000000000",
        "totalBorrowAssets": "250000000000000000000000",
        "totalBorrowShares": "250000000000000000000000000000",
        "lastUpdate": 1735689600,
        "fee": "0",
    }


@pytest.fixture()
def sample_market_info_json(sample_market_json: dict[str, Any]) -> dict[str, Any]:
    return {
        **sample_market_json,
        "poolPath": MARKET_ID,
        "irm": "linear",
        "lltv": "750000000000000000",
        "isToken0Loan": True,
        "loanToken": "gno.land/r/demo/wugnot",
        "collateralToken": "gno.land/r/gnoswap/v1/gns",
        "currentPrice": "1.25",
        "borrowAPR": "50000000000000000",
        "supplyAPR": "12500000000000000",
        "utilization": "250000000000000000",
        "loanTokenName": "Wrapped GNOT",
        "loanTokenSymbol": "WUGNOT",
        "loanTokenDecimals": 6,
        "collateralTokenName": "Gnoswap",
        "collateralTokenSymbol": "GNS",
        "collateralTokenDecimals": 6,
        "extraField": "ignored",
    }


@pytest.fixture()
def qeval() -> Callable[[Any], str]:
    """Render a value the way vm/qeval renders a returned string."""

    def render(value: Any) -> str:
        text = value if isinstance(value, str) else json.dumps(value)
        return f"({json.dumps(text)} string)"

    return render


# ---------------------------------------------------------------------------
# Indexer data
# ---------------------------------------------------------------------------


def _raw_event(event_type: str, **attrs: str) -> dict[str, Any]:
    return {
        "type": event_type,
        "pkg_path": "gno.land/r/gnolend",
        "func": event_type,
        "attrs": [{"key": k, "value": v} for k, v in attrs.items()],
    }


def _raw_tx(
    height: int,
    events: list[dict[str, Any]],
    *,
    tx_hash: str | None = None,
    index: int = 0,
    caller: str = USER,
) -> dict[str, Any]:
    return {
        "index": index,
        "hash": tx_hash or f"hash-{height}-{index}",
        "success": True,
        "block_height": height,
        "messages": [{"value": {"caller": caller}}],
        "response": {"events": events},
    }


@pytest.fixture()
def make_raw_event() -> Callable[..., dict[str, Any]]:
    return _raw_event


@pytest.fixture()
def make_tx() -> Callable[..., dict[str, Any]]:
    return _raw_tx


@pytest.fixture()
def make_event() -> Callable[..., IndexedEvent]:
    """Build an IndexedEvent at ``T0 + minutes`` (block ``100 + minutes``)."""
    counter = {"n": 0}

    def build(
        event_type: str,
        minutes: int = 0,
        *,
        block_height: int | None = None,
        caller: str = USER,
        no_timestamp: bool = False,
        **attrs: str,
    ) -> IndexedEvent:
        counter["n"] += 1
        return IndexedEvent(
            block_height=block_height if block_height is not None else 100 + minutes,
            tx_hash=f"tx{counter['n']}",
            tx_index=0,
            event_index=counter["n"],
            type=event_type,
            kind=EventKind.classify(event_type),
            attrs=tuple(attrs.items()),
            timestamp=None if no_timestamp else T0 + timedelta(minutes=minutes),
            caller=caller,
        )

    return build
