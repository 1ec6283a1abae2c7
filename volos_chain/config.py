"""Configuration loader — reads config.yaml, interpolates env vars, validates."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_REALM_PATH = "gno.land/r/gnolend"

# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StateQueryConfig:
    rpc_url: str = "http://localhost:26657"
    realm_path: str = DEFAULT_REALM_PATH
    timeout: float = 30.0


@dataclass(frozen=True)
class IndexerConfig:
    url: str = "http://localhost:3100"
    timeout: float = 30.0


@dataclass(frozen=True)
class AppConfig:
    state_query: StateQueryConfig = field(default_factory=StateQueryConfig)
    indexer: IndexerConfig = field(default_factory=IndexerConfig)


# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# YAML → dataclass builders
# ---------------------------------------------------------------------------


def _build_state_query(raw: dict[str, Any]) -> StateQueryConfig:
    return StateQueryConfig(
        rpc_url=str(raw.get("rpc_url", StateQueryConfig.rpc_url)).rstrip("/"),
        realm_path=str(raw.get("realm_path", DEFAULT_REALM_PATH)),
        timeout=float(raw.get("timeout", 30.0)),
    )


def _build_indexer(raw: dict[str, Any]) -> IndexerConfig:
    return IndexerConfig(
        url=str(raw.get("url", IndexerConfig.url)).rstrip("/"),
        timeout=float(raw.get("timeout", 30.0)),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load and validate application configuration from YAML + .env.

    Args:
        config_path: Path to config.yaml. Defaults to ``config.yaml`` in the
            project root (one level up from this package).
    """
    load_dotenv()

    if config_path is None:
        config_path = Path(__file__).resolve().parent.parent / "config.yaml"
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    raw = _interpolate_env(raw)

    cfg = AppConfig(
        state_query=_build_state_query(raw.get("state_query") or {}),
        indexer=_build_indexer(raw.get("indexer") or {}),
    )

    _validate(cfg)
    logger.info("Configuration loaded from %s", config_path)
    return cfg


def _validate(cfg: AppConfig) -> None:
    """Raise on invalid configuration."""
    for name, url in (
        ("state_query.rpc_url", cfg.state_query.rpc_url),
        ("indexer.url", cfg.indexer.url),
    ):
        if not url.startswith(("http://", "https://")):
            raise ValueError(f"{name} must be an http(s) URL, got '{url}'")

    if not cfg.state_query.realm_path:
        raise ValueError("state_query.realm_path must not be empty")

    for name, timeout in (
        ("state_query.timeout", cfg.state_query.timeout),
        ("indexer.timeout", cfg.indexer.timeout),
    ):
        if timeout <= 0:
            raise ValueError(f"{name} must be positive, got {timeout}")
