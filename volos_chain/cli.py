"""Command-line interface for one-off chain data queries."""
from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import logging
import sys
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from .config import load_config
from .exceptions import ChainDataError
from .logging_setup import configure_logging
from .services import ChainData

logger = logging.getLogger(__name__)

# command → (ChainData method, positional argument names)
COMMANDS: dict[str, tuple[str, tuple[str, ...]]] = {
    "market": ("get_market", ("market_id",)),
    "market-params": ("get_market_params", ("market_id",)),
    "market-info": ("get_market_info", ("market_id",)),
    "markets": ("list_markets", ()),
    "markets-info": ("list_markets_info", ()),
    "position": ("get_position", ("market_id", "user_address")),
    "health-factor": ("get_health_factor", ("market_id", "user_address")),
    "loan-amount": ("get_loan_amount", ("market_id", "user_address")),
    "user-loans": ("get_user_loans", ("user_address",)),
    "fee-recipient": ("get_fee_recipient", ()),
    "activity": ("get_market_activity", ("market_id",)),
    "supply-history": ("get_net_supply_history", ("market_id",)),
    "borrow-history": ("get_net_borrow_history", ("market_id",)),
    "utilization-history": ("get_utilization_history", ("market_id",)),
    "apr-history": ("get_apr_history", ("market_id",)),
    "position-history": ("get_position_history", ("market_id", "user_address")),
}


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="volos-chain",
        description="Query Volos lending markets from a Gno node and tx-indexer",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: config.yaml in project root)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Per-request timeout in seconds (overrides config)",
    )

    sub = parser.add_subparsers(dest="command")
    for name, (method, arg_names) in COMMANDS.items():
        cmd = sub.add_parser(name, help=method.replace("_", " "))
        for arg_name in arg_names:
            cmd.add_argument(arg_name)

    return parser


def _to_jsonable(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: _to_jsonable(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): _to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(v) for v in value]
    return value


async def _run(args: argparse.Namespace) -> Any:
    """Execute the selected command and return its result."""
    config = load_config(args.config)
    method_name, arg_names = COMMANDS[args.command]
    positional = [getattr(args, name) for name in arg_names]

    async with ChainData.from_config(config) as chain_data:
        method = getattr(chain_data, method_name)
        return await method(*positional, timeout=args.timeout)


def main(argv: list[str] | None = None) -> None:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    configure_logging(args.log_level)
    try:
        result = asyncio.run(_run(args))
    except (ChainDataError, FileNotFoundError, ValueError) as e:
        logger.error("%s failed: %s", args.command, e)
        sys.exit(1)

    print(json.dumps(_to_jsonable(result), indent=2))
