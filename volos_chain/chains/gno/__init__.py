"""Gno ledger access: transport, expression building, result decoding."""
from .client import GnoClient
from .expression import build_call, quote_string
from .parsing import parse_json_result, parse_string_result

__all__ = [
    "GnoClient",
    "build_call",
    "parse_json_result",
    "parse_string_result",
    "quote_string",
]
