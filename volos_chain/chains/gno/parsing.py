"""Decoding of ``vm/qeval`` results. Pure functions, no I/O.

The ledger renders a returned string as ``("<go-quoted value>" string)``.

Examples:
    '("gno.land/r/x" string)' → "gno.land/r/x"
    '("{\\"amount\\":\\"5\\"}" string)' → {"amount": "5"}
"""
from __future__ import annotations

import json
import re
from typing import Any

from ...exceptions import SchemaValidationError
from ...schema import ROOT

_STRING_RESULT_RE = re.compile(r'\s*\(\s*("(?:[^"\\]|\\.)*")\s+string\s*\)\s*', re.DOTALL)

_GO_ESCAPE_RE = re.compile(
    r"\\(x[0-9a-fA-F]{2}|u[0-9a-fA-F]{4}|U[0-9a-fA-F]{8}|[0-7]{3}|[abfnrtv\\'\"])"
)

_SIMPLE_ESCAPES = {
    "a": b"\a",
    "b": b"\b",
    "f": b"\f",
    "n": b"\n",
    "r": b"\r",
    "t": b"\t",
    "v": b"\v",
    "\\": b"\\",
    "'": b"'",
    '"': b'"',
}


def _escape_bytes(seq: str, literal: str) -> bytes:
    """Bytes for one escape: ``\\x`` and octal are raw bytes, ``\\u``/``\\U`` are UTF-8."""
    head = seq[0]
    if len(seq) == 1:
        return _SIMPLE_ESCAPES[head]
    if head == "x":
        return bytes([int(seq[1:], 16)])
    if head in "uU":
        code = int(seq[1:], 16)
        if code > 0x10FFFF or 0xD800 <= code <= 0xDFFF:
            raise SchemaValidationError(ROOT, literal, "invalid escape sequence")
        return chr(code).encode("utf-8")
    value = int(seq, 8)
    if value > 0xFF:
        raise SchemaValidationError(ROOT, literal, "invalid escape sequence")
    return bytes([value])


def unquote_go_string(literal: str) -> str:
    """Decode a double-quoted Go string literal.

    Escapes are collected as bytes and the result decoded as UTF-8, so
    ``"\\xc3\\xa9"`` yields ``"é"`` the way Go reads it.
    """
    if len(literal) < 2 or literal[0] != '"' or literal[-1] != '"':
        raise SchemaValidationError(ROOT, literal, "expected quoted string literal")
    body = literal[1:-1]
    out = bytearray()
    pos = 0
    try:
        for match in _GO_ESCAPE_RE.finditer(body):
            text = body[pos:match.start()]
            # a backslash outside a recognized escape is one Go would not accept
            if "\\" in text:
                raise SchemaValidationError(ROOT, literal, "invalid escape sequence")
            out += text.encode("utf-8")
            out += _escape_bytes(match.group(1), literal)
            pos = match.end()
        tail = body[pos:]
        if "\\" in tail:
            raise SchemaValidationError(ROOT, literal, "invalid escape sequence")
        out += tail.encode("utf-8")
        return out.decode("utf-8")
    except UnicodeError as exc:
        raise SchemaValidationError(ROOT, literal, "invalid UTF-8") from exc


def parse_string_result(raw: str) -> str:
    """Extract the string value from a qeval result."""
    match = _STRING_RESULT_RE.fullmatch(raw)
    if match is None:
        raise SchemaValidationError(ROOT, raw, "expected string result")
    return unquote_go_string(match.group(1))


def parse_json_result(raw: str) -> Any:
    """Extract and decode a JSON document returned as a string.

    An empty string decodes to ``None``.
    """
    text = parse_string_result(raw)
    if not text.strip():
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise SchemaValidationError(ROOT, text, f"invalid JSON: {exc.msg}") from exc
