"""Build realm call expressions from an argument list.

Arguments are never interpolated raw: each one is rendered as a Go
interpreted string literal through an allow-listed escaping routine, so a
value containing ``"`` or ``\\`` cannot leave its argument position.
"""
from __future__ import annotations

import re

from ...exceptions import QueryConstructionError

_IDENTIFIER_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}


def quote_string(value: str) -> str:
    """Render ``value`` as a Go string literal.

    Raises:
        QueryConstructionError: If ``value`` is not a string, holds a
            control character outside the escape allow-list, or holds a
            lone surrogate code point.

    """
    if not isinstance(value, str):
        raise QueryConstructionError(f"argument must be a string, got {type(value).__name__}")

    parts: list[str] = []
    for ch in value:
        escaped = _ESCAPES.get(ch)
        if escaped is not None:
            parts.append(escaped)
        elif ord(ch) < 0x20 or ord(ch) == 0x7F:
            raise QueryConstructionError(
                f"argument contains unsupported control character {ch!r}"
            )
        elif 0xD800 <= ord(ch) <= 0xDFFF:
            raise QueryConstructionError(f"argument contains lone surrogate {ch!r}")
        else:
            parts.append(ch)
    return '"' + "".join(parts) + '"'


def build_call(function: str, *args: str) -> str:
    """Build ``Function("arg1", "arg2")`` for evaluation against a realm."""
    if not _IDENTIFIER_RE.fullmatch(function):
        raise QueryConstructionError(f"invalid realm function name: {function!r}")
    return f"{function}({', '.join(quote_string(a) for a in args)})"
