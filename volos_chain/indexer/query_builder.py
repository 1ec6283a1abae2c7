"""Immutable builder for tx-indexer ``getTransactions`` queries.

Every filter method returns a new :class:`TransactionQuery`; the receiver is
never modified, so a partially built query can be shared and extended
safely. ``build()`` is pure.

Example:
    query = (
        TransactionQuery("getMarketActivity", MARKET_ACTIVITY_FIELDS)
        .success()
        .market_id("gno.land/r/demo/market1")
    )
    text = query.build()
"""
from __future__ import annotations

import json
import re
import textwrap
from collections.abc import Iterable
from dataclasses import dataclass, replace

from ..exceptions import QueryConstructionError
from .fields import BLOCK_TIME_FIELDS, UNIVERSAL_TRANSACTION_FIELDS

_GRAPHQL_NAME_RE = re.compile(r"[_A-Za-z][_0-9A-Za-z]*")
_SURROGATE_RE = re.compile("[\ud800-\udfff]")

# Event-scoped predicates nest under this path in the indexer's filter schema.
EVENT_FILTER_TYPENAME = "GnoEvent"


def graphql_string(value: str) -> str:
    """Render ``value`` as a GraphQL string literal."""
    if not isinstance(value, str):
        raise QueryConstructionError(f"expected string value, got {type(value).__name__}")
    if _SURROGATE_RE.search(value):
        raise QueryConstructionError(f"string value contains a lone surrogate: {value!r}")
    return json.dumps(value, ensure_ascii=False)


def _check_name(name: str) -> str:
    if not isinstance(name, str) or not _GRAPHQL_NAME_RE.fullmatch(name):
        raise QueryConstructionError(f"invalid GraphQL operation name: {name!r}")
    return name


def _check_height(value: int | None, label: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise QueryConstructionError(f"{label} must be a non-negative integer, got {value!r}")
    return value


def _indent(text: str, spaces: int) -> str:
    return textwrap.indent(text, " " * spaces)


@dataclass(frozen=True)
class Predicate:
    """One rendered filter clause; ``key`` is ``None`` for raw conditions."""

    key: str | None
    text: str


@dataclass(frozen=True)
class TransactionQuery:
    """A ``getTransactions`` query under construction."""

    operation_name: str
    fields: str = UNIVERSAL_TRANSACTION_FIELDS
    conditions: tuple[Predicate, ...] = ()
    event_conditions: tuple[Predicate, ...] = ()

    def __post_init__(self) -> None:
        _check_name(self.operation_name)

    # ------------------------------------------------------------------
    # Field selection
    # ------------------------------------------------------------------

    def use_fields(self, fields: str) -> TransactionQuery:
        return replace(self, fields=fields)

    def add_fields(self, fields: str) -> TransactionQuery:
        return replace(self, fields=f"{self.fields}\n{fields}")

    # ------------------------------------------------------------------
    # Top-level predicates
    # ------------------------------------------------------------------

    def _with_condition(self, predicate: Predicate) -> TransactionQuery:
        if predicate.key is not None and any(c.key == predicate.key for c in self.conditions):
            raise QueryConstructionError(f"duplicate '{predicate.key}' filter")
        return replace(self, conditions=self.conditions + (predicate,))

    def _with_event_condition(self, predicate: Predicate) -> TransactionQuery:
        if any(c.key == predicate.key for c in self.event_conditions):
            raise QueryConstructionError(f"duplicate event '{predicate.key}' filter")
        return replace(self, event_conditions=self.event_conditions + (predicate,))

    def success(self, success: bool = True) -> TransactionQuery:
        flag = "true" if success else "false"
        return self._with_condition(Predicate("success", f"success: {{ eq: {flag} }}"))

    def block_height_range(
        self, min_height: int | None = None, max_height: int | None = None
    ) -> TransactionQuery:
        """Filter on ``min_height < block_height < max_height``; either bound optional."""
        bounds: list[str] = []
        if _check_height(min_height, "min_height") is not None:
            bounds.append(f"gt: {min_height}")
        if _check_height(max_height, "max_height") is not None:
            bounds.append(f"lt: {max_height}")
        if not bounds:
            return self
        return self._with_condition(
            Predicate("block_height", f"block_height: {{ {', '.join(bounds)} }}")
        )

    def add(self, condition: str) -> TransactionQuery:
        """Append a raw filter condition verbatim."""
        if not isinstance(condition, str) or not condition.strip():
            raise QueryConstructionError("raw condition must be a non-empty string")
        return self._with_condition(Predicate(None, condition.strip()))

    # ------------------------------------------------------------------
    # Event-scoped predicates
    # ------------------------------------------------------------------

    def event_type(self, event_type: str) -> TransactionQuery:
        return self._with_event_condition(
            Predicate("type", f"type: {{ eq: {graphql_string(event_type)} }}")
        )

    def pkg_path(self, pkg_path: str) -> TransactionQuery:
        return self._with_event_condition(
            Predicate("pkg_path", f"pkg_path: {{ eq: {graphql_string(pkg_path)} }}")
        )

    def event_attr(self, key: str, value: str) -> TransactionQuery:
        return self._with_event_condition(
            Predicate(
                "attrs",
                f"attrs: {{ key: {{ eq: {graphql_string(key)} }}, "
                f"value: {{ eq: {graphql_string(value)} }} }}",
            )
        )

    def market_id(self, market_id: str) -> TransactionQuery:
        return self.event_attr("market_id", market_id)

    def reset(self) -> TransactionQuery:
        """Drop every predicate, keeping operation name and fields."""
        return replace(self, conditions=(), event_conditions=())

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def build_where(self) -> str:
        clauses = [c.text for c in self.conditions]
        if self.event_conditions:
            events = "\n".join(c.text for c in self.event_conditions)
            clauses.append(
                "response: {\n"
                "  events: {\n"
                f"    {EVENT_FILTER_TYPENAME}: {{\n"
                f"{_indent(events, 6)}\n"
                "    }\n"
                "  }\n"
                "}"
            )
        return "\n".join(clauses)

    def build(self) -> str:
        where = self.build_where()
        return (
            f"query {self.operation_name} {{\n"
            "  getTransactions(\n"
            "    where: {\n"
            f"{_indent(where, 6)}\n"
            "    }\n"
            "  ) {\n"
            f"{_indent(self.fields, 4)}\n"
            "  }\n"
            "}\n"
        )


def build_block_times_query(
    heights: Iterable[int], operation_name: str = "getBlockTimes"
) -> str:
    """Render a ``getBlocks`` query matching exactly ``heights``."""
    _check_name(operation_name)
    checked = {_check_height(h, "height") for h in heights}
    if None in checked:
        raise QueryConstructionError("block height must not be None")
    wanted = sorted(checked)
    if not wanted:
        raise QueryConstructionError("at least one block height is required")
    clauses = "\n".join(f"{{ height: {{ eq: {h} }} }}" for h in wanted)
    return (
        f"query {operation_name} {{\n"
        "  getBlocks(\n"
        "    where: {\n"
        "      _or: [\n"
        f"{_indent(clauses, 8)}\n"
        "      ]\n"
        "    }\n"
        "  ) {\n"
        f"{_indent(BLOCK_TIME_FIELDS, 4)}\n"
        "  }\n"
        "}\n"
    )
