"""Error taxonomy for the chain data access layer."""
from __future__ import annotations

from typing import Any

_MAX_BODY_CHARS = 500


class ChainDataError(Exception):
    """Base exception for every error raised by this package."""


class TransportError(ChainDataError):
    """Network failure, timeout or non-success response from a remote service.

    Retryable by the caller; nothing in this package retries on its own.
    """

    def __init__(
        self,
        msg: str,
        endpoint: str,
        status: int | None = None,
        body: str | None = None,
    ) -> None:
        if body is not None and len(body) > _MAX_BODY_CHARS:
            body = body[:_MAX_BODY_CHARS] + "..."
        detail = f"{msg} (endpoint={endpoint}"
        if status is not None:
            detail += f", status={status}"
        detail += ")"
        super().__init__(detail)
        self.msg = msg
        self.endpoint = endpoint
        self.status = status
        self.body = body


class RemoteQueryError(TransportError):
    """A state query against the ledger node failed in transit."""


class IndexerQueryError(TransportError):
    """A GraphQL query against the transaction indexer failed in transit."""


class SchemaValidationError(ChainDataError):
    """A remote payload did not match the expected shape.

    Not retryable: it points at a protocol or version mismatch.

    Args:
        path: Dotted path of the offending field, e.g. ``markets[0].fee``.
        value: The raw value that was received.
        reason: Short human-readable description of what was expected.

    """

    def __init__(self, path: str, value: Any, reason: str) -> None:
        super().__init__(f"{path}: {reason} (got {value!r})")
        self.path = path
        self.value = value
        self.reason = reason


class MalformedEventError(ChainDataError):
    """A single indexed event could not be classified or aggregated."""

    def __init__(self, reason: str, event: Any = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.event = event


class QueryConstructionError(ChainDataError):
    """A query could not be built from the supplied inputs."""
