"""State transport protocol — ledger query abstraction."""
from typing import Protocol


class StateTransport(Protocol):
    """Evaluate a read-only expression against a realm, returning raw text."""

    async def evaluate(
        self, realm_path: str, expression: str, timeout: float | None = None
    ) -> str: ...
