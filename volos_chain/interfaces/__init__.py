"""Protocol interfaces for the remote services this package reads from."""
from .chain import StateTransport
from .indexer import IndexerTransport

__all__ = ["IndexerTransport", "StateTransport"]
