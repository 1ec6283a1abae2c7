"""Transaction indexer access: query building, transport, parsing, aggregation."""
from .client import IndexerClient
from .fields import MARKET_ACTIVITY_FIELDS, UNIVERSAL_TRANSACTION_FIELDS
from .parser import ParseResult, parse_transactions, sort_events
from .query_builder import TransactionQuery, build_block_times_query

__all__ = [
    "IndexerClient",
    "MARKET_ACTIVITY_FIELDS",
    "ParseResult",
    "TransactionQuery",
    "UNIVERSAL_TRANSACTION_FIELDS",
    "build_block_times_query",
    "parse_transactions",
    "sort_events",
]
