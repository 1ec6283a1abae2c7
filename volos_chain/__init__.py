"""Chain data access layer for the Volos lending dashboard."""
from .exceptions import (
    ChainDataError,
    IndexerQueryError,
    MalformedEventError,
    QueryConstructionError,
    RemoteQueryError,
    SchemaValidationError,
    TransportError,
)
from .formatting import (
    RATE_DECIMALS,
    format_rate,
    format_token_amount,
    to_decimal_amount,
    to_float,
)
from .services import ChainData

__version__ = "0.1.0"

__all__ = [
    "ChainData",
    "ChainDataError",
    "IndexerQueryError",
    "MalformedEventError",
    "QueryConstructionError",
    "RATE_DECIMALS",
    "RemoteQueryError",
    "SchemaValidationError",
    "TransportError",
    "format_rate",
    "format_token_amount",
    "to_decimal_amount",
    "to_float",
]
