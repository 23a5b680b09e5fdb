"""Base error types shared by the cache and the data sources."""

from .errors import (
    CacheBusyError,
    CacheClosedError,
    CacheError,
    ContractViolationError,
    DataSourceError,
    NetworkError,
    NotFoundError,
    ServerError,
    ValidationError,
)

__all__ = [
    "DataSourceError",
    "NetworkError",
    "ServerError",
    "ValidationError",
    "NotFoundError",
    "ContractViolationError",
    "CacheError",
    "CacheClosedError",
    "CacheBusyError",
]
