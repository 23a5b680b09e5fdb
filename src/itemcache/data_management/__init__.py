"""
itemcache - Data Sources

Remote collaborators the cache delegates I/O to.

Key Components:
- RemoteDataSource: Abstract async contract (list/create/update/delete)
- InMemoryDataSource: Dict-backed source for demos and tests
- HttpDataSource: JSON REST source on top of httpx
"""

from .http import HttpDataSource
from .memory import InMemoryDataSource, uuid_ids
from .providers import RemoteDataSource

__all__ = [
    "RemoteDataSource",
    "InMemoryDataSource",
    "HttpDataSource",
    "uuid_ids",
]
