"""
Cache State Snapshot

Immutable view of everything the cache owns. A new CacheState is built for every
transition and handed to observers; nothing in it aliases the cache's internals.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any

from itemcache.base.errors import DataSourceError
from itemcache.models import Item, ItemId


class CacheStatus(str, Enum):
    """Operational status of the cache."""

    IDLE = "idle"
    LOADING = "loading"
    ERROR = "error"


@dataclass(frozen=True)
class CacheState:
    """
    Snapshot of the cache.

    Attributes:
        items: Cached items, unique by id, in insertion/fetch order
        status: Current status
        error: Structured failure behind an ERROR status
        last_fetch_time: Completion time of the last successful fetch
    """

    items: tuple[Item, ...] = ()
    status: CacheStatus = CacheStatus.IDLE
    error: DataSourceError | None = None
    last_fetch_time: datetime | None = None
    operation: str | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        # Accept any iterable from callers, store an immutable tuple
        if not isinstance(self.items, tuple):
            object.__setattr__(self, "items", tuple(self.items))
        if (self.status is CacheStatus.ERROR) != (self.error is not None):
            raise ValueError("error must be set if and only if status is ERROR")

    @property
    def error_message(self) -> str | None:
        """Presentation string for the current error, None unless status is ERROR."""
        if self.error is None:
            return None
        return self.error.user_message()

    @property
    def is_loading(self) -> bool:
        return self.status is CacheStatus.LOADING

    @property
    def has_error(self) -> bool:
        return self.status is CacheStatus.ERROR

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def ids(self) -> tuple[ItemId, ...]:
        return tuple(item.id for item in self.items)

    def get(self, item_id: ItemId) -> Item | None:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def evolve(self, **changes: Any) -> "CacheState":
        """Copy with ``changes`` applied."""
        return replace(self, **changes)

    def get_summary(self) -> dict[str, Any]:
        """Compact summary for logging/debugging."""
        return {
            "status": self.status.value,
            "item_count": len(self.items),
            "error": self.error.to_dict() if self.error else None,
            "last_fetch_time": self.last_fetch_time.isoformat() if self.last_fetch_time else None,
            "operation": self.operation,
        }
