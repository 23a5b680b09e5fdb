"""
Remote Data Source Abstraction

Base contract for the remote collection the cache mirrors. A data source performs
the actual I/O (HTTP, database, in-memory fake); the cache only orchestrates
state around it.
"""

from abc import ABC, abstractmethod

from itemcache.models import Item, ItemId


class RemoteDataSource(ABC):
    """
    Abstract base class for all remote data sources.

    Data sources are responsible for:
    1. Listing the remote collection
    2. Creating, updating and deleting single items
    3. Reporting failures as :class:`~itemcache.base.errors.DataSourceError`
       subclasses

    Failure contract:
        - ``list``: ``NetworkError`` | ``ServerError``
        - ``create``: ``NetworkError`` | ``ServerError`` | ``ValidationError``
        - ``update``: as ``create``, plus ``NotFoundError``
        - ``delete``: as ``create``; deleting a nonexistent id is success
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this data source."""
        pass

    @abstractmethod
    async def list(self) -> list[Item]:
        """Return the full remote collection in source order."""
        pass

    @abstractmethod
    async def create(self, item: Item) -> Item:
        """
        Create ``item`` remotely.

        Args:
            item: Candidate item, usually without an id

        Returns:
            The canonical item, with its assigned id
        """
        pass

    @abstractmethod
    async def update(self, item: Item) -> Item:
        """Replace the remote item with ``item.id`` and return the canonical result."""
        pass

    @abstractmethod
    async def delete(self, item_id: ItemId) -> None:
        """Delete the remote item with ``item_id``. Idempotent."""
        pass

    @property
    def description(self) -> str:
        """Human-readable description of this data source."""
        return f"Data source: {self.name}"

    async def health_check(self) -> bool:
        """
        Perform a health check for this data source.

        Returns:
            True if the data source is healthy and available
        """
        return True

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}')"
