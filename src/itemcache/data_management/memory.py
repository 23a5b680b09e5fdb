"""
In-Memory Data Source

Dict-backed :class:`RemoteDataSource` used for demos, local development and tests.
It behaves like a well-mannered remote: it assigns ids, validates payload sizes,
suspends on every call and can be told to fail.
"""

from __future__ import annotations

import asyncio
import itertools
import uuid
from collections import Counter
from collections.abc import Callable, Iterable

from itemcache.base.errors import DataSourceError, NotFoundError, ValidationError
from itemcache.models import Item, ItemId
from itemcache.utils.logger import get_logger

from .providers import RemoteDataSource

logger = get_logger("memory_source")

MAX_TITLE_LENGTH = 255
MAX_DESCRIPTION_LENGTH = 2000


def uuid_ids() -> Callable[[], ItemId]:
    """Id factory producing uuid4 hex strings."""
    return lambda: uuid.uuid4().hex


class InMemoryDataSource(RemoteDataSource):
    """
    Remote collection kept in a dict, in insertion order.

    Args:
        items: Initial remote contents
        name: Source name used in logs
        latency: Seconds to sleep on every call (0 still yields to the event loop)
        id_factory: Callable producing new ids; defaults to increasing integers
        upsert: If True, ``update`` of an unknown id creates it instead of
            raising NotFoundError

    Attributes:
        calls: Number of calls per operation name, for assertions in tests
    """

    def __init__(
        self,
        items: Iterable[Item] = (),
        *,
        name: str = "memory",
        latency: float = 0.0,
        id_factory: Callable[[], ItemId] | None = None,
        upsert: bool = False,
    ):
        self._name = name
        self.latency = latency
        self.upsert = upsert
        self._records: dict[ItemId, Item] = {}
        for item in items:
            if item.id is None:
                raise ValueError("Initial items must carry an id")
            self._records[item.id] = item

        if id_factory is None:
            start = max((i for i in self._records if isinstance(i, int)), default=0) + 1
            counter = itertools.count(start)
            id_factory = lambda: next(counter)  # noqa: E731
        self._id_factory = id_factory

        self._failures: dict[str | None, DataSourceError] = {}
        self.calls: Counter[str] = Counter()

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return f"In-memory data source '{self._name}' ({len(self._records)} items)"

    def fail_next(self, error: DataSourceError, operation: str | None = None) -> None:
        """
        Make the next call fail with ``error``.

        Args:
            error: Error to raise
            operation: Restrict the failure to one of ``list``, ``create``,
                ``update`` or ``delete``; None means whichever call comes first
        """
        self._failures[operation] = error

    def snapshot(self) -> list[Item]:
        """Current remote contents, bypassing latency and failure injection."""
        return list(self._records.values())

    async def _enter(self, operation: str) -> None:
        self.calls[operation] += 1
        await asyncio.sleep(self.latency)
        error = self._failures.pop(operation, None) or self._failures.pop(None, None)
        if error is not None:
            logger.debug(f"{self._name}: injected {error.code} on {operation}")
            raise error

    @staticmethod
    def _validate(item: Item) -> None:
        if len(item.title) > MAX_TITLE_LENGTH:
            raise ValidationError(
                f"Title must be {MAX_TITLE_LENGTH} characters or less",
                details={"field": "title"},
            )
        if len(item.description) > MAX_DESCRIPTION_LENGTH:
            raise ValidationError(
                f"Description must be {MAX_DESCRIPTION_LENGTH} characters or less",
                details={"field": "description"},
            )

    async def list(self) -> list[Item]:
        await self._enter("list")
        return list(self._records.values())

    async def create(self, item: Item) -> Item:
        await self._enter("create")
        self._validate(item)
        if item.id is None:
            new_id = self._id_factory()
            while new_id in self._records:
                new_id = self._id_factory()
            item = item.with_id(new_id)
        elif item.id in self._records:
            raise ValidationError(
                f"Item {item.id!r} already exists", details={"item_id": item.id}
            )
        self._records[item.id] = item
        return item

    async def update(self, item: Item) -> Item:
        await self._enter("update")
        if item.id is None:
            raise ValidationError("Cannot update an item without an id")
        self._validate(item)
        if item.id not in self._records and not self.upsert:
            raise NotFoundError.for_item(item.id)
        self._records[item.id] = item
        return item

    async def delete(self, item_id: ItemId) -> None:
        await self._enter("delete")
        self._records.pop(item_id, None)
