"""
Observable Cache

Reactive store mirroring a remote collection of :class:`~itemcache.models.Item`.

The cache owns an immutable :class:`CacheState` snapshot and replaces it on every
transition, notifying subscribers synchronously with the new snapshot. All I/O is
delegated to an injected :class:`~itemcache.data_management.RemoteDataSource`.

Status machine:
    IDLE | ERROR --(fetch/add/update/remove begins)--> LOADING
    LOADING --(success)--> IDLE
    LOADING --(failure)--> ERROR

Concurrency:
    Operations run one at a time behind an asyncio lock. A fetch issued while
    another fetch is in flight (or queued) is dropped. Any other overlap follows
    the :class:`MutationPolicy`: ``QUEUE`` waits its turn, ``REJECT`` raises
    :class:`~itemcache.base.errors.CacheBusyError`.

Failure handling:
    Source failures never raise through this API. They are captured into the
    snapshot (``status=ERROR``, ``error``, ``error_message``) and the items keep
    their last known-good contents.

Usage:
    cache = ObservableCache(InMemoryDataSource())
    unsubscribe = cache.subscribe(lambda snapshot: print(snapshot.status))

    await cache.fetch()
    await cache.add(Item(title="Write report"))
    matches = cache.search("report")
"""

import asyncio
import time
from collections.abc import Awaitable, Callable, Iterable, Mapping
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

import pydantic

from itemcache.base.errors import (
    CacheBusyError,
    CacheClosedError,
    ContractViolationError,
    DataSourceError,
)
from itemcache.data_management.providers import RemoteDataSource
from itemcache.events.emitter import Observer, SubscriberRegistry
from itemcache.models import Item, ItemId
from itemcache.utils.config import get_cache_config
from itemcache.utils.logger import get_logger

from .cache_state import CacheState, CacheStatus

logger = get_logger("cache")

DEFAULT_STALENESS_THRESHOLD = timedelta(minutes=5)


class MutationPolicy(str, Enum):
    """What to do with an operation issued while another one is running."""

    QUEUE = "queue"
    REJECT = "reject"


class FetchToken:
    """Cancellation handle for a single fetch.

    A cancelled fetch still runs to completion remotely, but its result is
    discarded on arrival instead of overwriting newer state.
    """

    __slots__ = ("cancelled",)

    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_item(item: Item | Mapping[str, Any]) -> Item:
    if isinstance(item, Item):
        return item
    return Item.model_validate(item)


def _canonical(value: Any) -> Item:
    """Validate an item returned by the source."""
    try:
        item = _as_item(value)
    except pydantic.ValidationError as exc:
        raise ContractViolationError(
            "Remote returned an invalid item", details={"errors": exc.errors()}
        ) from exc
    if item.id is None:
        raise ContractViolationError("Remote returned an item without an id")
    return item


def _check_unique(items: Iterable[Any]) -> tuple[Item, ...]:
    if isinstance(items, (str, bytes, Mapping)) or not isinstance(items, Iterable):
        raise ContractViolationError(
            "Remote list response is not a sequence",
            details={"type": type(items).__name__},
        )
    seen: set[ItemId] = set()
    result = []
    for value in items:
        item = _canonical(value)
        if item.id in seen:
            raise ContractViolationError(
                f"Remote returned duplicate id {item.id!r}", details={"item_id": item.id}
            )
        seen.add(item.id)
        result.append(item)
    return tuple(result)


class ObservableCache:
    """
    Observable, single-writer cache of a remote item collection.

    Args:
        source: Remote data source performing all I/O
        staleness_threshold: Age after which cached data needs a refresh; a
            number is taken as seconds
        mutation_policy: Overlap policy, ``"queue"`` (default) or ``"reject"``
        clock: Callable returning the current aware datetime (injectable for tests)
    """

    def __init__(
        self,
        source: RemoteDataSource,
        *,
        staleness_threshold: timedelta | float = DEFAULT_STALENESS_THRESHOLD,
        mutation_policy: MutationPolicy | str = MutationPolicy.QUEUE,
        clock: Callable[[], datetime] | None = None,
    ):
        if not isinstance(staleness_threshold, timedelta):
            staleness_threshold = timedelta(seconds=staleness_threshold)
        if staleness_threshold < timedelta(0):
            raise ValueError("staleness_threshold must not be negative")

        self._source = source
        self.staleness_threshold = staleness_threshold
        self.mutation_policy = MutationPolicy(mutation_policy)
        self._clock = clock or _utcnow

        self._state = CacheState()
        self._subscribers = SubscriberRegistry("cache")
        self._lock = asyncio.Lock()
        self._running: str | None = None
        self._fetch_token: FetchToken | None = None
        self._closed = False

    @classmethod
    def from_config(
        cls, source: RemoteDataSource, config_path: str | None = None, **kwargs: Any
    ) -> "ObservableCache":
        """Build a cache using the ``cache`` configuration section."""
        cache_config = get_cache_config(config_path)
        return cls(
            source,
            staleness_threshold=timedelta(seconds=cache_config["staleness_threshold_seconds"]),
            mutation_policy=cache_config["mutation_policy"],
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Read-only access
    # ------------------------------------------------------------------

    @property
    def state(self) -> CacheState:
        """Current immutable snapshot."""
        return self._state

    snapshot = state

    @property
    def items(self) -> tuple[Item, ...]:
        return self._state.items

    @property
    def status(self) -> CacheStatus:
        return self._state.status

    @property
    def source(self) -> RemoteDataSource:
        return self._source

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def fetch_in_flight(self) -> bool:
        return self._fetch_token is not None

    @property
    def needs_refresh(self) -> bool:
        """True if never fetched, or the last fetch is older than the threshold."""
        last_fetch_time = self._state.last_fetch_time
        if last_fetch_time is None:
            return True
        return self._clock() - last_fetch_time > self.staleness_threshold

    def search(self, query: str) -> list[Item]:
        """Case-insensitive substring search over title and description.

        Never suspends or notifies. Always returns a new list; an empty query
        returns every item in cache order.
        """
        if not query:
            return list(self._state.items)
        return [item for item in self._state.items if item.matches(query)]

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, observer: Observer, *, replay: bool = False) -> Callable[[], None]:
        """
        Register ``observer`` to receive every new snapshot.

        Args:
            observer: Callable taking a CacheState
            replay: Also deliver the current snapshot immediately

        Returns:
            Function that unsubscribes ``observer``
        """
        self._ensure_open()
        unsubscribe = self._subscribers.subscribe(observer)
        if replay:
            self._subscribers.notify(observer, self._state)
        return unsubscribe

    def unsubscribe(self, observer: Observer) -> None:
        self._subscribers.unsubscribe(observer)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    # ------------------------------------------------------------------
    # Remote operations
    # ------------------------------------------------------------------

    async def fetch(self) -> CacheState:
        """Replace the cached items with the remote collection.

        Returns immediately, without side effects, if a fetch is already in flight.
        """
        return await self._fetch(reset_timestamp=False)

    async def refresh(self) -> CacheState:
        """Fetch regardless of staleness; ``last_fetch_time`` is cleared first."""
        return await self._fetch(reset_timestamp=True)

    async def fetch_if_stale(self) -> CacheState:
        """Fetch only when :attr:`needs_refresh` is true."""
        if not self.needs_refresh:
            logger.debug("Cached data still fresh, skipping fetch")
            return self._state
        return await self.fetch()

    async def add(self, item: Item | Mapping[str, Any]) -> CacheState:
        """Create ``item`` remotely and append the canonical result."""
        candidate = _as_item(item)

        def apply(result: Any) -> CacheState:
            created = _canonical(result)
            if self._state.get(created.id) is not None:
                raise ContractViolationError(
                    f"Remote assigned id {created.id!r}, which is already cached",
                    details={"item_id": created.id},
                )
            logger.debug(f"Added item {created.id!r}")
            return self._settled("add", items=self._state.items + (created,))

        return await self._run("add", lambda: self._source.create(candidate), apply)

    async def update(self, item: Item | Mapping[str, Any]) -> CacheState:
        """Update ``item`` remotely and replace the cached entry in place.

        An id that is not cached yet is appended.

        Raises:
            ValueError: If ``item`` has no id
        """
        candidate = _as_item(item)
        if candidate.id is None:
            raise ValueError("update() requires an item with an id")

        def apply(result: Any) -> CacheState:
            updated = _canonical(result)
            if updated.id != candidate.id:
                raise ContractViolationError(
                    f"Remote changed id {candidate.id!r} to {updated.id!r} on update",
                    details={"item_id": candidate.id, "returned_id": updated.id},
                )
            items = list(self._state.items)
            for index, existing in enumerate(items):
                if existing.id == updated.id:
                    items[index] = updated
                    break
            else:
                logger.debug(f"Item {updated.id!r} was not cached, appending")
                items.append(updated)
            return self._settled("update", items=tuple(items))

        return await self._run("update", lambda: self._source.update(candidate), apply)

    async def remove(self, item_id: ItemId) -> CacheState:
        """Delete ``item_id`` remotely and drop it from the cache if present."""

        def apply(_: None) -> CacheState:
            items = tuple(item for item in self._state.items if item.id != item_id)
            if len(items) == len(self._state.items):
                logger.debug(f"Item {item_id!r} was not cached")
            return self._settled("remove", items=items)

        return await self._run("remove", lambda: self._source.delete(item_id), apply)

    # ------------------------------------------------------------------
    # Local operations and lifecycle
    # ------------------------------------------------------------------

    def clear(self) -> CacheState:
        """Reset to an empty, never-fetched, idle state. Always notifies.

        An in-flight fetch is cancelled and its result discarded on arrival.
        """
        self._ensure_open()
        self._cancel_fetch()
        logger.debug("Cleared cache")
        return self._transition(CacheState(operation="clear"))

    def close(self) -> None:
        """Tear down: cancel the in-flight fetch and drop all subscribers.

        The data source is not closed; its owner is responsible for it.
        """
        if self._closed:
            return
        self._cancel_fetch()
        self._subscribers.clear()
        self._closed = True
        logger.debug("Closed cache")

    async def __aenter__(self) -> "ObservableCache":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _ensure_open(self) -> None:
        if self._closed:
            raise CacheClosedError("Cache is closed")

    def _cancel_fetch(self) -> None:
        if self._fetch_token is not None:
            self._fetch_token.cancel()
            self._fetch_token = None

    async def _fetch(self, reset_timestamp: bool) -> CacheState:
        self._ensure_open()
        if self._fetch_token is not None:
            logger.debug("Fetch already in flight, ignoring request")
            return self._state

        token = FetchToken()
        self._fetch_token = token
        started = time.perf_counter()

        def apply(items: Iterable[Item]) -> CacheState:
            fetched = _check_unique(items)
            logger.success(f"Fetched {len(fetched)} items from {self._source.name}")
            logger.timing(f"Fetch took {time.perf_counter() - started:.3f}s")
            return self._settled("fetch", items=fetched, last_fetch_time=self._clock())

        begin: dict[str, Any] = {"last_fetch_time": None} if reset_timestamp else {}
        try:
            return await self._run("fetch", self._source.list, apply, token=token, **begin)
        finally:
            if self._fetch_token is token:
                self._fetch_token = None

    @asynccontextmanager
    async def _exclusive(self, operation: str):
        self._ensure_open()
        if self.mutation_policy is MutationPolicy.REJECT and self._lock.locked():
            running = self._running or "another operation"
            logger.warning(f"Rejected {operation}: {running} in flight")
            raise CacheBusyError(operation, running)

        async with self._lock:
            self._ensure_open()
            self._running = operation
            try:
                yield
            finally:
                self._running = None

    async def _run(
        self,
        operation: str,
        call: Callable[[], Awaitable[Any]],
        apply: Callable[[Any], CacheState],
        token: FetchToken | None = None,
        **begin_changes: Any,
    ) -> CacheState:
        """Run one remote operation through LOADING to IDLE or ERROR.

        ``apply`` turns the source result into the next state; it may raise
        ContractViolationError to report a misbehaving source.
        """
        async with self._exclusive(operation):
            if token is not None and token.cancelled:
                return self._state

            self._transition(
                self._state.evolve(
                    status=CacheStatus.LOADING, error=None, operation=operation, **begin_changes
                )
            )

            try:
                result = await call()
            except asyncio.CancelledError:
                if token is None or not token.cancelled:
                    self._transition(
                        self._state.evolve(status=CacheStatus.IDLE, operation=operation)
                    )
                raise
            except Exception as exc:
                if token is not None and token.cancelled:
                    logger.debug(f"Discarding failure of cancelled {operation}: {exc}")
                    return self._state
                if not isinstance(exc, DataSourceError):
                    logger.error(
                        f"{self._source.name} raised unexpected {type(exc).__name__} "
                        f"during {operation}",
                        exc_info=True,
                    )
                return self._fail(operation, DataSourceError.wrap(exc))

            if token is not None and token.cancelled:
                logger.debug(f"Discarding result of cancelled {operation}")
                return self._state

            try:
                next_state = apply(result)
            except ContractViolationError as exc:
                return self._fail(operation, exc)
            except Exception as exc:
                logger.error(
                    f"Could not apply {operation} result from {self._source.name}",
                    exc_info=True,
                )
                return self._fail(operation, DataSourceError.wrap(exc))
            return self._transition(next_state)

    def _settled(self, operation: str, **changes: Any) -> CacheState:
        return self._state.evolve(
            status=CacheStatus.IDLE, error=None, operation=operation, **changes
        )

    def _fail(self, operation: str, error: DataSourceError) -> CacheState:
        message = f"{operation} failed ({error.code}): {error}"
        if error.should_log():
            logger.error(message)
        else:
            logger.warning(message)
        return self._transition(
            self._state.evolve(status=CacheStatus.ERROR, error=error, operation=operation)
        )

    def _transition(self, state: CacheState) -> CacheState:
        self._state = state
        self._subscribers.emit(state)
        return state
