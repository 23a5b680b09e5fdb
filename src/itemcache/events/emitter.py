"""Snapshot delivery to cache observers.

The SubscriberRegistry keeps observers in registration order and calls each of
them synchronously with every new snapshot.

Usage:
    from itemcache.events.emitter import SubscriberRegistry

    registry = SubscriberRegistry("cache")

    def render(snapshot):
        print(snapshot.status, len(snapshot.items))

    unsubscribe = registry.subscribe(render)
    registry.emit(snapshot)
    unsubscribe()
"""

import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

Observer = Callable[[Any], None]


class SubscriberRegistry:
    """Ordered set of observers.

    Observers are called in registration order. Registering the same callable
    twice has no effect. An observer that raises is logged and skipped so the
    remaining observers still see the snapshot.

    Attributes:
        component: Name used in log messages
    """

    def __init__(self, component: str):
        self.component = component
        self._observers: list[Observer] = []

    def __len__(self) -> int:
        return len(self._observers)

    def __contains__(self, observer: Observer) -> bool:
        return observer in self._observers

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register ``observer``.

        Args:
            observer: Callable receiving each snapshot

        Returns:
            Unregister function removing this observer
        """
        if not callable(observer):
            raise TypeError(f"Observer must be callable, got {type(observer).__name__}")
        if observer not in self._observers:
            self._observers.append(observer)

        def unregister() -> None:
            self.unsubscribe(observer)

        return unregister

    def unsubscribe(self, observer: Observer) -> None:
        """Remove ``observer``; unknown observers are ignored."""
        if observer in self._observers:
            self._observers.remove(observer)

    def clear(self) -> None:
        self._observers.clear()

    def emit(self, snapshot: Any) -> None:
        """Deliver ``snapshot`` to every observer registered at call time."""
        # Copy so observers may unsubscribe themselves while being notified
        for observer in list(self._observers):
            self.notify(observer, snapshot)

    def notify(self, observer: Observer, snapshot: Any) -> None:
        """Deliver ``snapshot`` to a single observer, logging anything it raises."""
        try:
            observer(snapshot)
        except Exception:
            logger.exception(f"{self.component}: observer {observer!r} raised")
