"""Observer registration and snapshot delivery."""

from .emitter import Observer, SubscriberRegistry

__all__ = ["Observer", "SubscriberRegistry"]
