"""Data models managed by the cache."""

from .item import Item, ItemId

__all__ = ["Item", "ItemId"]
