"""
Item Model

The record managed by the cache. Only ``id`` is meaningful to the cache; the
display fields feed local search and any other payload is carried untouched.
"""

from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field

ItemId = Union[str, int]


class Item(BaseModel):
    """Immutable, uniquely identified record.

    Items are frozen so that snapshots handed to observers cannot be mutated.
    Unknown fields are accepted and preserved, which lets remote payloads carry
    whatever the surrounding application needs.

    :param id: Stable identifier, ``None`` only on a candidate passed to ``add()``
    :type id: Optional[Union[str, int]]
    :param title: Display title, may be empty
    :type title: str
    :param description: Display description, may be empty
    :type description: str

    Examples:
        Candidate without an id::

            >>> draft = Item(title="Buy milk")
            >>> draft.id is None
            True

        Remote payload with extra fields::

            >>> item = Item.model_validate({"id": 7, "title": "a", "priority": "high"})
            >>> item.payload()
            {'priority': 'high'}
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    id: ItemId | None = Field(default=None, description="Stable unique identifier")
    title: str = Field(default="", description="Display title")
    description: str = Field(default="", description="Display description")

    @property
    def has_id(self) -> bool:
        return self.id is not None

    def matches(self, query: str) -> bool:
        """Case-insensitive substring match against title and description."""
        if not query:
            return True
        needle = query.casefold()
        return needle in self.title.casefold() or needle in self.description.casefold()

    def payload(self) -> dict[str, Any]:
        """Fields beyond id, title and description."""
        return dict(self.model_extra or {})

    def with_id(self, item_id: ItemId) -> "Item":
        """Copy of this item carrying ``item_id``."""
        return self.model_copy(update={"id": item_id})


__all__ = ["Item", "ItemId"]
