"""Ordered list editing shared by screening questions and form questions.

Every helper returns a new list and leaves the input untouched. Items are
matched by their ``id`` attribute, so an item keeps its identity and every
other attribute across moves.
"""

from __future__ import annotations

from typing import Any, List, Optional, Protocol, Sequence, TypeVar


class HasIdentity(Protocol):
    id: str


T = TypeVar("T", bound=HasIdentity)


def index_of(items: Sequence[T], item_id: str) -> Optional[int]:
    """Return the position of the item identified by ``item_id``."""

    return next((index for index, item in enumerate(items) if item.id == item_id), None)


def move_item(items: Sequence[T], old_index: int, new_index: int) -> List[T]:
    """Move the element at ``old_index`` to ``new_index``.

    The element is removed and re-inserted, so every element between the two
    positions shifts by one place. Out-of-range indices leave the order as is.
    """

    moved = list(items)
    if not (0 <= old_index < len(moved) and 0 <= new_index < len(moved)):
        return moved
    if old_index == new_index:
        return moved
    element = moved.pop(old_index)
    moved.insert(new_index, element)
    return moved


def move_by_offset(items: Sequence[T], item_id: str, offset: int) -> List[T]:
    """Move ``item_id`` up (negative) or down (positive) by ``offset`` places."""

    current_index = index_of(items, item_id)
    if current_index is None:
        return list(items)
    return move_item(items, current_index, current_index + offset)


def append_item(items: Sequence[T], item: T) -> List[T]:
    """Return ``items`` with ``item`` added at the end."""

    if index_of(items, item.id) is not None:
        raise ValueError(f"An item with id {item.id!r} already exists.")
    return [*items, item]


def update_item(items: Sequence[T], item_id: str, **changes: Any) -> List[T]:
    """Apply ``changes`` to the item identified by ``item_id`` only."""

    return [item.updated(**changes) if item.id == item_id else item for item in items]  # type: ignore[attr-defined]


def delete_item(items: Sequence[T], item_id: str) -> List[T]:
    """Remove the item identified by ``item_id``."""

    return [item for item in items if item.id != item_id]


def duplicate_item(items: Sequence[T], item_id: str) -> List[T]:
    """Append a duplicate of ``item_id`` using the item's ``duplicate`` method."""

    original = next((item for item in items if item.id == item_id), None)
    if original is None:
        return list(items)
    return [*items, original.duplicate()]  # type: ignore[attr-defined]


__all__ = [
    "append_item",
    "delete_item",
    "duplicate_item",
    "index_of",
    "move_by_offset",
    "move_item",
    "update_item",
]
