"""Index-safe helpers for ordered identifier lists.

Every function returns a new list and leaves its input untouched, so callers
can keep the previous order around for comparison.
"""

from __future__ import annotations

from typing import Dict, List, Mapping, Sequence

from .logic import Position


class NotFoundError(LookupError):
    """Raised when an index or identifier is not part of the list."""


def index_of(items: Sequence[str], item_id: str) -> int:
    """Return the position of ``item_id`` or raise :class:`NotFoundError`."""
    try:
        return list(items).index(item_id)
    except ValueError as exc:
        raise NotFoundError(f"'{item_id}' is not in the list") from exc


def move_within_list(items: Sequence[str], from_index: int, to_index: int) -> List[str]:
    """Move the element at ``from_index`` so it ends up at ``to_index``.

    ``to_index`` is interpreted against the list with the element already
    removed, which is what ``list.pop`` followed by ``list.insert`` does.
    """
    result = list(items)
    if not 0 <= from_index < len(result):
        raise NotFoundError(f"No element at index {from_index} (length {len(result)})")

    moved = result.pop(from_index)
    if not 0 <= to_index <= len(result):
        raise ValueError(f"Target index {to_index} is outside 0..{len(result)}")

    result.insert(to_index, moved)
    return result


def insert_at(items: Sequence[str], index: int, item_id: str) -> List[str]:
    result = list(items)
    index = max(0, min(index, len(result)))
    result.insert(index, item_id)
    return result


def remove_item(items: Sequence[str], item_id: str) -> List[str]:
    result = list(items)
    result.pop(index_of(result, item_id))
    return result


def insertion_index(target_index: int, position: Position) -> int:
    """Translate a target slot plus a drop position into an insertion index."""
    if position == "before":
        return target_index
    if position == "after":
        return target_index + 1
    raise ValueError(f"Unsupported position '{position}'")


def reindex(items: Sequence[str]) -> Dict[str, int]:
    """Assign ``0..n-1`` to ``items`` in list order."""
    mapping: Dict[str, int] = {}
    for index, item_id in enumerate(items):
        if item_id in mapping:
            raise ValueError(f"Duplicate identifier '{item_id}' cannot be reindexed")
        mapping[item_id] = index
    return mapping


def is_contiguous(mapping: Mapping[str, int]) -> bool:
    """Return True when the mapping's values are exactly ``0..n-1``."""
    return sorted(mapping.values()) == list(range(len(mapping)))


__all__ = [
    "NotFoundError",
    "index_of",
    "move_within_list",
    "insert_at",
    "remove_item",
    "insertion_index",
    "reindex",
    "is_contiguous",
]
