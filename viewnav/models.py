"""Data model for the navigation panel: view groups, views and drag payloads."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from viewnav_dnd import POSITIONS, NotFoundError, Position


class EntityKind(str, Enum):
    GROUP = "group"
    ITEM = "item"


@dataclass(frozen=True)
class Group:
    """A view group: an ordered container of views."""

    id: str
    name: str = ""
    item_ids: Tuple[str, ...] = ()
    order_index: int = 0
    is_default: bool = False
    is_visible: bool = True

    def with_items(self, item_ids: Iterable[str]) -> "Group":
        return replace(self, item_ids=tuple(item_ids))

    def with_order(self, order_index: int) -> "Group":
        return replace(self, order_index=order_index)


@dataclass(frozen=True)
class Item:
    """A single view. ``order_index`` is relative to the group listing it."""

    id: str
    name: str = ""
    order_index: int = 0
    is_visible: bool = True


@dataclass(frozen=True)
class OrderEntry:
    id: str
    order_index: int

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "orderIndex": self.order_index}


@dataclass(frozen=True)
class DraggedEntity:
    """What the pointer is carrying. Items always remember their source group."""

    kind: EntityKind
    id: str
    source_group_id: Optional[str] = None

    def __post_init__(self):
        if self.kind is EntityKind.ITEM and not self.source_group_id:
            raise ValueError(f"Dragged item '{self.id}' needs a source group")

    @classmethod
    def group(cls, group_id: str) -> "DraggedEntity":
        return cls(EntityKind.GROUP, group_id)

    @classmethod
    def item(cls, item_id: str, source_group_id: str) -> "DraggedEntity":
        return cls(EntityKind.ITEM, item_id, source_group_id)


@dataclass(frozen=True)
class HoverTarget:
    """The element under the pointer and which side of it the drop lands on."""

    kind: EntityKind
    id: str
    position: Position

    def __post_init__(self):
        if self.position not in POSITIONS:
            raise ValueError(f"Unsupported position '{self.position}'")


@dataclass(frozen=True)
class NavigationSettings:
    """Per-owner navigation preferences stored next to the group order."""

    expanded_group_ids: Tuple[str, ...] = ()
    hidden_group_ids: Tuple[str, ...] = ()
    hidden_item_ids: Tuple[str, ...] = ()
    navigation_collapsed: bool = False
    # False when the owner never saved an expand/collapse preference
    has_expanded_preference: bool = False


@dataclass(frozen=True)
class NavigationModel:
    """Immutable working model of one owner's navigation tree.

    ``groups`` is kept in display order; ``items`` maps view ids to views.
    """

    owner_id: str
    groups: Tuple[Group, ...] = ()
    items: Mapping[str, Item] = field(default_factory=dict)

    @classmethod
    def from_records(
        cls,
        owner_id: str,
        groups: Iterable[Group],
        items: Iterable[Item],
    ) -> "NavigationModel":
        """Build a model from fetched records, ordering everything by index."""
        item_map = {item.id: item for item in items}

        def item_key(item_id: str):
            item = item_map.get(item_id)
            return item.order_index if item is not None else len(item_map)

        ordered_groups = []
        for group in sorted(groups, key=lambda g: g.order_index):
            # sorted() is stable, so ties keep the server's list order
            ordered_groups.append(group.with_items(sorted(group.item_ids, key=item_key)))
        return cls(owner_id, tuple(ordered_groups), item_map)

    # ------------------------------------------------------------ lookups
    def group_ids(self) -> List[str]:
        return [group.id for group in self.groups]

    def group(self, group_id: str) -> Group:
        for group in self.groups:
            if group.id == group_id:
                return group
        raise NotFoundError(f"Unknown group '{group_id}'")

    def has_group(self, group_id: str) -> bool:
        return any(group.id == group_id for group in self.groups)

    def item(self, item_id: str) -> Item:
        try:
            return self.items[item_id]
        except KeyError as exc:
            raise NotFoundError(f"Unknown item '{item_id}'") from exc

    def group_of(self, item_id: str) -> Group:
        for group in self.groups:
            if item_id in group.item_ids:
                return group
        raise NotFoundError(f"Item '{item_id}' is not in any group")

    def default_group(self) -> Group:
        for group in self.groups:
            if group.is_default:
                return group
        raise NotFoundError("No default group")

    def all_item_ids(self) -> List[str]:
        return [item_id for group in self.groups for item_id in group.item_ids]

    # ------------------------------------------------------------ updates
    def replace_groups(self, changed: Sequence[Group]) -> "NavigationModel":
        """Return a copy with ``changed`` groups swapped in and order refreshed.

        Item ``order_index`` values are rewritten for every changed group.
        """
        by_id = {group.id: group for group in changed}
        groups = tuple(
            sorted(
                (by_id.get(group.id, group) for group in self.groups),
                key=lambda g: g.order_index,
            )
        )
        items = dict(self.items)
        for group in changed:
            for index, item_id in enumerate(group.item_ids):
                if item_id in items:
                    items[item_id] = replace(items[item_id], order_index=index)
        return NavigationModel(self.owner_id, groups, items)

    def check_invariants(self) -> List[str]:
        """Return descriptions of every broken model invariant."""
        problems: List[str] = []

        seen: Dict[str, str] = {}
        for group in self.groups:
            if len(set(group.item_ids)) != len(group.item_ids):
                problems.append(f"Group '{group.id}' lists an item more than once")
            for item_id in group.item_ids:
                if item_id in seen and seen[item_id] != group.id:
                    problems.append(
                        f"Item '{item_id}' belongs to both '{seen[item_id]}' and '{group.id}'"
                    )
                seen.setdefault(item_id, group.id)

        orders = sorted(group.order_index for group in self.groups)
        if orders != list(range(len(self.groups))):
            problems.append(f"Group order indices are not contiguous: {orders}")

        defaults = [group.id for group in self.groups if group.is_default]
        if self.groups and len(defaults) != 1:
            problems.append(f"Expected exactly one default group, found {len(defaults)}")

        return problems
