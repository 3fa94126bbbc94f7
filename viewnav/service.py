"""Collaborator interface for the navigation store, plus an in-memory store.

The in-memory store backs the offline mode of the terminal UI and follows the
same preconditions as the REST service (for instance, adding a view that is
already in the group is rejected).
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Protocol, Sequence

from .models import Group, Item, NavigationSettings, OrderEntry

logger = logging.getLogger(__name__)


class BackendError(Exception):
    """The navigation store rejected an operation."""


class NavigationBackend(Protocol):
    async def reorder_groups(self, owner_id: str, items: Sequence[OrderEntry]) -> None: ...

    async def reorder_items_in_group(
        self, group_id: str, owner_id: str, items: Sequence[OrderEntry]
    ) -> None: ...

    async def add_items_to_group(self, group_id: str, owner_id: str, item_ids: Sequence[str]) -> None: ...

    async def remove_item_from_group(self, group_id: str, item_id: str, owner_id: str) -> None: ...

    async def fetch_groups(self, owner_id: str) -> List[Group]: ...

    async def fetch_items(self, owner_id: str) -> List[Item]: ...

    async def fetch_navigation_settings(self, owner_id: str) -> NavigationSettings: ...

    async def update_expanded_groups(self, owner_id: str, expanded_group_ids: Sequence[str]) -> None: ...

    async def delete_group(self, group_id: str, owner_id: str) -> None: ...

    async def delete_item(self, item_id: str, owner_id: str) -> None: ...


class InMemoryNavigationBackend:
    """Single-owner navigation store kept in dictionaries."""

    def __init__(
        self,
        owner_id: str,
        groups: Iterable[Group] = (),
        items: Iterable[Item] = (),
        settings: Optional[NavigationSettings] = None,
    ):
        self.owner_id = owner_id
        self.groups: Dict[str, Group] = {group.id: group for group in groups}
        self.items: Dict[str, Item] = {item.id: item for item in items}
        self.settings = settings or NavigationSettings()

    # ------------------------------------------------------------ helpers
    def _check_owner(self, owner_id: str) -> None:
        if owner_id != self.owner_id:
            raise BackendError(f"Unknown owner '{owner_id}'")

    def _group(self, group_id: str) -> Group:
        try:
            return self.groups[group_id]
        except KeyError:
            raise BackendError(f"View group '{group_id}' not found") from None

    # ------------------------------------------------------------ reorder
    async def reorder_groups(self, owner_id: str, items: Sequence[OrderEntry]) -> None:
        self._check_owner(owner_id)
        for entry in items:
            self.groups[entry.id] = self._group(entry.id).with_order(entry.order_index)

    async def reorder_items_in_group(
        self, group_id: str, owner_id: str, items: Sequence[OrderEntry]
    ) -> None:
        self._check_owner(owner_id)
        group = self._group(group_id)
        if {entry.id for entry in items} != set(group.item_ids):
            raise BackendError(f"Reorder of '{group_id}' does not match its members")
        ordered = sorted(items, key=lambda entry: entry.order_index)
        self.groups[group_id] = group.with_items(entry.id for entry in ordered)
        for entry in items:
            if entry.id in self.items:
                self.items[entry.id] = replace(self.items[entry.id], order_index=entry.order_index)

    # ------------------------------------------------------------ membership
    async def add_items_to_group(self, group_id: str, owner_id: str, item_ids: Sequence[str]) -> None:
        self._check_owner(owner_id)
        group = self._group(group_id)
        for item_id in item_ids:
            if item_id in group.item_ids:
                raise BackendError(f"View '{item_id}' is already in group '{group_id}'")
            if item_id not in self.items:
                raise BackendError(f"View '{item_id}' not found")
        members = tuple(group.item_ids) + tuple(item_ids)
        self.groups[group_id] = group.with_items(members)
        # New members are appended after the existing ones
        for index in range(len(group.item_ids), len(members)):
            self.items[members[index]] = replace(self.items[members[index]], order_index=index)

    async def remove_item_from_group(self, group_id: str, item_id: str, owner_id: str) -> None:
        self._check_owner(owner_id)
        group = self._group(group_id)
        if item_id not in group.item_ids:
            raise BackendError(f"View '{item_id}' is not in group '{group_id}'")
        self.groups[group_id] = group.with_items(i for i in group.item_ids if i != item_id)

    # ------------------------------------------------------------ queries
    async def fetch_groups(self, owner_id: str) -> List[Group]:
        self._check_owner(owner_id)
        return sorted(self.groups.values(), key=lambda g: g.order_index)

    async def fetch_items(self, owner_id: str) -> List[Item]:
        self._check_owner(owner_id)
        return list(self.items.values())

    async def fetch_navigation_settings(self, owner_id: str) -> NavigationSettings:
        self._check_owner(owner_id)
        return self.settings

    async def update_expanded_groups(self, owner_id: str, expanded_group_ids: Sequence[str]) -> None:
        self._check_owner(owner_id)
        self.settings = replace(
            self.settings,
            expanded_group_ids=tuple(expanded_group_ids),
            has_expanded_preference=True,
        )

    # ------------------------------------------------------------ deletion
    async def delete_group(self, group_id: str, owner_id: str) -> None:
        self._check_owner(owner_id)
        group = self._group(group_id)
        if group.is_default:
            raise BackendError("The default view group cannot be deleted")
        del self.groups[group_id]
        remaining = sorted(self.groups.values(), key=lambda g: g.order_index)
        for index, other in enumerate(remaining):
            self.groups[other.id] = other.with_order(index)

    async def delete_item(self, item_id: str, owner_id: str) -> None:
        self._check_owner(owner_id)
        if item_id not in self.items:
            raise BackendError(f"View '{item_id}' not found")
        if any(item_id in group.item_ids for group in self.groups.values()):
            raise BackendError(f"View '{item_id}' is still in a view group")
        del self.items[item_id]


def demo_backend(owner_id: str = "demo") -> InMemoryNavigationBackend:
    """Return a store seeded with a small reporting dashboard."""
    layout = [
        ("general", "General", True, [("overview", "Overview"), ("kpis", "KPI Summary")]),
        (
            "finance",
            "Finance",
            False,
            [("revenue", "Revenue"), ("costs", "Cost Centres"), ("forecast", "Forecast")],
        ),
        ("operations", "Operations", False, [("fleet", "Fleet Status"), ("incidents", "Incidents")]),
    ]
    groups = []
    items = []
    for order, (group_id, name, is_default, views) in enumerate(layout):
        groups.append(
            Group(group_id, name, tuple(v for v, _ in views), order_index=order, is_default=is_default)
        )
        items.extend(Item(view_id, title, order_index=index) for index, (view_id, title) in enumerate(views))
    return InMemoryNavigationBackend(owner_id, groups, items)


__all__ = ["BackendError", "NavigationBackend", "InMemoryNavigationBackend", "demo_backend"]
