"""Group preference utilities for viewnav.

This module provides the :class:`GroupManager`, which tracks which view
groups are expanded or hidden and turns the working model into the flat row
list the navigation panel renders. It also plans group deletions so that a
group's views are never dropped silently.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .models import EntityKind, NavigationModel, NavigationSettings
from .reorder import ReorderContractError

logger = logging.getLogger(__name__)


class DeletionMode(str, Enum):
    MERGE = "merge"
    DELETE_ITEMS = "delete_items"


@dataclass(frozen=True)
class GroupDeletionPlan:
    """Steps needed to delete a group without losing track of its views."""

    group_id: str
    mode: DeletionMode
    default_group_id: Optional[str]
    # Views added to the default group (those not already there)
    items_to_merge: Tuple[str, ...] = ()
    # Views removed from the deleted group, in its display order
    items_to_remove: Tuple[str, ...] = ()
    items_to_delete: Tuple[str, ...] = ()


@dataclass(frozen=True)
class NavRow:
    """One rendered line of the navigation panel."""

    kind: EntityKind
    id: str
    label: str
    group_id: str
    expanded: bool = False


class GroupManager:
    """Manages expand/collapse and visibility preferences for view groups"""

    def __init__(self, settings: Optional[NavigationSettings] = None):
        self.expanded: Dict[str, bool] = {}
        self.hidden_groups: Set[str] = set()
        self.hidden_items: Set[str] = set()
        self.navigation_collapsed = False
        self._default_expanded = True
        self.load_settings(settings or NavigationSettings())

    def load_settings(self, settings: NavigationSettings):
        """Replace the preference state with a freshly fetched record"""
        self.expanded = {}
        if settings.has_expanded_preference:
            self.expanded = {group_id: True for group_id in settings.expanded_group_ids}
        self._default_expanded = not settings.has_expanded_preference
        self.hidden_groups = set(settings.hidden_group_ids)
        self.hidden_items = set(settings.hidden_item_ids)
        self.navigation_collapsed = settings.navigation_collapsed

    def is_expanded(self, group_id: str) -> bool:
        # Without any stored preference every group starts expanded
        return self.expanded.get(group_id, self._default_expanded)

    def set_group_expanded(self, group_id: str, expanded: bool):
        """Set whether a group is expanded"""
        self.expanded[group_id] = expanded

    def toggle_group(self, group_id: str) -> bool:
        expanded = not self.is_expanded(group_id)
        self.set_group_expanded(group_id, expanded)
        return expanded

    def expanded_group_ids(self, model: NavigationModel) -> List[str]:
        """Expanded groups in display order, as persisted to the settings record"""
        return [group.id for group in model.groups if self.is_expanded(group.id)]

    def is_hidden(self, kind: EntityKind, entity_id: str) -> bool:
        if kind is EntityKind.GROUP:
            return entity_id in self.hidden_groups
        return entity_id in self.hidden_items

    def visible_rows(self, model: NavigationModel) -> List[NavRow]:
        """Flatten the model into panel rows, honouring hidden and collapsed state"""
        rows: List[NavRow] = []
        for group in model.groups:
            if not group.is_visible or group.id in self.hidden_groups:
                continue
            expanded = self.is_expanded(group.id)
            rows.append(NavRow(EntityKind.GROUP, group.id, group.name or group.id, group.id, expanded))
            if not expanded:
                continue
            for item_id in group.item_ids:
                item = model.items.get(item_id)
                if item is None:
                    logger.debug("Group %s lists unknown view %s", group.id, item_id)
                    continue
                if not item.is_visible or item_id in self.hidden_items:
                    continue
                rows.append(NavRow(EntityKind.ITEM, item_id, item.name or item_id, group.id))
        return rows


def plan_group_deletion(model: NavigationModel, group_id: str, mode: DeletionMode) -> GroupDeletionPlan:
    """Work out how to delete ``group_id`` according to ``mode``.

    ``MERGE`` moves the group's views into the default group, skipping those
    already there. ``DELETE_ITEMS`` removes and deletes every view. The
    default group itself can only be renamed, never deleted.
    """
    group = model.group(group_id)
    if group.is_default:
        raise ReorderContractError("The default view group cannot be deleted")

    mode = DeletionMode(mode)
    members: Iterable[str] = group.item_ids

    if mode is DeletionMode.MERGE:
        default = model.default_group()
        already = set(default.item_ids)
        return GroupDeletionPlan(
            group_id,
            mode,
            default.id,
            items_to_merge=tuple(i for i in members if i not in already),
            items_to_remove=tuple(members),
        )

    return GroupDeletionPlan(
        group_id,
        mode,
        None,
        items_to_remove=tuple(members),
        items_to_delete=tuple(members),
    )
