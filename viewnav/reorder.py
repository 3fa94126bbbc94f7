"""Compute the navigation model that results from a completed drop.

Nothing here performs I/O; the result is handed to the persistence layer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from viewnav_dnd import Position, index_of, insert_at, insertion_index, move_within_list, reindex, remove_item

from .models import DraggedEntity, EntityKind, Group, HoverTarget, NavigationModel, OrderEntry

logger = logging.getLogger(__name__)


class ReorderContractError(ValueError):
    """The drop does not make sense for the model it was computed against."""


class ReorderKind(str, Enum):
    NONE = "none"
    GROUP_REORDER = "group_reorder"
    ITEM_REORDER = "item_reorder"
    ITEM_MOVE = "item_move"


@dataclass(frozen=True)
class ReorderResult:
    """Outcome of a drop: the new model plus what needs to be persisted."""

    kind: ReorderKind
    model: NavigationModel
    changed_groups: Tuple[Group, ...] = ()
    group_order: Tuple[OrderEntry, ...] = ()
    moved_item_id: Optional[str] = None
    source_group_id: Optional[str] = None
    target_group_id: Optional[str] = None

    @property
    def changed(self) -> bool:
        return self.kind is not ReorderKind.NONE

    def item_order(self, group_id: str) -> List[OrderEntry]:
        """Full ``{id, orderIndex}`` list for one changed group."""
        for group in self.changed_groups:
            if group.id == group_id:
                return _entries(group.item_ids)
        raise ReorderContractError(f"Group '{group_id}' was not changed by this drop")


def compute_reorder(
    model: NavigationModel,
    dragged: DraggedEntity,
    target: Optional[HoverTarget],
) -> ReorderResult:
    """Apply a drop of ``dragged`` on ``target`` to ``model``."""
    if target is None or (dragged.kind is target.kind and dragged.id == target.id):
        return _unchanged(model)

    if dragged.kind is EntityKind.GROUP:
        if target.kind is not EntityKind.GROUP:
            raise ReorderContractError(
                f"Group '{dragged.id}' cannot be dropped on {target.kind.value} '{target.id}'"
            )
        return _reorder_groups(model, dragged.id, target)

    source = model.group(dragged.source_group_id)
    if dragged.id not in source.item_ids:
        raise ReorderContractError(
            f"Item '{dragged.id}' is not in its source group '{source.id}'"
        )

    if target.kind is EntityKind.GROUP:
        target_group = model.group(target.id)
        if target_group.id == source.id:
            return _unchanged(model)
        return _move_item(model, dragged.id, source, target_group, len(target_group.item_ids))

    target_group = model.group_of(target.id)
    if target_group.id == source.id:
        return _reorder_within_group(model, dragged.id, source, target)

    target_index = index_of(target_group.item_ids, target.id)
    return _move_item(
        model,
        dragged.id,
        source,
        target_group,
        insertion_index(target_index, target.position),
    )


def _reorder_groups(model: NavigationModel, group_id: str, target: HoverTarget) -> ReorderResult:
    order = model.group_ids()
    new_order = _shifted_move(order, index_of(order, group_id), index_of(order, target.id), target.position)
    if new_order == order:
        return _unchanged(model)

    indices = reindex(new_order)
    changed = tuple(model.group(gid).with_order(indices[gid]) for gid in new_order)
    new_model = model.replace_groups(changed)
    logger.debug("Group order %s -> %s", order, new_order)
    return ReorderResult(
        ReorderKind.GROUP_REORDER,
        new_model,
        changed_groups=changed,
        group_order=tuple(_entries(new_order)),
    )


def _reorder_within_group(
    model: NavigationModel, item_id: str, group: Group, target: HoverTarget
) -> ReorderResult:
    items = list(group.item_ids)
    new_items = _shifted_move(items, index_of(items, item_id), index_of(items, target.id), target.position)
    if new_items == items:
        return _unchanged(model)

    updated = group.with_items(new_items)
    logger.debug("Items of group %s: %s -> %s", group.id, items, new_items)
    return ReorderResult(
        ReorderKind.ITEM_REORDER,
        model.replace_groups([updated]),
        changed_groups=(updated,),
        moved_item_id=item_id,
        source_group_id=group.id,
        target_group_id=group.id,
    )


def _move_item(
    model: NavigationModel,
    item_id: str,
    source: Group,
    target: Group,
    index: int,
) -> ReorderResult:
    if item_id in target.item_ids:
        raise ReorderContractError(f"Item '{item_id}' is already in group '{target.id}'")

    new_source = source.with_items(remove_item(source.item_ids, item_id))
    new_target = target.with_items(insert_at(target.item_ids, index, item_id))
    logger.debug("Move %s from %s to %s at %d", item_id, source.id, target.id, index)
    return ReorderResult(
        ReorderKind.ITEM_MOVE,
        model.replace_groups([new_source, new_target]),
        changed_groups=(new_source, new_target),
        moved_item_id=item_id,
        source_group_id=source.id,
        target_group_id=target.id,
    )


def _shifted_move(items: Sequence[str], from_index: int, target_index: int, position: Position) -> List[str]:
    """Move within one list, compensating for the slot freed by the removal."""
    to_index = insertion_index(target_index, position)
    if from_index < to_index:
        to_index -= 1
    return move_within_list(items, from_index, to_index)


def _entries(ids: Sequence[str]) -> List[OrderEntry]:
    return [OrderEntry(item_id, index) for item_id, index in reindex(ids).items()]


def _unchanged(model: NavigationModel) -> ReorderResult:
    return ReorderResult(ReorderKind.NONE, model)


__all__ = ["ReorderContractError", "ReorderKind", "ReorderResult", "compute_reorder"]
