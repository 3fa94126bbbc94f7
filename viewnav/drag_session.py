"""Drag gesture state machine for the navigation panel.

A gesture moves through ``idle -> dragging -> (hovering)* -> dropped|cancelled
-> idle``. The transitions are plain functions over an immutable
:class:`DragSnapshot`; :class:`DragSession` holds the current snapshot for a
panel and tells listeners whenever it changes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, List, Optional, Tuple

from viewnav_dnd import Orientation, Position, Rect, resolve_drop_position

from .models import DraggedEntity, EntityKind, HoverTarget

logger = logging.getLogger(__name__)


class DragState(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    HOVERING = "hovering"
    DROPPED = "dropped"
    CANCELLED = "cancelled"


class DragSessionError(RuntimeError):
    """A transition was requested from a state that does not allow it."""


@dataclass(frozen=True)
class DropIntent:
    """Frozen copy of what was dragged and where it was released."""

    dragged: DraggedEntity
    target: HoverTarget

    @property
    def is_self_drop(self) -> bool:
        return self.dragged.kind is self.target.kind and self.dragged.id == self.target.id


@dataclass(frozen=True)
class DragSnapshot:
    state: DragState = DragState.IDLE
    dragged: Optional[DraggedEntity] = None
    hover: Optional[HoverTarget] = None

    @property
    def is_active(self) -> bool:
        return self.state in (DragState.DRAGGING, DragState.HOVERING)


IDLE = DragSnapshot()


def start_drag(snapshot: DragSnapshot, entity: DraggedEntity) -> DragSnapshot:
    if snapshot.state is not DragState.IDLE:
        raise DragSessionError(f"Cannot start a drag while {snapshot.state.value}")
    return DragSnapshot(DragState.DRAGGING, entity, None)


def hover(
    snapshot: DragSnapshot,
    kind: EntityKind,
    target_id: str,
    pointer_x: float,
    pointer_y: float,
    rect: Rect,
    orientation: Orientation = "vertical",
) -> DragSnapshot:
    """Update the hover target for a drag-enter or drag-over event."""
    return hover_at(snapshot, kind, target_id, resolve_drop_position(pointer_x, pointer_y, rect, orientation))


def hover_at(snapshot: DragSnapshot, kind: EntityKind, target_id: str, position: Position) -> DragSnapshot:
    """Update the hover target when the drop position is already known."""
    if not snapshot.is_active:
        raise DragSessionError(f"Cannot hover while {snapshot.state.value}")

    dragged = snapshot.dragged
    if dragged.kind is EntityKind.GROUP and kind is EntityKind.ITEM:
        # Groups only reorder against other groups
        return replace(snapshot, state=DragState.DRAGGING, hover=None)

    if dragged.kind is EntityKind.ITEM and kind is EntityKind.GROUP:
        # Headers have nothing finer to split against: always append
        position = "after"

    target = HoverTarget(kind, target_id, position)
    if snapshot.hover == target and snapshot.state is DragState.HOVERING:
        return snapshot
    return DragSnapshot(DragState.HOVERING, dragged, target)


def leave(
    snapshot: DragSnapshot,
    kind: EntityKind,
    target_id: str,
    pointer_x: float,
    pointer_y: float,
    rect: Rect,
) -> DragSnapshot:
    """Clear the hover target, unless the pointer is still inside ``rect``.

    Leave events fired while crossing into a child element are ignored this
    way, which keeps the indicator from flickering.
    """
    if not snapshot.is_active or snapshot.hover is None:
        return snapshot
    if snapshot.hover.kind is not kind or snapshot.hover.id != target_id:
        return snapshot
    if rect.contains(pointer_x, pointer_y):
        return snapshot
    return DragSnapshot(DragState.DRAGGING, snapshot.dragged, None)


def drop(snapshot: DragSnapshot) -> Tuple[DragSnapshot, Optional[DropIntent]]:
    """Release the pointer. Without a hover target the gesture is cancelled."""
    if not snapshot.is_active:
        raise DragSessionError(f"Cannot drop while {snapshot.state.value}")
    if snapshot.hover is None:
        return cancel(snapshot), None
    return (
        DragSnapshot(DragState.DROPPED, snapshot.dragged, snapshot.hover),
        DropIntent(snapshot.dragged, snapshot.hover),
    )


def cancel(snapshot: DragSnapshot) -> DragSnapshot:
    return DragSnapshot(DragState.CANCELLED, snapshot.dragged, None)


def settle(snapshot: DragSnapshot) -> DragSnapshot:
    """Return to idle after a drop or a cancel."""
    return IDLE


class DragSession:
    """Holds the drag state of one panel and notifies listeners of changes."""

    def __init__(self, orientation: Orientation = "vertical"):
        self.orientation = orientation
        self._snapshot = IDLE
        self._listeners: List[Callable[[DragSnapshot], None]] = []

    @property
    def snapshot(self) -> DragSnapshot:
        return self._snapshot

    @property
    def state(self) -> DragState:
        return self._snapshot.state

    @property
    def dragged(self) -> Optional[DraggedEntity]:
        return self._snapshot.dragged

    @property
    def hover_target(self) -> Optional[HoverTarget]:
        return self._snapshot.hover

    @property
    def is_active(self) -> bool:
        return self._snapshot.is_active

    def connect(self, callback: Callable[[DragSnapshot], None]) -> None:
        if callback not in self._listeners:
            self._listeners.append(callback)

    def begin(self, entity: DraggedEntity) -> None:
        self._set(start_drag(self._snapshot, entity))

    def hover(self, kind: EntityKind, target_id: str, pointer_x: float, pointer_y: float, rect: Rect) -> Optional[HoverTarget]:
        self._set(hover(self._snapshot, kind, target_id, pointer_x, pointer_y, rect, self.orientation))
        return self._snapshot.hover

    def hover_at(self, kind: EntityKind, target_id: str, position: Position) -> Optional[HoverTarget]:
        self._set(hover_at(self._snapshot, kind, target_id, position))
        return self._snapshot.hover

    def leave(self, kind: EntityKind, target_id: str, pointer_x: float, pointer_y: float, rect: Rect) -> None:
        self._set(leave(self._snapshot, kind, target_id, pointer_x, pointer_y, rect))

    def drop(self) -> Optional[DropIntent]:
        snapshot, intent = drop(self._snapshot)
        self._set(snapshot)
        self._set(settle(snapshot))
        return intent

    def cancel(self) -> None:
        if not self.is_active:
            return
        self._set(cancel(self._snapshot))
        self._set(settle(self._snapshot))

    def _set(self, snapshot: DragSnapshot) -> None:
        if snapshot == self._snapshot:
            return
        logger.debug(
            "Drag %s -> %s (dragged=%s, hover=%s)",
            self._snapshot.state.value,
            snapshot.state.value,
            snapshot.dragged,
            snapshot.hover,
        )
        self._snapshot = snapshot
        for callback in list(self._listeners):
            callback(snapshot)
