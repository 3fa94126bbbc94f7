"""Navigation panel controller.

Owns one owner's working model and routes every change to it through the
reorder engine and the persistence coordinator. UI code only forwards
pointer events and renders what the listeners report.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from viewnav_dnd import Orientation, Position, Rect

from .drag_session import DragSession
from .groups import DeletionMode, GroupManager
from .models import DraggedEntity, EntityKind, HoverTarget, NavigationModel
from .persistence import PersistenceCoordinator, SaveOutcome
from .reorder import compute_reorder
from .service import NavigationBackend

logger = logging.getLogger(__name__)


class NavigationController:
    """Drag-and-drop reordering for a mounted navigation panel."""

    def __init__(
        self,
        backend: NavigationBackend,
        owner_id: str,
        *,
        orientation: Orientation = "vertical",
    ):
        self.backend = backend
        self.owner_id = owner_id
        self.session = DragSession(orientation)
        self.group_manager = GroupManager()
        self.coordinator = PersistenceCoordinator(backend, owner_id, NavigationModel(owner_id))
        self.mounted = False
        self._model_listeners: List[Callable[[NavigationModel], None]] = []
        self.coordinator.connect_model_changed(self._on_model_changed)

    @property
    def model(self) -> NavigationModel:
        return self.coordinator.model

    @property
    def busy(self) -> bool:
        return self.coordinator.busy

    def connect_model_changed(self, callback: Callable[[NavigationModel], None]) -> None:
        self._model_listeners.append(callback)

    def connect_warning(self, callback: Callable[[str], None]) -> None:
        self.coordinator.connect_warning(callback)

    # ------------------------------------------------------------ loading
    async def mount(self) -> NavigationModel:
        """Load groups, views and preferences from the store."""
        settings = await self.backend.fetch_navigation_settings(self.owner_id)
        self.group_manager.load_settings(settings)
        model = await self.coordinator.reconcile()
        for problem in model.check_invariants():
            logger.warning("Navigation model for %s: %s", self.owner_id, problem)
        self.mounted = True
        logger.info(
            "Mounted navigation for %s: %d group(s), %d view(s)",
            self.owner_id,
            len(model.groups),
            len(model.items),
        )
        return model

    async def refresh(self) -> NavigationModel:
        return await self.coordinator.reconcile()

    # ------------------------------------------------------------ drag gestures
    def begin_drag(self, kind: EntityKind, entity_id: str) -> DraggedEntity:
        if kind is EntityKind.GROUP:
            entity = DraggedEntity.group(self.model.group(entity_id).id)
        else:
            entity = DraggedEntity.item(entity_id, self.model.group_of(entity_id).id)
        self.session.begin(entity)
        return entity

    def drag_over(self, kind: EntityKind, target_id: str, x: float, y: float, rect: Rect) -> Optional[HoverTarget]:
        if not self.session.is_active:
            return None
        return self.session.hover(kind, target_id, x, y, rect)

    def drag_over_slot(self, kind: EntityKind, target_id: str, position: Position) -> Optional[HoverTarget]:
        """Hover a target whose before/after slot was already hit-tested."""
        if not self.session.is_active:
            return None
        return self.session.hover_at(kind, target_id, position)

    def drag_leave(self, kind: EntityKind, target_id: str, x: float, y: float, rect: Rect) -> None:
        if self.session.is_active:
            self.session.leave(kind, target_id, x, y, rect)

    def cancel_drag(self) -> None:
        self.session.cancel()

    async def drop(self) -> SaveOutcome:
        """Finish the gesture and persist whatever it changed."""
        if not self.session.is_active:
            return SaveOutcome.NOOP

        intent = self.session.drop()
        if intent is None or intent.is_self_drop:
            return SaveOutcome.NOOP

        result = compute_reorder(self.model, intent.dragged, intent.target)
        # Rejected by the coordinator while a previous save is in flight
        return await self.coordinator.apply(result)

    # ------------------------------------------------------------ preferences
    async def toggle_group(self, group_id: str) -> bool:
        expanded = self.group_manager.toggle_group(group_id)
        self._notify(self.model)
        await self.coordinator.update_expanded_groups(self.group_manager.expanded_group_ids(self.model))
        return expanded

    async def delete_group(self, group_id: str, mode: DeletionMode) -> SaveOutcome:
        return await self.coordinator.delete_group(group_id, mode)

    # ------------------------------------------------------------ listeners
    def _on_model_changed(self, model: NavigationModel) -> None:
        self._notify(model)

    def _notify(self, model: NavigationModel) -> None:
        for callback in list(self._model_listeners):
            callback(model)
