"""Optimistic persistence of reorder results with refetch-on-failure.

The coordinator shows a drop's result immediately, then replays it against
the navigation store one call at a time. Remove, add and reorder are not
transactional on the remote side, so any failure throws away the optimistic
model and reloads the authoritative one instead of trying to undo steps.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, List, Optional, Sequence

from .groups import DeletionMode, plan_group_deletion
from .models import NavigationModel
from .reorder import ReorderKind, ReorderResult
from .service import NavigationBackend

logger = logging.getLogger(__name__)

SAVE_FAILED_MESSAGE = "Could not save order, please retry."
BUSY_MESSAGE = "Still saving the previous change, please wait."
PREFERENCE_FAILED_MESSAGE = "Could not save expanded groups."
DELETE_FAILED_MESSAGE = "Could not delete view group, please retry."


class SaveOutcome(str, Enum):
    NOOP = "noop"
    SAVED = "saved"
    REJECTED_BUSY = "rejected_busy"
    RECONCILED = "reconciled"


ModelCallback = Callable[[NavigationModel], None]
WarningCallback = Callable[[str], None]


class PersistenceCoordinator:
    """Serialises writes for one owner's navigation tree."""

    def __init__(
        self,
        backend: NavigationBackend,
        owner_id: str,
        model: NavigationModel,
        on_model_changed: Optional[ModelCallback] = None,
        on_warning: Optional[WarningCallback] = None,
    ):
        self.backend = backend
        self.owner_id = owner_id
        self._model = model
        self._confirmed = model
        self._in_flight = False
        self._model_listeners: List[ModelCallback] = []
        self._warning_listeners: List[WarningCallback] = []
        if on_model_changed:
            self._model_listeners.append(on_model_changed)
        if on_warning:
            self._warning_listeners.append(on_warning)

    @property
    def model(self) -> NavigationModel:
        return self._model

    @property
    def busy(self) -> bool:
        return self._in_flight

    def connect_model_changed(self, callback: ModelCallback) -> None:
        self._model_listeners.append(callback)

    def connect_warning(self, callback: WarningCallback) -> None:
        self._warning_listeners.append(callback)

    def reset(self, model: NavigationModel) -> None:
        """Adopt ``model`` as both the displayed and the confirmed state."""
        self._confirmed = model
        self._set_model(model)

    # ------------------------------------------------------------ reorder
    async def apply(self, result: ReorderResult) -> SaveOutcome:
        if not result.changed:
            return SaveOutcome.NOOP
        if self._in_flight:
            logger.info("Rejected drop while a previous save is in flight")
            self._warn(BUSY_MESSAGE)
            return SaveOutcome.REJECTED_BUSY

        self._in_flight = True
        try:
            self._set_model(result.model)
            try:
                await self._issue_calls(result)
            except Exception:
                logger.exception("Failed to persist %s", result.kind.value)
                await self._refresh_or_restore()
                self._warn(SAVE_FAILED_MESSAGE)
                return SaveOutcome.RECONCILED

            self._confirmed = result.model
            logger.info("Saved %s for owner %s", result.kind.value, self.owner_id)
            return SaveOutcome.SAVED
        finally:
            self._in_flight = False

    async def _issue_calls(self, result: ReorderResult) -> None:
        owner = self.owner_id
        if result.kind is ReorderKind.GROUP_REORDER:
            await self.backend.reorder_groups(owner, list(result.group_order))
        elif result.kind is ReorderKind.ITEM_REORDER:
            group_id = result.source_group_id
            await self.backend.reorder_items_in_group(group_id, owner, result.item_order(group_id))
        elif result.kind is ReorderKind.ITEM_MOVE:
            source, target = result.source_group_id, result.target_group_id
            # The add endpoint assumes the view is not a member yet
            await self.backend.remove_item_from_group(source, result.moved_item_id, owner)
            await self.backend.add_items_to_group(target, owner, [result.moved_item_id])
            await self.backend.reorder_items_in_group(source, owner, result.item_order(source))
            await self.backend.reorder_items_in_group(target, owner, result.item_order(target))
        else:
            raise ValueError(f"Unhandled reorder kind {result.kind!r}")

    # ------------------------------------------------------------ reconciliation
    async def reconcile(self) -> NavigationModel:
        """Replace the model with the store's authoritative state."""
        groups = await self.backend.fetch_groups(self.owner_id)
        items = await self.backend.fetch_items(self.owner_id)
        model = NavigationModel.from_records(self.owner_id, groups, items)
        self.reset(model)
        return model

    async def _refresh_or_restore(self) -> None:
        try:
            await self.reconcile()
        except Exception:
            logger.exception("Refetch failed; restoring last saved order")
            self._set_model(self._confirmed)

    # ------------------------------------------------------------ other writes
    async def update_expanded_groups(self, expanded_group_ids: Sequence[str]) -> bool:
        """Persist the expand/collapse preference. Never touches the model."""
        try:
            await self.backend.update_expanded_groups(self.owner_id, list(expanded_group_ids))
        except Exception:
            logger.exception("Failed to save expanded groups")
            self._warn(PREFERENCE_FAILED_MESSAGE)
            return False
        return True

    async def delete_group(self, group_id: str, mode: DeletionMode) -> SaveOutcome:
        """Delete a group, merging its views into the default group or deleting them."""
        plan = plan_group_deletion(self._model, group_id, mode)
        if self._in_flight:
            self._warn(BUSY_MESSAGE)
            return SaveOutcome.REJECTED_BUSY

        owner = self.owner_id
        self._in_flight = True
        try:
            try:
                if plan.items_to_merge:
                    await self.backend.add_items_to_group(plan.default_group_id, owner, list(plan.items_to_merge))
                for item_id in plan.items_to_remove:
                    await self.backend.remove_item_from_group(group_id, item_id, owner)
                for item_id in plan.items_to_delete:
                    await self.backend.delete_item(item_id, owner)
                await self.backend.delete_group(group_id, owner)
            except Exception:
                logger.exception("Failed to delete view group %s", group_id)
                await self._refresh_or_restore()
                self._warn(DELETE_FAILED_MESSAGE)
                return SaveOutcome.RECONCILED

            logger.info("Deleted view group %s (%s)", group_id, plan.mode.value)
            await self._refresh_or_restore()
            return SaveOutcome.SAVED
        finally:
            self._in_flight = False

    # ------------------------------------------------------------ helpers
    def _set_model(self, model: NavigationModel) -> None:
        self._model = model
        for callback in list(self._model_listeners):
            callback(model)

    def _warn(self, message: str) -> None:
        for callback in list(self._warning_listeners):
            callback(message)
