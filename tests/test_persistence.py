"""Tests for optimistic persistence and reconciliation."""

import asyncio

import pytest

from viewnav.groups import DeletionMode
from viewnav.models import DraggedEntity, EntityKind, Group, HoverTarget, Item, NavigationModel
from viewnav.persistence import (
    BUSY_MESSAGE,
    PREFERENCE_FAILED_MESSAGE,
    SAVE_FAILED_MESSAGE,
    PersistenceCoordinator,
    SaveOutcome,
)
from viewnav.reorder import ReorderContractError, compute_reorder
from viewnav.service import BackendError, InMemoryNavigationBackend


class RecordingBackend(InMemoryNavigationBackend):
    """In-memory store that records calls and can be told to fail."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.calls = []
        self.fail_on = set()
        self.gate = None

    async def _record(self, name, *args):
        self.calls.append((name,) + args)
        if self.gate is not None:
            await self.gate.wait()
        if name in self.fail_on:
            raise BackendError(f"{name} failed")

    async def reorder_groups(self, owner_id, items):
        await self._record("reorder_groups", [e.to_dict() for e in items])
        await super().reorder_groups(owner_id, items)

    async def reorder_items_in_group(self, group_id, owner_id, items):
        await self._record("reorder_items_in_group", group_id, [e.id for e in items])
        await super().reorder_items_in_group(group_id, owner_id, items)

    async def add_items_to_group(self, group_id, owner_id, item_ids):
        await self._record("add_items_to_group", group_id, list(item_ids))
        await super().add_items_to_group(group_id, owner_id, item_ids)

    async def remove_item_from_group(self, group_id, item_id, owner_id):
        await self._record("remove_item_from_group", group_id, item_id)
        await super().remove_item_from_group(group_id, item_id, owner_id)

    async def fetch_groups(self, owner_id):
        await self._record("fetch_groups")
        return await super().fetch_groups(owner_id)

    async def fetch_items(self, owner_id):
        await self._record("fetch_items")
        return await super().fetch_items(owner_id)

    async def update_expanded_groups(self, owner_id, expanded_group_ids):
        await self._record("update_expanded_groups", list(expanded_group_ids))
        await super().update_expanded_groups(owner_id, expanded_group_ids)

    async def delete_group(self, group_id, owner_id):
        await self._record("delete_group", group_id)
        await super().delete_group(group_id, owner_id)

    async def delete_item(self, item_id, owner_id):
        await self._record("delete_item", item_id)
        await super().delete_item(item_id, owner_id)


def _backend():
    groups = [
        Group("A", "Alpha", ("v1", "v2", "v3"), 0, is_default=True),
        Group("B", "Beta", ("v4", "v5"), 1),
    ]
    items = [Item("v1", order_index=0), Item("v2", order_index=1), Item("v3", order_index=2),
             Item("v4", order_index=0), Item("v5", order_index=1)]
    return RecordingBackend("owner", groups, items)


def _coordinator(backend):
    model = asyncio.run(_fetch_model(backend))
    backend.calls.clear()
    models = []
    warnings = []
    coordinator = PersistenceCoordinator(
        backend, "owner", model, on_model_changed=models.append, on_warning=warnings.append
    )
    return coordinator, models, warnings


async def _fetch_model(backend):
    groups = await backend.fetch_groups("owner")
    items = await backend.fetch_items("owner")
    return NavigationModel.from_records("owner", groups, items)


def test_cross_group_move_issues_calls_in_order():
    backend = _backend()
    coordinator, models, warnings = _coordinator(backend)
    result = compute_reorder(
        coordinator.model,
        DraggedEntity.item("v2", "A"),
        HoverTarget(EntityKind.ITEM, "v5", "before"),
    )

    outcome = asyncio.run(coordinator.apply(result))

    assert outcome is SaveOutcome.SAVED
    assert backend.calls == [
        ("remove_item_from_group", "A", "v2"),
        ("add_items_to_group", "B", ["v2"]),
        ("reorder_items_in_group", "A", ["v1", "v3"]),
        ("reorder_items_in_group", "B", ["v4", "v2", "v5"]),
    ]
    assert models == [result.model]
    assert warnings == []
    assert backend.groups["B"].item_ids == ("v4", "v2", "v5")
    assert not coordinator.busy


def test_group_reorder_sends_full_order():
    backend = _backend()
    coordinator, _, _ = _coordinator(backend)
    result = compute_reorder(
        coordinator.model,
        DraggedEntity.group("B"),
        HoverTarget(EntityKind.GROUP, "A", "before"),
    )

    asyncio.run(coordinator.apply(result))

    assert backend.calls == [
        ("reorder_groups", [{"id": "B", "orderIndex": 0}, {"id": "A", "orderIndex": 1}]),
    ]


def test_within_group_reorder_sends_one_call():
    backend = _backend()
    coordinator, _, _ = _coordinator(backend)
    result = compute_reorder(
        coordinator.model,
        DraggedEntity.item("v1", "A"),
        HoverTarget(EntityKind.ITEM, "v3", "after"),
    )

    asyncio.run(coordinator.apply(result))

    assert backend.calls == [("reorder_items_in_group", "A", ["v2", "v3", "v1"])]


def test_noop_result_issues_no_calls():
    backend = _backend()
    coordinator, models, _ = _coordinator(backend)
    result = compute_reorder(
        coordinator.model,
        DraggedEntity.item("v1", "A"),
        HoverTarget(EntityKind.ITEM, "v1", "after"),
    )

    assert asyncio.run(coordinator.apply(result)) is SaveOutcome.NOOP
    assert backend.calls == []
    assert models == []


def test_failure_discards_optimistic_model_and_refetches():
    backend = _backend()
    coordinator, models, warnings = _coordinator(backend)
    backend.fail_on = {"add_items_to_group"}
    result = compute_reorder(
        coordinator.model,
        DraggedEntity.item("v2", "A"),
        HoverTarget(EntityKind.ITEM, "v5", "before"),
    )

    outcome = asyncio.run(coordinator.apply(result))
    canonical = asyncio.run(_fetch_model(backend))

    assert outcome is SaveOutcome.RECONCILED
    assert warnings == [SAVE_FAILED_MESSAGE]
    # The remove went through before the add failed; the store is authoritative
    assert coordinator.model == canonical
    assert coordinator.model != result.model
    assert models[0] == result.model
    assert models[-1] == canonical
    assert ("fetch_groups",) in backend.calls


def test_failed_refetch_restores_last_confirmed_model():
    backend = _backend()
    coordinator, _, warnings = _coordinator(backend)
    confirmed = coordinator.model
    backend.fail_on = {"reorder_groups", "fetch_groups"}
    result = compute_reorder(
        coordinator.model,
        DraggedEntity.group("B"),
        HoverTarget(EntityKind.GROUP, "A", "before"),
    )

    outcome = asyncio.run(coordinator.apply(result))

    assert outcome is SaveOutcome.RECONCILED
    assert coordinator.model == confirmed
    assert warnings == [SAVE_FAILED_MESSAGE]


def test_second_drop_is_rejected_while_first_is_in_flight():
    backend = _backend()
    coordinator, _, warnings = _coordinator(backend)
    first = compute_reorder(
        coordinator.model,
        DraggedEntity.group("B"),
        HoverTarget(EntityKind.GROUP, "A", "before"),
    )
    second = compute_reorder(
        coordinator.model,
        DraggedEntity.item("v1", "A"),
        HoverTarget(EntityKind.ITEM, "v3", "after"),
    )

    async def scenario():
        backend.gate = asyncio.Event()
        pending = asyncio.ensure_future(coordinator.apply(first))
        await asyncio.sleep(0)
        assert coordinator.busy
        rejected = await coordinator.apply(second)
        backend.gate.set()
        return rejected, await pending

    rejected, saved = asyncio.run(scenario())

    assert rejected is SaveOutcome.REJECTED_BUSY
    assert saved is SaveOutcome.SAVED
    assert warnings == [BUSY_MESSAGE]
    assert [call[0] for call in backend.calls] == ["reorder_groups"]
    assert coordinator.model.group_ids() == ["B", "A"]


def test_reconcile_replaces_model():
    backend = _backend()
    coordinator, models, _ = _coordinator(backend)
    backend.groups["B"] = backend.groups["B"].with_items(("v5", "v4"))

    model = asyncio.run(coordinator.reconcile())

    assert model.group("B").item_ids == ("v5", "v4")
    assert coordinator.model is model
    assert models == [model]


def test_expanded_groups_failure_warns_without_refetch():
    backend = _backend()
    coordinator, models, warnings = _coordinator(backend)
    backend.fail_on = {"update_expanded_groups"}

    assert asyncio.run(coordinator.update_expanded_groups(["B"])) is False
    assert warnings == [PREFERENCE_FAILED_MESSAGE]
    assert models == []
    assert backend.calls == [("update_expanded_groups", ["B"])]


def test_delete_group_merges_into_default():
    backend = _backend()
    coordinator, _, _ = _coordinator(backend)

    outcome = asyncio.run(coordinator.delete_group("B", DeletionMode.MERGE))

    assert outcome is SaveOutcome.SAVED
    assert backend.calls[:4] == [
        ("add_items_to_group", "A", ["v4", "v5"]),
        ("remove_item_from_group", "B", "v4"),
        ("remove_item_from_group", "B", "v5"),
        ("delete_group", "B"),
    ]
    assert coordinator.model.group_ids() == ["A"]
    assert coordinator.model.group("A").item_ids == ("v1", "v2", "v3", "v4", "v5")


def test_delete_group_with_its_views():
    backend = _backend()
    coordinator, _, _ = _coordinator(backend)

    outcome = asyncio.run(coordinator.delete_group("B", DeletionMode.DELETE_ITEMS))

    assert outcome is SaveOutcome.SAVED
    assert "v4" not in backend.items
    assert "v5" not in backend.items
    assert coordinator.model.group_ids() == ["A"]
    assert set(coordinator.model.items) == {"v1", "v2", "v3"}


def test_default_group_cannot_be_deleted():
    backend = _backend()
    coordinator, _, _ = _coordinator(backend)

    with pytest.raises(ReorderContractError):
        asyncio.run(coordinator.delete_group("A", DeletionMode.MERGE))
    assert backend.calls == []
