"""Tests for the drag gesture state machine."""

import pytest

from viewnav_dnd import Rect

from viewnav import drag_session
from viewnav.drag_session import DragSession, DragSessionError, DragState
from viewnav.models import DraggedEntity, EntityKind, HoverTarget

ROW = Rect(left=0.0, top=100.0, width=50.0, height=100.0)


def test_start_hover_drop_cycle_returns_to_idle():
    session = DragSession()
    seen = []
    session.connect(lambda snapshot: seen.append(snapshot.state))

    session.begin(DraggedEntity.item("v1", "A"))
    hover = session.hover(EntityKind.ITEM, "v3", 10.0, 160.0, ROW)
    intent = session.drop()

    assert hover == HoverTarget(EntityKind.ITEM, "v3", "after")
    assert intent.dragged == DraggedEntity.item("v1", "A")
    assert intent.target == hover
    assert not intent.is_self_drop
    assert seen == [DragState.DRAGGING, DragState.HOVERING, DragState.DROPPED, DragState.IDLE]
    assert session.state is DragState.IDLE


def test_repeated_hover_updates_in_place():
    snapshot = drag_session.start_drag(drag_session.IDLE, DraggedEntity.group("g1"))

    first = drag_session.hover(snapshot, EntityKind.GROUP, "g2", 0, 120, ROW)
    same = drag_session.hover(first, EntityKind.GROUP, "g2", 0, 130, ROW)
    flipped = drag_session.hover(same, EntityKind.GROUP, "g2", 0, 180, ROW)

    assert same is first
    assert flipped.state is DragState.HOVERING
    assert flipped.hover.position == "after"


def test_item_over_group_header_always_appends():
    snapshot = drag_session.start_drag(drag_session.IDLE, DraggedEntity.item("v1", "A"))

    hovered = drag_session.hover(snapshot, EntityKind.GROUP, "B", 0, 101, ROW)

    assert hovered.hover == HoverTarget(EntityKind.GROUP, "B", "after")


def test_group_over_item_row_is_not_a_target():
    snapshot = drag_session.start_drag(drag_session.IDLE, DraggedEntity.group("g1"))
    snapshot = drag_session.hover(snapshot, EntityKind.GROUP, "g2", 0, 120, ROW)

    cleared = drag_session.hover(snapshot, EntityKind.ITEM, "v1", 0, 120, ROW)

    assert cleared.state is DragState.DRAGGING
    assert cleared.hover is None


def test_hover_at_uses_the_given_position():
    snapshot = drag_session.start_drag(drag_session.IDLE, DraggedEntity.item("v1", "A"))

    hovered = drag_session.hover_at(snapshot, EntityKind.ITEM, "v2", "before")

    assert hovered.hover == HoverTarget(EntityKind.ITEM, "v2", "before")


def test_leave_inside_bounding_box_is_ignored():
    snapshot = drag_session.start_drag(drag_session.IDLE, DraggedEntity.item("v1", "A"))
    snapshot = drag_session.hover(snapshot, EntityKind.ITEM, "v2", 0, 120, ROW)

    assert drag_session.leave(snapshot, EntityKind.ITEM, "v2", 10.0, 150.0, ROW) is snapshot
    # A leave for an element that is not the current target changes nothing
    assert drag_session.leave(snapshot, EntityKind.ITEM, "v9", 10.0, 500.0, ROW) is snapshot

    left = drag_session.leave(snapshot, EntityKind.ITEM, "v2", 10.0, 250.0, ROW)
    assert left.state is DragState.DRAGGING
    assert left.hover is None
    assert left.dragged == snapshot.dragged


def test_drop_without_target_cancels():
    session = DragSession()
    seen = []
    session.connect(lambda snapshot: seen.append(snapshot.state))
    session.begin(DraggedEntity.group("g1"))

    assert session.drop() is None
    assert seen == [DragState.DRAGGING, DragState.CANCELLED, DragState.IDLE]


def test_self_drop_is_flagged():
    session = DragSession()
    session.begin(DraggedEntity.group("g1"))
    session.hover(EntityKind.GROUP, "g1", 0, 110, ROW)

    assert session.drop().is_self_drop


def test_cancel_discards_the_gesture():
    session = DragSession()
    session.begin(DraggedEntity.item("v1", "A"))
    session.hover(EntityKind.ITEM, "v2", 0, 110, ROW)

    session.cancel()

    assert session.state is DragState.IDLE
    assert session.dragged is None
    assert session.hover_target is None
    # Cancelling while idle is harmless
    session.cancel()


def test_contract_violations_raise():
    session = DragSession()
    with pytest.raises(DragSessionError):
        session.hover(EntityKind.ITEM, "v2", 0, 110, ROW)
    with pytest.raises(DragSessionError):
        session.drop()

    session.begin(DraggedEntity.group("g1"))
    with pytest.raises(DragSessionError):
        session.begin(DraggedEntity.group("g2"))


def test_horizontal_session_splits_on_x():
    session = DragSession("horizontal")
    session.begin(DraggedEntity.group("g1"))

    target = session.hover(EntityKind.GROUP, "g2", 5.0, 199.0, ROW)

    assert target.position == "before"
