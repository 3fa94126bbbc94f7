"""Unit tests for the pure drag-and-drop helpers."""

from __future__ import annotations

import pytest

from viewnav_dnd.logic import (
    AutoscrollParams,
    Rect,
    RowBounds,
    autoscroll_velocity,
    hit_test_insertion,
    resolve_drop_position,
)


def test_resolver_splits_vertical_rect_on_midpoint():
    rect = Rect(left=0.0, top=100.0, width=50.0, height=100.0)

    assert resolve_drop_position(10.0, 149.0, rect) == "before"
    assert resolve_drop_position(10.0, 151.0, rect) == "after"


def test_resolver_treats_exact_midpoint_as_after():
    rect = Rect(left=0.0, top=100.0, width=50.0, height=100.0)

    assert resolve_drop_position(10.0, 150.0, rect) == "after"


def test_resolver_splits_horizontal_rect_on_x():
    rect = Rect(left=20.0, top=0.0, width=40.0, height=10.0)

    assert resolve_drop_position(39.0, 500.0, rect, "horizontal") == "before"
    assert resolve_drop_position(41.0, -500.0, rect, "horizontal") == "after"


def test_resolver_rejects_unknown_orientation():
    with pytest.raises(ValueError):
        resolve_drop_position(0.0, 0.0, Rect(0, 0, 1, 1), "diagonal")


def test_rect_contains_includes_edges():
    rect = Rect(left=10.0, top=10.0, width=10.0, height=5.0)

    assert rect.contains(10.0, 10.0)
    assert rect.contains(20.0, 15.0)
    assert not rect.contains(20.5, 12.0)
    assert not rect.contains(12.0, 9.0)


def test_hit_test_handles_pointer_before_first_row():
    rows = [
        RowBounds("r0", top=10.0, height=20.0),
        RowBounds("r1", top=40.0, height=20.0),
    ]

    result = hit_test_insertion(rows, pointer_y=0.0)

    assert result is not None
    assert result.key == "r0"
    assert result.position == "before"


def test_hit_test_distinguishes_before_and_after_within_row():
    rows = [RowBounds("r0", top=0.0, height=20.0)]

    assert hit_test_insertion(rows, pointer_y=5.0).position == "before"
    assert hit_test_insertion(rows, pointer_y=15.0).position == "after"


def test_hit_test_chooses_last_row_when_pointer_below_all():
    rows = [
        RowBounds("r0", top=0.0, height=20.0),
        RowBounds("r1", top=30.0, height=20.0),
    ]

    result = hit_test_insertion(rows, pointer_y=100.0)

    assert result is not None
    assert result.key == "r1"
    assert result.position == "after"


def test_hit_test_in_gap_targets_next_row():
    rows = [
        RowBounds("r0", top=0.0, height=20.0),
        RowBounds("r1", top=30.0, height=20.0),
    ]

    result = hit_test_insertion(rows, pointer_y=25.0)

    assert result.key == "r1"
    assert result.position == "before"


def test_hit_test_without_rows_returns_none():
    assert hit_test_insertion([], pointer_y=3.0) is None


@pytest.mark.parametrize(
    "pointer_y,expected",
    [
        (0.0, -5.0),
        (9.0, -0.5),
        (50.0, 0.0),
        (91.0, 0.5),
        (99.0, 4.5),
    ],
)
def test_autoscroll_velocity(pointer_y, expected):
    params = AutoscrollParams(
        viewport_height=100.0,
        pointer_y=pointer_y,
        margin=10.0,
        max_velocity=5.0,
    )

    velocity = autoscroll_velocity(params)

    assert pytest.approx(velocity, rel=1e-6) == expected


def test_autoscroll_is_idle_for_empty_viewport():
    params = AutoscrollParams(viewport_height=0.0, pointer_y=3.0, margin=2.0, max_velocity=2.0)

    assert autoscroll_velocity(params) == 0.0
