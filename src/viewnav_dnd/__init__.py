"""DnD helper utilities exposed for reuse in tests and application code."""

from .logic import (
    ORIENTATIONS,
    POSITIONS,
    AutoscrollParams,
    HitTestResult,
    Orientation,
    Position,
    Rect,
    RowBounds,
    autoscroll_velocity,
    hit_test_insertion,
    resolve_drop_position,
)
from .ordering import (
    NotFoundError,
    index_of,
    insert_at,
    insertion_index,
    is_contiguous,
    move_within_list,
    reindex,
    remove_item,
)

__all__ = [
    "ORIENTATIONS",
    "POSITIONS",
    "AutoscrollParams",
    "HitTestResult",
    "Orientation",
    "Position",
    "Rect",
    "RowBounds",
    "autoscroll_velocity",
    "hit_test_insertion",
    "resolve_drop_position",
    "NotFoundError",
    "index_of",
    "insert_at",
    "insertion_index",
    "is_contiguous",
    "move_within_list",
    "reindex",
    "remove_item",
]
