"""Pure helper functions for navigation panel drag-and-drop workflows."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional, Sequence


Position = Literal["before", "after"]
Orientation = Literal["vertical", "horizontal"]

POSITIONS = ("before", "after")
ORIENTATIONS = ("vertical", "horizontal")


@dataclass(frozen=True)
class Rect:
    """Bounding box of a rendered drop target."""

    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    def contains(self, x: float, y: float) -> bool:
        """Return True when the point lies inside the box, edges included."""
        return self.left <= x <= self.right and self.top <= y <= self.bottom


@dataclass(frozen=True)
class RowBounds:
    """Geometry metadata for hit-testing panel rows."""

    key: str
    top: float
    height: float


@dataclass(frozen=True)
class HitTestResult:
    """Result of translating a pointer Y coordinate to an insertion slot."""

    key: str
    position: Position


@dataclass(frozen=True)
class AutoscrollParams:
    """Parameters for computing autoscroll velocity."""

    viewport_height: float
    pointer_y: float
    margin: float
    max_velocity: float


def resolve_drop_position(
    pointer_x: float,
    pointer_y: float,
    rect: Rect,
    orientation: Orientation = "vertical",
) -> Position:
    """Return whether the pointer sits before or after the middle of ``rect``.

    Vertical layouts split on the horizontal centre line, horizontal layouts
    on the vertical one. A pointer exactly on the midpoint counts as ``after``.
    """

    if orientation == "vertical":
        midpoint = rect.top + rect.height / 2.0
        return "before" if float(pointer_y) < midpoint else "after"
    if orientation == "horizontal":
        midpoint = rect.left + rect.width / 2.0
        return "before" if float(pointer_x) < midpoint else "after"
    raise ValueError(f"Unsupported orientation '{orientation}'")


def hit_test_insertion(rows: Sequence[RowBounds], pointer_y: float) -> Optional[HitTestResult]:
    """Return which row the insertion line should target for a given pointer Y.

    The rows are expected to be sorted by their top coordinate. If ``pointer_y``
    lies before all rows we return the first row with ``position='before'``. If
    it lies beyond the final row we return the last row with ``position='after'``.
    """

    if not rows:
        return None

    pointer = float(pointer_y)
    ordered = sorted(rows, key=lambda r: (r.top, r.height))

    first = ordered[0]
    if pointer <= first.top:
        return HitTestResult(first.key, "before")

    for row in ordered:
        height = max(0.0, float(row.height))
        bottom = row.top + height

        if height <= 0.0:
            # Zero-height rows behave like a line.
            if pointer <= row.top:
                return HitTestResult(row.key, "before")
            continue

        mid = row.top + (height / 2.0)

        if pointer < mid:
            return HitTestResult(row.key, "before")
        if pointer < bottom:
            return HitTestResult(row.key, "after")

    last = ordered[-1]
    return HitTestResult(last.key, "after")


def autoscroll_velocity(params: AutoscrollParams) -> float:
    """Calculate the signed autoscroll velocity for a pointer.

    Negative velocities scroll upwards, positive values scroll downwards. The
    computation is linear within the configured margin and zero elsewhere.
    """

    height = float(params.viewport_height)
    if height <= 0.0:
        return 0.0

    pointer = max(0.0, min(float(params.pointer_y), height))
    margin = max(1.0, min(float(params.margin), height / 2.0))
    max_velocity = max(0.1, float(params.max_velocity))

    top_threshold = margin
    bottom_threshold = height - margin

    if pointer < top_threshold:
        distance = top_threshold - pointer
        return -_scale_velocity(distance, margin, max_velocity)

    if pointer > bottom_threshold:
        distance = pointer - bottom_threshold
        return _scale_velocity(distance, margin, max_velocity)

    return 0.0


def _scale_velocity(distance: float, margin: float, max_velocity: float) -> float:
    ratio = min(1.0, max(0.0, distance) / margin)
    return max_velocity * ratio
