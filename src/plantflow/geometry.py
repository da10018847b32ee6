"""Geometry primitives shared by layout, routing and rendering.

All boxes live in one shared coordinate space (the board), with y growing
downward.  Route coordinates are snapped to whole layout units so repeated
recomputation over the same boxes never jitters.
"""

from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class Point:
    """A vertex of a route polyline, in whole layout units."""
    x: int
    y: int


@dataclass(frozen=True)
class Box:
    """Bounding box of a rendered node."""
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

    @property
    def center_x(self) -> float:
        return self.left + self.width / 2

    @property
    def center_y(self) -> float:
        return self.top + self.height / 2


def snap(value: float) -> int:
    """Round half-up to the nearest layout unit."""
    return int(math.floor(value + 0.5))


def point(x: float, y: float) -> Point:
    return Point(snap(x), snap(y))


def same_row(a: Box, b: Box, tolerance: float) -> bool:
    """True when the top edges differ by less than ``tolerance``."""
    return abs(a.top - b.top) < tolerance


def vertical_gap(a: Box, b: Box) -> float:
    """Empty vertical space between two boxes; 0 when they overlap in y."""
    return max(0.0, b.top - a.bottom, a.top - b.bottom)


def dedupe(points: list[Point]) -> tuple[Point, ...]:
    """Drop consecutive repeated vertices."""
    out: list[Point] = []
    for p in points:
        if not out or out[-1] != p:
            out.append(p)
    return tuple(out)


def bounds_of(boxes: list[Box]) -> Box | None:
    """Smallest box enclosing all of ``boxes``; None for an empty list."""
    if not boxes:
        return None
    left = min(b.left for b in boxes)
    top = min(b.top for b in boxes)
    right = max(b.right for b in boxes)
    bottom = max(b.bottom for b in boxes)
    return Box(left, top, right - left, bottom - top)
