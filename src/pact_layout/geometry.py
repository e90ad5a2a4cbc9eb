"""
Geometry primitives shared by the layout engine, the router and the
pattern applier.

All coordinates are integer device pixels. Helpers here are pure and
stateless.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Point:
    """A 2-D coordinate."""
    x: int
    y: int

    def to_dict(self) -> dict[str, int]:
        return {"x": self.x, "y": self.y}


@dataclass(frozen=True)
class Rect:
    """Axis-aligned bounding box for a placed node."""
    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def cx(self) -> int:
        return self.x + self.width // 2

    @property
    def cy(self) -> int:
        return self.y + self.height // 2

    def expanded(self, margin: int) -> Rect:
        """Return a copy grown by *margin* on every side."""
        return Rect(self.x - margin, self.y - margin,
                    self.width + 2 * margin, self.height + 2 * margin)

    def overlaps(self, other: Rect) -> bool:
        """Strict overlap test (touching edges do not count)."""
        return (
            self.x < other.right and self.right > other.x
            and self.y < other.bottom and self.bottom > other.y
        )

    def contains_point(self, px: int, py: int) -> bool:
        """Check if a point is inside this box (borders included)."""
        return self.x <= px <= self.right and self.y <= py <= self.bottom

    def to_dict(self) -> dict[str, int]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


Path = list[Point]


# ---------------------------------------------------------------------------
# Scalar helpers
# ---------------------------------------------------------------------------

def trunc_div(a: int, b: int) -> int:
    """Integer division rounding toward zero.

    Offsets computed around a centre line must be symmetric for negative
    and positive numerators, which floor division is not.
    """
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b > 0) else -q


def union_bounds(rects: Iterable[Rect]) -> Rect | None:
    """Smallest box containing every rect, or None for an empty input."""
    rects = list(rects)
    if not rects:
        return None
    min_x = min(r.x for r in rects)
    min_y = min(r.y for r in rects)
    max_x = max(r.right for r in rects)
    max_y = max(r.bottom for r in rects)
    return Rect(min_x, min_y, max_x - min_x, max_y - min_y)


# ---------------------------------------------------------------------------
# Segment / rectangle intersection
# ---------------------------------------------------------------------------

def _orientation(ax: int, ay: int, bx: int, by: int, cx: int, cy: int) -> int:
    val = (by - ay) * (cx - bx) - (bx - ax) * (cy - by)
    if val == 0:
        return 0
    return 1 if val > 0 else 2


def _on_segment(ax: int, ay: int, bx: int, by: int, cx: int, cy: int) -> bool:
    return min(ax, cx) <= bx <= max(ax, cx) and min(ay, cy) <= by <= max(ay, cy)


def segments_intersect(
    x1: int, y1: int, x2: int, y2: int,
    x3: int, y3: int, x4: int, y4: int,
) -> bool:
    """Check whether segment (x1,y1)-(x2,y2) touches segment (x3,y3)-(x4,y4)."""
    o1 = _orientation(x1, y1, x2, y2, x3, y3)
    o2 = _orientation(x1, y1, x2, y2, x4, y4)
    o3 = _orientation(x3, y3, x4, y4, x1, y1)
    o4 = _orientation(x3, y3, x4, y4, x2, y2)

    if o1 != o2 and o3 != o4:
        return True
    # Collinear special cases
    if o1 == 0 and _on_segment(x1, y1, x3, y3, x2, y2):
        return True
    if o2 == 0 and _on_segment(x1, y1, x4, y4, x2, y2):
        return True
    if o3 == 0 and _on_segment(x3, y3, x1, y1, x4, y4):
        return True
    if o4 == 0 and _on_segment(x3, y3, x2, y2, x4, y4):
        return True
    return False


def line_intersects_rect(a: Point, b: Point, rect: Rect, margin: int = 5) -> bool:
    """Does segment *a*-*b* cross *rect* grown by *margin*?

    Orthogonal segments use an exact containment test. Diagonal segments
    are handled by an endpoint-inside check plus a crossing test against
    the four rectangle edges.
    """
    grown = rect.expanded(margin)
    left, right, top, bottom = grown.x, grown.right, grown.y, grown.bottom

    min_x, max_x = min(a.x, b.x), max(a.x, b.x)
    min_y, max_y = min(a.y, b.y), max(a.y, b.y)

    if max_x < left or min_x > right or max_y < top or min_y > bottom:
        return False

    if a.y == b.y:
        return top <= a.y <= bottom and max_x >= left and min_x <= right
    if a.x == b.x:
        return left <= a.x <= right and max_y >= top and min_y <= bottom

    if grown.contains_point(a.x, a.y) or grown.contains_point(b.x, b.y):
        return True

    return (
        segments_intersect(a.x, a.y, b.x, b.y, left, top, right, top)
        or segments_intersect(a.x, a.y, b.x, b.y, right, top, right, bottom)
        or segments_intersect(a.x, a.y, b.x, b.y, left, bottom, right, bottom)
        or segments_intersect(a.x, a.y, b.x, b.y, left, top, left, bottom)
    )


def segment_hits_any(a: Point, b: Point, obstacles: Sequence[Rect], margin: int = 5) -> bool:
    """True if segment *a*-*b* crosses any obstacle (expanded by *margin*)."""
    return any(line_intersects_rect(a, b, obs, margin) for obs in obstacles)


def path_is_clear(path: Sequence[Point], obstacles: Sequence[Rect], margin: int = 5) -> bool:
    """True if no segment of *path* crosses an obstacle."""
    for i in range(len(path) - 1):
        if segment_hits_any(path[i], path[i + 1], obstacles, margin):
            return False
    return True


def box_hits_any(a: Point, b: Point, obstacles: Sequence[Rect], padding: int = 5) -> bool:
    """Coarse test: the segment's bounding box, thickened by *padding*,
    overlaps an obstacle (strict inequalities)."""
    min_x, max_x = min(a.x, b.x) - padding, max(a.x, b.x) + padding
    min_y, max_y = min(a.y, b.y) - padding, max(a.y, b.y) + padding
    for obs in obstacles:
        if max_x > obs.x and min_x < obs.right and max_y > obs.y and min_y < obs.bottom:
            return True
    return False


def is_orthogonal(path: Sequence[Point]) -> bool:
    """Every consecutive pair of points shares an x or a y coordinate."""
    return all(
        path[i].x == path[i + 1].x or path[i].y == path[i + 1].y
        for i in range(len(path) - 1)
    )
