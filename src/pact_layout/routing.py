"""
Obstacle-aware orthogonal edge routing.

Every routed path is a list of points whose consecutive segments are
horizontal or vertical. Routers try progressively longer shapes and take
the first one that clears every obstacle:

  straight -> Z (both orientations) -> U around all obstacles
  -> 5-segment bypass -> unchecked Z through the midpoint

Also provides the connection-point distributor, the vertical-first
variant used for child -> parent edges and the coarser router used for
state transitions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence

from pact_layout.geometry import (
    Path,
    Point,
    Rect,
    box_hits_any,
    path_is_clear,
    segment_hits_any,
    trunc_div,
    union_bounds,
)
from pact_layout.text import text_width

logger = logging.getLogger("pact-layout.routing")


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass
class RoutingConfig:
    """Tuning knobs for the routers."""
    obstacle_margin: int = 5       # Clearance added around every obstacle
    bypass_margin: int = 20        # Gap between a U/5-segment detour and the obstacle group
    # Extra Z candidates after the midpoint, as fractions of the span
    z_fractions: tuple[tuple[int, int], ...] = ((1, 4), (3, 4), (1, 3), (2, 3))

    # Vertical-first (child -> parent) routing
    vertical_edge_margin: int = 15  # Closest a Z bend may get to either endpoint
    vertical_port_spread: float = 0.5
    horizontal_port_spread: float = 0.4

    # State transitions
    state_padding: int = 5
    state_detour: int = 30
    self_loop_size: int = 30
    label_height: int = 15
    label_offsets: tuple[tuple[int, int], ...] = (
        (0, 0), (0, -20), (0, 20), (30, 0), (-30, 0), (30, -15), (-30, -15),
    )


# ---------------------------------------------------------------------------
# Orthogonal router
# ---------------------------------------------------------------------------

def _z_candidates(a: int, b: int, cfg: RoutingConfig) -> list[int]:
    candidates = [trunc_div(a + b, 2)]
    for num, den in cfg.z_fractions:
        candidates.append(a + trunc_div((b - a) * num, den))
    return candidates


def _first_clear(paths: Iterable[Path], obstacles: Sequence[Rect], margin: int) -> Path | None:
    for path in paths:
        if path_is_clear(path, obstacles, margin):
            return path
    return None


def _vhv_paths(start: Point, end: Point, cfg: RoutingConfig) -> list[Path]:
    return [[start, Point(start.x, y), Point(end.x, y), end]
            for y in _z_candidates(start.y, end.y, cfg)]


def _hvh_paths(start: Point, end: Point, cfg: RoutingConfig) -> list[Path]:
    return [[start, Point(x, start.y), Point(x, end.y), end]
            for x in _z_candidates(start.x, end.x, cfg)]


def route_orthogonal(
    start: Point,
    end: Point,
    obstacles: Sequence[Rect],
    cfg: RoutingConfig | None = None,
) -> Path:
    """Route from *start* to *end* around *obstacles*.

    Always returns a path; only the last-resort midpoint Z is accepted
    without an obstacle check.
    """
    cfg = cfg or RoutingConfig()
    margin = cfg.obstacle_margin

    if start.x == end.x or start.y == end.y:
        if not segment_hits_any(start, end, obstacles, margin):
            return [start, end]

    vhv = _vhv_paths(start, end, cfg)
    hvh = _hvh_paths(start, end, cfg)
    if abs(end.y - start.y) > abs(end.x - start.x):
        z_order = vhv + hvh
    else:
        z_order = hvh + vhv
    path = _first_clear(z_order, obstacles, margin)
    if path is not None:
        return path

    bounds = union_bounds(obstacles)
    if bounds is not None:
        zone = bounds.expanded(cfg.bypass_margin)
        top, bottom, left, right = zone.y, zone.bottom, zone.x, zone.right

        u_shapes = [
            [start, Point(start.x, top), Point(end.x, top), end],
            [start, Point(start.x, bottom), Point(end.x, bottom), end],
            [start, Point(left, start.y), Point(left, end.y), end],
            [start, Point(right, start.y), Point(right, end.y), end],
        ]
        path = _first_clear(u_shapes, obstacles, margin)
        if path is not None:
            return path

        bypasses = [
            [start, Point(start.x, by), Point(bx, by), Point(bx, end.y), end]
            for by in (top, bottom)
            for bx in (left, right)
        ]
        path = _first_clear(bypasses, obstacles, margin)
        if path is not None:
            return path

    mid_y = trunc_div(start.y + end.y, 2)
    logger.debug("No clear route from %s to %s, using midpoint fallback", start, end)
    return [start, Point(start.x, mid_y), Point(end.x, mid_y), end]


def is_fallback_route(path: Sequence[Point], obstacles: Sequence[Rect],
                      cfg: RoutingConfig | None = None) -> bool:
    """True when *path* crosses an obstacle, i.e. came from the unchecked fallback."""
    cfg = cfg or RoutingConfig()
    return not path_is_clear(path, obstacles, cfg.obstacle_margin)


def route_self_loop(box: Rect, cfg: RoutingConfig | None = None) -> Path:
    """Loop leaving *box*'s right side and coming back down onto its top centre."""
    cfg = cfg or RoutingConfig()
    out_x = box.right + cfg.self_loop_size
    over_y = box.y - cfg.self_loop_size
    return [
        Point(box.right, box.cy),
        Point(out_x, box.cy),
        Point(out_x, over_y),
        Point(box.cx, over_y),
        Point(box.cx, box.y),
    ]


# ---------------------------------------------------------------------------
# Vertical-first variant
# ---------------------------------------------------------------------------

def _z_is_clear(start: Point, end: Point, mid_y: int, obstacles: Sequence[Rect], margin: int) -> bool:
    path = [start, Point(start.x, mid_y), Point(end.x, mid_y), end]
    return path_is_clear(path, obstacles, margin)


def find_safe_vertical_mid_y(
    start: Point,
    end: Point,
    obstacles: Sequence[Rect],
    cfg: RoutingConfig | None = None,
) -> int:
    """Pick the Y of the horizontal leg of a vertical-horizontal-vertical Z.

    Ranked candidates: the midpoint, points just inside either end, the
    quarter and third fractions of the span, then just above or below the
    obstacle group. Falls back to the unchecked midpoint.
    """
    cfg = cfg or RoutingConfig()
    margin = cfg.obstacle_margin
    mid_y = trunc_div(start.y + end.y, 2)
    if _z_is_clear(start, end, mid_y, obstacles, margin):
        return mid_y

    lo, hi = min(start.y, end.y), max(start.y, end.y)
    span = hi - lo
    candidates = [
        lo + cfg.vertical_edge_margin,
        hi - cfg.vertical_edge_margin,
        lo + span // 4,
        lo + span * 3 // 4,
        lo + span // 3,
        lo + span * 2 // 3,
    ]
    for y in candidates:
        if y <= lo or y >= hi:
            continue
        if _z_is_clear(start, end, y, obstacles, margin):
            return y

    bounds = union_bounds(obstacles)
    if bounds is not None:
        for y in (bounds.y - cfg.bypass_margin, bounds.bottom + cfg.bypass_margin):
            if _z_is_clear(start, end, y, obstacles, margin):
                return y
    return mid_y


def route_vertical_edge(
    source: Rect,
    target: Rect,
    in_index: int,
    in_total: int,
    obstacles: Sequence[Rect],
    cfg: RoutingConfig | None = None,
) -> tuple[Path, int]:
    """Route a child -> parent edge from the source top to the target bottom.

    The target attachment is spread across the target's bottom side when
    several such edges arrive there. Returns (path, target offset).
    """
    cfg = cfg or RoutingConfig()
    to_offset = distribute_offset(target.width, in_index, in_total, cfg.vertical_port_spread)
    start = Point(source.cx, source.y)
    end = Point(target.cx + to_offset, target.bottom)

    if start.x == end.x:
        if not segment_hits_any(start, end, obstacles, cfg.obstacle_margin):
            return [start, end], to_offset
        return route_orthogonal(start, end, obstacles, cfg), to_offset

    mid_y = find_safe_vertical_mid_y(start, end, obstacles, cfg)
    return [start, Point(start.x, mid_y), Point(end.x, mid_y), end], to_offset


# ---------------------------------------------------------------------------
# Connection-point distribution
# ---------------------------------------------------------------------------

def distribute_offset(length: int, index: int, total: int, fraction: float = 0.5) -> int:
    """Offset from the side's centre for the *index*-th of *total* edges.

    Offsets are symmetric around zero and span at most *fraction* of
    *length*. A single edge attaches at the centre.
    """
    if total <= 1:
        return 0
    spread = int(length * fraction)
    return trunc_div((2 * index - (total - 1)) * spread, 2 * (total - 1))


def distributed_endpoints(
    source: Rect,
    target: Rect,
    out_index: int,
    out_total: int,
    in_index: int,
    in_total: int,
    cfg: RoutingConfig | None = None,
) -> tuple[Point, Point, int, int]:
    """Attachment points for an edge, fanned out across the facing sides.

    When the centres differ more vertically than horizontally, the edge
    leaves the source bottom (or top) and enters the target top (or
    bottom); otherwise it uses the left/right sides. Returns
    (start, end, source offset, target offset).
    """
    cfg = cfg or RoutingConfig()
    dx = target.cx - source.cx
    dy = target.cy - source.cy

    if abs(dy) > abs(dx):
        from_off = distribute_offset(source.width, out_index, out_total, cfg.vertical_port_spread)
        to_off = distribute_offset(target.width, in_index, in_total, cfg.vertical_port_spread)
        if dy > 0:
            start = Point(source.cx + from_off, source.bottom)
            end = Point(target.cx + to_off, target.y)
        else:
            start = Point(source.cx + from_off, source.y)
            end = Point(target.cx + to_off, target.bottom)
        return start, end, from_off, to_off

    from_off = distribute_offset(source.height, out_index, out_total, cfg.horizontal_port_spread)
    to_off = distribute_offset(target.height, in_index, in_total, cfg.horizontal_port_spread)
    if dx > 0:
        start = Point(source.right, source.cy + from_off)
        end = Point(target.x, target.cy + to_off)
    else:
        start = Point(source.x, source.cy + from_off)
        end = Point(target.right, target.cy + to_off)
    return start, end, from_off, to_off


def collect_obstacles(boxes: Mapping[str, Rect], exclude: Iterable[str]) -> list[Rect]:
    """Every box except the excluded ids, in mapping order."""
    skip = set(exclude)
    return [box for nid, box in boxes.items() if nid not in skip]


# ---------------------------------------------------------------------------
# State transitions
# ---------------------------------------------------------------------------

def centered_rect(center: Point, width: int, height: int) -> Rect:
    return Rect(center.x - width // 2, center.y - height // 2, width, height)


def state_obstacles(node_bounds: Sequence[Rect], source: Rect, target: Rect) -> list[Rect]:
    """Node boxes that overlap neither endpoint box."""
    return [b for b in node_bounds if not b.overlaps(source) and not b.overlaps(target)]


def route_state_waypoints(
    start: Point,
    end: Point,
    obstacles: Sequence[Rect],
    cfg: RoutingConfig | None = None,
) -> Path:
    """Coarse router: straight, L (both corners), Z, then a detour above or below."""
    cfg = cfg or RoutingConfig()
    pad = cfg.state_padding

    def _clear(*points: Point) -> bool:
        return not any(box_hits_any(points[i], points[i + 1], obstacles, pad)
                       for i in range(len(points) - 1))

    if (start.x == end.x or start.y == end.y) and _clear(start, end):
        return [start, end]

    corner = Point(start.x, end.y)
    if _clear(start, corner, end):
        return [start, corner, end]
    corner = Point(end.x, start.y)
    if _clear(start, corner, end):
        return [start, corner, end]

    mid_y = trunc_div(start.y + end.y, 2)
    mid1, mid2 = Point(start.x, mid_y), Point(end.x, mid_y)
    if _clear(start, mid1, mid2, end):
        return [start, mid1, mid2, end]

    top = min([start.y] + [o.y for o in obstacles]) - cfg.state_detour
    if top > 0:
        return [start, Point(start.x, top), Point(end.x, top), end]
    bottom = max([start.y] + [o.bottom for o in obstacles]) + cfg.state_detour
    return [start, Point(start.x, bottom), Point(end.x, bottom), end]


def path_midpoint(path: Sequence[Point]) -> Point:
    """Midpoint of the path's middle segment."""
    if len(path) < 2:
        return Point(0, 0)
    i = len(path) // 2
    a, b = path[i - 1], path[i]
    return Point(trunc_div(a.x + b.x, 2), trunc_div(a.y + b.y, 2))


def route_state_transition(
    source_center: Point,
    source_size: tuple[int, int],
    target_center: Point,
    target_size: tuple[int, int],
    node_bounds: Sequence[Rect],
    cfg: RoutingConfig | None = None,
) -> tuple[Path, Point]:
    """Route a transition between two centred state boxes.

    Returns (path, label anchor). A transition onto its own state becomes
    a small loop above the box's right side.
    """
    cfg = cfg or RoutingConfig()
    sw, sh = source_size
    tw, th = target_size
    dx = target_center.x - source_center.x
    dy = target_center.y - source_center.y

    if dx == 0 and dy == 0:
        loop = cfg.self_loop_size
        start = Point(source_center.x + sw // 2, source_center.y)
        end = Point(source_center.x, source_center.y - sh // 2 - 10)
        path = [
            start,
            Point(start.x + loop, start.y),
            Point(start.x + loop, start.y - loop),
            Point(end.x, start.y - loop),
            end,
        ]
        return path, Point(start.x + loop // 2, start.y - loop // 2)

    obstacles = state_obstacles(
        node_bounds,
        centered_rect(source_center, sw, sh),
        centered_rect(target_center, tw, th),
    )
    if abs(dx) > abs(dy):
        if dx > 0:
            start = Point(source_center.x + sw // 2, source_center.y)
            end = Point(target_center.x - tw // 2, target_center.y)
        else:
            start = Point(source_center.x - sw // 2, source_center.y)
            end = Point(target_center.x + tw // 2, target_center.y)
    else:
        if dy > 0:
            start = Point(source_center.x, source_center.y + sh // 2)
            end = Point(target_center.x, target_center.y - th // 2)
        else:
            start = Point(source_center.x, source_center.y - sh // 2)
            end = Point(target_center.x, target_center.y + th // 2)

    path = route_state_waypoints(start, end, obstacles, cfg)
    return path, path_midpoint(path)


def find_safe_label_position(
    x: int,
    y: int,
    label: str,
    node_bounds: Sequence[Rect],
    cfg: RoutingConfig | None = None,
) -> Point:
    """Nudge a centred label until it clears every node box.

    Falls back to 30px above the requested anchor.
    """
    cfg = cfg or RoutingConfig()
    width = text_width(label)
    for ox, oy in cfg.label_offsets:
        tx, ty = x + ox, y + oy
        box = Rect(tx - width // 2, ty - cfg.label_height, width, cfg.label_height)
        if not any(box.overlaps(b) for b in node_bounds):
            return Point(tx, ty)
    return Point(x, y - 30)
