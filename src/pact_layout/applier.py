"""
Pattern layout applier.

Scales a template's relative positions onto a concrete canvas sized to
the measured content of the matched elements. Application is best
effort: roles without a mapping or without a measured size are left out
of the result rather than reported.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Mapping

from pact_layout.detectors import PatternMatch
from pact_layout.geometry import Path, Point, is_orthogonal, trunc_div
from pact_layout.patterns import (
    CurveStyle,
    EdgePath,
    PatternLayout,
    PatternRegistry,
    PatternType,
)

SEQUENCE_PARTICIPANT_HEIGHT = 60


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass
class NodeLayout:
    id: str
    x: int
    y: int
    width: int
    height: int

    @property
    def center(self) -> Point:
        return Point(self.x + self.width // 2, self.y + self.height // 2)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "x": self.x, "y": self.y,
                "width": self.width, "height": self.height}


@dataclass
class EdgeLayout:
    from_id: str
    to_id: str
    waypoints: list[Point] = field(default_factory=list)
    label_x: int = 0
    label_y: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "from": self.from_id,
            "to": self.to_id,
            "waypoints": [p.to_dict() for p in self.waypoints],
            "labelX": self.label_x,
            "labelY": self.label_y,
        }


@dataclass
class AppliedDecorator:
    type: str
    x: int
    y: int
    width: int
    height: int
    style: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "x": self.x, "y": self.y,
                "width": self.width, "height": self.height, "style": dict(self.style)}


@dataclass
class AppliedLayout:
    """A template scaled onto absolute pixels for one match."""
    pattern: PatternType
    width: int
    height: int
    nodes: list[NodeLayout] = field(default_factory=list)
    edges: list[EdgeLayout] = field(default_factory=list)
    decorators: list[AppliedDecorator] = field(default_factory=list)

    def node(self, node_id: str) -> NodeLayout | None:
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "pattern": self.pattern.value,
            "width": self.width,
            "height": self.height,
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
            "decorators": [d.to_dict() for d in self.decorators],
        }


# ---------------------------------------------------------------------------
# Applier
# ---------------------------------------------------------------------------

def connection_point(node: NodeLayout, toward: Point) -> Point:
    """Point on *node*'s border facing *toward*.

    The side is picked by comparing the approach slope with the node's
    aspect ratio: steeper than the diagonal means top/bottom.
    """
    center = node.center
    if not _faces_vertically(node, toward):
        if toward.x > center.x:
            return Point(node.x + node.width, center.y)
        return Point(node.x, center.y)
    if toward.y > center.y:
        return Point(center.x, node.y + node.height)
    return Point(center.x, node.y)


def _faces_vertically(node: NodeLayout, toward: Point) -> bool:
    center = node.center
    return abs(toward.x - center.x) * node.height <= abs(toward.y - center.y) * node.width


class PatternLayoutApplier:
    """Applies registry templates to pattern matches."""

    def __init__(self, registry: PatternRegistry) -> None:
        self._registry = registry

    def apply(
        self,
        match: PatternMatch,
        widths: Mapping[str, int],
        heights: Mapping[str, int],
        canvas_size: tuple[int, int] | None = None,
    ) -> AppliedLayout | None:
        """Apply the template for *match*; None if the registry lacks it.

        With an explicit *canvas_size* the content-driven growth is skipped.
        """
        template = self._registry.get(match.pattern, match.roles)
        if template is None:
            return None
        if canvas_size is None:
            width, height = self.calculate_canvas_size(template, match.roles, widths, heights)
        else:
            width, height = canvas_size

        nodes = self._place_nodes(template, match.roles, widths, heights, width, height)
        edges = self._place_edges(template, match.roles, nodes, width, height)
        decorators = [
            AppliedDecorator(
                type=d.type,
                x=int(d.x * width),
                y=int(d.y * height),
                width=int(d.width * width),
                height=int(d.height * height),
                style=dict(d.style),
            )
            for d in template.decorators
        ]
        return AppliedLayout(match.pattern, width, height, nodes, edges, decorators)

    def apply_sequence(
        self,
        match: PatternMatch,
        widths: Mapping[str, int],
        canvas_size: tuple[int, int] | None = None,
    ) -> AppliedLayout | None:
        """Sequence templates only place participant headers: fixed height, no decorators."""
        heights = {pid: SEQUENCE_PARTICIPANT_HEIGHT for pid in widths}
        applied = self.apply(match, widths, heights, canvas_size)
        if applied is not None:
            applied.decorators = []
        return applied

    @staticmethod
    def calculate_canvas_size(
        template: PatternLayout,
        roles: Mapping[str, str],
        widths: Mapping[str, int],
        heights: Mapping[str, int],
    ) -> tuple[int, int]:
        """Smallest canvas where each role's content fits its relative slot, plus padding.

        The padded canvas is then grown until every box fits around its
        centre, so roles near an edge stay inside the canvas.
        """
        width, height = template.min_width, template.min_height
        extents = []
        for role, element_id in roles.items():
            if element_id not in widths or element_id not in heights:
                continue
            pos = template.position(role)
            if pos is None:
                continue
            w, h = widths[element_id], heights[element_id]
            if pos.width > 0:
                width = max(width, int(w / pos.width))
            if pos.height > 0:
                height = max(height, int(h / pos.height))
            extents.append((pos, w, h))

        width += 2 * template.padding
        height += 2 * template.padding
        for pos, w, h in extents:
            width = max(width, _span_for(w, pos.x))
            height = max(height, _span_for(h, pos.y))
        return width, height

    @staticmethod
    def _place_nodes(
        template: PatternLayout,
        roles: Mapping[str, str],
        widths: Mapping[str, int],
        heights: Mapping[str, int],
        canvas_width: int,
        canvas_height: int,
    ) -> list[NodeLayout]:
        nodes = []
        for role, element_id in roles.items():
            pos = template.position(role)
            if pos is None or element_id not in widths or element_id not in heights:
                continue
            w, h = widths[element_id], heights[element_id]
            cx = int(pos.x * canvas_width)
            cy = int(pos.y * canvas_height)
            x = min(max(cx - w // 2, 0), max(canvas_width - w, 0))
            y = min(max(cy - h // 2, 0), max(canvas_height - h, 0))
            nodes.append(NodeLayout(element_id, x, y, w, h))
        return nodes

    @staticmethod
    def _place_edges(
        template: PatternLayout,
        roles: Mapping[str, str],
        nodes: list[NodeLayout],
        canvas_width: int,
        canvas_height: int,
    ) -> list[EdgeLayout]:
        by_id = {n.id: n for n in nodes}
        edges = []
        for edge in template.edges:
            src = by_id.get(roles.get(edge.from_role, ""))
            dst = by_id.get(roles.get(edge.to_role, ""))
            if src is None or dst is None:
                continue
            edges.append(EdgeLayout(
                from_id=src.id,
                to_id=dst.id,
                waypoints=_edge_waypoints(edge, src, dst, canvas_width, canvas_height),
                label_x=int(edge.label_pos.x * canvas_width),
                label_y=int(edge.label_pos.y * canvas_height),
            ))
        return edges


def _span_for(size: int, centre: float) -> int:
    """Canvas length on which a box of *size* centred at *centre* fits both sides."""
    room = min(centre, 1.0 - centre)
    if room <= 0:
        return size
    return math.ceil(size / (2 * room)) + 1


def _edge_waypoints(
    edge: EdgePath,
    src: NodeLayout,
    dst: NodeLayout,
    canvas_width: int,
    canvas_height: int,
) -> list[Point]:
    src_center, dst_center = src.center, dst.center
    if edge.curve is CurveStyle.ORTHOGONAL:
        bends = [Point(int(w.x * canvas_width), int(w.y * canvas_height)) for w in edge.waypoints]
        first = bends[0] if bends else dst_center
        last = bends[-1] if bends else src_center
        path = [connection_point(src, first), *bends, connection_point(dst, last)]
        return _squared(path, _faces_vertically(src, first), _faces_vertically(dst, last))

    points = [connection_point(src, dst_center)]
    if edge.curve is CurveStyle.CURVED:
        points.append(Point(trunc_div(src_center.x + dst_center.x, 2),
                            trunc_div(src_center.y + dst_center.y, 2)))
    points.append(connection_point(dst, src_center))
    return points


def _squared(points: Path, leaves_vertically: bool, enters_vertically: bool) -> Path:
    """Insert an elbow wherever two consecutive points are not aligned.

    The first leg keeps the direction of the side it leaves from and the
    last leg arrives perpendicular to the side it enters.
    """
    if is_orthogonal(points):
        return points
    squared = [points[0]]
    for i in range(1, len(points)):
        a, b = squared[-1], points[i]
        if a.x != b.x and a.y != b.y:
            if i == 1:
                vertical_first = leaves_vertically
            elif i == len(points) - 1:
                vertical_first = not enters_vertically
            else:
                vertical_first = True
            squared.append(Point(a.x, b.y) if vertical_first else Point(b.x, a.y))
        squared.append(b)
    return squared
