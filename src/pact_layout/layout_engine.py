"""
Layered layout engine for node/edge diagrams.

Implements the Sugiyama-style pipeline used by the heuristic layouts:
- Layer assignment by repeated source peeling (cycle tolerant)
- Barycenter crossing minimisation with alternating sweeps
- Centred per-layer placement with uniform gaps
- Note placement next to attached elements with collision avoidance

The result types (``PlacedNode``, ``RoutedEdge``, ``PlacedNote``,
``DiagramLayout``) are shared by every diagram kind and by the pattern
path, so that callers always receive the same JSON shape.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence

from pact_layout.geometry import Point, Rect
from pact_layout.models import DiagramGraph, Note, NotePosition

logger = logging.getLogger("pact-layout.engine")


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass
class LayoutEngineConfig:
    """Configuration for the layered layout engine."""
    # Spacing
    layer_gap: int = 60            # Vertical space between layers
    node_gap: int = 40             # Horizontal space between nodes in a layer
    margin: int = 50               # Left/top page margin
    side_padding: int = 100        # Added to the widest layer for the canvas width

    # Canvas floor
    min_width: int = 800
    min_height: int = 600

    # Crossing minimisation tuning
    base_iterations: int = 4       # Sweeps for a trivial graph
    max_iterations: int = 20       # Hard cap on sweeps
    large_graph_nodes: int = 20    # Above this, add one sweep per 10 nodes

    # Notes
    note_width: int = 100
    note_height: int = 40
    note_margin: int = 50          # Clearance kept between a note and the canvas edge
    approx_node_width: int = 120   # Node footprint assumed by note collision checks
    approx_node_height: int = 60


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass
class PlacedNode:
    """A node with its final top-left position and size."""
    id: str
    x: int
    y: int
    width: int
    height: int

    @property
    def rect(self) -> Rect:
        return Rect(self.x, self.y, self.width, self.height)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "x": self.x, "y": self.y,
                "width": self.width, "height": self.height}


@dataclass
class RoutedEdge:
    """A drawn edge: its polyline, label anchor and end decoration."""
    from_id: str
    to_id: str
    points: list[Point] = field(default_factory=list)
    label: str = ""
    label_pos: Point | None = None
    decoration: str = ""
    decorate_source: bool = False
    line_style: str = "solid"
    from_offset: int = 0           # Attachment offset from the source side centre
    to_offset: int = 0

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "from": self.from_id,
            "to": self.to_id,
            "points": [p.to_dict() for p in self.points],
        }
        if self.label:
            d["label"] = self.label
        if self.label_pos is not None:
            d["label_pos"] = self.label_pos.to_dict()
        if self.decoration:
            d["decoration"] = self.decoration
            d["decoration_at"] = "source" if self.decorate_source else "target"
        d["line_style"] = self.line_style
        if self.from_offset or self.to_offset:
            d["attachment"] = {"from": self.from_offset, "to": self.to_offset}
        return d


@dataclass
class PlacedNote:
    text: str
    rect: Rect
    attach_to: str = ""
    connector: list[Point] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"text": self.text, **self.rect.to_dict()}
        if self.attach_to:
            d["attach_to"] = self.attach_to
        if self.connector:
            d["connector"] = [p.to_dict() for p in self.connector]
        return d


@dataclass
class DiagramLayout:
    """Everything a renderer needs to draw one diagram."""
    kind: str
    strategy: str
    width: int
    height: int
    nodes: list[PlacedNode] = field(default_factory=list)
    edges: list[RoutedEdge] = field(default_factory=list)
    notes: list[PlacedNote] = field(default_factory=list)
    pattern: str = ""
    extras: dict[str, Any] = field(default_factory=dict)

    def node(self, node_id: str) -> PlacedNode | None:
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "kind": self.kind,
            "strategy": self.strategy,
            "width": self.width,
            "height": self.height,
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
            "notes": [n.to_dict() for n in self.notes],
        }
        if self.pattern:
            d["pattern"] = self.pattern
        d.update(self.extras)
        return d


# ---------------------------------------------------------------------------
# Layer assignment
# ---------------------------------------------------------------------------

def assign_layers(node_ids: Sequence[str], incoming: Mapping[str, list[str]]) -> list[list[str]]:
    """Peel layers off the graph, one round of ready nodes at a time.

    A node is ready once every predecessor inside *node_ids* has been
    assigned. Nodes keep declaration order within a layer. If a round finds
    no ready node (the rest of the graph is cyclic), all remaining nodes
    are flushed into one final layer so that assignment always terminates.
    """
    node_set = set(node_ids)
    assigned: set[str] = set()
    layers: list[list[str]] = []

    while len(assigned) < len(node_set):
        current = [
            nid for nid in node_ids
            if nid not in assigned
            and all(src not in node_set or src in assigned for src in incoming.get(nid, []))
        ]
        if not current:
            current = [nid for nid in node_ids if nid not in assigned]
            logger.debug("Cycle detected, flushing %d nodes into one layer", len(current))
        assigned.update(current)
        layers.append(current)
    return layers


def layering_violations(
    layers: Sequence[Sequence[str]],
    outgoing: Mapping[str, list[str]],
) -> list[tuple[str, str]]:
    """Edges that do not point to a strictly later layer."""
    layer_of = {nid: i for i, layer in enumerate(layers) for nid in layer}
    bad = []
    for src, targets in outgoing.items():
        for dst in targets:
            if src in layer_of and dst in layer_of and layer_of[dst] <= layer_of[src]:
                bad.append((src, dst))
    return bad


# ---------------------------------------------------------------------------
# Crossing minimisation
# ---------------------------------------------------------------------------

def barycenter_iterations(layers: Sequence[Sequence[str]], cfg: LayoutEngineConfig | None = None) -> int:
    """Number of down/up sweep pairs, scaled with graph size and capped."""
    cfg = cfg or LayoutEngineConfig()
    total = sum(len(layer) for layer in layers)
    iterations = cfg.base_iterations + len(layers) // 2
    if total > cfg.large_graph_nodes:
        iterations += total // 10
    return min(iterations, cfg.max_iterations)


def reorder_layer(
    layer: Sequence[str],
    adjacent_layer: Sequence[str],
    connections: Mapping[str, list[str]],
    positions: Mapping[str, int],
) -> list[str]:
    """Sort *layer* by the mean index of each node's neighbours in *adjacent_layer*.

    Nodes with no neighbour in the adjacent layer keep their current index
    as sort key. The sort is stable, so ties keep their relative order.
    """
    if len(layer) <= 1:
        return list(layer)
    adjacent_pos = {nid: i for i, nid in enumerate(adjacent_layer)}

    def _barycenter(nid: str) -> float:
        hits = [adjacent_pos[c] for c in connections.get(nid, []) if c in adjacent_pos]
        if not hits:
            return float(positions[nid])
        return sum(hits) / len(hits)

    keyed = [(_barycenter(nid), nid) for nid in layer]
    return [nid for _, nid in sorted(keyed, key=lambda kv: kv[0])]


def reduce_crossings(
    layers: Sequence[Sequence[str]],
    incoming: Mapping[str, list[str]],
    outgoing: Mapping[str, list[str]],
    cfg: LayoutEngineConfig | None = None,
) -> list[list[str]]:
    """Barycenter heuristic with alternating downward and upward sweeps.

    Returns new layer lists; the multiset of nodes per layer never changes.
    """
    result = [list(layer) for layer in layers]
    if len(result) <= 1:
        return result

    positions: dict[str, int] = {}
    for layer in result:
        for i, nid in enumerate(layer):
            positions[nid] = i

    for _ in range(barycenter_iterations(result, cfg)):
        for i in range(1, len(result)):
            result[i] = reorder_layer(result[i], result[i - 1], incoming, positions)
            for pos, nid in enumerate(result[i]):
                positions[nid] = pos
        for i in range(len(result) - 2, -1, -1):
            result[i] = reorder_layer(result[i], result[i + 1], outgoing, positions)
            for pos, nid in enumerate(result[i]):
                positions[nid] = pos
    return result


def count_crossings(layers: Sequence[Sequence[str]], outgoing: Mapping[str, list[str]]) -> int:
    """Count pairwise crossings of edges between adjacent layers."""
    total = 0
    for i in range(len(layers) - 1):
        upper = {nid: k for k, nid in enumerate(layers[i])}
        lower = {nid: k for k, nid in enumerate(layers[i + 1])}
        segs = [
            (upper[src], lower[dst])
            for src in layers[i]
            for dst in outgoing.get(src, [])
            if dst in lower
        ]
        for a in range(len(segs)):
            for b in range(a + 1, len(segs)):
                (u1, l1), (u2, l2) = segs[a], segs[b]
                if (u1 - u2) * (l1 - l2) < 0:
                    total += 1
    return total


def layer_graph(graph: DiagramGraph, cfg: LayoutEngineConfig | None = None) -> list[list[str]]:
    """Assign layers and order them for *graph*."""
    incoming, outgoing = graph.layering_adjacency()
    layers = assign_layers(graph.node_ids, incoming)
    return reduce_crossings(layers, incoming, outgoing, cfg)


# ---------------------------------------------------------------------------
# Placement
# ---------------------------------------------------------------------------

def place_layers(
    layers: Sequence[Sequence[str]],
    sizes: Mapping[str, tuple[int, int]],
    cfg: LayoutEngineConfig | None = None,
) -> tuple[dict[str, Rect], int, int]:
    """Centre each layer horizontally and stack layers top to bottom.

    Returns (boxes by node id, canvas width, y just past the last layer).
    """
    cfg = cfg or LayoutEngineConfig()
    layer_widths = []
    layer_heights = []
    for layer in layers:
        widths = [sizes[nid][0] for nid in layer]
        layer_widths.append(sum(widths) + cfg.node_gap * max(0, len(layer) - 1))
        layer_heights.append(max((sizes[nid][1] for nid in layer), default=0))

    canvas_width = max(cfg.min_width, max(layer_widths, default=0) + cfg.side_padding)

    boxes: dict[str, Rect] = {}
    y = cfg.margin
    for i, layer in enumerate(layers):
        x = max(cfg.margin, (canvas_width - layer_widths[i]) // 2)
        for nid in layer:
            w, h = sizes[nid]
            boxes[nid] = Rect(x, y, w, h)
            x += w + cfg.node_gap
        y += layer_heights[i] + cfg.layer_gap
    return boxes, canvas_width, y


# ---------------------------------------------------------------------------
# Notes
# ---------------------------------------------------------------------------

_NOTE_OFFSETS = ((0, 50), (0, -50), (100, 0), (-100, 0), (100, 50), (-100, 50), (0, 100))


def note_anchor_position(
    note: Note,
    anchors: Mapping[str, tuple[int, int]],
    cfg: LayoutEngineConfig | None = None,
) -> tuple[int, int]:
    """Preferred top-left corner of *note* relative to its attached element."""
    cfg = cfg or LayoutEngineConfig()
    if note.attach_to and note.attach_to in anchors:
        x, y = anchors[note.attach_to]
        if note.position is NotePosition.LEFT:
            return x - cfg.note_width - 30, y
        if note.position is NotePosition.TOP:
            return x, y - cfg.note_height - 20
        if note.position is NotePosition.BOTTOM:
            return x, y + 60
        return x + 120, y
    return 600, 50


def _free_note_position(
    x: int,
    y: int,
    occupied: Sequence[Rect],
    node_rects: Sequence[Rect],
    cfg: LayoutEngineConfig,
) -> tuple[int, int]:
    for dx, dy in ((0, 0),) + _NOTE_OFFSETS:
        candidate = Rect(x + dx, y + dy, cfg.note_width, cfg.note_height)
        if not any(candidate.overlaps(r) for r in occupied) and \
                not any(candidate.overlaps(r) for r in node_rects):
            return candidate.x, candidate.y
    return x, y


def place_notes(
    notes: Iterable[Note],
    anchors: Mapping[str, tuple[int, int]],
    cfg: LayoutEngineConfig | None = None,
) -> list[PlacedNote]:
    """Place notes in order, each avoiding earlier notes and node footprints.

    *anchors* maps element ids to the reference point each diagram kind
    uses for its elements. Node footprints are approximated as a fixed box
    at that point.
    """
    cfg = cfg or LayoutEngineConfig()
    node_rects = [Rect(x, y, cfg.approx_node_width, cfg.approx_node_height)
                  for x, y in anchors.values()]
    placed: list[PlacedNote] = []
    for note in notes:
        x, y = note_anchor_position(note, anchors, cfg)
        x, y = _free_note_position(x, y, [p.rect for p in placed], node_rects, cfg)
        rect = Rect(x, y, cfg.note_width, cfg.note_height)
        connector: list[Point] = []
        if note.attach_to and note.attach_to in anchors:
            ax, ay = anchors[note.attach_to]
            connector = [Point(ax + 60, ay + 20), Point(x, y + cfg.note_height // 2)]
        placed.append(PlacedNote(text=note.text, rect=rect,
                                 attach_to=note.attach_to, connector=connector))
    return placed


def canvas_for_notes(
    notes: Iterable[Note],
    anchors: Mapping[str, tuple[int, int]],
    width: int,
    height: int,
    cfg: LayoutEngineConfig | None = None,
) -> tuple[int, int]:
    """Grow (width, height) so every preferred note position fits with margin."""
    cfg = cfg or LayoutEngineConfig()
    for note in notes:
        x, y = note_anchor_position(note, anchors, cfg)
        width = max(width, x + cfg.note_width + cfg.note_margin)
        height = max(height, y + cfg.note_height + cfg.note_margin)
    return width, height
