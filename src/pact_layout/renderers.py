"""
Per-kind layout consumers.

Each ``*_layout`` function turns one diagram model into a
``DiagramLayout``: node boxes, routed edges, placed notes and whatever
kind-specific geometry a drawing layer needs (activation bars, fragment
frames, swimlanes ...). ``plan_layout`` chooses between these heuristic
layouts and a detected pattern template.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from pact_layout.applier import AppliedLayout, PatternLayoutApplier
from pact_layout.detectors import PatternMatch, best_match, detect_patterns
from pact_layout.geometry import Path, Point, Rect, trunc_div
from pact_layout.layout_engine import (
    DiagramLayout,
    LayoutEngineConfig,
    PlacedNode,
    RoutedEdge,
    canvas_for_notes,
    layer_graph,
    place_layers,
    place_notes,
)
from pact_layout.models import (
    HIERARCHY_EDGE_TYPES,
    ActivationEvent,
    ClassDiagram,
    ClassEdge,
    Decoration,
    Diagram,
    DiagramGraph,
    Event,
    FlowDiagram,
    FragmentEvent,
    FragmentType,
    GraphEdge,
    GraphNode,
    MessageEvent,
    MessageType,
    NodeShape,
    NoteEvent,
    SequenceDiagram,
    State,
    StateDiagram,
    StateType,
    messages_of,
)
from pact_layout.patterns import PatternRegistry, PatternType
from pact_layout.routing import (
    RoutingConfig,
    centered_rect,
    collect_obstacles,
    distributed_endpoints,
    find_safe_label_position,
    route_orthogonal,
    route_self_loop,
    route_state_transition,
    route_vertical_edge,
)
from pact_layout.text import (
    PSEUDO_FINAL_SIZE,
    PSEUDO_INITIAL_SIZE,
    class_node_size,
    flow_node_size,
    participant_size,
    state_size,
    text_width,
    transition_label,
)

logger = logging.getLogger("pact-layout.engine")

STRATEGIES = ("auto", "heuristic", "pattern")


# ---------------------------------------------------------------------------
# Graph view and sizes
# ---------------------------------------------------------------------------

def node_sizes(diagram: Diagram) -> dict[str, tuple[int, int]]:
    """Measured (width, height) of every element, in declaration order."""
    if isinstance(diagram, ClassDiagram):
        return {n.id: class_node_size(n) for n in diagram.nodes}
    if isinstance(diagram, StateDiagram):
        return {s.id: _state_box_size(s) for s in diagram.states}
    if isinstance(diagram, FlowDiagram):
        return {n.id: flow_node_size(n) for n in diagram.nodes}
    return {p.id: participant_size(p) for p in diagram.participants}


def graph_for(diagram: Diagram) -> DiagramGraph:
    """Kind-neutral node/edge view used for layering."""
    sizes = node_sizes(diagram)
    nodes = [GraphNode(nid, w, h) for nid, (w, h) in sizes.items()]
    if isinstance(diagram, ClassDiagram):
        edges = [GraphEdge(e.from_id, e.to_id, e.type.value) for e in diagram.edges]
    elif isinstance(diagram, StateDiagram):
        edges = [GraphEdge(t.from_id, t.to_id, "transition") for t in diagram.transitions]
    elif isinstance(diagram, FlowDiagram):
        edges = [GraphEdge(e.from_id, e.to_id, "flow") for e in diagram.edges]
    else:
        edges = [GraphEdge(m.from_id, m.to_id, m.message_type.value)
                 for m in messages_of(diagram.events)]
    return DiagramGraph(nodes, edges)


def _state_box_size(state: State) -> tuple[int, int]:
    if state.type is StateType.INITIAL:
        return PSEUDO_INITIAL_SIZE, PSEUDO_INITIAL_SIZE
    if state.type is StateType.FINAL:
        return PSEUDO_FINAL_SIZE, PSEUDO_FINAL_SIZE
    return state_size(state)


def _with_notes(
    layout: DiagramLayout,
    diagram: Diagram,
    anchors: dict[str, tuple[int, int]],
    cfg: LayoutEngineConfig,
    grow: bool = True,
) -> DiagramLayout:
    if diagram.notes:
        if grow:
            layout.width, layout.height = canvas_for_notes(
                diagram.notes, anchors, layout.width, layout.height, cfg)
        layout.notes = place_notes(diagram.notes, anchors, cfg)
    return layout


# ---------------------------------------------------------------------------
# Class diagrams
# ---------------------------------------------------------------------------

def class_layout(
    diagram: ClassDiagram,
    engine_cfg: LayoutEngineConfig | None = None,
    routing_cfg: RoutingConfig | None = None,
) -> DiagramLayout:
    """Layered placement, then distributed and obstacle-aware edge routing."""
    ecfg = engine_cfg or LayoutEngineConfig()
    rcfg = routing_cfg or RoutingConfig()

    graph = graph_for(diagram)
    layers = layer_graph(graph, ecfg)
    placed, width, y_end = place_layers(layers, graph.sizes(), ecfg)
    boxes = {nid: placed[nid] for nid in graph.node_ids}
    height = max(ecfg.min_height, y_end + ecfg.margin)

    layout = DiagramLayout(
        kind="class",
        strategy="heuristic",
        width=width,
        height=height,
        nodes=[PlacedNode(nid, b.x, b.y, b.width, b.height) for nid, b in boxes.items()],
        edges=_route_class_edges(diagram, boxes, rcfg),
        extras={"layers": layers},
    )
    anchors = {nid: (b.x, b.y) for nid, b in boxes.items()}
    return _with_notes(layout, diagram, anchors, ecfg)


def _route_class_edges(diagram: ClassDiagram, boxes: dict[str, Rect], cfg: RoutingConfig) -> list[RoutedEdge]:
    edges = [e for e in diagram.edges if e.from_id in boxes and e.to_id in boxes]

    out_total: dict[str, int] = {}
    in_total: dict[str, int] = {}
    for e in edges:
        if e.from_id == e.to_id:
            continue
        out_total[e.from_id] = out_total.get(e.from_id, 0) + 1
        in_total[e.to_id] = in_total.get(e.to_id, 0) + 1
    out_seen: dict[str, int] = {}
    in_seen: dict[str, int] = {}

    routed = []
    for e in edges:
        if e.from_id == e.to_id:
            path = route_self_loop(boxes[e.from_id], cfg)
            from_offset = to_offset = 0
        else:
            path, from_offset, to_offset = _route_class_edge(
                e, boxes, out_seen, in_seen, out_total, in_total, cfg)

        label_pos = None
        if e.label:
            first, last = path[0], path[-1]
            label_pos = Point(trunc_div(first.x + last.x, 2), trunc_div(first.y + last.y, 2) - 5)

        decoration = "" if e.decoration is Decoration.NONE else e.decoration.value
        routed.append(RoutedEdge(
            from_id=e.from_id,
            to_id=e.to_id,
            points=path,
            label=e.label,
            label_pos=label_pos,
            decoration=decoration,
            decorate_source=e.decoration in (Decoration.FILLED_DIAMOND, Decoration.EMPTY_DIAMOND),
            line_style=e.line_style.value,
            from_offset=from_offset,
            to_offset=to_offset,
        ))
    return routed


def _route_class_edge(
    e: ClassEdge,
    boxes: dict[str, Rect],
    out_seen: dict[str, int],
    in_seen: dict[str, int],
    out_total: dict[str, int],
    in_total: dict[str, int],
    cfg: RoutingConfig,
) -> tuple[Path, int, int]:
    """Route one edge between two distinct boxes; returns (path, from offset, to offset)."""
    src, dst = boxes[e.from_id], boxes[e.to_id]
    out_index = out_seen.get(e.from_id, 0)
    in_index = in_seen.get(e.to_id, 0)
    out_seen[e.from_id] = out_index + 1
    in_seen[e.to_id] = in_index + 1
    obstacles = collect_obstacles(boxes, (e.from_id, e.to_id))

    if e.type in HIERARCHY_EDGE_TYPES:
        path, to_offset = route_vertical_edge(
            src, dst, in_index, in_total[e.to_id], obstacles, cfg)
        return path, 0, to_offset
    start, end, from_offset, to_offset = distributed_endpoints(
        src, dst, out_index, out_total[e.from_id], in_index, in_total[e.to_id], cfg)
    return route_orthogonal(start, end, obstacles, cfg), from_offset, to_offset


# ---------------------------------------------------------------------------
# State diagrams
# ---------------------------------------------------------------------------

STATE_COLUMNS = 3
STATE_COLUMN_MIN = 100
STATE_COLUMN_GAP = 40
STATE_MARGIN = 50
STATE_INITIAL_Y = 50
STATE_START_Y = 120
STATE_ROW_STEP = 120
STATE_FINAL_SPACING = 150
STATE_LABEL_STACK = 15


def state_layout(
    diagram: StateDiagram,
    engine_cfg: LayoutEngineConfig | None = None,
    routing_cfg: RoutingConfig | None = None,
) -> DiagramLayout:
    """Three-column grid with the initial marker above and final markers below."""
    ecfg = engine_cfg or LayoutEngineConfig()
    rcfg = routing_cfg or RoutingConfig()

    initial = next((s for s in diagram.states if s.type is StateType.INITIAL), None)
    finals = [s for s in diagram.states if s.type is StateType.FINAL]
    regular = [s for s in diagram.states if s is not initial and s.type is not StateType.FINAL]

    sizes: dict[str, tuple[int, int]] = {}
    for s in regular:
        sizes[s.id] = state_size(s)

    col_widths = [0] * STATE_COLUMNS
    for i, s in enumerate(regular):
        col = i % STATE_COLUMNS
        col_widths[col] = max(col_widths[col], sizes[s.id][0])
    col_centers = []
    x = STATE_MARGIN
    for w in col_widths:
        w = max(w, STATE_COLUMN_MIN)
        col_centers.append(x + w // 2)
        x += w + STATE_COLUMN_GAP

    rows = (len(regular) + STATE_COLUMNS - 1) // STATE_COLUMNS
    width = max(ecfg.min_width, x + STATE_MARGIN)
    height = 100 + rows * STATE_ROW_STEP + 100 + (80 if finals else 0)
    height = max(ecfg.min_height, height)

    centers: dict[str, Point] = {}
    if initial is not None:
        centers[initial.id] = Point(col_centers[0], STATE_INITIAL_Y)
        sizes[initial.id] = (PSEUDO_INITIAL_SIZE, PSEUDO_INITIAL_SIZE)
    for i, s in enumerate(regular):
        row, col = divmod(i, STATE_COLUMNS)
        centers[s.id] = Point(col_centers[col], STATE_START_Y + row * STATE_ROW_STEP)
    final_y = STATE_START_Y + rows * STATE_ROW_STEP + 40
    for i, s in enumerate(finals):
        centers[s.id] = Point(col_centers[0] + i * STATE_FINAL_SPACING, final_y)
        sizes[s.id] = (PSEUDO_FINAL_SIZE, PSEUDO_FINAL_SIZE)

    node_bounds = [centered_rect(c, *sizes[sid]) for sid, c in centers.items()]

    edges = []
    stacked: dict[tuple[Point, Point], int] = {}
    for t in diagram.transitions:
        if t.from_id not in centers or t.to_id not in centers:
            continue
        src, dst = centers[t.from_id], centers[t.to_id]
        offset = stacked.get((src, dst), 0)
        stacked[(src, dst)] = offset + STATE_LABEL_STACK

        path, mid = route_state_transition(src, sizes[t.from_id], dst, sizes[t.to_id], node_bounds, rcfg)
        label = transition_label(t)
        label_pos = None
        if label:
            label_pos = find_safe_label_position(mid.x, mid.y - 5 - offset, label, node_bounds, rcfg)
        edges.append(RoutedEdge(t.from_id, t.to_id, path, label, label_pos, decoration="arrow"))

    nodes = []
    for sid, c in centers.items():
        box = centered_rect(c, *sizes[sid])
        nodes.append(PlacedNode(sid, box.x, box.y, box.width, box.height))

    compartments = [
        _state_compartment(s, centers[s.id], sizes[s.id]) for s in regular
        if (s.type is StateType.COMPOUND and s.children)
        or (s.type is StateType.PARALLEL and s.regions)
    ]
    layout = DiagramLayout("state", "heuristic", width, height, nodes, edges)
    if compartments:
        layout.extras["compartments"] = compartments
    anchors = {sid: (c.x, c.y) for sid, c in centers.items()}
    return _with_notes(layout, diagram, anchors, ecfg)


def _state_compartment(state: State, center: Point, size: tuple[int, int]) -> dict[str, Any]:
    """Inner geometry of a compound (child grid) or parallel (regions) state."""
    width = size[0]
    left = center.x - width // 2
    if state.type is StateType.COMPOUND:
        children = []
        for i, child in enumerate(state.children):
            row, col = divmod(i, 2)
            cx = left + 50 + col * 90
            cy = center.y + 30 + row * 50
            children.append({"id": child.id, **Rect(cx - 35, cy - 15, 70, 30).to_dict()})
        return {"state": state.id, "children": children}

    regions = []
    for i, region in enumerate(state.regions):
        rx = left + 10 + i * 100 + 50
        shown = []
        y = center.y + 55
        for child in region.states[:2]:
            shown.append({"id": child.id, **Rect(rx - 30, y - 10, 60, 20).to_dict()})
            y += 25
        regions.append({
            "name": region.name,
            "x": rx,
            "states": shown,
            "truncated": len(region.states) > 2,
        })
    return {"state": state.id, "regions": regions}


# ---------------------------------------------------------------------------
# Sequence diagrams
# ---------------------------------------------------------------------------

PARTICIPANT_TOP = 50
PARTICIPANT_START_X = 50
PARTICIPANT_GAP = 30
MESSAGE_START_Y = 120
MESSAGE_STEP = 40
NOTE_EVENT_STEP = 30
LIFELINE_MIN_END = 500
ACTIVATION_WIDTH = 10


@dataclass
class Activation:
    participant: str
    x: int
    start_y: int
    end_y: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "participant": self.participant,
            **Rect(self.x - ACTIVATION_WIDTH // 2, self.start_y,
                   ACTIVATION_WIDTH, self.end_y - self.start_y).to_dict(),
        }


@dataclass
class FragmentFrame:
    type: str
    label: str
    rect: Rect
    alt_label: str = ""
    separator_y: int | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"type": self.type, "label": self.label, **self.rect.to_dict()}
        if self.separator_y is not None:
            d["separator_y"] = self.separator_y
            d["alt_label"] = self.alt_label
        return d


@dataclass
class _SequenceTrace:
    """Accumulates geometry while walking (possibly nested) events."""
    y: int
    frame_width: int
    centers: dict[str, int]
    edges: list[RoutedEdge] = field(default_factory=list)
    activations: list[Activation] = field(default_factory=list)
    fragments: list[FragmentFrame] = field(default_factory=list)
    event_notes: list[dict[str, Any]] = field(default_factory=list)


def sequence_layout(
    diagram: SequenceDiagram,
    engine_cfg: LayoutEngineConfig | None = None,
) -> DiagramLayout:
    """Participants left to right; events stacked top to bottom."""
    ecfg = engine_cfg or LayoutEngineConfig()

    nodes = []
    centers: dict[str, int] = {}
    x = PARTICIPANT_START_X
    for p in diagram.participants:
        w, h = participant_size(p)
        centers[p.id] = x + w // 2
        nodes.append(PlacedNode(p.id, x, PARTICIPANT_TOP, w, h))
        x += w + PARTICIPANT_GAP
    width = max(ecfg.min_width, x + 50)

    trace = _SequenceTrace(MESSAGE_START_Y, max(700, width - 100), centers)
    _walk_events(diagram.events, trace)
    height = max(ecfg.min_height, trace.y + ecfg.margin)

    lifeline_end = max(LIFELINE_MIN_END, trace.y)
    layout = DiagramLayout(
        kind="sequence",
        strategy="heuristic",
        width=width,
        height=height,
        nodes=nodes,
        edges=trace.edges,
        extras={
            "lifelines": [{"participant": pid, "x": cx, "y1": PARTICIPANT_TOP + 50, "y2": lifeline_end}
                          for pid, cx in centers.items()],
            "activations": [a.to_dict() for a in trace.activations],
            "fragments": [f.to_dict() for f in trace.fragments],
            "event_notes": trace.event_notes,
        },
    )
    anchors = {pid: (cx, PARTICIPANT_TOP) for pid, cx in centers.items()}
    return _with_notes(layout, diagram, anchors, ecfg)


def _walk_events(events: list[Event], trace: _SequenceTrace) -> None:
    # Activations are scoped to one nesting level; open bars close at its end.
    open_bars: dict[str, int] = {}

    for event in events:
        if isinstance(event, MessageEvent):
            _message(event, trace, open_bars)
        elif isinstance(event, FragmentEvent):
            _fragment(event, trace)
        elif isinstance(event, ActivationEvent):
            if event.participant not in trace.centers:
                continue
            if event.active:
                open_bars[event.participant] = trace.y
            elif event.participant in open_bars:
                start = open_bars.pop(event.participant)
                trace.activations.append(Activation(
                    event.participant, trace.centers[event.participant], start, trace.y))
        elif isinstance(event, NoteEvent):
            x = trace.centers.get(event.participant, 100)
            rect = Rect(x + 20, trace.y - 10, text_width(event.text) + 20, 25)
            trace.event_notes.append({
                "participant": event.participant,
                "text": event.text,
                "note_type": event.note_type.value,
                **rect.to_dict(),
            })
            trace.y += NOTE_EVENT_STEP

    for pid, start in open_bars.items():
        trace.activations.append(Activation(pid, trace.centers[pid], start, trace.y))


def _message(event: MessageEvent, trace: _SequenceTrace, open_bars: dict[str, int]) -> None:
    if event.from_id not in trace.centers or event.to_id not in trace.centers:
        return
    y = trace.y
    from_x, to_x = trace.centers[event.from_id], trace.centers[event.to_id]

    if event.message_type is MessageType.RETURN:
        if event.from_id in open_bars:
            trace.activations.append(Activation(event.from_id, from_x, open_bars.pop(event.from_id), y))
    elif event.message_type is MessageType.SYNC:
        open_bars.setdefault(event.to_id, y)

    sync = event.message_type is MessageType.SYNC
    trace.edges.append(RoutedEdge(
        from_id=event.from_id,
        to_id=event.to_id,
        points=[Point(from_x, y), Point(to_x, y)],
        label=event.label,
        label_pos=Point(trunc_div(from_x + to_x, 2), y - 5),
        decoration="arrow" if sync else "open_arrow",
        line_style="solid" if sync else "dashed",
    ))
    trace.y += MESSAGE_STEP


def _fragment(event: FragmentEvent, trace: _SequenceTrace) -> None:
    start = trace.y
    _walk_events(event.events, trace)
    separator = None
    if event.fragment_type is FragmentType.ALT and event.alt_events:
        separator = trace.y + 5
        trace.y += 20
        _walk_events(event.alt_events, trace)
    trace.fragments.append(FragmentFrame(
        type=event.fragment_type.value,
        label=event.label,
        rect=Rect(50, start - 10, trace.frame_width, trace.y - start + 20),
        alt_label=event.alt_label,
        separator_y=separator,
    ))


# ---------------------------------------------------------------------------
# Flow diagrams
# ---------------------------------------------------------------------------

FLOW_MAIN_X = 400
FLOW_BRANCH_X = 550
FLOW_START_Y = 50
FLOW_STEP = 80
FLOW_EDGE_HEIGHT = 40
LANE_WIDTH = 200
LANE_HEADER = 40
LANE_LEFT = 50
LANE_BRANCH_SHIFT = 60
BRANCH_LABEL = "No"


def flow_layout(
    diagram: FlowDiagram,
    engine_cfg: LayoutEngineConfig | None = None,
) -> DiagramLayout:
    """Single column (branch targets to the right), or one column per swimlane."""
    ecfg = engine_cfg or LayoutEngineConfig()
    known = {n.id for n in diagram.nodes}
    edges = [e for e in diagram.edges if e.from_id in known and e.to_id in known]
    branch_targets = {e.to_id for e in edges if e.label == BRANCH_LABEL}

    positions: dict[str, Point] = {}
    extras: dict[str, Any] = {}
    if diagram.swimlanes:
        lane_index = {lane.id: i for i, lane in enumerate(diagram.swimlanes)}
        lane_y: dict[int, int] = {}
        max_y = LANE_HEADER + 30
        for node in diagram.nodes:
            idx = lane_index.get(node.swimlane, 0)
            x = LANE_LEFT + idx * LANE_WIDTH + LANE_WIDTH // 2
            if node.id in branch_targets:
                x += LANE_BRANCH_SHIFT
            y = lane_y.get(idx, LANE_HEADER + 30)
            positions[node.id] = Point(x, y)
            lane_y[idx] = y + FLOW_STEP
            max_y = max(max_y, y + FLOW_STEP)
        width = max(ecfg.min_width, LANE_LEFT + len(diagram.swimlanes) * LANE_WIDTH + 50)
        height = max(ecfg.min_height, max_y + 50)
        extras["swimlanes"] = [
            {"id": lane.id, "name": lane.name, "x": LANE_LEFT + i * LANE_WIDTH, "y": 0,
             "width": LANE_WIDTH, "height": height, "header_height": LANE_HEADER}
            for i, lane in enumerate(diagram.swimlanes)
        ]
    else:
        y = FLOW_START_Y
        for node in diagram.nodes:
            x = FLOW_BRANCH_X if node.id in branch_targets else FLOW_MAIN_X
            positions[node.id] = Point(x, y)
            y += FLOW_STEP
        width = ecfg.min_width
        height = max(ecfg.min_height, y + 50)

    nodes = []
    for node in diagram.nodes:
        w, h = flow_node_size(node)
        p = positions[node.id]
        nodes.append(PlacedNode(node.id, p.x - w // 2, p.y, w, h))

    shapes = {n.id: n.shape for n in diagram.nodes}
    routed = []
    for e in edges:
        src, dst = positions[e.from_id], positions[e.to_id]
        if shapes[e.from_id] is NodeShape.DECISION and e.label == BRANCH_LABEL:
            start = Point(src.x + 40, src.y + 20)
            points = [start, Point(dst.x, start.y), dst]
            label_pos = Point(start.x + 20, start.y - 5)
        else:
            start = Point(src.x, src.y + FLOW_EDGE_HEIGHT)
            if start.x == dst.x or start.y == dst.y:
                points = [start, dst]
            else:
                mid_y = trunc_div(start.y + dst.y, 2)
                points = [start, Point(start.x, mid_y), Point(dst.x, mid_y), dst]
            if start.x == dst.x:
                label_pos = Point(start.x + 10, trunc_div(start.y + dst.y, 2))
            else:
                label_pos = Point(trunc_div(start.x + dst.x, 2), trunc_div(start.y + dst.y, 2))
        routed.append(RoutedEdge(e.from_id, e.to_id, points, e.label,
                                 label_pos if e.label else None, decoration="arrow"))

    layout = DiagramLayout("flow", "heuristic", width, height, nodes, routed, extras=extras)
    anchors = {nid: (p.x, p.y) for nid, p in positions.items()}
    return _with_notes(layout, diagram, anchors, ecfg)


# ---------------------------------------------------------------------------
# Strategy selection
# ---------------------------------------------------------------------------

def heuristic_layout(
    diagram: Diagram,
    engine_cfg: LayoutEngineConfig | None = None,
    routing_cfg: RoutingConfig | None = None,
) -> DiagramLayout:
    if isinstance(diagram, ClassDiagram):
        return class_layout(diagram, engine_cfg, routing_cfg)
    if isinstance(diagram, StateDiagram):
        return state_layout(diagram, engine_cfg, routing_cfg)
    if isinstance(diagram, FlowDiagram):
        return flow_layout(diagram, engine_cfg)
    return sequence_layout(diagram, engine_cfg)


def covers_diagram(match: PatternMatch, diagram: Diagram) -> bool:
    """True when every element of *diagram* is bound to one of the match's roles."""
    return set(diagram.node_ids()) <= match.bound_ids()


def apply_match(
    diagram: Diagram,
    match: PatternMatch,
    registry: PatternRegistry,
    canvas_size: tuple[int, int] | None = None,
) -> AppliedLayout | None:
    """Scale *match*'s template to the measured sizes of *diagram*'s elements."""
    sizes = node_sizes(diagram)
    widths = {nid: w for nid, (w, _) in sizes.items()}
    applier = PatternLayoutApplier(registry)
    if isinstance(diagram, SequenceDiagram):
        return applier.apply_sequence(match, widths, canvas_size)
    heights = {nid: h for nid, (_, h) in sizes.items()}
    return applier.apply(match, widths, heights, canvas_size)


def pattern_layout(
    diagram: Diagram,
    match: PatternMatch,
    registry: PatternRegistry,
    canvas_size: tuple[int, int] | None = None,
    engine_cfg: LayoutEngineConfig | None = None,
) -> DiagramLayout | None:
    """Express an applied template as a ``DiagramLayout``."""
    applied = apply_match(diagram, match, registry, canvas_size)
    if applied is None:
        return None
    ecfg = engine_cfg or LayoutEngineConfig()
    styles = _edge_styles(diagram)

    edges = []
    for e in applied.edges:
        label, decoration, at_source, line_style = styles.get((e.from_id, e.to_id), ("", "arrow", False, "solid"))
        edges.append(RoutedEdge(
            from_id=e.from_id,
            to_id=e.to_id,
            points=list(e.waypoints),
            label=label,
            label_pos=Point(e.label_x, e.label_y),
            decoration=decoration,
            decorate_source=at_source,
            line_style=line_style,
        ))

    placed = {n.id for n in applied.nodes}
    layout = DiagramLayout(
        kind=diagram.kind.value,
        strategy="pattern",
        width=applied.width,
        height=applied.height,
        nodes=[PlacedNode(n.id, n.x, n.y, n.width, n.height) for n in applied.nodes],
        edges=edges,
        pattern=applied.pattern.value,
        extras={
            "roles": dict(match.roles),
            "score": round(match.score, 4),
            "decorators": [d.to_dict() for d in applied.decorators],
            "unplaced": [nid for nid in diagram.node_ids() if nid not in placed],
        },
    )
    anchors = {n.id: (n.x, n.y) for n in applied.nodes}
    return _with_notes(layout, diagram, anchors, ecfg, grow=canvas_size is None)


def _edge_styles(diagram: Diagram) -> dict[tuple[str, str], tuple[str, str, bool, str]]:
    """(from, to) -> (label, decoration, decorate at source, line style); first edge wins."""
    styles: dict[tuple[str, str], tuple[str, str, bool, str]] = {}
    if isinstance(diagram, ClassDiagram):
        for e in diagram.edges:
            decoration = "" if e.decoration is Decoration.NONE else e.decoration.value
            at_source = e.decoration in (Decoration.FILLED_DIAMOND, Decoration.EMPTY_DIAMOND)
            styles.setdefault((e.from_id, e.to_id), (e.label, decoration, at_source, e.line_style.value))
    elif isinstance(diagram, StateDiagram):
        for t in diagram.transitions:
            styles.setdefault((t.from_id, t.to_id), (transition_label(t), "arrow", False, "solid"))
    elif isinstance(diagram, FlowDiagram):
        for e in diagram.edges:
            styles.setdefault((e.from_id, e.to_id), (e.label, "arrow", False, "solid"))
    else:
        for m in messages_of(diagram.events):
            sync = m.message_type is MessageType.SYNC
            styles.setdefault((m.from_id, m.to_id), (
                m.label, "arrow" if sync else "open_arrow", False, "solid" if sync else "dashed"))
    return styles


def plan_layout(
    diagram: Diagram,
    registry: PatternRegistry,
    strategy: str = "auto",
    canvas_size: tuple[int, int] | None = None,
    pattern: PatternType | None = None,
    engine_cfg: LayoutEngineConfig | None = None,
    routing_cfg: RoutingConfig | None = None,
) -> DiagramLayout:
    """Lay out *diagram* with the requested strategy.

    - ``heuristic``: always the per-kind heuristic layout.
    - ``pattern``: the best match (or the first match of *pattern*),
      even when it leaves elements unplaced.
    - ``auto``: the best match only if it binds every element.

    Whenever no usable match exists the heuristic layout is returned.
    An explicit *canvas_size* fixes the pattern canvas and sets a floor
    for the heuristic one.
    """
    if strategy != "heuristic":
        matches = detect_patterns(diagram, registry)
        if pattern is not None:
            match = next((m for m in matches if m.pattern is pattern), None)
        else:
            match = best_match(matches)
        usable = match is not None and (strategy == "pattern" or covers_diagram(match, diagram))
        if usable:
            layout = pattern_layout(diagram, match, registry, canvas_size, engine_cfg)
            if layout is not None:
                return layout
        logger.debug("No usable pattern for %s diagram, using heuristic layout", diagram.kind.value)

    layout = heuristic_layout(diagram, engine_cfg, routing_cfg)
    if canvas_size is not None:
        layout.width = max(layout.width, canvas_size[0])
        layout.height = max(layout.height, canvas_size[1])
    return layout
