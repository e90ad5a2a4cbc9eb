"""
pact-layout MCP Server - diagram layout and routing via Model Context Protocol.

Exposes 4 tools that let an LLM agent register class, state, sequence and
flow diagrams and get back ready-to-draw geometry.

Tools:
  1. diagram  - registry: create, list, get, delete
  2. layout   - whole-diagram layout: auto, heuristic, pattern, layers
  3. route    - single-edge geometry: orthogonal, vertical, distribute,
                endpoints, state
  4. patterns - structural motifs: detect, best, apply, list, get
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Any

from mcp.server.fastmcp import FastMCP

from pact_layout.detectors import best_match, detect_patterns
from pact_layout.geometry import Point
from pact_layout.layout_engine import (
    assign_layers,
    count_crossings,
    layering_violations,
    reduce_crossings,
)
from pact_layout.models import (
    ClassDiagram,
    Diagram,
    FlowDiagram,
    StateDiagram,
    diagram_from_dict,
    messages_of,
)
from pact_layout.patterns import PatternRegistry
from pact_layout.renderers import apply_match, graph_for, plan_layout
from pact_layout.routing import (
    distribute_offset,
    distributed_endpoints,
    is_fallback_route,
    route_orthogonal,
    route_state_transition,
    route_vertical_edge,
)
from pact_layout.validation import (
    ValidationError,
    validate_action,
    validate_canvas_size,
    validate_dict,
    validate_diagram_kind,
    validate_fraction,
    validate_int,
    validate_non_empty_string,
    validate_obstacles,
    validate_pattern_name,
    validate_point,
    validate_rect,
    _DIAGRAM_ACTIONS,
    _LAYOUT_ACTIONS,
    _PATTERN_ACTIONS,
    _ROUTE_ACTIONS,
)

# ---------------------------------------------------------------------------
# Logging - keep routine FastMCP INFO messages out of the client's stderr.
# ---------------------------------------------------------------------------
logging.getLogger("mcp.server").setLevel(logging.WARNING)
logger = logging.getLogger("pact-layout")

# ---------------------------------------------------------------------------
# MCP Server
# ---------------------------------------------------------------------------
mcp = FastMCP(
    "pact-layout",
    instructions=(
        "MCP server that lays out class, state, sequence and flow diagrams.\n\n"
        "=== 4 TOOLS - use the 'action' parameter to pick the operation ===\n\n"
        "1. diagram(action, ...) - register diagrams: create, list, get, delete.\n"
        "2. layout(action, ...) - auto, heuristic, pattern, layers.\n"
        "3. route(action, ...) - orthogonal, vertical, distribute, endpoints, state.\n"
        "4. patterns(action, ...) - detect, best, apply, list, get.\n\n"
        "=== RULES ===\n"
        "- Create a diagram first; every layout/patterns call names it.\n"
        "- Edges that reference unknown ids are ignored, never reported.\n"
        "- All coordinates are integer pixels; paths only use horizontal\n"
        "  and vertical segments.\n"
        "- Read pact://patterns/catalog for the template list.\n"
    ),
)

# In-memory diagram registry: name -> (kind, Diagram)
# Guarded by _diagrams_lock for thread-safety.
_diagrams: dict[str, tuple[str, Diagram]] = {}
_diagrams_lock = threading.Lock()

# Built once, read-only afterwards.
_registry = PatternRegistry()


def _get_diagram(name: str) -> Diagram | None:
    with _diagrams_lock:
        entry = _diagrams.get(name)
    if entry is None:
        logger.warning("Unknown diagram '%s'", name)
        return None
    return entry[1]


def _edge_count(d: Diagram) -> int:
    if isinstance(d, ClassDiagram):
        return len(d.edges)
    if isinstance(d, StateDiagram):
        return len(d.transitions)
    if isinstance(d, FlowDiagram):
        return len(d.edges)
    return len(messages_of(d.events))


def _points(path: list[Point]) -> list[dict[str, int]]:
    return [p.to_dict() for p in path]


# ===================================================================
# RESOURCES
# ===================================================================

@mcp.resource("pact://patterns/catalog")
def pattern_catalog() -> str:
    """Return every registered pattern template as JSON."""
    return json.dumps([t.to_dict() for t in _registry], indent=2)


# ===================================================================
# TOOL 1: diagram - registry
# ===================================================================

@mcp.tool()
def diagram(
    action: str,
    name: str = "",
    kind: str = "",
    definition: dict[str, Any] | None = None,
) -> str:
    """Diagram registry management.

    Actions:
      create - Register a diagram. Params: name, kind (class/state/sequence/flow),
               definition (JSON object with the kind's nodes/edges/notes).
      list   - List registered diagrams. No params needed.
      get    - Summarise one diagram. Params: name.
      delete - Remove a diagram. Params: name.

    Definition shapes:
      class    - {"nodes": [{"id", "name", "stereotype?", "attributes?", "methods?"}],
                  "edges": [{"from", "to", "type?", "label?"}], "notes?"}
      state    - {"states": [{"id", "name?", "type?"}], "transitions": [{"from", "to",
                  "trigger?": {"kind": "event|after|when", ...}, "guard?"}]}
      sequence - {"participants": [{"id", "name?", "type?"}],
                  "events": [{"kind": "message", "from", "to", "label?"}, ...]}
      flow     - {"nodes": [{"id", "label?", "shape?", "swimlane?"}],
                  "edges": [{"from", "to", "label?"}], "swimlanes?"}

    Returns:
        Confirmation message or JSON.
    """
    try:
        action = validate_action(action, "diagram", _DIAGRAM_ACTIONS)
    except ValidationError as exc:
        return f"Error: {exc.message}"

    if action == "create":
        try:
            name = validate_non_empty_string(name, "name")
            kind = validate_diagram_kind(kind)
            d = diagram_from_dict(kind, validate_dict(definition, "definition"))
        except ValidationError as exc:
            return f"Error: {exc.message}"
        with _diagrams_lock:
            _diagrams[name] = (kind, d)
        return f"Diagram '{name}' created ({kind}, {len(d.node_ids())} elements)."

    elif action == "list":
        with _diagrams_lock:
            entries = list(_diagrams.items())
        result = [
            {"name": n, "kind": k, "elements": len(d.node_ids()), "edges": _edge_count(d)}
            for n, (k, d) in entries
        ]
        return json.dumps(result, indent=2)

    elif action == "get":
        try:
            name = validate_non_empty_string(name, "name")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        d = _get_diagram(name)
        if d is None:
            return f"Error: diagram '{name}' not found."
        return json.dumps({
            "name": name,
            "kind": d.kind.value,
            "elements": d.node_ids(),
            "edges": _edge_count(d),
            "notes": len(d.notes),
        }, indent=2)

    elif action == "delete":
        try:
            name = validate_non_empty_string(name, "name")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        with _diagrams_lock:
            removed = _diagrams.pop(name, None)
        if removed is None:
            return f"Error: diagram '{name}' not found."
        return f"Diagram '{name}' deleted."

    else:
        return f"Error: unknown diagram action '{action}'. Use: create, list, get, delete."


# ===================================================================
# TOOL 2: layout - whole-diagram layout
# ===================================================================

@mcp.tool()
def layout(
    action: str,
    diagram_name: str = "",
    pattern: str = "",
    canvas_width: int = 0,
    canvas_height: int = 0,
) -> str:
    """Compute a complete layout for a registered diagram.

    Actions:
      auto      - Pattern template when one covers every element, otherwise
                  the heuristic layout. Params: diagram_name, canvas_width,
                  canvas_height.
      heuristic - Per-kind heuristic layout (layered for class diagrams).
      pattern   - Best (or named) pattern template even if it leaves elements
                  unplaced; falls back to heuristic when nothing matches.
                  Params: diagram_name, pattern?, canvas_width, canvas_height.
      layers    - Layer assignment and crossing minimisation only.

    canvas_width/canvas_height: 0/0 derives the canvas from content.

    Returns:
        JSON layout: width, height, nodes, edges, notes plus kind-specific extras.
    """
    try:
        action = validate_action(action, "layout", _LAYOUT_ACTIONS)
        diagram_name = validate_non_empty_string(diagram_name, "diagram_name")
        canvas = validate_canvas_size(canvas_width, canvas_height)
        wanted = validate_pattern_name(pattern) if pattern else None
    except ValidationError as exc:
        return f"Error: {exc.message}"
    d = _get_diagram(diagram_name)
    if d is None:
        return f"Error: diagram '{diagram_name}' not found."

    if action == "layers":
        graph = graph_for(d)
        incoming, outgoing = graph.layering_adjacency()
        initial = assign_layers(graph.node_ids, incoming)
        ordered = reduce_crossings(initial, incoming, outgoing)
        return json.dumps({
            "layers": ordered,
            "crossings_before": count_crossings(initial, outgoing),
            "crossings_after": count_crossings(ordered, outgoing),
            "cycle_edges": [list(e) for e in layering_violations(ordered, outgoing)],
        }, indent=2)

    result = plan_layout(d, _registry, strategy=action, canvas_size=canvas, pattern=wanted)
    return json.dumps(result.to_dict(), indent=2)


# ===================================================================
# TOOL 3: route - single-edge geometry
# ===================================================================

@mcp.tool()
def route(
    action: str,
    start: dict[str, Any] | None = None,
    end: dict[str, Any] | None = None,
    source: dict[str, Any] | None = None,
    target: dict[str, Any] | None = None,
    obstacles: list[dict[str, Any]] | None = None,
    index: int = 0,
    total: int = 1,
    in_index: int = 0,
    in_total: int = 1,
    length: int = 0,
    fraction: float = 0.5,
) -> str:
    """Route one edge or compute attachment offsets.

    Actions:
      orthogonal - Obstacle-avoiding orthogonal path. Params: start {x,y},
                   end {x,y}, obstacles [{x,y,width,height}].
      vertical   - Child-to-parent path from source top to target bottom.
                   Params: source, target (boxes), in_index, in_total, obstacles.
      distribute - Offset of the index-th of total edges on one side.
                   Params: length, index, total, fraction.
      endpoints  - Fanned-out attachment points between two boxes.
                   Params: source, target, index/total (outgoing at source),
                   in_index/in_total (incoming at target).
      state      - State-transition path between two boxes; obstacles are
                   all state boxes. Params: source, target, obstacles.

    Returns:
        JSON with the path points and/or offsets.
    """
    try:
        action = validate_action(action, "route", _ROUTE_ACTIONS)
        obstacle_rects = validate_obstacles(obstacles)
    except ValidationError as exc:
        return f"Error: {exc.message}"

    if action == "orthogonal":
        try:
            p1 = validate_point(start, "start")
            p2 = validate_point(end, "end")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        path = route_orthogonal(p1, p2, obstacle_rects)
        return json.dumps({
            "points": _points(path),
            "fallback": is_fallback_route(path, obstacle_rects),
        }, indent=2)

    elif action == "distribute":
        try:
            length = validate_int(length, "length", min_val=0)
            total = validate_int(total, "total", min_val=1)
            index = validate_int(index, "index", min_val=0, max_val=total - 1)
            fraction = validate_fraction(fraction, "fraction")
        except ValidationError as exc:
            return f"Error: {exc.message}"
        return json.dumps({"offset": distribute_offset(length, index, total, fraction)})

    try:
        src = validate_rect(source, "source")
        dst = validate_rect(target, "target")
        in_total = validate_int(in_total, "in_total", min_val=1)
        in_index = validate_int(in_index, "in_index", min_val=0, max_val=in_total - 1)
    except ValidationError as exc:
        return f"Error: {exc.message}"

    if action == "vertical":
        path, to_offset = route_vertical_edge(src, dst, in_index, in_total, obstacle_rects)
        return json.dumps({"points": _points(path), "to_offset": to_offset}, indent=2)

    elif action == "endpoints":
        try:
            total = validate_int(total, "total", min_val=1)
            index = validate_int(index, "index", min_val=0, max_val=total - 1)
        except ValidationError as exc:
            return f"Error: {exc.message}"
        p1, p2, from_offset, to_offset = distributed_endpoints(
            src, dst, index, total, in_index, in_total)
        return json.dumps({
            "start": p1.to_dict(),
            "end": p2.to_dict(),
            "from_offset": from_offset,
            "to_offset": to_offset,
        }, indent=2)

    elif action == "state":
        path, anchor = route_state_transition(
            Point(src.cx, src.cy), (src.width, src.height),
            Point(dst.cx, dst.cy), (dst.width, dst.height),
            obstacle_rects,
        )
        return json.dumps({"points": _points(path), "label_anchor": anchor.to_dict()}, indent=2)

    else:
        return (f"Error: unknown route action '{action}'. "
                "Use: orthogonal, vertical, distribute, endpoints, state.")


# ===================================================================
# TOOL 4: patterns - structural motifs
# ===================================================================

@mcp.tool()
def patterns(
    action: str,
    diagram_name: str = "",
    pattern: str = "",
    kind: str = "",
    canvas_width: int = 0,
    canvas_height: int = 0,
) -> str:
    """Detect and apply structural pattern templates.

    Actions:
      list   - Template catalogue. Params: kind? (class/state/sequence/flow).
      get    - One template with its relative positions and smaller sized
               variants. Params: pattern.
      detect - Every match in a diagram, in detector order. Params: diagram_name.
      best   - Highest-scoring match. Params: diagram_name.
      apply  - Scale the best (or named) match onto pixels. Params:
               diagram_name, pattern?, canvas_width, canvas_height.

    Returns:
        JSON results or a message when nothing matches.
    """
    try:
        action = validate_action(action, "patterns", _PATTERN_ACTIONS)
    except ValidationError as exc:
        return f"Error: {exc.message}"

    if action == "list":
        try:
            kind = validate_diagram_kind(kind) if kind else ""
        except ValidationError as exc:
            return f"Error: {exc.message}"
        templates = _registry.for_kind(kind) if kind else list(_registry)
        return json.dumps([t.summary() for t in templates], indent=2)

    elif action == "get":
        try:
            wanted = validate_pattern_name(pattern)
        except ValidationError as exc:
            return f"Error: {exc.message}"
        template = _registry.get(wanted)
        if template is None:
            logger.warning("Pattern '%s' is not registered", wanted.value)
            return f"Error: pattern '{wanted.value}' is not registered."
        sized = [v.to_dict() for v in _registry.variants(wanted)[1:]]
        return json.dumps({**template.to_dict(), "variants": sized}, indent=2)

    try:
        diagram_name = validate_non_empty_string(diagram_name, "diagram_name")
        canvas = validate_canvas_size(canvas_width, canvas_height)
        wanted = validate_pattern_name(pattern) if pattern else None
    except ValidationError as exc:
        return f"Error: {exc.message}"
    d = _get_diagram(diagram_name)
    if d is None:
        return f"Error: diagram '{diagram_name}' not found."
    matches = detect_patterns(d, _registry)

    if action == "detect":
        return json.dumps([m.to_dict() for m in matches], indent=2)

    elif action == "best":
        match = best_match(matches)
        if match is None:
            return f"No pattern detected in '{diagram_name}'."
        return json.dumps(match.to_dict(), indent=2)

    elif action == "apply":
        if wanted is not None:
            match = next((m for m in matches if m.pattern is wanted), None)
        else:
            match = best_match(matches)
        if match is None:
            target = f"pattern '{wanted.value}'" if wanted else "pattern"
            return f"Error: no {target} detected in '{diagram_name}'."
        applied = apply_match(d, match, _registry, canvas)
        if applied is None:
            return f"Error: pattern '{match.pattern.value}' is not registered."
        return json.dumps({"match": match.to_dict(), **applied.to_dict()}, indent=2)

    else:
        return f"Error: unknown patterns action '{action}'. Use: detect, best, apply, list, get."


# ===================================================================
# Entry point
# ===================================================================

def main() -> None:
    """Run the MCP server."""
    mcp.run()


if __name__ == "__main__":
    main()
