"""
Pattern templates: relative layouts for recurring diagram structures.

A template positions named roles (``parent``, ``child_0`` ...) on a unit
canvas, optionally with predefined edge paths and decorations. The
``PatternRegistry`` is built once, never mutated afterwards, and passed
explicitly to detectors and the layout applier.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Iterator


# ---------------------------------------------------------------------------
# Pattern types
# ---------------------------------------------------------------------------

class PatternType(Enum):
    # Class diagrams
    INHERITANCE_TREE = "inheritance-tree"
    INTERFACE_IMPL = "interface-impl"
    COMPOSITION = "composition"
    DIAMOND = "diamond"
    LAYERED = "layered"
    # Sequence diagrams
    REQUEST_RESPONSE = "request-response"
    CALLBACK = "callback"
    CHAIN = "chain"
    FAN_OUT = "fan-out"
    # State diagrams
    LINEAR_STATES = "linear-states"
    BINARY_CHOICE = "binary-choice"
    STATE_LOOP = "state-loop"
    STAR_TOPOLOGY = "star-topology"
    # Flow diagrams
    IF_ELSE = "if-else"
    IF_ELSEIF_ELSE = "if-elseif-else"
    WHILE_LOOP = "while-loop"
    SEQUENTIAL = "sequential"


class CurveStyle(Enum):
    STRAIGHT = "straight"
    ORTHOGONAL = "orthogonal"
    CURVED = "curved"


PATTERN_KINDS: dict[PatternType, str] = {
    PatternType.INHERITANCE_TREE: "class",
    PatternType.INTERFACE_IMPL: "class",
    PatternType.COMPOSITION: "class",
    PatternType.DIAMOND: "class",
    PatternType.LAYERED: "class",
    PatternType.REQUEST_RESPONSE: "sequence",
    PatternType.CALLBACK: "sequence",
    PatternType.CHAIN: "sequence",
    PatternType.FAN_OUT: "sequence",
    PatternType.LINEAR_STATES: "state",
    PatternType.BINARY_CHOICE: "state",
    PatternType.STATE_LOOP: "state",
    PatternType.STAR_TOPOLOGY: "state",
    PatternType.IF_ELSE: "flow",
    PatternType.IF_ELSEIF_ELSE: "flow",
    PatternType.WHILE_LOOP: "flow",
    PatternType.SEQUENTIAL: "flow",
}


# ---------------------------------------------------------------------------
# Template data classes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RelPoint:
    """A point in unit-canvas coordinates (0.0 - 1.0)."""
    x: float
    y: float

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y}


@dataclass(frozen=True)
class LayoutPosition:
    """Role slot: relative centre and relative size."""
    role: str
    x: float
    y: float
    width: float
    height: float

    def to_dict(self) -> dict[str, Any]:
        return {"role": self.role, "x": self.x, "y": self.y,
                "width": self.width, "height": self.height}


@dataclass(frozen=True)
class EdgePath:
    from_role: str
    to_role: str
    waypoints: tuple[RelPoint, ...] = ()
    label_pos: RelPoint = RelPoint(0.0, 0.0)
    curve: CurveStyle = CurveStyle.STRAIGHT

    def to_dict(self) -> dict[str, Any]:
        return {
            "from": self.from_role,
            "to": self.to_role,
            "waypoints": [w.to_dict() for w in self.waypoints],
            "label_pos": self.label_pos.to_dict(),
            "curve": self.curve.value,
        }


@dataclass(frozen=True)
class PatternDecorator:
    """Non-node visual element (divider, group box ...) in relative bounds."""
    type: str
    x: float
    y: float
    width: float
    height: float
    style: tuple[tuple[str, str], ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "x": self.x, "y": self.y,
                "width": self.width, "height": self.height, "style": dict(self.style)}


@dataclass(frozen=True)
class PatternLayout:
    """A complete template for one pattern type."""
    type: PatternType
    name: str
    min_width: int
    min_height: int
    padding: int
    positions: tuple[LayoutPosition, ...] = ()
    edges: tuple[EdgePath, ...] = ()
    decorators: tuple[PatternDecorator, ...] = ()

    @property
    def kind(self) -> str:
        return PATTERN_KINDS[self.type]

    def position(self, role: str) -> LayoutPosition | None:
        for pos in self.positions:
            if pos.role == role:
                return pos
        return None

    def roles(self) -> list[str]:
        return [p.role for p in self.positions]

    def summary(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "name": self.name,
            "kind": self.kind,
            "roles": self.roles(),
            "min_width": self.min_width,
            "min_height": self.min_height,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.summary(),
            "padding": self.padding,
            "positions": [p.to_dict() for p in self.positions],
            "edges": [e.to_dict() for e in self.edges],
            "decorators": [d.to_dict() for d in self.decorators],
        }


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class PatternRegistry:
    """Read-only catalogue of templates keyed by pattern type.

    The first template registered for a type is its default. Later
    templates of the same type are sized variants (fewer children,
    fewer steps) that ``get`` prefers when a match binds few enough roles.
    """

    def __init__(self, layouts: list[PatternLayout] | None = None) -> None:
        self._patterns: dict[PatternType, PatternLayout] = {}
        self._sized: dict[PatternType, list[PatternLayout]] = {}
        if layouts is None:
            layouts = builtin_patterns() + builtin_variants()
        for layout in layouts:
            self._patterns.setdefault(layout.type, layout)
            self._sized.setdefault(layout.type, []).append(layout)

    def get(self, pattern: PatternType, roles: Iterable[str] | None = None) -> PatternLayout | None:
        """Template for *pattern*.

        With *roles*, the smallest template providing every one of them is
        returned; the default template when none does.
        """
        default = self._patterns.get(pattern)
        if default is None or roles is None:
            return default
        wanted = set(roles)
        fitting = [t for t in self._sized[pattern] if wanted <= set(t.roles())]
        if not fitting:
            return default
        return min(fitting, key=lambda t: len(t.positions))

    def variants(self, pattern: PatternType) -> list[PatternLayout]:
        return list(self._sized.get(pattern, []))

    def __contains__(self, pattern: object) -> bool:
        return pattern in self._patterns

    def __iter__(self) -> Iterator[PatternLayout]:
        return iter(self._patterns.values())

    def __len__(self) -> int:
        return len(self._patterns)

    def for_kind(self, kind: str) -> list[PatternLayout]:
        return [p for p in self._patterns.values() if p.kind == kind]


def parse_pattern_type(value: str) -> PatternType | None:
    """Look up a pattern type by its value (``"if-else"``) or name (``"IF_ELSE"``)."""
    key = value.strip()
    for member in PatternType:
        if key.lower() == member.value or key.upper().replace("-", "_") == member.name:
            return member
    return None


# ---------------------------------------------------------------------------
# Built-in templates
# ---------------------------------------------------------------------------

def _pos(role: str, x: float, y: float, w: float, h: float) -> LayoutPosition:
    return LayoutPosition(role, x, y, w, h)


def _straight(src: str, dst: str, label: tuple[float, float] = (0.0, 0.0)) -> EdgePath:
    return EdgePath(src, dst, (), RelPoint(*label), CurveStyle.STRAIGHT)


def _ortho(src: str, dst: str, waypoints: list[tuple[float, float]],
           label: tuple[float, float] = (0.0, 0.0)) -> EdgePath:
    return EdgePath(src, dst, tuple(RelPoint(x, y) for x, y in waypoints),
                    RelPoint(*label), CurveStyle.ORTHOGONAL)


def _label(text: str, x: float, y: float) -> PatternDecorator:
    return PatternDecorator("label", x, y, 0.0, 0.0, (("text", text),))


_DIVIDER_STYLE = (("stroke", "#cbd5e0"), ("stroke-dasharray", "5,5"))

_HALVES = (0.25, 0.75)
_THIRDS = (0.17, 0.5, 0.83)
_QUARTERS = (0.125, 0.375, 0.625, 0.875)


def _hierarchy(
    pattern: PatternType, name: str, min_width: int, min_height: int,
    root: LayoutPosition, leaf: str, xs: tuple[float, ...], leaf_y: float,
    leaf_size: tuple[float, float], bus_y: float,
    decorators: tuple[PatternDecorator, ...] = (),
) -> PatternLayout:
    """Root on top, leaves in one row, each leaf wired up through a shared bus line."""
    edges = []
    for i, x in enumerate(xs):
        bend = [(x, bus_y)] if x == root.x else [(x, bus_y), (root.x, bus_y)]
        edges.append(_ortho(f"{leaf}_{i}", root.role, bend))
    return PatternLayout(
        pattern, name, min_width, min_height, 30,
        positions=(root, *(_pos(f"{leaf}_{i}", x, leaf_y, *leaf_size)
                           for i, x in enumerate(xs))),
        edges=tuple(edges),
        decorators=decorators,
    )


def _composition(name: str, min_height: int, owner_height: float,
                 ys: tuple[float, ...], part_height: float) -> PatternLayout:
    edges = []
    for i, y in enumerate(ys):
        bend = [(0.5, 0.5)] if y == 0.5 else [(0.5, 0.5), (0.5, y)]
        edges.append(_ortho("owner", f"part_{i}", bend))
    return PatternLayout(
        PatternType.COMPOSITION, name, 450, min_height, 30,
        positions=(
            _pos("owner", 0.2, 0.5, 0.28, owner_height),
            *(_pos(f"part_{i}", 0.75, y, 0.26, part_height) for i, y in enumerate(ys)),
        ),
        edges=tuple(edges),
    )


def _chain(name: str, min_width: int, xs: tuple[float, ...], width: float) -> PatternLayout:
    return PatternLayout(
        PatternType.CHAIN, name, min_width, 220, 20,
        positions=tuple(_pos(f"node_{i}", x, 0.15, width, 0.15) for i, x in enumerate(xs)),
    )


def _sequential(name: str, min_width: int, start_x: float, end_x: float,
                cap_width: float, xs: tuple[float, ...], step_width: float) -> PatternLayout:
    chain = ["start", *(f"process_{i}" for i in range(len(xs))), "end"]
    return PatternLayout(
        PatternType.SEQUENTIAL, name, min_width, 100, 25,
        positions=(
            _pos("start", start_x, 0.5, cap_width, 0.35),
            *(_pos(f"process_{i}", x, 0.5, step_width, 0.45) for i, x in enumerate(xs)),
            _pos("end", end_x, 0.5, cap_width, 0.35),
        ),
        edges=tuple(_straight(a, b) for a, b in zip(chain, chain[1:])),
    )


def _class_patterns() -> list[PatternLayout]:
    return [
        #        [Parent]
        #     ┌────┼────┐
        #  [C1]  [C2]  [C3]
        _hierarchy(PatternType.INHERITANCE_TREE, "Inheritance Tree", 650, 280,
                   _pos("parent", 0.5, 0.18, 0.22, 0.25), "child", _QUARTERS,
                   0.75, (0.2, 0.22), 0.52),
        _hierarchy(PatternType.INTERFACE_IMPL, "Interface Implementation", 650, 300,
                   _pos("interface", 0.5, 0.15, 0.24, 0.22), "impl", _QUARTERS,
                   0.78, (0.2, 0.2), 0.5),
        # [Owner] ◆── [Part0..3] stacked on the right
        _composition("Composition", 380, 0.45, (0.15, 0.38, 0.62, 0.85), 0.16),
        #      [Top]
        #    /       \
        # [Left]   [Right]
        #    \       /
        #    [Bottom]
        PatternLayout(
            PatternType.DIAMOND, "Diamond Inheritance", 450, 450, 50,
            positions=(
                _pos("top", 0.5, 0.12, 0.3, 0.2),
                _pos("left", 0.2, 0.45, 0.3, 0.2),
                _pos("right", 0.8, 0.45, 0.3, 0.2),
                _pos("bottom", 0.5, 0.78, 0.3, 0.2),
            ),
            edges=(
                _straight("left", "top"),
                _straight("right", "top"),
                _straight("bottom", "left"),
                _straight("bottom", "right"),
            ),
        ),
        PatternLayout(
            PatternType.LAYERED, "Layered Architecture", 700, 500, 30,
            positions=tuple(
                _pos(f"layer{layer + 1}_{slot}", x, y, 0.2, 0.18)
                for layer, y in enumerate((0.1, 0.42, 0.74))
                for slot, x in enumerate((0.25, 0.5, 0.75))
            ),
            decorators=(
                PatternDecorator("divider", 0.1, 0.32, 0.8, 0.01, _DIVIDER_STYLE),
                PatternDecorator("divider", 0.1, 0.64, 0.8, 0.01, _DIVIDER_STYLE),
            ),
        ),
    ]


def _sequence_patterns() -> list[PatternLayout]:
    return [
        PatternLayout(
            PatternType.REQUEST_RESPONSE, "Request-Response", 350, 200, 20,
            positions=(
                _pos("caller", 0.25, 0.15, 0.25, 0.18),
                _pos("callee", 0.75, 0.15, 0.25, 0.18),
            ),
            edges=(
                _straight("caller", "callee", (0.5, 0.45)),
                _straight("callee", "caller", (0.5, 0.75)),
            ),
        ),
        PatternLayout(
            PatternType.CALLBACK, "Callback", 380, 280, 20,
            positions=(
                _pos("initiator", 0.25, 0.12, 0.25, 0.15),
                _pos("handler", 0.75, 0.12, 0.25, 0.15),
            ),
            edges=(
                _straight("initiator", "handler", (0.5, 0.32)),
                _straight("handler", "initiator", (0.5, 0.55)),
                _straight("initiator", "handler", (0.5, 0.78)),
            ),
        ),
        _chain("Chain of Responsibility", 650, _QUARTERS, 0.18),
        PatternLayout(
            PatternType.FAN_OUT, "Fan-Out", 550, 250, 20,
            positions=(
                _pos("source", 0.15, 0.15, 0.2, 0.15),
                *(_pos(f"target_{i}", x, 0.15, 0.18, 0.15)
                  for i, x in enumerate((0.5, 0.72, 0.94))),
            ),
        ),
    ]


def _state_patterns() -> list[PatternLayout]:
    chain = ["initial", "state_0", "state_1", "state_2", "state_3", "final"]
    return [
        #  (●)──>[A]──>[B]──>[C]──>(◉)
        PatternLayout(
            PatternType.LINEAR_STATES, "Linear States", 700, 150, 30,
            positions=(
                _pos("initial", 0.08, 0.5, 0.05, 0.2),
                *(_pos(f"state_{i}", x, 0.5, 0.15, 0.35)
                  for i, x in enumerate((0.25, 0.45, 0.65, 0.85))),
                _pos("final", 0.96, 0.5, 0.05, 0.2),
            ),
            edges=tuple(_straight(a, b) for a, b in zip(chain, chain[1:])),
        ),
        PatternLayout(
            PatternType.BINARY_CHOICE, "Binary Choice", 600, 300, 40,
            positions=(
                _pos("source", 0.12, 0.5, 0.18, 0.3),
                _pos("true_branch", 0.5, 0.22, 0.18, 0.25),
                _pos("false_branch", 0.5, 0.78, 0.18, 0.25),
                _pos("target", 0.88, 0.5, 0.18, 0.3),
            ),
            edges=(
                _ortho("source", "true_branch", [(0.3, 0.5), (0.3, 0.22)], (0.22, 0.35)),
                _ortho("source", "false_branch", [(0.3, 0.5), (0.3, 0.78)], (0.22, 0.65)),
                _ortho("true_branch", "target", [(0.7, 0.22), (0.7, 0.5)]),
                _ortho("false_branch", "target", [(0.7, 0.78), (0.7, 0.5)]),
            ),
        ),
        PatternLayout(
            PatternType.STATE_LOOP, "State Loop", 500, 250, 40,
            positions=(
                _pos("start", 0.15, 0.65, 0.18, 0.3),
                _pos("middle", 0.5, 0.65, 0.18, 0.3),
                _pos("end", 0.85, 0.65, 0.18, 0.3),
            ),
            edges=(
                _straight("start", "middle"),
                _straight("middle", "end"),
                _ortho("end", "start", [(0.85, 0.25), (0.15, 0.25)], (0.5, 0.18)),
            ),
        ),
        PatternLayout(
            PatternType.STAR_TOPOLOGY, "Star Topology", 450, 450, 40,
            positions=(
                _pos("center", 0.5, 0.5, 0.22, 0.22),
                _pos("top", 0.5, 0.12, 0.18, 0.18),
                _pos("right", 0.88, 0.5, 0.18, 0.18),
                _pos("bottom", 0.5, 0.88, 0.18, 0.18),
                _pos("left", 0.12, 0.5, 0.18, 0.18),
            ),
            edges=tuple(_straight("center", r) for r in ("top", "right", "bottom", "left")),
        ),
    ]


def _flow_patterns() -> list[PatternLayout]:
    return [
        PatternLayout(
            PatternType.IF_ELSE, "If-Else", 550, 350, 40,
            positions=(
                _pos("decision", 0.12, 0.5, 0.12, 0.2),
                _pos("true_process", 0.45, 0.22, 0.2, 0.18),
                _pos("false_process", 0.45, 0.78, 0.2, 0.18),
                _pos("merge", 0.88, 0.5, 0.12, 0.18),
            ),
            edges=(
                _ortho("decision", "true_process", [(0.25, 0.5), (0.25, 0.22)], (0.18, 0.35)),
                _ortho("decision", "false_process", [(0.25, 0.5), (0.25, 0.78)], (0.18, 0.65)),
                _ortho("true_process", "merge", [(0.7, 0.22), (0.7, 0.5)]),
                _ortho("false_process", "merge", [(0.7, 0.78), (0.7, 0.5)]),
            ),
            decorators=(_label("Yes", 0.18, 0.32), _label("No", 0.18, 0.68)),
        ),
        PatternLayout(
            PatternType.IF_ELSEIF_ELSE, "If-ElseIf-Else", 650, 450, 40,
            positions=(
                _pos("decision1", 0.1, 0.18, 0.1, 0.15),
                _pos("decision2", 0.1, 0.5, 0.1, 0.15),
                _pos("process1", 0.4, 0.18, 0.18, 0.14),
                _pos("process2", 0.4, 0.5, 0.18, 0.14),
                _pos("process3", 0.4, 0.82, 0.18, 0.14),
                _pos("merge", 0.85, 0.5, 0.1, 0.15),
            ),
            edges=(
                _straight("decision1", "process1", (0.25, 0.12)),
                _straight("decision1", "decision2"),
                _straight("decision2", "process2", (0.25, 0.44)),
                _ortho("decision2", "process3", [(0.1, 0.82)], (0.05, 0.66)),
                _ortho("process1", "merge", [(0.65, 0.18), (0.65, 0.5)]),
                _straight("process2", "merge"),
                _ortho("process3", "merge", [(0.65, 0.82), (0.65, 0.5)]),
            ),
        ),
        PatternLayout(
            PatternType.WHILE_LOOP, "While Loop", 450, 300, 40,
            positions=(
                _pos("entry", 0.08, 0.5, 0.08, 0.12),
                _pos("condition", 0.28, 0.5, 0.12, 0.18),
                _pos("body", 0.6, 0.5, 0.2, 0.18),
                _pos("exit", 0.28, 0.88, 0.1, 0.1),
            ),
            edges=(
                _straight("entry", "condition"),
                _straight("condition", "body", (0.44, 0.44)),
                _ortho("body", "condition", [(0.6, 0.2), (0.28, 0.2)], (0.44, 0.12)),
                _straight("condition", "exit", (0.2, 0.7)),
            ),
        ),
        _sequential("Sequential", 700, 0.05, 0.95, 0.05, (0.22, 0.42, 0.62, 0.82), 0.15),
    ]


def builtin_patterns() -> list[PatternLayout]:
    """Every built-in default template, class patterns first."""
    return _class_patterns() + _sequence_patterns() + _state_patterns() + _flow_patterns()


def builtin_variants() -> list[PatternLayout]:
    """Smaller sized templates used when a match binds only two or three members."""
    return [
        _hierarchy(PatternType.INHERITANCE_TREE, "Inheritance Tree (2 children)", 400, 280,
                   _pos("parent", 0.5, 0.18, 0.3, 0.25), "child", _HALVES,
                   0.75, (0.28, 0.22), 0.52),
        _hierarchy(PatternType.INHERITANCE_TREE, "Inheritance Tree (3 children)", 520, 280,
                   _pos("parent", 0.5, 0.18, 0.26, 0.25), "child", _THIRDS,
                   0.75, (0.24, 0.22), 0.52),
        _hierarchy(PatternType.INTERFACE_IMPL, "Interface Implementation (2)", 400, 300,
                   _pos("interface", 0.5, 0.15, 0.32, 0.22), "impl", _HALVES,
                   0.78, (0.3, 0.2), 0.5, (_label("<<interface>>", 0.5, 0.05),)),
        _hierarchy(PatternType.INTERFACE_IMPL, "Interface Implementation (3)", 520, 300,
                   _pos("interface", 0.5, 0.15, 0.28, 0.22), "impl", _THIRDS,
                   0.78, (0.26, 0.2), 0.5),
        _composition("Composition (2 parts)", 220, 0.35, (0.28, 0.72), 0.25),
        _composition("Composition (3 parts)", 300, 0.4, (0.2, 0.5, 0.8), 0.2),
        _chain("Chain of Responsibility (3)", 500, _THIRDS, 0.2),
        _sequential("Sequential (3 steps)", 550, 0.06, 0.94, 0.06, (0.28, 0.52, 0.76), 0.18),
    ]
