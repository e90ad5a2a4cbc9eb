"""
Diagram model classes consumed by the layout engine.

One set of typed dataclasses per diagram kind (class, state, sequence,
flow), plus ``DiagramGraph``, the kind-neutral node/edge view that the
layering and crossing-minimisation stages work on.

Definitions arrive as plain JSON-like dicts; the ``*_from_dict`` builders
turn them into model objects and raise ``ValidationError`` on structural
problems. Variant categories (state triggers, sequence events) are closed
tagged unions selected by a ``kind`` key.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from pact_layout.validation import (
    ValidationError,
    optional_flag,
    optional_list,
    optional_string,
    optional_string_list,
    require_key,
    validate_dict,
    validate_enum,
    validate_int,
    validate_non_empty_string,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class DiagramKind(Enum):
    CLASS = "class"
    STATE = "state"
    SEQUENCE = "sequence"
    FLOW = "flow"


class Visibility(Enum):
    PUBLIC = "public"
    PRIVATE = "private"
    PROTECTED = "protected"
    PACKAGE = "package"


class EdgeType(Enum):
    DEPENDENCY = "dependency"
    INHERITANCE = "inheritance"
    IMPLEMENTATION = "implementation"
    COMPOSITION = "composition"
    AGGREGATION = "aggregation"


class Decoration(Enum):
    NONE = "none"
    ARROW = "arrow"
    TRIANGLE = "triangle"
    FILLED_DIAMOND = "filled_diamond"
    EMPTY_DIAMOND = "empty_diamond"


class LineStyle(Enum):
    SOLID = "solid"
    DASHED = "dashed"


class StateType(Enum):
    INITIAL = "initial"
    FINAL = "final"
    ATOMIC = "atomic"
    COMPOUND = "compound"
    PARALLEL = "parallel"


class ParticipantType(Enum):
    DEFAULT = "default"
    ACTOR = "actor"
    DATABASE = "database"
    QUEUE = "queue"
    EXTERNAL = "external"


class MessageType(Enum):
    SYNC = "sync"
    ASYNC = "async"
    RETURN = "return"


class FragmentType(Enum):
    ALT = "alt"
    LOOP = "loop"
    OPT = "opt"


class NoteType(Enum):
    NOTE = "note"
    RETURN = "return"
    THROW = "throw"


class NodeShape(Enum):
    TERMINAL = "terminal"
    PROCESS = "process"
    DECISION = "decision"
    IO = "io"
    DATABASE = "database"
    CONNECTOR = "connector"


class NotePosition(Enum):
    LEFT = "left"
    RIGHT = "right"
    TOP = "top"
    BOTTOM = "bottom"


#: Edges drawn child -> parent; layering reverses them so parents sit above.
HIERARCHY_EDGE_TYPES = frozenset({EdgeType.INHERITANCE, EdgeType.IMPLEMENTATION})


def _enum_value(enum_cls: type[Enum], value: Any, field_name: str, default: Enum) -> Any:
    if value is None or value == "":
        return default
    allowed = {member.value for member in enum_cls}
    return enum_cls(validate_enum(value, field_name, allowed))


# ---------------------------------------------------------------------------
# Common
# ---------------------------------------------------------------------------

@dataclass
class Note:
    """Free-text note, optionally attached to a diagram element."""
    text: str
    attach_to: str = ""
    position: NotePosition | None = None

    @classmethod
    def from_dict(cls, data: Any, where: str) -> Note:
        data = validate_dict(data, where)
        position = data.get("position")
        return cls(
            text=optional_string(data, "text", where),
            attach_to=optional_string(data, "attach_to", where),
            position=None if not position else _enum_value(
                NotePosition, position, f"{where}.position", NotePosition.RIGHT),
        )


def _notes_from(data: dict, where: str) -> list[Note]:
    return [Note.from_dict(n, f"{where}.notes[{i}]")
            for i, n in enumerate(optional_list(data, "notes", where))]


# ---------------------------------------------------------------------------
# Class diagrams
# ---------------------------------------------------------------------------

@dataclass
class Attribute:
    name: str
    type: str = ""
    visibility: Visibility = Visibility.PUBLIC


@dataclass
class Param:
    name: str = ""
    type: str = ""


@dataclass
class Method:
    name: str
    params: list[Param] = field(default_factory=list)
    return_type: str = ""
    visibility: Visibility = Visibility.PUBLIC
    is_async: bool = False
    throws: list[str] = field(default_factory=list)


@dataclass
class ClassNode:
    id: str
    name: str
    stereotype: str = ""
    attributes: list[Attribute] = field(default_factory=list)
    methods: list[Method] = field(default_factory=list)


@dataclass
class ClassEdge:
    from_id: str
    to_id: str
    type: EdgeType = EdgeType.DEPENDENCY
    label: str = ""
    decoration: Decoration = Decoration.ARROW
    line_style: LineStyle = LineStyle.SOLID


@dataclass
class ClassDiagram:
    nodes: list[ClassNode] = field(default_factory=list)
    edges: list[ClassEdge] = field(default_factory=list)
    notes: list[Note] = field(default_factory=list)

    kind = DiagramKind.CLASS

    def node_ids(self) -> list[str]:
        return [n.id for n in self.nodes]


def _visibility(data: dict, where: str) -> Visibility:
    return _enum_value(Visibility, data.get("visibility"), f"{where}.visibility",
                       Visibility.PUBLIC)


def class_diagram_from_dict(data: Any) -> ClassDiagram:
    """Build a ClassDiagram from a definition dict."""
    data = validate_dict(data, "definition")
    nodes: list[ClassNode] = []
    for i, raw in enumerate(optional_list(data, "nodes", "definition")):
        where = f"nodes[{i}]"
        raw = validate_dict(raw, where)
        node_id = validate_non_empty_string(require_key(raw, "id", where), f"{where}.id")
        attributes = []
        for j, a in enumerate(optional_list(raw, "attributes", where)):
            awhere = f"{where}.attributes[{j}]"
            a = validate_dict(a, awhere)
            attributes.append(Attribute(
                name=validate_non_empty_string(require_key(a, "name", awhere), f"{awhere}.name"),
                type=optional_string(a, "type", awhere),
                visibility=_visibility(a, awhere),
            ))
        methods = []
        for j, m in enumerate(optional_list(raw, "methods", where)):
            mwhere = f"{where}.methods[{j}]"
            m = validate_dict(m, mwhere)
            params = []
            for k, p in enumerate(optional_list(m, "params", mwhere)):
                pwhere = f"{mwhere}.params[{k}]"
                p = validate_dict(p, pwhere)
                params.append(Param(name=optional_string(p, "name", pwhere),
                                    type=optional_string(p, "type", pwhere)))
            methods.append(Method(
                name=validate_non_empty_string(require_key(m, "name", mwhere), f"{mwhere}.name"),
                params=params,
                return_type=optional_string(m, "return_type", mwhere),
                visibility=_visibility(m, mwhere),
                is_async=optional_flag(m, "is_async", mwhere),
                throws=optional_string_list(m, "throws", mwhere),
            ))
        nodes.append(ClassNode(
            id=node_id,
            name=optional_string(raw, "name", where, default=node_id),
            stereotype=optional_string(raw, "stereotype", where),
            attributes=attributes,
            methods=methods,
        ))

    edges: list[ClassEdge] = []
    for i, raw in enumerate(optional_list(data, "edges", "definition")):
        where = f"edges[{i}]"
        raw = validate_dict(raw, where)
        edge_type = _enum_value(EdgeType, raw.get("type"), f"{where}.type", EdgeType.DEPENDENCY)
        edges.append(ClassEdge(
            from_id=validate_non_empty_string(require_key(raw, "from", where), f"{where}.from"),
            to_id=validate_non_empty_string(require_key(raw, "to", where), f"{where}.to"),
            type=edge_type,
            label=optional_string(raw, "label", where),
            decoration=_enum_value(Decoration, raw.get("decoration"), f"{where}.decoration",
                                   _default_decoration(edge_type)),
            line_style=_enum_value(LineStyle, raw.get("line_style"), f"{where}.line_style",
                                   _default_line_style(edge_type)),
        ))
    return ClassDiagram(nodes=nodes, edges=edges, notes=_notes_from(data, "definition"))


def _default_decoration(edge_type: EdgeType) -> Decoration:
    return {
        EdgeType.INHERITANCE: Decoration.TRIANGLE,
        EdgeType.IMPLEMENTATION: Decoration.TRIANGLE,
        EdgeType.COMPOSITION: Decoration.FILLED_DIAMOND,
        EdgeType.AGGREGATION: Decoration.EMPTY_DIAMOND,
    }.get(edge_type, Decoration.ARROW)


def _default_line_style(edge_type: EdgeType) -> LineStyle:
    if edge_type in (EdgeType.IMPLEMENTATION, EdgeType.DEPENDENCY):
        return LineStyle.DASHED
    return LineStyle.SOLID


# ---------------------------------------------------------------------------
# State diagrams
# ---------------------------------------------------------------------------

@dataclass
class EventTrigger:
    event: str


@dataclass
class AfterTrigger:
    value: int
    unit: str = "s"


@dataclass
class WhenTrigger:
    condition: str


Trigger = Union[EventTrigger, AfterTrigger, WhenTrigger]


@dataclass
class Transition:
    from_id: str
    to_id: str
    trigger: Trigger | None = None
    guard: str = ""
    actions: list[str] = field(default_factory=list)


@dataclass
class Region:
    name: str
    states: list[State] = field(default_factory=list)
    transitions: list[Transition] = field(default_factory=list)


@dataclass
class State:
    id: str
    name: str
    type: StateType = StateType.ATOMIC
    entry: list[str] = field(default_factory=list)
    exit: list[str] = field(default_factory=list)
    children: list[State] = field(default_factory=list)
    regions: list[Region] = field(default_factory=list)


@dataclass
class StateDiagram:
    states: list[State] = field(default_factory=list)
    transitions: list[Transition] = field(default_factory=list)
    notes: list[Note] = field(default_factory=list)

    kind = DiagramKind.STATE

    def node_ids(self) -> list[str]:
        return [s.id for s in self.states]


def _trigger_from_dict(data: Any, where: str) -> Trigger | None:
    if data is None:
        return None
    data = validate_dict(data, where)
    kind = validate_enum(require_key(data, "kind", where), f"{where}.kind",
                         {"event", "after", "when"})
    if kind == "event":
        return EventTrigger(event=validate_non_empty_string(
            require_key(data, "event", where), f"{where}.event"))
    if kind == "after":
        return AfterTrigger(
            value=validate_int(require_key(data, "value", where), f"{where}.value", min_val=0),
            unit=optional_string(data, "unit", where, default="s"),
        )
    return WhenTrigger(condition=validate_non_empty_string(
        require_key(data, "condition", where), f"{where}.condition"))


def _transition_from_dict(raw: Any, where: str) -> Transition:
    raw = validate_dict(raw, where)
    return Transition(
        from_id=validate_non_empty_string(require_key(raw, "from", where), f"{where}.from"),
        to_id=validate_non_empty_string(require_key(raw, "to", where), f"{where}.to"),
        trigger=_trigger_from_dict(raw.get("trigger"), f"{where}.trigger"),
        guard=optional_string(raw, "guard", where),
        actions=optional_string_list(raw, "actions", where),
    )


def _state_from_dict(raw: Any, where: str) -> State:
    raw = validate_dict(raw, where)
    state_id = validate_non_empty_string(require_key(raw, "id", where), f"{where}.id")
    regions = []
    for i, r in enumerate(optional_list(raw, "regions", where)):
        rwhere = f"{where}.regions[{i}]"
        r = validate_dict(r, rwhere)
        regions.append(Region(
            name=optional_string(r, "name", rwhere),
            states=[_state_from_dict(s, f"{rwhere}.states[{j}]")
                    for j, s in enumerate(optional_list(r, "states", rwhere))],
            transitions=[_transition_from_dict(t, f"{rwhere}.transitions[{j}]")
                         for j, t in enumerate(optional_list(r, "transitions", rwhere))],
        ))
    return State(
        id=state_id,
        name=optional_string(raw, "name", where, default=state_id),
        type=_enum_value(StateType, raw.get("type"), f"{where}.type", StateType.ATOMIC),
        entry=optional_string_list(raw, "entry", where),
        exit=optional_string_list(raw, "exit", where),
        children=[_state_from_dict(c, f"{where}.children[{i}]")
                  for i, c in enumerate(optional_list(raw, "children", where))],
        regions=regions,
    )


def state_diagram_from_dict(data: Any) -> StateDiagram:
    """Build a StateDiagram from a definition dict."""
    data = validate_dict(data, "definition")
    return StateDiagram(
        states=[_state_from_dict(s, f"states[{i}]")
                for i, s in enumerate(optional_list(data, "states", "definition"))],
        transitions=[_transition_from_dict(t, f"transitions[{i}]")
                     for i, t in enumerate(optional_list(data, "transitions", "definition"))],
        notes=_notes_from(data, "definition"),
    )


# ---------------------------------------------------------------------------
# Sequence diagrams
# ---------------------------------------------------------------------------

@dataclass
class Participant:
    id: str
    name: str
    type: ParticipantType = ParticipantType.DEFAULT


@dataclass
class MessageEvent:
    from_id: str
    to_id: str
    label: str = ""
    message_type: MessageType = MessageType.SYNC


@dataclass
class FragmentEvent:
    fragment_type: FragmentType
    label: str = ""
    events: list[Event] = field(default_factory=list)
    alt_label: str = ""
    alt_events: list[Event] = field(default_factory=list)


@dataclass
class ActivationEvent:
    participant: str
    active: bool = True


@dataclass
class NoteEvent:
    participant: str
    text: str
    note_type: NoteType = NoteType.NOTE


Event = Union[MessageEvent, FragmentEvent, ActivationEvent, NoteEvent]


@dataclass
class SequenceDiagram:
    participants: list[Participant] = field(default_factory=list)
    events: list[Event] = field(default_factory=list)
    notes: list[Note] = field(default_factory=list)

    kind = DiagramKind.SEQUENCE

    def node_ids(self) -> list[str]:
        return [p.id for p in self.participants]


def _event_from_dict(raw: Any, where: str) -> Event:
    raw = validate_dict(raw, where)
    kind = validate_enum(require_key(raw, "kind", where), f"{where}.kind",
                         {"message", "fragment", "activation", "note"})
    if kind == "message":
        return MessageEvent(
            from_id=validate_non_empty_string(require_key(raw, "from", where), f"{where}.from"),
            to_id=validate_non_empty_string(require_key(raw, "to", where), f"{where}.to"),
            label=optional_string(raw, "label", where),
            message_type=_enum_value(MessageType, raw.get("message_type"),
                                     f"{where}.message_type", MessageType.SYNC),
        )
    if kind == "fragment":
        return FragmentEvent(
            fragment_type=_enum_value(FragmentType, require_key(raw, "fragment_type", where),
                                      f"{where}.fragment_type", FragmentType.OPT),
            label=optional_string(raw, "label", where),
            events=_events_from(optional_list(raw, "events", where), f"{where}.events"),
            alt_label=optional_string(raw, "alt_label", where),
            alt_events=_events_from(optional_list(raw, "alt_events", where), f"{where}.alt_events"),
        )
    if kind == "activation":
        return ActivationEvent(
            participant=validate_non_empty_string(
                require_key(raw, "participant", where), f"{where}.participant"),
            active=optional_flag(raw, "active", where, default=True),
        )
    return NoteEvent(
        participant=optional_string(raw, "participant", where),
        text=optional_string(raw, "text", where),
        note_type=_enum_value(NoteType, raw.get("note_type"), f"{where}.note_type", NoteType.NOTE),
    )


def _events_from(items: list, where: str) -> list[Event]:
    return [_event_from_dict(e, f"{where}[{i}]") for i, e in enumerate(items)]


def sequence_diagram_from_dict(data: Any) -> SequenceDiagram:
    """Build a SequenceDiagram from a definition dict."""
    data = validate_dict(data, "definition")
    participants = []
    for i, raw in enumerate(optional_list(data, "participants", "definition")):
        where = f"participants[{i}]"
        raw = validate_dict(raw, where)
        pid = validate_non_empty_string(require_key(raw, "id", where), f"{where}.id")
        participants.append(Participant(
            id=pid,
            name=optional_string(raw, "name", where, default=pid),
            type=_enum_value(ParticipantType, raw.get("type"), f"{where}.type",
                             ParticipantType.DEFAULT),
        ))
    return SequenceDiagram(
        participants=participants,
        events=_events_from(optional_list(data, "events", "definition"), "events"),
        notes=_notes_from(data, "definition"),
    )


def messages_of(events: list[Event]) -> list[MessageEvent]:
    """Top-level message events, in order."""
    return [e for e in events if isinstance(e, MessageEvent)]


# ---------------------------------------------------------------------------
# Flow diagrams
# ---------------------------------------------------------------------------

@dataclass
class FlowNode:
    id: str
    label: str = ""
    shape: NodeShape = NodeShape.PROCESS
    swimlane: str = ""


@dataclass
class FlowEdge:
    from_id: str
    to_id: str
    label: str = ""


@dataclass
class Swimlane:
    id: str
    name: str = ""


@dataclass
class FlowDiagram:
    nodes: list[FlowNode] = field(default_factory=list)
    edges: list[FlowEdge] = field(default_factory=list)
    swimlanes: list[Swimlane] = field(default_factory=list)
    notes: list[Note] = field(default_factory=list)

    kind = DiagramKind.FLOW

    def node_ids(self) -> list[str]:
        return [n.id for n in self.nodes]


def flow_diagram_from_dict(data: Any) -> FlowDiagram:
    """Build a FlowDiagram from a definition dict."""
    data = validate_dict(data, "definition")
    nodes = []
    for i, raw in enumerate(optional_list(data, "nodes", "definition")):
        where = f"nodes[{i}]"
        raw = validate_dict(raw, where)
        nodes.append(FlowNode(
            id=validate_non_empty_string(require_key(raw, "id", where), f"{where}.id"),
            label=optional_string(raw, "label", where),
            shape=_enum_value(NodeShape, raw.get("shape"), f"{where}.shape", NodeShape.PROCESS),
            swimlane=optional_string(raw, "swimlane", where),
        ))
    edges = []
    for i, raw in enumerate(optional_list(data, "edges", "definition")):
        where = f"edges[{i}]"
        raw = validate_dict(raw, where)
        edges.append(FlowEdge(
            from_id=validate_non_empty_string(require_key(raw, "from", where), f"{where}.from"),
            to_id=validate_non_empty_string(require_key(raw, "to", where), f"{where}.to"),
            label=optional_string(raw, "label", where),
        ))
    swimlanes = []
    for i, raw in enumerate(optional_list(data, "swimlanes", "definition")):
        where = f"swimlanes[{i}]"
        raw = validate_dict(raw, where)
        lane_id = validate_non_empty_string(require_key(raw, "id", where), f"{where}.id")
        swimlanes.append(Swimlane(id=lane_id, name=optional_string(raw, "name", where,
                                                                    default=lane_id)))
    return FlowDiagram(nodes=nodes, edges=edges, swimlanes=swimlanes,
                       notes=_notes_from(data, "definition"))


# ---------------------------------------------------------------------------
# Kind dispatch
# ---------------------------------------------------------------------------

Diagram = Union[ClassDiagram, StateDiagram, SequenceDiagram, FlowDiagram]


def diagram_from_dict(kind: str, data: Any) -> Diagram:
    """Build the model object for *kind* from a definition dict."""
    if kind == DiagramKind.CLASS.value:
        return class_diagram_from_dict(data)
    if kind == DiagramKind.STATE.value:
        return state_diagram_from_dict(data)
    if kind == DiagramKind.SEQUENCE.value:
        return sequence_diagram_from_dict(data)
    if kind == DiagramKind.FLOW.value:
        return flow_diagram_from_dict(data)
    raise ValidationError(f"Unknown diagram kind '{kind}'.")


# ---------------------------------------------------------------------------
# Kind-neutral graph view
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GraphNode:
    id: str
    width: int
    height: int


@dataclass(frozen=True)
class GraphEdge:
    from_id: str
    to_id: str
    kind: str = ""


@dataclass
class DiagramGraph:
    """Nodes with measured sizes plus typed directed edges (a multigraph).

    Edges whose endpoints are not both known nodes are dropped on
    construction, so every later stage can assume referential integrity.
    """
    nodes: list[GraphNode] = field(default_factory=list)
    edges: list[GraphEdge] = field(default_factory=list)

    def __post_init__(self) -> None:
        known = {n.id for n in self.nodes}
        self.edges = [e for e in self.edges if e.from_id in known and e.to_id in known]

    @property
    def node_ids(self) -> list[str]:
        return [n.id for n in self.nodes]

    def sizes(self) -> dict[str, tuple[int, int]]:
        return {n.id: (n.width, n.height) for n in self.nodes}

    def layering_adjacency(
        self,
        reversed_kinds: frozenset[str] = frozenset(t.value for t in HIERARCHY_EDGE_TYPES),
    ) -> tuple[dict[str, list[str]], dict[str, list[str]]]:
        """Build (incoming, outgoing) maps in layering direction.

        Edges whose kind is in *reversed_kinds* are flipped so that their
        target (parent / interface) lands in an earlier layer. Self-loops
        carry no ordering and are left out.
        """
        incoming: dict[str, list[str]] = {n.id: [] for n in self.nodes}
        outgoing: dict[str, list[str]] = {n.id: [] for n in self.nodes}
        for e in self.edges:
            if e.from_id == e.to_id:
                continue
            src, dst = (e.to_id, e.from_id) if e.kind in reversed_kinds else (e.from_id, e.to_id)
            outgoing[src].append(dst)
            incoming[dst].append(src)
        return incoming, outgoing
