"""
Text measurement and node sizing.

Widths are estimated from character counts (no font metrics are loaded);
every sizing rule used by the heuristic layouts lives here so that the
same node always measures the same way.
"""

from __future__ import annotations

from pact_layout.models import (
    AfterTrigger,
    ClassNode,
    EventTrigger,
    FlowNode,
    Method,
    NodeShape,
    Participant,
    ParticipantType,
    State,
    StateType,
    Transition,
    Visibility,
    WhenTrigger,
)

DEFAULT_FONT_SIZE = 12
CHAR_WIDTH_FACTOR = 0.6


def measure_text(text: str, font_size: int = DEFAULT_FONT_SIZE) -> tuple[int, int]:
    """Approximate (width, height) of *text* rendered at *font_size*."""
    char_width = font_size * CHAR_WIDTH_FACTOR
    return int(len(text) * char_width), font_size


def text_width(text: str, font_size: int = DEFAULT_FONT_SIZE) -> int:
    return measure_text(text, font_size)[0]


def wrap_text(text: str, max_width: int, font_size: int = DEFAULT_FONT_SIZE) -> list[str]:
    """Break *text* into lines no wider than *max_width*, preferring spaces."""
    chars_per_line = int(max_width / (font_size * CHAR_WIDTH_FACTOR))
    if chars_per_line <= 0:
        chars_per_line = 1

    lines: list[str] = []
    while text:
        if len(text) <= chars_per_line:
            lines.append(text)
            break
        break_point = chars_per_line
        for i in range(chars_per_line, 0, -1):
            if text[i] == " ":
                break_point = i
                break
        lines.append(text[:break_point])
        text = text[break_point:].lstrip(" ")
    return lines


# ---------------------------------------------------------------------------
# Class members
# ---------------------------------------------------------------------------

_VISIBILITY_SYMBOLS = {
    Visibility.PUBLIC: "+ ",
    Visibility.PRIVATE: "- ",
    Visibility.PROTECTED: "# ",
    Visibility.PACKAGE: "~ ",
}


def visibility_symbol(visibility: Visibility) -> str:
    return _VISIBILITY_SYMBOLS.get(visibility, "+ ")


def format_method(method: Method) -> str:
    """Render a method signature, e.g. ``async load(id: str): User``."""
    params = []
    for p in method.params:
        if p.name and p.type:
            params.append(f"{p.name}: {p.type}")
        elif p.type:
            params.append(p.type)
        else:
            params.append(p.name)
    text = f"{method.name}({', '.join(params)})"
    if method.return_type:
        text += f": {method.return_type}"
    if method.throws:
        text += " throws " + ", ".join(method.throws)
    if method.is_async:
        text = "async " + text
    return text


# Class box geometry
CLASS_MIN_WIDTH = 120
CLASS_TEXT_PADDING = 30
CLASS_LINE_HEIGHT = 20
CLASS_SECTION_PADDING = 10
CLASS_HEADER_PADDING = 15


def class_node_size(node: ClassNode) -> tuple[int, int]:
    """Width and height of a class box: name, stereotype and both compartments."""
    widest = text_width(node.name)
    if node.stereotype:
        widest = max(widest, text_width(f"<<{node.stereotype}>>"))
    for attr in node.attributes:
        widest = max(widest, text_width(f"{visibility_symbol(attr.visibility)}{attr.name}: {attr.type}"))
    for method in node.methods:
        widest = max(widest, text_width(visibility_symbol(method.visibility) + format_method(method)))
    width = max(CLASS_MIN_WIDTH, widest + CLASS_TEXT_PADDING)

    height = CLASS_HEADER_PADDING
    if node.stereotype:
        height += CLASS_LINE_HEIGHT
    height += CLASS_LINE_HEIGHT
    if node.attributes:
        height += CLASS_SECTION_PADDING + CLASS_LINE_HEIGHT * len(node.attributes)
    if node.methods:
        height += CLASS_SECTION_PADDING + CLASS_LINE_HEIGHT * len(node.methods)
    height += CLASS_HEADER_PADDING
    return width, height


# ---------------------------------------------------------------------------
# States
# ---------------------------------------------------------------------------

STATE_MIN_WIDTH = 80
STATE_BASE_HEIGHT = 40
STATE_ACTION_HEIGHT = 60
STATE_ACTION_LINE = 15
PSEUDO_INITIAL_SIZE = 20
PSEUDO_FINAL_SIZE = 24


def state_size(state: State) -> tuple[int, int]:
    """Box size of a state. Composite states size from their children."""
    if state.type is StateType.COMPOUND and state.children:
        rows = max(1, (len(state.children) + 1) // 2)
        return 2 * 90 + 40, 30 + rows * 50 + 20
    if state.type is StateType.PARALLEL and state.regions:
        return len(state.regions) * 100 + 20, 100
    widest = text_width(state.name)
    for action in state.entry:
        widest = max(widest, text_width(f"entry/ {action}"))
    for action in state.exit:
        widest = max(widest, text_width(f"exit/ {action}"))
    width = max(STATE_MIN_WIDTH, widest + 20)
    if state.entry or state.exit:
        height = STATE_ACTION_HEIGHT + STATE_ACTION_LINE * (len(state.entry) + len(state.exit))
    else:
        height = STATE_BASE_HEIGHT
    return width, height


def transition_label(transition: Transition) -> str:
    """``trigger [guard] / action, action`` with absent parts left out."""
    trigger = transition.trigger
    if isinstance(trigger, EventTrigger):
        label = trigger.event
    elif isinstance(trigger, WhenTrigger):
        label = f"when({trigger.condition})"
    elif isinstance(trigger, AfterTrigger):
        label = f"after {trigger.value}{trigger.unit}"
    else:
        label = ""
    if transition.guard:
        label = f"{label} [{transition.guard}]" if label else f"[{transition.guard}]"
    if transition.actions:
        label += " / " + ", ".join(transition.actions)
    return label


# ---------------------------------------------------------------------------
# Flow nodes and participants
# ---------------------------------------------------------------------------

FLOW_MIN_WIDTH = 100
FLOW_NODE_HEIGHT = 40
FLOW_DATABASE_HEIGHT = 50
PARTICIPANT_MIN_WIDTH = 80
PARTICIPANT_HEIGHT = 40


def flow_node_size(node: FlowNode) -> tuple[int, int]:
    width = max(FLOW_MIN_WIDTH, text_width(node.label) + 30)
    height = FLOW_DATABASE_HEIGHT if node.shape is NodeShape.DATABASE else FLOW_NODE_HEIGHT
    return width, height


def participant_size(participant: Participant) -> tuple[int, int]:
    width = max(PARTICIPANT_MIN_WIDTH, text_width(participant.name) + 20)
    if participant.type is ParticipantType.DATABASE:
        return width, FLOW_DATABASE_HEIGHT
    return width, PARTICIPANT_HEIGHT
