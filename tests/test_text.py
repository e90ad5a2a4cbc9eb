"""Tests for text measurement and node sizing."""

from pact_layout.models import (
    AfterTrigger,
    Attribute,
    ClassNode,
    EventTrigger,
    FlowNode,
    Method,
    NodeShape,
    Param,
    Participant,
    ParticipantType,
    Region,
    State,
    StateType,
    Transition,
    WhenTrigger,
)
from pact_layout.text import (
    class_node_size,
    flow_node_size,
    format_method,
    measure_text,
    participant_size,
    state_size,
    transition_label,
    wrap_text,
)


class TestMeasure:
    def test_measure_text(self) -> None:
        assert measure_text("abc") == (21, 12)
        assert measure_text("") == (0, 12)

    def test_wrap_prefers_spaces(self) -> None:
        assert wrap_text("hello world foo", 60) == ["hello", "world", "foo"]

    def test_wrap_short_text(self) -> None:
        assert wrap_text("hi", 200) == ["hi"]
        assert wrap_text("", 200) == []


class TestClassSizing:
    def test_empty_class(self) -> None:
        assert class_node_size(ClassNode("A", "A")) == (120, 50)

    def test_compartments_add_height(self) -> None:
        node = ClassNode("A", "A", attributes=[Attribute("id", "int")])
        assert class_node_size(node) == (120, 80)
        node.methods.append(Method("run"))
        assert class_node_size(node)[1] == 110

    def test_stereotype_adds_line(self) -> None:
        assert class_node_size(ClassNode("A", "A", stereotype="interface"))[1] == 70

    def test_long_member_widens(self) -> None:
        long_name = "x" * 40
        node = ClassNode("A", "A", attributes=[Attribute(long_name, "str")])
        width, _ = class_node_size(node)
        assert width > 120

    def test_format_method(self) -> None:
        method = Method("load", [Param("id", "str")], "User", is_async=True, throws=["IOError"])
        assert format_method(method) == "async load(id: str): User throws IOError"
        assert format_method(Method("ping", [Param(type="int")])) == "ping(int)"


class TestStateSizing:
    def test_atomic(self) -> None:
        assert state_size(State("Idle", "Idle")) == (80, 40)

    def test_actions_grow_box(self) -> None:
        assert state_size(State("S", "S", entry=["start"])) == (106, 75)

    def test_compound(self) -> None:
        children = [State(c, c) for c in "abc"]
        assert state_size(State("C", "C", StateType.COMPOUND, children=children)) == (220, 150)

    def test_parallel(self) -> None:
        regions = [Region("r1"), Region("r2")]
        assert state_size(State("P", "P", StateType.PARALLEL, regions=regions)) == (220, 100)


class TestTransitionLabel:
    def test_full_label(self) -> None:
        t = Transition("A", "B", EventTrigger("go"), guard="ok", actions=["a", "b"])
        assert transition_label(t) == "go [ok] / a, b"

    def test_after_and_when(self) -> None:
        assert transition_label(Transition("A", "B", AfterTrigger(5))) == "after 5s"
        assert transition_label(Transition("A", "B", WhenTrigger("done"))) == "when(done)"

    def test_guard_only(self) -> None:
        assert transition_label(Transition("A", "B", guard="g")) == "[g]"

    def test_empty(self) -> None:
        assert transition_label(Transition("A", "B")) == ""


class TestOtherSizing:
    def test_flow_nodes(self) -> None:
        assert flow_node_size(FlowNode("s", "Start")) == (100, 40)
        assert flow_node_size(FlowNode("d", "Store", NodeShape.DATABASE)) == (100, 50)

    def test_participants(self) -> None:
        assert participant_size(Participant("U", "User")) == (80, 40)
        assert participant_size(Participant("D", "DB", ParticipantType.DATABASE)) == (80, 50)
