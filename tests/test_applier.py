"""Tests for scaling pattern templates onto concrete canvases."""

import pytest

from pact_layout.applier import (
    SEQUENCE_PARTICIPANT_HEIGHT,
    NodeLayout,
    PatternLayoutApplier,
    connection_point,
)
from pact_layout.detectors import PatternMatch
from pact_layout.geometry import Point
from pact_layout.patterns import (
    CurveStyle,
    EdgePath,
    LayoutPosition,
    PatternLayout,
    PatternRegistry,
    PatternType,
    RelPoint,
)


DIAMOND_ROLES = {"top": "T", "left": "L", "right": "R", "bottom": "B"}


@pytest.fixture
def applier() -> PatternLayoutApplier:
    return PatternLayoutApplier(PatternRegistry())


def _uniform(ids, width: int, height: int) -> tuple[dict[str, int], dict[str, int]]:
    return {i: width for i in ids}, {i: height for i in ids}


class TestApplyDiamond:
    def test_explicit_canvas_centres_roles(self, applier: PatternLayoutApplier) -> None:
        """On a 400x400 canvas the top role is centred on (200, 48)."""
        match = PatternMatch(PatternType.DIAMOND, dict(DIAMOND_ROLES), 1.0)
        widths, heights = _uniform(DIAMOND_ROLES.values(), 100, 40)
        applied = applier.apply(match, widths, heights, canvas_size=(400, 400))

        assert (applied.width, applied.height) == (400, 400)
        top = applied.node("T")
        assert (top.x, top.y, top.width, top.height) == (150, 28, 100, 40)
        assert top.center == Point(200, 48)
        left = applied.node("L")
        assert (left.x, left.y) == (30, 160)
        right = applied.node("R")
        assert (right.x, right.y) == (270, 160)
        bottom = applied.node("B")
        assert (bottom.x, bottom.y) == (150, 292)

    def test_edges_attach_to_facing_sides(self, applier: PatternLayoutApplier) -> None:
        match = PatternMatch(PatternType.DIAMOND, dict(DIAMOND_ROLES), 1.0)
        widths, heights = _uniform(DIAMOND_ROLES.values(), 100, 40)
        applied = applier.apply(match, widths, heights, canvas_size=(400, 400))

        first = applied.edges[0]
        assert (first.from_id, first.to_id) == ("L", "T")
        assert first.waypoints == [Point(80, 160), Point(200, 68)]

    def test_content_driven_canvas(self, applier: PatternLayoutApplier) -> None:
        match = PatternMatch(PatternType.DIAMOND, dict(DIAMOND_ROLES), 1.0)
        widths, heights = _uniform(DIAMOND_ROLES.values(), 100, 40)
        applied = applier.apply(match, widths, heights)
        # The template minimum dominates, plus padding on both sides.
        assert (applied.width, applied.height) == (550, 550)

    def test_wide_content_grows_canvas(self, applier: PatternLayoutApplier) -> None:
        match = PatternMatch(PatternType.DIAMOND, dict(DIAMOND_ROLES), 1.0)
        widths, heights = _uniform(DIAMOND_ROLES.values(), 150, 40)
        applied = applier.apply(match, widths, heights)
        assert applied.width == 600
        assert applied.height == 550

    def test_repeated_application_is_identical(self, applier: PatternLayoutApplier) -> None:
        match = PatternMatch(PatternType.DIAMOND, dict(DIAMOND_ROLES), 1.0)
        widths, heights = _uniform(DIAMOND_ROLES.values(), 130, 55)
        first = applier.apply(match, widths, heights).to_dict()
        second = applier.apply(match, widths, heights).to_dict()
        assert first == second

    def test_unmeasured_role_is_omitted(self, applier: PatternLayoutApplier) -> None:
        match = PatternMatch(PatternType.DIAMOND, dict(DIAMOND_ROLES), 1.0)
        widths, heights = _uniform(["T", "L", "R"], 100, 40)
        applied = applier.apply(match, widths, heights, canvas_size=(400, 400))
        assert [n.id for n in applied.nodes] == ["T", "L", "R"]
        assert [(e.from_id, e.to_id) for e in applied.edges] == [("L", "T"), ("R", "T")]

    def test_unknown_role_is_omitted(self, applier: PatternLayoutApplier) -> None:
        roles = dict(DIAMOND_ROLES, extra="X")
        match = PatternMatch(PatternType.DIAMOND, roles, 1.0)
        widths, heights = _uniform(roles.values(), 100, 40)
        applied = applier.apply(match, widths, heights, canvas_size=(400, 400))
        assert applied.node("X") is None
        assert len(applied.nodes) == 4


class TestApplyOther:
    def test_missing_template(self) -> None:
        applier = PatternLayoutApplier(PatternRegistry([]))
        match = PatternMatch(PatternType.DIAMOND, dict(DIAMOND_ROLES), 1.0)
        widths, heights = _uniform(DIAMOND_ROLES.values(), 100, 40)
        assert applier.apply(match, widths, heights) is None

    def test_sequence_uses_fixed_height(self, applier: PatternLayoutApplier) -> None:
        match = PatternMatch(PatternType.REQUEST_RESPONSE, {"caller": "A", "callee": "B"}, 1.0)
        applied = applier.apply_sequence(match, {"A": 100, "B": 100})
        assert [n.height for n in applied.nodes] == [SEQUENCE_PARTICIPANT_HEIGHT] * 2
        assert applied.decorators == []

    def test_decorators_scaled(self, applier: PatternLayoutApplier) -> None:
        roles = {"layer1_0": "A", "layer2_0": "B"}
        match = PatternMatch(PatternType.LAYERED, roles, 1.0)
        widths, heights = _uniform(roles.values(), 100, 40)
        applied = applier.apply(match, widths, heights, canvas_size=(1000, 500))
        assert [d.type for d in applied.decorators] == ["divider", "divider"]
        divider = applied.decorators[0]
        assert (divider.x, divider.width) == (100, 800)
        assert divider.style["stroke"] == "#cbd5e0"

    def test_curved_edge_passes_through_midpoint(self) -> None:
        template = PatternLayout(
            PatternType.DIAMOND, "Curved", 400, 400, 0,
            positions=(LayoutPosition("top", 0.25, 0.25, 0.2, 0.2),
                       LayoutPosition("left", 0.75, 0.75, 0.2, 0.2)),
            edges=(EdgePath("top", "left", curve=CurveStyle.CURVED),),
        )
        applier = PatternLayoutApplier(PatternRegistry([template]))
        match = PatternMatch(PatternType.DIAMOND, {"top": "A", "left": "B"}, 1.0)
        applied = applier.apply(match, {"A": 40, "B": 40}, {"A": 40, "B": 40}, (400, 400))
        assert applied.edges[0].waypoints[1] == Point(200, 200)
        assert len(applied.edges[0].waypoints) == 3

    def test_to_dict_shape(self, applier: PatternLayoutApplier) -> None:
        match = PatternMatch(PatternType.DIAMOND, dict(DIAMOND_ROLES), 1.0)
        widths, heights = _uniform(DIAMOND_ROLES.values(), 100, 40)
        d = applier.apply(match, widths, heights, canvas_size=(400, 400)).to_dict()
        assert d["pattern"] == "diamond"
        assert set(d["edges"][0]) == {"from", "to", "waypoints", "labelX", "labelY"}


class TestConnectionPoint:
    def test_sides(self) -> None:
        node = NodeLayout("n", 0, 0, 100, 40)
        assert connection_point(node, Point(500, 20)) == Point(100, 20)
        assert connection_point(node, Point(-500, 20)) == Point(0, 20)
        assert connection_point(node, Point(50, 500)) == Point(50, 40)
        assert connection_point(node, Point(50, -500)) == Point(50, 0)


def _every_template() -> list[PatternLayout]:
    registry = PatternRegistry()
    return [t for base in registry for t in registry.variants(base.type)]


class TestCanvasContainment:
    @pytest.mark.parametrize("template", _every_template(), ids=lambda t: t.name)
    @pytest.mark.parametrize("size", [(120, 50), (300, 40), (40, 200)])
    def test_boxes_inside_content_canvas(self, template: PatternLayout, size: tuple[int, int]) -> None:
        roles = {role: f"n{i}" for i, role in enumerate(template.roles())}
        match = PatternMatch(template.type, roles, 1.0)
        widths, heights = _uniform(roles.values(), *size)
        applied = PatternLayoutApplier(PatternRegistry([template])).apply(match, widths, heights)

        assert len(applied.nodes) == len(roles)
        for node in applied.nodes:
            assert node.x >= 0 and node.y >= 0, (template.name, node)
            assert node.x + node.width <= applied.width, (template.name, node)
            assert node.y + node.height <= applied.height, (template.name, node)

    def test_small_explicit_canvas_keeps_coordinates_non_negative(self, applier: PatternLayoutApplier) -> None:
        match = PatternMatch(PatternType.REQUEST_RESPONSE, {"caller": "A", "callee": "B"}, 1.0)
        applied = applier.apply_sequence(match, {"A": 100, "B": 100}, canvas_size=(300, 200))
        a = applied.node("A")
        assert (a.x, a.y) == (25, 0)
        assert all(n.x >= 0 and n.y >= 0 for n in applied.nodes)

    def test_sequence_participants_below_top_edge(self, applier: PatternLayoutApplier) -> None:
        match = PatternMatch(PatternType.REQUEST_RESPONSE, {"caller": "A", "callee": "B"}, 1.0)
        applied = applier.apply_sequence(match, {"A": 100, "B": 100})
        assert all(n.y >= 0 for n in applied.nodes)

    def test_sequential_end_inside_canvas(self, applier: PatternLayoutApplier) -> None:
        roles = {"start": "s", "process_0": "a", "process_1": "b", "process_2": "c",
                 "process_3": "d", "end": "e"}
        match = PatternMatch(PatternType.SEQUENTIAL, roles, 1.0)
        widths, heights = _uniform(roles.values(), 100, 40)
        applied = applier.apply(match, widths, heights)
        end = applied.node("e")
        assert end.x + end.width <= applied.width


class TestSizedVariants:
    def test_two_children_use_two_child_tree(self, applier: PatternLayoutApplier) -> None:
        roles = {"parent": "P", "child_0": "A", "child_1": "B"}
        match = PatternMatch(PatternType.INHERITANCE_TREE, roles, 1.0)
        widths, heights = _uniform(roles.values(), 120, 50)
        applied = applier.apply(match, widths, heights)

        assert (applied.width, applied.height) == (488, 340)
        parent, left, right = (applied.node(n) for n in ("P", "A", "B"))
        assert (parent.x, parent.y) == (184, 36)
        assert (left.x, left.y) == (62, 230)
        assert (right.x, right.y) == (306, 230)
        assert applied.edges[0].waypoints == [
            Point(122, 230), Point(122, 176), Point(244, 176), Point(244, 86),
        ]

    def test_interface_pair_carries_stereotype_label(self, applier: PatternLayoutApplier) -> None:
        roles = {"interface": "I", "impl_0": "A", "impl_1": "B"}
        match = PatternMatch(PatternType.INTERFACE_IMPL, roles, 0.9)
        widths, heights = _uniform(roles.values(), 120, 50)
        applied = applier.apply(match, widths, heights)
        assert [d.style["text"] for d in applied.decorators] == ["<<interface>>"]

    def test_if_else_branch_labels(self, applier: PatternLayoutApplier) -> None:
        roles = {"decision": "d", "true_process": "t", "false_process": "f", "merge": "m"}
        match = PatternMatch(PatternType.IF_ELSE, roles, 0.95)
        widths, heights = _uniform(roles.values(), 80, 40)
        applied = applier.apply(match, widths, heights, canvas_size=(1000, 1000))
        labels = [(d.type, d.style["text"], d.x) for d in applied.decorators]
        assert labels == [("label", "Yes", 180), ("label", "No", 180)]


class TestOrthogonalEdges:
    def test_misaligned_waypoint_gets_elbows(self) -> None:
        template = PatternLayout(
            PatternType.DIAMOND, "Bent", 400, 400, 0,
            positions=(LayoutPosition("top", 0.25, 0.25, 0.1, 0.1),
                       LayoutPosition("left", 0.75, 0.75, 0.1, 0.1)),
            edges=(EdgePath("top", "left", (RelPoint(0.5, 0.2),), curve=CurveStyle.ORTHOGONAL),),
        )
        applier = PatternLayoutApplier(PatternRegistry([template]))
        match = PatternMatch(PatternType.DIAMOND, {"top": "A", "left": "B"}, 1.0)
        applied = applier.apply(match, {"A": 40, "B": 40}, {"A": 40, "B": 40}, (400, 400))
        assert applied.edges[0].waypoints == [
            Point(120, 100), Point(200, 100), Point(200, 80), Point(300, 80), Point(300, 280),
        ]
