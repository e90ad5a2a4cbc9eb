"""Tests for the layered layout engine: layering, crossing reduction, placement, notes."""

from pact_layout.geometry import Point, Rect
from pact_layout.layout_engine import (
    DiagramLayout,
    LayoutEngineConfig,
    PlacedNode,
    RoutedEdge,
    assign_layers,
    barycenter_iterations,
    canvas_for_notes,
    count_crossings,
    layer_graph,
    layering_violations,
    note_anchor_position,
    place_layers,
    place_notes,
    reduce_crossings,
    reorder_layer,
)
from pact_layout.models import DiagramGraph, GraphEdge, GraphNode, Note, NotePosition


def _graph(node_ids: str, edges: list[tuple[str, str]], kind: str = "") -> DiagramGraph:
    return DiagramGraph(
        nodes=[GraphNode(n, 120, 60) for n in node_ids],
        edges=[GraphEdge(a, b, kind) for a, b in edges],
    )


def _adjacency(edges: list[tuple[str, str]], node_ids: str):
    incoming = {n: [] for n in node_ids}
    outgoing = {n: [] for n in node_ids}
    for a, b in edges:
        outgoing[a].append(b)
        incoming[b].append(a)
    return incoming, outgoing


# ===========================================================================
# Layer assignment
# ===========================================================================

class TestAssignLayers:
    def test_single_edge(self) -> None:
        incoming, _ = _adjacency([("A", "B")], "AB")
        assert assign_layers(list("AB"), incoming) == [["A"], ["B"]]

    def test_two_node_cycle_terminates(self) -> None:
        """A cycle has no ready node, so everything left is flushed into one layer."""
        incoming, outgoing = _adjacency([("A", "B"), ("B", "A")], "AB")
        layers = assign_layers(list("AB"), incoming)
        assert layers == [["A", "B"]]
        assert layering_violations(layers, outgoing) == [("A", "B"), ("B", "A")]

    def test_cycle_below_a_root(self) -> None:
        edges = [("R", "A"), ("A", "B"), ("B", "A")]
        incoming, _ = _adjacency(edges, "RAB")
        assert assign_layers(list("RAB"), incoming) == [["R"], ["A", "B"]]

    def test_acyclic_layering_respects_edges(self) -> None:
        edges = [("A", "B"), ("A", "C"), ("B", "D"), ("C", "D"), ("A", "D"), ("E", "C")]
        incoming, outgoing = _adjacency(edges, "ABCDE")
        layers = assign_layers(list("ABCDE"), incoming)
        assert layering_violations(layers, outgoing) == []
        assert layers[0] == ["A", "E"]

    def test_every_node_assigned_once(self) -> None:
        edges = [("A", "B"), ("B", "C"), ("C", "A"), ("C", "D")]
        incoming, _ = _adjacency(edges, "ABCD")
        layers = assign_layers(list("ABCD"), incoming)
        flat = [n for layer in layers for n in layer]
        assert sorted(flat) == list("ABCD")

    def test_empty(self) -> None:
        assert assign_layers([], {}) == []

    def test_hierarchy_edges_put_parent_on_top(self) -> None:
        graph = _graph("CP", [("C", "P")], kind="inheritance")
        assert layer_graph(graph) == [["P"], ["C"]]

    def test_self_loop_does_not_flatten_layers(self) -> None:
        graph = _graph("AB", [("A", "A"), ("A", "B")])
        layers = layer_graph(graph)
        assert layers == [["A"], ["B"]]
        _, outgoing = graph.layering_adjacency()
        assert layering_violations(layers, outgoing) == []


# ===========================================================================
# Crossing minimisation
# ===========================================================================

class TestCrossingReduction:
    def test_iterations_scale_and_cap(self) -> None:
        cfg = LayoutEngineConfig()
        assert barycenter_iterations([["A"], ["B"]], cfg) == 5
        big = [[f"n{i}_{j}" for j in range(30)] for i in range(10)]
        assert barycenter_iterations(big, cfg) == cfg.max_iterations

    def test_removes_simple_crossing(self) -> None:
        edges = [("A", "D"), ("B", "C")]
        incoming, outgoing = _adjacency(edges, "ABCD")
        layers = [["A", "B"], ["C", "D"]]
        assert count_crossings(layers, outgoing) == 1
        reduced = reduce_crossings(layers, incoming, outgoing)
        assert count_crossings(reduced, outgoing) == 0

    def test_layer_membership_preserved(self) -> None:
        edges = [("A", "E"), ("B", "D"), ("C", "F"), ("A", "F")]
        incoming, outgoing = _adjacency(edges, "ABCDEF")
        layers = [["A", "B", "C"], ["D", "E", "F"]]
        reduced = reduce_crossings(layers, incoming, outgoing)
        assert [sorted(layer) for layer in reduced] == [["A", "B", "C"], ["D", "E", "F"]]

    def test_stable_for_ties(self) -> None:
        """Nodes without neighbours in the adjacent layer keep their relative order."""
        layer = reorder_layer(["X", "Y", "Z"], ["P"], {}, {"X": 0, "Y": 1, "Z": 2})
        assert layer == ["X", "Y", "Z"]

    def test_barycenter_order(self) -> None:
        connections = {"X": ["R"], "Y": ["P"]}
        positions = {"X": 0, "Y": 1}
        assert reorder_layer(["X", "Y"], ["P", "Q", "R"], connections, positions) == ["Y", "X"]

    def test_single_layer_unchanged(self) -> None:
        assert reduce_crossings([["B", "A"]], {}, {}) == [["B", "A"]]


# ===========================================================================
# Placement
# ===========================================================================

class TestPlacement:
    def test_two_layers_centred(self) -> None:
        sizes = {"A": (120, 50), "B": (120, 50)}
        boxes, width, y_end = place_layers([["A"], ["B"]], sizes)
        assert width == 800
        assert boxes["A"] == Rect(340, 50, 120, 50)
        assert boxes["B"] == Rect(340, 160, 120, 50)
        assert y_end == 270

    def test_nodes_in_a_layer_do_not_overlap(self) -> None:
        sizes = {n: (200, 60) for n in "ABCDE"}
        boxes, width, _ = place_layers([list("ABCDE")], sizes)
        assert width == 5 * 200 + 4 * 40 + 100
        rects = [boxes[n] for n in "ABCDE"]
        for i, a in enumerate(rects):
            for b in rects[i + 1:]:
                assert not a.overlaps(b)
        assert rects[0].x == 50

    def test_left_margin_floor(self) -> None:
        sizes = {"A": (900, 40)}
        boxes, width, _ = place_layers([["A"]], sizes)
        assert width == 1000
        assert boxes["A"].x == 50


# ===========================================================================
# Notes
# ===========================================================================

class TestNotes:
    def test_anchor_positions(self) -> None:
        anchors = {"A": (100, 100)}
        assert note_anchor_position(Note("n", "A"), anchors) == (220, 100)
        assert note_anchor_position(Note("n", "A", NotePosition.LEFT), anchors) == (-30, 100)
        assert note_anchor_position(Note("n", "A", NotePosition.TOP), anchors) == (100, 40)
        assert note_anchor_position(Note("n", "A", NotePosition.BOTTOM), anchors) == (100, 160)

    def test_unattached_note_default(self) -> None:
        assert note_anchor_position(Note("free"), {}) == (600, 50)
        assert note_anchor_position(Note("x", "missing"), {"A": (0, 0)}) == (600, 50)

    def test_notes_avoid_each_other(self) -> None:
        anchors = {"A": (100, 100)}
        placed = place_notes([Note("one", "A"), Note("two", "A")], anchors)
        assert placed[0].rect == Rect(220, 100, 100, 40)
        assert not placed[0].rect.overlaps(placed[1].rect)
        assert placed[0].connector == [Point(160, 120), Point(220, 120)]

    def test_canvas_grows_for_notes(self) -> None:
        anchors = {"A": (700, 100)}
        width, height = canvas_for_notes([Note("n", "A")], anchors, 800, 600)
        assert width == 820 + 100 + 50
        assert height == 600


# ===========================================================================
# Result types
# ===========================================================================

class TestResultTypes:
    def test_edge_to_dict(self) -> None:
        edge = RoutedEdge("A", "B", [Point(0, 0), Point(0, 10)], label="uses",
                          label_pos=Point(5, 5), decoration="arrow", line_style="dashed",
                          from_offset=-10)
        d = edge.to_dict()
        assert d["decoration_at"] == "target"
        assert d["attachment"] == {"from": -10, "to": 0}
        assert d["label_pos"] == {"x": 5, "y": 5}

    def test_edge_to_dict_minimal(self) -> None:
        d = RoutedEdge("A", "B").to_dict()
        assert d == {"from": "A", "to": "B", "points": [], "line_style": "solid"}

    def test_layout_to_dict_merges_extras(self) -> None:
        layout = DiagramLayout("class", "heuristic", 800, 600,
                               nodes=[PlacedNode("A", 1, 2, 3, 4)],
                               extras={"layers": [["A"]]})
        d = layout.to_dict()
        assert d["layers"] == [["A"]]
        assert "pattern" not in d
        assert layout.node("A").rect == Rect(1, 2, 3, 4)
        assert layout.node("Z") is None
