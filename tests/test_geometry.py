"""Tests for geometry primitives."""

from pact_layout.geometry import (
    Point,
    Rect,
    box_hits_any,
    is_orthogonal,
    line_intersects_rect,
    path_is_clear,
    segments_intersect,
    trunc_div,
    union_bounds,
)


class TestRect:
    def test_edges_and_center(self) -> None:
        r = Rect(10, 20, 100, 50)
        assert r.right == 110
        assert r.bottom == 70
        assert (r.cx, r.cy) == (60, 45)

    def test_expanded(self) -> None:
        assert Rect(10, 10, 20, 20).expanded(5) == Rect(5, 5, 30, 30)

    def test_touching_rects_do_not_overlap(self) -> None:
        """Shared edges are not an overlap."""
        assert not Rect(0, 0, 10, 10).overlaps(Rect(10, 0, 10, 10))
        assert Rect(0, 0, 10, 10).overlaps(Rect(9, 9, 10, 10))

    def test_contains_point_inclusive(self) -> None:
        r = Rect(0, 0, 10, 10)
        assert r.contains_point(10, 10)
        assert not r.contains_point(12, 5)
        assert r.expanded(2).contains_point(12, 5)

    def test_to_dict(self) -> None:
        assert Rect(1, 2, 3, 4).to_dict() == {"x": 1, "y": 2, "width": 3, "height": 4}


class TestScalars:
    def test_trunc_div_rounds_toward_zero(self) -> None:
        assert trunc_div(7, 2) == 3
        assert trunc_div(-7, 2) == -3
        assert trunc_div(7, -2) == -3
        assert trunc_div(-7, -2) == 3

    def test_union_bounds(self) -> None:
        bounds = union_bounds([Rect(0, 0, 10, 10), Rect(20, 30, 5, 5)])
        assert bounds == Rect(0, 0, 25, 35)

    def test_union_bounds_empty(self) -> None:
        assert union_bounds([]) is None


class TestIntersection:
    def test_vertical_segment_through_rect(self) -> None:
        assert line_intersects_rect(Point(100, 100), Point(100, 300), Rect(80, 180, 40, 40))

    def test_margin_catches_near_miss(self) -> None:
        """A segment 3px left of the box hits it once the 5px margin applies."""
        rect = Rect(80, 180, 40, 40)
        assert line_intersects_rect(Point(77, 100), Point(77, 300), rect, margin=5)
        assert not line_intersects_rect(Point(77, 100), Point(77, 300), rect, margin=0)

    def test_horizontal_segment_clear(self) -> None:
        assert not line_intersects_rect(Point(0, 10), Point(500, 10), Rect(80, 180, 40, 40))

    def test_diagonal_segment(self) -> None:
        rect = Rect(40, 40, 20, 20)
        assert line_intersects_rect(Point(0, 0), Point(100, 100), rect)
        assert not line_intersects_rect(Point(0, 100), Point(20, 80), rect)

    def test_diagonal_endpoint_inside_margin(self) -> None:
        """A segment ending in the margin band counts as a hit."""
        rect = Rect(40, 40, 20, 20)
        assert line_intersects_rect(Point(20, 30), Point(37, 37), rect, margin=5)
        assert not line_intersects_rect(Point(20, 30), Point(37, 37), rect, margin=0)

    def test_segments_intersect(self) -> None:
        assert segments_intersect(0, 0, 10, 10, 0, 10, 10, 0)
        assert not segments_intersect(0, 0, 10, 0, 0, 5, 10, 5)

    def test_path_is_clear(self) -> None:
        obstacle = Rect(80, 180, 40, 40)
        around = [Point(100, 100), Point(60, 100), Point(60, 300), Point(100, 300)]
        through = [Point(100, 100), Point(100, 300)]
        assert path_is_clear(around, [obstacle])
        assert not path_is_clear(through, [obstacle])

    def test_box_hits_any_is_strict(self) -> None:
        obstacle = Rect(100, 0, 50, 50)
        assert not box_hits_any(Point(0, 25), Point(95, 25), [obstacle], padding=5)
        assert box_hits_any(Point(0, 25), Point(96, 25), [obstacle], padding=5)


def test_is_orthogonal() -> None:
    assert is_orthogonal([Point(0, 0), Point(0, 10), Point(20, 10)])
    assert not is_orthogonal([Point(0, 0), Point(10, 10)])
