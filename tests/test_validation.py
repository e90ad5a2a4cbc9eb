"""Tests for input validation in the MCP server tools."""

import pytest

from pact_layout.geometry import Point, Rect
from pact_layout.patterns import PatternType
from pact_layout.server import (
    _diagrams,
    diagram,
    layout,
    patterns,
    route,
)
from pact_layout.validation import (
    ValidationError,
    optional_flag,
    optional_list,
    optional_string,
    optional_string_list,
    require_key,
    validate_action,
    validate_canvas_size,
    validate_coordinate,
    validate_diagram_kind,
    validate_enum,
    validate_fraction,
    validate_int,
    validate_non_empty_string,
    validate_obstacles,
    validate_pattern_name,
    validate_point,
    validate_rect,
    _DIAGRAM_ACTIONS,
    _ROUTE_ACTIONS,
)


def setup_function() -> None:
    """Clear diagrams between tests."""
    _diagrams.clear()


# ===================================================================
# Unit tests for primitive validators
# ===================================================================


class TestValidateNonEmptyString:
    def test_valid(self) -> None:
        assert validate_non_empty_string("hello", "f") == "hello"

    def test_strips_whitespace(self) -> None:
        assert validate_non_empty_string("  hi  ", "f") == "hi"

    def test_empty_string(self) -> None:
        with pytest.raises(ValidationError, match="non-empty"):
            validate_non_empty_string("", "field")

    def test_none(self) -> None:
        with pytest.raises(ValidationError, match="non-empty"):
            validate_non_empty_string(None, "field")


class TestValidateInt:
    def test_valid(self) -> None:
        assert validate_int(5, "n", min_val=0, max_val=10) == 5

    def test_bool_rejected(self) -> None:
        with pytest.raises(ValidationError, match="integer"):
            validate_int(True, "n")

    def test_below_min(self) -> None:
        with pytest.raises(ValidationError, match=">= 1"):
            validate_int(0, "n", min_val=1)

    def test_above_max(self) -> None:
        with pytest.raises(ValidationError, match="<= 3"):
            validate_int(4, "n", max_val=3)


class TestValidateCoordinate:
    def test_int_and_integral_float(self) -> None:
        assert validate_coordinate(10, "x") == 10
        assert validate_coordinate(10.0, "x") == 10

    def test_fractional_float(self) -> None:
        with pytest.raises(ValidationError, match="whole number"):
            validate_coordinate(10.5, "x")

    def test_string(self) -> None:
        with pytest.raises(ValidationError, match="number"):
            validate_coordinate("10", "x")


class TestValidateMisc:
    def test_enum_case_insensitive(self) -> None:
        assert validate_enum("SYNC", "t", {"sync", "async"}) == "sync"
        with pytest.raises(ValidationError, match="must be one of"):
            validate_enum("later", "t", {"sync", "async"})

    def test_fraction(self) -> None:
        assert validate_fraction(1, "f") == 1.0
        with pytest.raises(ValidationError, match="between 0 and 1"):
            validate_fraction(1.5, "f")

    def test_diagram_kind(self) -> None:
        assert validate_diagram_kind("Flow") == "flow"
        with pytest.raises(ValidationError, match="kind"):
            validate_diagram_kind("gantt")


class TestValidateAction:
    def test_valid(self) -> None:
        assert validate_action("create", "diagram", _DIAGRAM_ACTIONS) == "create"

    def test_case_insensitive(self) -> None:
        assert validate_action("ORTHOGONAL", "route", _ROUTE_ACTIONS) == "orthogonal"

    def test_unknown_action(self) -> None:
        with pytest.raises(ValidationError, match="Unknown"):
            validate_action("bogus", "diagram", _DIAGRAM_ACTIONS)

    def test_empty_action(self) -> None:
        with pytest.raises(ValidationError, match="requires"):
            validate_action("", "diagram", _DIAGRAM_ACTIONS)


# ===================================================================
# Unit tests for geometry and definition validators
# ===================================================================


class TestValidateGeometry:
    def test_point(self) -> None:
        assert validate_point({"x": 1, "y": 2}, "p") == Point(1, 2)

    def test_point_missing_key(self) -> None:
        with pytest.raises(ValidationError, match="missing required key 'y'"):
            validate_point({"x": 1}, "p")

    def test_rect(self) -> None:
        assert validate_rect({"x": 0, "y": 0, "width": 10, "height": 5}, "r") == Rect(0, 0, 10, 5)

    def test_rect_negative_size(self) -> None:
        with pytest.raises(ValidationError, match=">= 0"):
            validate_rect({"x": 0, "y": 0, "width": -1, "height": 5}, "r")

    def test_obstacles(self) -> None:
        assert validate_obstacles(None) == []
        rects = validate_obstacles([{"x": 1, "y": 2, "width": 3, "height": 4}])
        assert rects == [Rect(1, 2, 3, 4)]
        with pytest.raises(ValidationError, match="obstacles\\[0\\]"):
            validate_obstacles([{"x": 1}])


class TestValidateCanvasSize:
    def test_derived(self) -> None:
        assert validate_canvas_size(0, 0) is None

    def test_explicit(self) -> None:
        assert validate_canvas_size(400, 300) == (400, 300)

    def test_half_given(self) -> None:
        with pytest.raises(ValidationError, match="together"):
            validate_canvas_size(400, 0)

    def test_negative(self) -> None:
        with pytest.raises(ValidationError, match="canvas_width"):
            validate_canvas_size(-1, 10)


class TestValidatePatternName:
    def test_value_and_name(self) -> None:
        assert validate_pattern_name("if-else") is PatternType.IF_ELSE
        assert validate_pattern_name("IF_ELSE") is PatternType.IF_ELSE

    def test_unknown(self) -> None:
        with pytest.raises(ValidationError, match="Unknown pattern"):
            validate_pattern_name("spiral")


class TestDefinitionHelpers:
    def test_require_key(self) -> None:
        assert require_key({"a": 1}, "a", "x") == 1
        with pytest.raises(ValidationError, match="x missing required key 'b'"):
            require_key({"a": 1}, "b", "x")

    def test_optional_string(self) -> None:
        assert optional_string({}, "k", "w", default="d") == "d"
        assert optional_string({"k": None}, "k", "w") == ""
        with pytest.raises(ValidationError, match="w.k"):
            optional_string({"k": 3}, "k", "w")

    def test_optional_list(self) -> None:
        assert optional_list({}, "k", "w") == []
        with pytest.raises(ValidationError, match="w.k"):
            optional_list({"k": "nope"}, "k", "w")

    def test_optional_string_list(self) -> None:
        assert optional_string_list({"throws": ["IOError"]}, "throws", "m") == ["IOError"]
        assert optional_string_list({}, "throws", "m") == []
        with pytest.raises(ValidationError, match="m.throws\\[1\\]"):
            optional_string_list({"throws": ["a", 2]}, "throws", "m")
        with pytest.raises(ValidationError, match="list"):
            optional_string_list({"throws": "IOError"}, "throws", "m")

    def test_optional_flag(self) -> None:
        assert optional_flag({}, "active", "e", default=True) is True
        assert optional_flag({"active": None}, "active", "e") is False
        assert optional_flag({"active": False}, "active", "e", default=True) is False
        with pytest.raises(ValidationError, match="e.active.*boolean"):
            optional_flag({"active": 1}, "active", "e")


# ===================================================================
# Integration tests: tool-level validation
# ===================================================================


class TestDiagramValidation:
    def test_invalid_action(self) -> None:
        result = diagram(action="bogus")
        assert "Error" in result
        assert "bogus" in result

    def test_empty_action(self) -> None:
        assert "Error" in diagram(action="")

    def test_create_empty_name(self) -> None:
        result = diagram(action="create", name="", kind="class", definition={})
        assert "Error" in result
        assert "name" in result.lower()

    def test_create_bad_kind(self) -> None:
        result = diagram(action="create", name="d", kind="gantt", definition={})
        assert "Error" in result
        assert "kind" in result

    def test_create_missing_definition(self) -> None:
        result = diagram(action="create", name="d", kind="class")
        assert "Error" in result
        assert "definition" in result

    def test_create_bad_definition(self) -> None:
        result = diagram(action="create", name="d", kind="class",
                         definition={"nodes": [{"name": "no id"}]})
        assert "Error" in result
        assert "'id'" in result
        assert "d" not in _diagrams

    def test_get_empty_name(self) -> None:
        assert "Error" in diagram(action="get", name="")


class TestLayoutValidation:
    def test_invalid_action(self) -> None:
        assert "Error" in layout(action="spring", diagram_name="d")

    def test_missing_diagram_name(self) -> None:
        result = layout(action="auto")
        assert "Error" in result
        assert "diagram_name" in result

    def test_half_canvas(self) -> None:
        diagram(action="create", name="d", kind="class", definition={"nodes": [{"id": "A"}]})
        result = layout(action="auto", diagram_name="d", canvas_width=500)
        assert "Error" in result

    def test_unknown_pattern(self) -> None:
        diagram(action="create", name="d", kind="class", definition={"nodes": [{"id": "A"}]})
        result = layout(action="pattern", diagram_name="d", pattern="spiral")
        assert "Error" in result
        assert "spiral" in result


class TestRouteValidation:
    def test_invalid_action(self) -> None:
        assert "Error" in route(action="curvy")

    def test_orthogonal_missing_start(self) -> None:
        result = route(action="orthogonal", end={"x": 0, "y": 0})
        assert "Error" in result
        assert "start" in result

    def test_bad_obstacle(self) -> None:
        result = route(action="orthogonal", start={"x": 0, "y": 0}, end={"x": 0, "y": 10},
                       obstacles=[{"x": 0, "y": 0, "width": 10}])
        assert "Error" in result
        assert "height" in result

    def test_distribute_index_out_of_range(self) -> None:
        result = route(action="distribute", length=100, index=3, total=3)
        assert "Error" in result
        assert "index" in result

    def test_distribute_bad_fraction(self) -> None:
        result = route(action="distribute", length=100, fraction=2.0)
        assert "Error" in result
        assert "fraction" in result

    def test_endpoints_missing_target(self) -> None:
        result = route(action="endpoints", source={"x": 0, "y": 0, "width": 10, "height": 10})
        assert "Error" in result
        assert "target" in result


class TestPatternsValidation:
    def test_invalid_action(self) -> None:
        assert "Error" in patterns(action="invent")

    def test_get_requires_pattern(self) -> None:
        result = patterns(action="get")
        assert "Error" in result
        assert "pattern" in result

    def test_list_bad_kind(self) -> None:
        assert "Error" in patterns(action="list", kind="gantt")

    def test_detect_unknown_diagram(self) -> None:
        result = patterns(action="detect", diagram_name="ghost")
        assert result == "Error: diagram 'ghost' not found."
