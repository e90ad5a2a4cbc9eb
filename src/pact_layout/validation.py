"""
Input validation for pact-layout tool parameters and diagram definitions.

Provides reusable validators that produce clear error messages for all
parameters received from MCP / LLM callers.
"""

from __future__ import annotations

from typing import Any

from pact_layout.geometry import Point, Rect
from pact_layout.patterns import PatternType, parse_pattern_type


# ---------------------------------------------------------------------------
# Validation result
# ---------------------------------------------------------------------------

class ValidationError(Exception):
    """Raised when input validation fails."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


# ---------------------------------------------------------------------------
# Scalars
# ---------------------------------------------------------------------------

def _wrong_type(field_name: str, expected: str, value: Any) -> ValidationError:
    return ValidationError(f"'{field_name}' must be {expected}, got {type(value).__name__}.")


def validate_non_empty_string(value: Any, field_name: str) -> str:
    """Element ids, names and references: a string with visible content, stripped."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"'{field_name}' must be a non-empty string.")
    return value.strip()


def validate_int(
    value: Any,
    field_name: str,
    *,
    min_val: int | None = None,
    max_val: int | None = None,
) -> int:
    """An integer (bools rejected) within the optional inclusive bounds."""
    if not isinstance(value, int) or isinstance(value, bool):
        raise _wrong_type(field_name, "an integer", value)
    if min_val is not None and value < min_val:
        raise ValidationError(f"'{field_name}' must be >= {min_val}, got {value}.")
    if max_val is not None and value > max_val:
        raise ValidationError(f"'{field_name}' must be <= {max_val}, got {value}.")
    return value


def validate_coordinate(value: Any, field_name: str) -> int:
    """Accept ints and integral floats; coordinates are integer pixels."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise _wrong_type(field_name, "a number", value)
    if isinstance(value, float) and not value.is_integer():
        raise ValidationError(
            f"'{field_name}' must be a whole number of pixels, got {value}."
        )
    return int(value)


def validate_fraction(value: Any, field_name: str) -> float:
    """A number in [0, 1]."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise _wrong_type(field_name, "a number", value)
    if not 0.0 <= value <= 1.0:
        raise ValidationError(f"'{field_name}' must be between 0 and 1, got {value}.")
    return float(value)


def validate_enum(value: Any, field_name: str, allowed: set[str]) -> str:
    """One of *allowed*, matched case-insensitively; returns the lower-cased choice."""
    if not isinstance(value, str):
        raise _wrong_type(field_name, "a string", value)
    normalized = value.strip().lower()
    if normalized not in {a.lower() for a in allowed}:
        choices = ", ".join(sorted(allowed))
        raise ValidationError(
            f"'{field_name}' must be one of [{choices}], got '{value}'."
        )
    return normalized


def validate_dict(value: Any, field_name: str) -> dict:
    if not isinstance(value, dict):
        raise _wrong_type(field_name, "a dict/object", value)
    return value


def _as_list(value: Any, field_name: str) -> list:
    if not isinstance(value, list):
        raise _wrong_type(field_name, "a list", value)
    return value


# ---------------------------------------------------------------------------
# Composite / domain validators
# ---------------------------------------------------------------------------

_DIAGRAM_KINDS = {"class", "state", "sequence", "flow"}

_DIAGRAM_ACTIONS = {"CREATE", "LIST", "GET", "DELETE"}
_LAYOUT_ACTIONS = {"AUTO", "HEURISTIC", "PATTERN", "LAYERS"}
_ROUTE_ACTIONS = {"ORTHOGONAL", "VERTICAL", "DISTRIBUTE", "ENDPOINTS", "STATE"}
_PATTERN_ACTIONS = {"DETECT", "BEST", "APPLY", "LIST", "GET"}


def validate_action(value: Any, tool_name: str, allowed: set[str]) -> str:
    """Validate the action parameter for a tool."""
    if not isinstance(value, str) or not value.strip():
        choices = ", ".join(sorted(a.lower() for a in allowed))
        raise ValidationError(
            f"'{tool_name}' requires an 'action' parameter. Valid actions: {choices}."
        )
    normalized = value.strip().upper()
    if normalized not in allowed:
        choices = ", ".join(sorted(a.lower() for a in allowed))
        raise ValidationError(
            f"Unknown {tool_name} action '{value}'. Valid actions: {choices}."
        )
    return value.strip().lower()


def validate_diagram_kind(value: Any) -> str:
    """Validate a diagram kind (class, state, sequence, flow)."""
    return validate_enum(value, "kind", _DIAGRAM_KINDS)


def validate_point(value: Any, field_name: str) -> Point:
    """Validate a {x, y} dict and build a Point."""
    if not isinstance(value, dict):
        raise ValidationError(f"'{field_name}' must be a dict/object with 'x' and 'y'.")
    for key in ("x", "y"):
        if key not in value:
            raise ValidationError(f"'{field_name}' missing required key '{key}'.")
    return Point(
        validate_coordinate(value["x"], f"{field_name}.x"),
        validate_coordinate(value["y"], f"{field_name}.y"),
    )


def validate_rect(value: Any, field_name: str) -> Rect:
    """Validate a {x, y, width, height} dict and build a Rect."""
    if not isinstance(value, dict):
        raise ValidationError(f"'{field_name}' must be a dict/object.")
    for key in ("x", "y", "width", "height"):
        if key not in value:
            raise ValidationError(f"'{field_name}' missing required key '{key}'.")
    width = validate_coordinate(value["width"], f"{field_name}.width")
    height = validate_coordinate(value["height"], f"{field_name}.height")
    if width < 0 or height < 0:
        raise ValidationError(f"'{field_name}' width and height must be >= 0.")
    return Rect(
        validate_coordinate(value["x"], f"{field_name}.x"),
        validate_coordinate(value["y"], f"{field_name}.y"),
        width,
        height,
    )


def validate_obstacles(value: Any) -> list[Rect]:
    """Validate the obstacle list of a routing call."""
    if value is None:
        return []
    items = _as_list(value, "obstacles")
    return [validate_rect(item, f"obstacles[{i}]") for i, item in enumerate(items)]


def validate_canvas_size(width: Any, height: Any) -> tuple[int, int] | None:
    """Validate an optional explicit canvas size; 0/0 means 'derive it'."""
    w = validate_int(width, "canvas_width", min_val=0)
    h = validate_int(height, "canvas_height", min_val=0)
    if w == 0 and h == 0:
        return None
    if w == 0 or h == 0:
        raise ValidationError("'canvas_width' and 'canvas_height' must be given together.")
    return w, h


# ---------------------------------------------------------------------------
# Helpers for definition dicts
# ---------------------------------------------------------------------------

def require_key(data: dict, key: str, where: str) -> Any:
    """Return ``data[key]`` or raise a ValidationError naming *where*."""
    if key not in data:
        raise ValidationError(f"{where} missing required key '{key}'.")
    return data[key]


def optional_string(data: dict, key: str, where: str, default: str = "") -> str:
    """Return an optional string entry of a definition dict."""
    if key not in data or data[key] is None:
        return default
    value = data[key]
    if not isinstance(value, str):
        raise _wrong_type(f"{where}.{key}", "a string", value)
    return value


def optional_list(data: dict, key: str, where: str) -> list:
    """Return an optional list entry of a definition dict."""
    if key not in data or data[key] is None:
        return []
    return _as_list(data[key], f"{where}.{key}")


def optional_string_list(data: dict, key: str, where: str) -> list[str]:
    """Return an optional list-of-strings entry (throws, actions, entry hooks)."""
    items = optional_list(data, key, where)
    for i, item in enumerate(items):
        if not isinstance(item, str):
            raise ValidationError(f"'{where}.{key}[{i}]' must be a string.")
    return list(items)


def optional_flag(data: dict, key: str, where: str, default: bool = False) -> bool:
    """Return an optional boolean entry; ints are not accepted as flags."""
    if key not in data or data[key] is None:
        return default
    value = data[key]
    if not isinstance(value, bool):
        raise _wrong_type(f"{where}.{key}", "a boolean", value)
    return value


def validate_pattern_name(value: Any) -> PatternType:
    """Resolve a pattern name (``if-else`` or ``IF_ELSE``) to its type."""
    name = validate_non_empty_string(value, "pattern")
    pattern = parse_pattern_type(name)
    if pattern is None:
        choices = ", ".join(p.value for p in PatternType)
        raise ValidationError(f"Unknown pattern '{value}'. Valid patterns: {choices}.")
    return pattern
