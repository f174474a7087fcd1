"""
Input validation for connector optimization parameters.

Provides reusable validators that produce clear error messages for options
passed to the optimizer and for parameters received by the MCP tools.
"""

from __future__ import annotations

from typing import Any

from connector_optimizer.models import ConnectorShape, OptimizationOptions, Side


# ---------------------------------------------------------------------------
# Validation result
# ---------------------------------------------------------------------------

class ValidationError(Exception):
    """Raised when input validation fails."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


# ---------------------------------------------------------------------------
# Primitive validators
# ---------------------------------------------------------------------------

def validate_non_empty_string(value: Any, field_name: str) -> str:
    """Ensure *value* is a non-empty string after stripping whitespace."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"'{field_name}' must be a non-empty string.")
    return value.strip()


def validate_number(
    value: Any,
    field_name: str,
    *,
    min_val: float | None = None,
    max_val: float | None = None,
) -> float:
    """Validate a numeric value and optional range."""
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise ValidationError(
            f"'{field_name}' must be a number, got {type(value).__name__}."
        )
    val = float(value)
    if min_val is not None and val < min_val:
        raise ValidationError(
            f"'{field_name}' must be >= {min_val}, got {val}."
        )
    if max_val is not None and val > max_val:
        raise ValidationError(
            f"'{field_name}' must be <= {max_val}, got {val}."
        )
    return val


def validate_int(
    value: Any,
    field_name: str,
    *,
    min_val: int | None = None,
    max_val: int | None = None,
) -> int:
    """Validate an integer value and optional range."""
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValidationError(
            f"'{field_name}' must be an integer, got {type(value).__name__}."
        )
    if min_val is not None and value < min_val:
        raise ValidationError(
            f"'{field_name}' must be >= {min_val}, got {value}."
        )
    if max_val is not None and value > max_val:
        raise ValidationError(
            f"'{field_name}' must be <= {max_val}, got {value}."
        )
    return value


def validate_bool(value: Any, field_name: str) -> bool:
    """Ensure *value* is a boolean."""
    if not isinstance(value, bool):
        raise ValidationError(
            f"'{field_name}' must be a boolean, got {type(value).__name__}."
        )
    return value


def validate_list(value: Any, field_name: str, *, min_length: int = 0) -> list:
    """Ensure *value* is a list with at least *min_length* items."""
    if not isinstance(value, list):
        raise ValidationError(
            f"'{field_name}' must be a list, got {type(value).__name__}."
        )
    if len(value) < min_length:
        raise ValidationError(
            f"'{field_name}' must have at least {min_length} item(s), got {len(value)}."
        )
    return value


def validate_dict(value: Any, field_name: str) -> dict:
    """Ensure *value* is a dict."""
    if not isinstance(value, dict):
        raise ValidationError(
            f"'{field_name}' must be a dict/object, got {type(value).__name__}."
        )
    return value


def validate_file_path(value: Any, field_name: str) -> str:
    """Validate that a file path is a non-empty string."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"'{field_name}' must be a non-empty file path string.")
    return value.strip()


# ---------------------------------------------------------------------------
# Composite / domain validators
# ---------------------------------------------------------------------------

_VALID_SIDES = {s.value for s in Side}
_VALID_SHAPES = {s.value for s in ConnectorShape}

_BOARD_ACTIONS = {"CREATE", "SAVE", "LOAD", "LIST", "GET_JSON", "EXPORT_DRAWIO"}
_DRAW_ACTIONS = {"ADD_NODES", "ADD_CONNECTORS", "DELETE_ITEMS", "SELECT"}
_OPTIMIZE_ACTIONS = {"CONNECTORS", "ALIGN", "DISTRIBUTE"}
_INSPECT_ACTIONS = {"ITEMS", "COMPONENT", "PENALTY", "OVERLAPS", "INFO"}


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


def validate_side(value: Any, field_name: str) -> Side:
    """Validate a snap side (top, right, bottom, left)."""
    if not isinstance(value, str) or value.strip().lower() not in _VALID_SIDES:
        choices = ", ".join(sorted(_VALID_SIDES))
        raise ValidationError(
            f"'{field_name}' must be one of [{choices}], got '{value}'."
        )
    return Side(value.strip().lower())


def validate_connector_shape(value: Any, field_name: str) -> ConnectorShape:
    """Validate a connector routing style."""
    if not isinstance(value, str) or value.strip().lower() not in _VALID_SHAPES:
        choices = ", ".join(sorted(_VALID_SHAPES))
        raise ValidationError(
            f"'{field_name}' must be one of [{choices}], got '{value}'."
        )
    return ConnectorShape(value.strip().lower())


def validate_spacing_factor(value: Any) -> float:
    """Validate the grid spacing factor (must be > 0)."""
    val = validate_number(value, "spacing_factor")
    if val <= 0:
        raise ValidationError(f"'spacing_factor' must be > 0, got {val}.")
    return val


def validate_priority(value: Any) -> int:
    """Validate priority (0..100)."""
    return validate_int(value, "priority", min_val=0, max_val=100)


def validate_options(options: OptimizationOptions) -> OptimizationOptions:
    """Validate every field of an options record and return it."""
    validate_bool(options.allow_movement, "allow_movement")
    validate_spacing_factor(options.spacing_factor)
    validate_priority(options.priority)
    if options.seed is not None:
        validate_int(options.seed, "seed")
    return options


# ---------------------------------------------------------------------------
# Node / connector / board dict validators
# ---------------------------------------------------------------------------

def validate_node_dict(v: dict, index: int) -> None:
    """Validate a single node dict from the nodes list."""
    if not isinstance(v, dict):
        raise ValidationError(f"Node at index {index} must be a dict/object.")
    for key in ("x", "y"):
        if key not in v:
            raise ValidationError(f"Node at index {index} missing required key '{key}'.")
        if not isinstance(v[key], (int, float)) or isinstance(v[key], bool):
            raise ValidationError(f"Node at index {index}: '{key}' must be a number.")
    for key in ("width", "height"):
        if key in v:
            if not isinstance(v[key], (int, float)) or isinstance(v[key], bool):
                raise ValidationError(f"Node at index {index}: '{key}' must be a number.")
            if v[key] <= 0:
                raise ValidationError(f"Node at index {index}: '{key}' must be > 0.")
    if "label" in v and not isinstance(v["label"], str):
        raise ValidationError(f"Node at index {index}: 'label' must be a string.")
    if "id" in v and (not isinstance(v["id"], str) or not v["id"].strip()):
        raise ValidationError(f"Node at index {index}: 'id' must be a non-empty string.")


def validate_connector_dict(c: dict, index: int) -> None:
    """Validate a single connector dict from the connectors list."""
    if not isinstance(c, dict):
        raise ValidationError(f"Connector at index {index} must be a dict/object.")
    if "source_id" not in c:
        raise ValidationError(f"Connector at index {index} missing required key 'source_id'.")
    if "target_id" not in c:
        raise ValidationError(f"Connector at index {index} missing required key 'target_id'.")
    if not isinstance(c["source_id"], str) or not c["source_id"].strip():
        raise ValidationError(f"Connector at index {index}: 'source_id' must be a non-empty string.")
    if not isinstance(c["target_id"], str) or not c["target_id"].strip():
        raise ValidationError(f"Connector at index {index}: 'target_id' must be a non-empty string.")
    if c["source_id"] == c["target_id"]:
        raise ValidationError(
            f"Connector at index {index}: 'source_id' and 'target_id' must be different "
            "(self-loops not supported)."
        )
    if "shape" in c:
        validate_connector_shape(c["shape"], f"connectors[{index}].shape")
    for key in ("start_snap", "end_snap"):
        if c.get(key) is not None:
            validate_side(c[key], f"connectors[{index}].{key}")
    if "label" in c and not isinstance(c["label"], str):
        raise ValidationError(f"Connector at index {index}: 'label' must be a string.")
    if "id" in c and (not isinstance(c["id"], str) or not c["id"].strip()):
        raise ValidationError(f"Connector at index {index}: 'id' must be a non-empty string.")


def validate_board_dict(data: Any) -> dict:
    """Validate a serialized board (as produced by ``Board.to_dict``)."""
    validate_dict(data, "board")
    items = validate_list(data.get("items", []), "items")
    seen: set[str] = set()
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"Item at index {i} must be a dict/object.")
        if not isinstance(item.get("id"), str) or not item["id"]:
            raise ValidationError(f"Item at index {i}: 'id' must be a non-empty string.")
        if item["id"] in seen:
            raise ValidationError(f"Item at index {i}: id '{item['id']}' already exists.")
        seen.add(item["id"])
        if item.get("type") == "connector":
            for end_key in ("start", "end"):
                end = item.get(end_key)
                if not isinstance(end, dict):
                    raise ValidationError(f"Item at index {i}: '{end_key}' must be a dict/object.")
                if end.get("snapTo") is not None:
                    validate_side(end["snapTo"], f"items[{i}].{end_key}.snapTo")
            if "shape" in item:
                validate_connector_shape(item["shape"], f"items[{i}].shape")
        else:
            validate_node_dict(item, i)
    selection = validate_list(data.get("selection", []), "selection")
    for i, item_id in enumerate(selection):
        validate_non_empty_string(item_id, f"selection[{i}]")
    return data
