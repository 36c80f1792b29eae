"""
Input validation for pedigree-layout MCP server tool parameters.

Provides reusable validators that produce clear error messages for all
parameters received from LLM / renderer callers.
"""

from __future__ import annotations

import json
from typing import Any


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


def validate_dict(value: Any, field_name: str) -> dict:
    """Ensure *value* is a dict."""
    if not isinstance(value, dict):
        raise ValidationError(
            f"'{field_name}' must be a dict/object, got {type(value).__name__}."
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


def validate_json(value: Any, field_name: str) -> Any:
    """Parse a JSON string parameter (dicts and lists pass through)."""
    if isinstance(value, (dict, list)):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"'{field_name}' must be a non-empty JSON string.")
    try:
        return json.loads(value)
    except json.JSONDecodeError as exc:
        raise ValidationError(f"'{field_name}' is not valid JSON: {exc.msg}.") from None


# ---------------------------------------------------------------------------
# Composite / domain validators
# ---------------------------------------------------------------------------

_TREE_ACTIONS = {"LOAD", "LOAD_RECORDS", "LIST", "DROP", "RESET"}
_NAVIGATE_ACTIONS = {"EXPAND", "COLLAPSE", "TOGGLE", "EXPAND_DEPTH", "APPLY_PARENTS"}
_INSPECT_ACTIONS = {"NODES", "CONNECTORS", "BOUNDS", "INFO", "CHECK"}

_GENDERS = {"male", "female", "unknown"}

MAX_EXPAND_GENERATIONS = 12


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


def validate_generations(value: Any) -> int:
    """Validate an expand depth (1..MAX_EXPAND_GENERATIONS)."""
    return validate_int(value, "generations", min_val=1, max_val=MAX_EXPAND_GENERATIONS)


def validate_person_dict(p: Any, label: str) -> None:
    """Validate a single camelCase person card."""
    if not isinstance(p, dict):
        raise ValidationError(f"{label} must be a dict/object.")
    if "id" not in p:
        raise ValidationError(f"{label} missing required key 'id'.")
    if not isinstance(p["id"], str) or not p["id"].strip():
        raise ValidationError(f"{label}: 'id' must be a non-empty string.")
    for key in ("name", "lifespan", "fatherId", "motherId", "birthPlace", "deathPlace"):
        if key in p and p[key] is not None and not isinstance(p[key], str):
            raise ValidationError(f"{label}: '{key}' must be a string.")
    if "hasMoreAncestors" in p and not isinstance(p["hasMoreAncestors"], bool):
        raise ValidationError(f"{label}: 'hasMoreAncestors' must be a boolean.")
    if "gender" in p and p["gender"] is not None:
        if not isinstance(p["gender"], str) or p["gender"].lower() not in _GENDERS:
            choices = ", ".join(sorted(_GENDERS))
            raise ValidationError(f"{label}: 'gender' must be one of [{choices}].")


def validate_parent_units(units: Any, path: str) -> None:
    """Validate a nested ``parentUnits`` list."""
    if units is None:
        return
    if not isinstance(units, list):
        raise ValidationError(f"'{path}' must be a list, got {type(units).__name__}.")
    # (units, path) work list; nesting can be deep
    pending: list[tuple[Any, str]] = [(units, path)]
    while pending:
        current, current_path = pending.pop()
        if current is None:
            continue
        if not isinstance(current, list):
            raise ValidationError(f"'{current_path}' must be a list, got {type(current).__name__}.")
        for i, unit in enumerate(current):
            unit_path = f"{current_path}[{i}]"
            if not isinstance(unit, dict):
                raise ValidationError(f"'{unit_path}' must be a dict/object.")
            for role in ("father", "mother"):
                if unit.get(role) is not None:
                    validate_person_dict(unit[role], f"'{unit_path}.{role}'")
            pending.append((unit.get("fatherParentUnits"), f"{unit_path}.fatherParentUnits"))
            pending.append((unit.get("motherParentUnits"), f"{unit_path}.motherParentUnits"))


def validate_tree_result(value: Any) -> dict:
    """Validate a ``rootPerson`` / ``parentUnits`` tree result."""
    data = validate_dict(validate_json(value, "tree_json"), "tree_json")
    if "rootPerson" not in data:
        raise ValidationError("'tree_json' missing required key 'rootPerson'.")
    validate_person_dict(data["rootPerson"], "'rootPerson'")
    validate_parent_units(data.get("parentUnits"), "parentUnits")
    return data


def validate_records(value: Any) -> list[dict]:
    """Validate a flat list of person cards."""
    records = validate_list(validate_json(value, "records_json"), "records_json", min_length=1)
    for i, p in enumerate(records):
        validate_person_dict(p, f"Record at index {i}")
    return records


def validate_optional_person(value: Any, field_name: str) -> dict | None:
    """Validate an optional person card given as JSON; empty means absent."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    data = validate_json(value, field_name)
    validate_person_dict(data, f"'{field_name}'")
    return data
