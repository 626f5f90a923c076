"""
Structural validation of synthesized question data.

Checks presence, types, enumerations and list bounds from the schema's
field descriptors, then the schema-level rules that descriptors alone
cannot express.
"""

from __future__ import annotations

from typing import Any

from lingua.registry.models import FieldDescriptor, FieldType, ModalSchemaDefinition
from lingua.registry.schemas import GAP_MARKER


def validate_question_data(schema: ModalSchemaDefinition, payload: Any) -> list[str]:
    """
    Validate a payload against a modal schema.

    Returns:
        List of issues; empty when the payload is usable.
    """
    if not isinstance(payload, dict):
        return [f"Expected a JSON object, got {type(payload).__name__}"]

    issues = _check_fields(schema.descriptors, payload, prefix="")
    if issues:
        return issues
    return _check_schema_rules(schema, payload)


def validate_fields(descriptors: tuple[FieldDescriptor, ...], payload: Any) -> list[str]:
    """Validate a payload against bare field descriptors."""
    if not isinstance(payload, dict):
        return [f"Expected a JSON object, got {type(payload).__name__}"]
    return _check_fields(descriptors, payload, prefix="")


def _check_fields(
    descriptors: tuple[FieldDescriptor, ...], payload: dict[str, Any], prefix: str
) -> list[str]:
    issues = []
    for d in descriptors:
        name = f"{prefix}{d.name}"
        value = payload.get(d.name)
        if value is None:
            if d.required:
                issues.append(f"Missing required field '{name}'")
            continue
        issues.extend(_check_value(d, value, name))
    return issues


def _check_value(d: FieldDescriptor, value: Any, name: str) -> list[str]:
    if d.type == FieldType.STRING:
        if not isinstance(value, str):
            return [f"Field '{name}' must be a string"]
        if d.required and not value.strip():
            return [f"Field '{name}' must not be empty"]
        if d.enum and value not in d.enum:
            return [f"Field '{name}' must be one of {list(d.enum)}"]
        return []

    if d.type == FieldType.INTEGER:
        # bool is an int subclass; reject it explicitly
        if isinstance(value, bool) or not isinstance(value, int):
            return [f"Field '{name}' must be an integer"]
        return []

    if d.type == FieldType.BOOLEAN:
        if not isinstance(value, bool):
            return [f"Field '{name}' must be a boolean"]
        return []

    if not isinstance(value, list):
        return [f"Field '{name}' must be a list"]

    issues = []
    if d.min_items is not None and len(value) < d.min_items:
        issues.append(f"Field '{name}' needs at least {d.min_items} items, got {len(value)}")
    if d.max_items is not None and len(value) > d.max_items:
        issues.append(f"Field '{name}' allows at most {d.max_items} items, got {len(value)}")

    for i, item in enumerate(value):
        item_name = f"{name}[{i}]"
        if d.type == FieldType.STRING_LIST:
            if not isinstance(item, str) or not item.strip():
                issues.append(f"Item '{item_name}' must be a non-empty string")
            elif d.enum and item not in d.enum:
                issues.append(f"Item '{item_name}' must be one of {list(d.enum)}")
        elif not isinstance(item, dict):
            issues.append(f"Item '{item_name}' must be an object")
        else:
            issues.extend(_check_fields(d.item_fields, item, prefix=f"{item_name}."))
    return issues


def _check_schema_rules(schema: ModalSchemaDefinition, payload: dict[str, Any]) -> list[str]:
    issues = []

    if "correct_option_index" in payload and "options" in payload:
        index = payload["correct_option_index"]
        options = payload["options"]
        if not 0 <= index < len(options):
            issues.append(
                f"correct_option_index {index} is outside the {len(options)} options"
            )
        normalized = [o.strip().casefold() for o in options]
        if len(set(normalized)) != len(normalized):
            issues.append("Options must be distinct")

    if "sentence_template" in payload:
        count = payload["sentence_template"].count(GAP_MARKER)
        if count != 1:
            issues.append(
                f"sentence_template must contain the gap marker {GAP_MARKER} exactly once, found {count}"
            )

    for i, item in enumerate(payload.get("items") or []):
        points = item.get("points")
        if points is not None and points < 1:
            issues.append(f"Item 'items[{i}].points' must be at least 1")

    return issues


# =============================================================================
# Synthesizer response schema
# =============================================================================

_GEMINI_TYPES = {
    FieldType.STRING: "STRING",
    FieldType.INTEGER: "INTEGER",
    FieldType.BOOLEAN: "BOOLEAN",
}


def build_response_schema(descriptors: tuple[FieldDescriptor, ...]) -> dict[str, Any]:
    """Translate field descriptors into a Gemini responseSchema object."""
    properties: dict[str, Any] = {}
    for d in descriptors:
        properties[d.name] = _descriptor_schema(d)
    return {
        "type": "OBJECT",
        "properties": properties,
        "required": [d.name for d in descriptors if d.required],
    }


def _descriptor_schema(d: FieldDescriptor) -> dict[str, Any]:
    if d.type in _GEMINI_TYPES:
        node: dict[str, Any] = {"type": _GEMINI_TYPES[d.type]}
        if d.enum:
            node["enum"] = list(d.enum)
    elif d.type == FieldType.STRING_LIST:
        node = {"type": "ARRAY", "items": {"type": "STRING"}}
    else:
        node = {"type": "ARRAY", "items": build_response_schema(d.item_fields)}

    if d.type in (FieldType.STRING_LIST, FieldType.OBJECT_LIST):
        if d.min_items is not None:
            node["minItems"] = d.min_items
        if d.max_items is not None:
            node["maxItems"] = d.max_items
    if d.description:
        node["description"] = d.description
    return node
