"""
Prompt rendering for content synthesis and answer judgment.

Templates use {placeholder} markers. Known placeholders are filled; any
that remain unfilled are removed so no raw braces reach the model.
"""

from __future__ import annotations

import json
import re
from typing import Any

from lingua.registry.models import FieldDescriptor, FieldType, ModalSchemaDefinition

from .constraints import GenerationConstraints

_PLACEHOLDER = re.compile(r"\{([a-zA-Z_][a-zA-Z0-9_]*)\}")

LANGUAGE_NAMES = {
    "de": "German",
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "it": "Italian",
    "pt": "Portuguese",
}


def language_name(code: str) -> str:
    return LANGUAGE_NAMES.get(code, code)


def replace_placeholders(template: str, values: dict[str, Any]) -> str:
    """Fill {key} markers from values and drop those left unfilled."""

    def _sub(match: re.Match) -> str:
        value = values.get(match.group(1))
        if value is None:
            return ""
        if isinstance(value, (list, tuple)):
            return ", ".join(str(v) for v in value)
        if isinstance(value, dict):
            return json.dumps(value, ensure_ascii=False)
        return str(value)

    return _PLACEHOLDER.sub(_sub, template)


def describe_field_shape(descriptors: tuple[FieldDescriptor, ...], indent: str = "") -> str:
    """Human-readable field listing used inside prompts."""
    lines = []
    for d in descriptors:
        need = "required" if d.required else "optional"
        bounds = ""
        if d.min_items is not None or d.max_items is not None:
            bounds = f", {d.min_items or 0}-{d.max_items if d.max_items is not None else 'n'} items"
        enum = f", one of {list(d.enum)}" if d.enum else ""
        desc = f": {d.description}" if d.description else ""
        lines.append(f"{indent}- {d.name} ({d.type.value}, {need}{bounds}{enum}){desc}")
        if d.type == FieldType.OBJECT_LIST and d.item_fields:
            lines.append(describe_field_shape(d.item_fields, indent + "    "))
    return "\n".join(lines)


def render_generation_prompt(
    template: str,
    schema: ModalSchemaDefinition,
    constraints: GenerationConstraints,
    context: dict[str, Any],
) -> str:
    """
    Render a synthesis prompt.

    Args:
        template: Schema template or submodule override
        schema: Target modal schema
        constraints: Effective constraints
        context: Module/submodule titles and language codes
    """
    values = {
        **context,
        "target_language": language_name(context.get("target_language", "")),
        "source_language": language_name(context.get("source_language", "")),
        "difficulty": constraints.difficulty or "beginner",
        "grammar_focus": constraints.grammar_focus or "any appropriate structure",
        "pedagogical_focus": constraints.pedagogical_focus or context.get("submodule_title"),
        "themes": constraints.themes or None,
        "vocabulary": constraints.vocabulary or None,
        "field_shape": describe_field_shape(schema.descriptors),
        "forced_fields": constraints.forced_fields or "none",
    }
    return replace_placeholders(template, values).strip()


def build_retry_prompt(prompt: str, issues: list[str]) -> str:
    """Stricter prompt for the single regeneration attempt."""
    return f"""{prompt}

The previous response was rejected for these issues:
{chr(10).join(f"- {i}" for i in issues)}

REQUIREMENTS:
1. Fix ALL identified issues
2. Include every required field with the exact name and type listed above
3. Return a single JSON object and nothing else"""


def render_marking_prompt(
    template: str,
    question_data: dict[str, Any],
    user_answer: Any,
    target_language: str,
    source_language: str,
) -> str:
    values = {
        **question_data,
        "user_answer": user_answer,
        "target_language": language_name(target_language),
        "source_language": language_name(source_language),
    }
    return replace_placeholders(template, values).strip()
