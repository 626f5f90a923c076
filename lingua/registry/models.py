"""
Catalog models for the content taxonomy and modal schemas.

All models are frozen after load; the registries hand out the same
instances to every session.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Skill(str, Enum):
    """Skill tag used for performance aggregation."""

    READING = "reading"
    WRITING = "writing"
    LISTENING = "listening"
    SPEAKING = "speaking"


class FieldType(str, Enum):
    STRING = "string"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    STRING_LIST = "string_list"
    OBJECT_LIST = "object_list"


class MarkingMode(str, Enum):
    """How answers for a modal schema are graded."""

    CHOICE = "choice"
    BOOLEAN = "boolean"
    EXACT = "exact"
    MULTI_ITEM = "multi_item"
    JUDGED = "judged"


class Difficulty(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


# =============================================================================
# Modal Schemas
# =============================================================================


class FieldDescriptor(_Frozen):
    """Structural description of one question_data field."""

    name: str
    type: FieldType
    required: bool = True
    description: str = ""
    enum: tuple[str, ...] | None = None
    min_items: int | None = None
    max_items: int | None = None
    item_fields: tuple[FieldDescriptor, ...] = ()


class GenerationDefaults(_Frozen):
    """Constraint defaults contributed by one layer of the catalog."""

    difficulty: Difficulty | None = None
    grammar_focus: str | None = None
    pedagogical_focus: str | None = None
    themes: tuple[str, ...] = ()
    vocabulary: tuple[str, ...] = ()


class SchemaGeneration(_Frozen):
    prompt_template: str
    defaults: GenerationDefaults = GenerationDefaults()


class SchemaMarking(_Frozen):
    mode: MarkingMode
    pass_threshold: int = Field(default=100, ge=0, le=100)
    prompt_template: str | None = None
    reference_field: str | None = None


class ModalSchemaDefinition(_Frozen):
    """One interaction type: shape, UI binding, generation and marking config."""

    id: str
    skill: Skill
    title_en: str
    ui_component: str
    descriptors: tuple[FieldDescriptor, ...]
    generation: SchemaGeneration
    marking: SchemaMarking

    @property
    def required_fields(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.descriptors if f.required)

    def descriptor(self, name: str) -> FieldDescriptor | None:
        for descriptor in self.descriptors:
            if descriptor.name == name:
                return descriptor
        return None


# =============================================================================
# Content Taxonomy
# =============================================================================


class LocalizedText(_Frozen):
    title: str


class HelpResource(_Frozen):
    title: str
    url: str


class SubmoduleOverride(_Frozen):
    """Per-schema adjustments a submodule applies."""

    ui_component: str | None = None
    generation_prompt: str | None = None
    marking_prompt: str | None = None
    generation: GenerationDefaults = GenerationDefaults()


class SubmoduleDefinition(_Frozen):
    id: str
    title_en: str
    localization: dict[str, LocalizedText] = Field(default_factory=dict)
    supported_modal_schema_ids: tuple[str, ...]
    overrides: dict[str, SubmoduleOverride] = Field(default_factory=dict)
    help_resources: tuple[HelpResource, ...] = ()
    generation_defaults: GenerationDefaults = GenerationDefaults()

    def title_for(self, language: str) -> str:
        localized = self.localization.get(language)
        return localized.title if localized else self.title_en

    def override_for(self, schema_id: str) -> SubmoduleOverride | None:
        return self.overrides.get(schema_id)


class ModuleDefinition(_Frozen):
    """A module concept realized for a single target language."""

    concept_id: str
    target_language: str
    title_en: str
    description: str = ""
    localization: dict[str, LocalizedText] = Field(default_factory=dict)
    supported_source_languages: tuple[str, ...] = ("en",)
    submodules: tuple[SubmoduleDefinition, ...]

    @property
    def id(self) -> str:
        return self.concept_id

    def title_for(self, language: str) -> str:
        localized = self.localization.get(language)
        return localized.title if localized else self.title_en

    def get_submodule(self, submodule_id: str) -> SubmoduleDefinition | None:
        for submodule in self.submodules:
            if submodule.id == submodule_id:
                return submodule
        return None

    def supported_pairs(self) -> list[tuple[str, str]]:
        """(submodule_id, modal_schema_id) pairs in declaration order."""
        return [
            (submodule.id, schema_id)
            for submodule in self.submodules
            for schema_id in submodule.supported_modal_schema_ids
        ]


class ModuleConcept(_Frozen):
    """Language-independent topic aggregated across module definitions."""

    id: str
    title: str
    supported_source_languages: frozenset[str]
    supported_target_languages: frozenset[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "supported_source_languages": sorted(self.supported_source_languages),
            "supported_target_languages": sorted(self.supported_target_languages),
        }
