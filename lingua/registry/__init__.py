"""
Content catalog: modules, submodules and modal schemas.
"""

from .catalog import LearningCatalog, build_catalog
from .modal_registry import ModalSchemaRegistry
from .models import (
    Difficulty,
    FieldDescriptor,
    FieldType,
    GenerationDefaults,
    MarkingMode,
    ModalSchemaDefinition,
    ModuleConcept,
    ModuleDefinition,
    Skill,
    SubmoduleDefinition,
    SubmoduleOverride,
)
from .module_registry import ModuleRegistry

__all__ = [
    "Difficulty",
    "FieldDescriptor",
    "FieldType",
    "GenerationDefaults",
    "LearningCatalog",
    "MarkingMode",
    "ModalSchemaDefinition",
    "ModalSchemaRegistry",
    "ModuleConcept",
    "ModuleDefinition",
    "ModuleRegistry",
    "Skill",
    "SubmoduleDefinition",
    "SubmoduleOverride",
    "build_catalog",
]
