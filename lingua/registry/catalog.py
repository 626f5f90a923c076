"""
Immutable catalog handle.

Built once at startup and passed to every component that needs taxonomy or
schema lookups.
"""

from __future__ import annotations

from dataclasses import dataclass

from config import Settings, get_settings
from lingua.core.errors import ValidationError

from .modal_registry import ModalSchemaRegistry
from .models import ModalSchemaDefinition, ModuleDefinition, SubmoduleDefinition
from .module_registry import ModuleRegistry


@dataclass(frozen=True)
class LearningCatalog:
    modules: ModuleRegistry
    schemas: ModalSchemaRegistry

    def resolve_ui_component(
        self, submodule: SubmoduleDefinition, schema: ModalSchemaDefinition
    ) -> str:
        """Submodule override wins over the schema's own component."""
        override = submodule.override_for(schema.id)
        if override and override.ui_component:
            return override.ui_component
        return schema.ui_component

    def resolve_step(
        self, module: ModuleDefinition, submodule_id: str, schema_id: str
    ) -> tuple[SubmoduleDefinition, ModalSchemaDefinition]:
        """
        Look up a (submodule, modal schema) pair and enforce membership.

        Raises:
            NotFoundError: Unknown submodule or schema.
            ValidationError: Schema not supported by the submodule.
        """
        submodule = self.modules.get_submodule(module, submodule_id)
        schema = self.schemas.get_schema(schema_id)
        if schema_id not in submodule.supported_modal_schema_ids:
            raise ValidationError(
                f"Modal schema {schema_id} is not supported by submodule {submodule_id}",
                {"submodule_id": submodule_id, "modal_schema_id": schema_id},
            )
        return submodule, schema


def build_catalog(settings: Settings | None = None) -> LearningCatalog:
    """Load both registries and return the shared handle."""
    settings = settings or get_settings()
    schemas = ModalSchemaRegistry()
    modules = ModuleRegistry(settings.definitions_dir, schemas)
    modules.initialize()
    return LearningCatalog(modules=modules, schemas=schemas)
