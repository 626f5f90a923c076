"""
Content Taxonomy Registry.

Loads module definitions (one file per concept and target language) from
JSON and serves Module -> Submodule -> modal schema lookups. The whole
catalog is built in local structures and published in one step, so readers
never see a partial load.
"""

from __future__ import annotations

import json
import threading
from pathlib import Path

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from lingua.core.errors import NotFoundError, RegistryLoadError

from .modal_registry import ModalSchemaRegistry
from .models import ModuleConcept, ModuleDefinition, SubmoduleDefinition


class ModuleRegistry:
    """Thread-safe, load-once catalog of module definitions."""

    def __init__(self, definitions_dir: Path, schemas: ModalSchemaRegistry):
        self.definitions_dir = Path(definitions_dir)
        self.schemas = schemas
        self._modules: dict[tuple[str, str], ModuleDefinition] = {}
        self._concepts: list[ModuleConcept] = []
        self._lock = threading.Lock()
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    # ========================================
    # Loading
    # ========================================

    def initialize(self) -> None:
        """
        Load every definition file exactly once.

        Raises:
            RegistryLoadError: If any file is unreadable, malformed, or
                references a modal schema that does not exist.
        """
        if self._initialized:
            return
        with self._lock:
            if self._initialized:
                return
            self.schemas.initialize()

            modules_dir = self.definitions_dir / "modules"
            if not modules_dir.is_dir():
                raise RegistryLoadError(f"Definitions directory not found: {modules_dir}")

            loaded: dict[tuple[str, str], ModuleDefinition] = {}
            for path in sorted(modules_dir.glob("*.json")):
                for module in self._load_file(path):
                    key = (module.concept_id, module.target_language)
                    if key in loaded:
                        raise RegistryLoadError(
                            f"Duplicate module {module.concept_id} for {module.target_language} in {path.name}"
                        )
                    self._check_module(module, path)
                    loaded[key] = module

            if not loaded:
                raise RegistryLoadError(f"No module definitions found in {modules_dir}")

            self._modules = loaded
            self._concepts = _aggregate_concepts(loaded.values())
            self._initialized = True
            logger.info(
                f"Module registry loaded {len(loaded)} modules across {len(self._concepts)} concepts"
            )

    def _load_file(self, path: Path) -> list[ModuleDefinition]:
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise RegistryLoadError(f"Cannot read {path.name}: {e}") from e

        entries = raw if isinstance(raw, list) else [raw]
        modules = []
        for entry in entries:
            try:
                modules.append(ModuleDefinition.model_validate(entry))
            except PydanticValidationError as e:
                raise RegistryLoadError(f"Malformed module definition in {path.name}: {e}") from e
        return modules

    def _check_module(self, module: ModuleDefinition, path: Path) -> None:
        if not module.submodules:
            raise RegistryLoadError(f"Module {module.concept_id} in {path.name} has no submodules")

        seen: set[str] = set()
        for submodule in module.submodules:
            if submodule.id in seen:
                raise RegistryLoadError(
                    f"Duplicate submodule {submodule.id} in module {module.concept_id}"
                )
            seen.add(submodule.id)

            supported = submodule.supported_modal_schema_ids
            if len(supported) != len(set(supported)):
                raise RegistryLoadError(f"Submodule {submodule.id} lists a modal schema twice")
            for schema_id in supported:
                if not self.schemas.has_schema(schema_id):
                    raise RegistryLoadError(
                        f"Submodule {submodule.id} references unknown modal schema {schema_id}"
                    )
            for schema_id in submodule.overrides:
                if schema_id not in supported:
                    raise RegistryLoadError(
                        f"Submodule {submodule.id} overrides unsupported modal schema {schema_id}"
                    )

    # ========================================
    # Reads
    # ========================================

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError("ModuleRegistry used before initialize()")

    def get_module(self, module_id: str, target_language: str) -> ModuleDefinition:
        self._require_initialized()
        module = self._modules.get((module_id, target_language))
        if module is None:
            raise NotFoundError("module", module_id, target_language=target_language)
        return module

    def get_submodule(self, module: ModuleDefinition, submodule_id: str) -> SubmoduleDefinition:
        submodule = module.get_submodule(submodule_id)
        if submodule is None:
            raise NotFoundError("submodule", submodule_id, module_id=module.concept_id)
        return submodule

    def get_all_modules(self) -> list[ModuleDefinition]:
        self._require_initialized()
        return list(self._modules.values())

    def get_modules_for_source_language(self, language: str) -> list[ModuleDefinition]:
        self._require_initialized()
        return [m for m in self._modules.values() if language in m.supported_source_languages]

    def get_unique_module_concepts(self) -> list[ModuleConcept]:
        self._require_initialized()
        return list(self._concepts)

    def get_localized_title(self, submodule: SubmoduleDefinition, language: str) -> str:
        return submodule.title_for(language)


def _aggregate_concepts(modules) -> list[ModuleConcept]:
    """Fold per-language definitions into language-independent concepts."""
    grouped: dict[str, list[ModuleDefinition]] = {}
    for module in modules:
        grouped.setdefault(module.concept_id, []).append(module)

    concepts = []
    for concept_id, variants in grouped.items():
        source_languages: set[str] = set()
        for variant in variants:
            source_languages.update(variant.supported_source_languages)
        concepts.append(
            ModuleConcept(
                id=concept_id,
                title=variants[0].title_en,
                supported_source_languages=frozenset(source_languages),
                supported_target_languages=frozenset(v.target_language for v in variants),
            )
        )
    return sorted(concepts, key=lambda c: c.id)
