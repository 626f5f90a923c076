"""
Modal Schema Registry.

Catalog of interaction types keyed by schema id. Loaded once; lookups
after a successful initialize() only fail with NotFoundError.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable

from loguru import logger

from lingua.core.errors import NotFoundError, RegistryLoadError

from .models import FieldType, MarkingMode, ModalSchemaDefinition
from .schemas import BUILTIN_SCHEMAS


class ModalSchemaRegistry:
    """Thread-safe, load-once catalog of modal schemas."""

    def __init__(self, schemas: Iterable[ModalSchemaDefinition] | None = None):
        self._source = tuple(schemas) if schemas is not None else BUILTIN_SCHEMAS
        self._schemas: dict[str, ModalSchemaDefinition] = {}
        self._lock = threading.Lock()
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        """Load and validate all schemas. Safe to call concurrently."""
        if self._initialized:
            return
        with self._lock:
            if self._initialized:
                return
            loaded: dict[str, ModalSchemaDefinition] = {}
            for schema in self._source:
                if schema.id in loaded:
                    raise RegistryLoadError(f"Duplicate modal schema id: {schema.id}")
                _check_schema(schema)
                loaded[schema.id] = schema
            self._schemas = loaded
            self._initialized = True
            logger.info(f"Modal schema registry loaded {len(loaded)} schemas")

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError("ModalSchemaRegistry used before initialize()")

    def get_schema(self, schema_id: str) -> ModalSchemaDefinition:
        self._require_initialized()
        schema = self._schemas.get(schema_id)
        if schema is None:
            raise NotFoundError("modal_schema", schema_id)
        return schema

    def has_schema(self, schema_id: str) -> bool:
        self._require_initialized()
        return schema_id in self._schemas

    def get_all_schemas(self) -> list[ModalSchemaDefinition]:
        self._require_initialized()
        return list(self._schemas.values())

    def schema_ids(self) -> frozenset[str]:
        self._require_initialized()
        return frozenset(self._schemas)


def _check_schema(schema: ModalSchemaDefinition) -> None:
    """Reject schema declarations the validator and marker cannot honor."""
    names = [d.name for d in schema.descriptors]
    if len(names) != len(set(names)):
        raise RegistryLoadError(f"Schema {schema.id} declares a field twice")
    if not schema.required_fields:
        raise RegistryLoadError(f"Schema {schema.id} has no required fields")

    marking = schema.marking
    if marking.reference_field and schema.descriptor(marking.reference_field) is None:
        raise RegistryLoadError(
            f"Schema {schema.id} references unknown field {marking.reference_field}"
        )
    if marking.mode == MarkingMode.MULTI_ITEM:
        items = schema.descriptor("items")
        if items is None or items.type != FieldType.OBJECT_LIST:
            raise RegistryLoadError(f"Multi-item schema {schema.id} needs an 'items' object list")
    if marking.mode == MarkingMode.JUDGED and not marking.prompt_template:
        raise RegistryLoadError(f"Judged schema {schema.id} needs a marking prompt template")
