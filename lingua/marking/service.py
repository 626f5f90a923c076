"""
Marking Service.

Looks up the modal schema for a step, picks the strategy registered for
its marking mode and grades the answer against the stored question data.
"""

from __future__ import annotations

from typing import Any

from loguru import logger

from config import Settings, get_settings
from lingua.registry.catalog import LearningCatalog
from lingua.registry.models import ModalSchemaDefinition, SubmoduleDefinition

from .base import MarkingContext, MarkingStrategy, MarkResult, StrategyRegistry
from .judge import JudgmentClient


class MarkingService:
    def __init__(
        self,
        catalog: LearningCatalog,
        judge: JudgmentClient | None = None,
        settings: Settings | None = None,
    ):
        self.catalog = catalog
        self.judge = judge
        self.settings = settings or get_settings()
        self._strategies: dict[str, MarkingStrategy] = {}

    def strategy_for(self, schema: ModalSchemaDefinition) -> MarkingStrategy:
        mode = schema.marking.mode
        if mode.value not in self._strategies:
            strategy_class = StrategyRegistry.get(mode)
            self._strategies[mode.value] = strategy_class(settings=self.settings, judge=self.judge)
        return self._strategies[mode.value]

    def marking_prompt(self, submodule: SubmoduleDefinition, schema: ModalSchemaDefinition) -> str | None:
        """Submodule override first, then the schema's own template."""
        override = submodule.override_for(schema.id)
        if override and override.marking_prompt:
            return override.marking_prompt
        return schema.marking.prompt_template

    async def mark_answer(
        self,
        module_id: str,
        submodule_id: str,
        modal_schema_id: str,
        question_data: dict[str, Any],
        user_answer: Any,
        target_language: str,
        source_language: str,
    ) -> MarkResult:
        """
        Grade one answer.

        Raises:
            NotFoundError: Unknown module, submodule or schema
            ValidationError: Malformed answer or question data
            GradingFailure: Free-form judgment impossible
        """
        module = self.catalog.modules.get_module(module_id, target_language)
        submodule, schema = self.catalog.resolve_step(module, submodule_id, modal_schema_id)

        context = MarkingContext(
            schema=schema,
            question_data=question_data,
            user_answer=user_answer,
            target_language=target_language,
            source_language=source_language,
            prompt_template=self.marking_prompt(submodule, schema),
        )
        result = await self.strategy_for(schema).mark(context)
        logger.debug(
            f"Marked {submodule_id}/{modal_schema_id}: score={result.score} correct={result.is_correct}"
        )
        return result
