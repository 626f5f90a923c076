"""
Generation Constraint Service.

Turns a (module, submodule, modal schema, difficulty) step into a validated
question_data payload:

1. Resolve effective constraints from the catalog layers
2. Render a structured prompt
3. Call the content synthesizer, bounded by a timeout
4. Validate the payload; on failure retry once with a stricter prompt

Nothing is persisted here apart from the vocabulary cache.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from config import Settings, get_settings
from lingua.core.errors import GenerationFailure, LearningEngineError
from lingua.registry.models import ModalSchemaDefinition, ModuleDefinition, SubmoduleDefinition
from lingua.vocabulary.store import VocabularyStore

from .constraints import GenerationConstraints, resolve_constraints
from .prompts import build_retry_prompt, render_generation_prompt
from .synthesizer import ContentSynthesizer, SynthesisError, SynthesisRequest
from .validator import build_response_schema, validate_question_data

MAX_ATTEMPTS = 2


class GenerationSource(str, Enum):
    SYNTHESIZER = "synthesizer"
    FORCED = "forced"


@dataclass
class GenerationResult:
    """Validated question data plus debug metadata."""

    question_data: dict[str, Any]
    constraints: GenerationConstraints
    prompt: str | None
    attempts: int
    source: GenerationSource
    issues: list[str] = field(default_factory=list)

    @property
    def debug_info(self) -> dict[str, Any]:
        return {
            "constraints": self.constraints.to_dict(),
            "prompt": self.prompt,
            "attempts": self.attempts,
            "source": self.source.value,
            "rejected_issues": self.issues,
        }


class GenerationConstraintService:
    """Builds bounded synthesis requests and validates what comes back."""

    def __init__(
        self,
        synthesizer: ContentSynthesizer,
        settings: Settings | None = None,
        vocabulary: VocabularyStore | None = None,
    ):
        self.synthesizer = synthesizer
        self.settings = settings or get_settings()
        self.vocabulary = vocabulary

    def resolve(
        self,
        submodule: SubmoduleDefinition,
        schema: ModalSchemaDefinition,
        target_language: str,
        difficulty: str | None = None,
        constraints: GenerationConstraints | None = None,
    ) -> GenerationConstraints:
        """Layer submodule, schema, override, suggested difficulty and caller constraints."""
        override = submodule.override_for(schema.id)
        effective = resolve_constraints(
            GenerationConstraints.from_defaults(submodule.generation_defaults),
            GenerationConstraints.from_defaults(schema.generation.defaults),
            GenerationConstraints.from_defaults(override.generation) if override else None,
            GenerationConstraints(difficulty=difficulty) if difficulty else None,
            constraints,
        )
        if not effective.vocabulary and self.vocabulary and self.settings.vocabulary_pool_size:
            try:
                pool = self.vocabulary.sample(
                    target_language, effective.themes, self.settings.vocabulary_pool_size
                )
            except SQLAlchemyError as e:
                logger.warning(f"Vocabulary pool unavailable: {e}")
                pool = []
            if pool:
                effective = effective.with_vocabulary(tuple(pool))
        return effective

    async def generate(
        self,
        module: ModuleDefinition,
        submodule: SubmoduleDefinition,
        schema: ModalSchemaDefinition,
        target_language: str,
        source_language: str,
        difficulty: str | None = None,
        constraints: GenerationConstraints | None = None,
    ) -> GenerationResult:
        """
        Produce validated question data for one step.

        Raises:
            GenerationFailure: Payload still invalid after the retry.
        """
        effective = self.resolve(submodule, schema, target_language, difficulty, constraints)
        forced = effective.forced_fields

        if forced and all(name in forced for name in schema.required_fields):
            issues = validate_question_data(schema, dict(forced))
            if issues:
                raise GenerationFailure(schema.id, issues, attempts=0)
            logger.debug(f"Using forced question data for {schema.id}")
            return GenerationResult(
                question_data=dict(forced),
                constraints=effective,
                prompt=None,
                attempts=0,
                source=GenerationSource.FORCED,
            )

        override = submodule.override_for(schema.id)
        template = (
            override.generation_prompt
            if override and override.generation_prompt
            else schema.generation.prompt_template
        )
        base_prompt = render_generation_prompt(
            template,
            schema,
            effective,
            {
                "module_title": module.title_en,
                "submodule_title": submodule.title_en,
                "target_language": target_language,
                "source_language": source_language,
            },
        )
        response_schema = build_response_schema(schema.descriptors)

        prompt = base_prompt
        all_issues: list[str] = []
        for attempt in range(1, MAX_ATTEMPTS + 1):
            outcome = await self._attempt(prompt, response_schema, schema, forced)
            if isinstance(outcome, dict):
                self._cache_vocabulary(outcome, target_language, effective)
                return GenerationResult(
                    question_data=outcome,
                    constraints=effective,
                    prompt=prompt,
                    attempts=attempt,
                    source=GenerationSource.SYNTHESIZER,
                    issues=all_issues,
                )
            logger.warning(
                f"Generation attempt {attempt}/{MAX_ATTEMPTS} for {submodule.id}/{schema.id} rejected: {outcome}"
            )
            all_issues.extend(outcome)
            prompt = build_retry_prompt(base_prompt, outcome)

        raise GenerationFailure(schema.id, all_issues, attempts=MAX_ATTEMPTS)

    async def _attempt(
        self,
        prompt: str,
        response_schema: dict[str, Any],
        schema: ModalSchemaDefinition,
        forced: dict[str, Any],
    ) -> dict[str, Any] | list[str]:
        """Run one synthesis call. Returns the valid payload or its issues."""
        request = SynthesisRequest(prompt=prompt, response_schema=response_schema, schema_id=schema.id)
        try:
            payload = await asyncio.wait_for(
                self.synthesizer.synthesize(request),
                timeout=self.settings.synthesis_timeout_seconds,
            )
        except asyncio.TimeoutError:
            return [f"Synthesizer timed out after {self.settings.synthesis_timeout_seconds}s"]
        except SynthesisError as e:
            return [f"Synthesizer error: {e}"]
        except Exception as e:
            logger.exception(f"Unexpected synthesizer failure for {schema.id}")
            return [f"Synthesizer failed unexpectedly: {type(e).__name__}: {e}"]

        if isinstance(payload, dict) and forced:
            payload = {**payload, **forced}
        issues = validate_question_data(schema, payload)
        return issues or payload

    def _cache_vocabulary(
        self, question_data: dict[str, Any], language: str, constraints: GenerationConstraints
    ) -> None:
        if self.vocabulary is None:
            return
        for word in question_data.get("key_vocabulary") or []:
            try:
                self.vocabulary.upsert_or_fetch(
                    word,
                    language,
                    themes=constraints.themes,
                )
            except (SQLAlchemyError, LearningEngineError) as e:
                logger.warning(f"Could not cache vocabulary {language}:{word}: {e}")
