"""
Base Marking Strategy.

Provides the abstract base for all marking strategies, the MarkResult
returned to callers, and a registry keyed by MarkingMode.
"""

from __future__ import annotations

import re
import unicodedata
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, ClassVar

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from config import Settings, get_settings
from lingua.core.errors import ValidationError
from lingua.registry.models import MarkingMode, ModalSchemaDefinition

# =============================================================================
# Mark Result
# =============================================================================


class MarkResult(BaseModel):
    """Outcome of grading one answer. Immutable once produced."""

    model_config = ConfigDict(frozen=True)

    is_correct: bool
    score: int = Field(..., ge=0, le=100)
    feedback: str = Field(..., min_length=1)
    correct_answer: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump()


@dataclass(frozen=True)
class MarkingContext:
    """Everything a strategy needs to grade one answer."""

    schema: ModalSchemaDefinition
    question_data: dict[str, Any]
    user_answer: Any
    target_language: str
    source_language: str
    prompt_template: str | None = None

    def require(self, key: str) -> Any:
        value = self.question_data.get(key)
        if value is None:
            raise ValidationError(
                f"Question data for {self.schema.id} is missing '{key}'",
                {"modal_schema_id": self.schema.id, "field": key},
            )
        return value


# =============================================================================
# Normalization
# =============================================================================

_WHITESPACE = re.compile(r"\s+")


def normalize_answer(value: Any) -> str:
    """Case-fold, trim, drop punctuation and collapse whitespace."""
    text = unicodedata.normalize("NFKC", str(value)).casefold()
    text = "".join(" " if unicodedata.category(ch).startswith("P") else ch for ch in text)
    return _WHITESPACE.sub(" ", text).strip()


def tokenize(value: Any) -> list[str]:
    normalized = normalize_answer(value)
    return normalized.split(" ") if normalized else []


# =============================================================================
# Strategy Registry
# =============================================================================


class StrategyRegistry:
    """
    Registry for marking strategies.

    Example:
        @StrategyRegistry.register(MarkingMode.EXACT)
        class ExactMatchStrategy(MarkingStrategy):
            ...

        strategy_class = StrategyRegistry.get(MarkingMode.EXACT)
    """

    _strategies: ClassVar[dict[MarkingMode, type[MarkingStrategy]]] = {}

    @classmethod
    def register(cls, mode: MarkingMode):
        """
        Decorator to register a marking strategy.

        Args:
            mode: MarkingMode this strategy handles
        """

        def decorator(strategy_class: type[MarkingStrategy]):
            cls._strategies[mode] = strategy_class
            strategy_class.marking_mode = mode
            logger.debug(f"Registered strategy: {mode.value} -> {strategy_class.__name__}")
            return strategy_class

        return decorator

    @classmethod
    def get(cls, mode: MarkingMode) -> type[MarkingStrategy]:
        """Get strategy class by marking mode."""
        if mode not in cls._strategies:
            raise KeyError(f"No strategy registered for mode: {mode.value}")
        return cls._strategies[mode]

    @classmethod
    def list_strategies(cls) -> dict[str, type[MarkingStrategy]]:
        return {mode.value: cls._strategies[mode] for mode in cls._strategies}


# =============================================================================
# Base Marking Strategy
# =============================================================================


class MarkingStrategy(ABC):
    """
    Abstract base class for marking strategies.

    Subclasses implement mark(). Strategies hold no per-answer state, so
    identical contexts always produce identical results.
    """

    marking_mode: ClassVar[MarkingMode] = MarkingMode.EXACT

    def __init__(self, settings: Settings | None = None, **_: Any):
        self.settings = settings or get_settings()

    @abstractmethod
    async def mark(self, context: MarkingContext) -> MarkResult:
        """Grade the answer in context."""
        ...

    def _validate_response(self, response: Any) -> None:
        if response is None:
            raise ValidationError("No answer provided")

    def _generate_feedback(
        self,
        is_correct: bool,
        correct_answer: str | None,
        explanation: str | None = None,
    ) -> str:
        if is_correct:
            feedback = "Correct!"
        elif correct_answer:
            feedback = f'Incorrect. The correct answer is "{correct_answer}".'
        else:
            feedback = "Incorrect."
        if explanation:
            feedback = f"{feedback} {explanation}"
        return feedback
