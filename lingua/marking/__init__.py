"""
Answer marking.

Strategy pattern: each MarkingMode has one registered strategy.
"""

from .base import MarkingContext, MarkingStrategy, MarkResult, StrategyRegistry, normalize_answer
from .judge import GeminiJudge, JudgmentClient, JudgmentError, JudgmentRequest, JudgmentVerdict
from .service import MarkingService
from .strategies import (
    BooleanStrategy,
    ChoiceStrategy,
    ExactMatchStrategy,
    JudgedStrategy,
    MultiItemStrategy,
)

__all__ = [
    # Base classes
    "MarkResult",
    "MarkingContext",
    "MarkingStrategy",
    "StrategyRegistry",
    "normalize_answer",
    # Strategies
    "BooleanStrategy",
    "ChoiceStrategy",
    "ExactMatchStrategy",
    "JudgedStrategy",
    "MultiItemStrategy",
    # Judgment
    "GeminiJudge",
    "JudgmentClient",
    "JudgmentError",
    "JudgmentRequest",
    "JudgmentVerdict",
    # Service
    "MarkingService",
]
