"""
Attempt records and performance aggregation.
"""

from .cefr import CEFR_LEVELS, accuracy_to_cefr
from .models import (
    LearningSession,
    ModulePerformance,
    PendingAttempt,
    SessionEvent,
    SessionStatus,
    SessionSummary,
    SkillPerformance,
)
from .tracker import StatisticsTracker

__all__ = [
    "CEFR_LEVELS",
    "LearningSession",
    "ModulePerformance",
    "PendingAttempt",
    "SessionEvent",
    "SessionStatus",
    "SessionSummary",
    "SkillPerformance",
    "StatisticsTracker",
    "accuracy_to_cefr",
]
