from .manager import (
    LearningSessionManager,
    QuestionStep,
    SessionState,
    StartResult,
    SubmitResult,
)

__all__ = [
    "LearningSessionManager",
    "QuestionStep",
    "SessionState",
    "StartResult",
    "SubmitResult",
]
