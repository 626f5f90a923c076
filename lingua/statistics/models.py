"""
Statistics value objects.

Snapshots of persisted rows plus derived performance aggregates. These are
plain dataclasses so they can cross the session boundary safely.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from lingua.db.models import LearningSessionRow, SessionEventRow
from lingua.registry.models import Skill


class SessionStatus(str, Enum):
    """Lifecycle of a learning session."""

    STARTED = "started"
    QUESTION_ISSUED = "question_issued"
    ANSWERED = "answered"
    EXHAUSTED = "exhausted"
    ENDED = "ended"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.EXHAUSTED, SessionStatus.ENDED)


@dataclass(frozen=True)
class LearningSession:
    id: uuid.UUID
    user_id: str
    module_id: str
    target_language: str
    source_language: str
    status: SessionStatus
    start_time: datetime
    end_time: datetime | None = None

    @classmethod
    def from_row(cls, row: LearningSessionRow) -> LearningSession:
        return cls(
            id=row.id,
            user_id=row.user_id,
            module_id=row.module_id,
            target_language=row.target_language,
            source_language=row.source_language,
            status=SessionStatus(row.status),
            start_time=row.start_time,
            end_time=row.end_time,
        )


@dataclass(frozen=True)
class SessionEvent:
    id: uuid.UUID
    session_id: uuid.UUID
    sequence: int
    submodule_id: str
    modal_schema_id: str
    question_data: dict[str, Any]
    user_answer: Any
    mark_data: dict[str, Any] | None
    is_correct: bool | None
    timestamp: datetime

    @classmethod
    def from_row(cls, row: SessionEventRow) -> SessionEvent:
        return cls(
            id=row.id,
            session_id=row.session_id,
            sequence=row.sequence,
            submodule_id=row.submodule_id,
            modal_schema_id=row.modal_schema_id,
            question_data=row.question_data,
            user_answer=row.user_answer,
            mark_data=row.mark_data,
            is_correct=row.is_correct,
            timestamp=row.timestamp,
        )

    @property
    def is_graded(self) -> bool:
        return self.mark_data is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "session_id": str(self.session_id),
            "sequence": self.sequence,
            "submodule_id": self.submodule_id,
            "modal_schema_id": self.modal_schema_id,
            "question_data": self.question_data,
            "user_answer": self.user_answer,
            "mark_data": self.mark_data,
            "is_correct": self.is_correct,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class PendingAttempt:
    """A graded attempt not yet persisted, for picking ahead of the write."""

    submodule_id: str
    modal_schema_id: str
    is_correct: bool
    mark_data: dict[str, Any]


@dataclass
class SkillPerformance:
    correct: int = 0
    total: int = 0
    accuracy: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"correct": self.correct, "total": self.total, "accuracy": self.accuracy}


@dataclass
class ModulePerformance:
    overall: SkillPerformance
    by_skill: dict[str, SkillPerformance] = field(
        default_factory=lambda: {skill.value: SkillPerformance() for skill in Skill}
    )
    cefr_level: str = "Pre-A1"

    def to_dict(self) -> dict[str, Any]:
        return {
            "overall": self.overall.to_dict(),
            "by_skill": {skill: perf.to_dict() for skill, perf in self.by_skill.items()},
            "cefr_level": self.cefr_level,
        }


@dataclass(frozen=True)
class SessionSummary:
    session_id: uuid.UUID
    status: SessionStatus
    total_questions: int
    correct_answers: int
    score: int
    time_spent_seconds: int
    cefr_level: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": str(self.session_id),
            "status": self.status.value,
            "total_questions": self.total_questions,
            "correct_answers": self.correct_answers,
            "score": self.score,
            "time_spent_seconds": self.time_spent_seconds,
            "cefr_level": self.cefr_level,
        }
