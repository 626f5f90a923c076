"""
Learning session models.

SQLAlchemy models for the progression engine:
- Learning sessions (one per learner run through a module)
- Session events (append-only attempt records)
- Vocabulary cache (per-language word pool for generation hints)
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# None persists as SQL NULL so "ungraded" can be tested with IS NULL
JsonType = JSON(none_as_null=True).with_variant(JSONB(none_as_null=True), "postgresql")


def utcnow() -> datetime:
    """Naive UTC timestamp; all stored times are UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    pass


class LearningSessionRow(Base):
    """One learner's run through a module in one target language."""

    __tablename__ = "learning_sessions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    module_id: Mapped[str] = mapped_column(String(128), nullable=False)
    target_language: Mapped[str] = mapped_column(String(16), nullable=False)
    source_language: Mapped[str] = mapped_column(String(16), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="started")
    start_time: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    end_time: Mapped[datetime | None] = mapped_column(DateTime)

    # Relationships
    events: Mapped[list[SessionEventRow]] = relationship(
        back_populates="session",
        order_by="SessionEventRow.sequence",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_learning_sessions_user_module", "user_id", "module_id"),
    )

    def __repr__(self) -> str:
        return f"<LearningSession {self.id} user={self.user_id} module={self.module_id} status={self.status}>"


class SessionEventRow(Base):
    """
    One attempt within a session.

    Events are append-only. A row is written when the question is issued
    (user_answer and mark_data null) and graded exactly once afterwards.
    """

    __tablename__ = "session_events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    session_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("learning_sessions.id", ondelete="CASCADE"), nullable=False
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    submodule_id: Mapped[str] = mapped_column(String(128), nullable=False)
    modal_schema_id: Mapped[str] = mapped_column(String(64), nullable=False)
    question_data: Mapped[dict[str, Any]] = mapped_column(JsonType, nullable=False)
    user_answer: Mapped[Any | None] = mapped_column(JsonType)
    mark_data: Mapped[dict[str, Any] | None] = mapped_column(JsonType)
    is_correct: Mapped[bool | None] = mapped_column(Boolean)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    # Relationships
    session: Mapped[LearningSessionRow] = relationship(back_populates="events")

    __table_args__ = (
        UniqueConstraint("session_id", "sequence", name="uq_session_event_sequence"),
        Index("idx_session_events_session", "session_id"),
    )

    def __repr__(self) -> str:
        return f"<SessionEvent {self.session_id}#{self.sequence} {self.submodule_id}/{self.modal_schema_id}>"

    @property
    def is_graded(self) -> bool:
        return self.mark_data is not None


class VocabularyItem(Base):
    """Cached target-language word used to seed generation hints."""

    __tablename__ = "vocabulary_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    word: Mapped[str] = mapped_column(String(128), nullable=False)
    language: Mapped[str] = mapped_column(String(16), nullable=False)
    lemma: Mapped[str | None] = mapped_column(String(128))
    cefr_level: Mapped[str | None] = mapped_column(String(8))
    themes: Mapped[list[str]] = mapped_column(JsonType, nullable=False, default=list)
    translation: Mapped[str | None] = mapped_column(Text)
    definition: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("word", "language", name="uq_vocabulary_word_language"),
    )

    def __repr__(self) -> str:
        return f"<VocabularyItem {self.language}:{self.word}>"
