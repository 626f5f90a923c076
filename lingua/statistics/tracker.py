"""
Statistics & Performance Tracker.

Durable record of every attempt in a session, and the aggregates derived
from it:
- Session lifecycle rows (start, status, end)
- Append-only session events, graded at most once
- Per-module accuracy overall and per skill, with a CEFR estimate
"""

from __future__ import annotations

import uuid
from typing import Any

from loguru import logger
from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import Settings, get_settings
from lingua.core.errors import ConcurrencyConflict, NotFoundError
from lingua.core.scoring import percentage
from lingua.db.database import Database
from lingua.db.models import LearningSessionRow, SessionEventRow, utcnow
from lingua.registry.catalog import LearningCatalog

from .cefr import accuracy_to_cefr
from .models import (
    LearningSession,
    ModulePerformance,
    SessionEvent,
    SessionStatus,
    SessionSummary,
    SkillPerformance,
)


class StatisticsTracker:
    def __init__(
        self,
        db: Database,
        catalog: LearningCatalog,
        settings: Settings | None = None,
    ):
        self.db = db
        self.catalog = catalog
        self.settings = settings or get_settings()

    # ========================================
    # Sessions
    # ========================================

    def start_session(
        self,
        user_id: str,
        module_id: str,
        target_language: str,
        source_language: str,
    ) -> uuid.UUID:
        with self.db.session_scope() as session:
            row = LearningSessionRow(
                user_id=user_id,
                module_id=module_id,
                target_language=target_language,
                source_language=source_language,
                status=SessionStatus.STARTED.value,
                start_time=utcnow(),
            )
            session.add(row)
            session.flush()
            session_id = row.id
        logger.info(f"Started session {session_id} for {user_id} on {module_id} ({target_language})")
        return session_id

    def get_session(self, session_id: uuid.UUID) -> LearningSession:
        with self.db.session_scope() as session:
            return LearningSession.from_row(self._get_session_row(session, session_id))

    def _get_session_row(self, session: Session, session_id: uuid.UUID) -> LearningSessionRow:
        row = session.get(LearningSessionRow, session_id)
        if row is None:
            raise NotFoundError("session", str(session_id))
        return row

    def end_session(self, session_id: uuid.UUID) -> SessionSummary:
        """Close the session (once) and return its summary."""
        with self.db.session_scope() as session:
            row = self._get_session_row(session, session_id)
            if row.end_time is None:
                row.end_time = utcnow()
                row.status = SessionStatus.ENDED.value
                logger.info(f"Ended session {session_id}")
        return self.summarize_session(session_id)

    def summarize_session(self, session_id: uuid.UUID) -> SessionSummary:
        with self.db.session_scope() as session:
            row = self._get_session_row(session, session_id)
            graded = session.execute(
                select(
                    func.count(SessionEventRow.id),
                    func.sum(case((SessionEventRow.is_correct.is_(True), 1), else_=0)),
                ).where(
                    SessionEventRow.session_id == session_id,
                    SessionEventRow.mark_data.is_not(None),
                )
            ).one()
            total, correct = graded[0] or 0, graded[1] or 0
            finished = row.end_time or utcnow()
            score = percentage(correct, total)
            return SessionSummary(
                session_id=row.id,
                status=SessionStatus(row.status),
                total_questions=total,
                correct_answers=correct,
                score=score,
                time_spent_seconds=max(0, int((finished - row.start_time).total_seconds())),
                cefr_level=accuracy_to_cefr(score),
            )

    # ========================================
    # Events
    # ========================================

    def _next_sequence(self, session: Session, session_id: uuid.UUID) -> int:
        current = session.scalar(
            select(func.max(SessionEventRow.sequence)).where(SessionEventRow.session_id == session_id)
        )
        return (current or 0) + 1

    def _append_event(
        self,
        session: Session,
        session_id: uuid.UUID,
        submodule_id: str,
        modal_schema_id: str,
        question_data: dict[str, Any],
        user_answer: Any = None,
        mark_data: dict[str, Any] | None = None,
    ) -> uuid.UUID:
        row = SessionEventRow(
            session_id=session_id,
            sequence=self._next_sequence(session, session_id),
            submodule_id=submodule_id,
            modal_schema_id=modal_schema_id,
            question_data=question_data,
            user_answer=user_answer,
            mark_data=mark_data,
            is_correct=mark_data.get("is_correct") if mark_data else None,
            timestamp=utcnow(),
        )
        session.add(row)
        session.flush()
        return row.id

    def record_event(
        self,
        session_id: uuid.UUID,
        submodule_id: str,
        modal_schema_id: str,
        question_data: dict[str, Any],
        user_answer: Any = None,
        mark_data: dict[str, Any] | None = None,
    ) -> uuid.UUID:
        """
        Append one event to a session.

        An event without mark_data means "question issued, not yet answered".

        Raises:
            ConcurrencyConflict: Another writer appended the same sequence.
        """
        try:
            with self.db.session_scope() as session:
                row = self._get_session_row(session, session_id)
                event_id = self._append_event(
                    session, session_id, submodule_id, modal_schema_id,
                    question_data, user_answer, mark_data,
                )
                if mark_data is None:
                    row.status = SessionStatus.QUESTION_ISSUED.value
        except IntegrityError as e:
            raise ConcurrencyConflict(
                f"Concurrent event append on session {session_id}", {"session_id": str(session_id)}
            ) from e
        return event_id

    def _grade(
        self,
        session: Session,
        row: LearningSessionRow,
        event_id: uuid.UUID,
        user_answer: Any,
        mark_data: dict[str, Any],
    ) -> None:
        result = session.execute(
            update(SessionEventRow)
            .where(SessionEventRow.id == event_id, SessionEventRow.mark_data.is_(None))
            .values(
                user_answer=user_answer,
                mark_data=mark_data,
                is_correct=bool(mark_data.get("is_correct")),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConcurrencyConflict(
                f"Event {event_id} was already graded", {"event_id": str(event_id)}
            )
        row.status = SessionStatus.ANSWERED.value

    def record_outcome_and_issue(
        self,
        session_id: uuid.UUID,
        event_id: uuid.UUID | None,
        user_answer: Any,
        mark_data: dict[str, Any],
        next_event: dict[str, Any] | None,
        graded_event: dict[str, Any] | None = None,
    ) -> uuid.UUID | None:
        """
        Persist a mark and the next issued question in one transaction.

        Within the transaction the session moves to ANSWERED once the mark
        is written, then to QUESTION_ISSUED with the next question, or to
        EXHAUSTED when there is none.

        Args:
            session_id: Session being advanced
            event_id: Live event to grade, or None when it was never recorded
            user_answer: Learner's answer
            mark_data: Serialized MarkResult
            next_event: submodule_id, modal_schema_id, question_data of the
                next question, or None when the session is exhausted
            graded_event: When event_id is None, the submodule_id,
                modal_schema_id and question_data to record as a graded event

        Returns:
            Id of the newly issued event, or None.

        Raises:
            ConcurrencyConflict: The live event was graded concurrently.
        """
        try:
            with self.db.session_scope() as session:
                row = self._get_session_row(session, session_id)
                if event_id is not None:
                    self._grade(session, row, event_id, user_answer, mark_data)
                elif graded_event is not None:
                    self._append_event(
                        session, session_id, user_answer=user_answer, mark_data=mark_data, **graded_event
                    )
                    row.status = SessionStatus.ANSWERED.value

                new_event_id = None
                if next_event is not None:
                    new_event_id = self._append_event(session, session_id, **next_event)
                    row.status = SessionStatus.QUESTION_ISSUED.value
                else:
                    row.status = SessionStatus.EXHAUSTED.value
        except IntegrityError as e:
            raise ConcurrencyConflict(
                f"Concurrent submit on session {session_id}", {"session_id": str(session_id)}
            ) from e
        return new_event_id

    def get_session_events(self, session_id: uuid.UUID) -> list[SessionEvent]:
        with self.db.session_scope() as session:
            rows = session.scalars(
                select(SessionEventRow)
                .where(SessionEventRow.session_id == session_id)
                .order_by(SessionEventRow.sequence)
            ).all()
            return [SessionEvent.from_row(r) for r in rows]

    def get_latest_event(self, session_id: uuid.UUID) -> SessionEvent | None:
        with self.db.session_scope() as session:
            row = session.scalar(
                select(SessionEventRow)
                .where(SessionEventRow.session_id == session_id)
                .order_by(SessionEventRow.sequence.desc())
                .limit(1)
            )
            return SessionEvent.from_row(row) if row else None

    def get_live_event(self, session_id: uuid.UUID) -> SessionEvent | None:
        """Most recent event when it has not been graded yet."""
        latest = self.get_latest_event(session_id)
        if latest is None or latest.is_graded:
            return None
        return latest

    def get_latest_graded_event(self, session_id: uuid.UUID) -> SessionEvent | None:
        with self.db.session_scope() as session:
            row = session.scalar(
                select(SessionEventRow)
                .where(
                    SessionEventRow.session_id == session_id,
                    SessionEventRow.mark_data.is_not(None),
                )
                .order_by(SessionEventRow.sequence.desc())
                .limit(1)
            )
            return SessionEvent.from_row(row) if row else None

    def replace_live_question(
        self,
        session_id: uuid.UUID,
        submodule_id: str,
        modal_schema_id: str,
        question_data: dict[str, Any],
    ) -> uuid.UUID:
        """
        Swap the unanswered question for another one.

        The live event is rewritten in place so the sequence stays gapless.
        A session without events gets the question appended instead.

        Raises:
            ConcurrencyConflict: The live question was graded meanwhile.
        """
        with self.db.session_scope() as session:
            row = self._get_session_row(session, session_id)
            latest = session.scalar(
                select(SessionEventRow)
                .where(SessionEventRow.session_id == session_id)
                .order_by(SessionEventRow.sequence.desc())
                .limit(1)
            )
            if latest is None:
                event_id = self._append_event(session, session_id, submodule_id, modal_schema_id, question_data)
            else:
                result = session.execute(
                    update(SessionEventRow)
                    .where(SessionEventRow.id == latest.id, SessionEventRow.mark_data.is_(None))
                    .values(
                        submodule_id=submodule_id,
                        modal_schema_id=modal_schema_id,
                        question_data=question_data,
                        timestamp=utcnow(),
                    )
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    raise ConcurrencyConflict(
                        f"Session {session_id} has no unanswered question to replace",
                        {"session_id": str(session_id)},
                    )
                event_id = latest.id
            row.status = SessionStatus.QUESTION_ISSUED.value
        logger.info(f"Replaced live question of session {session_id} with {submodule_id}/{modal_schema_id}")
        return event_id

    # ========================================
    # History & Aggregation
    # ========================================

    def get_user_session_history(
        self,
        user_id: str,
        module_id: str,
        limit: int | None = None,
    ) -> list[SessionEvent]:
        """Most recent events for (user, module) across sessions, oldest first."""
        limit = limit or self.settings.history_limit
        with self.db.session_scope() as session:
            rows = session.scalars(
                select(SessionEventRow)
                .join(LearningSessionRow, SessionEventRow.session_id == LearningSessionRow.id)
                .where(
                    LearningSessionRow.user_id == user_id,
                    LearningSessionRow.module_id == module_id,
                )
                .order_by(SessionEventRow.timestamp.desc(), SessionEventRow.sequence.desc())
                .limit(limit)
            ).all()
            events = [SessionEvent.from_row(r) for r in rows]
        events.reverse()
        return events

    def get_user_module_performance(self, user_id: str, module_id: str) -> ModulePerformance:
        """Accuracy over every graded event for (user, module)."""
        with self.db.session_scope() as session:
            rows = session.execute(
                select(SessionEventRow.modal_schema_id, SessionEventRow.is_correct)
                .join(LearningSessionRow, SessionEventRow.session_id == LearningSessionRow.id)
                .where(
                    LearningSessionRow.user_id == user_id,
                    LearningSessionRow.module_id == module_id,
                    SessionEventRow.mark_data.is_not(None),
                )
            ).all()

        performance = ModulePerformance(overall=SkillPerformance())
        skills: dict[str, str | None] = {}
        for schema_id, is_correct in rows:
            if schema_id not in skills:
                skills[schema_id] = self._skill_for(schema_id)
            buckets = [performance.overall]
            skill = skills[schema_id]
            if skill is not None:
                buckets.append(performance.by_skill[skill])
            for bucket in buckets:
                bucket.total += 1
                if is_correct:
                    bucket.correct += 1

        for bucket in [performance.overall, *performance.by_skill.values()]:
            bucket.accuracy = percentage(bucket.correct, bucket.total)
        performance.cefr_level = accuracy_to_cefr(performance.overall.accuracy)
        return performance

    def _skill_for(self, schema_id: str) -> str | None:
        try:
            return self.catalog.schemas.get_schema(schema_id).skill.value
        except NotFoundError:
            logger.warning(f"Event references retired modal schema {schema_id}; counted overall only")
            return None
