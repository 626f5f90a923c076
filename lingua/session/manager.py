"""
Learning Session Manager.

Owns the lifecycle of one session and is the only entry point the API
calls:

    start  -> pick first step, generate, open session, record issued event
    submit -> grade live event, pick and generate next step, persist both
    end    -> close session, summarize

Each operation is the transactional boundary for its request: a failure
before the final write leaves the session exactly as it was.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from config import Settings, get_settings
from lingua.adaptive.picker import AttemptLike, NextStep, Picker
from lingua.core.errors import (
    ConcurrencyConflict,
    NoEligibleStepError,
    SessionClosedError,
    UnauthorizedError,
    ValidationError,
)
from lingua.generation.constraints import GenerationConstraints
from lingua.generation.service import GenerationConstraintService
from lingua.generation.validator import validate_question_data
from lingua.marking.base import MarkResult
from lingua.marking.service import MarkingService
from lingua.registry.catalog import LearningCatalog
from lingua.registry.models import ModuleDefinition
from lingua.statistics.models import (
    LearningSession,
    ModulePerformance,
    PendingAttempt,
    SessionEvent,
    SessionStatus,
    SessionSummary,
)
from lingua.statistics.tracker import StatisticsTracker

# ========================================
# Results
# ========================================


@dataclass
class QuestionStep:
    """A question ready to show: where it sits in the taxonomy and its content."""

    submodule_id: str
    submodule_title: str
    modal_schema_id: str
    ui_component: str
    question_data: dict[str, Any]
    difficulty: str | None = None
    debug_info: dict[str, Any] = field(default_factory=dict)

    def to_dict(self, include_debug: bool = False) -> dict[str, Any]:
        data = {
            "submodule_id": self.submodule_id,
            "submodule_title": self.submodule_title,
            "modal_schema_id": self.modal_schema_id,
            "ui_component": self.ui_component,
            "question_data": self.question_data,
            "difficulty": self.difficulty,
        }
        if include_debug:
            data["question_debug_info"] = self.debug_info
        return data


@dataclass
class StartResult:
    session_id: uuid.UUID
    module_id: str
    target_language: str
    source_language: str
    step: QuestionStep


@dataclass
class SubmitResult:
    mark_result: MarkResult
    next_step: QuestionStep | None

    @property
    def exhausted(self) -> bool:
        return self.next_step is None


@dataclass
class SessionState:
    session: LearningSession
    live_step: QuestionStep | None
    summary: SessionSummary


class LearningSessionManager:
    """Glues picker, generation, marking and statistics into a session loop."""

    def __init__(
        self,
        catalog: LearningCatalog,
        picker: Picker,
        generator: GenerationConstraintService,
        marker: MarkingService,
        tracker: StatisticsTracker,
        settings: Settings | None = None,
    ):
        self.catalog = catalog
        self.picker = picker
        self.generator = generator
        self.marker = marker
        self.tracker = tracker
        self.settings = settings or get_settings()

    # ========================================
    # Helpers
    # ========================================

    def _module_for(self, module_id: str, target_language: str, source_language: str) -> ModuleDefinition:
        module = self.catalog.modules.get_module(module_id, target_language)
        if source_language not in module.supported_source_languages:
            raise ValidationError(
                f"Module {module_id} ({target_language}) does not support source language {source_language}",
                {"supported_source_languages": list(module.supported_source_languages)},
            )
        return module

    def _open_session(self, user_id: str, session_id: uuid.UUID) -> LearningSession:
        """Owned session that still accepts questions and answers."""
        session = self._owned_session(user_id, session_id)
        if session.status.is_terminal:
            raise SessionClosedError(
                f"Session {session_id} is {session.status.value}", {"status": session.status.value}
            )
        return session

    def _owned_session(self, user_id: str, session_id: uuid.UUID) -> LearningSession:
        session = self.tracker.get_session(session_id)
        if session.user_id != user_id:
            logger.warning(f"User {user_id} attempted to access session {session_id}")
            raise UnauthorizedError(
                "Session does not belong to the requesting user", {"session_id": str(session_id)}
            )
        return session

    def _describe_step(
        self,
        module: ModuleDefinition,
        submodule_id: str,
        modal_schema_id: str,
        question_data: dict[str, Any],
        source_language: str,
        difficulty: str | None = None,
        debug_info: dict[str, Any] | None = None,
    ) -> QuestionStep:
        submodule, schema = self.catalog.resolve_step(module, submodule_id, modal_schema_id)
        return QuestionStep(
            submodule_id=submodule.id,
            submodule_title=self.catalog.modules.get_localized_title(submodule, source_language),
            modal_schema_id=schema.id,
            ui_component=self.catalog.resolve_ui_component(submodule, schema),
            question_data=question_data,
            difficulty=difficulty,
            debug_info=debug_info or {},
        )

    async def _issue(
        self,
        module: ModuleDefinition,
        step: NextStep,
        target_language: str,
        source_language: str,
        constraints: GenerationConstraints | None,
    ) -> QuestionStep:
        """Generate question data for a picked step. Persists nothing."""
        submodule, schema = self.catalog.resolve_step(module, step.submodule_id, step.modal_schema_id)
        generated = await self.generator.generate(
            module,
            submodule,
            schema,
            target_language,
            source_language,
            difficulty=step.difficulty,
            constraints=constraints,
        )
        return self._describe_step(
            module,
            step.submodule_id,
            step.modal_schema_id,
            generated.question_data,
            source_language,
            difficulty=generated.constraints.difficulty,
            debug_info=generated.debug_info,
        )

    # ========================================
    # Operations
    # ========================================

    async def start(
        self,
        user_id: str,
        module_id: str,
        target_language: str,
        source_language: str = "en",
        constraints: GenerationConstraints | None = None,
    ) -> StartResult:
        """
        Open a session and issue its first question.

        Raises:
            NotFoundError: Unknown module for the target language
            ValidationError: Unsupported source language
            GenerationFailure: First question could not be produced (no session is created)
        """
        module = self._module_for(module_id, target_language, source_language)
        history = self.tracker.get_user_session_history(user_id, module_id)
        step = self.picker.get_next_step(user_id, module_id, target_language, source_language, history)
        question = await self._issue(module, step, target_language, source_language, constraints)

        session_id = self.tracker.start_session(user_id, module_id, target_language, source_language)
        try:
            self.tracker.record_event(
                session_id, question.submodule_id, question.modal_schema_id, question.question_data
            )
        except (SQLAlchemyError, ConcurrencyConflict) as e:
            # The first submit recovers from the client's copy of the question
            logger.error(f"Failed to record first event for session {session_id}: {e}")

        return StartResult(
            session_id=session_id,
            module_id=module_id,
            target_language=target_language,
            source_language=source_language,
            step=question,
        )

    async def submit(
        self,
        user_id: str,
        session_id: uuid.UUID,
        submodule_id: str,
        modal_schema_id: str,
        user_answer: Any,
        question_data: dict[str, Any] | None = None,
        constraints: GenerationConstraints | None = None,
    ) -> SubmitResult:
        """
        Grade the live question and issue the next one.

        Raises:
            UnauthorizedError: Session owned by another user (checked first)
            SessionClosedError: Session ended or exhausted
            ConcurrencyConflict: Live question already graded, or question_data
                replays the previously graded question
            ValidationError: Step ids or question_data do not match the live question
            GenerationFailure: Next question could not be produced; nothing is recorded
        """
        session = self._open_session(user_id, session_id)
        if session.status not in (SessionStatus.QUESTION_ISSUED, SessionStatus.STARTED):
            raise ConcurrencyConflict(
                f"Session {session_id} is {session.status.value}, not awaiting an answer",
                {"status": session.status.value},
            )

        module = self.catalog.modules.get_module(session.module_id, session.target_language)
        live = self.tracker.get_live_event(session_id)
        graded_event = None
        if live is None:
            if self.tracker.get_latest_event(session_id) is not None:
                raise ConcurrencyConflict(
                    f"Session {session_id} has no unanswered question", {"session_id": str(session_id)}
                )
            graded_event = self._recover_live_question(module, submodule_id, modal_schema_id, question_data)
            graded_question = graded_event["question_data"]
        else:
            if question_data is not None and question_data != live.question_data:
                self._reject_stale_question(session_id, question_data)
            if (live.submodule_id, live.modal_schema_id) != (submodule_id, modal_schema_id):
                raise ValidationError(
                    "Submitted step does not match the live question",
                    {
                        "expected": {"submodule_id": live.submodule_id, "modal_schema_id": live.modal_schema_id},
                        "received": {"submodule_id": submodule_id, "modal_schema_id": modal_schema_id},
                    },
                )
            graded_question = live.question_data

        mark = await self.marker.mark_answer(
            session.module_id,
            submodule_id,
            modal_schema_id,
            graded_question,
            user_answer,
            session.target_language,
            session.source_language,
        )
        mark_data = mark.to_dict()

        next_question = None
        next_step = self._pick_after(session, live, submodule_id, modal_schema_id, mark)
        if next_step is not None:
            next_question = await self._issue(
                module, next_step, session.target_language, session.source_language, constraints
            )

        self.tracker.record_outcome_and_issue(
            session_id,
            live.id if live else None,
            user_answer,
            mark_data,
            next_event=(
                {
                    "submodule_id": next_question.submodule_id,
                    "modal_schema_id": next_question.modal_schema_id,
                    "question_data": next_question.question_data,
                }
                if next_question
                else None
            ),
            graded_event=graded_event,
        )
        if next_question is None:
            logger.info(f"Session {session_id} exhausted")
        return SubmitResult(mark_result=mark, next_step=next_question)

    def _reject_stale_question(self, session_id: uuid.UUID, question_data: dict[str, Any]) -> None:
        """Raise for a submit whose question is not the live one."""
        previous = self.tracker.get_latest_graded_event(session_id)
        if previous is not None and previous.question_data == question_data:
            logger.warning(f"Replayed submit for an already graded question in session {session_id}")
            raise ConcurrencyConflict(
                "Submitted question was already graded",
                {"session_id": str(session_id), "event_id": str(previous.id)},
            )
        raise ValidationError(
            "Submitted question_data does not match the live question",
            {"session_id": str(session_id)},
        )

    def _recover_live_question(
        self,
        module: ModuleDefinition,
        submodule_id: str,
        modal_schema_id: str,
        question_data: dict[str, Any] | None,
    ) -> dict[str, Any]:
        """Accept the client's copy of a question whose issue was never recorded."""
        _, schema = self.catalog.resolve_step(module, submodule_id, modal_schema_id)
        if not question_data:
            raise ValidationError("question_data is required: the live question was not recorded")
        issues = validate_question_data(schema, question_data)
        if issues:
            raise ValidationError("Submitted question_data is malformed", {"issues": issues})
        return {
            "submodule_id": submodule_id,
            "modal_schema_id": modal_schema_id,
            "question_data": question_data,
        }

    def _pick_after(
        self,
        session: LearningSession,
        live: SessionEvent | None,
        submodule_id: str,
        modal_schema_id: str,
        mark: MarkResult,
    ) -> NextStep | None:
        """Next step given the pending outcome, or None when the session is exhausted."""
        limit = self.settings.max_questions_per_session
        if limit and len(self.tracker.get_session_events(session.id)) >= limit:
            return None

        history: list[AttemptLike] = [
            e for e in self.tracker.get_user_session_history(session.user_id, session.module_id)
            if live is None or e.id != live.id
        ]
        history.append(
            PendingAttempt(
                submodule_id=submodule_id,
                modal_schema_id=modal_schema_id,
                is_correct=mark.is_correct,
                mark_data=mark.to_dict(),
            )
        )
        try:
            return self.picker.get_next_step(
                session.user_id,
                session.module_id,
                session.target_language,
                session.source_language,
                history,
            )
        except NoEligibleStepError:
            return None

    async def end(self, user_id: str, session_id: uuid.UUID) -> SessionSummary:
        """Close a session. Ending twice returns the same summary."""
        self._owned_session(user_id, session_id)
        return self.tracker.end_session(session_id)

    async def generate_step(
        self,
        user_id: str,
        session_id: uuid.UUID,
        submodule_id: str,
        modal_schema_id: str,
        constraints: GenerationConstraints | None = None,
    ) -> QuestionStep:
        """
        Replace the live question with one for a chosen step.

        Debug replay only: the picker is bypassed and the unanswered
        question is swapped in place.

        Raises:
            UnauthorizedError: Debug mode is off, or the session belongs to another user
            SessionClosedError: Session ended or exhausted
            NotFoundError: Unknown submodule or modal schema
            ValidationError: Schema not supported by the submodule
            GenerationFailure: Question could not be produced; the live question is kept
            ConcurrencyConflict: The live question was answered meanwhile
        """
        if not self.settings.debug:
            raise UnauthorizedError("Forced step generation is only available in debug mode")
        session = self._open_session(user_id, session_id)
        module = self.catalog.modules.get_module(session.module_id, session.target_language)
        self.catalog.resolve_step(module, submodule_id, modal_schema_id)
        logger.info(f"Forcing step {submodule_id}/{modal_schema_id} in session {session_id}")

        question = await self._issue(
            module,
            NextStep(submodule_id, modal_schema_id),
            session.target_language,
            session.source_language,
            constraints,
        )
        self.tracker.replace_live_question(
            session_id, question.submodule_id, question.modal_schema_id, question.question_data
        )
        return question

    def get_state(self, user_id: str, session_id: uuid.UUID) -> SessionState:
        """Current status and live question, for resuming a session."""
        session = self._owned_session(user_id, session_id)
        live_step = None
        live = self.tracker.get_live_event(session_id)
        if live is not None and not session.status.is_terminal:
            module = self.catalog.modules.get_module(session.module_id, session.target_language)
            live_step = self._describe_step(
                module, live.submodule_id, live.modal_schema_id, live.question_data, session.source_language
            )
        return SessionState(
            session=session,
            live_step=live_step,
            summary=self.tracker.summarize_session(session_id),
        )

    def performance(self, user_id: str, module_id: str) -> ModulePerformance:
        return self.tracker.get_user_module_performance(user_id, module_id)
