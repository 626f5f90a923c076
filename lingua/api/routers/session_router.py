"""
Learning Session API Router.

Endpoints for the progression loop:
- Start a session and receive the first question
- Submit an answer and receive the mark plus the next question
- End a session and receive its summary
- Read the live state of a session
- Force a specific step for debug replay
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from loguru import logger
from pydantic import BaseModel, Field

from lingua.container import EngineContainer
from lingua.generation.constraints import GenerationConstraints
from lingua.session.manager import LearningSessionManager

from ..dependencies import get_container, get_manager, get_user_id

router = APIRouter()


# ========================================
# Request/Response Models
# ========================================


class ConstraintsRequest(BaseModel):
    """Caller-forced generation constraints."""

    difficulty: str | None = Field(None, description="beginner, intermediate or advanced")
    grammar_focus: str | None = None
    themes: list[str] = Field(default_factory=list)
    vocabulary: list[str] = Field(default_factory=list)
    forced_fields: dict[str, Any] = Field(default_factory=dict, description="question_data values to use verbatim")

    def to_constraints(self) -> GenerationConstraints:
        return GenerationConstraints(
            difficulty=self.difficulty,
            grammar_focus=self.grammar_focus,
            themes=tuple(self.themes),
            vocabulary=tuple(self.vocabulary),
            forced_fields=dict(self.forced_fields),
        )


class StartSessionRequest(BaseModel):
    module_id: str = Field(..., description="Module concept id")
    target_language: str = Field(..., description="Language being learned")
    source_language: str = Field("en", description="Learner's language")
    constraints: ConstraintsRequest | None = None


class StepResponse(BaseModel):
    submodule_id: str
    submodule_title: str
    modal_schema_id: str
    ui_component: str
    question_data: dict[str, Any]
    difficulty: str | None = None
    question_debug_info: dict[str, Any] | None = None


class StartSessionResponse(BaseModel):
    session_id: UUID
    module_id: str
    target_language: str
    source_language: str
    submodule_id: str
    submodule_title: str
    modal_schema_id: str
    ui_component: str
    question_data: dict[str, Any]
    question_debug_info: dict[str, Any] | None = None


class SubmitAnswerRequest(BaseModel):
    session_id: UUID
    module_id: str | None = Field(None, description="Echoed module id (informational)")
    submodule_id: str
    modal_schema_id: str
    question_data: dict[str, Any] | None = Field(
        None, description="Client copy of the question; must match the live question when sent"
    )
    user_answer: Any = Field(..., description="Answer in the shape the modal schema expects")
    constraints: ConstraintsRequest | None = None


class MarkResultResponse(BaseModel):
    is_correct: bool
    score: int
    feedback: str
    correct_answer: str | None = None


class SubmitAnswerResponse(BaseModel):
    mark_result: MarkResultResponse
    next_step: StepResponse | None
    exhausted: bool


class GenerateStepRequest(BaseModel):
    session_id: UUID
    submodule_id: str = Field(..., description="Submodule to force")
    modal_schema_id: str = Field(..., description="Modal schema to force")
    constraints: ConstraintsRequest | None = None


class EndSessionRequest(BaseModel):
    session_id: UUID


class SessionSummaryResponse(BaseModel):
    session_id: UUID
    status: str
    total_questions: int
    correct_answers: int
    score: int
    time_spent_seconds: int
    cefr_level: str


class EndSessionResponse(BaseModel):
    summary: SessionSummaryResponse


class SessionStateResponse(BaseModel):
    session_id: UUID
    module_id: str
    target_language: str
    source_language: str
    status: str
    live_step: StepResponse | None
    summary: SessionSummaryResponse


# ========================================
# Session Endpoints
# ========================================


@router.post("/start", response_model=StartSessionResponse, summary="Start learning session")
async def start_session(
    request: StartSessionRequest,
    user_id: str = Depends(get_user_id),
    manager: LearningSessionManager = Depends(get_manager),
    container: EngineContainer = Depends(get_container),
) -> StartSessionResponse:
    logger.info(f"Starting {request.module_id} ({request.target_language}) for {user_id}")
    result = await manager.start(
        user_id,
        request.module_id,
        request.target_language,
        request.source_language,
        constraints=request.constraints.to_constraints() if request.constraints else None,
    )
    step = result.step.to_dict(include_debug=container.settings.debug)
    return StartSessionResponse(
        session_id=result.session_id,
        module_id=result.module_id,
        target_language=result.target_language,
        source_language=result.source_language,
        **step,
    )


@router.post("/submit", response_model=SubmitAnswerResponse, summary="Submit answer")
async def submit_answer(
    request: SubmitAnswerRequest,
    user_id: str = Depends(get_user_id),
    manager: LearningSessionManager = Depends(get_manager),
    container: EngineContainer = Depends(get_container),
) -> SubmitAnswerResponse:
    result = await manager.submit(
        user_id,
        request.session_id,
        request.submodule_id,
        request.modal_schema_id,
        request.user_answer,
        question_data=request.question_data,
        constraints=request.constraints.to_constraints() if request.constraints else None,
    )
    next_step = None
    if result.next_step is not None:
        next_step = StepResponse(**result.next_step.to_dict(include_debug=container.settings.debug))
    return SubmitAnswerResponse(
        mark_result=MarkResultResponse(**result.mark_result.to_dict()),
        next_step=next_step,
        exhausted=result.exhausted,
    )


@router.post("/end", response_model=EndSessionResponse, summary="End learning session")
async def end_session(
    request: EndSessionRequest,
    user_id: str = Depends(get_user_id),
    manager: LearningSessionManager = Depends(get_manager),
) -> EndSessionResponse:
    summary = await manager.end(user_id, request.session_id)
    return EndSessionResponse(summary=SessionSummaryResponse(**summary.to_dict()))


@router.get("/state", response_model=SessionStateResponse, summary="Get session state")
def get_session_state(
    session_id: UUID = Query(..., description="Session id"),
    user_id: str = Depends(get_user_id),
    manager: LearningSessionManager = Depends(get_manager),
) -> SessionStateResponse:
    state = manager.get_state(user_id, session_id)
    return SessionStateResponse(
        session_id=state.session.id,
        module_id=state.session.module_id,
        target_language=state.session.target_language,
        source_language=state.session.source_language,
        status=state.session.status.value,
        live_step=StepResponse(**state.live_step.to_dict()) if state.live_step else None,
        summary=SessionSummaryResponse(**state.summary.to_dict()),
    )


@router.post("/generate", response_model=StepResponse, summary="Force a step (debug)")
async def generate_step(
    request: GenerateStepRequest,
    user_id: str = Depends(get_user_id),
    manager: LearningSessionManager = Depends(get_manager),
) -> StepResponse:
    step = await manager.generate_step(
        user_id,
        request.session_id,
        request.submodule_id,
        request.modal_schema_id,
        constraints=request.constraints.to_constraints() if request.constraints else None,
    )
    return StepResponse(**step.to_dict(include_debug=True))
