"""
Domain errors for the progression engine.

Every error the engine raises on purpose derives from LearningEngineError so
the API layer can map it to a structured response.
"""

from __future__ import annotations

from typing import Any


class LearningEngineError(Exception):
    """Base class for engine errors."""

    error_type: str = "engine_error"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.error_type, "message": self.message, "details": self.details}


class RegistryLoadError(LearningEngineError):
    """Catalog definitions could not be loaded. Fatal at startup."""

    error_type = "registry_load_error"


class NotFoundError(LearningEngineError):
    """Unknown module, submodule, modal schema or session."""

    error_type = "not_found"

    def __init__(self, kind: str, identifier: str, **context: Any):
        details = {"kind": kind, "id": identifier, **context}
        super().__init__(f"{kind} not found: {identifier}", details)
        self.kind = kind
        self.identifier = identifier


class ValidationError(LearningEngineError):
    """Malformed request parameters or payload."""

    error_type = "validation_error"


class GenerationFailure(ValidationError):
    """Synthesized content failed structural validation after retry."""

    error_type = "generation_failure"

    def __init__(self, schema_id: str, issues: list[str], attempts: int):
        super().__init__(
            f"Content generation failed for {schema_id} after {attempts} attempt(s)",
            {"schema_id": schema_id, "issues": issues, "attempts": attempts},
        )
        self.schema_id = schema_id
        self.issues = issues
        self.attempts = attempts


class SessionClosedError(ValidationError):
    """Submit against a session that no longer accepts answers."""

    error_type = "session_closed"


class UnauthorizedError(LearningEngineError):
    """The session is not owned by the requesting user."""

    error_type = "unauthorized"


class ConcurrencyConflict(LearningEngineError):
    """The live event was already graded by another request."""

    error_type = "concurrency_conflict"


class GradingFailure(LearningEngineError):
    """Free-form judgment unavailable and no safe fallback exists."""

    error_type = "grading_failure"


class NoEligibleStepError(LearningEngineError):
    """The module offers no (submodule, modal schema) pair to practice."""

    error_type = "no_eligible_step"
