"""
Judgment assistant for free-form answers.

Best-effort only: callers treat any JudgmentError or timeout as
"assistant unavailable" and fall back to the heuristic.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from config import Settings
from lingua.core.scoring import clamp_score
from lingua.integrations.gemini_client import GeminiClient, GeminiError, GeminiRequest


class JudgmentError(Exception):
    """The judgment assistant returned nothing usable."""


@dataclass(frozen=True)
class JudgmentRequest:
    prompt: str
    answer: Any
    criteria: str | None = None


@dataclass(frozen=True)
class JudgmentVerdict:
    score: int
    is_correct: bool | None
    rationale: str
    correct_answer: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> JudgmentVerdict:
        """Parse a verdict, rejecting replies without a numeric score."""
        raw_score = data.get("score")
        if isinstance(raw_score, bool) or not isinstance(raw_score, (int, float)):
            raise JudgmentError(f"Verdict has no numeric score: {data!r}")
        is_correct = data.get("is_correct", data.get("isCorrect"))
        correct_answer = data.get("correct_answer", data.get("correctAnswer"))
        return cls(
            score=clamp_score(raw_score),
            is_correct=is_correct if isinstance(is_correct, bool) else None,
            rationale=str(data.get("feedback") or data.get("rationale") or "").strip(),
            correct_answer=str(correct_answer) if correct_answer else None,
        )


class JudgmentClient(Protocol):
    async def judge(self, request: JudgmentRequest) -> JudgmentVerdict:
        ...


VERDICT_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "is_correct": {"type": "BOOLEAN"},
        "score": {"type": "INTEGER"},
        "feedback": {"type": "STRING"},
        "correct_answer": {"type": "STRING"},
    },
    "required": ["is_correct", "score", "feedback"],
}


class GeminiJudge:
    """JudgmentClient backed by Gemini JSON mode."""

    def __init__(self, client: GeminiClient):
        self.client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> GeminiJudge:
        return cls(
            GeminiClient(
                api_key=settings.gemini_api_key,
                model=settings.ai_model,
                base_url=settings.gemini_base_url,
                timeout_seconds=settings.judgment_timeout_seconds,
            )
        )

    async def judge(self, request: JudgmentRequest) -> JudgmentVerdict:
        try:
            data = await self.client.generate_json(
                GeminiRequest(prompt=request.prompt, response_schema=VERDICT_SCHEMA, temperature=0.0)
            )
        except GeminiError as e:
            raise JudgmentError(str(e)) from e
        return JudgmentVerdict.from_dict(data)

    async def close(self) -> None:
        await self.client.close()
