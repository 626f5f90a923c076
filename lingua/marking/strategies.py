"""
Marking strategies, one per MarkingMode.
"""

from __future__ import annotations

import asyncio
from typing import Any

from loguru import logger

from lingua.core.errors import GradingFailure, ValidationError
from lingua.core.scoring import percentage, round_half_up
from lingua.generation.prompts import render_marking_prompt
from lingua.registry.models import MarkingMode

from .base import MarkingContext, MarkingStrategy, MarkResult, StrategyRegistry, normalize_answer, tokenize
from .judge import JudgmentClient, JudgmentError, JudgmentRequest

DEFAULT_TRUE_LABELS = ("true", "yes")
DEFAULT_FALSE_LABELS = ("false", "no")


@StrategyRegistry.register(MarkingMode.CHOICE)
class ChoiceStrategy(MarkingStrategy):
    """Multiple choice: answer by option index or option text."""

    async def mark(self, context: MarkingContext) -> MarkResult:
        answer = context.user_answer
        self._validate_response(answer)
        options = context.require("options")
        index = context.require("correct_option_index")
        if not 0 <= index < len(options):
            raise ValidationError(f"correct_option_index {index} is outside the options")
        correct = options[index]

        chosen = self._resolve_choice(answer, options)
        is_correct = chosen == index
        return MarkResult(
            is_correct=is_correct,
            score=100 if is_correct else 0,
            feedback=self._generate_feedback(is_correct, correct, context.question_data.get("explanation")),
            correct_answer=correct,
        )

    def _resolve_choice(self, answer: Any, options: list[str]) -> int | None:
        if isinstance(answer, bool):
            raise ValidationError("Multiple choice answer must be an option index or text")
        if isinstance(answer, int):
            return answer
        text = str(answer).strip()
        normalized = normalize_answer(text)
        for i, option in enumerate(options):
            if normalize_answer(option) == normalized:
                return i
        # Digit strings are indices only when no option reads the same
        if text.isdigit():
            return int(text)
        return None


@StrategyRegistry.register(MarkingMode.BOOLEAN)
class BooleanStrategy(MarkingStrategy):
    """True/false: answer as a bool or as a localized label."""

    async def mark(self, context: MarkingContext) -> MarkResult:
        answer = context.user_answer
        self._validate_response(answer)
        expected = context.require("is_correct_answer_true")
        true_label = context.question_data.get("true_label")
        false_label = context.question_data.get("false_label")

        given = self._resolve_answer(answer, true_label, false_label)
        is_correct = given == expected
        correct = (true_label or "True") if expected else (false_label or "False")
        return MarkResult(
            is_correct=is_correct,
            score=100 if is_correct else 0,
            feedback=self._generate_feedback(is_correct, correct, context.question_data.get("explanation")),
            correct_answer=correct,
        )

    def _resolve_answer(self, answer: Any, true_label: str | None, false_label: str | None) -> bool | None:
        """The boolean an answer stands for, or None when it names neither label."""
        if isinstance(answer, bool):
            return answer
        normalized = normalize_answer(answer)
        trues = {normalize_answer(label) for label in (*DEFAULT_TRUE_LABELS, true_label) if label}
        falses = {normalize_answer(label) for label in (*DEFAULT_FALSE_LABELS, false_label) if label}
        if normalized in trues:
            return True
        if normalized in falses:
            return False
        return None


@StrategyRegistry.register(MarkingMode.EXACT)
class ExactMatchStrategy(MarkingStrategy):
    """Normalized match against the canonical answer or any accepted variant."""

    async def mark(self, context: MarkingContext) -> MarkResult:
        answer = context.user_answer
        self._validate_response(answer)
        correct = str(context.require("correct_answer"))
        accepted = [correct, *(context.question_data.get("acceptable_answers") or [])]

        given = normalize_answer(answer)
        is_correct = any(normalize_answer(candidate) == given for candidate in accepted)
        translation = context.question_data.get("translation")
        return MarkResult(
            is_correct=is_correct,
            score=100 if is_correct else 0,
            feedback=self._generate_feedback(is_correct, correct, translation),
            correct_answer=correct,
        )


@StrategyRegistry.register(MarkingMode.MULTI_ITEM)
class MultiItemStrategy(MarkingStrategy):
    """
    Independently scored sub-items.

    Score is the weighted share of points earned. The answer is correct
    only when the score reaches the schema's pass threshold.
    """

    async def mark(self, context: MarkingContext) -> MarkResult:
        answer = context.user_answer
        self._validate_response(answer)
        items = context.require("items")
        answers = self._answers_by_index(answer, len(items))

        earned = 0
        total = 0
        lines = []
        for i, item in enumerate(items):
            points = item.get("points") or 1
            total += points
            accepted = [item["correct_answer"], *(item.get("acceptable_answers") or [])]
            given = answers.get(i)
            ok = given is not None and any(
                normalize_answer(candidate) == normalize_answer(given) for candidate in accepted
            )
            if ok:
                earned += points
                lines.append(f"{i + 1}. Correct!")
            else:
                lines.append(f'{i + 1}. Incorrect. The correct answer is "{item["correct_answer"]}".')

        score = percentage(earned, total)
        is_correct = score >= context.schema.marking.pass_threshold
        summary = f"{earned}/{total} points."
        return MarkResult(
            is_correct=is_correct,
            score=score,
            feedback=" ".join([summary, *lines]),
            correct_answer="; ".join(str(item["correct_answer"]) for item in items),
        )

    def _answers_by_index(self, answer: Any, count: int) -> dict[int, Any]:
        if isinstance(answer, list):
            return {i: value for i, value in enumerate(answer[:count]) if value is not None}
        if isinstance(answer, dict):
            result = {}
            for key, value in answer.items():
                try:
                    index = int(key)
                except (TypeError, ValueError) as e:
                    raise ValidationError(f"Sub-item key {key!r} is not an index") from e
                if 0 <= index < count and value is not None:
                    result[index] = value
            return result
        raise ValidationError("Multi-item answer must be a list or an index mapping")


@StrategyRegistry.register(MarkingMode.JUDGED)
class JudgedStrategy(MarkingStrategy):
    """
    Free-form answers graded by the judgment assistant.

    When the assistant is unavailable, a lexical-overlap heuristic awards
    capped partial credit and never marks the answer correct.
    """

    def __init__(self, settings=None, judge: JudgmentClient | None = None, **kwargs: Any):
        super().__init__(settings, **kwargs)
        self.judge = judge

    async def mark(self, context: MarkingContext) -> MarkResult:
        answer = context.user_answer
        self._validate_response(answer)
        answer_text = self._answer_text(answer)
        if not answer_text.strip():
            return MarkResult(
                is_correct=False,
                score=0,
                feedback="No answer was given.",
                correct_answer=self._reference_text(context),
            )

        if self.judge is not None:
            prompt = render_marking_prompt(
                context.prompt_template or "",
                context.question_data,
                answer_text,
                context.target_language,
                context.source_language,
            )
            try:
                verdict = await asyncio.wait_for(
                    self.judge.judge(JudgmentRequest(prompt=prompt, answer=answer_text)),
                    timeout=self.settings.judgment_timeout_seconds,
                )
            except asyncio.TimeoutError:
                logger.warning(f"Judgment timed out for {context.schema.id}; using fallback")
            except JudgmentError as e:
                logger.warning(f"Judgment unavailable for {context.schema.id}: {e}; using fallback")
            except Exception:
                logger.exception(f"Unexpected judgment failure for {context.schema.id}; using fallback")
            else:
                threshold = context.schema.marking.pass_threshold
                is_correct = (
                    verdict.is_correct if verdict.is_correct is not None else verdict.score >= threshold
                )
                return MarkResult(
                    is_correct=is_correct,
                    score=verdict.score,
                    feedback=verdict.rationale or self._generate_feedback(is_correct, verdict.correct_answer),
                    correct_answer=verdict.correct_answer or self._reference_text(context),
                )

        return self._fallback(context, answer_text)

    def _answer_text(self, answer: Any) -> str:
        if isinstance(answer, list):
            return " ".join(str(part) for part in answer if part is not None)
        if isinstance(answer, dict):
            return " ".join(str(value) for value in answer.values() if value is not None)
        return str(answer)

    def _reference_text(self, context: MarkingContext) -> str | None:
        field = context.schema.marking.reference_field
        value = context.question_data.get(field) if field else None
        if isinstance(value, list):
            value = " ".join(value)
        return value or None

    def _fallback(self, context: MarkingContext, answer_text: str) -> MarkResult:
        reference = self._reference_text(context)
        vocabulary = context.question_data.get("key_vocabulary") or []
        reference_tokens = set(tokenize(" ".join([reference or "", *vocabulary])))
        if not reference_tokens:
            raise GradingFailure(
                f"Judgment unavailable and {context.schema.id} question has no reference text",
                {"modal_schema_id": context.schema.id},
            )

        overlap = len(reference_tokens & set(tokenize(answer_text))) / len(reference_tokens)
        score = round_half_up(overlap * self.settings.fallback_max_score)
        return MarkResult(
            is_correct=False,
            score=score,
            feedback=(
                "Automatic assessment is unavailable right now. This provisional score "
                "compares your words with a model answer and will not count as correct."
            ),
            correct_answer=reference,
        )
