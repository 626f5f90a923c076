"""
Unit tests for the marking strategies and the marking service.
"""

import asyncio

import pytest

from lingua.core.errors import GradingFailure, NotFoundError, ValidationError
from lingua.marking import (
    JudgmentError,
    JudgmentVerdict,
    MarkingService,
    StrategyRegistry,
    normalize_answer,
)
from lingua.registry.models import MarkingMode


@pytest.fixture
def marker(catalog, judge, settings):
    return MarkingService(catalog, judge=judge, settings=settings)


@pytest.fixture
def offline_marker(catalog, settings):
    """Marking service with no judgment assistant configured."""
    return MarkingService(catalog, judge=None, settings=settings)


async def mark(marker, module_id, submodule_id, schema_id, question_data, answer):
    return await marker.mark_answer(
        module_id=module_id,
        submodule_id=submodule_id,
        modal_schema_id=schema_id,
        question_data=question_data,
        user_answer=answer,
        target_language="de",
        source_language="en",
    )


class TestNormalization:
    """Tests for answer normalization."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            (" Richtig ", "richtig"),
            ("Guten   Morgen!", "guten morgen"),
            ("ICH HEIßE", "ich heisse"),
            ("¿Qué tal?", "qué tal"),
        ],
    )
    def test_normalize_answer(self, raw, expected):
        assert normalize_answer(raw) == expected

    def test_every_mode_has_a_strategy(self):
        registered = StrategyRegistry.list_strategies()

        assert set(registered) == {mode.value for mode in MarkingMode}


class TestExactMatch:
    """Fill-in-gap marking."""

    @pytest.mark.asyncio
    async def test_case_and_whitespace_insensitive(self, marker, question):
        data = question("fill-in-gap")
        data["correct_answer"] = "Richtig"

        result = await mark(marker, "greetings", "introducing-yourself", "fill-in-gap", data, " richtig ")

        assert result.is_correct
        assert result.score == 100

    @pytest.mark.asyncio
    async def test_acceptable_variant(self, marker, question):
        result = await mark(
            marker, "greetings", "introducing-yourself", "fill-in-gap", question("fill-in-gap"), "heisse"
        )

        assert result.is_correct

    @pytest.mark.asyncio
    async def test_wrong_answer_reports_correct_one(self, marker, question):
        result = await mark(
            marker, "greetings", "introducing-yourself", "fill-in-gap", question("fill-in-gap"), "bin"
        )

        assert not result.is_correct
        assert result.score == 0
        assert result.correct_answer == "heiße"
        assert '"heiße"' in result.feedback

    @pytest.mark.asyncio
    async def test_marking_is_idempotent(self, marker, question):
        data = question("fill-in-gap")

        first = await mark(marker, "greetings", "introducing-yourself", "fill-in-gap", data, "heiße")
        second = await mark(marker, "greetings", "introducing-yourself", "fill-in-gap", data, "heiße")

        assert first == second

    @pytest.mark.asyncio
    async def test_missing_answer_rejected(self, marker, question):
        with pytest.raises(ValidationError):
            await mark(marker, "greetings", "introducing-yourself", "fill-in-gap", question("fill-in-gap"), None)


class TestChoice:
    """Multiple-choice marking."""

    @pytest.mark.asyncio
    async def test_answer_by_index(self, marker, question):
        result = await mark(
            marker, "greetings", "basic-greetings", "multiple-choice", question("multiple-choice"), 0
        )

        assert result.is_correct
        assert result.correct_answer == "Guten Morgen"

    @pytest.mark.asyncio
    async def test_answer_by_text(self, marker, question):
        result = await mark(
            marker, "greetings", "basic-greetings", "multiple-choice", question("multiple-choice"), "guten morgen"
        )

        assert result.is_correct

    @pytest.mark.asyncio
    async def test_wrong_option(self, marker, question):
        result = await mark(
            marker, "greetings", "basic-greetings", "multiple-choice", question("multiple-choice"), "2"
        )

        assert not result.is_correct
        assert result.score == 0

    @pytest.mark.asyncio
    async def test_numeric_option_text_beats_index(self, marker, question):
        numeric = question("multiple-choice")
        numeric["question"] = "Wie viele Hände hat ein Mensch?"
        numeric["options"] = ["1", "2", "3", "4"]
        numeric["correct_option_index"] = 1

        result = await mark(marker, "greetings", "basic-greetings", "multiple-choice", numeric, "2")
        by_index = await mark(marker, "greetings", "basic-greetings", "multiple-choice", numeric, 1)

        assert result.is_correct
        assert by_index.is_correct
        assert result.correct_answer == "2"

    @pytest.mark.asyncio
    async def test_bool_answer_rejected(self, marker, question):
        with pytest.raises(ValidationError):
            await mark(marker, "greetings", "basic-greetings", "multiple-choice", question("multiple-choice"), True)


class TestBoolean:
    """True/false marking."""

    @pytest.mark.asyncio
    async def test_bool_answer(self, marker, question):
        result = await mark(marker, "greetings", "basic-greetings", "true-false", question("true-false"), False)

        assert result.is_correct
        assert result.correct_answer == "Falsch"

    @pytest.mark.asyncio
    async def test_localized_label(self, marker, question):
        result = await mark(marker, "greetings", "basic-greetings", "true-false", question("true-false"), "richtig")

        assert not result.is_correct

    @pytest.mark.asyncio
    async def test_unrecognized_label_is_incorrect(self, marker, question):
        result = await mark(marker, "greetings", "basic-greetings", "true-false", question("true-false"), "vielleicht")

        assert not result.is_correct
        assert result.score == 0
        assert result.correct_answer == "Falsch"
        assert "Falsch" in result.feedback


class TestMultiItem:
    """Reading-comprehension marking with weighted items."""

    @pytest.mark.asyncio
    async def test_partial_credit_below_threshold(self, marker, question):
        """2-point item right, 1-point item wrong: 67, not correct."""
        result = await mark(
            marker,
            "present-tense",
            "stem-changing-verbs",
            "reading-comprehension",
            question("reading-comprehension"),
            ["berlin", "Ärztin"],
        )

        assert result.score == 67
        assert not result.is_correct
        assert result.feedback.startswith("2/3 points.")
        assert result.correct_answer == "Berlin; Lehrerin"

    @pytest.mark.asyncio
    async def test_all_items_correct(self, marker, question):
        result = await mark(
            marker,
            "present-tense",
            "stem-changing-verbs",
            "reading-comprehension",
            question("reading-comprehension"),
            {"0": "Berlin", "1": "Lehrerin"},
        )

        assert result.score == 100
        assert result.is_correct

    @pytest.mark.asyncio
    async def test_missing_items_score_zero(self, marker, question):
        result = await mark(
            marker,
            "present-tense",
            "stem-changing-verbs",
            "reading-comprehension",
            question("reading-comprehension"),
            [],
        )

        assert result.score == 0

    @pytest.mark.asyncio
    async def test_scalar_answer_rejected(self, marker, question):
        with pytest.raises(ValidationError):
            await mark(
                marker,
                "present-tense",
                "stem-changing-verbs",
                "reading-comprehension",
                question("reading-comprehension"),
                "Berlin",
            )


class TestJudged:
    """Free-form marking through the judgment assistant."""

    @pytest.mark.asyncio
    async def test_verdict_is_used(self, marker, judge, question):
        result = await mark(
            marker,
            "present-tense",
            "everyday-sentences",
            "sentence-translation",
            question("sentence-translation"),
            "Ich esse einen Apfel.",
        )

        assert result.is_correct
        assert result.score == 90
        assert result.feedback == "Sehr gut!"
        assert len(judge.requests) == 1

    @pytest.mark.asyncio
    async def test_submodule_marking_prompt_override(self, marker, judge, question):
        await mark(
            marker,
            "present-tense",
            "everyday-sentences",
            "sentence-translation",
            question("sentence-translation"),
            "Ich esse Apfel.",
        )

        prompt = judge.requests[0].prompt
        assert "verb conjugation" in prompt
        assert "Ich esse Apfel." in prompt
        assert "{" not in prompt

    @pytest.mark.asyncio
    async def test_threshold_decides_when_verdict_omits_correctness(
        self, catalog, settings, make_judge, question
    ):
        judge = make_judge(verdict=JudgmentVerdict(score=65, is_correct=None, rationale="Fast."))
        marker = MarkingService(catalog, judge=judge, settings=settings)

        result = await mark(
            marker,
            "greetings",
            "introducing-yourself",
            "speaking-conversation",
            question("speaking-conversation"),
            "Ich heiße Tom.",
        )

        assert result.is_correct
        assert result.score == 65

    @pytest.mark.asyncio
    async def test_empty_answer_scores_zero_without_judge(self, marker, judge, question):
        result = await mark(
            marker,
            "greetings",
            "introducing-yourself",
            "speaking-conversation",
            question("speaking-conversation"),
            "   ",
        )

        assert not result.is_correct
        assert result.score == 0
        assert judge.requests == []

    @pytest.mark.asyncio
    async def test_judge_error_falls_back_to_capped_overlap(
        self, catalog, settings, make_judge, question
    ):
        marker = MarkingService(catalog, judge=make_judge(error=JudgmentError("down")), settings=settings)

        result = await mark(
            marker,
            "present-tense",
            "everyday-sentences",
            "sentence-translation",
            question("sentence-translation"),
            "Ich esse Apfel",
        )

        # reference tokens: ich esse einen apfel essen; three of five overlap
        assert result.score == 36
        assert not result.is_correct
        assert result.correct_answer == "Ich esse einen Apfel."

    @pytest.mark.asyncio
    async def test_fallback_never_exceeds_cap(self, offline_marker, settings, question):
        data = question("sentence-translation")

        result = await mark(
            offline_marker,
            "present-tense",
            "everyday-sentences",
            "sentence-translation",
            data,
            "Ich esse einen Apfel essen",
        )

        assert result.score == settings.fallback_max_score
        assert not result.is_correct

    @pytest.mark.asyncio
    async def test_judge_timeout_falls_back(self, catalog, settings, question):
        class SlowJudge:
            async def judge(self, request):
                await asyncio.sleep(5)

        fast_settings = settings.model_copy(update={"judgment_timeout_seconds": 0.05})
        marker = MarkingService(catalog, judge=SlowJudge(), settings=fast_settings)

        result = await mark(
            marker,
            "present-tense",
            "everyday-sentences",
            "sentence-translation",
            question("sentence-translation"),
            "Ich esse",
        )

        assert not result.is_correct
        assert result.score <= fast_settings.fallback_max_score

    @pytest.mark.asyncio
    async def test_no_reference_raises_grading_failure(self, offline_marker, question):
        data = question("speaking-conversation")
        del data["sample_answer"]

        with pytest.raises(GradingFailure):
            await mark(
                offline_marker,
                "greetings",
                "introducing-yourself",
                "speaking-conversation",
                data,
                "Ich heiße Tom.",
            )


class TestMarkingService:
    """Lookup errors surface before any strategy runs."""

    @pytest.mark.asyncio
    async def test_unknown_schema(self, marker, question):
        with pytest.raises(NotFoundError):
            await mark(marker, "greetings", "basic-greetings", "crossword", {}, "x")

    @pytest.mark.asyncio
    async def test_unsupported_pair(self, marker, question):
        with pytest.raises(ValidationError):
            await mark(marker, "greetings", "basic-greetings", "fill-in-gap", question("fill-in-gap"), "heiße")

    def test_strategy_instances_are_cached(self, marker, catalog):
        schema = catalog.schemas.get_schema("fill-in-gap")

        assert marker.strategy_for(schema) is marker.strategy_for(schema)

    @pytest.mark.asyncio
    async def test_missing_question_field(self, marker):
        with pytest.raises(ValidationError):
            await mark(marker, "greetings", "introducing-yourself", "fill-in-gap", {"hint": "x"}, "heiße")
