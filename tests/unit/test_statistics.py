"""
Unit tests for the statistics tracker and CEFR mapping.
"""

import uuid

import pytest

from lingua.core.errors import ConcurrencyConflict, NotFoundError
from lingua.statistics import StatisticsTracker
from lingua.statistics.cefr import CEFR_LEVELS, accuracy_to_cefr
from lingua.statistics.models import SessionStatus


def mark_data(correct):
    return {
        "is_correct": correct,
        "score": 100 if correct else 0,
        "feedback": "Correct!" if correct else "Incorrect.",
        "correct_answer": None,
    }


@pytest.fixture
def tracker(db, catalog, settings):
    return StatisticsTracker(db, catalog, settings)


@pytest.fixture
def session_id(tracker):
    return tracker.start_session("user-1", "greetings", "de", "en")


def record_graded(tracker, session_id, correct, schema_id="multiple-choice", submodule_id="basic-greetings"):
    return tracker.record_event(
        session_id,
        submodule_id,
        schema_id,
        {"question": "?"},
        user_answer=0,
        mark_data=mark_data(correct),
    )


class TestCefrMapping:
    """Accuracy to CEFR level."""

    @pytest.mark.parametrize(
        "accuracy,level",
        [
            (0, "Pre-A1"),
            (39.9, "Pre-A1"),
            (40, "A1"),
            (54, "A1"),
            (55, "A2"),
            (65, "B1"),
            (74, "B1"),
            (75, "B2"),
            (85, "C1"),
            (90, "C2"),
            (100, "C2"),
        ],
    )
    def test_boundaries(self, accuracy, level):
        assert accuracy_to_cefr(accuracy) == level

    def test_monotonic(self):
        ranks = [CEFR_LEVELS.index(accuracy_to_cefr(a)) for a in range(0, 101)]

        assert ranks == sorted(ranks)

    @pytest.mark.parametrize("accuracy", [-1, 100.5, 250])
    def test_out_of_range(self, accuracy):
        with pytest.raises(ValueError):
            accuracy_to_cefr(accuracy)


class TestSessionLifecycle:
    """Session rows and summaries."""

    def test_start_session(self, tracker, session_id):
        session = tracker.get_session(session_id)

        assert session.user_id == "user-1"
        assert session.status == SessionStatus.STARTED
        assert session.end_time is None

    def test_unknown_session(self, tracker):
        with pytest.raises(NotFoundError):
            tracker.get_session(uuid.uuid4())

    def test_summary_counts_graded_events(self, tracker, session_id):
        """7 of 10 correct gives 70 and B1."""
        for i in range(10):
            record_graded(tracker, session_id, correct=i < 7)
        tracker.record_event(session_id, "basic-greetings", "true-false", {"statement": "x"})

        summary = tracker.summarize_session(session_id)

        assert summary.total_questions == 10
        assert summary.correct_answers == 7
        assert summary.score == 70
        assert summary.cefr_level == "B1"

    def test_empty_session_summary(self, tracker, session_id):
        summary = tracker.summarize_session(session_id)

        assert (summary.total_questions, summary.correct_answers, summary.score) == (0, 0, 0)
        assert summary.cefr_level == "Pre-A1"

    def test_end_session_is_idempotent(self, tracker, session_id):
        record_graded(tracker, session_id, correct=True)

        first = tracker.end_session(session_id)
        ended_at = tracker.get_session(session_id).end_time
        second = tracker.end_session(session_id)

        assert first == second
        assert first.status == SessionStatus.ENDED
        assert tracker.get_session(session_id).end_time == ended_at


class TestEvents:
    """Append-only events, graded at most once."""

    def test_sequences_increase(self, tracker, session_id):
        record_graded(tracker, session_id, True)
        record_graded(tracker, session_id, False)

        events = tracker.get_session_events(session_id)

        assert [e.sequence for e in events] == [1, 2]
        assert [e.is_correct for e in events] == [True, False]

    def test_issued_event_is_live(self, tracker, session_id):
        event_id = tracker.record_event(session_id, "basic-greetings", "true-false", {"statement": "x"})

        live = tracker.get_live_event(session_id)

        assert live.id == event_id
        assert not live.is_graded
        assert live.mark_data is None
        assert tracker.get_session(session_id).status == SessionStatus.QUESTION_ISSUED

    def test_event_graded_once(self, tracker, session_id):
        event_id = tracker.record_event(session_id, "basic-greetings", "true-false", {"statement": "x"})

        tracker.record_outcome_and_issue(session_id, event_id, True, mark_data(True), None)

        assert tracker.get_live_event(session_id) is None
        with pytest.raises(ConcurrencyConflict):
            tracker.record_outcome_and_issue(session_id, event_id, False, mark_data(False), None)
        assert tracker.get_latest_event(session_id).is_correct is True
        assert tracker.get_latest_graded_event(session_id).id == event_id

    def test_outcome_and_next_question_in_one_step(self, tracker, session_id):
        event_id = tracker.record_event(session_id, "basic-greetings", "true-false", {"statement": "x"})

        new_id = tracker.record_outcome_and_issue(
            session_id,
            event_id,
            True,
            mark_data(True),
            {"submodule_id": "basic-greetings", "modal_schema_id": "multiple-choice", "question_data": {"q": 1}},
        )

        events = tracker.get_session_events(session_id)
        assert [e.is_graded for e in events] == [True, False]
        assert events[1].id == new_id
        assert tracker.get_session(session_id).status == SessionStatus.QUESTION_ISSUED

    def test_outcome_without_next_question_exhausts(self, tracker, session_id):
        event_id = tracker.record_event(session_id, "basic-greetings", "true-false", {"statement": "x"})

        new_id = tracker.record_outcome_and_issue(session_id, event_id, True, mark_data(True), None)

        assert new_id is None
        assert tracker.get_session(session_id).status == SessionStatus.EXHAUSTED

    def test_failed_outcome_rolls_back_next_question(self, tracker, session_id):
        event_id = tracker.record_event(session_id, "basic-greetings", "true-false", {"statement": "x"})
        tracker.record_outcome_and_issue(session_id, event_id, True, mark_data(True), None)

        with pytest.raises(ConcurrencyConflict):
            tracker.record_outcome_and_issue(
                session_id,
                event_id,
                False,
                mark_data(False),
                {"submodule_id": "basic-greetings", "modal_schema_id": "multiple-choice", "question_data": {}},
            )

        assert len(tracker.get_session_events(session_id)) == 1

    def test_replace_live_question(self, tracker, session_id):
        event_id = tracker.record_event(session_id, "basic-greetings", "multiple-choice", {"question": "?"})

        replaced = tracker.replace_live_question(session_id, "basic-greetings", "true-false", {"statement": "x"})

        events = tracker.get_session_events(session_id)
        assert replaced == event_id
        assert [(e.sequence, e.modal_schema_id) for e in events] == [(1, "true-false")]
        assert events[0].question_data == {"statement": "x"}

    def test_replace_without_events_appends(self, tracker, session_id):
        tracker.replace_live_question(session_id, "basic-greetings", "true-false", {"statement": "x"})

        assert tracker.get_live_event(session_id).modal_schema_id == "true-false"
        assert tracker.get_session(session_id).status == SessionStatus.QUESTION_ISSUED

    def test_replace_graded_question_conflicts(self, tracker, session_id):
        record_graded(tracker, session_id, True)

        with pytest.raises(ConcurrencyConflict):
            tracker.replace_live_question(session_id, "basic-greetings", "true-false", {"statement": "x"})


class TestHistoryAndPerformance:
    """Cross-session history and per-skill aggregation."""

    def test_history_spans_sessions_oldest_first(self, tracker):
        first = tracker.start_session("user-1", "greetings", "de", "en")
        record_graded(tracker, first, True, schema_id="multiple-choice")
        second = tracker.start_session("user-1", "greetings", "de", "en")
        record_graded(tracker, second, False, schema_id="true-false")
        other = tracker.start_session("user-2", "greetings", "de", "en")
        record_graded(tracker, other, True)

        history = tracker.get_user_session_history("user-1", "greetings")

        assert [e.modal_schema_id for e in history] == ["multiple-choice", "true-false"]

    def test_history_limit_keeps_most_recent(self, tracker, session_id):
        for schema_id in ["multiple-choice", "true-false", "multiple-choice"]:
            record_graded(tracker, session_id, True, schema_id=schema_id)

        history = tracker.get_user_session_history("user-1", "greetings", limit=2)

        assert [e.sequence for e in history] == [2, 3]

    def test_performance_by_skill(self, tracker, session_id):
        record_graded(tracker, session_id, True, schema_id="multiple-choice")
        record_graded(tracker, session_id, True, schema_id="true-false")
        record_graded(tracker, session_id, False, schema_id="fill-in-gap", submodule_id="introducing-yourself")
        record_graded(tracker, session_id, True, schema_id="crossword", submodule_id="retired")

        performance = tracker.get_user_module_performance("user-1", "greetings")

        assert performance.overall.total == 4
        assert performance.overall.accuracy == 75
        assert performance.by_skill["reading"].to_dict() == {"correct": 2, "total": 2, "accuracy": 100}
        assert performance.by_skill["writing"].accuracy == 0
        assert performance.by_skill["listening"].total == 0
        assert performance.cefr_level == "B2"

    def test_performance_seven_of_ten(self, tracker, session_id):
        """7 correct and 3 incorrect gives 70 overall."""
        for i in range(10):
            record_graded(tracker, session_id, correct=i < 7)
        tracker.record_event(session_id, "basic-greetings", "true-false", {"statement": "x"})

        performance = tracker.get_user_module_performance("user-1", "greetings")

        assert performance.overall.to_dict() == {"correct": 7, "total": 10, "accuracy": 70}
        assert performance.by_skill["reading"].accuracy == 70
        assert performance.cefr_level == "B1"

    def test_performance_without_history(self, tracker):
        performance = tracker.get_user_module_performance("nobody", "greetings")

        assert performance.overall.total == 0
        assert performance.cefr_level == "Pre-A1"
        assert set(performance.to_dict()["by_skill"]) == {"reading", "writing", "listening", "speaking"}
