"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import asyncio
import copy
import json
import sys
from pathlib import Path

import pytest
from sqlalchemy import update

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import PACKAGED_DEFINITIONS_DIR, Settings  # noqa: E402
from lingua.container import EngineContainer  # noqa: E402
from lingua.db.database import Database  # noqa: E402
from lingua.db.models import SessionEventRow  # noqa: E402
from lingua.generation.synthesizer import SynthesisError  # noqa: E402
from lingua.marking.judge import JudgmentVerdict  # noqa: E402
from lingua.registry.catalog import build_catalog  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (in-memory database)")
    config.addinivalue_line("markers", "smoke: CLI smoke tests")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


# =============================================================================
# Question data samples (one valid payload per modal schema)
# =============================================================================

VALID_QUESTIONS = {
    "multiple-choice": {
        "question": "Wie begrüßt man jemanden am Morgen?",
        "options": ["Guten Morgen", "Gute Nacht", "Tschüss", "Guten Abend"],
        "correct_option_index": 0,
        "explanation": "Guten Morgen is used until about 10 a.m.",
        "key_vocabulary": ["Guten Morgen", "Tschüss"],
    },
    "true-false": {
        "statement": "Anna sagt am Abend 'Guten Morgen'.",
        "context": "Es ist 20 Uhr. Anna trifft ihren Nachbarn und sagt 'Guten Abend'.",
        "is_correct_answer_true": False,
        "true_label": "Richtig",
        "false_label": "Falsch",
        "explanation": "She says Guten Abend.",
    },
    "fill-in-gap": {
        "sentence_template": "Ich ___ Anna.",
        "correct_answer": "heiße",
        "acceptable_answers": ["heisse"],
        "hint": "heißen, 1st person singular",
        "translation": "My name is Anna.",
    },
    "reading-comprehension": {
        "title": "Annas Tag",
        "passage": "Anna wohnt in Berlin. Sie ist Lehrerin und liest jeden Abend ein Buch.",
        "items": [
            {"question": "Wo wohnt Anna?", "correct_answer": "Berlin", "points": 2},
            {"question": "Was ist Anna von Beruf?", "correct_answer": "Lehrerin", "points": 1},
        ],
    },
    "sentence-translation": {
        "source_sentence": "I am eating an apple.",
        "reference_translation": "Ich esse einen Apfel.",
        "key_vocabulary": ["essen", "Apfel"],
    },
    "speaking-conversation": {
        "questions": ["Wie heißt du?", "Woher kommst du?", "Wo wohnst du?"],
        "sample_answer": "Ich heiße Anna. Ich komme aus Spanien. Ich wohne in Berlin.",
        "hint": "Use ich heiße, ich komme aus, ich wohne in.",
        "show_hint": True,
    },
    "vocabulary-entry": {
        "definition": "a round fruit",
        "translation": "apple",
        "lemma": "Apfel",
        "cefr_level": "A1",
        "themes": ["food"],
    },
}


def valid_question(schema_id: str) -> dict:
    return copy.deepcopy(VALID_QUESTIONS[schema_id])


class FakeSynthesizer:
    """Scripted content synthesizer: queued responses first, then valid samples."""

    def __init__(self):
        self.requests = []
        self.queue = []

    def push(self, *responses):
        """Queue payload dicts or exceptions to return in order."""
        self.queue.extend(responses)

    async def synthesize(self, request):
        self.requests.append(request)
        # Yield like a real network call so concurrent requests interleave
        await asyncio.sleep(0)
        if self.queue:
            response = self.queue.pop(0)
            if isinstance(response, Exception):
                raise response
            return copy.deepcopy(response)
        return valid_question(request.schema_id)


class FakeJudge:
    """Judgment client returning a fixed verdict, or failing."""

    def __init__(self, verdict=None, error=None):
        self.verdict = verdict or JudgmentVerdict(
            score=90, is_correct=True, rationale="Sehr gut!", correct_answer=None
        )
        self.error = error
        self.requests = []

    async def judge(self, request):
        self.requests.append(request)
        if self.error:
            raise self.error
        return self.verdict


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def settings():
    """Settings isolated from the environment: in-memory DB, no AI key."""
    return Settings(
        _env_file=None,
        database_url="sqlite://",
        gemini_api_key="",
        definitions_dir=PACKAGED_DEFINITIONS_DIR,
        synthesis_timeout_seconds=2.0,
        judgment_timeout_seconds=2.0,
        max_questions_per_session=0,
        vocabulary_pool_size=0,
        log_level="WARNING",
    )


@pytest.fixture
def catalog(settings):
    """Catalog loaded from the packaged definitions."""
    return build_catalog(settings)


@pytest.fixture
def db():
    """Fresh in-memory database with tables created."""
    database = Database("sqlite://")
    database.init_db()
    yield database
    database.dispose()


@pytest.fixture
def synthesizer():
    return FakeSynthesizer()


@pytest.fixture
def judge():
    return FakeJudge()


@pytest.fixture
def container(settings, catalog, db, synthesizer, judge):
    """Fully wired engine with fake external collaborators."""
    return EngineContainer.build(
        settings=settings,
        catalog=catalog,
        db=db,
        synthesizer=synthesizer,
        judge=judge,
    )


@pytest.fixture
def manager(container):
    return container.manager


@pytest.fixture
def write_definitions(tmp_path):
    """Write module definition dicts to a temporary definitions directory."""

    def _write(*modules):
        modules_dir = tmp_path / "modules"
        modules_dir.mkdir(exist_ok=True)
        for i, module in enumerate(modules):
            (modules_dir / f"module_{i}.json").write_text(json.dumps(module), encoding="utf-8")
        return tmp_path

    return _write


@pytest.fixture
def make_module():
    """Build a minimal module definition dict."""

    def _make(concept_id="colors", target_language="de", submodules=None, **extra):
        return {
            "concept_id": concept_id,
            "target_language": target_language,
            "title_en": concept_id.title(),
            "supported_source_languages": ["en"],
            "submodules": submodules
            or [
                {
                    "id": "basics",
                    "title_en": "Basics",
                    "supported_modal_schema_ids": ["multiple-choice"],
                }
            ],
            **extra,
        }

    return _make


@pytest.fixture
def question():
    """Return a fresh valid question_data dict for a modal schema id."""
    return valid_question


@pytest.fixture
def make_judge():
    """Build a FakeJudge with a given verdict or error."""
    return FakeJudge


@pytest.fixture
def synthesis_error():
    return SynthesisError("synthesizer offline")


@pytest.fixture
def grade_live_event(container):
    """Mark a session's live event graded behind the engine's back."""

    def _grade(session_id, user_answer=0):
        live = container.tracker.get_live_event(session_id)
        with container.db.session_scope() as session:
            session.execute(
                update(SessionEventRow)
                .where(SessionEventRow.id == live.id)
                .values(
                    user_answer=user_answer,
                    mark_data={"is_correct": True, "score": 100, "feedback": "Correct!"},
                    is_correct=True,
                )
            )
        return live

    return _grade
