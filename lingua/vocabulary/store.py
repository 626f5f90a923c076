"""
Vocabulary Store.

Per-language word cache that feeds generation constraints. Words are
written the first time generated content mentions them and read back as
the vocabulary pool for later prompts.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from loguru import logger
from sqlalchemy import String, cast, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lingua.core.errors import LearningEngineError, ValidationError
from lingua.db.database import Database
from lingua.db.models import VocabularyItem


@dataclass(frozen=True)
class VocabularyEntry:
    word: str
    language: str
    lemma: str | None = None
    cefr_level: str | None = None
    themes: tuple[str, ...] = field(default_factory=tuple)
    translation: str | None = None
    definition: str | None = None

    @classmethod
    def from_row(cls, row: VocabularyItem) -> VocabularyEntry:
        return cls(
            word=row.word,
            language=row.language,
            lemma=row.lemma,
            cefr_level=row.cefr_level,
            themes=tuple(row.themes or ()),
            translation=row.translation,
            definition=row.definition,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "word": self.word,
            "language": self.language,
            "lemma": self.lemma,
            "cefr_level": self.cefr_level,
            "themes": list(self.themes),
            "translation": self.translation,
            "definition": self.definition,
        }


class VocabularyStore:
    """Durable vocabulary cache keyed by (word, language)."""

    def __init__(self, db: Database):
        self.db = db

    def _find(self, session: Session, word: str, language: str) -> VocabularyItem | None:
        return session.scalar(
            select(VocabularyItem).where(
                VocabularyItem.word == word,
                VocabularyItem.language == language,
            )
        )

    def lookup(self, word: str, language: str) -> VocabularyEntry | None:
        with self.db.session_scope() as session:
            row = self._find(session, word.strip(), language)
            return VocabularyEntry.from_row(row) if row else None

    def upsert_or_fetch(
        self,
        word: str,
        language: str,
        lemma: str | None = None,
        cefr_level: str | None = None,
        themes: Iterable[str] = (),
        translation: str | None = None,
        definition: str | None = None,
    ) -> VocabularyEntry:
        """
        Return the stored entry for (word, language), inserting it if absent.

        Concurrent first access is safe: a losing insert hits the unique
        constraint, rolls back, and returns the winner's row.
        """
        entry, _ = self.insert_or_fetch(
            word,
            language,
            lemma=lemma,
            cefr_level=cefr_level,
            themes=themes,
            translation=translation,
            definition=definition,
        )
        return entry

    def insert_or_fetch(
        self,
        word: str,
        language: str,
        lemma: str | None = None,
        cefr_level: str | None = None,
        themes: Iterable[str] = (),
        translation: str | None = None,
        definition: str | None = None,
    ) -> tuple[VocabularyEntry, bool]:
        """Like upsert_or_fetch, also reporting whether this call inserted the row."""
        word = word.strip()
        if not word:
            raise ValidationError("Vocabulary word must not be empty")

        existing = self.lookup(word, language)
        if existing is not None:
            return existing, False

        try:
            with self.db.session_scope() as session:
                row = VocabularyItem(
                    word=word,
                    language=language,
                    lemma=lemma,
                    cefr_level=cefr_level,
                    themes=list(themes),
                    translation=translation,
                    definition=definition,
                )
                session.add(row)
                session.flush()
                return VocabularyEntry.from_row(row), True
        except IntegrityError:
            logger.debug(f"Vocabulary {language}:{word} inserted concurrently, fetching existing row")

        existing = self.lookup(word, language)
        if existing is None:
            raise LearningEngineError(
                f"Vocabulary {language}:{word} conflicted on insert but could not be fetched"
            )
        return existing, False

    def sample(self, language: str, themes: Iterable[str] = (), limit: int = 8) -> list[str]:
        """Most recent words for a language, preferring theme matches."""
        if limit <= 0:
            return []
        wanted = sorted(set(themes))
        base = select(VocabularyItem.word).where(VocabularyItem.language == language)
        with self.db.session_scope() as session:
            matching: list[str] = []
            if wanted:
                # themes is a JSON array; match its serialized members
                theme_text = cast(VocabularyItem.themes, String)
                has_theme = or_(
                    *(theme_text.contains(json.dumps(theme), autoescape=True) for theme in wanted)
                )
                matching = list(
                    session.scalars(base.where(has_theme).order_by(VocabularyItem.id.desc()).limit(limit))
                )
            remaining = limit - len(matching)
            others: list[str] = []
            if remaining > 0:
                query = base.order_by(VocabularyItem.id.desc()).limit(remaining)
                if matching:
                    query = query.where(VocabularyItem.word.not_in(matching))
                others = list(session.scalars(query))
        return matching + others
