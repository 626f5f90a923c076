"""
Vocabulary lookup.

Serves a dictionary entry for a word: the cached row when there is one,
otherwise an entry written by the content synthesizer and stored with
insert-or-fetch so concurrent first lookups agree on one row.
"""

from __future__ import annotations

import asyncio
import re

from loguru import logger

from config import Settings, get_settings
from lingua.core.errors import GenerationFailure, ValidationError
from lingua.generation.prompts import language_name, replace_placeholders
from lingua.generation.synthesizer import ContentSynthesizer, SynthesisError, SynthesisRequest
from lingua.generation.validator import build_response_schema, validate_fields
from lingua.registry.models import FieldDescriptor, FieldType

from .store import VocabularyEntry, VocabularyStore

VOCABULARY_SCHEMA_ID = "vocabulary-entry"

_LANGUAGE_CODE = re.compile(r"^[a-z]{2}$")

VOCABULARY_FIELDS = (
    FieldDescriptor(name="definition", type=FieldType.STRING, description="Short definition in English"),
    FieldDescriptor(name="translation", type=FieldType.STRING, description="English translation"),
    FieldDescriptor(name="lemma", type=FieldType.STRING, required=False, description="Dictionary form"),
    FieldDescriptor(
        name="cefr_level",
        type=FieldType.STRING,
        required=False,
        enum=("A1", "A2", "B1", "B2", "C1", "C2"),
    ),
    FieldDescriptor(name="themes", type=FieldType.STRING_LIST, required=False, max_items=5),
)

VOCABULARY_PROMPT = """You are a {language} lexicographer writing entries for language learners.

Write the dictionary entry for the {language} word "{word}".
Give its dictionary form, a short English definition, its most common English translation,
the CEFR level at which learners usually meet it and up to five topic themes
(single lowercase English words such as food, travel, family).

Respond with a JSON object only.
"""


class VocabularyLookup:
    """Cache-first dictionary lookups backed by the content synthesizer."""

    def __init__(
        self,
        store: VocabularyStore,
        synthesizer: ContentSynthesizer,
        settings: Settings | None = None,
    ):
        self.store = store
        self.synthesizer = synthesizer
        self.settings = settings or get_settings()

    async def lookup(self, word: str, language: str) -> tuple[VocabularyEntry, bool]:
        """
        Return the entry for (word, language) and whether this call created it.

        Raises:
            ValidationError: Empty word or malformed language code
            GenerationFailure: Word is unknown and no usable entry could be generated
        """
        word = word.strip()
        language = language.strip().lower()
        if not word:
            raise ValidationError("Vocabulary word must not be empty")
        if not _LANGUAGE_CODE.match(language):
            raise ValidationError(f"Invalid language code {language!r}", {"language": language})

        existing = self.store.lookup(word, language)
        if existing is not None:
            logger.debug(f"Vocabulary {language}:{word} served from cache")
            return existing, False

        logger.info(f"Generating vocabulary entry for {language}:{word}")
        prompt = replace_placeholders(VOCABULARY_PROMPT, {"language": language_name(language), "word": word})
        request = SynthesisRequest(
            prompt=prompt,
            response_schema=build_response_schema(VOCABULARY_FIELDS),
            schema_id=VOCABULARY_SCHEMA_ID,
        )
        try:
            payload = await asyncio.wait_for(
                self.synthesizer.synthesize(request),
                timeout=self.settings.synthesis_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise GenerationFailure(
                VOCABULARY_SCHEMA_ID,
                [f"Synthesizer timed out after {self.settings.synthesis_timeout_seconds}s"],
                attempts=1,
            ) from e
        except SynthesisError as e:
            raise GenerationFailure(VOCABULARY_SCHEMA_ID, [f"Synthesizer error: {e}"], attempts=1) from e

        issues = validate_fields(VOCABULARY_FIELDS, payload)
        if issues:
            logger.warning(f"Rejected vocabulary entry for {language}:{word}: {issues}")
            raise GenerationFailure(VOCABULARY_SCHEMA_ID, issues, attempts=1)

        return self.store.insert_or_fetch(
            word,
            language,
            lemma=payload.get("lemma"),
            cefr_level=payload.get("cefr_level"),
            themes=payload.get("themes") or (),
            translation=payload["translation"],
            definition=payload["definition"],
        )
