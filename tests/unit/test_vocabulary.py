"""
Unit tests for the vocabulary store and lookup.
"""

import asyncio

import pytest

from lingua.core.errors import GenerationFailure, ValidationError
from lingua.vocabulary import VocabularyLookup, VocabularyStore


@pytest.fixture
def store(db):
    return VocabularyStore(db)


@pytest.fixture
def lookup(store, synthesizer, settings):
    return VocabularyLookup(store, synthesizer, settings)


class TestUpsertOrFetch:
    """First write wins; later calls return the stored entry."""

    def test_insert_then_fetch(self, store):
        created = store.upsert_or_fetch("Apfel", "de", lemma="Apfel", themes=["food"], translation="apple")
        fetched = store.upsert_or_fetch("Apfel", "de", translation="something else")

        assert fetched == created
        assert fetched.translation == "apple"
        assert fetched.themes == ("food",)

    def test_insert_reports_creation(self, store):
        _, created = store.insert_or_fetch("Apfel", "de", definition="a round fruit")
        entry, created_again = store.insert_or_fetch("Apfel", "de")

        assert created
        assert not created_again
        assert entry.definition == "a round fruit"

    def test_same_word_different_language(self, store):
        store.upsert_or_fetch("Hola", "es")
        store.upsert_or_fetch("Hola", "de")

        assert store.lookup("Hola", "es") is not None
        assert store.lookup("Hola", "de") is not None

    def test_word_is_trimmed(self, store):
        store.upsert_or_fetch("  Haus ", "de")

        assert store.lookup("Haus", "de").word == "Haus"

    def test_empty_word_rejected(self, store):
        with pytest.raises(ValidationError):
            store.upsert_or_fetch("   ", "de")

    def test_lookup_missing(self, store):
        assert store.lookup("Zug", "de") is None


class TestSample:
    """Vocabulary pool sampling."""

    def test_theme_matches_first(self, store):
        store.upsert_or_fetch("Brot", "de", themes=["food"])
        store.upsert_or_fetch("Zug", "de", themes=["travel"])
        store.upsert_or_fetch("Käse", "de", themes=["food"])

        assert store.sample("de", themes=["food"], limit=3) == ["Käse", "Brot", "Zug"]

    def test_theme_matches_respect_limit(self, store):
        for word in ["Brot", "Käse", "Milch"]:
            store.upsert_or_fetch(word, "de", themes=["food", "shopping"])
        store.upsert_or_fetch("Zug", "de", themes=["travel"])

        assert store.sample("de", themes=["food"], limit=2) == ["Milch", "Käse"]

    def test_theme_match_is_whole_theme(self, store):
        store.upsert_or_fetch("Koch", "de", themes=["foodie"])
        store.upsert_or_fetch("Brot", "de", themes=["food"])

        assert store.sample("de", themes=["food"], limit=1) == ["Brot"]

    def test_limit_and_language(self, store):
        for word in ["eins", "zwei", "drei"]:
            store.upsert_or_fetch(word, "de")
        store.upsert_or_fetch("uno", "es")

        assert store.sample("de", limit=2) == ["drei", "zwei"]
        assert store.sample("de", limit=0) == []
        assert store.sample("es") == ["uno"]


class TestLookup:
    """Cache-first lookups, generating unknown words."""

    @pytest.mark.asyncio
    async def test_cached_entry_skips_synthesizer(self, lookup, store, synthesizer):
        store.upsert_or_fetch("Brot", "de", translation="bread")

        entry, created = await lookup.lookup("Brot", "de")

        assert not created
        assert entry.translation == "bread"
        assert synthesizer.requests == []

    @pytest.mark.asyncio
    async def test_unknown_word_is_generated_and_stored(self, lookup, store, synthesizer):
        entry, created = await lookup.lookup(" Apfel ", "DE")

        assert created
        assert entry.word == "Apfel"
        assert entry.language == "de"
        assert entry.definition == "a round fruit"
        assert entry.themes == ("food",)
        assert store.lookup("Apfel", "de") == entry
        request = synthesizer.requests[0]
        assert request.schema_id == "vocabulary-entry"
        assert "German" in request.prompt
        assert '"Apfel"' in request.prompt

    @pytest.mark.asyncio
    async def test_invalid_language(self, lookup, synthesizer):
        with pytest.raises(ValidationError):
            await lookup.lookup("Apfel", "deu")
        assert synthesizer.requests == []

    @pytest.mark.asyncio
    async def test_empty_word(self, lookup):
        with pytest.raises(ValidationError):
            await lookup.lookup("  ", "de")

    @pytest.mark.asyncio
    async def test_invalid_entry_is_not_stored(self, lookup, store, synthesizer):
        synthesizer.push({"translation": "apple", "cefr_level": "Z9"})

        with pytest.raises(GenerationFailure) as exc_info:
            await lookup.lookup("Apfel", "de")

        assert exc_info.value.attempts == 1
        assert store.lookup("Apfel", "de") is None

    @pytest.mark.asyncio
    async def test_synthesizer_error(self, lookup, synthesizer, synthesis_error):
        synthesizer.push(synthesis_error)

        with pytest.raises(GenerationFailure):
            await lookup.lookup("Apfel", "de")

    @pytest.mark.asyncio
    async def test_concurrent_first_lookups_share_one_row(self, lookup, store):
        results = await asyncio.gather(lookup.lookup("Apfel", "de"), lookup.lookup("Apfel", "de"))

        entries = [entry for entry, _ in results]
        assert entries[0] == entries[1]
        assert sum(created for _, created in results) == 1
