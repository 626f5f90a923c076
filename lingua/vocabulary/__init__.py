from .lookup import VocabularyLookup
from .store import VocabularyEntry, VocabularyStore

__all__ = ["VocabularyEntry", "VocabularyLookup", "VocabularyStore"]
