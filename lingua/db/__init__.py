from .database import Database
from .models import Base, LearningSessionRow, SessionEventRow, VocabularyItem, utcnow

__all__ = [
    "Base",
    "Database",
    "LearningSessionRow",
    "SessionEventRow",
    "VocabularyItem",
    "utcnow",
]
