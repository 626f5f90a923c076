"""
Engine wiring.

Builds every component once from settings so the API and CLI share the
same object graph. Collaborators can be swapped in for tests.
"""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from config import Settings, get_settings
from lingua.adaptive.picker import Picker, PickerConfig
from lingua.db.database import Database
from lingua.generation.service import GenerationConstraintService
from lingua.generation.synthesizer import ContentSynthesizer, GeminiSynthesizer
from lingua.marking.judge import GeminiJudge, JudgmentClient
from lingua.marking.service import MarkingService
from lingua.registry.catalog import LearningCatalog, build_catalog
from lingua.session.manager import LearningSessionManager
from lingua.statistics.tracker import StatisticsTracker
from lingua.vocabulary.lookup import VocabularyLookup
from lingua.vocabulary.store import VocabularyStore


@dataclass
class EngineContainer:
    settings: Settings
    catalog: LearningCatalog
    db: Database
    synthesizer: ContentSynthesizer
    judge: JudgmentClient | None
    vocabulary: VocabularyStore
    vocabulary_lookup: VocabularyLookup
    tracker: StatisticsTracker
    manager: LearningSessionManager

    @classmethod
    def build(
        cls,
        settings: Settings | None = None,
        catalog: LearningCatalog | None = None,
        db: Database | None = None,
        synthesizer: ContentSynthesizer | None = None,
        judge: JudgmentClient | None = None,
    ) -> EngineContainer:
        """
        Wire the engine.

        Raises:
            RegistryLoadError: Catalog definitions are malformed.
        """
        settings = settings or get_settings()
        catalog = catalog or build_catalog(settings)
        db = db or Database.from_settings(settings)
        db.init_db()

        if synthesizer is None:
            synthesizer = GeminiSynthesizer.from_settings(settings)
        if judge is None and settings.has_ai_configured():
            judge = GeminiJudge.from_settings(settings)
        if judge is None:
            logger.warning("No judgment assistant configured; free-form answers use the fallback heuristic")

        vocabulary = VocabularyStore(db)
        tracker = StatisticsTracker(db, catalog, settings)
        manager = LearningSessionManager(
            catalog=catalog,
            picker=Picker(catalog, PickerConfig.from_settings(settings)),
            generator=GenerationConstraintService(synthesizer, settings, vocabulary),
            marker=MarkingService(catalog, judge, settings),
            tracker=tracker,
            settings=settings,
        )
        return cls(
            settings=settings,
            catalog=catalog,
            db=db,
            synthesizer=synthesizer,
            judge=judge,
            vocabulary=vocabulary,
            vocabulary_lookup=VocabularyLookup(vocabulary, synthesizer, settings),
            tracker=tracker,
            manager=manager,
        )

    async def close(self) -> None:
        for client in (self.synthesizer, self.judge):
            close = getattr(client, "close", None)
            if close is not None:
                await close()
        self.db.dispose()
