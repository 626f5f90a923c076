"""
Next-Step Picker.

Chooses the next (submodule, modal schema) pair for a learner from their
session history in one greedy step:

- Pairs outside the module's supported set are never offered
- Never-attempted pairs come first, in declaration order (coverage)
- Attempted pairs are drawn by weight: low accuracy weighs more
  (remediation), every pair keeps a floor weight, and the pair just
  practiced is damped (recency)

The weighted draw is seeded from the history itself, so the same history
always yields the same step.
"""

from __future__ import annotations

import hashlib
import random
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from loguru import logger

from config import Settings
from lingua.core.errors import NoEligibleStepError
from lingua.registry.catalog import LearningCatalog
from lingua.registry.models import Difficulty


class AttemptLike(Protocol):
    submodule_id: str
    modal_schema_id: str
    is_correct: bool | None
    mark_data: dict[str, Any] | None


@dataclass
class PickerConfig:
    """Weighting constants for the picker."""

    min_weight: float = 0.1
    recency_penalty: float = 0.25
    difficulty_min_attempts: int = 3

    @classmethod
    def from_settings(cls, settings: Settings) -> PickerConfig:
        return cls(
            min_weight=settings.picker_min_weight,
            recency_penalty=settings.picker_recency_penalty,
            difficulty_min_attempts=settings.difficulty_min_attempts,
        )


@dataclass(frozen=True)
class NextStep:
    submodule_id: str
    modal_schema_id: str
    difficulty: str | None = None

    @property
    def pair(self) -> tuple[str, str]:
        return (self.submodule_id, self.modal_schema_id)


@dataclass
class PairStats:
    attempts: int = 0
    graded: int = 0
    correct: int = 0

    @property
    def accuracy(self) -> float | None:
        if not self.graded:
            return None
        return self.correct / self.graded * 100


def collect_pair_stats(history: Sequence[AttemptLike]) -> dict[tuple[str, str], PairStats]:
    stats: dict[tuple[str, str], PairStats] = {}
    for event in history:
        entry = stats.setdefault((event.submodule_id, event.modal_schema_id), PairStats())
        entry.attempts += 1
        if event.mark_data is not None:
            entry.graded += 1
            if event.is_correct:
                entry.correct += 1
    return stats


def history_seed(history: Sequence[AttemptLike]) -> int:
    """Stable seed derived from the ordered history."""
    digest = hashlib.sha256()
    for event in history:
        graded = "-" if event.mark_data is None else ("1" if event.is_correct else "0")
        digest.update(f"{event.submodule_id}\x1f{event.modal_schema_id}\x1f{graded}\x1e".encode())
    return int.from_bytes(digest.digest()[:8], "big")


def suggest_difficulty(stats: PairStats | None, min_attempts: int) -> str | None:
    """Map a well-practiced pair's accuracy to a difficulty."""
    if stats is None or stats.graded < min_attempts:
        return None
    accuracy = stats.accuracy or 0.0
    if accuracy < 50:
        return Difficulty.BEGINNER.value
    if accuracy < 80:
        return Difficulty.INTERMEDIATE.value
    return Difficulty.ADVANCED.value


class Picker:
    """Greedy next-step selector over the content taxonomy."""

    def __init__(self, catalog: LearningCatalog, config: PickerConfig | None = None):
        self.catalog = catalog
        self.config = config or PickerConfig()

    def get_next_step(
        self,
        user_id: str,
        module_id: str,
        target_language: str,
        source_language: str,
        history: Sequence[AttemptLike],
    ) -> NextStep:
        """
        Choose the next step.

        Args:
            user_id: Learner identifier (for logging only)
            module_id: Module concept id
            target_language: Language being learned
            source_language: Learner's language
            history: Events for this (user, module), oldest first

        Raises:
            NotFoundError: Unknown module for the target language
            NoEligibleStepError: The module declares no supported pairs
        """
        module = self.catalog.modules.get_module(module_id, target_language)
        pairs = module.supported_pairs()
        if not pairs:
            raise NoEligibleStepError(
                f"Module {module_id} ({target_language}) has no supported steps",
                {"module_id": module_id, "target_language": target_language},
            )

        valid = set(pairs)
        relevant = [e for e in history if (e.submodule_id, e.modal_schema_id) in valid]
        stats = collect_pair_stats(relevant)

        if len(pairs) == 1:
            chosen = pairs[0]
        else:
            chosen = self._choose(pairs, stats, relevant)

        step = NextStep(
            submodule_id=chosen[0],
            modal_schema_id=chosen[1],
            difficulty=suggest_difficulty(stats.get(chosen), self.config.difficulty_min_attempts),
        )
        logger.debug(
            f"Picker chose {step.submodule_id}/{step.modal_schema_id} for {user_id} "
            f"({len(relevant)} events, {len(stats)}/{len(pairs)} pairs seen)"
        )
        return step

    def _choose(
        self,
        pairs: list[tuple[str, str]],
        stats: dict[tuple[str, str], PairStats],
        history: Sequence[AttemptLike],
    ) -> tuple[str, str]:
        for pair in pairs:
            if pair not in stats:
                return pair

        last = (history[-1].submodule_id, history[-1].modal_schema_id) if history else None
        ordered = sorted(pairs)
        weights = [self.weight(stats[pair], pair == last) for pair in ordered]

        rng = random.Random(history_seed(history))
        return rng.choices(ordered, weights=weights, k=1)[0]

    def weight(self, stats: PairStats, is_last: bool) -> float:
        accuracy = stats.accuracy
        if accuracy is None:
            weight = 1.0
        else:
            floor = self.config.min_weight
            weight = floor + (1 - floor) * (1 - accuracy / 100)
        if is_last:
            weight *= self.config.recency_penalty
        return weight
