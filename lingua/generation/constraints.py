"""
Generation constraints.

Effective constraints are layered from the catalog; each later layer
overwrites what the earlier ones set, and caller-forced constraints always
come last.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

from lingua.registry.models import GenerationDefaults


@dataclass(frozen=True)
class GenerationConstraints:
    """Bounded question shape handed to the content synthesizer."""

    difficulty: str | None = None
    grammar_focus: str | None = None
    pedagogical_focus: str | None = None
    themes: tuple[str, ...] = ()
    vocabulary: tuple[str, ...] = ()
    forced_fields: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_defaults(cls, defaults: GenerationDefaults) -> GenerationConstraints:
        return cls(
            difficulty=defaults.difficulty.value if defaults.difficulty else None,
            grammar_focus=defaults.grammar_focus,
            pedagogical_focus=defaults.pedagogical_focus,
            themes=tuple(defaults.themes),
            vocabulary=tuple(defaults.vocabulary),
        )

    def merged_with(self, other: GenerationConstraints | None) -> GenerationConstraints:
        """Return a copy where every value set in `other` wins."""
        if other is None:
            return self
        return GenerationConstraints(
            difficulty=other.difficulty or self.difficulty,
            grammar_focus=other.grammar_focus or self.grammar_focus,
            pedagogical_focus=other.pedagogical_focus or self.pedagogical_focus,
            themes=other.themes or self.themes,
            vocabulary=other.vocabulary or self.vocabulary,
            forced_fields={**self.forced_fields, **other.forced_fields},
        )

    def with_vocabulary(self, words: tuple[str, ...]) -> GenerationConstraints:
        return replace(self, vocabulary=words)

    def to_dict(self) -> dict[str, Any]:
        return {
            "difficulty": self.difficulty,
            "grammar_focus": self.grammar_focus,
            "pedagogical_focus": self.pedagogical_focus,
            "themes": list(self.themes),
            "vocabulary": list(self.vocabulary),
            "forced_fields": dict(self.forced_fields),
        }


def resolve_constraints(*layers: GenerationConstraints | None) -> GenerationConstraints:
    """Fold layers left to right; later layers win."""
    effective = GenerationConstraints()
    for layer in layers:
        effective = effective.merged_with(layer)
    return effective
