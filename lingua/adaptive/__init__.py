"""
Adaptive step selection.
"""

from .picker import NextStep, PairStats, Picker, PickerConfig, collect_pair_stats, suggest_difficulty

__all__ = [
    "NextStep",
    "PairStats",
    "Picker",
    "PickerConfig",
    "collect_pair_stats",
    "suggest_difficulty",
]
