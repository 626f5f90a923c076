"""
Accuracy to CEFR level mapping.
"""

from __future__ import annotations

# Ascending (minimum accuracy, level); the last threshold met wins
CEFR_THRESHOLDS: tuple[tuple[int, str], ...] = (
    (0, "Pre-A1"),
    (40, "A1"),
    (55, "A2"),
    (65, "B1"),
    (75, "B2"),
    (85, "C1"),
    (90, "C2"),
)

CEFR_LEVELS: tuple[str, ...] = tuple(level for _, level in CEFR_THRESHOLDS)


def accuracy_to_cefr(accuracy: float) -> str:
    """
    Map an accuracy percentage to a CEFR level.

    Raises:
        ValueError: If accuracy is outside 0-100.
    """
    if not 0 <= accuracy <= 100:
        raise ValueError(f"Accuracy must be within 0-100, got {accuracy}")
    level = CEFR_THRESHOLDS[0][1]
    for minimum, name in CEFR_THRESHOLDS:
        if accuracy >= minimum:
            level = name
    return level
