"""
Score arithmetic shared by marking and statistics.
"""

from __future__ import annotations

import math


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def percentage(part: float, whole: float) -> int:
    """Integer percentage rounded half up; 0 when whole is 0."""
    if whole <= 0:
        return 0
    return round_half_up(part / whole * 100)


def clamp_score(value: float) -> int:
    return max(0, min(100, round_half_up(value)))
