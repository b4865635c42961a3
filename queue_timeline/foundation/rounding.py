"""Rounding for reported minute figures."""

from __future__ import annotations

import math


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero.

    ``round()`` rounds halves to even, so 10.5 would report as 10.
    """
    if value < 0:
        return -math.floor(-value + 0.5)
    return math.floor(value + 0.5)


def minutes_between(seconds: float) -> int:
    """Convert a duration in seconds to whole minutes."""
    return round_half_up(seconds / 60.0)
