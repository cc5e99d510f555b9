"""Capture odds.

The only input is how worn down the wild creature is: at or below 30% HP the
odds improve from 10% to 35%.
"""

from __future__ import annotations

from wildbattle.api.models import WildCreature


LOW_HP_THRESHOLD = 0.30
LOW_HP_CAPTURE_RATE = 0.35
BASE_CAPTURE_RATE = 0.10


def capture_probability(hp_fraction: float) -> float:
    if not 0.0 <= hp_fraction <= 1.0:
        raise ValueError("hp_fraction must be between 0 and 1")
    return LOW_HP_CAPTURE_RATE if hp_fraction <= LOW_HP_THRESHOLD else BASE_CAPTURE_RATE


def evaluate_capture(*, wild: WildCreature, roll: float) -> bool:
    """Return True if a capture with uniform `roll` in [0, 1) succeeds."""

    return roll < capture_probability(wild.hp_fraction)
