from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Protocol


DAMAGE_MIN = 20
DAMAGE_MAX = 30


class BattleRng(Protocol):
    def next(self) -> float:
        """Return a float in [0, 1)."""
        ...


@dataclass(slots=True)
class RandomRng:
    """`BattleRng` backed by `random.Random`; pass a seed for replayable battles."""

    seed: int | None = None
    _random: random.Random = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._random = random.Random(self.seed)

    def next(self) -> float:
        return self._random.random()


@dataclass(slots=True)
class Dice:
    """All the randomness a battle consumes, drawn from one `BattleRng`."""

    rng: BattleRng = field(default_factory=RandomRng)
    damage_min: int = DAMAGE_MIN
    damage_max: int = DAMAGE_MAX

    def damage(self) -> int:
        span = self.damage_max - self.damage_min + 1
        return min(self.damage_max, self.damage_min + int(self.rng.next() * span))

    def capture_roll(self) -> float:
        return self.rng.next()

    def choice_index(self, n: int) -> int:
        if n <= 0:
            raise ValueError("n must be > 0")
        return min(n - 1, int(self.rng.next() * n))
