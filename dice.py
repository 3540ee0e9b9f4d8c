"""
Recall Run Engine v1.0: Seeded Dice
Deterministic random source. Full audit trail on every probability roll.

The generator is a plain LCG (Numerical Recipes constants) rather than
Python's Mersenne Twister so a seed reproduces the same playthrough in any
implementation that shares the constants.
"""

import random

_LCG_A = 1664525
_LCG_C = 1013904223
_LCG_M = 2 ** 32


class SeededRandom:
    """Reproducible stream of floats and picks from a numeric seed."""

    def __init__(self, seed: int):
        self.seed = int(seed) % _LCG_M
        self._state = self.seed
        self.draws = 0

    def random(self) -> float:
        """Next float in [0, 1)."""
        self._state = (self._state * _LCG_A + _LCG_C) % _LCG_M
        self.draws += 1
        return self._state / _LCG_M

    def randint(self, maximum: int) -> int:
        """Integer in [0, maximum)."""
        return int(self.random() * maximum)

    def pick(self, seq):
        if not seq:
            return None
        return seq[self.randint(len(seq))]

    def weighted_pick(self, items, weights):
        """Pick one item with probability proportional to its weight."""
        pairs = [(item, w) for item, w in zip(items, weights) if w > 0]
        if not pairs:
            return None
        total = sum(w for _, w in pairs)
        target = self.random() * total
        running = 0.0
        for item, w in pairs:
            running += w
            if target < running:
                return item
        return pairs[-1][0]

    def shuffle(self, items: list) -> None:
        """Fisher-Yates, in place."""
        for i in range(len(items) - 1, 0, -1):
            j = self.randint(i + 1)
            items[i], items[j] = items[j], items[i]


def new_seed() -> int:
    """Fresh seed for a run the host did not pin."""
    return random.randrange(_LCG_M)


def roll_chance(rng: SeededRandom, probability: float, label: str = "") -> dict:
    """
    Single Bernoulli draw against `probability`.
    Returns dict with full audit trail.
    """
    roll = rng.random()
    return {
        "probability": probability,
        "roll": roll,
        "passed": roll < probability,
        "label": label,
    }
