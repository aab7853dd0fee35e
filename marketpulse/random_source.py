"""Injectable randomness for demo data and decision jitter.

Production code wires ``SystemRandomSource``; tests pin draws with
``SequenceRandom``.
"""

import random
from typing import Iterable, Optional, Protocol, runtime_checkable


@runtime_checkable
class RandomSource(Protocol):
    """Anything that yields floats in ``[0, 1)``."""

    def next(self) -> float:
        ...


class SystemRandomSource:
    """``random.Random`` behind the ``RandomSource`` interface.

    Args:
        seed: Optional seed; identical seeds reproduce identical draws.
    """

    def __init__(self, seed: Optional[int] = None) -> None:
        self._rng = random.Random(seed)

    def next(self) -> float:
        return self._rng.random()


class SequenceRandom:
    """Replays a fixed sequence of draws, cycling when exhausted."""

    def __init__(self, values: Iterable[float]) -> None:
        self._values = [float(v) for v in values]
        if not self._values:
            raise ValueError("SequenceRandom needs at least one value")
        for v in self._values:
            if not 0.0 <= v < 1.0:
                raise ValueError(f"draws must be in [0, 1), got {v}")
        self._index = 0

    def next(self) -> float:
        value = self._values[self._index % len(self._values)]
        self._index += 1
        return value


def uniform(rng: RandomSource, low: float, high: float) -> float:
    """Draw a float in ``[low, high)`` from *rng*."""
    return low + rng.next() * (high - low)
