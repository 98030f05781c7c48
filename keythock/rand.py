from __future__ import annotations

import numpy as np

from .audio import FloatArray


class RandomSource:
    """Uniform [0, 1) draws backed by a numpy Generator.

    Every stochastic choice in the engine goes through one of these so tests
    can pin the output.
    """

    def __init__(self, rng: np.random.Generator | None = None, *, seed: int | None = None) -> None:
        self._rng = rng if rng is not None else np.random.default_rng(seed)

    def random(self) -> float:
        return float(self._rng.random())

    def uniform(self, low: float, high: float) -> float:
        return low + self.random() * (high - low)

    def random_array(self, size: int) -> FloatArray:
        return np.asarray(self._rng.random(size), dtype=np.float64)


class ConstantRandomSource(RandomSource):
    """Always returns the same draw; 0.5 turns every symmetric jitter into 1.0."""

    def __init__(self, value: float = 0.5) -> None:
        if not 0.0 <= value < 1.0:
            raise ValueError(f"value must lie in [0, 1), got {value!r}")
        super().__init__(seed=0)
        self._value = value

    def random(self) -> float:
        return self._value

    def random_array(self, size: int) -> FloatArray:
        return np.full(size, self._value, dtype=np.float64)
