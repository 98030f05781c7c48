from __future__ import annotations

import math

import numpy as np
from scipy.signal import lfilter  # type: ignore[import]

from .audio import FloatArray
from .rand import RandomSource

NOISE_SECONDS = 0.05
LEAK = 0.02
OUTPUT_GAIN = 3.5

NoiseBuffer = FloatArray


def noise_length(sample_rate: int) -> int:
    return math.floor(sample_rate * NOISE_SECONDS)


def generate_noise_buffer(sample_rate: int, rng: RandomSource | None = None) -> NoiseBuffer:
    """Brown-ish exciter noise: white noise through a leaky integrator.

    ``state = (state + k * white) / (1 + k)`` is a one-pole lowpass, so the
    recurrence runs through ``lfilter`` instead of a Python loop. The state is
    a convex mix of values in [-1, 1], so every sample stays within
    ``OUTPUT_GAIN``. Each call returns a new read-only array.
    """

    if sample_rate <= 0:
        raise ValueError(f"sample_rate must be positive, got {sample_rate!r}")
    source = rng if rng is not None else RandomSource()
    white = source.random_array(noise_length(sample_rate)) * 2.0 - 1.0
    scale = 1.0 + LEAK
    integrated = lfilter([LEAK / scale], [1.0, -1.0 / scale], white)
    buffer = np.asarray(integrated, dtype=np.float64) * OUTPUT_GAIN
    buffer.setflags(write=False)
    return buffer
