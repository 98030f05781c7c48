from __future__ import annotations

from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any, Callable, cast

import numpy as np
import soundfile as sf  # type: ignore[import]
from numpy.typing import NDArray

from .errors import InvalidConfigError

FloatArray = NDArray[np.float64]
Float32Array = NDArray[np.float32]
AudioNumbers = NDArray[np.floating[Any]] | Sequence[float]

SAMPLE_RATE = 44_100


def ensure_audio_contract(audio: AudioNumbers, *, check_peak: bool = True) -> Float32Array:
    """Normalize dtype/shape to mono float32, scaling down anything above full scale."""

    mono: Float32Array = np.asarray(audio, dtype=np.float32).reshape(-1)
    if mono.size == 0 or not check_peak:
        return mono
    peak = float(np.max(np.abs(mono)))
    if peak > 1.0:
        mono = mono / peak
    return mono


def block_times(start_time: float, frames: int, sample_rate: int) -> FloatArray:
    """Absolute timestamps of the frames in one render block."""

    return start_time + np.arange(frames, dtype=np.float64) / float(sample_rate)


def write_wav(
    path: str | Path,
    audio_or_chunks: AudioNumbers | Iterable[AudioNumbers],
    *,
    sample_rate: int = SAMPLE_RATE,
) -> Path:
    """Write a full array or chunk iterator to a mono wav file."""

    target = Path(path)
    match audio_or_chunks:
        case str() | bytes():
            raise InvalidConfigError("audio_or_chunks must be audio samples or chunk iterables")
        case np.ndarray():
            audio = ensure_audio_contract(audio_or_chunks)
        case Sequence() if all(isinstance(item, (int, float)) for item in audio_or_chunks):
            audio = ensure_audio_contract(cast(Sequence[float], audio_or_chunks))
        case Iterable():
            chunks = [ensure_audio_contract(chunk, check_peak=False) for chunk in audio_or_chunks]
            joined = np.concatenate(chunks) if chunks else np.array([], dtype=np.float32)
            audio = ensure_audio_contract(joined)
        case _:
            raise InvalidConfigError("audio_or_chunks must be audio samples or chunk iterables")

    write_fn = getattr(sf, "write", None)
    assert callable(write_fn)
    write_audio = cast(Callable[[Path, Float32Array, int], None], write_fn)
    write_audio(target, audio, sample_rate)
    return target
