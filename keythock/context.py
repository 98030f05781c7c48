from __future__ import annotations

import logging
import threading
from typing import Any, Literal

import numpy as np

from .audio import SAMPLE_RATE, Float32Array, block_times
from .errors import AudioSetupError
from .graph import GainNode, Voice

_LOGGER = logging.getLogger("keythock.context")

ContextState = Literal["suspended", "running", "closed"]


class AudioContext:
    """Clock, mixer and master gain for every voice of one engine.

    The clock is the number of frames rendered so far, so scheduled start and
    stop times are exact relative to the audio actually produced. With
    ``realtime=True`` a sounddevice output stream pulls ``render`` from its
    callback thread; offline contexts are rendered by calling ``render``.
    """

    def __init__(
        self,
        *,
        sample_rate: int = SAMPLE_RATE,
        block_size: int = 256,
        realtime: bool = True,
    ) -> None:
        if sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {sample_rate!r}")
        self.sample_rate = sample_rate
        self.block_size = block_size
        self.realtime = realtime
        self.master_gain = GainNode(1.0)
        self._lock = threading.RLock()
        self._frames = 0
        self._voices: list[Voice] = []
        self._stream: Any | None = None
        self._state: ContextState = "suspended"

    @property
    def current_time(self) -> float:
        with self._lock:
            return self._frames / self.sample_rate

    @property
    def state(self) -> ContextState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._state == "closed"

    @property
    def active_voices(self) -> tuple[Voice, ...]:
        with self._lock:
            return tuple(self._voices)

    def open(self) -> None:
        if self._state == "closed":
            raise AudioSetupError("audio context is closed")
        if self._state == "running":
            return
        if self.realtime:
            self._stream = _open_output_stream(self)
        self._state = "running"

    def add_voice(self, voice: Voice) -> bool:
        with self._lock:
            if self._state != "closed":
                self._voices.append(voice)
                return True
        voice.dispose()
        return False

    def ramp_master_gain(self, value: float, seconds: float) -> None:
        """Linear ramp from the current master gain to ``value``."""

        with self._lock:
            now = self._frames / self.sample_rate
            gain = self.master_gain.gain
            gain.cancel_and_hold_at_time(now)
            if seconds <= 0.0:
                gain.set_value_at_time(value, now)
            else:
                gain.linear_ramp_to_value_at_time(value, now + seconds)

    def render(self, frames: int) -> Float32Array:
        with self._lock:
            times = block_times(self._frames / self.sample_rate, frames, self.sample_rate)
            mix = np.zeros(frames, dtype=np.float64)
            if self._state != "closed":
                for voice in self._voices:
                    mix += voice.render(times)
                mix = self.master_gain.process(mix, times)
            self._frames += frames
            end_time = self._frames / self.sample_rate
            finished = [voice for voice in self._voices if voice.is_finished(end_time)]
            if finished:
                self._voices = [voice for voice in self._voices if not voice.is_finished(end_time)]
        for voice in finished:
            voice.dispose()
        return np.clip(mix, -1.0, 1.0).astype(np.float32)

    def close(self) -> None:
        with self._lock:
            if self._state == "closed":
                return
            self._state = "closed"
            stream, self._stream = self._stream, None
            voices, self._voices = self._voices, []
        if stream is not None:
            try:
                stream.stop()
                stream.close()
            except Exception as exc:
                _LOGGER.warning("Failed to close output stream: %s", exc, exc_info=True)
        for voice in voices:
            voice.dispose()


def sounddevice_available() -> bool:
    try:
        import sounddevice  # type: ignore[import]  # noqa: F401
    except (ImportError, OSError) as exc:
        _LOGGER.info("sounddevice not available: %s", exc, exc_info=True)
        return False
    return True


def _open_output_stream(context: AudioContext) -> Any:
    try:
        import sounddevice as sd_module  # type: ignore[import]
    except (ImportError, OSError) as exc:
        raise AudioSetupError("Realtime output requires sounddevice and PortAudio.") from exc
    sd: Any = sd_module

    def _callback(outdata: Any, frames: int, time_info: Any, status: Any) -> None:
        if status:
            _LOGGER.debug("Output stream status: %s", status)
        outdata[:, 0] = context.render(frames)

    try:
        stream = sd.OutputStream(
            samplerate=context.sample_rate,
            blocksize=context.block_size,
            channels=1,
            dtype="float32",
            callback=_callback,
        )
        stream.start()
    except Exception as exc:
        raise AudioSetupError(f"Failed to open output stream: {exc}") from exc
    return stream
