"""
Owned-resource audio graph.

Nodes are plain objects with an explicit, idempotent ``release``. A ``Voice``
is the arena that owns every node of one scheduled sound; the context disposes
it once its stop time has passed, which releases all of its nodes together.
Rendering is pull-based: callers hand in the absolute timestamps of a block and
get the node's samples for exactly those instants.
"""

from __future__ import annotations

import math
from bisect import bisect_right
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal, TypeVar

import numpy as np
from scipy.signal import lfilter  # type: ignore[import]

from .audio import FloatArray

RampKind = Literal["set", "linear", "exponential"]
NodeT = TypeVar("NodeT", bound="AudioNode")


@dataclass(frozen=True, slots=True)
class _AutomationEvent:
    kind: RampKind
    time: float
    value: float


class AudioParam:
    """A value with scheduled set/ramp automation.

    A ramp runs from the previous event (or ``(0.0, default)`` when it is the
    first one) to its own time and value; after the last event the value holds.
    """

    def __init__(self, value: float) -> None:
        self._default = float(value)
        self._events: list[_AutomationEvent] = []

    @property
    def default_value(self) -> float:
        return self._default

    @property
    def has_automation(self) -> bool:
        return bool(self._events)

    def set_value_at_time(self, value: float, time: float) -> None:
        self._insert(_AutomationEvent("set", float(time), float(value)))

    def linear_ramp_to_value_at_time(self, value: float, end_time: float) -> None:
        self._insert(_AutomationEvent("linear", float(end_time), float(value)))

    def exponential_ramp_to_value_at_time(self, value: float, end_time: float) -> None:
        if value == 0.0:
            raise ValueError("exponential ramps cannot target zero")
        self._insert(_AutomationEvent("exponential", float(end_time), float(value)))

    def cancel_scheduled_values(self, start_time: float) -> None:
        self._events = [event for event in self._events if event.time < start_time]

    def cancel_and_hold_at_time(self, time: float) -> float:
        """Freeze the curve at ``time`` and drop every event around it.

        History before ``time`` is discarded too; render clocks only move forward.
        """

        held = self.value_at(time)
        self._events = [_AutomationEvent("set", float(time), held)]
        return held

    def value_at(self, time: float) -> float:
        return float(self.values(np.array([time], dtype=np.float64))[0])

    def values(self, times: FloatArray) -> FloatArray:
        out = np.full(times.shape, self._default, dtype=np.float64)
        prev_time: float | None = None
        prev_value = self._default
        for event in self._events:
            if event.kind != "set":
                start_time = prev_time if prev_time is not None else 0.0
                span = event.time - start_time
                if span > 0.0:
                    mask = (times >= start_time) & (times < event.time)
                    if mask.any():
                        frac = (times[mask] - start_time) / span
                        out[mask] = _ramp(event.kind, prev_value, event.value, frac)
            out[times >= event.time] = event.value
            prev_time, prev_value = event.time, event.value
        return out

    def _insert(self, event: _AutomationEvent) -> None:
        index = bisect_right([existing.time for existing in self._events], event.time)
        self._events.insert(index, event)


def _ramp(kind: RampKind, start: float, end: float, frac: FloatArray) -> FloatArray:
    if kind == "linear":
        return start + (end - start) * frac
    if start == 0.0 or (start > 0.0) != (end > 0.0):
        return np.full(frac.shape, start, dtype=np.float64)
    return start * np.power(end / start, frac)


class AudioNode:
    def __init__(self) -> None:
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self._on_release()

    def _on_release(self) -> None:
        pass


class BufferSource(AudioNode):
    """Plays a (shared, never copied) sample buffer from ``start`` until ``stop``."""

    def __init__(
        self,
        buffer: FloatArray,
        sample_rate: int,
        *,
        playback_rate: float = 1.0,
        loop: bool = False,
    ) -> None:
        super().__init__()
        if playback_rate <= 0.0:
            raise ValueError(f"playback_rate must be positive, got {playback_rate!r}")
        self._buffer: FloatArray | None = buffer
        self._index: FloatArray | None = np.arange(len(buffer), dtype=np.float64)
        self.sample_rate = sample_rate
        self.playback_rate = playback_rate
        self.loop = loop
        self.start_time: float | None = None
        self.stop_time = math.inf

    @property
    def buffer(self) -> FloatArray | None:
        return self._buffer

    @property
    def buffer_seconds(self) -> float:
        if self._buffer is None:
            return 0.0
        return len(self._buffer) / (self.sample_rate * self.playback_rate)

    @property
    def end_time(self) -> float:
        if self.start_time is None:
            return math.inf
        if self.loop:
            return self.stop_time
        return min(self.stop_time, self.start_time + self.buffer_seconds)

    def start(self, when: float) -> None:
        if self.start_time is not None:
            raise RuntimeError("buffer source already started")
        self.start_time = float(when)

    def stop(self, when: float) -> None:
        if self._released or self.start_time is None:
            return
        self.stop_time = max(float(when), self.start_time)

    def render(self, times: FloatArray) -> FloatArray:
        out = np.zeros(times.shape, dtype=np.float64)
        if self._buffer is None or self._index is None or self.start_time is None:
            return out
        if len(self._buffer) == 0:
            return out
        active = (times >= self.start_time) & (times < self.end_time)
        if not active.any():
            return out
        positions = (times[active] - self.start_time) * self.sample_rate * self.playback_rate
        if self.loop:
            positions = np.mod(positions, len(self._buffer))
        out[active] = np.interp(positions, self._index, self._buffer)
        return out

    def _on_release(self) -> None:
        self._buffer = None
        self._index = None


class GainNode(AudioNode):
    def __init__(self, gain: float = 1.0) -> None:
        super().__init__()
        self.gain = AudioParam(gain)

    def process(self, signal: FloatArray, times: FloatArray) -> FloatArray:
        if not self.gain.has_automation:
            return signal * self.gain.default_value
        return signal * self.gain.values(times)


def bandpass_coefficients(
    frequency: float, q: float, sample_rate: int
) -> tuple[FloatArray, FloatArray]:
    """RBJ bandpass biquad with 0 dB peak gain."""

    nyquist = sample_rate / 2.0
    freq = min(max(frequency, 1.0), nyquist * 0.99)
    w0 = 2.0 * math.pi * freq / sample_rate
    alpha = math.sin(w0) / (2.0 * max(q, 1e-4))
    a0 = 1.0 + alpha
    b = np.array([alpha, 0.0, -alpha], dtype=np.float64) / a0
    a = np.array([1.0, -2.0 * math.cos(w0) / a0, (1.0 - alpha) / a0], dtype=np.float64)
    return b, a


class BandpassFilter(AudioNode):
    """Resonant bandpass that keeps its state across render blocks."""

    def __init__(self, frequency: float, q: float, sample_rate: int) -> None:
        super().__init__()
        self.frequency = frequency
        self.q = q
        self._b, self._a = bandpass_coefficients(frequency, q, sample_rate)
        self._zi = np.zeros(2, dtype=np.float64)

    def process(self, signal: FloatArray) -> FloatArray:
        if self._released:
            return np.zeros_like(signal)
        filtered, self._zi = lfilter(self._b, self._a, signal, zi=self._zi)
        return np.asarray(filtered, dtype=np.float64)

    def _on_release(self) -> None:
        self._zi = np.zeros(2, dtype=np.float64)


class Voice:
    """Arena for the nodes of one scheduled sound.

    ``dispose`` releases every owned node exactly once; later calls do nothing.
    """

    def __init__(self, start_time: float, stop_time: float) -> None:
        self.start_time = start_time
        self.stop_time = stop_time
        self._nodes: list[AudioNode] = []
        self._disposed = False
        self._dispose_callbacks: list[Callable[[Voice], None]] = []

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def nodes(self) -> tuple[AudioNode, ...]:
        return tuple(self._nodes)

    def own(self, node: NodeT) -> NodeT:
        self._nodes.append(node)
        return node

    def add_dispose_callback(self, callback: Callable[[Voice], None]) -> None:
        self._dispose_callbacks.append(callback)

    def is_finished(self, time: float) -> bool:
        return time >= self.stop_time

    def render(self, times: FloatArray) -> FloatArray:
        raise NotImplementedError

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        for node in reversed(self._nodes):
            node.release()
        self._nodes.clear()
        callbacks, self._dispose_callbacks = self._dispose_callbacks, []
        for callback in callbacks:
            callback(self)
