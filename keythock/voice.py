from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from .audio import FloatArray
from .context import AudioContext
from .events import EventDescriptor
from .graph import AudioNode, BandpassFilter, BufferSource, GainNode, Voice
from .noise import NoiseBuffer
from .rand import RandomSource

_LOGGER = logging.getLogger("keythock.voice")

ATTACK_SECONDS = 0.0001
ENVELOPE_FLOOR = 0.001
DECAY_TAIL_SECONDS = 0.15
GAIN_JITTER = 0.15


@dataclass(frozen=True, slots=True)
class ModeInstance:
    """A mode as realized for one voice, after per-trigger jitter."""

    frequency: float
    q: float
    gain: float


class ModalVoice(Voice):
    """Noise exciter -> envelope -> bandpass bank -> mode gains -> master gain."""

    def __init__(
        self,
        *,
        event: EventDescriptor,
        start_time: float,
        exciter: BufferSource,
        envelope: GainNode,
        filters: Sequence[BandpassFilter],
        mode_gains: Sequence[GainNode],
        output: GainNode,
    ) -> None:
        super().__init__(start_time, start_time + event.duration + DECAY_TAIL_SECONDS)
        self.event = event
        self.exciter = self.own(exciter)
        self.envelope = self.own(envelope)
        self.filters = tuple(self.own(node) for node in filters)
        self.mode_gains = tuple(self.own(node) for node in mode_gains)
        self.output = self.own(output)

    @property
    def modes(self) -> tuple[ModeInstance, ...]:
        return tuple(
            ModeInstance(node.frequency, node.q, gain.gain.default_value)
            for node, gain in zip(self.filters, self.mode_gains)
        )

    def render(self, times: FloatArray) -> FloatArray:
        if self.disposed:
            return np.zeros(times.shape, dtype=np.float64)
        excitation = self.envelope.process(self.exciter.render(times), times)
        mix = np.zeros(times.shape, dtype=np.float64)
        for node, gain in zip(self.filters, self.mode_gains):
            mix += gain.process(node.process(excitation), times)
        return self.output.process(mix, times)


class ModalVoiceBuilder:
    """Builds one modal voice per event firing and hands it to the context."""

    def __init__(
        self,
        context: AudioContext | None,
        noise: NoiseBuffer | None,
        *,
        rng: RandomSource | None = None,
        volume: float = 1.0,
    ) -> None:
        self.context = context
        self.noise = noise
        self.volume = volume
        self._rng = rng if rng is not None else RandomSource()

    def trigger(self, start_time: float, event: EventDescriptor) -> ModalVoice | None:
        context = self.context
        if context is None or context.closed or self.noise is None:
            _LOGGER.warning("Audio pipeline unavailable; skipping %s voice.", event.name)
            return None

        allocated: list[AudioNode] = []
        try:
            voice = self._build(context, self.noise, start_time, event, allocated)
        except Exception as exc:
            _LOGGER.warning("Failed to build %s voice: %s", event.name, exc, exc_info=True)
            for node in allocated:
                node.release()
            return None
        context.add_voice(voice)
        return voice

    def _build(
        self,
        context: AudioContext,
        noise: NoiseBuffer,
        start_time: float,
        event: EventDescriptor,
        allocated: list[AudioNode],
    ) -> ModalVoice:
        stop_time = start_time + event.duration + DECAY_TAIL_SECONDS

        exciter = BufferSource(noise, context.sample_rate)
        allocated.append(exciter)
        exciter.start(start_time)
        exciter.stop(stop_time)

        envelope = GainNode(0.0)
        allocated.append(envelope)
        envelope.gain.set_value_at_time(ENVELOPE_FLOOR, start_time)
        envelope.gain.linear_ramp_to_value_at_time(1.0, start_time + ATTACK_SECONDS)
        envelope.gain.exponential_ramp_to_value_at_time(ENVELOPE_FLOOR, start_time + event.duration)

        filters: list[BandpassFilter] = []
        mode_gains: list[GainNode] = []
        for mode in event.modes:
            frequency = mode.frequency * self._rng.uniform(1.0 - mode.detune, 1.0 + mode.detune)
            node = BandpassFilter(frequency, mode.q, context.sample_rate)
            allocated.append(node)
            filters.append(node)
            gain = GainNode(mode.gain * self._rng.uniform(1.0 - GAIN_JITTER, 1.0 + GAIN_JITTER))
            allocated.append(gain)
            mode_gains.append(gain)

        output = GainNode(event.master_gain * self.volume)
        allocated.append(output)

        return ModalVoice(
            event=event,
            start_time=start_time,
            exciter=exciter,
            envelope=envelope,
            filters=filters,
            mode_gains=mode_gains,
            output=output,
        )
