from __future__ import annotations

import numpy as np

from .audio import FloatArray
from .graph import BufferSource, GainNode, Voice


class SampleVoice(Voice):
    """A recorded sample through one gain stage.

    One-shot voices finish when the buffer has played out at the chosen rate;
    looping voices run until ``stop`` is called.
    """

    def __init__(
        self,
        buffer: FloatArray,
        sample_rate: int,
        *,
        start_time: float,
        gain: float = 1.0,
        playback_rate: float = 1.0,
        loop: bool = False,
    ) -> None:
        source = BufferSource(buffer, sample_rate, playback_rate=playback_rate, loop=loop)
        source.start(start_time)
        super().__init__(start_time, source.end_time)
        self.source = self.own(source)
        self.gain = self.own(GainNode(gain))

    @property
    def loop(self) -> bool:
        return self.source.loop

    def fade_in(self, target: float, start_time: float, seconds: float) -> None:
        self.gain.gain.set_value_at_time(0.0, start_time)
        self.gain.gain.linear_ramp_to_value_at_time(target, start_time + max(seconds, 0.0))

    def stop(self, when: float) -> None:
        if self.disposed:
            return
        self.source.stop(when)
        self.stop_time = self.source.end_time

    def render(self, times: FloatArray) -> FloatArray:
        if self.disposed:
            return np.zeros(times.shape, dtype=np.float64)
        return self.gain.process(self.source.render(times), times)
