from __future__ import annotations

from collections.abc import Sequence

from .events import KEYPRESS_EVENTS, EventDescriptor
from .voice import ModalVoice, ModalVoiceBuilder


class KeypressChoreographer:
    """Fires the click, impact and upstroke voices of one logical keypress.

    All offsets are taken from the single ``trigger_time`` passed in, so the
    relative timing is exact; the voices are otherwise independent.
    """

    def __init__(
        self,
        builder: ModalVoiceBuilder,
        events: Sequence[EventDescriptor] = KEYPRESS_EVENTS,
    ) -> None:
        self.builder = builder
        self.events = tuple(events)

    def fire_keypress(self, trigger_time: float) -> list[ModalVoice]:
        voices: list[ModalVoice] = []
        for event in self.events:
            voice = self.builder.trigger(trigger_time + event.offset, event)
            if voice is not None:
                voices.append(voice)
        return voices
