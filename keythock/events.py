from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType

# Relative frequency jitter per mode class.
BODY_DETUNE = 0.03
CASE_DETUNE = 0.05


@dataclass(frozen=True, slots=True)
class ModeDescriptor:
    """One resonant mode of a keypress event.

    Low-Q modes ring for a few milliseconds (transients), high-Q modes carry the
    body/case resonance; ringdown is roughly ``q / (pi * frequency)`` seconds.
    """

    frequency: float
    q: float
    gain: float
    detune: float = BODY_DETUNE


@dataclass(frozen=True, slots=True)
class EventDescriptor:
    name: str
    offset: float
    duration: float
    master_gain: float
    modes: tuple[ModeDescriptor, ...]


CLICK = EventDescriptor(
    name="click",
    offset=0.0,
    duration=0.002,
    master_gain=0.4,
    modes=(
        ModeDescriptor(1100.0, 8.0, 0.50),
        ModeDescriptor(2200.0, 5.0, 0.25),
        ModeDescriptor(3800.0, 3.0, 0.10),
    ),
)

# Bottom-out: the dominant "thock".
IMPACT = EventDescriptor(
    name="impact",
    offset=0.0015,
    duration=0.004,
    master_gain=0.8,
    modes=(
        ModeDescriptor(160.0, 28.0, 0.70, CASE_DETUNE),
        ModeDescriptor(280.0, 22.0, 0.50, CASE_DETUNE),
        ModeDescriptor(520.0, 18.0, 1.00),
        ModeDescriptor(780.0, 14.0, 0.60),
        ModeDescriptor(1150.0, 10.0, 0.35),
        ModeDescriptor(1800.0, 6.0, 0.20),
        ModeDescriptor(2900.0, 4.0, 0.10),
    ),
)

# Fixed +55 ms: there is no key-up signal at this layer.
UPSTROKE = EventDescriptor(
    name="upstroke",
    offset=0.055,
    duration=0.0015,
    master_gain=0.25,
    modes=(
        ModeDescriptor(1250.0, 7.0, 0.30),
        ModeDescriptor(2000.0, 5.0, 0.15),
        ModeDescriptor(200.0, 15.0, 0.20, CASE_DETUNE),
    ),
)

KEYPRESS_EVENTS: tuple[EventDescriptor, ...] = (CLICK, IMPACT, UPSTROKE)

EVENTS_BY_NAME: Mapping[str, EventDescriptor] = MappingProxyType(
    {event.name: event for event in KEYPRESS_EVENTS}
)
