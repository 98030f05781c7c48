from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from .rand import RandomSource

_LOGGER = logging.getLogger("keythock.scheduler")

WARMUP_SECONDS = 0.5
MIN_INTERVAL_SECONDS = 0.10
MAX_INTERVAL_SECONDS = 0.25


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class TimerHost(Protocol):
    """Anything that can run a callback later; ``asyncio`` loops qualify."""

    def call_later(self, delay: float, callback: Callable[[], object]) -> TimerHandle: ...


@dataclass(slots=True)
class LoopState:
    enabled: bool = False
    pending_timer: TimerHandle | None = None


class TypingLoopScheduler:
    """Self-rescheduling timer chain that simulates ambient typing.

    At most one timer is pending at any time. ``stop`` cancels only the next,
    not-yet-fired iteration; sounds already started keep decaying.
    """

    def __init__(
        self,
        on_fire: Callable[[], object],
        *,
        rng: RandomSource | None = None,
        timers: TimerHost | None = None,
        warmup: float = WARMUP_SECONDS,
        interval: tuple[float, float] = (MIN_INTERVAL_SECONDS, MAX_INTERVAL_SECONDS),
    ) -> None:
        self._on_fire = on_fire
        self._rng = rng if rng is not None else RandomSource()
        self._timers = timers
        self._active_timers: TimerHost | None = None
        self.warmup = warmup
        self.interval = interval
        self.state = LoopState()

    @property
    def running(self) -> bool:
        return self.state.enabled

    def start(self) -> None:
        """Stopped -> Running. Needs a running asyncio loop unless ``timers`` was given."""

        if self.state.enabled:
            return
        timers = self._timers if self._timers is not None else asyncio.get_running_loop()
        self._active_timers = timers
        self.state.enabled = True
        self.state.pending_timer = timers.call_later(self.warmup, self._fire)

    def stop(self) -> None:
        self.state.enabled = False
        handle, self.state.pending_timer = self.state.pending_timer, None
        if handle is not None:
            handle.cancel()

    def next_delay(self) -> float:
        low, high = self.interval
        return self._rng.uniform(low, high)

    def _fire(self) -> None:
        self.state.pending_timer = None
        if not self.state.enabled:
            return
        try:
            self._on_fire()
        except Exception as exc:
            _LOGGER.warning("Typing loop callback failed: %s", exc, exc_info=True)
        # The callback may have restarted the loop, which already armed a timer.
        if not self.state.enabled or self.state.pending_timer is not None:
            return
        if self._active_timers is None:
            return
        self.state.pending_timer = self._active_timers.call_later(self.next_delay(), self._fire)
