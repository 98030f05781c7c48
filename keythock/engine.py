from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from .assets import load_sample
from .audio import FloatArray
from .choreography import KeypressChoreographer
from .config import EngineConfig
from .context import AudioContext
from .logging_utils import log_exception
from .noise import NoiseBuffer, generate_noise_buffer
from .preferences import JsonPreferenceStore, PreferenceStore
from .rand import RandomSource
from .sampler import SampleVoice
from .scheduler import TimerHost, TypingLoopScheduler
from .voice import ModalVoiceBuilder

_LOGGER = logging.getLogger("keythock.engine")

PLAYBACK_RATE_RANGE = (0.95, 1.05)

ContextFactory = Callable[[EngineConfig], AudioContext]
SampleLoader = Callable[[str, int], FloatArray]


def _realtime_context(config: EngineConfig) -> AudioContext:
    return AudioContext(
        sample_rate=config.audio.sample_rate,
        block_size=config.audio.block_size,
        realtime=True,
    )


def _load_sample(url: str, sample_rate: int) -> FloatArray:
    return load_sample(url, sample_rate=sample_rate)


class KeyboardSoundEngine:
    """Keypress sounds for an interactive surface.

    Picks the recorded key-press sample when one loaded, otherwise the modal
    synthesis choreography, and owns the enable/volume/typing-loop lifecycle.
    Sound is an enhancement: none of the public methods raise on audio
    problems, they log and degrade to silence or to the synthetic path.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        *,
        preferences: PreferenceStore | None = None,
        rng: RandomSource | None = None,
        timers: TimerHost | None = None,
        context_factory: ContextFactory | None = None,
        sample_loader: SampleLoader | None = None,
    ) -> None:
        self.config = config if config is not None else EngineConfig()
        self.preferences: PreferenceStore = (
            preferences if preferences is not None else JsonPreferenceStore()
        )
        self._rng = rng if rng is not None else RandomSource()
        self._context_factory = context_factory if context_factory is not None else _realtime_context
        self._sample_loader = sample_loader if sample_loader is not None else _load_sample

        self.context: AudioContext | None = None
        self.noise: NoiseBuffer | None = None
        self.builder: ModalVoiceBuilder | None = None
        self.choreographer: KeypressChoreographer | None = None
        self.key_press_sample: FloatArray | None = None
        self.typing_loop_sample: FloatArray | None = None
        self.loop_scheduler = TypingLoopScheduler(
            self._typing_loop_tick, rng=self._rng, timers=timers
        )

        self.enabled = self.preferences.get_bool(self.config.sound.storage_key, True)
        self.initialized = False
        self._setup_failed = False
        self._disposed = False
        self._loop_voice: SampleVoice | None = None

    async def init(self) -> None:
        if self.initialized or self._setup_failed or self._disposed:
            return
        audio = self.config.audio
        context: AudioContext | None = None
        try:
            context = self._context_factory(self.config)
            context.open()
            context.ramp_master_gain(audio.master_volume if self.enabled else 0.0, 0.0)
            noise = generate_noise_buffer(context.sample_rate, self._rng)
        except Exception as exc:
            _LOGGER.error("Failed to initialize audio: %s", exc, exc_info=True)
            log_exception("audio init", exc)
            self._setup_failed = True
            self.enabled = False
            if context is not None:
                context.close()
            return

        self.context = context
        self.noise = noise
        self.builder = ModalVoiceBuilder(
            context, noise, rng=self._rng, volume=audio.key_press_volume
        )
        self.choreographer = KeypressChoreographer(self.builder)
        self.initialized = True

        key_press, typing_loop = await asyncio.gather(
            self._load_asset(audio.key_press_url),
            self._load_asset(audio.typing_loop_url),
        )
        if self._disposed:
            return
        self.key_press_sample = key_press
        self.typing_loop_sample = typing_loop

    async def _load_asset(self, url: str | None) -> FloatArray | None:
        if not url or self.context is None:
            return None
        try:
            return await asyncio.to_thread(self._sample_loader, url, self.context.sample_rate)
        except Exception as exc:
            _LOGGER.info("Using synthetic sound instead of %s: %s", url, exc)
            return None

    @property
    def loop_running(self) -> bool:
        return self.loop_scheduler.running or self._loop_voice is not None

    def play_key_press(self) -> None:
        if not self.enabled or not self.initialized or self.context is None:
            return
        if self.key_press_sample is not None:
            self._play_sample(self.key_press_sample)
            return
        if self.choreographer is not None:
            self.choreographer.fire_keypress(self.context.current_time)

    def _play_sample(self, buffer: FloatArray) -> SampleVoice | None:
        context = self.context
        if context is None:
            return None
        voice = SampleVoice(
            buffer,
            context.sample_rate,
            start_time=context.current_time,
            gain=self.config.audio.key_press_volume,
            playback_rate=self._rng.uniform(*PLAYBACK_RATE_RANGE),
        )
        context.add_voice(voice)
        return voice

    def start_typing_loop(self) -> None:
        if not self.enabled or not self.initialized or self.context is None:
            return
        if self.typing_loop_sample is not None:
            if self._loop_voice is not None and not self._loop_voice.disposed:
                return
            audio = self.config.audio
            now = self.context.current_time
            voice = SampleVoice(
                self.typing_loop_sample,
                self.context.sample_rate,
                start_time=now,
                gain=0.0,
                loop=True,
            )
            voice.fade_in(audio.loop_volume, now, audio.fade_in_seconds)
            if self.context.add_voice(voice):
                self._loop_voice = voice
            return
        try:
            self.loop_scheduler.start()
        except RuntimeError as exc:
            _LOGGER.warning("Typing loop needs a running event loop: %s", exc)

    def _typing_loop_tick(self) -> None:
        if not self.enabled or self.context is None or self.choreographer is None:
            self.loop_scheduler.stop()
            return
        self.choreographer.fire_keypress(self.context.current_time)

    def stop_typing_loop(self) -> None:
        voice, self._loop_voice = self._loop_voice, None
        if voice is not None and self.context is not None:
            voice.stop(self.context.current_time)
        self.loop_scheduler.stop()

    def set_enabled(self, enabled: bool) -> None:
        self.enabled = enabled
        audio = self.config.audio
        if self.context is not None and not self.context.closed:
            if enabled:
                self.context.ramp_master_gain(audio.master_volume, audio.fade_in_seconds)
            else:
                self.context.ramp_master_gain(0.0, audio.fade_out_seconds)
        if not enabled:
            self.stop_typing_loop()
        self.preferences.set_bool(self.config.sound.storage_key, enabled)

    def toggle(self) -> bool:
        self.set_enabled(not self.enabled)
        return self.enabled

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        self.stop_typing_loop()
        if self.context is not None:
            self.context.close()
        self.initialized = False
