from __future__ import annotations

from .audio import SAMPLE_RATE
from .choreography import KeypressChoreographer
from .config import AudioSettings, EngineConfig, SoundSettings, load_config
from .context import AudioContext
from .engine import KeyboardSoundEngine
from .errors import AssetLoadError, AudioSetupError, InvalidConfigError, KeythockError
from .events import CLICK, IMPACT, KEYPRESS_EVENTS, UPSTROKE, EventDescriptor, ModeDescriptor
from .logging_utils import configure_logging as _configure_logging
from .noise import generate_noise_buffer
from .preferences import JsonPreferenceStore, MemoryPreferenceStore, PreferenceStore
from .rand import ConstantRandomSource, RandomSource
from .scheduler import LoopState, TypingLoopScheduler
from .voice import ModalVoice, ModalVoiceBuilder

__all__ = [
    "SAMPLE_RATE",
    "AssetLoadError",
    "AudioContext",
    "AudioSettings",
    "AudioSetupError",
    "CLICK",
    "ConstantRandomSource",
    "EngineConfig",
    "EventDescriptor",
    "IMPACT",
    "InvalidConfigError",
    "JsonPreferenceStore",
    "KEYPRESS_EVENTS",
    "KeyboardSoundEngine",
    "KeypressChoreographer",
    "KeythockError",
    "LoopState",
    "MemoryPreferenceStore",
    "ModalVoice",
    "ModalVoiceBuilder",
    "ModeDescriptor",
    "PreferenceStore",
    "RandomSource",
    "SoundSettings",
    "TypingLoopScheduler",
    "UPSTROKE",
    "generate_noise_buffer",
    "load_config",
]

__version__ = "0.1.0"

_configure_logging()
del _configure_logging
