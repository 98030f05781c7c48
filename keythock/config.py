from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .audio import SAMPLE_RATE
from .errors import InvalidConfigError

_LOGGER = logging.getLogger("keythock.config")
_CONFIG_PATH_ENV = "KEYTHOCK_CONFIG"


class AudioSettings(BaseModel):
    """Volumes, fades and optional recorded assets."""

    master_volume: float = Field(default=0.5, ge=0.0, le=1.0)
    loop_volume: float = Field(default=0.3, ge=0.0, le=1.0)
    key_press_volume: float = Field(default=0.6, ge=0.0, le=1.0)
    fade_in_ms: float = Field(default=1000.0, ge=0.0)
    fade_out_ms: float = Field(default=500.0, ge=0.0)
    sample_rate: int = Field(default=SAMPLE_RATE, gt=0)
    block_size: int = Field(default=256, gt=0)
    key_press_url: str | None = None
    typing_loop_url: str | None = None

    model_config = ConfigDict(frozen=True, extra="forbid")

    @property
    def fade_in_seconds(self) -> float:
        return self.fade_in_ms / 1000.0

    @property
    def fade_out_seconds(self) -> float:
        return self.fade_out_ms / 1000.0


class SoundSettings(BaseModel):
    storage_key: str = "keythock.sound_enabled"

    model_config = ConfigDict(frozen=True, extra="forbid")


class EngineConfig(BaseModel):
    audio: AudioSettings = Field(default_factory=AudioSettings)
    sound: SoundSettings = Field(default_factory=SoundSettings)

    model_config = ConfigDict(frozen=True, extra="forbid")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EngineConfig":
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise InvalidConfigError(f"Invalid engine config: {exc}") from exc


def load_config(path: str | Path | None = None) -> EngineConfig:
    """Read an ``EngineConfig`` from JSON, or return the defaults.

    Without ``path`` the ``KEYTHOCK_CONFIG`` environment variable is consulted.
    """

    configured = path if path is not None else os.environ.get(_CONFIG_PATH_ENV)
    if not configured:
        return EngineConfig()
    target = Path(configured).expanduser()
    try:
        raw = json.loads(target.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise InvalidConfigError(f"Could not read config {target}: {exc}") from exc
    if not isinstance(raw, Mapping):
        raise InvalidConfigError(f"Config {target} must contain a JSON object")
    config = EngineConfig.from_dict(raw)
    _LOGGER.debug("Loaded config from %s", target)
    return config
