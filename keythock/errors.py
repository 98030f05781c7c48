from __future__ import annotations


class KeythockError(Exception):
    """Base error for the keythock library."""


class InvalidConfigError(KeythockError):
    """Raised when a config cannot be parsed or validated."""


class AudioSetupError(KeythockError):
    """Raised when the audio pipeline cannot be created or opened."""


class AssetLoadError(KeythockError):
    """Raised when an optional audio asset cannot be fetched or decoded."""
