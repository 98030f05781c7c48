from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Protocol

_LOGGER = logging.getLogger("keythock.preferences")
_PREFS_PATH_ENV = "KEYTHOCK_PREFS_PATH"


class PreferenceStore(Protocol):
    def get_bool(self, key: str, default: bool) -> bool: ...

    def set_bool(self, key: str, value: bool) -> None: ...


def default_preferences_path() -> Path:
    configured = os.environ.get(_PREFS_PATH_ENV)
    if configured:
        return Path(configured).expanduser()
    return Path.home() / ".cache" / "keythock" / "preferences.json"


def _coerce_bool(value: Any, default: bool) -> bool:
    match value:
        case bool():
            return value
        case "true" | "True" | "1":
            return True
        case "false" | "False" | "0":
            return False
        case _:
            return default


class MemoryPreferenceStore:
    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self.values: dict[str, Any] = dict(initial or {})

    def get_bool(self, key: str, default: bool) -> bool:
        return _coerce_bool(self.values.get(key), default)

    def set_bool(self, key: str, value: bool) -> None:
        self.values[key] = bool(value)


class JsonPreferenceStore:
    """Preferences kept in one small JSON object on disk.

    Unreadable files read as empty; failed writes are logged and dropped.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path) if path is not None else default_preferences_path()

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            _LOGGER.warning("Ignoring unreadable preferences %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def get_bool(self, key: str, default: bool) -> bool:
        return _coerce_bool(self._load().get(key), default)

    def set_bool(self, key: str, value: bool) -> None:
        data = self._load()
        data[key] = bool(value)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        except OSError as exc:
            _LOGGER.warning("Failed to save preferences to %s: %s", self.path, exc, exc_info=True)
