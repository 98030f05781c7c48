from __future__ import annotations

import logging
import os
import traceback
from datetime import datetime
from pathlib import Path

_LOGGER = logging.getLogger("keythock.logging")
_PACKAGE_LOGGER = "keythock"
_LOG_DIR_ENV = "KEYTHOCK_LOG_DIR"
_LOG_LEVEL_ENV = "KEYTHOCK_LOG_LEVEL"
_LOG_FILE = "keythock.log"


def _default_cache_dir() -> Path:
    return Path.home() / ".cache" / "keythock"


def get_log_dir() -> Path:
    configured = os.environ.get(_LOG_DIR_ENV)
    if configured:
        return Path(configured).expanduser()
    return _default_cache_dir() / "logs"


def get_log_path() -> Path:
    return get_log_dir() / _LOG_FILE


def configure_logging(level: str | int | None = None) -> None:
    """Install handlers on the package logger.

    A NullHandler is always present so library use stays silent. A rich console
    handler is added when a level is passed or ``KEYTHOCK_LOG_LEVEL`` is set.
    """

    logger = logging.getLogger(_PACKAGE_LOGGER)
    if not any(isinstance(handler, logging.NullHandler) for handler in logger.handlers):
        logger.addHandler(logging.NullHandler())

    resolved = level if level is not None else os.environ.get(_LOG_LEVEL_ENV)
    if not resolved:
        return

    from rich.logging import RichHandler

    if isinstance(resolved, str):
        resolved = resolved.upper()
    logger.setLevel(resolved)
    if any(isinstance(handler, RichHandler) for handler in logger.handlers):
        return
    handler = RichHandler(show_path=False, rich_tracebacks=True)
    handler.setFormatter(logging.Formatter("%(name)s %(message)s"))
    logger.addHandler(handler)


def log_exception(context: str, exc: BaseException) -> Path | None:
    try:
        log_dir = get_log_dir()
        log_dir.mkdir(parents=True, exist_ok=True)
        path = get_log_path()
        timestamp = datetime.now().isoformat()
        with path.open("a", encoding="utf-8") as handle:
            handle.write(f"[{timestamp}] {context} failed: {type(exc).__name__}: {exc}\n")
            traceback.print_exception(type(exc), exc, exc.__traceback__, file=handle)
            handle.write("\n")
        return path
    except Exception as log_exc:
        _LOGGER.warning("Failed to write log file: %s", log_exc, exc_info=True)
        return None
