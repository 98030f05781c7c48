from __future__ import annotations

import io
import logging
import math
import urllib.parse
import urllib.request
from pathlib import Path

import numpy as np
import soundfile as sf  # type: ignore[import]
from scipy.signal import resample_poly  # type: ignore[import]

from .audio import SAMPLE_RATE, FloatArray
from .errors import AssetLoadError

_LOGGER = logging.getLogger("keythock.assets")
_FETCH_TIMEOUT = 10.0


def _read_bytes(source: str | Path) -> bytes:
    text = str(source)
    parsed = urllib.parse.urlparse(text)
    if parsed.scheme in ("http", "https"):
        request = urllib.request.Request(text, headers={"User-Agent": "keythock"})
        with urllib.request.urlopen(request, timeout=_FETCH_TIMEOUT) as response:
            return response.read()
    if parsed.scheme == "file":
        return Path(urllib.request.url2pathname(parsed.path)).read_bytes()
    return Path(text).expanduser().read_bytes()


def load_sample(source: str | Path, *, sample_rate: int = SAMPLE_RATE) -> FloatArray:
    """Fetch and decode one audio asset as mono float64 at ``sample_rate``.

    Accepts a filesystem path or a ``file://``/``http(s)://`` URL. Any fetch or
    decode problem surfaces as ``AssetLoadError``.
    """

    try:
        data = _read_bytes(source)
        decoded, file_rate = sf.read(io.BytesIO(data), dtype="float64", always_2d=True)
    except Exception as exc:
        raise AssetLoadError(f"Could not load audio asset {source!s}: {exc}") from exc

    mono = np.asarray(decoded, dtype=np.float64).mean(axis=1)
    if mono.size == 0:
        raise AssetLoadError(f"Audio asset {source!s} is empty")
    if int(file_rate) != sample_rate:
        divisor = math.gcd(int(file_rate), sample_rate)
        mono = np.asarray(
            resample_poly(mono, sample_rate // divisor, int(file_rate) // divisor),
            dtype=np.float64,
        )
    _LOGGER.debug("Loaded %s (%d frames at %d Hz)", source, mono.size, sample_rate)
    mono.setflags(write=False)
    return mono
