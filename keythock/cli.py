from __future__ import annotations

import argparse
import asyncio
import logging
import math
import os
from pathlib import Path

import numpy as np
from rich.console import Console
from rich.markup import escape

from .audio import SAMPLE_RATE, Float32Array, write_wav
from .choreography import KeypressChoreographer
from .config import EngineConfig, load_config
from .context import AudioContext, sounddevice_available
from .engine import KeyboardSoundEngine
from .errors import AudioSetupError
from .logging_utils import configure_logging, get_log_path, log_exception
from .noise import generate_noise_buffer
from .preferences import MemoryPreferenceStore, default_preferences_path
from .rand import RandomSource
from .scheduler import MAX_INTERVAL_SECONDS, MIN_INTERVAL_SECONDS
from .voice import DECAY_TAIL_SECONDS, ModalVoiceBuilder

_LOGGER = logging.getLogger("keythock.cli")
_CONSOLE = Console()
_LEAD_IN_SECONDS = 0.05


def render_burst(
    presses: int,
    *,
    sample_rate: int = SAMPLE_RATE,
    volume: float = 1.0,
    seed: int | None = None,
) -> Float32Array:
    """Render a synthetic typing burst offline, one keypress per jittered interval."""

    rng = RandomSource(seed=seed)
    context = AudioContext(sample_rate=sample_rate, realtime=False)
    context.open()
    builder = ModalVoiceBuilder(
        context, generate_noise_buffer(sample_rate, rng), rng=rng, volume=volume
    )
    choreographer = KeypressChoreographer(builder)

    trigger = _LEAD_IN_SECONDS
    last_trigger = trigger
    for _ in range(max(presses, 0)):
        choreographer.fire_keypress(trigger)
        last_trigger = trigger
        trigger += rng.uniform(MIN_INTERVAL_SECONDS, MAX_INTERVAL_SECONDS)

    tail = max(event.offset + event.duration for event in choreographer.events)
    total_frames = math.ceil((last_trigger + tail + DECAY_TAIL_SECONDS) * sample_rate)
    chunks: list[Float32Array] = []
    rendered = 0
    try:
        while rendered < total_frames:
            frames = min(context.block_size, total_frames - rendered)
            chunks.append(context.render(frames))
            rendered += frames
    finally:
        context.close()
    if not chunks:
        return np.array([], dtype=np.float32)
    return np.concatenate(chunks)


async def _play_live(seconds: float, config: EngineConfig) -> None:
    engine = KeyboardSoundEngine(config, preferences=MemoryPreferenceStore())
    await engine.init()
    if not engine.initialized:
        raise AudioSetupError("Audio output could not be initialized; see the log for details.")
    try:
        engine.start_typing_loop()
        await asyncio.sleep(seconds)
        engine.stop_typing_loop()
        await asyncio.sleep(DECAY_TAIL_SECONDS + 0.1)
    finally:
        engine.dispose()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="keythock")
    parser.add_argument("--config", type=str, default=None, help="Path to a JSON engine config.")
    sub = parser.add_subparsers(dest="command", required=True)

    render = sub.add_parser("render", help="Render a synthetic typing burst to a wav file.")
    render.add_argument("--presses", type=int, default=8)
    render.add_argument("--output", type=str, default="keythock.wav")
    render.add_argument("--seed", type=int, default=None)
    render.add_argument("--sample-rate", type=int, default=None)

    play = sub.add_parser("play", help="Play the typing loop through the sound card.")
    play.add_argument("--seconds", type=float, default=3.0)

    sub.add_parser("doctor", help="Check audio output and storage paths.")
    return parser


def main(argv: list[str] | None = None) -> int:
    configure_logging()
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        config = load_config(args.config)

        if args.command == "render":
            sample_rate = args.sample_rate or config.audio.sample_rate
            with _CONSOLE.status("Rendering keypresses"):
                audio = render_burst(
                    args.presses,
                    sample_rate=sample_rate,
                    volume=config.audio.key_press_volume,
                    seed=args.seed,
                )
            path = write_wav(Path(args.output), audio, sample_rate=sample_rate)
            _CONSOLE.print(f"Wrote {args.presses} keypresses to {path} (sr={sample_rate})")
            return 0

        if args.command == "play":
            asyncio.run(_play_live(args.seconds, config))
            return 0

        if args.command == "doctor":
            report = [
                f"sounddevice available: {sounddevice_available()}",
                f"Preferences file: {default_preferences_path()}",
                f"Log file: {get_log_path()}",
                f"Config file: {os.environ.get('KEYTHOCK_CONFIG') or '(defaults)'}",
                "Hints:",
                "- Set KEYTHOCK_LOG_LEVEL=DEBUG to see engine logs on the console.",
                "- Install PortAudio if sounddevice is missing a backend.",
            ]
            for line in report:
                _CONSOLE.print(line)
            return 0

        parser.print_help()
        return 1
    except Exception as exc:
        debug = bool(os.environ.get("KEYTHOCK_DEBUG"))
        _LOGGER.warning("keythock CLI failed: %s", exc, exc_info=debug)
        log_exception("keythock CLI", exc)
        _CONSOLE.print(f"[bold red]keythock failed:[/] {type(exc).__name__}: {escape(str(exc))}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
