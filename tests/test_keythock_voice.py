from __future__ import annotations

import logging

import numpy as np
import pytest

import keythock.voice as voice_module
from keythock.context import AudioContext
from keythock.events import CLICK, IMPACT, UPSTROKE
from keythock.graph import BufferSource
from keythock.noise import generate_noise_buffer
from keythock.rand import ConstantRandomSource, RandomSource
from keythock.voice import DECAY_TAIL_SECONDS, ModalVoice, ModalVoiceBuilder

SR = 8_000


def _context() -> AudioContext:
    context = AudioContext(sample_rate=SR, block_size=64, realtime=False)
    context.open()
    return context


def _builder(context: AudioContext, rng: RandomSource | None = None, **kwargs: float) -> ModalVoiceBuilder:
    noise = generate_noise_buffer(SR, RandomSource(seed=0))
    return ModalVoiceBuilder(context, noise, rng=rng or ConstantRandomSource(), **kwargs)


def _render_until(context: AudioContext, seconds: float) -> np.ndarray:
    chunks = []
    while context.current_time < seconds:
        chunks.append(context.render(context.block_size))
    return np.concatenate(chunks)


def test_trigger_schedules_voice_lifetime() -> None:
    context = _context()
    builder = _builder(context)

    voice = builder.trigger(0.25, IMPACT)

    assert isinstance(voice, ModalVoice)
    assert voice.start_time == 0.25
    assert voice.stop_time == pytest.approx(0.25 + IMPACT.duration + DECAY_TAIL_SECONDS)
    assert voice.stop_time >= voice.start_time + IMPACT.duration
    assert voice.exciter.start_time == 0.25
    assert voice.exciter.stop_time == pytest.approx(voice.stop_time)
    assert context.active_voices == (voice,)


def test_exciter_shares_the_noise_buffer() -> None:
    context = _context()
    builder = _builder(context)

    first = builder.trigger(0.0, CLICK)
    second = builder.trigger(0.0, CLICK)

    assert first is not None and second is not None
    assert first.exciter.buffer is builder.noise
    assert second.exciter.buffer is builder.noise


def test_envelope_rises_then_decays_without_reaching_zero() -> None:
    context = _context()
    voice = _builder(context).trigger(1.0, CLICK)
    assert voice is not None
    gain = voice.envelope.gain

    assert gain.value_at(1.0) == pytest.approx(0.001)
    assert gain.value_at(1.0001) == pytest.approx(1.0)
    assert gain.value_at(1.0 + CLICK.duration) == pytest.approx(0.001)
    samples = gain.values(np.linspace(1.0, 1.2, 2_000))
    assert np.all(samples > 0.0)


def test_constant_draws_keep_literal_modes() -> None:
    context = _context()
    voice = _builder(context, volume=0.5).trigger(0.0, IMPACT)
    assert voice is not None

    literal = [(m.frequency, m.q, m.gain) for m in IMPACT.modes]
    realized = [(m.frequency, m.q, m.gain) for m in voice.modes]
    assert realized == pytest.approx(literal)
    assert voice.output.gain.default_value == pytest.approx(0.8 * 0.5)


@pytest.mark.parametrize("event", [CLICK, IMPACT, UPSTROKE])
def test_jitter_stays_within_documented_bounds(event) -> None:
    context = _context()
    builder = _builder(context, rng=RandomSource(seed=11))

    for _ in range(50):
        voice = builder.trigger(0.0, event)
        assert voice is not None
        for template, realized in zip(event.modes, voice.modes):
            ratio = realized.frequency / template.frequency
            assert abs(ratio - 1.0) <= template.detune + 1e-12
            assert 0.85 - 1e-12 <= realized.gain / template.gain <= 1.15 + 1e-12
            assert realized.q == template.q


def test_extreme_draws_hit_the_jitter_edges() -> None:
    context = _context()
    low = _builder(context, rng=ConstantRandomSource(0.0)).trigger(0.0, IMPACT)
    assert low is not None

    assert low.modes[0].frequency == pytest.approx(160.0 * 0.95)
    assert low.modes[2].frequency == pytest.approx(520.0 * 0.97)
    assert low.modes[2].gain == pytest.approx(1.0 * 0.85)


def test_templates_are_not_modified_by_triggering() -> None:
    context = _context()
    before = IMPACT.modes
    _builder(context, rng=RandomSource(seed=2)).trigger(0.0, IMPACT)
    assert IMPACT.modes == before
    assert IMPACT.modes[2].frequency == 520.0


def test_voice_is_silent_before_start_and_audible_after() -> None:
    context = _context()
    _builder(context).trigger(0.016, IMPACT)

    audio = _render_until(context, 0.1)
    start = int(0.016 * SR)

    assert not np.any(audio[:start])
    assert np.max(np.abs(audio[start:])) > 0.0


def test_voice_is_disposed_after_stop_time() -> None:
    context = _context()
    voice = _builder(context).trigger(0.0, CLICK)
    assert voice is not None
    nodes = voice.nodes

    _render_until(context, voice.stop_time - 0.01)
    assert not voice.disposed

    _render_until(context, voice.stop_time + 0.01)
    assert voice.disposed
    assert context.active_voices == ()
    assert all(node.released for node in nodes)

    voice.dispose()
    assert not np.any(voice.render(np.zeros(4)))


def test_missing_noise_buffer_is_a_logged_no_op(caplog: pytest.LogCaptureFixture) -> None:
    context = _context()
    builder = ModalVoiceBuilder(context, None)

    with caplog.at_level(logging.WARNING, logger="keythock.voice"):
        assert builder.trigger(0.0, CLICK) is None

    assert context.active_voices == ()
    assert "unavailable" in caplog.text


def test_closed_context_is_a_no_op() -> None:
    context = _context()
    builder = _builder(context)
    context.close()

    assert builder.trigger(0.0, CLICK) is None
    assert context.active_voices == ()


def test_build_failure_releases_allocated_nodes(monkeypatch: pytest.MonkeyPatch) -> None:
    created: list[BufferSource] = []

    class RecordingSource(BufferSource):
        def __init__(self, *args, **kwargs) -> None:
            super().__init__(*args, **kwargs)
            created.append(self)

    def _broken_voice(**kwargs) -> ModalVoice:
        raise RuntimeError("boom")

    monkeypatch.setattr(voice_module, "BufferSource", RecordingSource)
    monkeypatch.setattr(voice_module, "ModalVoice", _broken_voice)
    context = _context()

    assert _builder(context).trigger(0.0, CLICK) is None
    assert created
    assert all(node.released for node in created)
    assert context.active_voices == ()
