from __future__ import annotations

import numpy as np
import pytest

from keythock.audio import block_times
from keythock.graph import AudioParam, BandpassFilter, BufferSource, GainNode, Voice


def _sine(freq: float, seconds: float, sr: int) -> np.ndarray:
    t = np.arange(int(seconds * sr)) / sr
    return np.sin(2 * np.pi * freq * t)


class TestAudioParam:
    def test_envelope_shape(self) -> None:
        param = AudioParam(0.0)
        param.set_value_at_time(0.001, 1.0)
        param.linear_ramp_to_value_at_time(1.0, 1.0001)
        param.exponential_ramp_to_value_at_time(0.001, 1.0041)

        assert param.value_at(0.5) == 0.0
        assert param.value_at(1.0) == pytest.approx(0.001)
        assert param.value_at(1.0001) == pytest.approx(1.0)
        assert param.value_at(1.0021) == pytest.approx(np.sqrt(0.001), rel=1e-6)
        assert param.value_at(1.0041) == pytest.approx(0.001)
        assert param.value_at(5.0) == pytest.approx(0.001)

    def test_exponential_ramp_never_reaches_zero(self) -> None:
        param = AudioParam(1.0)
        param.set_value_at_time(1.0, 0.0)
        param.exponential_ramp_to_value_at_time(0.001, 0.01)
        values = param.values(np.linspace(0.0, 0.02, 500))
        assert np.all(values > 0.0)

    def test_first_ramp_starts_from_default_at_zero(self) -> None:
        param = AudioParam(1.0)
        param.linear_ramp_to_value_at_time(0.0, 2.0)
        assert param.value_at(1.0) == pytest.approx(0.5)

    def test_exponential_ramp_rejects_zero_target(self) -> None:
        with pytest.raises(ValueError):
            AudioParam(1.0).exponential_ramp_to_value_at_time(0.0, 1.0)

    def test_cancel_and_hold_freezes_current_value(self) -> None:
        param = AudioParam(0.0)
        param.set_value_at_time(0.0, 0.0)
        param.linear_ramp_to_value_at_time(1.0, 1.0)

        held = param.cancel_and_hold_at_time(0.5)

        assert held == pytest.approx(0.5)
        assert param.value_at(0.9) == pytest.approx(0.5)
        assert param.value_at(3.0) == pytest.approx(0.5)

    def test_cancel_scheduled_values_drops_later_events(self) -> None:
        param = AudioParam(0.2)
        param.set_value_at_time(0.4, 1.0)
        param.set_value_at_time(0.8, 2.0)
        param.cancel_scheduled_values(1.5)
        assert param.value_at(3.0) == pytest.approx(0.4)


class TestBandpassFilter:
    def test_passes_centre_frequency(self) -> None:
        sr = 8_000
        node = BandpassFilter(1_000.0, 5.0, sr)
        out = node.process(_sine(1_000.0, 1.0, sr))
        steady = np.max(np.abs(out[sr // 2 :]))
        assert 0.9 < steady < 1.1

    def test_attenuates_far_frequencies(self) -> None:
        sr = 8_000
        node = BandpassFilter(1_000.0, 5.0, sr)
        out = node.process(_sine(100.0, 1.0, sr))
        assert np.max(np.abs(out[sr // 2 :])) < 0.1

    def test_state_carries_across_blocks(self) -> None:
        sr = 8_000
        signal = np.random.default_rng(0).uniform(-1.0, 1.0, 1_000)
        whole = BandpassFilter(520.0, 18.0, sr).process(signal)
        split = BandpassFilter(520.0, 18.0, sr)
        joined = np.concatenate([split.process(signal[:333]), split.process(signal[333:])])
        assert np.allclose(whole, joined)

    def test_released_filter_is_silent(self) -> None:
        node = BandpassFilter(1_000.0, 5.0, 8_000)
        node.release()
        node.release()
        assert node.released
        assert not np.any(node.process(np.ones(16)))


class TestBufferSource:
    def test_plays_buffer_from_start_time(self) -> None:
        buffer = np.array([1.0, 2.0, 3.0, 4.0])
        source = BufferSource(buffer, 4)
        source.start(1.0)

        out = source.render(block_times(0.0, 12, 4))

        assert out.tolist() == [0, 0, 0, 0, 1, 2, 3, 4, 0, 0, 0, 0]

    def test_loop_wraps_until_stopped(self) -> None:
        source = BufferSource(np.array([1.0, 2.0]), 2, loop=True)
        source.start(0.0)
        source.stop(2.5)

        out = source.render(block_times(0.0, 8, 2))

        assert out.tolist() == [1, 2, 1, 2, 1, 0, 0, 0]

    def test_stop_cuts_playback(self) -> None:
        source = BufferSource(np.ones(8), 4)
        source.start(0.0)
        source.stop(0.5)
        assert source.end_time == pytest.approx(0.5)
        assert source.render(block_times(0.0, 4, 4)).tolist() == [1, 1, 0, 0]

    def test_playback_rate_shortens_the_sample(self) -> None:
        source = BufferSource(np.ones(100), 100, playback_rate=2.0)
        source.start(0.0)
        assert source.end_time == pytest.approx(0.5)

    def test_start_twice_is_rejected(self) -> None:
        source = BufferSource(np.ones(4), 4)
        source.start(0.0)
        with pytest.raises(RuntimeError):
            source.start(1.0)

    def test_release_drops_buffer_but_not_shared_data(self) -> None:
        shared = np.ones(4)
        source = BufferSource(shared, 4)
        source.start(0.0)
        source.release()
        source.release()
        source.stop(1.0)

        assert source.buffer is None
        assert not np.any(source.render(block_times(0.0, 4, 4)))
        assert np.array_equal(shared, np.ones(4))


def test_gain_node_follows_automation() -> None:
    node = GainNode(1.0)
    assert node.process(np.ones(3), block_times(0.0, 3, 1)).tolist() == [1, 1, 1]

    node.gain.set_value_at_time(0.0, 0.0)
    node.gain.linear_ramp_to_value_at_time(1.0, 2.0)
    assert node.process(np.ones(3), block_times(0.0, 3, 1)).tolist() == [0.0, 0.5, 1.0]


def test_voice_dispose_releases_nodes_once() -> None:
    voice = Voice(0.0, 1.0)
    gain = voice.own(GainNode())
    source = voice.own(BufferSource(np.ones(4), 4))
    disposed: list[Voice] = []
    voice.add_dispose_callback(disposed.append)

    voice.dispose()
    voice.dispose()

    assert voice.disposed
    assert gain.released and source.released
    assert voice.nodes == ()
    assert disposed == [voice]


def test_voice_finishes_at_stop_time() -> None:
    voice = Voice(0.0, 1.0)
    assert not voice.is_finished(0.999)
    assert voice.is_finished(1.0)
