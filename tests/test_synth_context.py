import numpy as np
import pytest

from tonekeys.synth_context import SynthContext, waveform
from tonekeys.voices import VoiceManager, WaveShape

SR = 8000


def test_silent_without_voices():
    ctx = SynthContext(SR)
    block = ctx.render(256)
    assert block.dtype == np.float32
    assert not block.any()
    assert ctx.current_time == pytest.approx(256 / SR)


@pytest.mark.parametrize("shape", list(WaveShape))
def test_waveforms_are_bounded(shape):
    values = waveform(shape, np.linspace(0, 3, 300))
    assert values.max() <= 1.0 + 1e-9
    assert values.min() >= -1.0 - 1e-9
    assert values.max() > 0.9


def test_voice_reaches_gain_and_fades_on_release():
    ctx = SynthContext(SR)
    manager = VoiceManager(ctx, gain_level=0.1, attack_time=0.005, release_time=0.1)
    manager.start_note("A4", 440.0)
    block = ctx.render(800)  # 100 ms
    assert np.abs(block[400:]).max() == pytest.approx(0.1, rel=0.05)

    voice = manager.voice("A4")
    manager.stop_note("A4")
    tail = ctx.render(1600)  # ramp runs over the first 800 frames
    assert np.abs(tail[800:]).max() == pytest.approx(0.0, abs=1e-6)
    assert np.abs(tail[:80]).max() > np.abs(tail[640:720]).max()
    assert voice.gain.target == 0.0


def test_unrouted_oscillator_is_not_heard():
    ctx = SynthContext(SR)
    osc = ctx.create_oscillator(220.0, WaveShape.SINE)
    gain = ctx.create_gain(0.5)
    ctx.connect(osc, gain)
    ctx.start(osc)
    assert not ctx.render(64).any()
    ctx.connect(gain, ctx.destination)
    assert ctx.render(64).any()
    ctx.stop(osc)
    assert not ctx.render(64).any()


def test_phase_is_continuous_across_blocks():
    ctx = SynthContext(SR)
    osc = ctx.create_oscillator(100.0, WaveShape.SINE)
    gain = ctx.create_gain(1.0)
    ctx.connect(osc, gain)
    ctx.connect(gain, ctx.destination)
    ctx.start(osc)
    joined = np.concatenate([ctx.render(37), ctx.render(91)])
    expected = np.sin(2 * np.pi * 100.0 * np.arange(128) / SR)
    np.testing.assert_allclose(joined, expected, atol=1e-5)


def test_changing_wave_shape_takes_effect_immediately():
    ctx = SynthContext(SR)
    osc = ctx.create_oscillator(100.0, WaveShape.SINE)
    gain = ctx.create_gain(1.0)
    ctx.connect(osc, gain)
    ctx.connect(gain, ctx.destination)
    ctx.start(osc)
    ctx.render(10)
    ctx.set_wave_shape(osc, WaveShape.SQUARE)
    block = ctx.render(40)
    assert set(np.round(np.abs(block), 5)) == {1.0}


def test_release_cleanup_follows_render_clock():
    ctx = SynthContext(SR)
    manager = VoiceManager(ctx, release_time=0.1)
    manager.start_note("C4", 261.63)
    ctx.render(80)
    manager.stop_note("C4")

    # Wall-clock time alone must not end the voice before its ramp is heard.
    ctx.render(400)  # 50 ms of the 100 ms release
    assert "C4" in manager
    ctx.render(400)
    assert "C4" not in manager
    assert not ctx.render(64).any()


def test_failing_callback_does_not_break_rendering():
    ctx = SynthContext(SR)
    calls = []

    def boom():
        raise RuntimeError("cleanup failed")

    ctx.call_later(0.01, boom)
    ctx.call_later(0.01, lambda: calls.append(ctx.current_time))
    block = ctx.render(160)
    assert block.shape == (160,)
    assert calls == [pytest.approx(0.02)]
