import numpy as np
import pytest

from tonekeys.yin import cumulative_mean_normalized_difference, yin_pitch

SR = 44_100


def _sine(freq: float, size: int = 4096, sr: int = SR) -> np.ndarray:
    t = np.arange(size) / sr
    return np.sin(2 * np.pi * freq * t).astype(np.float32)


@pytest.mark.parametrize("freq", [220.0, 110.0, 440.0, 659.25])
def test_pure_tone_within_one_percent(freq):
    estimate = yin_pitch(_sine(freq), SR)
    assert estimate is not None
    assert estimate == pytest.approx(freq, rel=0.01)


def test_220_hz_with_2048_window():
    estimate = yin_pitch(_sine(220.0, size=2048), SR)
    assert estimate == pytest.approx(220.0, rel=0.01)


def test_tone_with_harmonics_reports_fundamental():
    t = np.arange(4096) / SR
    signal = (
        np.sin(2 * np.pi * 196.0 * t)
        + 0.5 * np.sin(2 * np.pi * 392.0 * t)
        + 0.25 * np.sin(2 * np.pi * 588.0 * t)
    )
    assert yin_pitch(signal, SR) == pytest.approx(196.0, rel=0.01)


def test_silence_has_no_estimate():
    assert yin_pitch(np.zeros(4096, dtype=np.float32), SR) is None


def test_noise_has_no_estimate():
    rng = np.random.default_rng(7)
    assert yin_pitch(rng.normal(size=4096), SR) is None


def test_estimate_never_exceeds_max_frequency():
    # 1500 Hz lies above the default 880 Hz ceiling.
    estimate = yin_pitch(_sine(1500.0), SR)
    assert estimate is None or estimate <= 880.0 * 1.01


def test_short_window_returns_none():
    assert yin_pitch(_sine(220.0, size=40), SR) is None


def test_deterministic():
    window = _sine(330.0)
    assert yin_pitch(window, SR) == yin_pitch(window.copy(), SR)


def test_cmnd_starts_at_one_and_handles_zero_sum():
    cmnd = cumulative_mean_normalized_difference(np.zeros(10))
    assert np.all(cmnd == 1.0)


def test_invalid_arguments():
    with pytest.raises(ValueError):
        yin_pitch(_sine(220.0), 0)
    with pytest.raises(ValueError):
        yin_pitch(_sine(220.0), SR, min_frequency=900.0, max_frequency=100.0)
