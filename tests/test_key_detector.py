import numpy as np
import pytest

from tonekeys.engine import NoteEvent
from tonekeys.key_detector import (
    KRUMHANSL_MAJOR,
    KeyDetector,
    KeyMode,
    pearson_correlation,
)

C_MAJOR_SCALE = [0, 2, 4, 5, 7, 9, 11]


def _all_correlations(histogram: np.ndarray) -> dict[tuple[int, KeyMode], float]:
    normalized = histogram / (histogram.sum() or 1.0)
    return {
        (tonic, mode): pearson_correlation(normalized, np.roll(mode.profile, tonic))
        for tonic in range(12)
        for mode in KeyMode
    }


def test_decay_strictly_shrinks_bins_without_input():
    detector = KeyDetector(decay_factor=0.9)
    for pc in range(12):
        detector.add_pitch(pc, weight=pc + 1)
    previous = detector.histogram
    for _ in range(20):
        detector.decay()
        current = detector.histogram
        assert np.all(current < previous)
        previous = current
    assert previous.max() < 12 * 0.9**20 + 1e-9


def test_add_pitch_decays_before_accumulating():
    detector = KeyDetector(decay_factor=0.5)
    detector.add_pitch(0)
    detector.add_pitch(0)
    assert detector.histogram[0] == pytest.approx(1.5)


def test_no_decay_at_factor_one():
    detector = KeyDetector(decay_factor=1.0)
    for _ in range(3):
        detector.add_pitch(7)
    assert detector.histogram[7] == pytest.approx(3.0)


def test_c_major_scale_detected_as_c_major():
    detector = KeyDetector(decay_factor=1.0)
    for pc in C_MAJOR_SCALE:
        detector.add_pitch(pc)
    estimate = detector.get_current_key()
    assert estimate.tonic == 0
    assert estimate.mode is KeyMode.MAJOR
    assert estimate.name == "C major"

    correlations = _all_correlations(detector.histogram)
    best = correlations.pop((0, KeyMode.MAJOR))
    assert estimate.confidence == pytest.approx(best)
    assert all(best > other for other in correlations.values())


def test_a_minor_triad_prefers_minor():
    detector = KeyDetector(decay_factor=1.0)
    detector.add_notes([57, 60, 64, 57, 57])
    estimate = detector.get_current_key()
    assert (estimate.tonic, estimate.mode) == (9, KeyMode.MINOR)


def test_add_notes_applies_one_decay_per_batch():
    detector = KeyDetector(decay_factor=0.5)
    detector.add_notes([60])
    detector.add_notes([NoteEvent(0.0, 0.5, 64, 0.8), NoteEvent(0.5, 0.5, 67, 0.8)])
    hist = detector.histogram
    assert hist[0] == pytest.approx(0.5)
    assert hist[4] == pytest.approx(1.0)
    assert hist[7] == pytest.approx(1.0)


def test_empty_batch_leaves_histogram_untouched():
    detector = KeyDetector(decay_factor=0.5)
    detector.add_pitch(2)
    detector.add_notes([])
    assert detector.histogram[2] == pytest.approx(1.0)


def test_empty_histogram_has_zero_confidence():
    estimate = KeyDetector().get_current_key()
    assert estimate.confidence == 0.0
    assert not np.isnan(estimate.confidence)
    assert (estimate.tonic, estimate.mode) == (0, KeyMode.MAJOR)


def test_reset_and_decay_factor_validation():
    detector = KeyDetector()
    detector.add_pitch_midi(62)
    detector.reset()
    assert detector.histogram.sum() == 0
    detector.set_decay_factor(1.0)
    assert detector.decay_factor == 1.0
    with pytest.raises(ValueError):
        detector.set_decay_factor(0.0)
    with pytest.raises(ValueError):
        KeyDetector(decay_factor=1.5)


def test_profiles_are_immutable():
    with pytest.raises(ValueError):
        KRUMHANSL_MAJOR[0] = 1.0


def test_pearson_correlation_matches_numpy_and_handles_constants():
    hist = np.array([2, 0, 1, 0, 1, 1, 0, 2, 0, 1, 0, 1], dtype=float)
    expected = np.corrcoef(hist, KeyMode.MAJOR.profile)[0, 1]
    assert pearson_correlation(hist, KeyMode.MAJOR.profile) == pytest.approx(expected)
    assert pearson_correlation(np.zeros(12), KeyMode.MAJOR.profile) == 0.0
