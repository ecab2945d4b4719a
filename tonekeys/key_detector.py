"""Musical key inference from a decaying pitch-class histogram.

Each detected pitch adds weight to one of twelve pitch-class bins.  The
histogram is compared against the Krumhansl–Kessler key profiles rotated
to every tonic and the best-correlating major or minor key is reported.

Usage::

    detector = KeyDetector()
    detector.add_pitch_midi(60)  # C4
    estimate = detector.get_current_key()
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Union

import numpy as np

from .constants import STANDARD_DECAY
from .notes import display_name, pitch_class

PITCH_CLASS_COUNT = 12

# Krumhansl–Kessler key profiles, indexed from the tonic.
KRUMHANSL_MAJOR = np.array(
    [6.35, 2.23, 3.48, 2.33, 4.38, 4.09, 2.52, 5.19, 2.39, 3.66, 2.29, 2.88]
)
KRUMHANSL_MINOR = np.array(
    [6.33, 2.68, 3.52, 5.38, 2.60, 3.53, 2.54, 4.75, 3.98, 2.69, 3.34, 3.17]
)
KRUMHANSL_MAJOR.setflags(write=False)
KRUMHANSL_MINOR.setflags(write=False)


class KeyMode(Enum):
    MAJOR = "major"
    MINOR = "minor"

    @property
    def profile(self) -> np.ndarray:
        return KRUMHANSL_MAJOR if self is KeyMode.MAJOR else KRUMHANSL_MINOR


@dataclass(frozen=True)
class KeyEstimate:
    """Best matching key and its Pearson correlation."""

    tonic: int
    mode: KeyMode
    confidence: float

    @property
    def name(self) -> str:
        return f"{display_name(self.tonic)} {self.mode.value}"


def pearson_correlation(a: np.ndarray, b: np.ndarray) -> float:
    """Return the Pearson correlation of ``a`` and ``b`` (0 if undefined)."""
    with np.errstate(invalid="ignore", divide="ignore"):
        corr = np.corrcoef(a, b)[0, 1]
    # A constant input (e.g. an empty histogram) has no defined correlation.
    if np.isnan(corr):
        return 0.0
    return float(corr)


class KeyDetector:
    """Stateful key estimator.

    Args:
        decay_factor: Multiplier applied to every bin before new weight is
            added.  Values below one make old pitches fade; ``1`` keeps the
            full history.
    """

    def __init__(self, decay_factor: float = STANDARD_DECAY) -> None:
        self._histogram = np.zeros(PITCH_CLASS_COUNT, dtype=np.float64)
        self.decay_factor = _check_decay(decay_factor)

    @property
    def histogram(self) -> np.ndarray:
        return self._histogram.copy()

    def decay(self) -> None:
        """Apply one decay step without adding any pitch."""
        if self.decay_factor < 1:
            self._histogram *= self.decay_factor

    def add_pitch(self, pc: int, weight: float = 1.0) -> None:
        """Decay the histogram, then add ``weight`` to pitch class ``pc``."""
        self.decay()
        self._histogram[pc % PITCH_CLASS_COUNT] += weight

    def add_pitch_midi(self, midi: float, weight: float = 1.0) -> None:
        self.add_pitch(pitch_class(midi), weight)

    def add_notes(self, notes: Iterable[Union[float, object]]) -> None:
        """Add a batch of notes with a single decay step.

        Items may be MIDI numbers or objects with a ``pitch_midi``
        attribute such as :class:`~tonekeys.engine.NoteEvent`.  An empty
        batch leaves the histogram untouched.
        """
        batch = [pitch_class(getattr(note, "pitch_midi", note)) for note in notes]
        if not batch:
            return
        self.decay()
        for pc in batch:
            self._histogram[pc] += 1

    def get_current_key(self) -> KeyEstimate:
        total = self._histogram.sum() or 1.0
        normalized = self._histogram / total

        best = KeyEstimate(0, KeyMode.MAJOR, 0.0)
        for tonic in range(PITCH_CLASS_COUNT):
            for mode in (KeyMode.MAJOR, KeyMode.MINOR):
                corr = pearson_correlation(normalized, np.roll(mode.profile, tonic))
                if corr > best.confidence:
                    best = KeyEstimate(tonic, mode, corr)
        return best

    def reset(self) -> None:
        self._histogram.fill(0.0)

    def set_decay_factor(self, factor: float) -> None:
        self.decay_factor = _check_decay(factor)


def _check_decay(factor: float) -> float:
    if not 0 < factor <= 1:
        raise ValueError(f"decay factor must be in (0, 1], got {factor}")
    return float(factor)


__all__ = [
    "KRUMHANSL_MAJOR",
    "KRUMHANSL_MINOR",
    "KeyMode",
    "KeyEstimate",
    "KeyDetector",
    "pearson_correlation",
]
