"""Triad recognition for the notes currently held on the keyboard.

The identifier is deliberately exact: the held pitch classes must equal a
triad pattern, so chords with extra tones (sevenths, added notes) are
reported as ``"Unknown"``.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable, NamedTuple

from .constants import NOTE_NAMES
from .notes import NoteLike, to_pitch_class

UNKNOWN_CHORD = "Unknown"


class ChordQuality(Enum):
    """Triad qualities in the order they are matched."""

    MAJOR = "Major"
    MINOR = "Minor"
    DIMINISHED = "Diminished"
    AUGMENTED = "Augmented"
    SUSPENDED_4TH = "Suspended 4th"

    @property
    def intervals(self) -> tuple[int, int, int]:
        return _QUALITY_INTERVALS[self]


_QUALITY_INTERVALS: dict[ChordQuality, tuple[int, int, int]] = {
    ChordQuality.MAJOR: (0, 4, 7),
    ChordQuality.MINOR: (0, 3, 7),
    ChordQuality.DIMINISHED: (0, 3, 6),
    ChordQuality.AUGMENTED: (0, 4, 8),
    ChordQuality.SUSPENDED_4TH: (0, 5, 7),
}


class ChordPattern(NamedTuple):
    quality: ChordQuality
    root: int
    pitch_classes: frozenset[int]

    @property
    def name(self) -> str:
        return f"{NOTE_NAMES[self.root]} {self.quality.value}"


def _build_patterns() -> tuple[ChordPattern, ...]:
    return tuple(
        ChordPattern(
            quality,
            root,
            frozenset((root + step) % 12 for step in quality.intervals),
        )
        for quality in ChordQuality
        for root in range(12)
    )


# Every quality rotated through the twelve roots, in matching order.
CHORD_PATTERNS: tuple[ChordPattern, ...] = _build_patterns()


def identify_chord(notes: Iterable[NoteLike]) -> str:
    """Name the triad formed by ``notes``.

    Args:
        notes: Sounding notes as names with or without octave (``"C4"``,
            ``"C"``) or as note numbers.  Octaves are ignored.

    Returns:
        ``""`` when fewer than two distinct notes sound, ``"Unknown"`` when
        the pitch classes do not form exactly one of the known triads, and
        ``"<root> <quality>"`` (e.g. ``"C Major"``) otherwise.
    """
    sounding = set(notes)
    if len(sounding) < 2:
        return ""
    played = frozenset(to_pitch_class(note) for note in sounding)
    if len(played) < 3:
        return UNKNOWN_CHORD
    for pattern in CHORD_PATTERNS:
        if pattern.pitch_classes == played:
            return pattern.name
    return UNKNOWN_CHORD


__all__ = [
    "UNKNOWN_CHORD",
    "ChordQuality",
    "ChordPattern",
    "CHORD_PATTERNS",
    "identify_chord",
]
