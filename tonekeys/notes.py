"""Note naming and frequency conversion helpers."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Union

import numpy as np

from .constants import A4_FREQ, A4_MIDI, NOTE_NAMES

# Display names used for keys, with both enharmonic spellings for the
# black keys.
DISPLAY_NAMES: list[str] = [
    "C", "C♯/D♭", "D", "D♯/E♭", "E", "F",
    "F♯/G♭", "G", "G♯/A♭", "A", "A♯/B♭", "B",
]

_NOTE_RE = re.compile(r"^([A-G]#?)(-?\d+)?$")

NoteLike = Union[str, int]


@dataclass(frozen=True)
class SynthKey:
    """One key of the on-screen keyboard."""

    note: str
    note_number: int
    frequency: float
    is_black: bool


def pitch_class(midi: float) -> int:
    """Return the pitch class (0 = C … 11 = B) of ``midi``.

    Fractional values are rounded to the nearest semitone first; negative
    numbers wrap correctly.
    """
    return int(round(midi)) % 12


def midi_to_freq(midi: float) -> float:
    """Convert MIDI number to frequency using A4 reference."""
    return float(A4_FREQ * 2 ** ((midi - A4_MIDI) / 12.0))


def freq_to_midi(freq: float) -> float:
    """Convert frequency to a (fractional) MIDI number using A4 reference."""
    if freq <= 0:
        raise ValueError(f"frequency must be positive, got {freq}")
    return float(12.0 * np.log2(freq / A4_FREQ) + A4_MIDI)


def note_name_to_number(name: str) -> int:
    """Return the keyboard note number for ``name`` such as ``"C#4"``.

    The keyboard numbers notes as ``octave * 12 + index`` so ``"C4"`` is 48.
    A name without an octave is treated as octave 0.
    """
    match = _NOTE_RE.match(name.strip())
    if not match:
        raise ValueError(f"not a note name: {name!r}")
    note, octave = match.groups()
    return int(octave or 0) * 12 + NOTE_NAMES.index(note)


def base_note_name(name: str) -> str:
    """Strip the octave from ``name``: ``"C#4"`` → ``"C#"``."""
    return re.sub(r"-?\d+$", "", name.strip())


def to_pitch_class(note: NoteLike) -> int:
    """Return the pitch class of a note name or a MIDI/note number."""
    if isinstance(note, str):
        base = base_note_name(note)
        if base not in NOTE_NAMES:
            raise ValueError(f"not a note name: {note!r}")
        return NOTE_NAMES.index(base)
    return pitch_class(note)


def display_name(pc: int) -> str:
    return DISPLAY_NAMES[pc % 12]


def build_keyboard(start_octave: int, octaves: int = 2) -> list[SynthKey]:
    """Return the keys of a keyboard starting at ``start_octave``."""
    keys: list[SynthKey] = []
    for octave in range(start_octave, start_octave + octaves):
        for index, name in enumerate(NOTE_NAMES):
            number = octave * 12 + index
            keys.append(
                SynthKey(
                    note=f"{name}{octave}",
                    note_number=number,
                    frequency=midi_to_freq(number),
                    is_black="#" in name,
                )
            )
    return keys


__all__ = [
    "DISPLAY_NAMES",
    "SynthKey",
    "pitch_class",
    "midi_to_freq",
    "freq_to_midi",
    "note_name_to_number",
    "base_note_name",
    "to_pitch_class",
    "display_name",
    "build_keyboard",
]
