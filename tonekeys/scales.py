"""Scale membership filtering for the keyboard.

A :class:`ScaleSelection` names a root pitch class and a mode.  When a
selection is active the keyboard only accepts notes that belong to the
scale, unless the user has explicitly allowed out-of-scale notes.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .constants import NOTE_NAMES


class ScaleMode(Enum):
    """Supported scale modes and their semitone offsets from the root."""

    MAJOR = "major"
    MINOR = "minor"

    @property
    def intervals(self) -> frozenset[int]:
        return _SCALE_INTERVALS[self]


_SCALE_INTERVALS: dict[ScaleMode, frozenset[int]] = {
    ScaleMode.MAJOR: frozenset({0, 2, 4, 5, 7, 9, 11}),
    ScaleMode.MINOR: frozenset({0, 2, 3, 5, 7, 8, 10}),
}


def is_in_scale(
    note_number: int, root: Optional[int], mode: Optional[ScaleMode]
) -> bool:
    """Return ``True`` if ``note_number`` belongs to the ``root`` ``mode`` scale.

    A missing root or mode disables the filter and every note is accepted.
    """
    if root is None or mode is None:
        return True
    offset = (note_number % 12 - root % 12 + 12) % 12
    return offset in mode.intervals


def scale_pitch_classes(root: int, mode: ScaleMode) -> list[int]:
    """Return the pitch classes of the scale in ascending degree order."""
    return [(root + step) % 12 for step in sorted(mode.intervals)]


@dataclass(frozen=True)
class ScaleSelection:
    """The scale chosen by the user, or no scale at all."""

    root: Optional[int] = None
    mode: Optional[ScaleMode] = None

    @classmethod
    def none(cls) -> "ScaleSelection":
        return cls()

    @classmethod
    def parse(cls, text: str) -> "ScaleSelection":
        """Parse ``"C# major"`` style labels; ``"none"`` disables the filter."""
        text = text.strip()
        if not text or text.lower() == "none":
            return cls()
        try:
            root_name, mode_name = text.split()
            return cls(NOTE_NAMES.index(root_name), ScaleMode(mode_name.lower()))
        except ValueError as exc:
            raise ValueError(f"not a scale: {text!r}") from exc

    @property
    def enabled(self) -> bool:
        return self.root is not None and self.mode is not None

    @property
    def label(self) -> str:
        if not self.enabled:
            return "none"
        return f"{NOTE_NAMES[self.root % 12]} {self.mode.value}"

    def contains(self, note_number: int) -> bool:
        return is_in_scale(note_number, self.root, self.mode)

    def allows(self, note_number: int, allow_out_of_scale: bool = False) -> bool:
        """Gate applied when a note is pressed."""
        return allow_out_of_scale or self.contains(note_number)


__all__ = ["ScaleMode", "ScaleSelection", "is_in_scale", "scale_pitch_classes"]
