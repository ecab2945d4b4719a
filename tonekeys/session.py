"""Keyboard session: scale-gated note entry, voices and chord naming."""

from __future__ import annotations

import logging
from typing import Optional

from .chords import identify_chord
from .notes import midi_to_freq, note_name_to_number
from .scales import ScaleSelection
from .voices import VoiceManager, WaveShape

logger = logging.getLogger(__name__)


class KeyboardSession:
    """State of one playable keyboard.

    Holds the scale selection and routes key presses through the scale
    filter to the :class:`~tonekeys.voices.VoiceManager`.  The currently
    held notes drive the chord display and the single-note frequency
    readout.
    """

    def __init__(
        self,
        voices: VoiceManager,
        scale: ScaleSelection = ScaleSelection(),
        allow_out_of_scale: bool = False,
    ) -> None:
        self.voices = voices
        self.scale = scale
        self.allow_out_of_scale = allow_out_of_scale

    def press(self, note: str) -> bool:
        """Start ``note`` (e.g. ``"C#4"``) if the scale filter admits it."""
        number = note_name_to_number(note)
        if not self.scale.allows(number, self.allow_out_of_scale):
            logger.debug("%s is outside %s; ignored", note, self.scale.label)
            return False
        return self.voices.start_note(note, midi_to_freq(number))

    def release(self, note: str) -> bool:
        return self.voices.stop_note(note)

    def set_scale(self, scale: ScaleSelection) -> None:
        self.scale = scale

    def set_wave_shape(self, wave_shape: WaveShape) -> None:
        self.voices.set_wave_shape(wave_shape)

    @property
    def active_notes(self) -> list[str]:
        return self.voices.active_notes

    @property
    def display_frequency(self) -> Optional[float]:
        return self.voices.display_frequency

    @property
    def chord_name(self) -> str:
        return identify_chord(self.active_notes)


__all__ = ["KeyboardSession"]
