"""Per-note voice management for the keyboard synthesiser.

Every pressed note owns one :class:`Voice`: an oscillator fixed at the
note's frequency feeding a gain stage connected to the output.  Releasing
a note ramps its gain to silence over a short window and only then stops
the oscillator and forgets the voice.

The manager talks to the rendering backend exclusively through the
:class:`AudioContext` protocol, so tests can drive it with a fake context
and a hand-advanced clock.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Protocol

from .constants import VOICE_ATTACK_TIME, VOICE_GAIN, VOICE_RELEASE_TIME

logger = logging.getLogger(__name__)


class WaveShape(Enum):
    SINE = "sine"
    SQUARE = "square"
    SAWTOOTH = "sawtooth"
    TRIANGLE = "triangle"


class VoiceState(Enum):
    ACTIVE = "active"
    RELEASING = "releasing"


class AudioContext(Protocol):
    """Operations the voice manager needs from a rendering backend."""

    @property
    def current_time(self) -> float:
        """Monotonic playback clock in seconds."""

    @property
    def destination(self) -> Any:
        """Sink that gain stages connect to."""

    def create_oscillator(self, frequency: float, wave_shape: WaveShape) -> Any: ...

    def create_gain(self, level: float) -> Any: ...

    def connect(self, source: Any, target: Any) -> None: ...

    def disconnect(self, source: Any) -> None: ...

    def ramp_gain(self, gain: Any, target: float, end_time: float) -> None: ...

    def set_wave_shape(self, oscillator: Any, wave_shape: WaveShape) -> None: ...

    def start(self, oscillator: Any) -> None: ...

    def stop(self, oscillator: Any) -> None: ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> None: ...


@dataclass
class Voice:
    note_id: str
    frequency: float
    oscillator: Any
    gain: Any
    state: VoiceState = VoiceState.ACTIVE


class VoiceManager:
    """Registry of sounding voices, at most one per note id.

    Args:
        context: Rendering backend.
        wave_shape: Default waveform for new voices.
        gain_level: Gain of a sounding voice relative to full scale.
        attack_time: Length of the ramp from silence to ``gain_level``.
        release_time: Length of the ramp to silence on release.
    """

    def __init__(
        self,
        context: AudioContext,
        *,
        wave_shape: WaveShape = WaveShape.SINE,
        gain_level: float = VOICE_GAIN,
        attack_time: float = VOICE_ATTACK_TIME,
        release_time: float = VOICE_RELEASE_TIME,
    ) -> None:
        self.context = context
        self.wave_shape = WaveShape(wave_shape)
        self.gain_level = gain_level
        self.attack_time = attack_time
        self.release_time = release_time
        # Insertion ordered; voice cleanup may arrive from a timer thread.
        self._voices: dict[str, Voice] = {}
        self._lock = threading.Lock()

    # --------------------------------------------------------------
    def __len__(self) -> int:
        return len(self._voices)

    def __contains__(self, note_id: object) -> bool:
        return note_id in self._voices

    def voice(self, note_id: str) -> Optional[Voice]:
        return self._voices.get(note_id)

    @property
    def active_notes(self) -> list[str]:
        """Ids of voices that are still held, in press order."""
        with self._lock:
            return [
                v.note_id for v in self._voices.values() if v.state is VoiceState.ACTIVE
            ]

    @property
    def display_frequency(self) -> Optional[float]:
        """Frequency of the held note when exactly one note is held."""
        with self._lock:
            held = [v for v in self._voices.values() if v.state is VoiceState.ACTIVE]
        return held[0].frequency if len(held) == 1 else None

    # --------------------------------------------------------------
    def start_note(
        self,
        note_id: str,
        frequency: float,
        wave_shape: Optional[WaveShape] = None,
    ) -> bool:
        """Start sounding ``note_id``.

        Returns ``False`` without touching the audio graph when the note
        already has a voice, active or releasing.
        """
        ctx = self.context
        with self._lock:
            if note_id in self._voices:
                return False
            shape = WaveShape(wave_shape) if wave_shape is not None else self.wave_shape
            now = ctx.current_time
            oscillator = ctx.create_oscillator(frequency, shape)
            gain = ctx.create_gain(0.0)
            ctx.ramp_gain(gain, self.gain_level, now + self.attack_time)
            ctx.connect(oscillator, gain)
            ctx.connect(gain, ctx.destination)
            ctx.start(oscillator)
            self._voices[note_id] = Voice(note_id, frequency, oscillator, gain)
        logger.debug("Started %s at %.2f Hz", note_id, frequency)
        return True

    def stop_note(self, note_id: str) -> bool:
        """Release ``note_id``.

        The gain ramps to zero over ``release_time``; the oscillator is
        stopped and the voice removed only after the ramp.  Unknown or
        already releasing notes are ignored.
        """
        ctx = self.context
        with self._lock:
            voice = self._voices.get(note_id)
            if voice is None or voice.state is VoiceState.RELEASING:
                return False
            voice.state = VoiceState.RELEASING
            ctx.ramp_gain(voice.gain, 0.0, ctx.current_time + self.release_time)
        ctx.call_later(self.release_time, lambda: self._finish_release(voice))
        return True

    def _finish_release(self, voice: Voice) -> None:
        with self._lock:
            if self._voices.get(voice.note_id) is not voice:
                return
            del self._voices[voice.note_id]
        self.context.stop(voice.oscillator)
        self.context.disconnect(voice.oscillator)
        self.context.disconnect(voice.gain)
        logger.debug("Released %s", voice.note_id)

    def stop_all(self) -> None:
        for note_id in list(self._voices):
            self.stop_note(note_id)

    def set_wave_shape(self, wave_shape: WaveShape) -> None:
        """Change the waveform of every sounding voice and of future voices."""
        shape = WaveShape(wave_shape)
        with self._lock:
            self.wave_shape = shape
            for voice in self._voices.values():
                self.context.set_wave_shape(voice.oscillator, shape)


__all__ = ["WaveShape", "VoiceState", "AudioContext", "Voice", "VoiceManager"]
