"""Analysis session tying the estimators to the capture stream.

:class:`AnalysisEngine` owns all mutable analysis state for one session:
the key detector, the short analysis window used for monophonic pitch
estimation, the rolling buffer and scheduler of the high-accuracy path
and the values shown to the user.  Nothing is global, so several engines
can run side by side and tests can drive time explicitly.

Two domains touch an engine:

* The capture callback calls :meth:`AnalysisEngine.feed` with every
  block.  It is the only writer of the sample buffers.
* The application tick calls :meth:`tick_level`, :meth:`tick_pitch`,
  :meth:`poll_inference` and :meth:`apply_notes`.  It reads buffer
  counters and owns everything else.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

import numpy as np

from .capture_buffer import InferenceRequest, InferenceScheduler, RollingCaptureBuffer
from .constants import (
    CAPTURE_BUFFER_SECONDS,
    HIGH_ACCURACY_DECAY,
    INFERENCE_INTERVAL,
    INFERENCE_MIN_SECONDS,
    LEVEL_BOOST,
    LEVEL_MAX_DB,
    LEVEL_MIN_DB,
    MODEL_SAMPLE_RATE,
    SAMPLE_RATE,
    STANDARD_DECAY,
    WINDOW_SIZE,
    YIN_MAX_FREQUENCY,
    YIN_MIN_FREQUENCY,
)
from .key_detector import KeyDetector, KeyEstimate
from .notes import freq_to_midi
from .yin import yin_pitch

logger = logging.getLogger(__name__)


class DetectionMode(Enum):
    """Fast monophonic estimation or batched neural transcription."""

    STANDARD = "standard"
    HIGH_ACCURACY = "highAccuracy"

    @property
    def decay_factor(self) -> float:
        return STANDARD_DECAY if self is DetectionMode.STANDARD else HIGH_ACCURACY_DECAY


@dataclass(frozen=True)
class NoteEvent:
    """A note transcribed by the external model."""

    start_time_seconds: float
    duration_seconds: float
    pitch_midi: int
    amplitude: float
    pitch_bends: tuple[float, ...] = field(default=())


def audio_level(
    window: np.ndarray,
    *,
    min_db: float = LEVEL_MIN_DB,
    max_db: float = LEVEL_MAX_DB,
    boost: float = LEVEL_BOOST,
) -> float:
    """Return a 0..1 loudness value for a level meter.

    The Hann-windowed magnitude spectrum is converted to decibels, mapped
    linearly from ``[min_db, max_db]`` onto ``[0, 1]`` and reduced to its
    RMS, which is then boosted and clamped.
    """
    if window.size == 0:
        return 0.0
    spectrum = np.abs(np.fft.rfft(window * np.hanning(window.size))) / window.size
    db = 20.0 * np.log10(np.maximum(spectrum, 1e-12))
    scaled = np.clip((db - min_db) / (max_db - min_db), 0.0, 1.0)
    rms = float(np.sqrt(np.mean(scaled**2)))
    return min(rms * boost, 1.0)


class AnalysisEngine:
    """One analysis session.

    Args:
        sample_rate: Rate of the captured audio.
        mode: Detection mode; selects the key detector decay.
        window_size: Samples examined per pitch estimate and level update.
        buffer_seconds: Length of the rolling high-accuracy buffer.
        inference_interval: Seconds between scheduler checks.
        inference_min_seconds: Fresh audio required for a periodic request.
        model_sample_rate: Rate expected by the external model.
        min_frequency: Lowest pitch searched by the estimator.
        max_frequency: Highest pitch searched by the estimator.
    """

    def __init__(
        self,
        sample_rate: int = SAMPLE_RATE,
        *,
        mode: DetectionMode = DetectionMode.STANDARD,
        window_size: int = WINDOW_SIZE,
        buffer_seconds: float = CAPTURE_BUFFER_SECONDS,
        inference_interval: float = INFERENCE_INTERVAL,
        inference_min_seconds: float = INFERENCE_MIN_SECONDS,
        model_sample_rate: int = MODEL_SAMPLE_RATE,
        min_frequency: float = YIN_MIN_FREQUENCY,
        max_frequency: float = YIN_MAX_FREQUENCY,
    ) -> None:
        if sample_rate <= 0:
            raise ValueError(f"sample rate must be positive, got {sample_rate}")
        self.sample_rate = sample_rate
        self.mode = DetectionMode(mode)
        self.window_size = window_size
        self.min_frequency = min_frequency
        self.max_frequency = max_frequency

        self.key_detector = KeyDetector(self.mode.decay_factor)
        self.window = RollingCaptureBuffer(window_size)
        self.capture_buffer = RollingCaptureBuffer.for_duration(
            sample_rate, buffer_seconds
        )
        self.scheduler = InferenceScheduler(
            self.capture_buffer,
            sample_rate,
            interval=inference_interval,
            min_seconds=inference_min_seconds,
            model_sample_rate=model_sample_rate,
        )

        self.is_analyzing = False
        self.audio_level = 0.0
        self.latest_pitch: Optional[float] = None
        self.latest_pitch_midi: Optional[float] = None
        self.latest_notes: Optional[list[NoteEvent]] = None
        self.key_estimate: Optional[KeyEstimate] = None

    # --------------------------------------------------------------
    def start(self) -> None:
        """Begin a fresh session; the previous key is cleared from display."""
        self._reset_buffers()
        self.key_detector.reset()
        self.latest_pitch = None
        self.latest_pitch_midi = None
        self.latest_notes = None
        self.key_estimate = None
        self.is_analyzing = True
        logger.info("Analysis started (%s mode)", self.mode.value)

    def stop(self) -> None:
        """End the session.

        The histogram and buffers are cleared so the next session starts
        fresh, but the last key estimate stays available for display.
        """
        self.is_analyzing = False
        self.audio_level = 0.0
        self.key_detector.reset()
        self._reset_buffers()
        logger.info("Analysis stopped")

    def _reset_buffers(self) -> None:
        self.window.clear()
        self.capture_buffer.clear()
        self.scheduler.reset()

    def set_mode(self, mode: DetectionMode) -> None:
        self.mode = DetectionMode(mode)
        self.key_detector.set_decay_factor(self.mode.decay_factor)

    # ─── capture domain ─────────────────────────────────────────────
    def feed(self, block: np.ndarray) -> None:
        """Store a captured block.  Called from the capture callback."""
        if not self.is_analyzing:
            return
        self.window.write(block)
        if self.mode is DetectionMode.HIGH_ACCURACY:
            self.capture_buffer.write(block)

    # ─── application tick ──────────────────────────────────────────
    def tick_level(self) -> float:
        self.audio_level = audio_level(self.window.latest(self.window_size))
        return self.audio_level

    def tick_pitch(self) -> Optional[float]:
        """Estimate the current pitch and feed it to the key detector.

        Returns the frequency in hertz, or ``None`` when the window holds
        no clear pitch.  Only active in standard mode.
        """
        if not self.is_analyzing or self.mode is not DetectionMode.STANDARD:
            return None
        freq = yin_pitch(
            self.window.latest(self.window_size),
            self.sample_rate,
            min_frequency=self.min_frequency,
            max_frequency=self.max_frequency,
        )
        if freq is None:
            return None
        midi = freq_to_midi(freq)
        self.latest_pitch = freq
        self.latest_pitch_midi = midi
        self.key_detector.add_pitch_midi(midi)
        self.key_estimate = self.key_detector.get_current_key()
        return freq

    def poll_inference(self, now: float) -> Optional[InferenceRequest]:
        """Return a buffer snapshot for the model when one is due."""
        if not self.is_analyzing or self.mode is not DetectionMode.HIGH_ACCURACY:
            return None
        return self.scheduler.poll(now)

    def apply_notes(self, notes: Iterable[NoteEvent]) -> Optional[KeyEstimate]:
        """Accept the model's notes for the outstanding request.

        Results arriving after :meth:`stop` still release the scheduler but
        do not touch the histogram.
        """
        self.scheduler.complete()
        if not self.is_analyzing:
            return self.key_estimate
        batch = list(notes)
        self.latest_notes = batch
        if batch:
            self.key_detector.add_notes(batch)
            self.key_estimate = self.key_detector.get_current_key()
        return self.key_estimate

    def inference_failed(self, error: BaseException) -> None:
        """Keep the previous estimate and allow the next request."""
        logger.error("Inference failed; keeping previous estimate: %s", error)
        self.scheduler.complete()


__all__ = ["DetectionMode", "NoteEvent", "AnalysisEngine", "audio_level"]
