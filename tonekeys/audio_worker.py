"""
AnalysisWorker — threaded microphone capture driving an analysis session.

The worker wraps a ``sounddevice`` input stream and an
:class:`~tonekeys.engine.AnalysisEngine` inside a Qt ``QThread``.  The
PortAudio callback only stores samples; all estimation happens on the
worker's own periodic tick so the real-time callback never waits on
analysis:

  * the level meter is refreshed at ``LEVEL_UPDATE_RATE``;
  * in standard mode a YIN pitch estimate feeds the key detector at
    ``PITCH_UPDATE_RATE``;
  * in high-accuracy mode the inference scheduler is polled every tick
    and due requests are handed to an :class:`InferenceWorker`, whose
    results are applied on a later tick.

Results reach the UI through Qt signals.  A capture failure is reported
through :pydata:`AnalysisWorker.captureFailed` and the worker never
enters the analysing state.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Optional, Tuple

import numpy as np
from PySide6 import QtCore

from .capture import CaptureError, open_capture_stream, to_mono
from .constants import (
    BLOCK_SIZE,
    LEVEL_UPDATE_RATE,
    NOTE_NAMES,
    PITCH_UPDATE_RATE,
    SAMPLE_RATE,
)
from .engine import AnalysisEngine, DetectionMode
from .inference_worker import InferenceWorker, NoteExtractor, PitchModel
from .notes import pitch_class

logger = logging.getLogger(__name__)


class AnalysisWorker(QtCore.QThread):
    """Background thread for audio capture and music analysis.

    Args:
        device_index: PortAudio input device, ``None`` for the default.
        sample_rate: Capture sampling frequency.
        block_size: Frames per PortAudio callback.
        mode: Detection mode of the session.
        model: External pitch model, required in high-accuracy mode.
        note_extractor: Converts raw model outputs into note events.
        channels: Number of captured channels; blocks are down-mixed.
        extra_settings: Backend specific ``sounddevice`` settings.
        parent: Optional Qt parent object.
        engine: Pre-built engine; one is created when omitted.

    Signals:
        amplitudeChanged(float): Level meter value in 0..1.
        pitchChanged(float, str): Frequency and nearest note name.
        keyChanged(str, float): Key name and confidence.
        notesDetected(list): Notes from the high-accuracy model.
        analyzingChanged(bool): Session entered or left the analysing state.
        captureFailed(str, str): Error code and message.
    """

    amplitudeChanged = QtCore.Signal(float)
    pitchChanged = QtCore.Signal(float, str)
    keyChanged = QtCore.Signal(str, float)
    notesDetected = QtCore.Signal(list)
    analyzingChanged = QtCore.Signal(bool)
    captureFailed = QtCore.Signal(str, str)

    def __init__(
        self,
        device_index: Optional[int] = None,
        *,
        sample_rate: int = SAMPLE_RATE,
        block_size: int = BLOCK_SIZE,
        mode: DetectionMode = DetectionMode.STANDARD,
        model: Optional[PitchModel] = None,
        note_extractor: Optional[NoteExtractor] = None,
        channels: int = 1,
        extra_settings: Any = None,
        parent: Optional[QtCore.QObject] = None,
        engine: Optional[AnalysisEngine] = None,
    ) -> None:
        super().__init__(parent)
        mode = DetectionMode(mode)
        if mode is DetectionMode.HIGH_ACCURACY and (model is None or note_extractor is None):
            raise ValueError("high-accuracy mode needs a model and a note extractor")
        self.device_index = device_index
        self.sample_rate = sample_rate
        self.block_size = block_size
        self.channels = channels
        self.extra_settings = extra_settings
        self.engine = engine or AnalysisEngine(sample_rate, mode=mode)
        self.engine.set_mode(mode)
        self.inference: Optional[InferenceWorker] = None
        if model is not None and note_extractor is not None:
            self.inference = InferenceWorker(model, note_extractor)
        self.stream = None
        self._stop_event = threading.Event()
        self._next_level = 0.0
        self._next_pitch = 0.0
        self._last_key: Optional[Tuple[str, float]] = None

    # -----------------------------------------------------------------
    def _callback(self, indata: np.ndarray, frames: int, _time, status) -> None:
        """Store one captured block; runs on the PortAudio thread."""
        if status:
            logger.warning("Input stream status: %s", status)
        try:
            self.engine.feed(to_mono(indata))
        except Exception:
            # An exception escaping here would abort the stream.
            logger.exception("Failed to store captured block")

    # -----------------------------------------------------------------
    def tick(self, now: float) -> None:
        """Run every analysis step that is due at time ``now``."""
        engine = self.engine
        if not engine.is_analyzing:
            return

        if now >= self._next_level:
            self._next_level = now + 1.0 / LEVEL_UPDATE_RATE
            self.amplitudeChanged.emit(engine.tick_level())

        if engine.mode is DetectionMode.STANDARD and now >= self._next_pitch:
            self._next_pitch = now + 1.0 / PITCH_UPDATE_RATE
            freq = engine.tick_pitch()
            if freq is not None:
                name = NOTE_NAMES[pitch_class(engine.latest_pitch_midi)]
                self.pitchChanged.emit(freq, name)

        if self.inference is not None:
            self._apply_inference_results()
            request = engine.poll_inference(now)
            if request is not None and not self.inference.submit(request):
                # The worker still holds an older request; drop this one.
                engine.scheduler.complete()

        self._emit_key()

    def _apply_inference_results(self) -> None:
        for outcome in self.inference.drain():
            if outcome.error is not None:
                self.engine.inference_failed(outcome.error)
                continue
            try:
                self.engine.apply_notes(outcome.notes)
            except Exception as exc:
                logger.exception("Could not apply transcribed notes")
                self.engine.inference_failed(exc)
                continue
            self.notesDetected.emit(outcome.notes)

    def _emit_key(self) -> None:
        estimate = self.engine.key_estimate
        if estimate is None:
            return
        key = (estimate.name, estimate.confidence)
        if key != self._last_key:
            self._last_key = key
            self.keyChanged.emit(*key)

    # -----------------------------------------------------------------
    def run(self) -> None:
        """Open the capture stream and tick until :meth:`stop` is called."""
        try:
            self.stream = open_capture_stream(
                self._callback,
                device=self.device_index,
                sample_rate=self.sample_rate,
                block_size=self.block_size,
                channels=self.channels,
                extra_settings=self.extra_settings,
            )
        except CaptureError as exc:
            self.captureFailed.emit(exc.code.value, exc.message)
            return

        self.engine.start()
        self._last_key = None
        self.analyzingChanged.emit(True)
        if self.inference is not None:
            self.inference.start()
        period = 1.0 / max(LEVEL_UPDATE_RATE, PITCH_UPDATE_RATE)
        try:
            while not self._stop_event.is_set():
                self.tick(time.monotonic())
                self._stop_event.wait(period)
        finally:
            self._close_stream()
            if self.inference is not None:
                self.inference.stop()
            self.engine.stop()
            self.analyzingChanged.emit(False)

    def _close_stream(self) -> None:
        if self.stream is None:
            return
        try:
            self.stream.stop()
            self.stream.close()
        except Exception:
            logger.exception("Error closing capture stream")
        self.stream = None

    def stop(self) -> None:
        """Stop the worker thread and wait for it to finish."""
        self._stop_event.set()
        self.wait(2000)


__all__ = ["AnalysisWorker"]
