"""Background thread running the external neural pitch model.

The model is a black box with a single method::

    model.evaluate(samples) -> (frames, onsets, contours)

taking mono float samples at the model's sample rate.  Turning those raw
outputs into :class:`~tonekeys.engine.NoteEvent` objects is the job of a
``note_extractor`` callable supplied by the caller.

Only one request may be outstanding.  :meth:`InferenceWorker.submit`
refuses a request while another is pending.  Outcomes are queued for the
analysis tick to collect and are also emitted as Qt signals for the UI.
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Any, Callable, NamedTuple, Optional, Protocol, Sequence

from PySide6 import QtCore

from .capture_buffer import InferenceRequest
from .engine import NoteEvent
from .notes import pitch_class

logger = logging.getLogger(__name__)

NoteExtractor = Callable[[Any, Any, Any], Sequence[NoteEvent]]


class PitchModel(Protocol):
    def evaluate(self, samples: Any) -> tuple[Any, Any, Any]: ...


class InferenceOutcome(NamedTuple):
    request: InferenceRequest
    notes: Optional[list[NoteEvent]]
    error: Optional[BaseException]


class InferenceWorker(QtCore.QThread):
    """Evaluate buffered audio with the external model off the tick thread.

    Args:
        model: Object exposing ``evaluate(samples)``.
        note_extractor: Converts ``(frames, onsets, contours)`` to notes.
        parent: Optional Qt parent.

    Signals:
        notesReady(list): Notes transcribed for the latest request.
        inferenceFailed(str): The model raised; the message is attached.
    """

    notesReady = QtCore.Signal(list)
    inferenceFailed = QtCore.Signal(str)

    def __init__(
        self,
        model: PitchModel,
        note_extractor: NoteExtractor,
        parent: Optional[QtCore.QObject] = None,
    ) -> None:
        super().__init__(parent)
        self.model = model
        self.note_extractor = note_extractor
        self.results: "queue.Queue[InferenceOutcome]" = queue.Queue()
        self._pending: Optional[InferenceRequest] = None
        self._pending_lock = threading.Lock()
        self._wake = threading.Event()
        self._stop_event = threading.Event()

    # --------------------------------------------------------------
    def submit(self, request: InferenceRequest) -> bool:
        """Queue ``request``; returns ``False`` if one is already pending."""
        with self._pending_lock:
            if self._pending is not None:
                return False
            self._pending = request
        self._wake.set()
        return True

    def drain(self) -> list[InferenceOutcome]:
        """Return every outcome produced since the last call."""
        outcomes: list[InferenceOutcome] = []
        while True:
            try:
                outcomes.append(self.results.get_nowait())
            except queue.Empty:
                return outcomes

    def _evaluate(self, request: InferenceRequest) -> InferenceOutcome:
        try:
            frames, onsets, contours = self.model.evaluate(request.samples)
            notes = list(self.note_extractor(frames, onsets, contours))
            for note in notes:
                # Rejects adapter output the key detector cannot consume.
                pitch_class(note.pitch_midi)
        except Exception as exc:
            logger.exception("Pitch model inference error")
            outcome = InferenceOutcome(request, None, exc)
            self.results.put(outcome)
            self.inferenceFailed.emit(str(exc))
            return outcome
        outcome = InferenceOutcome(request, notes, None)
        self.results.put(outcome)
        self.notesReady.emit(notes)
        return outcome

    # --------------------------------------------------------------
    def run(self) -> None:
        while not self._stop_event.is_set():
            if not self._wake.wait(0.1):
                continue
            self._wake.clear()
            with self._pending_lock:
                request = self._pending
            if request is None:
                continue
            try:
                self._evaluate(request)
            finally:
                with self._pending_lock:
                    self._pending = None

    def stop(self) -> None:
        self._stop_event.set()
        self._wake.set()
        self.wait(2000)


__all__ = ["InferenceWorker", "InferenceOutcome", "PitchModel", "NoteExtractor"]
