"""Desktop rendering backend for :class:`~tonekeys.voices.VoiceManager`.

``SynthContext`` implements the :class:`~tonekeys.voices.AudioContext`
protocol with numpy oscillators mixed into a ``sounddevice`` output
stream.  The playback clock advances with every rendered block, gain
changes are linear ramps evaluated per sample, and deferred callbacks
fire once a rendered block has carried the clock past their deadline.

The PortAudio callback must never block.  Graph changes therefore build
a new immutable tuple of routes which the callback picks up with a
single attribute read; no lock is taken while mixing.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
from typing import Callable, Optional

import numpy as np
from scipy.signal import sawtooth, square

from .constants import SAMPLE_RATE, SYNTH_BLOCK_SIZE
from .voices import WaveShape

logger = logging.getLogger(__name__)


class Oscillator:
    """Phase-continuous periodic source at a fixed frequency."""

    def __init__(self, frequency: float, wave_shape: WaveShape) -> None:
        self.frequency = float(frequency)
        self.wave_shape = WaveShape(wave_shape)
        self.phase = 0.0  # in cycles
        self.running = False

    def render(self, frames: int, sample_rate: int) -> np.ndarray:
        step = self.frequency / sample_rate
        phases = self.phase + np.arange(frames) * step
        self.phase = (self.phase + frames * step) % 1.0
        return waveform(self.wave_shape, phases)


class GainStage:
    """Gain whose value follows the most recently scheduled linear ramp."""

    def __init__(self, level: float) -> None:
        # (start_time, start_level, end_time, end_level); replaced atomically.
        self._ramp: tuple[float, float, float, float] = (0.0, level, 0.0, level)

    def value_at(self, times: np.ndarray) -> np.ndarray:
        start, start_level, end, end_level = self._ramp
        if end <= start:
            return np.full(len(times), end_level)
        return np.interp(times, [start, end], [start_level, end_level])

    def ramp_to(self, target: float, start_time: float, end_time: float) -> None:
        current = float(self.value_at(np.array([start_time]))[0])
        self._ramp = (start_time, current, end_time, float(target))

    @property
    def target(self) -> float:
        return self._ramp[3]


def waveform(shape: WaveShape, phases: np.ndarray) -> np.ndarray:
    """Evaluate one of the basic waveforms at ``phases`` given in cycles."""
    radians = 2 * np.pi * phases
    if shape is WaveShape.SINE:
        return np.sin(radians)
    if shape is WaveShape.SQUARE:
        return square(radians)
    if shape is WaveShape.SAWTOOTH:
        return sawtooth(radians)
    return sawtooth(radians, width=0.5)


class _Destination:
    def __repr__(self) -> str:
        return "<destination>"


class SynthContext:
    """Numpy/sounddevice implementation of the rendering context.

    Args:
        sample_rate: Output sampling frequency.
        block_size: Frames rendered per PortAudio callback.
        device: Optional sounddevice output device index.
    """

    def __init__(
        self,
        sample_rate: int = SAMPLE_RATE,
        block_size: int = SYNTH_BLOCK_SIZE,
        device: Optional[int] = None,
    ) -> None:
        self.sample_rate = sample_rate
        self.block_size = block_size
        self.device = device
        self.destination = _Destination()
        self._frames = 0
        self._links: dict[object, object] = {}
        self._routes: tuple[tuple[Oscillator, GainStage], ...] = ()
        self._lock = threading.Lock()
        # Heap of (deadline, sequence, callback) on the playback clock.
        self._scheduled: list[tuple[float, int, Callable[[], None]]] = []
        self._sequence = itertools.count()
        self.stream = None

    # --------------------------------------------------------------
    @property
    def current_time(self) -> float:
        return self._frames / self.sample_rate

    def create_oscillator(self, frequency: float, wave_shape: WaveShape) -> Oscillator:
        return Oscillator(frequency, wave_shape)

    def create_gain(self, level: float) -> GainStage:
        return GainStage(level)

    def connect(self, source: object, target: object) -> None:
        with self._lock:
            self._links[source] = target
            self._rebuild()

    def disconnect(self, source: object) -> None:
        with self._lock:
            self._links.pop(source, None)
            self._rebuild()

    def ramp_gain(self, gain: GainStage, target: float, end_time: float) -> None:
        gain.ramp_to(target, self.current_time, end_time)

    def set_wave_shape(self, oscillator: Oscillator, wave_shape: WaveShape) -> None:
        oscillator.wave_shape = WaveShape(wave_shape)

    def start(self, oscillator: Oscillator) -> None:
        with self._lock:
            oscillator.running = True
            self._rebuild()

    def stop(self, oscillator: Oscillator) -> None:
        with self._lock:
            oscillator.running = False
            self._rebuild()

    def call_later(self, delay: float, callback: Callable[[], None]) -> None:
        """Run ``callback`` once ``delay`` seconds of audio have been rendered."""
        deadline = self.current_time + delay
        with self._lock:
            heapq.heappush(self._scheduled, (deadline, next(self._sequence), callback))

    def _run_due(self) -> None:
        now = self.current_time
        due = []
        with self._lock:
            while self._scheduled and self._scheduled[0][0] <= now + 1e-9:
                due.append(heapq.heappop(self._scheduled)[2])
        for callback in due:
            try:
                callback()
            except Exception:
                logger.exception("Scheduled synth callback failed")

    def _rebuild(self) -> None:
        routes = []
        for source, target in self._links.items():
            if (
                isinstance(source, Oscillator)
                and source.running
                and isinstance(target, GainStage)
                and self._links.get(target) is self.destination
            ):
                routes.append((source, target))
        self._routes = tuple(routes)

    # --------------------------------------------------------------
    def render(self, frames: int) -> np.ndarray:
        """Mix every routed voice into a block of ``frames`` samples."""
        routes = self._routes
        times = (self._frames + np.arange(frames)) / self.sample_rate
        out = np.zeros(frames, dtype=np.float64)
        for oscillator, gain in routes:
            out += oscillator.render(frames, self.sample_rate) * gain.value_at(times)
        self._frames += frames
        block = np.clip(out, -1.0, 1.0).astype(np.float32)
        self._run_due()
        return block

    def _callback(self, outdata: np.ndarray, frames: int, _time, status) -> None:
        if status:
            logger.warning("Output stream status: %s", status)
        outdata[:, 0] = self.render(frames)
        if outdata.shape[1] > 1:
            outdata[:, 1:] = outdata[:, :1]

    def open(self) -> None:
        """Open and start the output stream."""
        from sounddevice import OutputStream  # type: ignore

        if self.stream is not None:
            return
        self.stream = OutputStream(
            samplerate=self.sample_rate,
            blocksize=self.block_size,
            device=self.device,
            channels=1,
            dtype="float32",
            callback=self._callback,
        )
        self.stream.start()
        logger.info("Synth output started at %d Hz", self.sample_rate)

    def close(self) -> None:
        with self._lock:
            self._scheduled.clear()
        if self.stream is not None:
            self.stream.stop()
            self.stream.close()
            self.stream = None

    def __enter__(self) -> "SynthContext":
        self.open()
        return self

    def __exit__(self, *_) -> None:
        self.close()


__all__ = ["Oscillator", "GainStage", "SynthContext", "waveform"]
