"""Rolling capture buffer feeding the high-accuracy inference path.

The capture callback writes every incoming block into a fixed-size
circular buffer holding the last ``CAPTURE_BUFFER_SECONDS`` of audio.
Oldest samples are overwritten; the buffer never grows and never blocks.
An :class:`InferenceScheduler` polled from the analysis tick decides
when the buffer is linearised, resampled and handed to the external
model.

Only the capture path writes to the buffer.  The scheduler reads its
counters and flips a busy flag so at most one inference is outstanding;
a trigger that fires while busy is dropped rather than queued.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from math import gcd
from typing import Optional

import numpy as np
from scipy.signal import resample_poly

from .constants import (
    CAPTURE_BUFFER_SECONDS,
    INFERENCE_INTERVAL,
    INFERENCE_MIN_SECONDS,
    MODEL_SAMPLE_RATE,
)


class RollingCaptureBuffer:
    """Fixed-capacity circular store of float samples.

    Attributes:
        capacity: Number of samples retained.
        write_index: Position the next sample will be written to.
        total_written: Monotonic count of every sample ever written.
        last_inference_count: Value of ``total_written`` when the buffer
            was last marked as sent for inference.
    """

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = int(capacity)
        self._data = np.zeros(self.capacity, dtype=np.float32)
        self.write_index = 0
        self.total_written = 0
        self.last_inference_count = 0

    @classmethod
    def for_duration(
        cls, sample_rate: int, seconds: float = CAPTURE_BUFFER_SECONDS
    ) -> "RollingCaptureBuffer":
        return cls(int(sample_rate * seconds))

    def __len__(self) -> int:
        return min(self.total_written, self.capacity)

    @property
    def samples_since_inference(self) -> int:
        return self.total_written - self.last_inference_count

    def write(self, samples: np.ndarray) -> None:
        """Append ``samples``, overwriting the oldest data on wraparound."""
        block = np.asarray(samples, dtype=np.float32).reshape(-1)
        count = block.size
        if count == 0:
            return
        if count >= self.capacity:
            # Only the newest ``capacity`` samples can survive; lay them out
            # so the cursor ends where it would after a sample-by-sample write.
            tail = block[-self.capacity :]
            end = (self.write_index + count) % self.capacity
            self._data[:] = np.roll(tail, end)
            self.write_index = end
        else:
            first = min(count, self.capacity - self.write_index)
            self._data[self.write_index : self.write_index + first] = block[:first]
            rest = count - first
            if rest:
                self._data[:rest] = block[first:]
            self.write_index = (self.write_index + count) % self.capacity
        self.total_written += count

    def linearize(self) -> np.ndarray:
        """Return the retained samples in chronological order.

        Until the buffer has filled once only the written samples are
        returned; afterwards exactly ``capacity`` samples starting with the
        oldest retained one.
        """
        if self.total_written < self.capacity:
            return self._data[: self.write_index].copy()
        return np.concatenate(
            (self._data[self.write_index :], self._data[: self.write_index])
        )

    def latest(self, count: int) -> np.ndarray:
        """Return the most recent ``count`` samples (fewer if not written yet)."""
        return self.linearize()[-count:] if count > 0 else np.zeros(0, np.float32)

    def mark_inference(self) -> None:
        self.last_inference_count = self.total_written

    def clear(self) -> None:
        self._data.fill(0.0)
        self.write_index = 0
        self.total_written = 0
        self.last_inference_count = 0


def resample(samples: np.ndarray, source_rate: int, target_rate: int) -> np.ndarray:
    """Resample ``samples`` from ``source_rate`` to ``target_rate``."""
    if source_rate == target_rate:
        return np.asarray(samples, dtype=np.float32)
    divisor = gcd(int(source_rate), int(target_rate))
    out = resample_poly(samples, int(target_rate) // divisor, int(source_rate) // divisor)
    return out.astype(np.float32)


@dataclass(frozen=True)
class InferenceRequest:
    """A linearised buffer ready for the external model."""

    samples: np.ndarray
    sample_rate: int
    total_written: int


class InferenceScheduler:
    """Decide when the rolling buffer is sent to the external model.

    An inference is requested when either

    * ``interval`` seconds have passed since the last periodic check, at
      least ``min_seconds`` of new audio have accumulated since the buffer
      was last linearised, and no inference is outstanding; or
    * the new audio since the last inference fills the whole buffer and no
      inference is outstanding.

    Args:
        buffer: The rolling buffer written by the capture path.
        sample_rate: Sampling rate of the captured audio.
        interval: Seconds between periodic checks.
        min_seconds: Minimum fresh audio for a periodic trigger.
        model_sample_rate: Rate the model expects; requests are resampled.
    """

    def __init__(
        self,
        buffer: RollingCaptureBuffer,
        sample_rate: int,
        *,
        interval: float = INFERENCE_INTERVAL,
        min_seconds: float = INFERENCE_MIN_SECONDS,
        model_sample_rate: int = MODEL_SAMPLE_RATE,
    ) -> None:
        self.buffer = buffer
        self.sample_rate = sample_rate
        self.interval = interval
        self.min_samples = int(sample_rate * min_seconds)
        self.model_sample_rate = model_sample_rate
        self._busy = threading.Event()
        self._last_check: Optional[float] = None

    @property
    def busy(self) -> bool:
        return self._busy.is_set()

    def _periodic_due(self, now: float) -> bool:
        if self._last_check is None:
            self._last_check = now
            return False
        if now - self._last_check < self.interval:
            return False
        self._last_check = now
        return self.buffer.samples_since_inference >= self.min_samples

    def poll(self, now: float) -> Optional[InferenceRequest]:
        """Return a request if a trigger fires, otherwise ``None``.

        Returning a request marks the scheduler busy until :meth:`complete`
        is called.
        """
        periodic = self._periodic_due(now)
        full = self.buffer.samples_since_inference >= self.buffer.capacity
        if not (periodic or full) or self.busy:
            return None
        self._busy.set()
        samples = self.buffer.linearize()
        self.buffer.mark_inference()
        return InferenceRequest(
            samples=resample(samples, self.sample_rate, self.model_sample_rate),
            sample_rate=self.model_sample_rate,
            total_written=self.buffer.total_written,
        )

    def complete(self) -> None:
        """Clear the busy flag once the outstanding inference has finished."""
        self._busy.clear()

    def reset(self) -> None:
        self._busy.clear()
        self._last_check = None


__all__ = [
    "RollingCaptureBuffer",
    "InferenceRequest",
    "InferenceScheduler",
    "resample",
]
