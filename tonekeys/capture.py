"""Capture stream acquisition and its closed error taxonomy.

Opening an input device can fail in a handful of ways that the user can
act on: the platform has no audio backend, access was refused, no device
is present, or the device is held by another application.  Everything
else is ``unknown``.  Failures are terminal for the session; callers
report them and never enter the analysing state.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Optional

import numpy as np

from .constants import BLOCK_SIZE, SAMPLE_RATE

logger = logging.getLogger(__name__)


class CaptureErrorCode(Enum):
    UNSUPPORTED_PLATFORM = "unsupported-platform"
    PERMISSION_DENIED = "permission-denied"
    DEVICE_UNAVAILABLE = "device-unavailable"
    DEVICE_BUSY = "device-busy"
    UNKNOWN = "unknown"


_MESSAGES: dict[CaptureErrorCode, tuple[str, str]] = {
    CaptureErrorCode.UNSUPPORTED_PLATFORM: (
        "Audio capture is not supported on this platform",
        "Install PortAudio and make sure an audio backend is running",
    ),
    CaptureErrorCode.PERMISSION_DENIED: (
        "Microphone access was denied",
        "Allow microphone access for this application and try again",
    ),
    CaptureErrorCode.DEVICE_UNAVAILABLE: (
        "No microphone found",
        "Please connect a microphone and try again",
    ),
    CaptureErrorCode.DEVICE_BUSY: (
        "Microphone is being used by another application",
        "Please close other applications using the microphone and try again",
    ),
    CaptureErrorCode.UNKNOWN: (
        "Failed to access microphone",
        "An unexpected error occurred",
    ),
}

# Substrings of PortAudio error texts, checked in order.
_PATTERNS: list[tuple[CaptureErrorCode, tuple[str, ...]]] = [
    (CaptureErrorCode.UNSUPPORTED_PLATFORM, ("portaudio library not found",)),
    (
        CaptureErrorCode.PERMISSION_DENIED,
        ("permission", "access denied", "not authorized", "not permitted"),
    ),
    (
        CaptureErrorCode.DEVICE_BUSY,
        ("busy", "device unavailable", "exclusive mode", "in use"),
    ),
    (
        CaptureErrorCode.DEVICE_UNAVAILABLE,
        (
            "no default input",
            "invalid device",
            "no input device",
            "invalid number of channels",
            "no such device",
            "device not found",
        ),
    ),
]


class CaptureError(Exception):
    """Failure to acquire a capture stream."""

    def __init__(self, code: CaptureErrorCode, details: Optional[str] = None) -> None:
        message, hint = _MESSAGES[code]
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or hint


def classify_capture_error(exc: BaseException) -> CaptureError:
    """Map a PortAudio or OS error raised while opening a stream."""
    if isinstance(exc, CaptureError):
        return exc
    if isinstance(exc, PermissionError):
        return CaptureError(CaptureErrorCode.PERMISSION_DENIED, str(exc))
    text = str(exc).lower()
    for code, needles in _PATTERNS:
        if any(needle in text for needle in needles):
            return CaptureError(code, str(exc))
    return CaptureError(CaptureErrorCode.UNKNOWN, f"Error: {exc}")


def to_mono(indata: np.ndarray) -> np.ndarray:
    """Down-mix a PortAudio block to a one-dimensional float32 array."""
    if indata.ndim == 2 and indata.shape[1] > 1:
        return indata.mean(axis=1).astype(np.float32)
    return indata.reshape(-1).astype(np.float32)


def open_capture_stream(
    callback: Callable[[np.ndarray, int, Any, Any], None],
    *,
    device: Optional[int] = None,
    sample_rate: int = SAMPLE_RATE,
    block_size: int = BLOCK_SIZE,
    channels: int = 1,
    extra_settings: Any = None,
) -> Any:
    """Open and start a raw float32 input stream.

    No processing is requested from the backend, so the blocks reaching
    ``callback`` are the unaltered microphone signal.

    Raises:
        CaptureError: The stream could not be opened.
    """
    try:
        import sounddevice as sd  # type: ignore
    except OSError as exc:  # PortAudio shared library missing
        raise classify_capture_error(exc) from exc

    try:
        stream = sd.InputStream(
            device=device,
            channels=channels,
            samplerate=sample_rate,
            blocksize=block_size,
            dtype="float32",
            callback=callback,
            extra_settings=extra_settings,
        )
        stream.start()
    except (sd.PortAudioError, OSError, ValueError) as exc:
        error = classify_capture_error(exc)
        logger.error("Could not open capture stream (%s): %s", error.code.value, exc)
        raise error from exc
    except Exception as exc:
        # Backend or settings failures outside PortAudio still end up in the
        # closed taxonomy, usually as ``unknown``.
        error = classify_capture_error(exc)
        logger.exception("Unexpected error opening capture stream")
        raise error from exc
    logger.info("Capture started on device %s at %d Hz", device, sample_rate)
    return stream


__all__ = [
    "CaptureErrorCode",
    "CaptureError",
    "classify_capture_error",
    "open_capture_stream",
    "to_mono",
]
