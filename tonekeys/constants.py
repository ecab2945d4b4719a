"""Application-wide constants for the analysis engine and synthesiser.

The values in this module configure the audio pipeline: capture rates,
analysis window sizes, pitch-detection bounds, key-detection decay and
the timing of the batched high-accuracy inference path.  Centralising
the configuration avoids magic numbers spread throughout the code base
and makes it easy to tune behaviour in one place.
"""

from __future__ import annotations

# ─── Audio configuration ────────────────────────────────────────────────────

# Sampling frequency requested from the capture device.  Standard CD quality
# (44.1 kHz) is what most microphones deliver natively.
SAMPLE_RATE: int = 44_100

# Number of samples examined per pitch estimate.  4096 samples at 44.1 kHz
# covers ~93 ms, comfortably more than two periods of the lowest note.
WINDOW_SIZE: int = 4096

# Number of samples delivered per capture callback.
BLOCK_SIZE: int = 512

# Tuning reference.
A4_FREQ: float = 440.0
A4_MIDI: int = 69

NOTE_NAMES: list[str] = [
    "C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B",
]

# ─── Pitch detection (YIN) ──────────────────────────────────────────────────

# Lowest and highest fundamentals considered by the estimator.  These bound
# the lag search range.
YIN_MIN_FREQUENCY: float = 50.0
YIN_MAX_FREQUENCY: float = 880.0

# Absolute threshold on the cumulative mean normalised difference.
YIN_THRESHOLD: float = 0.1

# ─── Key detection ──────────────────────────────────────────────────────────

# Per-update decay used for the fast monophonic path so stale pitches fade.
STANDARD_DECAY: float = 0.97

# Batched note events already summarise a time window, so the
# high-accuracy path does not decay.
HIGH_ACCURACY_DECAY: float = 1.0

# ─── High-accuracy capture ──────────────────────────────────────────────────

# Length of the rolling capture buffer in seconds.
CAPTURE_BUFFER_SECONDS: float = 10.0

# How often the scheduler considers sending the buffer for inference, and
# how much fresh audio must have accumulated before it does.
INFERENCE_INTERVAL: float = 2.0
INFERENCE_MIN_SECONDS: float = 4.0

# Sample rate required by the external neural pitch model.
MODEL_SAMPLE_RATE: int = 22_050

# ─── Tick rates ─────────────────────────────────────────────────────────────

LEVEL_UPDATE_RATE: float = 15.0  # Hz
PITCH_UPDATE_RATE: float = 10.0  # Hz

# The level meter maps spectral magnitudes from this dB range onto 0..1.
LEVEL_MIN_DB: float = -90.0
LEVEL_MAX_DB: float = -10.0
LEVEL_BOOST: float = 2.0

# ─── Synthesiser ────────────────────────────────────────────────────────────

# Gain of a sounding voice, relative to full scale.
VOICE_GAIN: float = 0.1

# A short ramp in avoids the click of an instantaneous gain step.
VOICE_ATTACK_TIME: float = 0.005  # seconds
VOICE_RELEASE_TIME: float = 0.1  # seconds

# Output stream block size for the synthesiser.
SYNTH_BLOCK_SIZE: int = 256

__all__ = [
    "SAMPLE_RATE",
    "WINDOW_SIZE",
    "BLOCK_SIZE",
    "A4_FREQ",
    "A4_MIDI",
    "NOTE_NAMES",
    "YIN_MIN_FREQUENCY",
    "YIN_MAX_FREQUENCY",
    "YIN_THRESHOLD",
    "STANDARD_DECAY",
    "HIGH_ACCURACY_DECAY",
    "CAPTURE_BUFFER_SECONDS",
    "INFERENCE_INTERVAL",
    "INFERENCE_MIN_SECONDS",
    "MODEL_SAMPLE_RATE",
    "LEVEL_UPDATE_RATE",
    "PITCH_UPDATE_RATE",
    "LEVEL_MIN_DB",
    "LEVEL_MAX_DB",
    "LEVEL_BOOST",
    "VOICE_GAIN",
    "VOICE_ATTACK_TIME",
    "VOICE_RELEASE_TIME",
    "SYNTH_BLOCK_SIZE",
]
