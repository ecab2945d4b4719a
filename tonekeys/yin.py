"""Monophonic fundamental-frequency estimation with the YIN algorithm.

YIN looks for the lag at which a signal best repeats itself.  The
difference function measures how much the window differs from a shifted
copy of itself; normalising it by its running mean makes a single
absolute threshold usable across signal levels.  The first dip below the
threshold, refined by parabolic interpolation, gives the period.

The estimator is stateless: every call examines one window in isolation.
A window of near silence or noise legitimately yields ``None``.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from .constants import YIN_MAX_FREQUENCY, YIN_MIN_FREQUENCY, YIN_THRESHOLD


def difference_function(samples: np.ndarray, max_lag: int) -> np.ndarray:
    """Return ``d(τ) = Σ (x[i] − x[i+τ])²`` for ``τ`` in ``0..max_lag``."""
    diff = np.zeros(max_lag + 1, dtype=np.float64)
    for lag in range(1, max_lag + 1):
        delta = samples[:-lag] - samples[lag:]
        diff[lag] = np.dot(delta, delta)
    return diff


def cumulative_mean_normalized_difference(diff: np.ndarray) -> np.ndarray:
    """Normalise ``diff`` by its running mean; ``cmnd(0)`` is 1.

    Lags whose running sum is still zero (a silent window) are set to 1 so
    they can never pass the threshold.
    """
    cmnd = np.ones_like(diff)
    running = np.cumsum(diff[1:])
    lags = np.arange(1, len(diff))
    nonzero = running > 0
    cmnd[1:][nonzero] = diff[1:][nonzero] * lags[nonzero] / running[nonzero]
    return cmnd


def _parabolic_lag(cmnd: np.ndarray, tau: int, max_lag: int) -> float:
    x0 = tau - 1 if tau > 1 else tau
    x2 = tau + 1 if tau + 1 < max_lag else tau
    s0, s1, s2 = cmnd[x0], cmnd[tau], cmnd[x2]
    denominator = 2 * (2 * s1 - s2 - s0)
    if denominator == 0:
        return float(tau)
    return float(tau + (s2 - s0) / denominator)


def yin_pitch(
    samples: np.ndarray,
    sample_rate: int,
    *,
    min_frequency: float = YIN_MIN_FREQUENCY,
    max_frequency: float = YIN_MAX_FREQUENCY,
    threshold: float = YIN_THRESHOLD,
) -> Optional[float]:
    """Estimate the fundamental frequency of ``samples``.

    Args:
        samples: One-dimensional time-domain window.
        sample_rate: Sampling frequency of ``samples`` in hertz.
        min_frequency: Lowest fundamental searched; sets the largest lag.
        max_frequency: Highest fundamental searched; sets the smallest lag.
        threshold: Absolute threshold on the normalised difference.

    Returns:
        The estimated frequency in hertz, or ``None`` when no lag in range
        falls below ``threshold``.
    """
    if sample_rate <= 0:
        raise ValueError(f"sample rate must be positive, got {sample_rate}")
    if not 0 < min_frequency < max_frequency:
        raise ValueError("expected 0 < min_frequency < max_frequency")

    x = np.asarray(samples, dtype=np.float64).reshape(-1)
    min_lag = max(int(round(sample_rate / max_frequency)), 1)
    max_lag = min(int(round(sample_rate / min_frequency)), x.size - 1)
    if max_lag <= min_lag:
        return None

    cmnd = cumulative_mean_normalized_difference(difference_function(x, max_lag))

    tau = -1
    lag = min_lag
    while lag <= max_lag:
        if cmnd[lag] < threshold:
            # Slide down to the bottom of the dip.
            while lag + 1 <= max_lag and cmnd[lag + 1] < cmnd[lag]:
                lag += 1
            tau = lag
            break
        lag += 1
    if tau == -1:
        return None

    return sample_rate / _parabolic_lag(cmnd, tau, max_lag)


__all__ = [
    "difference_function",
    "cumulative_mean_normalized_difference",
    "yin_pitch",
]
