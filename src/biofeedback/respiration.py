"""Respiration rate (RR) estimation.

Two estimators:
- ``estimate_resp_rate``: peaks of a moving-average smoothed rPPG waveform.
  This is the local reference the accelerated backend must agree with.
- ``resp_rate_from_heart_rates``: rough estimate from recent heart-rate
  variability, used when the waveform yields nothing.
"""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np

MIN_SAMPLES = 100
RESP_BAND_HZ = (0.1, 0.5)


def smooth_for_respiration(
    x: np.ndarray,
    fs: float,
    low_hz: float = RESP_BAND_HZ[0],
    high_hz: float = RESP_BAND_HZ[1],
) -> np.ndarray:
    """Centered moving average over ``[i - w, i + w]`` (truncated at edges)."""
    n = x.size
    w = int(fs / (low_hz + high_hz) * 2.0)
    w = min(max(w, 3), n // 4)
    csum = np.concatenate(([0.0], np.cumsum(x)))
    idx = np.arange(n)
    start = np.maximum(idx - w, 0)
    end = np.minimum(idx + w + 1, n)
    return (csum[end] - csum[start]) / (end - start)


def _respiration_peaks(x: np.ndarray) -> np.ndarray:
    if x.size < 3:
        return np.zeros(0, dtype=np.int64)
    # threshold never drops below zero
    threshold = max(0.0, float(np.max(x))) * 0.5
    mid = x[1:-1]
    mask = (mid > threshold) & (mid > x[:-2]) & (mid > x[2:])
    return np.flatnonzero(mask) + 1


def estimate_resp_rate(signal: Sequence[float], fs: float = 30.0) -> Optional[float]:
    """Breaths per minute from peaks of the smoothed signal.

    Returns None for signals shorter than 100 samples or with fewer than two
    respiratory peaks.
    """
    x = np.asarray(signal, dtype=np.float64)
    if x.size < MIN_SAMPLES or fs <= 0:
        return None
    peaks = _respiration_peaks(smooth_for_respiration(x, fs))
    if peaks.size < 2:
        return None
    avg_interval = float(np.mean(np.diff(peaks))) / fs
    return 60.0 / avg_interval


def resp_rate_from_heart_rates(
    heart_rates: Sequence[float],
    window: int = 30,
    lo: float = 8.0,
    hi: float = 20.0,
) -> Optional[float]:
    """``12 + 2 * std(last window HR)`` clipped to [lo, hi].

    Needs more than ``window`` heart-rate values.
    """
    hr = np.asarray(heart_rates, dtype=np.float64)
    if hr.size <= window:
        return None
    variability = float(np.std(hr[-window:]))
    return float(np.clip(12.0 + variability * 2.0, lo, hi))
