"""Peak detection and heart-rate / RR-interval estimation from a waveform."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np


@dataclass
class PulseResult:
    peaks: np.ndarray  # sample indices, strictly increasing
    bpm: Optional[float]  # None with fewer than 2 peaks
    rr_ms: list[float] = field(default_factory=list)


def find_peaks(signal: Sequence[float], threshold_ratio: float = 0.5) -> np.ndarray:
    """Return indices of local maxima above ``max(signal) * threshold_ratio``.

    A sample ``i`` (1 <= i <= n-2) is a peak when it exceeds the threshold
    and both neighbours. The first and last samples are never peaks.
    """
    x = np.asarray(signal, dtype=np.float64)
    if x.size < 3:
        return np.zeros(0, dtype=np.int64)
    threshold = float(np.max(x)) * threshold_ratio
    mid = x[1:-1]
    mask = (mid > threshold) & (mid > x[:-2]) & (mid > x[2:])
    return np.flatnonzero(mask).astype(np.int64) + 1


def heart_rate_from_peaks(peaks: Sequence[int], fs: float = 30.0) -> Optional[float]:
    """Mean inter-peak interval converted to beats per minute.

    Returns None with fewer than 2 peaks.
    """
    p = np.asarray(peaks, dtype=np.float64)
    if p.size < 2 or fs <= 0:
        return None
    avg_interval = float(np.mean(np.diff(p)))
    if avg_interval <= 0:
        return None
    return 60.0 / (avg_interval / fs)


def rr_intervals_ms(peaks: Sequence[int], fs: float = 30.0) -> list[float]:
    """Consecutive peak spacings in milliseconds, in temporal order."""
    p = np.asarray(peaks, dtype=np.float64)
    if p.size < 2 or fs <= 0:
        return []
    return [float(d) for d in np.diff(p) * (1000.0 / fs)]


def analyze_waveform(
    signal: Sequence[float],
    fs: float = 30.0,
    threshold_ratio: float = 0.5,
) -> PulseResult:
    """Detect peaks once and derive both heart rate and RR intervals."""
    peaks = find_peaks(signal, threshold_ratio)
    return PulseResult(
        peaks=peaks,
        bpm=heart_rate_from_peaks(peaks, fs),
        rr_ms=rr_intervals_ms(peaks, fs),
    )
