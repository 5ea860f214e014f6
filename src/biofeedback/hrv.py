"""Time-domain heart-rate variability (RMSSD, SDNN, pNN50)."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Optional, Sequence

import numpy as np

PNN50_THRESHOLD_MS = 50.0


@dataclass(frozen=True)
class HrvMetrics:
    rmssd: float  # ms
    sdnn: float  # ms
    pnn50: float  # percent, 0..100

    def as_tuple(self) -> tuple[float, float, float]:
        return self.rmssd, self.sdnn, self.pnn50

    def to_dict(self) -> dict:
        return asdict(self)


def compute_hrv(rr_intervals: Sequence[float]) -> Optional[HrvMetrics]:
    """Compute RMSSD, SDNN and pNN50 from RR intervals in milliseconds.

    RMSSD and pNN50 share one array of absolute successive differences.
    SDNN uses the population variance. Returns None with fewer than two
    intervals.
    """
    rr = np.asarray(rr_intervals, dtype=np.float64)
    if rr.size < 2:
        return None
    d = np.abs(np.diff(rr))
    rmssd = float(np.sqrt(np.mean(d * d)))
    sdnn = float(np.sqrt(np.mean((rr - rr.mean()) ** 2)))
    pnn50 = float(np.count_nonzero(d > PNN50_THRESHOLD_MS) / d.size * 100.0)
    return HrvMetrics(rmssd=rmssd, sdnn=sdnn, pnn50=pnn50)


def stress_index(metrics: Optional[HrvMetrics]) -> Optional[float]:
    """Coarse 0..100 stress indicator that falls as RMSSD rises."""
    if metrics is None:
        return None
    return max(0.0, 100.0 - metrics.rmssd / 10.0)
