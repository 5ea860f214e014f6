"""POS projection used as the default stand-in for the inference boundary.

``PosInference`` has the same call shape as the neural model,
``infer(normalized_batch, raw_batch) -> waveform``, but only looks at the raw
batch: per-frame mean RGB, normalized, band-passed and projected.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from .preprocess import bandpass, moving_average_normalize


def mean_rgb(batch: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Per-frame channel means of a TxHxWx3 RGB batch."""
    x = np.asarray(batch, dtype=np.float32)
    if x.ndim != 4 or x.shape[-1] != 3:
        raise ValueError("batch must be TxHxWx3")
    m = x.reshape(x.shape[0], -1, 3).mean(axis=1)
    return m[:, 0], m[:, 1], m[:, 2]


def pos_signal(Rn: np.ndarray, Gn: np.ndarray, Bn: np.ndarray) -> np.ndarray:
    """Compute POS composite signal for a window of normalized RGB.

    Args:
        Rn, Gn, Bn: 1D arrays of equal length (normalized & filtered).
    """
    Rn = np.asarray(Rn, dtype=np.float32)
    Gn = np.asarray(Gn, dtype=np.float32)
    Bn = np.asarray(Bn, dtype=np.float32)
    X = Gn - Bn
    Y = -2 * Rn + Gn + Bn
    sx = np.std(X) or 1.0
    sy = np.std(Y) or 1.0
    alpha = sx / sy
    return X + alpha * Y


class PosInference:
    def __init__(self, fs: float = 30.0, fmin: float = 0.7, fmax: float = 4.0) -> None:
        self.fs = fs
        self.fmin = fmin
        self.fmax = fmax

    def __call__(self, normalized_batch: Optional[np.ndarray], raw_batch: np.ndarray) -> list[float]:
        R, G, B = mean_rgb(raw_batch)
        if R.size < 8:
            return []
        win = max(1, int(0.5 * self.fs))
        fmax = min(self.fmax, 0.45 * self.fs)
        Rn = bandpass(moving_average_normalize(R, win), self.fs, self.fmin, fmax)
        Gn = bandpass(moving_average_normalize(G, win), self.fs, self.fmin, fmax)
        Bn = bandpass(moving_average_normalize(B, win), self.fs, self.fmin, fmax)
        return [float(v) for v in pos_signal(Rn, Gn, Bn)]
