"""Signal and batch preprocessing ahead of the inference call."""

from __future__ import annotations

import numpy as np
from scipy.signal import butter, lfilter


def normalize_batch(raw: np.ndarray, eps: float = 1e-7) -> np.ndarray:
    """Normalized frame differences for a TxHxWxC batch.

    ``d[t] = (x[t+1] - x[t]) / (x[t+1] + x[t] + eps)``, scaled to unit std and
    zero-padded at the end so the output keeps T frames.
    """
    x = np.asarray(raw, dtype=np.float32)
    if x.ndim != 4:
        raise ValueError("raw batch must be TxHxWxC")
    out = np.zeros_like(x)
    if x.shape[0] < 2:
        return out
    d = (x[1:] - x[:-1]) / (x[1:] + x[:-1] + eps)
    std = float(np.std(d))
    if std > 0:
        d = d / std
    out[:-1] = d
    return out


def moving_average_normalize(x: np.ndarray, win: int) -> np.ndarray:
    """Normalize a 1D signal by its moving average (ratio minus 1).

    Args:
        x: 1D array.
        win: window length in samples (>=1).
    """
    x = np.asarray(x, dtype=np.float32)
    win = max(int(win), 1)
    kernel = np.ones(win, dtype=np.float32) / float(win)
    pad_left = win // 2
    pad_right = win - 1 - pad_left
    xp = np.pad(x, (pad_left, pad_right), mode="edge")
    mean = np.convolve(xp, kernel, mode="valid")
    mean[mean == 0] = 1.0
    return x / mean - 1.0


def bandpass(
    x: np.ndarray,
    fs: float,
    fmin: float = 0.7,
    fmax: float = 4.0,
    order: int = 3,
) -> np.ndarray:
    """Causal Butterworth band-pass filter.

    Returns a copy of the input when the band is invalid for ``fs``.
    """
    x = np.asarray(x, dtype=np.float32)
    nyq = 0.5 * fs
    low = max(1e-6, fmin / nyq)
    high = min(0.999, fmax / nyq)
    if not (0 < low < high < 1):
        return x.copy()
    b, a = butter(order, [low, high], btype="band")
    return lfilter(b, a, x)
