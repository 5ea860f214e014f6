"""Exponential moving-average smoothing over a bounded history."""

from __future__ import annotations

from collections import deque
from typing import Deque, Sequence


def _check_alpha(alpha: float) -> None:
    if not 0.0 < alpha <= 1.0:
        raise ValueError("alpha must be in (0, 1]")


def ema_smooth(history: Sequence[float], alpha: float = 0.3) -> float:
    """Return the EMA of ``history`` seeded with its first element.

    Each subsequent value updates ``acc = alpha * x + (1 - alpha) * acc``.
    An empty history yields 0.0.

    Args:
        history: ordered observations, oldest first.
        alpha: smoothing factor in (0, 1].
    """
    _check_alpha(alpha)
    if len(history) == 0:
        return 0.0
    it = iter(history)
    acc = float(next(it))
    for x in it:
        acc = alpha * float(x) + (1.0 - alpha) * acc
    return acc


def ema_series(history: Sequence[float], alpha: float = 0.3) -> list[float]:
    """Return every intermediate EMA value (same length as ``history``)."""
    _check_alpha(alpha)
    out: list[float] = []
    acc = 0.0
    for i, x in enumerate(history):
        acc = float(x) if i == 0 else alpha * float(x) + (1.0 - alpha) * acc
        out.append(acc)
    return out


class SmoothingHistory:
    """Bounded ring of raw observations for one channel.

    Oldest values are evicted once ``maxlen`` is exceeded; ``value`` is the
    EMA over what remains.
    """

    def __init__(self, maxlen: int = 30, alpha: float = 0.3) -> None:
        self.alpha = alpha
        self._values: Deque[float] = deque(maxlen=maxlen)

    def push(self, x: float) -> float:
        self._values.append(float(x))
        return self.value

    @property
    def value(self) -> float:
        return ema_smooth(self._values, self.alpha)

    def values(self) -> list[float]:
        return list(self._values)

    def clear(self) -> None:
        self._values.clear()

    def __len__(self) -> int:
        return len(self._values)
