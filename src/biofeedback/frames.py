"""Owned frame handles and the FIFO queue that holds them.

A :class:`Frame` wraps one HxWxC array. Exactly one owner holds it at a time:
the queue until ``pop``, then the consumer. ``release`` drops the array and
runs the optional release hook once; later calls are no-ops and any access to
``data`` afterwards raises :class:`FrameReleasedError`.
"""

from __future__ import annotations

import threading
from collections import deque
from typing import Callable, Deque, Optional

import numpy as np

from .errors import FrameReleasedError

ReleaseHook = Callable[["Frame"], None]


class Frame:
    """Single-owner handle around a 3-D frame tensor."""

    __slots__ = ("_data", "_on_release", "timestamp")

    def __init__(
        self,
        data: np.ndarray,
        timestamp: Optional[float] = None,
        on_release: Optional[ReleaseHook] = None,
    ) -> None:
        arr = np.asarray(data, dtype=np.float32)
        if arr.ndim != 3:
            raise ValueError("frame must be a HxWxC array")
        self._data: Optional[np.ndarray] = arr
        self._on_release = on_release
        self.timestamp = timestamp

    @property
    def data(self) -> np.ndarray:
        if self._data is None:
            raise FrameReleasedError("frame already released")
        return self._data

    @property
    def released(self) -> bool:
        return self._data is None

    @property
    def shape(self) -> tuple[int, ...]:
        return tuple(self.data.shape)

    def release(self) -> None:
        if self._data is None:
            return
        self._data = None
        hook, self._on_release = self._on_release, None
        if hook is not None:
            hook(self)

    def __enter__(self) -> "Frame":
        return self

    def __exit__(self, *exc: object) -> None:
        self.release()


class FrameQueue:
    """Thread-safe, unbounded FIFO of owned frames.

    There is no capacity bound: if the consumer stalls, frames accumulate.
    ``len`` reports the depth so callers can watch for that.
    """

    def __init__(self) -> None:
        self._q: Deque[Frame] = deque()
        self._lock = threading.Lock()

    def push(self, frame: Frame) -> None:
        with self._lock:
            self._q.append(frame)

    def pop(self) -> Optional[Frame]:
        """Remove and return the head frame, or None when empty."""
        with self._lock:
            return self._q.popleft() if self._q else None

    def release_all(self) -> int:
        """Release every queued frame and empty the queue. Returns the count."""
        with self._lock:
            pending = list(self._q)
            self._q.clear()
        for f in pending:
            f.release()
        return len(pending)

    def __len__(self) -> int:
        with self._lock:
            return len(self._q)
