"""Session signal buffer between capture/inference and the view layer.

Holds the frame queues, the append-only accumulators (waveform, RR intervals,
heart rates) and the bounded facial-metrics ring. It is also the disposal
authority for frames still queued when the session resets.
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import asdict, dataclass
from time import perf_counter
from typing import Deque, Iterable, Optional

import numpy as np

from .frames import Frame, FrameQueue, ReleaseHook

CONSUMERS = ("pulse", "facial")


@dataclass(frozen=True)
class FacialMetrics:
    muscle_tension: float
    eye_movement: float
    blink_rate: float
    facial_symmetry: float
    timestamp: int  # ms since epoch

    def to_dict(self) -> dict:
        return asdict(self)


class SignalBuffer:
    """FIFO frame queues plus metric accumulators for one session.

    Every operation takes the buffer lock, so a capture thread can push while
    an event-loop consumer pops.
    """

    def __init__(self, facial_capacity: int = 100, on_release: Optional[ReleaseHook] = None) -> None:
        self._lock = threading.Lock()
        self._queues = {name: FrameQueue() for name in CONSUMERS}
        self._on_release = on_release
        self.facial_capacity = facial_capacity
        self._waveform: list[float] = []
        self._rr: list[float] = []
        self._hr: list[float] = []
        self._facial: Deque[FacialMetrics] = deque(maxlen=facial_capacity)

    # --- frames -----------------------------------------------------------

    def push_frame(self, frame: np.ndarray, timestamp: Optional[float] = None) -> None:
        """Queue one captured frame for every consumer.

        Each consumer gets its own owned handle to the same array.
        """
        ts = perf_counter() if timestamp is None else timestamp
        for q in self._queues.values():
            q.push(Frame(frame, timestamp=ts, on_release=self._on_release))

    def pop_frame(self, consumer: str = "pulse") -> Optional[Frame]:
        """Non-blocking pop; None means no frame is queued."""
        return self._queue(consumer).pop()

    def pending(self, consumer: str = "pulse") -> int:
        return len(self._queue(consumer))

    def _queue(self, consumer: str) -> FrameQueue:
        try:
            return self._queues[consumer]
        except KeyError:
            raise ValueError(f"unknown consumer: {consumer!r}") from None

    # --- accumulators -------------------------------------------------------

    def append_waveform(self, samples: Iterable[float]) -> None:
        vals = [float(x) for x in samples]
        with self._lock:
            self._waveform.extend(vals)

    def append_rr_interval(self, ms: float) -> None:
        if ms <= 0:
            raise ValueError("RR interval must be positive")
        with self._lock:
            self._rr.append(float(ms))

    def append_heart_rate(self, bpm: float) -> None:
        with self._lock:
            self._hr.append(float(bpm))

    def add_facial_metrics(self, m: FacialMetrics) -> None:
        # deque(maxlen) drops the oldest record when full
        with self._lock:
            self._facial.append(m)

    def latest(self, channel: str):
        """Most recent element of a channel, or None when it is empty."""
        with self._lock:
            seq = self._channel(channel)
            return seq[-1] if len(seq) > 0 else None

    def history(self, channel: str) -> list:
        with self._lock:
            return list(self._channel(channel))

    def tail(self, channel: str, n: int) -> list:
        with self._lock:
            seq = list(self._channel(channel))
        return seq[-n:] if n > 0 else []

    def size(self, channel: str) -> int:
        with self._lock:
            return len(self._channel(channel))

    def _channel(self, channel: str):
        if channel == "waveform":
            return self._waveform
        if channel == "rr_intervals":
            return self._rr
        if channel == "heart_rates":
            return self._hr
        if channel == "facial":
            return self._facial
        raise ValueError(f"unknown channel: {channel!r}")

    # --- lifecycle ----------------------------------------------------------

    def reset(self) -> int:
        """Release every queued frame and clear all accumulators.

        Safe to call repeatedly. Returns the number of frames released.
        """
        released = sum(q.release_all() for q in self._queues.values())
        with self._lock:
            self._waveform.clear()
            self._rr.clear()
            self._hr.clear()
            self._facial.clear()
        return released
