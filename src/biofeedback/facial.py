"""Facial relaxation signals from consecutive video frames.

Per frame, four raw indicators are computed from pixel statistics
(tension, eye movement, blink, symmetry). Each goes into its own bounded
history and is EMA-smoothed before a :class:`FacialMetrics` record is stored.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .buffer import FacialMetrics, SignalBuffer
from .config import FacialConfig
from .frames import Frame
from .smoothing import SmoothingHistory

logger = logging.getLogger(__name__)

CHANNELS = ("muscle_tension", "eye_movement", "blink_rate", "facial_symmetry")


@dataclass
class RawFacial:
    muscle_tension: float
    eye_movement: float
    blink_rate: float
    facial_symmetry: float


def _halves(frame: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Split along the channel axis; single-channel frames split by width."""
    axis = -1 if frame.shape[-1] >= 2 else 1
    half = frame.shape[axis] // 2
    left, right = np.split(frame, [half], axis=axis)
    return left, right


def raw_facial_metrics(
    current: np.ndarray,
    previous: Optional[np.ndarray] = None,
    cfg: Optional[FacialConfig] = None,
) -> RawFacial:
    """Frame-local indicators, without any history.

    Without a previous frame, movement and blink are 0 and symmetry takes
    the neutral default.
    """
    cfg = cfg or FacialConfig()
    cur = np.asarray(current, dtype=np.float32)
    tension = float(np.var(cur)) * cfg.tension_scale
    if previous is None:
        return RawFacial(tension, 0.0, 0.0, cfg.neutral_symmetry)
    prev = np.asarray(previous, dtype=np.float32)
    if prev.shape != cur.shape:
        raise ValueError("previous frame shape does not match current frame")
    eye = float(np.mean(np.abs(cur - prev))) * cfg.eye_scale
    blink = abs(float(np.mean(cur)) - float(np.mean(prev))) * cfg.blink_scale
    left, right = _halves(cur)
    if left.size == 0 or right.size == 0:
        symmetry = cfg.neutral_symmetry
    else:
        symmetry = 1.0 - abs(float(np.mean(left)) - float(np.mean(right)))
    return RawFacial(tension, eye, blink, symmetry)


class FacialMetricExtractor:
    """Continuous consumer of the buffer's ``facial`` frame queue.

    Keeps the last processed frame for differencing; it is released when
    replaced or on reset.
    """

    def __init__(self, buffer: SignalBuffer, cfg: Optional[FacialConfig] = None) -> None:
        self.buffer = buffer
        self.cfg = cfg or FacialConfig()
        self.processing = False
        self._previous: Optional[Frame] = None
        self._histories = {
            name: SmoothingHistory(self.cfg.history_len, self.cfg.alpha) for name in CHANNELS
        }

    def process_frame(self, frame: Frame) -> FacialMetrics:
        """Compute, smooth and store metrics for one frame.

        Takes ownership of ``frame``.
        """
        try:
            prev = self._previous.data if self._previous is not None else None
            raw = raw_facial_metrics(frame.data, prev, self.cfg)
        except Exception:
            frame.release()
            raise
        h = self._histories
        metrics = FacialMetrics(
            muscle_tension=h["muscle_tension"].push(raw.muscle_tension),
            eye_movement=h["eye_movement"].push(raw.eye_movement),
            blink_rate=h["blink_rate"].push(raw.blink_rate),
            facial_symmetry=h["facial_symmetry"].push(raw.facial_symmetry),
            timestamp=int(time.time() * 1000),
        )
        self.buffer.add_facial_metrics(metrics)
        if self._previous is not None:
            self._previous.release()
        self._previous = frame
        return metrics

    def step(self) -> Optional[FacialMetrics]:
        """Pop and process one frame; None when the queue is empty."""
        frame = self.buffer.pop_frame("facial")
        if frame is None:
            return None
        return self.process_frame(frame)

    def start(self) -> "asyncio.Task[None]":
        """Set the processing flag and schedule the loop on the running event loop."""
        self.processing = True
        return asyncio.create_task(self.run())

    async def run(self) -> None:
        """Process frames while the processing flag is set."""
        logger.info("facial extractor started")
        while self.processing:
            try:
                out = self.step()
            except ValueError as exc:
                logger.warning("skipping facial frame: %s", exc)
                out = None
            if out is None:
                await asyncio.sleep(self.cfg.poll_interval)
            else:
                await asyncio.sleep(0)
        logger.info("facial extractor stopped")

    def stop(self) -> None:
        self.processing = False
        self.reset()

    def reset(self) -> None:
        if self._previous is not None:
            self._previous.release()
        self._previous = None
        self.processing = False
        for hist in self._histories.values():
            hist.clear()

    def set_alpha(self, alpha: float) -> None:
        if not 0.0 < alpha <= 1.0:
            raise ValueError("alpha must be in (0, 1]")
        self.cfg.alpha = alpha
        for hist in self._histories.values():
            hist.alpha = alpha

    def history(self, channel: str) -> list[float]:
        return self._histories[channel].values()


# --- summaries over stored metrics -------------------------------------------


def relaxation_score(m: Optional[FacialMetrics]) -> Optional[int]:
    """0..100 score; low tension, movement and blink plus high symmetry score high."""
    if m is None:
        return None
    parts = (
        max(0.0, 1.0 - m.muscle_tension),
        max(0.0, 1.0 - m.eye_movement),
        max(0.0, 1.0 - m.blink_rate),
        m.facial_symmetry,
    )
    return int(round(sum(parts) / 4.0 * 100.0))


def relaxation_level(score: int) -> str:
    if score > 80:
        return "Very Relaxed"
    if score > 60:
        return "Relaxed"
    if score > 40:
        return "Moderate"
    if score > 20:
        return "Tense"
    return "Very Tense"


def tension_level(tension: float) -> str:
    if tension < 0.3:
        return "Relaxed"
    if tension < 0.6:
        return "Moderate"
    return "Tense"


def summarize(records: list[FacialMetrics], fs: float = 30.0) -> Optional[dict]:
    """Aggregate a window of records into channel means and variabilities.

    Eye-movement frequency counts successive changes above 0.1, scaled to
    events per second at ``fs``.
    """
    if not records:
        return None
    tension = np.array([r.muscle_tension for r in records], dtype=np.float64)
    eye = np.array([r.eye_movement for r in records], dtype=np.float64)
    blink = np.array([r.blink_rate for r in records], dtype=np.float64)
    sym = np.array([r.facial_symmetry for r in records], dtype=np.float64)
    if eye.size < 2:
        eye_freq = 0.0
    else:
        moves = int(np.count_nonzero(np.abs(np.diff(eye)) > 0.1))
        eye_freq = moves / (eye.size - 1) * fs
    return {
        "avg_tension": float(tension.mean()),
        "tension_variability": float(tension.std()),
        "avg_eye_movement": float(eye.mean()),
        "eye_movement_frequency": float(eye_freq),
        "avg_blink_rate": float(blink.mean()),
        "avg_symmetry": float(sym.mean()),
    }
