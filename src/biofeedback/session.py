"""Session object owning the buffer, the pulse pipeline and the facial extractor.

A session starts with empty buffers and ends with ``stop``, which releases
every frame it still owns and clears all histories.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import numpy as np

from .bridge import ComputeBridge
from .buffer import SignalBuffer
from .config import SessionConfig
from .facial import (
    FacialMetricExtractor,
    relaxation_level,
    relaxation_score,
    summarize,
    tension_level,
)
from .pipeline import InferFn, PulsePipeline
from .pos import PosInference

logger = logging.getLogger(__name__)


class Session:
    def __init__(
        self,
        cfg: Optional[SessionConfig] = None,
        infer: Optional[InferFn] = None,
        bridge: Optional[ComputeBridge] = None,
    ) -> None:
        self.cfg = cfg or SessionConfig()
        fs = self.cfg.pulse.sampling_rate
        self.buffer = SignalBuffer(facial_capacity=self.cfg.buffer.facial_capacity)
        self.bridge = bridge or ComputeBridge(self.cfg.bridge, sampling_rate=fs)
        self.pulse = PulsePipeline(
            self.buffer,
            infer or PosInference(fs),
            bridge=self.bridge,
            cfg=self.cfg.pulse,
        )
        self.facial = FacialMetricExtractor(self.buffer, self.cfg.facial)
        self._tasks: list[asyncio.Task] = []
        self.backend = self.bridge.initialize()

    @property
    def active(self) -> bool:
        return bool(self._tasks)

    def push_frame(self, frame: np.ndarray, timestamp: Optional[float] = None) -> None:
        self.buffer.push_frame(frame, timestamp)

    def set_sampling_rate(self, rate: float) -> None:
        self.pulse.set_sampling_rate(rate)

    async def start(self) -> None:
        """Start both loops on the running event loop."""
        if self._tasks:
            return
        self.buffer.reset()
        self._tasks = [self.pulse.start(), self.facial.start()]
        logger.info("session started")

    async def stop(self) -> None:
        """Stop both loops and release everything the session owns."""
        tasks, self._tasks = self._tasks, []
        self.pulse.running = False
        self.facial.processing = False
        try:
            results = await asyncio.gather(*tasks, return_exceptions=True)
            for res in results:
                if isinstance(res, BaseException):
                    logger.error("session loop ended with %r", res)
        finally:
            self.reset()
        logger.info("session stopped")

    def reset(self) -> None:
        self.pulse.reset()
        self.facial.reset()
        released = self.buffer.reset()
        if released:
            logger.info("released %d queued frames", released)

    def snapshot(self) -> dict:
        """Latest values for the view layer; None where nothing is known yet."""
        facial = self.buffer.latest("facial")
        score = relaxation_score(facial)
        hrv = self.pulse.hrv
        return {
            "heart_rate": self.buffer.latest("heart_rates"),
            "rr_interval": self.buffer.latest("rr_intervals"),
            "hrv": hrv.to_dict() if hrv is not None else None,
            "stress_index": self.pulse.stress,
            "respiratory_rate": self.pulse.respiratory_rate,
            "facial": facial.to_dict() if facial is not None else None,
            "relaxation_score": score,
            "relaxation_level": relaxation_level(score) if score is not None else None,
            "tension_level": tension_level(facial.muscle_tension) if facial is not None else None,
            "facial_summary": summarize(self.buffer.history("facial"), self.pulse.sampling_rate),
            "backend": self.backend,
            "sampling_rate": self.pulse.sampling_rate,
            "pending_frames": {
                "pulse": self.buffer.pending("pulse"),
                "facial": self.buffer.pending("facial"),
            },
            "active": self.active,
        }
