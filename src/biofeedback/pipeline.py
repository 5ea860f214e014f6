"""Frame batching, inference and pulse analysis.

``PulsePipeline`` drains the buffer's ``pulse`` queue, stacks frames into
batches, calls the inference function and feeds the resulting waveform into
peak detection, HRV and respiration. Results land back in the buffer.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import ExitStack
from typing import Callable, Optional, Sequence

import numpy as np

from .bridge import ComputeBridge
from .buffer import SignalBuffer
from .config import PulseConfig
from .frames import Frame
from .hrv import HrvMetrics, stress_index
from .peaks import PulseResult, analyze_waveform
from .preprocess import normalize_batch
from .respiration import resp_rate_from_heart_rates

logger = logging.getLogger(__name__)

InferFn = Callable[[np.ndarray, np.ndarray], Optional[Sequence[float]]]
Normalizer = Callable[[np.ndarray], np.ndarray]


class PulsePipeline:
    def __init__(
        self,
        buffer: SignalBuffer,
        infer: InferFn,
        bridge: Optional[ComputeBridge] = None,
        cfg: Optional[PulseConfig] = None,
        normalizer: Normalizer = normalize_batch,
    ) -> None:
        self.buffer = buffer
        self.infer = infer
        self.cfg = cfg or PulseConfig()
        self.bridge = bridge or ComputeBridge(sampling_rate=self.cfg.sampling_rate)
        self.normalizer = normalizer
        self.running = False
        self._batch: list[Frame] = []
        self.hrv: Optional[HrvMetrics] = None
        self.stress: Optional[float] = None
        self.respiratory_rate: Optional[float] = None

    @property
    def sampling_rate(self) -> float:
        return self.cfg.sampling_rate

    def set_sampling_rate(self, rate: float) -> None:
        if not rate > 0:
            raise ValueError("sampling rate must be positive")
        self.cfg.sampling_rate = float(rate)
        if hasattr(self.infer, "fs"):
            self.infer.fs = float(rate)
        self.bridge.set_sampling_rate(rate)

    # --- per-step processing -----------------------------------------------

    def step(self) -> bool:
        """Pop one frame into the current batch. False when the queue is empty."""
        frame = self.buffer.pop_frame("pulse")
        if frame is None:
            return False
        self._batch.append(frame)
        if len(self._batch) >= self.cfg.batch_size:
            batch, self._batch = self._batch, []
            self.run_batch(batch)
        return True

    def run_batch(self, frames: list[Frame]) -> Optional[PulseResult]:
        """Infer a waveform for ``frames`` and analyze it.

        Takes ownership of the frames; all are released before returning.
        Inference failures skip the batch.
        """
        with ExitStack() as stack:
            for f in frames:
                stack.callback(f.release)
            try:
                raw = np.stack([f.data for f in frames])
                out = self.infer(self.normalizer(raw), raw)
                if out is None:
                    return None
                # models emit (1, T) or (T, 1) as readily as (T,)
                waveform = np.asarray(out, dtype=np.float64).ravel()
            except Exception:
                logger.warning("inference failed; skipping batch of %d frames", len(frames), exc_info=True)
                return None
        if waveform.size == 0:
            return None
        return self.compute(waveform)

    def compute(self, waveform: Sequence[float]) -> PulseResult:
        """Store a waveform batch and update HR, RR intervals, HRV and respiration."""
        fs = self.cfg.sampling_rate
        self.buffer.append_waveform(waveform)
        result = analyze_waveform(waveform, fs, self.cfg.peak_threshold_ratio)
        if result.bpm is not None:
            self.buffer.append_heart_rate(result.bpm)
        for ms in result.rr_ms:
            self.buffer.append_rr_interval(ms)
        self._update_hrv()
        self._update_respiration()
        return result

    def _update_hrv(self) -> None:
        metrics = self.bridge.compute_hrv(self.buffer.history("rr_intervals"))
        if metrics is not None:
            self.hrv = metrics
            self.stress = stress_index(metrics)

    def _update_respiration(self) -> None:
        n = int(self.cfg.resp_window_sec * self.cfg.sampling_rate)
        rate = self.bridge.compute_respiratory_rate(
            self.buffer.tail("waveform", n), self.cfg.sampling_rate
        )
        if rate is None:
            rate = resp_rate_from_heart_rates(
                self.buffer.history("heart_rates"), self.cfg.hr_history_for_resp
            )
        if rate is not None:
            self.respiratory_rate = rate

    # --- loop ----------------------------------------------------------------

    def start(self) -> "asyncio.Task[None]":
        self.running = True
        return asyncio.create_task(self.run())

    async def run(self) -> None:
        logger.info("pulse pipeline started (fs=%.1f, batch=%d)", self.sampling_rate, self.cfg.batch_size)
        while self.running:
            try:
                busy = self.step()
            except Exception:
                # keep loop running
                logger.exception("pulse step failed")
                busy = False
            if busy:
                await asyncio.sleep(0)
            else:
                await asyncio.sleep(self.cfg.poll_interval)
        logger.info("pulse pipeline stopped")

    def stop(self) -> None:
        self.running = False
        self.reset()

    def reset(self) -> None:
        batch, self._batch = self._batch, []
        for f in batch:
            f.release()
        self.hrv = None
        self.stress = None
        self.respiratory_rate = None
