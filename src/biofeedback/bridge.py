"""Interchangeable compute backends for HRV and respiratory rate.

``LocalBackend`` runs the numpy implementations in-process.
``ExternalBackend`` drives an accelerated extension module exposing::

    BiofeedbackProcessor(sampling_rate) -> handle
        .add_rr_intervals(float64[]), .clear_rr_intervals(), .compute_hrv()
    compute_hrv_metrics(float64[]) -> (rmssd, sdnn, pnn50)
    compute_respiratory_rate(float64[], sampling_rate) -> float

Both backends return the same numbers for the same inputs; ``ComputeBridge``
picks the external one when it loads and falls back to the local one.
"""

from __future__ import annotations

import importlib
import logging
from types import ModuleType
from typing import Callable, Optional, Protocol, Sequence

import numpy as np

from .config import BridgeConfig
from .errors import BackendUnavailable
from .hrv import HrvMetrics, compute_hrv
from .respiration import estimate_resp_rate

logger = logging.getLogger(__name__)


class ComputeBackend(Protocol):
    name: str
    sampling_rate: float

    def compute_hrv(self, rr_intervals: Sequence[float]) -> Optional[HrvMetrics]: ...

    def compute_respiratory_rate(
        self, signal: Sequence[float], sampling_rate: Optional[float] = None
    ) -> Optional[float]: ...

    def set_sampling_rate(self, rate: float) -> None: ...


def _check_rate(rate: float) -> float:
    rate = float(rate)
    if not rate > 0:
        raise ValueError("sampling rate must be positive")
    return rate


class LocalBackend:
    name = "local"

    def __init__(self, sampling_rate: float = 30.0) -> None:
        self.sampling_rate = _check_rate(sampling_rate)

    def compute_hrv(self, rr_intervals: Sequence[float]) -> Optional[HrvMetrics]:
        return compute_hrv(rr_intervals)

    def compute_respiratory_rate(
        self, signal: Sequence[float], sampling_rate: Optional[float] = None
    ) -> Optional[float]:
        fs = self.sampling_rate if sampling_rate is None else sampling_rate
        return estimate_resp_rate(signal, fs)

    def set_sampling_rate(self, rate: float) -> None:
        self.sampling_rate = _check_rate(rate)


class ExternalBackend:
    """Adapter over the accelerated module; every call degrades to None."""

    name = "external"

    def __init__(
        self,
        module_name: str = BridgeConfig.module_name,
        sampling_rate: float = 30.0,
        loader: Callable[[str], ModuleType] = importlib.import_module,
    ) -> None:
        self.module_name = module_name
        self.sampling_rate = _check_rate(sampling_rate)
        self._loader = loader
        self._module: Optional[ModuleType] = None
        self._processor = None

    @property
    def initialized(self) -> bool:
        return self._module is not None

    def initialize(self) -> None:
        """Load the module and create a processor handle.

        Raises:
            BackendUnavailable: the module or its processor could not be created.
        """
        try:
            module = self._loader(self.module_name)
            processor = module.BiofeedbackProcessor(self.sampling_rate)
        except Exception as exc:
            self._module = None
            self._processor = None
            raise BackendUnavailable(f"cannot load {self.module_name!r}: {exc}") from exc
        self._module = module
        self._processor = processor
        logger.info("external compute backend %s loaded", self.module_name)

    def compute_hrv(self, rr_intervals: Sequence[float]) -> Optional[HrvMetrics]:
        if self._module is None:
            logger.error("external backend not initialized")
            return None
        arr = np.asarray(rr_intervals, dtype=np.float64)
        if arr.size < 2:
            return None
        try:
            rmssd, sdnn, pnn50 = self._module.compute_hrv_metrics(arr)
        except Exception:
            logger.exception("external HRV computation failed")
            return None
        return HrvMetrics(float(rmssd), float(sdnn), float(pnn50))

    def compute_respiratory_rate(
        self, signal: Sequence[float], sampling_rate: Optional[float] = None
    ) -> Optional[float]:
        if self._module is None:
            logger.error("external backend not initialized")
            return None
        fs = self.sampling_rate if sampling_rate is None else sampling_rate
        try:
            value = self._module.compute_respiratory_rate(
                np.asarray(signal, dtype=np.float64), float(fs)
            )
        except Exception as exc:
            logger.warning("external respiratory rate unavailable: %s", exc)
            return None
        return None if value is None else float(value)

    def set_sampling_rate(self, rate: float) -> None:
        self.sampling_rate = _check_rate(rate)
        if self._module is None:
            return
        # the processor captures its rate at construction
        try:
            self._processor = self._module.BiofeedbackProcessor(self.sampling_rate)
        except Exception:
            logger.exception("rebuilding external processor at %.1f Hz failed", self.sampling_rate)
            self._module = None
            self._processor = None

    # stateful processor handle

    def add_rr_intervals(self, intervals: Sequence[float]) -> None:
        if self._processor is None:
            logger.error("external processor not initialized")
            return
        try:
            self._processor.add_rr_intervals(np.asarray(intervals, dtype=np.float64))
        except Exception:
            logger.exception("adding RR intervals failed")

    def clear_rr_intervals(self) -> None:
        if self._processor is None:
            logger.error("external processor not initialized")
            return
        try:
            self._processor.clear_rr_intervals()
        except Exception:
            logger.exception("clearing RR intervals failed")

    def processor_hrv(self) -> Optional[HrvMetrics]:
        if self._processor is None:
            logger.error("external processor not initialized")
            return None
        try:
            rmssd, sdnn, pnn50 = self._processor.compute_hrv()
        except Exception as exc:
            logger.warning("processor HRV unavailable: %s", exc)
            return None
        return HrvMetrics(float(rmssd), float(sdnn), float(pnn50))


class ComputeBridge:
    """Routes HRV / respiration calls to the active backend."""

    def __init__(
        self,
        cfg: Optional[BridgeConfig] = None,
        sampling_rate: float = 30.0,
        external: Optional[ExternalBackend] = None,
    ) -> None:
        self.cfg = cfg or BridgeConfig()
        self.local = LocalBackend(sampling_rate)
        self.external = external or ExternalBackend(self.cfg.module_name, sampling_rate)
        self.active: ComputeBackend = self.local

    def initialize(self) -> str:
        """Try the external backend; fall back to local. Returns the active name."""
        if self.cfg.prefer_external:
            try:
                self.external.initialize()
            except BackendUnavailable as exc:
                logger.warning("%s; using local backend", exc)
                self.active = self.local
            else:
                self.active = self.external
        else:
            self.active = self.local
        logger.info("compute backend: %s", self.active.name)
        return self.active.name

    @property
    def sampling_rate(self) -> float:
        return self.active.sampling_rate

    def compute_hrv(self, rr_intervals: Sequence[float]) -> Optional[HrvMetrics]:
        return self.active.compute_hrv(rr_intervals)

    def compute_respiratory_rate(
        self, signal: Sequence[float], sampling_rate: Optional[float] = None
    ) -> Optional[float]:
        return self.active.compute_respiratory_rate(signal, sampling_rate)

    def set_sampling_rate(self, rate: float) -> None:
        self.local.set_sampling_rate(rate)
        self.external.set_sampling_rate(rate)
        if self.active is self.external and not self.external.initialized:
            logger.warning("external backend lost; using local backend")
            self.active = self.local
