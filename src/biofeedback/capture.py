"""Camera capture utilities (OpenCV-based)."""

from __future__ import annotations

from dataclasses import dataclass
from time import perf_counter
from typing import Optional, Tuple

import numpy as np


@dataclass
class CaptureConfig:
    device_index: int = 0
    width: int = 640
    height: int = 480
    fps: int = 30
    frame_size: int = 36  # frames are downscaled to frame_size x frame_size


def to_frame(frame_bgr: np.ndarray, size: int) -> np.ndarray:
    """BGR uint8 image -> size x size RGB float32 frame in [0, 1]."""
    import cv2  # local import

    small = cv2.resize(frame_bgr, (size, size), interpolation=cv2.INTER_AREA)
    rgb = cv2.cvtColor(small, cv2.COLOR_BGR2RGB)
    return rgb.astype(np.float32) / 255.0


class Capture:
    """Thin wrapper around OpenCV VideoCapture.

    Imports cv2 lazily to avoid import-time side effects in non-camera contexts.
    """

    def __init__(self, cfg: Optional[CaptureConfig] = None) -> None:
        self.cfg = cfg or CaptureConfig()
        self._cap = None

    def open(self) -> None:
        import cv2  # local import

        self._cap = cv2.VideoCapture(self.cfg.device_index)
        if not self._cap.isOpened():  # type: ignore[union-attr]
            raise RuntimeError("Failed to open camera")
        self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.cfg.width)  # type: ignore[union-attr]
        self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.cfg.height)  # type: ignore[union-attr]
        self._cap.set(cv2.CAP_PROP_FPS, self.cfg.fps)  # type: ignore[union-attr]

    def read(self) -> Tuple[float, np.ndarray]:
        """Read a frame and return (timestamp, frame[RGB float, frame_size^2])."""
        if self._cap is None:
            raise RuntimeError("Capture is not opened")
        ts = perf_counter()
        ok, frame = self._cap.read()
        if not ok:
            raise RuntimeError("Camera read failed")
        return ts, to_frame(frame, self.cfg.frame_size)

    def release(self) -> None:
        if self._cap is not None:
            self._cap.release()  # type: ignore[union-attr]
            self._cap = None
