"""Camera-based biofeedback signal core.

Turns per-frame tensors and rPPG waveforms into bounded, smoothed metrics:
heart rate, RR intervals, HRV, respiratory rate and facial tension signals.
"""

__all__ = [
    "app",
    "bridge",
    "buffer",
    "capture",
    "config",
    "errors",
    "facial",
    "frames",
    "hrv",
    "peaks",
    "pipeline",
    "pos",
    "preprocess",
    "respiration",
    "service",
    "session",
    "smoothing",
]

__version__ = "0.1.0"
