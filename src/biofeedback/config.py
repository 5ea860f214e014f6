"""Dataclass configuration for sessions, loops and backends."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class PulseConfig:
    sampling_rate: float = 30.0  # Hz
    batch_size: int = 60  # frames per inference call
    peak_threshold_ratio: float = 0.5  # fraction of batch max
    poll_interval: float = 0.03  # s, retry delay on empty queue
    resp_window_sec: float = 30.0  # waveform tail used for respiration
    hr_history_for_resp: int = 30  # HR values for the variability fallback


@dataclass
class FacialConfig:
    history_len: int = 30
    alpha: float = 0.3
    tension_scale: float = 100.0
    eye_scale: float = 10.0
    blink_scale: float = 5.0
    neutral_symmetry: float = 0.5
    poll_interval: float = 0.03  # s


@dataclass
class BufferConfig:
    facial_capacity: int = 100


@dataclass
class BridgeConfig:
    module_name: str = "rppg_biofeedback_native"
    prefer_external: bool = True


@dataclass
class SessionConfig:
    pulse: PulseConfig = field(default_factory=PulseConfig)
    facial: FacialConfig = field(default_factory=FacialConfig)
    buffer: BufferConfig = field(default_factory=BufferConfig)
    bridge: BridgeConfig = field(default_factory=BridgeConfig)
