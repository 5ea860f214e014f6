from __future__ import annotations

import numpy as np
import pytest

from biofeedback.buffer import FacialMetrics, SignalBuffer


def _metrics(i: int) -> FacialMetrics:
    return FacialMetrics(float(i), 0.0, 0.0, 0.5, timestamp=i)


def test_push_creates_one_handle_per_consumer() -> None:
    buf = SignalBuffer()
    buf.push_frame(np.zeros((2, 2, 3)))
    assert buf.pending("pulse") == 1
    assert buf.pending("facial") == 1
    a = buf.pop_frame("pulse")
    b = buf.pop_frame("facial")
    assert a is not None and b is not None and a is not b
    assert buf.pop_frame("pulse") is None
    with pytest.raises(ValueError):
        buf.pop_frame("nobody")


def test_facial_ring_keeps_latest_100_in_order() -> None:
    buf = SignalBuffer(facial_capacity=100)
    for i in range(101):
        buf.add_facial_metrics(_metrics(i))
    hist = buf.history("facial")
    assert len(hist) == 100
    assert [m.timestamp for m in hist] == list(range(1, 101))
    assert buf.latest("facial").timestamp == 100


def test_accumulators_and_latest() -> None:
    buf = SignalBuffer()
    assert buf.latest("heart_rates") is None
    buf.append_waveform([0.1, 0.2])
    buf.append_waveform(np.array([0.3]))
    buf.append_rr_interval(800.0)
    buf.append_rr_interval(810.0)
    buf.append_heart_rate(72.0)
    assert buf.history("waveform") == pytest.approx([0.1, 0.2, 0.3])
    assert buf.tail("waveform", 2) == pytest.approx([0.2, 0.3])
    assert buf.latest("rr_intervals") == 810.0
    assert buf.latest("heart_rates") == 72.0
    with pytest.raises(ValueError):
        buf.append_rr_interval(0.0)
    with pytest.raises(ValueError):
        buf.latest("bogus")


def test_reset_releases_each_frame_once_and_is_idempotent() -> None:
    released: list[object] = []
    buf = SignalBuffer(on_release=released.append)
    for _ in range(3):
        buf.push_frame(np.zeros((2, 2, 3)))
    buf.append_waveform([1.0])
    buf.append_rr_interval(800.0)
    buf.append_heart_rate(70.0)
    buf.add_facial_metrics(_metrics(0))

    assert buf.reset() == 6
    assert len(released) == 6
    assert len({id(f) for f in released}) == 6
    for ch in ("waveform", "rr_intervals", "heart_rates", "facial"):
        assert buf.size(ch) == 0
    assert buf.pending("pulse") == 0 and buf.pending("facial") == 0

    assert buf.reset() == 0
    assert len(released) == 6
