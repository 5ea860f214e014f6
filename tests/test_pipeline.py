from __future__ import annotations

import asyncio

import numpy as np
import pytest

from biofeedback.bridge import ComputeBridge, ExternalBackend
from biofeedback.buffer import SignalBuffer
from biofeedback.config import BridgeConfig, PulseConfig
from biofeedback.pipeline import PulsePipeline

WAVE = [0.0, 1.0, 5.0, 1.0, 0.0, 5.0, 9.0, 5.0, 0.0]


def _pipeline(infer, batch_size: int = 4, buf: SignalBuffer | None = None) -> PulsePipeline:
    buf = buf or SignalBuffer()
    cfg = PulseConfig(batch_size=batch_size, poll_interval=0.005)
    bridge = ComputeBridge(BridgeConfig(prefer_external=False), sampling_rate=cfg.sampling_rate)
    bridge.initialize()
    return PulsePipeline(buf, infer, bridge=bridge, cfg=cfg)


def _push(buf: SignalBuffer, n: int) -> None:
    for i in range(n):
        buf.push_frame(np.full((2, 2, 3), 0.5 + 0.01 * i, dtype=np.float32))


def test_batch_runs_inference_and_releases_frames() -> None:
    released: list[object] = []
    buf = SignalBuffer(on_release=released.append)
    calls: list[tuple[tuple, tuple]] = []

    def infer(norm: np.ndarray, raw: np.ndarray):
        calls.append((norm.shape, raw.shape))
        return WAVE

    p = _pipeline(infer, buf=buf)
    _push(buf, 4)
    for _ in range(4):
        assert p.step()
    assert not p.step()
    assert calls == [((4, 2, 2, 3), (4, 2, 2, 3))]
    assert buf.history("waveform") == pytest.approx(WAVE)
    assert buf.latest("heart_rates") == pytest.approx(450.0)
    assert buf.history("rr_intervals") == pytest.approx([4 * 1000.0 / 30.0])
    # one RR interval: no HRV yet
    assert p.hrv is None
    assert len(released) == 4


def test_hrv_appears_after_second_interval() -> None:
    p = _pipeline(lambda n, r: WAVE)
    p.compute(WAVE)
    p.compute(WAVE)
    assert p.hrv is not None
    assert p.hrv.rmssd == pytest.approx(0.0)
    assert p.hrv.pnn50 == 0.0
    assert p.stress == pytest.approx(100.0)


def test_too_few_peaks_skips_heart_rate() -> None:
    p = _pipeline(lambda n, r: [0.0, 1.0, 0.0, 0.0])
    res = p.compute([0.0, 1.0, 0.0, 0.0])
    assert res.bpm is None
    assert p.buffer.size("heart_rates") == 0
    assert p.buffer.size("rr_intervals") == 0
    assert p.buffer.size("waveform") == 4


def test_inference_failure_skips_batch() -> None:
    released: list[object] = []
    buf = SignalBuffer(on_release=released.append)

    def broken(norm, raw):
        raise RuntimeError("model not loaded")

    p = _pipeline(broken, buf=buf)
    _push(buf, 4)
    for _ in range(4):
        p.step()
    assert buf.size("waveform") == 0
    assert len(released) == 4

    p.infer = lambda n, r: None
    _push(buf, 4)
    for _ in range(4):
        p.step()
    assert buf.size("waveform") == 0
    assert len(released) == 8


def test_mismatched_frames_are_released() -> None:
    released: list[object] = []
    buf = SignalBuffer(on_release=released.append)
    p = _pipeline(lambda n, r: WAVE, batch_size=2, buf=buf)
    buf.push_frame(np.zeros((2, 2, 3)))
    buf.push_frame(np.zeros((3, 3, 3)))
    p.step()
    p.step()
    assert buf.size("waveform") == 0
    assert len(released) == 2


def test_reset_releases_partial_batch() -> None:
    released: list[object] = []
    buf = SignalBuffer(on_release=released.append)
    p = _pipeline(lambda n, r: WAVE, buf=buf)
    _push(buf, 2)
    p.step()
    p.step()
    p.reset()
    assert len(released) == 2
    p.reset()
    assert len(released) == 2


def test_sampling_rate_change_reaches_estimators() -> None:
    class Infer:
        fs = 30.0

        def __call__(self, norm, raw):
            return WAVE

    p = _pipeline(Infer())
    p.set_sampling_rate(60.0)
    assert p.infer.fs == 60.0
    assert p.bridge.sampling_rate == 60.0
    res = p.compute(WAVE)
    assert res.bpm == pytest.approx(60.0 / (4 / 60.0))


def test_respiration_falls_back_to_heart_rates() -> None:
    p = _pipeline(lambda n, r: WAVE)
    for _ in range(31):
        p.buffer.append_heart_rate(70.0)
    p.compute([0.0, 0.0, 0.0])
    assert p.respiratory_rate == pytest.approx(12.0)


def test_run_loop_processes_until_stopped() -> None:
    buf = SignalBuffer()
    p = _pipeline(lambda n, r: WAVE, buf=buf)

    async def scenario() -> None:
        task = p.start()
        await asyncio.sleep(0.02)
        _push(buf, 4)
        for _ in range(100):
            if buf.size("heart_rates"):
                break
            await asyncio.sleep(0.005)
        p.stop()
        await task

    asyncio.run(scenario())
    assert buf.latest("heart_rates") == pytest.approx(450.0)
    assert not p.running


def test_unconvertible_output_skips_batch() -> None:
    released: list[object] = []
    buf = SignalBuffer(on_release=released.append)
    p = _pipeline(lambda n, r: ["a", "b"], buf=buf)
    _push(buf, 4)
    for _ in range(4):
        p.step()
    assert buf.size("waveform") == 0
    assert len(released) == 4

    p.infer = lambda n, r: np.array([WAVE])
    _push(buf, 4)
    for _ in range(4):
        p.step()
    assert buf.history("waveform") == pytest.approx(WAVE)
    assert buf.latest("heart_rates") == pytest.approx(450.0)


def test_sampling_rate_updates_pipeline_when_backend_rebuild_fails() -> None:
    class Module:
        fail = False

        class BiofeedbackProcessor:
            def __init__(self, rate: float) -> None:
                if Module.fail:
                    raise RuntimeError("processor trap")

    bridge = ComputeBridge(external=ExternalBackend("fake", loader=lambda name: Module))
    assert bridge.initialize() == "external"
    p = PulsePipeline(SignalBuffer(), lambda n, r: WAVE, bridge=bridge, cfg=PulseConfig())
    Module.fail = True
    p.set_sampling_rate(25.0)
    assert p.sampling_rate == 25.0
    assert bridge.local.sampling_rate == 25.0
    assert bridge.active is bridge.local
    assert p.compute(WAVE).bpm == pytest.approx(60.0 / (4 / 25.0))


def test_run_loop_survives_failing_step() -> None:
    p = _pipeline(lambda n, r: WAVE)
    calls = {"n": 0}

    def broken_step() -> bool:
        calls["n"] += 1
        raise RuntimeError("step exploded")

    p.step = broken_step

    async def scenario() -> None:
        task = p.start()
        await asyncio.sleep(0.03)
        assert not task.done()
        p.stop()
        await task

    asyncio.run(scenario())
    assert calls["n"] >= 2
