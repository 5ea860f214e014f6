from __future__ import annotations

import numpy as np

from biofeedback.pos import PosInference, mean_rgb, pos_signal


def test_pos_signal_shape() -> None:
    n = 128
    R = np.random.RandomState(0).randn(n).astype(np.float32)
    G = np.random.RandomState(1).randn(n).astype(np.float32)
    B = np.random.RandomState(2).randn(n).astype(np.float32)
    s = pos_signal(R, G, B)
    assert s.shape == (n,)
    assert np.isfinite(s).all()


def test_mean_rgb_per_frame() -> None:
    batch = np.zeros((2, 2, 2, 3), dtype=np.float32)
    batch[0, ..., 0] = 1.0
    batch[1, 0, 0, 1] = 4.0
    r, g, b = mean_rgb(batch)
    assert np.allclose(r, [1.0, 0.0])
    assert np.allclose(g, [0.0, 1.0])
    assert np.allclose(b, [0.0, 0.0])


def test_pos_inference_recovers_pulse_frequency() -> None:
    fs = 30.0
    t = np.arange(300) / fs
    batch = np.full((t.size, 2, 2, 3), 0.5, dtype=np.float32)
    batch[..., 1] += (0.01 * np.sin(2 * np.pi * 1.2 * t)).astype(np.float32)[:, None, None]
    wave = np.asarray(PosInference(fs)(None, batch))
    assert wave.shape == (t.size,)
    assert np.isfinite(wave).all()
    mag = np.abs(np.fft.rfft(wave - wave.mean()))
    freqs = np.fft.rfftfreq(wave.size, d=1 / fs)
    assert abs(freqs[int(np.argmax(mag))] - 1.2) < 0.15


def test_pos_inference_short_batch_returns_empty() -> None:
    assert PosInference(30.0)(None, np.zeros((4, 2, 2, 3))) == []
