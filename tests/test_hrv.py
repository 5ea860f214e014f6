from __future__ import annotations

import math

import pytest

from biofeedback.hrv import compute_hrv, stress_index


def test_hrv_reference_values() -> None:
    m = compute_hrv([800, 810, 790, 805])
    assert m is not None
    assert m.rmssd == pytest.approx(math.sqrt((100 + 400 + 225) / 3))
    # population variance around mean 801.25
    dev = [-1.25, 8.75, -11.25, 3.75]
    assert m.sdnn == pytest.approx(math.sqrt(sum(d * d for d in dev) / 4))
    assert m.pnn50 == 0.0


def test_pnn50_counts_strictly_greater_than_50() -> None:
    m = compute_hrv([800, 900, 850, 800])
    assert m is not None
    # diffs 100, 50, 50
    assert m.pnn50 == pytest.approx(100.0 / 3)


def test_too_few_intervals_gives_no_result() -> None:
    assert compute_hrv([]) is None
    assert compute_hrv([812.0]) is None


def test_stress_index() -> None:
    m = compute_hrv([800, 810])
    assert stress_index(m) == pytest.approx(100.0 - 10.0 / 10.0)
    assert stress_index(None) is None
