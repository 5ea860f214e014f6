from __future__ import annotations

import pytest

from biofeedback.smoothing import SmoothingHistory, ema_series, ema_smooth


def test_ema_iterates_from_first_sample() -> None:
    assert ema_series([1.0, 2.0, 3.0], alpha=0.3) == pytest.approx([1.0, 1.3, 1.81])
    assert ema_smooth([1.0, 2.0, 3.0], alpha=0.3) == pytest.approx(1.81)


def test_ema_empty_and_single() -> None:
    assert ema_smooth([], alpha=0.3) == 0.0
    assert ema_smooth([4.2], alpha=0.3) == pytest.approx(4.2)
    # alpha=1 tracks the last value exactly
    assert ema_smooth([1.0, 5.0, 7.0], alpha=1.0) == pytest.approx(7.0)


def test_ema_rejects_bad_alpha() -> None:
    with pytest.raises(ValueError):
        ema_smooth([1.0], alpha=0.0)
    with pytest.raises(ValueError):
        ema_smooth([1.0], alpha=1.5)
    with pytest.raises(ValueError):
        ema_series([1.0, 2.0], alpha=0.0)
    with pytest.raises(ValueError):
        ema_series([1.0, 2.0], alpha=-0.3)


def test_smoothing_history_evicts_oldest() -> None:
    h = SmoothingHistory(maxlen=3, alpha=0.3)
    for x in [1, 2, 3, 4, 5]:
        h.push(x)
    assert h.values() == [3.0, 4.0, 5.0]
    assert len(h) == 3
    assert h.value == pytest.approx(ema_smooth([3.0, 4.0, 5.0], 0.3))
    h.clear()
    assert len(h) == 0
    assert h.value == 0.0
