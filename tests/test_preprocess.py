from __future__ import annotations

import numpy as np

from pulse_rppg.preprocess import detrend, fuse_channels


def test_fuse_channels_weights_and_green_only() -> None:
    r = np.array([1.0, 0.0, 0.0])
    g = np.array([0.0, 1.0, 0.0])
    b = np.array([0.0, 0.0, 1.0])
    assert np.allclose(fuse_channels(r, g, b, rgb_mode=True), [0.2, 0.7, 0.1])
    assert np.allclose(fuse_channels(r, g, b, rgb_mode=False), [0.0, 1.0, 0.0])


def test_detrend_removes_linear_drift() -> None:
    i = np.arange(200, dtype=np.float64)
    osc = np.sin(2 * np.pi * i / 25.0)
    x = osc + 0.01 * i + 3.0
    y = detrend(x)
    assert y.shape == x.shape
    # residual slope is ~0
    slope = np.polyfit(i, y, 1)[0]
    assert abs(slope) < 1e-10
    # input untouched
    assert np.isclose(x[-1], osc[-1] + 0.01 * 199 + 3.0)


def test_detrend_twice_is_stable() -> None:
    x = np.cumsum(np.random.RandomState(0).randn(300))
    once = detrend(x)
    twice = detrend(once)
    assert np.max(np.abs(twice - once)) < 1e-9


def test_detrend_short_inputs() -> None:
    assert detrend(np.array([])).size == 0
    assert np.allclose(detrend(np.array([5.0])), [0.0])
    assert np.allclose(detrend(np.array([1.0, 3.0])), [0.0, 0.0])
