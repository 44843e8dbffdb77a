"""Channel fusion and detrending for rPPG."""

from __future__ import annotations

import numpy as np
from scipy.signal import detrend as _linear_detrend

from .buffer import SignalSnapshot

# Green carries the strongest blood-volume pulse at skin wavelengths.
FUSION_WEIGHTS = (0.2, 0.7, 0.1)


def fuse_channels(
    r: np.ndarray,
    g: np.ndarray,
    b: np.ndarray,
    rgb_mode: bool = True,
) -> np.ndarray:
    """Combine per-frame channel means into one scalar signal.

    Args:
        r, g, b: 1D arrays of equal length.
        rgb_mode: weighted fusion of all channels if True, green only otherwise.
    """
    g = np.asarray(g, dtype=np.float64)
    if not rgb_mode:
        return g.copy()
    r = np.asarray(r, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if not (r.shape == g.shape == b.shape):
        raise ValueError("r, g and b must have the same shape")
    wr, wg, wb = FUSION_WEIGHTS
    return wr * r + wg * g + wb * b


def detrend(x: np.ndarray) -> np.ndarray:
    """Remove the least-squares line fitted against sample index.

    Returns a new array of the same length; the input is not modified.
    """
    x = np.asarray(x, dtype=np.float64)
    if x.size == 0:
        return x.copy()
    if x.size < 2:
        return x - x.mean()
    return _linear_detrend(x, type="linear")


def fused_waveform(snapshot: SignalSnapshot, rgb_mode: bool = True) -> np.ndarray:
    """Detrended fused signal of a buffer snapshot."""
    return detrend(fuse_channels(snapshot.r, snapshot.g, snapshot.b, rgb_mode))
