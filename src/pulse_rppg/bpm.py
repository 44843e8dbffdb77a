"""Pulse-rate estimation by direct spectral peak-picking.

The spectrum is evaluated by direct summation (no FFT) on a fixed grid of
0-10 Hz in 0.05 Hz steps.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np
from scipy.signal.windows import hann

GRID_MAX_HZ = 10.0
GRID_STEP_HZ = 0.05
FREQUENCY_GRID = np.round(np.arange(int(round(GRID_MAX_HZ / GRID_STEP_HZ)) + 1) * GRID_STEP_HZ, 6)
FREQUENCY_GRID.flags.writeable = False


@dataclass(frozen=True)
class SpectralPeak:
    frequency_hz: float  # 0.0 means "no estimate"
    magnitude: float
    index: int  # position in FREQUENCY_GRID, -1 without a peak

    @property
    def found(self) -> bool:
        return self.frequency_hz > 0.0


NO_PEAK = SpectralPeak(0.0, 0.0, -1)


def hann_window(x: np.ndarray) -> np.ndarray:
    """Multiply by a symmetric Hann window ``0.5 * (1 - cos(2*pi*i/(n-1)))``."""
    x = np.asarray(x, dtype=np.float64)
    if x.size < 2:
        return x.copy()
    return x * hann(x.size, sym=True)


def direct_spectrum(signal: np.ndarray, sampling_rate: float) -> np.ndarray:
    """Magnitude spectrum of the Hann-windowed signal on FREQUENCY_GRID.

    For each grid frequency f: ``|sum_t w[t] * exp(-2j*pi*f*t/fs)| / n``.

    Args:
        signal: 1D detrended signal.
        sampling_rate: samples per second (> 0).
    """
    x = np.asarray(signal, dtype=np.float64)
    n = x.size
    if n == 0 or not (sampling_rate > 0):
        return np.zeros(FREQUENCY_GRID.size, dtype=np.float64)
    w = hann_window(x)
    t_sec = np.arange(n, dtype=np.float64) / float(sampling_rate)
    phase = 2.0 * np.pi * np.outer(FREQUENCY_GRID, t_sec)
    real = np.cos(phase) @ w
    imag = -(np.sin(phase) @ w)
    return np.sqrt(real * real + imag * imag) / n


def find_pulse_frequency(
    spectrum: np.ndarray,
    fmin: float,
    fmax: float,
) -> SpectralPeak:
    """Pick the strongest grid frequency within [fmin, fmax].

    Ties resolve to the lowest frequency. Returns NO_PEAK when the band
    contains no grid point or the peak is not finite.
    """
    mag = np.asarray(spectrum, dtype=np.float64)
    band = np.flatnonzero((FREQUENCY_GRID >= fmin) & (FREQUENCY_GRID <= fmax))
    if band.size == 0:
        return NO_PEAK
    idx = int(band[int(np.argmax(mag[band]))])
    peak = float(mag[idx])
    if not math.isfinite(peak):
        return NO_PEAK
    return SpectralPeak(float(FREQUENCY_GRID[idx]), peak, idx)


def has_enough_data(n: int, sampling_rate: float, fmin: float) -> bool:
    """At least two periods of the lowest band frequency must be covered."""
    if n < 2 or not math.isfinite(sampling_rate) or sampling_rate <= 0 or fmin <= 0:
        return False
    return n / sampling_rate >= 2.0 / fmin


def analyze_pulse(
    signal: np.ndarray,
    sampling_rate: float,
    fmin: float = 0.75,
    fmax: float = 3.33,
) -> SpectralPeak:
    """Locate the pulse peak of a detrended signal, or NO_PEAK."""
    x = np.asarray(signal, dtype=np.float64)
    if not has_enough_data(x.size, sampling_rate, fmin):
        return NO_PEAK
    if not np.all(np.isfinite(x)):
        return NO_PEAK
    return find_pulse_frequency(direct_spectrum(x, sampling_rate), fmin, fmax)


def to_bpm(peak: SpectralPeak) -> Optional[int]:
    """Convert a peak to whole beats per minute; None for "no estimate"."""
    if not peak.found:
        return None
    bpm = peak.frequency_hz * 60.0
    if not math.isfinite(bpm):
        return None
    return int(round(bpm))


def estimate_bpm(
    signal: np.ndarray,
    sampling_rate: float,
    fmin: float = 0.75,
    fmax: float = 3.33,
) -> Optional[int]:
    """Estimate BPM of a detrended signal.

    Returns None when there is not enough data or no in-band peak.
    """
    return to_bpm(analyze_pulse(signal, sampling_rate, fmin, fmax))
