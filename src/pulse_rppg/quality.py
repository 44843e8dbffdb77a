"""Quality scores for a spectral pulse peak.

These scores are informational only: a weak peak still yields a BPM, the
score lets callers decide how much to trust it.
"""

from __future__ import annotations

import numpy as np

from .bpm import FREQUENCY_GRID, SpectralPeak


def _band(spectrum: np.ndarray, fmin: float, fmax: float) -> tuple[np.ndarray, np.ndarray]:
    mag = np.asarray(spectrum, dtype=np.float64)
    idx = np.flatnonzero((FREQUENCY_GRID >= fmin) & (FREQUENCY_GRID <= fmax))
    return mag[idx], idx


def peak_confidence(
    spectrum: np.ndarray,
    peak: SpectralPeak,
    fmin: float,
    fmax: float,
) -> float:
    """Return a 0..1 prominence of the peak over the in-band median.

    Computed as (peak - median) / (peak + median). A flat or all-zero band
    scores 0, a lone spike approaches 1.
    """
    if not peak.found:
        return 0.0
    band, _ = _band(spectrum, fmin, fmax)
    if band.size == 0:
        return 0.0
    med = float(np.median(band))
    num = max(0.0, peak.magnitude - med)
    den = max(1e-12, peak.magnitude + med)
    return float(np.clip(num / den, 0.0, 1.0))


def snr_db(
    spectrum: np.ndarray,
    peak: SpectralPeak,
    fmin: float,
    fmax: float,
    guard_bins: int = 2,
) -> float:
    """Peak-to-noise ratio in dB inside the pulse band.

    Noise is the median magnitude of in-band bins farther than ``guard_bins``
    from the peak. Returns 0.0 when it cannot be estimated.
    """
    if not peak.found:
        return 0.0
    band, idx = _band(spectrum, fmin, fmax)
    noise_bins = band[np.abs(idx - peak.index) > int(guard_bins)]
    if noise_bins.size == 0:
        return 0.0
    noise = float(np.median(noise_bins))
    if noise <= 0.0 or peak.magnitude <= 0.0:
        return 0.0
    return 10.0 * float(np.log10(peak.magnitude / noise))
