from __future__ import annotations

import numpy as np

from pulse_rppg.bpm import FREQUENCY_GRID, NO_PEAK, direct_spectrum, find_pulse_frequency
from pulse_rppg.quality import peak_confidence, snr_db


def test_snr_db_peak_higher_than_noise() -> None:
    p = np.ones(FREQUENCY_GRID.size)
    p[30] = 50.0  # 1.5 Hz
    peak = find_pulse_frequency(p, 0.75, 3.33)
    assert peak.index == 30
    assert snr_db(p, peak, 0.75, 3.33) > 10.0


def test_peak_confidence_behaviour() -> None:
    # Low confidence when flat
    flat = np.ones(FREQUENCY_GRID.size)
    c0 = peak_confidence(flat, find_pulse_frequency(flat, 0.75, 3.33), 0.75, 3.33)
    assert 0.0 <= c0 <= 0.1
    # High confidence for a clean sinusoid
    t = np.arange(0, 20.0, 1 / 30.0)
    spec = direct_spectrum(np.sin(2 * np.pi * 1.2 * t), 30.0)
    c1 = peak_confidence(spec, find_pulse_frequency(spec, 0.75, 3.33), 0.75, 3.33)
    assert 0.5 <= c1 <= 1.0


def test_scores_are_zero_without_peak() -> None:
    spec = np.zeros(FREQUENCY_GRID.size)
    assert peak_confidence(spec, NO_PEAK, 0.75, 3.33) == 0.0
    assert snr_db(spec, NO_PEAK, 0.75, 3.33) == 0.0
    # all-zero spectrum: a peak is still picked but scores nothing
    peak = find_pulse_frequency(spec, 0.75, 3.33)
    assert peak.frequency_hz == 0.75
    assert peak_confidence(spec, peak, 0.75, 3.33) == 0.0
