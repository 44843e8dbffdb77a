from __future__ import annotations

import json

import pytest

from pulse_rppg.config import PulseConfig, load_config
from pulse_rppg.errors import ConfigError


def test_defaults() -> None:
    cfg = PulseConfig()
    assert cfg.amplification_factor == 5.0
    assert cfg.rgb_mode is True
    assert (cfg.low_freq_cutoff, cfg.high_freq_cutoff) == (0.75, 3.33)
    assert cfg.batch_size == 10
    assert cfg.live_buffer_capacity == 90
    assert cfg.min_batch_samples == 60
    assert cfg.roi.x == 0.4 and cfg.roi.height == 0.2


@pytest.mark.parametrize(
    "changes",
    [
        {"amplification_factor": 0.5},
        {"amplification_factor": 11.0},
        {"roi_x": 1.2},
        {"roi_width": 0.0},
        {"batch_size": 0},
        {"low_freq_cutoff": 3.0, "high_freq_cutoff": 2.0},
        {"low_freq_cutoff": 2.0, "high_freq_cutoff": 2.0},
        {"live_buffer_capacity": 1},
        {"batch_window": 1},
        {"batch_window": 79},
        {"max_processing_seconds": 0.0},
        {"rgb_mode": "yes"},
    ],
)
def test_invalid_values_rejected(changes: dict) -> None:
    with pytest.raises(ConfigError):
        PulseConfig(**changes)


def test_replace_revalidates() -> None:
    cfg = PulseConfig()
    assert cfg.replace(rgb_mode=False).rgb_mode is False
    with pytest.raises(ConfigError):
        cfg.replace(high_freq_cutoff=0.5)


def test_load_config(tmp_path) -> None:
    path = tmp_path / "cfg.json"
    path.write_text(json.dumps({"rgb_mode": False, "batch_size": 20}))
    cfg = load_config(path)
    assert cfg.rgb_mode is False
    assert cfg.batch_size == 20
    assert cfg.amplification_factor == 5.0

    path.write_text(json.dumps({"bogus": 1}))
    with pytest.raises(ConfigError):
        load_config(path)
    path.write_text("{not json")
    with pytest.raises(ConfigError):
        load_config(path)


def test_batch_window_must_cover_the_band() -> None:
    cfg = PulseConfig()
    assert cfg.min_analysis_samples == 80
    assert PulseConfig(batch_window=80).batch_window == 80
    assert PulseConfig(low_freq_cutoff=1.0, batch_window=60).min_analysis_samples == 60
    with pytest.raises(ConfigError):
        cfg.replace(file_fps=60.0, batch_window=100)
