"""Run configuration for the pulse pipeline.

A :class:`PulseConfig` is immutable for the duration of a session. Values are
validated at construction so that a bad ROI or an inverted frequency band is
reported before any frame is read.
"""

from __future__ import annotations

import dataclasses
import json
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

from .errors import ConfigError
from .roi import RoiRect


def _check_range(name: str, value: float, lo: float, hi: float) -> None:
    if not (isinstance(value, (int, float)) and math.isfinite(value)):
        raise ConfigError(f"{name} must be a finite number, got {value!r}")
    if not (lo <= value <= hi):
        raise ConfigError(f"{name} must be within [{lo}, {hi}], got {value}")


def _check_min_int(name: str, value: int, minimum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {value}")


@dataclass(frozen=True)
class PulseConfig:
    amplification_factor: float = 5.0
    rgb_mode: bool = True  # False -> green channel only
    roi_x: float = 0.4
    roi_y: float = 0.3
    roi_width: float = 0.2
    roi_height: float = 0.2
    batch_size: int = 10
    low_freq_cutoff: float = 0.75  # Hz (45 BPM)
    high_freq_cutoff: float = 3.33  # Hz (~200 BPM)
    live_buffer_capacity: int = 90  # 3 s at 30 fps
    file_fps: float = 30.0  # assumed frame rate when sampling a file
    live_update_interval: int = 5  # ticks between re-analysis in live mode
    waveform_window: int = 200  # samples of waveform exposed for charting
    frame_history: int = 90  # (original, processed) pairs kept for display
    batch_window: Optional[int] = None  # rolling cap for very long files
    max_processing_seconds: Optional[float] = None

    def __post_init__(self) -> None:
        _check_range("amplification_factor", self.amplification_factor, 1.0, 10.0)
        if not isinstance(self.rgb_mode, bool):
            raise ConfigError(f"rgb_mode must be a bool, got {self.rgb_mode!r}")
        for name in ("roi_x", "roi_y", "roi_width", "roi_height"):
            _check_range(name, getattr(self, name), 0.0, 1.0)
        if self.roi_width <= 0 or self.roi_height <= 0:
            raise ConfigError("roi_width and roi_height must be positive")
        _check_min_int("batch_size", self.batch_size, 1)
        _check_range("low_freq_cutoff", self.low_freq_cutoff, 1e-6, math.inf)
        _check_range("high_freq_cutoff", self.high_freq_cutoff, 1e-6, math.inf)
        if self.low_freq_cutoff >= self.high_freq_cutoff:
            raise ConfigError(
                "low_freq_cutoff must be below high_freq_cutoff "
                f"({self.low_freq_cutoff} >= {self.high_freq_cutoff})"
            )
        _check_min_int("live_buffer_capacity", self.live_buffer_capacity, 2)
        _check_range("file_fps", self.file_fps, 1e-6, math.inf)
        _check_min_int("live_update_interval", self.live_update_interval, 1)
        _check_min_int("waveform_window", self.waveform_window, 1)
        _check_min_int("frame_history", self.frame_history, 0)
        if self.batch_window is not None:
            _check_min_int("batch_window", self.batch_window, 2)
            if self.batch_window < self.min_analysis_samples:
                raise ConfigError(
                    f"batch_window must hold at least {self.min_analysis_samples} samples "
                    f"(two periods of {self.low_freq_cutoff} Hz at {self.file_fps} fps), "
                    f"got {self.batch_window}"
                )
        if self.max_processing_seconds is not None:
            _check_range("max_processing_seconds", self.max_processing_seconds, 1e-6, math.inf)

    @property
    def roi(self) -> RoiRect:
        return RoiRect(self.roi_x, self.roi_y, self.roi_width, self.roi_height)

    @property
    def min_batch_samples(self) -> int:
        """Samples needed before batch mode starts publishing (two seconds)."""
        return int(math.ceil(2 * self.file_fps))

    @property
    def min_analysis_samples(self) -> int:
        """Samples covering two periods of the lowest band frequency."""
        return int(math.ceil(round(2.0 / self.low_freq_cutoff * self.file_fps, 9)))

    def replace(self, **changes: Any) -> "PulseConfig":
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> dict:
        return dataclasses.asdict(self)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PulseConfig":
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")
        return cls(**dict(data))


def load_config(path: Path) -> PulseConfig:
    """Read a JSON configuration file; missing keys take their defaults."""
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a JSON object")
    return PulseConfig.from_mapping(data)
