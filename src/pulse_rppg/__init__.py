"""Remote photoplethysmography (rPPG) pulse-rate pipeline.

Stages: frame capture, ROI colour averaging, signal buffering, detrending,
direct spectral peak-picking and colour motion amplification, driven in
batch (video file) or live (camera stream) mode by :mod:`pulse_rppg.pipeline`.
"""

from .config import PulseConfig
from .errors import ConfigError, FrameSourceError, PulseError
from .frame import ColorSample, Frame
from .pipeline import PipelineState, PulseEstimate, PulsePipeline

__all__ = [
    "ColorSample",
    "ConfigError",
    "Frame",
    "FrameSourceError",
    "PipelineState",
    "PulseConfig",
    "PulseError",
    "PulseEstimate",
    "PulsePipeline",
]

__version__ = "0.2.0"
