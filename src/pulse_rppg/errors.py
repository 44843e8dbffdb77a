"""Exception types raised by the pulse pipeline."""

from __future__ import annotations


class PulseError(Exception):
    """Base class for pipeline errors."""


class ConfigError(PulseError, ValueError):
    """Raised when a configuration value is out of its valid range."""


class FrameSourceError(PulseError, RuntimeError):
    """Raised when a video file or camera cannot produce a frame.

    Terminal for the current session.
    """


class ProcessingTimeout(PulseError, TimeoutError):
    """Raised when batch processing exceeds its wall-clock ceiling."""
