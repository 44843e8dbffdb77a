"""Frame and colour-sample value types."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True, eq=False)
class Frame:
    """A timestamped RGBA image.

    ``pixels`` is an HxWx4 uint8 array. The stored array is a read-only view,
    so stages that need a modified image must build a new :class:`Frame`.
    """

    time: float  # seconds
    pixels: np.ndarray

    def __post_init__(self) -> None:
        px = np.asarray(self.pixels)
        if px.ndim != 3 or px.shape[2] != 4:
            raise ValueError("pixels must be HxWx4 RGBA array")
        if px.dtype != np.uint8:
            raise ValueError("pixels must be uint8")
        view = px.view()
        view.flags.writeable = False
        object.__setattr__(self, "pixels", view)
        object.__setattr__(self, "time", float(self.time))

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @classmethod
    def from_rgb(cls, time: float, rgb: np.ndarray) -> "Frame":
        """Build an opaque frame from an HxWx3 RGB array."""
        rgb = np.asarray(rgb, dtype=np.uint8)
        if rgb.ndim != 3 or rgb.shape[2] != 3:
            raise ValueError("rgb must be HxWx3 array")
        alpha = np.full(rgb.shape[:2] + (1,), 255, dtype=np.uint8)
        return cls(time, np.concatenate([rgb, alpha], axis=2))

    @classmethod
    def from_bgr(cls, time: float, bgr: np.ndarray) -> "Frame":
        """Build a frame from an OpenCV BGR image."""
        import cv2  # local import

        return cls(time, cv2.cvtColor(bgr, cv2.COLOR_BGR2RGBA))

    def to_bgr(self) -> np.ndarray:
        import cv2  # local import

        return cv2.cvtColor(np.ascontiguousarray(self.pixels), cv2.COLOR_RGBA2BGR)


@dataclass(frozen=True)
class ColorSample:
    """ROI mean colour of one frame, components normalised to [0, 1]."""

    time: float
    r: float
    g: float
    b: float
