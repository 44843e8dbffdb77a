"""ROI definition and mean colour extraction.

The ROI is a fractional rectangle of the frame. Conversion to pixels uses
``floor(fraction * size)`` and clamps to the frame edges, so an extractor never
indexes outside the image even when the fractions overshoot after scaling.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from .errors import ConfigError
from .frame import ColorSample, Frame


@dataclass(frozen=True)
class RoiRect:
    x: float
    y: float
    width: float
    height: float

    def __post_init__(self) -> None:
        for name in ("x", "y", "width", "height"):
            v = getattr(self, name)
            if not (isinstance(v, (int, float)) and math.isfinite(v) and 0.0 <= v <= 1.0):
                raise ConfigError(f"ROI {name} must be within [0, 1], got {v!r}")


def roi_bounds(roi: RoiRect, width: int, height: int) -> Tuple[int, int, int, int]:
    """Return (x0, y0, x1, y1) pixel bounds of ``roi`` inside a WxH frame.

    The rectangle always covers at least one pixel.
    """
    if width <= 0 or height <= 0:
        raise ValueError("frame must have positive size")
    x0 = min(max(int(math.floor(roi.x * width)), 0), width - 1)
    y0 = min(max(int(math.floor(roi.y * height)), 0), height - 1)
    w = max(1, int(math.floor(roi.width * width)))
    h = max(1, int(math.floor(roi.height * height)))
    x1 = min(width, x0 + w)
    y1 = min(height, y0 + h)
    return x0, y0, x1, y1


def mean_rgb(
    image: np.ndarray,
    mask: Optional[np.ndarray] = None,
) -> Tuple[float, float, float]:
    """Compute mean R, G, B of an RGB(A) image over an optional boolean mask.

    Args:
        image: HxWx3 or HxWx4 array in RGB(A) order.
        mask: optional HxW boolean array; True selects pixels to include.

    Returns:
        (R, G, B) means as floats on the 0-255 scale.
    """
    if image.ndim != 3 or image.shape[2] not in (3, 4):
        raise ValueError("image must be HxWx3 or HxWx4 array")
    rgb = image[..., :3].astype(np.float64)
    if mask is not None:
        if mask.shape != image.shape[:2]:
            raise ValueError("mask must match image spatial shape")
        m = mask.astype(bool)
        if not np.any(m):
            return 0.0, 0.0, 0.0
        sel = rgb[m]
    else:
        sel = rgb.reshape(-1, 3)
    r_mean, g_mean, b_mean = sel.mean(axis=0)
    return float(r_mean), float(g_mean), float(b_mean)


def extract_color(frame: Frame, roi: RoiRect) -> ColorSample:
    """Average colour of ``roi`` in ``frame`` as a normalised sample."""
    x0, y0, x1, y1 = roi_bounds(roi, frame.width, frame.height)
    r, g, b = mean_rgb(frame.pixels[y0:y1, x0:x1])
    return ColorSample(frame.time, r / 255.0, g / 255.0, b / 255.0)
