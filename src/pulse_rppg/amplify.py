"""Eulerian-style colour amplification of a frame.

Each pixel's deviation from the ROI mean colour is exaggerated per channel
and written to a new frame. Pixels are independent of each other, so the
whole image is processed as one vectorised numpy expression.
"""

from __future__ import annotations

import numpy as np

from .frame import ColorSample, Frame

RGB_WEIGHTS = (0.5, 0.9, 0.3)
GREEN_ONLY_WEIGHTS = (0.0, 1.0, 0.0)


def channel_weights(rgb_mode: bool) -> np.ndarray:
    return np.asarray(RGB_WEIGHTS if rgb_mode else GREEN_ONLY_WEIGHTS, dtype=np.float64)


def amplify_frame(
    frame: Frame,
    reference: ColorSample,
    factor: float,
    rgb_mode: bool = True,
) -> Frame:
    """Return a new frame with colour deviations from ``reference`` amplified.

    ``out = clamp(px + (px/255 - ref) * factor * 255 * weight, 0, 255)``,
    rounded to the nearest integer. Alpha is copied unchanged.
    """
    src = frame.pixels
    rgb = src[..., :3].astype(np.float64)
    ref = np.array([reference.r, reference.g, reference.b], dtype=np.float64)
    gain = float(factor) * 255.0 * channel_weights(rgb_mode)
    out = rgb + (rgb / 255.0 - ref) * gain
    np.clip(out, 0.0, 255.0, out=out)
    pixels = np.empty_like(src)
    pixels[..., :3] = np.rint(out).astype(np.uint8)
    pixels[..., 3] = src[..., 3]
    return Frame(frame.time, pixels)
