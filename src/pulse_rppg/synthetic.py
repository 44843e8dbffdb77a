"""Synthetic pulse videos for demos and tests.

The ROI is filled with a flat colour whose channels oscillate at the pulse
frequency; the rest of the frame is a static gradient.
"""

from __future__ import annotations

from typing import Iterator, List, Optional, Tuple

import numpy as np

from .capture import MemoryVideo
from .roi import RoiRect, roi_bounds


def pulse_images(
    duration: float = 10.0,
    fps: float = 30.0,
    width: int = 64,
    height: int = 48,
    bpm: float = 72.0,
    base: Tuple[float, float, float] = (160.0, 128.0, 110.0),
    amplitude: Tuple[float, float, float] = (0.0, 10.0, 0.0),
    roi: Optional[RoiRect] = None,
    noise: float = 0.0,
    seed: int = 0,
) -> List[np.ndarray]:
    """Render RGBA frames with a sinusoidal colour pulse inside ``roi``.

    Channel c of the ROI is ``base[c] + amplitude[c] * sin(2*pi*f*t)`` with
    ``f = bpm / 60``, plus optional Gaussian noise.
    """
    roi = roi or RoiRect(0.4, 0.3, 0.2, 0.2)
    n = int(np.floor(duration * fps + 1e-9))
    f = bpm / 60.0
    x0, y0, x1, y1 = roi_bounds(roi, width, height)
    rng = np.random.RandomState(seed)
    gx = np.linspace(0, 255, width, dtype=np.float64)
    gy = np.linspace(0, 255, height, dtype=np.float64)
    background = np.zeros((height, width, 4), dtype=np.uint8)
    background[..., 0] = gx[None, :].astype(np.uint8)
    background[..., 1] = gy[:, None].astype(np.uint8)
    background[..., 2] = 64
    background[..., 3] = 255
    base_arr = np.asarray(base, dtype=np.float64)
    amp_arr = np.asarray(amplitude, dtype=np.float64)
    images = []
    for i in range(n):
        t = i / fps
        color = base_arr + amp_arr * np.sin(2 * np.pi * f * t)
        img = background.copy()
        patch = np.broadcast_to(color, (y1 - y0, x1 - x0, 3))
        if noise > 0:
            patch = patch + noise * rng.randn(*patch.shape)
        img[y0:y1, x0:x1, :3] = np.clip(np.rint(patch), 0, 255).astype(np.uint8)
        images.append(img)
    return images


def pulse_video(fps: float = 30.0, **kwargs) -> MemoryVideo:
    """Synthetic video source (see :func:`pulse_images` for arguments)."""
    return MemoryVideo(pulse_images(fps=fps, **kwargs), fps=fps)


def pulse_stream(fps: float = 30.0, **kwargs) -> Iterator[Tuple[float, np.ndarray]]:
    """``(time, image)`` pairs for :class:`~pulse_rppg.capture.MemoryStream`."""
    for i, img in enumerate(pulse_images(fps=fps, **kwargs)):
        yield i / fps, img
