"""Frame sources and adapters.

Raw sources come in two kinds:

- video files, addressed by seek time (``seek(t)`` blocks until the frame at
  ``t`` is decoded)
- live streams, which only expose the frame currently presented
  (``read_current()``); unread stream frames are never queued

:class:`FileFrameAdapter` and :class:`StreamFrameAdapter` turn either kind into
``(Frame, is_final)`` pairs for the pipeline. OpenCV is imported lazily to
avoid import-time side effects in non-camera contexts.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from time import perf_counter
from typing import Iterable, Iterator, List, Optional, Protocol, Sequence, Tuple

import numpy as np

from .errors import FrameSourceError
from .frame import Frame

logger = logging.getLogger(__name__)


class VideoFileSource(Protocol):
    duration: float  # seconds

    def seek(self, t: float) -> Frame: ...

    def close(self) -> None: ...


class StreamSource(Protocol):
    def read_current(self) -> Optional[Frame]: ...

    def close(self) -> None: ...


class OpenCVVideoFile:
    """Seekable video file backed by :class:`cv2.VideoCapture`."""

    def __init__(self, path: Path) -> None:
        import cv2  # local import

        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Video not found: {path}")
        self.path = path
        self._cap = cv2.VideoCapture(str(path))
        if not self._cap.isOpened():
            raise FrameSourceError(f"Failed to open video: {path}")
        fps = float(self._cap.get(cv2.CAP_PROP_FPS) or 0.0)
        frame_count = float(self._cap.get(cv2.CAP_PROP_FRAME_COUNT) or 0.0)
        self.native_fps = fps if fps > 0 else 30.0
        self.duration = frame_count / self.native_fps if frame_count > 0 else 0.0
        self.width = int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        self.height = int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        logger.info(
            "Opened %s: %dx%d, %.2f fps, %.2f s",
            path, self.width, self.height, self.native_fps, self.duration,
        )

    def seek(self, t: float) -> Frame:
        import cv2  # local import

        if self._cap is None:
            raise FrameSourceError("Video is closed")
        self._cap.set(cv2.CAP_PROP_POS_MSEC, float(t) * 1000.0)
        ok, bgr = self._cap.read()
        if not ok or bgr is None:
            raise FrameSourceError(f"Failed to decode frame at {t:.3f}s of {self.path}")
        return Frame.from_bgr(t, bgr)

    def close(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None


@dataclass
class CameraConfig:
    device_index: int = 0
    width: int = 640
    height: int = 480
    fps: int = 30


class OpenCVCamera:
    """Live camera stream; timestamps are seconds since :meth:`open`."""

    def __init__(self, cfg: Optional[CameraConfig] = None) -> None:
        self.cfg = cfg or CameraConfig()
        self._cap = None
        self._t0 = 0.0

    def open(self) -> None:
        import cv2  # local import

        self._cap = cv2.VideoCapture(self.cfg.device_index)
        if not self._cap.isOpened():  # type: ignore[union-attr]
            self._cap = None
            raise FrameSourceError(f"Failed to open camera {self.cfg.device_index}")
        # Set properties (best-effort)
        self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.cfg.width)  # type: ignore[union-attr]
        self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.cfg.height)  # type: ignore[union-attr]
        self._cap.set(cv2.CAP_PROP_FPS, self.cfg.fps)  # type: ignore[union-attr]
        self._t0 = perf_counter()
        logger.info("Opened camera %d", self.cfg.device_index)

    def read_current(self) -> Optional[Frame]:
        if self._cap is None:
            raise FrameSourceError("Camera is not opened")
        ok, bgr = self._cap.read()
        ts = perf_counter() - self._t0
        if not ok or bgr is None:
            raise FrameSourceError("Camera read failed")
        return Frame.from_bgr(ts, bgr)

    def close(self) -> None:
        if self._cap is not None:
            self._cap.release()  # type: ignore[union-attr]
            self._cap = None


class MemoryVideo:
    """In-memory video: a list of RGBA images at a fixed native frame rate.

    ``seek(t)`` returns the last frame starting at or before ``t``.
    """

    def __init__(self, images: Sequence[np.ndarray], fps: float = 30.0) -> None:
        if fps <= 0:
            raise ValueError("fps must be positive")
        self._images: List[np.ndarray] = list(images)
        self.fps = float(fps)
        self.duration = len(self._images) / self.fps
        self.seeks = 0
        self.closed = False

    def seek(self, t: float) -> Frame:
        if self.closed:
            raise FrameSourceError("Video is closed")
        self.seeks += 1
        # tolerate float error at exact frame boundaries
        idx = int(math.floor(t * self.fps + 1e-9))
        if idx < 0 or idx >= len(self._images):
            raise FrameSourceError(f"Seek to {t:.3f}s is outside the video")
        return Frame(t, self._images[idx])

    def close(self) -> None:
        self.closed = True


class MemoryStream:
    """Stream replaying ``(time, RGBA image)`` pairs, one per read.

    ``None`` entries model ticks where the stream has no frame ready yet.
    Raises :class:`FrameSourceError` once exhausted.
    """

    def __init__(self, frames: Iterable[Optional[Tuple[float, np.ndarray]]]) -> None:
        self._it = iter(frames)
        self.closed = False

    def read_current(self) -> Optional[Frame]:
        if self.closed:
            raise FrameSourceError("Stream is closed")
        try:
            item = next(self._it)
        except StopIteration:
            raise FrameSourceError("Stream ended") from None
        if item is None:
            return None
        t, pixels = item
        return Frame(t, pixels)

    def close(self) -> None:
        self.closed = True


class FileFrameAdapter:
    """Sample a video file at a fixed assumed frame rate, one seek per frame."""

    def __init__(self, source: VideoFileSource, fps: float = 30.0) -> None:
        if fps <= 0:
            raise ValueError("fps must be positive")
        self.source = source
        self.fps = float(fps)
        duration = float(source.duration)
        if not math.isfinite(duration) or duration < 0:
            raise FrameSourceError(f"Invalid video duration: {duration}")
        # tolerate float error so 10 s at 30 fps is 300 frames, not 299
        self.total_frames = int(math.floor(duration * self.fps + 1e-9))

    def time_of(self, index: int) -> float:
        return index / self.fps

    def frame_at(self, index: int) -> Frame:
        if not 0 <= index < self.total_frames:
            raise IndexError(f"frame index {index} out of range")
        t = self.time_of(index)
        try:
            frame = self.source.seek(t)
        except FrameSourceError:
            raise
        except Exception as exc:
            raise FrameSourceError(f"Seek to {t:.3f}s failed: {exc}") from exc
        # stamp with the requested time so sampling stays uniform
        if frame.time != t:
            frame = Frame(t, frame.pixels)
        return frame

    def __iter__(self) -> Iterator[Tuple[Frame, bool]]:
        for i in range(self.total_frames):
            yield self.frame_at(i), i == self.total_frames - 1


class StreamFrameAdapter:
    """Read whatever frame a live stream currently presents."""

    def __init__(self, source: StreamSource) -> None:
        self.source = source

    def next_frame(self) -> Optional[Tuple[Frame, bool]]:
        try:
            frame = self.source.read_current()
        except FrameSourceError:
            raise
        except Exception as exc:
            raise FrameSourceError(f"Stream read failed: {exc}") from exc
        if frame is None:
            return None
        return frame, False
