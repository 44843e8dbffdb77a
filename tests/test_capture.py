from __future__ import annotations

from typing import List, Tuple

import numpy as np
import pytest

from pulse_rppg.capture import (
    FileFrameAdapter,
    MemoryStream,
    MemoryVideo,
    OpenCVVideoFile,
    StreamFrameAdapter,
)
from pulse_rppg.errors import FrameSourceError


def _images(n: int) -> List[np.ndarray]:
    return [np.full((2, 3, 4), i, dtype=np.uint8) for i in range(n)]


def test_file_adapter_samples_at_fixed_rate() -> None:
    video = MemoryVideo(_images(60), fps=60.0)  # 1 s of video
    adapter = FileFrameAdapter(video, fps=30.0)
    assert adapter.total_frames == 30
    pairs = list(adapter)
    assert len(pairs) == 30
    assert [final for _, final in pairs].count(True) == 1
    assert pairs[-1][1] is True
    frame, _ = pairs[3]
    assert np.isclose(frame.time, 0.1)
    # the 0.1 s seek lands on native frame 6
    assert frame.pixels[0, 0, 0] == 6
    assert video.seeks == 30


def test_file_adapter_wraps_seek_failures() -> None:
    class Broken:
        duration = 1.0

        def seek(self, t: float):
            raise OSError("decoder crashed")

        def close(self) -> None:
            pass

    adapter = FileFrameAdapter(Broken(), fps=30.0)
    with pytest.raises(FrameSourceError):
        adapter.frame_at(0)
    with pytest.raises(IndexError):
        adapter.frame_at(30)


def test_stream_adapter_reads_current_frame() -> None:
    img = np.zeros((2, 2, 4), dtype=np.uint8)
    adapter = StreamFrameAdapter(MemoryStream([None, (0.25, img)]))
    assert adapter.next_frame() is None
    frame, final = adapter.next_frame()
    assert frame.time == 0.25 and final is False
    with pytest.raises(FrameSourceError):
        adapter.next_frame()


class FakeCapture:
    def __init__(self, frames: List[np.ndarray], *, opened: bool = True) -> None:
        self.frames = frames
        self.opened = opened
        self.pos_msec = 0.0
        self.released = False

    def isOpened(self) -> bool:  # noqa: N802 - mimics OpenCV API
        return self.opened

    def get(self, prop_id: int) -> float:
        import cv2

        if prop_id == cv2.CAP_PROP_FPS:
            return 10.0
        if prop_id == cv2.CAP_PROP_FRAME_COUNT:
            return len(self.frames)
        if prop_id == cv2.CAP_PROP_FRAME_WIDTH:
            return self.frames[0].shape[1]
        if prop_id == cv2.CAP_PROP_FRAME_HEIGHT:
            return self.frames[0].shape[0]
        return 0.0

    def set(self, prop_id: int, value: float) -> bool:
        import cv2

        if prop_id == cv2.CAP_PROP_POS_MSEC:
            self.pos_msec = value
        return True

    def read(self) -> Tuple[bool, np.ndarray]:
        idx = int(round(self.pos_msec / 100.0))
        if idx >= len(self.frames):
            return False, None
        return True, self.frames[idx]

    def release(self) -> None:
        self.released = True


def test_opencv_video_file_seeks_by_time(tmp_path, monkeypatch) -> None:
    path = tmp_path / "video.mp4"
    path.write_bytes(b"fake")
    # BGR frames: blue channel encodes the index
    frames = [np.full((2, 3, 3), (i, 0, 0), dtype=np.uint8) for i in range(5)]
    fake = FakeCapture(frames)
    monkeypatch.setattr("cv2.VideoCapture", lambda _: fake)
    video = OpenCVVideoFile(path)
    assert video.duration == pytest.approx(0.5)
    frame = video.seek(0.3)
    assert frame.time == 0.3
    # BGR -> RGBA puts blue in channel 2
    assert frame.pixels[0, 0].tolist() == [0, 0, 3, 255]
    with pytest.raises(FrameSourceError):
        video.seek(0.9)
    video.close()
    assert fake.released


def test_opencv_video_file_open_failures(tmp_path, monkeypatch) -> None:
    with pytest.raises(FileNotFoundError):
        OpenCVVideoFile(tmp_path / "missing.mp4")
    path = tmp_path / "video.mp4"
    path.write_bytes(b"fake")
    monkeypatch.setattr("cv2.VideoCapture", lambda _: FakeCapture([], opened=False))
    with pytest.raises(FrameSourceError):
        OpenCVVideoFile(path)
