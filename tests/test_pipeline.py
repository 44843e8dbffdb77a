from __future__ import annotations

import types

import numpy as np

from pulse_rppg import pipeline as pipeline_module
from pulse_rppg.capture import MemoryStream, MemoryVideo
from pulse_rppg.config import PulseConfig
from pulse_rppg.errors import FrameSourceError
from pulse_rppg.pipeline import PipelineState, PulsePipeline
from pulse_rppg.synthetic import pulse_images, pulse_stream, pulse_video


def test_batch_scenario_reports_72_bpm() -> None:
    progress: list = []
    estimates: list = []
    pipe = PulsePipeline(
        PulseConfig(), on_progress=progress.append, on_estimate=estimates.append
    )
    state = pipe.process_file(pulse_video(duration=10.0, bpm=72.0))
    assert state is PipelineState.COMPLETED
    assert pipe.estimate is not None
    assert 70 <= pipe.estimate.bpm <= 74
    assert pipe.estimate.waveform.size == 200
    assert pipe.estimate.sample_count == 300
    # one progress event per batch, monotone, ending at 100
    assert progress == sorted(progress)
    assert progress[-1] == 100.0
    assert len(progress) >= 30
    # estimates only once two seconds of samples exist
    assert estimates[0].sample_count >= 60
    assert len(pipe.snapshot()) == 300


def test_green_only_mode() -> None:
    pipe = PulsePipeline(PulseConfig(rgb_mode=False))
    pipe.process_file(pulse_video(duration=10.0, bpm=90.0))
    assert pipe.estimate is not None and 87 <= pipe.estimate.bpm <= 93


def test_batch_is_deterministic() -> None:
    images = pulse_images(duration=6.0, bpm=84.0, noise=2.0, seed=3)
    results = []
    for _ in range(2):
        pipe = PulsePipeline(PulseConfig())
        pipe.process_file(MemoryVideo(images, fps=30.0))
        results.append(pipe.estimate)
    assert results[0].bpm == results[1].bpm
    np.testing.assert_array_equal(results[0].waveform, results[1].waveform)


def test_frames_are_original_and_amplified_pairs() -> None:
    pairs: list = []
    pipe = PulsePipeline(PulseConfig(frame_history=5), on_frames=lambda o, p: pairs.append((o, p)))
    pipe.process_file(pulse_video(duration=1.0))
    assert len(pairs) == 30
    kept = pipe.frames
    assert len(kept) == 5
    original, processed = kept[-1]
    assert original.pixels.shape == processed.pixels.shape
    assert original.time == processed.time
    assert processed is not original


def test_short_clip_publishes_no_estimate() -> None:
    pipe = PulsePipeline(PulseConfig())
    state = pipe.process_file(pulse_video(duration=0.5))
    assert state is PipelineState.COMPLETED
    assert pipe.progress == 100.0
    assert pipe.estimate is not None
    assert pipe.estimate.bpm is None
    assert pipe.estimate.sample_count == 15


def test_cancel_mid_batch_stops_events() -> None:
    progress: list = []
    seen: dict = {}
    pipe = PulsePipeline(PulseConfig())

    def on_progress(p: float) -> None:
        progress.append(p)
        if pipe.estimate is not None and "estimate" not in seen:
            seen["estimate"] = pipe.estimate
            seen["events"] = len(progress)
            pipe.cancel()

    pipe.on_progress = on_progress
    state = pipe.process_file(pulse_video(duration=10.0))
    assert state is PipelineState.CANCELLED
    assert pipe.state is PipelineState.CANCELLED
    assert len(progress) == seen["events"]
    assert pipe.estimate is seen["estimate"]
    assert pipe.progress < 100.0


def test_source_error_keeps_partial_results() -> None:
    class FailingVideo(MemoryVideo):
        def seek(self, t: float):
            if round(t * self.fps) >= 95:
                raise FrameSourceError("decode error")
            return super().seek(t)

    pipe = PulsePipeline(PulseConfig())
    state = pipe.process_file(FailingVideo(pulse_images(duration=10.0), fps=30.0))
    assert state is PipelineState.ERROR
    assert pipe.error is not None and "decode error" in pipe.error
    assert len(pipe.snapshot()) == 95
    assert pipe.estimate is not None and pipe.estimate.bpm is not None


def test_wall_clock_ceiling(monkeypatch) -> None:
    clock = iter(range(0, 1000, 10))
    fake_time = types.SimpleNamespace(monotonic=lambda: float(next(clock)), sleep=lambda s: None)
    monkeypatch.setattr(pipeline_module, "time", fake_time)
    pipe = PulsePipeline(PulseConfig(max_processing_seconds=15.0))
    state = pipe.process_file(pulse_video(duration=5.0))
    assert state is PipelineState.ERROR
    assert "exceeded" in pipe.error
    assert len(pipe.snapshot()) == 10


def test_live_ring_buffer_and_periodic_estimates() -> None:
    estimates: list = []
    cfg = PulseConfig(live_buffer_capacity=90)
    pipe = PulsePipeline(cfg, on_estimate=estimates.append)
    stream = MemoryStream(pulse_stream(duration=10.0, bpm=72.0))
    state = pipe.run_stream(stream, max_ticks=100)
    assert state is PipelineState.PROCESSING
    snap = pipe.snapshot()
    assert len(snap) == 90
    assert np.allclose(snap.times, np.arange(10, 100) / 30.0)
    # every 5th tick
    assert len(estimates) == 20
    assert estimates[-1].sample_count == 90
    assert estimates[-1].bpm is not None and abs(estimates[-1].bpm - 72) <= 6
    # early estimates lack data but still carry a waveform
    assert estimates[0].bpm is None and estimates[0].waveform.size == 5
    pipe.cancel()
    assert pipe.state is PipelineState.CANCELLED
    assert pipe.tick() is False
    assert pipe.estimate is estimates[-1]


def test_live_skips_ticks_without_frames() -> None:
    img = np.zeros((4, 4, 4), dtype=np.uint8)
    pipe = PulsePipeline(PulseConfig())
    pipe.start_stream(MemoryStream([None, (0.0, img), None, (0.0, img), (0.1, img)]))
    for _ in range(5):
        assert pipe.tick() is True
    assert len(pipe.snapshot()) == 2


def test_live_stream_failure_is_error() -> None:
    pipe = PulsePipeline(PulseConfig())
    state = pipe.run_stream(MemoryStream(pulse_stream(duration=1.0)))
    assert state is PipelineState.ERROR
    assert len(pipe.snapshot()) == 30


def test_time_limited_stream_then_stop_completes(monkeypatch) -> None:
    clock = iter(range(1000))
    monkeypatch.setattr(
        pipeline_module, "time",
        types.SimpleNamespace(monotonic=lambda: float(next(clock)), sleep=lambda s: None),
    )
    pipe = PulsePipeline(PulseConfig())
    state = pipe.run_stream(MemoryStream(pulse_stream(duration=10.0)), max_seconds=5.0)
    # deadline at 5, one clock reading per tick after the start
    assert state is PipelineState.PROCESSING
    assert len(pipe.snapshot()) == 5
    pipe.stop()
    assert pipe.state is PipelineState.COMPLETED
    assert pipe.tick() is False
    pipe.cancel()
    assert pipe.state is PipelineState.COMPLETED
