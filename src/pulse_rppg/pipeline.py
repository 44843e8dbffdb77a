"""Batch and live orchestration of the pulse pipeline.

State machine::

    idle -> processing -> completed | cancelled | error

Batch mode seeks through a video file in batches of ``batch_size`` frames,
reports progress once per batch and honours cancellation at batch
boundaries. Live mode runs one frame per :meth:`PulsePipeline.tick` and
re-estimates every ``live_update_interval`` ticks.

All session state lives on the :class:`PulsePipeline` instance. The analyser
only ever reads :class:`~pulse_rppg.buffer.SignalSnapshot` copies, so a
capture thread may call :meth:`tick` while another thread reads results.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Deque, List, Optional, Tuple

import numpy as np

from .amplify import amplify_frame
from .bpm import NO_PEAK, direct_spectrum, find_pulse_frequency, has_enough_data, to_bpm
from .buffer import BATCH, LIVE, SignalBuffer, SignalSnapshot
from .capture import FileFrameAdapter, StreamFrameAdapter, StreamSource, VideoFileSource
from .config import PulseConfig
from .errors import FrameSourceError, ProcessingTimeout
from .frame import ColorSample, Frame
from .preprocess import fused_waveform
from .quality import peak_confidence, snr_db
from .roi import extract_color

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ERROR = "error"


@dataclass(frozen=True, eq=False)
class PulseEstimate:
    bpm: Optional[int]  # None: no estimate
    waveform: np.ndarray  # detrended signal, last ``waveform_window`` samples
    frequency_hz: float
    magnitude: float
    confidence: float  # 0..1 peak prominence, informational
    snr_db: float
    time: float  # timestamp of the newest sample used
    sample_count: int


def compute_estimate(snapshot: SignalSnapshot, config: PulseConfig) -> PulseEstimate:
    """Fuse, detrend and analyse a buffer snapshot."""
    waveform = fused_waveform(snapshot, config.rgb_mode)
    fs = snapshot.sampling_rate
    lo, hi = config.low_freq_cutoff, config.high_freq_cutoff
    peak = NO_PEAK
    conf = 0.0
    snr = 0.0
    if has_enough_data(waveform.size, fs, lo) and np.all(np.isfinite(waveform)):
        spectrum = direct_spectrum(waveform, fs)
        peak = find_pulse_frequency(spectrum, lo, hi)
        conf = peak_confidence(spectrum, peak, lo, hi)
        snr = snr_db(spectrum, peak, lo, hi)
    shown = np.array(waveform[-config.waveform_window:], dtype=np.float64)
    shown.flags.writeable = False
    return PulseEstimate(
        bpm=to_bpm(peak),
        waveform=shown,
        frequency_hz=peak.frequency_hz,
        magnitude=peak.magnitude,
        confidence=conf,
        snr_db=snr,
        time=float(snapshot.times[-1]) if len(snapshot) else 0.0,
        sample_count=len(snapshot),
    )


ProgressCallback = Callable[[float], None]
EstimateCallback = Callable[[PulseEstimate], None]
FramesCallback = Callable[[Frame, Frame], None]
SampleCallback = Callable[[ColorSample], None]


class PulsePipeline:
    """Drive frame sources through extraction, amplification and analysis.

    Callbacks run on the processing thread; none fire after :meth:`cancel`.
    """

    def __init__(
        self,
        config: Optional[PulseConfig] = None,
        on_progress: Optional[ProgressCallback] = None,
        on_estimate: Optional[EstimateCallback] = None,
        on_frames: Optional[FramesCallback] = None,
        on_sample: Optional[SampleCallback] = None,
    ) -> None:
        self.config = config or PulseConfig()
        self.on_progress = on_progress
        self.on_estimate = on_estimate
        self.on_frames = on_frames
        self.on_sample = on_sample
        self._lock = threading.RLock()
        self._cancel = threading.Event()
        self._state = PipelineState.IDLE
        self._progress = 0.0
        self._estimate: Optional[PulseEstimate] = None
        self._error: Optional[str] = None
        self._buffer: Optional[SignalBuffer] = None
        self._frames: Deque[Tuple[Frame, Frame]] = deque(maxlen=self.config.frame_history)
        self._stream: Optional[StreamFrameAdapter] = None
        self._ticks = 0

    # ------------------------------------------------------------------ state
    @property
    def state(self) -> PipelineState:
        with self._lock:
            return self._state

    @property
    def progress(self) -> float:
        with self._lock:
            return self._progress

    @property
    def estimate(self) -> Optional[PulseEstimate]:
        with self._lock:
            return self._estimate

    @property
    def error(self) -> Optional[str]:
        with self._lock:
            return self._error

    @property
    def frames(self) -> List[Tuple[Frame, Frame]]:
        """Recent (original, amplified) frame pairs, oldest first."""
        with self._lock:
            return list(self._frames)

    def snapshot(self) -> Optional[SignalSnapshot]:
        buf = self._buffer
        return buf.snapshot() if buf is not None else None

    def cancel(self) -> None:
        """Stop the session at the next batch or tick boundary.

        Safe to call from any thread and in any state.
        """
        self._cancel.set()
        with self._lock:
            if self._state is PipelineState.PROCESSING:
                self._state = PipelineState.CANCELLED
                logger.info("Processing cancelled")

    def stop(self) -> None:
        """End a running session normally; the state becomes ``completed``.

        Unlike :meth:`cancel` this marks a planned end, e.g. a time-limited
        live run. Later calls and calls in a terminal state do nothing.
        """
        self._cancel.set()
        with self._lock:
            if self._state is PipelineState.PROCESSING:
                self._state = PipelineState.COMPLETED
                logger.info("Processing stopped after %d ticks", self._ticks)

    # -------------------------------------------------------------- internals
    def _begin(self, buffer: SignalBuffer) -> None:
        with self._lock:
            self._cancel.clear()
            self._state = PipelineState.PROCESSING
            self._progress = 0.0
            self._estimate = None
            self._error = None
            self._buffer = buffer
            self._frames.clear()
            self._stream = None
            self._ticks = 0

    def _finish(self, state: PipelineState) -> None:
        with self._lock:
            if self._state is PipelineState.PROCESSING:
                self._state = state

    def _fail(self, exc: BaseException) -> None:
        logger.error("Processing stopped: %s", exc, exc_info=exc)
        with self._lock:
            if self._state is PipelineState.PROCESSING:
                self._state = PipelineState.ERROR
                self._error = f"Processing stopped: {exc}"

    def _active(self) -> bool:
        return not self._cancel.is_set() and self.state is PipelineState.PROCESSING

    def _ingest(self, frame: Frame) -> ColorSample:
        sample = extract_color(frame, self.config.roi)
        assert self._buffer is not None
        self._buffer.append(sample)
        if self.on_sample is not None:
            self.on_sample(sample)
        return sample

    def _amplify(self, frame: Frame, sample: ColorSample) -> None:
        cfg = self.config
        processed = amplify_frame(frame, sample, cfg.amplification_factor, cfg.rgb_mode)
        with self._lock:
            self._frames.append((frame, processed))
        if self.on_frames is not None:
            self.on_frames(frame, processed)

    def _publish(self) -> None:
        assert self._buffer is not None
        est = compute_estimate(self._buffer.snapshot(), self.config)
        with self._lock:
            if not self._active():
                return
            self._estimate = est
        logger.debug(
            "Estimate: bpm=%s f=%.2fHz conf=%.2f n=%d",
            est.bpm, est.frequency_hz, est.confidence, est.sample_count,
        )
        if self.on_estimate is not None:
            self.on_estimate(est)

    def _report_progress(self, value: float) -> None:
        with self._lock:
            if not self._active():
                return
            self._progress = max(self._progress, min(100.0, value))
            value = self._progress
        if self.on_progress is not None:
            self.on_progress(value)

    # ------------------------------------------------------------- batch mode
    def process_file(self, source: VideoFileSource) -> PipelineState:
        """Process a whole video file; returns the terminal state.

        The source is left open; the caller owns it.
        """
        cfg = self.config
        self._begin(SignalBuffer(BATCH, cfg.batch_window))
        try:
            adapter = FileFrameAdapter(source, cfg.file_fps)
        except FrameSourceError as exc:
            self._fail(exc)
            return self.state
        total = adapter.total_frames
        logger.info(
            "Batch processing: %d frames in batches of %d", total, cfg.batch_size
        )
        started = time.monotonic()
        processed = 0
        published_at = -1
        try:
            for start in range(0, total, cfg.batch_size):
                if not self._active():
                    break
                elapsed = time.monotonic() - started
                if cfg.max_processing_seconds is not None and elapsed > cfg.max_processing_seconds:
                    raise ProcessingTimeout(
                        f"exceeded {cfg.max_processing_seconds:.1f}s after {processed} frames"
                    )
                stop = min(start + cfg.batch_size, total)
                batch: List[Tuple[Frame, ColorSample]] = []
                for i in range(start, stop):
                    frame = adapter.frame_at(i)
                    batch.append((frame, self._ingest(frame)))
                processed = stop
                if not self._active():
                    break
                for frame, sample in batch:
                    self._amplify(frame, sample)
                if len(self._buffer) >= cfg.min_batch_samples:
                    self._publish()
                    published_at = processed
                self._report_progress(processed / total * 100.0)
                logger.debug("Batch %d done (%d/%d)", start // cfg.batch_size, processed, total)
        except (FrameSourceError, ProcessingTimeout) as exc:
            self._fail(exc)
            return self.state
        except Exception as exc:
            self._fail(exc)
            raise
        if self._active():
            if published_at != processed and processed > 0:
                # short clip: publish whatever the whole file gives
                self._publish()
            self._report_progress(100.0)
            self._finish(PipelineState.COMPLETED)
            logger.info("Batch processing completed: bpm=%s", self._estimate.bpm if self._estimate else None)
        return self.state

    # -------------------------------------------------------------- live mode
    def start_stream(self, source: StreamSource) -> None:
        self._begin(SignalBuffer(LIVE, self.config.live_buffer_capacity))
        with self._lock:
            self._stream = StreamFrameAdapter(source)
        logger.info("Live processing started (buffer %d)", self.config.live_buffer_capacity)

    def tick(self) -> bool:
        """Process the stream's current frame.

        Returns False once the session is no longer processing.
        """
        stream = self._stream
        if stream is None or not self._active():
            return False
        try:
            item = stream.next_frame()
        except FrameSourceError as exc:
            self._fail(exc)
            return False
        if item is None:
            return True
        frame, _ = item
        assert self._buffer is not None
        last = self._buffer.last_time
        if last is not None and frame.time <= last:
            logger.debug("Skipping stale frame at %.3fs", frame.time)
            return True
        try:
            sample = self._ingest(frame)
            self._amplify(frame, sample)
            self._ticks += 1
            if self._ticks % self.config.live_update_interval == 0:
                self._publish()
        except Exception as exc:
            self._fail(exc)
            raise
        return self._active()

    def run_stream(
        self,
        source: StreamSource,
        max_ticks: Optional[int] = None,
        interval: Optional[float] = None,
        max_seconds: Optional[float] = None,
    ) -> PipelineState:
        """Tick until cancelled, failed, or a tick or time limit is reached.

        Reaching a limit leaves the session processing; call :meth:`stop` to
        complete it or keep ticking.

        Args:
            interval: optional sleep between ticks in seconds (frame pacing).
            max_seconds: wall-clock limit measured from the first tick.
        """
        self.start_stream(source)
        deadline = time.monotonic() + max_seconds if max_seconds is not None else None
        n = 0
        while self.tick():
            n += 1
            if max_ticks is not None and n >= max_ticks:
                break
            if deadline is not None and time.monotonic() >= deadline:
                break
            if interval:
                time.sleep(interval)
        return self.state
