"""Session recorder: colour samples and estimates to CSV, metadata to JSON.

Rows are written by a background thread so the capture loop never blocks on
disk I/O. When the queue is full a row is dropped and counted.
"""

from __future__ import annotations

import csv
import json
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from queue import Empty, Full, Queue
from typing import IO, Optional

from .frame import ColorSample
from .pipeline import PulseEstimate

logger = logging.getLogger(__name__)

SAMPLE_HEADER = ["time", "r", "g", "b"]
ESTIMATE_HEADER = ["time", "bpm", "frequency_hz", "confidence", "snr_db", "samples"]


@dataclass
class RecorderConfig:
    out_dir: Path
    base_name: str = "session"
    queue_size: int = 1024


class _CsvWriter:
    def __init__(self, path: Path, header: list[str], queue_size: int) -> None:
        self.path = path
        self._file: IO[str] = path.open("w", newline="", encoding="utf-8")
        self._writer = csv.writer(self._file)
        self._writer.writerow(header)
        self._queue: "Queue[Optional[list[object]]]" = Queue(maxsize=queue_size)
        self.dropped = 0
        self._worker = threading.Thread(target=self._loop, daemon=True)
        self._worker.start()

    def put(self, row: list[object]) -> None:
        try:
            self._queue.put_nowait(row)
        except Full:
            self.dropped += 1

    def close(self) -> None:
        self._queue.put(None)
        self._worker.join()
        self._file.close()

    def _loop(self) -> None:
        while True:
            try:
                item = self._queue.get(timeout=0.5)
            except Empty:
                self._file.flush()
                continue
            if item is None:
                break
            self._writer.writerow(item)
        self._file.flush()


class SessionRecorder:
    """Record one pipeline session.

    Hook :meth:`record_sample` and :meth:`record_estimate` into the pipeline's
    ``on_sample`` and ``on_estimate`` callbacks.
    """

    def __init__(self, cfg: RecorderConfig) -> None:
        self.cfg = cfg
        self.cfg.out_dir.mkdir(parents=True, exist_ok=True)
        self.samples_path = cfg.out_dir / f"{cfg.base_name}_samples.csv"
        self.estimates_path = cfg.out_dir / f"{cfg.base_name}_estimates.csv"
        self.meta_path = cfg.out_dir / f"{cfg.base_name}.json"
        self._samples: Optional[_CsvWriter] = None
        self._estimates: Optional[_CsvWriter] = None

    def open(self) -> None:
        self._samples = _CsvWriter(self.samples_path, SAMPLE_HEADER, self.cfg.queue_size)
        self._estimates = _CsvWriter(self.estimates_path, ESTIMATE_HEADER, self.cfg.queue_size)

    def __enter__(self) -> "SessionRecorder":
        self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def record_sample(self, sample: ColorSample) -> None:
        if self._samples is None:
            raise RuntimeError("Recorder not opened")
        self._samples.put([f"{sample.time:.6f}", f"{sample.r:.6f}", f"{sample.g:.6f}", f"{sample.b:.6f}"])

    def record_estimate(self, est: PulseEstimate) -> None:
        if self._estimates is None:
            raise RuntimeError("Recorder not opened")
        self._estimates.put(
            [
                f"{est.time:.6f}",
                "" if est.bpm is None else est.bpm,
                f"{est.frequency_hz:.2f}",
                f"{est.confidence:.4f}",
                f"{est.snr_db:.2f}",
                est.sample_count,
            ]
        )

    def write_meta(self, meta: dict) -> None:
        self.meta_path.write_text(json.dumps(meta, ensure_ascii=False, indent=2), encoding="utf-8")

    def close(self) -> None:
        for writer in (self._samples, self._estimates):
            if writer is None:
                continue
            writer.close()
            if writer.dropped:
                logger.warning("Dropped %d rows writing %s", writer.dropped, writer.path)
        self._samples = None
        self._estimates = None
