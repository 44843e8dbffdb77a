"""Command line entry point.

Run with: ``python -m pulse_rppg analyze clip.mp4`` (or ``live``, ``demo``,
``serve``).
"""

from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from .config import PulseConfig, load_config
from .errors import ConfigError, FrameSourceError
from .pipeline import PipelineState, PulseEstimate, PulsePipeline

logger = logging.getLogger("pulse_rppg")


def setup_logging(logs_dir: Path, level: int = logging.INFO) -> None:
    """Log to ``logs_dir/app.log`` and stderr; enable faulthandler."""
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    try:
        logs_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(logs_dir / "app.log", encoding="utf-8"))
        import faulthandler

        fh = (logs_dir / "faulthandler.log").open("w")
        faulthandler.enable(fh)
    except OSError as exc:
        print(f"File logging disabled: {exc}", file=sys.stderr)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        handlers=handlers,
        force=True,
    )


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="rPPG pulse-rate estimation")
    parser.add_argument("--config", type=Path, default=None, help="JSON config file")
    parser.add_argument("--logs", type=Path, default=Path("logs"))
    parser.add_argument("-v", "--verbose", action="store_true")
    parser.add_argument("--amplification", type=float, default=None)
    parser.add_argument("--green-only", action="store_true")
    parser.add_argument("--roi", type=float, nargs=4, metavar=("X", "Y", "W", "H"), default=None)
    parser.add_argument("--band", type=float, nargs=2, metavar=("LOW_HZ", "HIGH_HZ"), default=None)
    parser.add_argument("--record", type=Path, default=None, help="directory for session CSV/JSON")

    sub = parser.add_subparsers(dest="command", required=True)

    p_an = sub.add_parser("analyze", help="process a video file in batches")
    p_an.add_argument("video", type=Path)
    p_an.add_argument("--batch-size", type=int, default=None)
    p_an.add_argument("--fps", type=float, default=None, help="sampling rate assumed for the file")
    p_an.add_argument("--amplified", type=Path, default=None, help="write amplified video here")

    p_live = sub.add_parser("live", help="process a camera stream")
    p_live.add_argument("--device", type=int, default=0)
    p_live.add_argument("--seconds", type=float, default=None)
    p_live.add_argument("--buffer", type=int, default=None)

    p_demo = sub.add_parser("demo", help="analyse a synthetic pulse clip")
    p_demo.add_argument("--bpm", type=float, default=72.0)
    p_demo.add_argument("--duration", type=float, default=10.0)

    p_srv = sub.add_parser("serve", help="run the HTTP ingestion service")
    p_srv.add_argument("--host", default="127.0.0.1")
    p_srv.add_argument("--port", type=int, default=8000)

    return parser.parse_args(argv)


def config_from_args(args: argparse.Namespace) -> PulseConfig:
    cfg = load_config(args.config) if args.config else PulseConfig()
    changes: dict = {}
    if args.amplification is not None:
        changes["amplification_factor"] = args.amplification
    if args.green_only:
        changes["rgb_mode"] = False
    if args.roi is not None:
        changes.update(zip(("roi_x", "roi_y", "roi_width", "roi_height"), args.roi))
    if args.band is not None:
        changes["low_freq_cutoff"], changes["high_freq_cutoff"] = args.band
    if getattr(args, "batch_size", None) is not None:
        changes["batch_size"] = args.batch_size
    if getattr(args, "fps", None) is not None:
        changes["file_fps"] = args.fps
    if getattr(args, "buffer", None) is not None:
        changes["live_buffer_capacity"] = args.buffer
    return cfg.replace(**changes) if changes else cfg


def _format(est: Optional[PulseEstimate]) -> str:
    if est is None or est.bpm is None:
        return "no estimate"
    return f"{est.bpm} BPM (confidence {est.confidence:.2f}, SNR {est.snr_db:.1f} dB)"


def _run(args: argparse.Namespace, cfg: PulseConfig) -> PipelineState:
    from .recorder import RecorderConfig, SessionRecorder

    recorder = None
    if args.record is not None:
        recorder = SessionRecorder(RecorderConfig(out_dir=args.record))
        recorder.open()
    writer = None
    pipeline = PulsePipeline(
        cfg,
        on_progress=lambda p: logger.info("Progress %.0f%%", p),
        on_estimate=recorder.record_estimate if recorder else None,
        on_sample=recorder.record_sample if recorder else None,
    )
    # Ctrl+C cancels at the next batch/tick boundary
    previous = signal.signal(signal.SIGINT, lambda *_: pipeline.cancel())
    try:
        if args.command == "live":
            from .capture import CameraConfig, OpenCVCamera

            cam = OpenCVCamera(CameraConfig(device_index=args.device))
            cam.open()
            try:
                pipeline.run_stream(cam, max_seconds=args.seconds)
                pipeline.stop()
            finally:
                cam.close()
        else:
            if args.command == "demo":
                from .synthetic import pulse_video

                source = pulse_video(fps=cfg.file_fps, duration=args.duration, bpm=args.bpm, roi=cfg.roi)
            else:
                from .capture import OpenCVVideoFile

                source = OpenCVVideoFile(args.video)
            if getattr(args, "amplified", None) is not None:
                writer = _AmplifiedWriter(args.amplified, cfg.file_fps)
                pipeline.on_frames = writer.write
            try:
                pipeline.process_file(source)
            finally:
                source.close()
    finally:
        signal.signal(signal.SIGINT, previous)
        if writer is not None:
            writer.close()
        if recorder is not None:
            recorder.close()
            recorder.write_meta(
                {
                    "command": args.command,
                    "state": pipeline.state.value,
                    "bpm": pipeline.estimate.bpm if pipeline.estimate else None,
                    "error": pipeline.error,
                    "config": cfg.to_dict(),
                }
            )
    print(f"{pipeline.state.value}: {_format(pipeline.estimate)}")
    if pipeline.error:
        print(pipeline.error, file=sys.stderr)
    return pipeline.state


class _AmplifiedWriter:
    """Write amplified frames to a video file with OpenCV."""

    def __init__(self, path: Path, fps: float) -> None:
        self.path = path
        self.fps = fps
        self._vw = None

    def write(self, original, processed) -> None:
        import cv2

        if self._vw is None:
            fourcc = cv2.VideoWriter_fourcc(*"mp4v")
            self._vw = cv2.VideoWriter(
                str(self.path), fourcc, self.fps, (processed.width, processed.height)
            )
        self._vw.write(processed.to_bgr())

    def close(self) -> None:
        if self._vw is not None:
            self._vw.release()
            self._vw = None
            logger.info("Amplified video written to %s", self.path)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(args.logs, logging.DEBUG if args.verbose else logging.INFO)
    try:
        cfg = config_from_args(args)
    except ConfigError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2
    logger.info("Configuration: %s", json.dumps(cfg.to_dict()))
    if args.command == "serve":
        from .service import make_app

        import uvicorn

        uvicorn.run(make_app(cfg), host=args.host, port=args.port)
        return 0
    try:
        state = _run(args, cfg)
    except (FileNotFoundError, FrameSourceError) as exc:
        logger.error("%s", exc)
        return 1
    return 0 if state in (PipelineState.COMPLETED, PipelineState.CANCELLED) else 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
