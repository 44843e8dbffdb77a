"""FastAPI service estimating pulse rate from browser-computed ROI means.

The browser does the frame capture and ROI averaging and POSTs batches of
normalised mean RGB samples to ``/ingest``. Samples go into a live-mode ring
buffer; ``/metrics`` runs fusion, detrending and spectral analysis on a
snapshot of that buffer.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field, field_validator

from .buffer import LIVE, SignalBuffer
from .config import PulseConfig
from .errors import ConfigError
from .frame import ColorSample
from .pipeline import compute_estimate

logger = logging.getLogger(__name__)


@dataclass
class State:
    config: PulseConfig
    buffer: SignalBuffer


class ControlModel(BaseModel):
    rgb_mode: Optional[bool] = None
    low_freq_cutoff: Optional[float] = Field(None, gt=0.0, le=10.0)
    high_freq_cutoff: Optional[float] = Field(None, gt=0.0, le=10.0)
    live_buffer_capacity: Optional[int] = Field(None, ge=2, le=30 * 60 * 5)
    waveform_window: Optional[int] = Field(None, ge=1)


class IngestModel(BaseModel):
    t0: float = Field(..., allow_inf_nan=False)
    dt: float = Field(..., gt=0.0, allow_inf_nan=False)
    mean_rgb: list[list[float]]

    @field_validator("mean_rgb")
    @classmethod
    def _rows_are_rgb(cls, rows: list[list[float]]) -> list[list[float]]:
        for row in rows:
            if len(row) != 3:
                raise ValueError("each mean_rgb row must have 3 values")
            if any(not 0.0 <= v <= 1.0 for v in row):
                raise ValueError("mean_rgb values must be normalised to [0, 1]")
        return rows


def make_app(config: Optional[PulseConfig] = None) -> FastAPI:
    app = FastAPI(title="Pulse rPPG Service", version="0.2.0")
    cfg = config or PulseConfig()
    state = State(config=cfg, buffer=SignalBuffer(LIVE, cfg.live_buffer_capacity))
    lock = asyncio.Lock()

    @app.get("/health")
    async def health() -> dict[str, str]:  # pragma: no cover - trivial
        return {"status": "ok"}

    @app.get("/metrics")
    async def get_metrics() -> dict:
        async with lock:
            snap = state.buffer.snapshot()
            conf = state.config
        if len(snap) == 0:
            return {"status": "empty", "bpm": None, "samples": 0}
        est = compute_estimate(snap, conf)
        return {
            "status": "ok" if est.bpm is not None else "insufficient",
            "t": est.time,
            "bpm": est.bpm,
            "frequency_hz": est.frequency_hz,
            "confidence": est.confidence,
            "snr": est.snr_db,
            "fs": snap.sampling_rate,
            "samples": est.sample_count,
            "waveform": est.waveform.tolist(),
        }

    @app.post("/control")
    async def post_control(ctrl: ControlModel) -> dict:
        changes = ctrl.model_dump(exclude_none=True)
        async with lock:
            try:
                new_cfg = state.config.replace(**changes)
            except ConfigError as exc:
                raise HTTPException(status_code=422, detail=str(exc)) from exc
            if new_cfg.live_buffer_capacity != state.config.live_buffer_capacity:
                state.buffer = SignalBuffer(LIVE, new_cfg.live_buffer_capacity)
                logger.info("Buffer resized to %d", new_cfg.live_buffer_capacity)
            state.config = new_cfg
            return {"status": "ok", "params": new_cfg.to_dict()}

    @app.post("/ingest")
    async def post_ingest(payload: IngestModel) -> dict:
        if not payload.mean_rgb:
            return {"status": "empty"}
        samples = [
            ColorSample(payload.t0 + i * payload.dt, r, g, b)
            for i, (r, g, b) in enumerate(payload.mean_rgb)
        ]
        async with lock:
            try:
                state.buffer.extend(samples)
            except ValueError as exc:
                raise HTTPException(status_code=422, detail=str(exc)) from exc
            count = len(state.buffer)
        return {"status": "ok", "count": len(payload.mean_rgb), "buffered": count}

    @app.post("/reset")
    async def post_reset() -> dict:
        async with lock:
            state.buffer.clear()
        return {"status": "ok"}

    return app


def main(host: str = "127.0.0.1", port: int = 8000) -> None:  # pragma: no cover - manual run helper
    import uvicorn

    uvicorn.run(make_app(), host=host, port=port)


if __name__ == "__main__":  # pragma: no cover
    main()
