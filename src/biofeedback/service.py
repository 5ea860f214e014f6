"""FastAPI service exposing biofeedback metrics for a Web UI.

Frames are posted to ``/ingest`` (nested lists, HxWxC, values in [0, 1]);
the session loops run as background tasks and ``/metrics`` / ``/ws`` expose
the latest values. Nothing is pushed to the session from the view side
other than frames and control changes.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Optional

import numpy as np
from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field

from .config import SessionConfig
from .pipeline import InferFn
from .session import Session

logger = logging.getLogger(__name__)


class ControlModel(BaseModel):
    sampling_rate: Optional[float] = Field(None, ge=1.0, le=240.0)
    batch_size: Optional[int] = Field(None, ge=8, le=900)
    peak_threshold_ratio: Optional[float] = Field(None, gt=0.0, lt=1.0)
    smoothing_alpha: Optional[float] = Field(None, gt=0.0, le=1.0)


class IngestModel(BaseModel):
    t0: Optional[float] = None
    dt: Optional[float] = Field(None, gt=0.0)
    frames: list[list[list[list[float]]]]


def make_app(cfg: Optional[SessionConfig] = None, infer: Optional[InferFn] = None) -> FastAPI:
    app = FastAPI(title="Biofeedback Service", version="0.1.0")
    session = Session(cfg, infer=infer)
    app.state.session = session
    ws_clients: set[WebSocket] = set()
    push_task: Optional[asyncio.Task] = None

    async def push_loop() -> None:  # pragma: no cover - integration
        while True:
            try:
                await asyncio.sleep(0.5)
                if not ws_clients:
                    continue
                msg = json.dumps(session.snapshot())
                dead: list[WebSocket] = []
                for w in ws_clients:
                    try:
                        await w.send_text(msg)
                    except Exception:
                        dead.append(w)
                for w in dead:
                    ws_clients.discard(w)
            except asyncio.CancelledError:
                break

    @app.on_event("shutdown")
    async def _shutdown() -> None:  # pragma: no cover - integration
        nonlocal push_task
        if push_task:
            push_task.cancel()
            push_task = None
        await session.stop()

    @app.get("/health")
    async def health() -> dict[str, str]:  # pragma: no cover - trivial
        return {"status": "ok"}

    @app.get("/metrics")
    async def get_metrics() -> dict:
        return session.snapshot()

    @app.post("/session/start")
    async def start_session() -> dict:
        nonlocal push_task
        await session.start()
        if push_task is None:
            push_task = asyncio.create_task(push_loop())
        return {"status": "started", "backend": session.backend}

    @app.post("/session/stop")
    async def stop_session() -> dict:
        await session.stop()
        return {"status": "stopped"}

    @app.post("/control")
    async def post_control(ctl: ControlModel) -> dict:
        data = ctl.model_dump(exclude_none=True)
        if "sampling_rate" in data:
            session.set_sampling_rate(data["sampling_rate"])
        if "batch_size" in data:
            session.cfg.pulse.batch_size = data["batch_size"]
        if "peak_threshold_ratio" in data:
            session.cfg.pulse.peak_threshold_ratio = data["peak_threshold_ratio"]
        if "smoothing_alpha" in data:
            session.facial.set_alpha(data["smoothing_alpha"])
        return {"status": "ok", "applied": data}

    @app.post("/ingest")
    async def post_ingest(payload: IngestModel) -> dict:
        if not payload.frames:
            return {"status": "empty"}
        try:
            arr = np.asarray(payload.frames, dtype=np.float32)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=f"ragged frames: {exc}") from exc
        if arr.ndim != 4:
            raise HTTPException(status_code=422, detail="frames must be NxHxWxC")
        t = payload.t0
        for frame in arr:
            session.push_frame(frame, t)
            if t is not None and payload.dt is not None:
                t += payload.dt
        return {"status": "ok", "count": int(arr.shape[0])}

    @app.websocket("/ws")
    async def ws_metrics(ws: WebSocket) -> None:  # pragma: no cover - integration
        await ws.accept()
        ws_clients.add(ws)
        try:
            while True:
                await ws.receive_text()
        except WebSocketDisconnect:
            ws_clients.discard(ws)

    return app


def main() -> None:  # pragma: no cover - manual run helper
    import uvicorn

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    uvicorn.run(make_app(), host="127.0.0.1", port=8000)


if __name__ == "__main__":  # pragma: no cover
    main()
