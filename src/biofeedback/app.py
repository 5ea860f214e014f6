"""Headless runner: camera capture on a thread, session loops on asyncio.

Run with: `python run_app.py` (Ctrl+C to stop).
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import threading
from pathlib import Path

from .capture import Capture, CaptureConfig
from .config import SessionConfig
from .session import Session

logger = logging.getLogger(__name__)


def _setup_logging(logs_dir: Path) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    try:
        logs_dir.mkdir(exist_ok=True)
        handlers.append(logging.FileHandler(logs_dir / "app.log", encoding="utf-8"))
    except OSError:
        pass
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
        handlers=handlers,
    )


def _capture_worker(cap: Capture, session: Session, stop: threading.Event) -> None:
    while not stop.is_set():
        try:
            ts, frame = cap.read()
        except RuntimeError:
            logger.exception("capture stopped")
            break
        session.push_frame(frame, ts)


async def _run(session: Session, cap: Capture, report_every: float) -> None:
    stop = threading.Event()
    worker = threading.Thread(target=_capture_worker, args=(cap, session, stop), daemon=True)
    await session.start()
    worker.start()
    try:
        while worker.is_alive():
            await asyncio.sleep(report_every)
            snap = session.snapshot()
            hrv = snap["hrv"] or {}
            logger.info(
                "HR=%s RMSSD=%s RR=%s relax=%s pending=%s",
                _fmt(snap["heart_rate"]),
                _fmt(hrv.get("rmssd")),
                _fmt(snap["respiratory_rate"]),
                snap["relaxation_score"],
                snap["pending_frames"],
            )
    finally:
        stop.set()
        worker.join(timeout=1.0)
        await session.stop()


def _fmt(v) -> str:
    return "--" if v is None else f"{v:.1f}"


def main() -> None:
    parser = argparse.ArgumentParser(description="Camera biofeedback runner")
    parser.add_argument("--device", type=int, default=0)
    parser.add_argument("--fps", type=int, default=30)
    parser.add_argument("--no-external", action="store_true", help="skip the accelerated backend")
    parser.add_argument("--report-every", type=float, default=2.0)
    args = parser.parse_args()

    _setup_logging(Path("logs"))
    cfg = SessionConfig()
    cfg.pulse.sampling_rate = float(args.fps)
    cfg.bridge.prefer_external = not args.no_external
    session = Session(cfg)
    cap = Capture(CaptureConfig(device_index=args.device, fps=args.fps))
    cap.open()
    try:
        asyncio.run(_run(session, cap, args.report_every))
    except KeyboardInterrupt:
        pass
    finally:
        cap.release()


if __name__ == "__main__":
    main()
