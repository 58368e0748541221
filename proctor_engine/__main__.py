"""
Local proctoring runner: one interview session on a local camera.

    python -m proctor_engine --candidate "Jane Doe" --camera 0 \
        --server http://localhost:8000 --duration 600

Events are mirrored to the server (when given) as they happen; the final
report is offered to the server and printed as JSON on exit.
"""

import argparse
import asyncio
import json
import logging
import platform
import threading
from typing import Optional

import cv2

from .config import ProctorConfig
from .report import epoch_ms_to_iso
from .sampler import LatestFrame, Sampler
from .session import ProctoringSession
from .sinks import HttpEventSink, HttpReportSink, ProctorServerClient, bootstrap_session

logger = logging.getLogger("proctor.runner")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a proctoring session on a local camera")
    parser.add_argument("--candidate", required=True, help="Candidate name")
    parser.add_argument("--camera", type=int, default=0, help="Camera index")
    parser.add_argument("--server", default=None, help="Proctoring server base URL")
    parser.add_argument("--duration", type=float, default=None,
                        help="Stop after this many seconds (default: until Ctrl+C)")
    parser.add_argument("--weights", default="yolov8n.pt", help="YOLO weights for object detection")
    parser.add_argument("--log-level", default="INFO")
    return parser.parse_args(argv)


def _open_camera(index: int = 0) -> cv2.VideoCapture:
    """Try multiple capture backends; the platform default can fail to open on Windows"""
    if platform.system() == "Windows":
        backends = [(cv2.CAP_DSHOW, "DirectShow"), (cv2.CAP_MSMF, "MSMF")]
    else:
        backends = [(cv2.CAP_V4L2, "V4L2")]

    for backend, name in backends:
        cap = cv2.VideoCapture(index, backend)
        if cap.isOpened():
            cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)
            logger.info(f"Camera {index} opened with {name}")
            return cap
        cap.release()
        logger.warning(f"Failed to open camera {index} with {name}")

    cap = cv2.VideoCapture(index)
    if cap.isOpened():
        cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)
        logger.info(f"Camera {index} opened with default backend")
    return cap


class CameraReader:
    """
    Reads the camera on a daemon thread and keeps only the newest frame, so
    the blocking ``cap.read()`` never runs on the event loop.
    """

    def __init__(self, cap, frames: Optional[LatestFrame] = None):
        self.cap = cap
        self.frames = frames or LatestFrame()
        self.failed_reads = 0
        self._stop_event = threading.Event()
        self._thread = threading.Thread(target=self._run, name="CameraReader", daemon=True)

    def start(self) -> "CameraReader":
        self._thread.start()
        return self

    def stop(self, timeout: float = 2.0) -> None:
        self._stop_event.set()
        if self._thread.is_alive():
            self._thread.join(timeout)

    def _run(self) -> None:
        while not self._stop_event.is_set():
            ok, frame = self.cap.read()
            if ok and frame is not None:
                self.frames.put(frame)
            else:
                self.failed_reads += 1
                self._stop_event.wait(0.05)


async def run(args: argparse.Namespace) -> Optional[dict]:
    # Heavy model imports stay out of the engine's import path
    from .vision import VisionPerception

    config = ProctorConfig()
    client = ProctorServerClient(args.server) if args.server else None
    session = ProctoringSession(
        args.candidate,
        config=config,
        event_sink=HttpEventSink(client) if client else None,
    )

    cap = _open_camera(args.camera)
    if not cap.isOpened():
        logger.error("Cannot open camera %s", args.camera)
        return None

    vision = VisionPerception(yolo_weights=args.weights)
    started_at_ms = session.start()
    if client:
        # best-effort; the session runs with its local identity until this lands
        client.schedule(bootstrap_session(session, client, epoch_ms_to_iso(started_at_ms)))

    reader = CameraReader(cap).start()
    sampler = Sampler(session, vision, reader.frames)
    sampler.start()
    try:
        if args.duration:
            await asyncio.sleep(args.duration)
        else:
            while True:
                await asyncio.sleep(3600)
    except asyncio.CancelledError:
        pass
    finally:
        await sampler.stop()
        report = session.stop()
        reader.stop()
        cap.release()
        vision.close()
        if client and report:
            HttpReportSink(client).offer(report)
        if client:
            await client.aclose()
        if report:
            print(json.dumps(report.to_dict(), indent=2))

    return report.to_dict() if report else None


def main(argv=None):
    """Main entry point"""
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)-25s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    try:
        asyncio.run(run(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")


if __name__ == "__main__":
    main()
