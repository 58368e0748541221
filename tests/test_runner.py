import threading
import time

from proctor_engine.__main__ import CameraReader, parse_args


class FakeCapture:
    """Blocking camera stand-in: each read waits until a frame is released"""

    def __init__(self, frames):
        self._frames = list(frames)
        self.gate = threading.Semaphore(0)
        self.reads = 0

    def read(self):
        self.reads += 1
        if not self.gate.acquire(timeout=0.05):
            return False, None
        if self._frames:
            return True, self._frames.pop(0)
        return False, None


def _wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


def test_camera_reader_keeps_newest_frame_off_the_caller_thread():
    cap = FakeCapture(["f1", "f2"])
    reader = CameraReader(cap).start()
    try:
        # nothing read yet; the caller is never blocked by the capture
        assert reader.frames() is None
        cap.gate.release()
        cap.gate.release()
        assert _wait_for(lambda: reader.frames.received == 2)
        assert reader.frames() == "f2"
        assert reader.frames() is None
    finally:
        reader.stop()
    assert not reader._thread.is_alive()


def test_camera_reader_counts_failed_reads():
    cap = FakeCapture([])
    reader = CameraReader(cap).start()
    try:
        assert _wait_for(lambda: reader.failed_reads >= 1)
        assert reader.frames.received == 0
    finally:
        reader.stop()


def test_parse_args_defaults():
    args = parse_args(["--candidate", "Jane Doe"])
    assert args.camera == 0
    assert args.server is None
    assert args.weights == "yolov8n.pt"
