import os
import tempfile

# Settings are read at import time; point them at a throwaway database first
_DB_DIR = tempfile.mkdtemp(prefix="proctor-test-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'proctor-test.db')}"
os.environ["PRELOAD_MODELS"] = "false"
os.environ["DEBUG"] = "false"

import pytest

from proctor_engine.perception import FaceDescriptor, LabeledDetection, PerceptionAdapter

# Right eye, left eye, nose tip
FOCUSED = FaceDescriptor(landmarks=((100.0, 100.0), (160.0, 100.0), (130.0, 120.0)))
AWAY = FaceDescriptor(landmarks=((100.0, 100.0), (160.0, 100.0), (155.0, 105.0)))
EYES_CLOSED = FaceDescriptor(landmarks=((100.0, 100.0), (200.0, 102.0), (150.0, 130.0)))


class FakeVision(PerceptionAdapter):
    """Returns canned perception results for every frame"""

    def __init__(self, faces=None, detections=None, ready=True):
        self.faces = list(faces or [])
        self.detections = list(detections or [])
        self.ready = ready
        self.face_calls = 0
        self.object_calls = 0
        self.closed = False

    @property
    def is_ready(self) -> bool:
        return self.ready

    def detect_faces(self, frame):
        self.face_calls += 1
        return list(self.faces)

    def detect_objects(self, frame):
        self.object_calls += 1
        return list(self.detections)

    def close(self):
        self.closed = True


def phone(score=0.9):
    return LabeledDetection(label="cell phone", score=score, bbox=(10.0, 10.0, 50.0, 90.0))


@pytest.fixture(scope="session")
def api_app():
    from main import app as fastapi_app
    return fastapi_app


@pytest.fixture
def client(api_app):
    from fastapi.testclient import TestClient
    from app.core.database import SessionLocal
    from app.models.report import ProctorReportRecord

    with TestClient(api_app) as c:
        yield c

    db = SessionLocal()
    try:
        db.query(ProctorReportRecord).delete()
        db.commit()
    finally:
        db.close()
    api_app.dependency_overrides.clear()
