"""
Vision Perception Adapter - MediaPipe face detection + YOLO object detection.

Faces come from MediaPipe's short-range BlazeFace detector, whose six
keypoints (right eye, left eye, nose tip, mouth, right ear, left ear) are
returned in pixel coordinates. Objects come from a COCO-trained YOLO model
through ultralytics, reported as [x, y, w, h] boxes with lower-case labels.

Usage:
    from proctor_engine.vision import VisionPerception
    import cv2

    vision = VisionPerception()
    ok, frame = cv2.VideoCapture(0).read()
    faces = vision.detect_faces(frame)
    objects = vision.detect_objects(frame)
    vision.close()
"""

import logging
import os
import urllib.request
from typing import List, Optional

import cv2
import mediapipe as mp
import numpy as np
import torch
from ultralytics import YOLO

from .perception import FaceDescriptor, LabeledDetection, PerceptionAdapter

logger = logging.getLogger("proctor.vision")


# ============================================================================
# MEDIAPIPE COMPATIBILITY LAYER
# mediapipe >= 0.10.30 removed mp.solutions; use mp.tasks API instead.
# ============================================================================

_USE_TASKS_API = not hasattr(mp, 'solutions')

_MODELS_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), '.models')
_FACE_MODEL_PATH = os.path.join(_MODELS_DIR, 'blaze_face_short_range.tflite')
_FACE_MODEL_URL = (
    'https://storage.googleapis.com/mediapipe-models/'
    'face_detector/blaze_face_short_range/float16/latest/blaze_face_short_range.tflite'
)

DEFAULT_YOLO_WEIGHTS = "yolov8n.pt"
DEFAULT_IMGSZ = 640


def _ensure_face_model_downloaded():
    """Download the MediaPipe face detector model if not already cached."""
    os.makedirs(_MODELS_DIR, exist_ok=True)
    if not os.path.exists(_FACE_MODEL_PATH):
        logger.info("Downloading %s ...", os.path.basename(_FACE_MODEL_PATH))
        urllib.request.urlretrieve(_FACE_MODEL_URL, _FACE_MODEL_PATH)
        logger.info("Saved %s", os.path.basename(_FACE_MODEL_PATH))


class VisionPerception(PerceptionAdapter):
    """Face + object perception over BGR frames (OpenCV convention)"""

    def __init__(
        self,
        yolo_weights: str = DEFAULT_YOLO_WEIGHTS,
        object_confidence: float = 0.25,
        face_min_confidence: float = 0.5,
        imgsz: int = DEFAULT_IMGSZ,
    ):
        self.object_confidence = object_confidence
        self.face_min_confidence = face_min_confidence
        self.imgsz = imgsz
        self._device = "cpu"
        self._use_half = False
        self._face_detector = None
        self._model: Optional[YOLO] = None

        self._setup_device()
        self._initialize_face_detector()
        self._load_object_model(yolo_weights)

    # ──────────────────────────────────────────────────────
    # Initialisation
    # ──────────────────────────────────────────────────────

    def _setup_device(self):
        """Select GPU if available, enable FP16 half-precision"""
        if torch.cuda.is_available():
            self._device = "cuda"
            self._use_half = True
            logger.info("GPU detected: %s", torch.cuda.get_device_name(0))
        else:
            logger.info("No GPU detected, running object detection on CPU")

    def _initialize_face_detector(self):
        if _USE_TASKS_API:
            _ensure_face_model_downloaded()
            opts = mp.tasks.vision.FaceDetectorOptions(
                base_options=mp.tasks.BaseOptions(model_asset_path=_FACE_MODEL_PATH),
                running_mode=mp.tasks.vision.RunningMode.IMAGE,
                min_detection_confidence=self.face_min_confidence,
            )
            self._face_detector = mp.tasks.vision.FaceDetector.create_from_options(opts)
        else:
            self._face_detector = mp.solutions.face_detection.FaceDetection(
                model_selection=0,
                min_detection_confidence=self.face_min_confidence,
            )

    def _load_object_model(self, weights: str):
        logger.info("Loading YOLO model from: %s", weights)
        self._model = YOLO(weights)
        self._model.to(self._device)

    @property
    def is_ready(self) -> bool:
        return self._face_detector is not None and self._model is not None

    # ──────────────────────────────────────────────────────
    # Perception contract
    # ──────────────────────────────────────────────────────

    def detect_faces(self, frame: np.ndarray) -> List[FaceDescriptor]:
        if frame is None:
            return []
        height, width = frame.shape[:2]
        frame_rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)

        faces: List[FaceDescriptor] = []
        if _USE_TASKS_API:
            mp_image = mp.Image(
                image_format=mp.ImageFormat.SRGB,
                data=np.ascontiguousarray(frame_rgb),
            )
            result = self._face_detector.detect(mp_image)
            for det in result.detections or []:
                box = det.bounding_box
                score = det.categories[0].score if det.categories else 0.0
                faces.append(FaceDescriptor(
                    landmarks=tuple((kp.x * width, kp.y * height) for kp in det.keypoints or []),
                    bbox=(float(box.origin_x), float(box.origin_y), float(box.width), float(box.height)),
                    score=float(score),
                ))
        else:
            result = self._face_detector.process(frame_rgb)
            for det in result.detections or []:
                loc = det.location_data
                rel = loc.relative_bounding_box
                faces.append(FaceDescriptor(
                    landmarks=tuple((kp.x * width, kp.y * height) for kp in loc.relative_keypoints),
                    bbox=(rel.xmin * width, rel.ymin * height, rel.width * width, rel.height * height),
                    score=float(det.score[0]) if det.score else 0.0,
                ))
        return faces

    def detect_objects(self, frame: np.ndarray) -> List[LabeledDetection]:
        if frame is None:
            return []
        results = self._model(
            frame,
            stream=False,
            conf=self.object_confidence,
            device=self._device,
            half=self._use_half,
            imgsz=self.imgsz,
            verbose=False,
        )
        detections: List[LabeledDetection] = []
        for r in results:
            for box in r.boxes:
                x1, y1, x2, y2 = (float(v) for v in box.xyxy[0])
                cls = int(box.cls[0])
                detections.append(LabeledDetection(
                    label=str(r.names[cls]).lower(),
                    score=float(box.conf[0]),
                    bbox=(x1, y1, x2 - x1, y2 - y1),
                ))
        return detections

    def close(self):
        """Release resources"""
        if self._face_detector is not None:
            try:
                self._face_detector.close()
            except Exception as exc:
                logger.debug("Face detector close failed: %s", exc)
            self._face_detector = None
