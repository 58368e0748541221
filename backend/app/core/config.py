"""
Interview Proctor Configuration
Central configuration loaded from environment variables.
"""

from pathlib import Path
from pydantic_settings import BaseSettings
from typing import List

from proctor_engine.config import ProctorConfig


class Settings(BaseSettings):
    # App
    APP_NAME: str = "Interview Proctor"
    PROCTOR_ENV: str = "development"
    DEBUG: bool = True

    # Database
    DATABASE_URL: str = "sqlite:///./proctor.db"

    # CORS
    CORS_ORIGINS: str = "http://localhost:5173,http://localhost:3000,http://localhost:8080"

    # Perception models
    YOLO_WEIGHTS_PATH: str = "yolov8n.pt"
    YOLO_CONFIDENCE: float = 0.25
    YOLO_IMGSZ: int = 640
    FACE_MIN_CONFIDENCE: float = 0.5
    PRELOAD_MODELS: bool = True

    # Sampling cadence (ms)
    SAMPLE_INTERVAL_MS: int = 100
    OBJECT_INTERVAL_MS: int = 600
    AUDIO_INTERVAL_MS: int = 800

    # Live event log
    EVENT_LOG_CAPACITY: int = 200

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",")]

    @property
    def base_dir(self) -> Path:
        return Path(__file__).resolve().parent.parent.parent

    @property
    def weights_path(self) -> str:
        """Local weights file if present, else the bare name (ultralytics downloads it)"""
        p = Path(self.YOLO_WEIGHTS_PATH)
        if not p.is_absolute() and (self.base_dir / p).exists():
            return str(self.base_dir / p)
        return str(p)

    def engine_config(self) -> ProctorConfig:
        return ProctorConfig(
            SAMPLE_INTERVAL_MS=self.SAMPLE_INTERVAL_MS,
            OBJECT_INTERVAL_MS=self.OBJECT_INTERVAL_MS,
            AUDIO_INTERVAL_MS=self.AUDIO_INTERVAL_MS,
            EVENT_LOG_CAPACITY=self.EVENT_LOG_CAPACITY,
        )

    class Config:
        env_file = Path(__file__).resolve().parent.parent.parent / ".env"
        extra = "allow"


settings = Settings()
