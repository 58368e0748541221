"""
Interview Proctor - FastAPI Application Entry Point
Live interview proctoring: focus, drowsiness, object and audio monitoring
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.database import init_db
from app.utils.logger import setup_logging

# Setup logging
setup_logging("DEBUG" if settings.DEBUG else "INFO")
logger = logging.getLogger("proctor.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle manager"""
    logger.info("=" * 60)
    logger.info("  Interview Proctor - Starting")
    logger.info("=" * 60)

    # Initialize database
    init_db()
    logger.info("Database initialized")

    # Pre-load perception models
    if settings.PRELOAD_MODELS:
        try:
            from app.services.perception_service import get_perception_service
            if get_perception_service().is_ready:
                logger.info("Perception models loaded successfully")
        except Exception as e:
            logger.warning(f"Model pre-load failed (will load on first connection): {e}")

    logger.info(f"Environment: {settings.PROCTOR_ENV}")
    logger.info(f"CORS Origins: {settings.cors_origins_list}")
    logger.info("Interview Proctor is ready!")
    logger.info("=" * 60)

    yield

    logger.info("Interview Proctor shutting down...")
    from app.services.perception_service import PerceptionService
    PerceptionService.release_instance()


# Create FastAPI app
app = FastAPI(
    title="Interview Proctor",
    description="Live interview proctoring powered by MediaPipe and YOLOv8",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
from app.routers import monitor, proctor

app.include_router(proctor.router)
app.include_router(monitor.router)


# Health check endpoint
@app.get("/health")
def health_check():
    import torch
    gpu_available = torch.cuda.is_available()
    gpu_name = torch.cuda.get_device_name(0) if gpu_available else None
    return {
        "status": "healthy",
        "service": "Interview Proctor",
        "version": "1.0.0",
        "device": "cuda" if gpu_available else "cpu",
        "gpu": gpu_name,
    }


@app.get("/api/info")
def api_info():
    return {
        "name": "Interview Proctor API",
        "version": "1.0.0",
        "description": "Live interview proctoring",
        "endpoints": {
            "proctor": "/api/proctor",
            "reports": "/api/proctor/reports",
            "websocket_monitor": "/ws/monitor",
            "websocket_events": "/ws/events",
            "health": "/health",
        }
    }
