"""
FastAPI Application - HoopSense Shot Tracking API
Frame-by-frame basketball shot detection with coaching feedback.
"""

import os
import time
import logging
from typing import Optional

import cv2
import numpy as np
import psutil
from fastapi import FastAPI, UploadFile, File, Form, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

# Internal imports
from config.settings import get_settings
from config import get_thresholds
from core.coaching_feedback import CoachingFeedback
from core.detectors import MediaPipePoseDetector, YoloBallDetector
from core.frame_processor import FrameProcessor
from core.session import ShootingSession
from exceptions import (
    InvalidFrame,
    InvalidImageFormat,
    FrameTooLarge,
    ShotNotFound,
    ValidationError,
)
from logging_config import setup_logging
from middleware.error_handler import setup_error_handlers
from middleware.performance import PerformanceMiddleware
from middleware.rate_limiter import limiter, setup_rate_limiting

# Load settings
settings = get_settings()

setup_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON, log_file=settings.LOG_FILE)
logger = logging.getLogger(__name__)

# =============================================================================
# Application Factory
# =============================================================================

def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title=settings.APP_NAME,
        description="Real-time basketball shot detection, classification and coaching",
        version=settings.APP_VERSION,
        docs_url="/docs" if settings.DEBUG else None,  # Disable docs in production
        redoc_url="/redoc" if settings.DEBUG else None,
        openapi_url="/openapi.json" if settings.DEBUG else None
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Correlation-ID"],
        max_age=3600,  # Cache preflight for 1 hour
    )

    app.add_middleware(PerformanceMiddleware)

    setup_error_handlers(app)

    setup_rate_limiting(app)

    return app


# Create app instance
app = create_app()

# =============================================================================
# Global State
# =============================================================================

ALLOWED_IMAGE_TYPES = ["image/jpeg", "image/png", "image/webp", "image/bmp"]

# Detectors load their models on the first frame
processor = FrameProcessor(
    pose_detector=MediaPipePoseDetector(model_complexity=settings.POSE_MODEL_COMPLEXITY),
    ball_detector=YoloBallDetector(model_path=settings.BALL_MODEL_PATH),
    thresholds=get_thresholds()
)

session = ShootingSession()

# Rule-based fallback if no LLM is configured
coach = CoachingFeedback(settings)

STARTED_AT = time.time()

# =============================================================================
# Response Models
# =============================================================================

class HealthResponse(BaseModel):
    status: str
    service: str
    version: str


# =============================================================================
# Frame Helpers
# =============================================================================

def decode_frame(data: bytes) -> np.ndarray:
    """
    Decode an uploaded image into a BGR frame.

    Raises:
        InvalidFrame: bytes are not a decodable image
    """
    if not data:
        raise InvalidFrame("Empty frame upload")
    frame = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_COLOR)
    if frame is None:
        raise InvalidFrame("Could not decode uploaded frame")
    return frame


def validate_frame_upload(file: UploadFile, data: bytes) -> None:
    """
    Raises:
        InvalidImageFormat: content type is not an image we decode
        FrameTooLarge: upload exceeds the configured size
    """
    if file.content_type not in ALLOWED_IMAGE_TYPES:
        raise InvalidImageFormat(
            content_type=file.content_type or "unknown",
            allowed_types=ALLOWED_IMAGE_TYPES
        )
    if len(data) > settings.max_frame_size_bytes:
        raise FrameTooLarge(
            frame_size_mb=len(data) / (1024 * 1024),
            max_size_mb=settings.MAX_FRAME_SIZE_MB
        )


# =============================================================================
# Health Check Endpoints
# =============================================================================

@app.get("/", response_model=HealthResponse, tags=["Health"])
async def root():
    """Root endpoint - basic health check."""
    return HealthResponse(
        status="ok",
        service=settings.APP_NAME,
        version=settings.APP_VERSION
    )


@app.get("/health", tags=["Health"])
async def health():
    """Simple health check for load balancers."""
    return {"status": "healthy"}


@app.get("/health/live", tags=["Health"])
async def health_live():
    """Liveness probe - is service responding?"""
    return {"status": "alive"}


@app.get("/health/ready", tags=["Health"])
async def health_ready():
    """Readiness probe - reports which collaborators are available."""
    return {
        "status": "ready",
        "environment": settings.ENVIRONMENT,
        "processing": processor.is_processing,
        "feedback_provider": coach.model_name
    }


@app.get("/metrics", tags=["Health"])
async def metrics():
    """Process and pipeline metrics for monitoring."""
    process = psutil.Process(os.getpid())
    pipeline_metrics = processor.metrics

    return {
        "uptime_seconds": round(time.time() - STARTED_AT, 1),
        "memory_mb": round(process.memory_info().rss / 1024 / 1024, 2),
        "cpu_percent": process.cpu_percent(interval=None),
        "frames_processed": processor.frames_processed,
        "shots_detected": session.total_shots,
        "pipeline": pipeline_metrics.to_dict()
    }


# =============================================================================
# Frame Processing
# =============================================================================

@app.post("/api/frames", tags=["Tracking"])
@limiter.limit(settings.RATE_LIMIT_FRAMES)
async def process_frame(
    request: Request,
    file: UploadFile = File(...),
    timestamp: Optional[float] = Form(default=None)
):
    """
    Process one video frame.

    - **file**: JPEG/PNG/WebP/BMP image
    - **timestamp**: Frame time in seconds (defaults to server clock)

    Returns the pose, ball and (when this frame completes a shot) the shot
    analysis. Returns 409 if another frame is still being processed.
    """
    if timestamp is not None and timestamp < 0:
        raise ValidationError("timestamp must be non-negative", field="timestamp")

    data = await file.read()
    validate_frame_upload(file, data)
    frame = decode_frame(data)

    result = await processor.process(frame, timestamp=timestamp)

    if result.shot is not None:
        session.add_shot(result.shot)

    return result.to_dict()


@app.post("/api/tracking/reset", tags=["Tracking"])
async def reset_tracking():
    """Clear tracking state and start a new shooting session."""
    processor.reset()
    session.reset()
    return {"status": "reset", "session_id": session.session_id}


@app.get("/api/tracking/state", tags=["Tracking"])
async def tracking_state():
    """Latest pose, ball, shot and live shooting form."""
    form = processor.current_shooting_form
    return {
        "pose": processor.last_pose.to_dict() if processor.last_pose else None,
        "ball": processor.last_ball.to_dict() if processor.last_ball else None,
        "last_shot": processor.last_shot.to_dict() if processor.last_shot else None,
        "shooting_form": form.to_dict() if form else None,
        "pose_history_length": len(processor.pose_history()),
        "ball_history_length": len(processor.ball_history())
    }


@app.get("/api/tracking/metrics", tags=["Tracking"])
async def tracking_metrics():
    """Rolling pipeline performance metrics."""
    return processor.metrics.to_dict()


# =============================================================================
# Shots and Coaching
# =============================================================================

@app.get("/api/shots", tags=["Shots"])
async def list_shots():
    """Shots detected in the active session with summary statistics."""
    return session.to_dict()


@app.post("/api/shots/latest/feedback", tags=["Coaching"])
@limiter.limit(settings.RATE_LIMIT_FEEDBACK)
async def latest_shot_feedback(request: Request):
    """Detailed coaching feedback for the most recent shot."""
    shot = session.last_shot
    if shot is None:
        raise ShotNotFound()

    feedback = await run_in_threadpool(coach.enhance_shot, shot)
    return {
        "shot": shot.to_dict(),
        "feedback": feedback.to_dict()
    }


@app.post("/api/shots/summary", tags=["Coaching"])
@limiter.limit(settings.RATE_LIMIT_FEEDBACK)
async def session_summary(request: Request):
    """Coaching summary of the whole session. Returns 422 with no shots."""
    summary = await run_in_threadpool(coach.summarize_session, session.shots)
    logger.info(
        "Session summary generated",
        extra={"session_id": session.session_id, "source": summary.source}
    )
    return {
        "session_id": session.session_id,
        "summary": summary.to_dict()
    }


# =============================================================================
# Main Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8001,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info"
    )
