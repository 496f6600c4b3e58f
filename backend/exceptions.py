"""
Custom Exceptions for HoopSense
Provides structured error handling with error codes and HTTP status mapping.
"""

from typing import Optional, Dict, Any


class HoopSenseException(Exception):
    """Base exception for all HoopSense errors"""

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to API response format"""
        result = {
            "error": self.code,
            "detail": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Computer Vision Errors
# =============================================================================

class PoseDetectionFailed(HoopSenseException):
    """Raised when the pose detector fails on a frame"""
    def __init__(self, message: str = "Failed to detect player pose in frame"):
        super().__init__(message, "POSE_DETECTION_FAILED", 422, {"stage": "pose_detection"})


class BallDetectionFailed(HoopSenseException):
    """Raised when the ball detector fails on a frame"""
    def __init__(self, message: str = "Failed to track basketball in frame"):
        super().__init__(message, "BALL_DETECTION_FAILED", 422, {"stage": "ball_detection"})


class InvalidFrame(HoopSenseException):
    """Raised when a frame cannot be interpreted as an image"""
    def __init__(self, message: str = "Invalid video frame provided"):
        super().__init__(message, "INVALID_FRAME", 400)


class ProcessingBusy(HoopSenseException):
    """Raised when a frame arrives while another frame is still in flight"""
    def __init__(self, message: str = "A frame is already being processed"):
        super().__init__(message, "PROCESSING_BUSY", 409)


class InsufficientData(HoopSenseException):
    """Raised when there is not enough data for an analysis"""
    def __init__(self, message: str = "Insufficient data for analysis"):
        super().__init__(message, "INSUFFICIENT_DATA", 422)


class ShotNotFound(HoopSenseException):
    """Raised when no shot has been detected yet"""
    def __init__(self, message: str = "No shot has been detected in this session"):
        super().__init__(message, "SHOT_NOT_FOUND", 404)


class FeedbackGenerationError(HoopSenseException):
    """Raised when the coaching feedback collaborator cannot produce a result"""
    def __init__(self, message: str):
        super().__init__(message, "FEEDBACK_GENERATION_ERROR", 502, {"stage": "feedback"})


# =============================================================================
# Validation Errors (400, 413, 415)
# =============================================================================

class ValidationError(HoopSenseException):
    """Raised when input validation fails"""
    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, "VALIDATION_ERROR", 400, details)


class InvalidImageFormat(HoopSenseException):
    """Raised when an uploaded frame has an unsupported content type"""
    def __init__(self, content_type: str, allowed_types: list):
        super().__init__(
            f"Invalid image format: {content_type}. Allowed: {', '.join(allowed_types)}",
            "INVALID_IMAGE_FORMAT",
            415,
            {"content_type": content_type, "allowed_types": allowed_types}
        )


class FrameTooLarge(HoopSenseException):
    """Raised when an uploaded frame exceeds the size limit"""
    def __init__(self, frame_size_mb: float, max_size_mb: int):
        super().__init__(
            f"Frame too large: {frame_size_mb:.1f}MB (max {max_size_mb}MB)",
            "FRAME_TOO_LARGE",
            413,
            {"frame_size_mb": frame_size_mb, "max_size_mb": max_size_mb}
        )

