"""
Centralized Settings Management using Pydantic Settings
Configuration with environment variable support.
"""

from typing import List, Optional
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from functools import lru_cache


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Use .env file for local development.
    """

    # Application
    APP_NAME: str = "HoopSense Shot Tracking API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = Field(default=False, description="Enable debug mode")
    ENVIRONMENT: str = Field(default="development", description="Environment: development, staging, production")

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="DEBUG, INFO, WARNING, ERROR, CRITICAL")
    LOG_JSON: bool = Field(default=False, description="Emit JSON logs (production)")
    LOG_FILE: Optional[str] = Field(default=None, description="Optional JSON log file")

    # CORS
    CORS_ORIGINS: str = Field(
        default="http://localhost:3000,http://localhost:8081",
        description="Comma-separated list of allowed origins"
    )
    CORS_ALLOW_CREDENTIALS: bool = False

    # API Keys
    GOOGLE_API_KEY: Optional[str] = Field(default=None, description="Google Gemini API key for coaching feedback")

    # LLM Settings
    LLM_PROVIDER: str = Field(default="gemini", description="gemini or anthropic (for proxy)")
    LLM_PROXY_URL: Optional[str] = Field(default="http://localhost:8000/v1", description="URL for LLM proxy")
    LLM_MODEL: str = Field(default="gemini-1.5-flash", description="Model used for coaching feedback")

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_FRAMES: str = "1800/minute"
    RATE_LIMIT_FEEDBACK: str = "30/hour"
    RATE_LIMIT_GLOBAL: str = "5000/hour"

    # Frame Upload
    MAX_FRAME_SIZE_MB: int = 10

    # Detectors
    POSE_MODEL_COMPLEXITY: int = Field(default=1, description="MediaPipe model complexity: 0, 1 or 2")
    BALL_MODEL_PATH: str = Field(default="yolov8n.pt", description="YOLO weights for ball detection")

    @property
    def allowed_origins(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        if self.CORS_ORIGINS == "*":
            return ["*"]
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def max_frame_size_bytes(self) -> int:
        """Get max frame size in bytes"""
        return self.MAX_FRAME_SIZE_MB * 1024 * 1024

    @property
    def llm_configured(self) -> bool:
        """Check if a coaching feedback provider can be reached"""
        if self.LLM_PROVIDER == "anthropic" or "proxy" in self.LLM_PROVIDER:
            return bool(self.LLM_PROXY_URL)
        return bool(self.GOOGLE_API_KEY)

    @field_validator("POSE_MODEL_COMPLEXITY")
    @classmethod
    def validate_model_complexity(cls, v: int) -> int:
        """MediaPipe only ships three pose models"""
        if v not in (0, 1, 2):
            raise ValueError("POSE_MODEL_COMPLEXITY must be 0, 1 or 2")
        return v

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "extra": "ignore"
    }


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Settings are loaded once.
    """
    return Settings()


# Convenience function for direct access
settings = get_settings()
