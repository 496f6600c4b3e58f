from .thresholds import (
    ThresholdConfig,
    get_thresholds,
    THRESHOLDS,
    SHOT_COOLDOWN_SEC,
    MIN_TRAJECTORY_POINTS,
    LATENCY_TARGET_SEC,
)
from .settings import Settings, get_settings, settings

__all__ = [
    "ThresholdConfig",
    "get_thresholds",
    "THRESHOLDS",
    "SHOT_COOLDOWN_SEC",
    "MIN_TRAJECTORY_POINTS",
    "LATENCY_TARGET_SEC",
    "Settings", "get_settings", "settings"
]
