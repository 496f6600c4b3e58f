"""
HoopSense - Configurable Thresholds
All heuristic constants of the shot pipeline live here so they can be tuned
without touching control flow.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class HistoryConfig:
    """Rolling window sizes"""
    # Pose detections kept (~4 seconds at 30fps)
    max_pose_history: int = 120
    # Ball sightings kept (~3 seconds at 30fps)
    max_ball_history: int = 90


@dataclass
class ShotTriggerConfig:
    """Parabolic-motion shot trigger"""
    # Minimum ball sightings before a shot can be considered
    min_trajectory_points: int = 10
    # Minimum time between two accepted triggers (seconds)
    cooldown_sec: float = 2.0
    # Start must sit this far below the peak (10% of screen height)
    min_rise: float = 0.10
    # End must sit this far below the peak (5% of screen height)
    min_fall: float = 0.05


@dataclass
class ShotClassifierConfig:
    """Shot type / outcome heuristics (normalized screen units)"""
    # Pose must be within this many seconds of the trajectory start
    pose_match_tolerance_sec: float = 0.5
    # Start-to-end distance above this is a three pointer
    three_point_distance: float = 0.7
    # Release y below this line (numerically greater) is a layup
    layup_release_height: float = 0.8
    # Hoop window stand-in for rim detection
    hoop_x_min: float = 0.4
    hoop_x_max: float = 0.6
    hoop_y_max: float = 0.3
    # Arc peak expected around 20% from the top of the frame
    ideal_peak_height: float = 0.2
    peak_height_tolerance: float = 0.1
    # Trajectory length that counts as full data sufficiency
    full_confidence_points: int = 30


@dataclass
class FormConfig:
    """Shooting form scoring"""
    # Penalty multipliers
    elbow_deviation_weight: float = 2.0
    shoulder_slope_weight: float = 10.0
    knee_deviation_weight: float = 2.0
    balance_deviation_weight: float = 5.0
    # Optimal knee bend band in radians (~15-30 degrees)
    knee_flexion_min_rad: float = 0.26
    knee_flexion_max_rad: float = 0.52


@dataclass
class FeedbackConfig:
    """Rule-based coaching feedback"""
    # Form dimension below this emits a coaching sentence
    form_score_threshold: float = 0.7
    # Arc band in degrees
    min_arc_deg: float = 35.0
    max_arc_deg: float = 55.0


@dataclass
class PerformanceConfig:
    """Frame latency and throughput targets"""
    # Rolling latency window (frames)
    latency_window: int = 60
    # Soft per-frame latency target, logged when exceeded (seconds)
    latency_target_sec: float = 0.5
    # Minimum acceptable frame rate
    min_frame_rate: float = 20.0
    # Optional deadline per detector call; None waits indefinitely
    detector_timeout_sec: Optional[float] = None


@dataclass
class DetectorConfig:
    """Pose and ball detector adapters"""
    # MediaPipe model complexity: 0=lite, 1=full, 2=heavy
    pose_model_complexity: int = 1
    min_detection_confidence: float = 0.5
    min_tracking_confidence: float = 0.5
    # Landmarks below this visibility are treated as missing
    min_keypoint_visibility: float = 0.5
    # YOLO weights and COCO class for "sports ball"
    ball_model: str = "yolov8n.pt"
    ball_class_id: int = 32
    ball_min_confidence: float = 0.25


@dataclass
class ThresholdConfig:
    """Master threshold configuration"""
    history: HistoryConfig = field(default_factory=HistoryConfig)
    trigger: ShotTriggerConfig = field(default_factory=ShotTriggerConfig)
    classifier: ShotClassifierConfig = field(default_factory=ShotClassifierConfig)
    form: FormConfig = field(default_factory=FormConfig)
    feedback: FeedbackConfig = field(default_factory=FeedbackConfig)
    performance: PerformanceConfig = field(default_factory=PerformanceConfig)
    detector: DetectorConfig = field(default_factory=DetectorConfig)


# Global config instance - modify this to tune thresholds
THRESHOLDS = ThresholdConfig()


def get_thresholds() -> ThresholdConfig:
    """Get the current threshold configuration"""
    return THRESHOLDS


# Commonly referenced thresholds (aliases)
SHOT_COOLDOWN_SEC = THRESHOLDS.trigger.cooldown_sec
MIN_TRAJECTORY_POINTS = THRESHOLDS.trigger.min_trajectory_points
LATENCY_TARGET_SEC = THRESHOLDS.performance.latency_target_sec
