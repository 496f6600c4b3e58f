"""
Shot Tracking Data Model
Poses, ball sightings, trajectories and shot analyses.

Coordinates are normalized to [0, 1] on both axes with the origin at the
top-left of the frame, so a smaller y is higher on screen.
"""

import math
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, Dict, Optional, Tuple


class Joint(IntEnum):
    """The body joints tracked for shooting analysis"""
    NOSE = 0
    LEFT_SHOULDER = 1
    RIGHT_SHOULDER = 2
    LEFT_ELBOW = 3
    RIGHT_ELBOW = 4
    LEFT_WRIST = 5
    RIGHT_WRIST = 6
    LEFT_HIP = 7
    RIGHT_HIP = 8
    LEFT_KNEE = 9
    RIGHT_KNEE = 10
    LEFT_ANKLE = 11
    RIGHT_ANKLE = 12

    @property
    def label(self) -> str:
        return self.name.lower()


NUM_JOINTS = len(Joint)


@dataclass(frozen=True)
class Keypoint:
    x: float
    y: float
    confidence: float

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "confidence": self.confidence}


@dataclass(frozen=True)
class Pose:
    """
    A single-person pose detection.

    `keypoints` is indexed by Joint; a joint the detector could not place
    is None.
    """
    timestamp: float
    confidence: float
    keypoints: Tuple[Optional[Keypoint], ...] = (None,) * NUM_JOINTS

    def __post_init__(self):
        if len(self.keypoints) != NUM_JOINTS:
            raise ValueError(f"Pose needs {NUM_JOINTS} keypoint slots, got {len(self.keypoints)}")

    @classmethod
    def from_joints(
        cls,
        timestamp: float,
        confidence: float,
        joints: Dict[Joint, Keypoint]
    ) -> "Pose":
        """Build a pose from a partial joint mapping"""
        slots = [None] * NUM_JOINTS
        for joint, keypoint in joints.items():
            slots[joint] = keypoint
        return cls(timestamp=timestamp, confidence=confidence, keypoints=tuple(slots))

    def keypoint(self, joint: Joint) -> Optional[Keypoint]:
        return self.keypoints[joint]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "confidence": self.confidence,
            "keypoints": {
                joint.label: kp.to_dict()
                for joint, kp in zip(Joint, self.keypoints)
                if kp is not None
            }
        }


@dataclass(frozen=True)
class ShootingForm:
    """Shooting mechanics, each dimension scored in [0, 1]"""
    elbow_alignment: float
    shoulder_square: float
    knee_flexion: float
    follow_through: float
    balance: float

    @property
    def overall_score(self) -> float:
        return (
            self.elbow_alignment + self.shoulder_square + self.knee_flexion
            + self.follow_through + self.balance
        ) / 5.0

    def to_dict(self) -> Dict[str, float]:
        return {
            "elbow_alignment": self.elbow_alignment,
            "shoulder_square": self.shoulder_square,
            "knee_flexion": self.knee_flexion,
            "follow_through": self.follow_through,
            "balance": self.balance,
            "overall_score": self.overall_score,
        }


@dataclass(frozen=True)
class BallSighting:
    """
    One ball detection. Velocity is in normalized units per second and is
    filled in by the trajectory buffer from the previous sighting.
    """
    timestamp: float
    x: float
    y: float
    confidence: float
    velocity: Tuple[float, float] = (0.0, 0.0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "x": self.x,
            "y": self.y,
            "confidence": self.confidence,
            "velocity": {"x": self.velocity[0], "y": self.velocity[1]},
        }


@dataclass(frozen=True)
class BallTrajectory:
    points: Tuple[BallSighting, ...]
    start_time: float
    end_time: float

    @classmethod
    def from_points(cls, points: Tuple[BallSighting, ...]) -> "BallTrajectory":
        if not points:
            raise ValueError("A trajectory needs at least one sighting")
        return cls(points=tuple(points), start_time=points[0].timestamp, end_time=points[-1].timestamp)

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    @property
    def average_velocity(self) -> float:
        """Mean speed (magnitude of velocity) over all sightings"""
        if not self.points:
            return 0.0
        return sum(math.hypot(*p.velocity) for p in self.points) / len(self.points)

    @property
    def peak_height(self) -> float:
        """Highest point reached, i.e. the minimum y"""
        return min(p.y for p in self.points)

    @property
    def average_confidence(self) -> float:
        return sum(p.confidence for p in self.points) / len(self.points)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration": self.duration,
            "average_velocity": self.average_velocity,
            "peak_height": self.peak_height,
            "points": [p.to_dict() for p in self.points],
        }


class ShotType(str, Enum):
    JUMP_SHOT = "Jump Shot"
    THREE_POINTER = "Three Pointer"
    LAYUP = "Layup"
    FREE_THROW = "Free Throw"
    HOOK_SHOT = "Hook Shot"
    FADEAWAY = "Fadeaway"


class ShotOutcome(str, Enum):
    MADE = "made"
    MISSED = "missed"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ShotAnalysis:
    """Everything known about one detected shot attempt"""
    shot_type: ShotType
    outcome: ShotOutcome
    confidence: float
    timestamp: float
    duration: float
    shooting_form: ShootingForm
    trajectory: BallTrajectory
    release_point: Tuple[float, float]
    peak_height: float
    arc_angle: float  # Degrees
    feedback: str

    def to_dict(self, include_trajectory: bool = False) -> Dict[str, Any]:
        result = {
            "shot_type": self.shot_type.value,
            "outcome": self.outcome.value,
            "confidence": round(self.confidence, 3),
            "timestamp": self.timestamp,
            "duration": self.duration,
            "shooting_form": self.shooting_form.to_dict(),
            "release_point": {"x": self.release_point[0], "y": self.release_point[1]},
            "peak_height": self.peak_height,
            "arc_angle": round(self.arc_angle, 2),
            "feedback": self.feedback,
            "trajectory_points": len(self.trajectory.points),
        }
        if include_trajectory:
            result["trajectory"] = self.trajectory.to_dict()
        return result


@dataclass(frozen=True)
class FrameAnalysisResult:
    """Outcome of processing one frame"""
    pose: Optional[Pose]
    ball: Optional[BallSighting]
    shot: Optional[ShotAnalysis]
    processing_time: float  # Seconds
    errors: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pose": self.pose.to_dict() if self.pose else None,
            "ball": self.ball.to_dict() if self.ball else None,
            "shot": self.shot.to_dict() if self.shot else None,
            "processing_time_ms": round(self.processing_time * 1000, 2),
            "errors": list(self.errors),
        }


@dataclass
class PerformanceMetrics:
    processing_time: float = 0.0  # Rolling average, seconds
    frame_rate: float = 0.0
    memory_usage: int = 0  # Bytes (process RSS)
    confidence: float = 0.0  # Last pose confidence
    latency_target: float = 0.5
    min_frame_rate: float = 20.0

    @property
    def is_within_targets(self) -> bool:
        return self.processing_time < self.latency_target and self.frame_rate >= self.min_frame_rate

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processing_time_ms": round(self.processing_time * 1000, 2),
            "frame_rate": round(self.frame_rate, 2),
            "memory_usage_mb": round(self.memory_usage / (1024 * 1024), 2),
            "confidence": round(self.confidence, 3),
            "is_within_targets": self.is_within_targets,
        }
