"""
Shooting Form Scoring
Scores the shooting mechanics visible in a single pose. Uses the right-side
arm chain (right-handed shooter). A joint the detector missed scores 0 for
every metric that needs it.
"""

import math
from typing import Optional, Tuple

from .models import Joint, Keypoint, Pose, ShootingForm
from config import get_thresholds
from config.thresholds import FormConfig


def _angle_between_vectors(v1: Tuple[float, float], v2: Tuple[float, float]) -> float:
    """Unsigned angle between two 2-D vectors in radians, range [0, pi]"""
    mag1 = math.hypot(*v1)
    mag2 = math.hypot(*v2)
    if mag1 * mag2 == 0:
        return 0.0
    cos_angle = (v1[0] * v2[0] + v1[1] * v2[1]) / (mag1 * mag2)
    cos_angle = max(-1.0, min(1.0, cos_angle))  # Clamp for numerical stability
    return math.acos(cos_angle)


def elbow_alignment(
    shoulder: Optional[Keypoint],
    elbow: Optional[Keypoint],
    wrist: Optional[Keypoint],
    weight: float = 2.0
) -> float:
    """Elbow tucked under the ball: upper arm and forearm stacked vertically"""
    if shoulder is None or elbow is None or wrist is None:
        return 0.0
    deviation = abs((elbow.x - shoulder.x) + (wrist.x - elbow.x))
    return max(0.0, 1.0 - deviation * weight)


def shoulder_square(
    left: Optional[Keypoint],
    right: Optional[Keypoint],
    weight: float = 10.0
) -> float:
    """Shoulders level to the basket"""
    if left is None or right is None:
        return 0.0
    dx = right.x - left.x
    if dx == 0:
        # Shoulders stacked on top of each other: turned fully sideways
        return 0.0
    slope = abs((right.y - left.y) / dx)
    return max(0.0, 1.0 - slope * weight)


def knee_flexion(
    hip: Optional[Keypoint],
    knee: Optional[Keypoint],
    ankle: Optional[Keypoint],
    cfg: FormConfig
) -> float:
    """Knee bend inside the optimal band scores 1, falling off linearly outside it"""
    if hip is None or knee is None or ankle is None:
        return 0.0
    thigh = (knee.x - hip.x, knee.y - hip.y)
    shin = (ankle.x - knee.x, ankle.y - knee.y)
    bend = _angle_between_vectors(thigh, shin)

    if cfg.knee_flexion_min_rad <= bend <= cfg.knee_flexion_max_rad:
        return 1.0
    distance = min(abs(bend - cfg.knee_flexion_min_rad), abs(bend - cfg.knee_flexion_max_rad))
    return max(0.0, 1.0 - distance * cfg.knee_deviation_weight)


def follow_through(elbow: Optional[Keypoint], wrist: Optional[Keypoint]) -> float:
    """Wrist snapped down below the elbow"""
    if elbow is None or wrist is None:
        return 0.0
    return 1.0 if wrist.y > elbow.y else 0.0


def balance(
    nose: Optional[Keypoint],
    left_ankle: Optional[Keypoint],
    right_ankle: Optional[Keypoint],
    weight: float = 5.0
) -> float:
    """Head centred over the feet"""
    if nose is None or left_ankle is None or right_ankle is None:
        return 0.0
    center_x = (left_ankle.x + right_ankle.x) / 2
    return max(0.0, 1.0 - abs(nose.x - center_x) * weight)


def score_shooting_form(pose: Pose, cfg: Optional[FormConfig] = None) -> ShootingForm:
    """
    Score all five form dimensions of a pose.

    Args:
        pose: Pose to score
        cfg: Form weights and knee band (defaults to the global thresholds)

    Returns:
        ShootingForm with every dimension in [0, 1]
    """
    cfg = cfg or get_thresholds().form
    kp = pose.keypoint

    return ShootingForm(
        elbow_alignment=elbow_alignment(
            kp(Joint.RIGHT_SHOULDER), kp(Joint.RIGHT_ELBOW), kp(Joint.RIGHT_WRIST),
            weight=cfg.elbow_deviation_weight
        ),
        shoulder_square=shoulder_square(
            kp(Joint.LEFT_SHOULDER), kp(Joint.RIGHT_SHOULDER),
            weight=cfg.shoulder_slope_weight
        ),
        knee_flexion=knee_flexion(
            kp(Joint.RIGHT_HIP), kp(Joint.RIGHT_KNEE), kp(Joint.RIGHT_ANKLE), cfg
        ),
        follow_through=follow_through(kp(Joint.RIGHT_ELBOW), kp(Joint.RIGHT_WRIST)),
        balance=balance(
            kp(Joint.NOSE), kp(Joint.LEFT_ANKLE), kp(Joint.RIGHT_ANKLE),
            weight=cfg.balance_deviation_weight
        ),
    )
