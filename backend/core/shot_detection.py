"""
Shot Detection and Classification
Watches the ball trajectory for a parabolic rise-and-fall, then classifies
the attempt (type, outcome, arc, confidence) from the trajectory and the
shooter's pose at release.
"""

import math
import logging
from typing import List, Optional, Sequence, Tuple

from .history import PoseHistory
from .models import (
    BallSighting,
    BallTrajectory,
    Pose,
    ShootingForm,
    ShotAnalysis,
    ShotOutcome,
    ShotType,
)
from .shooting_form import score_shooting_form
from config import get_thresholds
from config.thresholds import (
    FeedbackConfig,
    FormConfig,
    ShotClassifierConfig,
    ShotTriggerConfig,
)

logger = logging.getLogger(__name__)


# Coaching sentences, emitted in this order
FEEDBACK_ELBOW = "Keep your elbow under the ball for better accuracy"
FEEDBACK_SHOULDERS = "Square your shoulders to the basket"
FEEDBACK_FOLLOW_THROUGH = "Follow through with your wrist - snap it down"
FEEDBACK_BALANCE = "Maintain better balance throughout your shot"
FEEDBACK_MORE_ARC = "Try to get more arc on your shot"
FEEDBACK_FLATTEN_ARC = "You're shooting too high - flatten your arc slightly"
FEEDBACK_POSITIVE_MADE = "Great shot! Keep up that form and follow-through."
FEEDBACK_POSITIVE_MISSED = "Good form overall - sometimes shots just don't fall. Keep shooting!"


def is_parabolic(points: Sequence[BallSighting], min_rise: float, min_fall: float) -> bool:
    """
    True when the ball rose from the first sighting to a peak and came back
    down by the last one. Screen y grows downward, so the peak is the minimum y.
    """
    if not points:
        return False
    start_y = points[0].y
    end_y = points[-1].y
    peak_y = min(p.y for p in points)
    return (start_y - peak_y) > min_rise and (peak_y - end_y) < -min_fall


def calculate_arc_angle(
    start: Tuple[float, float],
    peak_y: float,
    end: Tuple[float, float]
) -> float:
    """
    Launch arc in degrees: the rise from release to peak over the horizontal
    distance travelled. A purely vertical trajectory reports 0.
    """
    horizontal = abs(end[0] - start[0])
    if horizontal == 0:
        return 0.0
    vertical = abs(peak_y - start[1])
    return math.degrees(math.atan(vertical / horizontal))


def generate_feedback(
    form: ShootingForm,
    arc_angle: float,
    outcome: ShotOutcome,
    cfg: Optional[FeedbackConfig] = None
) -> str:
    """Rule-based coaching text for one shot"""
    cfg = cfg or get_thresholds().feedback
    threshold = cfg.form_score_threshold

    lines: List[str] = []
    if form.elbow_alignment < threshold:
        lines.append(FEEDBACK_ELBOW)
    if form.shoulder_square < threshold:
        lines.append(FEEDBACK_SHOULDERS)
    if form.follow_through < threshold:
        lines.append(FEEDBACK_FOLLOW_THROUGH)
    if form.balance < threshold:
        lines.append(FEEDBACK_BALANCE)
    if arc_angle < cfg.min_arc_deg:
        lines.append(FEEDBACK_MORE_ARC)
    elif arc_angle > cfg.max_arc_deg:
        lines.append(FEEDBACK_FLATTEN_ARC)

    if not lines:
        return FEEDBACK_POSITIVE_MADE if outcome == ShotOutcome.MADE else FEEDBACK_POSITIVE_MISSED
    return ". ".join(lines) + "."


class ShotTrigger:
    """
    Decides when the ball buffer contains a shot. Fires at most once per
    cooldown period; the cooldown clock starts when the trigger fires.
    """

    def __init__(self, cfg: Optional[ShotTriggerConfig] = None):
        self.cfg = cfg or get_thresholds().trigger
        self.last_trigger_time: Optional[float] = None

    def in_cooldown(self, now: float) -> bool:
        if self.last_trigger_time is None:
            return False
        return (now - self.last_trigger_time) < self.cfg.cooldown_sec

    def check(self, points: Sequence[BallSighting], now: float) -> Optional[BallTrajectory]:
        """
        Inspect the buffered sightings at time `now`.

        Returns:
            The trajectory to classify when the trigger fires, else None
        """
        if len(points) < self.cfg.min_trajectory_points:
            return None
        if self.in_cooldown(now):
            return None
        if not is_parabolic(points, self.cfg.min_rise, self.cfg.min_fall):
            return None

        self.last_trigger_time = now
        logger.debug(
            f"Shot trigger fired with {len(points)} points",
            extra={"trigger_time": now, "points": len(points)}
        )
        return BallTrajectory.from_points(tuple(points))

    def reset(self) -> None:
        self.last_trigger_time = None


class ShotClassifier:
    """
    Heuristic shot classification on normalized screen coordinates.
    There is no rim detection: the hoop is assumed to sit in a fixed window
    near the top centre of the frame.
    """

    def __init__(
        self,
        cfg: Optional[ShotClassifierConfig] = None,
        form_cfg: Optional[FormConfig] = None,
        feedback_cfg: Optional[FeedbackConfig] = None,
        min_points: Optional[int] = None
    ):
        thresholds = get_thresholds()
        self.cfg = cfg or thresholds.classifier
        self.form_cfg = form_cfg or thresholds.form
        self.feedback_cfg = feedback_cfg or thresholds.feedback
        self.min_points = min_points if min_points is not None else thresholds.trigger.min_trajectory_points

    def find_shooting_pose(self, trajectory: BallTrajectory, poses: PoseHistory) -> Optional[Pose]:
        """Pose nearest in time to the release"""
        return poses.nearest(trajectory.start_time, self.cfg.pose_match_tolerance_sec)

    def classify_shot_type(self, trajectory: BallTrajectory) -> ShotType:
        start = trajectory.points[0]
        end = trajectory.points[-1]
        distance = math.hypot(end.x - start.x, end.y - start.y)

        if distance > self.cfg.three_point_distance:
            return ShotType.THREE_POINTER
        if start.y > self.cfg.layup_release_height:
            return ShotType.LAYUP
        return ShotType.JUMP_SHOT

    def determine_outcome(self, trajectory: BallTrajectory) -> ShotOutcome:
        """MADE when the ball ends in the hoop window after a well-shaped arc"""
        end = trajectory.points[-1]
        cfg = self.cfg

        ends_in_hoop = cfg.hoop_x_min <= end.x <= cfg.hoop_x_max and end.y < cfg.hoop_y_max
        good_arc = abs(trajectory.peak_height - cfg.ideal_peak_height) < cfg.peak_height_tolerance

        return ShotOutcome.MADE if ends_in_hoop and good_arc else ShotOutcome.MISSED

    def calculate_confidence(self, trajectory: BallTrajectory, pose: Pose) -> float:
        """Mean of ball confidence, pose confidence and data sufficiency"""
        sufficiency = min(1.0, len(trajectory.points) / self.cfg.full_confidence_points)
        confidence = (trajectory.average_confidence + pose.confidence + sufficiency) / 3.0
        return max(0.0, min(1.0, confidence))

    def classify(self, trajectory: BallTrajectory, poses: PoseHistory) -> Optional[ShotAnalysis]:
        """
        Build a ShotAnalysis for a triggered trajectory.

        Returns None when the trajectory is too short or no pose was seen
        near the release.
        """
        if len(trajectory.points) < self.min_points:
            logger.debug(f"Trajectory too short to classify ({len(trajectory.points)} points)")
            return None

        pose = self.find_shooting_pose(trajectory, poses)
        if pose is None:
            logger.info(
                "Shot trigger fired but no pose near release, skipping",
                extra={"release_time": trajectory.start_time}
            )
            return None

        start = trajectory.points[0]
        end = trajectory.points[-1]
        peak = trajectory.peak_height

        form = score_shooting_form(pose, self.form_cfg)
        shot_type = self.classify_shot_type(trajectory)
        outcome = self.determine_outcome(trajectory)
        arc_angle = calculate_arc_angle((start.x, start.y), peak, (end.x, end.y))
        confidence = self.calculate_confidence(trajectory, pose)

        analysis = ShotAnalysis(
            shot_type=shot_type,
            outcome=outcome,
            confidence=confidence,
            timestamp=trajectory.start_time,
            duration=trajectory.duration,
            shooting_form=form,
            trajectory=trajectory,
            release_point=(start.x, start.y),
            peak_height=peak,
            arc_angle=arc_angle,
            feedback=generate_feedback(form, arc_angle, outcome, self.feedback_cfg),
        )

        logger.info(
            f"Shot detected: {shot_type.value} ({outcome.value})",
            extra={
                "shot_type": shot_type.value,
                "outcome": outcome.value,
                "arc_angle": round(arc_angle, 1),
                "confidence": round(confidence, 3),
                "form_score": round(form.overall_score, 3)
            }
        )
        return analysis
