"""
Rolling History Buffers
Bounded FIFO windows of recent poses and ball sightings.
"""

from collections import deque
from dataclasses import replace
from typing import Deque, Optional, Tuple

from .models import BallSighting, BallTrajectory, Pose
from config import get_thresholds


class PoseHistory:
    """Most recent pose detections, oldest evicted first"""

    def __init__(self, max_length: Optional[int] = None):
        if max_length is None:
            max_length = get_thresholds().history.max_pose_history
        self._poses: Deque[Pose] = deque(maxlen=max_length)

    @property
    def max_length(self) -> int:
        return self._poses.maxlen

    def append(self, pose: Pose) -> None:
        self._poses.append(pose)

    def clear(self) -> None:
        self._poses.clear()

    def snapshot(self) -> Tuple[Pose, ...]:
        return tuple(self._poses)

    def nearest(self, timestamp: float, tolerance: float) -> Optional[Pose]:
        """
        Pose closest in time to `timestamp`, or None if no pose lies within
        `tolerance` seconds. Ties go to the earlier pose.
        """
        best: Optional[Pose] = None
        best_dt = tolerance
        for pose in self._poses:
            dt = abs(pose.timestamp - timestamp)
            if dt <= best_dt and (best is None or dt < best_dt):
                best = pose
                best_dt = dt
        return best

    def __len__(self) -> int:
        return len(self._poses)


class BallTrajectoryBuffer:
    """
    Most recent ball sightings. Each appended sighting gets a velocity
    derived from the sighting before it (zero for the first one).
    """

    def __init__(self, max_length: Optional[int] = None):
        if max_length is None:
            max_length = get_thresholds().history.max_ball_history
        self._points: Deque[BallSighting] = deque(maxlen=max_length)

    @property
    def max_length(self) -> int:
        return self._points.maxlen

    def append(self, sighting: BallSighting) -> BallSighting:
        """Store the sighting and return it with its derived velocity"""
        velocity = (0.0, 0.0)
        if self._points:
            prev = self._points[-1]
            dt = sighting.timestamp - prev.timestamp
            if dt > 0:
                velocity = ((sighting.x - prev.x) / dt, (sighting.y - prev.y) / dt)
        stored = replace(sighting, velocity=velocity)
        self._points.append(stored)
        return stored

    def clear(self) -> None:
        self._points.clear()

    def snapshot(self) -> Tuple[BallSighting, ...]:
        return tuple(self._points)

    def trajectory(self) -> Optional[BallTrajectory]:
        """The whole window as a trajectory, or None when empty"""
        if not self._points:
            return None
        return BallTrajectory.from_points(self.snapshot())

    def __len__(self) -> int:
        return len(self._points)
