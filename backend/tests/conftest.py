"""
Shared fixtures for HoopSense tests
"""

import sys
import time
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from core.models import BallSighting, BallTrajectory, Joint, Keypoint, Pose


# Textbook shooting stance: every form dimension scores 1.0
GOOD_FORM_JOINTS = {
    Joint.NOSE: (0.50, 0.20),
    Joint.LEFT_SHOULDER: (0.45, 0.30),
    Joint.RIGHT_SHOULDER: (0.55, 0.30),
    Joint.RIGHT_ELBOW: (0.55, 0.40),
    Joint.RIGHT_WRIST: (0.55, 0.50),
    Joint.RIGHT_HIP: (0.50, 0.55),
    Joint.RIGHT_KNEE: (0.50, 0.70),
    Joint.LEFT_ANKLE: (0.45, 0.85),
    Joint.RIGHT_ANKLE: (0.55, 0.85),
}


def build_pose(timestamp=0.0, confidence=0.9, overrides=None, missing=()):
    joints = dict(GOOD_FORM_JOINTS)
    joints.update(overrides or {})
    keypoints = {
        joint: Keypoint(x=xy[0], y=xy[1], confidence=confidence)
        for joint, xy in joints.items()
        if joint not in missing
    }
    return Pose.from_joints(timestamp, confidence, keypoints)


def build_points(start, peak_y, end, n=12, t0=0.0, dt=1 / 30, confidence=0.9):
    """
    Ball sightings rising linearly from `start` to `peak_y` at the middle
    sample, then falling to `end`. First, peak and last samples are exact.
    """
    x0, y0 = start
    x1, y1 = end
    peak_index = n // 2
    points = []
    for i in range(n):
        x = x0 + (x1 - x0) * i / (n - 1)
        if i < peak_index:
            y = y0 + (peak_y - y0) * i / peak_index
        elif i == peak_index:
            y = peak_y
        else:
            y = peak_y + (y1 - peak_y) * (i - peak_index) / (n - 1 - peak_index)
        if i == 0:
            x, y = x0, y0
        elif i == n - 1:
            x, y = x1, y1
        points.append(BallSighting(timestamp=t0 + i * dt, x=x, y=y, confidence=confidence))
    return points


class ScriptedPoseDetector:
    """Returns the textbook pose on every frame, or raises when told to"""

    def __init__(self, fail=False, delay=0.0, gate=None):
        self.fail = fail
        self.delay = delay
        self.gate = gate
        self.calls = 0

    def detect(self, frame, timestamp):
        self.calls += 1
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if self.delay:
            time.sleep(self.delay)
        if self.fail:
            raise RuntimeError("pose model crashed")
        return build_pose(timestamp=timestamp, confidence=0.8)


class ScriptedBallDetector:
    """Replays a fixed list of (x, y) positions, then sees nothing"""

    def __init__(self, positions=(), fail=False, confidence=0.9):
        self.positions = list(positions)
        self.fail = fail
        self.confidence = confidence
        self.calls = 0

    def detect(self, frame, timestamp):
        index = self.calls
        self.calls += 1
        if self.fail:
            raise ValueError("ball model crashed")
        if index >= len(self.positions):
            return None
        x, y = self.positions[index]
        return BallSighting(timestamp=timestamp, x=x, y=y, confidence=self.confidence)


@pytest.fixture
def make_pose():
    return build_pose


@pytest.fixture
def make_points():
    return build_points


@pytest.fixture
def make_trajectory():
    def _make(*args, **kwargs):
        return BallTrajectory.from_points(tuple(build_points(*args, **kwargs)))
    return _make


@pytest.fixture
def made_shot_points():
    """Jump shot from the left that drops into the hoop window"""
    return build_points(start=(0.3, 0.7), peak_y=0.2, end=(0.5, 0.28))
