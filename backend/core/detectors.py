"""
Pose and Ball Detector Adapters
MediaPipe BlazePose for the shooter, YOLO "sports ball" boxes for the ball.
Both return normalized, top-left origin coordinates.
"""

import logging
import threading
from typing import Dict, Optional, Protocol

import cv2
import mediapipe as mp
import numpy as np

from .models import BallSighting, Joint, Keypoint, Pose
from logging_config import LogTimer
from config import get_thresholds
from config.thresholds import DetectorConfig

logger = logging.getLogger(__name__)


# BlazePose landmark index for each tracked joint
MEDIAPIPE_JOINT_INDICES: Dict[Joint, int] = {
    Joint.NOSE: 0,
    Joint.LEFT_SHOULDER: 11,
    Joint.RIGHT_SHOULDER: 12,
    Joint.LEFT_ELBOW: 13,
    Joint.RIGHT_ELBOW: 14,
    Joint.LEFT_WRIST: 15,
    Joint.RIGHT_WRIST: 16,
    Joint.LEFT_HIP: 23,
    Joint.RIGHT_HIP: 24,
    Joint.LEFT_KNEE: 25,
    Joint.RIGHT_KNEE: 26,
    Joint.LEFT_ANKLE: 27,
    Joint.RIGHT_ANKLE: 28,
}


class PoseDetector(Protocol):
    def detect(self, frame: np.ndarray, timestamp: float) -> Optional[Pose]:
        ...


class BallDetector(Protocol):
    def detect(self, frame: np.ndarray, timestamp: float) -> Optional[BallSighting]:
        ...


class MediaPipePoseDetector:
    """
    Single-person pose detection with MediaPipe.
    The model is created on first use; MediaPipe graphs are not re-entrant,
    so calls are serialized.
    """

    def __init__(self, cfg: Optional[DetectorConfig] = None, model_complexity: Optional[int] = None):
        self.cfg = cfg or get_thresholds().detector
        self.model_complexity = model_complexity if model_complexity is not None else self.cfg.pose_model_complexity
        self.pose: Optional[mp.solutions.pose.Pose] = None
        self._lock = threading.Lock()

    def _init_pose(self):
        if self.pose is None:
            with LogTimer(logger, "MediaPipe pose model load", model_complexity=self.model_complexity):
                self.pose = mp.solutions.pose.Pose(
                    static_image_mode=False,
                    model_complexity=self.model_complexity,
                    enable_segmentation=False,
                    min_detection_confidence=self.cfg.min_detection_confidence,
                    min_tracking_confidence=self.cfg.min_tracking_confidence
                )

    def detect(self, frame: np.ndarray, timestamp: float) -> Optional[Pose]:
        """
        Detect the shooter's pose in a BGR frame.

        Landmarks below the visibility gate are reported as missing. Pose
        confidence is the mean visibility of the tracked joints.
        """
        with self._lock:
            self._init_pose()
            rgb_frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
            results = self.pose.process(rgb_frame)

        if not results.pose_landmarks:
            return None

        landmarks = results.pose_landmarks.landmark
        joints: Dict[Joint, Keypoint] = {}
        visibilities = []
        for joint, index in MEDIAPIPE_JOINT_INDICES.items():
            lm = landmarks[index]
            visibilities.append(lm.visibility)
            if lm.visibility < self.cfg.min_keypoint_visibility:
                continue
            joints[joint] = Keypoint(x=float(lm.x), y=float(lm.y), confidence=float(lm.visibility))

        confidence = float(sum(visibilities) / len(visibilities))
        return Pose.from_joints(timestamp, confidence, joints)

    def close(self):
        """Release MediaPipe resources"""
        if self.pose:
            self.pose.close()
            self.pose = None


class YoloBallDetector:
    """
    Basketball detection with an ultralytics YOLO model trained on COCO.
    Picks the most confident "sports ball" box and reports its centre.
    """

    def __init__(self, cfg: Optional[DetectorConfig] = None, model_path: Optional[str] = None):
        self.cfg = cfg or get_thresholds().detector
        self.model_path = model_path or self.cfg.ball_model
        self.model = None
        self._lock = threading.Lock()

    def _init_model(self):
        if self.model is None:
            from ultralytics import YOLO

            with LogTimer(logger, "YOLO ball model load", model=self.model_path):
                self.model = YOLO(self.model_path)

    def detect(self, frame: np.ndarray, timestamp: float) -> Optional[BallSighting]:
        h, w = frame.shape[:2]

        with self._lock:
            self._init_model()
            results = self.model(
                frame,
                verbose=False,
                classes=[self.cfg.ball_class_id],
                conf=self.cfg.ball_min_confidence
            )

        best = None
        best_conf = 0.0
        for result in results:
            if result.boxes is None:
                continue
            for i in range(len(result.boxes)):
                conf = float(result.boxes.conf[i])
                if int(result.boxes.cls[i]) != self.cfg.ball_class_id or conf <= best_conf:
                    continue
                x1, y1, x2, y2 = result.boxes.xyxy[i].tolist()
                best = ((x1 + x2) / 2, (y1 + y2) / 2)
                best_conf = conf

        if best is None:
            return None

        return BallSighting(
            timestamp=timestamp,
            x=min(1.0, max(0.0, best[0] / w)),
            y=min(1.0, max(0.0, best[1] / h)),
            confidence=best_conf,
        )
