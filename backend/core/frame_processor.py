"""
Frame Processor
Per-frame orchestration of the shot tracking pipeline:
detect pose and ball concurrently -> update histories -> shot trigger ->
classification -> performance bookkeeping.

Only one frame is processed at a time. A frame that arrives while another
is in flight is rejected with ProcessingBusy rather than queued.
"""

import asyncio
import logging
import threading
import time
from concurrent.futures import Executor
from typing import Callable, Optional, Tuple, Union

import numpy as np

from .detectors import BallDetector, PoseDetector
from .history import BallTrajectoryBuffer, PoseHistory
from .models import (
    BallSighting,
    FrameAnalysisResult,
    PerformanceMetrics,
    Pose,
    ShootingForm,
    ShotAnalysis,
)
from .performance import PerformanceMonitor
from .shooting_form import score_shooting_form
from .shot_detection import ShotClassifier, ShotTrigger
from config import get_thresholds
from config.thresholds import ThresholdConfig
from exceptions import (
    BallDetectionFailed,
    HoopSenseException,
    InvalidFrame,
    PoseDetectionFailed,
    ProcessingBusy,
)

logger = logging.getLogger(__name__)


class FrameProcessor:
    """
    Stateful shot tracker fed one video frame at a time.

    Usage:
        processor = FrameProcessor(MediaPipePoseDetector(), YoloBallDetector())
        result = await processor.process(frame, timestamp=t)
        if result.shot:
            ...
    """

    def __init__(
        self,
        pose_detector: PoseDetector,
        ball_detector: BallDetector,
        thresholds: Optional[ThresholdConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        executor: Optional[Executor] = None
    ):
        self.pose_detector = pose_detector
        self.ball_detector = ball_detector
        self.thresholds = thresholds or get_thresholds()
        self._clock = clock
        self._executor = executor

        self._pose_history = PoseHistory(self.thresholds.history.max_pose_history)
        self._ball_buffer = BallTrajectoryBuffer(self.thresholds.history.max_ball_history)
        self._trigger = ShotTrigger(self.thresholds.trigger)
        self._classifier = ShotClassifier(
            self.thresholds.classifier,
            self.thresholds.form,
            self.thresholds.feedback,
            min_points=self.thresholds.trigger.min_trajectory_points
        )
        self._monitor = PerformanceMonitor(self.thresholds.performance)

        self._in_flight = threading.Lock()
        self._generation = 0
        self._last_pose: Optional[Pose] = None
        self._last_ball: Optional[BallSighting] = None
        self._last_shot: Optional[ShotAnalysis] = None
        self._frames_processed = 0

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_frame(frame) -> None:
        if not isinstance(frame, np.ndarray):
            raise InvalidFrame(f"Frame must be a numpy array, got {type(frame).__name__}")
        if frame.ndim not in (2, 3) or frame.size == 0:
            raise InvalidFrame(f"Frame must be a non-empty image, got shape {frame.shape}")

    async def _run_detector(self, detector, frame: np.ndarray, timestamp: float):
        loop = asyncio.get_running_loop()
        call = loop.run_in_executor(self._executor, detector.detect, frame, timestamp)
        timeout = self.thresholds.performance.detector_timeout_sec
        if timeout is None:
            return await call
        return await asyncio.wait_for(call, timeout=timeout)

    def _detector_outcome(
        self,
        outcome: Union[BaseException, Pose, BallSighting, None],
        error_cls: type,
        stage: str
    ) -> Tuple[Optional[object], Optional[HoopSenseException]]:
        """Split a gathered detector result into (detection, failure)"""
        if not isinstance(outcome, BaseException):
            return outcome, None

        if isinstance(outcome, asyncio.TimeoutError):
            message = f"{stage} detection timed out"
        else:
            message = f"{stage} detection failed: {type(outcome).__name__}: {outcome}"
        error = error_cls(message)
        logger.warning(
            message,
            extra={"error_code": error.code, "exception_type": type(outcome).__name__}
        )
        return None, error

    async def process(self, frame: np.ndarray, timestamp: Optional[float] = None) -> FrameAnalysisResult:
        """
        Analyze one frame.

        Args:
            frame: BGR (or grayscale) image as a numpy array
            timestamp: Frame time in seconds; defaults to the processor clock

        Returns:
            FrameAnalysisResult with whatever was detected in this frame,
            including a ShotAnalysis when this frame completed a shot

        Raises:
            InvalidFrame: frame is not a usable image
            ProcessingBusy: another frame is still being processed
        """
        self._validate_frame(frame)

        if not self._in_flight.acquire(blocking=False):
            raise ProcessingBusy()

        try:
            start = time.perf_counter()
            wall_time = self._clock()
            now = timestamp if timestamp is not None else wall_time
            generation = self._generation

            pose_outcome, ball_outcome = await asyncio.gather(
                self._run_detector(self.pose_detector, frame, now),
                self._run_detector(self.ball_detector, frame, now),
                return_exceptions=True
            )
            pose, pose_error = self._detector_outcome(pose_outcome, PoseDetectionFailed, "Pose")
            ball, ball_error = self._detector_outcome(ball_outcome, BallDetectionFailed, "Ball")
            errors = tuple(e.code for e in (pose_error, ball_error) if e is not None)

            if generation != self._generation:
                # reset() ran while the detectors were busy; this frame belongs to the old session
                logger.info("Discarding frame detections after tracking reset", extra={"frame_timestamp": now})
                return FrameAnalysisResult(
                    pose=pose,
                    ball=ball,
                    shot=None,
                    processing_time=time.perf_counter() - start,
                    errors=errors
                )

            if pose is not None:
                self._pose_history.append(pose)
                self._last_pose = pose

            if ball is not None:
                ball = self._ball_buffer.append(ball)
                self._last_ball = ball

            shot = None
            trajectory = self._trigger.check(self._ball_buffer.snapshot(), now)
            if trajectory is not None:
                shot = self._classifier.classify(trajectory, self._pose_history)
                if shot is not None:
                    self._last_shot = shot

            latency = time.perf_counter() - start
            self._monitor.record(latency, wall_time, pose.confidence if pose is not None else None)
            self._frames_processed += 1

            target = self.thresholds.performance.latency_target_sec
            if latency > target:
                logger.warning(
                    f"Frame processing took {latency * 1000:.1f}ms (target {target * 1000:.0f}ms)",
                    extra={"latency_ms": round(latency * 1000, 2), "frame_timestamp": now}
                )

            return FrameAnalysisResult(
                pose=pose,
                ball=ball,
                shot=shot,
                processing_time=latency,
                errors=errors
            )
        finally:
            self._in_flight.release()

    def reset(self) -> None:
        """Forget all tracking state. Safe to call at any time, any number of times."""
        self._generation += 1
        self._pose_history.clear()
        self._ball_buffer.clear()
        self._trigger.reset()
        self._monitor.reset()
        self._last_pose = None
        self._last_ball = None
        self._last_shot = None
        self._frames_processed = 0
        logger.info("Tracking state reset")

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def is_processing(self) -> bool:
        return self._in_flight.locked()

    @property
    def frames_processed(self) -> int:
        return self._frames_processed

    @property
    def last_pose(self) -> Optional[Pose]:
        return self._last_pose

    @property
    def last_ball(self) -> Optional[BallSighting]:
        return self._last_ball

    @property
    def last_shot(self) -> Optional[ShotAnalysis]:
        return self._last_shot

    @property
    def current_shooting_form(self) -> Optional[ShootingForm]:
        if self._last_pose is None:
            return None
        return score_shooting_form(self._last_pose, self.thresholds.form)

    @property
    def metrics(self) -> PerformanceMetrics:
        return self._monitor.snapshot()

    def pose_history(self) -> Tuple[Pose, ...]:
        return self._pose_history.snapshot()

    def ball_history(self) -> Tuple[BallSighting, ...]:
        return self._ball_buffer.snapshot()
