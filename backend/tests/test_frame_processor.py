"""
Tests for the frame-by-frame processing pipeline, driven with scripted
detectors so every frame is deterministic.
"""

import asyncio
import threading

import numpy as np
import pytest

from conftest import ScriptedBallDetector, ScriptedPoseDetector, build_points


FRAME = np.zeros((48, 64, 3), dtype=np.uint8)


class FakeClock:
    def __init__(self, start=0.0):
        self.now = start

    def __call__(self):
        return self.now


def shot_positions():
    return [(p.x, p.y) for p in build_points(start=(0.3, 0.7), peak_y=0.2, end=(0.5, 0.28))]


def make_processor(pose_detector=None, ball_detector=None, thresholds=None, clock=None):
    from core.frame_processor import FrameProcessor

    return FrameProcessor(
        pose_detector or ScriptedPoseDetector(),
        ball_detector or ScriptedBallDetector(),
        thresholds=thresholds,
        clock=clock or FakeClock()
    )


async def feed(processor, timestamps):
    return [await processor.process(FRAME, timestamp=t) for t in timestamps]


class TestShotDetection:

    def test_detects_single_shot(self):
        """Trigger fires once the ball has come down far enough"""
        from core.models import ShotOutcome, ShotType

        positions = shot_positions()
        processor = make_processor(ball_detector=ScriptedBallDetector(positions))

        results = asyncio.run(feed(processor, [i / 30 for i in range(len(positions))]))
        shots = [r.shot for r in results if r.shot is not None]

        assert len(shots) == 1
        assert shots[0].shot_type == ShotType.JUMP_SHOT
        assert shots[0].outcome == ShotOutcome.MADE
        assert processor.last_shot == shots[0]

    def test_cooldown_between_shots(self):
        """A second parabola inside the 2s cooldown is ignored"""
        positions = shot_positions() * 3
        processor = make_processor(ball_detector=ScriptedBallDetector(positions))

        timestamps = (
            [i / 30 for i in range(12)]
            + [1.0 + i / 30 for i in range(12)]
            + [3.0 + i / 30 for i in range(12)]
        )
        results = asyncio.run(feed(processor, timestamps))
        shot_times = [t for t, r in zip(timestamps, results) if r.shot is not None]

        assert len(shot_times) == 2
        assert shot_times[0] < 1.0
        assert shot_times[1] >= 3.0
        assert shot_times[1] - shot_times[0] >= 2.0

    def test_no_shot_without_pose(self):
        """Trigger still consumes the cooldown when no pose matches"""
        positions = shot_positions()
        processor = make_processor(
            pose_detector=ScriptedPoseDetector(fail=True),
            ball_detector=ScriptedBallDetector(positions)
        )

        results = asyncio.run(feed(processor, [i / 30 for i in range(len(positions))]))

        assert all(r.shot is None for r in results)
        assert processor._trigger.last_trigger_time is not None


class TestDetectorFailures:

    def test_pose_failure_is_local_to_frame(self):
        processor = make_processor(
            pose_detector=ScriptedPoseDetector(fail=True),
            ball_detector=ScriptedBallDetector([(0.5, 0.5)])
        )

        result = asyncio.run(processor.process(FRAME, timestamp=0.0))

        assert result.pose is None
        assert result.ball is not None
        assert result.errors == ("POSE_DETECTION_FAILED",)
        assert len(processor.pose_history()) == 0
        assert len(processor.ball_history()) == 1

    def test_both_detectors_failing(self):
        processor = make_processor(
            pose_detector=ScriptedPoseDetector(fail=True),
            ball_detector=ScriptedBallDetector(fail=True)
        )

        result = asyncio.run(processor.process(FRAME, timestamp=0.0))

        assert result.pose is None and result.ball is None
        assert set(result.errors) == {"POSE_DETECTION_FAILED", "BALL_DETECTION_FAILED"}

    def test_detector_deadline(self):
        from config.thresholds import PerformanceConfig, ThresholdConfig

        thresholds = ThresholdConfig(performance=PerformanceConfig(detector_timeout_sec=0.05))
        processor = make_processor(
            pose_detector=ScriptedPoseDetector(delay=0.3),
            ball_detector=ScriptedBallDetector([(0.5, 0.5)]),
            thresholds=thresholds
        )

        result = asyncio.run(processor.process(FRAME, timestamp=0.0))

        assert result.errors == ("POSE_DETECTION_FAILED",)
        assert result.ball is not None


class TestFrameValidation:

    @pytest.mark.parametrize("frame", [None, "not an image", np.zeros((0, 0, 3), dtype=np.uint8)])
    def test_invalid_frame_rejected_before_detection(self, frame):
        from exceptions import InvalidFrame

        pose_detector = ScriptedPoseDetector()
        processor = make_processor(pose_detector=pose_detector)

        with pytest.raises(InvalidFrame):
            asyncio.run(processor.process(frame, timestamp=0.0))
        assert pose_detector.calls == 0

    def test_grayscale_frame_accepted(self):
        processor = make_processor()

        result = asyncio.run(processor.process(np.zeros((48, 64), dtype=np.uint8), timestamp=0.0))

        assert result.pose is not None


class TestConcurrency:

    def test_busy_rejection(self):
        """A frame arriving while another is in flight is rejected, not queued"""
        from exceptions import ProcessingBusy

        gate = threading.Event()
        processor = make_processor(
            pose_detector=ScriptedPoseDetector(gate=gate),
            ball_detector=ScriptedBallDetector([(0.5, 0.5), (0.5, 0.4)])
        )

        async def scenario():
            first = asyncio.create_task(processor.process(FRAME, timestamp=0.0))
            while not processor.is_processing:
                await asyncio.sleep(0.01)

            with pytest.raises(ProcessingBusy):
                await processor.process(FRAME, timestamp=0.1)
            busy_history = len(processor.ball_history())

            gate.set()
            result = await first
            return busy_history, result

        busy_history, result = asyncio.run(scenario())

        assert busy_history == 0
        assert result.ball is not None
        assert len(processor.ball_history()) == 1
        assert not processor.is_processing


class TestStateAndReset:

    def test_buffers_bounded(self):
        positions = [(0.5, 0.5)] * 150
        processor = make_processor(ball_detector=ScriptedBallDetector(positions))

        asyncio.run(feed(processor, [i / 30 for i in range(150)]))

        assert len(processor.ball_history()) == 90
        assert len(processor.pose_history()) == 120

    def test_reset_is_idempotent(self):
        positions = shot_positions()
        processor = make_processor(ball_detector=ScriptedBallDetector(positions))
        asyncio.run(feed(processor, [i / 30 for i in range(len(positions))]))
        assert processor.last_shot is not None

        processor.reset()
        processor.reset()

        assert processor.pose_history() == ()
        assert processor.ball_history() == ()
        assert processor.last_pose is None
        assert processor.last_ball is None
        assert processor.last_shot is None
        assert processor.current_shooting_form is None
        assert processor.metrics.processing_time == 0.0
        assert processor._trigger.last_trigger_time is None

    def test_reset_during_frame_discards_its_detections(self):
        """A frame still in the detectors when reset() runs leaves no state behind"""
        gate = threading.Event()
        processor = make_processor(
            pose_detector=ScriptedPoseDetector(gate=gate),
            ball_detector=ScriptedBallDetector([(0.5, 0.5)])
        )

        async def scenario():
            pending = asyncio.create_task(processor.process(FRAME, timestamp=0.0))
            while not processor.is_processing:
                await asyncio.sleep(0.01)

            processor.reset()
            gate.set()
            return await pending

        result = asyncio.run(scenario())

        assert result.pose is not None
        assert result.shot is None
        assert processor.pose_history() == ()
        assert processor.ball_history() == ()
        assert processor.last_pose is None
        assert processor.last_ball is None
        assert processor.frames_processed == 0
        assert not processor.is_processing

    def test_frames_after_reset_are_tracked(self):
        processor = make_processor(ball_detector=ScriptedBallDetector([(0.5, 0.5), (0.5, 0.4)]))
        asyncio.run(processor.process(FRAME, timestamp=0.0))

        processor.reset()
        asyncio.run(processor.process(FRAME, timestamp=0.1))

        assert len(processor.pose_history()) == 1
        assert processor.last_ball.y == 0.4

    def test_reset_on_fresh_processor(self):
        processor = make_processor()
        processor.reset()

        assert processor.frames_processed == 0

    def test_current_shooting_form(self):
        processor = make_processor()
        asyncio.run(processor.process(FRAME, timestamp=0.0))

        assert processor.current_shooting_form.overall_score == pytest.approx(1.0)

    def test_timestamp_defaults_to_clock(self):
        clock = FakeClock(start=42.0)
        processor = make_processor(clock=clock)

        result = asyncio.run(processor.process(FRAME))

        assert result.pose.timestamp == 42.0


class TestMetrics:

    def test_metrics_follow_processor_clock(self):
        clock = FakeClock()
        processor = make_processor(clock=clock)

        async def scenario():
            for i in range(3):
                clock.now = i * 0.05
                await processor.process(FRAME, timestamp=float(i))

        asyncio.run(scenario())
        metrics = processor.metrics

        assert metrics.frame_rate == pytest.approx(20.0)
        assert metrics.processing_time > 0.0
        assert metrics.confidence == pytest.approx(0.8)
        assert processor.frames_processed == 3

    def test_result_reports_latency(self):
        processor = make_processor()

        result = asyncio.run(processor.process(FRAME, timestamp=0.0))

        assert result.processing_time > 0.0
        assert result.to_dict()["processing_time_ms"] >= 0.0
