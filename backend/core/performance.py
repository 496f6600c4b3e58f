"""
Pipeline Performance Monitoring
Rolling latency, instantaneous frame rate and process memory.
"""

import os
import logging
from collections import deque
from typing import Deque, Optional

import psutil

from .models import PerformanceMetrics
from config import get_thresholds
from config.thresholds import PerformanceConfig

logger = logging.getLogger(__name__)


class PerformanceMonitor:
    """
    Tracks per-frame processing cost. Frame rate is recomputed every frame
    from the gap since the previous frame (0 until a second frame arrives).
    """

    def __init__(self, cfg: Optional[PerformanceConfig] = None):
        self.cfg = cfg or get_thresholds().performance
        self._latencies: Deque[float] = deque(maxlen=self.cfg.latency_window)
        self._last_frame_time: Optional[float] = None
        self._frame_rate = 0.0
        self._confidence = 0.0
        self._process = psutil.Process(os.getpid())

    def record(self, latency: float, now: float, pose_confidence: Optional[float] = None) -> None:
        """
        Record one processed frame.

        Args:
            latency: End-to-end processing time of the frame in seconds
            now: Wall-clock time the frame finished processing
            pose_confidence: Confidence of the pose found in the frame, if any
        """
        self._latencies.append(latency)

        if self._last_frame_time is not None:
            gap = now - self._last_frame_time
            if gap > 0:
                self._frame_rate = 1.0 / gap
        self._last_frame_time = now

        if pose_confidence is not None:
            self._confidence = pose_confidence

    def _memory_usage(self) -> int:
        try:
            return self._process.memory_info().rss
        except psutil.Error as e:
            logger.warning(f"Memory usage unavailable: {e}")
            return 0

    @property
    def average_latency(self) -> float:
        if not self._latencies:
            return 0.0
        return sum(self._latencies) / len(self._latencies)

    @property
    def sample_count(self) -> int:
        return len(self._latencies)

    def snapshot(self) -> PerformanceMetrics:
        return PerformanceMetrics(
            processing_time=self.average_latency,
            frame_rate=self._frame_rate,
            memory_usage=self._memory_usage(),
            confidence=self._confidence,
            latency_target=self.cfg.latency_target_sec,
            min_frame_rate=self.cfg.min_frame_rate,
        )

    def reset(self) -> None:
        self._latencies.clear()
        self._last_frame_time = None
        self._frame_rate = 0.0
        self._confidence = 0.0
