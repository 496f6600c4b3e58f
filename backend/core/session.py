"""
Shooting Session
Shots detected since the last reset, plus the running statistics the
coaching summary is built from.
"""

import threading
import time
import uuid
from collections import Counter
from typing import Any, Dict, List, Optional

from .models import ShotAnalysis, ShotOutcome
from logging_config import StructuredLogger


class ShootingSession:
    """In-memory record of the active shooting session"""

    def __init__(self, session_id: Optional[str] = None):
        self.session_id = session_id or uuid.uuid4().hex[:12]
        self.started_at = time.time()
        self._shots: List[ShotAnalysis] = []
        self._lock = threading.Lock()
        self.log = StructuredLogger(__name__, {"session_id": self.session_id})

    def add_shot(self, shot: ShotAnalysis) -> None:
        with self._lock:
            self._shots.append(shot)
            count = len(self._shots)
        self.log.info(
            f"Shot {count} recorded: {shot.shot_type.value} ({shot.outcome.value})",
            shot_number=count,
            outcome=shot.outcome.value
        )

    @property
    def shots(self) -> List[ShotAnalysis]:
        with self._lock:
            return list(self._shots)

    @property
    def last_shot(self) -> Optional[ShotAnalysis]:
        with self._lock:
            return self._shots[-1] if self._shots else None

    @property
    def total_shots(self) -> int:
        return len(self._shots)

    @property
    def made_shots(self) -> int:
        return sum(1 for s in self.shots if s.outcome == ShotOutcome.MADE)

    @property
    def accuracy(self) -> float:
        """Made shots as a fraction of all shots, 0 with no shots"""
        shots = self.shots
        if not shots:
            return 0.0
        return sum(1 for s in shots if s.outcome == ShotOutcome.MADE) / len(shots)

    @property
    def average_form_score(self) -> float:
        shots = self.shots
        if not shots:
            return 0.0
        return sum(s.shooting_form.overall_score for s in shots) / len(shots)

    def shot_type_breakdown(self) -> Dict[str, int]:
        return dict(Counter(s.shot_type.value for s in self.shots))

    def reset(self) -> None:
        """Start a fresh session"""
        with self._lock:
            self._shots.clear()
            self.session_id = uuid.uuid4().hex[:12]
            self.started_at = time.time()
        self.log = self.log.with_context(session_id=self.session_id)
        self.log.info("Shooting session started")

    def stats(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "started_at": self.started_at,
            "duration_seconds": round(time.time() - self.started_at, 1),
            "total_shots": self.total_shots,
            "made_shots": self.made_shots,
            "accuracy": round(self.accuracy, 3),
            "average_form_score": round(self.average_form_score, 3),
            "shot_types": self.shot_type_breakdown(),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.stats(),
            "shots": [s.to_dict() for s in self.shots],
        }
