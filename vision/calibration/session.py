"""Multi-frame calibration round state machine."""

import logging
import threading
import time
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from config.settings import Point

logger = logging.getLogger(__name__)

Dataset = List[List[Point]]


class CalibrationPhase(Enum):
    """Calibration session phases."""
    IDLE = "idle"
    CAPTURING = "capturing"


class CalibrationSession:
    """Accumulates a fixed number of point sets into one dataset.

    begin() is driven by control messages and accumulate() by frame delivery,
    usually from different threads. Both take the same lock, so a restart
    and an append never interleave.
    """

    def __init__(self, capture_count: int = 20):
        """Initialize calibration session.

        Args:
            capture_count: Point sets collected per calibration round.
        """
        if capture_count < 1:
            raise ValueError(f"capture_count must be at least 1, got {capture_count}")

        self.capture_count = capture_count
        self._lock = threading.Lock()
        self._phase = CalibrationPhase.IDLE
        self._captures: Dataset = []
        self._started_at: Optional[float] = None
        self._rounds_completed = 0

    @property
    def phase(self) -> CalibrationPhase:
        with self._lock:
            return self._phase

    @property
    def captured(self) -> int:
        with self._lock:
            return len(self._captures)

    @property
    def rounds_completed(self) -> int:
        with self._lock:
            return self._rounds_completed

    def begin(self) -> None:
        """Start a new round, discarding any partial one."""
        with self._lock:
            discarded = len(self._captures)
            self._captures = []
            self._phase = CalibrationPhase.CAPTURING
            self._started_at = time.monotonic()

        if discarded:
            logger.info(f"Calibration restarted, discarded {discarded} captures")
        else:
            logger.info(f"Calibration started, capturing {self.capture_count} frames")

    def accumulate(self, points: Sequence[Point]) -> Optional[Dataset]:
        """Add one frame's points to the current round.

        Args:
            points: Points extracted from one frame.

        Returns:
            The completed dataset when this capture finishes the round,
            otherwise None. Always None while idle.
        """
        with self._lock:
            if self._phase is not CalibrationPhase.CAPTURING:
                return None

            self._captures.append(list(points))
            if len(self._captures) < self.capture_count:
                return None

            dataset = self._captures
            self._captures = []
            self._phase = CalibrationPhase.IDLE
            self._started_at = None
            self._rounds_completed += 1

        logger.info(f"Calibration round complete with {len(dataset)} captures")
        return dataset

    def capturing_for(self) -> Optional[float]:
        """Seconds since the open round started, or None when idle."""
        with self._lock:
            if self._started_at is None:
                return None
            return time.monotonic() - self._started_at

    def status(self) -> Dict[str, Any]:
        """Snapshot of the session for diagnostics."""
        with self._lock:
            return {
                'phase': self._phase.value,
                'captured': len(self._captures),
                'capture_count': self.capture_count,
                'rounds_completed': self._rounds_completed,
                'capturing_for': (None if self._started_at is None
                                  else time.monotonic() - self._started_at)
            }
