"""Motion segmentation: find where a gesture starts and stops in the stream.

Distance-based segmentation after Joselli & Clua (SBGames 2009). The distance
between consecutive normalized samples starts a gesture when it exceeds
start_threshold and stops it once it drops below stop_threshold, provided the
gesture has lasted longer than min_duration_ms.

The method assumes the stream begins at rest. Starting while the device is
already moving produces poor segments; this is a known limitation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import numpy as np

from imu_gestures.normalizer import NormalizedSample

logger = logging.getLogger("imu_gestures.segmentation")


class SegmentState(Enum):
    IDLE = "idle"
    ACTIVE = "active"


class Transition(Enum):
    STARTED = "started"
    ENDED = "ended"


class MotionDeltaTracker:
    """Euclidean distance between each sample and the one before it."""

    ORIGIN = NormalizedSample(0.0, 0.0, 0.0)

    def __init__(self):
        self._previous = self.ORIGIN

    def delta(self, sample: NormalizedSample) -> float:
        """Return distance to the previous sample, then remember this one."""
        d = float(np.linalg.norm(np.subtract(sample, self._previous)))
        self._previous = sample
        return d

    @property
    def previous(self) -> NormalizedSample:
        return self._previous

    def reset(self):
        self._previous = self.ORIGIN


@dataclass
class MotionState:
    """Per-stream segmentation state. Owned by one detector."""
    previous_normalized: NormalizedSample = field(default=MotionDeltaTracker.ORIGIN)
    gesture_active: bool = False
    gesture_start_time: Optional[float] = None  # ms
    ignore_start_trigger: bool = False


class SegmentationDetector:
    """Idle/Active state machine over the distance signal.

    update() returns Transition.STARTED or Transition.ENDED when the state
    changes, None otherwise. The sample that starts a gesture is never
    checked for the stop condition.
    """

    def __init__(
        self,
        start_threshold: float = 0.25,
        stop_threshold: float = 0.95,
        min_duration_ms: float = 1000.0,
    ):
        self.start_threshold = start_threshold
        self.stop_threshold = stop_threshold
        self.min_duration_ms = min_duration_ms
        self._tracker = MotionDeltaTracker()
        self._active = False
        self._start_time: Optional[float] = None
        self.ignore_start_trigger = False

    def process(self, sample: NormalizedSample, now_ms: float) -> tuple[float, Optional[Transition]]:
        """Track a normalized sample and update the state. Returns (distance, transition)."""
        distance = self._tracker.delta(sample)
        return distance, self.update(distance, now_ms)

    def update(self, distance: float, now_ms: float) -> Optional[Transition]:
        if not self._active:
            if distance > self.start_threshold or self.ignore_start_trigger:
                self._active = True
                self._start_time = now_ms
                logger.debug("Gesture started (d=%.3f, t=%.0fms)", distance, now_ms)
                return Transition.STARTED
            return None

        if distance < self.stop_threshold and now_ms - self._start_time > self.min_duration_ms:
            self._active = False
            logger.debug(
                "Gesture stopped (d=%.3f, duration=%.0fms)",
                distance, now_ms - self._start_time,
            )
            return Transition.ENDED
        return None

    def cancel(self):
        """Drop back to Idle without reporting an end."""
        self._active = False
        self._start_time = None

    def reset(self):
        self.cancel()
        self._tracker.reset()
        self.ignore_start_trigger = False

    @property
    def state(self) -> SegmentState:
        return SegmentState.ACTIVE if self._active else SegmentState.IDLE

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def motion_state(self) -> MotionState:
        """Snapshot of the detector's state."""
        return MotionState(
            previous_normalized=self._tracker.previous,
            gesture_active=self._active,
            gesture_start_time=self._start_time,
            ignore_start_trigger=self.ignore_start_trigger,
        )


class FeatureAccumulator:
    """Flat feature sequence [nx0, ny0, nz0, nx1, ...] for the gesture in progress."""

    def __init__(self):
        self._values: list[float] = []

    def append(self, sample: NormalizedSample):
        self._values.extend(sample)

    def drain(self) -> list[float]:
        """Return the collected sequence and start a new one."""
        values = self._values
        self._values = []
        return values

    def clear(self):
        self._values = []

    @property
    def sample_count(self) -> int:
        return len(self._values) // 3

    def __len__(self) -> int:
        return len(self._values)
