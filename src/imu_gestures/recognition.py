"""Recognition decision and event emission.

Only output channel 2 (the "same shape" channel of the recording labels) is
consulted: a gesture is recognized when its score is strictly above the
threshold. Channels 0 and 1 exist for training and are ignored here.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

logger = logging.getLogger("imu_gestures.recognition")

Sink = Callable[[dict], None]


@dataclass
class Recognition:
    """A recognized gesture."""
    label: str
    score: float
    probabilities: list[float]
    gesture_id: Optional[int] = None
    timestamp: float = field(default_factory=time.time)

    @property
    def payload(self) -> dict:
        return {self.label: True}


class RecognitionGate:
    """Applies the threshold and emits each recognized gesture once.

    Two sinks receive the same payload {label: True}:
    - broadcast: listeners of this engine (plugins, WebSocket clients)
    - forward: the downstream logic that acts on the event
    """

    def __init__(
        self,
        threshold: float = 0.85,
        channel: int = 2,
        broadcast: Optional[Sink] = None,
        forward: Optional[Sink] = None,
    ):
        self.threshold = threshold
        self.channel = channel
        self.broadcast = broadcast
        self.forward = forward
        self._last_gesture_id: Optional[int] = None

    def decide(self, probabilities: Sequence[float], label: str) -> Optional[Recognition]:
        """Return a Recognition if probabilities[channel] > threshold, else None."""
        score = float(probabilities[self.channel])
        if score > self.threshold:
            return Recognition(
                label=label,
                score=score,
                probabilities=[float(p) for p in probabilities],
            )
        return None

    def gate(
        self, gesture_id: int, probabilities: Sequence[float], label: str
    ) -> Optional[Recognition]:
        """Decide for one completed gesture and emit at most once per gesture_id."""
        if gesture_id == self._last_gesture_id:
            logger.debug("Gesture %d already decided, ignoring", gesture_id)
            return None
        self._last_gesture_id = gesture_id

        recognition = self.decide(probabilities, label)
        if recognition is None:
            logger.debug(
                "Gesture %d not recognized (score=%.3f)",
                gesture_id, float(probabilities[self.channel]),
            )
            return None

        recognition.gesture_id = gesture_id
        logger.info("Recognized '%s' (score=%.3f)", label, recognition.score)
        self._emit(recognition.payload)
        return recognition

    def _emit(self, payload: dict):
        for name, sink in (("broadcast", self.broadcast), ("forward", self.forward)):
            if sink is None:
                continue
            try:
                sink(dict(payload))
            except Exception as e:
                logger.error("Recognition %s sink error: %s", name, e)
