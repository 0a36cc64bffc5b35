"""Raw accelerometer samples and their normalization.

The sensor delivers one axis at a time. AxisBuffer collects the three axes
into a RawSample, and normalize() maps each reading from the device range
[-32, 32] onto [0, 1]. Values outside the device range are not clamped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import NamedTuple, Optional

logger = logging.getLogger("imu_gestures.normalizer")

AXES = ("x", "y", "z")


@dataclass
class RawSample:
    """One reading per axis in device units. None means not yet received."""
    x: Optional[float] = None
    y: Optional[float] = None
    z: Optional[float] = None

    @property
    def is_complete(self) -> bool:
        return self.x is not None and self.y is not None and self.z is not None


class NormalizedSample(NamedTuple):
    nx: float
    ny: float
    nz: float


def normalize(raw: RawSample, offset: float = 32.0, span: float = 64.0) -> NormalizedSample:
    """Map a complete raw sample to unit range: (v + offset) / span per axis."""
    return NormalizedSample(
        (float(raw.x) + offset) / span,
        (float(raw.y) + offset) / span,
        (float(raw.z) + offset) / span,
    )


class AxisBuffer:
    """Buffers per-axis events until a full x/y/z triple has arrived.

    A repeated axis before completion overwrites the pending value, so
    sensors with uneven axis rates drift rather than fail.
    """

    def __init__(self):
        self._pending = RawSample()

    def push(self, axis: str, value) -> Optional[RawSample]:
        """Store one axis reading. Returns the completed sample, if any."""
        if axis not in AXES:
            logger.debug("Ignoring unknown axis %r", axis)
            return None

        setattr(self._pending, axis, value)
        if not self._pending.is_complete:
            return None

        sample = self._pending
        self._pending = RawSample()
        return sample

    def push_many(self, data: dict) -> list[RawSample]:
        """Feed a mapping such as {"x": 1.0, "y": -3.2}; returns completed samples."""
        completed = []
        for axis, value in data.items():
            sample = self.push(axis, value)
            if sample is not None:
                completed.append(sample)
        return completed

    @property
    def pending(self) -> RawSample:
        return RawSample(self._pending.x, self._pending.y, self._pending.z)

    def reset(self):
        self._pending = RawSample()
