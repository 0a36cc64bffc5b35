"""Sensor stream recording and replay.

Record raw per-axis events for:
- Reproducible tests without a device
- Training offline from a captured recording session
- Replaying a listening session against a saved model
"""

from __future__ import annotations

import json
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Iterator, Optional

import numpy as np

AXIS_CODES = {"x": 0, "y": 1, "z": 2}
AXIS_NAMES = {v: k for k, v in AXIS_CODES.items()}


@dataclass
class AxisEvent:
    """One sensor reading."""
    timestamp: float  # ms from recording start
    axis: str
    value: float


class SampleRecorder:
    """Records per-axis sensor events to a file.

    Usage:
        recorder = SampleRecorder()
        recorder.start()
        recorder.add("x", 3.5)       # in the sensor callback
        recorder.save("stream.json")
    """

    def __init__(self):
        self._events: list[AxisEvent] = []
        self._start_time: Optional[float] = None
        self._recording = False

    def start(self):
        self._events = []
        self._start_time = time.monotonic()
        self._recording = True

    def stop(self) -> int:
        """Stop recording. Returns number of events captured."""
        self._recording = False
        return len(self._events)

    @property
    def is_recording(self) -> bool:
        return self._recording

    @property
    def event_count(self) -> int:
        return len(self._events)

    @property
    def duration_ms(self) -> float:
        if not self._events:
            return 0.0
        return self._events[-1].timestamp

    def add(self, axis: str, value: float, timestamp: Optional[float] = None):
        """Add one reading. Timestamp defaults to ms since start()."""
        if not self._recording:
            return
        if timestamp is None:
            timestamp = (time.monotonic() - self._start_time) * 1000.0
        self._events.append(AxisEvent(timestamp=float(timestamp), axis=axis, value=float(value)))

    def save(self, path: str | Path):
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "version": 1,
            "event_count": len(self._events),
            "duration_ms": self.duration_ms,
            "events": [asdict(e) for e in self._events],
        }
        with open(path, "w") as f:
            json.dump(data, f)

    def save_compact(self, path: str | Path):
        """Save as a compressed npz: timestamps, axis codes, values."""
        path = Path(path).with_suffix(".npz")
        path.parent.mkdir(parents=True, exist_ok=True)

        np.savez_compressed(
            path,
            timestamps=np.array([e.timestamp for e in self._events], dtype=np.float64),
            axes=np.array([AXIS_CODES[e.axis] for e in self._events], dtype=np.int8),
            values=np.array([e.value for e in self._events], dtype=np.float32),
        )


class SamplePlayer:
    """Replays a recorded sensor stream.

    Usage:
        player = SamplePlayer.load("stream.json")
        player.feed(session)              # instant, recorded timestamps
        for event in player.play_realtime():
            session.on_axis(event.axis, event.value)
    """

    def __init__(self, events: list[AxisEvent]):
        self._events = events

    @classmethod
    def load(cls, path: str | Path) -> SamplePlayer:
        path = Path(path)

        if path.suffix == ".npz":
            return cls._load_compact(path)

        with open(path) as f:
            data = json.load(f)

        events = [
            AxisEvent(timestamp=e["timestamp"], axis=e["axis"], value=e["value"])
            for e in data["events"]
        ]
        return cls(events)

    @classmethod
    def _load_compact(cls, path: Path) -> SamplePlayer:
        data = np.load(path, allow_pickle=False)
        events = [
            AxisEvent(timestamp=float(t), axis=AXIS_NAMES[int(a)], value=float(v))
            for t, a, v in zip(data["timestamps"], data["axes"], data["values"])
        ]
        return cls(events)

    @classmethod
    def from_samples(cls, samples, interval_ms: float = 31.25) -> SamplePlayer:
        """Build a stream from (x, y, z) triples at a fixed rate (32 Hz by default)."""
        events = []
        for i, (x, y, z) in enumerate(samples):
            t = i * interval_ms
            events.extend([AxisEvent(t, "x", x), AxisEvent(t, "y", y), AxisEvent(t, "z", z)])
        return cls(events)

    @property
    def event_count(self) -> int:
        return len(self._events)

    @property
    def duration_ms(self) -> float:
        if not self._events:
            return 0.0
        return self._events[-1].timestamp

    def play(self) -> Iterator[AxisEvent]:
        """Iterate through all events instantly (no timing)."""
        yield from self._events

    def play_realtime(self, speed: float = 1.0) -> Iterator[AxisEvent]:
        """Replay at original timing (or scaled by speed factor)."""
        start = time.monotonic()
        for event in self._events:
            target = event.timestamp / 1000.0 / speed
            elapsed = time.monotonic() - start
            if target > elapsed:
                time.sleep(target - elapsed)
            yield event

    def feed(self, session, scheduler=None) -> list:
        """Push every event into a session using the recorded timestamps.

        With a ManualScheduler the protocol's timed phases advance on the
        recorded clock too. Returns the completed GestureEvents.
        """
        completed = []
        last = self._events[0].timestamp if self._events else 0.0
        for event in self._events:
            if scheduler is not None and event.timestamp > last:
                scheduler.advance((event.timestamp - last) / 1000.0)
            last = event.timestamp
            result = session.on_axis(event.axis, event.value, timestamp=event.timestamp)
            if result is not None:
                completed.append(result)
        return completed
