"""Example plugin: session journal.

Appends recognitions, recording phases and finished trainings to a JSON-lines
file and keeps per-label counts. Drop this file in the plugins/ directory to
auto-load it. Set IMU_GESTURES_JOURNAL to change the file location.
"""

from __future__ import annotations

import json
import logging
import os
from collections import Counter
from pathlib import Path
from typing import Optional, TextIO

from imu_gestures.plugins import GesturePlugin, PluginEvent

logger = logging.getLogger("imu_gestures.plugins.example_logger")


class EventLoggerPlugin(GesturePlugin):
    name = "event_logger"
    version = "1.1.0"
    description = "Logs recognitions and recording phases to a JSON-lines file"
    events = ("recognition", "phase", "training")

    def __init__(self):
        super().__init__()
        self.path = Path(os.environ.get("IMU_GESTURES_JOURNAL", "gesture_events.jsonl"))
        self._journal: Optional[TextIO] = None
        self._counts: Counter = Counter()
        self._last_error: Optional[float] = None

    def on_startup(self, context: dict):
        try:
            self._journal = self.path.open("a")
        except OSError as e:
            logger.warning("Journal %s unavailable, events will only be counted: %s", self.path, e)
            return
        logger.info("Journal: %s", self.path)

    def on_shutdown(self):
        if self._journal is not None:
            self._journal.close()
            self._journal = None
        if self._counts:
            logger.info("Recognitions this run: %s", dict(self._counts))

    def on_recognition(self, event: PluginEvent):
        self._counts[event.name] += 1
        self._append(event, {"count": self._counts[event.name]})
        super().on_recognition(event)

    def on_phase(self, event: PluginEvent):
        self._append(event, {"prompt": event.data.get("prompt", "")})

    def on_training(self, event: PluginEvent):
        error = event.data.get("error")
        if error is not None and self._last_error is not None:
            logger.info("Training error %.5f (previous run %.5f)", error, self._last_error)
        self._last_error = error
        self._append(event, {"error": error, "examples": event.data.get("examples")})

    def _append(self, event: PluginEvent, extra: dict):
        if self._journal is None:
            return
        line = json.dumps({"type": event.type, "name": event.name, "timestamp": event.timestamp, **extra})
        try:
            self._journal.write(line + "\n")
            self._journal.flush()
        except OSError as e:
            logger.warning("Journal write failed: %s", e)

    @property
    def counts(self) -> dict[str, int]:
        return dict(self._counts)
