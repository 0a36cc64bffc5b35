"""Timing of the per-sample pipeline stages.

Every sample passes normalization, segmentation and (while a gesture is
being captured) accumulation; inference runs once per completed gesture
in listening mode. All of it happens on the sensor callback, so a stage
that takes longer than one sample period (31.25 ms at 32 Hz) delays the
samples behind it. Such calls are counted as overruns.

The statistics feed the /api/status endpoint.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

import numpy as np

logger = logging.getLogger("imu_gestures.profiler")


@dataclass
class StageStats:
    name: str
    calls: int
    mean_ms: float
    p95_ms: float
    max_ms: float
    overruns: int


class PipelineProfiler:
    """Rolling-window timings per stage, checked against the sample period.

    Usage:
        profiler = PipelineProfiler(budget_ms=1000 / 32)

        with profiler.stage("segmentation"):
            distance, transition = detector.process(sample, now)

        profiler.summary()["segmentation"]["p95_ms"]
    """

    STAGES = ("normalization", "segmentation", "accumulation", "inference")

    def __init__(self, window_size: int = 256, budget_ms: float = 31.25):
        self.window_size = window_size
        self.budget_ms = budget_ms
        self.enabled = True
        self._windows: dict[str, deque] = {}
        self._calls: dict[str, int] = {}
        self._overruns: dict[str, int] = {}
        for name in self.STAGES:
            self._add_stage(name)

    def _add_stage(self, name: str):
        self._windows[name] = deque(maxlen=self.window_size)
        self._calls[name] = 0
        self._overruns[name] = 0

    @contextmanager
    def stage(self, name: str) -> Iterator[None]:
        if not self.enabled:
            yield
            return

        t0 = time.perf_counter()
        try:
            yield
        finally:
            self.observe(name, (time.perf_counter() - t0) * 1000.0)

    def observe(self, name: str, elapsed_ms: float):
        """Record one timing for a stage, in milliseconds."""
        if name not in self._windows:
            self._add_stage(name)
        self._windows[name].append(elapsed_ms)
        self._calls[name] += 1
        if elapsed_ms > self.budget_ms:
            self._overruns[name] += 1
            logger.debug("Stage %s took %.1fms (budget %.2fms)", name, elapsed_ms, self.budget_ms)

    def get_stage_stats(self, name: str) -> Optional[StageStats]:
        window = self._windows.get(name)
        if not window:
            return None

        values = np.fromiter(window, dtype=np.float64)
        return StageStats(
            name=name,
            calls=self._calls[name],
            mean_ms=float(values.mean()),
            p95_ms=float(np.percentile(values, 95)),
            max_ms=float(values.max()),
            overruns=self._overruns[name],
        )

    def summary(self) -> dict[str, dict]:
        """Stats for every stage that has run, as plain dicts."""
        result = {}
        for name in self._windows:
            stats = self.get_stage_stats(name)
            if stats is None:
                continue
            result[name] = {
                "calls": stats.calls,
                "mean_ms": round(stats.mean_ms, 4),
                "p95_ms": round(stats.p95_ms, 4),
                "max_ms": round(stats.max_ms, 4),
                "overruns": stats.overruns,
            }
        return result

    @property
    def overruns(self) -> int:
        """Calls, across all stages, slower than one sample period."""
        return sum(self._overruns.values())

    def reset(self):
        for name in list(self._windows):
            self._add_stage(name)
