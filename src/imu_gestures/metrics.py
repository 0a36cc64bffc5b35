"""Prometheus-compatible metrics for the gesture engine.

Exposes /metrics in Prometheus text exposition format.
No external dependencies: the text format is generated directly.

Tracked metrics:
- imu_gestures_samples_total (counter)
- imu_gestures_gestures_started_total (counter)
- imu_gestures_gestures_completed_total (counter)
- imu_gestures_examples_total (counter, by result)
- imu_gestures_recognitions_total (counter, by label)
- imu_gestures_trainings_total (counter)
- imu_gestures_training_error (gauge)
- imu_gestures_sample_latency_seconds (histogram)
- imu_gestures_active_connections (gauge)
"""

from __future__ import annotations

import threading
import time
from collections import Counter
from typing import Optional


class _Histogram:
    """Simple histogram with configurable buckets."""

    def __init__(self, buckets: list[float]):
        self.buckets = sorted(buckets)
        self.bucket_counts = [0] * len(self.buckets)
        self.count = 0
        self.sum = 0.0
        self._lock = threading.Lock()

    def observe(self, value: float):
        with self._lock:
            self.count += 1
            self.sum += value
            for i, b in enumerate(self.buckets):
                if value <= b:
                    self.bucket_counts[i] += 1
                    break

    def render(self, name: str, help_text: str) -> str:
        lines = [
            f"# HELP {name} {help_text}",
            f"# TYPE {name} histogram",
        ]
        with self._lock:
            cumulative = 0
            for i, b in enumerate(self.buckets):
                cumulative += self.bucket_counts[i]
                lines.append(f'{name}_bucket{{le="{b}"}} {cumulative}')
            lines.append(f'{name}_bucket{{le="+Inf"}} {self.count}')
            lines.append(f"{name}_sum {self.sum:.6f}")
            lines.append(f"{name}_count {self.count}")
        return "\n".join(lines)


class MetricsCollector:
    """Collects and exposes Prometheus metrics for one engine."""

    def __init__(self):
        self._recognition_counts: Counter = Counter()
        self._example_counts: Counter = Counter()
        self._samples_total = 0
        self._gestures_started = 0
        self._gestures_completed = 0
        self._trainings_total = 0
        self._training_error: Optional[float] = None
        self._active_connections = 0
        self._lock = threading.Lock()

        # Per-sample latency: 10us to 10ms
        self._latency = _Histogram(
            [0.00001, 0.00005, 0.0001, 0.0005, 0.001, 0.005, 0.010]
        )

        self._start_time = time.time()

    def record_sample(self, latency_seconds: float):
        with self._lock:
            self._samples_total += 1
        self._latency.observe(latency_seconds)

    def record_gesture_started(self):
        with self._lock:
            self._gestures_started += 1

    def record_gesture_completed(self):
        with self._lock:
            self._gestures_completed += 1

    def record_example(self, accepted: bool):
        with self._lock:
            self._example_counts["accepted" if accepted else "rejected"] += 1

    def record_recognition(self, label: str):
        with self._lock:
            self._recognition_counts[label] += 1

    def record_training(self, error: float):
        with self._lock:
            self._trainings_total += 1
            self._training_error = error

    def set_connections(self, count: int):
        self._active_connections = count

    def render(self) -> str:
        """Render all metrics in Prometheus text exposition format."""
        lines: list[str] = []

        uptime = time.time() - self._start_time
        lines.append("# HELP imu_gestures_uptime_seconds Time since engine start")
        lines.append("# TYPE imu_gestures_uptime_seconds gauge")
        lines.append(f"imu_gestures_uptime_seconds {uptime:.1f}")
        lines.append("")

        with self._lock:
            counters = [
                ("imu_gestures_samples_total", "Complete x/y/z samples processed", self._samples_total),
                ("imu_gestures_gestures_started_total", "Gesture segments started", self._gestures_started),
                ("imu_gestures_gestures_completed_total", "Gesture segments completed", self._gestures_completed),
                ("imu_gestures_trainings_total", "Completed training runs", self._trainings_total),
            ]
            examples = sorted(self._example_counts.items())
            recognitions = sorted(self._recognition_counts.items())
            training_error = self._training_error

        for name, help_text, value in counters:
            lines.append(f"# HELP {name} {help_text}")
            lines.append(f"# TYPE {name} counter")
            lines.append(f"{name} {value}")
            lines.append("")

        lines.append("# HELP imu_gestures_examples_total Training examples offered, by result")
        lines.append("# TYPE imu_gestures_examples_total counter")
        for result, count in examples:
            lines.append(f'imu_gestures_examples_total{{result="{result}"}} {count}')
        lines.append("")

        lines.append("# HELP imu_gestures_recognitions_total Recognized gestures by label")
        lines.append("# TYPE imu_gestures_recognitions_total counter")
        for label, count in recognitions:
            lines.append(f'imu_gestures_recognitions_total{{label="{label}"}} {count}')
        lines.append("")

        if training_error is not None:
            lines.append("# HELP imu_gestures_training_error Final error of the last training run")
            lines.append("# TYPE imu_gestures_training_error gauge")
            lines.append(f"imu_gestures_training_error {training_error:.6f}")
            lines.append("")

        lines.append(self._latency.render(
            "imu_gestures_sample_latency_seconds",
            "Per-sample pipeline latency in seconds"
        ))
        lines.append("")

        lines.append("# HELP imu_gestures_active_connections Current WebSocket connections")
        lines.append("# TYPE imu_gestures_active_connections gauge")
        lines.append(f"imu_gestures_active_connections {self._active_connections}")
        lines.append("")

        return "\n".join(lines) + "\n"

    @property
    def samples_total(self) -> int:
        with self._lock:
            return self._samples_total

    @property
    def recognition_counts(self) -> dict[str, int]:
        with self._lock:
            return dict(self._recognition_counts)

    @property
    def example_counts(self) -> dict[str, int]:
        with self._lock:
            return dict(self._example_counts)
