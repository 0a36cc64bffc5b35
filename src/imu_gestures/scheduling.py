"""Deferred callbacks for the timed phases of the recording protocol.

ThreadingScheduler runs callbacks on threading.Timer threads. ManualScheduler
only fires when advanced explicitly, which is what replays and tests use to
drive the protocol on recorded time instead of wall-clock time.
"""

from __future__ import annotations

import threading
from typing import Callable


class TimerHandle:
    """Handle returned by call_later(); cancel() prevents the callback."""

    def __init__(self, cancel: Callable[[], None]):
        self._cancel = cancel
        self.cancelled = False

    def cancel(self):
        if not self.cancelled:
            self.cancelled = True
            self._cancel()


class ThreadingScheduler:
    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(delay_s, callback)
        timer.daemon = True
        timer.start()
        return TimerHandle(timer.cancel)


class ManualScheduler:
    """Scheduler driven by advance(); callbacks run on the caller's thread."""

    def __init__(self):
        self.now = 0.0
        self._pending: list[tuple[float, int, Callable[[], None], TimerHandle]] = []
        self._seq = 0

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TimerHandle:
        self._seq += 1
        seq = self._seq
        handle = TimerHandle(lambda: self._drop(seq))
        self._pending.append((self.now + delay_s, seq, callback, handle))
        return handle

    def _drop(self, seq: int):
        self._pending = [p for p in self._pending if p[1] != seq]

    def advance(self, seconds: float) -> int:
        """Move time forward and run every callback that came due. Returns the count run."""
        target = self.now + seconds
        fired = 0
        while True:
            due = sorted(p for p in self._pending if p[0] <= target)
            if not due:
                break
            when, seq, callback, handle = due[0]
            self._drop(seq)
            self.now = when
            handle.cancelled = True
            callback()
            fired += 1
        self.now = target
        return fired

    @property
    def pending_count(self) -> int:
        return len(self._pending)
