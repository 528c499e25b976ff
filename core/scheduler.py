"""Recurring timers used by drift monitoring.

A scheduler arms one recurring job. The next run is armed only after the
previous callback returns, so runs never overlap, and ``cancel`` guarantees
that no callback starts afterwards.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

logger = logging.getLogger("cs.scheduler")

Job = Callable[[], None]


class ThreadingScheduler:
    """Arms a ``threading.Timer`` and re-arms it after each run."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._generation = 0
        self._interval = 0.0
        self._job: Job | None = None

    @property
    def armed(self) -> bool:
        with self._lock:
            return self._timer is not None

    def schedule(self, interval_seconds: float, job: Job) -> None:
        """Run ``job`` every ``interval_seconds`` until cancelled."""
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        with self._lock:
            self._cancel_locked()
            self._generation += 1
            self._interval = float(interval_seconds)
            self._job = job
            self._arm_locked(self._generation)

    def cancel(self) -> None:
        with self._lock:
            self._cancel_locked()
            self._generation += 1
            self._job = None

    def _arm_locked(self, generation: int) -> None:
        timer = threading.Timer(self._interval, self._fire, args=(generation,))
        timer.daemon = True
        self._timer = timer
        timer.start()

    def _cancel_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._job is None:
                return
            job = self._job
            self._timer = None
        try:
            job()
        except Exception as exc:
            logger.warning("Scheduled job failed: %s", exc)
        with self._lock:
            if generation == self._generation and self._job is not None:
                self._arm_locked(generation)


class ManualScheduler:
    """Scheduler that only runs when ``fire`` is called."""

    def __init__(self) -> None:
        self.interval_seconds: float | None = None
        self._job: Job | None = None
        self.fired = 0

    @property
    def armed(self) -> bool:
        return self._job is not None

    def schedule(self, interval_seconds: float, job: Job) -> None:
        self.interval_seconds = float(interval_seconds)
        self._job = job

    def cancel(self) -> None:
        self._job = None
        self.interval_seconds = None

    def fire(self) -> bool:
        """Run the armed job once; return False when nothing is armed."""
        if self._job is None:
            return False
        self.fired += 1
        self._job()
        return True
