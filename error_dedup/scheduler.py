"""Cancellable repeating tasks for the periodic TTL sweep.

``ThreadScheduler`` runs each task on a daemon thread. ``ManualScheduler``
never runs anything on its own; callers advance it explicitly, which keeps
sweeps deterministic in tests.
"""

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class TaskHandle:
    """Handle to a scheduled repeating task."""

    def __init__(self, name: str):
        self.name = name
        self._cancelled = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self):
        """Stop the task. No further runs happen after this returns."""
        self._cancelled.set()


class _ThreadTask(TaskHandle):
    def __init__(self, name: str, interval: float, func: Callable[[], object]):
        super().__init__(name)
        self._interval = interval
        self._func = func
        self._lock = threading.RLock()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()

    def cancel(self):
        # Holding the lock waits out a run already in progress.
        with self._lock:
            super().cancel()
        if threading.current_thread() is not self._thread:
            self._thread.join(timeout=5)

    def _run(self):
        while not self._cancelled.wait(timeout=self._interval):
            with self._lock:
                if self._cancelled.is_set():
                    break
                try:
                    self._func()
                except Exception:
                    logger.exception("Scheduled task %s failed", self.name)


class ThreadScheduler:
    """Runs repeating tasks on daemon threads."""

    def schedule_repeating(self, interval: float, func: Callable[[], object],
                           name: str = "repeating-task") -> TaskHandle:
        if interval <= 0:
            raise ValueError("interval must be positive")
        logger.debug("Scheduling %s every %.1fs", name, interval)
        return _ThreadTask(name, interval, func)


class _ManualTask(TaskHandle):
    def __init__(self, name: str, interval: float, func: Callable[[], object], next_run: float):
        super().__init__(name)
        self.interval = interval
        self.func = func
        self.next_run = next_run


class ManualScheduler:
    """A scheduler driven by an explicit virtual clock.

    ``time()`` can be handed to the store as its clock so that advancing the
    scheduler also ages cache entries.
    """

    def __init__(self, start: float = 0.0):
        self.now = start
        self._tasks: list[_ManualTask] = []

    def time(self) -> float:
        return self.now

    def schedule_repeating(self, interval: float, func: Callable[[], object],
                           name: str = "repeating-task") -> TaskHandle:
        if interval <= 0:
            raise ValueError("interval must be positive")
        task = _ManualTask(name, interval, func, self.now + interval)
        self._tasks.append(task)
        return task

    @property
    def active_tasks(self) -> list[TaskHandle]:
        return [t for t in self._tasks if not t.cancelled]

    def run_pending(self) -> int:
        """Run every active task once, regardless of its due time."""
        ran = 0
        for task in self.active_tasks:
            task.func()
            ran += 1
        return ran

    def advance(self, seconds: float) -> int:
        """Move the clock forward, firing tasks as they fall due.

        Returns the number of task runs.
        """
        target = self.now + seconds
        ran = 0
        while True:
            due = self._next_due(target)
            if due is None:
                break
            self.now = due.next_run
            due.next_run += due.interval
            due.func()
            ran += 1
        self.now = target
        return ran

    def _next_due(self, target: float) -> Optional[_ManualTask]:
        candidates = [t for t in self.active_tasks if t.next_run <= target]
        if not candidates:
            return None
        return min(candidates, key=lambda t: t.next_run)
