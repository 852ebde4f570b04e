# payflow/scheduling.py
"""Clocks and delayed one-shot tasks.

The live service runs timers on the asyncio loop; tests drive the same code
through ``VirtualScheduler`` and move time forward by hand.
"""
from __future__ import annotations

import asyncio
import heapq
import itertools
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Protocol, Tuple


class Clock(Protocol):
    def now(self) -> datetime: ...


class TaskHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TaskHandle: ...


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class AsyncioScheduler:
    """Schedules callbacks on the running event loop (must be called from it)."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback)


class _VirtualTask:
    def __init__(self, due: float, callback: Callable[[], None]):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class VirtualScheduler:
    """Scheduler and clock on virtual time.

    ``advance(seconds)`` runs every task that becomes due, in due order,
    including tasks scheduled by callbacks during the same advance.
    """

    def __init__(self, start: Optional[datetime] = None):
        self._start = start or datetime(2024, 1, 1, tzinfo=timezone.utc)
        self._elapsed = 0.0
        self._seq = itertools.count()
        self._queue: List[Tuple[float, int, _VirtualTask]] = []

    # Clock
    def now(self) -> datetime:
        return self._start + timedelta(seconds=self._elapsed)

    @property
    def elapsed(self) -> float:
        return self._elapsed

    @property
    def pending(self) -> int:
        return sum(1 for _, _, task in self._queue if not task.cancelled)

    def call_later(self, delay: float, callback: Callable[[], None]) -> _VirtualTask:
        if delay < 0:
            raise ValueError("delay must be >= 0")
        task = _VirtualTask(self._elapsed + delay, callback)
        heapq.heappush(self._queue, (task.due, next(self._seq), task))
        return task

    def advance(self, seconds: float) -> int:
        """Move the clock forward, returns the number of callbacks run."""
        if seconds < 0:
            raise ValueError("cannot move the clock backwards")
        target = self._elapsed + seconds
        ran = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, task = heapq.heappop(self._queue)
            self._elapsed = max(self._elapsed, due)
            if task.cancelled:
                continue
            task.callback()
            ran += 1
        self._elapsed = target
        return ran

    def run_all(self) -> int:
        ran = 0
        while self._queue:
            ran += self.advance(max(0.0, self._queue[0][0] - self._elapsed))
        return ran
