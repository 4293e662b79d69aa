"""Absolute-deadline timer scheduling.

Timers are stored with wall-clock deadlines rather than relative delays,
so a process that was suspended past a deadline fires the callback as
soon as it wakes up instead of silently drifting. The run loop never
sleeps longer than ``max_sleep`` seconds before re-reading the clock.
"""

import asyncio
import heapq
import itertools
from dataclasses import dataclass, field
from datetime import datetime, timedelta, tzinfo
from typing import Awaitable, Callable, Protocol

from loguru import logger

TimerCallback = Callable[[], Awaitable[None]]


class Clock(Protocol):
    """Source of the current wall-clock time."""

    def now(self) -> datetime:
        ...


class SystemClock:
    """Timezone-aware system clock."""

    def __init__(self, tz: tzinfo | None = None):
        self.tz = tz

    def now(self) -> datetime:
        if self.tz is None:
            return datetime.now().astimezone()
        return datetime.now(self.tz)


@dataclass(eq=False)
class TimerHandle:
    """A scheduled callback that can be cancelled."""

    name: str
    deadline: datetime
    callback: TimerCallback
    cancelled: bool = False
    fired: bool = False
    task: asyncio.Task | None = field(default=None, repr=False)

    @property
    def active(self) -> bool:
        """Scheduled and not yet fired or cancelled."""
        return not (self.cancelled or self.fired)

    @property
    def running(self) -> bool:
        return self.task is not None and not self.task.done()

    def cancel(self) -> None:
        """Cancel the timer, and its callback if it is mid-flight.

        A callback cancelling its own handle keeps running to completion.
        """
        self.cancelled = True
        if self.running and self.task is not asyncio.current_task():
            self.task.cancel()


class DeadlineScheduler:
    """Single-timeline scheduler dispatching callbacks as asyncio tasks."""

    def __init__(self, clock: Clock, max_sleep: float = 30.0):
        self.clock = clock
        self.max_sleep = max_sleep
        self._heap: list[tuple[datetime, int, TimerHandle]] = []
        self._counter = itertools.count()
        self._tasks: set[asyncio.Task] = set()
        self._wakeup = asyncio.Event()
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def call_at(self, deadline: datetime, callback: TimerCallback, name: str = "") -> TimerHandle:
        """Schedule ``callback`` at an absolute deadline.

        A deadline in the past fires on the next dispatch pass.
        """
        handle = TimerHandle(name=name or getattr(callback, "__name__", "timer"), deadline=deadline, callback=callback)
        heapq.heappush(self._heap, (deadline, next(self._counter), handle))
        self._wakeup.set()
        logger.bind(timer=handle.name).debug(f"Timer scheduled for {deadline.isoformat()}")
        return handle

    def call_later(self, delay: timedelta, callback: TimerCallback, name: str = "") -> TimerHandle:
        """Schedule ``callback`` at ``now + delay`` (converted to a deadline)."""
        return self.call_at(self.clock.now() + delay, callback, name)

    def pending(self) -> list[TimerHandle]:
        """Active timers in deadline order."""
        return [h for _, _, h in sorted(self._heap) if h.active]

    def next_deadline(self) -> datetime | None:
        while self._heap and not self._heap[0][2].active:
            heapq.heappop(self._heap)
        return self._heap[0][0] if self._heap else None

    def fire_due(self) -> list[TimerHandle]:
        """Dispatch every timer whose deadline has passed, in deadline order.

        Callbacks are started as tasks and not awaited here.

        Returns:
            The handles that were dispatched
        """
        now = self.clock.now()
        fired = []
        while self._heap and self._heap[0][0] <= now:
            _, _, handle = heapq.heappop(self._heap)
            if not handle.active:
                continue
            handle.fired = True
            lateness = (now - handle.deadline).total_seconds()
            if lateness > self.max_sleep:
                logger.bind(timer=handle.name, late_seconds=round(lateness)).info(
                    "Firing overdue timer"
                )
            task = asyncio.create_task(self._invoke(handle), name=handle.name)
            handle.task = task
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            fired.append(handle)
        return fired

    async def _invoke(self, handle: TimerHandle) -> None:
        try:
            await handle.callback()
        except asyncio.CancelledError:
            logger.bind(timer=handle.name).debug("Timer callback cancelled")
            raise
        except Exception:
            logger.bind(timer=handle.name).exception("Timer callback failed")

    async def drain(self) -> None:
        """Wait for every in-flight callback to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def run_pending(self) -> int:
        """Fire due timers until nothing more is due, awaiting callbacks.

        Timers scheduled by callbacks with already-passed deadlines are
        fired in the same call.

        Returns:
            Number of callbacks dispatched
        """
        count = 0
        while True:
            fired = self.fire_due()
            if not fired and not self._tasks:
                return count
            count += len(fired)
            await self.drain()

    async def run_forever(self) -> None:
        """Dispatch timers until ``stop()`` is called."""
        self._running = True
        logger.debug("Scheduler loop started")
        try:
            while self._running:
                self._wakeup.clear()
                self.fire_due()

                delay = self.max_sleep
                deadline = self.next_deadline()
                if deadline is not None:
                    until = (deadline - self.clock.now()).total_seconds()
                    delay = max(0.0, min(delay, until))

                try:
                    await asyncio.wait_for(self._wakeup.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    pass
        finally:
            self._running = False
            logger.debug("Scheduler loop stopped")

    def stop(self) -> None:
        """Stop the run loop (timers stay scheduled)."""
        self._running = False
        self._wakeup.set()

    def cancel_all(self) -> None:
        """Cancel every scheduled timer and in-flight callback."""
        for _, _, handle in self._heap:
            handle.cancel()
        self._heap.clear()
        for task in list(self._tasks):
            if task is not asyncio.current_task():
                task.cancel()
