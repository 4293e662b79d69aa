"""Geofence arrival monitoring for an active workout window."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Awaitable, Callable

from loguru import logger

from ..clients.position import PositionSource
from ..exceptions import PositionUnavailable
from ..models.geo import PositionReading, Target
from ..utils.geo import distance_meters
from .scheduler import DeadlineScheduler, TimerHandle


@dataclass(frozen=True)
class PresenceCheck:
    """Result of comparing one reading against a geofence."""

    reading: PositionReading
    distance_meters: float
    radius_meters: float

    @property
    def within(self) -> bool:
        return self.distance_meters <= self.radius_meters


ArrivalCallback = Callable[[PresenceCheck], Awaitable[None]]


async def check_presence(
    source: PositionSource, target: Target, use_cache: bool = True
) -> PresenceCheck:
    """Read the position once and test it against ``target``.

    Raises:
        PositionUnavailable: If no reading could be taken
    """
    reading = await source.current_position(use_cache=use_cache)
    return PresenceCheck(
        reading=reading,
        distance_meters=distance_meters(reading.point, target.location),
        radius_meters=target.radius_meters,
    )


async def manual_check(source: PositionSource, target: Target, radius_meters: float) -> PresenceCheck:
    """One fresh read against the lenient manual check-in radius."""
    return await check_presence(source, target.with_radius(radius_meters), use_cache=False)


class SessionMonitor:
    """Polls the position source until the user reaches the gym.

    Emits at most one arrival. Keeps polling past the end of the window;
    the escalation run decides when monitoring stops.
    """

    def __init__(
        self,
        source: PositionSource,
        target: Target,
        scheduler: DeadlineScheduler,
        on_arrived: ArrivalCallback,
        poll_interval: timedelta = timedelta(minutes=5),
    ):
        self.source = source
        self.target = target
        self.scheduler = scheduler
        self.on_arrived = on_arrived
        self.poll_interval = poll_interval
        self.polls = 0
        self.failures = 0
        self.last_check: PresenceCheck | None = None
        self._arrived = False
        self._running = False
        self._generation = 0
        self._handle: TimerHandle | None = None

    @property
    def running(self) -> bool:
        return self._running

    @property
    def arrived(self) -> bool:
        return self._arrived

    def start(self, first_poll_at: datetime | None = None) -> None:
        """Begin polling (first poll immediately unless a time is given)."""
        if self._running:
            return
        self._running = True
        self._generation += 1
        deadline = first_poll_at or self.scheduler.clock.now()
        self._handle = self.scheduler.call_at(deadline, self._poll, name="session-poll")
        logger.bind(gym=self.target.name, radius=self.target.radius_meters).info(
            "Session monitoring started"
        )

    def stop(self) -> None:
        """Stop polling and discard any read still in flight."""
        if not self._running:
            return
        self._running = False
        self._generation += 1
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        logger.bind(gym=self.target.name, polls=self.polls).info("Session monitoring stopped")

    def _schedule_next(self, previous_deadline: datetime) -> None:
        deadline = previous_deadline + self.poll_interval
        now = self.scheduler.clock.now()
        if deadline <= now:
            # Woke up late; the poll that just ran stands in for every missed tick
            deadline = now + self.poll_interval
        self._handle = self.scheduler.call_at(deadline, self._poll, name="session-poll")

    async def _poll(self) -> None:
        if not self._running:
            return
        generation = self._generation
        deadline = self._handle.deadline if self._handle else self.scheduler.clock.now()
        self.polls += 1

        try:
            check = await check_presence(self.source, self.target)
        except PositionUnavailable as e:
            self.failures += 1
            logger.bind(cause=e.cause.value).warning(f"Position poll skipped: {e.message}")
            check = None

        if not self._running or generation != self._generation:
            logger.debug("Discarding position read that finished after stop")
            return

        if check is not None:
            self.last_check = check
            logger.bind(distance=round(check.distance_meters, 1)).debug("Position polled")
            if check.within and not self._arrived:
                self._arrived = True
                self._running = False
                self._handle = None
                logger.bind(gym=self.target.name).info("Arrival detected")
                await self.on_arrived(check)
                return

        self._schedule_next(deadline)
