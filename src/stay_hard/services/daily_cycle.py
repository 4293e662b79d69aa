"""Cross-day orchestration: one escalation run per day plus midnight reconciliation."""

from datetime import date, datetime, time, timedelta

from loguru import logger

from ..exceptions import StayHardError
from ..gateways.ledger import LedgerGateway
from ..models.geo import Target
from ..models.window import WindowMode, WorkoutWindow
from .escalation import EscalationRun, EscalationScheduler, RunContext
from .scheduler import DeadlineScheduler, TimerHandle


def first_window_start(window: WorkoutWindow, now: datetime) -> datetime:
    """Start of the first window occurrence to arm at ``now``.

    A START_NOW window created today that has not ended yet starts
    immediately; every other case is the next start strictly after ``now``.
    """
    if window.mode == WindowMode.START_NOW and window.created_at is not None:
        created = window.created_at.astimezone(now.tzinfo) if now.tzinfo else window.created_at
        if created.date() == now.date():
            start = window.start_on(now.date(), now.tzinfo)
            if start <= now < start + window.duration:
                return start
    return window.next_start(now)


def next_midnight(now: datetime) -> datetime:
    return datetime.combine(now.date() + timedelta(days=1), time(0, 0), tzinfo=now.tzinfo)


class DailyCycleScheduler:
    """Arms the day's escalation run and reconciles streaks at midnight."""

    def __init__(
        self,
        scheduler: DeadlineScheduler,
        ledger: LedgerGateway,
        escalation: EscalationScheduler,
    ):
        self.scheduler = scheduler
        self.ledger = ledger
        self.escalation = escalation
        self.window: WorkoutWindow | None = None
        self.target: Target | None = None
        self.context: RunContext | None = None
        self.last_reconciled: date | None = None
        self._window_handle: TimerHandle | None = None
        self._midnight_handle: TimerHandle | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def armed(self) -> bool:
        """True while a window timer is scheduled or a run is in progress."""
        window_pending = self._window_handle is not None and self._window_handle.active
        return window_pending or self.escalation.active_run is not None

    @property
    def next_window_at(self) -> datetime | None:
        if self._window_handle is None or not self._window_handle.active:
            return None
        return self._window_handle.deadline

    @property
    def current_run(self) -> EscalationRun | None:
        return self.escalation.current_run

    def start(self, window: WorkoutWindow, target: Target, context: RunContext) -> None:
        """Arm the next window and the midnight tick."""
        if self._running:
            self.stop()
        self.window = window
        self.target = target
        self.context = context
        self._running = True

        now = self.scheduler.clock.now()
        self._arm_window(first_window_start(window, now))
        self._arm_midnight(next_midnight(now))
        logger.bind(window=window.label, mode=window.mode.value).info("Daily cycle started")

    def stop(self) -> None:
        """Cancel the window and midnight timers and any active run."""
        if not self._running:
            return
        self._running = False
        for handle in (self._window_handle, self._midnight_handle):
            if handle is not None:
                handle.cancel()
        self._window_handle = None
        self._midnight_handle = None
        self.escalation.cancel("daily cycle stopped")
        logger.info("Daily cycle stopped")

    def _arm_window(self, start: datetime) -> None:
        self._window_handle = self.scheduler.call_at(start, self._on_window, name="workout-window")
        logger.bind(start=start.isoformat()).debug("Workout window armed")

    def _arm_midnight(self, at: datetime) -> None:
        self._midnight_handle = self.scheduler.call_at(at, self._on_midnight, name="midnight")

    async def _on_window(self) -> None:
        if not self._running or self._window_handle is None:
            return
        start = self._window_handle.deadline
        day = start.date()

        # Same wall-clock start on the following day
        self._arm_window(self.window.start_on(day + timedelta(days=1), start.tzinfo))

        state = await self.ledger.day_state(day)
        if not self._running:
            return
        if state.is_settled:
            logger.bind(day=day.isoformat(), outcome=state.outcome.value).info(
                "Day already settled, skipping escalation run"
            )
            return

        await self.ledger.mark_window_armed(day)
        if not self._running:
            return
        self.escalation.start_run(start, self.target, self.context)

    async def _on_midnight(self) -> None:
        if not self._running or self._midnight_handle is None:
            return
        today = self._midnight_handle.deadline.date()
        self._arm_midnight(next_midnight(self._midnight_handle.deadline))

        try:
            missed = await self.ledger.reconcile_missed_day(today)
        except StayHardError as e:
            logger.warning(f"Midnight reconciliation skipped: {e}")
            return
        self.last_reconciled = today
        logger.bind(day=today.isoformat(), missed=missed).info("Midnight reconciliation done")
