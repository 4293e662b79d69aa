"""Workflow engine facade: wiring, lifecycle and manual check-in."""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path

from loguru import logger

from ..clients.base import PositionProvider
from ..clients.file.provider import FilePositionProvider
from ..clients.position import PositionSource
from ..clients.retell.client import RetellClient
from ..config import Settings, settings as default_settings
from ..db.engine import init_db
from ..db.repositories import CallLogRepository, IdentityRepository, SetupRepository
from ..exceptions import (
    AlreadyCheckedInToday,
    CheckInError,
    PositionUnavailable,
    SetupError,
)
from ..gateways.ledger import LedgerGateway
from ..gateways.notifications import (
    DefaultNotificationGateway,
    HistoryChannel,
    LogChannel,
    NotificationGateway,
    NotificationKind,
)
from ..models.geo import GeoPoint, PositionReading
from ..models.progress import DayOutcome, UserProgress
from ..models.user import SetupPreferences, UserIdentity
from ..utils.geo import distance_meters
from .daily_cycle import DailyCycleScheduler
from .escalation import EscalationScheduler, RunContext
from .scheduler import Clock, DeadlineScheduler, SystemClock
from .session_monitor import PresenceCheck, manual_check


@dataclass
class CheckInResult:
    """Outcome of a manual check-in."""

    success: bool
    message: str
    streak_days: int = 0
    already_checked_in: bool = False
    distance_meters: float | None = None
    checked_in_at: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "message": self.message,
            "streak_days": self.streak_days,
            "already_checked_in": self.already_checked_in,
            "distance_meters": (
                round(self.distance_meters, 1) if self.distance_meters is not None else None
            ),
            "checked_in_at": self.checked_in_at.isoformat() if self.checked_in_at else None,
        }


@dataclass
class EngineStatus:
    """Snapshot of the engine for the CLI and web UI."""

    running: bool
    armed: bool
    day_outcome: DayOutcome
    stage: str | None = None
    next_window_at: datetime | None = None
    streak_days: int = 0
    wallet_balance: float = 0.0
    run: dict | None = None

    def to_dict(self) -> dict:
        return {
            "running": self.running,
            "armed": self.armed,
            "day_outcome": self.day_outcome.value,
            "stage": self.stage,
            "next_window_at": self.next_window_at.isoformat() if self.next_window_at else None,
            "streak_days": self.streak_days,
            "wallet_balance": self.wallet_balance,
            "run": self.run,
        }


def build_position_provider(config: Settings) -> PositionProvider:
    """Default provider: a JSON fix file written by a companion app."""
    path = config.position_file or config.data_dir / "position.json"
    return FilePositionProvider(path, max_age_seconds=config.position_file_max_age_seconds)


def build_notifier(config: Settings, db_path: Path, history: HistoryChannel) -> DefaultNotificationGateway:
    caller = None
    if config.retell_configured:
        caller = RetellClient(
            api_key=config.retell_api_key,
            agent_id=config.retell_agent_id,
            from_number=config.retell_from_number,
            base_url=config.retell_base_url,
        )
    return DefaultNotificationGateway(
        channels=[LogChannel(), history],
        caller=caller,
        call_log=CallLogRepository(db_path),
    )


class WorkflowEngine:
    """Entry point owning every collaborator for one user session.

    Example:
        engine = WorkflowEngine()
        if await engine.init():
            await engine.start()
            await engine.run_forever()
    """

    def __init__(
        self,
        config: Settings | None = None,
        db_path: Path | None = None,
        clock: Clock | None = None,
        provider: PositionProvider | None = None,
        notifier: NotificationGateway | None = None,
    ):
        self.config = config or default_settings
        self.db_path = db_path or self.config.db_path
        self.clock = clock or SystemClock(self.config.get_tz())

        self.scheduler = DeadlineScheduler(self.clock, max_sleep=self.config.scheduler_max_sleep_seconds)
        self.ledger = LedgerGateway(
            db_path=self.db_path,
            clock=self.clock,
            penalty_rate=self.config.penalty_rate,
            shopping_credit_rate=self.config.shopping_credit_rate,
            transfer_fee_rate=self.config.transfer_fee_rate,
        )
        self.history = HistoryChannel()
        self.notifier = notifier or build_notifier(self.config, self.db_path, self.history)
        self.source = PositionSource(
            provider or build_position_provider(self.config),
            clock=self.clock,
            timeout=self.config.position_timeout_seconds,
            max_age=self.config.position_max_age_seconds,
        )
        self.escalation = EscalationScheduler(
            scheduler=self.scheduler,
            ledger=self.ledger,
            notifier=self.notifier,
            source=self.source,
            poll_interval=timedelta(seconds=self.config.poll_interval_seconds),
        )
        self.daily = DailyCycleScheduler(self.scheduler, self.ledger, self.escalation)

        self.identity_repo = IdentityRepository(self.db_path)
        self.setup_repo = SetupRepository(self.db_path)
        self.identity: UserIdentity | None = None
        self.setup: SetupPreferences | None = None
        self.progress: UserProgress | None = None
        self._loop_task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self.daily.running

    async def init(self) -> bool:
        """Load identity, setup and progress.

        Returns:
            False if any of them is missing
        """
        await init_db(self.db_path)
        self.identity = await self.identity_repo.get()
        self.setup = await self.setup_repo.get()
        self.progress = await self.ledger.get_progress()

        ready = all(x is not None for x in (self.identity, self.setup, self.progress))
        logger.bind(ready=ready).debug("Workflow engine initialized")
        return ready

    async def _require_setup(self) -> SetupPreferences:
        if self.setup is None or self.identity is None:
            if not await self.init():
                raise SetupError("Sign in and complete setup before starting the workflow")
        return self.setup

    def _run_context(self) -> RunContext:
        return RunContext(
            user_name=self.identity.user_name,
            gym_name=self.setup.gym.name,
            phone_number=self.setup.phone_number,
            bet_amount=self.setup.bet_amount,
            window_label=self.setup.workout_window.label,
        )

    async def start(self) -> None:
        """Arm the daily cycle. Restarts it if already running.

        Raises:
            SetupError: If identity, setup or progress is missing
        """
        setup = await self._require_setup()
        if self.progress is None:
            raise SetupError("Wallet has not been initialized")

        if self.running:
            logger.info("Restarting workflow")
            self.daily.stop()

        target = setup.gym.target(self.config.auto_check_radius_m)
        self.daily.start(setup.workout_window, target, self._run_context())
        logger.bind(user=self.identity.user_name, window=setup.workout_window.label).info(
            "Workflow started"
        )

    def stop(self) -> None:
        """Cancel every timer and stop the scheduler loop. Idempotent."""
        if self.running:
            self.daily.stop()
            logger.info("Workflow stopped")
        self.scheduler.stop()

    async def run_forever(self) -> None:
        """Start if needed and drive the scheduler until ``stop()``."""
        if not self.running:
            await self.start()
        await self.scheduler.run_forever()

    def run_in_background(self) -> asyncio.Task:
        """Drive the scheduler from a task (used by the web server)."""
        if self._loop_task is None or self._loop_task.done():
            self._loop_task = asyncio.create_task(self.scheduler.run_forever(), name="workflow-loop")
        return self._loop_task

    async def shutdown(self) -> None:
        """Stop, cancel in-flight callbacks and wait for the loop to exit."""
        self.stop()
        self.scheduler.cancel_all()
        await self.scheduler.drain()
        if self._loop_task is not None:
            await asyncio.gather(self._loop_task, return_exceptions=True)
            self._loop_task = None

    async def manual_check_in(self, position: GeoPoint | None = None) -> CheckInResult:
        """Check in from a single lenient position read.

        Args:
            position: Coordinates reported by the caller; read from the
                position source when omitted

        Returns:
            The result; already checked in today is a successful no-op

        Raises:
            CheckInError: If the position is unavailable or too far away
            SetupError: If setup has not been completed
        """
        try:
            return await self._manual_check_in(position)
        except AlreadyCheckedInToday:
            progress = await self.ledger.get_progress()
            return CheckInResult(
                success=True,
                message="Already checked in today",
                streak_days=progress.streak_days if progress else 0,
                already_checked_in=True,
                checked_in_at=progress.last_check_in_at if progress else None,
            )

    async def _manual_check_in(self, position: GeoPoint | None) -> CheckInResult:
        setup = await self._require_setup()
        today = self.clock.now().date()

        progress = await self.ledger.get_progress()
        if progress is not None and progress.checked_in_on(today):
            raise AlreadyCheckedInToday()

        target = setup.gym.target(self.config.auto_check_radius_m)
        radius = self.config.manual_check_radius_m
        if position is not None:
            reading = PositionReading(
                point=position, accuracy=None, timestamp=self.clock.now(), source="client"
            )
            check = PresenceCheck(reading, distance_meters(position, target.location), radius)
        else:
            try:
                check = await manual_check(self.source, target, radius)
            except PositionUnavailable as e:
                raise CheckInError(f"Could not read your location: {e.message}", cause=e.cause) from e

        if not check.within:
            raise CheckInError(
                f"You are {check.distance_meters:.0f}m from {setup.gym.name or 'the gym'}. "
                f"Get within {radius:.0f}m to check in.",
                distance_meters=check.distance_meters,
            )

        record = None
        run = self.escalation.active_run
        if run is not None:
            record = await run.complete(source="manual")
        if record is None:
            record = await asyncio.shield(self.ledger.record_check_in())
            if record.recorded:
                await self.notifier.notify(
                    NotificationKind.CHECK_IN_SUCCESS,
                    {"streak_days": record.streak_days, "source": "manual"},
                )
                if run is not None and run.day == today:
                    run.cancel("checked in manually")

        if not record.recorded:
            if record.outcome == DayOutcome.CHECKED_IN:
                raise AlreadyCheckedInToday()
            raise CheckInError(
                "Today's penalty has already been applied",
                distance_meters=check.distance_meters,
            )

        self.progress = await self.ledger.get_progress()
        return CheckInResult(
            success=True,
            message=f"Checked in! {record.streak_days}-day streak",
            streak_days=record.streak_days,
            distance_meters=check.distance_meters,
            checked_in_at=record.checked_in_at,
        )

    async def status(self) -> EngineStatus:
        now = self.clock.now()
        day_state = await self.ledger.day_state(now.date())
        progress = await self.ledger.get_progress()
        run = self.escalation.current_run
        if run is not None and run.day != now.date() and run.is_terminal:
            run = None

        return EngineStatus(
            running=self.running,
            armed=self.daily.armed,
            day_outcome=day_state.outcome,
            stage=run.stage.value if run else None,
            next_window_at=self.daily.next_window_at,
            streak_days=progress.streak_days if progress else 0,
            wallet_balance=progress.wallet_balance if progress else 0.0,
            run=run.to_dict() if run else None,
        )
