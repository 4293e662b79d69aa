"""Workout-day escalation state machine.

One run tracks a single day's window::

    AWAITING_WINDOW -> ACTIVE -> WARNING_1 -> MOTIVATIONAL_CALL_PLACED
        -> WARNING_2 -> PENALIZED

with COMPLETED reachable from any active stage on arrival and CANCELLED
from any non-terminal stage. Stage timers are absolute deadlines measured
from the window start, so a run resumed after a suspension catches up in
order instead of skipping stages.
"""

import asyncio
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum

from loguru import logger

from ..clients.position import PositionSource
from ..exceptions import CallError
from ..gateways.ledger import LedgerGateway
from ..gateways.notifications import NotificationGateway, NotificationKind
from ..models.call import CallContext
from ..models.geo import Target
from ..models.progress import CheckInRecord, DayOutcome, PenaltyPreview, PenaltyResult
from .scheduler import DeadlineScheduler, TimerHandle
from .session_monitor import PresenceCheck, SessionMonitor


class EscalationStage(str, Enum):
    """Stages of an escalation run, in order."""

    AWAITING_WINDOW = "awaiting_window"
    ACTIVE = "active"
    WARNING_1 = "warning_1"
    MOTIVATIONAL_CALL_PLACED = "motivational_call_placed"
    WARNING_2 = "warning_2"
    COMPLETED = "completed"
    PENALIZED = "penalized"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STAGES


TERMINAL_STAGES = {
    EscalationStage.COMPLETED,
    EscalationStage.PENALIZED,
    EscalationStage.CANCELLED,
}

# Stages an arrival can complete
ARRIVABLE_STAGES = {
    EscalationStage.ACTIVE,
    EscalationStage.WARNING_1,
    EscalationStage.MOTIVATIONAL_CALL_PLACED,
    EscalationStage.WARNING_2,
}

_ORDER = [
    EscalationStage.AWAITING_WINDOW,
    EscalationStage.ACTIVE,
    EscalationStage.WARNING_1,
    EscalationStage.MOTIVATIONAL_CALL_PLACED,
    EscalationStage.WARNING_2,
    EscalationStage.PENALIZED,
]

# Offsets from window start
WARNING_1_AFTER = timedelta(minutes=15)
CALL_AFTER = timedelta(minutes=30)
WARNING_2_AFTER = timedelta(minutes=45)
PENALTY_AFTER = timedelta(minutes=60)


@dataclass
class RunContext:
    """User facts a run needs for alerts and the call."""

    user_name: str
    gym_name: str
    phone_number: str
    bet_amount: float
    window_label: str = ""


class EscalationRun:
    """A single day's escalation state machine."""

    def __init__(
        self,
        window_start: datetime,
        target: Target,
        context: RunContext,
        scheduler: DeadlineScheduler,
        ledger: LedgerGateway,
        notifier: NotificationGateway,
        source: PositionSource,
        poll_interval: timedelta = timedelta(minutes=5),
    ):
        self.window_start = window_start
        self.target = target
        self.context = context
        self.scheduler = scheduler
        self.ledger = ledger
        self.notifier = notifier
        self.source = source
        self.poll_interval = poll_interval

        self.stage = EscalationStage.AWAITING_WINDOW
        self.monitor: SessionMonitor | None = None
        self.check_in: CheckInRecord | None = None
        self.penalty: PenaltyResult | None = None
        self.call_id: str | None = None
        self.call_error: str | None = None
        self._preview: PenaltyPreview | None = None
        self._handles: list[TimerHandle] = []
        # Stage callbacks take this in dispatch (deadline) order
        self._stage_lock = asyncio.Lock()

    @property
    def day(self) -> date:
        return self.window_start.date()

    @property
    def is_terminal(self) -> bool:
        return self.stage.is_terminal

    def deadlines(self) -> dict[EscalationStage, datetime]:
        """Absolute time each timer-driven stage is due."""
        t0 = self.window_start
        return {
            EscalationStage.ACTIVE: t0,
            EscalationStage.WARNING_1: t0 + WARNING_1_AFTER,
            EscalationStage.MOTIVATIONAL_CALL_PLACED: t0 + CALL_AFTER,
            EscalationStage.WARNING_2: t0 + WARNING_2_AFTER,
            EscalationStage.PENALIZED: t0 + PENALTY_AFTER,
        }

    def arm(self) -> None:
        """Schedule every stage at its absolute deadline."""
        if self._handles:
            return
        callbacks = {
            EscalationStage.ACTIVE: self._activate,
            EscalationStage.WARNING_1: self._first_warning,
            EscalationStage.MOTIVATIONAL_CALL_PLACED: self._motivational_call,
            EscalationStage.WARNING_2: self._final_warning,
            EscalationStage.PENALIZED: self._penalize,
        }
        for stage, deadline in self.deadlines().items():
            self._handles.append(
                self.scheduler.call_at(
                    deadline, self._in_order(callbacks[stage]), name=f"escalation-{stage.value}"
                )
            )
        logger.bind(day=self.day.isoformat(), start=self.window_start.isoformat()).info(
            "Escalation run armed"
        )

    def _in_order(self, stage_callback):
        """Wrap a stage so overdue stages dispatched together run one after another.

        ``asyncio.Lock`` wakes waiters first-in first-out, and the scheduler
        starts tasks in deadline order.
        """

        async def run_stage() -> None:
            async with self._stage_lock:
                await stage_callback()

        return run_stage

    async def _settled_elsewhere(self) -> bool:
        """End the run if the day was settled outside it (e.g. another process).

        Returns:
            True if the run is now terminal
        """
        state = await self.ledger.day_state(self.day)
        if self.is_terminal:
            return True
        if not state.is_settled:
            return False

        self.stage = (
            EscalationStage.COMPLETED
            if state.outcome == DayOutcome.CHECKED_IN
            else EscalationStage.PENALIZED
        )
        self._finish()
        logger.bind(day=self.day.isoformat(), outcome=state.outcome.value).info(
            "Day settled outside this run, escalation stopped"
        )
        return True

    def _advance(self, to: EscalationStage) -> bool:
        """Move forward to a timer-driven stage.

        Runs synchronously so the decision cannot interleave with an
        arrival; returns False if the run is terminal or already past ``to``.
        """
        if self.stage.is_terminal:
            return False
        if _ORDER.index(self.stage) >= _ORDER.index(to):
            return False
        logger.bind(day=self.day.isoformat(), stage=to.value).debug(
            f"Escalation {self.stage.value} -> {to.value}"
        )
        self.stage = to
        return True

    def _finish(self, interrupt: bool = False) -> None:
        """Cancel stage timers and stop monitoring.

        Callbacks already running are left to finish unless ``interrupt``.
        """
        for handle in self._handles:
            if interrupt or handle.active:
                handle.cancel()
        if self.monitor is not None:
            self.monitor.stop()

    async def _penalty_preview(self) -> PenaltyPreview:
        if self._preview is None:
            self._preview = await self.ledger.preview_penalty()
        return self._preview

    async def _activate(self) -> None:
        if not self._advance(EscalationStage.ACTIVE):
            return

        self.monitor = SessionMonitor(
            source=self.source,
            target=self.target,
            scheduler=self.scheduler,
            on_arrived=self._on_arrived,
            poll_interval=self.poll_interval,
        )
        self.monitor.start()

        await self.notifier.notify(
            NotificationKind.WORKOUT_REMINDER,
            {
                "user_name": self.context.user_name,
                "gym_name": self.context.gym_name,
                "start": self.window_start.strftime("%H:%M"),
                "window": self.context.window_label,
            },
        )
        await self._penalty_preview()

    async def _warn(self, stage: EscalationStage, minutes_remaining: int) -> None:
        if not self._advance(stage):
            return
        if await self._settled_elsewhere():
            return
        preview = await self._penalty_preview()
        if self.is_terminal:
            return
        await self.notifier.notify(
            NotificationKind.PENALTY_WARNING,
            {
                "penalty_amount": preview.penalty_amount,
                "shopping_credit": preview.shopping_credit,
                "minutes_remaining": minutes_remaining,
            },
        )

    async def _first_warning(self) -> None:
        await self._warn(EscalationStage.WARNING_1, 45)

    async def _final_warning(self) -> None:
        await self._warn(EscalationStage.WARNING_2, 15)

    async def _motivational_call(self) -> None:
        if not self._advance(EscalationStage.MOTIVATIONAL_CALL_PLACED):
            return
        if await self._settled_elsewhere():
            return

        await self.notifier.notify(
            NotificationKind.MOTIVATIONAL_CALL_NOTICE,
            {"user_name": self.context.user_name},
        )
        if self.is_terminal:
            return

        progress = await self.ledger.get_progress()
        if self.is_terminal:
            return
        call_context = CallContext(
            user_name=self.context.user_name,
            gym_name=self.context.gym_name,
            bet_amount=progress.wallet_balance if progress else self.context.bet_amount,
            streak_before_loss=progress.streak_days if progress else 0,
            workout_time=self.context.window_label,
            missed_workouts=(progress.total_missed_workouts if progress else 0) + 1,
        )
        call_context.rationale = call_context.build_rationale()

        try:
            result = await self.notifier.place_motivational_call(
                self.context.phone_number, call_context
            )
        except CallError as e:
            self.call_error = str(e)
            logger.bind(day=self.day.isoformat()).warning(f"Motivational call failed: {e}")
            return
        except Exception as e:
            self.call_error = str(e)
            logger.bind(day=self.day.isoformat()).exception("Motivational call raised")
            return

        self.call_id = result.call_id
        await self.ledger.record_motivational_call(result.call_id)

    async def _penalize(self) -> None:
        if not self._advance(EscalationStage.PENALIZED):
            return
        self._finish()

        self.penalty = await asyncio.shield(self.ledger.apply_penalty(self.day))
        if self.penalty is None:
            # Settled before the deadline by a check-in this run never saw
            state = await self.ledger.day_state(self.day)
            if state.outcome == DayOutcome.CHECKED_IN and self.stage == EscalationStage.PENALIZED:
                self.stage = EscalationStage.COMPLETED
            return

        await self.notifier.notify(
            NotificationKind.PENALTY_APPLIED,
            {
                "penalty_amount": self.penalty.penalty_amount,
                "shopping_credit": self.penalty.shopping_credit,
                "new_balance": self.penalty.new_balance,
                "insufficient_balance": self.penalty.insufficient_balance,
            },
        )

    async def _on_arrived(self, check: PresenceCheck) -> None:
        await self.complete(source="geofence")

    async def complete(self, source: str = "geofence") -> CheckInRecord | None:
        """Finish the run after a confirmed arrival.

        Decided before the first await, so a stage timer due at the same
        instant becomes a no-op. Idempotent.

        Returns:
            The ledger record, or None if the run was not in an active stage
        """
        if self.stage not in ARRIVABLE_STAGES:
            return None
        self.stage = EscalationStage.COMPLETED
        self._finish()
        logger.bind(day=self.day.isoformat(), source=source).info("Escalation run completed")

        self.check_in = await asyncio.shield(self.ledger.record_check_in())
        if self.check_in.recorded:
            await self.notifier.notify(
                NotificationKind.CHECK_IN_SUCCESS,
                {"streak_days": self.check_in.streak_days, "source": source},
            )
        return self.check_in

    def cancel(self, reason: str = "") -> None:
        """Tear the run down without recording anything."""
        if self.stage.is_terminal:
            return
        self.stage = EscalationStage.CANCELLED
        self._finish(interrupt=True)
        logger.bind(day=self.day.isoformat(), reason=reason).info("Escalation run cancelled")

    def to_dict(self) -> dict:
        return {
            "day": self.day.isoformat(),
            "window_start": self.window_start.isoformat(),
            "stage": self.stage.value,
            "monitoring": bool(self.monitor and self.monitor.running),
            "call_id": self.call_id,
            "call_error": self.call_error,
            "penalty": self.penalty.penalty_amount if self.penalty else None,
        }


class EscalationScheduler:
    """Owns the single escalation run allowed per user."""

    def __init__(
        self,
        scheduler: DeadlineScheduler,
        ledger: LedgerGateway,
        notifier: NotificationGateway,
        source: PositionSource,
        poll_interval: timedelta = timedelta(minutes=5),
    ):
        self.scheduler = scheduler
        self.ledger = ledger
        self.notifier = notifier
        self.source = source
        self.poll_interval = poll_interval
        self.current_run: EscalationRun | None = None

    @property
    def active_run(self) -> EscalationRun | None:
        """The current run if it has not reached a terminal stage."""
        if self.current_run is None or self.current_run.is_terminal:
            return None
        return self.current_run

    def start_run(self, window_start: datetime, target: Target, context: RunContext) -> EscalationRun:
        """Arm a new run, cancelling any run that is still in progress."""
        if self.active_run is not None:
            self.active_run.cancel("superseded by a new run")

        run = EscalationRun(
            window_start=window_start,
            target=target,
            context=context,
            scheduler=self.scheduler,
            ledger=self.ledger,
            notifier=self.notifier,
            source=self.source,
            poll_interval=self.poll_interval,
        )
        run.arm()
        self.current_run = run
        return run

    def cancel(self, reason: str = "") -> None:
        if self.active_run is not None:
            self.active_run.cancel(reason)
