"""Scenario tests for the daily escalation run."""

import asyncio
from dataclasses import replace
from datetime import date

import pytest

from conftest import GYM, RecordingNotifier, ScriptedProvider, advance_to, at, offset_north
from stay_hard.exceptions import CallError
from stay_hard.gateways.notifications import NotificationKind
from stay_hard.models.progress import DayOutcome
from stay_hard.models.window import WorkoutWindow
from stay_hard.services.escalation import EscalationStage
from stay_hard.services.workflow import WorkflowEngine

TODAY = date(2026, 10, 18)


class TestNoArrival:
    """18:00 - 19:00 window where the user never shows up."""

    @pytest.mark.asyncio
    async def test_full_escalation_timeline(self, engine, clock, notifier):
        await engine.start()
        await advance_to(clock, engine.scheduler, at(19, 30))

        assert notifier.timeline() == [
            (NotificationKind.WORKOUT_REMINDER, "18:00"),
            (NotificationKind.PENALTY_WARNING, "18:15"),
            (NotificationKind.MOTIVATIONAL_CALL_NOTICE, "18:30"),
            (NotificationKind.PENALTY_WARNING, "18:45"),
            (NotificationKind.PENALTY_APPLIED, "19:00"),
        ]
        warnings = [p for k, p, _ in notifier.notifications if k == NotificationKind.PENALTY_WARNING]
        assert [w["minutes_remaining"] for w in warnings] == [45, 15]
        assert warnings[0]["penalty_amount"] == 10

    @pytest.mark.asyncio
    async def test_penalty_and_call_happen_once(self, engine, clock, notifier):
        await engine.start()
        await advance_to(clock, engine.scheduler, at(19, 30))

        assert len(notifier.calls) == 1
        phone, context, placed_at = notifier.calls[0]
        assert phone == "+15551234567"
        assert placed_at == at(18, 30)
        assert context.user_name == "jane"
        assert context.gym_name == "Iron Temple"
        assert context.rationale

        progress = await engine.ledger.get_progress()
        assert progress.wallet_balance == 90
        assert progress.shopping_balance == 20
        assert progress.streak_days == 0
        assert progress.total_motivational_calls == 1
        assert progress.last_call_id == "call-1"

        run = engine.escalation.current_run
        assert run.stage == EscalationStage.PENALIZED
        assert not run.monitor.running
        assert (await engine.ledger.day_state(TODAY)).outcome == DayOutcome.PENALIZED

    @pytest.mark.asyncio
    async def test_monitor_polls_every_five_minutes(self, engine, clock, provider):
        await engine.start()
        await advance_to(clock, engine.scheduler, at(19, 30))

        # 18:00 through 18:55
        assert engine.escalation.current_run.monitor.polls == 12
        assert provider.reads == 12

    @pytest.mark.asyncio
    async def test_call_failure_does_not_stop_escalation(self, engine, clock, notifier):
        notifier.call_error = CallError("Retell AI API error: 500")
        await engine.start()
        await advance_to(clock, engine.scheduler, at(19, 30))

        run = engine.escalation.current_run
        assert run.stage == EscalationStage.PENALIZED
        assert run.call_error == "Retell AI API error: 500"
        assert notifier.kinds()[-1] == NotificationKind.PENALTY_APPLIED
        progress = await engine.ledger.get_progress()
        assert progress.total_motivational_calls == 0
        assert progress.wallet_balance == 90

    @pytest.mark.asyncio
    async def test_position_failures_are_skipped(self, engine, clock, provider):
        provider.error = PermissionError("location denied")
        await engine.start()
        await advance_to(clock, engine.scheduler, at(18, 30))

        monitor = engine.escalation.current_run.monitor
        assert monitor.running
        assert monitor.failures == monitor.polls == 7

    @pytest.mark.asyncio
    async def test_next_day_is_armed(self, engine, clock):
        await engine.start()
        await advance_to(clock, engine.scheduler, at(19, 30))

        assert engine.daily.next_window_at == at(18, 0, day=19)


class TestArrival:
    """User reaches the gym during the window."""

    @pytest.mark.asyncio
    async def test_arrival_at_1820(self, engine, clock, notifier, provider):
        await engine.start()
        await advance_to(clock, engine.scheduler, at(18, 18))
        provider.point = offset_north(GYM, 5)
        await advance_to(clock, engine.scheduler, at(19, 30))

        assert notifier.timeline() == [
            (NotificationKind.WORKOUT_REMINDER, "18:00"),
            (NotificationKind.PENALTY_WARNING, "18:15"),
            (NotificationKind.CHECK_IN_SUCCESS, "18:20"),
        ]
        assert notifier.calls == []

        run = engine.escalation.current_run
        assert run.stage == EscalationStage.COMPLETED
        assert run.check_in.recorded
        assert not run.monitor.running

        progress = await engine.ledger.get_progress()
        assert progress.streak_days == 1
        assert progress.wallet_balance == 100
        assert progress.last_check_in_at == at(18, 20)

    @pytest.mark.asyncio
    async def test_outside_auto_radius_is_not_arrival(self, engine, clock, provider):
        provider.point = offset_north(GYM, 25)
        await engine.start()
        await advance_to(clock, engine.scheduler, at(18, 40))

        assert engine.escalation.current_run.stage == EscalationStage.MOTIVATIONAL_CALL_PLACED

    @pytest.mark.asyncio
    async def test_late_arrival_counts_before_penalty(self, engine, clock, provider):
        await engine.start()
        await advance_to(clock, engine.scheduler, at(18, 52))
        provider.point = GYM
        await advance_to(clock, engine.scheduler, at(19, 30))

        assert engine.escalation.current_run.stage == EscalationStage.COMPLETED
        assert (await engine.ledger.get_progress()).wallet_balance == 100

    @pytest.mark.asyncio
    async def test_completion_beats_due_penalty(self, engine, clock, notifier):
        await engine.start()
        await advance_to(clock, engine.scheduler, at(18, 59))
        run = engine.escalation.current_run

        clock.set(at(19, 0))
        engine.scheduler.fire_due()
        record = await run.complete(source="geofence")
        await engine.scheduler.run_pending()

        assert record.recorded
        assert run.stage == EscalationStage.COMPLETED
        assert run.penalty is None
        assert NotificationKind.PENALTY_APPLIED not in notifier.kinds()
        assert (await engine.ledger.get_progress()).wallet_balance == 100

    @pytest.mark.asyncio
    async def test_complete_is_idempotent(self, engine, clock):
        await engine.start()
        await advance_to(clock, engine.scheduler, at(18, 5))
        run = engine.escalation.current_run

        first = await run.complete()
        second = await run.complete()

        assert first.recorded
        assert second is None
        assert (await engine.ledger.get_progress()).total_sessions == 1


class TestCatchUp:
    """Deadlines that passed while the process was suspended."""

    @pytest.mark.asyncio
    async def test_wake_after_window_runs_every_stage_in_order(self, engine, clock, notifier):
        await engine.start()

        clock.set(at(19, 5))
        await engine.scheduler.run_pending()

        assert notifier.kinds() == [
            NotificationKind.WORKOUT_REMINDER,
            NotificationKind.PENALTY_WARNING,
            NotificationKind.MOTIVATIONAL_CALL_NOTICE,
            NotificationKind.PENALTY_WARNING,
            NotificationKind.PENALTY_APPLIED,
        ]
        warnings = [p for k, p, _ in notifier.notifications if k == NotificationKind.PENALTY_WARNING]
        assert [w["minutes_remaining"] for w in warnings] == [45, 15]
        assert len(notifier.calls) == 1

        run = engine.escalation.current_run
        assert run.stage == EscalationStage.PENALIZED
        assert run.call_id == "call-1"
        progress = await engine.ledger.get_progress()
        assert progress.wallet_balance == 90
        assert progress.total_motivational_calls == 1

        # A second pass finds nothing left to do
        await engine.scheduler.run_pending()
        assert notifier.kinds().count(NotificationKind.PENALTY_APPLIED) == 1
        assert len(notifier.calls) == 1

    @pytest.mark.asyncio
    async def test_wake_mid_window_resumes_at_current_stage(self, engine, clock, notifier):
        await engine.start()

        clock.set(at(18, 20))
        await engine.scheduler.run_pending()

        run = engine.escalation.current_run
        assert run.stage == EscalationStage.WARNING_1
        assert notifier.kinds().count(NotificationKind.PENALTY_WARNING) == 1
        assert notifier.calls == []


class TestCheckInFromAnotherProcess:
    """A second engine on the same database settles the day."""

    @pytest.mark.asyncio
    async def test_running_engine_stops_escalating(
        self, engine, clock, notifier, temp_db_path, test_settings
    ):
        await engine.start()
        await advance_to(clock, engine.scheduler, at(18, 10))

        other_notifier = RecordingNotifier(clock)
        other = WorkflowEngine(
            config=test_settings,
            db_path=temp_db_path,
            clock=clock,
            provider=ScriptedProvider(clock, GYM),
            notifier=other_notifier,
        )
        assert await other.init()
        try:
            result = await other.manual_check_in()
        finally:
            await other.shutdown()
        assert result.success
        assert other_notifier.kinds() == [NotificationKind.CHECK_IN_SUCCESS]

        await advance_to(clock, engine.scheduler, at(19, 30))

        assert notifier.timeline() == [(NotificationKind.WORKOUT_REMINDER, "18:00")]
        assert notifier.calls == []
        run = engine.escalation.current_run
        assert run.stage == EscalationStage.COMPLETED
        assert not run.monitor.running
        assert run.penalty is None
        assert (await engine.ledger.get_progress()).wallet_balance == 100
        assert (await engine.ledger.day_state(TODAY)).outcome == DayOutcome.CHECKED_IN

    @pytest.mark.asyncio
    async def test_check_in_just_before_penalty(self, engine, clock, notifier):
        await engine.start()
        await advance_to(clock, engine.scheduler, at(18, 59))
        assert len(notifier.calls) == 1

        # Recorded straight on the ledger, as another process would
        record = await engine.ledger.record_check_in()
        assert record.recorded

        await advance_to(clock, engine.scheduler, at(19, 30))

        assert NotificationKind.PENALTY_APPLIED not in notifier.kinds()
        assert engine.escalation.current_run.stage == EscalationStage.COMPLETED
        assert (await engine.ledger.get_progress()).wallet_balance == 100


class TestReadInFlight:
    """Position reads that finish after the run was torn down."""

    @pytest.mark.asyncio
    async def test_cancel_discards_arrival(self, engine, clock, notifier, provider):
        await engine.start()
        await advance_to(clock, engine.scheduler, at(18, 4))
        run = engine.escalation.current_run

        provider.gate = asyncio.Event()
        provider.entered.clear()
        clock.set(at(18, 5))
        engine.scheduler.fire_due()
        await provider.entered.wait()

        run.cancel("test teardown")
        provider.point = GYM
        provider.gate.set()
        await engine.scheduler.drain()

        assert run.stage == EscalationStage.CANCELLED
        assert not run.monitor.arrived
        assert run.check_in is None
        assert NotificationKind.CHECK_IN_SUCCESS not in notifier.kinds()
        progress = await engine.ledger.get_progress()
        assert progress.total_sessions == 0
        assert progress.streak_days == 0
        assert (await engine.ledger.day_state(TODAY)).outcome == DayOutcome.PENDING


class TestDailyCycle:
    """Window arming across days."""

    @pytest.mark.asyncio
    async def test_stop_cancels_active_run(self, engine, clock, notifier):
        await engine.start()
        await advance_to(clock, engine.scheduler, at(18, 10))
        run = engine.escalation.current_run

        engine.stop()
        await advance_to(clock, engine.scheduler, at(19, 30))

        assert run.stage == EscalationStage.CANCELLED
        assert not run.monitor.running
        assert notifier.kinds() == [NotificationKind.WORKOUT_REMINDER]
        assert engine.scheduler.pending() == []
        assert (await engine.ledger.get_progress()).wallet_balance == 100

    @pytest.mark.asyncio
    async def test_restart_keeps_single_window_timer(self, engine):
        await engine.start()
        await engine.start()

        names = [h.name for h in engine.scheduler.pending()]
        assert names.count("workout-window") == 1
        assert names.count("midnight") == 1

    @pytest.mark.asyncio
    async def test_settled_day_is_skipped(self, engine, clock, notifier):
        await engine.ledger.record_check_in(at=at(17, 30))
        await engine.start()
        await advance_to(clock, engine.scheduler, at(19, 30))

        assert notifier.notifications == []
        assert engine.escalation.current_run is None
        assert engine.daily.next_window_at == at(18, 0, day=19)

    @pytest.mark.asyncio
    async def test_start_now_window_starts_immediately(self, engine, clock, notifier):
        engine.setup = replace(engine.setup, workout_window=WorkoutWindow.start_now(clock.now()))
        await engine.start()
        await engine.scheduler.run_pending()

        run = engine.escalation.current_run
        assert run.window_start == at(17, 0)
        assert run.stage == EscalationStage.ACTIVE
        assert notifier.timeline() == [(NotificationKind.WORKOUT_REMINDER, "17:00")]
        assert engine.daily.next_window_at == at(17, 0, day=19)

    @pytest.mark.asyncio
    async def test_midnight_resets_streak_after_missed_day(self, engine, clock):
        clock.set(at(23, 0, day=17))
        await engine.ledger.record_check_in(at=at(18, 0, day=15))
        await engine.ledger.record_check_in(at=at(18, 0, day=16))

        await engine.start()
        await advance_to(clock, engine.scheduler, at(0, 30, day=18))

        progress = await engine.ledger.get_progress()
        assert progress.streak_days == 0
        assert progress.last_missed_date == date(2026, 10, 17)
        assert engine.daily.last_reconciled == TODAY

    @pytest.mark.asyncio
    async def test_midnight_keeps_streak_after_check_in(self, engine, clock):
        clock.set(at(23, 0, day=17))
        await engine.ledger.record_check_in(at=at(18, 0, day=16))
        await engine.ledger.record_check_in(at=at(18, 0, day=17))

        await engine.start()
        await advance_to(clock, engine.scheduler, at(0, 30, day=18))

        assert (await engine.ledger.get_progress()).streak_days == 2
