"""Tests for alert rendering and the notification gateway."""

import pytest

from stay_hard.db import CallLogRepository, init_db
from stay_hard.exceptions import CallError
from stay_hard.gateways.notifications import (
    DefaultNotificationGateway,
    HistoryChannel,
    NotificationKind,
    render_notification,
)
from stay_hard.models.call import CallContext, CallResult


class TestRenderNotification:
    """Alert titles and bodies."""

    def test_reminder(self):
        n = render_notification(
            NotificationKind.WORKOUT_REMINDER,
            {"user_name": "jane", "gym_name": "Iron Temple", "start": "18:00"},
        )
        assert n.title == "Workout Time, jane!"
        assert "Iron Temple" in n.body
        assert "18:00" in n.body
        assert n.require_interaction

    def test_warning_amount_and_minutes(self):
        n = render_notification(
            NotificationKind.PENALTY_WARNING,
            {"penalty_amount": 10.0, "minutes_remaining": 45},
        )
        assert "$10" in n.body
        assert "45 minutes" in n.body

    def test_penalty_applied(self):
        n = render_notification(
            NotificationKind.PENALTY_APPLIED,
            {"penalty_amount": 10.0, "shopping_credit": 20.0},
        )
        assert "$10 deducted" in n.body
        assert "$20 added" in n.body

    def test_success_does_not_require_interaction(self):
        n = render_notification(NotificationKind.CHECK_IN_SUCCESS, {"streak_days": 4})
        assert "4-day streak" in n.body
        assert not n.require_interaction


class FakeCaller:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.calls = []

    async def create_phone_call(self, phone_number: str, context: CallContext) -> CallResult:
        self.calls.append(phone_number)
        if self.error is not None:
            raise self.error
        return CallResult(call_id="call_1")


class BrokenChannel:
    name = "broken"

    async def deliver(self, notification):
        raise RuntimeError("push service down")


@pytest.fixture
def call_context():
    return CallContext(user_name="jane", gym_name="Iron Temple", bet_amount=100, streak_before_loss=3)


class TestDefaultNotificationGateway:
    """Channel fan-out and call logging."""

    @pytest.mark.asyncio
    async def test_failing_channel_does_not_block_others(self):
        history = HistoryChannel()
        gateway = DefaultNotificationGateway(channels=[BrokenChannel(), history])

        await gateway.notify(NotificationKind.CHECK_IN_SUCCESS, {"streak_days": 1})

        assert [n.kind for n in history.recent()] == [NotificationKind.CHECK_IN_SUCCESS]

    @pytest.mark.asyncio
    async def test_history_newest_first_and_bounded(self):
        history = HistoryChannel(max_items=2)
        gateway = DefaultNotificationGateway(channels=[history])

        for kind in (
            NotificationKind.WORKOUT_REMINDER,
            NotificationKind.PENALTY_WARNING,
            NotificationKind.PENALTY_APPLIED,
        ):
            await gateway.notify(kind, {})

        assert [n.kind for n in history.recent()] == [
            NotificationKind.PENALTY_APPLIED,
            NotificationKind.PENALTY_WARNING,
        ]

    @pytest.mark.asyncio
    async def test_successful_call_is_logged(self, temp_db_path, call_context):
        await init_db(temp_db_path)
        call_log = CallLogRepository(temp_db_path)
        gateway = DefaultNotificationGateway(channels=[], caller=FakeCaller(), call_log=call_log)

        result = await gateway.place_motivational_call("+15551234567", call_context)

        assert result.call_id == "call_1"
        entries = await call_log.recent()
        assert len(entries) == 1
        assert entries[0].success
        assert entries[0].call_id == "call_1"
        assert entries[0].context["user_name"] == "jane"

    @pytest.mark.asyncio
    async def test_failed_call_is_logged_and_raised(self, temp_db_path, call_context):
        await init_db(temp_db_path)
        call_log = CallLogRepository(temp_db_path)
        caller = FakeCaller(error=CallError("Retell AI API error: 500"))
        gateway = DefaultNotificationGateway(channels=[], caller=caller, call_log=call_log)

        with pytest.raises(CallError):
            await gateway.place_motivational_call("+15551234567", call_context)

        entries = await call_log.recent()
        assert not entries[0].success
        assert entries[0].error == "Retell AI API error: 500"

    @pytest.mark.asyncio
    async def test_no_caller_configured(self, call_context):
        gateway = DefaultNotificationGateway(channels=[])

        with pytest.raises(CallError, match="No voice provider"):
            await gateway.place_motivational_call("+15551234567", call_context)
