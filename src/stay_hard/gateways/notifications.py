"""Notification and voice-call gateway."""

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Protocol, runtime_checkable

from loguru import logger

from ..clients.retell.client import RetellClient
from ..db.repositories import CallLogRepository
from ..exceptions import CallError
from ..models.call import CallContext, CallLogEntry, CallResult


class NotificationKind(str, Enum):
    """Alerts the engine can raise."""

    WORKOUT_REMINDER = "workout_reminder"
    PENALTY_WARNING = "penalty_warning"
    MOTIVATIONAL_CALL_NOTICE = "motivational_call_notice"
    PENALTY_APPLIED = "penalty_applied"
    CHECK_IN_SUCCESS = "check_in_success"


@dataclass
class Notification:
    """A rendered alert."""

    kind: NotificationKind
    title: str
    body: str
    payload: dict = field(default_factory=dict)
    require_interaction: bool = True
    created_at: datetime = field(default_factory=lambda: datetime.now().astimezone())

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "title": self.title,
            "body": self.body,
            "payload": self.payload,
            "require_interaction": self.require_interaction,
            "created_at": self.created_at.isoformat(),
        }


def _money(amount) -> str:
    return f"${float(amount):g}"


def render_notification(kind: NotificationKind, payload: dict) -> Notification:
    """Build the title and body for an alert."""
    user_name = payload.get("user_name", "there")

    if kind == NotificationKind.WORKOUT_REMINDER:
        title = f"Workout Time, {user_name}!"
        body = (
            f"It's time for your workout at {payload.get('gym_name', 'the gym')}. "
            f"Your session starts at {payload.get('start', 'now')}."
        )
    elif kind == NotificationKind.PENALTY_WARNING:
        title = "Warning: Bet at Risk!"
        body = (
            f"You'll lose {_money(payload.get('penalty_amount', 0))} if you don't check in "
            f"within {payload.get('minutes_remaining')} minutes. Clock's ticking!"
        )
    elif kind == NotificationKind.MOTIVATIONAL_CALL_NOTICE:
        title = "Motivational Call Incoming"
        body = (
            f"Hey {user_name}, you're about to receive a motivational call. "
            "Don't give up on your goals!"
        )
    elif kind == NotificationKind.PENALTY_APPLIED:
        title = "Bet Penalty Applied"
        body = (
            f"{_money(payload.get('penalty_amount', 0))} deducted from your bet. "
            f"{_money(payload.get('shopping_credit', 0))} added to shopping credits. "
            "No one's coming to save you."
        )
    else:
        title = "Workout Complete!"
        body = (
            f"Great job! You've maintained your {payload.get('streak_days', 0)}-day streak. "
            "Keep pushing!"
        )

    return Notification(
        kind=kind,
        title=title,
        body=body,
        payload=dict(payload),
        require_interaction=kind != NotificationKind.CHECK_IN_SUCCESS,
    )


class NotificationChannel(Protocol):
    """Somewhere alerts are delivered."""

    name: str

    async def deliver(self, notification: Notification) -> None:
        ...


class LogChannel:
    """Writes alerts to the application log."""

    name = "log"

    async def deliver(self, notification: Notification) -> None:
        logger.bind(kind=notification.kind.value).info(
            f"{notification.title} {notification.body}"
        )


class HistoryChannel:
    """Keeps the most recent alerts in memory for the UI."""

    name = "history"

    def __init__(self, max_items: int = 50):
        self._items: deque[Notification] = deque(maxlen=max_items)

    async def deliver(self, notification: Notification) -> None:
        self._items.appendleft(notification)

    def recent(self, limit: int = 20) -> list[Notification]:
        return list(self._items)[:limit]

    def clear(self) -> None:
        self._items.clear()


@runtime_checkable
class NotificationGateway(Protocol):
    """Contract the engine uses to alert and call the user."""

    async def notify(self, kind: NotificationKind, payload: dict) -> None:
        """Show an alert. Never raises."""
        ...

    async def place_motivational_call(self, phone_number: str, context: CallContext) -> CallResult:
        """Place an outbound call.

        Raises:
            CallError: If the call could not be placed
        """
        ...


class DefaultNotificationGateway:
    """Delivers alerts to channels and calls through Retell AI."""

    def __init__(
        self,
        channels: list[NotificationChannel] | None = None,
        caller: RetellClient | None = None,
        call_log: CallLogRepository | None = None,
    ):
        self.channels = channels if channels is not None else [LogChannel()]
        self.caller = caller
        self.call_log = call_log

    async def notify(self, kind: NotificationKind, payload: dict) -> None:
        notification = render_notification(kind, payload)
        for channel in self.channels:
            try:
                await channel.deliver(notification)
            except Exception:
                logger.bind(channel=channel.name, kind=kind.value).exception(
                    "Notification delivery failed"
                )

    async def place_motivational_call(self, phone_number: str, context: CallContext) -> CallResult:
        if self.caller is None:
            error = CallError("No voice provider configured")
            await self._log_attempt(phone_number, context, None, str(error))
            raise error

        try:
            result = await self.caller.create_phone_call(phone_number, context)
        except CallError as e:
            await self._log_attempt(phone_number, context, None, str(e))
            raise

        await self._log_attempt(phone_number, context, result, None)
        return result

    async def _log_attempt(
        self,
        phone_number: str,
        context: CallContext,
        result: CallResult | None,
        error: str | None,
    ) -> None:
        if self.call_log is None:
            return
        try:
            await self.call_log.add(
                CallLogEntry(
                    phone_number=phone_number,
                    context=context.to_dict(),
                    success=result is not None,
                    call_id=result.call_id if result else None,
                    error=error,
                )
            )
        except Exception:
            logger.exception("Failed to write call log")
