"""Contracts into the ledger and notification collaborators."""

from .ledger import LedgerGateway
from .notifications import (
    DefaultNotificationGateway,
    HistoryChannel,
    LogChannel,
    Notification,
    NotificationChannel,
    NotificationGateway,
    NotificationKind,
    render_notification,
)

__all__ = [
    "DefaultNotificationGateway",
    "HistoryChannel",
    "LedgerGateway",
    "LogChannel",
    "Notification",
    "NotificationChannel",
    "NotificationGateway",
    "NotificationKind",
    "render_notification",
]
