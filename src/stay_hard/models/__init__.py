"""Data models for stay-hard."""

from .call import CallContext, CallLogEntry, CallResult
from .geo import GeoPoint, PositionReading, Target
from .progress import (
    CheckInRecord,
    DayCycleState,
    DayOutcome,
    PenaltyPreview,
    PenaltyResult,
    Transaction,
    TransactionType,
    UserProgress,
    WalletSummary,
)
from .user import GymLocation, SetupPreferences, UserIdentity
from .window import WindowMode, WorkoutWindow, parse_workout_time

__all__ = [
    "CallContext",
    "CallLogEntry",
    "CallResult",
    "CheckInRecord",
    "DayCycleState",
    "DayOutcome",
    "GeoPoint",
    "GymLocation",
    "PenaltyPreview",
    "PenaltyResult",
    "PositionReading",
    "SetupPreferences",
    "Target",
    "Transaction",
    "TransactionType",
    "UserIdentity",
    "UserProgress",
    "WalletSummary",
    "WindowMode",
    "WorkoutWindow",
    "parse_workout_time",
]
