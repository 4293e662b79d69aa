"""Error types raised by the accountability engine."""

from enum import Enum


class StayHardError(Exception):
    """Base class for all stay-hard errors."""


class SetupError(StayHardError, ValueError):
    """Setup documents or workout windows are malformed."""


class PositionCause(str, Enum):
    """Why a position reading could not be produced."""

    PERMISSION_DENIED = "permission_denied"
    UNSUPPORTED = "unsupported"
    TIMEOUT = "timeout"
    PROVIDER_ERROR = "provider_error"


class PositionUnavailable(StayHardError):
    """A position reading could not be obtained."""

    def __init__(self, cause: PositionCause, message: str = ""):
        self.cause = cause
        self.message = message or cause.value.replace("_", " ")
        super().__init__(f"Position unavailable ({cause.value}): {self.message}")


class CallError(StayHardError):
    """An outbound motivational call could not be placed."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class InsufficientBalance(StayHardError):
    """A wallet operation needs more funds than are available."""


class AlreadyCheckedInToday(StayHardError):
    """A check-in was already recorded for this calendar day."""


class CheckInError(StayHardError):
    """A manual check-in was rejected.

    ``distance_meters`` is set when the position was read but was too far
    from the gym; ``cause`` is set when no position could be read.
    """

    def __init__(
        self,
        message: str,
        distance_meters: float | None = None,
        cause: PositionCause | None = None,
    ):
        self.distance_meters = distance_meters
        self.cause = cause
        super().__init__(message)


class ConcurrentUpdateError(StayHardError):
    """The progress row changed between read and write."""
