"""Workout window model and setup-string parsing."""

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo
from enum import Enum

from ..exceptions import SetupError

# Hourly slots offered by the setup wizard
PRESET_SLOTS = [f"{h:02d}:00 - {h + 1:02d}:00" for h in range(6, 22)]

START_NOW_TAG = "Current Time"
ONE_HOUR = timedelta(hours=1)

_RANGE_RE = re.compile(r"(\d{1,2}):(\d{2})\s*-\s*(\d{1,2}):(\d{2})")


class WindowMode(str, Enum):
    """How the workout window was chosen."""

    PRESET = "preset"
    CUSTOM = "custom"
    START_NOW = "start_now"  # activates immediately when created


def _minutes(t: time) -> int:
    return t.hour * 60 + t.minute


def _add_hour(t: time) -> time:
    total = (_minutes(t) + 60) % (24 * 60)
    return time(total // 60, total % 60)


@dataclass(frozen=True)
class WorkoutWindow:
    """Daily time range during which a gym check-in is expected."""

    start: time
    end: time
    mode: WindowMode = WindowMode.PRESET
    created_at: datetime | None = None  # START_NOW activation instant

    def __post_init__(self):
        if self.mode in (WindowMode.PRESET, WindowMode.START_NOW):
            if self.end != _add_hour(self.start):
                raise SetupError(
                    f"{self.mode.value} window must last exactly one hour: {self.label}"
                )
        elif _minutes(self.end) <= _minutes(self.start):
            raise SetupError(f"Window end must be after start: {self.label}")

    @classmethod
    def preset(cls, start_hour: int) -> "WorkoutWindow":
        return cls(start=time(start_hour, 0), end=time(start_hour + 1, 0), mode=WindowMode.PRESET)

    @classmethod
    def custom(cls, start: time, end: time) -> "WorkoutWindow":
        return cls(start=start, end=end, mode=WindowMode.CUSTOM)

    @classmethod
    def start_now(cls, now: datetime) -> "WorkoutWindow":
        """One-hour window beginning at ``now`` (minute resolution)."""
        start = time(now.hour, now.minute)
        return cls(start=start, end=_add_hour(start), mode=WindowMode.START_NOW, created_at=now)

    @property
    def label(self) -> str:
        return f"{self.start.strftime('%H:%M')} - {self.end.strftime('%H:%M')}"

    @property
    def duration(self) -> timedelta:
        minutes = (_minutes(self.end) - _minutes(self.start)) % (24 * 60)
        return timedelta(minutes=minutes)

    def start_on(self, day: date, tz: tzinfo | None) -> datetime:
        """Window start on a given calendar day."""
        return datetime.combine(day, self.start, tzinfo=tz)

    def next_start(self, now: datetime) -> datetime:
        """Next window start strictly after ``now`` (today or tomorrow)."""
        candidate = self.start_on(now.date(), now.tzinfo)
        if candidate <= now:
            candidate = self.start_on(now.date() + timedelta(days=1), now.tzinfo)
        return candidate

    def contains(self, moment: datetime) -> bool:
        """True if ``moment`` falls within the window on its own day (inclusive)."""
        start = self.start_on(moment.date(), moment.tzinfo)
        if moment < start:
            # Windows that wrap past midnight belong to the previous day
            start -= timedelta(days=1)
        return start <= moment <= start + self.duration

    def to_setup_string(self) -> str:
        """Render in the setup wizard's textual format."""
        if self.mode == WindowMode.START_NOW:
            return f"{START_NOW_TAG} ({self.label})"
        return self.label

    def to_dict(self) -> dict:
        return {
            "start": self.start.strftime("%H:%M"),
            "end": self.end.strftime("%H:%M"),
            "mode": self.mode.value,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "WorkoutWindow":
        created_at = None
        if data.get("created_at"):
            created_at = datetime.fromisoformat(data["created_at"])
        return cls(
            start=time.fromisoformat(data["start"]),
            end=time.fromisoformat(data["end"]),
            mode=WindowMode(data.get("mode", "preset")),
            created_at=created_at,
        )


def _parse_clock(hours: str, minutes: str) -> time:
    h, m = int(hours), int(minutes)
    if h == 24 and m < 60:
        # The wizard renders "23:30 + 1h" as "24:30"
        h = 0
    if not (0 <= h < 24 and 0 <= m < 60):
        raise SetupError(f"Invalid time of day: {hours}:{minutes}")
    return time(h, m)


def parse_workout_time(value: str, now: datetime | None = None) -> WorkoutWindow:
    """Parse the setup wizard's workout time string.

    Accepts a preset slot (``"18:00 - 19:00"``), a custom range
    (``"17:30 - 19:00"``) or a start-now tag
    (``"Current Time (14:05 - 15:05)"``). This is the only place the
    textual tag is inspected; everything downstream uses ``WindowMode``.

    Args:
        value: Raw workout time from the setup document
        now: Activation instant recorded for start-now windows

    Returns:
        Parsed workout window

    Raises:
        SetupError: If the string cannot be parsed
    """
    if not value or not value.strip():
        raise SetupError("Workout time is empty")

    match = _RANGE_RE.search(value)
    if not match:
        raise SetupError(f"Unrecognized workout time: {value!r}")

    start = _parse_clock(match.group(1), match.group(2))
    end = _parse_clock(match.group(3), match.group(4))

    if START_NOW_TAG in value:
        return WorkoutWindow(start=start, end=end, mode=WindowMode.START_NOW, created_at=now)

    label = f"{start.strftime('%H:%M')} - {end.strftime('%H:%M')}"
    if label in PRESET_SLOTS:
        return WorkoutWindow(start=start, end=end, mode=WindowMode.PRESET)
    return WorkoutWindow(start=start, end=end, mode=WindowMode.CUSTOM)
