"""Pytest configuration and fixtures."""

import asyncio
import math
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from stay_hard.clients.base import BasePositionProvider
from stay_hard.config import Settings
from stay_hard.db import IdentityRepository, SetupRepository, init_db
from stay_hard.gateways.ledger import LedgerGateway
from stay_hard.gateways.notifications import NotificationKind
from stay_hard.models.call import CallContext, CallResult
from stay_hard.models.geo import GeoPoint, PositionReading
from stay_hard.models.user import GymLocation, SetupPreferences, UserIdentity
from stay_hard.models.window import WorkoutWindow
from stay_hard.services.workflow import WorkflowEngine
from stay_hard.utils.geo import EARTH_RADIUS_METERS

GYM = GeoPoint(40.7128, -74.0060)
METERS_PER_DEGREE_LAT = EARTH_RADIUS_METERS * math.pi / 180


def offset_north(point: GeoPoint, meters: float) -> GeoPoint:
    """Point ``meters`` due north of ``point``."""
    return GeoPoint(point.lat + meters / METERS_PER_DEGREE_LAT, point.lng)


def at(hour: int, minute: int = 0, day: int = 18) -> datetime:
    """An instant on October ``day`` 2026, UTC."""
    return datetime(2026, 10, day, hour, minute, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime):
        self.current = start

    def now(self) -> datetime:
        return self.current

    def set(self, moment: datetime) -> None:
        self.current = moment

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


class ScriptedProvider(BasePositionProvider):
    """Position provider whose answer the test controls."""

    def __init__(self, clock: FakeClock, point: GeoPoint | None = None):
        self.clock = clock
        self.point = point
        self.error: Exception | None = None
        self.reads = 0
        # When set, reads block until the event fires
        self.gate: asyncio.Event | None = None
        self.entered = asyncio.Event()

    @property
    def source_name(self) -> str:
        return "scripted"

    async def read(self) -> PositionReading:
        self.reads += 1
        self.entered.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return PositionReading(
            point=self.point,
            accuracy=5.0,
            timestamp=self.clock.now(),
            source=self.source_name,
        )


class RecordingNotifier:
    """Notification gateway that records alerts and calls."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.notifications: list[tuple[NotificationKind, dict, datetime]] = []
        self.calls: list[tuple[str, CallContext, datetime]] = []
        self.call_error: Exception | None = None

    async def notify(self, kind: NotificationKind, payload: dict) -> None:
        self.notifications.append((kind, payload, self.clock.now()))

    async def place_motivational_call(self, phone_number: str, context: CallContext) -> CallResult:
        self.calls.append((phone_number, context, self.clock.now()))
        if self.call_error is not None:
            raise self.call_error
        return CallResult(call_id=f"call-{len(self.calls)}")

    def kinds(self) -> list[NotificationKind]:
        return [kind for kind, _, _ in self.notifications]

    def timeline(self) -> list[tuple[NotificationKind, str]]:
        return [(kind, moment.strftime("%H:%M")) for kind, _, moment in self.notifications]


async def advance_to(clock: FakeClock, scheduler, moment: datetime, step: timedelta = timedelta(minutes=1)):
    """Walk the clock forward in steps, dispatching due timers at each one."""
    await scheduler.run_pending()
    while clock.now() < moment:
        clock.set(min(clock.now() + step, moment))
        await scheduler.run_pending()


@pytest.fixture
def temp_db_path():
    """Create a temporary database path."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "test.db"


@pytest.fixture
def clock():
    return FakeClock(at(17, 0))


@pytest.fixture
def notifier(clock):
    return RecordingNotifier(clock)


@pytest.fixture
def provider(clock):
    """Starts 5 km away from the gym."""
    return ScriptedProvider(clock, offset_north(GYM, 5000))


@pytest.fixture
def test_settings(temp_db_path):
    return Settings(
        data_dir=temp_db_path.parent,
        timezone="UTC",
        retell_api_key=None,
        retell_agent_id=None,
        log_file=None,
    )


@pytest.fixture
async def ledger(temp_db_path, clock):
    """Ledger with a $100 wallet."""
    await init_db(temp_db_path)
    gateway = LedgerGateway(temp_db_path, clock=clock)
    await gateway.initialize_wallet(100)
    return gateway


@pytest.fixture
def sample_setup():
    """Gym at GYM with an 18:00 - 19:00 window."""
    return SetupPreferences(
        gym=GymLocation(name="Iron Temple", lat=GYM.lat, lng=GYM.lng),
        workout_window=WorkoutWindow.preset(18),
        phone_number="+15551234567",
        bet_amount=100,
        created_at=at(9, 0),
    )


@pytest.fixture
async def engine(temp_db_path, test_settings, clock, provider, notifier, ledger, sample_setup):
    """Initialized engine for jane@example.com with a $100 wallet."""
    await IdentityRepository(temp_db_path).save(
        UserIdentity(email="jane@example.com", login_time=at(9, 0))
    )
    await SetupRepository(temp_db_path).save(sample_setup)

    workflow = WorkflowEngine(
        config=test_settings,
        db_path=temp_db_path,
        clock=clock,
        provider=provider,
        notifier=notifier,
    )
    assert await workflow.init()
    yield workflow
    await workflow.shutdown()
