"""Data access layer for stay-hard."""

import json
from datetime import date, datetime
from pathlib import Path

import aiosqlite

from ..exceptions import ConcurrentUpdateError
from ..models.call import CallLogEntry
from ..models.progress import (
    DayCycleState,
    DayOutcome,
    Transaction,
    TransactionType,
    UserProgress,
)
from ..models.user import GymLocation, SetupPreferences, UserIdentity
from ..models.window import WorkoutWindow
from .engine import get_db_path

# History caps
MAX_TRANSACTIONS = 100
MAX_CALL_LOGS = 50


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class IdentityRepository:
    """Repository for the signed-in user."""

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path or get_db_path()

    async def get(self) -> UserIdentity | None:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute("SELECT * FROM identity WHERE id = 1")
            row = await cursor.fetchone()
            if row is None:
                return None
            return UserIdentity(email=row["email"], login_time=_parse_dt(row["login_time"]))

    async def save(self, identity: UserIdentity) -> None:
        """Replace the signed-in user."""
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                "INSERT OR REPLACE INTO identity (id, email, login_time) VALUES (1, ?, ?)",
                (identity.email, _iso(identity.login_time)),
            )
            await db.commit()

    async def delete(self) -> None:
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("DELETE FROM identity")
            await db.commit()


class SetupRepository:
    """Repository for setup wizard preferences."""

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path or get_db_path()

    async def get(self) -> SetupPreferences | None:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute("SELECT * FROM setup WHERE id = 1")
            row = await cursor.fetchone()
            if row is None:
                return None
            return self._row_to_setup(row)

    async def save(self, setup: SetupPreferences) -> None:
        """Create or replace the setup document."""
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """
                INSERT OR REPLACE INTO setup
                (id, gym_name, gym_lat, gym_lng, workout_window, phone_number,
                 bet_amount, created_at)
                VALUES (1, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    setup.gym.name,
                    setup.gym.lat,
                    setup.gym.lng,
                    json.dumps(setup.workout_window.to_dict()),
                    setup.phone_number,
                    setup.bet_amount,
                    _iso(setup.created_at or datetime.now().astimezone()),
                ),
            )
            await db.commit()

    def _row_to_setup(self, row: aiosqlite.Row) -> SetupPreferences:
        """Convert a database row to SetupPreferences."""
        return SetupPreferences(
            gym=GymLocation(name=row["gym_name"], lat=row["gym_lat"], lng=row["gym_lng"]),
            workout_window=WorkoutWindow.from_dict(json.loads(row["workout_window"])),
            phone_number=row["phone_number"],
            bet_amount=row["bet_amount"],
            created_at=_parse_dt(row["created_at"]),
        )


class ProgressRepository:
    """Repository for streak and wallet state.

    Writes go through ``save`` inside a write transaction and are
    rejected when the row's version moved since it was loaded.
    """

    _FIELDS = [
        "streak_days",
        "total_sessions",
        "last_check_in_at",
        "wallet_balance",
        "shopping_balance",
        "total_deposited",
        "total_penalties",
        "total_shopping_credits",
        "total_shopping_spent",
        "total_transfer_fees",
        "last_penalty_at",
        "last_missed_date",
        "total_missed_workouts",
        "total_motivational_calls",
        "last_call_id",
    ]

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path or get_db_path()

    async def get(self) -> UserProgress | None:
        """Get the current progress snapshot."""
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            return await self.load(db)

    async def load(self, db: aiosqlite.Connection) -> UserProgress | None:
        """Read progress on an open connection."""
        cursor = await db.execute("SELECT * FROM progress WHERE id = 1")
        row = await cursor.fetchone()
        if row is None:
            return None
        data = {name: row[name] for name in self._FIELDS}
        return UserProgress.from_dict(data, version=row["version"])

    async def create(self, db: aiosqlite.Connection, progress: UserProgress) -> None:
        """Insert a fresh progress row, replacing any existing one."""
        data = progress.to_dict()
        columns = ", ".join(self._FIELDS)
        placeholders = ", ".join("?" for _ in self._FIELDS)
        await db.execute(
            f"INSERT OR REPLACE INTO progress (id, {columns}, version) VALUES (1, {placeholders}, 0)",
            [data[name] for name in self._FIELDS],
        )
        progress.version = 0

    async def save(self, db: aiosqlite.Connection, progress: UserProgress) -> None:
        """Write progress if nobody else did since it was loaded.

        Raises:
            ConcurrentUpdateError: If the stored version differs
        """
        data = progress.to_dict()
        assignments = ", ".join(f"{name} = ?" for name in self._FIELDS)
        cursor = await db.execute(
            f"UPDATE progress SET {assignments}, version = version + 1 WHERE id = 1 AND version = ?",
            [data[name] for name in self._FIELDS] + [progress.version],
        )
        if cursor.rowcount != 1:
            raise ConcurrentUpdateError(
                f"Progress changed since version {progress.version} was read"
            )
        progress.version += 1


class DayCycleRepository:
    """Repository for per-day outcomes."""

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path or get_db_path()

    async def get(self, day: date) -> DayCycleState | None:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            return await self.load(db, day)

    async def load(self, db: aiosqlite.Connection, day: date) -> DayCycleState | None:
        cursor = await db.execute("SELECT * FROM day_cycles WHERE day = ?", (day.isoformat(),))
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_state(row)

    async def latest(self) -> DayCycleState | None:
        """Most recent day on record."""
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute("SELECT * FROM day_cycles ORDER BY day DESC LIMIT 1")
            row = await cursor.fetchone()
            return self._row_to_state(row) if row else None

    async def upsert(self, db: aiosqlite.Connection, state: DayCycleState) -> None:
        await db.execute(
            """
            INSERT INTO day_cycles (day, window_armed, outcome, last_check_in_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(day) DO UPDATE SET
                window_armed = excluded.window_armed,
                outcome = excluded.outcome,
                last_check_in_at = excluded.last_check_in_at
            """,
            (
                state.day.isoformat(),
                int(state.window_armed),
                state.outcome.value,
                _iso(state.last_check_in_at),
            ),
        )

    async def mark_armed(self, day: date) -> None:
        """Record that the day's window has been armed."""
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """
                INSERT INTO day_cycles (day, window_armed) VALUES (?, 1)
                ON CONFLICT(day) DO UPDATE SET window_armed = 1
                """,
                (day.isoformat(),),
            )
            await db.commit()

    def _row_to_state(self, row: aiosqlite.Row) -> DayCycleState:
        return DayCycleState(
            day=date.fromisoformat(row["day"]),
            window_armed=bool(row["window_armed"]),
            outcome=DayOutcome(row["outcome"]),
            last_check_in_at=_parse_dt(row["last_check_in_at"]),
        )


class TransactionRepository:
    """Repository for wallet transactions."""

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path or get_db_path()

    async def add(self, db: aiosqlite.Connection, transaction: Transaction) -> int:
        """Append a transaction and trim history to the cap."""
        cursor = await db.execute(
            """
            INSERT INTO transactions (type, amount, description, metadata, timestamp)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                transaction.type.value,
                transaction.amount,
                transaction.description,
                json.dumps(transaction.metadata),
                transaction.timestamp.isoformat(),
            ),
        )
        transaction.id = cursor.lastrowid
        await db.execute(
            """
            DELETE FROM transactions WHERE id NOT IN (
                SELECT id FROM transactions ORDER BY id DESC LIMIT ?
            )
            """,
            (MAX_TRANSACTIONS,),
        )
        return transaction.id

    async def recent(
        self, limit: int = 20, transaction_type: TransactionType | None = None
    ) -> list[Transaction]:
        """Newest transactions first."""
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            if transaction_type:
                cursor = await db.execute(
                    "SELECT * FROM transactions WHERE type = ? ORDER BY id DESC LIMIT ?",
                    (transaction_type.value, limit),
                )
            else:
                cursor = await db.execute(
                    "SELECT * FROM transactions ORDER BY id DESC LIMIT ?", (limit,)
                )
            rows = await cursor.fetchall()
            return [self._row_to_transaction(row) for row in rows]

    def _row_to_transaction(self, row: aiosqlite.Row) -> Transaction:
        return Transaction(
            id=row["id"],
            type=TransactionType(row["type"]),
            amount=row["amount"],
            description=row["description"],
            metadata=json.loads(row["metadata"]) if row["metadata"] else {},
            timestamp=datetime.fromisoformat(row["timestamp"]),
        )


class CallLogRepository:
    """Repository for motivational call attempts."""

    def __init__(self, db_path: Path | None = None):
        self.db_path = db_path or get_db_path()

    async def add(self, entry: CallLogEntry) -> int:
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                """
                INSERT INTO call_logs (timestamp, phone_number, context, success, call_id, error)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.timestamp.isoformat(),
                    entry.phone_number,
                    json.dumps(entry.context),
                    int(entry.success),
                    entry.call_id,
                    entry.error,
                ),
            )
            entry.id = cursor.lastrowid
            await db.execute(
                """
                DELETE FROM call_logs WHERE id NOT IN (
                    SELECT id FROM call_logs ORDER BY id DESC LIMIT ?
                )
                """,
                (MAX_CALL_LOGS,),
            )
            await db.commit()
            return entry.id

    async def recent(self, limit: int = 20) -> list[CallLogEntry]:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute("SELECT * FROM call_logs ORDER BY id DESC LIMIT ?", (limit,))
            rows = await cursor.fetchall()
            return [
                CallLogEntry(
                    id=row["id"],
                    timestamp=datetime.fromisoformat(row["timestamp"]),
                    phone_number=row["phone_number"],
                    context=json.loads(row["context"]) if row["context"] else {},
                    success=bool(row["success"]),
                    call_id=row["call_id"],
                    error=row["error"],
                )
                for row in rows
            ]

    async def clear(self) -> None:
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("DELETE FROM call_logs")
            await db.commit()
