"""Database engine setup and initialization."""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

from ..config import settings


def get_db_path(data_dir: Path | None = None) -> Path:
    """Get the database file path."""
    if data_dir is None:
        data_dir = settings.data_dir
    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir / "stay_hard.db"


async def _run_migrations(db: aiosqlite.Connection) -> None:
    """Run database migrations for schema updates."""
    cursor = await db.execute("PRAGMA table_info(progress)")
    columns = await cursor.fetchall()
    progress_columns = {col[1] for col in columns}

    # Call accounting arrived after the first release
    for col, ddl in [
        ("total_motivational_calls", "INTEGER DEFAULT 0"),
        ("last_call_id", "TEXT"),
        ("total_missed_workouts", "INTEGER DEFAULT 0"),
    ]:
        if col not in progress_columns:
            await db.execute(f"ALTER TABLE progress ADD COLUMN {col} {ddl}")

    await db.commit()


async def init_db(db_path: Path | None = None) -> None:
    """Initialize the database schema."""
    if db_path is None:
        db_path = get_db_path()

    async with aiosqlite.connect(db_path) as db:
        # Signed-in user (single row)
        await db.execute("""
            CREATE TABLE IF NOT EXISTS identity (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                email TEXT NOT NULL,
                login_time TIMESTAMP
            )
        """)

        # Setup wizard preferences (single row)
        await db.execute("""
            CREATE TABLE IF NOT EXISTS setup (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                gym_name TEXT NOT NULL,
                gym_lat REAL NOT NULL,
                gym_lng REAL NOT NULL,
                workout_window TEXT NOT NULL,
                phone_number TEXT NOT NULL,
                bet_amount REAL NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        # Streak and wallet state (single row, versioned)
        await db.execute("""
            CREATE TABLE IF NOT EXISTS progress (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                streak_days INTEGER DEFAULT 0 CHECK (streak_days >= 0),
                total_sessions INTEGER DEFAULT 0 CHECK (total_sessions >= 0),
                last_check_in_at TIMESTAMP,
                wallet_balance REAL DEFAULT 0 CHECK (wallet_balance >= 0),
                shopping_balance REAL DEFAULT 0 CHECK (shopping_balance >= 0),
                total_deposited REAL DEFAULT 0,
                total_penalties REAL DEFAULT 0,
                total_shopping_credits REAL DEFAULT 0,
                total_shopping_spent REAL DEFAULT 0,
                total_transfer_fees REAL DEFAULT 0,
                last_penalty_at TIMESTAMP,
                last_missed_date TEXT,
                total_missed_workouts INTEGER DEFAULT 0,
                total_motivational_calls INTEGER DEFAULT 0,
                last_call_id TEXT,
                version INTEGER NOT NULL DEFAULT 0
            )
        """)

        # One row per calendar day; the outcome column is the exactly-once guard
        await db.execute("""
            CREATE TABLE IF NOT EXISTS day_cycles (
                day TEXT PRIMARY KEY,
                window_armed INTEGER DEFAULT 0,
                outcome TEXT NOT NULL DEFAULT 'pending',
                last_check_in_at TIMESTAMP
            )
        """)

        # Wallet transaction history
        await db.execute("""
            CREATE TABLE IF NOT EXISTS transactions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                type TEXT NOT NULL,
                amount REAL NOT NULL,
                description TEXT NOT NULL,
                metadata TEXT DEFAULT '{}',
                timestamp TIMESTAMP NOT NULL
            )
        """)

        # Motivational call attempts
        await db.execute("""
            CREATE TABLE IF NOT EXISTS call_logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                timestamp TIMESTAMP NOT NULL,
                phone_number TEXT NOT NULL,
                context TEXT DEFAULT '{}',
                success INTEGER NOT NULL,
                call_id TEXT,
                error TEXT
            )
        """)

        await db.execute("""
            CREATE INDEX IF NOT EXISTS idx_transactions_timestamp
            ON transactions(timestamp)
        """)
        await db.execute("""
            CREATE INDEX IF NOT EXISTS idx_transactions_type
            ON transactions(type)
        """)
        await db.execute("""
            CREATE INDEX IF NOT EXISTS idx_call_logs_timestamp
            ON call_logs(timestamp)
        """)

        await db.commit()

        # Run migrations for existing databases
        await _run_migrations(db)


async def reset_user_data(db_path: Path | None = None) -> None:
    """Clear every per-user document (fresh login)."""
    if db_path is None:
        db_path = get_db_path()

    async with aiosqlite.connect(db_path) as db:
        for table in ("identity", "setup", "progress", "day_cycles", "transactions", "call_logs"):
            await db.execute(f"DELETE FROM {table}")
        await db.commit()


@asynccontextmanager
async def write_transaction(db_path: Path | None = None) -> AsyncIterator[aiosqlite.Connection]:
    """Open a connection holding the database write lock.

    ``BEGIN IMMEDIATE`` serializes writers across processes, so a CLI
    check-in and a running engine cannot interleave their read-modify-write
    cycles. Commits on success, rolls back on any error.
    """
    if db_path is None:
        db_path = get_db_path()

    async with aiosqlite.connect(db_path) as db:
        db.row_factory = aiosqlite.Row
        await db.execute("BEGIN IMMEDIATE")
        try:
            yield db
        except BaseException:
            await db.rollback()
            raise
        else:
            await db.commit()
