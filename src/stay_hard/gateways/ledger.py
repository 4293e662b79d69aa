"""Ledger gateway: the only writer of streak and wallet state.

Every mutation runs under an in-process lock and inside a
``BEGIN IMMEDIATE`` transaction, re-reads the day's outcome row and
commits only if that day is still pending. That makes "one success or
penalty per calendar day" hold even when a manual check-in races an
automated arrival, or a second process writes to the same database.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import AsyncIterator

import aiosqlite
from loguru import logger

from ..db.engine import write_transaction
from ..db.repositories import (
    DayCycleRepository,
    ProgressRepository,
    TransactionRepository,
)
from ..exceptions import InsufficientBalance, StayHardError
from ..models.progress import (
    CheckInRecord,
    DayCycleState,
    DayOutcome,
    PenaltyPreview,
    PenaltyResult,
    Transaction,
    TransactionType,
    UserProgress,
    WalletSummary,
    round_currency,
)
from ..services.scheduler import Clock, SystemClock


class LedgerGateway:
    """Serialized access to UserProgress and the transaction history."""

    def __init__(
        self,
        db_path: Path | None = None,
        clock: Clock | None = None,
        penalty_rate: float = 0.1,
        shopping_credit_rate: float = 0.2,
        transfer_fee_rate: float = 0.05,
    ):
        self.progress_repo = ProgressRepository(db_path)
        self.db_path = self.progress_repo.db_path
        self.day_repo = DayCycleRepository(self.db_path)
        self.transaction_repo = TransactionRepository(self.db_path)
        self.clock = clock or SystemClock()
        self.penalty_rate = penalty_rate
        self.shopping_credit_rate = shopping_credit_rate
        self.transfer_fee_rate = transfer_fee_rate
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def _writing(self) -> AsyncIterator[tuple[aiosqlite.Connection, UserProgress]]:
        async with self._lock:
            async with write_transaction(self.db_path) as db:
                progress = await self.progress_repo.load(db)
                if progress is None:
                    raise StayHardError("No progress record. Initialize the wallet first.")
                yield db, progress

    def _compute_penalty(self, balance: float) -> tuple[float, float]:
        if balance <= 0:
            return 0.0, 0.0
        penalty = min(balance, round_currency(balance * self.penalty_rate))
        credit = round_currency(balance * self.shopping_credit_rate)
        return penalty, credit

    # --- Reads ---

    async def get_progress(self) -> UserProgress | None:
        return await self.progress_repo.get()

    async def day_state(self, day: date) -> DayCycleState:
        """Outcome of ``day`` (pending if nothing is recorded)."""
        return await self.day_repo.get(day) or DayCycleState(day=day)

    async def preview_penalty(self) -> PenaltyPreview:
        """What a penalty would cost now, without mutating anything."""
        progress = await self.progress_repo.get()
        balance = progress.wallet_balance if progress else 0.0
        penalty, credit = self._compute_penalty(balance)
        return PenaltyPreview(penalty_amount=penalty, shopping_credit=credit, current_balance=balance)

    async def wallet_summary(self) -> WalletSummary:
        progress = await self.progress_repo.get() or UserProgress()
        return WalletSummary.from_progress(progress)

    async def transactions(
        self, limit: int = 20, transaction_type: TransactionType | None = None
    ) -> list[Transaction]:
        return await self.transaction_repo.recent(limit=limit, transaction_type=transaction_type)

    # --- Daily outcomes ---

    async def mark_window_armed(self, day: date) -> None:
        await self.day_repo.mark_armed(day)

    async def record_check_in(self, at: datetime | None = None) -> CheckInRecord:
        """Count a gym check-in, at most once per calendar day.

        Args:
            at: Check-in instant (defaults to now)

        Returns:
            Record with ``recorded=False`` if the day was already settled
        """
        now = at or self.clock.now()
        day = now.date()

        async with self._writing() as (db, progress):
            state = await self.day_repo.load(db, day) or DayCycleState(day=day)

            if state.is_settled or progress.checked_in_on(day):
                logger.bind(day=day.isoformat(), outcome=state.outcome.value).info(
                    "Check-in ignored, day already settled"
                )
                return CheckInRecord(
                    recorded=False,
                    streak_days=progress.streak_days,
                    total_sessions=progress.total_sessions,
                    checked_in_at=progress.last_check_in_at,
                    outcome=state.outcome if state.is_settled else DayOutcome.CHECKED_IN,
                )

            progress.streak_days += 1
            progress.total_sessions += 1
            progress.last_check_in_at = now
            await self.progress_repo.save(db, progress)

            state.outcome = DayOutcome.CHECKED_IN
            state.last_check_in_at = now
            await self.day_repo.upsert(db, state)

        logger.bind(day=day.isoformat(), streak=progress.streak_days).info("Check-in recorded")
        return CheckInRecord(
            recorded=True,
            streak_days=progress.streak_days,
            total_sessions=progress.total_sessions,
            checked_in_at=now,
            outcome=DayOutcome.CHECKED_IN,
        )

    async def apply_penalty(self, day: date | None = None) -> PenaltyResult | None:
        """Apply the missed-workout penalty for ``day``, at most once.

        Deducts ``penalty_rate`` of the wallet (never below zero), credits
        ``shopping_credit_rate`` of it to the shopping balance and resets
        the streak. A zero balance yields a zero penalty flagged with
        ``insufficient_balance``; the streak still resets.

        Returns:
            The penalty, or None if the day was already settled
        """
        now = self.clock.now()
        day = day or now.date()

        async with self._writing() as (db, progress):
            state = await self.day_repo.load(db, day) or DayCycleState(day=day)
            if state.is_settled:
                logger.bind(day=day.isoformat(), outcome=state.outcome.value).info(
                    "Penalty skipped, day already settled"
                )
                return None

            balance = progress.wallet_balance
            penalty, credit = self._compute_penalty(balance)
            insufficient = balance <= 0
            streak_before = progress.streak_days

            progress.wallet_balance = max(0.0, balance - penalty)
            progress.shopping_balance += credit
            progress.total_penalties += penalty
            progress.total_shopping_credits += credit
            progress.streak_days = 0
            progress.last_penalty_at = now
            progress.total_missed_workouts += 1
            await self.progress_repo.save(db, progress)

            state.outcome = DayOutcome.PENALIZED
            await self.day_repo.upsert(db, state)

            if not insufficient:
                await self.transaction_repo.add(
                    db,
                    Transaction(
                        type=TransactionType.DEDUCTION,
                        amount=penalty,
                        description="Missed workout penalty",
                        timestamp=now,
                        metadata={
                            "reason": "missed_workout",
                            "original_balance": balance,
                            "penalty_percentage": self.penalty_rate,
                        },
                    ),
                )
                await self.transaction_repo.add(
                    db,
                    Transaction(
                        type=TransactionType.CREDIT,
                        amount=credit,
                        description="Shopping credit from penalty",
                        timestamp=now,
                        metadata={
                            "reason": "penalty_conversion",
                            "source_transaction": "missed_workout",
                            "conversion_percentage": self.shopping_credit_rate,
                        },
                    ),
                )

        if insufficient:
            logger.bind(day=day.isoformat()).warning("Penalty applied to an empty wallet")
        else:
            logger.bind(day=day.isoformat(), penalty=penalty, credit=credit).info(
                "Penalty applied"
            )

        return PenaltyResult(
            penalty_amount=penalty,
            shopping_credit=credit,
            new_balance=progress.wallet_balance,
            new_shopping_balance=progress.shopping_balance,
            streak_before=streak_before,
            insufficient_balance=insufficient,
        )

    async def reconcile_missed_day(self, today: date | None = None) -> bool:
        """Reset the streak if yesterday passed without a check-in.

        Args:
            today: The day that just started (defaults to the clock's date)

        Returns:
            True if yesterday counted as missed
        """
        today = today or self.clock.now().date()
        yesterday = today - timedelta(days=1)

        async with self._writing() as (db, progress):
            last = progress.last_check_in_at.date() if progress.last_check_in_at else None
            yesterday_state = await self.day_repo.load(db, yesterday)
            checked_in_yesterday = (
                yesterday_state is not None and yesterday_state.outcome == DayOutcome.CHECKED_IN
            )

            if last in (yesterday, today) or checked_in_yesterday:
                return False

            if progress.streak_days == 0 and progress.last_missed_date == yesterday:
                return True

            streak_before = progress.streak_days
            progress.streak_days = 0
            progress.last_missed_date = yesterday
            await self.progress_repo.save(db, progress)

        logger.bind(day=yesterday.isoformat(), streak_before=streak_before).info(
            "Streak reset due to missed workout"
        )
        return True

    async def record_motivational_call(self, call_id: str) -> None:
        """Count a successfully placed motivational call."""
        async with self._writing() as (db, progress):
            progress.total_motivational_calls += 1
            progress.last_call_id = call_id
            await self.progress_repo.save(db, progress)

    # --- Wallet ---

    async def initialize_wallet(self, amount: float) -> UserProgress:
        """Start the wallet with the initial bet deposit."""
        if amount < 0:
            raise ValueError("Initial bet must not be negative")

        now = self.clock.now()
        async with self._lock:
            async with write_transaction(self.db_path) as db:
                progress = await self.progress_repo.load(db)
                if progress is None:
                    progress = UserProgress()
                    await self.progress_repo.create(db, progress)

                progress.wallet_balance = amount
                progress.shopping_balance = 0.0
                progress.total_deposited = amount
                progress.total_penalties = 0.0
                progress.total_shopping_credits = 0.0
                await self.progress_repo.save(db, progress)

                await self.transaction_repo.add(
                    db,
                    Transaction(
                        type=TransactionType.INITIAL,
                        amount=amount,
                        description="Initial bet deposit",
                        timestamp=now,
                        metadata={"source": "setup"},
                    ),
                )

        logger.bind(amount=amount).info("Wallet initialized")
        return progress

    async def add_funds(self, amount: float, description: str = "Funds added") -> UserProgress:
        if amount <= 0:
            raise ValueError("Amount must be positive")

        async with self._writing() as (db, progress):
            progress.wallet_balance += amount
            progress.total_deposited += amount
            await self.progress_repo.save(db, progress)
            await self.transaction_repo.add(
                db,
                Transaction(
                    type=TransactionType.CREDIT,
                    amount=amount,
                    description=description,
                    timestamp=self.clock.now(),
                    metadata={"source": "manual_deposit"},
                ),
            )
        return progress

    async def use_shopping_credits(
        self, amount: float, description: str = "Shopping purchase"
    ) -> UserProgress:
        """Spend shopping credits.

        Raises:
            InsufficientBalance: If the shopping balance is too small
        """
        if amount <= 0:
            raise ValueError("Amount must be positive")

        async with self._writing() as (db, progress):
            if amount > progress.shopping_balance:
                raise InsufficientBalance("Insufficient shopping credits")

            progress.shopping_balance -= amount
            progress.total_shopping_spent += amount
            await self.progress_repo.save(db, progress)
            await self.transaction_repo.add(
                db,
                Transaction(
                    type=TransactionType.DEDUCTION,
                    amount=amount,
                    description=description,
                    timestamp=self.clock.now(),
                    metadata={"source": "shopping_credits", "type": "shopping_purchase"},
                ),
            )
        return progress

    async def transfer_shopping_to_wallet(self, amount: float) -> UserProgress:
        """Move shopping credits back to the wallet, minus the transfer fee.

        Raises:
            InsufficientBalance: If the shopping balance is too small
        """
        if amount <= 0:
            raise ValueError("Amount must be positive")

        async with self._writing() as (db, progress):
            if amount > progress.shopping_balance:
                raise InsufficientBalance("Insufficient shopping credits")

            fee = round_currency(amount * self.transfer_fee_rate)
            net = amount - fee
            progress.shopping_balance -= amount
            progress.wallet_balance += net
            progress.total_transfer_fees += fee
            await self.progress_repo.save(db, progress)
            await self.transaction_repo.add(
                db,
                Transaction(
                    type=TransactionType.TRANSFER,
                    amount=net,
                    description="Shopping credits to wallet",
                    timestamp=self.clock.now(),
                    metadata={
                        "original_amount": amount,
                        "transfer_fee": fee,
                        "fee_percentage": self.transfer_fee_rate,
                    },
                ),
            )
        return progress
