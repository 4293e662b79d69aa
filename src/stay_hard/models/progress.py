"""Streak, wallet and per-day outcome models."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum


def round_currency(amount: float) -> float:
    """Round to whole currency units, halves away from zero."""
    return float(Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class DayOutcome(str, Enum):
    """Outcome of a calendar day's workout window."""

    PENDING = "pending"
    CHECKED_IN = "checked_in"
    PENALIZED = "penalized"


class TransactionType(str, Enum):
    """Kinds of wallet transactions."""

    INITIAL = "initial"
    DEDUCTION = "deduction"
    CREDIT = "credit"
    TRANSFER = "transfer"


@dataclass
class DayCycleState:
    """State of one calendar day's accountability cycle."""

    day: date
    window_armed: bool = False
    outcome: DayOutcome = DayOutcome.PENDING
    last_check_in_at: datetime | None = None

    @property
    def is_settled(self) -> bool:
        return self.outcome != DayOutcome.PENDING

    def to_dict(self) -> dict:
        return {
            "day": self.day.isoformat(),
            "window_armed": self.window_armed,
            "outcome": self.outcome.value,
            "last_check_in_at": (
                self.last_check_in_at.isoformat() if self.last_check_in_at else None
            ),
        }


@dataclass
class UserProgress:
    """Streak and wallet state for the signed-in user.

    Mutated only through the ledger gateway. ``version`` increases on
    every write and is used as a compare-and-swap token.
    """

    streak_days: int = 0
    total_sessions: int = 0
    last_check_in_at: datetime | None = None
    wallet_balance: float = 0.0
    shopping_balance: float = 0.0
    total_deposited: float = 0.0
    total_penalties: float = 0.0
    total_shopping_credits: float = 0.0
    total_shopping_spent: float = 0.0
    total_transfer_fees: float = 0.0
    last_penalty_at: datetime | None = None
    last_missed_date: date | None = None
    total_missed_workouts: int = 0
    total_motivational_calls: int = 0
    last_call_id: str | None = None
    version: int = 0

    def checked_in_on(self, day: date) -> bool:
        """True if the last recorded check-in fell on ``day``."""
        return self.last_check_in_at is not None and self.last_check_in_at.date() == day

    def to_dict(self) -> dict:
        """Convert to dictionary for storage."""
        return {
            "streak_days": self.streak_days,
            "total_sessions": self.total_sessions,
            "last_check_in_at": (
                self.last_check_in_at.isoformat() if self.last_check_in_at else None
            ),
            "wallet_balance": self.wallet_balance,
            "shopping_balance": self.shopping_balance,
            "total_deposited": self.total_deposited,
            "total_penalties": self.total_penalties,
            "total_shopping_credits": self.total_shopping_credits,
            "total_shopping_spent": self.total_shopping_spent,
            "total_transfer_fees": self.total_transfer_fees,
            "last_penalty_at": self.last_penalty_at.isoformat() if self.last_penalty_at else None,
            "last_missed_date": (
                self.last_missed_date.isoformat() if self.last_missed_date else None
            ),
            "total_missed_workouts": self.total_missed_workouts,
            "total_motivational_calls": self.total_motivational_calls,
            "last_call_id": self.last_call_id,
        }

    @classmethod
    def from_dict(cls, data: dict, version: int = 0) -> "UserProgress":
        """Create from dictionary."""

        def _dt(key: str) -> datetime | None:
            return datetime.fromisoformat(data[key]) if data.get(key) else None

        return cls(
            streak_days=data.get("streak_days", 0),
            total_sessions=data.get("total_sessions", 0),
            last_check_in_at=_dt("last_check_in_at"),
            wallet_balance=data.get("wallet_balance", 0.0),
            shopping_balance=data.get("shopping_balance", 0.0),
            total_deposited=data.get("total_deposited", 0.0),
            total_penalties=data.get("total_penalties", 0.0),
            total_shopping_credits=data.get("total_shopping_credits", 0.0),
            total_shopping_spent=data.get("total_shopping_spent", 0.0),
            total_transfer_fees=data.get("total_transfer_fees", 0.0),
            last_penalty_at=_dt("last_penalty_at"),
            last_missed_date=(
                date.fromisoformat(data["last_missed_date"])
                if data.get("last_missed_date")
                else None
            ),
            total_missed_workouts=data.get("total_missed_workouts", 0),
            total_motivational_calls=data.get("total_motivational_calls", 0),
            last_call_id=data.get("last_call_id"),
            version=version,
        )


@dataclass(frozen=True)
class PenaltyPreview:
    """What a penalty would cost right now."""

    penalty_amount: float
    shopping_credit: float
    current_balance: float

    @property
    def remaining_balance(self) -> float:
        return max(0.0, self.current_balance - self.penalty_amount)

    @property
    def can_apply(self) -> bool:
        return self.current_balance > 0


@dataclass(frozen=True)
class PenaltyResult:
    """Outcome of applying a penalty."""

    penalty_amount: float
    shopping_credit: float
    new_balance: float
    new_shopping_balance: float
    streak_before: int
    insufficient_balance: bool = False


@dataclass(frozen=True)
class CheckInRecord:
    """Outcome of recording a check-in."""

    recorded: bool
    streak_days: int
    total_sessions: int
    checked_in_at: datetime | None
    outcome: DayOutcome


@dataclass
class Transaction:
    """A wallet transaction."""

    type: TransactionType
    amount: float
    description: str
    timestamp: datetime
    metadata: dict = field(default_factory=dict)
    id: int | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "amount": self.amount,
            "description": self.description,
            "metadata": self.metadata,
            "timestamp": self.timestamp.isoformat(),
            "date": self.timestamp.date().isoformat(),
        }


@dataclass(frozen=True)
class WalletSummary:
    """Read-only view of wallet totals."""

    wallet_balance: float
    shopping_balance: float
    total_deposited: float
    total_penalties: float
    total_shopping_credits: float
    total_shopping_spent: float
    total_transfer_fees: float
    last_penalty_at: datetime | None

    @property
    def total_balance(self) -> float:
        return self.wallet_balance + self.shopping_balance

    @classmethod
    def from_progress(cls, progress: UserProgress) -> "WalletSummary":
        return cls(
            wallet_balance=progress.wallet_balance,
            shopping_balance=progress.shopping_balance,
            total_deposited=progress.total_deposited,
            total_penalties=progress.total_penalties,
            total_shopping_credits=progress.total_shopping_credits,
            total_shopping_spent=progress.total_shopping_spent,
            total_transfer_fees=progress.total_transfer_fees,
            last_penalty_at=progress.last_penalty_at,
        )

    def to_dict(self) -> dict:
        return {
            "wallet_balance": self.wallet_balance,
            "shopping_balance": self.shopping_balance,
            "total_balance": self.total_balance,
            "total_deposited": self.total_deposited,
            "total_penalties": self.total_penalties,
            "total_shopping_credits": self.total_shopping_credits,
            "total_shopping_spent": self.total_shopping_spent,
            "total_transfer_fees": self.total_transfer_fees,
            "last_penalty_at": self.last_penalty_at.isoformat() if self.last_penalty_at else None,
        }
