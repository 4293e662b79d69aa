"""Motivational call models."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class CallContext:
    """What the voice agent knows about the user it is calling."""

    user_name: str
    gym_name: str
    bet_amount: float
    streak_before_loss: int
    workout_time: str = ""
    missed_workouts: int = 1
    rationale: str = ""

    def build_rationale(self) -> str:
        """Free-text motivational brief for the voice agent."""
        gym = self.gym_name or "the gym"
        return " ".join(
            [
                f"{self.user_name} had a {self.streak_before_loss}-day streak going "
                f"and is about to break it by missing their workout at {gym}.",
                f"They have ${self.bet_amount:g} on the line and will lose part of it "
                "if they do not check in.",
                f"This would be missed workout number {self.missed_workouts}.",
                "Be encouraging but firm and remind them why they started.",
                "One setback does not define them, consistency does.",
                "Push them to get to the gym now, or to commit to tomorrow.",
            ]
        )

    def to_dict(self) -> dict:
        return {
            "user_name": self.user_name,
            "gym_name": self.gym_name,
            "bet_amount": self.bet_amount,
            "streak_before_loss": self.streak_before_loss,
            "workout_time": self.workout_time,
            "missed_workouts": self.missed_workouts,
            "rationale": self.rationale or self.build_rationale(),
        }


@dataclass(frozen=True)
class CallResult:
    """A call accepted by the voice provider."""

    call_id: str
    status: str = "registered"


@dataclass
class CallLogEntry:
    """Record of one call attempt."""

    phone_number: str
    context: dict
    success: bool
    timestamp: datetime = field(default_factory=datetime.now)
    call_id: str | None = None
    error: str | None = None
    id: int | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "phone_number": self.phone_number,
            "context": self.context,
            "success": self.success,
            "call_id": self.call_id,
            "error": self.error,
        }
