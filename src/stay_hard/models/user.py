"""Identity and setup documents."""

from dataclasses import dataclass
from datetime import datetime

from ..exceptions import SetupError
from .geo import GeoPoint, Target
from .window import WorkoutWindow, parse_workout_time


@dataclass
class UserIdentity:
    """The signed-in user."""

    email: str
    login_time: datetime | None = None

    @property
    def user_name(self) -> str:
        """Display name derived from the email's local part."""
        return self.email.split("@")[0] if self.email else "User"

    def to_dict(self) -> dict:
        return {
            "email": self.email,
            "login_time": self.login_time.isoformat() if self.login_time else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "UserIdentity":
        login_time = None
        if data.get("login_time") or data.get("loginTime"):
            login_time = datetime.fromisoformat(data.get("login_time") or data["loginTime"])
        return cls(email=data["email"], login_time=login_time)


@dataclass(frozen=True)
class GymLocation:
    """Named gym coordinate."""

    name: str
    lat: float
    lng: float

    @property
    def point(self) -> GeoPoint:
        return GeoPoint(self.lat, self.lng)

    def target(self, radius_meters: float) -> Target:
        return Target(location=self.point, radius_meters=radius_meters, name=self.name)


@dataclass
class SetupPreferences:
    """Preferences captured by the setup wizard."""

    gym: GymLocation
    workout_window: WorkoutWindow
    phone_number: str
    bet_amount: float
    created_at: datetime | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for storage."""
        return {
            "gym_location": {"name": self.gym.name, "lat": self.gym.lat, "lng": self.gym.lng},
            "workout_window": self.workout_window.to_dict(),
            "phone_number": self.phone_number,
            "bet_amount": self.bet_amount,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict, now: datetime | None = None) -> "SetupPreferences":
        """Create from a stored document or the wizard's raw input.

        The raw input uses camelCase keys and a textual ``workoutTime``;
        stored documents carry an already-parsed ``workout_window``.

        Raises:
            SetupError: If a required field is missing or malformed
        """
        gym_data = data.get("gym_location") or data.get("gymLocation")
        if not gym_data:
            raise SetupError("Setup is missing the gym location")
        try:
            gym = GymLocation(
                name=gym_data.get("name", ""),
                lat=float(gym_data["lat"]),
                lng=float(gym_data["lng"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise SetupError(f"Invalid gym location: {e}") from e

        if data.get("workout_window"):
            window = WorkoutWindow.from_dict(data["workout_window"])
        elif data.get("workoutTime"):
            window = parse_workout_time(data["workoutTime"], now=now)
        else:
            raise SetupError("Setup is missing the workout time")

        phone_number = data.get("phone_number") or data.get("phoneNumber")
        if not phone_number:
            raise SetupError("Setup is missing the phone number")

        bet_amount = data.get("bet_amount", data.get("betAmount", 50))
        created_at = data.get("created_at") or data.get("createdAt")

        return cls(
            gym=gym,
            workout_window=window,
            phone_number=phone_number,
            bet_amount=float(bet_amount),
            created_at=datetime.fromisoformat(created_at) if created_at else None,
        )
