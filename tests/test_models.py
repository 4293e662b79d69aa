"""Tests for data models."""

from datetime import date, time, timedelta

import pytest

from conftest import at
from stay_hard.exceptions import SetupError
from stay_hard.models.call import CallContext
from stay_hard.models.progress import (
    DayCycleState,
    DayOutcome,
    PenaltyPreview,
    UserProgress,
    round_currency,
)
from stay_hard.models.user import SetupPreferences, UserIdentity
from stay_hard.models.window import WindowMode, WorkoutWindow, parse_workout_time


class TestParseWorkoutTime:
    """Tests for the setup wizard's workout time strings."""

    def test_preset_slot(self):
        window = parse_workout_time("18:00 - 19:00")
        assert window.mode == WindowMode.PRESET
        assert window.start == time(18, 0)
        assert window.end == time(19, 0)

    def test_custom_range(self):
        window = parse_workout_time("17:30 - 19:00")
        assert window.mode == WindowMode.CUSTOM
        assert window.duration == timedelta(minutes=90)

    def test_start_now_tag(self):
        now = at(14, 5)
        window = parse_workout_time("Current Time (14:05 - 15:05)", now=now)
        assert window.mode == WindowMode.START_NOW
        assert window.start == time(14, 5)
        assert window.created_at == now

    def test_start_now_past_midnight(self):
        window = parse_workout_time("Current Time (23:30 - 24:30)")
        assert window.mode == WindowMode.START_NOW
        assert window.end == time(0, 30)
        assert window.duration == timedelta(hours=1)

    @pytest.mark.parametrize("value", ["", "   ", "whenever", "25:00 - 26:00"])
    def test_unparseable(self, value):
        with pytest.raises(SetupError):
            parse_workout_time(value)

    def test_custom_end_before_start(self):
        with pytest.raises(SetupError):
            parse_workout_time("19:00 - 18:00")


class TestWorkoutWindow:
    """Tests for WorkoutWindow."""

    def test_preset_must_last_one_hour(self):
        with pytest.raises(SetupError):
            WorkoutWindow(start=time(18, 0), end=time(20, 0), mode=WindowMode.PRESET)

    def test_next_start_today(self):
        window = WorkoutWindow.preset(18)
        assert window.next_start(at(17, 0)) == at(18, 0)

    def test_next_start_tomorrow_once_started(self):
        window = WorkoutWindow.preset(18)
        assert window.next_start(at(18, 0)) == at(18, 0, day=19)
        assert window.next_start(at(18, 30)) == at(18, 0, day=19)

    def test_contains_is_inclusive(self):
        window = WorkoutWindow.preset(18)
        assert window.contains(at(18, 0))
        assert window.contains(at(19, 0))
        assert not window.contains(at(19, 1))

    def test_contains_wraps_midnight(self):
        window = WorkoutWindow.start_now(at(23, 30))
        assert window.contains(at(0, 15, day=19))

    def test_start_now_setup_string_parses_back(self):
        now = at(14, 5)
        window = WorkoutWindow.start_now(now)
        assert window.to_setup_string() == "Current Time (14:05 - 15:05)"
        assert parse_workout_time(window.to_setup_string(), now=now) == window

    def test_dict_round_trip(self):
        window = WorkoutWindow.custom(time(6, 30), time(7, 45))
        assert WorkoutWindow.from_dict(window.to_dict()) == window


class TestSetupPreferences:
    """Tests for parsing setup documents."""

    def test_from_wizard_input(self):
        setup = SetupPreferences.from_dict(
            {
                "gymLocation": {"name": "Iron Temple", "lat": 40.7128, "lng": -74.006},
                "workoutTime": "18:00 - 19:00",
                "phoneNumber": "+15551234567",
            }
        )
        assert setup.gym.name == "Iron Temple"
        assert setup.workout_window.mode == WindowMode.PRESET
        assert setup.bet_amount == 50

    def test_stored_document_round_trip(self, sample_setup):
        restored = SetupPreferences.from_dict(sample_setup.to_dict())
        assert restored.workout_window == sample_setup.workout_window
        assert restored.gym == sample_setup.gym

    def test_missing_phone(self):
        with pytest.raises(SetupError, match="phone"):
            SetupPreferences.from_dict(
                {
                    "gymLocation": {"name": "Gym", "lat": 1, "lng": 2},
                    "workoutTime": "18:00 - 19:00",
                }
            )

    def test_invalid_gym(self):
        with pytest.raises(SetupError):
            SetupPreferences.from_dict(
                {
                    "gymLocation": {"name": "Gym", "lat": "north"},
                    "workoutTime": "18:00 - 19:00",
                    "phoneNumber": "+1555",
                }
            )


class TestUserIdentity:
    """Tests for UserIdentity."""

    def test_user_name_from_email(self):
        assert UserIdentity(email="jane.doe@example.com").user_name == "jane.doe"

    def test_from_dict_accepts_login_time_alias(self):
        identity = UserIdentity.from_dict(
            {"email": "jane@example.com", "loginTime": "2026-10-18T09:00:00+00:00"}
        )
        assert identity.login_time == at(9, 0)


class TestProgressModels:
    """Tests for streak and wallet models."""

    @pytest.mark.parametrize(
        "amount,expected",
        [(10.0, 10.0), (0.5, 1.0), (2.5, 3.0), (1.49, 1.0), (0.0, 0.0)],
    )
    def test_round_currency_half_up(self, amount, expected):
        assert round_currency(amount) == expected

    def test_checked_in_on(self):
        progress = UserProgress(last_check_in_at=at(18, 20))
        assert progress.checked_in_on(date(2026, 10, 18))
        assert not progress.checked_in_on(date(2026, 10, 19))

    def test_progress_from_dict(self):
        progress = UserProgress(
            streak_days=4,
            wallet_balance=90.0,
            last_check_in_at=at(18, 20),
            last_missed_date=date(2026, 10, 10),
        )
        restored = UserProgress.from_dict(progress.to_dict(), version=3)
        assert restored.streak_days == 4
        assert restored.last_check_in_at == at(18, 20)
        assert restored.last_missed_date == date(2026, 10, 10)
        assert restored.version == 3

    def test_day_state_settled(self):
        assert not DayCycleState(day=date(2026, 10, 18)).is_settled
        assert DayCycleState(day=date(2026, 10, 18), outcome=DayOutcome.PENALIZED).is_settled

    def test_penalty_preview_remaining(self):
        preview = PenaltyPreview(penalty_amount=10, shopping_credit=20, current_balance=100)
        assert preview.remaining_balance == 90
        assert preview.can_apply


class TestCallContext:
    """Tests for the motivational call context."""

    def test_rationale_mentions_streak_and_bet(self):
        context = CallContext(
            user_name="jane",
            gym_name="Iron Temple",
            bet_amount=100,
            streak_before_loss=6,
        )
        rationale = context.build_rationale()
        assert "6-day streak" in rationale
        assert "$100" in rationale
        assert "Iron Temple" in rationale
        assert context.to_dict()["rationale"] == rationale
