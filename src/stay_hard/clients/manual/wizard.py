"""Interactive setup questionnaire."""

from datetime import datetime

import questionary
from questionary import Style

from ...exceptions import SetupError
from ...models.user import SetupPreferences
from ...models.window import PRESET_SLOTS, WorkoutWindow

# Custom style for questionnaire
custom_style = Style(
    [
        ("qmark", "fg:#f44336 bold"),
        ("question", "bold"),
        ("answer", "fg:#f44336 bold"),
        ("pointer", "fg:#f44336 bold"),
        ("highlighted", "fg:#f44336 bold"),
        ("selected", "fg:#cc5454"),
        ("separator", "fg:#cc5454"),
        ("instruction", ""),
        ("text", ""),
    ]
)

CUSTOM_CHOICE = "Custom time..."
BET_CHOICES = ["10", "25", "50", "100", "250"]


def _validate_float(value: str) -> bool | str:
    try:
        float(value)
    except ValueError:
        return "Enter a number"
    return True


class SetupWizard:
    """Collects gym, workout time, phone and bet in the wizard's raw format."""

    async def collect_setup(self, now: datetime | None = None) -> SetupPreferences:
        """Run the questionnaire and parse its answers.

        Raises:
            SetupError: If the questionnaire is aborted or an answer is invalid
        """
        now = now or datetime.now().astimezone()
        print("\n=== Stay Hard Setup ===\n")

        gym_name = await questionary.text(
            "What's your gym called?",
            style=custom_style,
        ).ask_async()

        lat = await questionary.text(
            "Gym latitude:",
            validate=_validate_float,
            style=custom_style,
        ).ask_async()
        lng = await questionary.text(
            "Gym longitude:",
            validate=_validate_float,
            style=custom_style,
        ).ask_async()

        current = WorkoutWindow.start_now(now)
        workout_time = await questionary.select(
            "When do you work out?",
            choices=[
                questionary.Choice(f"Start now ({current.label})", current.to_setup_string()),
                *PRESET_SLOTS,
                CUSTOM_CHOICE,
            ],
            style=custom_style,
        ).ask_async()

        if workout_time == CUSTOM_CHOICE:
            workout_time = await questionary.text(
                "Custom window (HH:MM - HH:MM):",
                style=custom_style,
            ).ask_async()

        phone_number = await questionary.text(
            "Phone number for motivational calls (E.164, e.g. +15551234567):",
            style=custom_style,
        ).ask_async()

        bet_amount = await questionary.select(
            "How much are you betting on yourself?",
            choices=[questionary.Choice(f"${b}", b) for b in BET_CHOICES],
            default="50",
            style=custom_style,
        ).ask_async()

        answers = [gym_name, lat, lng, workout_time, phone_number, bet_amount]
        if any(a is None for a in answers):
            raise SetupError("Setup cancelled")

        return SetupPreferences.from_dict(
            {
                "gymLocation": {"name": gym_name, "lat": lat, "lng": lng},
                "workoutTime": workout_time,
                "phoneNumber": phone_number,
                "betAmount": bet_amount,
                "createdAt": now.isoformat(),
            },
            now=now,
        )

