"""Workout setup command."""

import click

from ..clients.manual.wizard import SetupWizard
from ..config import settings
from ..db import SetupRepository, get_db_path
from ..exceptions import SetupError
from ..gateways.ledger import LedgerGateway
from ..models.user import SetupPreferences
from ..models.window import WorkoutWindow
from ..services.scheduler import SystemClock
from .base import (
    async_command,
    echo_error,
    echo_info,
    echo_success,
    ensure_initialized,
    money,
)


@click.command()
@click.option("--gym-name", help="Gym name")
@click.option("--lat", type=float, help="Gym latitude")
@click.option("--lng", type=float, help="Gym longitude")
@click.option("--time", "workout_time", help='Workout window, e.g. "18:00 - 19:00"')
@click.option("--start-now", is_flag=True, help="Start a one-hour window right now")
@click.option("--phone", help="Phone number for motivational calls")
@click.option("--bet", type=float, help="Amount to bet on yourself (default: 50)")
@click.pass_context
@async_command
async def setup(
    ctx: click.Context,
    gym_name: str | None,
    lat: float | None,
    lng: float | None,
    workout_time: str | None,
    start_now: bool,
    phone: str | None,
    bet: float | None,
):
    """Choose your gym, workout window, phone number and bet.

    Without options an interactive questionnaire is shown. With options,
    every value is taken from the command line.

    Examples:

        # Interactive
        stay-hard setup

        # Non-interactive
        stay-hard setup --gym-name "Iron Temple" --lat 40.7128 --lng -74.0060 \\
            --time "18:00 - 19:00" --phone +15551234567 --bet 100
    """
    ensure_initialized(ctx)
    db_path = get_db_path()
    now = SystemClock(settings.get_tz()).now()

    try:
        if gym_name is None and lat is None and workout_time is None and not start_now:
            preferences = await SetupWizard().collect_setup(now)
        else:
            if start_now:
                workout_time = WorkoutWindow.start_now(now).to_setup_string()
            preferences = SetupPreferences.from_dict(
                {
                    "gymLocation": {"name": gym_name or "", "lat": lat, "lng": lng},
                    "workoutTime": workout_time,
                    "phoneNumber": phone,
                    "betAmount": bet if bet is not None else 50,
                    "createdAt": now.isoformat(),
                },
                now=now,
            )
    except SetupError as e:
        echo_error(str(e))
        ctx.exit(1)

    await SetupRepository(db_path).save(preferences)
    echo_success(
        f"Setup saved: {preferences.gym.name or 'gym'} at {preferences.workout_window.label} "
        f"({preferences.workout_window.mode.value})"
    )

    ledger = LedgerGateway(db_path)
    if await ledger.get_progress() is None:
        progress = await ledger.initialize_wallet(preferences.bet_amount)
        echo_success(f"Wallet initialized with {money(progress.wallet_balance)}")
    else:
        echo_info("Existing wallet kept. Use 'stay-hard wallet add' to top it up.")
