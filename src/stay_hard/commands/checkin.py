"""Manual check-in command."""

import click

from ..clients.manual.provider import StaticPositionProvider
from ..exceptions import CheckInError, SetupError
from ..models.geo import GeoPoint
from .base import (
    async_command,
    build_engine,
    echo_error,
    echo_info,
    echo_success,
    ensure_initialized,
)


@click.command()
@click.option("--lat", type=float, help="Your current latitude")
@click.option("--lng", type=float, help="Your current longitude")
@click.pass_context
@async_command
async def checkin(ctx: click.Context, lat: float | None, lng: float | None):
    """Check in at the gym from your current location.

    Uses the configured position provider, or the coordinates given with
    --lat/--lng. Counts at most once per day.
    """
    ensure_initialized(ctx)

    provider = None
    if lat is not None or lng is not None:
        if lat is None or lng is None:
            echo_error("Pass both --lat and --lng.")
            ctx.exit(1)
        provider = StaticPositionProvider(GeoPoint(lat, lng))

    engine = build_engine(provider)
    try:
        result = await engine.manual_check_in()
    except (CheckInError, SetupError) as e:
        echo_error(str(e))
        ctx.exit(1)

    if result.already_checked_in:
        echo_info(f"{result.message}. Streak: {result.streak_days} days")
    else:
        echo_success(result.message)
