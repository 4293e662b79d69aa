"""Status command."""

import click

from .base import async_command, build_engine, ensure_initialized, money


@click.command()
@click.pass_context
@async_command
async def status(ctx: click.Context):
    """Show today's outcome, streak and wallet."""
    ensure_initialized(ctx)
    engine = build_engine()
    ready = await engine.init()
    snapshot = await engine.status()

    click.echo()
    if engine.identity:
        click.echo(click.style(f"User: {engine.identity.user_name}", bold=True))
    click.echo("=" * 50)

    if engine.setup:
        window = engine.setup.workout_window
        click.echo(f"Gym:            {engine.setup.gym.name or '-'}")
        click.echo(f"Window:         {window.label} ({window.mode.value})")
    click.echo(f"Today:          {snapshot.day_outcome.value}")
    click.echo(f"Streak:         {snapshot.streak_days} days")
    click.echo(f"Wallet:         {money(snapshot.wallet_balance)}")

    if engine.progress and engine.progress.last_check_in_at:
        click.echo(f"Last check-in:  {engine.progress.last_check_in_at:%Y-%m-%d %H:%M}")

    if not ready:
        click.echo()
        click.echo("Setup incomplete. Run 'stay-hard setup' to finish.")
