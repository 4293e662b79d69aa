"""CLI entry point for stay-hard."""

import click

from .commands import calls, checkin, init, logout, serve, setup, status, wallet
from .commands import run as run_command
from .config import settings
from .logger import setup_logger


@click.group()
@click.version_option(version="0.1.0", prog_name="stay-hard")
@click.option("--log-level", default=None, help="Override the configured log level")
def main(log_level: str | None):
    """stay-hard: put money on your workouts.

    Pick a gym and a daily workout window. If you have not checked in
    at the gym by the end of the window, part of your bet is moved to
    shopping credits and your streak resets.

    Example usage:

        # Sign in and create the database
        stay-hard init --email you@example.com

        # Choose gym, window, phone number and bet
        stay-hard setup

        # Run the workflow (reminders, call, penalty)
        stay-hard run

        # Check in from the gym
        stay-hard checkin --lat 40.7128 --lng -74.0060
    """
    setup_logger(level=(log_level or settings.log_level).upper(), log_file=settings.log_file)


# Register commands
main.add_command(init)
main.add_command(setup)
main.add_command(run_command)
main.add_command(checkin)
main.add_command(status)
main.add_command(wallet)
main.add_command(calls)
main.add_command(serve)
main.add_command(logout)


def run():
    """Run the CLI."""
    main()


if __name__ == "__main__":
    run()
