"""Project initialization and sign-in commands."""

from datetime import datetime

import click

from ..config import settings
from ..db import IdentityRepository, get_db_path, init_db, reset_user_data
from ..models.user import UserIdentity
from .base import async_command, echo_info, echo_success, ensure_initialized


@click.command()
@click.option("--email", prompt="Email", help="Email address to sign in with")
@async_command
async def init(email: str):
    """Initialize the stay-hard data directory and sign in.

    This creates the data directory, initializes the SQLite database and
    records who is using this installation.
    """
    data_dir = settings.data_dir
    db_path = get_db_path(data_dir)

    echo_info(f"Initializing stay-hard in {data_dir}")

    await init_db(db_path)
    echo_success("Database initialized")

    identity = UserIdentity(email=email.strip(), login_time=datetime.now().astimezone())
    await IdentityRepository(db_path).save(identity)
    echo_success(f"Signed in as {identity.user_name}")

    click.echo()
    click.echo("Next steps:")
    click.echo("  1. Pick your gym, workout time and bet:")
    click.echo("     stay-hard setup")
    click.echo()
    click.echo("  2. Start the accountability workflow:")
    click.echo("     stay-hard run")


@click.command()
@click.confirmation_option(prompt="This clears your setup, streak and wallet. Continue?")
@click.pass_context
@async_command
async def logout(ctx: click.Context):
    """Sign out and clear every per-user record."""
    ensure_initialized(ctx)
    await reset_user_data(get_db_path())
    echo_success("Signed out. Run 'stay-hard init' to start over.")
