"""Run the accountability workflow in the foreground."""

import click

from ..exceptions import SetupError
from .base import async_command, build_engine, echo_error, echo_info, ensure_initialized


@click.command()
@click.pass_context
@async_command
async def run(ctx: click.Context):
    """Start the workflow engine and keep it running until Ctrl+C.

    Reminders, warnings, the motivational call and the penalty fire at
    their scheduled times while this command runs.
    """
    ensure_initialized(ctx)
    engine = build_engine()

    if not await engine.init():
        echo_error("Sign in ('stay-hard init') and complete 'stay-hard setup' first.")
        ctx.exit(1)

    try:
        await engine.start()
    except SetupError as e:
        echo_error(str(e))
        ctx.exit(1)

    status = await engine.status()
    echo_info(f"Workflow running for {engine.identity.user_name} at {engine.setup.gym.name or 'the gym'}")
    if status.next_window_at:
        echo_info(f"Next window starts {status.next_window_at:%Y-%m-%d %H:%M}")
    click.echo("Press Ctrl+C to stop.")

    try:
        await engine.run_forever()
    finally:
        await engine.shutdown()
        echo_info("Workflow stopped")
