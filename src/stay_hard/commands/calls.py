"""Motivational call commands."""

import click

from ..clients.retell.client import RetellClient
from ..config import settings
from ..db import CallLogRepository, get_db_path
from ..exceptions import CallError
from .base import (
    async_command,
    echo_error,
    echo_info,
    echo_success,
    ensure_initialized,
    format_table,
)


@click.group()
def calls():
    """Inspect the motivational call integration."""
    pass


@calls.command("test")
@click.pass_context
@async_command
async def test(ctx: click.Context):
    """Check that the Retell AI credentials work."""
    client = RetellClient(
        api_key=settings.retell_api_key,
        agent_id=settings.retell_agent_id,
        from_number=settings.retell_from_number,
        base_url=settings.retell_base_url,
    )
    result = await client.test_connection()
    if result["success"]:
        echo_success(result["message"])
    else:
        echo_error(result["message"])
        ctx.exit(1)


@calls.command("log")
@click.option("--limit", "-n", default=20, type=int, help="Number of attempts to show")
@click.option("--clear", is_flag=True, help="Delete the call log")
@click.pass_context
@async_command
async def log(ctx: click.Context, limit: int, clear: bool):
    """Show recent call attempts."""
    ensure_initialized(ctx)
    repo = CallLogRepository(get_db_path())

    if clear:
        await repo.clear()
        echo_success("Call log cleared")
        return

    entries = await repo.recent(limit=limit)
    if not entries:
        echo_info("No calls placed yet.")
        return

    rows = [
        [
            e.timestamp.strftime("%Y-%m-%d %H:%M"),
            e.phone_number,
            "ok" if e.success else "failed",
            e.call_id or e.error or "",
        ]
        for e in entries
    ]
    click.echo(format_table(["Date", "Phone", "Result", "Call / Error"], rows))


@calls.command("status")
@click.argument("call_id")
@click.pass_context
@async_command
async def status(ctx: click.Context, call_id: str):
    """Ask Retell AI how a call went."""
    client = RetellClient(
        api_key=settings.retell_api_key,
        agent_id=settings.retell_agent_id,
        from_number=settings.retell_from_number,
        base_url=settings.retell_base_url,
    )
    try:
        record = await client.get_call_status(call_id)
    except CallError as e:
        echo_error(str(e))
        ctx.exit(1)

    rows = [
        ["Call", record.get("call_id", call_id)],
        ["Status", record.get("call_status", "unknown")],
    ]
    if record.get("to_number"):
        rows.append(["To", record["to_number"]])
    if record.get("disconnection_reason"):
        rows.append(["Ended", record["disconnection_reason"]])
    if record.get("duration_ms") is not None:
        rows.append(["Duration", f"{record['duration_ms'] / 1000:.0f}s"])
    click.echo(format_table(["Field", "Value"], rows))
