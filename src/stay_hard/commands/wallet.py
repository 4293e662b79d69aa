"""Wallet commands."""

import click

from ..db import get_db_path
from ..exceptions import StayHardError
from ..gateways.ledger import LedgerGateway
from ..models.progress import TransactionType
from .base import (
    async_command,
    echo_error,
    echo_info,
    echo_success,
    ensure_initialized,
    format_table,
    money,
)


@click.group()
def wallet():
    """Manage your bet wallet and shopping credits.

    Missed workouts deduct from the wallet and add shopping credits;
    credits can be spent or moved back to the wallet for a fee.
    """
    pass


@wallet.command("summary")
@click.pass_context
@async_command
async def summary(ctx: click.Context):
    """Show balances and lifetime totals."""
    ensure_initialized(ctx)
    info = await LedgerGateway(get_db_path()).wallet_summary()

    click.echo()
    click.echo(click.style("Wallet", bold=True))
    click.echo("=" * 50)
    click.echo(f"Bet balance:       {money(info.wallet_balance)}")
    click.echo(f"Shopping credits:  {money(info.shopping_balance)}")
    click.echo(f"Total:             {money(info.total_balance)}")
    click.echo()
    click.echo(f"Deposited:         {money(info.total_deposited)}")
    click.echo(f"Penalties:         {money(info.total_penalties)}")
    click.echo(f"Credits earned:    {money(info.total_shopping_credits)}")
    click.echo(f"Credits spent:     {money(info.total_shopping_spent)}")
    click.echo(f"Transfer fees:     {money(info.total_transfer_fees)}")


@wallet.command("history")
@click.option("--limit", "-n", default=20, type=int, help="Number of transactions to show")
@click.option(
    "--type",
    "transaction_type",
    type=click.Choice([t.value for t in TransactionType]),
    help="Only show one transaction type",
)
@click.pass_context
@async_command
async def history(ctx: click.Context, limit: int, transaction_type: str | None):
    """List recent wallet transactions."""
    ensure_initialized(ctx)
    ledger = LedgerGateway(get_db_path())
    transactions = await ledger.transactions(
        limit=limit,
        transaction_type=TransactionType(transaction_type) if transaction_type else None,
    )

    if not transactions:
        echo_info("No transactions yet.")
        return

    rows = [
        [t.timestamp.strftime("%Y-%m-%d %H:%M"), t.type.value, money(t.amount), t.description]
        for t in transactions
    ]
    click.echo(format_table(["Date", "Type", "Amount", "Description"], rows))


async def _mutate(ctx: click.Context, operation, success: str) -> None:
    try:
        progress = await operation
    except (StayHardError, ValueError) as e:
        echo_error(str(e))
        ctx.exit(1)
    echo_success(
        f"{success}. Wallet: {money(progress.wallet_balance)}, "
        f"shopping credits: {money(progress.shopping_balance)}"
    )


@wallet.command("add")
@click.argument("amount", type=float)
@click.pass_context
@async_command
async def add(ctx: click.Context, amount: float):
    """Add AMOUNT to the bet wallet."""
    ensure_initialized(ctx)
    ledger = LedgerGateway(get_db_path())
    await _mutate(ctx, ledger.add_funds(amount), f"Added {money(amount)}")


@wallet.command("spend")
@click.argument("amount", type=float)
@click.option("--description", "-d", default="Shopping purchase", help="What the credits bought")
@click.pass_context
@async_command
async def spend(ctx: click.Context, amount: float, description: str):
    """Spend AMOUNT of shopping credits."""
    ensure_initialized(ctx)
    ledger = LedgerGateway(get_db_path())
    await _mutate(ctx, ledger.use_shopping_credits(amount, description), f"Spent {money(amount)}")


@wallet.command("transfer")
@click.argument("amount", type=float)
@click.pass_context
@async_command
async def transfer(ctx: click.Context, amount: float):
    """Move AMOUNT of shopping credits back to the wallet (5% fee)."""
    ensure_initialized(ctx)
    ledger = LedgerGateway(get_db_path())
    await _mutate(ctx, ledger.transfer_shopping_to_wallet(amount), f"Transferred {money(amount)}")
