"""Cash movement commands."""

import datetime as dt
import sys

import click
from rich.console import Console

from folioledger.cli.context import CliContext, pass_cli, portfolio_option
from folioledger.cli.params import DATE, DECIMAL
from folioledger.cli.ui import print_update
from folioledger.services.ledger import LedgerError


@click.group("cash")
def cash_group():
    """Cash - deposits and withdrawals"""
    pass


def _cash_command(cli: CliContext, operation: str, amount, portfolio_ref: str | None, on: dt.date | None) -> None:
    console = Console()
    try:
        portfolio = cli.resolve_portfolio(portfolio_ref)
        if operation == "deposit":
            update = cli.service.deposit(portfolio.id, amount, on)
        else:
            update = cli.service.withdraw(portfolio.id, amount, on)
    except (LedgerError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    print_update(console, update, portfolio.currency)
    if not update.ok:
        sys.exit(1)


@cash_group.command("deposit")
@click.argument("amount", type=DECIMAL)
@portfolio_option
@click.option("--date", "-d", "on", type=DATE, default=None, help="Date YYYY-MM-DD (default: today)")
@pass_cli
def deposit(cli: CliContext, amount, portfolio_ref: str | None, on: dt.date | None):
    """Deposit AMOUNT into the portfolio."""
    _cash_command(cli, "deposit", amount, portfolio_ref, on)


@cash_group.command("withdraw")
@click.argument("amount", type=DECIMAL)
@portfolio_option
@click.option("--date", "-d", "on", type=DATE, default=None, help="Date YYYY-MM-DD (default: today)")
@pass_cli
def withdraw(cli: CliContext, amount, portfolio_ref: str | None, on: dt.date | None):
    """Withdraw AMOUNT from the portfolio. Refused beyond the cash balance."""
    _cash_command(cli, "withdraw", amount, portfolio_ref, on)
