"""Portfolio management commands."""

import sys
from decimal import Decimal

import click
from rich.console import Console

from folioledger.cli.context import CliContext, pass_cli
from folioledger.cli.params import DECIMAL
from folioledger.cli.ui import create_portfolio_table
from folioledger.services.ledger import LedgerError, PortfolioCategory, PortfolioFees


@click.group("portfolio")
def portfolio_group():
    """Portfolio management - create, list, select and delete portfolios"""
    pass


@portfolio_group.command("create")
@click.argument("name")
@click.option("--code", "-c", default=None, help="Short code, e.g. PEA")
@click.option(
    "--category",
    type=click.Choice([c.value for c in PortfolioCategory]),
    default=None,
    help="Portfolio category (default from config)",
)
@click.option(
    "--currency",
    type=click.Choice(["EUR", "USD", "DKK", "SEK"]),
    default=None,
    help="Portfolio currency (default from config)",
)
@click.option("--fees-percent", type=DECIMAL, default="0", show_default=True, help="Default brokerage fee in %")
@click.option("--fees-min", type=DECIMAL, default="0", show_default=True, help="Minimum brokerage fee")
@click.option("--tff", "tff_percent", type=DECIMAL, default="0", show_default=True, help="TFF in % (EUR buys)")
@click.option("--use", "make_current", is_flag=True, help="Make it the current portfolio")
@pass_cli
def create_portfolio(
    cli: CliContext,
    name: str,
    code: str | None,
    category: str | None,
    currency: str | None,
    fees_percent,
    fees_min,
    tff_percent,
    make_current: bool,
):
    """
    Create a portfolio.

    \b
    Examples:
        folioledger portfolio create "Plan d'Epargne en Actions" --code PEA
        folioledger portfolio create Crypto --category Crypto --currency USD
    """
    console = Console()
    try:
        portfolio = cli.service.create_portfolio(
            name,
            code=code,
            category=category or cli.config.ledger.default_category,
            currency=currency or cli.config.ledger.default_currency,
            fees=PortfolioFees(fees_percent=fees_percent, fees_min=fees_min, tff_percent=tff_percent),
        )
        if make_current:
            cli.service.set_current_portfolio_id(portfolio.id)
    except (LedgerError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    console.print(f"[green]✓ Created portfolio {portfolio.label}[/green] [dim]({portfolio.id})[/dim]")


@portfolio_group.command("list")
@pass_cli
def list_portfolios(cli: CliContext):
    """List portfolios. The current one is marked with *."""
    console = Console()
    portfolios = cli.service.list_portfolios()
    if not portfolios:
        console.print("[yellow]No portfolios yet. Create one with: folioledger portfolio create NAME[/yellow]")
        return

    console.print(create_portfolio_table(portfolios, cli.service.get_current_portfolio_id()))
    total = sum((p.cash for p in portfolios), Decimal("0"))
    console.print(f"[dim]{len(portfolios)} portfolio(s), total cash {total}[/dim]")


@portfolio_group.command("use")
@click.argument("reference")
@pass_cli
def use_portfolio(cli: CliContext, reference: str):
    """Make REFERENCE (id, code or name) the current portfolio."""
    console = Console()
    try:
        portfolio = cli.service.find_portfolio(reference)
        cli.service.set_current_portfolio_id(portfolio.id)
    except LedgerError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)
    console.print(f"[green]✓ Current portfolio: {portfolio.label}[/green]")


@portfolio_group.command("delete")
@click.argument("reference")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@pass_cli
def delete_portfolio(cli: CliContext, reference: str, yes: bool):
    """Delete a portfolio with its whole history."""
    console = Console()
    try:
        portfolio = cli.service.find_portfolio(reference)
    except LedgerError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    if not yes:
        click.confirm(
            f"Delete {portfolio.label} and all its transactions and positions?",
            abort=True,
        )
    cli.service.delete_portfolio(portfolio.id)
    console.print(f"[green]✓ Deleted portfolio {portfolio.label}[/green]")
