"""Position size calculator command."""

import sys
from decimal import Decimal

import click
from rich.console import Console

from folioledger.cli.context import CliContext, pass_cli, portfolio_option
from folioledger.cli.params import DECIMAL
from folioledger.cli.ui import create_sizing_table
from folioledger.libraries.risk import RiskProfile, calculate_risk_based_size
from folioledger.services.ledger import LedgerError


@click.command("size")
@click.option("--entry", "-e", "entry_price", type=DECIMAL, required=True, help="Planned buy price")
@click.option("--stop", "-s", "stop_price", type=DECIMAL, required=True, help="Stop-loss price")
@click.option("--capital", "-c", type=DECIMAL, default=None, help="Capital (default: portfolio cost basis + cash)")
@click.option("--risk", "-r", "risk_percent", type=DECIMAL, default=None, help="Base risk per trade in %")
@click.option(
    "--profile",
    type=click.Choice([p.value for p in RiskProfile]),
    default=None,
    help="Risk profile scaling the base risk",
)
@portfolio_option
@pass_cli
def size_command(
    cli: CliContext,
    entry_price: Decimal,
    stop_price: Decimal,
    capital: Decimal | None,
    risk_percent: Decimal | None,
    profile: str | None,
    portfolio_ref: str | None,
):
    """
    Compute how many shares to buy so that the stop risks a fixed share of capital.

    \b
    Examples:
        folioledger size --entry 7.3 --stop 6.76 --capital 16000 --risk 0.5
        folioledger size -e 120 -s 112 --profile prudent
    """
    console = Console()
    currency = cli.config.ledger.default_currency
    try:
        if capital is None:
            portfolio = cli.resolve_portfolio(portfolio_ref)
            invested = sum((p.total_cost for p in cli.service.get_positions(portfolio.id)), Decimal("0"))
            capital = invested + portfolio.cash
            currency = portfolio.currency
            console.print(f"[dim]Capital from {portfolio.label}: {capital}[/dim]")

        sizing = calculate_risk_based_size(
            capital=capital,
            entry_price=entry_price,
            stop_price=stop_price,
            risk_percent=risk_percent if risk_percent is not None else cli.config.sizing.risk_percent,
            profile=profile or cli.config.sizing.profile,
        )
    except (LedgerError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    console.print(create_sizing_table(sizing, currency))
    if sizing.max_shares == 0:
        console.print("[yellow]Risk budget too small for a single share at this stop distance[/yellow]")
