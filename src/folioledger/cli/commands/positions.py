"""Position, statistics and position metadata commands."""

import datetime as dt
import sys
from decimal import Decimal

import click
from rich.console import Console

from folioledger.cli.context import CliContext, pass_cli, portfolio_option
from folioledger.cli.params import DATE, DECIMAL, PRICE_ASSIGNMENT
from folioledger.cli.ui import create_closed_table, create_position_table
from folioledger.services.ledger import LedgerError, Position
from folioledger.services.quotes import Quote, QuoteService, StaticQuoteProvider, TTLCache
from folioledger.services.reporting import display_portfolio_summary, format_money, summarize_portfolio, value_position

price_option = click.option(
    "--price",
    "prices",
    type=PRICE_ASSIGNMENT,
    multiple=True,
    help="Market price as CODE=PRICE (repeatable)",
)


def _quotes(cli: CliContext, prices: tuple[tuple[str, Decimal], ...], positions: list[Position]) -> dict[str, Quote]:
    """Quotes for the held codes from the prices given on the command line."""
    service = QuoteService(
        StaticQuoteProvider(dict(prices)),
        TTLCache(),
        ttl_seconds=cli.config.quotes.cache_ttl_seconds,
        max_symbols=max(cli.config.quotes.max_symbols, len(positions)),
    )
    return {q.symbol: q for q in service.get_quotes(p.code for p in positions)}


@click.command("positions")
@portfolio_option
@click.option("--all", "-a", "consolidated", is_flag=True, help="All portfolios (consolidated view)")
@price_option
@pass_cli
def positions_command(cli: CliContext, portfolio_ref: str | None, consolidated: bool, prices):
    """
    Show open positions.

    \b
    Examples:
        folioledger positions
        folioledger positions --price AAPL=182.3 --price MC.PA=702
    """
    console = Console()
    try:
        if consolidated:
            positions: list[Position] = list(cli.service.consolidated_view().positions)
            currency = cli.config.ledger.default_currency
            cash = sum((p.cash for p in cli.service.list_portfolios()), Decimal("0"))
        else:
            portfolio = cli.resolve_portfolio(portfolio_ref)
            positions = cli.service.get_positions(portfolio.id)
            currency = portfolio.currency
            cash = portfolio.cash
    except LedgerError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    if not positions:
        console.print("[yellow]No open positions[/yellow]")
        console.print(f"Cash: {format_money(cash, currency)}")
        return

    quotes = _quotes(cli, prices, positions)
    valuations = [value_position(p, quotes.get(p.code)) for p in positions]
    console.print(create_position_table(valuations, currency))

    invested = sum((p.total_cost for p in positions), Decimal("0"))
    value = sum((v.total_value for v in valuations if v.total_value is not None), Decimal("0"))
    console.print(
        f"Invested: {format_money(invested, currency)}  "
        f"Value: {format_money(value, currency)}  "
        f"Cash: {format_money(cash, currency)}"
    )


@click.command("closed")
@portfolio_option
@click.option("--all", "-a", "consolidated", is_flag=True, help="All portfolios (consolidated view)")
@click.option("--from", "start", type=DATE, default=None, help="Sold on or after YYYY-MM-DD")
@click.option("--to", "end", type=DATE, default=None, help="Sold on or before YYYY-MM-DD")
@pass_cli
def closed_command(
    cli: CliContext,
    portfolio_ref: str | None,
    consolidated: bool,
    start: dt.date | None,
    end: dt.date | None,
):
    """Show closed positions (realized gains)."""
    console = Console()
    try:
        if consolidated:
            closed = list(cli.service.consolidated_view().closed_positions)
            currency = cli.config.ledger.default_currency
        else:
            portfolio = cli.resolve_portfolio(portfolio_ref)
            closed = cli.service.get_closed_positions(portfolio.id)
            currency = portfolio.currency
    except LedgerError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    closed = [c for c in closed if (start is None or c.sale_date >= start) and (end is None or c.sale_date <= end)]
    if not closed:
        console.print("[yellow]No closed positions[/yellow]")
        return

    console.print(create_closed_table(closed, currency))
    realized = sum((c.gain_loss for c in closed), Decimal("0"))
    color = "green" if realized >= 0 else "red"
    console.print(f"Realized: [{color}]{format_money(realized, currency)}[/{color}] over {len(closed)} sale(s)")


@click.command("summary")
@portfolio_option
@click.option("--from", "start", type=DATE, default=None, help="Range start YYYY-MM-DD")
@click.option("--to", "end", type=DATE, default=None, help="Range end YYYY-MM-DD")
@price_option
@click.option("--brief", is_flag=True, help="Performance figures only")
@pass_cli
def summary_command(
    cli: CliContext,
    portfolio_ref: str | None,
    start: dt.date | None,
    end: dt.date | None,
    prices,
    brief: bool,
):
    """Show portfolio statistics: gains, dividends, trade stats, risk and allocation."""
    console = Console()
    try:
        portfolio = cli.resolve_portfolio(portfolio_ref)
    except LedgerError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    positions = cli.service.get_positions(portfolio.id)
    summary = summarize_portfolio(
        portfolio,
        positions,
        cli.service.get_closed_positions(portfolio.id),
        cli.service.get_transactions(portfolio.id),
        quotes=_quotes(cli, prices, positions) if positions else None,
        start=start,
        end=end,
    )
    console.print(f"[bold cyan]{portfolio.label}[/bold cyan] [dim]{portfolio.category.value}[/dim]")
    display_portfolio_summary(summary, portfolio.currency, "summary" if brief else "full", console)


def _metadata_command(cli: CliContext, field: str, code: str, value, clear: bool, portfolio_ref, everywhere: bool):
    console = Console()
    if value is None and not clear:
        console.print("[red]Error: give a value or --clear[/red]")
        sys.exit(1)

    try:
        portfolio_id = None if everywhere else cli.resolve_portfolio(portfolio_ref).id
        if field == "stop_loss":
            update = cli.service.set_stop_loss(code, None if clear else value, portfolio_id)
        else:
            update = cli.service.set_manual_price(code, None if clear else value, portfolio_id)
    except (LedgerError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    if not update.ok:
        console.print(f"[red]Error: {update.error}[/red]")
        sys.exit(1)

    label = "Stop-loss" if field == "stop_loss" else "Manual price"
    shown = "cleared" if clear else f"set to {value}"
    console.print(
        f"[green]✓ {label} for {code.upper()} {shown}[/green] [dim]({len(update.positions)} position(s))[/dim]"
    )


@click.command("stop-loss")
@click.argument("code")
@click.argument("value", type=DECIMAL, required=False)
@click.option("--clear", is_flag=True, help="Remove the stop-loss")
@portfolio_option
@click.option("--all", "-a", "everywhere", is_flag=True, help="Apply in every portfolio holding CODE")
@pass_cli
def stop_loss_command(cli: CliContext, code: str, value, clear: bool, portfolio_ref: str | None, everywhere: bool):
    """Set or clear the stop-loss of a position."""
    _metadata_command(cli, "stop_loss", code, value, clear, portfolio_ref, everywhere)


@click.command("price")
@click.argument("code")
@click.argument("value", type=DECIMAL, required=False)
@click.option("--clear", is_flag=True, help="Remove the manual price")
@portfolio_option
@click.option("--all", "-a", "everywhere", is_flag=True, help="Apply in every portfolio holding CODE")
@pass_cli
def price_command(cli: CliContext, code: str, value, clear: bool, portfolio_ref: str | None, everywhere: bool):
    """Set or clear a manual price. It overrides market quotes for the position."""
    _metadata_command(cli, "manual_current_price", code, value, clear, portfolio_ref, everywhere)
