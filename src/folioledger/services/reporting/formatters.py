"""Rich console formatters for portfolio summaries.

Terminal display of the dashboard figures computed by summarize_portfolio:
performance, trade statistics, stop-loss risk and allocation tables.
"""

from decimal import Decimal
from typing import Literal

from rich.console import Console
from rich.table import Table

from folioledger.services.reporting.summary import AllocationSlice, PortfolioSummary

CURRENCY_SYMBOLS = {"EUR": "€", "USD": "$", "GBP": "£", "CHF": "CHF ", "JPY": "¥", "DKK": "kr ", "SEK": "kr "}


def format_money(value: Decimal | None, currency: str = "EUR", precision: int = 2) -> str:
    """Format an amount with its currency symbol, '-' when None."""
    if value is None:
        return "-"
    symbol = CURRENCY_SYMBOLS.get(currency, f"{currency} ")
    return f"{symbol}{float(value):,.{precision}f}"


def format_pct(value: Decimal | None, precision: int = 2) -> str:
    if value is None:
        return "-"
    return f"{float(value):.{precision}f}%"


def get_color(value: Decimal | None) -> str:
    """Color for a signed value."""
    if value is None or value == 0:
        return "white"
    return "green" if value > 0 else "red"


def colored(text: str, value: Decimal | None) -> str:
    color = get_color(value)
    return f"[{color}]{text}[/{color}]"


def _create_performance_table(summary: PortfolioSummary, currency: str) -> Table:
    """Create invested/value/gains table."""
    period = "All time"
    if summary.start or summary.end:
        period = f"{summary.start or '...'} to {summary.end or '...'}"
    table = Table(title=f"Portfolio Summary ({period})", show_header=False, box=None, padding=(0, 2))

    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Invested", format_money(summary.invested, currency))
    table.add_row("Market Value", format_money(summary.value, currency))
    table.add_row("Cash", format_money(summary.cash, currency))
    table.add_row("Total Portfolio", format_money(summary.total_portfolio, currency))
    table.add_row("", "")
    table.add_row(
        "Unrealized",
        colored(
            f"{format_money(summary.unrealized, currency)} ({format_pct(summary.unrealized_percent)})",
            summary.unrealized,
        ),
    )
    table.add_row("Realized", colored(format_money(summary.realized, currency), summary.realized))
    table.add_row("Dividends", colored(format_money(summary.dividends, currency), summary.dividends))
    table.add_row(
        "Total Gain",
        colored(
            f"{format_money(summary.total_gain, currency)} ({format_pct(summary.total_gain_percent)})",
            summary.total_gain,
        ),
    )
    return table


def _create_trade_stats_table(summary: PortfolioSummary, currency: str) -> Table:
    """Create closed trade statistics table."""
    table = Table(title="Trade Statistics", show_header=False, box=None, padding=(0, 2))

    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Closed Trades", str(summary.closed_trades))
    table.add_row("Winning", f"[green]{summary.wins}[/green]")
    table.add_row("Losing", f"[red]{summary.losses}[/red]")
    table.add_row("Break-even", str(summary.breakeven))

    rate_color = "green" if summary.success_rate >= 50 else "yellow"
    table.add_row("Success Rate", f"[{rate_color}]{format_pct(summary.success_rate, 1)}[/{rate_color}]")
    table.add_row("Total Gains", format_money(summary.total_gains, currency))
    table.add_row("Total Losses", format_money(summary.total_losses, currency))
    if summary.gain_loss_ratio is None:
        table.add_row("Gain/Loss Ratio", "[dim]∞ (no losses)[/dim]")
    else:
        table.add_row("Gain/Loss Ratio", f"{float(summary.gain_loss_ratio):.2f}")
    return table


def _create_allocation_table(title: str, slices: list[AllocationSlice], currency: str) -> Table | None:
    if not slices:
        return None

    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Name", style="green")
    table.add_column("Value", justify="right")
    table.add_column("Share", justify="right", style="yellow")
    for item in slices:
        table.add_row(item.name, format_money(item.value, currency), format_pct(item.percent, 1))
    return table


def display_portfolio_summary(
    summary: PortfolioSummary,
    currency: str = "EUR",
    detail_level: Literal["summary", "full"] = "full",
    console: Console | None = None,
) -> None:
    """
    Display a portfolio summary in Rich-formatted console output.

    Args:
        summary: Figures from summarize_portfolio
        currency: Portfolio currency used for amounts
        detail_level: "summary" shows performance only, "full" adds trade
            statistics, stop-loss risk and allocation
        console: Rich Console instance (creates new if None)
    """
    if console is None:
        console = Console()

    console.print()
    console.print(_create_performance_table(summary, currency))
    console.print()

    if detail_level != "full":
        return

    if summary.closed_trades > 0:
        console.print(_create_trade_stats_table(summary, currency))
        console.print()

    if summary.stop_loss_risk != 0:
        console.print(
            f"Stop-loss risk: {colored(format_money(summary.stop_loss_risk, currency), summary.stop_loss_risk)}"
            f" ({format_pct(summary.stop_loss_risk_percent)} of portfolio)"
        )
        console.print()

    for title, slices in (
        ("Allocation by Code", summary.allocation_by_code),
        ("Allocation by Sector", summary.allocation_by_sector),
    ):
        table = _create_allocation_table(title, slices, currency)
        if table:
            console.print(table)
            console.print()
