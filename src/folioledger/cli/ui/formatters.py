"""Rich table formatters for CLI output."""

from decimal import Decimal
from typing import Sequence

from rich.console import Console
from rich.table import Table

from folioledger.libraries.risk import PositionSizing
from folioledger.services.ledger import ClosedPosition, LedgerUpdate, Portfolio, Transaction
from folioledger.services.reporting import PositionValuation, format_money, format_pct
from folioledger.services.reporting.formatters import colored
from folioledger.services.transfer import CsvRowError


def _qty(value: Decimal) -> str:
    """Quantity without trailing zeros."""
    text = f"{value:f}"
    return text.rstrip("0").rstrip(".") if "." in text else text


def create_portfolio_table(portfolios: Sequence[Portfolio], current_id: str | None) -> Table:
    """
    Create a Rich table listing portfolios.

    Args:
        portfolios: Portfolios to list
        current_id: Id of the current portfolio, marked with a star
    """
    table = Table(title="Portfolios", show_header=True, header_style="bold cyan")
    table.add_column("", no_wrap=True)
    table.add_column("Code", style="green", no_wrap=True)
    table.add_column("Name")
    table.add_column("Category", style="magenta")
    table.add_column("Currency")
    table.add_column("Cash", justify="right", style="yellow")
    table.add_column("Id", style="dim")

    for p in portfolios:
        table.add_row(
            "*" if p.id == current_id else "",
            p.code or "-",
            p.name,
            p.category.value,
            p.currency,
            format_money(p.cash, p.currency),
            p.id,
        )
    return table


def create_transaction_table(
    transactions: Sequence[Transaction],
    currency: str = "EUR",
    tags: Sequence[str] | None = None,
) -> Table:
    """
    Create a Rich table of transactions.

    Args:
        transactions: Rows in display order
        currency: Portfolio currency for fees
        tags: Portfolio label per row (consolidated view), or None
    """
    table = Table(title="Transactions", show_header=True, header_style="bold cyan")
    if tags is not None:
        table.add_column("Portfolio", style="magenta")
    table.add_column("Date", style="green", no_wrap=True)
    table.add_column("Type")
    table.add_column("Code", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Qty", justify="right")
    table.add_column("Price", justify="right")
    table.add_column("Fees", justify="right")
    table.add_column("Id", style="dim")

    for index, tx in enumerate(transactions):
        row = [
            tx.date.isoformat(),
            tx.type.value,
            tx.code,
            tx.name,
            _qty(tx.quantity),
            format_money(tx.unit_price, tx.currency, precision=4 if tx.unit_price < 1 else 2),
            format_money(tx.fees + tx.tff, currency),
            tx.id[:8],
        ]
        if tags is not None:
            row.insert(0, tags[index])
        table.add_row(*row)
    return table


def create_position_table(valuations: Sequence[PositionValuation], currency: str = "EUR") -> Table:
    """Create a Rich table of open positions marked to their effective price."""
    table = Table(title="Open Positions", show_header=True, header_style="bold cyan")
    table.add_column("Code", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Qty", justify="right")
    table.add_column("PRU", justify="right")
    table.add_column("Cost", justify="right")
    table.add_column("Price", justify="right")
    table.add_column("Value", justify="right")
    table.add_column("Latent", justify="right")
    table.add_column("Stop", justify="right", style="dim")
    table.add_column("Risk", justify="right")

    for v in valuations:
        p = v.position
        price = format_money(v.price, currency)
        if v.price_source == "manual":
            price += " (m)"
        latent = "-"
        if v.latent_gain_loss is not None:
            latent = colored(
                f"{format_money(v.latent_gain_loss, currency)} ({format_pct(v.latent_gain_loss_percent)})",
                v.latent_gain_loss,
            )
        risk = colored(format_money(v.risk, currency), v.risk) if v.risk is not None else "-"
        table.add_row(
            p.code,
            p.name,
            _qty(p.quantity),
            format_money(p.pru, currency),
            format_money(p.total_cost, currency),
            price,
            format_money(v.total_value, currency),
            latent,
            format_money(p.stop_loss, currency),
            risk,
        )
    return table


def create_closed_table(closed: Sequence[ClosedPosition], currency: str = "EUR") -> Table:
    """Create a Rich table of closed positions."""
    table = Table(title="Closed Positions", show_header=True, header_style="bold cyan")
    table.add_column("Code", style="cyan", no_wrap=True)
    table.add_column("Bought", style="green")
    table.add_column("Sold", style="green")
    table.add_column("Qty", justify="right")
    table.add_column("PRU", justify="right")
    table.add_column("Avg Sale", justify="right")
    table.add_column("Purchase", justify="right")
    table.add_column("Sale", justify="right")
    table.add_column("Gain/Loss", justify="right")
    table.add_column("Dividends", justify="right", style="yellow")

    for cp in sorted(closed, key=lambda c: c.sale_date, reverse=True):
        table.add_row(
            cp.code,
            cp.purchase_date.isoformat(),
            cp.sale_date.isoformat(),
            _qty(cp.quantity),
            format_money(cp.pru, currency),
            format_money(cp.average_sale_price, currency),
            format_money(cp.total_purchase, currency),
            format_money(cp.total_sale, currency),
            colored(f"{format_money(cp.gain_loss, currency)} ({format_pct(cp.gain_loss_percent)})", cp.gain_loss),
            format_money(cp.dividends, currency),
        )
    return table


def create_sizing_table(sizing: PositionSizing, currency: str = "EUR") -> Table:
    """Create a Rich table for a position sizing result."""
    table = Table(title="Position Size", show_header=False, box=None, padding=(0, 2))
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Final Risk", format_pct(sizing.final_risk_percent))
    table.add_row("Risk Amount", format_money(sizing.risk_amount, currency))
    table.add_row("Risk per Share", format_money(sizing.risk_per_share, currency, precision=4))
    table.add_row("Stop Distance", f"[red]{format_pct(sizing.stop_percent)}[/red]")
    table.add_row("", "")
    table.add_row("Max Shares", f"[bold green]{sizing.max_shares}[/bold green]")
    table.add_row("Max Invested", format_money(sizing.max_invested, currency))
    table.add_row("% of Portfolio", format_pct(sizing.percent_of_portfolio))
    table.add_row("Half Position", f"{sizing.half_position} ({format_pct(sizing.half_percent)})")
    table.add_row("Half Position Risk", format_money(sizing.half_risk_amount, currency))
    table.add_row(
        "Trigger Range",
        f"{format_money(sizing.trigger_lower, currency, precision=4)} - "
        f"{format_money(sizing.trigger_upper, currency, precision=4)}",
    )
    return table


def create_csv_errors_table(errors: Sequence[CsvRowError]) -> Table:
    """Create a Rich table of rejected CSV lines."""
    table = Table(title="Rejected Lines", show_header=True, header_style="bold red")
    table.add_column("Line", justify="right", style="yellow")
    table.add_column("Error")
    for error in errors:
        table.add_row(str(error.line), error.message)
    return table


def print_update(console: Console, update: LedgerUpdate, currency: str = "EUR") -> None:
    """Print the outcome of a ledger operation (warnings included)."""
    if not update.ok:
        console.print(f"[red]Error: {update.error}[/red]")
        return

    parts = [f"[green]✓ {update.operation}[/green]"]
    if update.transaction is not None:
        tx = update.transaction
        parts.append(f"{tx.type.value} {_qty(tx.quantity)} {tx.code}")
    if update.replayed:
        parts.append("[dim](history replayed)[/dim]")
    if update.cash is not None:
        parts.append(f"cash {format_money(update.cash, currency)}")
    console.print(" ".join(parts))

    for issue in update.issues:
        console.print(f"[yellow]Row {issue.row}: {issue.message}[/yellow]")
    for skipped in update.skipped:
        tx = skipped.transaction
        console.print(
            f"[yellow]Skipped {tx.date} {tx.type.value} {_qty(tx.quantity)} {tx.code}: {skipped.reason}[/yellow]"
        )
