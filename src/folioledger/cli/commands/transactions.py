"""Transaction commands - thin CLI orchestration over LedgerService."""

import datetime as dt
import sys
from pathlib import Path

import click
from rich.console import Console

from folioledger.cli.context import CliContext, pass_cli, portfolio_option
from folioledger.cli.params import DATE, DECIMAL
from folioledger.cli.ui import create_csv_errors_table, create_transaction_table, print_update
from folioledger.services.ledger import (
    FeeSchedule,
    LedgerError,
    Portfolio,
    Transaction,
    TransactionNotFoundError,
    TransactionType,
)
from folioledger.services.transfer import normalize_type, read_transactions_csv

TYPE_CHOICES = ["buy", "sell", "dividend", "achat", "vente", "dividende"]


def _resolve_transaction_id(cli: CliContext, portfolio: Portfolio, prefix: str) -> str:
    """Full transaction id from an id or a unique id prefix."""
    matches = [tx.id for tx in cli.store.get_transactions(portfolio.id) if tx.id.startswith(prefix)]
    if len(matches) != 1:
        raise TransactionNotFoundError(prefix)
    return matches[0]


@click.group("tx")
def tx_group():
    """Transactions - record, list, edit, delete and import trades and dividends"""
    pass


@tx_group.command("add")
@click.argument("tx_type", metavar="TYPE", type=click.Choice(TYPE_CHOICES, case_sensitive=False))
@click.argument("code")
@click.argument("quantity", type=DECIMAL)
@click.argument("price", type=DECIMAL)
@portfolio_option
@click.option("--date", "-d", "on", type=DATE, default=None, help="Trade date YYYY-MM-DD (default: today)")
@click.option("--name", "-n", default="", help="Instrument name")
@click.option("--fees", type=DECIMAL, default=None, help="Brokerage fees (default: portfolio schedule)")
@click.option("--tff", type=DECIMAL, default=None, help="Financial transaction tax")
@click.option("--currency", default="EUR", show_default=True, help="Price currency")
@click.option("--rate", "conversion_rate", type=DECIMAL, default="1", show_default=True, help="Conversion rate")
@click.option("--tax", type=DECIMAL, default=None, help="Withholding tax (dividends)")
@click.option("--sector", default=None, help="Sector")
@pass_cli
def add_transaction(
    cli: CliContext,
    tx_type: str,
    code: str,
    quantity,
    price,
    portfolio_ref: str | None,
    on: dt.date | None,
    name: str,
    fees,
    tff,
    currency: str,
    conversion_rate,
    tax,
    sector: str | None,
):
    """
    Record a buy, sell or dividend.

    Fees left out are estimated from the portfolio fee schedule.

    \b
    Examples:
        folioledger tx add buy AAPL 10 175.50 --currency USD --rate 0.92
        folioledger tx add sell AAPL 5 190 --fees 2.5 -p PEA
        folioledger tx add dividend AAPL 10 0.24 --tax 0.36
    """
    console = Console()
    try:
        portfolio = cli.resolve_portfolio(portfolio_ref)
        tx = Transaction(
            portfolio_id=portfolio.id,
            date=on or dt.date.today(),
            code=code,
            name=name,
            type=normalize_type(tx_type) or TransactionType.BUY,
            quantity=quantity,
            unit_price=price,
            fees=fees if fees is not None else 0,
            tff=tff if tff is not None else 0,
            currency=currency.upper(),
            conversion_rate=conversion_rate,
            tax=tax,
            sector=sector,
        )
        tx = FeeSchedule.for_portfolio(portfolio).apply_defaults(
            tx,
            fees_given=fees is not None,
            tff_given=tff is not None or not cli.config.ledger.auto_tff,
        )
        update = cli.service.add_transaction(tx, portfolio.id)
    except (LedgerError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    print_update(console, update, portfolio.currency)
    if not update.ok:
        sys.exit(1)


@tx_group.command("list")
@portfolio_option
@click.option("--all", "-a", "consolidated", is_flag=True, help="All portfolios (consolidated view)")
@click.option("--code", "-c", default=None, help="Only this code")
@click.option("--type", "-t", "tx_type", default=None, help="Only this type (buy, sell, dividend, deposit...)")
@click.option("--limit", "-l", type=int, default=None, help="Show only the most recent N")
@pass_cli
def list_transactions(
    cli: CliContext,
    portfolio_ref: str | None,
    consolidated: bool,
    code: str | None,
    tx_type: str | None,
    limit: int | None,
):
    """List transactions, most recent last."""
    console = Console()
    try:
        wanted_type = normalize_type(tx_type) if tx_type else None
        if consolidated:
            view = cli.service.consolidated_view()
            rows = list(view.transactions)
            currency = "EUR"
        else:
            portfolio = cli.resolve_portfolio(portfolio_ref)
            rows = cli.service.get_transactions(portfolio.id)
            currency = portfolio.currency
    except LedgerError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    if code:
        rows = [tx for tx in rows if tx.code == code.strip().upper()]
    if wanted_type:
        rows = [tx for tx in rows if tx.type == wanted_type]
    if limit:
        rows = rows[-limit:]

    if not rows:
        console.print("[yellow]No transactions[/yellow]")
        return

    tags = [tx.portfolio_code for tx in rows] if consolidated else None  # type: ignore[attr-defined]
    console.print(create_transaction_table(rows, currency, tags))
    console.print(f"[dim]{len(rows)} transaction(s)[/dim]")


@tx_group.command("delete")
@click.argument("transaction_id")
@portfolio_option
@pass_cli
def delete_transaction(cli: CliContext, transaction_id: str, portfolio_ref: str | None):
    """Delete a transaction (id or unique id prefix) and rebuild positions."""
    console = Console()
    try:
        portfolio = cli.resolve_portfolio(portfolio_ref)
        full_id = _resolve_transaction_id(cli, portfolio, transaction_id)
        update = cli.service.delete_transaction(full_id, portfolio.id)
    except LedgerError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    print_update(console, update, portfolio.currency)
    if not update.ok:
        sys.exit(1)


@tx_group.command("edit")
@click.argument("transaction_id")
@portfolio_option
@click.option("--date", "-d", "on", type=DATE, default=None, help="New date")
@click.option("--quantity", "-q", type=DECIMAL, default=None, help="New quantity")
@click.option("--price", type=DECIMAL, default=None, help="New unit price")
@click.option("--fees", type=DECIMAL, default=None, help="New fees")
@click.option("--tff", type=DECIMAL, default=None, help="New TFF")
@click.option("--rate", "conversion_rate", type=DECIMAL, default=None, help="New conversion rate")
@click.option("--tax", type=DECIMAL, default=None, help="New withholding tax")
@click.option("--name", "-n", default=None, help="New name")
@click.option("--sector", default=None, help="New sector")
@pass_cli
def edit_transaction(
    cli: CliContext,
    transaction_id: str,
    portfolio_ref: str | None,
    on: dt.date | None,
    quantity,
    price,
    fees,
    tff,
    conversion_rate,
    tax,
    name: str | None,
    sector: str | None,
):
    """Edit a transaction. Only the given fields change."""
    console = Console()
    changes = {
        "date": on,
        "quantity": quantity,
        "unit_price": price,
        "fees": fees,
        "tff": tff,
        "conversion_rate": conversion_rate,
        "tax": tax,
        "name": name,
        "sector": sector,
    }
    changes = {key: value for key, value in changes.items() if value is not None}
    if not changes:
        console.print("[yellow]Nothing to change[/yellow]")
        return

    try:
        portfolio = cli.resolve_portfolio(portfolio_ref)
        full_id = _resolve_transaction_id(cli, portfolio, transaction_id)
        update = cli.service.update_transaction(full_id, portfolio.id, **changes)
    except (LedgerError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    print_update(console, update, portfolio.currency)
    if not update.ok:
        sys.exit(1)


@tx_group.command("import")
@click.argument("csv_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@portfolio_option
@click.option("--dry-run", is_flag=True, help="Parse and show the transactions without importing")
@pass_cli
def import_transactions(cli: CliContext, csv_file: Path, portfolio_ref: str | None, dry_run: bool):
    """
    Import transactions from a CSV file.

    Columns are detected from the header line (French or English names).
    Rows carrying a portfolio column go to that portfolio, the others to
    --portfolio (default: current portfolio).

    \b
    Example header:
        Portefeuille;Date;Code;Nom;Secteur;Type;Quantité;Prix;Devise;Taux;Frais;TFF
    """
    console = Console()
    result = read_transactions_csv(csv_file)
    console.print(f"[cyan]Parsed {len(result.transactions)} transaction(s) from {csv_file.name}[/cyan]")
    console.print(f"[dim]Columns: {', '.join(result.mapping)}[/dim]")
    if result.errors:
        console.print(create_csv_errors_table(result.errors))

    if dry_run or not result.transactions:
        if result.transactions:
            console.print(create_transaction_table(result.transactions))
        return

    try:
        default = cli.resolve_portfolio(portfolio_ref)
        targets = [
            (cli.service.find_portfolio(ref) if ref != default.id else default, batch)
            for ref, batch in result.group_by_portfolio(default.id).items()
        ]
    except LedgerError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    failed = False
    for portfolio, batch in targets:
        console.print(f"[cyan]{portfolio.label}: importing {len(batch)} transaction(s)[/cyan]")
        update = cli.service.import_transactions(batch, portfolio.id)
        print_update(console, update, portfolio.currency)
        failed = failed or not update.ok

    if failed:
        sys.exit(1)
