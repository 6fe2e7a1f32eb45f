"""Backup and ledger maintenance commands."""

import sys
from datetime import datetime
from pathlib import Path

import click
from rich.console import Console

from folioledger.cli.context import CliContext, pass_cli, portfolio_option
from folioledger.cli.ui import print_update
from folioledger.services.ledger import LedgerError
from folioledger.services.transfer import import_backup, read_backup, write_backup


@click.group("backup")
def backup_group():
    """Backups - export and restore the whole ledger as JSON"""
    pass


@backup_group.command("export")
@click.argument("output", type=click.Path(dir_okay=False, path_type=Path), required=False)
@pass_cli
def export_command(cli: CliContext, output: Path | None):
    """Export every portfolio, transaction, position and setting to OUTPUT."""
    console = Console()
    if output is None:
        output = Path(f"folioledger-backup-{datetime.now().strftime('%Y%m%d-%H%M%S')}.json")
    path = write_backup(cli.store, output)
    console.print(f"[green]✓ Backup written to {path}[/green]")


@backup_group.command("import")
@click.argument("backup_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@pass_cli
def import_command(cli: CliContext, backup_file: Path, yes: bool):
    """Replace the whole ledger with the content of BACKUP_FILE."""
    console = Console()
    if not yes:
        click.confirm("This replaces ALL current data. Continue?", abort=True)

    try:
        counts = import_backup(cli.store, read_backup(backup_file))
    except LedgerError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    summary = ", ".join(f"{count} {name}" for name, count in counts.items())
    console.print(f"[green]✓ Restored {summary}[/green]")


@click.group("ledger")
def ledger_group():
    """Ledger maintenance"""
    pass


@ledger_group.command("rebuild")
@portfolio_option
@click.option("--all", "-a", "everywhere", is_flag=True, help="Rebuild every portfolio")
@pass_cli
def rebuild_command(cli: CliContext, portfolio_ref: str | None, everywhere: bool):
    """Recompute positions, closed positions and cash from the transaction history."""
    console = Console()
    try:
        portfolios = cli.service.list_portfolios() if everywhere else [cli.resolve_portfolio(portfolio_ref)]
    except LedgerError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    failed = False
    for portfolio in portfolios:
        console.print(f"[cyan]{portfolio.label}[/cyan]")
        update = cli.service.rebuild(portfolio.id)
        print_update(console, update, portfolio.currency)
        failed = failed or not update.ok
    if failed:
        sys.exit(1)
