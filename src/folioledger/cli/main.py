"""folioledger CLI main entry point."""

from pathlib import Path

import click

from folioledger import __version__
from folioledger.cli.commands import (
    backup_group,
    cash_group,
    closed_command,
    ledger_group,
    portfolio_group,
    positions_command,
    price_command,
    size_command,
    stop_loss_command,
    summary_command,
    tx_group,
)
from folioledger.cli.context import CliContext
from folioledger.system import LoggerFactory, reload_system_config


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default: $FOLIOLEDGER_CONFIG or ./folioledger.yaml)",
)
@click.option(
    "--db",
    "db_path",
    type=click.Path(dir_okay=False, path_type=Path),
    envvar="FOLIOLEDGER_DB",
    default=None,
    help="SQLite ledger file (overrides store settings)",
)
@click.version_option(version=__version__)
@click.pass_context
def main(ctx: click.Context, config_path: Path | None, db_path: Path | None):
    """folioledger - Portfolio ledger and position tracking"""
    config = reload_system_config(config_path)
    LoggerFactory.configure(config.logging.to_logger_config())
    ctx.obj = CliContext(config=config, db_path=db_path)
    ctx.call_on_close(ctx.obj.close)


# Register commands
main.add_command(portfolio_group)
main.add_command(tx_group)
main.add_command(cash_group)
main.add_command(positions_command)
main.add_command(closed_command)
main.add_command(summary_command)
main.add_command(stop_loss_command)
main.add_command(price_command)
main.add_command(size_command)
main.add_command(backup_group)
main.add_command(ledger_group)


if __name__ == "__main__":
    main()
