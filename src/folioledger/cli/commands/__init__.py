"""Commands __init__ - exports all command groups."""

from folioledger.cli.commands.cash import cash_group
from folioledger.cli.commands.maintenance import backup_group, ledger_group
from folioledger.cli.commands.portfolio import portfolio_group
from folioledger.cli.commands.positions import (
    closed_command,
    positions_command,
    price_command,
    stop_loss_command,
    summary_command,
)
from folioledger.cli.commands.sizing import size_command
from folioledger.cli.commands.transactions import tx_group

__all__ = [
    "backup_group",
    "cash_group",
    "closed_command",
    "ledger_group",
    "portfolio_group",
    "positions_command",
    "price_command",
    "size_command",
    "stop_loss_command",
    "summary_command",
    "tx_group",
]
