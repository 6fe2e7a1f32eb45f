"""CLI UI components - rich table formatters."""

from folioledger.cli.ui.formatters import (
    create_closed_table,
    create_csv_errors_table,
    create_portfolio_table,
    create_position_table,
    create_sizing_table,
    create_transaction_table,
    print_update,
)

__all__ = [
    "create_closed_table",
    "create_csv_errors_table",
    "create_portfolio_table",
    "create_position_table",
    "create_sizing_table",
    "create_transaction_table",
    "print_update",
]
