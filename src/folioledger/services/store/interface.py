"""Ledger store interface (Protocol).

Defines the persistence contract the ledger service depends on. A store
holds five collections: portfolios, transactions, positions (unique per
portfolio and code), closed positions and settings.

All multi-step writes of the ledger service run inside `atomic()`: either
every write in the block is persisted or none is. Blocks may nest; only the
outermost block commits or rolls back. Store I/O errors propagate to the
caller unchanged.
"""

from typing import ContextManager, Protocol

from folioledger.services.ledger.models import ClosedPosition, Portfolio, Position, Setting, Transaction


class ILedgerStore(Protocol):
    """
    Persistence for portfolios and their ledger.

    Example:
        >>> store: ILedgerStore = SQLiteLedgerStore("ledger.db")
        >>> with store.atomic():
        ...     store.add_transaction(tx)
        ...     store.upsert_position(position)
    """

    # ==================== Portfolios ====================

    def get_portfolios(self) -> list[Portfolio]: ...

    def get_portfolio(self, portfolio_id: str) -> Portfolio | None: ...

    def create_portfolio(self, portfolio: Portfolio) -> Portfolio: ...

    def update_portfolio(self, portfolio: Portfolio) -> Portfolio: ...

    def delete_portfolio(self, portfolio_id: str) -> None:
        """Delete a portfolio and all its transactions, positions and closed positions."""
        ...

    # ==================== Transactions ====================

    def get_transactions(self, portfolio_id: str | None = None) -> list[Transaction]:
        """Transactions in insertion order, all portfolios when portfolio_id is None."""
        ...

    def get_transaction(self, transaction_id: str) -> Transaction | None: ...

    def add_transaction(self, transaction: Transaction) -> Transaction: ...

    def update_transaction(self, transaction: Transaction) -> Transaction: ...

    def delete_transaction(self, transaction_id: str) -> None: ...

    def bulk_add_transactions(self, transactions: list[Transaction]) -> None: ...

    def delete_transactions(self, portfolio_id: str) -> None: ...

    # ==================== Positions ====================

    def get_positions(self, portfolio_id: str | None = None) -> list[Position]: ...

    def get_position(self, portfolio_id: str, code: str) -> Position | None: ...

    def upsert_position(self, position: Position) -> Position:
        """Insert or replace the position for (portfolio_id, code). Returns it with its id."""
        ...

    def bulk_upsert_positions(self, positions: list[Position]) -> None: ...

    def delete_position(self, portfolio_id: str, code: str) -> None: ...

    def delete_positions(self, portfolio_id: str) -> None: ...

    # ==================== Closed positions ====================

    def get_closed_positions(self, portfolio_id: str | None = None) -> list[ClosedPosition]: ...

    def add_closed_position(self, closed: ClosedPosition) -> ClosedPosition:
        """Append a closed position. Returns it with its store-assigned id."""
        ...

    def bulk_add_closed_positions(self, closed: list[ClosedPosition]) -> None: ...

    def delete_closed_positions(self, portfolio_id: str) -> None: ...

    # ==================== Settings ====================

    def get_setting(self, key: str) -> str | None: ...

    def set_setting(self, key: str, value: str) -> None: ...

    def get_settings(self) -> list[Setting]: ...

    # ==================== Lifecycle ====================

    def clear(self) -> None:
        """Remove every record from every collection."""
        ...

    def atomic(self) -> ContextManager[None]:
        """All-or-nothing write block."""
        ...

    def close(self) -> None: ...
