"""In-memory ledger store.

Used by tests and by `store.backend: memory`. `atomic()` snapshots every
collection on entry of the outermost block and restores the snapshot if the
block raises.
"""

from contextlib import contextmanager
from copy import deepcopy
from typing import Any, Iterator

from folioledger.services.ledger.models import (
    ClosedPosition,
    Portfolio,
    Position,
    Setting,
    Transaction,
    normalize_code,
)
from folioledger.system import LoggerFactory

logger = LoggerFactory.get_logger()


class InMemoryLedgerStore:
    """Dictionary-backed implementation of ILedgerStore."""

    def __init__(self) -> None:
        self._portfolios: dict[str, Portfolio] = {}
        self._transactions: dict[str, Transaction] = {}
        self._positions: dict[tuple[str | None, str], Position] = {}
        self._closed: list[ClosedPosition] = []
        self._settings: dict[str, str] = {}
        self._next_position_id = 1
        self._next_closed_id = 1
        self._depth = 0

    # ==================== Portfolios ====================

    def get_portfolios(self) -> list[Portfolio]:
        return [p.model_copy() for p in self._portfolios.values()]

    def get_portfolio(self, portfolio_id: str) -> Portfolio | None:
        portfolio = self._portfolios.get(portfolio_id)
        return portfolio.model_copy() if portfolio else None

    def create_portfolio(self, portfolio: Portfolio) -> Portfolio:
        if portfolio.id in self._portfolios:
            raise ValueError(f"Portfolio already exists: {portfolio.id}")
        self._portfolios[portfolio.id] = portfolio.model_copy()
        return portfolio

    def update_portfolio(self, portfolio: Portfolio) -> Portfolio:
        if portfolio.id not in self._portfolios:
            raise KeyError(portfolio.id)
        self._portfolios[portfolio.id] = portfolio.model_copy()
        return portfolio

    def delete_portfolio(self, portfolio_id: str) -> None:
        self._portfolios.pop(portfolio_id, None)
        self.delete_transactions(portfolio_id)
        self.delete_positions(portfolio_id)
        self.delete_closed_positions(portfolio_id)

    # ==================== Transactions ====================

    def get_transactions(self, portfolio_id: str | None = None) -> list[Transaction]:
        return [
            tx.model_copy()
            for tx in self._transactions.values()
            if portfolio_id is None or tx.portfolio_id == portfolio_id
        ]

    def get_transaction(self, transaction_id: str) -> Transaction | None:
        tx = self._transactions.get(transaction_id)
        return tx.model_copy() if tx else None

    def add_transaction(self, transaction: Transaction) -> Transaction:
        if transaction.id in self._transactions:
            raise ValueError(f"Transaction already exists: {transaction.id}")
        self._transactions[transaction.id] = transaction.model_copy()
        return transaction

    def update_transaction(self, transaction: Transaction) -> Transaction:
        if transaction.id not in self._transactions:
            raise KeyError(transaction.id)
        self._transactions[transaction.id] = transaction.model_copy()
        return transaction

    def delete_transaction(self, transaction_id: str) -> None:
        self._transactions.pop(transaction_id, None)

    def bulk_add_transactions(self, transactions: list[Transaction]) -> None:
        for tx in transactions:
            self.add_transaction(tx)

    def delete_transactions(self, portfolio_id: str) -> None:
        self._transactions = {k: tx for k, tx in self._transactions.items() if tx.portfolio_id != portfolio_id}

    # ==================== Positions ====================

    def get_positions(self, portfolio_id: str | None = None) -> list[Position]:
        return [
            p.model_copy()
            for (pid, _), p in self._positions.items()
            if portfolio_id is None or pid == portfolio_id
        ]

    def get_position(self, portfolio_id: str, code: str) -> Position | None:
        position = self._positions.get((portfolio_id, normalize_code(code)))
        return position.model_copy() if position else None

    def upsert_position(self, position: Position) -> Position:
        key = (position.portfolio_id, normalize_code(position.code))
        existing = self._positions.get(key)
        if existing is not None:
            position_id = existing.id
        else:
            position_id = self._next_position_id
            self._next_position_id += 1
        stored = position.model_copy(update={"id": position_id})
        self._positions[key] = stored
        return stored.model_copy()

    def bulk_upsert_positions(self, positions: list[Position]) -> None:
        for position in positions:
            self.upsert_position(position)

    def delete_position(self, portfolio_id: str, code: str) -> None:
        self._positions.pop((portfolio_id, normalize_code(code)), None)

    def delete_positions(self, portfolio_id: str) -> None:
        self._positions = {k: p for k, p in self._positions.items() if k[0] != portfolio_id}

    # ==================== Closed positions ====================

    def get_closed_positions(self, portfolio_id: str | None = None) -> list[ClosedPosition]:
        return [cp.model_copy() for cp in self._closed if portfolio_id is None or cp.portfolio_id == portfolio_id]

    def add_closed_position(self, closed: ClosedPosition) -> ClosedPosition:
        closed_id = closed.id if closed.id is not None else self._next_closed_id
        self._next_closed_id = max(self._next_closed_id, closed_id) + 1
        stored = closed.model_copy(update={"id": closed_id})
        self._closed.append(stored)
        return stored.model_copy()

    def bulk_add_closed_positions(self, closed: list[ClosedPosition]) -> None:
        for cp in closed:
            self.add_closed_position(cp)

    def delete_closed_positions(self, portfolio_id: str) -> None:
        self._closed = [cp for cp in self._closed if cp.portfolio_id != portfolio_id]

    # ==================== Settings ====================

    def get_setting(self, key: str) -> str | None:
        return self._settings.get(key)

    def set_setting(self, key: str, value: str) -> None:
        self._settings[key] = value

    def get_settings(self) -> list[Setting]:
        return [Setting(key=k, value=v) for k, v in self._settings.items()]

    # ==================== Lifecycle ====================

    def clear(self) -> None:
        self._portfolios.clear()
        self._transactions.clear()
        self._positions.clear()
        self._closed.clear()
        self._settings.clear()

    @contextmanager
    def atomic(self) -> Iterator[None]:
        if self._depth > 0:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        snapshot = self._snapshot()
        self._depth = 1
        try:
            yield
        except BaseException:
            self._restore(snapshot)
            logger.debug("store.atomic.rolled_back", backend="memory")
            raise
        finally:
            self._depth = 0

    def close(self) -> None:
        pass

    def _snapshot(self) -> dict[str, Any]:
        return deepcopy(
            {
                "portfolios": self._portfolios,
                "transactions": self._transactions,
                "positions": self._positions,
                "closed": self._closed,
                "settings": self._settings,
                "next_position_id": self._next_position_id,
                "next_closed_id": self._next_closed_id,
            }
        )

    def _restore(self, snapshot: dict[str, Any]) -> None:
        self._portfolios = snapshot["portfolios"]
        self._transactions = snapshot["transactions"]
        self._positions = snapshot["positions"]
        self._closed = snapshot["closed"]
        self._settings = snapshot["settings"]
        self._next_position_id = snapshot["next_position_id"]
        self._next_closed_id = snapshot["next_closed_id"]
