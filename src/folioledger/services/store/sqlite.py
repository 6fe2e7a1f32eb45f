"""SQLite ledger store.

Each record is stored as its camelCase JSON document next to the key columns
needed for lookups (portfolio id, code, date). The connection runs in
autocommit mode; `atomic()` wraps its block in BEGIN/COMMIT and rolls back on
any exception. Nested blocks join the outermost transaction.
"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

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

SCHEMA = """
CREATE TABLE IF NOT EXISTS portfolios (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL UNIQUE,
    payload TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS transactions (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL UNIQUE,
    portfolio_id TEXT,
    date TEXT NOT NULL,
    code TEXT NOT NULL,
    payload TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_transactions_portfolio ON transactions (portfolio_id);
CREATE TABLE IF NOT EXISTS positions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    portfolio_id TEXT,
    code TEXT NOT NULL,
    payload TEXT NOT NULL,
    UNIQUE (portfolio_id, code)
);
CREATE TABLE IF NOT EXISTS closed_positions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    portfolio_id TEXT,
    code TEXT NOT NULL,
    sale_date TEXT NOT NULL,
    payload TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_closed_positions_portfolio ON closed_positions (portfolio_id);
CREATE TABLE IF NOT EXISTS settings (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""


class SQLiteLedgerStore:
    """
    SQLite implementation of ILedgerStore.

    Args:
        path: Database file, created with its parent directory if missing.
            ":memory:" gives a private in-memory database.

    Example:
        >>> store = SQLiteLedgerStore(Path("data/folioledger.db"))
        >>> store.create_portfolio(Portfolio(name="PEA"))
        >>> store.close()
    """

    def __init__(self, path: str | Path) -> None:
        self.path = str(path)
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(self.path, isolation_level=None)
        self._conn.executescript(SCHEMA)
        self._depth = 0
        logger.debug("store.sqlite.opened", path=self.path)

    # ==================== Portfolios ====================

    def get_portfolios(self) -> list[Portfolio]:
        rows = self._conn.execute("SELECT payload FROM portfolios ORDER BY seq").fetchall()
        return [Portfolio.model_validate_json(payload) for (payload,) in rows]

    def get_portfolio(self, portfolio_id: str) -> Portfolio | None:
        row = self._conn.execute("SELECT payload FROM portfolios WHERE id = ?", (portfolio_id,)).fetchone()
        return Portfolio.model_validate_json(row[0]) if row else None

    def create_portfolio(self, portfolio: Portfolio) -> Portfolio:
        self._conn.execute(
            "INSERT INTO portfolios (id, payload) VALUES (?, ?)",
            (portfolio.id, portfolio.model_dump_json(by_alias=True)),
        )
        return portfolio

    def update_portfolio(self, portfolio: Portfolio) -> Portfolio:
        cursor = self._conn.execute(
            "UPDATE portfolios SET payload = ? WHERE id = ?",
            (portfolio.model_dump_json(by_alias=True), portfolio.id),
        )
        if cursor.rowcount == 0:
            raise KeyError(portfolio.id)
        return portfolio

    def delete_portfolio(self, portfolio_id: str) -> None:
        with self.atomic():
            self._conn.execute("DELETE FROM portfolios WHERE id = ?", (portfolio_id,))
            self.delete_transactions(portfolio_id)
            self.delete_positions(portfolio_id)
            self.delete_closed_positions(portfolio_id)

    # ==================== Transactions ====================

    def get_transactions(self, portfolio_id: str | None = None) -> list[Transaction]:
        if portfolio_id is None:
            rows = self._conn.execute("SELECT payload FROM transactions ORDER BY seq").fetchall()
        else:
            rows = self._conn.execute(
                "SELECT payload FROM transactions WHERE portfolio_id = ? ORDER BY seq", (portfolio_id,)
            ).fetchall()
        return [Transaction.model_validate_json(payload) for (payload,) in rows]

    def get_transaction(self, transaction_id: str) -> Transaction | None:
        row = self._conn.execute("SELECT payload FROM transactions WHERE id = ?", (transaction_id,)).fetchone()
        return Transaction.model_validate_json(row[0]) if row else None

    def add_transaction(self, transaction: Transaction) -> Transaction:
        self._conn.execute(
            "INSERT INTO transactions (id, portfolio_id, date, code, payload) VALUES (?, ?, ?, ?, ?)",
            (
                transaction.id,
                transaction.portfolio_id,
                transaction.date.isoformat(),
                transaction.code,
                transaction.model_dump_json(by_alias=True),
            ),
        )
        return transaction

    def update_transaction(self, transaction: Transaction) -> Transaction:
        cursor = self._conn.execute(
            "UPDATE transactions SET portfolio_id = ?, date = ?, code = ?, payload = ? WHERE id = ?",
            (
                transaction.portfolio_id,
                transaction.date.isoformat(),
                transaction.code,
                transaction.model_dump_json(by_alias=True),
                transaction.id,
            ),
        )
        if cursor.rowcount == 0:
            raise KeyError(transaction.id)
        return transaction

    def delete_transaction(self, transaction_id: str) -> None:
        self._conn.execute("DELETE FROM transactions WHERE id = ?", (transaction_id,))

    def bulk_add_transactions(self, transactions: list[Transaction]) -> None:
        with self.atomic():
            for tx in transactions:
                self.add_transaction(tx)

    def delete_transactions(self, portfolio_id: str) -> None:
        self._conn.execute("DELETE FROM transactions WHERE portfolio_id = ?", (portfolio_id,))

    # ==================== Positions ====================

    def get_positions(self, portfolio_id: str | None = None) -> list[Position]:
        if portfolio_id is None:
            rows = self._conn.execute("SELECT id, payload FROM positions ORDER BY id").fetchall()
        else:
            rows = self._conn.execute(
                "SELECT id, payload FROM positions WHERE portfolio_id = ? ORDER BY id", (portfolio_id,)
            ).fetchall()
        return [self._load_position(row_id, payload) for row_id, payload in rows]

    def get_position(self, portfolio_id: str, code: str) -> Position | None:
        row = self._conn.execute(
            "SELECT id, payload FROM positions WHERE portfolio_id = ? AND code = ?",
            (portfolio_id, normalize_code(code)),
        ).fetchone()
        return self._load_position(*row) if row else None

    def upsert_position(self, position: Position) -> Position:
        code = normalize_code(position.code)
        payload = position.model_copy(update={"id": None}).model_dump_json(by_alias=True)
        self._conn.execute(
            "INSERT INTO positions (portfolio_id, code, payload) VALUES (?, ?, ?) "
            "ON CONFLICT (portfolio_id, code) DO UPDATE SET payload = excluded.payload",
            (position.portfolio_id, code, payload),
        )
        row = self._conn.execute(
            "SELECT id FROM positions WHERE portfolio_id IS ? AND code = ?", (position.portfolio_id, code)
        ).fetchone()
        return position.model_copy(update={"id": row[0]})

    def bulk_upsert_positions(self, positions: list[Position]) -> None:
        with self.atomic():
            for position in positions:
                self.upsert_position(position)

    def delete_position(self, portfolio_id: str, code: str) -> None:
        self._conn.execute(
            "DELETE FROM positions WHERE portfolio_id = ? AND code = ?", (portfolio_id, normalize_code(code))
        )

    def delete_positions(self, portfolio_id: str) -> None:
        self._conn.execute("DELETE FROM positions WHERE portfolio_id = ?", (portfolio_id,))

    # ==================== Closed positions ====================

    def get_closed_positions(self, portfolio_id: str | None = None) -> list[ClosedPosition]:
        if portfolio_id is None:
            rows = self._conn.execute("SELECT id, payload FROM closed_positions ORDER BY id").fetchall()
        else:
            rows = self._conn.execute(
                "SELECT id, payload FROM closed_positions WHERE portfolio_id = ? ORDER BY id", (portfolio_id,)
            ).fetchall()
        return [
            ClosedPosition.model_validate_json(payload).model_copy(update={"id": row_id}) for row_id, payload in rows
        ]

    def add_closed_position(self, closed: ClosedPosition) -> ClosedPosition:
        payload = closed.model_copy(update={"id": None}).model_dump_json(by_alias=True)
        cursor = self._conn.execute(
            "INSERT INTO closed_positions (id, portfolio_id, code, sale_date, payload) VALUES (?, ?, ?, ?, ?)",
            (closed.id, closed.portfolio_id, closed.code, closed.sale_date.isoformat(), payload),
        )
        return closed.model_copy(update={"id": cursor.lastrowid})

    def bulk_add_closed_positions(self, closed: list[ClosedPosition]) -> None:
        with self.atomic():
            for cp in closed:
                self.add_closed_position(cp)

    def delete_closed_positions(self, portfolio_id: str) -> None:
        self._conn.execute("DELETE FROM closed_positions WHERE portfolio_id = ?", (portfolio_id,))

    # ==================== Settings ====================

    def get_setting(self, key: str) -> str | None:
        row = self._conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def set_setting(self, key: str, value: str) -> None:
        self._conn.execute(
            "INSERT INTO settings (key, value) VALUES (?, ?) ON CONFLICT (key) DO UPDATE SET value = excluded.value",
            (key, value),
        )

    def get_settings(self) -> list[Setting]:
        rows = self._conn.execute("SELECT key, value FROM settings ORDER BY key").fetchall()
        return [Setting(key=k, value=v) for k, v in rows]

    # ==================== Lifecycle ====================

    def clear(self) -> None:
        with self.atomic():
            for table in ("portfolios", "transactions", "positions", "closed_positions", "settings"):
                self._conn.execute(f"DELETE FROM {table}")

    @contextmanager
    def atomic(self) -> Iterator[None]:
        if self._depth > 0:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        self._conn.execute("BEGIN")
        self._depth = 1
        try:
            yield
        except BaseException:
            self._conn.execute("ROLLBACK")
            logger.debug("store.atomic.rolled_back", backend="sqlite")
            raise
        else:
            self._conn.execute("COMMIT")
        finally:
            self._depth = 0

    def close(self) -> None:
        self._conn.close()

    @staticmethod
    def _load_position(row_id: int, payload: str) -> Position:
        return Position.model_validate_json(payload).model_copy(update={"id": row_id})
