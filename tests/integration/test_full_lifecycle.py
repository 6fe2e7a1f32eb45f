"""
Full ledger lifecycle on a SQLite file.

Tests the complete flow:
    CSV import → LedgerService replay → SQLite store
        → out-of-order insert (replay) → position metadata
        → backup export → restore into a fresh store → rebuild

Verifies:
- Derived positions, closed positions and cash after each step
- Stop-loss survives replays and restores
- A restored ledger rebuilds to the same derived state
- Listeners see every operation in order
"""

import datetime as dt
from decimal import Decimal

import pytest

from folioledger.services.ledger import LedgerService
from folioledger.services.store import SQLiteLedgerStore
from folioledger.services.transfer import export_backup, import_backup, read_backup, read_transactions_csv, write_backup

BROKER_EXPORT = """Date,Code,Name,Type,Quantity,Price,Fees,Tax
2024-01-05,AAPL,Apple,Buy,10,100,5,
2024-02-01,AAPL,Apple,Buy,10,110,5,
2024-03-01,AAPL,Apple,Sell,15,120,3,
2024-03-15,AAPL,Apple,Dividend,5,2,0,1
"""


@pytest.fixture
def ledger_file(tmp_path):
    return tmp_path / "ledger.db"


@pytest.fixture
def sqlite_store(ledger_file):
    """SQLite store closed after the test."""
    store = SQLiteLedgerStore(ledger_file)
    yield store
    store.close()


@pytest.fixture
def restored_store(tmp_path):
    store = SQLiteLedgerStore(tmp_path / "restored.db")
    yield store
    store.close()


@pytest.fixture
def csv_file(tmp_path):
    path = tmp_path / "broker.csv"
    path.write_text(BROKER_EXPORT, encoding="utf-8")
    return path


@pytest.fixture
def lifecycle(sqlite_store, csv_file, make_tx):
    """Run the full flow once; return the service, portfolio id and observed operations."""
    service = LedgerService(sqlite_store)
    operations: list[str] = []
    service.subscribe(lambda update: operations.append(update.operation))

    portfolio = service.create_portfolio("Trading account", code="CTO")
    service.deposit(portfolio.id, Decimal("5000"), dt.date(2024, 1, 1))

    parsed = read_transactions_csv(csv_file)
    assert parsed.errors == []
    imported = service.import_transactions(parsed.transactions, portfolio.id)
    assert imported.ok

    # Dated before the existing trades: merged through a replay
    inserted = service.add_transaction(make_tx("buy", "AAPL", 5, 105, on="2024-01-20"), portfolio.id)
    assert inserted.ok
    assert inserted.replayed

    service.set_stop_loss("AAPL", Decimal("100"), portfolio.id)
    return service, portfolio.id, operations


class TestLifecycle:
    """Test the derived state at the end of the flow."""

    def test_import_then_out_of_order_insert(self, lifecycle):
        """Test positions, realized gain and cash after the insert replay."""
        service, portfolio_id, _ = lifecycle

        position = service.get_positions(portfolio_id)[0]
        closed = service.get_closed_positions(portfolio_id)
        portfolio = service.get_portfolio(portfolio_id)

        # 25 units for 2635 (pru 105.4), 15 sold at a net 1797
        assert position.quantity == Decimal("10")
        assert position.total_cost == Decimal("1054")
        assert position.pru == Decimal("105.4")
        assert position.stop_loss == Decimal("100")
        assert len(closed) == 1
        assert closed[0].total_purchase == Decimal("1581")
        assert closed[0].gain_loss == Decimal("216")
        # 5000 - 1005 - 525 - 1105 + 1797 + (10 - 1)
        assert portfolio.cash == Decimal("4171")

    def test_listener_sees_every_operation(self, lifecycle):
        _, _, operations = lifecycle

        assert operations == ["add", "import", "add", "stop_loss"]

    def test_state_survives_reopen(self, lifecycle, sqlite_store, ledger_file):
        """Test a new connection reads back the same ledger."""
        service, portfolio_id, _ = lifecycle
        before = service.get_positions(portfolio_id)
        sqlite_store.close()

        reopened = SQLiteLedgerStore(ledger_file)
        try:
            assert reopened.get_positions(portfolio_id) == before
            assert reopened.get_portfolio(portfolio_id).cash == Decimal("4171")
            assert len(reopened.get_transactions(portfolio_id)) == 6
        finally:
            reopened.close()

    def test_rebuild_is_stable(self, lifecycle):
        """Test replaying the stored history changes nothing."""
        service, portfolio_id, _ = lifecycle
        positions = service.get_positions(portfolio_id)
        closed = service.get_closed_positions(portfolio_id)

        update = service.rebuild(portfolio_id)

        assert update.ok
        assert update.skipped == []
        assert [(p.code, p.quantity, p.total_cost, p.stop_loss) for p in service.get_positions(portfolio_id)] == [
            (p.code, p.quantity, p.total_cost, p.stop_loss) for p in positions
        ]
        assert [c.gain_loss for c in service.get_closed_positions(portfolio_id)] == [c.gain_loss for c in closed]
        assert service.get_portfolio(portfolio_id).cash == Decimal("4171")


class TestBackupRestore:
    """Test export and restore into a fresh ledger file."""

    def test_restore_matches_source(self, lifecycle, restored_store, tmp_path):
        """Test the restored ledger has the same records and derived state."""
        # Arrange
        service, portfolio_id, _ = lifecycle
        path = write_backup(service.store, tmp_path / "backup.json")

        # Act
        counts = import_backup(restored_store, read_backup(path))

        # Assert
        assert counts["transactions"] == 6
        assert restored_store.get_portfolios() == service.store.get_portfolios()
        assert restored_store.get_transactions() == service.store.get_transactions()
        restored_position = restored_store.get_positions(portfolio_id)[0]
        assert restored_position.total_cost == Decimal("1054")
        assert restored_position.stop_loss == Decimal("100")
        assert restored_store.get_closed_positions(portfolio_id)[0].gain_loss == Decimal("216")

    def test_restored_ledger_rebuilds_identically(self, lifecycle, restored_store):
        """Test a rebuild on the restored ledger reproduces the source state."""
        service, portfolio_id, _ = lifecycle
        import_backup(restored_store, export_backup(service.store))
        restored = LedgerService(restored_store)

        update = restored.rebuild(portfolio_id)

        assert update.ok
        assert restored.get_current_portfolio_id() == portfolio_id
        assert restored.get_portfolio(portfolio_id).cash == service.get_portfolio(portfolio_id).cash
        assert [(p.quantity, p.total_cost, p.stop_loss) for p in restored.get_positions(portfolio_id)] == [
            (p.quantity, p.total_cost, p.stop_loss) for p in service.get_positions(portfolio_id)
        ]

    def test_restored_ledger_accepts_new_trades(self, lifecycle, restored_store, make_tx):
        """Test trading continues on the restored ledger."""
        service, portfolio_id, _ = lifecycle
        import_backup(restored_store, export_backup(service.store))
        restored = LedgerService(restored_store)

        update = restored.add_transaction(make_tx("sell", "AAPL", 10, 130, on="2024-04-02"), portfolio_id)

        assert update.ok
        assert restored.get_positions(portfolio_id) == []
        assert len(restored.get_closed_positions(portfolio_id)) == 2
        assert restored.get_portfolio(portfolio_id).cash == Decimal("5471")
