"""Unit tests for backup export, validation and restore."""

import copy
import json
from decimal import Decimal

import pytest

from folioledger.services.ledger import InvalidBackupStructureError, LedgerService
from folioledger.services.store import InMemoryLedgerStore, SQLiteLedgerStore
from folioledger.services.transfer import export_backup, import_backup, read_backup, validate_backup, write_backup
from folioledger.services.transfer.backup import load_backup_schema


@pytest.fixture
def populated(service, portfolio, make_tx):
    """Ledger with a deposit, two buys, a partial sell and a stop-loss."""
    for tx in (
        make_tx("deposit", "CASH", 1, 5000, on="2024-01-01"),
        make_tx("buy", "AAPL", 10, 100, fees=5, on="2024-01-05"),
        make_tx("buy", "AAPL", 10, 110, fees=5, on="2024-02-01"),
        make_tx("sell", "AAPL", 15, 120, fees=3, on="2024-03-01"),
    ):
        service.add_transaction(tx, portfolio.id)
    service.set_stop_loss("AAPL", Decimal("95.5"), portfolio.id)
    return service


class TestExport:
    """Test backup export."""

    def test_document_shape(self, populated):
        """Test every collection is exported with camelCase keys."""
        data = export_backup(populated.store)

        assert len(data["portfolios"]) == 1
        assert len(data["transactions"]) == 4
        assert len(data["positions"]) == 1
        assert len(data["closedPositions"]) == 1
        assert data["appVersion"] == "1.0.0"
        assert data["exportDate"].endswith("Z")
        assert "unitPrice" in data["transactions"][0]
        assert "gainLoss" in data["closedPositions"][0]
        assert data["portfolios"][0]["fees"] == {"defaultFeesPercent": "0", "defaultFeesMin": "0", "defaultTFF": "0"}

    def test_decimals_are_strings(self, populated):
        """Test amounts are exported as exact strings."""
        position = export_backup(populated.store)["positions"][0]

        assert position["pru"] == "105.5"
        assert position["stopLoss"] == "95.5"

    def test_export_validates(self, populated):
        """Test an exported document passes validation."""
        validate_backup(export_backup(populated.store))

    def test_write_backup(self, populated, tmp_path):
        """Test the document is written as indented JSON."""
        path = write_backup(populated.store, tmp_path / "out" / "backup.json")

        assert path.exists()
        assert json.loads(path.read_text(encoding="utf-8"))["portfolios"][0]["code"] == "CTO"


class TestValidate:
    """Test structural validation."""

    @pytest.fixture
    def document(self, populated):
        return export_backup(populated.store)

    def test_schema_is_packaged(self):
        """Test the schema loads from package resources."""
        assert load_backup_schema().schema["title"] == "Ledger backup"

    @pytest.mark.parametrize("key", ["portfolios", "transactions", "positions", "closedPositions", "settings"])
    def test_missing_collection(self, document, key):
        """Test every collection is required."""
        del document[key]

        with pytest.raises(InvalidBackupStructureError, match=f"'{key}' must be a list"):
            validate_backup(document)

    def test_empty_portfolios(self, document):
        """Test a backup needs at least one portfolio."""
        document["portfolios"] = []

        with pytest.raises(InvalidBackupStructureError, match="at least one portfolio"):
            validate_backup(document)

    def test_bad_transaction_type(self, document):
        """Test schema violations report their location."""
        document["transactions"][1]["type"] = "split"

        with pytest.raises(InvalidBackupStructureError, match="transactions/1/type"):
            validate_backup(document)

    def test_numbers_accepted_for_decimals(self, document):
        """Test decimal fields may be JSON numbers."""
        document["transactions"][0]["unitPrice"] = 5000

        validate_backup(document)

    def test_non_object(self):
        with pytest.raises(InvalidBackupStructureError, match="must be an object"):
            validate_backup([])


class TestImport:
    """Test restore."""

    def test_round_trip_into_new_store(self, populated):
        """Test a restored ledger matches the exported one."""
        data = export_backup(populated.store)
        target = InMemoryLedgerStore()

        counts = import_backup(target, data)

        assert counts == {"portfolios": 1, "transactions": 4, "positions": 1, "closedPositions": 1, "settings": 1}
        assert target.get_portfolios() == populated.store.get_portfolios()
        assert target.get_transactions() == populated.store.get_transactions()
        assert target.get_positions()[0].stop_loss == Decimal("95.5")
        assert target.get_closed_positions()[0].gain_loss == Decimal("214.5")

    def test_restore_replaces_existing_ledger(self, populated):
        """Test a restore clears what the store held before."""
        data = export_backup(populated.store)
        target = InMemoryLedgerStore()
        LedgerService(target).create_portfolio("Stale")

        import_backup(target, data)

        assert [p.name for p in target.get_portfolios()] == ["Trading account"]

    def test_invalid_document_leaves_store_untouched(self, populated):
        """Test nothing is written when validation fails."""
        data = export_backup(populated.store)
        broken = copy.deepcopy(data)
        broken["positions"][0]["quantity"] = "-3"

        with pytest.raises(InvalidBackupStructureError):
            import_backup(populated.store, broken)

        assert len(populated.store.get_transactions()) == 4

    def test_non_string_settings_serialized(self, populated):
        """Test settings values that are not strings are stored as JSON."""
        data = export_backup(populated.store)
        data["settings"].append({"key": "exchangeRates", "value": {"USD": 0.92}})
        target = InMemoryLedgerStore()

        import_backup(target, data)

        assert json.loads(target.get_setting("exchangeRates")) == {"USD": 0.92}

    def test_uuid_record_ids_replaced(self, populated):
        """Test UUID ids on positions and closed positions are accepted and reassigned."""
        data = export_backup(populated.store)
        data["positions"][0]["id"] = "6f1c2d9e-8a41-4b7e-9a53-0c2f4e8d1b77"
        data["closedPositions"][0]["id"] = "0b7e4c61-3f2a-4d8e-b1c9-5a6d7e8f9012"
        target = InMemoryLedgerStore()

        validate_backup(data)
        import_backup(target, data)

        assert isinstance(target.get_positions()[0].id, int)
        closed = target.get_closed_positions()[0]
        assert isinstance(closed.id, int)
        assert closed.gain_loss == Decimal("214.5")

    def test_restore_into_sqlite(self, populated, tmp_path):
        """Test restore works on the file-backed store."""
        data = export_backup(populated.store)
        target = SQLiteLedgerStore(tmp_path / "restored.db")
        try:
            import_backup(target, data)
            service = LedgerService(target)
            portfolio_id = service.get_current_portfolio_id()
            assert service.get_positions(portfolio_id)[0].quantity == Decimal("5")
        finally:
            target.close()


class TestReadBackup:
    """Test reading backup files."""

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(InvalidBackupStructureError, match="not valid JSON"):
            read_backup(path)

    def test_non_object(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[]", encoding="utf-8")

        with pytest.raises(InvalidBackupStructureError, match="must be an object"):
            read_backup(path)
