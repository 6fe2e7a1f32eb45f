"""
Unit tests for the folioledger command line.

Every test drives the real commands against a SQLite ledger in tmp_path.

Tests cover:
- Portfolio create/list/use/delete
- Transaction add/list/edit/delete/import
- Cash movements and their rejections
- Positions, closed positions, summary and position metadata
- Position sizing
- Backup export/import and ledger rebuild
"""

from decimal import Decimal

import pytest
from click.testing import CliRunner

from folioledger import __version__
from folioledger.cli.main import main
from folioledger.services.store import SQLiteLedgerStore

FRENCH_EXPORT = """Portefeuille;Date;Code;Nom;Secteur;Type;Quantité;Prix;Devise;Taux;Frais;TFF
PEA;15/01/2024;MC;LVMH;Luxe;Achat;2;702,50;EUR;1;4,90;4,22
PEA;2024-03-01;MC;LVMH;Luxe;Vente;1;750;EUR;1;4,90;
CTO;2024-02-10;AAPL;Apple;Tech;Achat;10;180;USD;0,92;2;
"""


@pytest.fixture
def cli_runner():
    """Fixture providing Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def config_file(tmp_path):
    """Fixture providing a config without file logging."""
    config = tmp_path / "folioledger.yaml"
    config.write_text(
        """
store:
  backend: sqlite
logging:
  level: WARNING
  enable_file: false
""",
        encoding="utf-8",
    )
    return config


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "ledger.db"


@pytest.fixture
def run(cli_runner, config_file, db_path):
    """Invoke the CLI against the test ledger."""

    def _run(*args, db=None, input=None):
        return cli_runner.invoke(
            main,
            ["--config", str(config_file), "--db", str(db or db_path), *args],
            input=input,
        )

    return _run


@pytest.fixture
def read_store(db_path):
    """Open the ledger file the CLI wrote, for assertions."""
    opened = []

    def _open(path=None):
        store = SQLiteLedgerStore(path or db_path)
        opened.append(store)
        return store

    yield _open
    for store in opened:
        store.close()


@pytest.fixture
def trading(run):
    """CTO portfolio with a deposit, two buys and a partial sell."""
    commands = [
        ("portfolio", "create", "Trading account", "--code", "CTO"),
        ("cash", "deposit", "5000", "--date", "2024-01-01"),
        ("tx", "add", "buy", "AAPL", "10", "100", "--fees", "5", "--date", "2024-01-05"),
        ("tx", "add", "buy", "AAPL", "10", "110", "--fees", "5", "--date", "2024-02-01"),
        ("tx", "add", "sell", "AAPL", "15", "120", "--fees", "3", "--date", "2024-03-01"),
    ]
    for command in commands:
        result = run(*command)
        assert result.exit_code == 0, result.output
    return run


class TestMain:
    """Test the command group itself."""

    def test_version(self, cli_runner):
        result = cli_runner.invoke(main, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_lists_commands(self, cli_runner):
        """Test every command group is registered."""
        result = cli_runner.invoke(main, ["--help"])

        assert result.exit_code == 0
        for name in ("portfolio", "tx", "cash", "positions", "closed", "summary", "size", "backup", "ledger"):
            assert name in result.output


class TestPortfolioCommands:
    """Test portfolio management."""

    def test_create_and_list(self, run):
        """Test a created portfolio is listed as the current one."""
        # Act
        created = run("portfolio", "create", "Trading account", "--code", "CTO", "--fees-percent", "0,5")
        listed = run("portfolio", "list")

        # Assert
        assert created.exit_code == 0
        assert "Created portfolio CTO" in created.output
        assert listed.exit_code == 0
        assert "1 portfolio(s)" in listed.output

    def test_list_empty(self, run):
        result = run("portfolio", "list")

        assert result.exit_code == 0
        assert "No portfolios yet" in result.output

    def test_use_switches_current(self, run, read_store):
        """Test 'use' accepts a code and persists the choice."""
        run("portfolio", "create", "Trading account", "--code", "CTO")
        run("portfolio", "create", "Plan d'Epargne en Actions", "--code", "PEA", "--category", "LT")

        result = run("portfolio", "use", "pea")

        assert result.exit_code == 0
        assert "Current portfolio: PEA" in result.output
        store = read_store()
        pea = next(p for p in store.get_portfolios() if p.code == "PEA")
        assert store.get_setting("currentPortfolioId") == pea.id

    def test_use_unknown(self, run):
        result = run("portfolio", "use", "nope")

        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_delete_requires_confirmation(self, run, read_store):
        """Test declining the prompt keeps the portfolio."""
        run("portfolio", "create", "Trading account", "--code", "CTO")

        declined = run("portfolio", "delete", "CTO", input="n\n")
        assert declined.exit_code == 1
        assert len(read_store().get_portfolios()) == 1

    def test_delete_with_yes(self, trading, read_store):
        """Test --yes deletes the portfolio with its history."""
        result = trading("portfolio", "delete", "CTO", "--yes")

        assert result.exit_code == 0
        assert "Deleted portfolio CTO" in result.output
        store = read_store()
        assert store.get_portfolios() == []
        assert store.get_transactions() == []


class TestTransactionCommands:
    """Test transaction recording and edits."""

    def test_scenario_cash_and_positions(self, trading, read_store):
        """Test the deposit, buys and partial sell leave 5 units and 4687 cash."""
        store = read_store()

        portfolio = store.get_portfolios()[0]
        position = store.get_positions(portfolio.id)[0]
        closed = store.get_closed_positions(portfolio.id)[0]
        assert portfolio.cash == Decimal("4687")
        assert position.quantity == Decimal("5")
        assert position.total_cost == Decimal("527.5")
        assert closed.gain_loss == Decimal("214.5")

    def test_add_prints_outcome(self, trading):
        """Test the add confirmation names the trade and the cash left."""
        result = trading("tx", "add", "dividend", "AAPL", "5", "2", "--tax", "1", "--date", "2024-03-10")

        assert result.exit_code == 0
        assert "✓ add dividende 5 AAPL" in result.output
        assert "€4,696.00" in result.output

    def test_add_first_transaction_bootstraps_portfolio(self, run, read_store):
        """Test adding to an empty ledger creates the default portfolio."""
        result = run("tx", "add", "buy", "AAPL", "1", "100", "--date", "2024-01-05")

        assert result.exit_code == 0
        assert [p.name for p in read_store().get_portfolios()] == ["Main portfolio"]

    def test_oversell_rejected(self, trading, read_store):
        """Test a sell above the open quantity is refused and nothing is written."""
        result = trading("tx", "add", "sell", "AAPL", "6", "120", "--date", "2024-04-01")

        assert result.exit_code == 1
        assert "Error:" in result.output
        assert len(read_store().get_transactions()) == 4

    def test_fees_default_from_schedule(self, run, read_store):
        """Test omitted fees are estimated from the portfolio fee schedule."""
        run("portfolio", "create", "Trading account", "--code", "CTO", "--fees-percent", "1", "--fees-min", "2")

        run("tx", "add", "buy", "AAPL", "10", "100", "--date", "2024-01-05")

        assert read_store().get_transactions()[0].fees == Decimal("10")

    def test_list_with_filters(self, trading):
        """Test listing all rows, then only buys."""
        all_rows = trading("tx", "list")
        buys = trading("tx", "list", "--type", "buy")
        none = trading("tx", "list", "--code", "MSFT")

        assert "4 transaction(s)" in all_rows.output
        assert "2 transaction(s)" in buys.output
        assert "No transactions" in none.output

    def test_delete_replays(self, trading, read_store):
        """Test deleting the sell restores the full position."""
        sell = next(tx for tx in read_store().get_transactions() if tx.code == "AAPL" and tx.type.value == "vente")

        result = trading("tx", "delete", sell.id[:8])

        assert result.exit_code == 0
        assert "✓ delete" in result.output
        store = read_store()
        assert store.get_positions()[0].quantity == Decimal("20")
        assert store.get_closed_positions() == []
        assert store.get_portfolios()[0].cash == Decimal("2890")

    def test_delete_unknown_id(self, trading):
        result = trading("tx", "delete", "zzzzzzzz")

        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_edit_replays(self, trading, read_store):
        """Test editing the first buy's fees replays cost basis and cash."""
        first = min(
            (tx for tx in read_store().get_transactions() if tx.type.value == "achat"),
            key=lambda tx: tx.date,
        )

        result = trading("tx", "edit", first.id, "--fees", "7")

        assert result.exit_code == 0
        assert "✓ update" in result.output
        assert read_store().get_portfolios()[0].cash == Decimal("4685")

    def test_edit_nothing(self, trading, read_store):
        first = read_store().get_transactions()[0]

        result = trading("tx", "edit", first.id)

        assert result.exit_code == 0
        assert "Nothing to change" in result.output


class TestImportCommand:
    """Test CSV import."""

    @pytest.fixture
    def csv_file(self, tmp_path):
        path = tmp_path / "export.csv"
        path.write_text(FRENCH_EXPORT, encoding="utf-8")
        return path

    @pytest.fixture
    def two_portfolios(self, run):
        run("portfolio", "create", "Trading account", "--code", "CTO")
        run("portfolio", "create", "Plan d'Epargne en Actions", "--code", "PEA", "--category", "LT")
        return run

    def test_dry_run_writes_nothing(self, two_portfolios, csv_file, read_store):
        result = two_portfolios("tx", "import", str(csv_file), "--dry-run")

        assert result.exit_code == 0
        assert "Parsed 3 transaction(s) from export.csv" in result.output
        assert read_store().get_transactions() == []

    def test_rows_routed_by_portfolio_column(self, two_portfolios, csv_file, read_store):
        """Test rows land in the portfolio named by their first column."""
        # Act
        result = two_portfolios("tx", "import", str(csv_file))

        # Assert
        assert result.exit_code == 0, result.output
        store = read_store()
        by_code = {p.code: p for p in store.get_portfolios()}
        assert len(store.get_transactions(by_code["PEA"].id)) == 2
        assert len(store.get_transactions(by_code["CTO"].id)) == 1
        assert store.get_positions(by_code["PEA"].id)[0].quantity == Decimal("1")
        assert len(store.get_closed_positions(by_code["PEA"].id)) == 1

    def test_unknown_portfolio_column(self, run, csv_file, read_store):
        """Test an import naming a missing portfolio is refused."""
        run("portfolio", "create", "Trading account", "--code", "CTO")

        result = run("tx", "import", str(csv_file))

        assert result.exit_code == 1
        assert "Error:" in result.output
        assert read_store().get_transactions() == []


class TestCashCommands:
    """Test deposits and withdrawals."""

    def test_deposit_and_withdraw(self, trading, read_store):
        deposit = trading("cash", "deposit", "313", "--date", "2024-04-01")
        withdraw = trading("cash", "withdraw", "1000", "--date", "2024-04-02")

        assert deposit.exit_code == 0
        assert "€5,000.00" in deposit.output
        assert withdraw.exit_code == 0
        assert read_store().get_portfolios()[0].cash == Decimal("4000")

    def test_withdraw_beyond_cash(self, trading, read_store):
        """Test a withdrawal above the balance is refused."""
        result = trading("cash", "withdraw", "10000", "--date", "2024-04-02")

        assert result.exit_code == 1
        assert "Error:" in result.output
        assert read_store().get_portfolios()[0].cash == Decimal("4687")

    def test_non_positive_amount(self, trading):
        result = trading("cash", "deposit", "0")

        assert result.exit_code == 1
        assert "Amount must be positive" in result.output


class TestPositionCommands:
    """Test position views and metadata."""

    def test_positions_with_price(self, trading):
        """Test positions are valued at the price given on the command line."""
        result = trading("positions", "--price", "AAPL=130")

        assert result.exit_code == 0
        assert "Invested: €527.50" in result.output
        assert "Value: €650.00" in result.output
        assert "Cash: €4,687.00" in result.output

    def test_positions_empty(self, run):
        run("portfolio", "create", "Trading account", "--code", "CTO")

        result = run("positions")

        assert result.exit_code == 0
        assert "No open positions" in result.output

    def test_bad_price_assignment(self, trading):
        result = trading("positions", "--price", "AAPL")

        assert result.exit_code == 2
        assert "CODE=PRICE" in result.output

    def test_closed(self, trading):
        result = trading("closed")

        assert result.exit_code == 0
        assert "Realized: €214.50 over 1 sale(s)" in result.output

    def test_closed_out_of_range(self, trading):
        result = trading("closed", "--from", "2024-04-01")

        assert "No closed positions" in result.output

    def test_summary(self, trading):
        brief = trading("summary", "--brief")
        full = trading("summary", "--price", "AAPL=130")

        assert brief.exit_code == 0
        assert "Portfolio Summary" in brief.output
        assert full.exit_code == 0
        assert "Trade Statistics" in full.output

    def test_stop_loss_set_and_cleared(self, trading, read_store):
        """Test a stop-loss is stored, then removed with --clear."""
        set_result = trading("stop-loss", "aapl", "95")
        assert set_result.exit_code == 0
        assert "Stop-loss for AAPL set to 95" in set_result.output
        assert read_store().get_positions()[0].stop_loss == Decimal("95")

        cleared = trading("stop-loss", "AAPL", "--clear")
        assert cleared.exit_code == 0
        assert "cleared" in cleared.output

    def test_stop_loss_needs_value(self, trading):
        result = trading("stop-loss", "AAPL")

        assert result.exit_code == 1
        assert "give a value or --clear" in result.output

    def test_stop_loss_unknown_code(self, trading):
        result = trading("stop-loss", "MSFT", "10")

        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_manual_price_survives_rebuild(self, trading, read_store):
        """Test a manual price is carried over when the ledger is rebuilt."""
        trading("price", "AAPL", "125")

        result = trading("ledger", "rebuild")

        assert result.exit_code == 0
        assert "✓ rebuild" in result.output
        assert read_store().get_positions()[0].manual_current_price == Decimal("125")


class TestSizeCommand:
    """Test the position size calculator."""

    def test_explicit_capital(self, run):
        result = run("size", "-e", "7.3", "-s", "6.76", "-c", "16000", "-r", "0.5")

        assert result.exit_code == 0
        assert "Position Size" in result.output
        assert "148" in result.output

    def test_capital_from_portfolio(self, trading):
        """Test capital defaults to cost basis plus cash of the portfolio."""
        result = trading("size", "--entry", "100", "--stop", "95")

        assert result.exit_code == 0
        assert "Capital from CTO:" in result.output
        assert "Max Shares" in result.output

    def test_zero_budget(self, run):
        """Test an empty ledger has no capital to risk."""
        result = run("size", "--entry", "100", "--stop", "95")

        assert result.exit_code == 0
        assert "Risk budget too small" in result.output


class TestBackupCommands:
    """Test export, restore and rebuild."""

    def test_export_then_restore_elsewhere(self, trading, tmp_path, read_store):
        """Test a backup restores the same ledger into another file."""
        backup = tmp_path / "backup.json"
        other_db = tmp_path / "other.db"

        exported = trading("backup", "export", str(backup))
        restored = trading("backup", "import", str(backup), "--yes", db=other_db)

        assert exported.exit_code == 0
        assert backup.exists()
        assert restored.exit_code == 0, restored.output
        assert "✓ Restored 1 portfolios" in restored.output
        assert read_store(other_db).get_portfolios() == read_store().get_portfolios()
        restored_position = read_store(other_db).get_positions()[0]
        assert restored_position.quantity == Decimal("5")
        assert restored_position.total_cost == Decimal("527.5")

    def test_restore_declined(self, trading, tmp_path, read_store):
        backup = tmp_path / "backup.json"
        trading("backup", "export", str(backup))
        trading("cash", "deposit", "100", "--date", "2024-05-01")

        result = trading("backup", "import", str(backup), input="n\n")

        assert result.exit_code == 1
        assert read_store().get_portfolios()[0].cash == Decimal("4787")

    def test_restore_invalid_file(self, trading, tmp_path):
        broken = tmp_path / "broken.json"
        broken.write_text('{"portfolios": []}', encoding="utf-8")

        result = trading("backup", "import", str(broken), "--yes")

        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_rebuild_all(self, trading):
        trading("portfolio", "create", "Crypto", "--category", "Crypto")

        result = trading("ledger", "rebuild", "--all")

        assert result.exit_code == 0
        assert result.output.count("✓ rebuild") == 2
