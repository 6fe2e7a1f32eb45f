"""Tests for centralized logging configuration."""

import json
import logging
import sys
from logging.handlers import RotatingFileHandler

import pytest

from folioledger.system import LoggerFactory, LoggingConfig
from folioledger.system.log_system import _LedgerLogFormatters


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration before and after each test."""
    LoggerFactory.reset()
    yield
    LoggerFactory.reset()


def _strip_ansi(text: str) -> str:
    for code in (
        _LedgerLogFormatters.CYAN,
        _LedgerLogFormatters.MAGENTA,
        _LedgerLogFormatters.GREEN,
        _LedgerLogFormatters.YELLOW,
        _LedgerLogFormatters.RED,
        _LedgerLogFormatters.DIM,
        _LedgerLogFormatters.BOLD,
        _LedgerLogFormatters.RESET,
    ):
        text = text.replace(code, "")
    return text


def test_default_configuration():
    """Test logger factory with default configuration."""
    logger = LoggerFactory.get_logger()

    assert LoggerFactory.is_configured()
    assert hasattr(logger, "info")
    assert hasattr(logger, "warning")

    config = LoggerFactory.get_config()
    assert config.level == "INFO"
    assert config.format == "console"
    assert config.enable_file is True
    assert config.file_level == "WARNING"
    assert config.stream == "stderr"


def test_explicit_configuration():
    """Test configuring logger factory explicitly."""
    LoggerFactory.configure(LoggingConfig(level="DEBUG", format="json", enable_file=False))

    assert LoggerFactory.is_configured()
    assert LoggerFactory.get_config().level == "DEBUG"
    assert LoggerFactory.get_config().format == "json"


def test_file_logging_writes_json_lines(tmp_path):
    """Test file output is one JSON object per event."""
    log_file = tmp_path / "ledger.log"
    LoggerFactory.configure(
        LoggingConfig(enable_file=True, file_path=log_file, file_level="DEBUG", file_rotation=False)
    )

    logger = LoggerFactory.get_logger()
    logger.info("ledger.transaction.recorded", code="AAPL", quantity="10")

    record = json.loads(log_file.read_text().strip())
    assert record["event"] == "ledger.transaction.recorded"
    assert record["code"] == "AAPL"
    assert record["quantity"] == "10"
    assert "log_timestamp" in record


def test_file_logging_defaults_path():
    """Test that enabling file logging without a path uses logs/folioledger.log."""
    LoggerFactory.configure(LoggingConfig(enable_file=True, file_path=None))

    result = LoggerFactory.get_config()
    assert result.file_path is not None
    assert str(result.file_path) == "logs/folioledger.log"


def test_file_logging_creates_directory(tmp_path):
    """Test that file logging creates parent directories."""
    log_file = tmp_path / "logs" / "nested" / "ledger.log"
    LoggerFactory.configure(LoggingConfig(enable_file=True, file_path=log_file, file_rotation=False))

    LoggerFactory.get_logger().warning("store.write.slow")

    assert log_file.exists()


def test_rotating_file_handler(tmp_path):
    """Test rotating file handler configuration."""
    log_file = tmp_path / "rotating.log"
    LoggerFactory.configure(
        LoggingConfig(enable_file=True, file_path=log_file, file_rotation=True, max_file_size_mb=1, backup_count=3)
    )

    handlers = [h for h in logging.getLogger().handlers if isinstance(h, RotatingFileHandler)]
    handler = next((h for h in handlers if str(log_file) in str(h.baseFilename)), None)
    assert handler is not None
    assert handler.maxBytes == 1 * 1024 * 1024
    assert handler.backupCount == 3


def test_file_level_independent_from_console_level(tmp_path):
    """Test that the file captures levels the console filters out."""
    log_file = tmp_path / "debug.log"
    LoggerFactory.configure(
        LoggingConfig(level="WARNING", enable_file=True, file_path=log_file, file_level="DEBUG", file_rotation=False)
    )

    logger = LoggerFactory.get_logger()
    logger.debug("replay.completed")
    logger.warning("replay.transaction.skipped")

    events = [json.loads(line)["event"] for line in log_file.read_text().splitlines() if line.strip()]
    assert "replay.completed" in events
    assert "replay.transaction.skipped" in events


@pytest.mark.parametrize("stream_name", ["stdout", "stderr"])
def test_console_stream_selection(stream_name):
    """Test the console handler writes to the configured stream."""
    LoggerFactory.configure(LoggingConfig(enable_file=False, stream=stream_name))

    handler = next(h for h in logging.getLogger().handlers if isinstance(h, logging.StreamHandler))
    assert handler.stream is getattr(sys, stream_name)


def test_reset_clears_configuration():
    """Test that reset clears configuration."""
    LoggerFactory.configure(LoggingConfig(level="DEBUG", enable_file=False))
    assert LoggerFactory.get_config().level == "DEBUG"

    LoggerFactory.reset()

    assert not LoggerFactory.is_configured()
    assert LoggerFactory.get_config().level == "INFO"


class TestLedgerLogFormatters:
    """Console formatting of component events."""

    def test_component_event_gets_label_and_highlights(self):
        """Test ledger events render with component label and highlighted keys first."""
        event_dict = {"code": "AAPL", "portfolio_id": "p1", "extra": "x"}

        line = _LedgerLogFormatters.format_ledger_log("ledger.transaction.recorded", event_dict, "INFO", "10:00:00")

        plain = _strip_ansi(line)
        assert plain.startswith("10:00:00 | Ledger | Transaction Recorded")
        assert plain.index("portfolio_id=p1") < plain.index("code=AAPL") < plain.index("extra=x")

    def test_unknown_component_falls_back_to_generic(self):
        """Test events without a known prefix are left to the generic formatter."""
        assert _LedgerLogFormatters.format_ledger_log("http.request", {}, "INFO", "") is None

        line = _LedgerLogFormatters.format_generic_log("http.request", {"status": 200}, "INFO", "10:00:00")
        assert _strip_ansi(line) == "10:00:00 | info | http.request | status=200"

    def test_private_keys_are_hidden(self):
        """Test underscore-prefixed keys never reach the console."""
        line = _LedgerLogFormatters.format_generic_log("x", {"_record": object(), "k": 1}, "INFO", "")
        assert "_record" not in line
        assert "k=" in _strip_ansi(line)
