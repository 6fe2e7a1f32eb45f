"""
System configuration for folioledger.

One YAML file configures the whole system. Sections:

    store:    where the ledger is persisted (sqlite file or in-memory)
    ledger:   engine behavior (cash replay, strict replay, default portfolio)
    quotes:   quote cache policy
    logging:  LoggerFactory settings

Lookup order for the file: explicit path, $FOLIOLEDGER_CONFIG, ./folioledger.yaml.
A missing or empty file yields the built-in defaults. Values may reference
environment variables with ${VAR} syntax.
"""

import os
import re
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any, Literal

import yaml

from folioledger.system.log_system import DEFAULT_LOG_FILE
from folioledger.system.log_system import LoggingConfig as LoggerConfig

CONFIG_ENV_VAR = "FOLIOLEDGER_CONFIG"
DEFAULT_CONFIG_FILE = Path("folioledger.yaml")

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")


@dataclass
class StoreConfig:
    """Ledger persistence settings."""

    backend: Literal["sqlite", "memory"] = "sqlite"
    path: str = "data/folioledger.db"


@dataclass
class LedgerConfig:
    """Ledger engine behavior.

    Attributes:
        replay_cash: On every replay (delete, edit, import, out-of-order
            insert) set portfolio cash to the cash folded from the full
            history. When False, the stored cash is only adjusted by the
            change the mutation caused, so opening balances that predate the
            recorded history are kept.
        strict_replay: Raise on sells or dividends that cannot be covered
            and on overdrawing withdrawals during replay instead of reporting them.
        default_portfolio_name: Name used when bootstrapping an empty ledger.
        default_currency: Currency of the bootstrap portfolio.
        default_category: Category of the bootstrap portfolio.
        auto_tff: Fill in the financial transaction tax on EUR buys when the
            transaction carries none.
    """

    replay_cash: bool = True
    strict_replay: bool = False
    default_portfolio_name: str = "Main portfolio"
    default_currency: str = "EUR"
    default_category: str = "Trading"
    auto_tff: bool = False


@dataclass
class QuotesConfig:
    """Quote cache policy."""

    cache_ttl_seconds: int = 60
    max_symbols: int = 20


@dataclass
class SizingConfig:
    """Defaults for the position size calculator."""

    risk_percent: Decimal = Decimal("1")
    profile: str = "normal"


@dataclass
class LoggingConfig:
    """Logging settings as they appear in YAML.

    Converted to the pydantic LoggingConfig consumed by LoggerFactory via
    to_logger_config().
    """

    level: str = "INFO"
    format: str = "console"
    timestamp_format: str = "compact"
    enable_file: bool = True
    file_path: str = str(DEFAULT_LOG_FILE)
    file_level: str = "WARNING"
    file_rotation: bool = True
    max_file_size_mb: int = 10
    backup_count: int = 3
    console_width: int = 0
    stream: str = "stderr"

    def to_logger_config(self) -> LoggerConfig:
        """Convert to log_system.LoggingConfig."""
        return LoggerConfig(
            level=self.level,  # type: ignore[arg-type]
            format=self.format,  # type: ignore[arg-type]
            timestamp_format=self.timestamp_format,  # type: ignore[arg-type]
            enable_file=self.enable_file,
            file_path=Path(self.file_path) if self.file_path else None,
            file_level=self.file_level,  # type: ignore[arg-type]
            file_rotation=self.file_rotation,
            max_file_size_mb=self.max_file_size_mb,
            backup_count=self.backup_count,
            console_width=self.console_width,
            stream=self.stream,  # type: ignore[arg-type]
        )


@dataclass
class SystemConfig:
    """Complete system configuration."""

    store: StoreConfig = field(default_factory=StoreConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    quotes: QuotesConfig = field(default_factory=QuotesConfig)
    sizing: SizingConfig = field(default_factory=SizingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def load(cls, path: str | Path | None = None) -> "SystemConfig":
        """
        Load configuration from YAML, merged over built-in defaults.

        Args:
            path: Config file path. If None, uses $FOLIOLEDGER_CONFIG or
                ./folioledger.yaml.

        Returns:
            SystemConfig instance
        """
        if path is None:
            env_path = os.environ.get(CONFIG_ENV_VAR)
            path = Path(env_path) if env_path else DEFAULT_CONFIG_FILE
        path = Path(path)

        if not path.exists():
            return cls()

        with path.open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)

        if not raw:
            return cls()

        data = _substitute_env_vars(_deep_merge({}, raw))
        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "SystemConfig":
        """Build config from a (possibly partial) dictionary."""
        sizing = dict(data.get("sizing") or {})
        if "risk_percent" in sizing:
            sizing["risk_percent"] = Decimal(str(sizing["risk_percent"]))

        return cls(
            store=StoreConfig(**(data.get("store") or {})),
            ledger=LedgerConfig(**(data.get("ledger") or {})),
            quotes=QuotesConfig(**(data.get("quotes") or {})),
            sizing=SizingConfig(**sizing),
            logging=LoggingConfig(**(data.get("logging") or {})),
        )


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into a copy of base. Override wins on conflicts."""
    result = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _substitute_env_vars(obj: Any) -> Any:
    """Replace ${VAR} references with environment values. Undefined vars are kept."""
    if isinstance(obj, dict):
        return {key: _substitute_env_vars(value) for key, value in obj.items()}
    if isinstance(obj, list):
        return [_substitute_env_vars(item) for item in obj]
    if isinstance(obj, str):
        return _ENV_PATTERN.sub(lambda m: os.environ.get(m.group(1), m.group(0)), obj)
    return obj


_system_config: SystemConfig | None = None


def get_system_config(path: str | Path | None = None) -> SystemConfig:
    """Get the system config singleton, loading it on first use."""
    global _system_config
    if _system_config is None:
        _system_config = SystemConfig.load(path)
    return _system_config


def reload_system_config(path: str | Path | None = None) -> SystemConfig:
    """Force reload of the system config singleton."""
    global _system_config
    _system_config = SystemConfig.load(path)
    return _system_config
