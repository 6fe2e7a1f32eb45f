"""
Structured logging for folioledger.

Every module logs through structlog with a dotted event name and key-value
context, e.g. ``logger.info("ledger.replayed", portfolio_id=..., positions=3)``.
Events go to two stdlib handlers: a console handler with a compact colored
line per event, and an optional JSON-lines file for later inspection.

Amounts are passed as strings so that log output never rounds a Decimal.
"""

import inspect
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Callable, Literal

import structlog
from pydantic import BaseModel, Field

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

DEFAULT_LOG_FILE = Path("logs/folioledger.log")

# strftime patterns; "{ms}" is replaced by hundredths of a second
TIMESTAMP_FORMATS = {
    "compact": "%y%m%d-%H%M%S.{ms}",
    "time": "%H:%M:%S.{ms}",
    "short": "%m%dT%H%M%S",
}


class LoggingConfig(BaseModel):
    """Logging settings.

    Levels used by the ledger:

    - DEBUG: store setup, quote cache hits and misses
    - INFO: recorded transactions, replays, imports, backups
    - WARNING: skipped replay rows, import findings, quote provider failures
    - ERROR: rejected operations (insufficient quantity or cash, unknown
      code) and failing listeners
    """

    level: LogLevel = Field(default="INFO", description="Console log level")
    format: Literal["console", "json"] = Field(default="console", description="Console output format")
    timestamp_format: Literal["iso", "compact", "time", "short"] = Field(
        default="compact",
        description="iso: full ISO 8601; compact: YYMMDD-HHMMSS.cc; time: HH:MM:SS.cc; short: MMDDTHHMMSS",
    )
    enable_file: bool = Field(default=True, description="Also write JSON lines to file_path")
    file_path: Path | None = Field(default=None, description="Log file (logs/folioledger.log when None)")
    file_level: LogLevel = Field(default="WARNING", description="File log level")
    file_rotation: bool = Field(default=True, description="Rotate the file at max_file_size_mb")
    max_file_size_mb: int = Field(default=10, description="Rotation size in MB")
    backup_count: int = Field(default=3, description="Rotated files kept")
    console_width: int = Field(default=0, description="Truncate console lines to this width (0 = off)")
    stream: Literal["stdout", "stderr"] = Field(
        default="stderr",
        description="Console stream; stderr keeps CLI table output clean",
    )


class LoggerFactory:
    """
    Process-wide structlog setup.

    Example:
        LoggerFactory.configure(LoggingConfig(level="DEBUG", enable_file=False))
        logger = LoggerFactory.get_logger()
        logger.info("ledger.transaction.recorded", code="AAPL", quantity="10")

    get_logger() configures with defaults on first use, so library code can
    create its module-level logger at import time.
    """

    _config: LoggingConfig | None = None
    _configured: bool = False

    @classmethod
    def configure(cls, config: LoggingConfig | None = None) -> None:
        """(Re)configure logging. Replaces any handlers installed before."""
        config = config or LoggingConfig()
        if config.enable_file and config.file_path is None:
            config.file_path = DEFAULT_LOG_FILE
        cls._config = config

        pre_chain = cls._shared_processors(config.timestamp_format)
        handlers = [cls._console_handler(config, pre_chain)]
        level = getattr(logging, config.level)
        if config.enable_file:
            handlers.append(cls._file_handler(config, pre_chain))
            level = min(level, getattr(logging, config.file_level))
        logging.basicConfig(level=level, handlers=handlers, force=True)

        if config.format == "console":
            exception_processors: list[Any] = [
                structlog.dev.set_exc_info,
                structlog.processors.ExceptionRenderer(structlog.dev.plain_traceback),  # type: ignore[arg-type]
            ]
        else:
            exception_processors = [structlog.processors.format_exc_info]

        structlog.configure(
            processors=[*pre_chain, *exception_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
            wrapper_class=structlog.stdlib.BoundLogger,
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        cls._configured = True

    @classmethod
    def _shared_processors(cls, timestamp_format: str) -> list[Any]:
        """Processors run for structlog and foreign stdlib records alike."""
        return [
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            cls._timestamper(timestamp_format),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.CallsiteParameterAdder(
                [structlog.processors.CallsiteParameter.FILENAME, structlog.processors.CallsiteParameter.LINENO]
            ),
        ]

    @staticmethod
    def _timestamper(fmt: str) -> Callable[[Any, str, dict[str, Any]], dict[str, Any]]:
        """Stamp events under 'log_timestamp'; 'date' and 'timestamp' belong to the domain."""
        pattern = TIMESTAMP_FORMATS.get(fmt)

        def stamp(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
            now = datetime.now(timezone.utc)
            if pattern is None:
                event_dict["log_timestamp"] = now.isoformat()
            else:
                event_dict["log_timestamp"] = now.strftime(pattern.replace("{ms}", f"{now.microsecond // 10000:02d}"))
            return event_dict

        return stamp

    @classmethod
    def _console_handler(cls, config: LoggingConfig, pre_chain: list[Any]) -> logging.Handler:
        handler = logging.StreamHandler(stream=sys.stdout if config.stream == "stdout" else sys.stderr)
        handler.setLevel(getattr(logging, config.level))
        renderer: Any
        if config.format == "console":
            renderer = cls._console_renderer(config)
        else:
            renderer = structlog.processors.JSONRenderer()
        handler.setFormatter(structlog.stdlib.ProcessorFormatter(processor=renderer, foreign_pre_chain=pre_chain))
        return handler

    @staticmethod
    def _file_handler(config: LoggingConfig, pre_chain: list[Any]) -> logging.Handler:
        """JSON-lines file handler, rotating unless disabled."""
        path = Path(config.file_path or DEFAULT_LOG_FILE)
        path.parent.mkdir(parents=True, exist_ok=True)

        handler: logging.Handler
        if config.file_rotation:
            handler = RotatingFileHandler(
                str(path),
                maxBytes=config.max_file_size_mb * 1024 * 1024,
                backupCount=config.backup_count,
                encoding="utf-8",
            )
        else:
            handler = logging.FileHandler(str(path), encoding="utf-8")
        handler.setLevel(getattr(logging, config.file_level))
        handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=structlog.processors.JSONRenderer(),
                foreign_pre_chain=pre_chain,
            )
        )
        return handler

    @staticmethod
    def _console_renderer(config: LoggingConfig) -> Callable[[Any, str, dict[str, Any]], str]:
        """One line per event; warnings and errors get their module:line appended."""

        def render(logger: Any, name: str, event_dict: dict[str, Any]) -> str:
            timestamp = event_dict.pop("log_timestamp", "")
            level = event_dict.pop("level", "info").upper()
            event = event_dict.pop("event", "")
            filename = event_dict.pop("filename", "")
            lineno = event_dict.pop("lineno", "")
            logger_name = event_dict.pop("logger", "")

            line = _LedgerLogFormatters.format_ledger_log(event, event_dict, level, timestamp)
            if line is None:
                line = _LedgerLogFormatters.format_generic_log(event, event_dict, level, timestamp)

            if level in ("WARNING", "ERROR", "CRITICAL") and filename and lineno:
                module = logger_name or Path(filename).stem
                line = f"{line} {_LedgerLogFormatters.DIM}({module}:{lineno}){_LedgerLogFormatters.RESET}"

            if config.console_width:
                line = line[: config.console_width]
            return line

        return render

    @classmethod
    def get_logger(cls, name: str | None = None):
        """
        Get a structlog logger, named after the calling module by default.

        Args:
            name: Logger name; the caller's __name__ when None
        """
        if not cls._configured:
            cls.configure()

        if name is None:
            caller = inspect.currentframe()
            caller = caller.f_back if caller else None
            name = caller.f_globals.get("__name__", "folioledger") if caller else "folioledger"

        return structlog.get_logger(name)

    @classmethod
    def get_config(cls) -> LoggingConfig:
        return cls._config or LoggingConfig()

    @classmethod
    def is_configured(cls) -> bool:
        return cls._configured

    @classmethod
    def reset(cls) -> None:
        """Drop handlers and structlog configuration. Used by tests."""
        root = logging.getLogger()
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()
        root.setLevel(logging.NOTSET)
        cls._config = None
        cls._configured = False
        structlog.reset_defaults()


class _LedgerLogFormatters:
    """Console formatters for ledger logs."""

    CYAN = "\033[36m"
    MAGENTA = "\033[35m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    RED = "\033[31m"
    DIM = "\033[2m"
    BOLD = "\033[1m"
    RESET = "\033[0m"

    LEVEL_COLORS = {
        "DEBUG": CYAN,
        "INFO": GREEN,
        "WARNING": YELLOW,
        "ERROR": RED,
        "CRITICAL": MAGENTA,
    }

    # Component prefix -> display label
    COMPONENTS = {
        "ledger": "Ledger",
        "replay": "Replay",
        "store": "Store",
        "quotes": "Quotes",
        "import": "Import",
        "backup": "Backup",
    }

    # Context fields worth highlighting, in display order
    HIGHLIGHT_KEYS = ("portfolio_id", "code", "type", "quantity", "price", "cash", "error")

    @classmethod
    def format_ledger_log(cls, event: str, event_dict: dict[str, Any], level: str, timestamp: str) -> str | None:
        """
        Format a log whose event name starts with a known component prefix.

        Returns formatted string, or None to use the generic format.
        """
        prefix = event.split(".", 1)[0]
        label = cls.COMPONENTS.get(prefix)
        if label is None:
            return None

        color = cls.LEVEL_COLORS.get(level, cls.RESET)
        msg = event.split(".", 1)[1] if "." in event else event
        msg = msg.replace(".", " ").replace("_", " ").title()

        parts = [
            f"{cls.DIM}{timestamp}{cls.RESET}",
            f"{color}{label}{cls.RESET}",
            f"{cls.BOLD}{msg}{cls.RESET}",
        ]

        for key in cls.HIGHLIGHT_KEYS:
            if key in event_dict:
                parts.append(f"{key}={cls.CYAN}{event_dict.pop(key)}{cls.RESET}")

        rest = cls._context(event_dict)
        if rest:
            parts.append(rest)

        return " | ".join(parts)

    @classmethod
    def format_generic_log(cls, event: str, event_dict: dict[str, Any], level: str, timestamp: str) -> str:
        """Generic format for any other log."""
        color = cls.LEVEL_COLORS.get(level, cls.RESET)
        parts = [
            f"{cls.DIM}{timestamp}{cls.RESET}",
            f"{color}{level.lower()}{cls.RESET}",
            str(event),
        ]
        context = cls._context(event_dict)
        if context:
            parts.append(context)
        return " | ".join(parts)

    @classmethod
    def _context(cls, event_dict: dict[str, Any]) -> str:
        context_parts = []
        for key, value in sorted(event_dict.items()):
            if key.startswith("_") or key in ("exc_info", "stack_info"):
                continue
            context_parts.append(f"{key}={cls.CYAN}{value}{cls.RESET}")
        return " ".join(context_parts)
