"""
Full-ledger backup export and restore.

A backup is one JSON document:

    {
      "portfolios": [...],
      "transactions": [...],
      "positions": [...],
      "closedPositions": [...],
      "settings": [{"key": ..., "value": ...}],
      "exportDate": "2024-06-01T12:00:00Z",
      "appVersion": "1.0.0"
    }

Records use the camelCase field names of the ledger models; decimal amounts
are written as strings and accepted as strings or numbers. Documents are
validated against contracts/schemas/backup.v1.json before anything is
written, and a restore replaces the whole ledger in one atomic block.
"""

import json
from datetime import datetime, timezone
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any

from jsonschema import Draft202012Validator, FormatChecker
from pydantic import ValidationError

from folioledger.services.ledger.errors import InvalidBackupStructureError
from folioledger.services.ledger.models import ClosedPosition, Portfolio, Position, Setting, Transaction
from folioledger.services.store.interface import ILedgerStore
from folioledger.system import LoggerFactory

logger = LoggerFactory.get_logger()

SCHEMA_PACKAGE = "folioledger.contracts.schemas"
BACKUP_SCHEMA = "backup.v1.json"
APP_VERSION = "1.0.0"

REQUIRED_COLLECTIONS = ("portfolios", "transactions", "positions", "closedPositions", "settings")


@lru_cache(maxsize=4)
def load_backup_schema(schema_name: str = BACKUP_SCHEMA) -> Draft202012Validator:
    """
    Load and compile the backup schema validator.

    Raises:
        FileNotFoundError: If the schema file is not packaged
    """
    try:
        schema_file = resources.files(SCHEMA_PACKAGE).joinpath(schema_name)
        with schema_file.open("r", encoding="utf-8") as f:
            schema = json.load(f)
    except FileNotFoundError:
        raise FileNotFoundError(f"Schema not found: {schema_name} in package {SCHEMA_PACKAGE}")

    return Draft202012Validator(schema, format_checker=FormatChecker())


def export_backup(store: ILedgerStore, app_version: str = APP_VERSION) -> dict[str, Any]:
    """Snapshot the whole store as a JSON-compatible backup document."""
    data = {
        "portfolios": [p.model_dump(mode="json", by_alias=True) for p in store.get_portfolios()],
        "transactions": [t.model_dump(mode="json", by_alias=True) for t in store.get_transactions()],
        "positions": [p.model_dump(mode="json", by_alias=True) for p in store.get_positions()],
        "closedPositions": [c.model_dump(mode="json", by_alias=True) for c in store.get_closed_positions()],
        "settings": [s.model_dump(mode="json", by_alias=True) for s in store.get_settings()],
        "exportDate": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "appVersion": app_version,
    }
    logger.info(
        "backup.exported",
        portfolios=len(data["portfolios"]),
        transactions=len(data["transactions"]),
    )
    return data


def write_backup(store: ILedgerStore, path: str | Path) -> Path:
    """Export the store to a JSON file. Returns the written path."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(export_backup(store), f, indent=2, ensure_ascii=False)
    return path


def read_backup(path: str | Path) -> dict[str, Any]:
    """
    Read a backup file.

    Raises:
        InvalidBackupStructureError: If the file is not a JSON object
    """
    try:
        with Path(path).open("r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise InvalidBackupStructureError(f"not valid JSON ({e.msg} at line {e.lineno})") from e
    if not isinstance(data, dict):
        raise InvalidBackupStructureError("top-level value must be an object")
    return data


def validate_backup(data: Any) -> None:
    """
    Check a backup document's structure.

    Raises:
        InvalidBackupStructureError: On a missing collection, an empty
            portfolio list or any schema violation
    """
    if not isinstance(data, dict):
        raise InvalidBackupStructureError("top-level value must be an object")

    for key in REQUIRED_COLLECTIONS:
        if not isinstance(data.get(key), list):
            raise InvalidBackupStructureError(f"'{key}' must be a list")
    if not data["portfolios"]:
        raise InvalidBackupStructureError("at least one portfolio is required")

    errors = sorted(load_backup_schema().iter_errors(data), key=lambda e: list(e.path))
    if errors:
        first = errors[0]
        location = "/".join(str(p) for p in first.path) or "<root>"
        raise InvalidBackupStructureError(f"{location}: {first.message}")


def _setting_value(value: Any) -> str:
    return value if isinstance(value, str) else json.dumps(value)


def _without_foreign_id(record: dict[str, Any]) -> dict[str, Any]:
    """Drop an id that is not a store integer (e.g. a UUID); the store assigns a new one."""
    if isinstance(record.get("id"), int):
        return record
    return {key: value for key, value in record.items() if key != "id"}


def import_backup(store: ILedgerStore, data: dict[str, Any]) -> dict[str, int]:
    """
    Replace the whole ledger with the content of a backup.

    The document is validated and parsed first; the store is only touched
    once every record is valid, and the clear-and-reload runs atomically.

    Returns:
        Count of restored records per collection

    Raises:
        InvalidBackupStructureError: If the document is invalid. The store
            is left unchanged.
    """
    validate_backup(data)

    try:
        portfolios = [Portfolio.model_validate(p) for p in data["portfolios"]]
        transactions = [Transaction.model_validate(t) for t in data["transactions"]]
        positions = [Position.model_validate(_without_foreign_id(p)) for p in data["positions"]]
        closed = [ClosedPosition.model_validate(_without_foreign_id(c)) for c in data["closedPositions"]]
        settings = [Setting(key=s["key"], value=_setting_value(s["value"])) for s in data["settings"]]
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(p) for p in first["loc"])
        raise InvalidBackupStructureError(f"{location}: {first['msg']}") from e

    with store.atomic():
        store.clear()
        for portfolio in portfolios:
            store.create_portfolio(portfolio)
        store.bulk_add_transactions(transactions)
        store.bulk_upsert_positions(positions)
        store.bulk_add_closed_positions(closed)
        for setting in settings:
            store.set_setting(setting.key, setting.value)

    counts = {
        "portfolios": len(portfolios),
        "transactions": len(transactions),
        "positions": len(positions),
        "closedPositions": len(closed),
        "settings": len(settings),
    }
    logger.info("backup.imported", app_version=data.get("appVersion"), **counts)
    return counts
