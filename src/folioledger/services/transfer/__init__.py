"""Data transfer: CSV transaction import and full-ledger JSON backups."""

from folioledger.services.transfer.backup import (
    export_backup,
    import_backup,
    read_backup,
    validate_backup,
    write_backup,
)
from folioledger.services.transfer.csv_import import (
    CsvParseResult,
    CsvRowError,
    auto_map_headers,
    normalize_type,
    parse_transactions_csv,
    read_transactions_csv,
)

__all__ = [
    "CsvParseResult",
    "CsvRowError",
    "auto_map_headers",
    "export_backup",
    "import_backup",
    "normalize_type",
    "parse_transactions_csv",
    "read_backup",
    "read_transactions_csv",
    "validate_backup",
    "write_backup",
]
