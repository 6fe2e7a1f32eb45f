"""CSV transaction import.

Parses broker or spreadsheet exports into Transaction models:
- the delimiter is detected from the header line among , ; | and TAB
- header columns are mapped to transaction fields by keyword (French and
  English), unless an explicit mapping is given
- operation labels are normalized (achat/buy/purchase -> achat, ...)
- numbers accept a decimal comma; currency defaults to EUR, rate to 1
- dates accept ISO (2024-01-15) and day-first (15/01/2024) forms

Rows that cannot be turned into a valid transaction are reported in
`CsvParseResult.errors` with their line number and skipped.
"""

import csv
import datetime as dt
import io
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path

from pydantic import ValidationError

from folioledger.services.ledger.models import Transaction, TransactionType
from folioledger.services.ledger.valuation import chronological
from folioledger.system import LoggerFactory

logger = LoggerFactory.get_logger()

DELIMITERS = (";", ",", "\t", "|")

# Field -> header keywords, checked in this order. tff precedes tax and
# quantity precedes name ("nombre" contains "nom").
HEADER_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("portfolio", ("portefeuille", "portfolio")),
    ("date", ("date",)),
    ("tff", ("tff",)),
    ("tax", ("impôt", "impot", "tax", "retenue")),
    ("fees", ("frais", "fees", "commission")),
    ("quantity", ("quantité", "quantite", "quantity", "qté", "qte", "nombre")),
    ("unit_price", ("prix", "price", "cours")),
    ("currency", ("devise", "currency")),
    ("conversion_rate", ("taux", "rate", "conversion")),
    ("type", ("type", "opération", "operation")),
    ("sector", ("secteur", "sector", "activité")),
    ("code", ("code", "ticker", "symbol", "isin")),
    ("name", ("nom", "name", "libellé", "libelle")),
)

TYPE_KEYWORDS: tuple[tuple[TransactionType, tuple[str, ...]], ...] = (
    (TransactionType.BUY, ("achat", "buy", "purchase")),
    (TransactionType.SELL, ("vente", "sell", "sale")),
    (TransactionType.DIVIDEND, ("dividende", "dividend")),
    (TransactionType.DEPOSIT, ("depot", "dépôt", "deposit")),
    (TransactionType.WITHDRAWAL, ("retrait", "withdrawal")),
)

DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y", "%d.%m.%Y", "%Y/%m/%d")


@dataclass(frozen=True)
class CsvRowError:
    """A CSV line that could not be imported."""

    line: int
    message: str


@dataclass
class CsvParseResult:
    """
    Outcome of parsing a CSV document.

    Attributes:
        transactions: Parsed transactions, chronological (buys first on equal dates)
        mapping: Field name -> column index used for parsing
        errors: Rejected lines
        portfolio_refs: Transaction id -> portfolio reference from the
            portfolio column, when the file has one
    """

    transactions: list[Transaction] = field(default_factory=list)
    mapping: dict[str, int] = field(default_factory=dict)
    errors: list[CsvRowError] = field(default_factory=list)
    portfolio_refs: dict[str, str] = field(default_factory=dict)

    def group_by_portfolio(self, default: str) -> dict[str, list[Transaction]]:
        """Split transactions by portfolio reference, `default` for rows without one."""
        groups: dict[str, list[Transaction]] = {}
        for tx in self.transactions:
            groups.setdefault(self.portfolio_refs.get(tx.id, default), []).append(tx)
        return groups


def detect_delimiter(header_line: str) -> str:
    """The candidate delimiter occurring most often in the header line."""
    counts = {d: header_line.count(d) for d in DELIMITERS}
    best = max(DELIMITERS, key=lambda d: counts[d])
    return best if counts[best] > 0 else ","


def auto_map_headers(headers: list[str]) -> dict[str, int]:
    """
    Map transaction fields to column indices by header keywords.

    Each column maps to at most one field and each field to its first
    matching column.

    Example:
        >>> auto_map_headers(["Date", "Ticker", "Nom", "Opération", "Qté", "Prix"])
        {'date': 0, 'code': 1, 'name': 2, 'type': 3, 'quantity': 4, 'unit_price': 5}
    """
    mapping: dict[str, int] = {}
    for index, header in enumerate(headers):
        lowered = header.strip().lower()
        for field_name, keywords in HEADER_KEYWORDS:
            if field_name in mapping:
                continue
            if any(keyword in lowered for keyword in keywords):
                mapping[field_name] = index
                break
    return dict(sorted(mapping.items(), key=lambda item: item[1]))


def normalize_type(label: str) -> TransactionType | None:
    """Map an operation label to a TransactionType, None if unrecognized."""
    lowered = label.strip().lower()
    for tx_type, keywords in TYPE_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return tx_type
    return None


def parse_decimal(value: str, default: Decimal | None = None) -> Decimal | None:
    """Parse a number written with a decimal point or comma. Blank gives `default`."""
    cleaned = value.strip().replace(" ", "").replace(" ", "").replace(",", ".")
    if not cleaned:
        return default
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        raise ValueError(f"Invalid number: {value!r}") from None


def parse_date(value: str) -> dt.date:
    cleaned = value.strip()
    for fmt in DATE_FORMATS:
        try:
            return dt.datetime.strptime(cleaned, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"Invalid date: {value!r}")


def parse_transactions_csv(text: str, mapping: dict[str, int] | None = None) -> CsvParseResult:
    """
    Parse CSV text into transactions.

    Args:
        text: CSV document with a header line
        mapping: Explicit field -> column index mapping. Auto-detected from
            the header line when None.

    Returns:
        CsvParseResult
    """
    lines = [line for line in text.splitlines() if line.strip()]
    result = CsvParseResult()
    if not lines:
        return result

    delimiter = detect_delimiter(lines[0])
    rows = list(csv.reader(io.StringIO("\n".join(lines)), delimiter=delimiter))
    headers = [cell.strip() for cell in rows[0]]
    result.mapping = mapping if mapping is not None else auto_map_headers(headers)

    for line_no, row in enumerate(rows[1:], start=2):
        cells = [cell.strip() for cell in row]

        def get(field_name: str, default: str = "") -> str:
            index = result.mapping.get(field_name)
            if index is None or index >= len(cells):
                return default
            return cells[index] or default

        try:
            tx_type = normalize_type(get("type", "achat"))
            if tx_type is None:
                raise ValueError(f"Unknown operation type: {get('type')!r}")
            code = get("code").upper()
            if not code:
                raise ValueError("Missing code")
            if not get("date"):
                raise ValueError("Missing date")
            quantity = parse_decimal(get("quantity"), Decimal("0"))
            if quantity is None or quantity <= 0:
                raise ValueError(f"Invalid quantity: {get('quantity')!r}")

            tx = Transaction(
                date=parse_date(get("date")),
                code=code,
                name=get("name"),
                type=tx_type,
                quantity=quantity,
                unit_price=parse_decimal(get("unit_price"), Decimal("0")),
                fees=parse_decimal(get("fees"), Decimal("0")),
                tff=parse_decimal(get("tff"), Decimal("0")),
                currency=get("currency", "EUR").upper(),
                conversion_rate=parse_decimal(get("conversion_rate"), Decimal("1")),
                tax=parse_decimal(get("tax")),
                sector=get("sector") or None,
            )
        except ValidationError as e:
            message = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors())
            result.errors.append(CsvRowError(line=line_no, message=message))
            continue
        except ValueError as e:
            result.errors.append(CsvRowError(line=line_no, message=str(e)))
            continue

        result.transactions.append(tx)
        portfolio_ref = get("portfolio")
        if portfolio_ref:
            result.portfolio_refs[tx.id] = portfolio_ref

    result.transactions = chronological(result.transactions)
    logger.info(
        "import.csv.parsed",
        rows=len(rows) - 1,
        transactions=len(result.transactions),
        errors=len(result.errors),
    )
    return result


def read_transactions_csv(path: str | Path, mapping: dict[str, int] | None = None) -> CsvParseResult:
    """Parse a CSV file (UTF-8, BOM tolerated)."""
    text = Path(path).read_text(encoding="utf-8-sig")
    return parse_transactions_csv(text, mapping)
