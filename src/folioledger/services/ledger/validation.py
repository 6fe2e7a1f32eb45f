"""Pre-import validation of a transaction batch.

Checks a batch on its own, in chronological order, before it is merged into
a portfolio. Findings are advisory: the import still runs and replay decides
what can actually be applied.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from folioledger.services.ledger.models import Transaction, TransactionType, normalize_code
from folioledger.services.ledger.valuation import chronological


@dataclass(frozen=True)
class ImportIssue:
    """One validation finding.

    Attributes:
        row: 1-based position of the transaction in the batch as given
        code: Instrument code of the transaction
        message: Human readable description
    """

    row: int
    code: str
    message: str


def validate_import_batch(transactions: Sequence[Transaction]) -> list[ImportIssue]:
    """
    Flag suspicious rows of an import batch.

    Detects:
    - sells of a code with no earlier buy in the batch
    - sells exceeding the cumulative quantity bought so far in the batch

    Missing codes or dates and non-positive quantities are already rejected
    when rows are parsed into transactions (see csv_import).

    Returns:
        Issues ordered by row
    """
    rows = {tx.id: index for index, tx in enumerate(transactions, start=1)}
    held: dict[str, Decimal] = {}
    issues: list[ImportIssue] = []

    for tx in chronological(transactions):
        if not tx.type.is_trade:
            continue
        code = normalize_code(tx.code)
        if tx.type == TransactionType.BUY:
            held[code] = held.get(code, Decimal("0")) + tx.quantity
            continue

        if code not in held:
            issues.append(ImportIssue(row=rows[tx.id], code=code, message=f"Sell of {code} without a prior buy"))
            continue
        if tx.quantity > held[code]:
            issues.append(
                ImportIssue(
                    row=rows[tx.id],
                    code=code,
                    message=f"Sell of {tx.quantity} {code} exceeds the {held[code]} bought so far",
                )
            )
            held[code] = Decimal("0")
            continue
        held[code] -= tx.quantity

    return sorted(issues, key=lambda issue: issue.row)
