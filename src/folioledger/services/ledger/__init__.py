"""Ledger service: portfolios, transactions and the positions derived from them.

Transactions are the only authoritative record. Open positions, closed
positions and (by default) cash are derived from them, either incrementally
as transactions arrive in order or by replaying a portfolio's full history.

Key components:
- LedgerService: Orchestrates store writes, replays and change notifications
- PositionEngine: Applies one transaction to a set of positions (pure)
- ReplayEngine: Folds a full history into derived state (pure)
- FeeSchedule: Default brokerage fee and TFF estimation
- Models: Portfolio, Transaction, Position, ClosedPosition, Setting

Example:
    >>> import datetime as dt
    >>> from decimal import Decimal
    >>> from folioledger.services.ledger import LedgerService, Transaction, TransactionType
    >>> from folioledger.services.store import InMemoryLedgerStore
    >>>
    >>> service = LedgerService(InMemoryLedgerStore())
    >>> portfolio = service.create_portfolio("PEA", code="PEA")
    >>> update = service.add_transaction(
    ...     Transaction(
    ...         date=dt.date(2024, 1, 15),
    ...         code="AAPL",
    ...         type=TransactionType.BUY,
    ...         quantity=Decimal("10"),
    ...         unit_price=Decimal("100"),
    ...         fees=Decimal("5"),
    ...     ),
    ...     portfolio.id,
    ... )
    >>> update.positions[0].pru
    Decimal('100.5')
"""

from folioledger.services.ledger.errors import (
    InsufficientCashError,
    InsufficientQuantityError,
    InvalidBackupStructureError,
    LedgerError,
    PortfolioNotFoundError,
    TransactionNotFoundError,
    UnknownCodeError,
)
from folioledger.services.ledger.fees import FeeSchedule
from folioledger.services.ledger.models import (
    CASH_CODE,
    ClosedPosition,
    Portfolio,
    PortfolioCategory,
    PortfolioFees,
    Position,
    Setting,
    TaggedClosedPosition,
    TaggedPosition,
    TaggedTransaction,
    Transaction,
    TransactionType,
)
from folioledger.services.ledger.position_engine import PositionEngine, PositionUpdate
from folioledger.services.ledger.replay import ReplayEngine, ReplayResult, SkippedTransaction
from folioledger.services.ledger.service import ConsolidatedView, LedgerService, LedgerUpdate
from folioledger.services.ledger.validation import ImportIssue, validate_import_batch

__all__ = [
    "CASH_CODE",
    "ClosedPosition",
    "ConsolidatedView",
    "FeeSchedule",
    "ImportIssue",
    "InsufficientCashError",
    "InsufficientQuantityError",
    "InvalidBackupStructureError",
    "LedgerError",
    "LedgerService",
    "LedgerUpdate",
    "Portfolio",
    "PortfolioCategory",
    "PortfolioFees",
    "PortfolioNotFoundError",
    "Position",
    "PositionEngine",
    "PositionUpdate",
    "ReplayEngine",
    "ReplayResult",
    "Setting",
    "SkippedTransaction",
    "TaggedClosedPosition",
    "TaggedPosition",
    "TaggedTransaction",
    "Transaction",
    "TransactionNotFoundError",
    "TransactionType",
    "UnknownCodeError",
    "validate_import_batch",
]
