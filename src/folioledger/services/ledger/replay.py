"""Ledger replay engine: rebuild derived state from a transaction history.

Replay is a left fold of the position engine over the history in
chronological order (buys before sells on the same date), starting from an
empty position set. Cash is folded alongside, from an opening balance of
zero unless one is given.

Replay runs whenever a historical transaction is deleted or edited, when a
transaction is inserted out of order, and after bulk imports. Identical
input yields identical output: closed positions carry the id of the sell
that produced them and no store-assigned ids.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Sequence

from folioledger.services.ledger.errors import (
    InsufficientCashError,
    InsufficientQuantityError,
    LedgerError,
    UnknownCodeError,
)
from folioledger.services.ledger.models import ClosedPosition, Position, Transaction, TransactionType
from folioledger.services.ledger.position_engine import PositionEngine
from folioledger.services.ledger.valuation import ZERO, chronological
from folioledger.system import LoggerFactory

logger = LoggerFactory.get_logger()


@dataclass(frozen=True)
class SkippedTransaction:
    """A transaction replay skipped or flagged, with the reason."""

    transaction: Transaction
    error: LedgerError

    @property
    def reason(self) -> str:
        return str(self.error)


@dataclass
class ReplayResult:
    """
    Derived state of one portfolio.

    Attributes:
        positions: Open positions at the end of the history
        closed_positions: Closes in emission order
        cash: Opening balance plus every cash movement
        skipped: Sells and dividends that could not be applied
        overdrafts: Withdrawals that took cash below zero. They are still
            folded into `cash`; the error records the balance they found.
    """

    positions: list[Position] = field(default_factory=list)
    closed_positions: list[ClosedPosition] = field(default_factory=list)
    cash: Decimal = ZERO
    skipped: list[SkippedTransaction] = field(default_factory=list)
    overdrafts: list[SkippedTransaction] = field(default_factory=list)


class ReplayEngine:
    """
    Rebuilds positions, closed positions and cash from scratch.

    Sells and dividends that cannot be covered at their point in the history
    (no open position, or more units sold than held) are skipped and
    reported in `ReplayResult.skipped`. They contribute nothing to positions
    or cash. Withdrawals that overdraw cash are applied and reported in
    `ReplayResult.overdrafts`. Pass strict=True to raise the first such
    error instead.

    Example:
        >>> result = ReplayEngine().replay(transactions)
        >>> [p.code for p in result.positions]
        ['AAPL']
    """

    def __init__(self, engine: PositionEngine | None = None) -> None:
        self._engine = engine or PositionEngine()

    def replay(
        self,
        transactions: Sequence[Transaction],
        *,
        strict: bool = False,
        opening_cash: Decimal = ZERO,
    ) -> ReplayResult:
        """
        Replay a portfolio's full history.

        Args:
            transactions: Complete history (any order, any type)
            strict: Raise on uncoverable sells, dividends and overdrafts
                instead of reporting them
            opening_cash: Cash balance before the first transaction

        Returns:
            ReplayResult

        Raises:
            UnknownCodeError, InsufficientQuantityError, InsufficientCashError: Only when strict
        """
        history = list(transactions)
        result = ReplayResult()
        positions: list[Position] = []
        cash = opening_cash

        for tx in chronological(history):
            try:
                update = self._engine.apply_transaction(tx, positions, history)
            except (UnknownCodeError, InsufficientQuantityError) as e:
                if strict:
                    raise
                logger.warning(
                    "replay.transaction.skipped",
                    transaction_id=tx.id,
                    date=tx.date.isoformat(),
                    error=str(e),
                    **e.context(),
                )
                result.skipped.append(SkippedTransaction(transaction=tx, error=e))
                continue

            positions = update.positions
            if update.closed is not None:
                result.closed_positions.append(update.closed)

            if tx.type == TransactionType.WITHDRAWAL and cash + update.cash_delta < 0:
                overdraft = InsufficientCashError(requested=tx.amount, available=cash)
                if strict:
                    raise overdraft
                logger.warning(
                    "replay.cash.negative",
                    transaction_id=tx.id,
                    date=tx.date.isoformat(),
                    cash=str(cash + update.cash_delta),
                )
                result.overdrafts.append(SkippedTransaction(transaction=tx, error=overdraft))
            cash += update.cash_delta

        result.positions = positions
        result.cash = cash

        logger.debug(
            "replay.completed",
            transactions=len(history),
            positions=len(result.positions),
            closed=len(result.closed_positions),
            skipped=len(result.skipped),
            overdrafts=len(result.overdrafts),
            cash=str(cash),
        )
        return result
