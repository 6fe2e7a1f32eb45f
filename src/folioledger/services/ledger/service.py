"""Ledger service: the portfolio orchestrator.

Entry point for every ledger mutation. Each call names its portfolio
explicitly; there is no ambient "current portfolio" in the service (the
persisted pointer is a convenience for front ends).

Two paths keep derived state consistent with the history:

- Incremental: a transaction that sorts after every existing trade is
  applied with the position engine against the stored positions.
- Replay: deletes, edits, out-of-order inserts and imports rebuild the
  portfolio's positions, closed positions and cash from the full history.

All derived state is computed in memory first and written inside one
`store.atomic()` block. Domain rejections (LedgerError) are returned in the
LedgerUpdate with nothing written; store errors propagate.
"""

import datetime as dt
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Iterable, Sequence
from uuid import uuid4

from folioledger.services.ledger.errors import (
    LedgerError,
    PortfolioNotFoundError,
    TransactionNotFoundError,
    UnknownCodeError,
)
from folioledger.services.ledger.models import (
    CASH_CODE,
    SETTING_CURRENT_PORTFOLIO,
    ClosedPosition,
    Portfolio,
    PortfolioCategory,
    PortfolioFees,
    Position,
    TaggedClosedPosition,
    TaggedPosition,
    TaggedTransaction,
    Transaction,
    TransactionType,
    normalize_code,
)
from folioledger.services.ledger.position_engine import PositionEngine
from folioledger.services.ledger.replay import ReplayEngine, ReplayResult, SkippedTransaction
from folioledger.services.ledger.validation import ImportIssue, validate_import_batch
from folioledger.services.ledger.valuation import ZERO, chronological
from folioledger.services.store.interface import ILedgerStore
from folioledger.system import LoggerFactory
from folioledger.system.config import LedgerConfig

logger = LoggerFactory.get_logger()

# Edits to these fields only touch the transaction record
_METADATA_FIELDS = frozenset({"name", "sector"})

_TRADE_RANK = {TransactionType.BUY: 0, TransactionType.SELL: 1}


@dataclass
class LedgerUpdate:
    """
    Outcome of one ledger operation.

    Attributes:
        operation: Operation name (add, delete, update, import, deposit, ...)
        portfolio_id: Portfolio the operation targeted
        transaction: Transaction added, deleted or edited
        positions: Open positions of the portfolio after the operation
            (for metadata updates: the positions that were modified)
        closed_positions: Closed positions emitted by an incremental sell,
            or the full rebuilt list after a replay
        cash: Portfolio cash after the operation
        cash_delta: Change in cash caused by the operation
        replayed: True when the full history was replayed
        skipped: Transactions replay could not apply
        issues: Non-fatal import validation findings
        error: Domain error that rejected the operation; nothing was written
    """

    operation: str
    portfolio_id: str | None = None
    transaction: Transaction | None = None
    positions: list[Position] = field(default_factory=list)
    closed_positions: list[ClosedPosition] = field(default_factory=list)
    cash: Decimal | None = None
    cash_delta: Decimal = ZERO
    replayed: bool = False
    skipped: list[SkippedTransaction] = field(default_factory=list)
    issues: list[ImportIssue] = field(default_factory=list)
    error: LedgerError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ConsolidatedView:
    """Read-only union of every portfolio, rows tagged with their portfolio."""

    transactions: list[TaggedTransaction] = field(default_factory=list)
    positions: list[TaggedPosition] = field(default_factory=list)
    closed_positions: list[TaggedClosedPosition] = field(default_factory=list)
    cash: Decimal = ZERO


LedgerListener = Callable[[LedgerUpdate], None]


class LedgerService:
    """
    Orchestrates transactions, derived positions and cash per portfolio.

    Example:
        >>> service = LedgerService(InMemoryLedgerStore())
        >>> portfolio = service.create_portfolio("PEA", code="PEA")
        >>> update = service.add_transaction(buy_tx, portfolio.id)
        >>> update.ok, update.positions[0].pru
        (True, Decimal('100.5'))
    """

    def __init__(
        self,
        store: ILedgerStore,
        config: LedgerConfig | None = None,
        engine: PositionEngine | None = None,
        replay_engine: ReplayEngine | None = None,
    ) -> None:
        self.store = store
        self.config = config or LedgerConfig()
        self._engine = engine or PositionEngine()
        self._replay = replay_engine or ReplayEngine(self._engine)
        self._listeners: list[LedgerListener] = []

    # ==================== Listeners ====================

    def subscribe(self, listener: LedgerListener) -> Callable[[], None]:
        """Register a listener for every LedgerUpdate. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, update: LedgerUpdate) -> None:
        for listener in list(self._listeners):
            try:
                listener(update)
            except Exception as e:
                logger.error(
                    "ledger.listener.failed",
                    operation=update.operation,
                    listener=getattr(listener, "__name__", str(listener)),
                    error=str(e),
                )

    def _run(self, operation: str, portfolio_id: str | None, action: Callable[[], LedgerUpdate]) -> LedgerUpdate:
        try:
            update = action()
        except LedgerError as e:
            logger.error(
                "ledger.operation.rejected",
                operation=operation,
                portfolio_id=portfolio_id,
                error=str(e),
                **e.context(),
            )
            update = LedgerUpdate(operation=operation, portfolio_id=portfolio_id, error=e)
        self._notify(update)
        return update

    # ==================== Portfolios ====================

    def list_portfolios(self) -> list[Portfolio]:
        return self.store.get_portfolios()

    def get_portfolio(self, portfolio_id: str) -> Portfolio:
        """Get a portfolio or raise PortfolioNotFoundError."""
        portfolio = self.store.get_portfolio(portfolio_id)
        if portfolio is None:
            raise PortfolioNotFoundError(portfolio_id)
        return portfolio

    def find_portfolio(self, reference: str) -> Portfolio:
        """Resolve a portfolio by id, code or name (case-insensitive)."""
        portfolios = self.store.get_portfolios()
        for portfolio in portfolios:
            if portfolio.id == reference:
                return portfolio
        wanted = reference.strip().lower()
        for portfolio in portfolios:
            if (portfolio.code or "").lower() == wanted or portfolio.name.lower() == wanted:
                return portfolio
        raise PortfolioNotFoundError(reference)

    def create_portfolio(
        self,
        name: str,
        *,
        code: str | None = None,
        category: PortfolioCategory | str = PortfolioCategory.TRADING,
        currency: str = "EUR",
        fees: PortfolioFees | None = None,
        cash: Decimal = ZERO,
        cash_date: dt.date | None = None,
    ) -> Portfolio:
        """
        Create a portfolio. The first portfolio becomes the current one.

        A positive opening `cash` is recorded as a deposit dated `cash_date`
        (today by default), so replays fold it like any other deposit.
        """
        if cash < 0:
            raise ValueError(f"Opening cash cannot be negative, got {cash}")
        portfolio = Portfolio(
            name=name,
            code=code,
            category=PortfolioCategory(category),
            currency=currency,  # type: ignore[arg-type]
            fees=fees or PortfolioFees(),
            cash=cash,
        )
        first = not self.store.get_portfolios()
        with self.store.atomic():
            self.store.create_portfolio(portfolio)
            if cash > 0:
                self.store.add_transaction(
                    Transaction(
                        portfolio_id=portfolio.id,
                        date=cash_date or dt.date.today(),
                        code=CASH_CODE,
                        name="Opening balance",
                        type=TransactionType.DEPOSIT,
                        quantity=Decimal("1"),
                        unit_price=cash,
                        currency=portfolio.currency,
                    )
                )
            if first:
                self.store.set_setting(SETTING_CURRENT_PORTFOLIO, portfolio.id)
        logger.info("ledger.portfolio.created", portfolio_id=portfolio.id, name=portfolio.name)
        return portfolio

    def update_portfolio(self, portfolio_id: str, **changes: Any) -> Portfolio:
        """Update portfolio settings (name, code, category, currency, fees). Cash is preserved."""
        portfolio = self.get_portfolio(portfolio_id)
        changes.pop("cash", None)
        changes.pop("id", None)
        updated = Portfolio.model_validate({**portfolio.model_dump(), **changes})
        self.store.update_portfolio(updated)
        logger.info("ledger.portfolio.updated", portfolio_id=portfolio_id, fields=sorted(changes))
        return updated

    def delete_portfolio(self, portfolio_id: str) -> None:
        """Delete a portfolio with all its transactions, positions and closed positions."""
        self.get_portfolio(portfolio_id)
        with self.store.atomic():
            self.store.delete_portfolio(portfolio_id)
            if self.store.get_setting(SETTING_CURRENT_PORTFOLIO) == portfolio_id:
                remaining = self.store.get_portfolios()
                self.store.set_setting(SETTING_CURRENT_PORTFOLIO, remaining[0].id if remaining else "")
        logger.info("ledger.portfolio.deleted", portfolio_id=portfolio_id)

    def ensure_default_portfolio(self) -> Portfolio:
        """Return the current portfolio, creating the default one on an empty ledger."""
        current_id = self.get_current_portfolio_id()
        if current_id is not None:
            return self.get_portfolio(current_id)

        portfolio = self.create_portfolio(
            self.config.default_portfolio_name,
            category=self.config.default_category,
            currency=self.config.default_currency,
        )
        logger.info("ledger.portfolio.default_created", portfolio_id=portfolio.id)
        return portfolio

    def get_current_portfolio_id(self) -> str | None:
        """Persisted current portfolio, falling back to the first portfolio."""
        portfolios = self.store.get_portfolios()
        stored = self.store.get_setting(SETTING_CURRENT_PORTFOLIO)
        if stored and any(p.id == stored for p in portfolios):
            return stored
        return portfolios[0].id if portfolios else None

    def set_current_portfolio_id(self, portfolio_id: str) -> None:
        self.get_portfolio(portfolio_id)
        self.store.set_setting(SETTING_CURRENT_PORTFOLIO, portfolio_id)

    # ==================== Queries ====================

    def get_transactions(self, portfolio_id: str) -> list[Transaction]:
        """Portfolio history in chronological order."""
        return chronological(self.store.get_transactions(portfolio_id))

    def get_positions(self, portfolio_id: str) -> list[Position]:
        return self.store.get_positions(portfolio_id)

    def get_closed_positions(self, portfolio_id: str) -> list[ClosedPosition]:
        return self.store.get_closed_positions(portfolio_id)

    def consolidated_view(self) -> ConsolidatedView:
        """
        Union of all portfolios, each row tagged with its portfolio code (or name).

        Positions of the same code in different portfolios stay separate rows.
        """
        view = ConsolidatedView()
        for portfolio in self.store.get_portfolios():
            tag = portfolio.label
            view.transactions.extend(
                TaggedTransaction(**tx.model_dump(), portfolio_code=tag)
                for tx in chronological(self.store.get_transactions(portfolio.id))
            )
            view.positions.extend(
                TaggedPosition(**p.model_dump(), portfolio_code=tag) for p in self.store.get_positions(portfolio.id)
            )
            view.closed_positions.extend(
                TaggedClosedPosition(**cp.model_dump(), portfolio_code=tag)
                for cp in self.store.get_closed_positions(portfolio.id)
            )
            view.cash += portfolio.cash
        return view

    # ==================== Transactions ====================

    def add_transaction(self, tx: Transaction, portfolio_id: str) -> LedgerUpdate:
        """
        Record a transaction and update derived state.

        A trade that sorts before an existing trade of the portfolio, a
        dividend dated on or before a trade of its code, or a withdrawal
        dated before other history is merged through a full replay. The
        insertion is rejected if it would leave a sell or dividend uncovered
        or take cash below zero at any point. A dividend on a code with no
        open position raises UnknownCodeError.
        """
        return self._run("add", portfolio_id, lambda: self._add(tx, portfolio_id))

    def _add(self, tx: Transaction, portfolio_id: str) -> LedgerUpdate:
        portfolio = self.get_portfolio(portfolio_id)
        history = self.store.get_transactions(portfolio_id)
        tx = tx.model_copy(update={"portfolio_id": portfolio_id})
        if self.store.get_transaction(tx.id) is not None:
            tx = tx.model_copy(update={"id": str(uuid4())})

        if self._needs_replay(tx, history):
            return self._replace_history(
                "add",
                portfolio,
                history,
                [*history, tx],
                lambda: self.store.add_transaction(tx),
                transaction=tx,
                reject_new_skips=True,
            )

        positions = self.store.get_positions(portfolio_id)
        update = self._engine.apply_transaction(tx, positions, [*history, tx], cash=portfolio.cash)
        cash = portfolio.cash + update.cash_delta

        closed: list[ClosedPosition] = []
        with self.store.atomic():
            self.store.add_transaction(tx)
            if update.upserted is not None:
                self.store.upsert_position(update.upserted.model_copy(update={"portfolio_id": portfolio_id}))
            if update.removed_code is not None:
                self.store.delete_position(portfolio_id, update.removed_code)
            if update.closed is not None:
                closed.append(self.store.add_closed_position(update.closed))
            if update.cash_delta != 0:
                self.store.update_portfolio(portfolio.model_copy(update={"cash": cash}))

        logger.info(
            "ledger.transaction.recorded",
            portfolio_id=portfolio_id,
            code=tx.code,
            type=tx.type.value,
            quantity=str(tx.quantity),
            price=str(tx.unit_price),
            cash=str(cash),
        )
        return LedgerUpdate(
            operation="add",
            portfolio_id=portfolio_id,
            transaction=tx,
            positions=self.store.get_positions(portfolio_id),
            closed_positions=closed,
            cash=cash,
            cash_delta=update.cash_delta,
        )

    def delete_transaction(self, transaction_id: str, portfolio_id: str) -> LedgerUpdate:
        """
        Delete a transaction and replay the portfolio.

        Later sells the remaining history can no longer cover are skipped
        (reported in `skipped`); a sell whose original first buy is deleted
        is attributed to the next remaining buy.
        """
        return self._run("delete", portfolio_id, lambda: self._delete(transaction_id, portfolio_id))

    def _delete(self, transaction_id: str, portfolio_id: str) -> LedgerUpdate:
        portfolio = self.get_portfolio(portfolio_id)
        history = self.store.get_transactions(portfolio_id)
        target = next((h for h in history if h.id == transaction_id), None)
        if target is None:
            raise TransactionNotFoundError(transaction_id)

        remaining = [h for h in history if h.id != transaction_id]
        return self._replace_history(
            "delete",
            portfolio,
            history,
            remaining,
            lambda: self.store.delete_transaction(transaction_id),
            transaction=target,
        )

    def update_transaction(self, transaction_id: str, portfolio_id: str, **changes: Any) -> LedgerUpdate:
        """
        Edit a transaction.

        Changes to name or sector only rewrite the record. Any other change
        replays the portfolio and is rejected if it would leave a sell or
        dividend uncovered or make a withdrawal overdraw cash.
        """
        return self._run("update", portfolio_id, lambda: self._update(transaction_id, portfolio_id, changes))

    def _update(self, transaction_id: str, portfolio_id: str, changes: dict[str, Any]) -> LedgerUpdate:
        portfolio = self.get_portfolio(portfolio_id)
        history = self.store.get_transactions(portfolio_id)
        current = next((h for h in history if h.id == transaction_id), None)
        if current is None:
            raise TransactionNotFoundError(transaction_id)

        changes = {k: v for k, v in changes.items() if k not in ("id", "portfolio_id")}
        updated = Transaction.model_validate({**current.model_dump(), **changes})
        changed = {name for name in Transaction.model_fields if getattr(updated, name) != getattr(current, name)}

        if changed <= _METADATA_FIELDS:
            if changed:
                self.store.update_transaction(updated)
            logger.info("ledger.transaction.edited", portfolio_id=portfolio_id, fields=sorted(changed))
            return LedgerUpdate(
                operation="update",
                portfolio_id=portfolio_id,
                transaction=updated,
                positions=self.store.get_positions(portfolio_id),
                cash=portfolio.cash,
            )

        edited = [updated if h.id == transaction_id else h for h in history]
        return self._replace_history(
            "update",
            portfolio,
            history,
            edited,
            lambda: self.store.update_transaction(updated),
            transaction=updated,
            reject_new_skips=True,
        )

    def import_transactions(self, transactions: Iterable[Transaction], portfolio_id: str) -> LedgerUpdate:
        """
        Merge a batch into the portfolio history and replay.

        The batch is validated first; findings are logged and returned in
        `issues` but do not stop the import. Sells replay cannot cover are
        skipped and returned in `skipped`.
        """
        batch = list(transactions)
        return self._run("import", portfolio_id, lambda: self._import(batch, portfolio_id))

    def _import(self, batch: list[Transaction], portfolio_id: str) -> LedgerUpdate:
        portfolio = self.get_portfolio(portfolio_id)
        history = self.store.get_transactions(portfolio_id)
        known_ids = {h.id for h in history}

        incoming: list[Transaction] = []
        for tx in batch:
            update: dict[str, Any] = {"portfolio_id": portfolio_id}
            if tx.id in known_ids or self.store.get_transaction(tx.id) is not None:
                update["id"] = str(uuid4())
            incoming.append(tx.model_copy(update=update))
            known_ids.add(incoming[-1].id)

        issues = validate_import_batch(incoming)
        for issue in issues:
            logger.warning("import.validation.issue", portfolio_id=portfolio_id, row=issue.row, message=issue.message)

        update = self._replace_history(
            "import",
            portfolio,
            history,
            [*history, *incoming],
            lambda: self.store.bulk_add_transactions(incoming),
        )
        update.issues = issues
        logger.info(
            "import.completed",
            portfolio_id=portfolio_id,
            imported=len(incoming),
            issues=len(issues),
            skipped=len(update.skipped),
        )
        return update

    def rebuild(self, portfolio_id: str) -> LedgerUpdate:
        """Replay the stored history and rewrite the derived state."""
        return self._run("rebuild", portfolio_id, lambda: self._rebuild(portfolio_id))

    def _rebuild(self, portfolio_id: str) -> LedgerUpdate:
        portfolio = self.get_portfolio(portfolio_id)
        history = self.store.get_transactions(portfolio_id)
        return self._replace_history("rebuild", portfolio, history, history, lambda: None)

    # ==================== Cash ====================

    def deposit(self, portfolio_id: str, amount: Decimal, on: dt.date | None = None) -> LedgerUpdate:
        """Record a cash deposit."""
        return self._cash_operation(TransactionType.DEPOSIT, portfolio_id, amount, on)

    def withdraw(self, portfolio_id: str, amount: Decimal, on: dt.date | None = None) -> LedgerUpdate:
        """Record a cash withdrawal. Rejected if it exceeds the cash balance."""
        return self._cash_operation(TransactionType.WITHDRAWAL, portfolio_id, amount, on)

    def _cash_operation(
        self,
        tx_type: TransactionType,
        portfolio_id: str,
        amount: Decimal,
        on: dt.date | None,
    ) -> LedgerUpdate:
        if amount <= 0:
            raise ValueError(f"Amount must be positive, got {amount}")
        portfolio = self.store.get_portfolio(portfolio_id)
        tx = Transaction(
            portfolio_id=portfolio_id,
            date=on or dt.date.today(),
            code=CASH_CODE,
            name="Deposit" if tx_type == TransactionType.DEPOSIT else "Withdrawal",
            type=tx_type,
            quantity=Decimal("1"),
            unit_price=amount,
            currency=portfolio.currency if portfolio else "EUR",
        )
        return self.add_transaction(tx, portfolio_id)

    # ==================== Position metadata ====================

    def set_stop_loss(self, code: str, value: Decimal | None, portfolio_id: str | None = None) -> LedgerUpdate:
        """Set (or clear with None) the stop-loss of a position.

        With portfolio_id None (consolidated view) every portfolio holding
        the code is updated.
        """
        return self._run(
            "stop_loss", portfolio_id, lambda: self._set_position_field("stop_loss", code, value, portfolio_id)
        )

    def set_manual_price(self, code: str, value: Decimal | None, portfolio_id: str | None = None) -> LedgerUpdate:
        """Set (or clear with None) the manual price that overrides quotes for a position."""
        return self._run(
            "manual_price",
            portfolio_id,
            lambda: self._set_position_field("manual_current_price", code, value, portfolio_id),
        )

    def _set_position_field(
        self,
        field_name: str,
        code: str,
        value: Decimal | None,
        portfolio_id: str | None,
    ) -> LedgerUpdate:
        if value is not None and value < 0:
            raise ValueError(f"{field_name} cannot be negative, got {value}")
        if portfolio_id is not None:
            self.get_portfolio(portfolio_id)

        target = normalize_code(code)
        matches = [p for p in self.store.get_positions(portfolio_id) if normalize_code(p.code) == target]
        if not matches:
            raise UnknownCodeError(code=target, transaction_type=field_name)

        updated: list[Position] = []
        with self.store.atomic():
            for position in matches:
                updated.append(self.store.upsert_position(position.model_copy(update={field_name: value})))

        logger.info(
            "ledger.position.updated",
            code=target,
            field=field_name,
            value=None if value is None else str(value),
            portfolios=len(updated),
        )
        return LedgerUpdate(operation=field_name, portfolio_id=portfolio_id, positions=updated)

    # ==================== Replay ====================

    def _needs_replay(self, tx: Transaction, history: Sequence[Transaction]) -> bool:
        """True when `tx` does not sort after the derived state already built from `history`."""
        if tx.type.is_trade:
            key = (tx.date, _TRADE_RANK[tx.type])
            return any(h.type.is_trade and (h.date, _TRADE_RANK[h.type]) > key for h in history)
        if tx.type == TransactionType.DIVIDEND:
            code = normalize_code(tx.code)
            return any(h.type.is_trade and normalize_code(h.code) == code and h.date >= tx.date for h in history)
        if tx.type == TransactionType.WITHDRAWAL:
            return any(h.date > tx.date for h in history)
        return False

    def _replace_history(
        self,
        operation: str,
        portfolio: Portfolio,
        before: Sequence[Transaction],
        after: Sequence[Transaction],
        write_transactions: Callable[[], Any],
        *,
        transaction: Transaction | None = None,
        reject_new_skips: bool = False,
    ) -> LedgerUpdate:
        """
        Replay `after`, then atomically apply the transaction write and the rebuilt state.

        With `reject_new_skips`, a sell or dividend that `before` could apply
        but `after` cannot, or a withdrawal that only overdraws in `after`,
        rejects the operation with its error.
        """
        baseline = self._replay.replay(before)
        opening = ZERO
        if not self.config.replay_cash:
            # Seed the fold so stored cash only moves by what the mutation changes
            opening = portfolio.cash - baseline.cash
            baseline = self._replay.replay(before, opening_cash=opening)
        result = self._replay.replay(after, strict=self.config.strict_replay, opening_cash=opening)

        if reject_new_skips:
            self._reject_new_findings(baseline.skipped, result.skipped)
            self._reject_new_findings(baseline.overdrafts, result.overdrafts)

        cash = result.cash
        cash_delta = cash - portfolio.cash

        positions = self._carry_metadata(result, self.store.get_positions(portfolio.id), portfolio.id)
        closed = [cp.model_copy(update={"portfolio_id": portfolio.id}) for cp in result.closed_positions]

        with self.store.atomic():
            write_transactions()
            self.store.delete_positions(portfolio.id)
            self.store.bulk_upsert_positions(positions)
            self.store.delete_closed_positions(portfolio.id)
            self.store.bulk_add_closed_positions(closed)
            self.store.update_portfolio(portfolio.model_copy(update={"cash": cash}))

        logger.info(
            "ledger.replayed",
            operation=operation,
            portfolio_id=portfolio.id,
            transactions=len(after),
            positions=len(positions),
            closed=len(closed),
            skipped=len(result.skipped),
            cash=str(cash),
        )
        return LedgerUpdate(
            operation=operation,
            portfolio_id=portfolio.id,
            transaction=transaction,
            positions=self.store.get_positions(portfolio.id),
            closed_positions=self.store.get_closed_positions(portfolio.id),
            cash=cash,
            cash_delta=cash_delta,
            replayed=True,
            skipped=result.skipped,
        )

    @staticmethod
    def _reject_new_findings(before: Sequence[SkippedTransaction], after: Sequence[SkippedTransaction]) -> None:
        known = {s.transaction.id for s in before}
        for finding in after:
            if finding.transaction.id not in known:
                raise finding.error

    @staticmethod
    def _carry_metadata(result: ReplayResult, previous: Sequence[Position], portfolio_id: str) -> list[Position]:
        """Rebuilt positions keep the stop-loss and manual price set on their predecessors."""
        by_code = {normalize_code(p.code): p for p in previous}
        carried = []
        for position in result.positions:
            update: dict[str, Any] = {"portfolio_id": portfolio_id}
            old = by_code.get(normalize_code(position.code))
            if old is not None:
                update["stop_loss"] = old.stop_loss
                update["manual_current_price"] = old.manual_current_price
            carried.append(position.model_copy(update=update))
        return carried
