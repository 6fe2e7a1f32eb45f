"""Position engine: apply one transaction to a portfolio's open positions.

Pure and synchronous. The engine never touches the store and never mutates
its inputs; it returns the new position set together with the realized close
(for sells) and the cash delta the transaction implies. Both the ledger
service (incremental path) and the replay engine (full rebuild) use it, so a
history applied one-by-one and the same history replayed produce identical
derived state.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from folioledger.services.ledger.errors import InsufficientCashError, InsufficientQuantityError, UnknownCodeError
from folioledger.services.ledger.models import ClosedPosition, Position, Transaction, TransactionType, normalize_code
from folioledger.services.ledger.valuation import (
    ZERO,
    buy_cost,
    converted_price,
    gain_loss,
    gain_loss_percent,
    holding_period_dividends,
    holding_period_start,
    sale_proceeds,
    transaction_dividend_net,
    weighted_average_cost,
)


@dataclass(frozen=True)
class PositionUpdate:
    """
    Result of applying one transaction.

    Attributes:
        positions: Full position set after the transaction
        cash_delta: Signed cash movement in portfolio currency
        closed: Realized close emitted by a sell
        upserted: Position created or modified by a buy or partial sell
        removed_code: Code whose position a full sell removed
    """

    positions: list[Position]
    cash_delta: Decimal = ZERO
    closed: ClosedPosition | None = None
    upserted: Position | None = None
    removed_code: str | None = None


def find_position(positions: Sequence[Position], code: str) -> Position | None:
    """Find a position by code, trimmed and case-insensitive."""
    target = normalize_code(code)
    for position in positions:
        if normalize_code(position.code) == target:
            return position
    return None


class PositionEngine:
    """
    Applies buys, sells, dividends and cash movements with average-cost accounting.

    Buy: creates the position or merges the cost-weighted average.
    Sell: costs sold units at the current PRU, emits a ClosedPosition and
        removes the position when its quantity reaches zero.
    Dividend: cash only; requires an open position for the code.
    Deposit / withdrawal: cash only; a withdrawal larger than the supplied
        cash balance is rejected.

    Example:
        >>> engine = PositionEngine()
        >>> update = engine.apply_transaction(buy_tx, positions=[])
        >>> update.positions[0].pru
        Decimal('100.5')
    """

    def apply_transaction(
        self,
        tx: Transaction,
        positions: Sequence[Position],
        history: Sequence[Transaction] = (),
        cash: Decimal | None = None,
    ) -> PositionUpdate:
        """
        Apply one transaction.

        Args:
            tx: Transaction to apply
            positions: Current open positions of the portfolio
            history: Full transaction history of the portfolio, used for
                holding-period and dividend attribution of sells. `tx` may
                or may not already be part of it.
            cash: Current cash balance. When given, withdrawals are checked
                against it.

        Returns:
            PositionUpdate with the new position set and cash delta

        Raises:
            UnknownCodeError: Sell or dividend of a code with no open position
            InsufficientQuantityError: Sell larger than the open quantity
            InsufficientCashError: Withdrawal larger than `cash`
        """
        if tx.type == TransactionType.BUY:
            return self._apply_buy(tx, positions)
        if tx.type == TransactionType.SELL:
            return self._apply_sell(tx, positions, history)
        if tx.type == TransactionType.DIVIDEND:
            if find_position(positions, tx.code) is None:
                raise UnknownCodeError(code=tx.code, transaction_type=tx.type.value)
            return PositionUpdate(positions=list(positions), cash_delta=transaction_dividend_net(tx))
        if tx.type == TransactionType.DEPOSIT:
            return PositionUpdate(positions=list(positions), cash_delta=tx.amount)

        delta = -tx.amount
        if cash is not None and cash + delta < 0:
            raise InsufficientCashError(requested=tx.amount, available=cash)
        return PositionUpdate(positions=list(positions), cash_delta=delta)

    def _apply_buy(self, tx: Transaction, positions: Sequence[Position]) -> PositionUpdate:
        cost = buy_cost(tx.quantity, converted_price(tx.unit_price, tx.conversion_rate), tx.fees, tx.tff)
        existing = find_position(positions, tx.code)

        if existing is None:
            position = Position(
                portfolio_id=tx.portfolio_id,
                code=tx.code,
                name=tx.name,
                quantity=tx.quantity,
                total_cost=cost,
                pru=cost / tx.quantity,
                currency=tx.currency,
                sector=tx.sector,
            )
            return PositionUpdate(positions=[*positions, position], cash_delta=-cost, upserted=position)

        quantity, total_cost, pru = weighted_average_cost(existing.total_cost, existing.quantity, cost, tx.quantity)
        position = existing.model_copy(
            update={
                "quantity": quantity,
                "total_cost": total_cost,
                "pru": pru,
                "name": tx.name or existing.name,
                "currency": tx.currency,
                "sector": tx.sector or existing.sector,
            }
        )
        return PositionUpdate(
            positions=[position if p is existing else p for p in positions],
            cash_delta=-cost,
            upserted=position,
        )

    def _apply_sell(
        self,
        tx: Transaction,
        positions: Sequence[Position],
        history: Sequence[Transaction],
    ) -> PositionUpdate:
        existing = find_position(positions, tx.code)
        if existing is None:
            raise UnknownCodeError(code=tx.code, transaction_type=tx.type.value)
        if existing.quantity < tx.quantity:
            raise InsufficientQuantityError(code=tx.code, requested=tx.quantity, available=existing.quantity)

        timeline = list(history)
        if not any(h.id == tx.id for h in timeline):
            timeline.append(tx)

        total_sale = sale_proceeds(tx.quantity, converted_price(tx.unit_price, tx.conversion_rate), tx.fees, tx.tff)
        total_purchase = tx.quantity * existing.pru
        gl = gain_loss(total_sale, total_purchase)
        purchase_date = holding_period_start(timeline, tx.code, tx) or tx.date

        closed = ClosedPosition(
            portfolio_id=tx.portfolio_id,
            transaction_id=tx.id,
            code=tx.code,
            name=tx.name or existing.name,
            purchase_date=purchase_date,
            sale_date=tx.date,
            quantity=tx.quantity,
            pru=existing.pru,
            average_sale_price=total_sale / tx.quantity,
            total_purchase=total_purchase,
            total_sale=total_sale,
            gain_loss=gl,
            gain_loss_percent=gain_loss_percent(gl, total_purchase),
            dividends=holding_period_dividends(timeline, tx.code, purchase_date, tx.date),
            sector=existing.sector,
        )

        remaining = existing.quantity - tx.quantity
        if remaining == 0:
            return PositionUpdate(
                positions=[p for p in positions if p is not existing],
                cash_delta=total_sale,
                closed=closed,
                removed_code=existing.code,
            )

        position = existing.model_copy(
            update={"quantity": remaining, "total_cost": existing.total_cost - total_purchase}
        )
        return PositionUpdate(
            positions=[position if p is existing else p for p in positions],
            cash_delta=total_sale,
            closed=closed,
            upserted=position,
        )
