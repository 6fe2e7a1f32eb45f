"""Valuation primitives for average-cost (PRU) accounting.

Pure functions over Decimal. No I/O, no state, no logging.

Monetary convention:
- unit prices are in the transaction currency and are converted to the
  portfolio currency with the transaction's conversion rate
- fees and tff are already in the portfolio currency and are never
  reconverted; buys add them to cost, sells deduct them from proceeds
- dividend tax is deducted as recorded, after conversion of the gross amount
"""

import datetime as dt
from decimal import Decimal
from typing import Iterable, Sequence

from folioledger.services.ledger.models import Transaction, TransactionType, normalize_code

ZERO = Decimal("0")
HUNDRED = Decimal("100")

# Same-day ordering: deposits, buys, dividends, sells, withdrawals.
# A same-day round trip has inventory and a same-day dividend still sees the holding.
_TYPE_RANK = {
    TransactionType.DEPOSIT: 0,
    TransactionType.BUY: 1,
    TransactionType.DIVIDEND: 2,
    TransactionType.SELL: 3,
    TransactionType.WITHDRAWAL: 4,
}


def converted_price(unit_price: Decimal, conversion_rate: Decimal) -> Decimal:
    """Unit price expressed in portfolio currency."""
    return unit_price * conversion_rate


def buy_cost(quantity: Decimal, converted_unit_price: Decimal, fees: Decimal, tff: Decimal) -> Decimal:
    """Total cost of a buy in portfolio currency: q * price + fees + tff."""
    return quantity * converted_unit_price + fees + tff


def sale_proceeds(quantity: Decimal, converted_unit_price: Decimal, fees: Decimal, tff: Decimal) -> Decimal:
    """Net proceeds of a sell in portfolio currency: q * price - fees - tff."""
    return quantity * converted_unit_price - fees - tff


def weighted_average_cost(
    existing_total_cost: Decimal,
    existing_quantity: Decimal,
    added_cost: Decimal,
    added_quantity: Decimal,
) -> tuple[Decimal, Decimal, Decimal]:
    """
    Merge a buy into an existing holding.

    Returns:
        (new_quantity, new_total_cost, new_pru)

    Raises:
        ValueError: If the resulting quantity is not positive

    Example:
        >>> weighted_average_cost(Decimal("1005"), Decimal("10"), Decimal("1105"), Decimal("10"))
        (Decimal('20'), Decimal('2110'), Decimal('105.5'))
    """
    new_quantity = existing_quantity + added_quantity
    if new_quantity <= 0:
        raise ValueError(f"Resulting quantity must be positive, got {new_quantity}")
    new_total_cost = existing_total_cost + added_cost
    return new_quantity, new_total_cost, new_total_cost / new_quantity


def gain_loss(total_sale: Decimal, total_purchase: Decimal) -> Decimal:
    return total_sale - total_purchase


def gain_loss_percent(gain_loss: Decimal, total_purchase: Decimal) -> Decimal | None:
    """Gain as a percent of the purchase total, None when the purchase total is zero."""
    if total_purchase == 0:
        return None
    return gain_loss / total_purchase * HUNDRED


def dividend_net(
    unit_price: Decimal,
    quantity: Decimal,
    conversion_rate: Decimal,
    tax: Decimal | None = None,
) -> Decimal:
    """Net dividend in portfolio currency: p * q * rate - tax."""
    return unit_price * quantity * conversion_rate - (tax or ZERO)


def transaction_dividend_net(tx: Transaction) -> Decimal:
    return dividend_net(tx.unit_price, tx.quantity, tx.conversion_rate, tx.tax)


def holding_period_dividends(
    transactions: Iterable[Transaction],
    code: str,
    purchase_date: dt.date,
    sale_date: dt.date,
) -> Decimal:
    """Sum of net dividends for `code` dated within [purchase_date, sale_date] inclusive."""
    target = normalize_code(code)
    total = ZERO
    for tx in transactions:
        if tx.type != TransactionType.DIVIDEND or normalize_code(tx.code) != target:
            continue
        if purchase_date <= tx.date <= sale_date:
            total += transaction_dividend_net(tx)
    return total


def chronological(transactions: Iterable[Transaction]) -> list[Transaction]:
    """Stable sort by date, buys before sells on the same date."""
    return sorted(transactions, key=lambda tx: (tx.date, _TYPE_RANK[tx.type]))


def holding_period_start(transactions: Sequence[Transaction], code: str, sell: Transaction) -> dt.date | None:
    """
    Earliest buy date of the holding period that `sell` closes from.

    Walks the buy/sell history of `code` in chronological order up to (not
    including) `sell`. The holding period restarts each time the running
    quantity returns to zero. Sells the running quantity cannot cover are
    ignored, matching how replay skips them.

    Returns:
        Date of the first buy after the position was last flat, or None if
        no buy precedes the sell.

    Example:
        Buy 01-05, sell all 02-01, buy 03-01, sell 04-01:
        the 04-01 sell's holding period starts 03-01.
    """
    target = normalize_code(code)
    quantity = ZERO
    start: dt.date | None = None

    for tx in chronological(transactions):
        if tx.id == sell.id:
            break
        if not tx.type.is_trade or normalize_code(tx.code) != target:
            continue
        if tx.type == TransactionType.BUY:
            if quantity == 0:
                start = tx.date
            quantity += tx.quantity
        elif tx.quantity <= quantity:
            quantity -= tx.quantity
            if quantity == 0:
                start = None

    return start
