"""Default fee estimation from a portfolio's fee schedule.

Fees are estimated in the portfolio currency:
- Brokerage: max(notional * fees_percent / 100, fees_min), for buys and sells
- TFF (financial transaction tax): quantity * unit_price * tff_percent / 100,
  for buys only, and only when both the portfolio and the transaction are in EUR

Estimates only fill in transactions that carry no explicit fees; an explicit
zero entered by the user is kept.
"""

from decimal import Decimal

from folioledger.services.ledger.models import Portfolio, PortfolioFees, Transaction, TransactionType

ZERO = Decimal("0")
HUNDRED = Decimal("100")


class FeeSchedule:
    """Estimates brokerage fees and TFF for a trade.

    Attributes:
        fees: Portfolio fee settings
        portfolio_currency: Currency the estimates are expressed in
    """

    def __init__(self, fees: PortfolioFees, portfolio_currency: str = "EUR") -> None:
        self.fees = fees
        self.portfolio_currency = portfolio_currency

    @classmethod
    def for_portfolio(cls, portfolio: Portfolio) -> "FeeSchedule":
        return cls(portfolio.fees, portfolio.currency)

    def estimate_fees(
        self,
        quantity: Decimal,
        unit_price: Decimal,
        conversion_rate: Decimal = Decimal("1"),
    ) -> Decimal:
        """Estimate brokerage fees for a buy or sell.

        Args:
            quantity: Units traded
            unit_price: Price per unit in transaction currency
            conversion_rate: Transaction currency to portfolio currency rate

        Returns:
            Fee in portfolio currency. Zero when no percentage is configured.

        Raises:
            ValueError: If quantity or unit_price is negative

        Examples:
            >>> schedule = FeeSchedule(PortfolioFees(fees_percent=Decimal("0.1"), fees_min=Decimal("2")))
            >>> schedule.estimate_fees(Decimal("10"), Decimal("100"))  # 0.1% of 1000 = 1, floor 2
            Decimal('2')
            >>> schedule.estimate_fees(Decimal("100"), Decimal("100"))  # 0.1% of 10000
            Decimal('10.0')
        """
        if quantity < 0:
            raise ValueError(f"Quantity cannot be negative, got {quantity}")
        if unit_price < 0:
            raise ValueError(f"Price cannot be negative, got {unit_price}")

        if self.fees.fees_percent == 0:
            return ZERO

        notional = quantity * unit_price * conversion_rate
        return max(notional * self.fees.fees_percent / HUNDRED, self.fees.fees_min)

    def estimate_tff(
        self,
        quantity: Decimal,
        unit_price: Decimal,
        transaction_type: TransactionType,
        transaction_currency: str,
    ) -> Decimal:
        """Estimate the financial transaction tax.

        Only EUR buys in EUR portfolios are taxed; everything else is zero.
        """
        if transaction_type != TransactionType.BUY:
            return ZERO
        if self.portfolio_currency != "EUR" or transaction_currency != "EUR":
            return ZERO
        return quantity * unit_price * self.fees.tff_percent / HUNDRED

    def apply_defaults(self, tx: Transaction, *, fees_given: bool, tff_given: bool) -> Transaction:
        """Return `tx` with estimated fees and TFF where none were given.

        Only buys and sells are affected.
        """
        if not tx.type.is_trade:
            return tx

        update: dict[str, Decimal] = {}
        if not fees_given:
            update["fees"] = self.estimate_fees(tx.quantity, tx.unit_price, tx.conversion_rate)
        if not tff_given:
            update["tff"] = self.estimate_tff(tx.quantity, tx.unit_price, tx.type, tx.currency)
        return tx.model_copy(update=update) if update else tx
