"""Data models for the ledger service.

Defines all core entities of the portfolio ledger:
- Portfolio / PortfolioFees: Account container and its default fee schedule
- Transaction: Authoritative history record (buy, sell, dividend, cash)
- Position: Derived open holding, one per (portfolio, code)
- ClosedPosition: Derived realized close, one per sell
- Setting: Key/value application setting
- Tagged*: Read-only rows of the consolidated view

Python attributes are snake_case. Serialization uses camelCase aliases
(portfolioId, unitPrice, closedPositions...) so exported backups keep the
established wire format. Monetary fields are Decimal and serialize as strings
in JSON mode.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

Currency = Literal["EUR", "USD", "GBP", "CHF", "JPY", "CAD", "DKK", "SEK"]
PortfolioCurrency = Literal["EUR", "USD", "DKK", "SEK"]

CASH_CODE = "CASH"

SETTING_CURRENT_PORTFOLIO = "currentPortfolioId"
SETTING_EXCHANGE_RATES = "exchangeRates"
SETTING_MIGRATED = "migrated"


def _new_id() -> str:
    return str(uuid4())


def normalize_code(code: str) -> str:
    """Canonical form of an instrument code: trimmed and upper-cased."""
    return code.strip().upper()


class TransactionType(str, Enum):
    """Kind of ledger transaction.

    Values are the persisted identifiers used by existing ledgers and backups.
    """

    BUY = "achat"
    SELL = "vente"
    DIVIDEND = "dividende"
    DEPOSIT = "depot"
    WITHDRAWAL = "retrait"

    @property
    def is_trade(self) -> bool:
        """True for transactions that move positions (buy and sell)."""
        return self in (TransactionType.BUY, TransactionType.SELL)

    @property
    def is_cash(self) -> bool:
        """True for pure cash movements (deposit and withdrawal)."""
        return self in (TransactionType.DEPOSIT, TransactionType.WITHDRAWAL)


class PortfolioCategory(str, Enum):
    """Portfolio category. Only Trading portfolios carry stop-loss risk totals."""

    TRADING = "Trading"
    CRYPTO = "Crypto"
    LONG_TERM = "LT"


class LedgerModel(BaseModel):
    """Base for ledger records: camelCase aliases, population by field name."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PortfolioFees(LedgerModel):
    """Default fee schedule of a portfolio.

    Attributes:
        fees_percent: Brokerage fee as a percent of notional (e.g. 0.1 = 0.1%)
        fees_min: Minimum brokerage fee per trade
        tff_percent: Financial transaction tax percent, applied to EUR buys
    """

    fees_percent: Decimal = Field(default=Decimal("0"), alias="defaultFeesPercent")
    fees_min: Decimal = Field(default=Decimal("0"), alias="defaultFeesMin")
    tff_percent: Decimal = Field(default=Decimal("0"), alias="defaultTFF")

    @field_validator("fees_percent", "fees_min", "tff_percent")
    @classmethod
    def validate_non_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError(f"Fee settings cannot be negative, got {v}")
        return v


class Portfolio(LedgerModel):
    """
    A named account holding transactions, positions and a cash balance.

    Cash is signed: replaying a history whose withdrawals exceed its
    deposits may leave it negative.

    Example:
        >>> portfolio = Portfolio(name="PEA", code="PEA", currency="EUR")
        >>> portfolio.label
        'PEA'
    """

    id: str = Field(default_factory=_new_id)
    name: str
    code: str | None = None
    category: PortfolioCategory = PortfolioCategory.TRADING
    currency: PortfolioCurrency = "EUR"
    fees: PortfolioFees = Field(default_factory=PortfolioFees)
    cash: Decimal = Decimal("0")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Portfolio name cannot be empty")
        return v

    @field_validator("code")
    @classmethod
    def validate_code(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @property
    def label(self) -> str:
        """Display tag used in the consolidated view."""
        return self.code or self.name


class Transaction(LedgerModel):
    """
    One entry of a portfolio's authoritative history.

    `fees` and `tff` are expressed in the portfolio currency. `unit_price`
    is in the transaction currency and is converted with `conversion_rate`.
    For deposits and withdrawals the amount is `unit_price * quantity`
    (quantity is 1 for cash operations created by the ledger service).

    Example:
        >>> tx = Transaction(
        ...     portfolio_id="p1",
        ...     date=dt.date(2024, 1, 15),
        ...     code=" aapl ",
        ...     type=TransactionType.BUY,
        ...     quantity=Decimal("10"),
        ...     unit_price=Decimal("100"),
        ...     fees=Decimal("5"),
        ... )
        >>> tx.code
        'AAPL'
    """

    id: str = Field(default_factory=_new_id)
    portfolio_id: str | None = None
    date: dt.date
    code: str
    name: str = ""
    type: TransactionType
    quantity: Decimal
    unit_price: Decimal
    fees: Decimal = Decimal("0")
    tff: Decimal = Decimal("0")
    currency: Currency = "EUR"
    conversion_rate: Decimal = Decimal("1")
    tax: Decimal | None = None
    sector: str | None = None

    @field_validator("code")
    @classmethod
    def validate_code(cls, v: str) -> str:
        v = normalize_code(v)
        if not v:
            raise ValueError("Transaction code cannot be empty")
        return v

    @field_validator("quantity")
    @classmethod
    def validate_quantity(cls, v: Decimal) -> Decimal:
        if v <= 0:
            raise ValueError(f"Quantity must be positive, got {v}")
        return v

    @field_validator("unit_price", "fees", "tff")
    @classmethod
    def validate_non_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError(f"Amount cannot be negative, got {v}")
        return v

    @field_validator("conversion_rate")
    @classmethod
    def validate_conversion_rate(cls, v: Decimal) -> Decimal:
        if v <= 0:
            raise ValueError(f"Conversion rate must be positive, got {v}")
        return v

    @field_validator("tax")
    @classmethod
    def validate_tax(cls, v: Decimal | None) -> Decimal | None:
        if v is not None and v < 0:
            raise ValueError(f"Tax cannot be negative, got {v}")
        return v

    @field_validator("sector")
    @classmethod
    def validate_sector(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None

    @property
    def amount(self) -> Decimal:
        """Gross amount in transaction currency (quantity * unit price)."""
        return self.quantity * self.unit_price


class Position(LedgerModel):
    """
    Open holding derived from the buy/sell history of one code.

    Invariants:
        quantity > 0 (a fully sold position is deleted, never stored at zero)
        pru == total_cost / quantity after every buy; unchanged by sells

    `stop_loss` and `manual_current_price` are user metadata. Buys and
    partial sells preserve them.
    """

    id: int | None = None
    portfolio_id: str | None = None
    code: str
    name: str = ""
    quantity: Decimal
    total_cost: Decimal
    pru: Decimal
    currency: Currency | None = None
    stop_loss: Decimal | None = None
    manual_current_price: Decimal | None = None
    sector: str | None = None

    @field_validator("code")
    @classmethod
    def validate_code(cls, v: str) -> str:
        return normalize_code(v)

    @field_validator("quantity")
    @classmethod
    def validate_quantity(cls, v: Decimal) -> Decimal:
        if v <= 0:
            raise ValueError(f"Position quantity must be positive, got {v}")
        return v


class ClosedPosition(LedgerModel):
    """
    Realized close produced by one sell. Append-only.

    Attributes:
        purchase_date: Earliest buy of the holding period the sell closes from
        sale_date: Date of the sell
        quantity: Units sold
        pru: Average cost per unit at the time of the sell
        average_sale_price: Net proceeds per unit sold (total_sale / quantity)
        total_purchase: quantity * pru
        total_sale: Net proceeds (after fees and tff)
        gain_loss: total_sale - total_purchase
        gain_loss_percent: gain_loss / total_purchase * 100, None when the
            purchase total is zero
        dividends: Net dividends received on the code during the holding period
        transaction_id: The sell that produced this close
    """

    id: int | None = None
    portfolio_id: str | None = None
    transaction_id: str | None = None
    code: str
    name: str = ""
    purchase_date: dt.date
    sale_date: dt.date
    quantity: Decimal
    pru: Decimal
    average_sale_price: Decimal
    total_purchase: Decimal
    total_sale: Decimal
    gain_loss: Decimal
    gain_loss_percent: Decimal | None = None
    dividends: Decimal = Decimal("0")
    sector: str | None = None

    @field_validator("code")
    @classmethod
    def validate_code(cls, v: str) -> str:
        return normalize_code(v)


class Setting(LedgerModel):
    """Key/value application setting."""

    key: str
    value: str


class TaggedTransaction(Transaction):
    """Transaction row of the consolidated view."""

    portfolio_code: str


class TaggedPosition(Position):
    """Position row of the consolidated view."""

    portfolio_code: str


class TaggedClosedPosition(ClosedPosition):
    """Closed position row of the consolidated view."""

    portfolio_code: str
