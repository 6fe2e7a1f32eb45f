"""
Position valuation and portfolio statistics.

Pure functions over ledger records:
- value_position: mark one open position to a price
- summarize_portfolio: dashboard figures for a portfolio over an optional
  date range (realized gains, dividends, trade statistics, stop-loss risk,
  allocation by code and by sector)

Price precedence for a position: manual price, then live quote, else no
price (the position is listed but not valued).
"""

import datetime as dt
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Literal, Mapping, Sequence

from folioledger.services.ledger.models import (
    ClosedPosition,
    Portfolio,
    PortfolioCategory,
    Position,
    Transaction,
    TransactionType,
)
from folioledger.services.ledger.valuation import transaction_dividend_net
from folioledger.services.quotes.models import Quote

ZERO = Decimal("0")
HUNDRED = Decimal("100")
UNDEFINED_SECTOR = "Undefined"

PriceSource = Literal["manual", "quote"]


@dataclass(frozen=True)
class PositionValuation:
    """An open position marked to its effective price.

    Value fields are None when no price is known. `risk` is the P&L locked
    in if the stop is hit: (stop_loss - pru) * quantity, negative below cost.
    """

    position: Position
    price: Decimal | None = None
    price_source: PriceSource | None = None
    total_value: Decimal | None = None
    latent_gain_loss: Decimal | None = None
    latent_gain_loss_percent: Decimal | None = None
    risk: Decimal | None = None
    risk_percent: Decimal | None = None

    @property
    def valued(self) -> bool:
        return self.total_value is not None


@dataclass(frozen=True)
class AllocationSlice:
    """Share of the valued portfolio held in one code or sector."""

    name: str
    value: Decimal
    percent: Decimal


@dataclass
class PortfolioSummary:
    """Dashboard figures of one portfolio.

    Attributes:
        invested: Total cost of open positions
        value: Market value of the open positions that have a price
        unrealized: Latent gain/loss of the valued positions
        realized: Sum of gain_loss of closed positions sold in range
        dividends: Net dividends received in range
        total_gain: unrealized + realized + dividends
        total_gain_percent: total_gain / invested * 100, None if nothing invested
        wins / losses / breakeven: Closed positions by sign of gain_loss
        success_rate: wins / closed trades * 100
        gain_loss_ratio: Total gains / total losses. None when there are
            gains but no losses (unbounded), zero with neither.
        stop_loss_risk: Sum of position risks, Trading portfolios only
        stop_loss_risk_percent: Risk as a percent of value + cash
        allocation_by_code / allocation_by_sector: Sorted by value, descending
    """

    portfolio_id: str
    cash: Decimal
    start: dt.date | None
    end: dt.date | None
    positions: list[PositionValuation]
    invested: Decimal = ZERO
    value: Decimal = ZERO
    unrealized: Decimal = ZERO
    unrealized_percent: Decimal | None = None
    realized: Decimal = ZERO
    dividends: Decimal = ZERO
    total_gain: Decimal = ZERO
    total_gain_percent: Decimal | None = None
    closed_trades: int = 0
    wins: int = 0
    losses: int = 0
    breakeven: int = 0
    success_rate: Decimal = ZERO
    total_gains: Decimal = ZERO
    total_losses: Decimal = ZERO
    gain_loss_ratio: Decimal | None = ZERO
    stop_loss_risk: Decimal = ZERO
    stop_loss_risk_percent: Decimal | None = None
    allocation_by_code: list[AllocationSlice] = field(default_factory=list)
    allocation_by_sector: list[AllocationSlice] = field(default_factory=list)

    @property
    def total_portfolio(self) -> Decimal:
        """Market value of valued positions plus cash."""
        return self.value + self.cash


def _in_range(day: dt.date, start: dt.date | None, end: dt.date | None) -> bool:
    return (start is None or day >= start) and (end is None or day <= end)


def value_position(position: Position, quote: Quote | None = None) -> PositionValuation:
    """
    Mark a position to its effective price.

    Example:
        >>> position = Position(code="AAPL", quantity=Decimal("10"), total_cost=Decimal("1005"), pru=Decimal("100.5"))
        >>> value_position(position, Quote(symbol="AAPL", price=Decimal("120"))).latent_gain_loss
        Decimal('195')
    """
    risk = risk_percent = None
    if position.stop_loss is not None:
        risk = (position.stop_loss - position.pru) * position.quantity
        if position.pru > 0:
            risk_percent = (position.stop_loss - position.pru) / position.pru * HUNDRED

    price: Decimal | None = None
    source: PriceSource | None = None
    if position.manual_current_price is not None:
        price, source = position.manual_current_price, "manual"
    elif quote is not None and quote.price is not None:
        price, source = quote.price, "quote"

    if price is None:
        return PositionValuation(position=position, risk=risk, risk_percent=risk_percent)

    total_value = position.quantity * price
    latent = total_value - position.total_cost
    latent_percent = latent / position.total_cost * HUNDRED if position.total_cost > 0 else None
    return PositionValuation(
        position=position,
        price=price,
        price_source=source,
        total_value=total_value,
        latent_gain_loss=latent,
        latent_gain_loss_percent=latent_percent,
        risk=risk,
        risk_percent=risk_percent,
    )


def allocation(values: Mapping[str, Decimal]) -> list[AllocationSlice]:
    """Slices of the positive values, largest first, as percents of their sum."""
    positive = {name: value for name, value in values.items() if value > 0}
    total = sum(positive.values(), ZERO)
    slices = [
        AllocationSlice(name=name, value=value, percent=value / total * HUNDRED if total > 0 else ZERO)
        for name, value in positive.items()
    ]
    return sorted(slices, key=lambda s: s.value, reverse=True)


def summarize_portfolio(
    portfolio: Portfolio,
    positions: Sequence[Position],
    closed_positions: Sequence[ClosedPosition],
    transactions: Sequence[Transaction],
    quotes: Mapping[str, Quote] | None = None,
    start: dt.date | None = None,
    end: dt.date | None = None,
) -> PortfolioSummary:
    """
    Compute the dashboard figures of a portfolio.

    Open positions are always taken as they are now. The date range only
    filters closed positions (by sale date) and dividends (by transaction
    date); both bounds are inclusive.

    Args:
        portfolio: Portfolio the records belong to
        positions: Its open positions
        closed_positions: Its closed positions
        transactions: Its transactions
        quotes: Live quotes keyed by code
        start: First day of the range, None for unbounded
        end: Last day of the range, None for unbounded

    Returns:
        PortfolioSummary
    """
    quotes = quotes or {}
    valuations = [value_position(p, quotes.get(p.code)) for p in positions]
    summary = PortfolioSummary(
        portfolio_id=portfolio.id, cash=portfolio.cash, start=start, end=end, positions=valuations
    )

    # Open positions
    summary.invested = sum((v.position.total_cost for v in valuations), ZERO)
    valued = [v for v in valuations if v.valued]
    summary.value = sum((v.total_value for v in valued), ZERO)  # type: ignore[misc]
    summary.unrealized = sum((v.latent_gain_loss for v in valued), ZERO)  # type: ignore[misc]
    valued_cost = sum((v.position.total_cost for v in valued), ZERO)
    if valued_cost > 0:
        summary.unrealized_percent = summary.unrealized / valued_cost * HUNDRED

    # Realized and dividends in range
    closed = [c for c in closed_positions if _in_range(c.sale_date, start, end)]
    summary.realized = sum((c.gain_loss for c in closed), ZERO)
    summary.dividends = sum(
        (
            transaction_dividend_net(t)
            for t in transactions
            if t.type == TransactionType.DIVIDEND and _in_range(t.date, start, end)
        ),
        ZERO,
    )
    summary.total_gain = summary.unrealized + summary.realized + summary.dividends
    if summary.invested > 0:
        summary.total_gain_percent = summary.total_gain / summary.invested * HUNDRED

    # Trade statistics
    summary.closed_trades = len(closed)
    summary.wins = sum(1 for c in closed if c.gain_loss > 0)
    summary.losses = sum(1 for c in closed if c.gain_loss < 0)
    summary.breakeven = summary.closed_trades - summary.wins - summary.losses
    if closed:
        summary.success_rate = Decimal(summary.wins) / Decimal(summary.closed_trades) * HUNDRED
    summary.total_gains = sum((c.gain_loss for c in closed if c.gain_loss > 0), ZERO)
    summary.total_losses = abs(sum((c.gain_loss for c in closed if c.gain_loss < 0), ZERO))
    if summary.total_losses > 0:
        summary.gain_loss_ratio = summary.total_gains / summary.total_losses
    elif summary.total_gains > 0:
        summary.gain_loss_ratio = None

    # Stop-loss risk
    if portfolio.category == PortfolioCategory.TRADING:
        summary.stop_loss_risk = sum((v.risk for v in valuations if v.risk is not None), ZERO)
        if summary.total_portfolio > 0:
            summary.stop_loss_risk_percent = summary.stop_loss_risk / summary.total_portfolio * HUNDRED

    # Allocation
    by_code: dict[str, Decimal] = {}
    by_sector: dict[str, Decimal] = {}
    for v in valued:
        by_code[v.position.code] = by_code.get(v.position.code, ZERO) + v.total_value  # type: ignore[operator]
        sector = v.position.sector or UNDEFINED_SECTOR
        by_sector[sector] = by_sector.get(sector, ZERO) + v.total_value  # type: ignore[operator]
    summary.allocation_by_code = allocation(by_code)
    summary.allocation_by_sector = allocation(by_sector)

    return summary
