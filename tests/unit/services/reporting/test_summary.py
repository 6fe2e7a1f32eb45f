"""Unit tests for position valuation and portfolio statistics."""

import datetime as dt
from decimal import Decimal

import pytest

from folioledger.services.ledger import ClosedPosition, Portfolio, PortfolioCategory, Position
from folioledger.services.quotes import Quote
from folioledger.services.reporting import allocation, summarize_portfolio, value_position


def _position(code: str, quantity: str, total_cost: str, **extra) -> Position:
    return Position(
        code=code,
        quantity=Decimal(quantity),
        total_cost=Decimal(total_cost),
        pru=Decimal(total_cost) / Decimal(quantity),
        **extra,
    )


def _closed(gain_loss: str, sale_date: str) -> ClosedPosition:
    gl = Decimal(gain_loss)
    return ClosedPosition(
        code="X",
        purchase_date=dt.date(2024, 1, 1),
        sale_date=dt.date.fromisoformat(sale_date),
        quantity=Decimal("1"),
        pru=Decimal("100"),
        average_sale_price=Decimal("100") + gl,
        total_purchase=Decimal("100"),
        total_sale=Decimal("100") + gl,
        gain_loss=gl,
    )


@pytest.fixture
def trading() -> Portfolio:
    return Portfolio(name="Trading", cash=Decimal("1000"))


class TestValuePosition:
    """Test marking one position."""

    def test_quote_price(self):
        """Test value and latent gain from a quote."""
        valuation = value_position(_position("AAPL", "10", "1005"), Quote(symbol="AAPL", price=Decimal("120")))

        assert valuation.price_source == "quote"
        assert valuation.total_value == Decimal("1200")
        assert valuation.latent_gain_loss == Decimal("195")
        assert valuation.latent_gain_loss_percent.quantize(Decimal("0.01")) == Decimal("19.40")

    def test_manual_price_wins(self):
        """Test a manual price overrides the quote."""
        position = _position("AAPL", "10", "1000", manual_current_price=Decimal("90"))

        valuation = value_position(position, Quote(symbol="AAPL", price=Decimal("120")))

        assert valuation.price == Decimal("90")
        assert valuation.price_source == "manual"
        assert valuation.latent_gain_loss == Decimal("-100")

    def test_no_price(self):
        """Test an unpriced position is listed but not valued."""
        valuation = value_position(_position("AAPL", "10", "1000"), Quote.unavailable("AAPL", "static"))

        assert not valuation.valued
        assert valuation.latent_gain_loss is None

    def test_stop_loss_risk(self):
        """Test risk = (stop - pru) * quantity, with its percent of pru."""
        valuation = value_position(_position("AAPL", "10", "1000", stop_loss=Decimal("95")))

        assert valuation.risk == Decimal("-50")
        assert valuation.risk_percent == Decimal("-5")


class TestAllocation:
    """Test allocation slices."""

    def test_sorted_positive_slices(self):
        """Test non-positive values are dropped and the rest sorted descending."""
        slices = allocation({"A": Decimal("100"), "B": Decimal("300"), "C": Decimal("0")})

        assert [(s.name, s.percent) for s in slices] == [("B", Decimal("75")), ("A", Decimal("25"))]

    def test_empty(self):
        assert allocation({}) == []


class TestSummarizePortfolio:
    """Test the dashboard figures."""

    def test_open_positions(self, trading):
        """Test invested covers every position, value only the priced ones."""
        positions = [
            _position("AAPL", "10", "1000", sector="Tech"),
            _position("MC", "2", "1400", sector="Luxury", manual_current_price=Decimal("750")),
            _position("NOPE", "1", "50"),
        ]

        summary = summarize_portfolio(
            trading, positions, [], [], quotes={"AAPL": Quote(symbol="AAPL", price=Decimal("120"))}
        )

        assert summary.invested == Decimal("2450")
        assert summary.value == Decimal("2700")
        assert summary.unrealized == Decimal("300")
        assert summary.unrealized_percent == Decimal("12.5")
        assert summary.total_portfolio == Decimal("3700")
        assert [s.name for s in summary.allocation_by_code] == ["MC", "AAPL"]
        assert [s.name for s in summary.allocation_by_sector] == ["Luxury", "Tech"]

    def test_realized_and_dividends_in_range(self, trading, make_tx):
        """Test the date range filters closed positions and dividends, bounds inclusive."""
        closed = [_closed("50", "2024-01-31"), _closed("-20", "2024-02-15"), _closed("10", "2024-03-01")]
        transactions = [
            make_tx("dividend", "AAPL", 10, 2, tax=3, on="2024-02-01"),
            make_tx("dividend", "AAPL", 10, 2, on="2024-03-02"),
        ]

        summary = summarize_portfolio(
            trading, [], closed, transactions, start=dt.date(2024, 2, 1), end=dt.date(2024, 3, 1)
        )

        assert summary.realized == Decimal("-10")
        assert summary.dividends == Decimal("17")
        assert summary.closed_trades == 2
        assert summary.total_gain == Decimal("7")
        assert summary.total_gain_percent is None

    def test_trade_statistics(self, trading):
        """Test wins, losses, break-even, success rate and ratio."""
        closed = [
            _closed("50", "2024-01-01"),
            _closed("30", "2024-01-02"),
            _closed("-20", "2024-01-03"),
            _closed("0", "2024-01-04"),
        ]

        summary = summarize_portfolio(trading, [], closed, [])

        assert (summary.wins, summary.losses, summary.breakeven) == (2, 1, 1)
        assert summary.success_rate == Decimal("50")
        assert summary.total_gains == Decimal("80")
        assert summary.total_losses == Decimal("20")
        assert summary.gain_loss_ratio == Decimal("4")

    def test_ratio_without_losses(self, trading):
        """Test gains with no losses give an unbounded (None) ratio, nothing gives zero."""
        assert summarize_portfolio(trading, [], [_closed("5", "2024-01-01")], []).gain_loss_ratio is None
        assert summarize_portfolio(trading, [], [], []).gain_loss_ratio == Decimal("0")

    def test_stop_loss_risk_trading_only(self, trading):
        """Test risk is totalled for Trading portfolios only."""
        positions = [_position("AAPL", "10", "1000", stop_loss=Decimal("95"), manual_current_price=Decimal("100"))]
        long_term = trading.model_copy(update={"category": PortfolioCategory.LONG_TERM})

        summary = summarize_portfolio(trading, positions, [], [])
        other = summarize_portfolio(long_term, positions, [], [])

        assert summary.stop_loss_risk == Decimal("-50")
        assert summary.stop_loss_risk_percent == Decimal("-2.5")
        assert other.stop_loss_risk == Decimal("0")
        assert other.stop_loss_risk_percent is None
