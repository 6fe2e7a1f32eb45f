"""Unit tests for FeeSchedule default fee estimation."""

from decimal import Decimal

import pytest

from folioledger.services.ledger import FeeSchedule, Portfolio, PortfolioFees, TransactionType


@pytest.fixture
def schedule() -> FeeSchedule:
    """0.1% brokerage with a 2 minimum, 0.3% TFF."""
    return FeeSchedule(
        PortfolioFees(fees_percent=Decimal("0.1"), fees_min=Decimal("2"), tff_percent=Decimal("0.3")),
        "EUR",
    )


class TestEstimateFees:
    """Test brokerage fee estimation."""

    def test_minimum_applies(self, schedule):
        """Test small trades pay the minimum."""
        assert schedule.estimate_fees(Decimal("10"), Decimal("100")) == Decimal("2")

    def test_percent_above_minimum(self, schedule):
        """Test large trades pay the percentage."""
        assert schedule.estimate_fees(Decimal("100"), Decimal("100")) == Decimal("10")

    def test_conversion_rate_scales_notional(self, schedule):
        """Test the notional is converted before the percentage."""
        assert schedule.estimate_fees(Decimal("100"), Decimal("100"), Decimal("0.5")) == Decimal("5")

    def test_no_percent_means_no_fee(self):
        """Test a schedule without a percentage estimates zero, even with a minimum."""
        schedule = FeeSchedule(PortfolioFees(fees_min=Decimal("2")))

        assert schedule.estimate_fees(Decimal("10"), Decimal("100")) == Decimal("0")

    def test_negative_inputs_rejected(self, schedule):
        """Test negative quantity or price raises ValueError."""
        with pytest.raises(ValueError):
            schedule.estimate_fees(Decimal("-1"), Decimal("100"))
        with pytest.raises(ValueError):
            schedule.estimate_fees(Decimal("1"), Decimal("-100"))


class TestEstimateTff:
    """Test financial transaction tax estimation."""

    def test_eur_buy_taxed(self, schedule):
        """Test EUR buys in EUR portfolios pay TFF."""
        tff = schedule.estimate_tff(Decimal("10"), Decimal("100"), TransactionType.BUY, "EUR")

        assert tff == Decimal("3")

    @pytest.mark.parametrize(
        "tx_type,currency",
        [
            (TransactionType.SELL, "EUR"),
            (TransactionType.DIVIDEND, "EUR"),
            (TransactionType.BUY, "USD"),
        ],
    )
    def test_untaxed_cases(self, schedule, tx_type, currency):
        """Test sells, dividends and foreign buys pay no TFF."""
        assert schedule.estimate_tff(Decimal("10"), Decimal("100"), tx_type, currency) == Decimal("0")

    def test_non_eur_portfolio_untaxed(self):
        """Test USD portfolios never pay TFF."""
        schedule = FeeSchedule(PortfolioFees(tff_percent=Decimal("0.3")), "USD")

        assert schedule.estimate_tff(Decimal("10"), Decimal("100"), TransactionType.BUY, "EUR") == Decimal("0")


class TestApplyDefaults:
    """Test filling in transaction fees."""

    def test_fills_missing_fees(self, schedule, make_tx):
        """Test fees and TFF are estimated when not given."""
        tx = make_tx("buy", "MC", 10, 100)

        result = schedule.apply_defaults(tx, fees_given=False, tff_given=False)

        assert result.fees == Decimal("2")
        assert result.tff == Decimal("3")

    def test_explicit_zero_kept(self, schedule, make_tx):
        """Test values the user gave are not overwritten."""
        tx = make_tx("buy", "MC", 10, 100, fees=0)

        result = schedule.apply_defaults(tx, fees_given=True, tff_given=True)

        assert result is tx

    def test_cash_operations_untouched(self, schedule, make_tx):
        """Test only trades receive estimated fees."""
        tx = make_tx("dividend", "MC", 10, 1)

        assert schedule.apply_defaults(tx, fees_given=False, tff_given=False) is tx

    def test_for_portfolio(self):
        """Test the schedule uses the portfolio's fees and currency."""
        portfolio = Portfolio(name="US", currency="USD", fees=PortfolioFees(fees_percent=Decimal("0.2")))

        schedule = FeeSchedule.for_portfolio(portfolio)

        assert schedule.portfolio_currency == "USD"
        assert schedule.fees.fees_percent == Decimal("0.2")
