"""Risk-based position sizing.

Pure functions computing how many shares to buy so that hitting the stop
loses a fixed share of capital.

Formula:
    final_risk_percent = risk_percent * profile multiplier
    risk_amount = capital * final_risk_percent / 100
    risk_per_share = |entry_price - stop_price|
    max_shares = floor(risk_amount / risk_per_share)
    max_invested = max_shares * entry_price

Profiles scale the base risk: prudent 0.75, normal 1, aggressive 2,
speculative 0.5.
"""

from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal
from enum import Enum

ZERO = Decimal("0")
HUNDRED = Decimal("100")
TRIGGER_RANGE_PERCENT = Decimal("0.35")


class RiskProfile(str, Enum):
    """Trader risk profile."""

    PRUDENT = "prudent"
    NORMAL = "normal"
    AGGRESSIVE = "aggressive"
    SPECULATIVE = "speculative"

    @property
    def multiplier(self) -> Decimal:
        """Factor applied to the base risk percent."""
        return _MULTIPLIERS[self]

    @property
    def suggested_base_risk(self) -> Decimal:
        """Suggested base risk percent per trade for the profile."""
        return _SUGGESTED_BASE_RISK[self]


_MULTIPLIERS = {
    RiskProfile.PRUDENT: Decimal("0.75"),
    RiskProfile.NORMAL: Decimal("1"),
    RiskProfile.AGGRESSIVE: Decimal("2"),
    RiskProfile.SPECULATIVE: Decimal("0.5"),
}

_SUGGESTED_BASE_RISK = {
    RiskProfile.PRUDENT: Decimal("0.25"),
    RiskProfile.NORMAL: Decimal("0.50"),
    RiskProfile.AGGRESSIVE: Decimal("0.75"),
    RiskProfile.SPECULATIVE: Decimal("1.0"),
}


@dataclass(frozen=True)
class PositionSizing:
    """Result of a risk-based sizing calculation.

    Attributes:
        final_risk_percent: Base risk percent scaled by the profile
        risk_amount: Capital at risk if the stop is hit
        risk_per_share: Distance between entry and stop
        max_shares: Whole shares affordable within the risk amount
        max_invested: max_shares * entry_price
        percent_of_portfolio: max_invested as a percent of capital
        half_position: floor(max_shares / 2)
        half_percent: Half position notional as a percent of capital
        half_risk_amount: Risk carried by the half position
        stop_percent: (stop - entry) / entry * 100, negative for a long stop
        trigger_lower: entry * (1 - 0.35%)
        trigger_upper: entry * (1 + 0.35%)
    """

    final_risk_percent: Decimal
    risk_amount: Decimal
    risk_per_share: Decimal
    max_shares: int
    max_invested: Decimal
    percent_of_portfolio: Decimal
    half_position: int
    half_percent: Decimal
    half_risk_amount: Decimal
    stop_percent: Decimal
    trigger_lower: Decimal
    trigger_upper: Decimal


def _floor(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_FLOOR))


def calculate_risk_based_size(
    *,
    capital: Decimal,
    entry_price: Decimal,
    stop_price: Decimal,
    risk_percent: Decimal,
    profile: RiskProfile | str = RiskProfile.NORMAL,
) -> PositionSizing:
    """Size a position from the capital at risk between entry and stop.

    Args:
        capital: Portfolio capital
        entry_price: Planned buy price
        stop_price: Stop-loss price
        risk_percent: Base risk per trade in percent of capital (0.5 = 0.5%)
        profile: Risk profile scaling the base risk

    Returns:
        PositionSizing. max_shares is 0 when entry equals stop.

    Raises:
        ValueError: If capital, entry_price, stop_price or risk_percent is
            negative, or the profile is unknown

    Example:
        >>> sizing = calculate_risk_based_size(
        ...     capital=Decimal("16000"),
        ...     entry_price=Decimal("7.3"),
        ...     stop_price=Decimal("6.76"),
        ...     risk_percent=Decimal("0.5"),
        ... )
        >>> sizing.risk_amount, sizing.max_shares
        (Decimal('80.0'), 148)
    """
    if capital < 0:
        raise ValueError(f"capital must be non-negative, got {capital}")
    if entry_price < 0:
        raise ValueError(f"entry_price must be non-negative, got {entry_price}")
    if stop_price < 0:
        raise ValueError(f"stop_price must be non-negative, got {stop_price}")
    if risk_percent < 0:
        raise ValueError(f"risk_percent must be non-negative, got {risk_percent}")

    profile = RiskProfile(profile)
    final_risk = risk_percent * profile.multiplier
    risk_amount = capital * final_risk / HUNDRED
    risk_per_share = abs(entry_price - stop_price)

    max_shares = _floor(risk_amount / risk_per_share) if risk_per_share > 0 else 0
    max_invested = max_shares * entry_price
    half_position = max_shares // 2

    percent_of_portfolio = max_invested / capital * HUNDRED if capital > 0 else ZERO
    half_percent = half_position * entry_price / capital * HUNDRED if capital > 0 else ZERO
    stop_percent = (stop_price - entry_price) / entry_price * HUNDRED if entry_price > 0 else ZERO

    band = TRIGGER_RANGE_PERCENT / HUNDRED
    return PositionSizing(
        final_risk_percent=final_risk,
        risk_amount=risk_amount,
        risk_per_share=risk_per_share,
        max_shares=max_shares,
        max_invested=max_invested,
        percent_of_portfolio=percent_of_portfolio,
        half_position=half_position,
        half_percent=half_percent,
        half_risk_amount=half_position * risk_per_share,
        stop_percent=stop_percent,
        trigger_lower=entry_price * (1 - band),
        trigger_upper=entry_price * (1 + band),
    )
