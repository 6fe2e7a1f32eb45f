"""
Risk Management Library.

Pure function-based risk tools. Stateless and easy to test.

Usage:
    >>> from decimal import Decimal
    >>> from folioledger.libraries.risk import RiskProfile, calculate_risk_based_size
    >>>
    >>> sizing = calculate_risk_based_size(
    ...     capital=Decimal("16000"),
    ...     entry_price=Decimal("7.3"),
    ...     stop_price=Decimal("6.76"),
    ...     risk_percent=Decimal("0.5"),
    ...     profile=RiskProfile.PRUDENT,
    ... )
"""

from folioledger.libraries.risk.sizing import PositionSizing, RiskProfile, calculate_risk_based_size

__all__ = [
    "PositionSizing",
    "RiskProfile",
    "calculate_risk_based_size",
]
