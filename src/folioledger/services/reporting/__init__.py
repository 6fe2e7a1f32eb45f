"""Reporting: position valuation, portfolio statistics and their console display."""

from folioledger.services.reporting.formatters import display_portfolio_summary, format_money, format_pct
from folioledger.services.reporting.summary import (
    AllocationSlice,
    PortfolioSummary,
    PositionValuation,
    allocation,
    summarize_portfolio,
    value_position,
)

__all__ = [
    "AllocationSlice",
    "PortfolioSummary",
    "PositionValuation",
    "allocation",
    "display_portfolio_summary",
    "format_money",
    "format_pct",
    "summarize_portfolio",
    "value_position",
]
