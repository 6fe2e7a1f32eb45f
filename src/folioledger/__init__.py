"""
folioledger - Portfolio ledger and position engine

Records buy, sell, dividend and cash transactions per portfolio and derives
open positions, realized closes and cash with average-cost accounting.
"""

from importlib.metadata import version

try:
    __version__ = version("folioledger")
except Exception:
    __version__ = "0.0.0.dev"  # Fallback for development


__all__ = [
    "__version__",
]
