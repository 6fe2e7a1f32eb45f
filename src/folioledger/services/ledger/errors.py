"""Domain errors raised by the ledger engines and service.

All errors derive from LedgerError (a ValueError), so callers that only
care about "the operation was rejected" can catch one type. Each error
carries the structured fields that describe the rejection; `context()`
returns them for logging.
"""

from decimal import Decimal
from typing import Any


class LedgerError(ValueError):
    """Base class for rejected ledger operations."""

    def context(self) -> dict[str, Any]:
        """Structured fields for log events."""
        return {}


class InsufficientQuantityError(LedgerError):
    """A sell exceeds the quantity held for the code."""

    def __init__(self, code: str, requested: Decimal, available: Decimal) -> None:
        self.code = code
        self.requested = requested
        self.available = available
        super().__init__(f"Cannot sell {requested} {code}: only {available} held")

    def context(self) -> dict[str, Any]:
        return {"code": self.code, "requested": str(self.requested), "available": str(self.available)}


class InsufficientCashError(LedgerError):
    """A withdrawal exceeds the portfolio's cash balance."""

    def __init__(self, requested: Decimal, available: Decimal) -> None:
        self.requested = requested
        self.available = available
        super().__init__(f"Cannot withdraw {requested}: only {available} available")

    def context(self) -> dict[str, Any]:
        return {"requested": str(self.requested), "available": str(self.available)}


class UnknownCodeError(LedgerError):
    """A sell or dividend references a code with no open position."""

    def __init__(self, code: str, transaction_type: str) -> None:
        self.code = code
        self.transaction_type = transaction_type
        super().__init__(f"No open position for {code} ({transaction_type})")

    def context(self) -> dict[str, Any]:
        return {"code": self.code, "type": self.transaction_type}


class InvalidBackupStructureError(LedgerError):
    """A backup document is malformed or contains no portfolio."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Invalid backup: {reason}")

    def context(self) -> dict[str, Any]:
        return {"reason": self.reason}


class PortfolioNotFoundError(LedgerError):
    """Referenced portfolio does not exist."""

    def __init__(self, portfolio_id: str) -> None:
        self.portfolio_id = portfolio_id
        super().__init__(f"Portfolio not found: {portfolio_id}")

    def context(self) -> dict[str, Any]:
        return {"portfolio_id": self.portfolio_id}


class TransactionNotFoundError(LedgerError):
    """Referenced transaction does not exist in the portfolio."""

    def __init__(self, transaction_id: str) -> None:
        self.transaction_id = transaction_id
        super().__init__(f"Transaction not found: {transaction_id}")

    def context(self) -> dict[str, Any]:
        return {"transaction_id": self.transaction_id}
