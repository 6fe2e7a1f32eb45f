"""Shared fixtures for ledger tests."""

import datetime as dt
from decimal import Decimal
from typing import Any, Callable

import pytest

from folioledger.services.ledger import LedgerService, Portfolio, Transaction, TransactionType
from folioledger.services.store import InMemoryLedgerStore
from folioledger.system import LoggerFactory, LoggingConfig


@pytest.fixture(autouse=True)
def quiet_logging():
    """Console-only logging for every test, reset afterwards."""
    LoggerFactory.reset()
    LoggerFactory.configure(LoggingConfig(level="WARNING", enable_file=False))
    yield
    LoggerFactory.reset()


@pytest.fixture
def make_tx() -> Callable[..., Transaction]:
    """
    Factory for transactions with sensible defaults.

    Example:
        make_tx("buy", "AAPL", 10, 100, fees=5, on="2024-01-05")
    """
    types = {
        "buy": TransactionType.BUY,
        "sell": TransactionType.SELL,
        "dividend": TransactionType.DIVIDEND,
        "deposit": TransactionType.DEPOSIT,
        "withdrawal": TransactionType.WITHDRAWAL,
    }

    def _make(
        kind: str,
        code: str,
        quantity: Any,
        price: Any,
        *,
        on: str = "2024-01-05",
        fees: Any = "0",
        tff: Any = "0",
        rate: Any = "1",
        tax: Any = None,
        currency: str = "EUR",
        portfolio_id: str | None = None,
        **extra: Any,
    ) -> Transaction:
        return Transaction(
            portfolio_id=portfolio_id,
            date=dt.date.fromisoformat(on),
            code=code,
            type=types[kind],
            quantity=Decimal(str(quantity)),
            unit_price=Decimal(str(price)),
            fees=Decimal(str(fees)),
            tff=Decimal(str(tff)),
            conversion_rate=Decimal(str(rate)),
            tax=None if tax is None else Decimal(str(tax)),
            currency=currency,
            **extra,
        )

    return _make


@pytest.fixture
def store() -> InMemoryLedgerStore:
    return InMemoryLedgerStore()


@pytest.fixture
def service(store: InMemoryLedgerStore) -> LedgerService:
    return LedgerService(store)


@pytest.fixture
def portfolio(service: LedgerService) -> Portfolio:
    """A Trading EUR portfolio with no history."""
    return service.create_portfolio("Trading account", code="CTO")
