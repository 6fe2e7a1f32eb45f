"""Ledger persistence.

Key components:
- ILedgerStore: Protocol the ledger service depends on
- InMemoryLedgerStore: Dictionary-backed store (tests, scratch sessions)
- SQLiteLedgerStore: File-backed store
- create_store: Build the store selected by StoreConfig
"""

from folioledger.services.store.interface import ILedgerStore
from folioledger.services.store.memory import InMemoryLedgerStore
from folioledger.services.store.sqlite import SQLiteLedgerStore
from folioledger.system.config import StoreConfig


def create_store(config: StoreConfig) -> ILedgerStore:
    """Instantiate the configured store backend."""
    if config.backend == "memory":
        return InMemoryLedgerStore()
    if config.backend == "sqlite":
        return SQLiteLedgerStore(config.path)
    raise ValueError(f"Unknown store backend: {config.backend}")


__all__ = [
    "ILedgerStore",
    "InMemoryLedgerStore",
    "SQLiteLedgerStore",
    "create_store",
]
