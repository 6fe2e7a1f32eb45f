"""folioledger services package.

Each service is independently testable and receives its collaborators
(store, quote provider, config) by dependency injection.
"""

from folioledger.services.ledger import LedgerService
from folioledger.services.quotes import QuoteService
from folioledger.services.store import ILedgerStore, create_store

__all__: list[str] = [
    "ILedgerStore",
    "LedgerService",
    "QuoteService",
    "create_store",
]
