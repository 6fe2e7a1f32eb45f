"""Quote service: market prices behind a TTL cache."""

from folioledger.services.quotes.cache import TTLCache
from folioledger.services.quotes.models import Quote
from folioledger.services.quotes.service import QuoteProvider, QuoteService, StaticQuoteProvider, normalize_symbols

__all__ = [
    "Quote",
    "QuoteProvider",
    "QuoteService",
    "StaticQuoteProvider",
    "TTLCache",
    "normalize_symbols",
]
