"""
Quote lookup with caching.

QuoteService sits between callers and a QuoteProvider (the market data
collaborator). It normalizes the requested symbols, serves fresh entries
from its TTLCache and asks the provider for the rest in one batch. Provider
failures never propagate: the affected symbols come back with price None.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Mapping, Protocol, Sequence

from folioledger.services.quotes.cache import TTLCache
from folioledger.services.quotes.models import Quote
from folioledger.system import LoggerFactory

logger = LoggerFactory.get_logger()


class QuoteProvider(Protocol):
    """Market data source."""

    name: str

    def fetch(self, symbols: Sequence[str]) -> list[Quote]:
        """Fetch quotes for normalized symbols. May return fewer quotes than asked."""
        ...


class StaticQuoteProvider:
    """Provider serving fixed prices, e.g. from the command line."""

    name = "static"

    def __init__(self, prices: Mapping[str, Decimal], currency: str | None = None) -> None:
        self._prices = {symbol.strip().upper(): price for symbol, price in prices.items()}
        self._currency = currency

    def fetch(self, symbols: Sequence[str]) -> list[Quote]:
        now = datetime.now(timezone.utc)
        return [
            Quote(symbol=s, price=self._prices[s], currency=self._currency, timestamp=now, source=self.name)
            for s in symbols
            if s in self._prices
        ]


def normalize_symbols(symbols: Iterable[str], limit: int | None = None) -> list[str]:
    """Trim, upper-case and dedupe symbols, keeping first-seen order.

    Example:
        >>> normalize_symbols([" aapl", "MSFT", "AAPL", ""])
        ['AAPL', 'MSFT']
    """
    seen: dict[str, None] = {}
    for symbol in symbols:
        cleaned = symbol.strip().upper()
        if cleaned:
            seen.setdefault(cleaned, None)
    result = list(seen)
    return result[:limit] if limit is not None else result


class QuoteService:
    """
    Cached quote lookups.

    Attributes:
        provider: Market data source
        cache: Quote cache, keyed by normalized symbol
        ttl_seconds: Lifetime of cached quotes
        max_symbols: Symbols served per request; extra symbols are dropped
    """

    def __init__(
        self,
        provider: QuoteProvider,
        cache: TTLCache[Quote] | None = None,
        ttl_seconds: float = 60,
        max_symbols: int = 20,
    ) -> None:
        self.provider = provider
        self.cache: TTLCache[Quote] = cache if cache is not None else TTLCache()
        self.ttl_seconds = ttl_seconds
        self.max_symbols = max_symbols

    def get_quotes(self, symbols: Iterable[str]) -> list[Quote]:
        """
        Quotes for the requested symbols, in request order.

        Only quotes with a price are cached, so unavailable symbols are
        retried on the next call.
        """
        requested = normalize_symbols(symbols, self.max_symbols)
        found: dict[str, Quote] = {}
        missing: list[str] = []
        for symbol in requested:
            cached = self.cache.get(symbol)
            if cached is not None:
                found[symbol] = cached
            else:
                missing.append(symbol)

        if missing:
            found.update(self._fetch(missing))

        logger.debug("quotes.served", requested=len(requested), fetched=len(missing))
        return [found.get(symbol) or Quote.unavailable(symbol, self.provider.name) for symbol in requested]

    def get_quote(self, symbol: str) -> Quote:
        return self.get_quotes([symbol])[0]

    def prices(self, symbols: Iterable[str]) -> dict[str, Decimal]:
        """Symbol -> price for the symbols that have one."""
        return {q.symbol: q.price for q in self.get_quotes(symbols) if q.price is not None}

    def _fetch(self, symbols: list[str]) -> dict[str, Quote]:
        try:
            quotes = self.provider.fetch(symbols)
        except Exception as e:
            logger.warning("quotes.provider.failed", provider=self.provider.name, symbols=symbols, error=str(e))
            return {}

        wanted = set(symbols)
        result: dict[str, Quote] = {}
        for quote in quotes:
            if quote.symbol not in wanted:
                continue
            result[quote.symbol] = quote
            if quote.available:
                self.cache.put(quote.symbol, quote, self.ttl_seconds)
        return result
