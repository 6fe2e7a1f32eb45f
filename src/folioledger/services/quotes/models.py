"""Quote data model."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, field_validator


class Quote(BaseModel):
    """Last known price of a symbol.

    `price` is None when the provider had no price or failed.
    """

    model_config = ConfigDict(frozen=True)

    symbol: str
    price: Decimal | None = None
    currency: str | None = None
    timestamp: datetime | None = None
    source: str = "unknown"

    @field_validator("symbol")
    @classmethod
    def validate_symbol(cls, v: str) -> str:
        return v.strip().upper()

    @property
    def available(self) -> bool:
        return self.price is not None

    @classmethod
    def unavailable(cls, symbol: str, source: str) -> "Quote":
        return cls(symbol=symbol, source=source)
