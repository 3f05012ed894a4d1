"""Domain models for bk_pricing: pure dataclasses, no I/O."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from types import MappingProxyType

from src.bk_common.enums import PriceSource

# Last-known prices used when the feed is down or returns garbage.
DEFAULT_FALLBACK_PRICES: Mapping[str, Decimal] = MappingProxyType({
    "AAPL": Decimal("150.25"),
    "GOOGL": Decimal("2750.80"),
    "TSLA": Decimal("245.60"),
    "MSFT": Decimal("305.15"),
    "AMZN": Decimal("3400.25"),
    "META": Decimal("325.75"),
    "NFLX": Decimal("415.50"),
    "NVDA": Decimal("225.30"),
})


@dataclass(frozen=True)
class PriceQuote:
    symbol: str
    price: Decimal
    source: PriceSource
    fetched_at: datetime


@dataclass(frozen=True)
class FallbackPriceTable:
    """Read-only symbol -> price lookup handed to the oracle at construction."""

    prices: Mapping[str, Decimal] = field(default_factory=lambda: DEFAULT_FALLBACK_PRICES)
    default: Decimal = Decimal("100")

    def __post_init__(self) -> None:
        # Freeze whatever mapping the caller passed in.
        object.__setattr__(self, "prices", MappingProxyType(dict(self.prices)))
        if self.default <= 0:
            raise ValueError(f"Fallback default price must be positive, got {self.default}")

    def lookup(self, symbol: str) -> Decimal:
        return self.prices.get(symbol.upper(), self.default)
