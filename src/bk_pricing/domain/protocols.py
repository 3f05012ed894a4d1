"""Protocols for price lookups: consumers depend on these, not on httpx/Redis."""

from decimal import Decimal
from typing import Protocol

from src.bk_pricing.domain.models import PriceQuote


class PriceCacheProtocol(Protocol):
    async def get(self, symbol: str) -> PriceQuote | None: ...

    async def set(self, quote: PriceQuote, ttl_seconds: int) -> None: ...


class PriceOracleProtocol(Protocol):
    """Never raises: always returns a usable positive price."""

    async def get_price(self, symbol: str) -> Decimal: ...

    async def get_prices(self, symbols: list[str]) -> dict[str, Decimal]: ...
