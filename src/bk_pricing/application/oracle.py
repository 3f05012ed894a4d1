"""PriceOracle: current market price for a symbol, always.

Lookup order: cache (if configured) -> feed (bounded by a timeout) ->
fallback table. Feed failures are absorbed here and never reach callers;
a stale or static price is acceptable in a simulation.
"""

import asyncio
import logging
from decimal import Decimal

import httpx

from config.settings import settings
from src.bk_common.datetime_utils import utc_now
from src.bk_common.enums import PriceSource
from src.bk_common.errors import UpstreamPriceUnavailableError
from src.bk_common.redis_client import get_redis
from src.bk_pricing.domain.models import FallbackPriceTable, PriceQuote
from src.bk_pricing.domain.protocols import PriceCacheProtocol
from src.bk_pricing.infrastructure.feed_client import PriceFeedClient
from src.bk_pricing.infrastructure.redis_cache import RedisPriceCache

logger = logging.getLogger(__name__)


class PriceOracle:
    def __init__(
        self,
        feed: PriceFeedClient,
        fallback: FallbackPriceTable,
        timeout_seconds: float,
        cache: PriceCacheProtocol | None = None,
        cache_ttl_seconds: int = 15,
    ) -> None:
        self._feed = feed
        self._fallback = fallback
        self._timeout_seconds = timeout_seconds
        self._cache = cache
        self._cache_ttl_seconds = cache_ttl_seconds

    async def get_price(self, symbol: str) -> Decimal:
        quote = await self.get_quote(symbol)
        return quote.price

    async def get_quote(self, symbol: str) -> PriceQuote:
        symbol = symbol.strip().upper()

        if self._cache is not None:
            cached = await self._cache.get(symbol)
            if cached is not None:
                return cached

        try:
            price = await asyncio.wait_for(
                self._feed.fetch_price(symbol), timeout=self._timeout_seconds
            )
        except TimeoutError:
            return self._fallback_quote(symbol, f"timed out after {self._timeout_seconds}s")
        except UpstreamPriceUnavailableError as exc:
            return self._fallback_quote(symbol, exc.reason)

        quote = PriceQuote(
            symbol=symbol, price=price, source=PriceSource.FEED, fetched_at=utc_now()
        )
        if self._cache is not None:
            await self._cache.set(quote, self._cache_ttl_seconds)
        return quote

    async def get_prices(self, symbols: list[str]) -> dict[str, Decimal]:
        """Look up several symbols concurrently; returns symbol -> price."""
        unique = list(dict.fromkeys(s.strip().upper() for s in symbols))
        quotes = await asyncio.gather(*(self.get_quote(s) for s in unique))
        return {q.symbol: q.price for q in quotes}

    async def aclose(self) -> None:
        await self._feed.aclose()

    def _fallback_quote(self, symbol: str, reason: str) -> PriceQuote:
        price = self._fallback.lookup(symbol)
        logger.warning("Price feed unavailable for %s (%s), using fallback %s", symbol, reason, price)
        return PriceQuote(
            symbol=symbol, price=price, source=PriceSource.FALLBACK, fetched_at=utc_now()
        )


_oracle: PriceOracle | None = None


async def get_price_oracle() -> PriceOracle:
    """Get or create the process-wide oracle (shared httpx connection pool)."""
    global _oracle  # noqa: PLW0603
    if _oracle is None:
        cache: PriceCacheProtocol | None = None
        if settings.PRICE_CACHE_ENABLED:
            cache = RedisPriceCache(await get_redis())
        _oracle = PriceOracle(
            feed=PriceFeedClient(
                httpx.AsyncClient(timeout=settings.PRICE_FEED_TIMEOUT_SECONDS),
                settings.PRICE_FEED_URL,
            ),
            fallback=FallbackPriceTable(default=settings.PRICE_FALLBACK_DEFAULT),
            timeout_seconds=settings.PRICE_FEED_TIMEOUT_SECONDS,
            cache=cache,
            cache_ttl_seconds=settings.PRICE_CACHE_TTL_SECONDS,
        )
    return _oracle


async def close_price_oracle() -> None:
    global _oracle  # noqa: PLW0603
    if _oracle is not None:
        await _oracle.aclose()
        _oracle = None
