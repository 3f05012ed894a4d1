"""Redis-backed pull-through cache for feed prices.

Key:   price:<SYMBOL>
Value: {"price": "150.25", "fetched_at": "<ISO8601>"}  (TTL-bound)

The cache is an optimisation only. Redis errors are logged and treated as a
miss so the oracle keeps answering.
"""

import json
import logging
from datetime import datetime
from decimal import Decimal

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from src.bk_common.enums import PriceSource
from src.bk_pricing.domain.models import PriceQuote

logger = logging.getLogger(__name__)


class RedisPriceCache:
    def __init__(self, client: aioredis.Redis, prefix: str = "price:") -> None:
        self._client = client
        self._prefix = prefix

    def _key(self, symbol: str) -> str:
        return f"{self._prefix}{symbol}"

    async def get(self, symbol: str) -> PriceQuote | None:
        try:
            raw = await self._client.get(self._key(symbol))
        except RedisError as exc:
            logger.debug("Price cache read failed for %s: %s", symbol, exc)
            return None
        if raw is None:
            return None
        try:
            data = json.loads(raw)
            return PriceQuote(
                symbol=symbol,
                price=Decimal(data["price"]),
                source=PriceSource.CACHE,
                fetched_at=datetime.fromisoformat(data["fetched_at"]),
            )
        except (ValueError, KeyError, ArithmeticError) as exc:
            logger.debug("Discarding malformed cache entry for %s: %s", symbol, exc)
            return None

    async def set(self, quote: PriceQuote, ttl_seconds: int) -> None:
        payload = json.dumps(
            {"price": str(quote.price), "fetched_at": quote.fetched_at.isoformat()}
        )
        try:
            await self._client.set(self._key(quote.symbol), payload, ex=ttl_seconds)
        except RedisError as exc:
            logger.debug("Price cache write failed for %s: %s", quote.symbol, exc)
