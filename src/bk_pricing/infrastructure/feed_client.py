"""HTTP client for the external stock price feed.

Contract: GET <feed_url>?symbol=<SYMBOL> -> JSON. The feed is not consistent
about where it puts the price, so three shapes are accepted:

    {"price": 150.25}
    {"currentPrice": 150.25}
    {"data": {"price": 150.25}}

Anything else (HTTP error, timeout, non-JSON body, unknown shape, non-positive
or non-numeric price) raises UpstreamPriceUnavailableError.
"""

from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from src.bk_common.errors import UpstreamPriceUnavailableError


def _to_positive_decimal(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        price = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if not price.is_finite() or price <= 0:
        return None
    return price


def extract_price(payload: Any) -> Decimal | None:
    """Return the first valid price found in a feed payload, or None."""
    if not isinstance(payload, dict):
        return None
    for candidate in (payload.get("price"), payload.get("currentPrice")):
        price = _to_positive_decimal(candidate)
        if price is not None:
            return price
    nested = payload.get("data")
    if isinstance(nested, dict):
        return _to_positive_decimal(nested.get("price"))
    return None


class PriceFeedClient:
    def __init__(self, client: httpx.AsyncClient, feed_url: str) -> None:
        self._client = client
        self._feed_url = feed_url

    async def fetch_price(self, symbol: str) -> Decimal:
        try:
            response = await self._client.get(self._feed_url, params={"symbol": symbol})
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            raise UpstreamPriceUnavailableError(symbol, type(exc).__name__) from exc
        except ValueError as exc:  # json.JSONDecodeError
            raise UpstreamPriceUnavailableError(symbol, "invalid JSON body") from exc

        price = extract_price(payload)
        if price is None:
            raise UpstreamPriceUnavailableError(symbol, "unrecognized response shape")
        return price

    async def aclose(self) -> None:
        await self._client.aclose()
