"""
Bitcoin market data from the CoinGecko free-tier API.

Implements:
- Current price with 24h change, volume and market cap
- Historical (timestamp, price) series over a day window
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from btc_data_errors import UpstreamError
from btc_upstream import check_body
from ttl_cache import CacheStore

logger = logging.getLogger(__name__)

PRICE_TTL = 300
HISTORICAL_PRICE_TTL = 1800

PRICE_CACHE_KEY = "btc:price"
SIMPLE_PRICE_PARAMS = {
    "ids": "bitcoin",
    "vs_currencies": "usd",
    "include_24hr_change": "true",
    "include_24hr_vol": "true",
    "include_market_cap": "true",
}


class PriceProvider:
    """Spot and historical BTC/USD prices. Single asset, so the spot key is fixed."""

    def __init__(
        self,
        upstream: Any,
        cache: CacheStore | None = None,
        historical_ttl: float = HISTORICAL_PRICE_TTL,
    ) -> None:
        self.upstream = upstream
        self.cache = cache if cache is not None else CacheStore(default_ttl=PRICE_TTL)
        self.historical_ttl = historical_ttl

    async def get_price(self) -> dict[str, Any]:
        """
        Current price snapshot shaped as ``{"bitcoin": {"usd", "usd_24h_change",
        "usd_24h_vol", "usd_market_cap"}}``.
        """
        cached = self.cache.get(PRICE_CACHE_KEY)
        if cached is not None:
            logger.debug("cache hit %s", PRICE_CACHE_KEY)
            return cached

        data = await asyncio.to_thread(
            self.upstream.get_json, "get_price", "/simple/price", SIMPLE_PRICE_PARAMS
        )
        check_body("get_price", data, dict, "bitcoin")
        if not isinstance(data["bitcoin"], dict) or "usd" not in data["bitcoin"]:
            raise UpstreamError("get_price", "malformed body: missing bitcoin.usd")
        self.cache.set(PRICE_CACHE_KEY, data)
        return data

    async def get_historical_price(self, days: int = 30) -> list[list[float]]:
        """Return ``[[timestamp_ms, price], ...]`` for the last ``days`` days."""
        cache_key = f"btc:history:{days}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.debug("cache hit %s", cache_key)
            return cached

        data = await asyncio.to_thread(
            self.upstream.get_json,
            "get_historical_price",
            "/coins/bitcoin/market_chart",
            {"vs_currency": "usd", "days": days},
        )
        check_body("get_historical_price", data, dict, "prices")
        prices = check_body("get_historical_price", data["prices"], list)
        self.cache.set(cache_key, prices, self.historical_ttl)
        return prices
