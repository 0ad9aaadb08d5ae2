"""
Bitcoin network health from the mempool.space API.

Implements:
- Aggregate network metrics (difficulty adjustment, hashrate, mempool size,
  recommended fees) joined from four concurrent calls
- Recommended fee rates (uncached)
- Mempool backlog statistics (uncached)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from btc_upstream import check_body
from ttl_cache import CacheStore

logger = logging.getLogger(__name__)

NETWORK_TTL = 60
NETWORK_CACHE_KEY = "network:metrics"


class NetworkProvider:
    def __init__(self, upstream: Any, cache: CacheStore | None = None) -> None:
        self.upstream = upstream
        self.cache = cache if cache is not None else CacheStore(default_ttl=NETWORK_TTL)

    async def _get(self, operation: str, path: str) -> Any:
        return await asyncio.to_thread(self.upstream.get_json, operation, path)

    async def get_network_metrics(self) -> dict[str, Any]:
        """
        Fetch the four network sources concurrently and join them.

        All four must succeed; the first failure fails the whole aggregate and
        nothing is cached.
        """
        cached = self.cache.get(NETWORK_CACHE_KEY)
        if cached is not None:
            logger.debug("cache hit %s", NETWORK_CACHE_KEY)
            return cached

        operation = "get_network_metrics"
        difficulty, hashrate, mempool, fees = await asyncio.gather(
            self._get(operation, "/v1/difficulty-adjustment"),
            self._get(operation, "/v1/hashrate"),
            self._get(operation, "/mempool"),
            self._get(operation, "/v1/fees/recommended"),
        )
        check_body(operation, difficulty, dict, "difficultyChange")
        check_body(operation, hashrate, dict, "currentHashrate")
        check_body(operation, mempool, dict, "count")
        check_body(operation, fees, dict, "fastestFee")

        metrics = {
            "difficulty": difficulty["difficultyChange"],
            "current_difficulty": hashrate.get("currentDifficulty"),
            "hashrate": hashrate["currentHashrate"],
            "mempool_size": mempool["count"],
            "fee_estimates": fees,
        }
        self.cache.set(NETWORK_CACHE_KEY, metrics)
        return metrics

    async def get_fee_estimates(self) -> dict[str, Any]:
        """Recommended fee rates in sat/vB, always fresh."""
        fees = await self._get("get_fee_estimates", "/v1/fees/recommended")
        return check_body("get_fee_estimates", fees, dict, "fastestFee")

    async def get_mempool_info(self) -> dict[str, Any]:
        """Mempool ``count``, ``vsize``, ``total_fee`` and fee histogram, always fresh."""
        info = await self._get("get_mempool_info", "/mempool")
        return check_body("get_mempool_info", info, dict, "count")
