"""
Bitcoin block explorer operations against the Blockstream Esplora API.

Implements:
- Get block by hash or height
- Get transaction by txid
- Get address stats, UTXO set and transaction history
"""

from __future__ import annotations

import asyncio
import logging
from urllib.parse import quote
from typing import Any

from btc_upstream import check_body
from ttl_cache import CacheStore

logger = logging.getLogger(__name__)

EXPLORER_TTL = 300
UTXO_TTL = 60


class ExplorerProvider:
    """Blocks, transactions, addresses and UTXOs, cached per key."""

    def __init__(
        self,
        upstream: Any,
        cache: CacheStore | None = None,
        utxo_ttl: float = UTXO_TTL,
    ) -> None:
        self.upstream = upstream
        self.cache = cache if cache is not None else CacheStore(default_ttl=EXPLORER_TTL)
        self.utxo_ttl = utxo_ttl

    async def _cached_get(
        self,
        operation: str,
        cache_key: str,
        path: str,
        expected: type,
        required_key: str | None = None,
        ttl: float | None = None,
    ) -> Any:
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.debug("cache hit %s", cache_key)
            return cached

        logger.debug("cache miss %s", cache_key)
        data = await asyncio.to_thread(self.upstream.get_json, operation, path)
        check_body(operation, data, expected, required_key)
        self.cache.set(cache_key, data, ttl)
        return data

    # -----------------------------------------------------------------------
    # Blocks and transactions
    # -----------------------------------------------------------------------

    async def get_block(self, hash_or_height: str) -> dict[str, Any]:
        block_id = str(hash_or_height).strip()
        return await self._cached_get(
            "get_block", f"block:{block_id}", f"/block/{quote(block_id, safe='')}", dict, "id"
        )

    async def get_transaction(self, txid: str) -> dict[str, Any]:
        return await self._cached_get(
            "get_transaction", f"tx:{txid}", f"/tx/{quote(txid, safe='')}", dict, "vout"
        )

    # -----------------------------------------------------------------------
    # Addresses
    # -----------------------------------------------------------------------

    async def get_address(self, address: str) -> dict[str, Any]:
        return await self._cached_get(
            "get_address",
            f"addr:{address}",
            f"/address/{quote(address, safe='')}",
            dict,
            "chain_stats",
        )

    async def get_address_utxos(self, address: str) -> list[dict[str, Any]]:
        """UTXO snapshot for an address; expires sooner than other explorer data."""
        return await self._cached_get(
            "get_address_utxos",
            f"utxos:{address}",
            f"/address/{quote(address, safe='')}/utxo",
            list,
            ttl=self.utxo_ttl,
        )

    async def get_address_transactions(
        self,
        address: str,
        last_seen_txid: str | None = None,
    ) -> list[dict[str, Any]]:
        """
        One page of an address's transaction history, newest first.

        Never cached: callers page through history with ``last_seen_txid`` and a
        cached first page would serve stale continuation state.
        """
        path = f"/address/{quote(address, safe='')}/txs"
        if last_seen_txid:
            path += f"/chain/{quote(last_seen_txid, safe='')}"
        txs = await asyncio.to_thread(
            self.upstream.get_json, "get_address_transactions", path
        )
        return check_body("get_address_transactions", txs, list)
