"""
Routes tool calls to provider operations and layers derived metrics on top.

The dispatcher keeps no state between calls. Providers (and the caches they
own) are built once by ``build_dispatcher`` and handed in.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import btc_analysis as analysis
from btc_data_config import DataConfig
from btc_data_errors import (
    MalformedArgumentError,
    PartialUpstreamError,
    UnknownToolError,
    UpstreamError,
)
from btc_explorer import ExplorerProvider
from btc_market import PriceProvider
from btc_network import NetworkProvider
from btc_upstream import HttpUpstream
from ttl_cache import CacheStore

logger = logging.getLogger(__name__)

TOOL_NAMES = (
    "get_block",
    "get_transaction",
    "get_address",
    "get_utxos",
    "get_price_data",
    "get_historical_price",
    "get_network_metrics",
    "analyze_fee_landscape",
    "analyze_mempool_state",
    "analyze_utxo_distribution",
    "trace_coin_lineage",
    "detect_transaction_patterns",
)


# ---------------------------------------------------------------------------
# Argument helpers
# ---------------------------------------------------------------------------


def _require_str(tool: str, arguments: dict[str, Any], name: str) -> str:
    value = arguments.get(name)
    if isinstance(value, bool) or value is None:
        raise MalformedArgumentError(tool, f"Missing '{name}' parameter.")
    if isinstance(value, (int, float)):
        value = str(value)
    if not isinstance(value, str) or not value.strip():
        raise MalformedArgumentError(tool, f"Missing '{name}' parameter.")
    return value.strip()


def _int_arg(
    tool: str,
    arguments: dict[str, Any],
    name: str,
    default: int | None = None,
    minimum: int = 0,
) -> int:
    value = arguments.get(name)
    if value is None:
        if default is None:
            raise MalformedArgumentError(tool, f"Missing '{name}' parameter.")
        return default
    if isinstance(value, int) and not isinstance(value, bool):
        parsed = value
    elif isinstance(value, float) and value.is_integer():
        parsed = int(value)
    elif isinstance(value, str):
        try:
            parsed = int(value.strip())
        except ValueError as exc:
            raise MalformedArgumentError(tool, f"Invalid '{name}'. Must be an integer.") from exc
    else:
        raise MalformedArgumentError(tool, f"Invalid '{name}'. Must be an integer.")
    if parsed < minimum:
        raise MalformedArgumentError(tool, f"Invalid '{name}'. Must be at least {minimum}.")
    return parsed


def _bool_arg(tool: str, arguments: dict[str, Any], name: str) -> bool:
    value = arguments.get(name)
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise MalformedArgumentError(tool, f"Invalid '{name}'. Must be a boolean.")


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------


class ToolDispatcher:
    def __init__(
        self,
        explorer: ExplorerProvider,
        prices: PriceProvider,
        network: NetworkProvider,
    ) -> None:
        self.explorer = explorer
        self.prices = prices
        self.network = network
        self._handlers = {
            "get_block": self._get_block,
            "get_transaction": self._get_transaction,
            "get_address": self._get_address,
            "get_utxos": self._get_utxos,
            "get_price_data": self._get_price_data,
            "get_historical_price": self._get_historical_price,
            "get_network_metrics": self._get_network_metrics,
            "analyze_fee_landscape": self._analyze_fee_landscape,
            "analyze_mempool_state": self._analyze_mempool_state,
            "analyze_utxo_distribution": self._analyze_utxo_distribution,
            "trace_coin_lineage": self._trace_coin_lineage,
            "detect_transaction_patterns": self._detect_transaction_patterns,
        }

    async def dispatch(self, name: str, arguments: Any) -> dict[str, Any]:
        """Run tool ``name``. Provider failures propagate unchanged."""
        handler = self._handlers.get(name)
        if handler is None:
            raise UnknownToolError(name)
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise MalformedArgumentError(name, "Invalid arguments. Expected an object.")
        logger.info("tool call %s", name)
        return await handler(arguments)

    # -- Blockchain data ----------------------------------------------------

    async def _get_block(self, arguments: dict[str, Any]) -> dict[str, Any]:
        block_id = _require_str("get_block", arguments, "block_hash_or_height")
        include_transactions = _bool_arg("get_block", arguments, "include_transactions")
        block = await self.explorer.get_block(block_id)
        result: dict[str, Any] = {
            "block_info": block,
            "analysis": analysis.analyze_block(block),
        }
        if include_transactions:
            result["note"] = analysis.BLOCK_TRANSACTIONS_NOTE
        return result

    async def _get_transaction(self, arguments: dict[str, Any]) -> dict[str, Any]:
        txid = _require_str("get_transaction", arguments, "txid")
        include_analysis = _bool_arg("get_transaction", arguments, "include_analysis")
        tx = await self.explorer.get_transaction(txid)
        result: dict[str, Any] = {"transaction": tx}
        if include_analysis:
            result["analysis"] = analysis.analyze_transaction(tx)
        return result

    async def _get_address(self, arguments: dict[str, Any]) -> dict[str, Any]:
        address = _require_str("get_address", arguments, "address")
        limit = _int_arg("get_address", arguments, "limit", default=25)
        offset = _int_arg("get_address", arguments, "offset", default=0)

        address_info, utxos, recent_txs = await asyncio.gather(
            self.explorer.get_address(address),
            self.explorer.get_address_utxos(address),
            self.explorer.get_address_transactions(address),
        )
        return {
            "address_info": address_info,
            "balance": analysis.address_balance(address_info),
            "utxo_count": len(utxos),
            "recent_transactions": recent_txs[offset:offset + limit],
            "analysis": analysis.analyze_address(address_info, len(utxos)),
        }

    async def _get_utxos(self, arguments: dict[str, Any]) -> dict[str, Any]:
        address = _require_str("get_utxos", arguments, "address")
        min_value = _int_arg("get_utxos", arguments, "min_value", default=0)
        utxos = await self.explorer.get_address_utxos(address)
        filtered = [u for u in utxos if int(u.get("value", 0)) >= min_value]
        return {
            "utxos": filtered,
            "summary": analysis.summarize_utxos(filtered),
        }

    # -- Market data --------------------------------------------------------

    async def _get_price_data(self, arguments: dict[str, Any]) -> dict[str, Any]:
        price_data = await self.prices.get_price()
        current = price_data["bitcoin"]
        return {
            "timeframe": arguments.get("timeframe", "current"),
            "current_price": current,
            "analysis": analysis.analyze_price(current),
        }

    async def _get_historical_price(self, arguments: dict[str, Any]) -> dict[str, Any]:
        days = _int_arg("get_historical_price", arguments, "days", default=30, minimum=1)
        series = await self.prices.get_historical_price(days)
        points = analysis.price_points(series)
        return {
            "data_points": len(points),
            "period_days": days,
            "price_data": points,
            "analysis": analysis.analyze_price_history(points),
        }

    # -- Network ------------------------------------------------------------

    async def _get_network_metrics(self, arguments: dict[str, Any]) -> dict[str, Any]:
        metrics = await self.network.get_network_metrics()
        return {
            "timeframe": arguments.get("timeframe", "current"),
            "network_metrics": metrics,
            "analysis": analysis.analyze_network(metrics),
        }

    async def _analyze_fee_landscape(self, arguments: dict[str, Any]) -> dict[str, Any]:
        fees = await self.network.get_fee_estimates()
        return {
            "prediction_horizon": arguments.get("prediction_horizon", "current"),
            "current_fees": fees,
            "recommendations": analysis.fee_recommendations(fees),
            "analysis": analysis.analyze_fees(fees),
        }

    async def _analyze_mempool_state(self, arguments: dict[str, Any]) -> dict[str, Any]:
        include_predictions = _bool_arg("analyze_mempool_state", arguments, "include_predictions")
        info = await self.network.get_mempool_info()
        predictions = None
        if include_predictions:
            predictions = analysis.predict_mempool(info)
        return {
            "mempool_state": info,
            "analysis": analysis.analyze_mempool(info),
            "predictions": predictions,
        }

    # -- Analysis -----------------------------------------------------------

    async def _utxos_or_empty(
        self, address: str
    ) -> tuple[list[dict[str, Any]], PartialUpstreamError | None]:
        try:
            return await self.explorer.get_address_utxos(address), None
        except UpstreamError as exc:
            partial = PartialUpstreamError("analyze_utxo_distribution", exc)
            logger.warning("%s (address %s counted as empty)", partial, address)
            return [], partial

    async def _analyze_utxo_distribution(self, arguments: dict[str, Any]) -> dict[str, Any]:
        address_list = arguments.get("address_list")
        if not isinstance(address_list, list):
            raise MalformedArgumentError(
                "analyze_utxo_distribution", "Missing 'address_list' parameter. Expected a list."
            )
        if not all(isinstance(a, str) and a.strip() for a in address_list):
            raise MalformedArgumentError(
                "analyze_utxo_distribution", "Invalid 'address_list'. Entries must be addresses."
            )

        results = await asyncio.gather(*(self._utxos_or_empty(a) for a in address_list))

        all_utxos: list[dict[str, Any]] = []
        per_address: dict[str, dict[str, int]] = {}
        failed: list[dict[str, str]] = []
        for address, (utxos, error) in zip(address_list, results):
            all_utxos.extend(utxos)
            per_address[address] = {
                "utxo_count": len(utxos),
                "total_value": sum(int(u.get("value", 0)) for u in utxos),
            }
            if error is not None:
                failed.append({
                    "address": address,
                    "error": error.cause,
                    "error_kind": error.kind.value,
                })

        result: dict[str, Any] = {
            "addresses_analyzed": len(address_list),
            "total_utxos": len(all_utxos),
        }
        result.update(analysis.analyze_utxo_distribution(all_utxos))
        result["per_address"] = per_address
        result["failed_addresses"] = failed
        return result

    async def _trace_coin_lineage(self, arguments: dict[str, Any]) -> dict[str, Any]:
        txid = _require_str("trace_coin_lineage", arguments, "txid")
        output_index = _int_arg("trace_coin_lineage", arguments, "output_index")
        depth = _int_arg("trace_coin_lineage", arguments, "depth", default=3)

        lineage: list[dict[str, Any]] = []
        trace_analysis: dict[str, Any] = {"note": analysis.LINEAGE_NOTE}
        # Spends of an output are not indexed upstream, so only hop 0 is ever
        # resolved whatever depth was asked for.
        if depth > 0:
            tx = await self.explorer.get_transaction(txid)
            entry = analysis.lineage_entry(tx, txid, output_index, level=0)
            if entry is None:
                trace_analysis["error"] = (
                    f"Transaction {txid} has no output at index {output_index}"
                )
            else:
                lineage.append(entry)

        trace_analysis["hops_resolved"] = len(lineage)
        return {
            "starting_point": {"txid": txid, "output_index": output_index},
            "trace_depth": depth,
            "lineage": lineage,
            "analysis": trace_analysis,
        }

    async def _detect_transaction_patterns(self, arguments: dict[str, Any]) -> dict[str, Any]:
        txid = _require_str("detect_transaction_patterns", arguments, "txid")
        tx = await self.explorer.get_transaction(txid)
        patterns = analysis.detect_patterns(tx)
        return {
            "transaction_id": txid,
            "detected_patterns": patterns,
            "analysis": analysis.analyze_patterns(tx, patterns),
        }


def build_dispatcher(cfg: DataConfig) -> ToolDispatcher:
    """Build the three providers, each with its own cache, for one server process."""
    explorer = ExplorerProvider(
        HttpUpstream(cfg.explorer_api_url, cfg.http_timeout),
        CacheStore(default_ttl=cfg.explorer_ttl),
        utxo_ttl=cfg.utxo_ttl,
    )
    prices = PriceProvider(
        HttpUpstream(cfg.price_api_url, cfg.http_timeout),
        CacheStore(default_ttl=cfg.price_ttl),
        historical_ttl=cfg.historical_price_ttl,
    )
    network = NetworkProvider(
        HttpUpstream(cfg.mempool_api_url, cfg.http_timeout),
        CacheStore(default_ttl=cfg.network_ttl),
    )
    return ToolDispatcher(explorer, prices, network)
