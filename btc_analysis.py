"""
Derived metrics for tool results.

Each function takes raw provider data and returns a plain dict. Nothing here
touches the network or a cache. Ratios whose denominator is zero are None.
"""

from __future__ import annotations

from typing import Any

DUST_THRESHOLD_SATS = 546
MEMPOOL_CAPACITY_TXS = 300_000

CONGESTION_HIGH_TXS = 50_000
CONGESTION_MEDIUM_TXS = 20_000
FEE_HIGH_SAT_VB = 100
FEE_MEDIUM_SAT_VB = 50
CONSOLIDATION_OPPORTUNITY_UTXOS = 20

BATCH_PAYMENT_OUTPUTS = 10
CONSOLIDATION_INPUTS = 5
ROUND_AMOUNT_UNITS = (100_000_000, 10_000_000)  # 1 BTC, 0.1 BTC

LINEAGE_NOTE = (
    "Only the first hop is traced. Following the coin further needs an index of "
    "which transaction spends each output, and the explorer API does not provide one."
)
PATTERN_NOTE = "Basic pattern detection. Advanced analysis requires additional data sources."
BLOCK_TRANSACTIONS_NOTE = (
    "Transaction details require individual transaction queries due to API limitations"
)


def _ratio(numerator: float, denominator: float) -> float | None:
    if not denominator:
        return None
    return numerator / denominator


def _tier(value: float, high: float, medium: float, labels: tuple[str, str, str]) -> str:
    if value > high:
        return labels[0]
    if value > medium:
        return labels[1]
    return labels[2]


def congestion_level(mempool_count: int) -> str:
    return _tier(mempool_count, CONGESTION_HIGH_TXS, CONGESTION_MEDIUM_TXS, ("high", "medium", "low"))


def fee_level(fastest_fee: float) -> str:
    return _tier(fastest_fee, FEE_HIGH_SAT_VB, FEE_MEDIUM_SAT_VB, ("high", "medium", "low"))


def fee_environment(fastest_fee: float) -> str:
    return _tier(
        fastest_fee, FEE_HIGH_SAT_VB, FEE_MEDIUM_SAT_VB, ("expensive", "moderate", "cheap")
    )


def _stats_balance(stats: dict[str, Any]) -> int:
    return int(stats.get("funded_txo_sum", 0)) - int(stats.get("spent_txo_sum", 0))


def _values_summary(values: list[int]) -> dict[str, Any]:
    total = sum(values)
    return {
        "total_value": total,
        "average_value": total / max(len(values), 1),
        "largest_utxo": max(values, default=0),
        "smallest_utxo": min(values, default=0),
    }


# ---------------------------------------------------------------------------
# Explorer data
# ---------------------------------------------------------------------------


def analyze_block(block: dict[str, Any]) -> dict[str, Any]:
    size = block.get("size", 0)
    tx_count = block.get("tx_count", 0)
    return {
        "size_efficiency": _ratio(block.get("weight", 0), size),
        "transaction_density": _ratio(tx_count, size),
        "avg_transaction_size": _ratio(size, tx_count),
    }


def analyze_transaction(tx: dict[str, Any]) -> dict[str, Any]:
    vin = tx.get("vin", [])
    vout = tx.get("vout", [])
    status = tx.get("status", {})
    return {
        "input_count": len(vin),
        "output_count": len(vout),
        "total_input_value": sum((i.get("prevout") or {}).get("value", 0) for i in vin),
        "total_output_value": sum(o.get("value", 0) for o in vout),
        "fee_rate": _ratio(tx.get("fee", 0), tx.get("size", 0)),
        "is_confirmed": bool(status.get("confirmed", False)),
        "block_height": status.get("block_height"),
    }


def address_balance(address_info: dict[str, Any]) -> dict[str, int]:
    """Balances are derived: funded sum minus spent sum, per stats block."""
    confirmed = _stats_balance(address_info.get("chain_stats", {}))
    unconfirmed = _stats_balance(address_info.get("mempool_stats", {}))
    return {
        "confirmed": confirmed,
        "unconfirmed": unconfirmed,
        "total": confirmed + unconfirmed,
    }


def analyze_address(address_info: dict[str, Any], utxo_count: int) -> dict[str, Any]:
    confirmed = address_balance(address_info)["confirmed"]
    tx_count = address_info.get("chain_stats", {}).get("tx_count", 0)
    return {
        "transaction_count": tx_count,
        "avg_transaction_value": confirmed / max(tx_count, 1),
        "utxo_efficiency": confirmed / utxo_count if utxo_count > 0 else 0,
    }


def summarize_utxos(utxos: list[dict[str, Any]]) -> dict[str, Any]:
    summary = {"count": len(utxos)}
    summary.update(_values_summary([int(u.get("value", 0)) for u in utxos]))
    return summary


def analyze_utxo_distribution(utxos: list[dict[str, Any]]) -> dict[str, Any]:
    """Distribution and privacy figures over UTXOs pooled from many addresses."""
    values = [int(u.get("value", 0)) for u in utxos]
    summary = _values_summary(values)
    dust = sum(1 for v in values if v < DUST_THRESHOLD_SATS)
    dust_ratio = _ratio(dust, len(values))
    return {
        "distribution_analysis": {
            "total_value": summary["total_value"],
            "average_utxo_value": summary["average_value"],
            "largest_utxo": summary["largest_utxo"],
            "smallest_utxo": summary["smallest_utxo"],
            "dust_utxos": dust,
        },
        "privacy_analysis": {
            "utxo_consolidation_opportunity": (
                "high" if len(values) > CONSOLIDATION_OPPORTUNITY_UTXOS else "low"
            ),
            "dust_ratio": dust_ratio * 100 if dust_ratio is not None else None,
        },
    }


def lineage_entry(tx: dict[str, Any], txid: str, output_index: int, level: int) -> dict[str, Any] | None:
    """Describe output ``output_index`` of ``tx``, or None if it has no such output."""
    vout = tx.get("vout", [])
    if not 0 <= output_index < len(vout):
        return None
    output = vout[output_index]
    return {
        "level": level,
        "txid": txid,
        "output_index": output_index,
        "value": output.get("value"),
        "address": output.get("scriptpubkey_address"),
        "script_type": output.get("scriptpubkey_type"),
    }


def detect_patterns(tx: dict[str, Any]) -> list[str]:
    """
    Classify a transaction against independent shape heuristics.

    More than one label can apply. Round amounts are whole multiples of
    1 BTC or 0.1 BTC and often point at exchange activity.
    """
    n_in = len(tx.get("vin", []))
    values = [int(o.get("value", 0)) for o in tx.get("vout", [])]
    patterns = []
    if n_in == 1 and len(values) == 2:
        patterns.append("simple_payment")
    if len(values) > BATCH_PAYMENT_OUTPUTS:
        patterns.append("batch_payment")
    if n_in > CONSOLIDATION_INPUTS:
        patterns.append("consolidation")
    if any(v % unit == 0 for v in values for unit in ROUND_AMOUNT_UNITS):
        patterns.append("round_amounts")
    return patterns


def analyze_patterns(tx: dict[str, Any], patterns: list[str]) -> dict[str, Any]:
    vout = tx.get("vout", [])
    return {
        "input_count": len(tx.get("vin", [])),
        "output_count": len(vout),
        "total_value": sum(o.get("value", 0) for o in vout),
        "fee_rate": _ratio(tx.get("fee", 0), tx.get("size", 0)),
        "pattern_confidence": "medium" if patterns else "low",
        "note": PATTERN_NOTE,
    }


# ---------------------------------------------------------------------------
# Market data
# ---------------------------------------------------------------------------


def analyze_price(current: dict[str, Any]) -> dict[str, Any]:
    change = current.get("usd_24h_change") or 0
    return {
        "price_trend": "bullish" if change > 0 else "bearish",
        "volatility_indicator": abs(change),
        "market_cap_rank": 1,
        "volume_to_market_cap_ratio": _ratio(
            current.get("usd_24h_vol") or 0, current.get("usd_market_cap") or 0
        ),
    }


def price_points(series: list[list[float]]) -> list[dict[str, float]]:
    return [{"timestamp": point[0], "price": point[1]} for point in series]


def analyze_price_history(points: list[dict[str, float]]) -> dict[str, Any]:
    prices = [p["price"] for p in points]
    if not prices:
        return {
            "period_return": None,
            "highest_price": None,
            "lowest_price": None,
            "average_price": None,
        }
    first, last = prices[0], prices[-1]
    period_return = _ratio(last - first, first)
    return {
        "period_return": period_return * 100 if period_return is not None else None,
        "highest_price": max(prices),
        "lowest_price": min(prices),
        "average_price": sum(prices) / len(prices),
    }


# ---------------------------------------------------------------------------
# Network data
# ---------------------------------------------------------------------------


def analyze_network(metrics: dict[str, Any]) -> dict[str, Any]:
    fastest = metrics.get("fee_estimates", {}).get("fastestFee", 0)
    return {
        "network_congestion": congestion_level(metrics.get("mempool_size", 0)),
        "fee_environment": fee_environment(fastest),
        "security_assessment": "high",
    }


def fee_recommendations(fees: dict[str, Any]) -> dict[str, str]:
    return {
        "immediate": f"{fees.get('fastestFee')} sat/vB for next block",
        "standard": f"{fees.get('halfHourFee')} sat/vB for 30 min confirmation",
        "economy": f"{fees.get('hourFee')} sat/vB for 1 hour confirmation",
    }


def analyze_fees(fees: dict[str, Any]) -> dict[str, Any]:
    fastest = fees.get("fastestFee", 0)
    hour = fees.get("hourFee", 0)
    spread = fastest - hour
    premium = _ratio(spread, hour)
    return {
        "fee_level": fee_level(fastest),
        "spread": spread,
        "priority_premium": premium * 100 if premium is not None else None,
    }


def analyze_mempool(info: dict[str, Any]) -> dict[str, Any]:
    count = info.get("count", 0)
    usage = info.get("usage")
    return {
        "congestion_level": congestion_level(count),
        "average_fee_rate": _ratio(info.get("total_fee", 0), info.get("vsize", 0)),
        "memory_usage_mb": usage / 1024 / 1024 if usage is not None else None,
        "capacity_utilization": count / MEMPOOL_CAPACITY_TXS * 100,
    }


def predict_mempool(info: dict[str, Any]) -> dict[str, str]:
    count = info.get("count", 0)
    if count < 10_000:
        clear_time = "< 1 hour"
    elif count < CONGESTION_HIGH_TXS:
        clear_time = "1-6 hours"
    else:
        clear_time = "> 6 hours"
    return {"likely_clear_time": clear_time, "fee_trend": "stable"}
