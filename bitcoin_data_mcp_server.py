#!/usr/bin/env python3
"""
MCP server for Bitcoin blockchain, market and network data.

Free data sources: Blockstream Esplora (blocks, transactions, addresses),
CoinGecko free tier (prices) and mempool.space (difficulty, hashrate,
mempool, fees).

Exposes 12 read-only tools over stdio. Tool work is done by
btc_dispatcher.ToolDispatcher; this module only declares the tool schemas
and wraps results as JSON text content and errors as JSON tool results
flagged with isError.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, List

from dotenv import load_dotenv
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import INTERNAL_ERROR, CallToolResult, TextContent, Tool

# Load .env from current directory or parent directories
SERVER_DIR = Path(__file__).resolve().parent
load_dotenv(SERVER_DIR / ".env")
load_dotenv(SERVER_DIR.parent / ".env")

from btc_data_config import DataConfig, setup_logging  # noqa: E402
from btc_data_errors import BitcoinDataError  # noqa: E402
from btc_dispatcher import ToolDispatcher, build_dispatcher  # noqa: E402

SERVER_NAME = "bitcoin-data-mcp"

logger = logging.getLogger(__name__)


def _ok_response(data: dict[str, Any]) -> List[TextContent]:
    data["success"] = True
    return [TextContent(type="text", text=json.dumps(data, indent=2, default=str))]


def _error_response(
    message: str,
    error_kind: str = "internal",
    code: int = INTERNAL_ERROR,
    operation: str | None = None,
) -> CallToolResult:
    payload = {
        "success": False,
        "error": message,
        "error_kind": error_kind,
        "code": code,
        "operation": operation,
    }
    return CallToolResult(
        content=[TextContent(type="text", text=json.dumps(payload, indent=2))],
        isError=True,
    )


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


async def list_tools() -> List[Tool]:
    return [
        # -- Blockchain data --
        Tool(
            name="get_block",
            description="Get block information by hash or height",
            inputSchema={
                "type": "object",
                "properties": {
                    "block_hash_or_height": {
                        "type": "string",
                        "description": "Block hash or height",
                    },
                    "include_transactions": {
                        "type": "boolean",
                        "description": "Include transaction details",
                        "default": False,
                    },
                },
                "required": ["block_hash_or_height"],
            },
        ),
        Tool(
            name="get_transaction",
            description="Get transaction information by txid",
            inputSchema={
                "type": "object",
                "properties": {
                    "txid": {"type": "string", "description": "Transaction ID"},
                    "include_analysis": {
                        "type": "boolean",
                        "description": "Include basic analysis",
                        "default": False,
                    },
                },
                "required": ["txid"],
            },
        ),
        Tool(
            name="get_address",
            description="Get address information including balance and transaction history",
            inputSchema={
                "type": "object",
                "properties": {
                    "address": {"type": "string", "description": "Bitcoin address"},
                    "limit": {
                        "type": "number",
                        "description": "Limit number of transactions",
                        "default": 25,
                    },
                    "offset": {
                        "type": "number",
                        "description": "Offset for pagination",
                        "default": 0,
                    },
                },
                "required": ["address"],
            },
        ),
        Tool(
            name="get_utxos",
            description="Get unspent transaction outputs for an address",
            inputSchema={
                "type": "object",
                "properties": {
                    "address": {"type": "string", "description": "Bitcoin address"},
                    "min_value": {
                        "type": "number",
                        "description": "Minimum UTXO value in satoshis",
                        "default": 0,
                    },
                },
                "required": ["address"],
            },
        ),
        # -- Market data --
        Tool(
            name="get_price_data",
            description="Get current Bitcoin price and market data",
            inputSchema={
                "type": "object",
                "properties": {
                    "timeframe": {
                        "type": "string",
                        "description": "Timeframe for historical data",
                        "default": "current",
                    },
                },
            },
        ),
        Tool(
            name="get_historical_price",
            description="Get historical Bitcoin price data",
            inputSchema={
                "type": "object",
                "properties": {
                    "days": {
                        "type": "number",
                        "description": "Number of days of historical data",
                        "default": 30,
                    },
                },
            },
        ),
        # -- Network analysis --
        Tool(
            name="get_network_metrics",
            description="Get Bitcoin network health metrics",
            inputSchema={
                "type": "object",
                "properties": {
                    "timeframe": {
                        "type": "string",
                        "description": "Timeframe for metrics",
                        "default": "current",
                    },
                },
            },
        ),
        Tool(
            name="analyze_fee_landscape",
            description="Analyze current fee landscape and get recommendations",
            inputSchema={
                "type": "object",
                "properties": {
                    "prediction_horizon": {
                        "type": "string",
                        "description": "Fee prediction horizon",
                        "default": "current",
                    },
                },
            },
        ),
        Tool(
            name="analyze_mempool_state",
            description="Analyze current mempool state",
            inputSchema={
                "type": "object",
                "properties": {
                    "include_predictions": {
                        "type": "boolean",
                        "description": "Include basic predictions",
                        "default": False,
                    },
                },
            },
        ),
        # -- Analysis --
        Tool(
            name="analyze_utxo_distribution",
            description="Analyze UTXO distribution for multiple addresses",
            inputSchema={
                "type": "object",
                "properties": {
                    "address_list": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "List of Bitcoin addresses",
                    },
                },
                "required": ["address_list"],
            },
        ),
        Tool(
            name="trace_coin_lineage",
            description="Trace the lineage of coins from a transaction output",
            inputSchema={
                "type": "object",
                "properties": {
                    "txid": {"type": "string", "description": "Transaction ID"},
                    "output_index": {"type": "number", "description": "Output index"},
                    "depth": {"type": "number", "description": "Trace depth", "default": 3},
                },
                "required": ["txid", "output_index"],
            },
        ),
        Tool(
            name="detect_transaction_patterns",
            description="Detect patterns in a transaction (basic analysis)",
            inputSchema={
                "type": "object",
                "properties": {
                    "txid": {"type": "string", "description": "Transaction ID"},
                },
                "required": ["txid"],
            },
        ),
    ]


async def call_tool(
    dispatcher: ToolDispatcher, name: str, arguments: Any
) -> List[TextContent] | CallToolResult:
    try:
        result = await dispatcher.dispatch(name, arguments)
    except BitcoinDataError as exc:
        logger.warning("%s failed (%s): %s", name, exc.kind.value, exc)
        return _error_response(str(exc), exc.kind.value, exc.code, exc.operation)
    except Exception as exc:  # noqa: BLE001
        logger.exception("%s failed unexpectedly", name)
        return _error_response(f"Tool execution failed: {exc}", operation=name)
    return _ok_response(result)


def create_app(dispatcher: ToolDispatcher) -> Server:
    app = Server(SERVER_NAME)

    @app.list_tools()
    async def _list_tools() -> List[Tool]:
        return await list_tools()

    @app.call_tool()
    async def _call_tool(name: str, arguments: Any) -> List[TextContent] | CallToolResult:
        return await call_tool(dispatcher, name, arguments)

    return app


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


async def main() -> None:
    cfg = DataConfig.from_env()
    setup_logging(cfg.log_level)
    logger.info(
        "Bitcoin Data MCP Server running on stdio (network=%s explorer=%s prices=%s mempool=%s)",
        cfg.network,
        cfg.explorer_api_url,
        cfg.price_api_url,
        cfg.mempool_api_url,
    )
    app = create_app(build_dispatcher(cfg))
    async with stdio_server() as (read_stream, write_stream):
        await app.run(read_stream, write_stream, app.create_initialization_options())


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
