from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from typing import Literal

from btc_data_errors import DataConfigError

BTCNetwork = Literal["mainnet", "testnet"]

BLOCKSTREAM_MAINNET = "https://blockstream.info/api"
BLOCKSTREAM_TESTNET = "https://blockstream.info/testnet/api"
COINGECKO_API = "https://api.coingecko.com/api/v3"
MEMPOOL_MAINNET = "https://mempool.space/api"
MEMPOOL_TESTNET = "https://mempool.space/testnet/api"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class DataConfig:
    """
    Configuration for the Bitcoin data server.

    Values are sourced from environment variables or a .env file.

    Upstream sources:
    - BTC_NETWORK: \"mainnet\" or \"testnet\" (defaults to \"mainnet\"). Selects the
      default explorer and mempool base URLs.
    - BTC_EXPLORER_API_URL: block explorer REST API (Blockstream Esplora).
    - BTC_PRICE_API_URL: market data REST API (CoinGecko free tier).
    - BTC_MEMPOOL_API_URL: mempool/fee REST API (mempool.space).
    - BTC_DATA_HTTP_TIMEOUT: per-request timeout in seconds.

    Logging:
    - BTC_DATA_LOG_LEVEL: root log level (defaults to INFO). Logs go to stderr.

    Cache lifetimes are fixed per data kind; they are fields here so tests and
    embedders can shorten them.
    """

    network: BTCNetwork
    explorer_api_url: str
    price_api_url: str
    mempool_api_url: str
    http_timeout: float = 15.0
    log_level: str = "INFO"
    explorer_ttl: int = 300
    utxo_ttl: int = 60
    price_ttl: int = 300
    historical_price_ttl: int = 1800
    network_ttl: int = 60

    @classmethod
    def from_env(cls) -> DataConfig:
        raw_network_env = os.getenv("BTC_NETWORK")
        if raw_network_env:
            raw_network = raw_network_env.strip().lower()
            if raw_network not in {"mainnet", "testnet"}:
                raise DataConfigError(
                    f"Invalid BTC_NETWORK={raw_network_env!r}. Expected 'mainnet' or 'testnet'."
                )
            network: BTCNetwork = "mainnet" if raw_network == "mainnet" else "testnet"
        else:
            network = "mainnet"

        if network == "mainnet":
            explorer_default, mempool_default = BLOCKSTREAM_MAINNET, MEMPOOL_MAINNET
        else:
            explorer_default, mempool_default = BLOCKSTREAM_TESTNET, MEMPOOL_TESTNET

        timeout_raw = os.getenv("BTC_DATA_HTTP_TIMEOUT", "15")
        try:
            http_timeout = float(timeout_raw)
        except ValueError as exc:
            raise DataConfigError(
                f"Invalid BTC_DATA_HTTP_TIMEOUT={timeout_raw!r}. Must be a number of seconds."
            ) from exc
        if http_timeout <= 0:
            raise DataConfigError("BTC_DATA_HTTP_TIMEOUT must be greater than zero.")

        log_level = os.getenv("BTC_DATA_LOG_LEVEL", "INFO").strip().upper()
        if not isinstance(logging.getLevelName(log_level), int):
            raise DataConfigError(f"Invalid BTC_DATA_LOG_LEVEL={log_level!r}.")

        return cls(
            network=network,
            explorer_api_url=_base_url("BTC_EXPLORER_API_URL", explorer_default),
            price_api_url=_base_url("BTC_PRICE_API_URL", COINGECKO_API),
            mempool_api_url=_base_url("BTC_MEMPOOL_API_URL", mempool_default),
            http_timeout=http_timeout,
            log_level=log_level,
        )


def _base_url(env_name: str, default: str) -> str:
    value = (os.getenv(env_name) or "").strip() or default
    return value.rstrip("/")


def setup_logging(level: str = "INFO") -> None:
    """Send all log records to stderr; stdout carries the MCP stdio stream."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    # urllib3 logs every connection at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)
