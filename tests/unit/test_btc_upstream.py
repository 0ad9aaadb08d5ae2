import sys
from pathlib import Path

import pytest
import requests

REPO_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(REPO_ROOT))

import btc_upstream  # noqa: E402
from btc_data_config import DataConfig  # noqa: E402
from btc_data_errors import DataConfigError, ErrorKind, UpstreamError  # noqa: E402
from btc_upstream import HttpUpstream, check_body  # noqa: E402


class DummyResponse:
    def __init__(self, status_code=200, body=None, bad_json=False):
        self.status_code = status_code
        self._body = body
        self._bad_json = bad_json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Client Error")

    def json(self):
        if self._bad_json:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._body


# ---------------------------------------------------------------------------
# HttpUpstream
# ---------------------------------------------------------------------------


def test_get_json_builds_url_and_returns_body(monkeypatch):
    seen = {}

    def fake_get(url, params=None, timeout=None):
        seen.update(url=url, params=params, timeout=timeout)
        return DummyResponse(body={"id": "00ab"})

    monkeypatch.setattr(btc_upstream.requests, "get", fake_get)
    upstream = HttpUpstream("https://blockstream.info/api/", timeout=7)

    body = upstream.get_json("get_block", "/block/00ab")

    assert body == {"id": "00ab"}
    assert seen["url"] == "https://blockstream.info/api/block/00ab"
    assert seen["timeout"] == 7


def test_non_2xx_raises_upstream_error(monkeypatch):
    monkeypatch.setattr(
        btc_upstream.requests, "get", lambda *a, **k: DummyResponse(status_code=404)
    )
    upstream = HttpUpstream("https://blockstream.info/api")

    with pytest.raises(UpstreamError) as excinfo:
        upstream.get_json("get_transaction", "/tx/missing")

    assert excinfo.value.kind is ErrorKind.UPSTREAM_FAILURE
    assert excinfo.value.operation == "get_transaction"
    assert "404" in excinfo.value.cause


def test_timeout_raises_upstream_error(monkeypatch):
    def fake_get(*_a, **_k):
        raise requests.Timeout("read timed out")

    monkeypatch.setattr(btc_upstream.requests, "get", fake_get)
    upstream = HttpUpstream("https://mempool.space/api")

    with pytest.raises(UpstreamError) as excinfo:
        upstream.get_json("get_mempool_info", "/mempool")
    assert "timed out" in str(excinfo.value)


def test_malformed_body_raises_upstream_error(monkeypatch):
    monkeypatch.setattr(
        btc_upstream.requests, "get", lambda *a, **k: DummyResponse(bad_json=True)
    )
    upstream = HttpUpstream("https://api.coingecko.com/api/v3")

    with pytest.raises(UpstreamError) as excinfo:
        upstream.get_json("get_price", "/simple/price")
    assert "malformed" in excinfo.value.cause


def test_check_body_rejects_wrong_shape():
    with pytest.raises(UpstreamError):
        check_body("get_address_utxos", {"error": "x"}, list)
    with pytest.raises(UpstreamError):
        check_body("get_block", {"height": 1}, dict, "id")
    assert check_body("get_block", {"id": "a"}, dict, "id") == {"id": "a"}


# ---------------------------------------------------------------------------
# DataConfig
# ---------------------------------------------------------------------------


def _clear_env(monkeypatch):
    for name in (
        "BTC_NETWORK",
        "BTC_EXPLORER_API_URL",
        "BTC_PRICE_API_URL",
        "BTC_MEMPOOL_API_URL",
        "BTC_DATA_HTTP_TIMEOUT",
        "BTC_DATA_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


def test_config_defaults_to_mainnet(monkeypatch):
    _clear_env(monkeypatch)
    cfg = DataConfig.from_env()

    assert cfg.network == "mainnet"
    assert cfg.explorer_api_url == "https://blockstream.info/api"
    assert cfg.price_api_url == "https://api.coingecko.com/api/v3"
    assert cfg.mempool_api_url == "https://mempool.space/api"
    assert cfg.http_timeout == 15.0
    assert (cfg.explorer_ttl, cfg.utxo_ttl) == (300, 60)
    assert (cfg.price_ttl, cfg.historical_price_ttl, cfg.network_ttl) == (300, 1800, 60)


def test_config_testnet_and_overrides(monkeypatch):
    _clear_env(monkeypatch)
    monkeypatch.setenv("BTC_NETWORK", "Testnet")
    monkeypatch.setenv("BTC_PRICE_API_URL", "http://localhost:9000/v3/")
    monkeypatch.setenv("BTC_DATA_HTTP_TIMEOUT", "2.5")
    cfg = DataConfig.from_env()

    assert cfg.network == "testnet"
    assert cfg.explorer_api_url == "https://blockstream.info/testnet/api"
    assert cfg.mempool_api_url == "https://mempool.space/testnet/api"
    assert cfg.price_api_url == "http://localhost:9000/v3"
    assert cfg.http_timeout == 2.5


def test_config_rejects_bad_values(monkeypatch):
    _clear_env(monkeypatch)
    monkeypatch.setenv("BTC_NETWORK", "regtest")
    with pytest.raises(DataConfigError):
        DataConfig.from_env()

    _clear_env(monkeypatch)
    monkeypatch.setenv("BTC_DATA_HTTP_TIMEOUT", "soon")
    with pytest.raises(DataConfigError):
        DataConfig.from_env()

    _clear_env(monkeypatch)
    monkeypatch.setenv("BTC_DATA_LOG_LEVEL", "chatty")
    with pytest.raises(DataConfigError):
        DataConfig.from_env()
