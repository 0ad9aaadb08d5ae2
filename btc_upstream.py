"""
GET-JSON access to one upstream REST API.

Providers hold an ``HttpUpstream`` per base URL. Anything with the same
``get_json(operation, path, params)`` method can stand in for it.
"""

from __future__ import annotations

import logging
from typing import Any

import requests

from btc_data_errors import UpstreamError

logger = logging.getLogger(__name__)


class HttpUpstream:
    """Blocking GET helper bound to a base URL; providers run it in a worker thread."""

    def __init__(self, base_url: str, timeout: float = 15.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def get_json(self, operation: str, path: str, params: dict | None = None) -> Any:
        """GET ``path`` and return the decoded JSON body.

        Timeouts, connection errors, non-2xx responses and undecodable bodies
        all raise ``UpstreamError`` tagged with ``operation``.
        """
        url = f"{self.base_url}{path}"
        logger.debug("GET %s params=%s", url, params)
        try:
            resp = requests.get(url, params=params, timeout=self.timeout)
            resp.raise_for_status()
            return resp.json()
        except requests.RequestException as exc:
            raise UpstreamError(operation, exc) from exc
        except ValueError as exc:
            raise UpstreamError(operation, f"malformed JSON body from {url}: {exc}") from exc


def check_body(operation: str, data: Any, expected: type, required_key: str | None = None) -> Any:
    """Reject bodies that do not have the shape the tools read from."""
    if not isinstance(data, expected):
        raise UpstreamError(
            operation, f"malformed body: expected {expected.__name__}, got {type(data).__name__}"
        )
    if required_key is not None and required_key not in data:
        raise UpstreamError(operation, f"malformed body: missing '{required_key}'")
    return data
