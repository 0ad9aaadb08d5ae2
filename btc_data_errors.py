"""
Error kinds for the Bitcoin data server.

Every failure a tool call can report belongs to one of a small, closed set
of kinds. Each exception keeps the operation that failed and the underlying
cause so the transport can report both.
"""

from __future__ import annotations

from enum import Enum

from mcp.types import INTERNAL_ERROR, METHOD_NOT_FOUND


class ErrorKind(str, Enum):
    UPSTREAM_FAILURE = "upstream_failure"
    PARTIAL_UPSTREAM_FAILURE = "partial_upstream_failure"
    UNKNOWN_TOOL = "unknown_tool"
    MALFORMED_ARGUMENT = "malformed_argument"


class DataConfigError(Exception):
    """Invalid configuration for the Bitcoin data server."""

    pass


class BitcoinDataError(Exception):
    """Base class for failures surfaced through a tool call."""

    kind: ErrorKind = ErrorKind.UPSTREAM_FAILURE

    def __init__(self, operation: str, cause: object, message: str | None = None) -> None:
        self.operation = operation
        self.cause = str(cause)
        super().__init__(message or f"{operation} failed: {self.cause}")

    @property
    def code(self) -> int:
        if self.kind is ErrorKind.UNKNOWN_TOOL:
            return METHOD_NOT_FOUND
        return INTERNAL_ERROR


class UpstreamError(BitcoinDataError):
    """Non-2xx response, timeout, connection error or malformed body."""

    kind = ErrorKind.UPSTREAM_FAILURE


class PartialUpstreamError(BitcoinDataError):
    """An upstream failure absorbed by a partial-failure tolerant tool."""

    kind = ErrorKind.PARTIAL_UPSTREAM_FAILURE


class UnknownToolError(BitcoinDataError):
    kind = ErrorKind.UNKNOWN_TOOL

    def __init__(self, name: str) -> None:
        super().__init__(name, "not one of the available tools", f"Unknown tool: {name}")


class MalformedArgumentError(BitcoinDataError):
    """Missing or mistyped tool argument."""

    kind = ErrorKind.MALFORMED_ARGUMENT
