"""Client error types for gateway protocol interactions."""

from __future__ import annotations

from typing import Any


class GatewayClientError(Exception):
    """Base error for gateway client failures."""


class GatewayTimeout(GatewayClientError):
    """Timeout while opening the gateway connection."""


class GatewayConnectionError(GatewayClientError):
    """Network connection to the gateway failed or is not open."""


class GatewayHandshakeError(GatewayClientError):
    """WebSocket upgrade or gateway `connect` handshake was rejected."""

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


class GatewayClosedError(GatewayClientError):
    """Connection closed while the caller was waiting on it."""

    def __init__(
        self, message: str, *, code: int | None = None, reason: str = ""
    ) -> None:
        super().__init__(message)
        self.code = code
        self.reason = reason


class GatewayRequestError(GatewayClientError):
    """Gateway answered a request with ``ok: false``.

    ``retryable`` and ``retry_after_ms`` are hints passed through from the
    server untouched; the client never acts on them.
    """

    def __init__(
        self,
        code: str,
        message: str,
        *,
        details: Any = None,
        retryable: bool | None = None,
        retry_after_ms: int | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details
        self.retryable = retryable
        self.retry_after_ms = retry_after_ms


class GatewayConfigError(GatewayClientError):
    """Client options or raw input could not be resolved."""
