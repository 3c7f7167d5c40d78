"""WebSocket connection helper for the gateway transport."""

from __future__ import annotations

import asyncio

import websockets
from websockets.asyncio.client import ClientConnection
from websockets.exceptions import (
    InvalidHandshake,
    InvalidURI,
    WebSocketException,
)

from ..errors import (
    GatewayConnectionError,
    GatewayHandshakeError,
    GatewayTimeout,
)

MAX_MESSAGE_SIZE = 25 * 1024 * 1024


async def connect_websocket(
    url: str,
    *,
    cookie: str | None = None,
    ping_interval: float | None = 20,
    timeout: float = 15.0,
) -> ClientConnection:
    """Open a WebSocket to the gateway.

    The websockets library does not follow HTTP redirects; ``url`` must be the
    final ``ws://`` or ``wss://`` address.

    Args:
        url: Gateway WebSocket URL
        cookie: Optional ``Cookie`` header sent with the opening handshake
        ping_interval: Interval for keepalive ping frames
        timeout: Connection timeout
    """
    headers = {"Cookie": cookie} if cookie else None
    try:
        return await asyncio.wait_for(
            websockets.connect(
                url,
                additional_headers=headers,
                ping_interval=ping_interval,
                close_timeout=5,
                max_size=MAX_MESSAGE_SIZE,
            ),
            timeout=timeout,
        )
    except TimeoutError as err:
        raise GatewayTimeout("WebSocket connection timed out") from err
    except (InvalidHandshake, InvalidURI) as err:
        raise GatewayHandshakeError("WebSocket handshake failed") from err
    except (OSError, WebSocketException) as err:
        raise GatewayConnectionError("WebSocket connection failed") from err
