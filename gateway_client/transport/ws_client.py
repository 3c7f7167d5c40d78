"""WebSocket client wrapper for the gateway transport."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from websockets.asyncio.client import ClientConnection
from websockets.exceptions import ConnectionClosed, WebSocketException

from ..errors import GatewayConnectionError
from .ws import connect_websocket

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

ABNORMAL_CLOSURE = 1006


class GatewayWsMessageType(Enum):
    """Normalized WebSocket message types."""

    TEXT = "text"
    CLOSED = "closed"
    ERROR = "error"


@dataclass(frozen=True)
class GatewayWsMessage:
    """Normalized WebSocket message.

    ``data`` holds the text for TEXT messages. ``close_code`` and
    ``close_reason`` are set for CLOSED and ERROR messages.
    """

    type: GatewayWsMessageType
    data: str | None = None
    close_code: int | None = None
    close_reason: str = ""


class GatewayWsTransport:
    """Wrapper around the websockets library for gateway connections."""

    def __init__(self) -> None:
        self._ws: ClientConnection | None = None

    async def connect(
        self,
        url: str,
        *,
        cookie: str | None = None,
        ping_interval: float | None = 20,
        timeout: float = 15.0,
    ) -> None:
        """Open the gateway websocket."""
        self._ws = await connect_websocket(
            url,
            cookie=cookie,
            ping_interval=ping_interval,
            timeout=timeout,
        )

    async def close(self, code: int = 1000, reason: str = "") -> None:
        """Close the websocket connection."""
        if self._ws is not None:
            await self._ws.close(code=code, reason=reason)

    async def send_text(self, text: str) -> None:
        """Send one text message."""
        if self._ws is None:
            raise GatewayConnectionError("WebSocket is not connected")
        try:
            await self._ws.send(text)
        except (ConnectionClosed, WebSocketException) as err:
            raise GatewayConnectionError("WebSocket send failed") from err

    def __aiter__(self) -> AsyncIterator[GatewayWsMessage]:
        if self._ws is None:
            raise GatewayConnectionError("WebSocket is not connected")
        return self._iter_messages()

    async def _iter_messages(self) -> AsyncIterator[GatewayWsMessage]:
        if self._ws is None:
            raise GatewayConnectionError("WebSocket is not connected")

        ws = self._ws
        try:
            async for msg in ws:
                normalized = self._normalize_message(msg)
                if normalized is None:
                    continue
                yield normalized
        except ConnectionClosed as err:
            code, reason = self._close_details(err)
            yield GatewayWsMessage(
                type=GatewayWsMessageType.CLOSED,
                close_code=code,
                close_reason=reason,
            )
        except (OSError, WebSocketException) as err:
            yield GatewayWsMessage(
                type=GatewayWsMessageType.ERROR,
                close_code=ABNORMAL_CLOSURE,
                close_reason=str(err),
            )
        else:
            # Normal iteration completion means the peer closed gracefully.
            yield GatewayWsMessage(
                type=GatewayWsMessageType.CLOSED,
                close_code=ws.close_code,
                close_reason=ws.close_reason or "",
            )

    @staticmethod
    def _close_details(err: ConnectionClosed) -> tuple[int, str]:
        """Extract the peer's close code and reason, if it sent any."""
        if err.rcvd is not None:
            return err.rcvd.code, err.rcvd.reason
        return ABNORMAL_CLOSURE, ""

    @staticmethod
    def _normalize_message(msg: Any) -> GatewayWsMessage | None:
        """Normalize inbound frames into GatewayWsMessage text."""
        if isinstance(msg, str):
            return GatewayWsMessage(GatewayWsMessageType.TEXT, msg)
        if isinstance(msg, (bytes, bytearray, memoryview)):
            return GatewayWsMessage(
                GatewayWsMessageType.TEXT, bytes(msg).decode("utf-8", errors="replace")
            )
        return None
