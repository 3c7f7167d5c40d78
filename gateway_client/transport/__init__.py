"""Transport layer for the gateway client.

Components:
- ws: WebSocket connection opening
- ws_client: Message normalization and text sends
"""

from .ws import MAX_MESSAGE_SIZE, connect_websocket
from .ws_client import GatewayWsMessage, GatewayWsMessageType, GatewayWsTransport

__all__ = [
    "MAX_MESSAGE_SIZE",
    "GatewayWsMessage",
    "GatewayWsMessageType",
    "GatewayWsTransport",
    "connect_websocket",
]
