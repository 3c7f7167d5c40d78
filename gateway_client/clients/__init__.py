"""Domain clients translating calls into gateway requests."""

from .base import GatewayDomainClient
from .chat_client import (
    GATEWAY_CLIENT_CAPS,
    ChatAbortResponse,
    ChatHistoryResponse,
    ChatInjectResponse,
    ChatSendResponse,
    GatewayChatClient,
)
from .config_client import ConfigSchemaResponse, ConfigSnapshot, GatewayConfigClient

__all__ = [
    "GATEWAY_CLIENT_CAPS",
    "ChatAbortResponse",
    "ChatHistoryResponse",
    "ChatInjectResponse",
    "ChatSendResponse",
    "ConfigSchemaResponse",
    "ConfigSnapshot",
    "GatewayChatClient",
    "GatewayConfigClient",
    "GatewayDomainClient",
]
