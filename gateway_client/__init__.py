"""Client for the authenticated gateway RPC protocol."""

__version__ = "0.1.0"

from .clients import (
    GATEWAY_CLIENT_CAPS,
    GatewayChatClient,
    GatewayConfigClient,
    GatewayDomainClient,
)
from .config import GatewayClientOptions, resolve_options
from .device_identity import (
    DeviceIdentity,
    build_device_auth_payload,
    sign_device_payload,
    verify_device_signature,
)
from .engine import ClientInfo, ConnectionState, GatewayEngine
from .errors import (
    GatewayClientError,
    GatewayClosedError,
    GatewayConfigError,
    GatewayConnectionError,
    GatewayHandshakeError,
    GatewayRequestError,
    GatewayTimeout,
)
from .protocol import (
    ErrorShape,
    EventFrame,
    RequestFrame,
    ResponseFrame,
    decode_frame,
    encode_frame,
)
from .session_cookie import decode_session_token, mint_session_cookie

__all__ = [
    "GATEWAY_CLIENT_CAPS",
    "ClientInfo",
    "ConnectionState",
    "DeviceIdentity",
    "ErrorShape",
    "EventFrame",
    "GatewayChatClient",
    "GatewayClientError",
    "GatewayClientOptions",
    "GatewayClosedError",
    "GatewayConfigClient",
    "GatewayConfigError",
    "GatewayConnectionError",
    "GatewayDomainClient",
    "GatewayEngine",
    "GatewayHandshakeError",
    "GatewayRequestError",
    "GatewayTimeout",
    "RequestFrame",
    "ResponseFrame",
    "__version__",
    "build_device_auth_payload",
    "decode_frame",
    "decode_session_token",
    "encode_frame",
    "mint_session_cookie",
    "resolve_options",
    "sign_device_payload",
    "verify_device_signature",
]
