"""Protocol engine for gateway connections.

This module owns one WebSocket connection to the gateway and handles:
- Opening the transport with an optional proxy session cookie
- The ``connect`` handshake, including the ``connect.challenge`` nonce
- Request/response correlation by request id
- Delivery of server-pushed events to one registered listener

The engine makes exactly one connection attempt. It never reconnects and
never retries; a closed engine stays closed and callers build a new one.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .device_identity import (
    DeviceIdentity,
    build_device_auth_payload,
    sign_device_payload,
)
from .errors import (
    GatewayClientError,
    GatewayClosedError,
    GatewayConnectionError,
    GatewayHandshakeError,
    GatewayRequestError,
)
from .protocol import (
    CONNECT_CHALLENGE_EVENT,
    CONNECT_METHOD,
    DEFAULT_ERROR_MESSAGE,
    EventFrame,
    ResponseFrame,
    build_request,
    decode_frame,
    encode_frame,
    omit_none,
)
from .session_cookie import mint_session_cookie
from .transport.ws_client import GatewayWsMessageType, GatewayWsTransport

_LOGGER = logging.getLogger(__name__)

# Window for a server challenge push to arrive before the first connect.
CONNECT_CHALLENGE_DELAY = 0.75

PROTOCOL_VERSION = 3
DEFAULT_CLIENT_ID = "gateway-client"
DEFAULT_CLIENT_MODE = "backend"
DEFAULT_ROLE = "operator"
DEFAULT_SCOPES: tuple[str, ...] = ("operator.read",)

CLOSE_POLICY_VIOLATION = 1008
CLOSE_NO_STATUS = 1005

EventCallback = Callable[[EventFrame], None]
CloseCallback = Callable[[int, str], None]
HelloCallback = Callable[[Any], None]
ErrorCallback = Callable[[GatewayClientError], None]


class ConnectionState(Enum):
    """Handshake state machine phases."""

    IDLE = "idle"
    CONNECTING = "connecting"
    AWAITING_CHALLENGE = "awaiting-challenge"
    AWAITING_CONNECT_ACK = "awaiting-connect-ack"
    READY = "ready"
    CLOSED = "closed"


@dataclass(frozen=True, slots=True)
class ClientInfo:
    """Client descriptor sent in the ``connect`` params."""

    id: str = DEFAULT_CLIENT_ID
    version: str = "dev"
    platform: str = sys.platform
    mode: str = DEFAULT_CLIENT_MODE
    display_name: str | None = None
    instance_id: str | None = None

    def to_params(self) -> dict[str, Any]:
        return omit_none(
            {
                "id": self.id,
                "displayName": self.display_name,
                "version": self.version,
                "platform": self.platform,
                "mode": self.mode,
                "instanceId": self.instance_id,
            }
        )


class GatewayEngine:
    """Single-connection gateway protocol engine.

    Usage:
        engine = GatewayEngine("wss://gateway.example/ws", token="secret")
        engine.on_event(my_event_handler)
        hello = await engine.start()
        result = await engine.request("config.get", {})
        await engine.stop()
    """

    def __init__(
        self,
        url: str,
        *,
        token: str | None = None,
        password: str | None = None,
        cookie: str | None = None,
        proxy_jwt_secret: str | None = None,
        device_identity: DeviceIdentity | None = None,
        disable_device_identity: bool = False,
        client: ClientInfo | None = None,
        role: str = DEFAULT_ROLE,
        scopes: Sequence[str] | None = None,
        caps: Sequence[str] | None = None,
        min_protocol: int = PROTOCOL_VERSION,
        max_protocol: int = PROTOCOL_VERSION,
        connect_delay: float = CONNECT_CHALLENGE_DELAY,
        open_timeout: float = 15.0,
    ) -> None:
        """Initialize engine.

        Args:
            url: Gateway WebSocket URL
            token: Bearer token for the ``auth`` block
            password: Password for the ``auth`` block
            cookie: Explicit ``Cookie`` header; wins over a minted one
            proxy_jwt_secret: Secret for minting the proxy session cookie
            device_identity: Keypair used to sign the handshake
            disable_device_identity: Omit the ``device`` block entirely
            client: Client descriptor
            role: Requested role
            scopes: Requested scopes
            caps: Declared client capabilities
            min_protocol: Lowest supported protocol version
            max_protocol: Highest supported protocol version
            connect_delay: Seconds to wait for a challenge before connecting
            open_timeout: Transport open timeout (seconds)
        """
        self.url = url
        self._token = token
        self._password = password
        self._cookie = cookie
        self._proxy_jwt_secret = proxy_jwt_secret
        self._device_identity = None if disable_device_identity else device_identity
        self._client = client or ClientInfo()
        self._role = role
        self._scopes: tuple[str, ...] = (
            tuple(scopes) if scopes is not None else DEFAULT_SCOPES
        )
        self._caps: tuple[str, ...] = tuple(caps) if caps is not None else ()
        self._min_protocol = min_protocol
        self._max_protocol = max_protocol
        self._connect_delay = connect_delay
        self._open_timeout = open_timeout

        # Connection state
        self._state = ConnectionState.IDLE
        self._ws: GatewayWsTransport | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._listen_task: asyncio.Task[None] | None = None
        self._close_message = "gateway client stopped"
        self._close_notified = False

        # Handshake state
        self._hello_future: asyncio.Future[Any] | None = None
        self._connect_timer: asyncio.TimerHandle | None = None
        self._connect_task: asyncio.Task[None] | None = None
        self._connect_sent = False
        self._connect_nonce: str | None = None

        # In-flight requests by id
        self._pending: dict[str, asyncio.Future[Any]] = {}

        # Callbacks
        self._event_callback: EventCallback | None = None
        self._close_callback: CloseCallback | None = None
        self._hello_ok_callback: HelloCallback | None = None
        self._connect_error_callback: ErrorCallback | None = None

    # -------------------------------------------------------------------------
    # Public API: Connection Management
    # -------------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        """Get current handshake state."""
        return self._state

    @property
    def is_ready(self) -> bool:
        """Check if the handshake completed and requests may be sent."""
        return self._state is ConnectionState.READY

    @property
    def pending_count(self) -> int:
        """Number of requests awaiting a response."""
        return len(self._pending)

    async def start(self) -> Any:
        """Open the transport and complete the ``connect`` handshake.

        Returns:
            The hello-ok payload from the gateway.

        Raises:
            GatewayTimeout: Transport open timed out
            GatewayConnectionError: Transport could not be opened
            GatewayHandshakeError: Upgrade or ``connect`` was rejected
            GatewayClosedError: Connection closed before the handshake finished
        """
        if self._state is ConnectionState.CLOSED:
            raise GatewayClosedError(self._close_message)
        if self._state is not ConnectionState.IDLE:
            raise GatewayClientError("gateway client already started")

        self._loop = asyncio.get_running_loop()
        self._set_state(ConnectionState.CONNECTING)

        cookie, cookie_source = self._resolve_cookie()
        _LOGGER.info(
            "[%s] Connecting (cookie=%s, device_identity=%s)",
            self.url,
            cookie_source,
            "yes" if self._device_identity is not None else "no",
        )

        ws = GatewayWsTransport()
        try:
            await ws.connect(self.url, cookie=cookie, timeout=self._open_timeout)
        except GatewayClientError as err:
            _LOGGER.warning("[%s] Transport open failed: %s", self.url, err)
            self._teardown(err)
            self._notify_connect_error(err)
            raise

        if self._state is ConnectionState.CLOSED:
            # stop() ran while the socket was opening
            await ws.close()
            raise GatewayClosedError(self._close_message)

        self._ws = ws
        hello_future: asyncio.Future[Any] = self._loop.create_future()
        self._hello_future = hello_future
        self._listen_task = asyncio.create_task(self._listen(ws))
        self._queue_connect()

        return await hello_future

    async def stop(self) -> None:
        """Close the connection and fail every pending request.

        Terminal and idempotent. Requests issued afterwards fail immediately.
        """
        if self._teardown(GatewayClosedError("gateway client stopped")):
            _LOGGER.info("[%s] Stopping gateway client", self.url)

        current = asyncio.current_task()
        for task in (self._connect_task, self._listen_task):
            if task is None or task is current or task.done():
                continue
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._connect_task = None
        self._listen_task = None

        ws, self._ws = self._ws, None
        if ws is not None:
            try:
                await asyncio.wait_for(ws.close(), timeout=2.0)
            except TimeoutError:
                _LOGGER.warning("[%s] WebSocket close timed out", self.url)

    # -------------------------------------------------------------------------
    # Public API: Requests
    # -------------------------------------------------------------------------

    async def request(self, method: str, params: Any = None) -> Any:
        """Send a request and wait for its response payload.

        Raises:
            GatewayRequestError: Gateway answered with ``ok: false``
            GatewayClosedError: Connection closed before the response arrived
            GatewayConnectionError: Handshake has not completed
        """
        if self._state is ConnectionState.CLOSED:
            raise GatewayClosedError(self._close_message)
        if self._state is not ConnectionState.READY:
            raise GatewayConnectionError("gateway not connected")
        return await self._call(method, params)

    # -------------------------------------------------------------------------
    # Public API: Callbacks
    # -------------------------------------------------------------------------

    def on_event(self, callback: EventCallback | None) -> None:
        """Register the listener for server-pushed events.

        Only one listener is kept; events arriving with none registered are
        dropped. ``connect.challenge`` is never delivered.
        """
        self._event_callback = callback

    def on_close(self, callback: CloseCallback | None) -> None:
        """Register callback for transport closure (code, reason)."""
        self._close_callback = callback

    def on_hello_ok(self, callback: HelloCallback | None) -> None:
        """Register callback for a successful handshake."""
        self._hello_ok_callback = callback

    def on_connect_error(self, callback: ErrorCallback | None) -> None:
        """Register callback for transport-open or handshake failures."""
        self._connect_error_callback = callback

    # -------------------------------------------------------------------------
    # Internal: State Machine
    # -------------------------------------------------------------------------

    def _set_state(self, state: ConnectionState) -> None:
        if self._state is not state:
            _LOGGER.debug(
                "[%s] State: %s → %s", self.url, self._state.value, state.value
            )
            self._state = state

    def _resolve_cookie(self) -> tuple[str | None, str]:
        """Pick the explicit cookie, else a minted one."""
        if self._cookie:
            return self._cookie, "manual"
        minted = mint_session_cookie(self.url, self._proxy_jwt_secret)
        if minted:
            return minted, "auto"
        return None, "none"

    def _teardown(self, error: GatewayClientError) -> bool:
        """Move to CLOSED and fail every waiter with ``error``.

        Returns False when the engine was already closed.
        """
        if self._state is ConnectionState.CLOSED:
            return False
        self._set_state(ConnectionState.CLOSED)
        self._close_message = str(error)

        if self._connect_timer is not None:
            self._connect_timer.cancel()
            self._connect_timer = None

        pending = list(self._pending.values())
        self._pending.clear()
        for future in pending:
            if not future.done():
                future.set_exception(error)

        if self._hello_future is not None and not self._hello_future.done():
            self._hello_future.set_exception(error)
        return True

    def _queue_connect(self) -> None:
        """Arm the challenge window before the first ``connect``."""
        assert self._loop is not None
        self._connect_nonce = None
        self._connect_sent = False
        self._set_state(ConnectionState.AWAITING_CHALLENGE)
        self._connect_timer = self._loop.call_later(
            self._connect_delay, self._send_connect
        )

    def _send_connect(self) -> None:
        """Send ``connect`` once per connection attempt."""
        if self._connect_sent or self._state is not ConnectionState.AWAITING_CHALLENGE:
            return
        self._connect_sent = True
        if self._connect_timer is not None:
            self._connect_timer.cancel()
            self._connect_timer = None

        params = self._build_connect_params(self._connect_nonce)
        self._set_state(ConnectionState.AWAITING_CONNECT_ACK)
        self._connect_task = asyncio.create_task(self._perform_connect(params))

    def _build_connect_params(self, nonce: str | None) -> dict[str, Any]:
        signed_at_ms = int(time.time() * 1000)

        device = None
        identity = self._device_identity
        if identity is not None:
            payload = build_device_auth_payload(
                device_id=identity.device_id,
                client_id=self._client.id,
                client_mode=self._client.mode,
                role=self._role,
                scopes=self._scopes,
                signed_at_ms=signed_at_ms,
                token=self._token,
                nonce=nonce,
            )
            device = omit_none(
                {
                    "id": identity.device_id,
                    "publicKey": identity.public_key_b64url,
                    "signature": sign_device_payload(identity.private_key, payload),
                    "signedAt": signed_at_ms,
                    "nonce": nonce,
                }
            )

        auth = None
        if self._token or self._password:
            auth = omit_none({"token": self._token, "password": self._password})

        return omit_none(
            {
                "minProtocol": self._min_protocol,
                "maxProtocol": self._max_protocol,
                "client": self._client.to_params(),
                "caps": list(self._caps),
                "role": self._role,
                "scopes": list(self._scopes),
                "device": device,
                "auth": auth,
            }
        )

    async def _perform_connect(self, params: dict[str, Any]) -> None:
        _LOGGER.debug(
            "[%s] Sending connect (nonce=%s)",
            self.url,
            "yes" if self._connect_nonce else "no",
        )
        try:
            hello = await self._call(CONNECT_METHOD, params)
        except GatewayRequestError as err:
            _LOGGER.warning(
                "[%s] Connect rejected: %s (%s)", self.url, err.message, err.code
            )
            failure = GatewayHandshakeError(err.message, code=err.code)
            if self._teardown(failure):
                self._notify_connect_error(failure)
            await self._close_transport(CLOSE_POLICY_VIOLATION, "connect failed")
            return
        except GatewayClientError as err:
            _LOGGER.warning("[%s] Connect failed: %s", self.url, err)
            if self._teardown(err):
                self._notify_connect_error(err)
            await self._close_transport(CLOSE_POLICY_VIOLATION, "connect failed")
            return

        if self._state is not ConnectionState.AWAITING_CONNECT_ACK:
            return
        self._set_state(ConnectionState.READY)
        _LOGGER.info("[%s] Gateway handshake complete", self.url)

        if self._hello_future is not None and not self._hello_future.done():
            self._hello_future.set_result(hello)
        if self._hello_ok_callback:
            try:
                self._hello_ok_callback(hello)
            except Exception as err:
                _LOGGER.exception("[%s] Hello callback error: %s", self.url, err)

    async def _close_transport(self, code: int, reason: str) -> None:
        ws = self._ws
        if ws is None:
            return
        try:
            await ws.close(code, reason)
        except GatewayClientError as err:
            _LOGGER.debug("[%s] Close after failed connect: %s", self.url, err)

    def _notify_connect_error(self, err: GatewayClientError) -> None:
        if self._connect_error_callback:
            try:
                self._connect_error_callback(err)
            except Exception as cb_err:
                _LOGGER.exception(
                    "[%s] Connect error callback error: %s", self.url, cb_err
                )

    # -------------------------------------------------------------------------
    # Internal: Request Correlation
    # -------------------------------------------------------------------------

    async def _call(self, method: str, params: Any) -> Any:
        ws = self._ws
        if ws is None or self._loop is None:
            raise GatewayConnectionError("gateway not connected")

        frame = build_request(method, params)
        future: asyncio.Future[Any] = self._loop.create_future()
        self._pending[frame.id] = future
        try:
            await ws.send_text(encode_frame(frame))
            return await future
        finally:
            # A caller that gave up leaves no entry; late responses are dropped.
            self._pending.pop(frame.id, None)
            if not future.done():
                future.cancel()

    # -------------------------------------------------------------------------
    # Internal: Message Listener
    # -------------------------------------------------------------------------

    async def _listen(self, ws: GatewayWsTransport) -> None:
        """Dispatch inbound messages in arrival order until the socket closes."""
        try:
            async for msg in ws:
                if msg.type is GatewayWsMessageType.TEXT:
                    self._handle_text(msg.data or "")
                    continue
                if msg.type is GatewayWsMessageType.ERROR:
                    _LOGGER.error(
                        "[%s] WebSocket error: %s", self.url, msg.close_reason
                    )
                self._handle_close(
                    msg.close_code or CLOSE_NO_STATUS, msg.close_reason
                )
                return
        except asyncio.CancelledError:
            _LOGGER.debug("[%s] Listener cancelled", self.url)
            raise
        except GatewayClientError as err:
            _LOGGER.warning("[%s] Client error: %s", self.url, err)
            self._handle_close(CLOSE_NO_STATUS, str(err))
            return
        except Exception as err:
            _LOGGER.exception("[%s] Listener failed: %s", self.url, err)
            self._handle_close(CLOSE_NO_STATUS, str(err))
            return
        self._handle_close(CLOSE_NO_STATUS, "")

    def _handle_close(self, code: int, reason: str) -> None:
        error = GatewayClosedError(
            f"gateway closed ({code}): {reason}", code=code, reason=reason
        )
        if self._teardown(error):
            _LOGGER.info("[%s] Gateway closed (%d): %s", self.url, code, reason)
        self._ws = None
        if self._close_notified:
            return
        self._close_notified = True
        if self._close_callback:
            try:
                self._close_callback(code, reason)
            except Exception as err:
                _LOGGER.exception("[%s] Close callback error: %s", self.url, err)

    def _handle_text(self, raw: str) -> None:
        frame = decode_frame(raw)
        if frame is None:
            _LOGGER.debug("[%s] Dropping malformed frame", self.url)
            return

        if isinstance(frame, EventFrame):
            self._handle_event(frame)
        elif isinstance(frame, ResponseFrame):
            self._handle_response(frame)
        else:
            _LOGGER.debug("[%s] Ignoring request frame: %s", self.url, frame.method)

    def _handle_event(self, frame: EventFrame) -> None:
        if frame.event == CONNECT_CHALLENGE_EVENT:
            self._handle_challenge(frame.payload)
            return

        if self._state is not ConnectionState.READY:
            _LOGGER.debug(
                "[%s] Dropping event before handshake: %s", self.url, frame.event
            )
            return
        if self._event_callback is None:
            return
        try:
            self._event_callback(frame)
        except Exception as err:
            _LOGGER.exception("[%s] Event callback error: %s", self.url, err)

    def _handle_challenge(self, payload: Any) -> None:
        nonce = payload.get("nonce") if isinstance(payload, dict) else None
        if not isinstance(nonce, str) or not nonce:
            _LOGGER.debug("[%s] Challenge without nonce ignored", self.url)
            return
        if self._connect_sent or self._state is not ConnectionState.AWAITING_CHALLENGE:
            # connect goes out once per attempt
            _LOGGER.debug("[%s] Late challenge ignored", self.url)
            return
        self._connect_nonce = nonce
        self._send_connect()

    def _handle_response(self, frame: ResponseFrame) -> None:
        future = self._pending.pop(frame.id, None)
        if future is None or future.done():
            _LOGGER.debug("[%s] Response for unknown id %s", self.url, frame.id)
            return

        if frame.ok:
            future.set_result(frame.payload)
            return

        error = frame.error
        if error is None:
            future.set_exception(GatewayRequestError("UNKNOWN", DEFAULT_ERROR_MESSAGE))
            return
        future.set_exception(
            GatewayRequestError(
                error.code,
                error.message,
                details=error.details,
                retryable=error.retryable,
                retry_after_ms=error.retry_after_ms,
            )
        )
