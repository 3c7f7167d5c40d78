"""Pytest configuration and fixtures for gateway_client tests."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Callable
from typing import Any

import pytest

from gateway_client.device_identity import DeviceIdentity
from gateway_client.transport.ws_client import GatewayWsMessage, GatewayWsMessageType


class FakeGatewayTransport:
    """Scripted stand-in for GatewayWsTransport.

    Frames sent by the engine are recorded (decoded) in ``sent``. Tests push
    inbound traffic with ``push`` / ``push_close``.
    """

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.url: str | None = None
        self.cookie: str | None = None
        self.connected = False
        self.closed_with: tuple[int, str] | None = None
        self.on_send: Callable[[dict[str, Any]], None] | None = None
        self._inbox: asyncio.Queue[GatewayWsMessage] = asyncio.Queue()

    async def connect(self, url: str, *, cookie: str | None = None, **_: Any) -> None:
        self.url = url
        self.cookie = cookie
        self.connected = True

    async def send_text(self, text: str) -> None:
        frame = json.loads(text)
        self.sent.append(frame)
        if self.on_send is not None:
            self.on_send(frame)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        if self.closed_with is None:
            self.closed_with = (code, reason)
            self.push_close(code, reason)

    def push(self, frame: dict[str, Any] | str) -> None:
        text = frame if isinstance(frame, str) else json.dumps(frame)
        self._inbox.put_nowait(GatewayWsMessage(GatewayWsMessageType.TEXT, text))

    def push_close(self, code: int = 1000, reason: str = "") -> None:
        self._inbox.put_nowait(
            GatewayWsMessage(
                GatewayWsMessageType.CLOSED, close_code=code, close_reason=reason
            )
        )

    def __aiter__(self) -> AsyncIterator[GatewayWsMessage]:
        return self._iter_messages()

    async def _iter_messages(self) -> AsyncIterator[GatewayWsMessage]:
        while True:
            msg = await self._inbox.get()
            yield msg
            if msg.type is not GatewayWsMessageType.TEXT:
                return

    def requests(self, method: str) -> list[dict[str, Any]]:
        return [
            f for f in self.sent if f.get("type") == "req" and f["method"] == method
        ]

    def respond(self, request_id: str, payload: Any = None) -> None:
        self.push({"type": "res", "id": request_id, "ok": True, "payload": payload})

    def reject(self, request_id: str, code: str, message: str, **extra: Any) -> None:
        error = {"code": code, "message": message, **extra}
        self.push({"type": "res", "id": request_id, "ok": False, "error": error})

    def auto_accept_connect(self, hello: Any = None) -> None:
        """Answer every ``connect`` request with a hello-ok payload."""
        hello = hello if hello is not None else {"type": "hello-ok", "protocol": 3}

        def _on_send(frame: dict[str, Any]) -> None:
            if frame.get("method") == "connect":
                self.respond(frame["id"], hello)

        self.on_send = _on_send


async def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll ``predicate`` on the event loop until it holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.005)


@pytest.fixture
def fake_transport() -> FakeGatewayTransport:
    """Create a fake gateway transport."""
    return FakeGatewayTransport()


@pytest.fixture
def device_identity() -> DeviceIdentity:
    """Create an ephemeral device identity."""
    return DeviceIdentity.generate()
