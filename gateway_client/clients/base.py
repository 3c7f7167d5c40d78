"""Shared connection handling for domain clients."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

from ..config import GatewayClientOptions
from ..device_identity import DeviceIdentity
from ..engine import ClientInfo, EventCallback, GatewayEngine
from ..errors import GatewayConnectionError

_LOGGER = logging.getLogger(__name__)


class GatewayDomainClient:
    """Lazily connected wrapper around one :class:`GatewayEngine`.

    The engine is created on the first request and reused while it stays
    ready. After the connection closes the next request builds a new engine;
    retrying a failed request is up to the caller.
    """

    def __init__(
        self,
        options: GatewayClientOptions,
        *,
        caps: Sequence[str] | None = None,
        on_event: EventCallback | None = None,
    ) -> None:
        self.options = options
        self._caps = tuple(caps) if caps is not None else ()
        self._on_event = on_event
        self._engine: GatewayEngine | None = None
        self._device_identity: DeviceIdentity | None = None
        self._start_lock = asyncio.Lock()

    async def __aenter__(self) -> GatewayDomainClient:
        await self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    @property
    def is_connected(self) -> bool:
        return self._engine is not None and self._engine.is_ready

    def _load_device_identity(self) -> DeviceIdentity | None:
        """Load the identity once so every reconnect presents the same device."""
        if self._device_identity is None:
            self._device_identity = self.options.load_device_identity()
        return self._device_identity

    def _build_engine(self) -> GatewayEngine:
        options = self.options
        engine = GatewayEngine(
            options.url,
            token=options.token,
            password=options.password,
            cookie=options.cookie,
            proxy_jwt_secret=options.proxy_jwt_secret,
            device_identity=self._load_device_identity(),
            disable_device_identity=options.disable_device_identity,
            client=ClientInfo(
                version=options.client_version,
                platform=options.platform,
            ),
            scopes=options.scopes,
            caps=self._caps,
        )
        engine.on_event(self._on_event)
        return engine

    async def start(self) -> None:
        """Connect and complete the handshake unless already connected."""
        async with self._start_lock:
            if self.is_connected:
                return
            if self._engine is not None:
                await self._engine.stop()
                self._engine = None

            engine = self._build_engine()
            self._engine = engine
            try:
                await engine.start()
            except BaseException:
                self._engine = None
                await engine.stop()
                raise
            _LOGGER.debug("[%s] Domain client connected", self.options.url)

    async def close(self) -> None:
        """Stop the engine; pending requests fail with a closure error."""
        engine, self._engine = self._engine, None
        if engine is not None:
            await engine.stop()

    async def request(self, method: str, params: Any = None) -> Any:
        """Send a request, connecting first when needed."""
        if not self.is_connected:
            await self.start()
        if self._engine is None:
            raise GatewayConnectionError("gateway not connected")
        return await self._engine.request(method, params)
