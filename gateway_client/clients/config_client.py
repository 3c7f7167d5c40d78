"""Gateway configuration client."""

from __future__ import annotations

from typing import Any, TypedDict

from ..protocol import omit_none
from .base import GatewayDomainClient


class ConfigSnapshot(TypedDict, total=False):
    hash: str
    raw: str
    config: Any
    valid: bool
    issues: list[Any]


class ConfigSchemaResponse(TypedDict):
    schema: Any
    uiHints: dict[str, Any]
    version: str
    generatedAt: str


class GatewayConfigClient(GatewayDomainClient):
    """Reads and writes the gateway configuration document.

    Writes carry ``baseHash`` so the gateway can reject a write made against a
    stale snapshot.
    """

    async def get(self) -> ConfigSnapshot:
        snapshot: ConfigSnapshot = await self.request("config.get", {})
        return snapshot

    async def schema(self) -> ConfigSchemaResponse:
        schema: ConfigSchemaResponse = await self.request("config.schema", {})
        return schema

    async def set(self, raw: str, *, base_hash: str | None = None) -> Any:
        return await self.request(
            "config.set", omit_none({"raw": raw, "baseHash": base_hash})
        )

    async def patch(
        self,
        raw: str,
        *,
        base_hash: str | None = None,
        session_key: str | None = None,
        note: str | None = None,
        restart_delay_ms: int | None = None,
    ) -> Any:
        return await self.request(
            "config.patch",
            self._write_params(raw, base_hash, session_key, note, restart_delay_ms),
        )

    async def apply(
        self,
        raw: str,
        *,
        base_hash: str | None = None,
        session_key: str | None = None,
        note: str | None = None,
        restart_delay_ms: int | None = None,
    ) -> Any:
        return await self.request(
            "config.apply",
            self._write_params(raw, base_hash, session_key, note, restart_delay_ms),
        )

    async def current_hash(self) -> str | None:
        """Fetch the hash of the current snapshot for optimistic writes."""
        snapshot = await self.get()
        return snapshot.get("hash")

    @staticmethod
    def _write_params(
        raw: str,
        base_hash: str | None,
        session_key: str | None,
        note: str | None,
        restart_delay_ms: int | None,
    ) -> dict[str, Any]:
        return omit_none(
            {
                "raw": raw,
                "baseHash": base_hash,
                "sessionKey": session_key,
                "note": note,
                "restartDelayMs": restart_delay_ms,
            }
        )
