"""Gateway chat client.

Mutating calls (``chat.send`` and ``agent``) always carry an idempotency key,
generated here when the caller does not supply one, so a caller retrying after
a dropped connection does not double-deliver a message.
"""

from __future__ import annotations

import uuid
from typing import Any, Final, TypedDict

from ..protocol import omit_none
from .base import GatewayDomainClient


class GatewayClientCaps:
    """Capabilities a chat client may declare in ``connect``."""

    TOOL_EVENTS: Final = "tool-events"


GATEWAY_CLIENT_CAPS = GatewayClientCaps


class ChatHistoryResponse(TypedDict, total=False):
    sessionKey: str
    sessionId: str
    messages: list[Any]
    thinkingLevel: Any
    verboseLevel: Any


class ChatSendResponse(TypedDict):
    runId: str
    status: str


class ChatAbortResponse(TypedDict):
    ok: bool
    aborted: bool
    runIds: list[str]


class ChatInjectResponse(TypedDict, total=False):
    ok: bool
    messageId: str


def new_idempotency_key() -> str:
    return str(uuid.uuid4())


class GatewayChatClient(GatewayDomainClient):
    """Chat session messaging over the gateway."""

    async def history(
        self, session_key: str, *, limit: int | None = None
    ) -> ChatHistoryResponse:
        history: ChatHistoryResponse = await self.request(
            "chat.history", omit_none({"sessionKey": session_key, "limit": limit})
        )
        return history

    async def send(
        self,
        session_key: str,
        message: str,
        *,
        thinking: str | None = None,
        deliver: bool | None = None,
        attachments: list[dict[str, Any]] | None = None,
        timeout_ms: int | None = None,
        idempotency_key: str | None = None,
    ) -> ChatSendResponse:
        response: ChatSendResponse = await self.request(
            "chat.send",
            omit_none(
                {
                    "sessionKey": session_key,
                    "message": message,
                    "thinking": thinking,
                    "deliver": deliver,
                    "attachments": attachments,
                    "timeoutMs": timeout_ms,
                    "idempotencyKey": idempotency_key or new_idempotency_key(),
                }
            ),
        )
        return response

    async def abort(
        self, session_key: str, *, run_id: str | None = None
    ) -> ChatAbortResponse:
        response: ChatAbortResponse = await self.request(
            "chat.abort", omit_none({"sessionKey": session_key, "runId": run_id})
        )
        return response

    async def inject(
        self, session_key: str, message: str, *, label: str | None = None
    ) -> ChatInjectResponse:
        response: ChatInjectResponse = await self.request(
            "chat.inject",
            omit_none({"sessionKey": session_key, "message": message, "label": label}),
        )
        return response

    async def agent(self, message: str, **params: Any) -> Any:
        """Run an agent turn.

        Extra keyword arguments are passed through as request params using the
        gateway's camelCase names (``sessionKey``, ``agentId``, ...).
        """
        request_params = {**params, "message": message}
        if not request_params.get("idempotencyKey"):
            request_params["idempotencyKey"] = new_idempotency_key()
        return await self.request("agent", omit_none(request_params))
