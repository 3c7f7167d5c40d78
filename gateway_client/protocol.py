"""Frame codec for the gateway wire protocol.

Every transport message carries exactly one JSON object with a ``type``
discriminator:

- ``"req"``: client request ``{id, method, params?}``
- ``"res"``: response ``{id, ok, payload?, error?}``
- ``"event"``: server push ``{event, payload?, seq?, stateVersion?}``
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from typing import Any, TypeGuard

FRAME_REQUEST = "req"
FRAME_RESPONSE = "res"
FRAME_EVENT = "event"

CONNECT_METHOD = "connect"
CONNECT_CHALLENGE_EVENT = "connect.challenge"

DEFAULT_ERROR_MESSAGE = "request failed"


@dataclass(frozen=True, slots=True)
class ErrorShape:
    """Structured error carried by a failed response."""

    code: str
    message: str
    details: Any = None
    retryable: bool | None = None
    retry_after_ms: int | None = None


@dataclass(frozen=True, slots=True)
class RequestFrame:
    """Client-to-gateway request."""

    id: str
    method: str
    params: Any = None


@dataclass(frozen=True, slots=True)
class ResponseFrame:
    """Gateway answer correlated to a request by ``id``."""

    id: str
    ok: bool
    payload: Any = None
    error: ErrorShape | None = None


@dataclass(frozen=True, slots=True)
class EventFrame:
    """Unsolicited gateway push, not correlated to any request."""

    event: str
    payload: Any = None
    seq: int | None = None
    state_version: dict[str, Any] | None = None


Frame = RequestFrame | ResponseFrame | EventFrame


def _is_json_object(value: Any) -> TypeGuard[dict[str, Any]]:
    """Return True when value decoded to a JSON object."""
    return isinstance(value, dict)


def omit_none(values: dict[str, Any]) -> dict[str, Any]:
    """Drop ``None`` entries so absent optional fields stay off the wire."""
    return {key: value for key, value in values.items() if value is not None}


def build_request(
    method: str, params: Any = None, *, request_id: str | None = None
) -> RequestFrame:
    """Build a request frame with a fresh UUID4 identifier."""
    return RequestFrame(
        id=request_id or str(uuid.uuid4()), method=method, params=params
    )


def frame_to_dict(frame: Frame) -> dict[str, Any]:
    """Convert a frame into its wire dictionary."""
    if isinstance(frame, RequestFrame):
        return omit_none(
            {
                "type": FRAME_REQUEST,
                "id": frame.id,
                "method": frame.method,
                "params": frame.params,
            }
        )
    if isinstance(frame, ResponseFrame):
        error = None
        if frame.error is not None:
            error = omit_none(
                {
                    "code": frame.error.code,
                    "message": frame.error.message,
                    "details": frame.error.details,
                    "retryable": frame.error.retryable,
                    "retryAfterMs": frame.error.retry_after_ms,
                }
            )
        return omit_none(
            {
                "type": FRAME_RESPONSE,
                "id": frame.id,
                "ok": frame.ok,
                "payload": frame.payload,
                "error": error,
            }
        )
    if isinstance(frame, EventFrame):
        return omit_none(
            {
                "type": FRAME_EVENT,
                "event": frame.event,
                "payload": frame.payload,
                "seq": frame.seq,
                "stateVersion": frame.state_version,
            }
        )
    raise TypeError(f"Unsupported frame type: {type(frame).__name__}")


def encode_frame(frame: Frame) -> str:
    """Serialize a frame to compact JSON text."""
    return json.dumps(frame_to_dict(frame), separators=(",", ":"))


def _parse_error(raw: Any) -> ErrorShape:
    if not _is_json_object(raw):
        return ErrorShape(code="UNKNOWN", message=DEFAULT_ERROR_MESSAGE)
    code = raw.get("code")
    message = raw.get("message")
    retryable = raw.get("retryable")
    retry_after_ms = raw.get("retryAfterMs")
    return ErrorShape(
        code=code if isinstance(code, str) else "UNKNOWN",
        message=(
            message if isinstance(message, str) and message else DEFAULT_ERROR_MESSAGE
        ),
        details=raw.get("details"),
        retryable=retryable if isinstance(retryable, bool) else None,
        retry_after_ms=(
            retry_after_ms
            if isinstance(retry_after_ms, int) and not isinstance(retry_after_ms, bool)
            else None
        ),
    )


def decode_frame(text: str) -> Frame | None:
    """Parse one transport message into a frame.

    Returns None for anything that is not a structurally valid frame. Callers
    treat None as "not protocol traffic" and drop it.
    """
    try:
        data = json.loads(text)
    except (TypeError, ValueError, RecursionError):
        return None
    if not _is_json_object(data):
        return None

    frame_type = data.get("type")

    if frame_type == FRAME_EVENT:
        event = data.get("event")
        if not isinstance(event, str):
            return None
        seq = data.get("seq")
        state_version = data.get("stateVersion")
        return EventFrame(
            event=event,
            payload=data.get("payload"),
            seq=seq if isinstance(seq, int) and not isinstance(seq, bool) else None,
            state_version=state_version if _is_json_object(state_version) else None,
        )

    if frame_type == FRAME_RESPONSE:
        frame_id = data.get("id")
        if not isinstance(frame_id, str):
            return None
        ok = data.get("ok") is True
        return ResponseFrame(
            id=frame_id,
            ok=ok,
            payload=data.get("payload"),
            error=None if ok else _parse_error(data.get("error")),
        )

    if frame_type == FRAME_REQUEST:
        frame_id = data.get("id")
        method = data.get("method")
        if not isinstance(frame_id, str) or not isinstance(method, str):
            return None
        return RequestFrame(id=frame_id, method=method, params=data.get("params"))

    return None
