"""Unpadded URL-safe base64 helpers."""

from __future__ import annotations

import base64


def base64url_encode(data: bytes) -> str:
    """Encode bytes as base64url with the trailing padding stripped."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def base64url_decode(value: str) -> bytes:
    """Decode base64url text, restoring any stripped padding."""
    padded = value + "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii"))
