"""Proxy session cookie minting.

Endpoints fronted by the tenant proxy are addressed as
``<tenant>.proxy.octoclaw.ai``. When a shared secret is configured, the
client mints a short-lived HS256 token for that tenant and presents it as the
``octoclaw_session`` cookie on the WebSocket opening handshake. The gateway
itself never inspects it.
"""

from __future__ import annotations

import logging
import re
import time
from typing import Any
from urllib.parse import urlsplit

import jwt

_LOGGER = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "octoclaw_session"
PROXY_HOSTNAME_SUFFIX = ".proxy.octoclaw.ai"
DEFAULT_MAX_AGE_SECONDS = 60 * 60 * 24

# Numeric ids and UUIDs.
_TENANT_ID_PATTERN = re.compile(r"^[0-9a-f-]+$", re.IGNORECASE)


def derive_tenant_id(hostname: str) -> str | None:
    """Extract the tenant id from a proxy hostname.

    Returns None unless the hostname is a single hex/hyphen label followed by
    the proxy suffix.
    """
    if not hostname.endswith(PROXY_HOSTNAME_SUFFIX):
        return None
    prefix = hostname[: -len(PROXY_HOSTNAME_SUFFIX)]
    if not prefix or "." in prefix:
        return None
    if not _TENANT_ID_PATTERN.match(prefix):
        return None
    return prefix


def mint_session_token(
    tenant_id: str,
    shared_secret: str,
    *,
    now: int,
    max_age_seconds: int = DEFAULT_MAX_AGE_SECONDS,
) -> str:
    """Sign the tenant session claims as a compact HS256 JWT."""
    claims = {"sub": tenant_id, "iat": now, "exp": now + max_age_seconds}
    return jwt.encode(claims, shared_secret, algorithm="HS256")


def mint_session_cookie(
    url: str,
    shared_secret: str | None = None,
    *,
    now: int | None = None,
    max_age_seconds: int = DEFAULT_MAX_AGE_SECONDS,
) -> str | None:
    """Build the proxy session cookie header value for ``url``.

    Args:
        url: Gateway endpoint URL.
        shared_secret: HMAC secret shared with the proxy. Nothing is minted
            without one.
        now: Issued-at override in epoch seconds.
        max_age_seconds: Token lifetime.

    Returns:
        ``"octoclaw_session=<jwt>"`` or None when no credential applies.
    """
    if not shared_secret:
        return None

    try:
        hostname = urlsplit(url).hostname
    except ValueError:
        return None
    if not hostname:
        return None

    tenant_id = derive_tenant_id(hostname)
    if tenant_id is None:
        _LOGGER.debug("No proxy tenant in hostname %s", hostname)
        return None

    issued_at = now if now is not None else int(time.time())
    token = mint_session_token(
        tenant_id,
        shared_secret,
        now=issued_at,
        max_age_seconds=max_age_seconds,
    )
    return f"{SESSION_COOKIE_NAME}={token}"


def decode_session_token(
    token: str, shared_secret: str, *, verify_expiry: bool = True
) -> dict[str, Any]:
    """Verify a minted session token and return its claims.

    Raises:
        jwt.InvalidTokenError: If the signature or claims do not verify.
    """
    claims: dict[str, Any] = jwt.decode(
        token,
        shared_secret,
        algorithms=["HS256"],
        options={"verify_exp": verify_expiry, "verify_iat": verify_expiry},
    )
    return claims
