"""Client option resolution.

Options come from, in order of precedence: explicit values (command-line
flags), environment variables, an optional YAML profile, then defaults.
Profiles are treated as data: a flat mapping of option names.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .device_identity import DeviceIdentity
from .errors import GatewayConfigError

_LOGGER = logging.getLogger(__name__)

ENV_URL = "OPENCLAW_GATEWAY_URL"
ENV_TOKEN = "OPENCLAW_GATEWAY_TOKEN"
ENV_PASSWORD = "OPENCLAW_GATEWAY_PASSWORD"
ENV_COOKIE = "OPENCLAW_GATEWAY_COOKIE"
ENV_SCOPES = "OPENCLAW_GATEWAY_SCOPES"
ENV_DISABLE_DEVICE_IDENTITY = "OPENCLAW_GATEWAY_DISABLE_DEVICE_IDENTITY"
ENV_DEVICE_KEY = "OPENCLAW_GATEWAY_DEVICE_KEY"
ENV_DEBUG = "OPENCLAW_GATEWAY_DEBUG"
ENV_PROXY_JWT_SECRET = "OCTOCLAW_SESSION_JWT_SECRET"

ADMIN_SCOPES: tuple[str, ...] = ("operator.admin",)


@dataclass(frozen=True)
class GatewayClientOptions:
    """Resolved connection options shared by the domain clients.

    Attributes:
        url: Gateway WebSocket URL.
        token: Bearer token for the handshake ``auth`` block.
        password: Password for the handshake ``auth`` block.
        cookie: Explicit ``Cookie`` header for the opening handshake.
        proxy_jwt_secret: Secret for minting the proxy session cookie.
        disable_device_identity: Connect without a ``device`` block.
        scopes: Requested operator scopes.
        device_key_file: PEM file holding the device's Ed25519 private key.
        debug: Verbose logging.
        client_version: Reported client version.
        platform: Reported client platform.
    """

    url: str
    token: str | None = None
    password: str | None = None
    cookie: str | None = None
    proxy_jwt_secret: str | None = None
    disable_device_identity: bool = False
    scopes: tuple[str, ...] = ADMIN_SCOPES
    device_key_file: Path | None = None
    debug: bool = False
    client_version: str = "dev"
    platform: str = "python"

    def load_device_identity(self) -> DeviceIdentity | None:
        """Load the configured device identity.

        Returns None when device identity is disabled. Without a key file an
        ephemeral in-memory identity is generated.
        """
        if self.disable_device_identity:
            return None
        if self.device_key_file is None:
            _LOGGER.debug("No device key configured, using ephemeral identity")
            return DeviceIdentity.generate()
        try:
            data = self.device_key_file.read_bytes()
        except OSError as err:
            raise GatewayConfigError(
                f"Cannot read device key {self.device_key_file}: {err}"
            ) from err
        try:
            return DeviceIdentity.from_private_key_pem(data)
        except (TypeError, ValueError) as err:
            raise GatewayConfigError(
                f"Invalid device key {self.device_key_file}: {err}"
            ) from err


def parse_bool(value: Any) -> bool:
    """Interpret ``1``/``true`` (any case) and real booleans as True."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    text = str(value).strip().lower()
    return text in {"1", "true"}


def parse_scopes(
    raw: str | Sequence[str] | None, fallback: Sequence[str]
) -> tuple[str, ...]:
    """Split a comma-separated scope list, falling back when it is empty."""
    if raw is None:
        return tuple(fallback)
    items = raw.split(",") if isinstance(raw, str) else [str(item) for item in raw]
    scopes = tuple(item.strip() for item in items if item.strip())
    return scopes or tuple(fallback)


def require_string(value: str | None, name: str) -> str:
    if not value or not value.strip():
        raise GatewayConfigError(f"{name} is required")
    return value


def load_profile(path: Path) -> dict[str, Any]:
    """Load a YAML profile mapping option names to values."""
    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as err:
        raise GatewayConfigError(f"Cannot read profile {path}: {err}") from err
    except yaml.YAMLError as err:
        raise GatewayConfigError(f"Invalid profile {path}: {err}") from err
    if not isinstance(data, dict):
        raise GatewayConfigError(f"Profile {path} must be a mapping")
    return data


def _first(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def resolve_options(
    *,
    url: str | None = None,
    token: str | None = None,
    password: str | None = None,
    cookie: str | None = None,
    scopes: str | None = None,
    device_key_file: str | Path | None = None,
    debug: bool | None = None,
    profile: str | Path | None = None,
    default_scopes: Sequence[str] = ADMIN_SCOPES,
    env: Mapping[str, str] | None = None,
) -> GatewayClientOptions:
    """Resolve client options from flags, environment and profile.

    Args:
        url: ``--url`` value
        token: ``--token`` value
        password: ``--password`` value
        cookie: ``--cookie`` value
        scopes: ``--scopes`` comma-separated value
        device_key_file: ``--device-key`` value
        debug: ``--debug`` flag
        profile: Optional YAML profile path
        default_scopes: Scopes used when none are configured
        env: Environment mapping (defaults to ``os.environ``)

    Raises:
        GatewayConfigError: If the url is missing or the profile is invalid.
    """
    environ = os.environ if env is None else env
    data = load_profile(Path(profile)) if profile else {}

    resolved_url = require_string(
        _first(url, environ.get(ENV_URL), data.get("url")),
        f"--url / {ENV_URL}",
    )

    key_file = _first(
        device_key_file, environ.get(ENV_DEVICE_KEY), data.get("device_key_file")
    )
    debug_flag = debug or parse_bool(_first(environ.get(ENV_DEBUG), data.get("debug")))

    return GatewayClientOptions(
        url=resolved_url,
        token=_first(token, environ.get(ENV_TOKEN), data.get("token")),
        password=_first(password, environ.get(ENV_PASSWORD), data.get("password")),
        cookie=_first(cookie, environ.get(ENV_COOKIE), data.get("cookie")),
        proxy_jwt_secret=_first(
            environ.get(ENV_PROXY_JWT_SECRET), data.get("proxy_jwt_secret")
        ),
        disable_device_identity=parse_bool(
            _first(
                environ.get(ENV_DISABLE_DEVICE_IDENTITY),
                data.get("disable_device_identity"),
            )
        ),
        scopes=parse_scopes(
            _first(scopes, environ.get(ENV_SCOPES), data.get("scopes")),
            default_scopes,
        ),
        device_key_file=Path(key_file) if key_file else None,
        debug=debug_flag,
    )


def read_raw_value(raw: str | None, raw_file: str | Path | None) -> str:
    """Return the raw config payload from ``--raw`` or ``--raw-file``.

    An inline value wins when it is not blank.
    """
    if raw is not None and raw.strip():
        return raw
    if raw_file is not None and str(raw_file).strip():
        path = Path(raw_file)
        try:
            return path.read_text(encoding="utf-8")
        except OSError as err:
            raise GatewayConfigError(f"Cannot read {path}: {err}") from err
    raise GatewayConfigError("missing raw config input (use --raw or --raw-file)")
