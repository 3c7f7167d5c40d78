"""Tests for client option resolution."""

from __future__ import annotations

from pathlib import Path

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from gateway_client.config import (
    ADMIN_SCOPES,
    ENV_DISABLE_DEVICE_IDENTITY,
    ENV_PROXY_JWT_SECRET,
    ENV_SCOPES,
    ENV_TOKEN,
    ENV_URL,
    GatewayClientOptions,
    parse_bool,
    parse_scopes,
    read_raw_value,
    resolve_options,
)
from gateway_client.device_identity import DeviceIdentity
from gateway_client.errors import GatewayConfigError

URL = "wss://gateway.example.test/ws"


def _write_profile(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "profile.yaml"
    path.write_text(text, encoding="utf-8")
    return path


class TestResolveOptions:
    """Tests for flag/env/profile precedence."""

    def test_url_required(self):
        with pytest.raises(GatewayConfigError, match="GATEWAY_URL is required"):
            resolve_options(env={})

    def test_blank_url_rejected(self):
        with pytest.raises(GatewayConfigError):
            resolve_options(url="   ", env={})

    def test_defaults(self):
        options = resolve_options(url=URL, env={})

        assert options == GatewayClientOptions(url=URL)
        assert options.scopes == ADMIN_SCOPES
        assert options.disable_device_identity is False

    def test_flag_beats_env(self):
        options = resolve_options(
            url=URL, token="flag", env={ENV_URL: "wss://env/ws", ENV_TOKEN: "env"}
        )
        assert options.url == URL
        assert options.token == "flag"

    def test_env_values(self):
        options = resolve_options(
            env={
                ENV_URL: URL,
                ENV_TOKEN: "env-token",
                ENV_SCOPES: "operator.read, operator.write,",
                ENV_DISABLE_DEVICE_IDENTITY: "TRUE",
                ENV_PROXY_JWT_SECRET: "s3cret",
            }
        )
        assert options.token == "env-token"
        assert options.scopes == ("operator.read", "operator.write")
        assert options.disable_device_identity is True
        assert options.proxy_jwt_secret == "s3cret"

    def test_profile_below_env(self, tmp_path):
        """Test profile values fill gaps but lose to the environment."""
        profile = _write_profile(
            tmp_path,
            "url: wss://profile/ws\n"
            "token: profile-token\n"
            "password: profile-pw\n"
            "scopes: [operator.read]\n"
            "debug: true\n",
        )

        options = resolve_options(profile=profile, env={ENV_TOKEN: "env-token"})

        assert options.url == "wss://profile/ws"
        assert options.token == "env-token"
        assert options.password == "profile-pw"
        assert options.scopes == ("operator.read",)
        assert options.debug is True

    def test_default_scopes_override(self):
        options = resolve_options(
            url=URL, default_scopes=("operator.read",), env={ENV_SCOPES: " , "}
        )
        assert options.scopes == ("operator.read",)

    def test_profile_must_be_mapping(self, tmp_path):
        profile = _write_profile(tmp_path, "- just\n- a list\n")
        with pytest.raises(GatewayConfigError, match="mapping"):
            resolve_options(url=URL, profile=profile, env={})

    def test_invalid_profile_yaml(self, tmp_path):
        profile = _write_profile(tmp_path, "url: [unclosed\n")
        with pytest.raises(GatewayConfigError, match="Invalid profile"):
            resolve_options(url=URL, profile=profile, env={})

    def test_missing_profile(self, tmp_path):
        with pytest.raises(GatewayConfigError, match="Cannot read profile"):
            resolve_options(url=URL, profile=tmp_path / "nope.yaml", env={})


class TestParsers:
    """Tests for small value parsers."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("1", True),
            ("true", True),
            (" True ", True),
            (True, True),
            ("0", False),
            ("yes", False),
            ("", False),
            (None, False),
            (False, False),
        ],
    )
    def test_parse_bool(self, value, expected):
        assert parse_bool(value) is expected

    def test_parse_scopes_list(self):
        assert parse_scopes(["a", " b "], ADMIN_SCOPES) == ("a", "b")

    def test_parse_scopes_fallback(self):
        assert parse_scopes(None, ["x"]) == ("x",)
        assert parse_scopes("", ["x"]) == ("x",)


class TestReadRawValue:
    """Tests for --raw / --raw-file input."""

    def test_inline_wins(self, tmp_path):
        path = tmp_path / "raw.json5"
        path.write_text("{file: true}", encoding="utf-8")
        assert read_raw_value("{inline: true}", path) == "{inline: true}"

    def test_blank_inline_falls_back_to_file(self, tmp_path):
        path = tmp_path / "raw.json5"
        path.write_text("{file: true}", encoding="utf-8")
        assert read_raw_value("  ", str(path)) == "{file: true}"

    def test_missing_input(self):
        with pytest.raises(GatewayConfigError, match="missing raw config input"):
            read_raw_value(None, None)

    def test_unreadable_file(self, tmp_path):
        with pytest.raises(GatewayConfigError, match="Cannot read"):
            read_raw_value(None, tmp_path / "missing.json5")


class TestLoadDeviceIdentity:
    """Tests for device key loading."""

    def test_disabled(self):
        options = GatewayClientOptions(url=URL, disable_device_identity=True)
        assert options.load_device_identity() is None

    def test_ephemeral_without_key_file(self):
        identity = GatewayClientOptions(url=URL).load_device_identity()
        assert isinstance(identity, DeviceIdentity)

    def test_key_file(self, tmp_path):
        private_key = Ed25519PrivateKey.generate()
        path = tmp_path / "device.pem"
        path.write_bytes(
            private_key.private_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PrivateFormat.PKCS8,
                encryption_algorithm=serialization.NoEncryption(),
            )
        )

        identity = GatewayClientOptions(
            url=URL, device_key_file=path
        ).load_device_identity()

        assert identity is not None
        assert identity.device_id == DeviceIdentity.from_private_key(
            private_key
        ).device_id

    def test_invalid_key_file(self, tmp_path):
        path = tmp_path / "device.pem"
        path.write_text("garbage", encoding="utf-8")

        with pytest.raises(GatewayConfigError, match="Invalid device key"):
            GatewayClientOptions(url=URL, device_key_file=path).load_device_identity()

    def test_missing_key_file(self, tmp_path):
        options = GatewayClientOptions(url=URL, device_key_file=tmp_path / "no.pem")
        with pytest.raises(GatewayConfigError, match="Cannot read device key"):
            options.load_device_identity()
