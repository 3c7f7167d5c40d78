"""Device identity signing for the gateway handshake.

The gateway verifies the ``device`` block of ``connect`` by rebuilding the
signed payload from the connect parameters. The field order and separators in
:func:`build_device_auth_payload` must stay byte-identical to the gateway's.
Keypair custody is external: identities are either loaded from a PEM supplied
by the caller or generated in memory, and never written anywhere.
"""

from __future__ import annotations

import hashlib
from collections.abc import Sequence
from dataclasses import dataclass

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from .base64url import base64url_decode, base64url_encode

PAYLOAD_VERSION_PLAIN = "v1"
PAYLOAD_VERSION_NONCE = "v2"


def _raw_public_bytes(public_key: Ed25519PublicKey) -> bytes:
    return public_key.public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )


def derive_device_id(public_key: Ed25519PublicKey) -> str:
    """Device id is the hex SHA-256 of the raw public key."""
    return hashlib.sha256(_raw_public_bytes(public_key)).hexdigest()


def public_key_raw_base64url(public_key: Ed25519PublicKey) -> str:
    """Encode the raw 32-byte public key for the wire."""
    return base64url_encode(_raw_public_bytes(public_key))


@dataclass(frozen=True)
class DeviceIdentity:
    """Long-lived device keypair, read-only to the engine."""

    device_id: str
    private_key: Ed25519PrivateKey
    public_key: Ed25519PublicKey

    @classmethod
    def generate(cls) -> DeviceIdentity:
        """Create an ephemeral in-memory identity."""
        private_key = Ed25519PrivateKey.generate()
        return cls.from_private_key(private_key)

    @classmethod
    def from_private_key(cls, private_key: Ed25519PrivateKey) -> DeviceIdentity:
        public_key = private_key.public_key()
        return cls(
            device_id=derive_device_id(public_key),
            private_key=private_key,
            public_key=public_key,
        )

    @classmethod
    def from_private_key_pem(
        cls, data: bytes, password: bytes | None = None
    ) -> DeviceIdentity:
        """Load an identity from a PKCS#8 PEM private key.

        Raises:
            ValueError: If the PEM is invalid or not an Ed25519 key.
        """
        private_key = serialization.load_pem_private_key(data, password=password)
        if not isinstance(private_key, Ed25519PrivateKey):
            raise ValueError("Device key must be an Ed25519 private key")
        return cls.from_private_key(private_key)

    @property
    def public_key_b64url(self) -> str:
        return public_key_raw_base64url(self.public_key)


def build_device_auth_payload(
    *,
    device_id: str,
    client_id: str,
    client_mode: str,
    role: str,
    scopes: Sequence[str],
    signed_at_ms: int,
    token: str | None,
    nonce: str | None = None,
) -> str:
    """Build the canonical payload covered by the device signature.

    ``v1|device|client|mode|role|scopes|signedAt|token`` without a nonce,
    ``v2|...|token|nonce`` with one. An empty nonce still selects ``v2`` so it
    never collides with the no-nonce form.
    """
    version = PAYLOAD_VERSION_PLAIN if nonce is None else PAYLOAD_VERSION_NONCE
    fields = [
        version,
        device_id,
        client_id,
        client_mode,
        role,
        ",".join(scopes),
        str(signed_at_ms),
        token or "",
    ]
    if nonce is not None:
        fields.append(nonce)
    return "|".join(fields)


def sign_device_payload(private_key: Ed25519PrivateKey, payload: str) -> str:
    """Return the detached Ed25519 signature of ``payload`` as base64url."""
    return base64url_encode(private_key.sign(payload.encode("utf-8")))


def verify_device_signature(
    public_key_b64url: str, payload: str, signature: str
) -> bool:
    """Check a base64url signature against a base64url raw public key."""
    try:
        public_key = Ed25519PublicKey.from_public_bytes(
            base64url_decode(public_key_b64url)
        )
        public_key.verify(base64url_decode(signature), payload.encode("utf-8"))
    except (InvalidSignature, ValueError):
        return False
    return True
