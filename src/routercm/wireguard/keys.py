"""
WireGuard key material.

WireGuard keys are raw 32-byte Curve25519 keys, base64 encoded.
"""
import base64
from typing import Tuple

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey


def generate_private_key() -> str:
    """Generate a new base64-encoded private key."""
    private_key = X25519PrivateKey.generate()
    raw = private_key.private_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PrivateFormat.Raw,
        encryption_algorithm=serialization.NoEncryption()
    )
    return base64.b64encode(raw).decode("ascii")


def derive_public_key(private_key: str) -> str:
    """
    Derive the base64-encoded public key for a base64-encoded private key.

    Raises:
        ValueError: If the private key is not 32 bytes of valid base64
    """
    try:
        raw = base64.b64decode(private_key, validate=True)
    except (ValueError, TypeError) as e:
        raise ValueError(f"Invalid WireGuard private key: {e}")
    if len(raw) != 32:
        raise ValueError("WireGuard private key must be 32 bytes")

    key = X25519PrivateKey.from_private_bytes(raw)
    public = key.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw
    )
    return base64.b64encode(public).decode("ascii")


def generate_key_pair() -> Tuple[str, str]:
    """Return ``(private_key, public_key)``."""
    private_key = generate_private_key()
    return private_key, derive_public_key(private_key)
