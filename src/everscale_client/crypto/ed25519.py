"""
Ed25519 key pairs for the in-memory keystore.

Public keys are addressed by their 64-character hex form, which is how the
provider API refers to them.
"""

from __future__ import annotations
import hashlib
from typing import Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey as CryptoEd25519PrivateKey,
    Ed25519PublicKey as CryptoEd25519PublicKey,
)


class Ed25519Error(Exception):
    """Base exception for Ed25519 operations."""
    pass


class Ed25519KeyPair:
    """
    Ed25519 key pair built from a 32-byte secret.
    """

    def __init__(self, secret: bytes):
        """
        Initialize from a 32-byte secret.

        Args:
            secret: 32-byte Ed25519 private key seed

        Raises:
            Ed25519Error: If the secret is invalid
        """
        if len(secret) != 32:
            raise Ed25519Error(f"Ed25519 secret must be 32 bytes, got {len(secret)}")

        try:
            self._private_key = CryptoEd25519PrivateKey.from_private_bytes(secret)
        except ValueError as e:
            raise Ed25519Error(f"Invalid Ed25519 secret: {e}") from e

        self._secret = secret
        self._public_bytes = self._private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )

    @classmethod
    def generate(cls) -> Ed25519KeyPair:
        """Generate a new random key pair."""
        private_key = CryptoEd25519PrivateKey.generate()
        return cls(private_key.private_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PrivateFormat.Raw,
            encryption_algorithm=serialization.NoEncryption(),
        ))

    @classmethod
    def from_secret_hex(cls, hex_string: str) -> Ed25519KeyPair:
        try:
            secret = bytes.fromhex(hex_string)
        except ValueError as e:
            raise Ed25519Error(f"Invalid hex string: {e}") from e
        return cls(secret)

    @classmethod
    def from_seed(cls, seed: Union[str, bytes]) -> Ed25519KeyPair:
        """Deterministic key pair from an arbitrary seed (SHA-256 of the seed)."""
        if isinstance(seed, str):
            seed = seed.encode("utf-8")
        return cls(hashlib.sha256(seed).digest())

    @property
    def public_key(self) -> str:
        """Public key as hex."""
        return self._public_bytes.hex()

    @property
    def secret_key(self) -> str:
        return self._secret.hex()

    def sign(self, data: bytes) -> bytes:
        """Sign ``data`` and return the 64-byte signature."""
        return self._private_key.sign(data)

    def verify(self, data: bytes, signature: bytes) -> bool:
        return verify_signature(self.public_key, data, signature)

    def __repr__(self) -> str:
        return f"Ed25519KeyPair(public_key='{self.public_key}')"


def verify_signature(public_key: str, data: bytes, signature: bytes) -> bool:
    """Check an Ed25519 signature made by a hex-encoded public key."""
    if len(signature) != 64:
        return False
    try:
        key = CryptoEd25519PublicKey.from_public_bytes(bytes.fromhex(public_key))
        key.verify(signature, data)
        return True
    except (ValueError, InvalidSignature):
        return False


__all__ = ["Ed25519Error", "Ed25519KeyPair", "verify_signature"]
