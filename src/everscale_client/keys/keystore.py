"""
Keystore interface for the standalone client.

Provides signer lookup by public key, with an in-memory implementation.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional
import logging

from ..crypto.ed25519 import Ed25519KeyPair

logger = logging.getLogger(__name__)


class Signer(ABC):
    """Signs data on behalf of one public key. May be backed by remote hardware."""

    @property
    @abstractmethod
    def public_key(self) -> str:
        """Hex-encoded public key."""

    @abstractmethod
    async def sign(self, data: bytes) -> bytes:
        """
        Sign raw data.

        Args:
            data: Bytes to sign (usually a message hash)

        Returns:
            Signature bytes
        """


class Keystore(ABC):
    """
    Abstract keystore interface.

    Used by every provider method that needs a signature.
    """

    @abstractmethod
    async def get_signer(self, public_key: str) -> Optional[Signer]:
        """
        Find a signer for a public key.

        Args:
            public_key: Hex-encoded public key

        Returns:
            Signer if the key is known, None otherwise
        """


class KeyPairSigner(Signer):
    """Signer over a local Ed25519 key pair."""

    def __init__(self, key_pair: Ed25519KeyPair):
        self._key_pair = key_pair

    @property
    def public_key(self) -> str:
        return self._key_pair.public_key

    async def sign(self, data: bytes) -> bytes:
        return self._key_pair.sign(data)


class SimpleKeystore(Keystore):
    """
    In-memory keystore.

    Keys are indexed by their hex public key; nothing is persisted.
    """

    def __init__(self, entries: Optional[Iterable[Ed25519KeyPair]] = None):
        self._signers: Dict[str, Signer] = {}
        for key_pair in entries or ():
            self.add_key_pair(key_pair)

    def add_key_pair(self, key_pair: Ed25519KeyPair) -> str:
        """Store a key pair, returning its public key."""
        return self.add_signer(KeyPairSigner(key_pair))

    def add_signer(self, signer: Signer) -> str:
        public_key = signer.public_key.lower()
        self._signers[public_key] = signer
        logger.debug(f"Stored signer {public_key[:8]}... in memory keystore")
        return public_key

    def remove_key(self, public_key: str) -> bool:
        return self._signers.pop(public_key.lower(), None) is not None

    def public_keys(self) -> List[str]:
        return list(self._signers)

    async def get_signer(self, public_key: str) -> Optional[Signer]:
        return self._signers.get(public_key.lower())

    def __repr__(self) -> str:
        return f"SimpleKeystore(count={len(self._signers)})"


__all__ = ["Signer", "Keystore", "KeyPairSigner", "SimpleKeystore"]
