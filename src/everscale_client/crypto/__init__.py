"""
Cryptographic primitives used by the in-memory keystore.
"""

from .ed25519 import Ed25519Error, Ed25519KeyPair, verify_signature

__all__ = [
    "Ed25519Error",
    "Ed25519KeyPair",
    "verify_signature",
]
