"""
Key management for the standalone client.

Provides signer lookup and sender account storage.
"""

from .keystore import Signer, Keystore, KeyPairSigner, SimpleKeystore
from .accounts import (
    Account,
    AccountFetcherContext,
    AccountsStorage,
    PrepareMessageParams,
    SimpleAccountsStorage,
)

__all__ = [
    "Signer",
    "Keystore",
    "KeyPairSigner",
    "SimpleKeystore",
    "Account",
    "AccountFetcherContext",
    "AccountsStorage",
    "PrepareMessageParams",
    "SimpleAccountsStorage",
]
