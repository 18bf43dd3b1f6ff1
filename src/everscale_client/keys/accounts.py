"""
Accounts storage used to send internal messages.

An account knows how to wrap a transfer into a signed external message for
its wallet contract; the storage maps repacked addresses to accounts.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional
import logging

from ..clock import Clock
from ..runtime.models import SignedMessage
from .keystore import Keystore

if TYPE_CHECKING:
    from ..client.requests import FunctionCall

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PrepareMessageParams:
    """Internal message to wrap."""
    recipient: str
    amount: int
    bounce: bool
    timeout: float
    payload: Optional['FunctionCall'] = None
    state_init: Optional[str] = None


@dataclass(frozen=True)
class AccountFetcherContext:
    clock: Clock
    keystore: Keystore


class Account(ABC):
    """Wallet account able to prepare signed messages."""

    @property
    @abstractmethod
    def address(self) -> str:
        """Repacked account address."""

    @abstractmethod
    async def prepare_message(self, params: PrepareMessageParams, ctx: AccountFetcherContext) -> SignedMessage:
        """
        Build and sign the external message carrying ``params``.

        Raises:
            SignerNotFound: If the keystore has no signer for the account key
        """


class AccountsStorage(ABC):
    """Lookup of sender accounts."""

    @abstractmethod
    async def get_account(self, address: str) -> Optional[Account]:
        """
        Find an account by repacked address.

        Returns:
            Account if known, None otherwise
        """


class SimpleAccountsStorage(AccountsStorage):
    """
    In-memory accounts storage.
    """

    def __init__(self, entries: Optional[Iterable[Account]] = None):
        self._accounts: Dict[str, Account] = {}
        for account in entries or ():
            self.add_account(account)

    def add_account(self, account: Account) -> None:
        self._accounts[account.address] = account
        logger.debug(f"Stored account {account.address}")

    def remove_account(self, address: str) -> bool:
        return self._accounts.pop(address, None) is not None

    def addresses(self) -> List[str]:
        return list(self._accounts)

    async def get_account(self, address: str) -> Optional[Account]:
        return self._accounts.get(address)

    def __repr__(self) -> str:
        return f"SimpleAccountsStorage(count={len(self._accounts)})"


__all__ = [
    "PrepareMessageParams",
    "AccountFetcherContext",
    "Account",
    "AccountsStorage",
    "SimpleAccountsStorage",
]
