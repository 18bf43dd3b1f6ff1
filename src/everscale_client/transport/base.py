"""
Transport interface for the standalone client.

A transport is bound to one endpoint of a connection preset and provides
ledger reads, message broadcast and a per-address update stream. The base
class implements the update stream by polling; push-capable transports
override ``subscribe``.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import AsyncIterator, List, Optional, Union

from ..runtime.models import (
    AccountsList,
    FullContractState,
    SignedMessage,
    Transaction,
    TransactionsBatchInfo,
    TransactionsList,
)

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 5.0
HISTORY_PAGE_SIZE = 50


@dataclass
class ContractStateChanged:
    """New account state observed."""
    address: str
    state: Optional[FullContractState]
    timestamp: float = field(default_factory=time.time)


@dataclass
class TransactionsFound:
    """New transactions observed, oldest first."""
    address: str
    transactions: List[Transaction]
    info: Optional[TransactionsBatchInfo] = None
    timestamp: float = field(default_factory=time.time)

    def __post_init__(self):
        if self.info is None:
            self.info = TransactionsBatchInfo.of(self.transactions)


ContractEvent = Union[ContractStateChanged, TransactionsFound]


class TransportError(Exception):
    """Transport-level failure (network or protocol)."""
    pass


class Transport(ABC):
    """
    Abstract network adapter for one endpoint.

    All methods are coroutines; implementations are free to do blocking I/O
    in an executor.
    """

    poll_interval: float = DEFAULT_POLL_INTERVAL

    @abstractmethod
    async def connect(self) -> int:
        """
        Probe the endpoint.

        Returns:
            Network id reported by the endpoint

        Raises:
            TransportError: If the endpoint is unusable
        """

    async def check(self) -> None:
        """Health probe; raises when the endpoint stopped responding."""
        await self.connect()

    async def close(self) -> None:
        """Release resources held by the transport."""
        return None

    @abstractmethod
    async def get_full_contract_state(self, address: str) -> Optional[FullContractState]:
        """Current state of an account, None if it does not exist."""

    @abstractmethod
    async def get_transactions(self, address: str, before_lt: Optional[int],
                               limit: int) -> TransactionsList:
        """Account history page, newest first, starting at ``before_lt`` (latest when None)."""

    @abstractmethod
    async def get_transaction(self, hash: str) -> Optional[Transaction]:
        """Single transaction by hash."""

    @abstractmethod
    async def get_accounts_by_code_hash(self, code_hash: str, limit: int,
                                        continuation: Optional[str] = None) -> AccountsList:
        """Addresses of accounts with the given code hash."""

    @abstractmethod
    async def send_message(self, address: str, message: SignedMessage) -> None:
        """Broadcast a signed message."""

    async def subscribe(self, address: str, since_lt: int = 0) -> AsyncIterator[ContractEvent]:
        """
        Stream updates for an address.

        The default implementation polls the account state every
        ``poll_interval`` seconds and, whenever its last transaction moves,
        walks the history back to ``since_lt``.

        Args:
            address: Repacked address
            since_lt: Transactions at or below this lt are considered known

        Yields:
            ContractStateChanged and TransactionsFound events
        """
        known_lt = since_lt
        last_state_lt: Optional[int] = None

        while True:
            state = await self.get_full_contract_state(address)
            state_lt = state.last_lt if state is not None else 0

            if last_state_lt is None or state_lt != last_state_lt:
                last_state_lt = state_lt
                yield ContractStateChanged(address=address, state=state)

            if state_lt > known_lt:
                transactions = await self._collect_new_transactions(address, known_lt)
                if transactions:
                    known_lt = transactions[-1].lt
                    yield TransactionsFound(address=address, transactions=transactions)

            await asyncio.sleep(self.poll_interval)

    async def _collect_new_transactions(self, address: str, known_lt: int) -> List[Transaction]:
        """Fetch every transaction newer than ``known_lt``, oldest first."""
        collected: List[Transaction] = []
        before_lt: Optional[int] = None

        while True:
            page = await self.get_transactions(address, before_lt, HISTORY_PAGE_SIZE)
            fresh = [tx for tx in page.transactions if tx.lt > known_lt]
            collected.extend(fresh)

            if not fresh or len(fresh) < len(page.transactions) or page.continuation is None:
                break
            before_lt = page.continuation.lt

        collected.sort(key=lambda tx: tx.lt)
        return collected


__all__ = [
    "DEFAULT_POLL_INTERVAL",
    "HISTORY_PAGE_SIZE",
    "ContractStateChanged",
    "TransactionsFound",
    "ContractEvent",
    "TransportError",
    "Transport",
]
