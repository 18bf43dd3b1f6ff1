"""
In-memory collaborators for testing.

FakeTransport keeps per-address state and history and exposes a push
stream per address; FakeRuntime builds deterministic messages and runs
messages "locally" without a VM.
"""

from __future__ import annotations
import asyncio
import hashlib
import itertools
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Tuple

from everscale_client.clock import Clock
from everscale_client.keys.accounts import Account, AccountFetcherContext, PrepareMessageParams
from everscale_client.runtime.errors import SignerNotFound
from everscale_client.runtime.ledger import LedgerRuntime, UnsignedMessage
from everscale_client.runtime.models import (
    AccountsList,
    DecodedTransaction,
    FullContractState,
    SignedMessage,
    Transaction,
    TransactionsList,
)
from everscale_client.transport.base import Transport, TransactionsFound, TransportError

from .factories import mk_state, mk_tx


class FakeTransport(Transport):
    """Transport backed by dictionaries, with a queue-fed update stream."""

    def __init__(self, network_id: int = 42, name: str = "fake"):
        self.network_id = network_id
        self.name = name

        self.fail_connect = False
        self.fail_check = False
        self.fail_send = False
        self.fail_state_reads = 0
        self.connect_delay = 0.0

        self.connect_calls = 0
        self.check_calls = 0
        self.closed = False

        self.states: Dict[str, FullContractState] = {}
        self.history: Dict[str, List[Transaction]] = defaultdict(list)
        self.accounts: Dict[str, List[str]] = {}
        self.sent: List[Tuple[str, SignedMessage]] = []
        self.subscribe_calls: Dict[str, int] = defaultdict(int)
        self.on_send: Optional[Callable[[str, SignedMessage], None]] = None

        self._streams: Dict[str, asyncio.Queue] = {}

    async def connect(self) -> int:
        self.connect_calls += 1
        if self.connect_delay:
            await asyncio.sleep(self.connect_delay)
        if self.fail_connect:
            raise TransportError(f"{self.name} is unreachable")
        return self.network_id

    async def check(self) -> None:
        self.check_calls += 1
        if self.fail_check:
            raise TransportError(f"{self.name} stopped responding")

    async def close(self) -> None:
        self.closed = True

    async def get_full_contract_state(self, address: str) -> Optional[FullContractState]:
        if self.fail_state_reads:
            self.fail_state_reads -= 1
            raise TransportError("gateway timeout")
        return self.states.get(address)

    async def get_transactions(self, address: str, before_lt: Optional[int], limit: int) -> TransactionsList:
        transactions = sorted(self.history[address], key=lambda tx: tx.lt, reverse=True)
        if before_lt is not None:
            transactions = [tx for tx in transactions if tx.lt <= before_lt]
        page = transactions[:limit]
        continuation = page[-1].prev_transaction_id if len(page) >= limit and page else None
        return TransactionsList(transactions=page, continuation=continuation)

    async def get_transaction(self, hash: str) -> Optional[Transaction]:
        for transactions in self.history.values():
            for tx in transactions:
                if tx.hash == hash:
                    return tx
        return None

    async def get_accounts_by_code_hash(self, code_hash: str, limit: int,
                                        continuation: Optional[str] = None) -> AccountsList:
        accounts = self.accounts.get(code_hash, [])
        if continuation is not None and continuation in accounts:
            accounts = accounts[accounts.index(continuation) + 1:]
        page = accounts[:limit]
        return AccountsList(accounts=page, continuation=page[-1] if len(page) >= limit else None)

    async def send_message(self, address: str, message: SignedMessage) -> None:
        if self.fail_send:
            raise TransportError("broadcast rejected")
        self.sent.append((address, message))
        if self.on_send is not None:
            self.on_send(address, message)

    async def subscribe(self, address: str, since_lt: int = 0):
        self.subscribe_calls[address] += 1
        queue = self._queue(address)
        while True:
            event = await queue.get()
            if isinstance(event, Exception):
                raise event
            yield event

    # =========================================================================
    # Test controls
    # =========================================================================

    def _queue(self, address: str) -> asyncio.Queue:
        if address not in self._streams:
            self._streams[address] = asyncio.Queue()
        return self._streams[address]

    def push(self, address: str, event: Any) -> None:
        """Deliver an event (or an exception to raise) on the stream of ``address``."""
        self._queue(address).put_nowait(event)

    def push_transactions(self, address: str, *transactions: Transaction) -> None:
        self.push(address, TransactionsFound(address=address, transactions=list(transactions)))

    def confirm_sends(self, start_lt: int = 100, *, exit_code: Optional[int] = None) -> None:
        """Answer every broadcast with a transaction carrying its message hash."""
        lts = itertools.count(start_lt)

        def on_send(address: str, message: SignedMessage) -> None:
            self.push_transactions(address, mk_tx(next(lts), message.hash, exit_code=exit_code))

        self.on_send = on_send


class TransportFactory:
    """Hands out pre-built transports by endpoint, recording every call."""

    def __init__(self, transports: Dict[str, FakeTransport]):
        self.transports = transports
        self.calls: List[str] = []

    def __call__(self, kind, params, runtime) -> Transport:
        self.calls.append(params.endpoint)
        if params.endpoint not in self.transports:
            raise TransportError(f"no transport for {params.endpoint}")
        return self.transports[params.endpoint]


class FakeUnsignedMessage(UnsignedMessage):

    def __init__(self, hash: str, expire_at: int):
        self._hash = hash
        self._expire_at = expire_at
        self.signature: Optional[bytes] = None

    @property
    def hash(self) -> str:
        return self._hash

    @property
    def expire_at(self) -> int:
        return self._expire_at

    def sign(self, signature: bytes) -> SignedMessage:
        self.signature = signature
        return SignedMessage(hash=self._hash, expire_at=self._expire_at, boc=signature.hex())


class FakeRuntime(LedgerRuntime):
    """Deterministic runtime; local execution yields ``local_exit_code``."""

    def __init__(self):
        self.local_exit_code: Optional[int] = None
        self.local_error: Optional[Exception] = None
        self.decode_error: Optional[Exception] = None
        self.run_local_error: Optional[Exception] = None

        self.message_timeouts: List[float] = []
        self.local_calls: List[SignedMessage] = []
        self._counter = itertools.count(1)

    def _next_hash(self, label: str) -> str:
        return hashlib.sha256(f"{label}-{next(self._counter)}".encode()).hexdigest()

    def repack_address(self, address: str) -> str:
        if not address.startswith(("0:", "-1:")):
            raise ValueError(f"Invalid address: {address}")
        return address.lower()

    def create_external_message(self, clock: Clock, recipient: str, abi: str, method: str,
                                state_init: Optional[str], params: Dict[str, Any],
                                public_key: str, timeout: float) -> UnsignedMessage:
        self.message_timeouts.append(timeout)
        return FakeUnsignedMessage(self._next_hash(method), int(clock.now() + timeout))

    def create_external_message_without_signature(self, clock: Clock, recipient: str, abi: str,
                                                  method: str, state_init: Optional[str],
                                                  params: Dict[str, Any], timeout: float) -> SignedMessage:
        self.message_timeouts.append(timeout)
        return SignedMessage(hash=self._next_hash(method), expire_at=int(clock.now() + timeout), boc="")

    def decode_transaction(self, transaction: Transaction, abi: str, method) -> Optional[DecodedTransaction]:
        if self.decode_error is not None:
            raise self.decode_error
        return DecodedTransaction(method=str(method), output={"lt": str(transaction.lt)})

    def execute_local(self, clock: Clock, state: FullContractState, message: SignedMessage) -> Transaction:
        self.local_calls.append(message)
        if self.local_error is not None:
            raise self.local_error
        aborted = self.local_exit_code not in (None, 0)
        return mk_tx(state.last_lt + 1, message.hash, exit_code=self.local_exit_code, aborted=aborted)

    def run_local(self, clock: Clock, state: FullContractState, abi: str, method: str,
                  params: Dict[str, Any], responsible: bool = False) -> Dict[str, Any]:
        if self.run_local_error is not None:
            raise self.run_local_error
        return {"output": {"method": method, **params}, "code": 0}

    def parse_contract_state(self, raw: Dict[str, Any]) -> Optional[FullContractState]:
        return mk_state(int(raw["lastTransactionId"]["lt"]))

    def parse_transaction(self, boc: str) -> Transaction:
        # "<lt>:<in_msg_hash>[:<prev_lt>]"
        parts = boc.split(":")
        prev_lt = int(parts[2]) if len(parts) > 2 else None
        return mk_tx(int(parts[0]), parts[1], prev_lt=prev_lt)


class FakeAccount(Account):
    """Wallet account signing with the keystore key ``public_key``."""

    def __init__(self, address: str, public_key: str):
        self._address = address
        self.public_key = public_key
        self.prepared: List[PrepareMessageParams] = []
        self._counter = itertools.count(1)

    @property
    def address(self) -> str:
        return self._address

    async def prepare_message(self, params: PrepareMessageParams, ctx: AccountFetcherContext) -> SignedMessage:
        signer = await ctx.keystore.get_signer(self.public_key)
        if signer is None:
            raise SignerNotFound()

        self.prepared.append(params)
        hash = hashlib.sha256(f"{params.recipient}-{params.amount}-{next(self._counter)}".encode()).hexdigest()
        signature = await signer.sign(bytes.fromhex(hash))
        return SignedMessage(hash=hash, expire_at=int(ctx.clock.now() + params.timeout), boc=signature.hex())
