"""
Subscription controller.

Keeps one transport-level update stream per address, shared by every
subscriber of that address through a reference count. Caller-visible
subscribers and in-flight message sends both hold references; only the
former receive notifications.

Outbound messages are tracked as pending entries keyed by
``(address, message hash)`` and resolved from the address's update stream
when a transaction with a matching inbound message hash shows up, or with
None once the message has expired.
"""

import asyncio
import itertools
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Dict, Optional, Tuple

from ..clock import Clock
from ..connection.controller import ConnectionController
from ..runtime.errors import ExecutionError
from ..runtime.ledger import LedgerRuntime
from ..runtime.models import (
    ContractUpdatesSubscription,
    FullContractState,
    SignedMessage,
    Transaction,
    TransactionsBatchInfo,
)
from ..transport.base import ContractEvent, ContractStateChanged, TransactionsFound

logger = logging.getLogger(__name__)

Notify = Callable[[str, Dict[str, Any]], None]

DEFAULT_EXPIRY_TOLERANCE = 5.0
DEFAULT_RESUBSCRIBE_INTERVAL = 5.0


@dataclass
class Subscription:
    """Per-address subscription state."""
    address: str
    generation: int
    last_lt: int = 0
    state: Optional[FullContractState] = None
    kinds: ContractUpdatesSubscription = field(default_factory=ContractUpdatesSubscription)
    external_refs: int = 0
    internal_refs: int = 0
    active: bool = True
    task: Optional[asyncio.Task] = None

    @property
    def ref_count(self) -> int:
        return self.external_refs + self.internal_refs

    @property
    def external(self) -> bool:
        return self.external_refs > 0


@dataclass
class PendingMessage:
    """Outstanding send awaiting confirmation."""
    address: str
    hash: str
    expire_at: int
    order: int
    future: asyncio.Future

    @property
    def key(self) -> Tuple[str, str]:
        return (self.address, self.hash)


@dataclass
class AddressLock:
    """Per-address lock with the number of tasks holding or awaiting it."""
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


@dataclass(frozen=True)
class SubscriptionSnapshot:
    """What a subscriber sees right after subscribing."""
    address: str
    last_lt: int
    state: Optional[FullContractState]
    kinds: ContractUpdatesSubscription

    def to_dict(self) -> Dict[str, Any]:
        return self.kinds.to_dict()


class SubscriptionController:
    """
    Ref-counted per-address subscriptions and pending message tracking.

    Example:
        ```python
        controller = SubscriptionController(connection, runtime, clock, notify)
        await controller.subscribe_to_contract(address, ContractUpdatesSubscription(state=True))
        tx = await controller.send_message(address, signed_message)
        ```
    """

    def __init__(
        self,
        connection: ConnectionController,
        runtime: LedgerRuntime,
        clock: Clock,
        notify: Notify,
        *,
        expiry_tolerance: float = DEFAULT_EXPIRY_TOLERANCE,
        resubscribe_interval: float = DEFAULT_RESUBSCRIBE_INTERVAL,
    ):
        """
        Initialize the controller.

        Args:
            connection: Source of the active transport
            runtime: Ledger runtime used for local execution
            clock: Adjusted clock used for message expiry
            notify: Receives ``(event, payload)`` for external subscribers
            expiry_tolerance: Seconds to keep waiting after ``expire_at``
            resubscribe_interval: Seconds to wait before reopening a broken stream
        """
        self._connection = connection
        self._runtime = runtime
        self._clock = clock
        self._notify = notify
        self._expiry_tolerance = expiry_tolerance
        self._resubscribe_interval = resubscribe_interval

        self._subscriptions: Dict[str, Subscription] = {}
        self._locks: Dict[str, AddressLock] = {}
        self._pending: Dict[Tuple[str, str], PendingMessage] = {}
        self._generations = itertools.count(1)
        self._order = itertools.count()

    @property
    def subscription_states(self) -> Dict[str, Dict[str, bool]]:
        """Requested update kinds per externally subscribed address."""
        return {
            address: sub.kinds.to_dict()
            for address, sub in self._subscriptions.items()
            if sub.external
        }

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def ref_count(self, address: str) -> int:
        sub = self._subscriptions.get(address)
        return sub.ref_count if sub is not None else 0

    # =========================================================================
    # Subscriptions
    # =========================================================================

    async def subscribe_to_contract(
        self,
        address: str,
        kinds: Optional[ContractUpdatesSubscription] = None,
    ) -> SubscriptionSnapshot:
        """
        Add a subscriber for ``address``.

        The first subscriber fetches the baseline state and opens the update
        stream; later ones join it. ``kinds`` is merged into the kinds
        already requested.
        """
        sub = await self._acquire(address, kinds, external=True)
        return SubscriptionSnapshot(
            address=address,
            last_lt=sub.last_lt,
            state=sub.state,
            kinds=sub.kinds,
        )

    async def unsubscribe_from_contract(self, address: str) -> None:
        """Remove a subscriber; unknown addresses are ignored."""
        async with self._locked(address):
            sub = self._subscriptions.get(address)
            if sub is None or sub.external_refs == 0:
                return

            sub.external_refs -= 1
            if sub.external_refs == 0:
                sub.kinds = ContractUpdatesSubscription()
            if sub.ref_count == 0:
                await self._destroy(sub)

    async def unsubscribe_from_all_contracts(self) -> None:
        """
        Drop every external subscriber.

        Streams still needed by in-flight sends keep running until those
        sends settle.
        """
        for address in list(self._subscriptions):
            async with self._locked(address):
                sub = self._subscriptions.get(address)
                if sub is None or sub.external_refs == 0:
                    continue

                sub.external_refs = 0
                sub.kinds = ContractUpdatesSubscription()
                if sub.ref_count == 0:
                    await self._destroy(sub)

    @asynccontextmanager
    async def _locked(self, address: str) -> AsyncIterator[None]:
        """Hold the lock of ``address``; the lock is dropped once nobody uses it."""
        entry = self._locks.get(address)
        if entry is None:
            entry = self._locks[address] = AddressLock()

        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0 and self._locks.get(address) is entry:
                del self._locks[address]

    async def _acquire(self, address: str, kinds: Optional[ContractUpdatesSubscription],
                       external: bool) -> Subscription:
        async with self._locked(address):
            sub = self._subscriptions.get(address)
            if sub is None:
                sub = await self._create(address)

            if external:
                sub.external_refs += 1
                sub.kinds = sub.kinds.merge(kinds)
            else:
                sub.internal_refs += 1
            return sub

    async def _release_internal(self, address: str, generation: int) -> None:
        async with self._locked(address):
            sub = self._subscriptions.get(address)
            if sub is None or sub.generation != generation or sub.internal_refs == 0:
                return

            sub.internal_refs -= 1
            if sub.ref_count == 0:
                await self._destroy(sub)

    async def _create(self, address: str) -> Subscription:
        async def fetch_state(transport):
            return await transport.get_full_contract_state(address)

        state = await self._connection.use(fetch_state)

        sub = Subscription(
            address=address,
            generation=next(self._generations),
            last_lt=state.last_lt if state is not None else 0,
            state=state,
        )
        self._subscriptions[address] = sub
        sub.task = asyncio.create_task(self._consume(sub))
        logger.info(f"Subscribed to {address} (last_lt={sub.last_lt})")
        return sub

    async def _destroy(self, sub: Subscription) -> None:
        sub.active = False
        if self._subscriptions.get(sub.address) is sub:
            del self._subscriptions[sub.address]

        task = sub.task
        sub.task = None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.info(f"Unsubscribed from {sub.address}")

    # =========================================================================
    # Update stream
    # =========================================================================

    async def _consume(self, sub: Subscription) -> None:
        async def open_stream(transport):
            return transport, transport.subscribe(sub.address, since_lt=sub.last_lt)

        while sub.active:
            transport = None
            try:
                transport, stream = await self._connection.use(open_stream)
                try:
                    async for event in stream:
                        if not sub.active:
                            break
                        self._apply(sub, event)
                finally:
                    aclose = getattr(stream, "aclose", None)
                    if aclose is not None:
                        await aclose()

                if not sub.active:
                    break
                logger.debug(f"Update stream for {sub.address} ended, reopening")

            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Update stream for {sub.address} failed: {e}")
                self._connection.mark_unhealthy(transport)

            await asyncio.sleep(self._resubscribe_interval)

    def _apply(self, sub: Subscription, event: ContractEvent) -> None:
        if isinstance(event, ContractStateChanged):
            sub.state = event.state
            logger.debug(f"State of {sub.address} changed")
            if sub.external and sub.kinds.state:
                self._notify("contractStateChanged", {
                    "address": sub.address,
                    "state": event.state.to_dict() if event.state is not None else None,
                })

        elif isinstance(event, TransactionsFound):
            accepted = []
            # batches may arrive newest first
            for tx in sorted(event.transactions, key=lambda tx: tx.lt):
                if tx.lt <= sub.last_lt:
                    logger.debug(f"Skipping known transaction {tx.hash} (lt={tx.lt})")
                    continue
                sub.last_lt = tx.lt
                accepted.append(tx)
                self._match(sub.address, tx)

            if accepted and sub.external and sub.kinds.transactions:
                self._notify("transactionsFound", {
                    "address": sub.address,
                    "transactions": [tx.to_dict() for tx in accepted],
                    "info": TransactionsBatchInfo.of(accepted).to_dict(),
                })

    # =========================================================================
    # Messages
    # =========================================================================

    async def send_message(self, address: str, message: SignedMessage) -> Optional[Transaction]:
        """
        Broadcast ``message`` and wait for its transaction.

        Returns:
            The transaction caused by the message, or None if the message
            expired, could not be broadcast, or its address could not be watched
        """
        try:
            sub = await self._acquire(address, None, external=False)
        except Exception as e:
            logger.warning(f"Cannot watch {address} for message {message.hash}: {e}")
            return None

        try:
            pending = self._pending.get((address, message.hash))
            if pending is not None:
                logger.debug(f"Message {message.hash} is already pending")
                return await asyncio.shield(pending.future)

            pending = PendingMessage(
                address=address,
                hash=message.hash,
                expire_at=message.expire_at,
                order=next(self._order),
                future=asyncio.get_running_loop().create_future(),
            )
            self._pending[pending.key] = pending
            expiry = asyncio.create_task(self._expire(pending))

            try:
                async def broadcast(transport):
                    await transport.send_message(address, message)

                try:
                    await self._connection.use(broadcast)
                    logger.debug(f"Sent message {message.hash} to {address}")
                except Exception as e:
                    logger.warning(f"Failed to broadcast message {message.hash}: {e}")
                    self._resolve(pending, None)

                return await asyncio.shield(pending.future)
            finally:
                if pending.future.done():
                    expiry.cancel()
        finally:
            await self._release_internal(address, sub.generation)

    async def send_message_locally(self, address: str, message: SignedMessage) -> Transaction:
        """
        Execute ``message`` against the current account state without broadcasting.

        Raises:
            ExecutionError: If the account does not exist or execution cannot run
        """
        async def fetch_state(transport):
            return await transport.get_full_contract_state(address)

        state = await self._connection.use(fetch_state)
        if state is None:
            raise ExecutionError(f"Account {address} not found")

        try:
            return self._runtime.execute_local(self._clock, state, message)
        except Exception as e:
            raise ExecutionError(f"Local execution failed: {e}", cause=e) from e

    def _match(self, address: str, tx: Transaction) -> None:
        pending = self._pending.get((address, tx.in_msg_hash))
        if pending is None:
            return

        if tx.created_at and tx.created_at > pending.expire_at + self._expiry_tolerance:
            logger.warning(f"Transaction {tx.hash} for message {pending.hash} arrived after expiry")
            self._resolve(pending, None)
            return

        logger.debug(f"Message {pending.hash} confirmed by transaction {tx.hash}")
        self._resolve(pending, tx)

    async def _expire(self, pending: PendingMessage) -> None:
        deadline = pending.expire_at + self._expiry_tolerance
        while True:
            remaining = deadline - self._clock.now()
            if remaining <= 0:
                break
            await asyncio.sleep(remaining)

        logger.debug(f"Message {pending.hash} expired")
        self._resolve(pending, None)

    def _resolve(self, pending: PendingMessage, result: Optional[Transaction]) -> None:
        if self._pending.get(pending.key) is not pending:
            return

        del self._pending[pending.key]
        if not pending.future.done():
            pending.future.set_result(result)


__all__ = [
    "DEFAULT_EXPIRY_TOLERANCE",
    "DEFAULT_RESUBSCRIBE_INTERVAL",
    "Notify",
    "Subscription",
    "PendingMessage",
    "SubscriptionSnapshot",
    "SubscriptionController",
]
