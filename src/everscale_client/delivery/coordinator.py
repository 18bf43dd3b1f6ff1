"""
Message delivery state machine.

Drives one send operation through composing, broadcasting and waiting for
confirmation, retrying with a growing expiration timeout, and finally
executing the message locally to report why it never landed.

    COMPOSING -> SENT -> CONFIRMED
                      -> RETRYING -> COMPOSING
                      -> LOCAL_FALLBACK -> EXPIRED
    COMPOSING (local) -> CONFIRMED_LOCAL
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable, List, Optional

from ..runtime.errors import ClientError, MessageExpired
from ..runtime.models import SignedMessage, Transaction
from ..subscriptions.controller import SubscriptionController

if TYPE_CHECKING:
    from ..client.properties import MessageProperties

logger = logging.getLogger(__name__)

LOCAL_MESSAGE_TIMEOUT = 60

ComposeFn = Callable[[float], Awaitable[SignedMessage]]
DecodeFn = Callable[[Transaction], Optional[Any]]


class SendState(Enum):
    """Send operation states."""
    COMPOSING = "composing"
    SENT = "sent"
    RETRYING = "retrying"
    LOCAL_FALLBACK = "local_fallback"
    CONFIRMED = "confirmed"
    CONFIRMED_LOCAL = "confirmed_local"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self in (SendState.CONFIRMED, SendState.CONFIRMED_LOCAL, SendState.EXPIRED)


def timeout_schedule(properties: 'MessageProperties') -> List[float]:
    """
    Expiration timeout of every broadcast attempt.

    The growth is cumulative and never reset within one send.
    """
    timeouts: List[float] = []
    timeout: float = properties.timeout
    for _ in range(properties.retry_count):
        timeouts.append(timeout)
        timeout *= properties.timeout_grow_factor
    return timeouts


def best_effort_decode(decode: Optional[DecodeFn], transaction: Transaction) -> Optional[Any]:
    """Decoded output of ``transaction``, or None if decoding is impossible."""
    if decode is None:
        return None
    try:
        return decode(transaction)
    except Exception as e:
        logger.debug(f"Failed to decode transaction {transaction.hash}: {e}")
        return None


@dataclass
class SendOutcome:
    """Result of a finished send."""
    state: SendState
    transaction: Optional[Transaction] = None
    output: Optional[Any] = None
    attempts: int = 0
    timeouts: List[float] = field(default_factory=list)


@dataclass
class SendOperation:
    """Mutable state of one send."""
    address: str
    compose: ComposeFn
    decode: Optional[DecodeFn] = None
    local: bool = False
    first_message: Optional[SignedMessage] = None
    timeout: float = LOCAL_MESSAGE_TIMEOUT
    attempts: int = 0
    timeouts: List[float] = field(default_factory=list)
    message: Optional[SignedMessage] = None
    transaction: Optional[Transaction] = None
    error: Optional[ClientError] = None

    def take_first_message(self) -> Optional[SignedMessage]:
        message, self.first_message = self.first_message, None
        return message


class SendCoordinator:
    """
    Retrying message sender.

    Example:
        ```python
        coordinator = SendCoordinator(subscriptions, MessageProperties())
        outcome = await coordinator.send(address, compose, decode=decode)
        print(outcome.transaction, outcome.output)
        ```
    """

    def __init__(self, subscriptions: SubscriptionController, properties: 'MessageProperties'):
        self._subscriptions = subscriptions
        self._properties = properties

    @property
    def properties(self) -> 'MessageProperties':
        return self._properties

    def start(self, address: str, compose: ComposeFn, *, decode: Optional[DecodeFn] = None,
              local: bool = False, first_message: Optional[SignedMessage] = None) -> SendOperation:
        """Create the operation for a send without running it."""
        return SendOperation(
            address=address,
            compose=compose,
            decode=decode,
            local=local,
            first_message=first_message,
            timeout=self._properties.timeout,
        )

    async def send(self, address: str, compose: ComposeFn, *, decode: Optional[DecodeFn] = None,
                   local: bool = False, first_message: Optional[SignedMessage] = None) -> SendOutcome:
        """
        Deliver a message, retrying until it is confirmed.

        Args:
            address: Repacked address the message is sent to
            compose: Builds a signed message expiring in the given number of seconds
            decode: Extracts the call output from the confirming transaction
            local: Skip the network and execute locally
            first_message: Already composed message for the first attempt

        Returns:
            Outcome in CONFIRMED or CONFIRMED_LOCAL state

        Raises:
            MessageExpired: If no attempt was confirmed
            ExecutionError: If forced local execution cannot run
        """
        operation = self.start(address, compose, decode=decode, local=local, first_message=first_message)

        state = SendState.COMPOSING
        while not state.is_terminal:
            state = await self.step(operation, state)

        if state == SendState.EXPIRED:
            raise operation.error

        return SendOutcome(
            state=state,
            transaction=operation.transaction,
            output=best_effort_decode(operation.decode, operation.transaction),
            attempts=operation.attempts,
            timeouts=list(operation.timeouts),
        )

    async def step(self, operation: SendOperation, state: SendState) -> SendState:
        """Run the transition leaving ``state``."""
        if state == SendState.COMPOSING:
            return await self.compose(operation)
        if state == SendState.SENT:
            return await self.await_confirmation(operation)
        if state == SendState.RETRYING:
            return self.retry(operation)
        if state == SendState.LOCAL_FALLBACK:
            return await self.fall_back(operation)
        raise ValueError(f"No transition leaves terminal state {state.value}")

    # =========================================================================
    # Transitions
    # =========================================================================

    async def compose(self, operation: SendOperation) -> SendState:
        """COMPOSING -> SENT, or CONFIRMED_LOCAL for a forced local send."""
        if operation.local:
            message = operation.take_first_message() or await operation.compose(LOCAL_MESSAGE_TIMEOUT)
            operation.message = message
            operation.transaction = await self._subscriptions.send_message_locally(operation.address, message)
            logger.debug(f"Message {message.hash} executed locally")
            return SendState.CONFIRMED_LOCAL

        message = operation.take_first_message() or await operation.compose(operation.timeout)
        operation.message = message
        operation.timeouts.append(operation.timeout)
        return SendState.SENT

    async def await_confirmation(self, operation: SendOperation) -> SendState:
        """SENT -> CONFIRMED, RETRYING or LOCAL_FALLBACK."""
        operation.attempts += 1
        message = operation.message
        transaction = await self._subscriptions.send_message(operation.address, message)
        if transaction is not None:
            operation.transaction = transaction
            logger.info(f"Message {message.hash} confirmed by {transaction.hash} "
                        f"after {operation.attempts} attempt(s)")
            return SendState.CONFIRMED

        logger.warning(f"Message {message.hash} expired "
                       f"(attempt {operation.attempts}/{self._properties.retry_count})")
        if operation.attempts < self._properties.retry_count:
            return SendState.RETRYING
        return SendState.LOCAL_FALLBACK

    def retry(self, operation: SendOperation) -> SendState:
        """RETRYING -> COMPOSING with a grown timeout."""
        operation.timeout *= self._properties.timeout_grow_factor
        return SendState.COMPOSING

    async def fall_back(self, operation: SendOperation) -> SendState:
        """LOCAL_FALLBACK -> EXPIRED, recording the diagnostic error."""
        try:
            message = await operation.compose(LOCAL_MESSAGE_TIMEOUT)
            transaction = await self._subscriptions.send_message_locally(operation.address, message)
        except Exception as e:
            logger.warning(f"Local execution of expired message failed: {e}")
            operation.error = MessageExpired(reason=str(e), cause=e)
            return SendState.EXPIRED

        operation.transaction = transaction
        operation.error = MessageExpired(exit_code=transaction.exit_code)
        return SendState.EXPIRED


__all__ = [
    "LOCAL_MESSAGE_TIMEOUT",
    "ComposeFn",
    "DecodeFn",
    "SendState",
    "SendOutcome",
    "SendOperation",
    "SendCoordinator",
    "timeout_schedule",
    "best_effort_decode",
]
