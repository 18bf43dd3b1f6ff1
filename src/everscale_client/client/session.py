"""
Client session state shared by the request handlers.

The session is built before the client that owns it, with an inert event
sink; the client attaches its emitter to the sink once it exists.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Coroutine, Dict, Optional, Set

from ..clock import Clock
from ..connection.controller import ConnectionController
from ..delivery.coordinator import SendCoordinator
from ..keys.accounts import AccountsStorage
from ..keys.keystore import Keystore
from ..runtime.ledger import LedgerRuntime
from ..subscriptions.controller import SubscriptionController
from .properties import ClientProperties

logger = logging.getLogger(__name__)

VERSION = "0.2.25"
SUPPORTED_PERMISSIONS = ("basic",)

Emit = Callable[[str, Dict[str, Any]], None]


def convert_version_to_int32(version: str) -> int:
    """
    Pack a ``major.minor.patch`` version into one integer.

    Raises:
        ValueError: If the version is malformed or a part exceeds 999
    """
    parts = version.split(".")
    if len(parts) != 3:
        raise ValueError(f"Invalid version string: {version}")

    result = 0
    for part in parts:
        number = int(part)
        if number < 0 or number > 999:
            raise ValueError(f"Version part out of range: {version}")
        result = result * 1000 + number
    return result


class EventSink:
    """
    Late-bound event emitter.

    Events notified before ``attach`` are dropped.
    """

    def __init__(self):
        self._emit: Optional[Emit] = None

    @property
    def attached(self) -> bool:
        return self._emit is not None

    def attach(self, emit: Emit) -> None:
        self._emit = emit

    def detach(self) -> None:
        self._emit = None

    def notify(self, event: str, payload: Dict[str, Any]) -> None:
        if self._emit is None:
            logger.debug(f"Dropping '{event}' event: no emitter attached")
            return
        self._emit(event, payload)


@dataclass
class Session:
    """Everything a request handler needs."""
    properties: ClientProperties
    clock: Clock
    runtime: LedgerRuntime
    connection: ConnectionController
    subscriptions: SubscriptionController
    coordinator: SendCoordinator
    sink: EventSink
    keystore: Optional[Keystore] = None
    accounts_storage: Optional[AccountsStorage] = None
    permissions: Dict[str, bool] = field(default_factory=dict)
    background: Set[asyncio.Task] = field(default_factory=set)

    def notify(self, event: str, payload: Dict[str, Any]) -> None:
        self.sink.notify(event, payload)

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        """Run ``coro`` in the background, keeping a reference until it finishes."""
        task = asyncio.create_task(coro)
        self.background.add(task)
        task.add_done_callback(self.background.discard)
        return task


__all__ = [
    "VERSION",
    "SUPPORTED_PERMISSIONS",
    "convert_version_to_int32",
    "EventSink",
    "Session",
]
