"""
Connection controller.

Owns the single active transport of a client. The transport is selected
from the ordered candidates of a preset; the first endpoint that answers
wins. Concurrent callers share one in-flight selection, and a background
health probe flags the connection for re-selection when it stops answering.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from ..runtime.errors import ConnectionError
from ..runtime.ledger import LedgerRuntime
from ..transport.base import Transport, TransportError
from ..transport.jrpc import JrpcTransport
from .presets import ConnectionKind, ConnectionPreset, EndpointParams

logger = logging.getLogger(__name__)

T = TypeVar("T")

TransportFactory = Callable[[ConnectionKind, EndpointParams, LedgerRuntime], Transport]

DEFAULT_HEALTH_CHECK_INTERVAL = 30.0


def create_transport(kind: ConnectionKind, params: EndpointParams, runtime: LedgerRuntime) -> Transport:
    """
    Default transport factory.

    Raises:
        TransportError: If there is no built-in transport for ``kind``
    """
    if kind == ConnectionKind.JRPC:
        return JrpcTransport(params.endpoint, runtime, timeout=params.timeout)
    raise TransportError(f"No built-in transport for '{kind.value}' connections")


@dataclass
class ActiveConnection:
    """The currently bound transport."""
    transport: Transport
    group: str
    network_id: int
    endpoint: str
    healthy: bool = True


class ConnectionController:
    """
    Selects and maintains the active transport.

    Example:
        ```python
        controller = ConnectionController(runtime)
        await controller.initialize(NETWORK_PRESETS["mainnetJrpc"])
        state = await controller.use(lambda t: t.get_full_contract_state(address))
        ```
    """

    def __init__(
        self,
        runtime: LedgerRuntime,
        *,
        transport_factory: TransportFactory = create_transport,
        health_check_interval: float = DEFAULT_HEALTH_CHECK_INTERVAL,
    ):
        """
        Initialize the controller.

        Args:
            runtime: Ledger runtime passed to transports
            transport_factory: Builds a transport for one candidate endpoint
            health_check_interval: Seconds between health probes (0 disables)
        """
        self._runtime = runtime
        self._transport_factory = transport_factory
        self._health_check_interval = health_check_interval

        self._preset: Optional[ConnectionPreset] = None
        self._active: Optional[ActiveConnection] = None
        self._selection: Optional[asyncio.Future] = None
        self._health_task: Optional[asyncio.Task] = None

    @property
    def preset(self) -> Optional[ConnectionPreset]:
        return self._preset

    @property
    def initialized_transport(self) -> Optional[ActiveConnection]:
        """Active connection, or None before the first successful selection."""
        return self._active

    async def initialize(self, preset: ConnectionPreset) -> ActiveConnection:
        """
        Select a transport from ``preset``.

        Raises:
            ConnectionError: If no candidate endpoint responds
        """
        await self._wait_pending_selection()
        await self._teardown()
        self._preset = preset
        return await self._ensure_connected()

    async def switch_preset(self, preset: ConnectionPreset) -> ActiveConnection:
        """
        Drop the active connection and select again from another preset.

        Subscriptions bound to the old transport are not carried over.
        """
        previous = self._preset.group if self._preset else None
        logger.info(f"Switching connection preset: {previous} -> {preset.group}")
        return await self.initialize(preset)

    async def use(self, fn: Callable[[Transport], Awaitable[T]]) -> T:
        """
        Run ``fn`` with a ready transport.

        Triggers selection with the last configured preset when there is no
        healthy connection.
        """
        active = await self._ensure_connected()
        return await fn(active.transport)

    def mark_unhealthy(self, transport: Optional[Transport] = None) -> None:
        """
        Request re-selection on the next ``use``.

        When ``transport`` is given, the request only applies while it is
        still the active transport.
        """
        if transport is not None and (self._active is None or self._active.transport is not transport):
            logger.debug("Ignoring failure of a transport that is no longer active")
            return
        if self._active is not None and self._active.healthy:
            logger.warning(f"Connection to {self._active.endpoint} marked unhealthy")
            self._active.healthy = False

    async def close(self) -> None:
        """Tear down the active connection without reconnecting."""
        await self._wait_pending_selection()
        await self._teardown()

    # =========================================================================
    # Selection
    # =========================================================================

    async def _ensure_connected(self) -> ActiveConnection:
        active = self._active
        if active is not None and active.healthy:
            return active

        if self._preset is None:
            raise ConnectionError("Connection controller was not initialized")

        if self._selection is None:
            selection = asyncio.ensure_future(self._select(self._preset))
            selection.add_done_callback(self._on_selection_settled)
            self._selection = selection

        return await asyncio.shield(self._selection)

    def _on_selection_settled(self, selection: asyncio.Future) -> None:
        if self._selection is selection:
            self._selection = None

    async def _wait_pending_selection(self) -> None:
        selection = self._selection
        if selection is not None:
            # outcome is reported to the callers that started it
            await asyncio.wait([selection])

    async def _select(self, preset: ConnectionPreset) -> ActiveConnection:
        await self._teardown()

        failures: List[Dict[str, Any]] = []
        for params in preset.endpoints:
            try:
                transport = self._transport_factory(preset.kind, params, self._runtime)
            except Exception as e:
                logger.warning(f"Cannot create transport for {params.endpoint}: {e}")
                failures.append({"endpoint": params.endpoint, "reason": str(e)})
                continue

            try:
                network_id = await transport.connect()
            except Exception as e:
                logger.warning(f"Endpoint {params.endpoint} is unavailable: {e}")
                failures.append({"endpoint": params.endpoint, "reason": str(e)})
                await self._close_transport(transport)
                continue

            active = ActiveConnection(
                transport=transport,
                group=preset.group,
                network_id=network_id,
                endpoint=params.endpoint,
            )
            self._active = active
            self._start_health_monitor(active)
            logger.info(f"Connected to {params.endpoint} (group={preset.group}, network_id={network_id})")
            return active

        logger.error(f"No reachable endpoint in preset '{preset.group}'")
        raise ConnectionError(
            f"No reachable endpoint in preset '{preset.group}'",
            details={"failures": failures},
        )

    async def _teardown(self) -> None:
        active = self._active
        self._active = None
        await self._stop_health_monitor()
        if active is not None:
            logger.debug(f"Closing connection to {active.endpoint}")
            await self._close_transport(active.transport)

    @staticmethod
    async def _close_transport(transport: Transport) -> None:
        try:
            await transport.close()
        except Exception as e:
            logger.debug(f"Error closing transport: {e}")

    # =========================================================================
    # Health monitoring
    # =========================================================================

    def _start_health_monitor(self, active: ActiveConnection) -> None:
        if self._health_check_interval <= 0:
            return
        self._health_task = asyncio.create_task(self._health_loop(active))

    async def _stop_health_monitor(self) -> None:
        task = self._health_task
        self._health_task = None
        if task is None or task is asyncio.current_task():
            return

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _health_loop(self, active: ActiveConnection) -> None:
        logger.debug(f"Starting health monitor for {active.endpoint}")

        try:
            while active.healthy:
                await asyncio.sleep(self._health_check_interval)
                if not active.healthy:
                    break

                try:
                    await active.transport.check()
                except Exception as e:
                    logger.warning(f"Health check failed for {active.endpoint}: {e}")
                    active.healthy = False
        except asyncio.CancelledError:
            logger.debug("Health monitor cancelled")
            raise
        finally:
            logger.debug("Health monitor exiting")


__all__ = [
    "DEFAULT_HEALTH_CHECK_INTERVAL",
    "TransportFactory",
    "create_transport",
    "ActiveConnection",
    "ConnectionController",
]
