"""
Standalone provider client.

Wires the connection controller, subscription controller and send
coordinator into a provider-style ``request(method, params)`` API with
event listeners.
"""

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Union

import pydantic

from ..clock import Clock
from ..connection.controller import ConnectionController
from ..delivery.coordinator import SendCoordinator
from ..runtime.errors import ClientError, ErrorCode, ProviderRpcError
from ..subscriptions.controller import SubscriptionController
from .handlers import dispatch
from .properties import ClientProperties
from .requests import SUPPORTED_METHODS, parse_request
from .session import EventSink, Session

logger = logging.getLogger(__name__)

PACKAGE_LOGGER = "everscale_client"

EventHandler = Callable[[Dict[str, Any]], None]

PROVIDER_EVENTS = (
    "permissionsChanged",
    "networkChanged",
    "messageStatusUpdated",
    "contractStateChanged",
    "transactionsFound",
)


def _describe_validation_error(method: str, error: pydantic.ValidationError) -> str:
    details = []
    for item in error.errors():
        loc = [str(part) for part in item.get("loc", ())]
        if loc and loc[0] == method:
            loc = loc[1:]
        field = ".".join(loc)
        details.append(f"{field}: {item['msg']}" if field else item["msg"])
    return "; ".join(details) or str(error)


class StandaloneClient:
    """
    Provider client talking directly to network endpoints.

    Example:
        ```python
        client = await StandaloneClient.create(ClientProperties(runtime=runtime))
        client.on("transactionsFound", print)
        await client.request("subscribe", {"address": address, "subscriptions": {"transactions": True}})
        ```
    """

    def __init__(self, session: Session):
        self._session = session
        self._listeners: Dict[str, List[EventHandler]] = defaultdict(list)
        self._closed = False

    @classmethod
    async def create(cls, properties: Union[ClientProperties, Dict[str, Any]]) -> "StandaloneClient":
        """
        Connect and build a client.

        Raises:
            ConnectionError: If no endpoint of the configured preset is reachable
        """
        if not isinstance(properties, ClientProperties):
            properties = ClientProperties.model_validate(properties)

        if properties.debug:
            logging.getLogger(PACKAGE_LOGGER).setLevel(logging.DEBUG)

        clock = properties.clock or Clock()
        runtime = properties.runtime

        connection = ConnectionController(
            runtime,
            transport_factory=properties.transport_factory,
            health_check_interval=properties.health_check_interval,
        )
        await connection.initialize(properties.preset)

        sink = EventSink()
        subscriptions = SubscriptionController(
            connection,
            runtime,
            clock,
            sink.notify,
            expiry_tolerance=properties.expiry_tolerance,
            resubscribe_interval=properties.resubscribe_interval,
        )
        session = Session(
            properties=properties,
            clock=clock,
            runtime=runtime,
            connection=connection,
            subscriptions=subscriptions,
            coordinator=SendCoordinator(subscriptions, properties.message),
            sink=sink,
            keystore=properties.keystore,
            accounts_storage=properties.accounts_storage,
        )

        client = cls(session)
        sink.attach(client.emit)
        logger.info(f"Standalone client created (connection={properties.preset.group})")
        return client

    @property
    def session(self) -> Session:
        return self._session

    @property
    def closed(self) -> bool:
        return self._closed

    async def request(self, method: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        Call a provider method.

        Raises:
            ProviderRpcError: On any failure, with a ``"{method}: {detail}"`` message
        """
        if method not in SUPPORTED_METHODS:
            raise ProviderRpcError.for_method(method, f"Method '{method}' is not supported by standalone provider")

        try:
            request = parse_request(method, params)
        except pydantic.ValidationError as e:
            raise ProviderRpcError.for_method(method, _describe_validation_error(method, e)) from e

        logger.debug(f"Handling {method}")
        try:
            return await dispatch(self._session, request)
        except ClientError as e:
            raise ProviderRpcError.from_client_error(method, e) from e
        except pydantic.ValidationError as e:
            raise ProviderRpcError.for_method(method, _describe_validation_error(method, e)) from e
        except Exception as e:
            logger.warning(f"{method} failed: {e}")
            raise ProviderRpcError.for_method(method, str(e), code=ErrorCode.INVALID_REQUEST) from e

    # =========================================================================
    # Events
    # =========================================================================

    def on(self, event: str, handler: EventHandler) -> None:
        self._listeners[event].append(handler)

    def off(self, event: str, handler: EventHandler) -> None:
        handlers = self._listeners.get(event)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def emit(self, event: str, payload: Dict[str, Any]) -> None:
        """Deliver ``payload`` to the listeners of ``event``."""
        for handler in list(self._listeners.get(event, ())):
            try:
                handler(payload)
            except Exception as e:
                logger.error(f"Error in '{event}' handler: {e}")

    async def close(self) -> None:
        """Drop subscriptions and disconnect. In-flight sends finish on their own."""
        if self._closed:
            return
        self._closed = True

        await self._session.subscriptions.unsubscribe_from_all_contracts()
        await self._session.connection.close()
        self._session.sink.detach()
        logger.info("Standalone client closed")

    async def __aenter__(self) -> "StandaloneClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


__all__ = ["PROVIDER_EVENTS", "EventHandler", "StandaloneClient"]
