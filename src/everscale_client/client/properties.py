"""
Standalone client configuration.

Uses Pydantic models; both snake_case names and the camelCase aliases of
the provider API are accepted.
"""

from typing import Any, Callable, Optional, Union

from pydantic import BaseModel, Field, ValidationInfo, field_validator

from ..clock import Clock
from ..connection.controller import DEFAULT_HEALTH_CHECK_INTERVAL, create_transport
from ..connection.presets import (
    DEFAULT_NETWORK_GROUP,
    ConnectionKind,
    ConnectionPreset,
    EndpointParams,
    resolve_preset,
)
from ..keys.accounts import AccountsStorage
from ..keys.keystore import Keystore
from ..runtime.ledger import LedgerRuntime
from ..subscriptions.controller import DEFAULT_EXPIRY_TOLERANCE, DEFAULT_RESUBSCRIBE_INTERVAL
from ..transport.base import Transport

DEFAULT_RETRY_COUNT = 5
DEFAULT_MESSAGE_TIMEOUT = 60
DEFAULT_TIMEOUT_GROW_FACTOR = 1.2


class MessageProperties(BaseModel):
    """
    Message delivery settings.

    ``retry_count`` and ``timeout`` are truncated to integers and clamped to
    at least 1. A falsy ``timeout_grow_factor`` falls back to the default.
    """
    retry_count: int = Field(default=DEFAULT_RETRY_COUNT, alias="retryCount",
                             description="Broadcast attempts before local fallback")
    timeout: int = Field(default=DEFAULT_MESSAGE_TIMEOUT, description="First attempt expiration, seconds")
    timeout_grow_factor: float = Field(default=DEFAULT_TIMEOUT_GROW_FACTOR, alias="timeoutGrowFactor",
                                       description="Multiplier applied to the timeout on every retry")

    model_config = {"populate_by_name": True, "frozen": True}

    @field_validator("retry_count", "timeout", mode="before")
    @classmethod
    def _clamp_positive_int(cls, value: Any, info: ValidationInfo) -> int:
        if value is None:
            return cls.model_fields[info.field_name].default
        return max(1, int(value))

    @field_validator("timeout_grow_factor", mode="before")
    @classmethod
    def _default_grow_factor(cls, value: Any) -> Any:
        return value or DEFAULT_TIMEOUT_GROW_FACTOR


class ClientProperties(BaseModel):
    """
    Standalone client settings.

    ``connection`` accepts a preset name from ``NETWORK_PRESETS`` or a preset
    description and is resolved to a ``ConnectionPreset`` on validation.
    """
    connection: Union[str, ConnectionPreset] = Field(default=DEFAULT_NETWORK_GROUP)
    message: MessageProperties = Field(default_factory=MessageProperties)
    keystore: Optional[Keystore] = None
    accounts_storage: Optional[AccountsStorage] = Field(default=None, alias="accountsStorage")
    clock: Optional[Clock] = None
    runtime: LedgerRuntime
    transport_factory: Callable[[ConnectionKind, EndpointParams, LedgerRuntime], Transport] = Field(
        default=create_transport, alias="transportFactory")
    health_check_interval: float = Field(default=DEFAULT_HEALTH_CHECK_INTERVAL, ge=0,
                                         alias="healthCheckInterval")
    expiry_tolerance: float = Field(default=DEFAULT_EXPIRY_TOLERANCE, ge=0, alias="expiryTolerance")
    resubscribe_interval: float = Field(default=DEFAULT_RESUBSCRIBE_INTERVAL, ge=0,
                                        alias="resubscribeInterval")
    debug: bool = False

    model_config = {"populate_by_name": True, "arbitrary_types_allowed": True}

    @field_validator("connection", mode="after")
    @classmethod
    def _resolve_connection(cls, value: Union[str, ConnectionPreset]) -> ConnectionPreset:
        try:
            return resolve_preset(value)
        except KeyError as e:
            raise ValueError(e.args[0]) from None

    @property
    def preset(self) -> ConnectionPreset:
        return resolve_preset(self.connection)


__all__ = [
    "DEFAULT_RETRY_COUNT",
    "DEFAULT_MESSAGE_TIMEOUT",
    "DEFAULT_TIMEOUT_GROW_FACTOR",
    "MessageProperties",
    "ClientProperties",
]
