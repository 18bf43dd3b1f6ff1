"""
Connection presets.

A preset is a named group of candidate endpoints sharing one protocol kind.
Presets are immutable once built.
"""

from __future__ import annotations
from enum import Enum
from typing import Dict, List, Union

from pydantic import BaseModel, Field, field_validator


class ConnectionKind(str, Enum):
    """Protocol spoken by the endpoints of a preset."""
    JRPC = "jrpc"
    GRAPHQL = "graphql"
    PROTO = "proto"


class EndpointParams(BaseModel):
    """
    One candidate endpoint.
    """
    endpoint: str = Field(min_length=1, description="Endpoint URL")
    timeout: float = Field(default=10.0, gt=0, description="Request timeout in seconds")

    model_config = {"frozen": True}


class ConnectionPreset(BaseModel):
    """
    Named group of candidate endpoints, tried in order.
    """
    group: str = Field(min_length=1, description="Preset group id (e.g. 'mainnet')")
    kind: ConnectionKind = Field(default=ConnectionKind.JRPC, alias="type")
    endpoints: List[EndpointParams] = Field(min_length=1)

    model_config = {"frozen": True, "populate_by_name": True}

    @field_validator("endpoints", mode="before")
    @classmethod
    def _coerce_endpoints(cls, value):
        if isinstance(value, (str, dict)):
            value = [value]
        return [{"endpoint": item} if isinstance(item, str) else item for item in value]


DEFAULT_NETWORK_GROUP = "mainnetJrpc"

NETWORK_PRESETS: Dict[str, ConnectionPreset] = {
    "mainnetJrpc": ConnectionPreset(
        group="mainnet",
        kind=ConnectionKind.JRPC,
        endpoints=[
            EndpointParams(endpoint="https://jrpc.everwallet.net/rpc"),
            EndpointParams(endpoint="https://extension-api.broxus.com/rpc"),
        ],
    ),
    "testnetJrpc": ConnectionPreset(
        group="testnet",
        kind=ConnectionKind.JRPC,
        endpoints=[EndpointParams(endpoint="https://jrpc-testnet.venom.foundation/rpc")],
    ),
    "local": ConnectionPreset(
        group="localnet",
        kind=ConnectionKind.JRPC,
        endpoints=[EndpointParams(endpoint="http://127.0.0.1:8081/rpc", timeout=2.0)],
    ),
}


def resolve_preset(connection: Union[str, ConnectionPreset, dict]) -> ConnectionPreset:
    """
    Resolve a preset name or raw preset description.

    Raises:
        KeyError: If a preset name is unknown
    """
    if isinstance(connection, ConnectionPreset):
        return connection
    if isinstance(connection, str):
        try:
            return NETWORK_PRESETS[connection]
        except KeyError:
            raise KeyError(f"Unknown connection preset: '{connection}'") from None
    return ConnectionPreset.model_validate(connection)


__all__ = [
    "ConnectionKind",
    "EndpointParams",
    "ConnectionPreset",
    "DEFAULT_NETWORK_GROUP",
    "NETWORK_PRESETS",
    "resolve_preset",
]
