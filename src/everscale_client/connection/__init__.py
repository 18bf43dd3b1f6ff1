"""
Connection management: presets and the connection controller.
"""

from .controller import (
    DEFAULT_HEALTH_CHECK_INTERVAL,
    ActiveConnection,
    ConnectionController,
    TransportFactory,
    create_transport,
)
from .presets import (
    DEFAULT_NETWORK_GROUP,
    NETWORK_PRESETS,
    ConnectionKind,
    ConnectionPreset,
    EndpointParams,
    resolve_preset,
)

__all__ = [
    "DEFAULT_HEALTH_CHECK_INTERVAL",
    "ActiveConnection",
    "ConnectionController",
    "TransportFactory",
    "create_transport",
    "DEFAULT_NETWORK_GROUP",
    "NETWORK_PRESETS",
    "ConnectionKind",
    "ConnectionPreset",
    "EndpointParams",
    "resolve_preset",
]
