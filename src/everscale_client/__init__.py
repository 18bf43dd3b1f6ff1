"""
Everscale Python client - standalone provider

This package provides a standalone provider for Everscale-compatible networks:
redundant endpoint selection, ref-counted contract subscriptions and message
delivery with retries and local fallback.
"""

# Ledger records and errors
from .runtime.errors import *
from .runtime.models import *
from .runtime.ledger import LedgerRuntime, UnsignedMessage
from .clock import Clock

# Connection management
from .connection import (
    ConnectionController, ActiveConnection, ConnectionKind, ConnectionPreset,
    EndpointParams, NETWORK_PRESETS, create_transport, resolve_preset
)

# Transports
from .transport import Transport, TransportError, JrpcTransport, JrpcError

# Subscriptions and delivery
from .subscriptions import SubscriptionController, SubscriptionSnapshot
from .delivery import SendCoordinator, SendOutcome, SendState, timeout_schedule

# Keys and accounts
from .keys import *
from .crypto import Ed25519KeyPair, Ed25519Error

# Provider client
from .client import (
    StandaloneClient, ClientProperties, MessageProperties, FunctionCall, VERSION
)

__version__ = VERSION
__all__ = [
    # Provider client
    "StandaloneClient",
    "ClientProperties",
    "MessageProperties",
    "FunctionCall",

    # Connection management
    "ConnectionController",
    "ActiveConnection",
    "ConnectionKind",
    "ConnectionPreset",
    "EndpointParams",
    "NETWORK_PRESETS",
    "create_transport",
    "resolve_preset",

    # Transports
    "Transport",
    "TransportError",
    "JrpcTransport",
    "JrpcError",

    # Subscriptions and delivery
    "SubscriptionController",
    "SubscriptionSnapshot",
    "SendCoordinator",
    "SendOutcome",
    "SendState",
    "timeout_schedule",

    # Runtime
    "LedgerRuntime",
    "UnsignedMessage",
    "Clock",

    # Crypto
    "Ed25519KeyPair",
    "Ed25519Error",

    # Errors, records and keys are included via *
]
