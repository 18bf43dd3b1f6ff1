"""
Transport layer for the standalone client.

Provides the transport interface and the JSON-RPC implementation.
"""

from .base import (
    ContractEvent,
    ContractStateChanged,
    Transport,
    TransportError,
    TransactionsFound,
)
from .jrpc import JrpcError, JrpcTransport

__all__ = [
    "ContractEvent",
    "ContractStateChanged",
    "Transport",
    "TransportError",
    "TransactionsFound",
    "JrpcError",
    "JrpcTransport",
]
