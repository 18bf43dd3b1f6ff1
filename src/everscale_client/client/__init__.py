"""
Provider surface of the standalone client.
"""

from .properties import ClientProperties, MessageProperties
from .requests import FunctionCall, ProviderRequest, SUPPORTED_METHODS, parse_request
from .session import VERSION, EventSink, Session
from .standalone import PROVIDER_EVENTS, StandaloneClient

__all__ = [
    "ClientProperties",
    "MessageProperties",
    "FunctionCall",
    "ProviderRequest",
    "SUPPORTED_METHODS",
    "parse_request",
    "VERSION",
    "EventSink",
    "Session",
    "PROVIDER_EVENTS",
    "StandaloneClient",
]
