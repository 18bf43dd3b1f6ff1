from .mocks import FakeTransport, FakeRuntime, FakeUnsignedMessage, FakeAccount, TransportFactory
from .factories import ADDRESS, OTHER_ADDRESS, mk_hash, mk_state, mk_tx, mk_message

__all__ = [
    "FakeTransport",
    "FakeRuntime",
    "FakeUnsignedMessage",
    "FakeAccount",
    "TransportFactory",
    "ADDRESS",
    "OTHER_ADDRESS",
    "mk_hash",
    "mk_state",
    "mk_tx",
    "mk_message",
]
