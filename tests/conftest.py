"""
Test bootstrap:
- Shared fakes for runtime, transport and keys
- Connection and subscription controllers wired to a single fake transport
"""
import pytest
import pytest_asyncio

from everscale_client.clock import Clock
from everscale_client.connection.controller import ConnectionController
from everscale_client.connection.presets import ConnectionPreset
from everscale_client.crypto.ed25519 import Ed25519KeyPair
from everscale_client.keys.keystore import SimpleKeystore
from everscale_client.subscriptions.controller import SubscriptionController

from helpers import FakeRuntime, FakeTransport, TransportFactory

PRIMARY = "https://primary.example/rpc"
FALLBACK = "https://fallback.example/rpc"


@pytest.fixture
def runtime():
    return FakeRuntime()


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def transport():
    return FakeTransport(network_id=42, name="primary")


@pytest.fixture
def preset():
    return ConnectionPreset(group="testnet", endpoints=[PRIMARY, FALLBACK])


@pytest.fixture
def transport_factory(transport):
    return TransportFactory({PRIMARY: transport})


@pytest.fixture
def key_pair():
    """Deterministic Ed25519 key pair."""
    return Ed25519KeyPair.from_seed("everscale-client-tests")


@pytest.fixture
def keystore(key_pair):
    return SimpleKeystore([key_pair])


@pytest.fixture
def notifications():
    """Collected (event, payload) notifications."""
    return []


@pytest_asyncio.fixture
async def connection(runtime, preset, transport_factory):
    controller = ConnectionController(runtime, transport_factory=transport_factory, health_check_interval=0)
    await controller.initialize(preset)
    yield controller
    await controller.close()


@pytest_asyncio.fixture
async def subscriptions(connection, runtime, clock, notifications):
    controller = SubscriptionController(
        connection,
        runtime,
        clock,
        lambda event, payload: notifications.append((event, payload)),
        expiry_tolerance=0,
        resubscribe_interval=0.01,
    )
    yield controller
    await controller.unsubscribe_from_all_contracts()
