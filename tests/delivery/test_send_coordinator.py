"""
Tests for the message delivery state machine.

Each transition is exercised on its own with a mocked subscription
controller, then whole sends are run end to end.
"""

import pytest
from unittest.mock import AsyncMock, Mock

from everscale_client.client.properties import MessageProperties
from everscale_client.delivery.coordinator import (
    LOCAL_MESSAGE_TIMEOUT,
    SendCoordinator,
    SendState,
    best_effort_decode,
    timeout_schedule,
)
from everscale_client.runtime.errors import ErrorCode, ExecutionError, MessageExpired

from helpers import ADDRESS, mk_message, mk_tx


def make_subscriptions(results=None, local_tx=None, local_error=None):
    subscriptions = Mock()
    subscriptions.send_message = AsyncMock(side_effect=list(results or []))
    if local_error is not None:
        subscriptions.send_message_locally = AsyncMock(side_effect=local_error)
    else:
        subscriptions.send_message_locally = AsyncMock(return_value=local_tx or mk_tx(1))
    return subscriptions


def make_compose():
    composed = []

    async def compose(timeout):
        message = mk_message(1_700_000_000 + int(timeout))
        composed.append((timeout, message))
        return message

    return compose, composed


class TestTimeoutSchedule:
    """Test timeout arithmetic."""

    def test_default_schedule(self):
        """Test the exact timeouts for the default properties."""
        assert timeout_schedule(MessageProperties()) == pytest.approx([60, 72, 86.4, 103.68, 124.416])

    def test_single_attempt(self):
        """Test that retry_count=1 yields a single attempt."""
        assert timeout_schedule(MessageProperties(retry_count=1, timeout=1)) == [1]


class TestMessageProperties:
    """Test message property normalization."""

    def test_defaults(self):
        props = MessageProperties()
        assert props.retry_count == 5
        assert props.timeout == 60
        assert props.timeout_grow_factor == 1.2

    def test_clamped_to_minimum(self):
        """Test that counts and timeouts are clamped to at least 1."""
        props = MessageProperties(retryCount=0, timeout=-5)
        assert props.retry_count == 1
        assert props.timeout == 1

    def test_truncated_to_int(self):
        """Test that fractional values are truncated."""
        props = MessageProperties(retry_count=3.9, timeout=30.7)
        assert props.retry_count == 3
        assert props.timeout == 30

    def test_falsy_grow_factor_uses_default(self):
        props = MessageProperties(timeoutGrowFactor=0)
        assert props.timeout_grow_factor == 1.2

    def test_none_uses_default(self):
        props = MessageProperties(retry_count=None, timeout=None)
        assert props.retry_count == 5
        assert props.timeout == 60


class TestTransitions:
    """Test individual state transitions."""

    @pytest.mark.asyncio
    async def test_compose_moves_to_sent(self):
        """Test that composing records the timeout and moves to SENT."""
        coordinator = SendCoordinator(make_subscriptions(), MessageProperties())
        compose, composed = make_compose()
        operation = coordinator.start(ADDRESS, compose)

        assert await coordinator.compose(operation) == SendState.SENT
        assert operation.timeouts == [60]
        assert operation.message is composed[0][1]

    @pytest.mark.asyncio
    async def test_compose_reuses_first_message(self):
        """Test that a pre-built first message is used once."""
        coordinator = SendCoordinator(make_subscriptions(), MessageProperties())
        compose, composed = make_compose()
        first = mk_message(1)
        operation = coordinator.start(ADDRESS, compose, first_message=first)

        await coordinator.compose(operation)
        assert operation.message is first
        assert composed == []

        await coordinator.compose(operation)
        assert operation.message is composed[0][1]

    @pytest.mark.asyncio
    async def test_confirmation_moves_to_confirmed(self):
        tx = mk_tx(10)
        coordinator = SendCoordinator(make_subscriptions([tx]), MessageProperties())
        compose, _ = make_compose()
        operation = coordinator.start(ADDRESS, compose)
        await coordinator.compose(operation)

        assert await coordinator.await_confirmation(operation) == SendState.CONFIRMED
        assert operation.transaction is tx
        assert operation.attempts == 1

    @pytest.mark.asyncio
    async def test_expiry_with_attempts_left_moves_to_retrying(self):
        coordinator = SendCoordinator(make_subscriptions([None]), MessageProperties(retry_count=2))
        compose, _ = make_compose()
        operation = coordinator.start(ADDRESS, compose)
        await coordinator.compose(operation)

        assert await coordinator.await_confirmation(operation) == SendState.RETRYING

    @pytest.mark.asyncio
    async def test_expiry_without_attempts_moves_to_fallback(self):
        coordinator = SendCoordinator(make_subscriptions([None]), MessageProperties(retry_count=1))
        compose, _ = make_compose()
        operation = coordinator.start(ADDRESS, compose)
        await coordinator.compose(operation)

        assert await coordinator.await_confirmation(operation) == SendState.LOCAL_FALLBACK

    def test_retry_grows_timeout(self):
        """Test that retrying multiplies the timeout by the grow factor."""
        coordinator = SendCoordinator(make_subscriptions(), MessageProperties(timeout=10, timeout_grow_factor=2))
        compose, _ = make_compose()
        operation = coordinator.start(ADDRESS, compose)

        assert coordinator.retry(operation) == SendState.COMPOSING
        assert coordinator.retry(operation) == SendState.COMPOSING
        assert operation.timeout == 40

    @pytest.mark.asyncio
    async def test_fallback_reports_exit_code(self):
        """Test that the fallback records the local exit code."""
        subscriptions = make_subscriptions(local_tx=mk_tx(5, exit_code=60, aborted=True))
        coordinator = SendCoordinator(subscriptions, MessageProperties())
        compose, composed = make_compose()
        operation = coordinator.start(ADDRESS, compose)

        assert await coordinator.fall_back(operation) == SendState.EXPIRED
        assert str(operation.error) == "Message expired. Possible exit code: 60"
        assert operation.error.exit_code == 60
        assert composed[0][0] == LOCAL_MESSAGE_TIMEOUT

    @pytest.mark.asyncio
    async def test_fallback_without_exit_code(self):
        coordinator = SendCoordinator(make_subscriptions(local_tx=mk_tx(5)), MessageProperties())
        compose, _ = make_compose()
        operation = coordinator.start(ADDRESS, compose)

        await coordinator.fall_back(operation)
        assert str(operation.error) == "Message expired"

    @pytest.mark.asyncio
    async def test_fallback_local_failure(self):
        """Test that a failing local execution is appended to the message."""
        subscriptions = make_subscriptions(local_error=ExecutionError("Account 0:1 not found"))
        coordinator = SendCoordinator(subscriptions, MessageProperties())
        compose, _ = make_compose()
        operation = coordinator.start(ADDRESS, compose)

        await coordinator.fall_back(operation)
        assert str(operation.error) == "Message expired. Account 0:1 not found"
        assert operation.error.code == ErrorCode.MESSAGE_EXPIRED

    @pytest.mark.asyncio
    async def test_terminal_state_has_no_transition(self):
        coordinator = SendCoordinator(make_subscriptions(), MessageProperties())
        compose, _ = make_compose()

        with pytest.raises(ValueError):
            await coordinator.step(coordinator.start(ADDRESS, compose), SendState.CONFIRMED)


class TestSend:
    """Test complete send operations."""

    @pytest.mark.asyncio
    async def test_confirmed_after_retries(self):
        """Test that retries use the growing timeout schedule."""
        tx = mk_tx(10)
        subscriptions = make_subscriptions([None, None, tx])
        coordinator = SendCoordinator(subscriptions, MessageProperties())
        compose, composed = make_compose()

        outcome = await coordinator.send(ADDRESS, compose, decode=lambda t: {"lt": t.lt})

        assert outcome.state == SendState.CONFIRMED
        assert outcome.transaction is tx
        assert outcome.output == {"lt": 10}
        assert outcome.attempts == 3
        assert outcome.timeouts == pytest.approx([60, 72, 86.4])
        assert [timeout for timeout, _ in composed] == pytest.approx([60, 72, 86.4])
        subscriptions.send_message_locally.assert_not_called()

    @pytest.mark.asyncio
    async def test_retry_budget_exhausted_raises(self):
        """Test the full budget followed by a local fallback."""
        subscriptions = make_subscriptions([None] * 5, local_tx=mk_tx(5, exit_code=100))
        coordinator = SendCoordinator(subscriptions, MessageProperties())
        compose, composed = make_compose()

        with pytest.raises(MessageExpired, match=r"^Message expired. Possible exit code: 100$"):
            await coordinator.send(ADDRESS, compose)

        assert subscriptions.send_message.await_count == 5
        assert [timeout for timeout, _ in composed] == pytest.approx(
            [60, 72, 86.4, 103.68, 124.416, LOCAL_MESSAGE_TIMEOUT])

    @pytest.mark.asyncio
    async def test_forced_local_skips_network(self):
        """Test that local sends never broadcast."""
        local_tx = mk_tx(3, exit_code=0)
        subscriptions = make_subscriptions(local_tx=local_tx)
        coordinator = SendCoordinator(subscriptions, MessageProperties())
        compose, composed = make_compose()

        outcome = await coordinator.send(ADDRESS, compose, local=True)

        assert outcome.state == SendState.CONFIRMED_LOCAL
        assert outcome.transaction is local_tx
        assert outcome.attempts == 0
        assert composed[0][0] == LOCAL_MESSAGE_TIMEOUT
        subscriptions.send_message.assert_not_called()

    @pytest.mark.asyncio
    async def test_decode_failure_yields_no_output(self):
        """Test that a failing decoder does not fail the send."""
        coordinator = SendCoordinator(make_subscriptions([mk_tx(10)]), MessageProperties())
        compose, _ = make_compose()

        def decode(transaction):
            raise ValueError("bad abi")

        outcome = await coordinator.send(ADDRESS, compose, decode=decode)

        assert outcome.state == SendState.CONFIRMED
        assert outcome.output is None


class TestBestEffortDecode:

    def test_without_decoder(self):
        assert best_effort_decode(None, mk_tx(1)) is None

    def test_decoder_result_passed_through(self):
        assert best_effort_decode(lambda tx: "ok", mk_tx(1)) == "ok"


class TestSendOverNetwork:
    """Test sends through a real subscription controller."""

    @pytest.mark.asyncio
    async def test_unwatchable_address_consumes_one_attempt(self, subscriptions, transport, clock):
        """Test that a failed state fetch is retried like an expired attempt."""
        transport.fail_state_reads = 1
        transport.confirm_sends(start_lt=100)

        async def compose(timeout):
            return mk_message(int(clock.now() + timeout))

        coordinator = SendCoordinator(subscriptions, MessageProperties(retry_count=3))
        outcome = await coordinator.send(ADDRESS, compose)

        assert outcome.state == SendState.CONFIRMED
        assert outcome.attempts == 2
        assert outcome.transaction.lt == 100
        assert len(transport.sent) == 1
