"""
Tests for provider request parsing.
"""

import pytest
from pydantic import ValidationError

from everscale_client.client.requests import (
    SUPPORTED_METHODS,
    GetAccountsByCodeHash,
    GetTransactions,
    SendExternalMessage,
    SendExternalMessageDelayed,
    SendMessage,
    Subscribe,
    parse_request,
)

from helpers import ADDRESS

PAYLOAD = {"abi": "{}", "method": "run"}


class TestParseRequest:
    """Test the method discriminator and parameter validation."""

    def test_variant_selected_by_method(self):
        request = parse_request("subscribe", {"address": ADDRESS, "subscriptions": {"state": True}})

        assert isinstance(request, Subscribe)
        assert request.subscriptions.state is True
        assert request.subscriptions.transactions is False

    def test_camel_case_aliases(self):
        """Test that provider camelCase names populate snake_case fields."""
        request = parse_request("sendExternalMessage", {
            "publicKey": "ab" * 32,
            "recipient": ADDRESS,
            "stateInit": "te6cc",
            "payload": PAYLOAD,
        })

        assert isinstance(request, SendExternalMessage)
        assert request.public_key == "ab" * 32
        assert request.state_init == "te6cc"
        assert request.payload.params == {}
        assert request.local is False

    def test_delayed_variant_is_distinct(self):
        request = parse_request("sendExternalMessageDelayed", {
            "publicKey": "ab" * 32,
            "recipient": ADDRESS,
            "payload": PAYLOAD,
        })
        assert type(request) is SendExternalMessageDelayed

    def test_amount_coerced_from_string(self):
        request = parse_request("sendMessage", {
            "sender": ADDRESS,
            "recipient": ADDRESS,
            "amount": "1000000000",
            "bounce": True,
        })

        assert isinstance(request, SendMessage)
        assert request.amount == 1_000_000_000

    def test_negative_amount_rejected(self):
        with pytest.raises(ValidationError):
            parse_request("sendMessage", {
                "sender": ADDRESS,
                "recipient": ADDRESS,
                "amount": -1,
                "bounce": True,
            })

    def test_continuation_lt_parsed(self):
        request = parse_request("getTransactions", {
            "address": ADDRESS,
            "continuation": {"lt": "15", "hash": "00"},
        })

        assert isinstance(request, GetTransactions)
        assert request.continuation.lt == 15
        assert request.limit is None

    def test_code_hash_alias(self):
        request = parse_request("getAccountsByCodeHash", {"codeHash": "c0de", "limit": 10})
        assert isinstance(request, GetAccountsByCodeHash)
        assert request.code_hash == "c0de"

    def test_missing_params_fail(self):
        with pytest.raises(ValidationError):
            parse_request("getFullContractState")

    def test_method_in_params_is_overridden(self):
        """Test that the method argument wins over a method key in params."""
        request = parse_request("subscribe", {"method": "disconnect", "address": ADDRESS})
        assert isinstance(request, Subscribe)

    def test_unknown_method_fails(self):
        with pytest.raises(ValidationError):
            parse_request("signData", {})

    def test_requests_are_frozen(self):
        request = parse_request("subscribe", {"address": ADDRESS})
        with pytest.raises(ValidationError):
            request.address = "0:00"


def test_supported_methods():
    """Test the advertised method list."""
    assert len(SUPPORTED_METHODS) == 17
    assert "sendUnsignedExternalMessage" in SUPPORTED_METHODS
    assert "sendTransfer" not in SUPPORTED_METHODS
