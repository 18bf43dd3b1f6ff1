"""
JSON-RPC transport.

Talks JSON-RPC 2.0 over HTTP to a single endpoint using a ``requests``
session. Blocking calls run in the default executor; raw account and
transaction BOCs are handed to the ledger runtime for parsing.
"""

from __future__ import annotations
import asyncio
import json
import logging
import random
from typing import Any, Dict, Optional

import requests

from ..runtime.ledger import LedgerRuntime
from ..runtime.models import (
    AccountsList,
    FullContractState,
    SignedMessage,
    Transaction,
    TransactionId,
    TransactionsBatchInfo,
    TransactionsList,
)
from .base import DEFAULT_POLL_INTERVAL, Transport, TransportError

logger = logging.getLogger(__name__)


class JrpcError(TransportError):
    """Error returned by a JSON-RPC endpoint."""

    def __init__(self, message: str, code: Optional[int] = None, data: Any = None):
        super().__init__(message)
        self.code = code
        self.data = data

    def __str__(self) -> str:
        if self.code is not None:
            return f"JrpcError({self.code}): {super().__str__()}"
        return f"JrpcError: {super().__str__()}"


class JrpcTransport(Transport):
    """
    Transport over a JSON-RPC endpoint.

    Example:
        ```python
        transport = JrpcTransport("https://jrpc.everwallet.net/rpc", runtime)
        network_id = await transport.connect()
        state = await transport.get_full_contract_state(address)
        ```
    """

    def __init__(
        self,
        endpoint: str,
        runtime: LedgerRuntime,
        timeout: float = 10.0,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the transport.

        Args:
            endpoint: JSON-RPC endpoint URL
            runtime: Ledger runtime used to parse BOCs
            timeout: Request timeout in seconds
            poll_interval: Seconds between subscription polls
            session: Optional requests.Session for connection pooling
        """
        self._endpoint = endpoint
        self._runtime = runtime
        self._timeout = timeout
        self._session = session or requests.Session()
        self._owns_session = session is None
        self.poll_interval = poll_interval

    @property
    def endpoint(self) -> str:
        return self._endpoint

    # =========================================================================
    # Low-level RPC
    # =========================================================================

    def _call_sync(self, method: str, params: Optional[Dict[str, Any]] = None) -> Any:
        request_data: Dict[str, Any] = {
            "jsonrpc": "2.0",
            "method": method,
            "id": random.randint(1, 1_000_000),
            "params": params or {},
        }

        try:
            response = self._session.post(
                self._endpoint,
                json=request_data,
                headers={"Content-Type": "application/json"},
                timeout=self._timeout,
            )

            if response.status_code != 200:
                raise JrpcError(
                    f"HTTP {response.status_code}: {response.reason}",
                    code=response.status_code,
                )

            response_data = response.json()

        except requests.exceptions.RequestException as e:
            raise JrpcError(f"HTTP request failed: {e}") from e
        except json.JSONDecodeError as e:
            raise JrpcError(f"Invalid JSON response: {e}") from e

        if "error" in response_data:
            error = response_data["error"]
            raise JrpcError(
                error.get("message", "Unknown error"),
                code=error.get("code"),
                data=error.get("data"),
            )

        return response_data.get("result")

    async def _call(self, method: str, params: Optional[Dict[str, Any]] = None) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._call_sync, method, params)

    # =========================================================================
    # Transport
    # =========================================================================

    async def connect(self) -> int:
        result = await self._call("getCapabilities")
        if not isinstance(result, dict) or "globalId" not in result:
            raise JrpcError(f"Unexpected capabilities response from {self._endpoint}")
        return int(result["globalId"])

    async def close(self) -> None:
        if self._owns_session:
            self._session.close()

    async def get_full_contract_state(self, address: str) -> Optional[FullContractState]:
        result = await self._call("getContractState", {"address": address})
        if not result or result.get("type") == "notExists":
            return None
        return self._runtime.parse_contract_state(result)

    async def get_transactions(self, address: str, before_lt: Optional[int],
                               limit: int) -> TransactionsList:
        params: Dict[str, Any] = {"account": address, "limit": limit}
        if before_lt is not None:
            params["lastTransactionLt"] = str(before_lt)

        raw_transactions = await self._call("getTransactionsList", params) or []
        transactions = [self._runtime.parse_transaction(boc) for boc in raw_transactions]

        continuation = None
        if transactions and transactions[-1].prev_transaction_id is not None \
                and len(transactions) >= limit:
            continuation = transactions[-1].prev_transaction_id

        return TransactionsList(
            transactions=transactions,
            continuation=continuation,
            info=TransactionsBatchInfo.of(transactions),
        )

    async def get_transaction(self, hash: str) -> Optional[Transaction]:
        boc = await self._call("getTransaction", {"id": hash})
        if not boc:
            return None
        return self._runtime.parse_transaction(boc)

    async def get_accounts_by_code_hash(self, code_hash: str, limit: int,
                                        continuation: Optional[str] = None) -> AccountsList:
        params: Dict[str, Any] = {"codeHash": code_hash, "limit": limit}
        if continuation is not None:
            params["continuation"] = continuation

        accounts = await self._call("getAccountsByCodeHash", params) or []
        next_continuation = accounts[-1] if len(accounts) >= limit else None
        return AccountsList(accounts=list(accounts), continuation=next_continuation)

    async def send_message(self, address: str, message: SignedMessage) -> None:
        logger.debug(f"Broadcasting message {message.hash} to {address}")
        await self._call("sendMessage", {"message": message.boc})

    def __repr__(self) -> str:
        return f"JrpcTransport(endpoint='{self._endpoint}')"


__all__ = ["JrpcError", "JrpcTransport"]
