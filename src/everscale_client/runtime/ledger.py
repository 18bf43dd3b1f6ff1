"""
Ledger runtime interface.

The runtime performs everything that needs protocol knowledge: address
repacking, message construction, ABI decoding, BOC parsing and local
virtual-machine execution. The client only orchestrates around it.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Union

from ..clock import Clock
from .models import (
    DecodedTransaction,
    FullContractState,
    SignedMessage,
    Transaction,
)


class UnsignedMessage(ABC):
    """Message waiting for a signature over ``hash``."""

    @property
    @abstractmethod
    def hash(self) -> str:
        """Hex digest to sign."""

    @property
    @abstractmethod
    def expire_at(self) -> int:
        """Expiration timestamp (unix seconds)."""

    @abstractmethod
    def sign(self, signature: bytes) -> SignedMessage:
        """Attach the signature and produce the final message."""


class LedgerRuntime(ABC):
    """Protocol-level operations consumed by the client."""

    @abstractmethod
    def repack_address(self, address: str) -> str:
        """
        Normalize an address into its canonical form.

        Raises:
            ValueError: If the address is malformed
        """

    @abstractmethod
    def create_external_message(
        self,
        clock: Clock,
        recipient: str,
        abi: str,
        method: str,
        state_init: Optional[str],
        params: Dict[str, Any],
        public_key: str,
        timeout: float,
    ) -> UnsignedMessage:
        """Build an external message expiring ``timeout`` seconds from now."""

    @abstractmethod
    def create_external_message_without_signature(
        self,
        clock: Clock,
        recipient: str,
        abi: str,
        method: str,
        state_init: Optional[str],
        params: Dict[str, Any],
        timeout: float,
    ) -> SignedMessage:
        """Build an external message that needs no signature."""

    @abstractmethod
    def decode_transaction(
        self,
        transaction: Transaction,
        abi: str,
        method: Union[str, List[str], None],
    ) -> Optional[DecodedTransaction]:
        """Decode the function call carried by a transaction."""

    @abstractmethod
    def execute_local(
        self,
        clock: Clock,
        state: FullContractState,
        message: SignedMessage,
    ) -> Transaction:
        """
        Execute a message against an account state without broadcasting.

        A contract that aborts still yields a transaction; only an execution
        that cannot run raises.
        """

    @abstractmethod
    def run_local(
        self,
        clock: Clock,
        state: FullContractState,
        abi: str,
        method: str,
        params: Dict[str, Any],
        responsible: bool = False,
    ) -> Dict[str, Any]:
        """Run a getter locally, returning ``{"output": ..., "code": ...}``."""

    @abstractmethod
    def parse_contract_state(self, raw: Dict[str, Any]) -> Optional[FullContractState]:
        """Parse a transport's raw contract state response."""

    @abstractmethod
    def parse_transaction(self, boc: str) -> Transaction:
        """Parse a raw transaction BOC."""


__all__ = ["UnsignedMessage", "LedgerRuntime"]
