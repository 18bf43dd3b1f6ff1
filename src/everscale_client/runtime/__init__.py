"""Ledger runtime interface, records and errors for the standalone client"""

from .errors import ClientError, ErrorCode, ProviderRpcError
from .ledger import LedgerRuntime, UnsignedMessage
from .models import FullContractState, SignedMessage, Transaction, TransactionId

__all__ = [
    "ClientError",
    "ErrorCode",
    "ProviderRpcError",
    "LedgerRuntime",
    "UnsignedMessage",
    "FullContractState",
    "SignedMessage",
    "Transaction",
    "TransactionId",
]
