"""
Ledger records observed or produced by the client.

Records are immutable once observed. Logical times (lt) are kept as ints;
``to_dict`` renders them as decimal strings the way the provider API does.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class TransactionId:
    """Ledger-assigned transaction id."""
    lt: int
    hash: str

    def to_dict(self) -> Dict[str, Any]:
        return {"lt": str(self.lt), "hash": self.hash}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TransactionId":
        return cls(lt=int(data["lt"]), hash=data["hash"])


@dataclass(frozen=True)
class LastTransactionId:
    """Last known transaction of an account; ``hash`` is absent when inexact."""
    is_exact: bool
    lt: int
    hash: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"isExact": self.is_exact, "lt": str(self.lt)}
        if self.hash is not None:
            result["hash"] = self.hash
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LastTransactionId":
        return cls(is_exact=bool(data.get("isExact", True)), lt=int(data["lt"]), hash=data.get("hash"))


@dataclass(frozen=True)
class GenTimings:
    gen_lt: int
    gen_utime: int

    def to_dict(self) -> Dict[str, Any]:
        return {"genLt": str(self.gen_lt), "genUtime": self.gen_utime}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GenTimings":
        return cls(gen_lt=int(data["genLt"]), gen_utime=int(data["genUtime"]))


@dataclass(frozen=True)
class FullContractState:
    """Account state as reported by a transport."""
    balance: int
    gen_timings: GenTimings
    is_deployed: bool
    boc: str
    last_transaction_id: Optional[LastTransactionId] = None
    code_hash: Optional[str] = None

    @property
    def last_lt(self) -> int:
        """Logical time of the last transaction, 0 for untouched accounts."""
        return self.last_transaction_id.lt if self.last_transaction_id else 0

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "balance": str(self.balance),
            "genTimings": self.gen_timings.to_dict(),
            "isDeployed": self.is_deployed,
            "boc": self.boc,
        }
        if self.last_transaction_id is not None:
            result["lastTransactionId"] = self.last_transaction_id.to_dict()
        if self.code_hash is not None:
            result["codeHash"] = self.code_hash
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FullContractState":
        """Parse the provider representation produced by ``to_dict``."""
        last_transaction_id = data.get("lastTransactionId")
        return cls(
            balance=int(data["balance"]),
            gen_timings=GenTimings.from_dict(data["genTimings"]),
            is_deployed=bool(data["isDeployed"]),
            boc=data["boc"],
            last_transaction_id=LastTransactionId.from_dict(last_transaction_id) if last_transaction_id else None,
            code_hash=data.get("codeHash"),
        )


@dataclass(frozen=True)
class Transaction:
    """
    Observed ledger transaction.

    ``in_msg_hash`` is the hash of the message that caused the transaction
    and is what pending messages are correlated against.
    """
    id: TransactionId
    in_msg_hash: str
    created_at: int = 0
    exit_code: Optional[int] = None
    aborted: Optional[bool] = None
    prev_transaction_id: Optional[TransactionId] = None
    raw: Optional[str] = None

    @property
    def lt(self) -> int:
        return self.id.lt

    @property
    def hash(self) -> str:
        return self.id.hash

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "id": self.id.to_dict(),
            "inMessageHash": self.in_msg_hash,
            "createdAt": self.created_at,
        }
        if self.prev_transaction_id is not None:
            result["prevTransactionId"] = self.prev_transaction_id.to_dict()
        if self.exit_code is not None:
            result["exitCode"] = self.exit_code
        if self.aborted is not None:
            result["aborted"] = self.aborted
        if self.raw is not None:
            result["boc"] = self.raw
        return result


@dataclass(frozen=True)
class TransactionsBatchInfo:
    min_lt: int
    max_lt: int

    def to_dict(self) -> Dict[str, Any]:
        return {"minLt": str(self.min_lt), "maxLt": str(self.max_lt)}

    @classmethod
    def of(cls, transactions: List[Transaction]) -> Optional['TransactionsBatchInfo']:
        if not transactions:
            return None
        lts = [tx.lt for tx in transactions]
        return cls(min_lt=min(lts), max_lt=max(lts))


@dataclass(frozen=True)
class TransactionsList:
    """One page of account history, newest first."""
    transactions: List[Transaction]
    continuation: Optional[TransactionId] = None
    info: Optional[TransactionsBatchInfo] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"transactions": [tx.to_dict() for tx in self.transactions]}
        if self.continuation is not None:
            result["continuation"] = self.continuation.to_dict()
        if self.info is not None:
            result["info"] = self.info.to_dict()
        return result


@dataclass(frozen=True)
class AccountsList:
    accounts: List[str]
    continuation: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"accounts": list(self.accounts)}
        if self.continuation is not None:
            result["continuation"] = self.continuation
        return result


@dataclass(frozen=True)
class SignedMessage:
    """A fully assembled outbound message, ready for broadcast."""
    hash: str
    expire_at: int
    boc: str


@dataclass(frozen=True)
class ContractUpdatesSubscription:
    """Kinds of updates requested for an address."""
    state: bool = False
    transactions: bool = False

    def merge(self, other: Optional['ContractUpdatesSubscription']) -> 'ContractUpdatesSubscription':
        if other is None:
            return self
        return replace(self, state=self.state or other.state,
                       transactions=self.transactions or other.transactions)

    def to_dict(self) -> Dict[str, bool]:
        return {"state": self.state, "transactions": self.transactions}


@dataclass
class DecodedTransaction:
    method: str
    input: Dict[str, Any] = field(default_factory=dict)
    output: Optional[Dict[str, Any]] = None


__all__ = [
    "TransactionId",
    "LastTransactionId",
    "GenTimings",
    "FullContractState",
    "Transaction",
    "TransactionsBatchInfo",
    "TransactionsList",
    "AccountsList",
    "SignedMessage",
    "ContractUpdatesSubscription",
    "DecodedTransaction",
]
