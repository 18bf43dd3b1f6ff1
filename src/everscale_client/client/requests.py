"""
Provider request variants.

Every supported provider method is one Pydantic model with a literal
``method`` field; ``ProviderRequest`` is the discriminated union over all
of them. Parameters use the camelCase names of the provider API.
"""

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

DEFAULT_PAGE_SIZE = 50


# =============================================================================
# Shared parameter models
# =============================================================================

class FunctionCall(BaseModel):
    """Contract function call: ABI json, method name and arguments."""
    abi: str
    method: str
    params: Dict[str, Any] = Field(default_factory=dict)


class UpdatesSubscription(BaseModel):
    state: bool = False
    transactions: bool = False


class TransactionIdParam(BaseModel):
    lt: int
    hash: str


class RequestBase(BaseModel):
    model_config = {"populate_by_name": True, "frozen": True}


# =============================================================================
# Session
# =============================================================================

class RequestPermissions(RequestBase):
    method: Literal["requestPermissions"] = "requestPermissions"
    permissions: List[str]


class Disconnect(RequestBase):
    method: Literal["disconnect"] = "disconnect"


class Subscribe(RequestBase):
    method: Literal["subscribe"] = "subscribe"
    address: str
    subscriptions: Optional[UpdatesSubscription] = None


class Unsubscribe(RequestBase):
    method: Literal["unsubscribe"] = "unsubscribe"
    address: str


class UnsubscribeAll(RequestBase):
    method: Literal["unsubscribeAll"] = "unsubscribeAll"


class GetProviderState(RequestBase):
    method: Literal["getProviderState"] = "getProviderState"


class ChangeNetwork(RequestBase):
    """Switch to another connection preset (name or description)."""
    method: Literal["changeNetwork"] = "changeNetwork"
    connection: Union[str, Dict[str, Any]]


# =============================================================================
# Queries
# =============================================================================

class GetFullContractState(RequestBase):
    method: Literal["getFullContractState"] = "getFullContractState"
    address: str


class GetTransactions(RequestBase):
    method: Literal["getTransactions"] = "getTransactions"
    address: str
    continuation: Optional[TransactionIdParam] = None
    limit: Optional[int] = Field(default=None, ge=0)


class GetTransaction(RequestBase):
    method: Literal["getTransaction"] = "getTransaction"
    hash: str


class GetAccountsByCodeHash(RequestBase):
    method: Literal["getAccountsByCodeHash"] = "getAccountsByCodeHash"
    code_hash: str = Field(alias="codeHash")
    limit: Optional[int] = Field(default=None, ge=0)
    continuation: Optional[str] = None


class RunLocal(RequestBase):
    method: Literal["runLocal"] = "runLocal"
    address: str
    cached_state: Optional[Dict[str, Any]] = Field(default=None, alias="cachedState")
    responsible: bool = False
    function_call: FunctionCall = Field(alias="functionCall")


# =============================================================================
# Sends
# =============================================================================

class SendMessage(RequestBase):
    """Internal message from a stored sender account."""
    method: Literal["sendMessage"] = "sendMessage"
    sender: str
    recipient: str
    amount: int = Field(ge=0)
    bounce: bool
    payload: Optional[FunctionCall] = None
    local: bool = False


class SendMessageDelayed(SendMessage):
    method: Literal["sendMessageDelayed"] = "sendMessageDelayed"


class SendExternalMessage(RequestBase):
    """External message signed by a keystore key."""
    method: Literal["sendExternalMessage"] = "sendExternalMessage"
    public_key: str = Field(alias="publicKey")
    recipient: str
    state_init: Optional[str] = Field(default=None, alias="stateInit")
    payload: FunctionCall
    local: bool = False


class SendExternalMessageDelayed(SendExternalMessage):
    method: Literal["sendExternalMessageDelayed"] = "sendExternalMessageDelayed"


class SendUnsignedExternalMessage(RequestBase):
    """External message that carries no signature."""
    method: Literal["sendUnsignedExternalMessage"] = "sendUnsignedExternalMessage"
    recipient: str
    state_init: Optional[str] = Field(default=None, alias="stateInit")
    payload: FunctionCall
    local: bool = False


ProviderRequest = Annotated[
    Union[
        RequestPermissions,
        Disconnect,
        Subscribe,
        Unsubscribe,
        UnsubscribeAll,
        GetProviderState,
        ChangeNetwork,
        GetFullContractState,
        GetTransactions,
        GetTransaction,
        GetAccountsByCodeHash,
        RunLocal,
        SendMessage,
        SendMessageDelayed,
        SendExternalMessage,
        SendExternalMessageDelayed,
        SendUnsignedExternalMessage,
    ],
    Field(discriminator="method"),
]

_request_adapter: TypeAdapter = TypeAdapter(ProviderRequest)


def parse_request(method: str, params: Optional[Dict[str, Any]] = None) -> RequestBase:
    """
    Validate provider method parameters into a request variant.

    Raises:
        pydantic.ValidationError: If the method is unknown or params are malformed
    """
    return _request_adapter.validate_python({**(params or {}), "method": method})


SUPPORTED_METHODS = tuple(
    variant.model_fields["method"].default
    for variant in (
        RequestPermissions, Disconnect, Subscribe, Unsubscribe, UnsubscribeAll,
        GetProviderState, ChangeNetwork, GetFullContractState, GetTransactions,
        GetTransaction, GetAccountsByCodeHash, RunLocal, SendMessage,
        SendMessageDelayed, SendExternalMessage, SendExternalMessageDelayed,
        SendUnsignedExternalMessage,
    )
)


__all__ = [
    "DEFAULT_PAGE_SIZE",
    "FunctionCall",
    "UpdatesSubscription",
    "TransactionIdParam",
    "RequestBase",
    "RequestPermissions",
    "Disconnect",
    "Subscribe",
    "Unsubscribe",
    "UnsubscribeAll",
    "GetProviderState",
    "ChangeNetwork",
    "GetFullContractState",
    "GetTransactions",
    "GetTransaction",
    "GetAccountsByCodeHash",
    "RunLocal",
    "SendMessage",
    "SendMessageDelayed",
    "SendExternalMessage",
    "SendExternalMessageDelayed",
    "SendUnsignedExternalMessage",
    "ProviderRequest",
    "SUPPORTED_METHODS",
    "parse_request",
]
