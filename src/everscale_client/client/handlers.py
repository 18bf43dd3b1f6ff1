"""
Provider request handlers.

One coroutine per request variant, selected through ``HANDLERS`` by the
variant's type. Handlers raise ``ClientError`` subclasses; the client turns
them into ``ProviderRpcError``.
"""

import logging
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, Optional

from ..connection.presets import resolve_preset
from ..delivery.coordinator import LOCAL_MESSAGE_TIMEOUT, ComposeFn, DecodeFn
from ..keys.accounts import AccountFetcherContext, AccountsStorage, PrepareMessageParams
from ..keys.keystore import Keystore
from ..runtime.errors import ClientError, SignerNotFound, ValidationError
from ..runtime.models import ContractUpdatesSubscription, FullContractState, SignedMessage, Transaction
from .requests import (
    DEFAULT_PAGE_SIZE,
    ChangeNetwork,
    Disconnect,
    FunctionCall,
    GetAccountsByCodeHash,
    GetFullContractState,
    GetProviderState,
    GetTransaction,
    GetTransactions,
    RequestBase,
    RequestPermissions,
    RunLocal,
    SendExternalMessage,
    SendExternalMessageDelayed,
    SendMessage,
    SendMessageDelayed,
    SendUnsignedExternalMessage,
    Subscribe,
    Unsubscribe,
    UnsubscribeAll,
)
from .session import SUPPORTED_PERMISSIONS, VERSION, Session, convert_version_to_int32

logger = logging.getLogger(__name__)

Handler = Callable[[Session, Any], Awaitable[Any]]


# =============================================================================
# Helpers
# =============================================================================

def _repack(session: Session, address: str) -> str:
    try:
        return session.runtime.repack_address(address)
    except ValueError as e:
        raise ValidationError(str(e), cause=e) from e


def _require_keystore(session: Session) -> Keystore:
    if session.keystore is None:
        raise ValidationError("Keystore not found")
    return session.keystore


def _require_accounts_storage(session: Session) -> AccountsStorage:
    if session.accounts_storage is None:
        raise ValidationError("AccountsStorage not found")
    return session.accounts_storage


def _transaction_dict(transaction: Optional[Transaction]) -> Optional[Dict[str, Any]]:
    return transaction.to_dict() if transaction is not None else None


def _decoder(session: Session, call: FunctionCall) -> DecodeFn:
    def decode(transaction: Transaction) -> Optional[Any]:
        decoded = session.runtime.decode_transaction(transaction, call.abi, call.method)
        return decoded.output if decoded is not None else None
    return decode


async def _fetch_state(session: Session, address: str) -> Optional[FullContractState]:
    async def fetch(transport):
        return await transport.get_full_contract_state(address)
    return await session.connection.use(fetch)


def _first_timeout(session: Session, local: bool) -> float:
    """Expiration of the first message of a delayed send."""
    return LOCAL_MESSAGE_TIMEOUT if local else session.coordinator.properties.timeout


def _delayed_result(address: str, message: SignedMessage) -> Dict[str, Any]:
    return {
        "message": {
            "account": address,
            "hash": message.hash,
            "expireAt": message.expire_at,
        },
    }


async def _send_in_background(session: Session, address: str, compose: ComposeFn,
                              first_message: SignedMessage, local: bool,
                              decode: Optional[DecodeFn] = None) -> None:
    """Finish a delayed send and report its status."""
    transaction: Optional[Transaction] = None
    try:
        outcome = await session.coordinator.send(
            address, compose, decode=decode, local=local, first_message=first_message)
        transaction = outcome.transaction
    except ClientError as e:
        logger.info(f"Delayed message {first_message.hash} was not delivered: {e}")
    except Exception as e:
        logger.error(f"Delayed message {first_message.hash} failed: {e}")

    session.notify("messageStatusUpdated", {
        "address": address,
        "hash": first_message.hash,
        "transaction": _transaction_dict(transaction),
    })


# =============================================================================
# Session
# =============================================================================

async def request_permissions(session: Session, request: RequestPermissions) -> Dict[str, bool]:
    permissions = dict(session.permissions)
    for permission in request.permissions:
        if permission in ("basic", "tonClient"):
            permissions["basic"] = True
        else:
            raise ValidationError(f"Permission '{permission}' is not supported by standalone provider")

    session.permissions = permissions
    session.notify("permissionsChanged", {"permissions": dict(permissions)})
    return dict(permissions)


async def disconnect(session: Session, request: Disconnect) -> None:
    session.permissions = {}
    await session.subscriptions.unsubscribe_from_all_contracts()
    session.notify("permissionsChanged", {"permissions": {}})


async def subscribe(session: Session, request: Subscribe) -> Dict[str, bool]:
    address = _repack(session, request.address)
    kinds = None
    if request.subscriptions is not None:
        kinds = ContractUpdatesSubscription(
            state=request.subscriptions.state,
            transactions=request.subscriptions.transactions,
        )
    snapshot = await session.subscriptions.subscribe_to_contract(address, kinds)
    return snapshot.to_dict()


async def unsubscribe(session: Session, request: Unsubscribe) -> None:
    address = _repack(session, request.address)
    await session.subscriptions.unsubscribe_from_contract(address)


async def unsubscribe_all(session: Session, request: UnsubscribeAll) -> None:
    await session.subscriptions.unsubscribe_from_all_contracts()


async def get_provider_state(session: Session, request: GetProviderState) -> Dict[str, Any]:
    active = session.connection.initialized_transport
    if active is None:
        raise ValidationError("Connection controller was not initialized")

    return {
        "version": VERSION,
        "numericVersion": convert_version_to_int32(VERSION),
        "networkId": active.network_id,
        "selectedConnection": active.group,
        "supportedPermissions": list(SUPPORTED_PERMISSIONS),
        "permissions": dict(session.permissions),
        "subscriptions": session.subscriptions.subscription_states,
    }


async def change_network(session: Session, request: ChangeNetwork) -> Dict[str, Any]:
    try:
        preset = resolve_preset(request.connection)
    except KeyError as e:
        raise ValidationError(e.args[0]) from None

    await session.subscriptions.unsubscribe_from_all_contracts()
    active = await session.connection.switch_preset(preset)

    result = {"networkId": active.network_id, "selectedConnection": active.group}
    session.notify("networkChanged", dict(result))
    return result


# =============================================================================
# Queries
# =============================================================================

async def get_full_contract_state(session: Session, request: GetFullContractState) -> Dict[str, Any]:
    state = await _fetch_state(session, request.address)
    return {"state": state.to_dict() if state is not None else None}


async def get_transactions(session: Session, request: GetTransactions) -> Dict[str, Any]:
    before_lt = request.continuation.lt if request.continuation is not None else None
    limit = request.limit or DEFAULT_PAGE_SIZE

    async def fetch(transport):
        return await transport.get_transactions(request.address, before_lt, limit)

    page = await session.connection.use(fetch)
    return page.to_dict()


async def get_transaction(session: Session, request: GetTransaction) -> Dict[str, Any]:
    async def fetch(transport):
        return await transport.get_transaction(request.hash)

    transaction = await session.connection.use(fetch)
    return {"transaction": _transaction_dict(transaction)}


async def get_accounts_by_code_hash(session: Session, request: GetAccountsByCodeHash) -> Dict[str, Any]:
    limit = request.limit or DEFAULT_PAGE_SIZE

    async def fetch(transport):
        return await transport.get_accounts_by_code_hash(request.code_hash, limit, request.continuation)

    accounts = await session.connection.use(fetch)
    return accounts.to_dict()


async def run_local(session: Session, request: RunLocal) -> Dict[str, Any]:
    if request.cached_state is not None:
        try:
            state = FullContractState.from_dict(request.cached_state)
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationError(f"Invalid cached state: {e}", cause=e) from e
    else:
        state = await _fetch_state(session, request.address)

    if state is None:
        raise ValidationError("Account not found")
    if not state.is_deployed or state.last_transaction_id is None:
        raise ValidationError("Account is not deployed")

    call = request.function_call
    try:
        result = session.runtime.run_local(
            session.clock, state, call.abi, call.method, call.params, request.responsible)
    except Exception as e:
        raise ValidationError(str(e), cause=e) from e

    return {"output": result.get("output"), "code": result.get("code")}


# =============================================================================
# Sends
# =============================================================================

async def _internal_composer(session: Session, request: SendMessage):
    keystore = _require_keystore(session)
    storage = _require_accounts_storage(session)

    sender = _repack(session, request.sender)
    recipient = _repack(session, request.recipient)

    account = await storage.get_account(sender)
    if account is None:
        raise SignerNotFound("Sender not found")

    ctx = AccountFetcherContext(clock=session.clock, keystore=keystore)

    async def compose(timeout: float) -> SignedMessage:
        params = PrepareMessageParams(
            recipient=recipient,
            amount=request.amount,
            bounce=request.bounce,
            timeout=timeout,
            payload=request.payload,
        )
        try:
            return await account.prepare_message(params, ctx)
        except ClientError:
            raise
        except Exception as e:
            raise ValidationError(str(e), cause=e) from e

    return sender, compose


async def _external_composer(session: Session, request: SendExternalMessage):
    keystore = _require_keystore(session)
    recipient = _repack(session, request.recipient)

    signer = await keystore.get_signer(request.public_key)
    if signer is None:
        raise SignerNotFound()

    payload = request.payload

    async def compose(timeout: float) -> SignedMessage:
        try:
            unsigned = session.runtime.create_external_message(
                session.clock, recipient, payload.abi, payload.method,
                request.state_init, payload.params, request.public_key, timeout)
        except Exception as e:
            raise ValidationError(str(e), cause=e) from e

        try:
            signature = await signer.sign(bytes.fromhex(unsigned.hash))
            return unsigned.sign(signature)
        except Exception as e:
            raise ValidationError(str(e), cause=e) from e

    return recipient, compose


async def send_message(session: Session, request: SendMessage) -> Dict[str, Any]:
    sender, compose = await _internal_composer(session, request)
    outcome = await session.coordinator.send(sender, compose, local=request.local)
    return {"transaction": _transaction_dict(outcome.transaction)}


async def send_message_delayed(session: Session, request: SendMessageDelayed) -> Dict[str, Any]:
    sender, compose = await _internal_composer(session, request)
    first_message = await compose(_first_timeout(session, request.local))

    session.spawn(_send_in_background(session, sender, compose, first_message, request.local))
    return _delayed_result(sender, first_message)


async def send_external_message(session: Session, request: SendExternalMessage) -> Dict[str, Any]:
    recipient, compose = await _external_composer(session, request)
    outcome = await session.coordinator.send(
        recipient, compose, decode=_decoder(session, request.payload), local=request.local)
    return {"transaction": _transaction_dict(outcome.transaction), "output": outcome.output}


async def send_external_message_delayed(session: Session,
                                        request: SendExternalMessageDelayed) -> Dict[str, Any]:
    recipient, compose = await _external_composer(session, request)
    first_message = await compose(_first_timeout(session, request.local))

    session.spawn(_send_in_background(
        session, recipient, compose, first_message, request.local,
        decode=_decoder(session, request.payload)))
    return _delayed_result(recipient, first_message)


async def send_unsigned_external_message(session: Session,
                                         request: SendUnsignedExternalMessage) -> Dict[str, Any]:
    recipient = _repack(session, request.recipient)
    payload = request.payload

    async def compose(timeout: float) -> SignedMessage:
        try:
            return session.runtime.create_external_message_without_signature(
                session.clock, recipient, payload.abi, payload.method,
                request.state_init, payload.params, timeout)
        except Exception as e:
            raise ValidationError(str(e), cause=e) from e

    outcome = await session.coordinator.send(
        recipient, compose, decode=_decoder(session, payload), local=request.local)
    return {"transaction": _transaction_dict(outcome.transaction), "output": outcome.output}


HANDLERS: "MappingProxyType[type, Handler]" = MappingProxyType({
    RequestPermissions: request_permissions,
    Disconnect: disconnect,
    Subscribe: subscribe,
    Unsubscribe: unsubscribe,
    UnsubscribeAll: unsubscribe_all,
    GetProviderState: get_provider_state,
    ChangeNetwork: change_network,
    GetFullContractState: get_full_contract_state,
    GetTransactions: get_transactions,
    GetTransaction: get_transaction,
    GetAccountsByCodeHash: get_accounts_by_code_hash,
    RunLocal: run_local,
    SendMessage: send_message,
    SendMessageDelayed: send_message_delayed,
    SendExternalMessage: send_external_message,
    SendExternalMessageDelayed: send_external_message_delayed,
    SendUnsignedExternalMessage: send_unsigned_external_message,
})


async def dispatch(session: Session, request: RequestBase) -> Any:
    """Run the handler for ``request``."""
    return await HANDLERS[type(request)](session, request)


__all__ = ["Handler", "HANDLERS", "dispatch"]
