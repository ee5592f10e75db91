"""
ShadowTrade JSON-RPC Methods

All RPC methods for the API server. Addresses, handles and proofs travel as
0x-prefixed hex; amounts travel as decimal strings since they exceed the
53-bit integers most JSON clients handle.

The node trusts the `caller` parameter of privileged calls; authenticating
callers is the job of whatever fronts the node.
"""

from __future__ import annotations
import logging
from typing import Any, List, Optional, TYPE_CHECKING

from shadowtrade import __version__
from shadowtrade.constants import PROTOCOL_VERSION
from shadowtrade.core.types import Address, CiphertextHandle, parse_bytes
from shadowtrade.errors import InvalidParameterError, ShadowTradeError
from shadowtrade.protocol.roles import Role
from shadowtrade.state.machine import get_protocol_info

if TYPE_CHECKING:
    from shadowtrade.node.node import ProtocolNode

logger = logging.getLogger(__name__)


class RPCError(Exception):
    """RPC error with code and message."""
    def __init__(self, code: int, message: str, data: Any = None):
        self.code = code
        self.message = message
        self.data = data
        super().__init__(message)

    @classmethod
    def from_protocol_error(cls, error: ShadowTradeError) -> "RPCError":
        return cls(int(error.code), error.message, error.to_dict())


# Error codes
ERROR_PARSE = -32700
ERROR_INVALID_REQUEST = -32600
ERROR_METHOD_NOT_FOUND = -32601
ERROR_INVALID_PARAMS = -32602
ERROR_INTERNAL = -32603


# ==============================================================================
# Parameter parsing
# ==============================================================================

def parse_address(value: Any, name: str = "address") -> Address:
    if not isinstance(value, str):
        raise InvalidParameterError(name, "expected hex string")
    try:
        return Address.from_hex(value)
    except ValueError as e:
        raise InvalidParameterError(name, str(e)) from e


def parse_handle(value: Any, name: str = "handle") -> CiphertextHandle:
    if not isinstance(value, str):
        raise InvalidParameterError(name, "expected hex string")
    try:
        return CiphertextHandle.from_hex(value)
    except ValueError as e:
        raise InvalidParameterError(name, str(e)) from e


def parse_proof(value: Any, name: str = "proof") -> bytes:
    if not isinstance(value, str):
        raise InvalidParameterError(name, "expected hex string")
    try:
        return parse_bytes(value)
    except ValueError as e:
        raise InvalidParameterError(name, str(e)) from e


def parse_amount(value: Any, name: str = "amount") -> int:
    """Accept an integer or a decimal string; reject floats and booleans."""
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise InvalidParameterError(name, "expected integer or decimal string")
    if isinstance(value, int):
        return value
    try:
        return int(value, 10)
    except ValueError as e:
        raise InvalidParameterError(name, f"not a decimal integer: {value!r}") from e


def parse_request_id(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidParameterError("request_id", "expected positive integer")
    return value


def parse_role(value: Any) -> Role:
    try:
        return Role(value)
    except ValueError as e:
        raise InvalidParameterError("role", f"unknown role {value!r}") from e


def _opt_hex(address: Optional[Address]) -> Optional[str]:
    return address.hex() if address is not None else None


# ==============================================================================
# Status Methods
# ==============================================================================

async def get_status(node: "ProtocolNode") -> dict:
    return node.get_status()


async def get_version(node: "ProtocolNode") -> dict:
    info = get_protocol_info()
    return {
        "protocol_version": PROTOCOL_VERSION,
        "node_version": __version__,
        "network": node.config.name,
        "scaling_factor": str(info["scaling_factor"]),
        "default_reward_amount": str(node.config.protocol.default_reward_amount),
        "operations": info["operations"],
    }


# ==============================================================================
# Identity Methods
# ==============================================================================

async def register(
    node: "ProtocolNode",
    account: str,
    handle: str,
    input_proof: str
) -> dict:
    """
    Register a shadow identity.

    Args:
        account: Registering account
        handle: Ciphertext handle of the encrypted proxy address
        input_proof: Toolkit input proof for (handle, account, contract)

    Returns:
        The stored identity
    """
    identity = node.protocol.register(
        parse_address(account, "account"),
        parse_handle(handle),
        parse_proof(input_proof, "input_proof"),
    )
    node.on_state_change()
    return identity.to_dict()


async def get_registration(node: "ProtocolNode", account: str) -> dict:
    return node.protocol.get_registration(parse_address(account, "account")).to_dict()


# ==============================================================================
# Trading Methods
# ==============================================================================

async def purchase(node: "ProtocolNode", account: str, asset: str, amount: Any) -> dict:
    cost = node.protocol.purchase(
        parse_address(account, "account"),
        parse_address(asset, "asset"),
        parse_amount(amount),
    )
    node.on_state_change()
    return {"cost": str(cost)}


async def set_price(node: "ProtocolNode", caller: str, asset: str, price: Any) -> bool:
    node.protocol.set_price(
        parse_address(caller, "caller"),
        parse_address(asset, "asset"),
        parse_amount(price, "price"),
    )
    node.on_state_change()
    return True


async def get_price(node: "ProtocolNode", asset: str) -> str:
    return str(node.protocol.get_price(parse_address(asset, "asset")))


async def get_balance(node: "ProtocolNode", account: str, asset: str) -> str:
    return str(node.protocol.get_balance(
        parse_address(account, "account"),
        parse_address(asset, "asset"),
    ))


async def quote(node: "ProtocolNode", asset: str, amount: Any) -> str:
    return str(node.protocol.quote(parse_address(asset, "asset"), parse_amount(amount)))


# ==============================================================================
# Reveal Methods
# ==============================================================================

async def request_decryption(node: "ProtocolNode", account: str) -> dict:
    request_id = node.protocol.request_decryption(parse_address(account, "account"))
    node.on_state_change()
    return {"request_id": request_id}


async def decryption_callback(
    node: "ProtocolNode",
    caller: str,
    request_id: int,
    plaintext: str,
    proof: str
) -> dict:
    account = node.protocol.on_decryption_callback(
        parse_address(caller, "caller"),
        parse_request_id(request_id),
        parse_address(plaintext, "plaintext"),
        parse_proof(proof),
    )
    node.on_state_change()
    return {"account": account.hex()}


async def withdraw(node: "ProtocolNode", proxy: str, asset: str) -> dict:
    amount = node.protocol.withdraw(
        parse_address(proxy, "proxy"),
        parse_address(asset, "asset"),
    )
    node.on_state_change()
    return {"amount": str(amount)}


async def get_reveal_state(node: "ProtocolNode", account: str) -> str:
    return node.protocol.get_reveal_state(parse_address(account, "account")).value


async def get_revealed_proxy(node: "ProtocolNode", account: str) -> Optional[str]:
    return _opt_hex(node.protocol.get_revealed_proxy(parse_address(account, "account")))


async def resolve_proxy(node: "ProtocolNode", proxy: str) -> Optional[str]:
    return _opt_hex(node.protocol.resolve_proxy(parse_address(proxy, "proxy")))


# ==============================================================================
# Attestation Methods
# ==============================================================================

async def authorize_collection(
    node: "ProtocolNode",
    caller: str,
    collection: str,
    authorized: bool = True,
    reward_amount: Any = None
) -> bool:
    if not isinstance(authorized, bool):
        raise InvalidParameterError("authorized", "expected boolean")
    node.protocol.authorize_collection(
        parse_address(caller, "caller"),
        parse_address(collection, "collection"),
        authorized,
        None if reward_amount is None else parse_amount(reward_amount, "reward_amount"),
    )
    node.on_state_change()
    return True


async def get_reward_amount(node: "ProtocolNode", collection: str) -> str:
    return str(node.protocol.get_reward_amount(parse_address(collection, "collection")))


async def request_verification(node: "ProtocolNode", account: str, collection: str) -> dict:
    request_id = node.protocol.request_verification(
        parse_address(account, "account"),
        parse_address(collection, "collection"),
    )
    node.on_state_change()
    return {"request_id": request_id}


async def verification_callback(
    node: "ProtocolNode",
    caller: str,
    request_id: int,
    verified: bool
) -> dict:
    if not isinstance(verified, bool):
        raise InvalidParameterError("verified", "expected boolean")
    record = node.protocol.on_verification_callback(
        parse_address(caller, "caller"),
        parse_request_id(request_id),
        verified,
    )
    node.on_state_change()
    return record.to_dict()


async def get_attestation(node: "ProtocolNode", account: str, collection: str) -> Optional[dict]:
    record = node.protocol.get_attestation(
        parse_address(account, "account"),
        parse_address(collection, "collection"),
    )
    return record.to_dict() if record else None


# ==============================================================================
# Reward Methods
# ==============================================================================

def _reward_dict(record) -> dict:
    d = record.to_dict()
    d["amount"] = str(record.amount)
    return d


async def record_reward(node: "ProtocolNode", account: str, collection: str) -> dict:
    record = node.protocol.record_reward(
        parse_address(account, "account"),
        parse_address(collection, "collection"),
    )
    node.on_state_change()
    return _reward_dict(record)


async def get_reward(node: "ProtocolNode", account: str, collection: str) -> Optional[dict]:
    record = node.protocol.get_reward(
        parse_address(account, "account"),
        parse_address(collection, "collection"),
    )
    return _reward_dict(record) if record else None


async def check_reward_eligibility(node: "ProtocolNode", account: str, collection: str) -> dict:
    has_reward, amount, claimed = node.protocol.check_reward_eligibility(
        parse_address(account, "account"),
        parse_address(collection, "collection"),
    )
    return {"has_reward": has_reward, "amount": str(amount), "claimed": claimed}


async def has_unclaimed_reward(node: "ProtocolNode", account: str, collection: str) -> bool:
    return node.protocol.has_unclaimed_reward(
        parse_address(account, "account"),
        parse_address(collection, "collection"),
    )


async def get_total_rewards(node: "ProtocolNode", account: str) -> str:
    return str(node.protocol.get_total_rewards(parse_address(account, "account")))


async def mark_reward_claimed(
    node: "ProtocolNode",
    caller: str,
    account: str,
    collection: str
) -> dict:
    record = node.protocol.mark_reward_claimed(
        parse_address(caller, "caller"),
        parse_address(account, "account"),
        parse_address(collection, "collection"),
    )
    node.on_state_change()
    return _reward_dict(record)


# ==============================================================================
# Role Methods
# ==============================================================================

async def transfer_ownership(node: "ProtocolNode", caller: str, new_owner: str) -> bool:
    node.protocol.transfer_ownership(
        parse_address(caller, "caller"),
        parse_address(new_owner, "new_owner"),
    )
    node.on_state_change()
    return True


async def grant_role(node: "ProtocolNode", caller: str, role: str, account: str) -> bool:
    node.protocol.grant_role(
        parse_address(caller, "caller"),
        parse_role(role),
        parse_address(account, "account"),
    )
    node.on_state_change()
    return True


async def revoke_role(node: "ProtocolNode", caller: str, role: str, account: str) -> bool:
    node.protocol.revoke_role(
        parse_address(caller, "caller"),
        parse_role(role),
        parse_address(account, "account"),
    )
    node.on_state_change()
    return True


# ==============================================================================
# Test-network Methods
# ==============================================================================
# Stand-in payment/asset ledgers and the node's local toolkit. Served only
# while api.dev_methods is enabled.

async def payment_mint(node: "ProtocolNode", to: str, amount: Any) -> str:
    ledger = node.protocol.payment
    recipient = parse_address(to, "to")
    ledger.mint(recipient, parse_amount(amount))
    return str(ledger.balance_of(recipient))


async def payment_approve(
    node: "ProtocolNode",
    owner: str,
    amount: Any,
    spender: Optional[str] = None
) -> bool:
    """Set owner's payment allowance; spender defaults to the protocol contract."""
    node.protocol.payment.approve(
        parse_address(owner, "owner"),
        node.protocol.contract_address if spender is None else parse_address(spender, "spender"),
        parse_amount(amount),
    )
    return True


async def payment_balance(node: "ProtocolNode", account: str) -> str:
    return str(node.protocol.payment.balance_of(parse_address(account, "account")))


async def payment_allowance(node: "ProtocolNode", owner: str, spender: Optional[str] = None) -> str:
    return str(node.protocol.payment.allowance(
        parse_address(owner, "owner"),
        node.protocol.contract_address if spender is None else parse_address(spender, "spender"),
    ))


async def asset_balance(node: "ProtocolNode", holder: str, asset: str) -> str:
    """Withdrawn asset balance held by an address."""
    return str(node.protocol.vault.balance_of(
        parse_address(holder, "holder"),
        parse_address(asset, "asset"),
    ))


async def encrypt_address(node: "ProtocolNode", plaintext: str, account: str) -> dict:
    """
    Encrypt a proxy address with the node's local toolkit.

    Returns:
        handle and input_proof, ready for shadow_register by account
    """
    enc = node.toolkit.encrypt_address(
        parse_address(plaintext, "plaintext"),
        parse_address(account, "account"),
        node.protocol.contract_address,
    )
    node.on_state_change()
    return {"handle": enc.handle.hex(), "input_proof": "0x" + enc.input_proof.hex()}


# ==============================================================================
# Method Registry
# ==============================================================================

METHOD_REGISTRY = {
    # Status
    "shadow_status": get_status,
    "shadow_version": get_version,

    # Identity
    "shadow_register": register,
    "shadow_getRegistration": get_registration,

    # Trading
    "shadow_purchase": purchase,
    "shadow_setPrice": set_price,
    "shadow_getPrice": get_price,
    "shadow_getBalance": get_balance,
    "shadow_quote": quote,

    # Reveal
    "shadow_requestDecryption": request_decryption,
    "shadow_decryptionCallback": decryption_callback,
    "shadow_withdraw": withdraw,
    "shadow_getRevealState": get_reveal_state,
    "shadow_getRevealedProxy": get_revealed_proxy,
    "shadow_resolveProxy": resolve_proxy,

    # Attestation
    "shadow_authorizeCollection": authorize_collection,
    "shadow_getRewardAmount": get_reward_amount,
    "shadow_requestVerification": request_verification,
    "shadow_verificationCallback": verification_callback,
    "shadow_getAttestation": get_attestation,

    # Rewards
    "shadow_recordReward": record_reward,
    "shadow_getReward": get_reward,
    "shadow_checkRewardEligibility": check_reward_eligibility,
    "shadow_hasUnclaimedReward": has_unclaimed_reward,
    "shadow_getTotalRewards": get_total_rewards,
    "shadow_markRewardClaimed": mark_reward_claimed,

    # Roles
    "shadow_transferOwnership": transfer_ownership,
    "shadow_grantRole": grant_role,
    "shadow_revokeRole": revoke_role,

    # Test network
    "shadow_paymentMint": payment_mint,
    "shadow_paymentApprove": payment_approve,
    "shadow_paymentBalance": payment_balance,
    "shadow_paymentAllowance": payment_allowance,
    "shadow_assetBalance": asset_balance,
    "shadow_encryptAddress": encrypt_address,
}


DEV_METHODS = frozenset({
    "shadow_paymentMint",
    "shadow_paymentApprove",
    "shadow_paymentBalance",
    "shadow_paymentAllowance",
    "shadow_assetBalance",
    "shadow_encryptAddress",
})


def get_method(name: str):
    """Get method by name."""
    return METHOD_REGISTRY.get(name)


def list_methods() -> List[str]:
    """List all available methods."""
    return list(METHOD_REGISTRY.keys())
