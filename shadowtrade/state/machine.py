"""
ShadowTrade Protocol State Machine

ShadowProtocol wires the protocol components together and exposes the
contract-level call surface. Each call is atomic: every check runs before
the first write, so a raised ShadowTradeError leaves state unchanged.
"""

from __future__ import annotations
import logging
import time
from typing import Callable, Optional, Set, Tuple

from shadowtrade.constants import (
    DEFAULT_REWARD_AMOUNT,
    PROTOCOL_VERSION,
    SCALING_FACTOR,
)
from shadowtrade.core.records import (
    AttestationRecord,
    RevealState,
    RewardRecord,
    ShadowIdentity,
)
from shadowtrade.core.types import Address, CiphertextHandle
from shadowtrade.crypto.toolkit import EncryptionToolkit
from shadowtrade.oracle.messages import Outbox
from shadowtrade.protocol.attestation import AttestationRegistry
from shadowtrade.protocol.identity import IdentityRegistry
from shadowtrade.protocol.reveal import RevealCoordinator
from shadowtrade.protocol.rewards import RewardLedger
from shadowtrade.protocol.roles import Role, RoleRegistry
from shadowtrade.protocol.tokens import AssetVault, TokenLedger
from shadowtrade.protocol.trading import TradingEngine

logger = logging.getLogger(__name__)


def unix_time() -> int:
    return int(time.time())


class ShadowProtocol:
    """
    Confidential trading protocol.

    Components, leaves first:
    - identities: IdentityRegistry
    - attestations: AttestationRegistry
    - rewards: RewardLedger
    - trading: TradingEngine (price table + balances)
    - reveal: RevealCoordinator

    Oracle requests are queued on `outbox`; results arrive through the
    on_*_callback methods.
    """

    def __init__(
        self,
        owner: Address,
        toolkit: EncryptionToolkit,
        contract_address: Address,
        treasury: Address,
        oracles: Optional[Set[Address]] = None,
        payment: Optional[TokenLedger] = None,
        vault: Optional[AssetVault] = None,
        clock: Optional[Callable[[], int]] = None,
        default_reward_amount: int = DEFAULT_REWARD_AMOUNT
    ):
        self.clock = clock or unix_time
        self.contract_address = contract_address
        self.treasury = treasury
        self.toolkit = toolkit
        self.payment = payment if payment is not None else TokenLedger()
        self.vault = vault if vault is not None else AssetVault()
        self.outbox = Outbox()

        self.roles = RoleRegistry(owner, oracles)
        self.identities = IdentityRegistry(toolkit, contract_address, self.clock)
        self.trading = TradingEngine(
            self.identities, self.roles, self.payment, treasury, contract_address
        )
        self.reveal = RevealCoordinator(
            self.identities, self.trading, self.roles, toolkit,
            self.vault, self.outbox, self.clock
        )
        self.attestations = AttestationRegistry(
            self.identities, self.roles, self.outbox, self.clock, default_reward_amount
        )
        self.rewards = RewardLedger(self.attestations, self.roles, self.clock)

        logger.info(
            f"ShadowProtocol initialized: contract={contract_address.short()}, "
            f"owner={owner.short()}"
        )

    # =========================================================================
    # Identity
    # =========================================================================

    def register(
        self,
        account: Address,
        handle: CiphertextHandle,
        input_proof: bytes
    ) -> ShadowIdentity:
        return self.identities.register(account, handle, input_proof)

    def get_registration(self, account: Address) -> ShadowIdentity:
        return self.identities.get_registration(account)

    # =========================================================================
    # Trading
    # =========================================================================

    def purchase(self, account: Address, asset: Address, buy_amount: int) -> int:
        return self.trading.purchase(account, asset, buy_amount)

    def set_price(self, caller: Address, asset: Address, price: int) -> None:
        self.trading.set_price(caller, asset, price)

    def get_price(self, asset: Address) -> int:
        return self.trading.get_price(asset)

    def get_balance(self, account: Address, asset: Address) -> int:
        return self.trading.get_balance(account, asset)

    def quote(self, asset: Address, buy_amount: int) -> int:
        return self.trading.quote(asset, buy_amount)

    # =========================================================================
    # Reveal & withdrawal
    # =========================================================================

    def request_decryption(self, account: Address) -> int:
        return self.reveal.request_decryption(account)

    def on_decryption_callback(
        self,
        caller: Address,
        request_id: int,
        plaintext: Address,
        proof: bytes
    ) -> Address:
        return self.reveal.on_decryption_callback(caller, request_id, plaintext, proof)

    def withdraw(self, proxy: Address, asset: Address) -> int:
        return self.reveal.withdraw(proxy, asset)

    def get_reveal_state(self, account: Address) -> RevealState:
        return self.reveal.get_reveal_state(account)

    def get_revealed_proxy(self, account: Address) -> Optional[Address]:
        return self.reveal.get_revealed_proxy(account)

    def resolve_proxy(self, proxy: Address) -> Optional[Address]:
        return self.reveal.resolve_proxy(proxy)

    # =========================================================================
    # Attestation & rewards
    # =========================================================================

    def authorize_collection(
        self,
        caller: Address,
        collection: Address,
        authorized: bool = True,
        reward_amount: Optional[int] = None
    ) -> None:
        self.attestations.authorize_collection(caller, collection, authorized, reward_amount)

    def get_reward_amount(self, collection: Address) -> int:
        return self.attestations.reward_amount(collection)

    def request_verification(self, account: Address, collection: Address) -> int:
        return self.attestations.request_verification(account, collection)

    def on_verification_callback(
        self,
        caller: Address,
        request_id: int,
        verified: bool
    ) -> AttestationRecord:
        return self.attestations.on_verification_callback(caller, request_id, verified)

    def get_attestation(self, account: Address, collection: Address) -> Optional[AttestationRecord]:
        return self.attestations.get_attestation(account, collection)

    def record_reward(self, account: Address, collection: Address) -> RewardRecord:
        return self.rewards.record_reward(account, collection)

    def get_reward(self, account: Address, collection: Address) -> Optional[RewardRecord]:
        return self.rewards.get_reward(account, collection)

    def check_reward_eligibility(self, account: Address, collection: Address) -> Tuple[bool, int, bool]:
        return self.rewards.check_eligibility(account, collection)

    def has_unclaimed_reward(self, account: Address, collection: Address) -> bool:
        return self.rewards.has_unclaimed(account, collection)

    def get_total_rewards(self, account: Address) -> int:
        return self.rewards.total_rewards(account)

    def mark_reward_claimed(self, caller: Address, account: Address, collection: Address) -> RewardRecord:
        return self.rewards.mark_claimed(caller, account, collection)

    # =========================================================================
    # Roles
    # =========================================================================

    @property
    def owner(self) -> Address:
        return self.roles.owner

    def transfer_ownership(self, caller: Address, new_owner: Address) -> None:
        self.roles.transfer_ownership(caller, new_owner)

    def grant_role(self, caller: Address, role: Role, account: Address) -> None:
        self.roles.grant_role(caller, role, account)

    def revoke_role(self, caller: Address, role: Role, account: Address) -> None:
        self.roles.revoke_role(caller, role, account)

    # =========================================================================
    # Status
    # =========================================================================

    def check_invariants(self) -> None:
        self.trading.balances.check_invariants()

    def get_status(self) -> dict:
        return {
            "contract": self.contract_address.hex(),
            "owner": self.owner.hex(),
            "oracles": sorted(a.hex() for a in self.roles.members(Role.ORACLE)),
            "registered_accounts": len(self.identities),
            "priced_assets": len(self.trading.assets()),
            "pending_decryptions": len(self.reveal.pending_request_ids()),
            "pending_verifications": len(self.attestations.pending_request_ids()),
            "queued_oracle_requests": len(self.outbox),
        }


def get_protocol_info() -> dict:
    """Get information about the protocol call surface."""
    return {
        "version": PROTOCOL_VERSION,
        "operations": [
            "register",
            "purchase",
            "set_price",
            "request_decryption",
            "on_decryption_callback",
            "withdraw",
            "request_verification",
            "on_verification_callback",
            "record_reward",
        ],
        "scaling_factor": SCALING_FACTOR,
        "default_reward_amount": DEFAULT_REWARD_AMOUNT,
    }
