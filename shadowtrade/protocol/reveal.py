"""
ShadowTrade Reveal & Withdrawal Coordinator

Two-phase reveal of a shadow identity:

1. request_decryption records an outstanding request id and emits a
   DecryptionRequest for the oracle
2. on_decryption_callback, from the ORACLE role, checks the decryption
   proof and binds the plaintext proxy address to the account

Withdrawals go to the revealed proxy address only, resolved through the
proxy -> account index.

A re-request while one is outstanding supersedes it: the old id stops
being outstanding and its callback is rejected as unknown.
"""

from __future__ import annotations
import logging
from typing import Callable, Dict, List, Optional, Set, Tuple

from shadowtrade.constants import FIRST_REQUEST_ID
from shadowtrade.core.records import RevealRecord, RevealState
from shadowtrade.core.types import Address
from shadowtrade.crypto.toolkit import EncryptionToolkit
from shadowtrade.errors import (
    AlreadyCompleteError,
    AlreadyRevealedError,
    NotRevealedError,
    ProofInvalidError,
    ProxyAlreadyBoundError,
    UnknownRequestError,
    ZeroBalanceError,
)
from shadowtrade.oracle.messages import DecryptionRequest, Outbox
from shadowtrade.protocol.identity import IdentityRegistry
from shadowtrade.protocol.roles import Role, RoleChecker
from shadowtrade.protocol.tokens import AssetVault
from shadowtrade.protocol.trading import TradingEngine
from shadowtrade.state.store import KeyedStore, WriteOnceStore

logger = logging.getLogger(__name__)


class RevealCoordinator:
    """Drives the reveal state machine and gates withdrawals."""

    def __init__(
        self,
        identities: IdentityRegistry,
        trading: TradingEngine,
        roles: RoleChecker,
        toolkit: EncryptionToolkit,
        vault: AssetVault,
        outbox: Outbox,
        clock: Callable[[], int]
    ):
        self.identities = identities
        self.trading = trading
        self.roles = roles
        self.toolkit = toolkit
        self.vault = vault
        self.outbox = outbox
        self.clock = clock

        self._records: KeyedStore[Address, RevealRecord] = KeyedStore("reveal_records")
        self._proxy_index: WriteOnceStore[Address, Address] = WriteOnceStore("proxy_index")
        self._outstanding: Dict[int, Address] = {}
        self._finalized: Set[int] = set()
        self._next_request_id = FIRST_REQUEST_ID

    # =========================================================================
    # Phase 1: request
    # =========================================================================

    def request_decryption(self, account: Address) -> int:
        """
        Ask the oracle to reveal account's proxy address.

        Returns:
            Fresh request id

        Raises:
            NotRegisteredError: account never registered
            AlreadyRevealedError: proxy already revealed
        """
        identity = self.identities.require_registered(account)

        record = self._records.get(account)
        if record is not None and record.is_revealed:
            raise AlreadyRevealedError(account)

        request_id = self._next_request_id
        self._next_request_id += 1
        now = self.clock()

        if record is not None and record.request_id in self._outstanding:
            del self._outstanding[record.request_id]
            logger.warning(
                f"Decryption request #{record.request_id} for {account.short()} "
                f"superseded by #{request_id}"
            )

        self._records.put(account, RevealRecord(
            account=account,
            request_id=request_id,
            requested_at=now,
        ))
        self._outstanding[request_id] = account

        self.outbox.emit(DecryptionRequest(
            request_id=request_id,
            account=account,
            handle=identity.ciphertext_handle,
            requested_at=now,
        ))

        logger.info(f"Decryption requested for {account.short()}, request #{request_id}")
        return request_id

    # =========================================================================
    # Phase 2: callback
    # =========================================================================

    def on_decryption_callback(
        self,
        caller: Address,
        request_id: int,
        plaintext: Address,
        proof: bytes
    ) -> Address:
        """
        Accept the oracle's plaintext for an outstanding request.

        Returns:
            The account whose proxy was revealed

        Raises:
            UnauthorizedError: caller lacks the ORACLE role
            AlreadyCompleteError: request already finalized
            UnknownRequestError: request never issued or superseded
            ProofInvalidError: zero plaintext or proof rejected
            ProxyAlreadyBoundError: plaintext already revealed for another account
        """
        self.roles.require_role(caller, Role.ORACLE)

        if request_id in self._finalized:
            raise AlreadyCompleteError(request_id)

        account = self._outstanding.get(request_id)
        if account is None:
            logger.warning(f"Rejected decryption callback for unknown request #{request_id}")
            raise UnknownRequestError(request_id)

        identity = self.identities.require_registered(account)

        if plaintext.is_zero():
            logger.warning(f"Rejected decryption callback #{request_id}: zero plaintext")
            raise ProofInvalidError(request_id, "zero address plaintext")

        if not self.toolkit.verify_decryption_proof(identity.ciphertext_handle, plaintext, proof):
            logger.warning(f"Rejected decryption callback #{request_id}: bad proof")
            raise ProofInvalidError(request_id, "decryption proof rejected")

        if plaintext in self._proxy_index:
            raise ProxyAlreadyBoundError(request_id)

        record = self._records.get(account)
        record.revealed_proxy = plaintext
        record.revealed_at = self.clock()
        self._proxy_index.put(plaintext, account)
        del self._outstanding[request_id]
        self._finalized.add(request_id)

        logger.info(f"Revealed shadow identity of {account.short()} (request #{request_id})")
        return account

    # =========================================================================
    # Withdrawal
    # =========================================================================

    def withdraw(self, proxy: Address, asset: Address) -> int:
        """
        Pay account's full balance of asset out to its revealed proxy.

        Returns:
            Amount withdrawn

        Raises:
            NotRevealedError: proxy is not a revealed address
            ZeroBalanceError: nothing to withdraw
        """
        account = self._proxy_index.get(proxy)
        if account is None:
            raise NotRevealedError(proxy)

        if self.trading.get_balance(account, asset) == 0:
            raise ZeroBalanceError(account, asset)

        amount = self.trading.debit_all(account, asset)
        self.vault.payout(asset, proxy, amount)

        logger.info(f"Withdrawal: {amount} of {asset.short()} to {proxy.short()}")
        return amount

    # =========================================================================
    # Reads
    # =========================================================================

    def get_reveal_state(self, account: Address) -> RevealState:
        if not self.identities.is_registered(account):
            return RevealState.UNREGISTERED
        record = self._records.get(account)
        if record is None:
            return RevealState.REGISTERED
        if record.is_revealed:
            return RevealState.REVEALED
        return RevealState.DECRYPTION_REQUESTED

    def get_record(self, account: Address) -> Optional[RevealRecord]:
        return self._records.get(account)

    def get_revealed_proxy(self, account: Address) -> Optional[Address]:
        record = self._records.get(account)
        return record.revealed_proxy if record else None

    def resolve_proxy(self, proxy: Address) -> Optional[Address]:
        return self._proxy_index.get(proxy)

    def pending_request_ids(self) -> List[int]:
        return sorted(self._outstanding)

    def is_finalized(self, request_id: int) -> bool:
        return request_id in self._finalized

    # =========================================================================
    # Persistence
    # =========================================================================

    @property
    def next_request_id(self) -> int:
        return self._next_request_id

    def export(self) -> Tuple[List[RevealRecord], List[int], int]:
        """(records, finalized ids, next id); outstanding ids follow from records."""
        return self._records.values(), sorted(self._finalized), self._next_request_id

    def load(
        self,
        records: List[RevealRecord],
        finalized: List[int],
        next_request_id: int
    ) -> None:
        self._records.clear()
        self._proxy_index.clear()
        self._outstanding.clear()

        for record in records:
            self._records.put(record.account, record)
            if record.is_revealed:
                self._proxy_index.load(record.revealed_proxy, record.account)
            elif record.request_id:
                self._outstanding[record.request_id] = record.account

        self._finalized = set(finalized)
        self._next_request_id = max(next_request_id, FIRST_REQUEST_ID)
        logger.debug(
            f"Loaded {len(records)} reveal records, "
            f"{len(self._outstanding)} outstanding"
        )
