"""
ShadowTrade Attestation Registry

Anonymous NFT-ownership attestation. A registered account asks the oracle
whether its hidden proxy address holds a token of an allow-listed
collection; the ORACLE role answers through on_verification_callback.

Each (account, collection) pair finalizes at most once. A new request for a
pair with a live request supersedes it.
"""

from __future__ import annotations
import logging
from typing import Callable, Dict, List, Optional, Tuple

from shadowtrade.constants import DEFAULT_REWARD_AMOUNT, FIRST_REQUEST_ID
from shadowtrade.core.records import AttestationRecord, PendingVerification
from shadowtrade.core.types import Address
from shadowtrade.errors import (
    AlreadyCompleteError,
    InvalidAmountError,
    UnauthorizedCollectionError,
    UnknownRequestError,
)
from shadowtrade.oracle.messages import Outbox, VerificationRequest
from shadowtrade.protocol.identity import IdentityRegistry
from shadowtrade.protocol.roles import Role, RoleChecker
from shadowtrade.state.store import KeyedStore, PairKey, WriteOnceStore

logger = logging.getLogger(__name__)


class AttestationRegistry:
    """Collection allow-list, pending verifications and finalized attestations."""

    def __init__(
        self,
        identities: IdentityRegistry,
        roles: RoleChecker,
        outbox: Outbox,
        clock: Callable[[], int],
        default_reward_amount: int = DEFAULT_REWARD_AMOUNT
    ):
        self.identities = identities
        self.roles = roles
        self.outbox = outbox
        self.clock = clock
        self.default_reward_amount = default_reward_amount

        self._collections: KeyedStore[Address, int] = KeyedStore("collections")
        self._pending: KeyedStore[int, PendingVerification] = KeyedStore("pending_verifications")
        self._live: Dict[PairKey, int] = {}
        self._attestations: WriteOnceStore[PairKey, AttestationRecord] = WriteOnceStore("attestations")
        self._next_request_id = FIRST_REQUEST_ID

    # =========================================================================
    # Allow-list
    # =========================================================================

    def authorize_collection(
        self,
        caller: Address,
        collection: Address,
        authorized: bool = True,
        reward_amount: Optional[int] = None
    ) -> None:
        """Add or remove a collection from the allow-list. Admin only."""
        self.roles.require_role(caller, Role.ADMIN)

        if not authorized:
            self._collections.pop(collection)
            logger.info(f"Collection {collection.short()} de-authorized")
            return

        amount = self.default_reward_amount if reward_amount is None else reward_amount
        if amount <= 0:
            raise InvalidAmountError(amount, "reward amount must be positive")

        self._collections.put(collection, amount)
        logger.info(f"Collection {collection.short()} authorized, reward={amount}")

    def is_authorized(self, collection: Address) -> bool:
        return collection in self._collections

    def reward_amount(self, collection: Address) -> int:
        return self._collections.get(collection, 0)

    def collections(self) -> List[Tuple[Address, int]]:
        return self._collections.items()

    # =========================================================================
    # Request / callback
    # =========================================================================

    def request_verification(self, account: Address, collection: Address) -> int:
        """
        Ask the oracle to attest account's ownership of collection.

        Raises:
            NotRegisteredError: account never registered
            UnauthorizedCollectionError: collection not on the allow-list
            AlreadyCompleteError: pair already has a finalized attestation
        """
        identity = self.identities.require_registered(account)

        if not self.is_authorized(collection):
            raise UnauthorizedCollectionError(collection)

        pair = (account, collection)
        existing = self._attestations.get(pair)
        if existing is not None:
            raise AlreadyCompleteError(existing.request_id)

        request_id = self._next_request_id
        self._next_request_id += 1
        now = self.clock()

        superseded = self._live.get(pair)
        if superseded is not None:
            self._pending.pop(superseded)
            logger.warning(
                f"Verification request #{superseded} for {account.short()} "
                f"superseded by #{request_id}"
            )

        self._pending.put(request_id, PendingVerification(
            request_id=request_id,
            account=account,
            collection=collection,
            requested_at=now,
        ))
        self._live[pair] = request_id

        self.outbox.emit(VerificationRequest(
            request_id=request_id,
            account=account,
            collection=collection,
            handle=identity.ciphertext_handle,
            requested_at=now,
        ))

        logger.info(
            f"Verification requested: {account.short()} / {collection.short()}, "
            f"request #{request_id}"
        )
        return request_id

    def on_verification_callback(
        self,
        caller: Address,
        request_id: int,
        verified: bool
    ) -> AttestationRecord:
        """
        Finalize the attestation for a pending request.

        Raises:
            UnauthorizedError: caller lacks the ORACLE role
            UnknownRequestError: request never issued or superseded
            AlreadyCompleteError: request already finalized
        """
        self.roles.require_role(caller, Role.ORACLE)

        pending = self._pending.get(request_id)
        if pending is None:
            logger.warning(f"Rejected verification callback for unknown request #{request_id}")
            raise UnknownRequestError(request_id)
        if pending.complete:
            raise AlreadyCompleteError(request_id)

        record = AttestationRecord(
            account=pending.account,
            collection=pending.collection,
            verified=verified,
            verified_at=self.clock(),
            request_id=request_id,
        )
        pair = (pending.account, pending.collection)
        self._attestations.put(pair, record)
        pending.complete = True
        self._live.pop(pair, None)

        logger.info(
            f"Attestation finalized: {pending.account.short()} / "
            f"{pending.collection.short()} verified={verified}"
        )
        return record

    # =========================================================================
    # Reads
    # =========================================================================

    def get_attestation(self, account: Address, collection: Address) -> Optional[AttestationRecord]:
        return self._attestations.get((account, collection))

    def is_verified(self, account: Address, collection: Address) -> bool:
        record = self._attestations.get((account, collection))
        return record is not None and record.verified

    def get_pending(self, request_id: int) -> Optional[PendingVerification]:
        return self._pending.get(request_id)

    def pending_request_ids(self) -> List[int]:
        return sorted(rid for rid, p in self._pending.items() if not p.complete)

    # =========================================================================
    # Persistence
    # =========================================================================

    @property
    def next_request_id(self) -> int:
        return self._next_request_id

    def export(self) -> Tuple[List[PendingVerification], List[AttestationRecord], int]:
        return self._pending.values(), self._attestations.values(), self._next_request_id

    def load(
        self,
        collections: List[Tuple[Address, int]],
        pending: List[PendingVerification],
        attestations: List[AttestationRecord],
        next_request_id: int
    ) -> None:
        self._collections.clear()
        for collection, amount in collections:
            self._collections.put(collection, amount)

        self._pending.clear()
        self._live.clear()
        for entry in pending:
            self._pending.put(entry.request_id, entry)
            if not entry.complete:
                self._live[(entry.account, entry.collection)] = entry.request_id

        self._attestations.clear()
        for record in attestations:
            self._attestations.load((record.account, record.collection), record)

        self._next_request_id = max(next_request_id, FIRST_REQUEST_ID)
