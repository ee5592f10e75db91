"""
ShadowTrade Reward Ledger

One-time reward entitlement per attested (account, collection) pair.
Distribution happens elsewhere; only eligibility and claim bookkeeping
live here.
"""

from __future__ import annotations
import logging
from typing import Callable, List, Optional, Tuple

from shadowtrade.core.records import RewardRecord
from shadowtrade.core.types import Address
from shadowtrade.errors import (
    AlreadyClaimedError,
    AlreadyRecordedError,
    NoAttestationError,
    NoRewardAvailableError,
    UnauthorizedCollectionError,
)
from shadowtrade.protocol.attestation import AttestationRegistry
from shadowtrade.protocol.roles import Role, RoleChecker
from shadowtrade.state.store import PairKey, WriteOnceStore

logger = logging.getLogger(__name__)


class RewardLedger:

    def __init__(
        self,
        attestations: AttestationRegistry,
        roles: RoleChecker,
        clock: Callable[[], int]
    ):
        self.attestations = attestations
        self.roles = roles
        self.clock = clock
        self._rewards: WriteOnceStore[PairKey, RewardRecord] = WriteOnceStore("rewards")

    def record_reward(self, account: Address, collection: Address) -> RewardRecord:
        """
        Record the reward for a verified attestation.

        Raises:
            NoAttestationError: no finalized attestation with verified=True
            AlreadyRecordedError: reward already recorded for the pair
            UnauthorizedCollectionError: collection was removed from the allow-list
        """
        if not self.attestations.is_verified(account, collection):
            raise NoAttestationError(account, collection)

        pair = (account, collection)
        if pair in self._rewards:
            raise AlreadyRecordedError(account, collection)

        amount = self.attestations.reward_amount(collection)
        if amount == 0:
            raise UnauthorizedCollectionError(collection)

        record = RewardRecord(
            account=account,
            collection=collection,
            amount=amount,
            recorded_at=self.clock(),
        )
        self._rewards.put(pair, record)

        logger.info(f"Reward recorded: {account.short()} / {collection.short()}, amount={amount}")
        return record

    def get_reward(self, account: Address, collection: Address) -> Optional[RewardRecord]:
        return self._rewards.get((account, collection))

    def check_eligibility(self, account: Address, collection: Address) -> Tuple[bool, int, bool]:
        """(has_reward, amount, claimed) for the pair."""
        record = self._rewards.get((account, collection))
        if record is None:
            return False, 0, False
        return True, record.amount, record.claimed

    def has_unclaimed(self, account: Address, collection: Address) -> bool:
        record = self._rewards.get((account, collection))
        return record is not None and not record.claimed

    def total_rewards(self, account: Address) -> int:
        return sum(r.amount for r in self._rewards.values() if r.account == account)

    def mark_claimed(self, caller: Address, account: Address, collection: Address) -> RewardRecord:
        """Flag a recorded reward as distributed. Admin only."""
        self.roles.require_role(caller, Role.ADMIN)

        record = self._rewards.get((account, collection))
        if record is None:
            raise NoRewardAvailableError(account, collection)
        if record.claimed:
            raise AlreadyClaimedError(account, collection)

        record.claimed = True
        record.claimed_at = self.clock()
        logger.info(f"Reward claimed: {account.short()} / {collection.short()}")
        return record

    def export(self) -> List[RewardRecord]:
        return self._rewards.values()

    def load(self, records: List[RewardRecord]) -> None:
        self._rewards.clear()
        for record in records:
            self._rewards.load((record.account, record.collection), record)
