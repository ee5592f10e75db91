"""
ShadowTrade Identity Registry

One ciphertext-backed shadow identity per account. Registration happens at
most once; the handle is immutable afterwards.
"""

from __future__ import annotations
import logging
from typing import Callable, List, Tuple

from shadowtrade.core.records import ShadowIdentity
from shadowtrade.core.types import Address, CiphertextHandle
from shadowtrade.crypto.toolkit import EncryptionToolkit
from shadowtrade.errors import (
    AlreadyRegisteredError,
    InvalidProofError,
    NotRegisteredError,
)
from shadowtrade.state.store import WriteOnceStore

logger = logging.getLogger(__name__)


class IdentityRegistry:
    """
    Write-once registry of shadow identities.

    Input proofs are checked against (handle, account, contract) by the
    encryption toolkit before anything is stored.
    """

    def __init__(
        self,
        toolkit: EncryptionToolkit,
        contract_address: Address,
        clock: Callable[[], int]
    ):
        self.toolkit = toolkit
        self.contract_address = contract_address
        self.clock = clock
        self._identities: WriteOnceStore[Address, ShadowIdentity] = WriteOnceStore("identities")

    def register(
        self,
        account: Address,
        handle: CiphertextHandle,
        input_proof: bytes
    ) -> ShadowIdentity:
        """
        Register account's encrypted proxy address.

        Raises:
            AlreadyRegisteredError: account registered before
            InvalidProofError: null handle or proof rejected by the toolkit
        """
        if account in self._identities:
            raise AlreadyRegisteredError(account)

        if handle.is_null():
            raise InvalidProofError(account)

        if not self.toolkit.verify_input_proof(handle, input_proof, account, self.contract_address):
            raise InvalidProofError(account)

        identity = ShadowIdentity(
            ciphertext_handle=handle,
            is_registered=True,
            registered_at=self.clock(),
        )
        self._identities.put(account, identity)

        logger.info(f"Registered shadow identity for {account.short()}, handle={handle.short()}")
        return identity

    def get_registration(self, account: Address) -> ShadowIdentity:
        """Identity of account, or the zero-valued record if unregistered."""
        return self._identities.get(account) or ShadowIdentity.empty()

    def is_registered(self, account: Address) -> bool:
        return account in self._identities

    def require_registered(self, account: Address) -> ShadowIdentity:
        identity = self._identities.get(account)
        if identity is None:
            raise NotRegisteredError(account)
        return identity

    def __len__(self) -> int:
        return len(self._identities)

    # =========================================================================
    # Persistence
    # =========================================================================

    def export(self) -> List[Tuple[Address, ShadowIdentity]]:
        return self._identities.items()

    def load(self, entries: List[Tuple[Address, ShadowIdentity]]) -> None:
        self._identities.clear()
        for account, identity in entries:
            self._identities.load(account, identity)
