"""
ShadowTrade Protocol State Records

Per-account and per-pair records kept by the protocol components.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from shadowtrade.core.types import Address, CiphertextHandle


class RevealState(Enum):
    """Reveal lifecycle of an account's shadow identity."""
    UNREGISTERED = "unregistered"
    REGISTERED = "registered"
    DECRYPTION_REQUESTED = "decryption_requested"
    REVEALED = "revealed"


@dataclass(frozen=True)
class ShadowIdentity:
    """
    Encrypted proxy address registered by an account.

    Written once; the handle never changes after registration.
    """
    ciphertext_handle: CiphertextHandle = field(default_factory=CiphertextHandle.null)
    is_registered: bool = False
    registered_at: int = 0

    @classmethod
    def empty(cls) -> "ShadowIdentity":
        """Zero-valued record returned for unregistered accounts."""
        return cls()

    def to_dict(self) -> dict:
        return {
            "ciphertext_handle": self.ciphertext_handle.hex(),
            "is_registered": self.is_registered,
            "registered_at": self.registered_at,
        }


@dataclass
class RevealRecord:
    """
    Decryption request state for one account.

    revealed_proxy is set exactly once, by a callback matching the
    outstanding request_id.
    """
    account: Address
    request_id: int = 0
    requested_at: int = 0
    revealed_proxy: Optional[Address] = None
    revealed_at: int = 0

    @property
    def is_revealed(self) -> bool:
        return self.revealed_proxy is not None

    def to_dict(self) -> dict:
        return {
            "account": self.account.hex(),
            "request_id": self.request_id,
            "requested_at": self.requested_at,
            "revealed_proxy": self.revealed_proxy.hex() if self.revealed_proxy else None,
            "revealed_at": self.revealed_at,
        }


@dataclass
class PendingVerification:
    """Attestation request awaiting an oracle callback."""
    request_id: int
    account: Address
    collection: Address
    requested_at: int
    complete: bool = False

    def to_dict(self) -> dict:
        return {
            "request_id": self.request_id,
            "account": self.account.hex(),
            "collection": self.collection.hex(),
            "requested_at": self.requested_at,
            "complete": self.complete,
        }


@dataclass(frozen=True)
class AttestationRecord:
    """Finalized ownership attestation for an (account, collection) pair."""
    account: Address
    collection: Address
    verified: bool
    verified_at: int
    request_id: int

    def to_dict(self) -> dict:
        return {
            "account": self.account.hex(),
            "collection": self.collection.hex(),
            "verified": self.verified,
            "verified_at": self.verified_at,
            "request_id": self.request_id,
        }


@dataclass
class RewardRecord:
    """One-time reward entitlement for an attested (account, collection) pair."""
    account: Address
    collection: Address
    amount: int
    recorded_at: int
    claimed: bool = False
    claimed_at: int = 0

    def to_dict(self) -> dict:
        return {
            "account": self.account.hex(),
            "collection": self.collection.hex(),
            "amount": self.amount,
            "recorded_at": self.recorded_at,
            "claimed": self.claimed,
            "claimed_at": self.claimed_at,
        }
