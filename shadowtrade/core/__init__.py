"""
ShadowTrade Protocol Core Data Structures
"""

from shadowtrade.core.types import Address, CiphertextHandle, parse_bytes
from shadowtrade.core.records import (
    RevealState,
    ShadowIdentity,
    RevealRecord,
    PendingVerification,
    AttestationRecord,
    RewardRecord,
)

__all__ = [
    # Types
    "Address",
    "CiphertextHandle",
    "parse_bytes",
    # Records
    "RevealState",
    "ShadowIdentity",
    "RevealRecord",
    "PendingVerification",
    "AttestationRecord",
    "RewardRecord",
]
