"""
ShadowTrade Protocol Components

- Identity Registry
- Trading Engine (price table + balance ledger)
- Reveal & Withdrawal Coordinator
- Attestation Registry
- Reward Ledger
- Access control and the external token ledgers
"""

from shadowtrade.protocol.roles import Role, RoleChecker, RoleRegistry
from shadowtrade.protocol.tokens import TokenLedger, AssetVault
from shadowtrade.protocol.identity import IdentityRegistry
from shadowtrade.protocol.trading import TradingEngine, payment_cost
from shadowtrade.protocol.reveal import RevealCoordinator
from shadowtrade.protocol.attestation import AttestationRegistry
from shadowtrade.protocol.rewards import RewardLedger

__all__ = [
    # Access control
    "Role",
    "RoleChecker",
    "RoleRegistry",
    # Ledgers
    "TokenLedger",
    "AssetVault",
    # Components
    "IdentityRegistry",
    "TradingEngine",
    "payment_cost",
    "RevealCoordinator",
    "AttestationRegistry",
    "RewardLedger",
]
