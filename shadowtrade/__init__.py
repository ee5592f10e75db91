"""
ShadowTrade Protocol
Confidential trading with encrypted shadow identities

Accounts register an encrypted proxy address, buy assets against it without
revealing it, and withdraw only after the address has been decrypted by a
trusted oracle. Attested NFT holders can additionally record one-time rewards.
"""

__version__ = "0.1.0"
__author__ = "ShadowTrade Protocol"

from shadowtrade.constants import PROTOCOL_VERSION, SCALING_FACTOR

__all__ = [
    "PROTOCOL_VERSION",
    "SCALING_FACTOR",
    "__version__",
]
