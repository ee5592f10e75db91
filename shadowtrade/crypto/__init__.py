"""
ShadowTrade Encryption Toolkit

Verification interface consumed by the protocol and a local
pycryptodome-backed implementation for development networks.
"""

from shadowtrade.crypto.toolkit import (
    EncryptedInput,
    DecryptionResult,
    EncryptionToolkit,
    LocalToolkit,
)

__all__ = [
    "EncryptedInput",
    "DecryptionResult",
    "EncryptionToolkit",
    "LocalToolkit",
]
