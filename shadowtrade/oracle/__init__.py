"""
ShadowTrade Oracle Boundary

Outbound request messages, an in-process oracle for development, and the
HTTP bridge to a remote relayer.
"""

from shadowtrade.oracle.messages import (
    DecryptionRequest,
    VerificationRequest,
    OracleRequest,
    Outbox,
)

__all__ = [
    "DecryptionRequest",
    "VerificationRequest",
    "OracleRequest",
    "Outbox",
]
