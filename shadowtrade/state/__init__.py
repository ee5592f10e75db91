"""
ShadowTrade Protocol State

Keyed stores, the protocol state machine facade, and SQLite persistence.
"""

from shadowtrade.state.store import (
    KeyedStore,
    WriteOnceStore,
    BalanceBook,
    PairKey,
)
from shadowtrade.state.storage import (
    ProtocolStorage,
)

__all__ = [
    # Stores
    "KeyedStore",
    "WriteOnceStore",
    "BalanceBook",
    "PairKey",
    # Storage
    "ProtocolStorage",
]
