"""
ShadowTrade Protocol Value Types

Addresses and ciphertext handles are fixed-size byte strings rendered as
0x-prefixed lowercase hex.
"""

from __future__ import annotations
from dataclasses import dataclass, field

from shadowtrade.constants import (
    ADDRESS_SIZE,
    HANDLE_SIZE,
    HEX_PREFIX,
    LOG_HEX_CHARS,
)


def _strip_prefix(hex_string: str) -> str:
    if hex_string[:2].lower() == HEX_PREFIX:
        return hex_string[2:]
    return hex_string


@dataclass(frozen=True, slots=True)
class Address:
    """
    Account, asset or collection address.

    SIZE: 20 bytes
    """
    data: bytes = field(default_factory=lambda: bytes(ADDRESS_SIZE))

    def __post_init__(self):
        if len(self.data) != ADDRESS_SIZE:
            raise ValueError(f"Address must be {ADDRESS_SIZE} bytes, got {len(self.data)}")

    def __bytes__(self) -> bytes:
        return self.data

    def __repr__(self) -> str:
        return f"Address({self.short()}...)"

    def __str__(self) -> str:
        return self.hex()

    def hex(self) -> str:
        return HEX_PREFIX + self.data.hex()

    def short(self) -> str:
        """Shortened hex for log lines."""
        return self.hex()[:LOG_HEX_CHARS]

    def is_zero(self) -> bool:
        return self.data == bytes(ADDRESS_SIZE)

    @classmethod
    def from_hex(cls, hex_string: str) -> Address:
        return cls(bytes.fromhex(_strip_prefix(hex_string)))

    @classmethod
    def zero(cls) -> Address:
        return cls(bytes(ADDRESS_SIZE))


@dataclass(frozen=True, slots=True)
class CiphertextHandle:
    """
    Opaque reference to an encrypted value held by the encryption toolkit.

    SIZE: 32 bytes
    The all-zero handle is the null handle of unregistered accounts.
    """
    data: bytes = field(default_factory=lambda: bytes(HANDLE_SIZE))

    def __post_init__(self):
        if len(self.data) != HANDLE_SIZE:
            raise ValueError(f"CiphertextHandle must be {HANDLE_SIZE} bytes, got {len(self.data)}")

    def __bytes__(self) -> bytes:
        return self.data

    def __repr__(self) -> str:
        return f"CiphertextHandle({self.short()}...)"

    def hex(self) -> str:
        return HEX_PREFIX + self.data.hex()

    def short(self) -> str:
        return self.hex()[:LOG_HEX_CHARS]

    def is_null(self) -> bool:
        return self.data == bytes(HANDLE_SIZE)

    @classmethod
    def from_hex(cls, hex_string: str) -> CiphertextHandle:
        return cls(bytes.fromhex(_strip_prefix(hex_string)))

    @classmethod
    def null(cls) -> CiphertextHandle:
        return cls(bytes(HANDLE_SIZE))


def parse_bytes(hex_string: str) -> bytes:
    """Parse 0x-prefixed or bare hex into raw bytes (proofs, signatures)."""
    return bytes.fromhex(_strip_prefix(hex_string))
