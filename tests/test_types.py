"""
ShadowTrade Value Type Tests
"""

import pytest

from shadowtrade.core.records import RevealRecord, ShadowIdentity
from shadowtrade.core.types import Address, CiphertextHandle, parse_bytes


class TestAddress:
    """Tests for Address."""

    def test_hex_roundtrip(self):
        """Test hex rendering and parsing."""
        addr = Address(bytes(range(20)))
        assert addr.hex() == "0x" + bytes(range(20)).hex()
        assert Address.from_hex(addr.hex()) == addr

    def test_parse_without_prefix(self):
        """Test parsing bare hex."""
        assert Address.from_hex("11" * 20) == Address(b"\x11" * 20)

    def test_parse_uppercase_prefix(self):
        assert Address.from_hex("0X" + "ab" * 20) == Address(b"\xab" * 20)

    def test_wrong_length_rejected(self):
        """Test that non-20-byte values are rejected."""
        with pytest.raises(ValueError):
            Address(b"\x01" * 19)
        with pytest.raises(ValueError):
            Address.from_hex("0x1234")

    def test_zero(self):
        assert Address.zero().is_zero()
        assert not Address(b"\x01" * 20).is_zero()

    def test_hashable_and_equal(self):
        """Addresses work as dict keys."""
        a = Address(b"\x05" * 20)
        b = Address.from_hex("05" * 20)
        assert {a: 1}[b] == 1

    def test_short(self):
        assert Address(b"\xff" * 20).short() == "0xffffffff"


class TestCiphertextHandle:
    """Tests for CiphertextHandle."""

    def test_null(self):
        assert CiphertextHandle.null().is_null()
        assert CiphertextHandle.null().hex() == "0x" + "00" * 32

    def test_wrong_length_rejected(self):
        with pytest.raises(ValueError):
            CiphertextHandle(b"\x00" * 20)

    def test_from_hex(self):
        h = CiphertextHandle(b"\x42" * 32)
        assert CiphertextHandle.from_hex(h.hex()) == h


class TestRecords:
    """Tests for state records."""

    def test_empty_identity(self):
        """Unregistered accounts read as a zero-valued identity."""
        identity = ShadowIdentity.empty()
        assert not identity.is_registered
        assert identity.registered_at == 0
        assert identity.ciphertext_handle.is_null()

    def test_identity_to_dict(self):
        identity = ShadowIdentity(CiphertextHandle(b"\x01" * 32), True, 99)
        d = identity.to_dict()
        assert d["is_registered"] is True
        assert d["registered_at"] == 99
        assert d["ciphertext_handle"] == "0x" + "01" * 32

    def test_reveal_record_state(self):
        record = RevealRecord(account=Address(b"\x01" * 20), request_id=3)
        assert not record.is_revealed
        assert record.to_dict()["revealed_proxy"] is None

        record.revealed_proxy = Address(b"\x02" * 20)
        assert record.is_revealed


def test_parse_bytes():
    assert parse_bytes("0xdead") == b"\xde\xad"
    assert parse_bytes("beef") == b"\xbe\xef"
