"""
ShadowTrade Attestation Registry Tests
"""

import pytest

from shadowtrade.errors import (
    AlreadyCompleteError,
    InvalidAmountError,
    NotRegisteredError,
    UnauthorizedCollectionError,
    UnauthorizedError,
    UnknownRequestError,
)
from shadowtrade.oracle.messages import VerificationRequest


class TestAllowList:
    """Tests for authorize_collection."""

    def test_default_reward(self, protocol, addrs, units):
        assert protocol.attestations.is_authorized(addrs.collection)
        assert protocol.get_reward_amount(addrs.collection) == 1000 * units.UNIT

    def test_custom_reward(self, protocol, addrs):
        protocol.authorize_collection(addrs.owner, addrs.other_collection, reward_amount=5)
        assert protocol.get_reward_amount(addrs.other_collection) == 5

    def test_deauthorize(self, protocol, addrs):
        protocol.authorize_collection(addrs.owner, addrs.collection, authorized=False)
        assert not protocol.attestations.is_authorized(addrs.collection)
        assert protocol.get_reward_amount(addrs.collection) == 0

    def test_admin_only(self, protocol, addrs):
        with pytest.raises(UnauthorizedError):
            protocol.authorize_collection(addrs.alice, addrs.other_collection)
        assert not protocol.attestations.is_authorized(addrs.other_collection)

    def test_zero_reward_rejected(self, protocol, addrs):
        with pytest.raises(InvalidAmountError):
            protocol.authorize_collection(addrs.owner, addrs.other_collection, reward_amount=0)


class TestRequestVerification:
    """Tests for request_verification."""

    def test_request(self, protocol, register, addrs, clock):
        enc = register(addrs.alice, addrs.proxy_a)
        request_id = protocol.request_verification(addrs.alice, addrs.collection)

        pending = protocol.attestations.get_pending(request_id)
        assert pending.account == addrs.alice
        assert pending.collection == addrs.collection
        assert not pending.complete

        assert protocol.outbox.drain() == [VerificationRequest(
            request_id=request_id,
            account=addrs.alice,
            collection=addrs.collection,
            handle=enc.handle,
            requested_at=clock.now,
        )]

    def test_unregistered(self, protocol, addrs):
        with pytest.raises(NotRegisteredError):
            protocol.request_verification(addrs.bob, addrs.collection)

    def test_unauthorized_collection(self, protocol, register, addrs):
        """No pending verification is created for a collection off the allow-list."""
        register(addrs.alice, addrs.proxy_a)
        with pytest.raises(UnauthorizedCollectionError):
            protocol.request_verification(addrs.alice, addrs.other_collection)
        assert protocol.attestations.pending_request_ids() == []
        assert len(protocol.outbox) == 0

    def test_rerequest_supersedes(self, protocol, register, addrs):
        register(addrs.alice, addrs.proxy_a)
        first = protocol.request_verification(addrs.alice, addrs.collection)
        second = protocol.request_verification(addrs.alice, addrs.collection)

        assert protocol.attestations.get_pending(first) is None
        assert protocol.attestations.pending_request_ids() == [second]
        with pytest.raises(UnknownRequestError):
            protocol.on_verification_callback(addrs.oracle, first, True)

    def test_finalized_pair(self, protocol, register, addrs):
        register(addrs.alice, addrs.proxy_a)
        request_id = protocol.request_verification(addrs.alice, addrs.collection)
        protocol.on_verification_callback(addrs.oracle, request_id, False)

        with pytest.raises(AlreadyCompleteError):
            protocol.request_verification(addrs.alice, addrs.collection)


class TestVerificationCallback:
    """Tests for on_verification_callback."""

    def test_finalize(self, protocol, register, addrs, clock):
        register(addrs.alice, addrs.proxy_a)
        request_id = protocol.request_verification(addrs.alice, addrs.collection)
        clock.advance(12)

        record = protocol.on_verification_callback(addrs.oracle, request_id, True)

        assert record.verified
        assert record.verified_at == clock.now
        assert protocol.get_attestation(addrs.alice, addrs.collection) == record
        assert protocol.attestations.get_pending(request_id).complete
        assert protocol.attestations.is_verified(addrs.alice, addrs.collection)

    def test_negative_attestation(self, protocol, register, addrs):
        register(addrs.alice, addrs.proxy_a)
        request_id = protocol.request_verification(addrs.alice, addrs.collection)
        protocol.on_verification_callback(addrs.oracle, request_id, False)

        assert not protocol.get_attestation(addrs.alice, addrs.collection).verified
        assert not protocol.attestations.is_verified(addrs.alice, addrs.collection)

    def test_oracle_only(self, protocol, register, addrs):
        register(addrs.alice, addrs.proxy_a)
        request_id = protocol.request_verification(addrs.alice, addrs.collection)
        with pytest.raises(UnauthorizedError):
            protocol.on_verification_callback(addrs.owner, request_id, True)
        assert protocol.get_attestation(addrs.alice, addrs.collection) is None

    def test_unknown_request(self, protocol, addrs):
        with pytest.raises(UnknownRequestError):
            protocol.on_verification_callback(addrs.oracle, 7, True)

    def test_second_callback(self, protocol, register, addrs):
        """A second callback for the same id fails and changes nothing."""
        register(addrs.alice, addrs.proxy_a)
        request_id = protocol.request_verification(addrs.alice, addrs.collection)
        protocol.on_verification_callback(addrs.oracle, request_id, True)

        with pytest.raises(AlreadyCompleteError):
            protocol.on_verification_callback(addrs.oracle, request_id, False)
        assert protocol.get_attestation(addrs.alice, addrs.collection).verified

    def test_oracle_checks_hidden_holder(self, protocol, register, oracle, addrs):
        """The in-process oracle attests holdings of the hidden proxy."""
        register(addrs.alice, addrs.proxy_a)
        register(addrs.bob, addrs.proxy_b)
        oracle.set_holding(addrs.collection, addrs.proxy_a)

        protocol.request_verification(addrs.alice, addrs.collection)
        protocol.request_verification(addrs.bob, addrs.collection)
        assert oracle.pump() == 2

        assert protocol.attestations.is_verified(addrs.alice, addrs.collection)
        assert not protocol.attestations.is_verified(addrs.bob, addrs.collection)
