"""
ShadowTrade Reward Ledger Tests
"""

import pytest

from shadowtrade.errors import (
    AlreadyClaimedError,
    AlreadyRecordedError,
    NoAttestationError,
    NoRewardAvailableError,
    UnauthorizedCollectionError,
    UnauthorizedError,
)


@pytest.fixture
def attest(protocol, register, addrs):
    """attest(account, proxy, collection, verified) -> finalized record."""
    def _attest(account, proxy, collection, verified=True):
        if not protocol.identities.is_registered(account):
            register(account, proxy)
        request_id = protocol.request_verification(account, collection)
        return protocol.on_verification_callback(addrs.oracle, request_id, verified)
    return _attest


class TestRecordReward:
    """Tests for record_reward."""

    def test_record(self, protocol, attest, addrs, clock, units):
        attest(addrs.alice, addrs.proxy_a, addrs.collection)
        record = protocol.record_reward(addrs.alice, addrs.collection)

        assert record.amount == 1000 * units.UNIT
        assert record.recorded_at == clock.now
        assert not record.claimed
        assert protocol.get_reward(addrs.alice, addrs.collection) == record

    def test_without_attestation(self, protocol, register, addrs):
        register(addrs.alice, addrs.proxy_a)
        with pytest.raises(NoAttestationError):
            protocol.record_reward(addrs.alice, addrs.collection)

    def test_pending_attestation(self, protocol, register, addrs):
        """A pending verification is not treated as resolved."""
        register(addrs.alice, addrs.proxy_a)
        protocol.request_verification(addrs.alice, addrs.collection)
        with pytest.raises(NoAttestationError):
            protocol.record_reward(addrs.alice, addrs.collection)

    def test_negative_attestation(self, protocol, attest, addrs):
        attest(addrs.alice, addrs.proxy_a, addrs.collection, verified=False)
        with pytest.raises(NoAttestationError):
            protocol.record_reward(addrs.alice, addrs.collection)
        assert protocol.get_reward(addrs.alice, addrs.collection) is None

    def test_twice(self, protocol, attest, addrs):
        attest(addrs.alice, addrs.proxy_a, addrs.collection)
        first = protocol.record_reward(addrs.alice, addrs.collection)
        with pytest.raises(AlreadyRecordedError):
            protocol.record_reward(addrs.alice, addrs.collection)
        assert protocol.get_reward(addrs.alice, addrs.collection) == first

    def test_deauthorized_collection(self, protocol, attest, addrs):
        attest(addrs.alice, addrs.proxy_a, addrs.collection)
        protocol.authorize_collection(addrs.owner, addrs.collection, authorized=False)
        with pytest.raises(UnauthorizedCollectionError):
            protocol.record_reward(addrs.alice, addrs.collection)

    def test_allow_list_amount(self, protocol, attest, addrs):
        protocol.authorize_collection(addrs.owner, addrs.other_collection, reward_amount=42)
        attest(addrs.alice, addrs.proxy_a, addrs.other_collection)
        assert protocol.record_reward(addrs.alice, addrs.other_collection).amount == 42


class TestRewardQueries:
    """Tests for eligibility reads and claim bookkeeping."""

    def test_eligibility(self, protocol, attest, addrs, units):
        assert protocol.check_reward_eligibility(addrs.alice, addrs.collection) == (False, 0, False)

        attest(addrs.alice, addrs.proxy_a, addrs.collection)
        protocol.record_reward(addrs.alice, addrs.collection)

        assert protocol.check_reward_eligibility(addrs.alice, addrs.collection) == (
            True, 1000 * units.UNIT, False
        )
        assert protocol.has_unclaimed_reward(addrs.alice, addrs.collection)

    def test_total_rewards(self, protocol, attest, addrs, units):
        protocol.authorize_collection(addrs.owner, addrs.other_collection, reward_amount=7)
        attest(addrs.alice, addrs.proxy_a, addrs.collection)
        attest(addrs.alice, addrs.proxy_a, addrs.other_collection)
        attest(addrs.bob, addrs.proxy_b, addrs.collection)
        protocol.record_reward(addrs.alice, addrs.collection)
        protocol.record_reward(addrs.alice, addrs.other_collection)
        protocol.record_reward(addrs.bob, addrs.collection)

        assert protocol.get_total_rewards(addrs.alice) == 1000 * units.UNIT + 7
        assert protocol.get_total_rewards(addrs.carol) == 0

    def test_mark_claimed(self, protocol, attest, addrs, clock):
        attest(addrs.alice, addrs.proxy_a, addrs.collection)
        protocol.record_reward(addrs.alice, addrs.collection)
        clock.advance(60)

        record = protocol.mark_reward_claimed(addrs.owner, addrs.alice, addrs.collection)
        assert record.claimed
        assert record.claimed_at == clock.now
        assert not protocol.has_unclaimed_reward(addrs.alice, addrs.collection)

        with pytest.raises(AlreadyClaimedError):
            protocol.mark_reward_claimed(addrs.owner, addrs.alice, addrs.collection)

    def test_mark_claimed_without_reward(self, protocol, addrs):
        with pytest.raises(NoRewardAvailableError):
            protocol.mark_reward_claimed(addrs.owner, addrs.alice, addrs.collection)

    def test_mark_claimed_admin_only(self, protocol, attest, addrs):
        attest(addrs.alice, addrs.proxy_a, addrs.collection)
        protocol.record_reward(addrs.alice, addrs.collection)
        with pytest.raises(UnauthorizedError):
            protocol.mark_reward_claimed(addrs.alice, addrs.alice, addrs.collection)
        assert protocol.has_unclaimed_reward(addrs.alice, addrs.collection)
