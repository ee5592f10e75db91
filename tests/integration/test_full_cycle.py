"""
ShadowTrade End-to-End Scenarios

Whole-protocol flows through the public call surface, the in-process
oracle and node restarts.
"""

import pytest

from shadowtrade.core.records import RevealState
from shadowtrade.crypto.toolkit import LocalToolkit
from shadowtrade.errors import (
    NotRegisteredError,
    UnauthorizedCollectionError,
    ZeroBalanceError,
)
from shadowtrade.node.config import NodeConfig
from shadowtrade.node.node import ProtocolNode


class TestTradeRevealWithdraw:
    """Anonymous purchase, reveal and withdrawal."""

    def test_full_cycle(self, protocol, register, fund, oracle, addrs, units):
        register(addrs.alice, addrs.proxy_a)
        fund(addrs.alice, 1_000 * units.USD)

        cost = protocol.purchase(addrs.alice, addrs.asset_x, 100 * units.UNIT)
        assert cost == 200 * units.USD
        assert protocol.payment.balance_of(addrs.treasury) == 200 * units.USD
        assert protocol.payment.balance_of(addrs.alice) == 800 * units.USD

        # Nothing links alice to proxy_a before the reveal
        assert protocol.resolve_proxy(addrs.proxy_a) is None

        protocol.request_decryption(addrs.alice)
        assert oracle.pump() == 1
        assert protocol.get_revealed_proxy(addrs.alice) == addrs.proxy_a

        assert protocol.withdraw(addrs.proxy_a, addrs.asset_x) == 100 * units.UNIT
        assert protocol.vault.balance_of(addrs.proxy_a, addrs.asset_x) == 100 * units.UNIT
        assert protocol.get_balance(addrs.alice, addrs.asset_x) == 0

        with pytest.raises(ZeroBalanceError):
            protocol.withdraw(addrs.proxy_a, addrs.asset_x)
        protocol.check_invariants()

    def test_buy_more_after_reveal(self, revealed, oracle, addrs, units):
        revealed.withdraw(addrs.proxy_a, addrs.asset_x)
        revealed.purchase(addrs.alice, addrs.asset_x, 5 * units.UNIT)

        assert revealed.withdraw(addrs.proxy_a, addrs.asset_x) == 5 * units.UNIT
        assert revealed.vault.balance_of(addrs.proxy_a, addrs.asset_x) == 105 * units.UNIT
        assert len(revealed.outbox) == 0

    def test_unregistered_account(self, protocol, fund, addrs, units):
        fund(addrs.bob, 1_000 * units.USD)

        with pytest.raises(NotRegisteredError):
            protocol.purchase(addrs.bob, addrs.asset_x, units.UNIT)
        with pytest.raises(NotRegisteredError):
            protocol.request_decryption(addrs.bob)

        assert protocol.payment.balance_of(addrs.bob) == 1_000 * units.USD
        assert protocol.get_reveal_state(addrs.bob) == RevealState.UNREGISTERED
        assert len(protocol.outbox) == 0


class TestAttestationRewards:
    """Collection ownership attestation and reward bookkeeping."""

    def test_unauthorized_collection(self, protocol, register, addrs):
        register(addrs.alice, addrs.proxy_a)

        with pytest.raises(UnauthorizedCollectionError):
            protocol.request_verification(addrs.alice, addrs.other_collection)

        assert protocol.attestations.pending_request_ids() == []
        assert len(protocol.outbox) == 0

    def test_attest_then_reward(self, protocol, register, oracle, addrs, units):
        register(addrs.alice, addrs.proxy_a)
        oracle.set_holding(addrs.collection, addrs.proxy_a)

        protocol.request_verification(addrs.alice, addrs.collection)
        oracle.pump()
        assert protocol.get_attestation(addrs.alice, addrs.collection).verified

        record = protocol.record_reward(addrs.alice, addrs.collection)
        assert record.amount == 1000 * units.UNIT
        assert protocol.check_reward_eligibility(addrs.alice, addrs.collection) == (True, 1000 * units.UNIT, False)

        protocol.mark_reward_claimed(addrs.owner, addrs.alice, addrs.collection)
        assert not protocol.has_unclaimed_reward(addrs.alice, addrs.collection)
        assert protocol.get_total_rewards(addrs.alice) == 1000 * units.UNIT

    def test_reveal_not_needed_for_attestation(self, protocol, register, oracle, addrs):
        """Attestation checks the hidden address without revealing it."""
        register(addrs.alice, addrs.proxy_a)
        oracle.set_holding(addrs.collection, addrs.proxy_a)

        protocol.request_verification(addrs.alice, addrs.collection)
        oracle.pump()

        assert protocol.get_attestation(addrs.alice, addrs.collection).verified
        assert protocol.get_reveal_state(addrs.alice) == RevealState.REGISTERED
        assert protocol.resolve_proxy(addrs.proxy_a) is None


class TestRestart:
    """State survives a node restart."""

    def make_node(self, data_dir, toolkit, clock):
        config = NodeConfig.default_testnet()
        config.storage.data_dir = str(data_dir)
        config.toolkit_keyfile = None
        config.api.enabled = False
        return ProtocolNode(config, toolkit=toolkit, clock=clock)

    def test_restart_keeps_state(self, tmp_path, toolkit, clock, addrs, units, async_runner):
        first = self.make_node(tmp_path, toolkit, clock)
        p = first.protocol

        async def run_first():
            await first.start()
            p.set_price(addrs.owner, addrs.asset_x, units.PRICE_X)
            enc = toolkit.encrypt_address(addrs.proxy_a, addrs.alice, addrs.contract)
            p.register(addrs.alice, enc.handle, enc.input_proof)
            p.payment.mint(addrs.alice, 1_000 * units.USD)
            p.payment.approve(addrs.alice, addrs.contract, 1_000 * units.USD)
            p.purchase(addrs.alice, addrs.asset_x, 10 * units.UNIT)
            p.request_decryption(addrs.alice)
            first.local_oracle.pump()
            await first.stop()

        async_runner(run_first())

        second = self.make_node(tmp_path, toolkit, clock)

        async def run_second():
            await second.start()
            try:
                q = second.protocol
                assert q.get_price(addrs.asset_x) == units.PRICE_X
                assert q.get_balance(addrs.alice, addrs.asset_x) == 10 * units.UNIT
                assert q.get_revealed_proxy(addrs.alice) == addrs.proxy_a
                assert q.withdraw(addrs.proxy_a, addrs.asset_x) == 10 * units.UNIT
            finally:
                await second.stop()

        async_runner(run_second())

    def test_reveal_after_process_restart(self, tmp_path, toolkit, clock, addrs, async_runner):
        """A new toolkit instance with the same key reveals identities registered earlier."""
        first = self.make_node(tmp_path, toolkit, clock)

        async def run_first():
            await first.start()
            enc = toolkit.encrypt_address(addrs.proxy_a, addrs.alice, addrs.contract)
            first.protocol.register(addrs.alice, enc.handle, enc.input_proof)
            first.on_state_change()
            await first.stop()

        async_runner(run_first())

        second = self.make_node(tmp_path, LocalToolkit(toolkit.master_key), clock)

        async def run_second():
            await second.start()
            try:
                second.protocol.request_decryption(addrs.alice)
                assert second.local_oracle.pump() == 1
                assert second.protocol.get_revealed_proxy(addrs.alice) == addrs.proxy_a
            finally:
                await second.stop()

        async_runner(run_second())
