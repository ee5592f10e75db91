"""
ShadowTrade Relayer Bridge Tests

The relayer is replaced with an httpx.MockTransport.
"""

import asyncio
import json

import httpx
import pytest

from shadowtrade.core.records import RevealState
from shadowtrade.errors import InvalidParameterError
from shadowtrade.oracle.relayer import RelayerBridge, RelayerClient, RelayerError


class FakeRelayer:
    """In-memory relayer behind an httpx.MockTransport."""

    def __init__(self):
        self.submitted = []
        self.results = []
        self.acked = []
        self.fail_submit_after = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v1/requests":
            if self.fail_submit_after is not None and len(self.submitted) >= self.fail_submit_after:
                return httpx.Response(503)
            self.submitted.append(json.loads(request.content))
            return httpx.Response(202)
        if request.url.path == "/v1/results":
            return httpx.Response(200, json={"results": self.results})
        if request.url.path == "/v1/results/ack":
            self.acked.extend(json.loads(request.content)["request_ids"])
            self.results = []
            return httpx.Response(200, json={"ok": True})
        return httpx.Response(404)


@pytest.fixture
def relayer():
    return FakeRelayer()


@pytest.fixture
def bridge(protocol, relayer, addrs):
    client = RelayerClient("http://relayer.test/", transport=httpx.MockTransport(relayer.handler))
    return RelayerBridge(protocol, client, addrs.oracle, poll_interval=0.01)


class TestRelayerClient:
    """Tests for the HTTP client."""

    def test_error_status_raises(self, async_runner):
        client = RelayerClient(
            "http://relayer.test",
            transport=httpx.MockTransport(lambda request: httpx.Response(500)),
        )

        async def scenario():
            try:
                await client.fetch_results()
            finally:
                await client.close()

        with pytest.raises(RelayerError):
            async_runner(scenario())

    def test_base_url_trailing_slash(self, bridge):
        assert bridge.client.url == "http://relayer.test"


class TestForwardOutbox:
    """Tests for submitting queued requests."""

    def test_submits_in_order(self, bridge, relayer, protocol, register, addrs, async_runner):
        register(addrs.alice, addrs.proxy_a)
        register(addrs.bob, addrs.proxy_b)
        protocol.request_decryption(addrs.alice)
        protocol.request_verification(addrs.bob, addrs.collection)

        sent = async_runner(bridge.forward_outbox())

        assert sent == 2
        assert [m["kind"] for m in relayer.submitted] == ["decryption", "verification"]
        assert relayer.submitted[0]["account"] == addrs.alice.hex()
        assert len(protocol.outbox) == 0

    def test_failure_requeues_rest(self, bridge, relayer, protocol, register, addrs, async_runner):
        """Unsent requests return to the outbox in their original order."""
        register(addrs.alice, addrs.proxy_a)
        register(addrs.bob, addrs.proxy_b)
        protocol.request_decryption(addrs.alice)
        protocol.request_decryption(addrs.bob)
        protocol.request_verification(addrs.alice, addrs.collection)
        relayer.fail_submit_after = 1

        with pytest.raises(RelayerError):
            async_runner(bridge.forward_outbox())

        remaining = protocol.outbox.drain()
        assert [m.kind for m in remaining] == ["decryption", "verification"]
        assert remaining[0].account == addrs.bob


class TestApplyResults:
    """Tests for turning relayer results into callbacks."""

    def test_decryption_result(self, bridge, relayer, protocol, register, toolkit, addrs, async_runner):
        enc = register(addrs.alice, addrs.proxy_a)
        request_id = protocol.request_decryption(addrs.alice)
        result = toolkit.decrypt(enc.handle)
        relayer.results = [{
            "kind": "decryption",
            "request_id": request_id,
            "plaintext": result.plaintext.hex(),
            "proof": "0x" + result.proof.hex(),
        }]

        accepted = async_runner(bridge.poll_results())

        assert accepted == 1
        assert relayer.acked == [request_id]
        assert protocol.get_reveal_state(addrs.alice) == RevealState.REVEALED

    def test_verification_result(self, bridge, relayer, protocol, register, addrs, async_runner):
        register(addrs.alice, addrs.proxy_a)
        request_id = protocol.request_verification(addrs.alice, addrs.collection)
        relayer.results = [{"kind": "verification", "request_id": request_id, "verified": True}]

        assert async_runner(bridge.poll_results()) == 1
        assert protocol.get_attestation(addrs.alice, addrs.collection).verified is True

    def test_rejected_result_still_acknowledged(self, bridge, relayer, protocol, addrs, async_runner):
        relayer.results = [{"kind": "verification", "request_id": 42, "verified": True}]

        assert async_runner(bridge.poll_results()) == 0
        assert relayer.acked == [42]

    def test_forged_proof_rejected(self, bridge, relayer, protocol, register, addrs, async_runner):
        register(addrs.alice, addrs.proxy_a)
        request_id = protocol.request_decryption(addrs.alice)
        relayer.results = [{
            "kind": "decryption",
            "request_id": request_id,
            "plaintext": addrs.proxy_b.hex(),
            "proof": "0x" + "00" * 32,
        }]

        assert async_runner(bridge.poll_results()) == 0
        assert protocol.get_reveal_state(addrs.alice) == RevealState.DECRYPTION_REQUESTED

    def test_unknown_kind(self, bridge):
        with pytest.raises(InvalidParameterError):
            bridge.apply_result({"kind": "mint", "request_id": 1})

    def test_no_results_no_ack(self, bridge, relayer, async_runner):
        assert async_runner(bridge.poll_results()) == 0
        assert relayer.acked == []


class TestBridgeLoop:
    """Tests for the background task."""

    def test_start_tick_stop(self, bridge, relayer, protocol, register, addrs, async_runner):
        register(addrs.alice, addrs.proxy_a)
        protocol.request_decryption(addrs.alice)

        async def scenario():
            await bridge.start()
            await asyncio.sleep(0.05)
            await bridge.stop()

        async_runner(scenario())
        assert len(relayer.submitted) == 1
        assert bridge._task is None


class TestMalformedResults:
    """Malformed relayer results are rejected one by one."""

    def test_missing_field_acknowledged(self, bridge, relayer, protocol, register, toolkit, addrs, async_runner):
        """A broken result does not block the valid one behind it."""
        register(addrs.alice, addrs.proxy_a)
        enc = register(addrs.bob, addrs.proxy_b)
        first = protocol.request_decryption(addrs.alice)
        second = protocol.request_decryption(addrs.bob)
        result = toolkit.decrypt(enc.handle)
        relayer.results = [
            {"kind": "decryption", "request_id": first},
            {
                "kind": "decryption",
                "request_id": second,
                "plaintext": result.plaintext.hex(),
                "proof": "0x" + result.proof.hex(),
            },
        ]

        assert async_runner(bridge.poll_results()) == 1
        assert relayer.acked == [first, second]
        assert protocol.get_reveal_state(addrs.alice) == RevealState.DECRYPTION_REQUESTED
        assert protocol.get_reveal_state(addrs.bob) == RevealState.REVEALED

    @pytest.mark.parametrize("result", [
        {"kind": "decryption", "request_id": "one", "plaintext": "0x00", "proof": "0x00"},
        {"kind": "decryption", "request_id": 1, "plaintext": "0xzz", "proof": "0x00"},
        {"kind": "decryption", "request_id": 1, "plaintext": 7, "proof": "0x00"},
        {"kind": "verification", "request_id": 1, "verified": "false"},
        {"kind": "verification", "request_id": True, "verified": True},
        ["not", "an", "object"],
    ])
    def test_malformed_result_is_invalid_parameter(self, bridge, result):
        with pytest.raises(InvalidParameterError):
            bridge.apply_result(result)

    def test_unparseable_id_still_acknowledged(self, bridge, relayer, async_runner):
        relayer.results = [{"kind": "verification", "request_id": "x", "verified": True}]

        assert async_runner(bridge.poll_results()) == 0
        assert relayer.acked == ["x"]

    def test_loop_survives_bad_payload(self, bridge, relayer, protocol, register, addrs, async_runner):
        """The background task keeps polling after an unexpected error."""
        register(addrs.alice, addrs.proxy_a)
        request_id = protocol.request_verification(addrs.alice, addrs.collection)
        relayer.results = 5

        async def scenario():
            await bridge.start()
            await asyncio.sleep(0.03)
            relayer.results = [{"kind": "verification", "request_id": request_id, "verified": True}]
            await asyncio.sleep(0.05)
            assert not bridge._task.done()
            await bridge.stop()

        async_runner(scenario())
        assert protocol.get_attestation(addrs.alice, addrs.collection).verified is True
