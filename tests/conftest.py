"""
ShadowTrade Protocol Test Fixtures
"""

import pytest
import asyncio
from types import SimpleNamespace

from shadowtrade.core.types import Address, CiphertextHandle
from shadowtrade.crypto.toolkit import LocalToolkit
from shadowtrade.oracle.mock import MockOracle
from shadowtrade.state.machine import ShadowProtocol


UNIT = 10**18        # one asset unit
USD = 10**6          # one payment token unit
PRICE_X = 2 * USD    # 2.0 per unit of asset X
PRICE_Y = 50 * USD


def make_address(n: int) -> Address:
    return Address(n.to_bytes(20, "big"))


class FakeClock:
    """Deterministic clock; advance() moves it forward."""

    def __init__(self, start: int = 1_700_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int = 1) -> int:
        self.now += seconds
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def addrs() -> SimpleNamespace:
    """Named test addresses."""
    return SimpleNamespace(
        owner=make_address(0xA0A0),
        oracle=make_address(0x0C0C),
        treasury=make_address(0x7E7E),
        contract=make_address(0x5D5D),
        alice=make_address(0xA11CE),
        bob=make_address(0xB0B),
        carol=make_address(0xCA201),
        proxy_a=make_address(0xAAAA0001),
        proxy_b=make_address(0xBBBB0002),
        asset_x=make_address(1),
        asset_y=make_address(2),
        unpriced=make_address(4),
        collection=make_address(0xC011),
        other_collection=make_address(0xC022),
        stranger=make_address(0xDEAD),
    )


@pytest.fixture
def toolkit() -> LocalToolkit:
    return LocalToolkit(bytes(range(32)))


@pytest.fixture
def protocol(addrs, toolkit, clock) -> ShadowProtocol:
    """Protocol with two priced assets and one authorized collection."""
    p = ShadowProtocol(
        owner=addrs.owner,
        toolkit=toolkit,
        contract_address=addrs.contract,
        treasury=addrs.treasury,
        oracles={addrs.oracle},
        clock=clock,
    )
    p.set_price(addrs.owner, addrs.asset_x, PRICE_X)
    p.set_price(addrs.owner, addrs.asset_y, PRICE_Y)
    p.authorize_collection(addrs.owner, addrs.collection)
    return p


@pytest.fixture
def register(protocol, toolkit, addrs):
    """register(account, proxy) -> encrypted input used."""
    def _register(account: Address, proxy: Address):
        enc = toolkit.encrypt_address(proxy, account, addrs.contract)
        protocol.register(account, enc.handle, enc.input_proof)
        return enc
    return _register


@pytest.fixture
def fund(protocol, addrs):
    """fund(account, amount): mint payment tokens and approve the contract."""
    def _fund(account: Address, amount: int, approve: int = None):
        protocol.payment.mint(account, amount)
        protocol.payment.approve(account, addrs.contract, amount if approve is None else approve)
    return _fund


@pytest.fixture
def oracle(protocol, toolkit, addrs) -> MockOracle:
    return MockOracle(protocol, toolkit, addrs.oracle)


@pytest.fixture
def revealed(protocol, register, fund, oracle, addrs):
    """Alice registered with proxy_a, holding 100 X, revealed."""
    register(addrs.alice, addrs.proxy_a)
    fund(addrs.alice, 1_000 * USD)
    protocol.purchase(addrs.alice, addrs.asset_x, 100 * UNIT)
    protocol.request_decryption(addrs.alice)
    oracle.pump()
    return protocol


@pytest.fixture
def null_handle() -> CiphertextHandle:
    return CiphertextHandle.null()


# Async fixtures helper
@pytest.fixture
def async_runner():
    """Helper for running async functions in tests."""
    def runner(coro):
        loop = asyncio.new_event_loop()
        try:
            return loop.run_until_complete(coro)
        finally:
            loop.close()
    return runner


@pytest.fixture
def units() -> SimpleNamespace:
    """Fixed-point units used by the fixtures."""
    return SimpleNamespace(UNIT=UNIT, USD=USD, PRICE_X=PRICE_X, PRICE_Y=PRICE_Y)
