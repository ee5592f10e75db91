"""
ShadowTrade In-Process Oracle

Plays the decryption oracle for development networks and tests: drains the
protocol's outbox, decrypts handles with the LocalToolkit and answers
through the ORACLE-gated callbacks.
"""

from __future__ import annotations
import logging
from typing import Dict, Set, TYPE_CHECKING

from shadowtrade.core.types import Address
from shadowtrade.crypto.toolkit import LocalToolkit
from shadowtrade.errors import ShadowTradeError
from shadowtrade.oracle.messages import DecryptionRequest, OracleRequest, VerificationRequest

if TYPE_CHECKING:
    from shadowtrade.state.machine import ShadowProtocol

logger = logging.getLogger(__name__)


class MockOracle:
    """
    Oracle holding the toolkit key.

    Collection holdings are registered up front with set_holding; a
    verification succeeds when the hidden proxy address holds the collection.
    """

    def __init__(
        self,
        protocol: "ShadowProtocol",
        toolkit: LocalToolkit,
        oracle_account: Address
    ):
        self.protocol = protocol
        self.toolkit = toolkit
        self.oracle_account = oracle_account
        self._holdings: Dict[Address, Set[Address]] = {}

    def set_holding(self, collection: Address, holder: Address, held: bool = True) -> None:
        holders = self._holdings.setdefault(collection, set())
        if held:
            holders.add(holder)
        else:
            holders.discard(holder)

    def holds(self, collection: Address, holder: Address) -> bool:
        return holder in self._holdings.get(collection, set())

    def pump(self) -> int:
        """
        Answer every queued request.

        Requests the protocol rejects (superseded ids, for instance) and
        requests whose handle this toolkit cannot decrypt are logged and
        dropped; the rest of the batch is still answered.

        Returns:
            Number of callbacks the protocol accepted
        """
        accepted = 0
        for message in self.protocol.outbox.drain():
            try:
                self.deliver(message)
                accepted += 1
            except ShadowTradeError as e:
                logger.warning(f"Oracle callback for {message.kind} #{message.request_id} rejected: {e}")
            except (KeyError, ValueError) as e:
                logger.error(
                    f"Oracle cannot decrypt handle {message.handle.short()} "
                    f"for {message.kind} #{message.request_id}: {e!r}"
                )
        return accepted

    def deliver(self, message: OracleRequest) -> None:
        if isinstance(message, DecryptionRequest):
            self.deliver_decryption(message)
        elif isinstance(message, VerificationRequest):
            self.deliver_verification(message)
        else:
            raise TypeError(f"Unknown oracle request: {message!r}")

    def deliver_decryption(self, request: DecryptionRequest) -> Address:
        result = self.toolkit.decrypt(request.handle)
        return self.protocol.on_decryption_callback(
            self.oracle_account,
            request.request_id,
            result.plaintext,
            result.proof,
        )

    def deliver_verification(self, request: VerificationRequest) -> bool:
        proxy = self.toolkit.decrypt(request.handle).plaintext
        verified = self.holds(request.collection, proxy)
        self.protocol.on_verification_callback(self.oracle_account, request.request_id, verified)
        return verified
