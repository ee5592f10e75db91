"""
ShadowTrade Oracle Messages

Outbound requests emitted by the protocol for the off-protocol oracle.
Results come back as inbound callback calls on the protocol itself.
"""

from __future__ import annotations
import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Union

from shadowtrade.core.types import Address, CiphertextHandle

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecryptionRequest:
    """Ask the oracle to decrypt an account's shadow identity."""
    request_id: int
    account: Address
    handle: CiphertextHandle
    requested_at: int

    kind = "decryption"

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "request_id": self.request_id,
            "account": self.account.hex(),
            "handle": self.handle.hex(),
            "requested_at": self.requested_at,
        }


@dataclass(frozen=True)
class VerificationRequest:
    """Ask the oracle whether the hidden address holds a collection token."""
    request_id: int
    account: Address
    collection: Address
    handle: CiphertextHandle
    requested_at: int

    kind = "verification"

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "request_id": self.request_id,
            "account": self.account.hex(),
            "collection": self.collection.hex(),
            "handle": self.handle.hex(),
            "requested_at": self.requested_at,
        }


OracleRequest = Union[DecryptionRequest, VerificationRequest]


class Outbox:
    """FIFO of oracle requests waiting to be picked up."""

    def __init__(self):
        self._queue: Deque[OracleRequest] = deque()

    def emit(self, message: OracleRequest) -> None:
        self._queue.append(message)
        logger.debug(f"Outbox: queued {message.kind} request #{message.request_id}")

    def drain(self) -> List[OracleRequest]:
        """Remove and return everything queued, oldest first."""
        messages = list(self._queue)
        self._queue.clear()
        return messages

    def requeue(self, messages: List[OracleRequest]) -> None:
        """Put undelivered messages back at the front, keeping their order."""
        self._queue.extendleft(reversed(messages))

    def __len__(self) -> int:
        return len(self._queue)
