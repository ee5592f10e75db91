"""
ShadowTrade Protocol Keyed Stores

Hash-map storage keyed by addresses or composite (account, asset) and
(account, collection) tuples. Invariants are checked here, at the access
layer, rather than at every call site.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Dict, Generic, Hashable, Iterator, List, Optional, Tuple, TypeVar

from shadowtrade.core.types import Address
from shadowtrade.errors import InvariantViolationError

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

PairKey = Tuple[Address, Address]


@dataclass
class KeyedStore(Generic[K, V]):
    """
    Plain keyed store.

    Provides methods for:
    - Lookup and membership
    - Insert / overwrite / removal
    - Iteration for persistence
    """
    name: str
    _entries: Dict[K, V] = field(default_factory=dict)

    def get(self, key: K, default: Optional[V] = None) -> Optional[V]:
        return self._entries.get(key, default)

    def put(self, key: K, value: V) -> None:
        self._entries[key] = value

    def pop(self, key: K) -> Optional[V]:
        return self._entries.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[K]:
        return iter(self._entries)

    def items(self) -> List[Tuple[K, V]]:
        return list(self._entries.items())

    def values(self) -> List[V]:
        return list(self._entries.values())

    def clear(self) -> None:
        self._entries.clear()


@dataclass
class WriteOnceStore(KeyedStore[K, V]):
    """
    Store whose entries can be created but never replaced or removed.

    Protocol components check for existing keys and raise their own typed
    errors first; reaching the invariant check here is a bug.
    """

    def put(self, key: K, value: V) -> None:
        if key in self._entries:
            raise InvariantViolationError(self.name, f"entry already written for {key!r}")
        self._entries[key] = value

    def pop(self, key: K) -> Optional[V]:
        raise InvariantViolationError(self.name, "entries cannot be removed")

    def load(self, key: K, value: V) -> None:
        """Restore an entry from persistent storage."""
        self._entries[key] = value


@dataclass
class BalanceBook:
    """
    Non-negative balances keyed by (account, asset).

    Per-asset credit and withdrawal totals are tracked so that, for every
    asset, credited - withdrawn == sum of balances.
    """
    name: str = "balances"
    _balances: Dict[PairKey, int] = field(default_factory=dict)
    _credited: Dict[Address, int] = field(default_factory=dict)
    _withdrawn: Dict[Address, int] = field(default_factory=dict)

    def get(self, account: Address, asset: Address) -> int:
        return self._balances.get((account, asset), 0)

    def credit(self, account: Address, asset: Address, amount: int) -> int:
        """Credit amount and return the new balance."""
        if amount <= 0:
            raise InvariantViolationError(self.name, f"non-positive credit {amount}")

        key = (account, asset)
        new_balance = self._balances.get(key, 0) + amount
        self._balances[key] = new_balance
        self._credited[asset] = self._credited.get(asset, 0) + amount
        return new_balance

    def take_all(self, account: Address, asset: Address) -> int:
        """Zero the entry and return what it held."""
        amount = self._balances.pop((account, asset), 0)
        if amount:
            self._withdrawn[asset] = self._withdrawn.get(asset, 0) + amount
        return amount

    def credited(self, asset: Address) -> int:
        return self._credited.get(asset, 0)

    def withdrawn(self, asset: Address) -> int:
        return self._withdrawn.get(asset, 0)

    def outstanding(self, asset: Address) -> int:
        """Sum of all balances held for an asset."""
        return sum(v for (_, a), v in self._balances.items() if a == asset)

    def check_invariants(self) -> None:
        """Raise if any asset's balances disagree with its credit history."""
        assets = set(self._credited) | set(self._withdrawn)
        for asset in assets:
            expected = self.credited(asset) - self.withdrawn(asset)
            actual = self.outstanding(asset)
            if expected != actual:
                raise InvariantViolationError(
                    self.name,
                    f"asset {asset.short()} holds {actual}, history says {expected}"
                )

    def entries(self) -> List[Tuple[Address, Address, int]]:
        return [(acct, asset, amount) for (acct, asset), amount in self._balances.items()]

    def totals(self) -> List[Tuple[Address, int, int]]:
        assets = set(self._credited) | set(self._withdrawn)
        return [(a, self.credited(a), self.withdrawn(a)) for a in assets]

    def load(
        self,
        entries: List[Tuple[Address, Address, int]],
        totals: List[Tuple[Address, int, int]]
    ) -> None:
        """Replace contents from persistent storage."""
        self._balances = {(acct, asset): amount for acct, asset, amount in entries if amount}
        self._credited = {asset: credited for asset, credited, _ in totals}
        self._withdrawn = {asset: withdrawn for asset, _, withdrawn in totals}
        self.check_invariants()
        logger.debug(f"Loaded {len(self._balances)} balance entries")
