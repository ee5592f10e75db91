"""
ShadowTrade Protocol Access Control

Business logic only asks `has_role(account, role)`; the mechanism behind it
(single owner, multisig, timelock) can be swapped without touching callers.
"""

from __future__ import annotations
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, Set

from shadowtrade.core.types import Address
from shadowtrade.errors import InvalidParameterError, UnauthorizedError

logger = logging.getLogger(__name__)


class Role(Enum):
    """Protocol roles."""
    ADMIN = "admin"
    ORACLE = "oracle"


class RoleChecker(ABC):
    """Authorization interface consumed by protocol components."""

    @abstractmethod
    def has_role(self, account: Address, role: Role) -> bool:
        ...

    def require_role(self, account: Address, role: Role) -> None:
        """Raise UnauthorizedError unless account holds role."""
        if not self.has_role(account, role):
            raise UnauthorizedError(account, role.value)


class RoleRegistry(RoleChecker):
    """
    Owner-administered role table.

    ADMIN is held by exactly one designated owner and moves only through
    transfer_ownership. ORACLE may be held by several accounts.
    """

    def __init__(self, owner: Address, oracles: Set[Address] = None):
        if owner.is_zero():
            raise InvalidParameterError("owner", "zero address")
        self._owner = owner
        self._members: Dict[Role, Set[Address]] = {
            Role.ORACLE: set(oracles or ()),
        }

    @property
    def owner(self) -> Address:
        return self._owner

    def has_role(self, account: Address, role: Role) -> bool:
        if role is Role.ADMIN:
            return account == self._owner
        return account in self._members.get(role, set())

    def members(self, role: Role) -> Set[Address]:
        if role is Role.ADMIN:
            return {self._owner}
        return set(self._members.get(role, set()))

    def grant_role(self, caller: Address, role: Role, account: Address) -> None:
        self.require_role(caller, Role.ADMIN)
        if role is Role.ADMIN:
            raise InvalidParameterError("role", "admin moves only via transfer_ownership")
        self._members.setdefault(role, set()).add(account)
        logger.info(f"Granted {role.value} to {account.short()}")

    def revoke_role(self, caller: Address, role: Role, account: Address) -> None:
        self.require_role(caller, Role.ADMIN)
        if role is Role.ADMIN:
            raise InvalidParameterError("role", "admin moves only via transfer_ownership")
        self._members.get(role, set()).discard(account)
        logger.info(f"Revoked {role.value} from {account.short()}")

    def transfer_ownership(self, caller: Address, new_owner: Address) -> None:
        self.require_role(caller, Role.ADMIN)
        if new_owner.is_zero():
            raise InvalidParameterError("new_owner", "zero address")
        logger.info(f"Ownership transferred: {self._owner.short()} -> {new_owner.short()}")
        self._owner = new_owner

    def load(self, owner: Address, oracles: Set[Address]) -> None:
        """Restore role assignments from persistent storage."""
        self._owner = owner
        self._members[Role.ORACLE] = set(oracles)
