"""
ShadowTrade Token Ledgers

In-process stand-ins for the external fungible ledgers the protocol talks
to: the stable payment token (balance, allowance, allowance-gated transfer)
and the per-asset ledgers that receive withdrawals.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Dict, Tuple

from shadowtrade.constants import ASSET_DECIMALS, DEFAULT_PAYMENT_SYMBOL, PAYMENT_DECIMALS
from shadowtrade.core.types import Address
from shadowtrade.errors import InsufficientFundsError, InvalidAmountError

logger = logging.getLogger(__name__)


@dataclass
class TokenLedger:
    """
    Fungible token balances with ERC-20 style allowances.

    Anyone may mint, as the test-network payment token does.
    """
    symbol: str = DEFAULT_PAYMENT_SYMBOL
    decimals: int = PAYMENT_DECIMALS
    _balances: Dict[Address, int] = field(default_factory=dict)
    _allowances: Dict[Tuple[Address, Address], int] = field(default_factory=dict)
    _total_supply: int = 0

    @property
    def total_supply(self) -> int:
        return self._total_supply

    def balance_of(self, holder: Address) -> int:
        return self._balances.get(holder, 0)

    def allowance(self, owner: Address, spender: Address) -> int:
        return self._allowances.get((owner, spender), 0)

    def approve(self, owner: Address, spender: Address, amount: int) -> None:
        if amount < 0:
            raise InvalidAmountError(amount, "allowance cannot be negative")
        self._allowances[(owner, spender)] = amount

    def mint(self, to: Address, amount: int) -> None:
        if amount <= 0:
            raise InvalidAmountError(amount)
        self._balances[to] = self.balance_of(to) + amount
        self._total_supply += amount
        logger.debug(f"{self.symbol}: minted {amount} to {to.short()}")

    def transfer(self, sender: Address, to: Address, amount: int) -> None:
        self._move(sender, to, amount)

    def transfer_from(
        self,
        spender: Address,
        owner: Address,
        to: Address,
        amount: int
    ) -> None:
        """Move owner's tokens on behalf of spender, consuming allowance."""
        allowed = self.allowance(owner, spender)
        if allowed < amount:
            raise InsufficientFundsError(allowed, amount, "allowance")

        self._move(owner, to, amount)
        self._allowances[(owner, spender)] = allowed - amount

    def _move(self, sender: Address, to: Address, amount: int) -> None:
        if amount <= 0:
            raise InvalidAmountError(amount)

        balance = self.balance_of(sender)
        if balance < amount:
            raise InsufficientFundsError(balance, amount)

        self._balances[sender] = balance - amount
        self._balances[to] = self.balance_of(to) + amount


@dataclass
class AssetVault:
    """
    Ledgers for purchased assets, one per asset address.

    Withdrawals are paid out here, so a proxy address's holdings can be
    queried after it has withdrawn.
    """
    _ledgers: Dict[Address, TokenLedger] = field(default_factory=dict)

    def ledger(self, asset: Address) -> TokenLedger:
        if asset not in self._ledgers:
            self._ledgers[asset] = TokenLedger(symbol=asset.short(), decimals=ASSET_DECIMALS)
        return self._ledgers[asset]

    def payout(self, asset: Address, to: Address, amount: int) -> None:
        self.ledger(asset).mint(to, amount)

    def balance_of(self, holder: Address, asset: Address) -> int:
        if asset not in self._ledgers:
            return 0
        return self._ledgers[asset].balance_of(holder)
