"""
ShadowTrade Trading Engine

Price table plus the (account, asset) balance ledger credited by anonymous
purchases. Payment is collected in the stable payment token through an
allowance-gated transfer into the treasury.
"""

from __future__ import annotations
import logging
from typing import List, Tuple

from shadowtrade.constants import SCALING_FACTOR
from shadowtrade.core.types import Address
from shadowtrade.errors import (
    InsufficientFundsError,
    InvalidAmountError,
    UnknownAssetError,
)
from shadowtrade.protocol.identity import IdentityRegistry
from shadowtrade.protocol.roles import Role, RoleChecker
from shadowtrade.protocol.tokens import TokenLedger
from shadowtrade.state.store import BalanceBook, KeyedStore

logger = logging.getLogger(__name__)


def payment_cost(buy_amount: int, unit_price: int) -> int:
    """Payment token units owed for buy_amount at unit_price."""
    return buy_amount * unit_price // SCALING_FACTOR


class TradingEngine:
    """
    Anonymous purchase engine.

    Owns the price table and the balance book. Balances are credited only
    here and debited only through debit_all by the reveal coordinator.
    """

    def __init__(
        self,
        identities: IdentityRegistry,
        roles: RoleChecker,
        payment: TokenLedger,
        treasury: Address,
        contract_address: Address
    ):
        self.identities = identities
        self.roles = roles
        self.payment = payment
        self.treasury = treasury
        self.contract_address = contract_address
        self._prices: KeyedStore[Address, int] = KeyedStore("prices")
        self.balances = BalanceBook()

    # =========================================================================
    # Price table
    # =========================================================================

    def set_price(self, caller: Address, asset: Address, price: int) -> None:
        """Overwrite an asset's unit price. Admin only."""
        self.roles.require_role(caller, Role.ADMIN)
        if price < 0:
            raise InvalidAmountError(price, "price cannot be negative")

        old = self._prices.get(asset, 0)
        self._prices.put(asset, price)
        logger.info(f"Price of {asset.short()}: {old} -> {price}")

    def get_price(self, asset: Address) -> int:
        return self._prices.get(asset, 0)

    def assets(self) -> List[Address]:
        """Assets with a nonzero price."""
        return [asset for asset, price in self._prices.items() if price > 0]

    def quote(self, asset: Address, buy_amount: int) -> int:
        """Payment cost of buy_amount units, without checking anything else."""
        price = self.get_price(asset)
        if price == 0:
            raise UnknownAssetError(asset)
        return payment_cost(buy_amount, price)

    # =========================================================================
    # Purchases
    # =========================================================================

    def purchase(self, account: Address, asset: Address, buy_amount: int) -> int:
        """
        Buy buy_amount units of asset for account.

        Every precondition is checked before the payment moves, so a failed
        purchase leaves both ledgers untouched.

        Returns:
            Payment token amount collected into the treasury

        Raises:
            NotRegisteredError, InvalidAmountError, UnknownAssetError,
            InsufficientFundsError
        """
        self.identities.require_registered(account)

        if buy_amount <= 0:
            raise InvalidAmountError(buy_amount)

        price = self.get_price(asset)
        if price == 0:
            raise UnknownAssetError(asset)

        cost = payment_cost(buy_amount, price)
        if cost == 0:
            raise InvalidAmountError(buy_amount, "cost rounds to zero")

        available = self.payment.balance_of(account)
        if available < cost:
            raise InsufficientFundsError(available, cost)

        allowed = self.payment.allowance(account, self.contract_address)
        if allowed < cost:
            raise InsufficientFundsError(allowed, cost, "allowance")

        self.payment.transfer_from(self.contract_address, account, self.treasury, cost)
        new_balance = self.balances.credit(account, asset, buy_amount)

        logger.info(
            f"Purchase: {account.short()} bought {buy_amount} of {asset.short()} "
            f"for {cost}, balance={new_balance}"
        )
        return cost

    def get_balance(self, account: Address, asset: Address) -> int:
        return self.balances.get(account, asset)

    def debit_all(self, account: Address, asset: Address) -> int:
        """Zero account's balance of asset and return the amount removed."""
        return self.balances.take_all(account, asset)

    # =========================================================================
    # Persistence
    # =========================================================================

    def export_prices(self) -> List[Tuple[Address, int]]:
        return self._prices.items()

    def load_prices(self, entries: List[Tuple[Address, int]]) -> None:
        self._prices.clear()
        for asset, price in entries:
            self._prices.put(asset, price)
