"""
ShadowTrade Protocol Error Handling

All error codes and exception classes.
"""

from __future__ import annotations
from enum import IntEnum
from typing import Optional, Any, TYPE_CHECKING

if TYPE_CHECKING:
    from shadowtrade.core.types import Address


class ErrorCode(IntEnum):
    """Protocol error codes."""

    # 1xxx - General errors
    UNKNOWN_ERROR = 1000
    INVALID_PARAMETER = 1001
    INVALID_AMOUNT = 1002

    # 2xxx - Identity registry errors
    ALREADY_REGISTERED = 2001
    NOT_REGISTERED = 2002
    INVALID_PROOF = 2003

    # 3xxx - Trading errors
    UNKNOWN_ASSET = 3001
    INSUFFICIENT_FUNDS = 3002

    # 4xxx - Access errors
    UNAUTHORIZED = 4001
    UNAUTHORIZED_COLLECTION = 4002

    # 5xxx - Reveal / oracle errors
    UNKNOWN_REQUEST = 5001
    PROOF_INVALID = 5002
    ALREADY_COMPLETE = 5003
    NOT_REVEALED = 5004
    ZERO_BALANCE = 5005
    ALREADY_REVEALED = 5006
    PROXY_ALREADY_BOUND = 5007

    # 6xxx - Attestation / reward errors
    ALREADY_RECORDED = 6001
    NO_ATTESTATION = 6002
    NO_REWARD_AVAILABLE = 6003
    ALREADY_CLAIMED = 6004

    # 9xxx - Internal errors
    INVARIANT_VIOLATION = 9001


class ShadowTradeError(Exception):
    """Base exception for all ShadowTrade protocol errors."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: Optional[Any] = None
    ):
        self.code = code
        self.message = message
        self.details = details
        super().__init__(f"[{code.value}] {message}")

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict for API responses."""
        result = {
            "code": self.code.value,
            "name": self.code.name,
            "message": self.message,
        }
        if self.details is not None:
            result["details"] = self.details
        return result


# ==============================================================================
# General Errors (1xxx)
# ==============================================================================

class InvalidParameterError(ShadowTradeError):
    def __init__(self, param: str, message: str = ""):
        msg = f"Invalid parameter: {param}"
        if message:
            msg += f" - {message}"
        super().__init__(ErrorCode.INVALID_PARAMETER, msg, {"parameter": param})


class InvalidAmountError(ShadowTradeError):
    def __init__(self, amount: int, reason: str = "must be positive"):
        super().__init__(
            ErrorCode.INVALID_AMOUNT,
            f"Invalid amount {amount}: {reason}",
            {"amount": amount}
        )


# ==============================================================================
# Identity Errors (2xxx)
# ==============================================================================

class AlreadyRegisteredError(ShadowTradeError):
    def __init__(self, account: "Address"):
        super().__init__(
            ErrorCode.ALREADY_REGISTERED,
            f"Account already registered: {account.short()}",
            {"account": account.hex()}
        )


class NotRegisteredError(ShadowTradeError):
    def __init__(self, account: "Address"):
        super().__init__(
            ErrorCode.NOT_REGISTERED,
            f"Account not registered: {account.short()}",
            {"account": account.hex()}
        )


class InvalidProofError(ShadowTradeError):
    def __init__(self, account: "Address"):
        super().__init__(
            ErrorCode.INVALID_PROOF,
            f"Input proof rejected for {account.short()}",
            {"account": account.hex()}
        )


# ==============================================================================
# Trading Errors (3xxx)
# ==============================================================================

class UnknownAssetError(ShadowTradeError):
    def __init__(self, asset: "Address"):
        super().__init__(
            ErrorCode.UNKNOWN_ASSET,
            f"Asset has no price: {asset.short()}",
            {"asset": asset.hex()}
        )


class InsufficientFundsError(ShadowTradeError):
    def __init__(self, available: int, required: int, what: str = "balance"):
        super().__init__(
            ErrorCode.INSUFFICIENT_FUNDS,
            f"Insufficient {what}: {available} < {required}",
            {"available": available, "required": required, "kind": what}
        )


# ==============================================================================
# Access Errors (4xxx)
# ==============================================================================

class UnauthorizedError(ShadowTradeError):
    def __init__(self, caller: "Address", role: str):
        super().__init__(
            ErrorCode.UNAUTHORIZED,
            f"{caller.short()} lacks role {role}",
            {"caller": caller.hex(), "role": role}
        )


class UnauthorizedCollectionError(ShadowTradeError):
    def __init__(self, collection: "Address"):
        super().__init__(
            ErrorCode.UNAUTHORIZED_COLLECTION,
            f"Collection not on allow-list: {collection.short()}",
            {"collection": collection.hex()}
        )


# ==============================================================================
# Reveal / Oracle Errors (5xxx)
# ==============================================================================

class UnknownRequestError(ShadowTradeError):
    def __init__(self, request_id: int):
        super().__init__(
            ErrorCode.UNKNOWN_REQUEST,
            f"No outstanding request with id {request_id}",
            {"request_id": request_id}
        )


class ProofInvalidError(ShadowTradeError):
    def __init__(self, request_id: int, reason: str = ""):
        msg = f"Oracle proof rejected for request {request_id}"
        if reason:
            msg += f": {reason}"
        super().__init__(ErrorCode.PROOF_INVALID, msg, {"request_id": request_id})


class AlreadyCompleteError(ShadowTradeError):
    def __init__(self, request_id: int):
        super().__init__(
            ErrorCode.ALREADY_COMPLETE,
            f"Request {request_id} already finalized",
            {"request_id": request_id}
        )


class NotRevealedError(ShadowTradeError):
    def __init__(self, proxy: "Address"):
        super().__init__(
            ErrorCode.NOT_REVEALED,
            f"Address is not a revealed proxy: {proxy.short()}",
            {"proxy": proxy.hex()}
        )


class ZeroBalanceError(ShadowTradeError):
    def __init__(self, account: "Address", asset: "Address"):
        super().__init__(
            ErrorCode.ZERO_BALANCE,
            f"Nothing to withdraw for asset {asset.short()}",
            {"account": account.hex(), "asset": asset.hex()}
        )


class AlreadyRevealedError(ShadowTradeError):
    def __init__(self, account: "Address"):
        super().__init__(
            ErrorCode.ALREADY_REVEALED,
            f"Shadow identity already revealed for {account.short()}",
            {"account": account.hex()}
        )


class ProxyAlreadyBoundError(ShadowTradeError):
    def __init__(self, request_id: int):
        super().__init__(
            ErrorCode.PROXY_ALREADY_BOUND,
            f"Revealed proxy of request {request_id} belongs to another account",
            {"request_id": request_id}
        )


# ==============================================================================
# Attestation / Reward Errors (6xxx)
# ==============================================================================

class AlreadyRecordedError(ShadowTradeError):
    def __init__(self, account: "Address", collection: "Address"):
        super().__init__(
            ErrorCode.ALREADY_RECORDED,
            f"Reward already recorded for {account.short()} / {collection.short()}",
            {"account": account.hex(), "collection": collection.hex()}
        )


class NoAttestationError(ShadowTradeError):
    def __init__(self, account: "Address", collection: "Address"):
        super().__init__(
            ErrorCode.NO_ATTESTATION,
            f"No verified attestation for {account.short()} / {collection.short()}",
            {"account": account.hex(), "collection": collection.hex()}
        )


class NoRewardAvailableError(ShadowTradeError):
    def __init__(self, account: "Address", collection: "Address"):
        super().__init__(
            ErrorCode.NO_REWARD_AVAILABLE,
            f"No reward recorded for {account.short()} / {collection.short()}",
            {"account": account.hex(), "collection": collection.hex()}
        )


class AlreadyClaimedError(ShadowTradeError):
    def __init__(self, account: "Address", collection: "Address"):
        super().__init__(
            ErrorCode.ALREADY_CLAIMED,
            f"Reward already claimed for {account.short()} / {collection.short()}",
            {"account": account.hex(), "collection": collection.hex()}
        )


# ==============================================================================
# Internal Errors (9xxx)
# ==============================================================================

class InvariantViolationError(ShadowTradeError):
    def __init__(self, store: str, reason: str):
        super().__init__(
            ErrorCode.INVARIANT_VIOLATION,
            f"Invariant violated in {store}: {reason}",
            {"store": store}
        )
