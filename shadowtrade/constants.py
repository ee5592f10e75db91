"""
ShadowTrade Protocol Constants

All protocol constants defined here for single source of truth.
"""

from typing import Final

# ==============================================================================
# VALUE SIZES
# ==============================================================================

ADDRESS_SIZE: Final[int] = 20                   # Account / asset / collection address
HANDLE_SIZE: Final[int] = 32                    # Ciphertext handle
HEX_PREFIX: Final[str] = "0x"
LOG_HEX_CHARS: Final[int] = 10                  # Shortened hex in log lines

# ==============================================================================
# FIXED-POINT UNITS
# ==============================================================================

ASSET_DECIMALS: Final[int] = 18                 # Ledger balances and buy amounts
PRICE_DECIMALS: Final[int] = 6                  # Unit prices, in payment token units
PAYMENT_DECIMALS: Final[int] = 6                # Stable payment token (mUSDT)
SCALING_FACTOR: Final[int] = 10 ** ASSET_DECIMALS

# cost = buy_amount * unit_price // SCALING_FACTOR  (payment token units)

# ==============================================================================
# REWARDS
# ==============================================================================

DEFAULT_REWARD_AMOUNT: Final[int] = 1000 * 10 ** ASSET_DECIMALS

# ==============================================================================
# ORACLE / RELAYER
# ==============================================================================

FIRST_REQUEST_ID: Final[int] = 1
DEFAULT_RELAYER_URL: Final[str] = "https://relayer.testnet.zama.cloud"
RELAYER_POLL_INTERVAL_SEC: Final[float] = 5.0
RELAYER_TIMEOUT_SEC: Final[float] = 10.0

# Domain separation tags for the local encryption toolkit
INPUT_PROOF_TAG: Final[bytes] = b"SHADOWTRADE_INPUT_V1"
DECRYPTION_PROOF_TAG: Final[bytes] = b"SHADOWTRADE_DECRYPT_V1"
TOOLKIT_KEY_SIZE: Final[int] = 32
GCM_NONCE_SIZE: Final[int] = 12

# ==============================================================================
# NODE
# ==============================================================================

PROTOCOL_VERSION: Final[int] = 1
DEFAULT_API_PORT: Final[int] = 8547
DEFAULT_PAYMENT_SYMBOL: Final[str] = "mUSDT"
