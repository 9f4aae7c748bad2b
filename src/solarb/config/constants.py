"""
Trading constants and configuration values.

This module contains all hardcoded values used throughout the arbitrage service.
Values are organized by category for easy maintenance and auditing.
"""

from typing import Final


# =============================================================================
# Network Endpoints
# =============================================================================

SOLANA_RPC_URL: Final[str] = "https://api.mainnet-beta.solana.com"

RAYDIUM_API_URL: Final[str] = "https://api-v3.raydium.io"
PUMPFUN_API_URL: Final[str] = "https://frontend-api.pump.fun"
JUPITER_API_URL: Final[str] = "https://quote-api.jup.ag/v6"

# Venue endpoints
ENDPOINT_RAYDIUM_MINT_PRICE: Final[str] = "/mint/price"
ENDPOINT_PUMPFUN_COIN: Final[str] = "/coins/{mint}"
ENDPOINT_JUPITER_QUOTE: Final[str] = "/quote"
ENDPOINT_JUPITER_SWAP_INSTRUCTIONS: Final[str] = "/swap-instructions"

# JSON-RPC methods
RPC_GET_LATEST_BLOCKHASH: Final[str] = "getLatestBlockhash"
RPC_GET_BALANCE: Final[str] = "getBalance"
RPC_SEND_TRANSACTION: Final[str] = "sendTransaction"
RPC_GET_SIGNATURE_STATUSES: Final[str] = "getSignatureStatuses"


# =============================================================================
# Chain Constants
# =============================================================================

LAMPORTS_PER_SOL: Final[int] = 1_000_000_000

# Wrapped SOL mint, the quote side of every trade
WSOL_MINT: Final[str] = "So11111111111111111111111111111111111111112"

# Ed25519 keypair length (32 byte seed + 32 byte public key)
SECRET_KEY_LENGTH: Final[int] = 64

# Pump.fun tokens are minted with 6 decimals
PUMPFUN_TOKEN_DECIMALS: Final[int] = 6

COMMITMENT_CONFIRMED: Final[str] = "confirmed"


# =============================================================================
# Trading Economics
# =============================================================================

# Minimum net profit to trade (percent)
DEFAULT_MIN_PROFIT_PCT: Final[float] = 5.0

# Combined buy + sell venue fees (0.6%)
DEFAULT_FEE_RATE_ROUND_TRIP: Final[float] = 0.006

# Worst-case slippage budget (2%)
DEFAULT_MAX_SLIPPAGE: Final[float] = 0.02

# Notional traded per opportunity (SOL)
DEFAULT_TRADE_SIZE_SOL: Final[float] = 0.1


# =============================================================================
# Timing
# =============================================================================

DEFAULT_LOOP_INTERVAL_SECONDS: Final[float] = 15.0
DEFAULT_QUOTE_TIMEOUT_SECONDS: Final[float] = 2.0
DEFAULT_MAX_QUOTE_SKEW_MS: Final[int] = 500
DEFAULT_RPC_TIMEOUT_SECONDS: Final[float] = 5.0
DEFAULT_CONFIRM_TIMEOUT_SECONDS: Final[float] = 30.0
DEFAULT_CONFIRM_POLL_INTERVAL_SECONDS: Final[float] = 1.0

# Idempotency marker lifetime (5 minutes)
DEFAULT_IDEMPOTENCY_TTL_SECONDS: Final[int] = 300

# Trade records are kept for an hour before eviction
DEFAULT_TRADE_RECORD_TTL_SECONDS: Final[int] = 3600


# =============================================================================
# Rate Limiting
# =============================================================================

ACTION_TRADE: Final[str] = "trade"
ACTION_CONTROL: Final[str] = "control"
ACTION_STATUS: Final[str] = "status"

DEFAULT_TRADE_RATE_LIMIT: Final[int] = 5
DEFAULT_CONTROL_RATE_LIMIT: Final[int] = 10
DEFAULT_STATUS_RATE_LIMIT: Final[int] = 60
DEFAULT_RATE_WINDOW_SECONDS: Final[int] = 60


# =============================================================================
# Counter Store Keys
# =============================================================================

KEY_SESSION_RUNNING: Final[str] = "session:running"
KEY_SESSION_PROFIT: Final[str] = "session:profit"
KEY_SESSION_WALLET: Final[str] = "session:wallet"
KEY_IDEMPOTENCY_PREFIX: Final[str] = "idem:"
KEY_RATE_LIMIT_PREFIX: Final[str] = "ratelimit:"

# Requester identity used by the autonomous loop
LOOP_REQUESTER: Final[str] = "control-loop"


# =============================================================================
# Logging & Telemetry
# =============================================================================

LOG_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

# Maximum log queue size
MAX_LOG_QUEUE_SIZE: Final[int] = 10_000
