"""
Type definitions for the arbitrage service.

This module contains the dataclasses, enums and Protocol definitions
used throughout the application. Market data types are frozen so a
quote can never be altered after capture.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Protocol


# =============================================================================
# Enums
# =============================================================================


class Venue(str, Enum):
    """Trading venue enumeration."""

    RAYDIUM = "raydium"
    PUMPFUN = "pumpfun"

    @property
    def other(self) -> "Venue":
        """The counter-venue of a two-venue arbitrage."""
        return Venue.PUMPFUN if self is Venue.RAYDIUM else Venue.RAYDIUM


class TradeStatus(str, Enum):
    """Externally visible status of a trade record."""

    PENDING = "PENDING"
    SUBMITTED = "SUBMITTED"
    CONFIRMED = "CONFIRMED"
    FAILED = "FAILED"
    UNKNOWN = "UNKNOWN"


class TradeStage(str, Enum):
    """Lifecycle stage of a single trade."""

    RECEIVED = "RECEIVED"
    VALIDATED = "VALIDATED"
    SUBMITTED = "SUBMITTED"
    CONFIRMED = "CONFIRMED"
    FAILED = "FAILED"


# =============================================================================
# Market Data Types
# =============================================================================


@dataclass(slots=True, frozen=True)
class Quote:
    """
    Price of a token on one venue at capture time.

    Produced fresh for every evaluation and never cached.
    """

    venue: Venue
    token_mint: str
    price: float
    timestamp_us: int


@dataclass(slots=True, frozen=True)
class QuotePair:
    """Buy-side and sell-side quotes captured for one evaluation."""

    buy: Quote
    sell: Quote

    @property
    def skew_us(self) -> int:
        """Capture-time difference between the two quotes."""
        return abs(self.buy.timestamp_us - self.sell.timestamp_us)


# =============================================================================
# Profitability Types
# =============================================================================


@dataclass(slots=True, frozen=True)
class ProfitEstimate:
    """
    Expected outcome of buying on one venue and selling on the other.

    Read-only and discarded once the trade decision is made.
    """

    buy_price: float
    sell_price: float
    fee_cost: float
    slippage_cost: float
    net_profit_pct: float
    profitable: bool
    reason: str = ""

    @classmethod
    def not_profitable(
        cls,
        reason: str,
        buy_price: float = 0.0,
        sell_price: float = 0.0,
        fee_cost: float = 0.0,
        slippage_cost: float = 0.0,
        net_profit_pct: float = 0.0,
    ) -> "ProfitEstimate":
        """Sentinel estimate for a rejected opportunity."""
        return cls(
            buy_price=buy_price,
            sell_price=sell_price,
            fee_cost=fee_cost,
            slippage_cost=slippage_cost,
            net_profit_pct=net_profit_pct,
            profitable=False,
            reason=reason,
        )

    def __bool__(self) -> bool:
        return self.profitable


# =============================================================================
# Execution Types
# =============================================================================


@dataclass(slots=True)
class TradeRecord:
    """
    Execution record owned by the trade executor.

    Created on receipt, moved through the stage machine and evicted
    once its retention TTL has passed.
    """

    record_id: str
    fingerprint: str
    requester: str
    token_mint: str
    buy_venue: Venue
    sell_venue: Venue
    stage: TradeStage = TradeStage.RECEIVED
    status: TradeStatus = TradeStatus.PENDING
    signature: str | None = None
    expected_profit: Decimal = Decimal("0")
    net_profit_pct: float = 0.0
    reason: str = ""
    created_at_us: int = 0
    submitted_at_us: int = 0
    updated_at_us: int = 0

    @property
    def is_final(self) -> bool:
        """Check if the record reached a terminal status."""
        return self.status in (TradeStatus.CONFIRMED, TradeStatus.FAILED)

    def to_dict(self) -> dict[str, Any]:
        """Convert record to a JSON-friendly dict."""
        return {
            "recordId": self.record_id,
            "fingerprint": self.fingerprint,
            "tokenMint": self.token_mint,
            "buyVenue": self.buy_venue.value,
            "sellVenue": self.sell_venue.value,
            "stage": self.stage.value,
            "status": self.status.value,
            "signature": self.signature,
            "expectedProfit": str(self.expected_profit),
            "netProfitPct": self.net_profit_pct,
            "reason": self.reason,
            "submittedAt": self.submitted_at_us,
            "updatedAt": self.updated_at_us,
        }


@dataclass(slots=True, frozen=True)
class SignatureStatus:
    """Chain-reported state of a submitted transaction."""

    signature: str
    confirmation_status: str | None = None
    error: Any = None

    @property
    def is_confirmed(self) -> bool:
        return self.error is None and self.confirmation_status in ("confirmed", "finalized")

    @property
    def is_failed(self) -> bool:
        return self.error is not None


@dataclass(slots=True, frozen=True)
class SessionSnapshot:
    """Point-in-time view of session state."""

    running: bool
    accumulated_profit: Decimal
    owner_wallet: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "running": self.running,
            "accumulatedProfit": str(self.accumulated_profit),
            "ownerWallet": self.owner_wallet,
        }


@dataclass(slots=True)
class CycleReport:
    """Summary of one control-loop cycle."""

    started_at_us: int
    finished_at_us: int = 0
    tokens_scanned: int = 0
    opportunities: int = 0
    trades: list[TradeRecord] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


# =============================================================================
# Protocols (Interfaces)
# =============================================================================


class PriceSource(Protocol):
    """Protocol for venue price lookups."""

    @property
    def venue(self) -> Venue:
        """Venue this source quotes."""
        ...

    async def fetch_price(self, token_mint: str) -> float:
        """Fetch the current price of a token."""
        ...


class ChainClient(Protocol):
    """Protocol for chain RPC clients."""

    async def get_latest_blockhash(self) -> str:
        """Get the most recent blockhash."""
        ...

    async def get_balance(self, pubkey: str) -> int:
        """Get account balance in lamports."""
        ...

    async def send_transaction(self, raw_transaction: bytes) -> str:
        """Send a signed, serialized transaction and return its signature."""
        ...

    async def get_signature_status(self, signature: str) -> SignatureStatus | None:
        """Get the status of a submitted transaction."""
        ...
