"""
Risk management for trade execution.

Provides request-level checks (token whitelist, claimed ROI) and a
failure breaker that halts trading after repeated failed submissions.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from solarb.config.constants import DEFAULT_MIN_PROFIT_PCT
from solarb.config.settings import Settings


logger = logging.getLogger(__name__)


@dataclass
class RiskState:
    """Current risk management state."""

    consecutive_failures: int = 0
    total_failures: int = 0
    total_successes: int = 0
    is_halted: bool = False
    halt_reason: str = ""


class RiskCheckResult:
    """Result of a risk check."""

    __slots__ = ("passed", "reason")

    def __init__(self, passed: bool, reason: str = "") -> None:
        self.passed = passed
        self.reason = reason

    def __bool__(self) -> bool:
        return self.passed


class RiskManager:
    """
    Guards trade execution.

    Features:
    - Token whitelist enforcement
    - Minimum claimed ROI
    - Automatic halt after consecutive failed submissions
    """

    def __init__(
        self,
        whitelist: Iterable[str],
        min_profit_pct: float = DEFAULT_MIN_PROFIT_PCT,
        max_consecutive_failures: int = 3,
    ) -> None:
        """
        Initialize risk manager.

        Args:
            whitelist: Approved token mints; frozen for the process lifetime.
            min_profit_pct: Minimum ROI a trade request may claim.
            max_consecutive_failures: Failed submissions in a row before halting.
        """
        self._whitelist = frozenset(whitelist)
        self._min_profit_pct = min_profit_pct
        self._max_consecutive_failures = max_consecutive_failures
        self._state = RiskState()

    @classmethod
    def from_settings(cls, settings: Settings) -> "RiskManager":
        return cls(
            whitelist=settings.whitelisted_mints,
            min_profit_pct=settings.min_profit_pct,
            max_consecutive_failures=settings.max_consecutive_failures,
        )

    def check_token(self, token_mint: str) -> RiskCheckResult:
        """Check that a token is approved for trading."""
        if token_mint not in self._whitelist:
            return RiskCheckResult(False, f"Token {token_mint} is not whitelisted")
        return RiskCheckResult(True)

    def check_trade(self, token_mint: str, claimed_roi: float | None = None) -> RiskCheckResult:
        """
        Perform pre-trade risk checks.

        Args:
            token_mint: Token to trade.
            claimed_roi: ROI claimed by the requester, if any (percent).

        Returns:
            RiskCheckResult with pass/fail and reason.
        """
        if self._state.is_halted:
            return RiskCheckResult(False, f"Trading halted: {self._state.halt_reason}")

        token_check = self.check_token(token_mint)
        if not token_check:
            return token_check

        if claimed_roi is not None and claimed_roi < self._min_profit_pct:
            return RiskCheckResult(
                False,
                f"Claimed ROI {claimed_roi:.4f}% below minimum {self._min_profit_pct:.4f}%",
            )

        return RiskCheckResult(True)

    def record_success(self) -> None:
        """Record a confirmed trade."""
        self._state.consecutive_failures = 0
        self._state.total_successes += 1

    def record_failure(self) -> None:
        """Record a failed submission; halts after too many in a row."""
        self._state.consecutive_failures += 1
        self._state.total_failures += 1

        if self._state.consecutive_failures >= self._max_consecutive_failures:
            self._halt(f"{self._state.consecutive_failures} consecutive failed submissions")

    def _halt(self, reason: str) -> None:
        """Halt trading with reason."""
        if self._state.is_halted:
            return
        self._state.is_halted = True
        self._state.halt_reason = reason
        logger.warning(f"Trading halted: {reason}")

    def resume(self) -> bool:
        """
        Resume trading.

        Returns:
            True if trading was halted and is now resumed.
        """
        if not self._state.is_halted:
            return False
        self._state.is_halted = False
        self._state.halt_reason = ""
        self._state.consecutive_failures = 0
        logger.info("Trading resumed")
        return True

    def force_halt(self, reason: str) -> None:
        """Force trading halt."""
        self._halt(f"Manual: {reason}")

    @property
    def whitelist(self) -> frozenset[str]:
        return self._whitelist

    @property
    def min_profit_pct(self) -> float:
        return self._min_profit_pct

    @property
    def state(self) -> RiskState:
        """Get current risk state."""
        return self._state

    @property
    def is_trading_allowed(self) -> bool:
        """Check if trading is currently allowed."""
        return not self._state.is_halted

    def to_dict(self) -> dict[str, int | bool | str]:
        """Convert state to dict for status output."""
        return {
            "consecutive_failures": self._state.consecutive_failures,
            "total_failures": self._state.total_failures,
            "total_successes": self._state.total_successes,
            "is_halted": self._state.is_halted,
            "halt_reason": self._state.halt_reason,
            "whitelisted_tokens": len(self._whitelist),
        }
