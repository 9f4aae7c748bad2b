"""
Cross-venue profitability evaluation.

Computes the expected return of buying a token on one venue and selling
it on the other, net of round-trip fees and the slippage budget.
"""

import logging
import math
from decimal import Decimal

from solarb.config.constants import (
    DEFAULT_FEE_RATE_ROUND_TRIP,
    DEFAULT_MAX_SLIPPAGE,
    DEFAULT_MIN_PROFIT_PCT,
)
from solarb.core.types import ProfitEstimate, Quote


logger = logging.getLogger(__name__)


class ProfitabilityEvaluator:
    """
    Evaluates quote pairs against a minimum net profit.

    Pure computation: no I/O and no state beyond configuration, so
    the same inputs always give the same estimate.
    """

    __slots__ = ("_min_profit_pct", "_fee_rate_round_trip", "_max_slippage")

    def __init__(
        self,
        min_profit_pct: float = DEFAULT_MIN_PROFIT_PCT,
        fee_rate_round_trip: float = DEFAULT_FEE_RATE_ROUND_TRIP,
        max_slippage: float = DEFAULT_MAX_SLIPPAGE,
    ) -> None:
        """
        Initialize evaluator.

        Args:
            min_profit_pct: Minimum net profit percentage (e.g., 5.0 = 5%).
            fee_rate_round_trip: Default fee rate for both legs combined.
            max_slippage: Default slippage budget against the buy price.
        """
        self._min_profit_pct = min_profit_pct
        self._fee_rate_round_trip = fee_rate_round_trip
        self._max_slippage = max_slippage

    def evaluate(
        self,
        buy_quote: Quote,
        sell_quote: Quote,
        fee_rate_round_trip: float | None = None,
        max_slippage: float | None = None,
    ) -> ProfitEstimate:
        """
        Estimate net profit for a quote pair.

        netProfitPercent = ((sell - buy - buy*fee - buy*slippage) / buy) * 100

        Args:
            buy_quote: Quote on the venue we buy from.
            sell_quote: Quote on the venue we sell to.
            fee_rate_round_trip: Override of the configured fee rate.
            max_slippage: Override of the configured slippage budget.

        Returns:
            ProfitEstimate; a "not profitable" sentinel when the buy price
            is not positive or the net profit is below the minimum.
        """
        fee_rate = self._fee_rate_round_trip if fee_rate_round_trip is None else fee_rate_round_trip
        slippage = self._max_slippage if max_slippage is None else max_slippage

        buy_price = buy_quote.price
        sell_price = sell_quote.price

        if not (math.isfinite(buy_price) and math.isfinite(sell_price)):
            return ProfitEstimate.not_profitable(
                "Non-finite price", buy_price=buy_price, sell_price=sell_price
            )

        if buy_price <= 0:
            return ProfitEstimate.not_profitable(
                "Buy price must be positive", buy_price=buy_price, sell_price=sell_price
            )

        fee_cost = buy_price * fee_rate
        slippage_cost = buy_price * slippage
        net_profit_pct = ((sell_price - buy_price - fee_cost - slippage_cost) / buy_price) * 100.0

        if net_profit_pct < self._min_profit_pct:
            return ProfitEstimate.not_profitable(
                f"Net profit {net_profit_pct:.4f}% below minimum {self._min_profit_pct:.4f}%",
                buy_price=buy_price,
                sell_price=sell_price,
                fee_cost=fee_cost,
                slippage_cost=slippage_cost,
                net_profit_pct=net_profit_pct,
            )

        return ProfitEstimate(
            buy_price=buy_price,
            sell_price=sell_price,
            fee_cost=fee_cost,
            slippage_cost=slippage_cost,
            net_profit_pct=net_profit_pct,
            profitable=True,
        )

    def best_of(self, estimates: list[ProfitEstimate]) -> ProfitEstimate | None:
        """Pick the most profitable passing estimate, if any."""
        passing = [e for e in estimates if e.profitable]
        if not passing:
            return None
        return max(passing, key=lambda e: e.net_profit_pct)

    @staticmethod
    def expected_profit(estimate: ProfitEstimate, trade_size: float) -> Decimal:
        """
        Expected profit of a trade in the trade's quote currency.

        Args:
            estimate: Passing estimate.
            trade_size: Notional of the trade.
        """
        if not estimate.profitable:
            return Decimal("0")
        profit = trade_size * estimate.net_profit_pct / 100.0
        return Decimal(str(round(profit, 9)))

    @property
    def min_profit_pct(self) -> float:
        return self._min_profit_pct

    @property
    def fee_rate_round_trip(self) -> float:
        return self._fee_rate_round_trip

    @property
    def max_slippage(self) -> float:
        return self._max_slippage
