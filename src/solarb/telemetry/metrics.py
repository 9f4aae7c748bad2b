"""
In-process metrics for the arbitrage service.

Counters (cycles, quotes, rate-limit denials, ...), rolling latency
windows (quote, cycle, submit, confirm) and trade outcome totals. The
whole collector is exported by `to_dict()` for the /status route.
"""

import time
from collections import deque
from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Any


@dataclass(frozen=True, slots=True)
class LatencyStats:
    """Aggregated latency statistics over one rolling window."""

    count: int = 0
    min_us: int = 0
    max_us: int = 0
    avg_us: float = 0.0
    p50_us: int = 0
    p95_us: int = 0
    p99_us: int = 0

    @classmethod
    def from_samples(cls, samples: list[int]) -> "LatencyStats":
        if not samples:
            return cls()
        ordered = sorted(samples)
        n = len(ordered)

        def percentile(q: float) -> int:
            return ordered[min(n - 1, int(n * q))]

        return cls(
            count=n,
            min_us=ordered[0],
            max_us=ordered[-1],
            avg_us=sum(ordered) / n,
            p50_us=percentile(0.50),
            p95_us=percentile(0.95),
            p99_us=percentile(0.99),
        )


@dataclass
class TradingStats:
    """Trade outcome totals since start (or the last reset)."""

    opportunities_found: int = 0
    trades_submitted: int = 0
    trades_confirmed: int = 0
    trades_failed: int = 0
    trades_unknown: int = 0
    total_profit: Decimal = Decimal("0")
    total_withdrawn: Decimal = Decimal("0")
    best_profit_pct: float = 0.0

    @property
    def confirmation_rate(self) -> float:
        """Share of settled trades that confirmed."""
        settled = self.trades_confirmed + self.trades_failed
        return self.trades_confirmed / settled if settled else 0.0

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["total_profit"] = str(self.total_profit)
        data["total_withdrawn"] = str(self.total_withdrawn)
        data["confirmation_rate"] = self.confirmation_rate
        return data


class MetricsCollector:
    """
    Collects counters, latency samples and trade outcomes.

    Not thread-safe; every caller runs on the event loop.
    """

    def __init__(self, latency_window_size: int = 1000) -> None:
        """
        Args:
            latency_window_size: Samples kept per latency metric.
        """
        self._window_size = latency_window_size
        self._latencies: dict[str, deque[int]] = {}
        self._counters: dict[str, int] = {}
        self._trading = TradingStats()
        self._started = time.monotonic()

    # =========================================================================
    # Counters and latencies
    # =========================================================================

    def increment_counter(self, name: str, value: int = 1) -> None:
        self._counters[name] = self._counters.get(name, 0) + value

    def get_counter(self, name: str) -> int:
        return self._counters.get(name, 0)

    def record_latency(self, name: str, latency_us: int) -> None:
        """Add one sample to the named window (e.g. "quote", "cycle", "submit")."""
        window = self._latencies.setdefault(name, deque(maxlen=self._window_size))
        window.append(latency_us)

    def get_latency_stats(self, name: str) -> LatencyStats:
        return LatencyStats.from_samples(list(self._latencies.get(name, ())))

    # =========================================================================
    # Trade outcomes
    # =========================================================================

    def record_opportunity(self, profit_pct: float) -> None:
        """Record a passing opportunity found by the control loop."""
        self._trading.opportunities_found += 1
        self._trading.best_profit_pct = max(self._trading.best_profit_pct, profit_pct)

    def record_submission(self) -> None:
        self._trading.trades_submitted += 1

    def record_execution(self, status: str, profit: Decimal = Decimal("0")) -> None:
        """
        Record the settled outcome of a trade.

        Args:
            status: Final TradeStatus value (CONFIRMED, FAILED or UNKNOWN).
            profit: Profit credited for a confirmed trade.
        """
        if status == "CONFIRMED":
            self._trading.trades_confirmed += 1
            self._trading.total_profit += profit
        elif status == "FAILED":
            self._trading.trades_failed += 1
        elif status == "UNKNOWN":
            self._trading.trades_unknown += 1

    def resolve_unknown(self) -> None:
        """Move one trade out of the unknown bucket after reconciliation."""
        self._trading.trades_unknown = max(0, self._trading.trades_unknown - 1)

    def record_withdrawal(self, amount: Decimal) -> None:
        self._trading.total_withdrawn += amount

    @property
    def trading_stats(self) -> TradingStats:
        return self._trading

    @property
    def uptime_seconds(self) -> float:
        return time.monotonic() - self._started

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly export of every metric."""
        return {
            "uptime_seconds": round(self.uptime_seconds, 3),
            "counters": dict(self._counters),
            "latencies": {name: asdict(self.get_latency_stats(name)) for name in self._latencies},
            "trading": self._trading.to_dict(),
        }

    def reset(self) -> None:
        self._latencies.clear()
        self._counters.clear()
        self._trading = TradingStats()
        self._started = time.monotonic()
