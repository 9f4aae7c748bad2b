"""
Autonomous control loop.

Periodically scans every whitelisted token across both venues and hands
the best passing opportunity per token to the trade executor. Cycles
never overlap and never start after stop() has been called.
"""

import asyncio
import logging
from collections.abc import Iterable

from solarb.config.constants import DEFAULT_LOOP_INTERVAL_SECONDS, LOOP_REQUESTER
from solarb.core.errors import ExecutionError, OracleError, ValidationError
from solarb.core.session import SessionState
from solarb.core.types import CycleReport, ProfitEstimate, Venue
from solarb.execution.executor import TradeExecutor
from solarb.execution.risk import RiskManager
from solarb.oracle.oracle import PriceOracle
from solarb.strategy.evaluator import ProfitabilityEvaluator
from solarb.telemetry.metrics import MetricsCollector
from solarb.utils.time import LatencyTimer, get_timestamp_us


logger = logging.getLogger(__name__)


class ControlLoop:
    """
    Start/stop-able periodic evaluation task.

    Each run gets its own stop token, so a stop() followed by a quick
    start() can never revive the old task.
    """

    def __init__(
        self,
        session: SessionState,
        oracle: PriceOracle,
        evaluator: ProfitabilityEvaluator,
        executor: TradeExecutor,
        risk_manager: RiskManager,
        whitelist: Iterable[str],
        interval_seconds: float = DEFAULT_LOOP_INTERVAL_SECONDS,
        metrics: MetricsCollector | None = None,
    ) -> None:
        """
        Initialize the loop.

        Args:
            session: Session state holding the running flag.
            oracle: Price oracle.
            evaluator: Profitability evaluator.
            executor: Trade executor.
            risk_manager: Risk manager (halt state).
            whitelist: Token mints to scan.
            interval_seconds: Delay between cycles.
            metrics: Optional metrics collector.
        """
        self._session = session
        self._oracle = oracle
        self._evaluator = evaluator
        self._executor = executor
        self._risk_manager = risk_manager
        self._whitelist = tuple(sorted(frozenset(whitelist)))
        self._interval = interval_seconds
        self._metrics = metrics

        self._cycle_lock = asyncio.Lock()
        self._stop_token: asyncio.Event | None = None
        self._task: asyncio.Task[None] | None = None
        self._cycles = 0
        self._last_report: CycleReport | None = None

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> bool:
        """
        Start the loop if it is not running.

        Returns:
            True if this call started it, False if it was already running.
        """
        if not await self._session.set_running(False, True):
            logger.info("Control loop already running")
            return False

        stop_token = asyncio.Event()
        self._stop_token = stop_token
        self._task = asyncio.create_task(self._run(stop_token), name="control-loop")
        logger.info(
            f"Control loop started: {len(self._whitelist)} tokens every {self._interval:.1f}s"
        )
        return True

    async def stop(self) -> bool:
        """
        Stop the loop. An in-flight cycle finishes; no new cycle starts.

        Returns:
            True if this call stopped it, False if it was not running.
        """
        # Signal first so no cycle can begin once the flag reads false
        if self._stop_token is not None:
            self._stop_token.set()

        stopped = await self._session.set_running(True, False)
        if stopped:
            logger.info("Control loop stopping")
        return stopped

    async def wait_stopped(self) -> None:
        """Wait for the loop task, including an in-flight cycle, to finish."""
        if self._task is not None:
            await self._task

    async def _run(self, stop_token: asyncio.Event) -> None:
        while not stop_token.is_set():
            async with self._cycle_lock:
                if stop_token.is_set():
                    break
                try:
                    await self.run_cycle()
                except Exception:
                    logger.exception("Control loop cycle failed")

            try:
                await asyncio.wait_for(stop_token.wait(), timeout=self._interval)
            except TimeoutError:
                pass

        logger.info("Control loop stopped")

    # =========================================================================
    # Cycle
    # =========================================================================

    async def run_cycle(self) -> CycleReport:
        """
        Scan every whitelisted token once.

        Per-token errors are logged and recorded in the report; they
        never abort the cycle.
        """
        report = CycleReport(started_at_us=get_timestamp_us())

        with LatencyTimer() as timer:
            for token_mint in self._whitelist:
                report.tokens_scanned += 1
                try:
                    await self._scan_token(token_mint, report)
                except (OracleError, ExecutionError, ValidationError) as e:
                    logger.warning(f"Cycle skipped {token_mint}: {type(e).__name__}: {e}")
                    report.errors.append(f"{token_mint}: {e}")

        report.finished_at_us = get_timestamp_us()
        self._cycles += 1
        self._last_report = report

        if self._metrics:
            self._metrics.increment_counter("cycles")
            self._metrics.record_latency("cycle", timer.latency_us)

        logger.debug(
            f"Cycle {self._cycles}: scanned={report.tokens_scanned} "
            f"opportunities={report.opportunities} trades={len(report.trades)} "
            f"errors={len(report.errors)} latency={timer.latency_us}μs"
        )
        return report

    async def _scan_token(self, token_mint: str, report: CycleReport) -> None:
        """Evaluate both directions for one token and execute the best."""
        pair = await self._oracle.get_quote_pair(Venue.RAYDIUM, Venue.PUMPFUN, token_mint)

        candidates: list[tuple[Venue, ProfitEstimate]] = [
            (Venue.RAYDIUM, self._evaluator.evaluate(pair.buy, pair.sell)),
            (Venue.PUMPFUN, self._evaluator.evaluate(pair.sell, pair.buy)),
        ]
        best = self._evaluator.best_of([estimate for _, estimate in candidates])
        if best is None:
            return

        buy_venue = next(venue for venue, estimate in candidates if estimate is best)
        report.opportunities += 1
        if self._metrics:
            self._metrics.record_opportunity(best.net_profit_pct)

        logger.info(
            f"Opportunity {token_mint}: buy {buy_venue.value} @ {best.buy_price:.8f}, "
            f"sell {buy_venue.other.value} @ {best.sell_price:.8f}, "
            f"net={best.net_profit_pct:.4f}%"
        )

        if not self._risk_manager.is_trading_allowed:
            logger.warning(f"Skipping {token_mint}: trading halted")
            return

        record = await self._executor.execute_opportunity(
            LOOP_REQUESTER, token_mint, buy_venue, best
        )
        report.trades.append(record)

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def is_active(self) -> bool:
        """Check if the loop task is alive."""
        return self._task is not None and not self._task.done()

    @property
    def cycles(self) -> int:
        return self._cycles

    @property
    def last_report(self) -> CycleReport | None:
        return self._last_report

    @property
    def whitelist(self) -> tuple[str, ...]:
        return self._whitelist
