"""
Main trading engine orchestrator.

Builds every component from one Settings object and manages the
service lifecycle. Components receive their collaborators explicitly;
nothing is looked up from module-level state.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from decimal import ROUND_DOWN, Decimal
from typing import Any

from solders.pubkey import Pubkey

from solarb.config.constants import LAMPORTS_PER_SOL
from solarb.config.settings import Settings
from solarb.core.errors import ChainClientError, ValidationError
from solarb.core.loop import ControlLoop
from solarb.core.session import SessionState
from solarb.core.types import ChainClient, TradeRecord, TradeStatus
from solarb.execution.chain import SolanaRpcClient
from solarb.execution.executor import ExecutorConfig, TradeExecutor
from solarb.execution.instructions import InstructionBuilder, JupiterInstructionBuilder
from solarb.execution.recovery import ReconciliationResult, TradeReconciler
from solarb.execution.risk import RiskManager
from solarb.execution.signer import KeyStore
from solarb.execution.transaction import TransactionBuilder
from solarb.oracle.oracle import PriceOracle
from solarb.oracle.sources import PumpFunPriceSource, RaydiumPriceSource
from solarb.security.gate import SecurityGate
from solarb.security.rate_limiter import RateLimiter
from solarb.store.base import CounterStore
from solarb.store.memory import InMemoryCounterStore
from solarb.strategy.evaluator import ProfitabilityEvaluator
from solarb.telemetry.metrics import MetricsCollector
from solarb.utils.time import get_timestamp_us


logger = logging.getLogger(__name__)


def parse_wallet(wallet: str | None) -> Pubkey:
    """
    Validate a wallet address.

    Raises:
        ValidationError: If the address is missing or not a base58 public key.
    """
    if wallet is None or not wallet.strip():
        raise ValidationError("Wallet address is required")
    try:
        return Pubkey.from_string(wallet.strip())
    except ValueError as e:
        raise ValidationError("Wallet address is not a valid public key") from e


class TradingEngine:
    """
    Service orchestrator.

    Manages the complete lifecycle of:
    - Venue price sources and the chain client
    - The control loop
    - Trade execution and reconciliation
    - Session state and withdrawals
    - Request security (authentication, rate limiting)
    """

    def __init__(
        self,
        settings: Settings,
        *,
        store: CounterStore | None = None,
        oracle: PriceOracle | None = None,
        chain: ChainClient | None = None,
        instruction_builder: InstructionBuilder | None = None,
        key_store: KeyStore | None = None,
    ) -> None:
        """
        Initialize the engine.

        Args:
            settings: Application settings.
            store: Counter store; in-memory by default.
            oracle: Price oracle; Raydium and Pump.fun sources by default.
            chain: Chain client; Solana JSON-RPC by default.
            instruction_builder: Swap builder; Jupiter by default.
            key_store: Custodial signer; decoded from settings by default.

        Raises:
            KeyFormatError: If the configured custodial key is malformed.
        """
        self._settings = settings
        self._metrics = MetricsCollector()
        self._store = store or InMemoryCounterStore()

        self._key_store = key_store or KeyStore.from_secret(settings.custodial_secret_key)
        self._oracle = oracle or PriceOracle(
            sources=[
                RaydiumPriceSource(settings.raydium_api_url, settings.quote_timeout_seconds),
                PumpFunPriceSource(settings.pumpfun_api_url, settings.quote_timeout_seconds),
            ],
            timeout_seconds=settings.quote_timeout_seconds,
            max_skew_ms=settings.max_quote_skew_ms,
            metrics=self._metrics,
        )
        self._chain = chain or SolanaRpcClient(settings.rpc_url, settings.rpc_timeout_seconds)
        self._instruction_builder = instruction_builder or JupiterInstructionBuilder(
            settings.jupiter_api_url,
            settings.rpc_timeout_seconds,
            slippage_bps=int(round(settings.max_slippage * 10_000)),
        )

        # Security
        self._gate = SecurityGate.from_settings(settings)
        self._rate_limiter = RateLimiter.from_settings(self._store, settings)

        # Trading pipeline
        self._session = SessionState(self._store)
        self._evaluator = ProfitabilityEvaluator(
            min_profit_pct=settings.min_profit_pct,
            fee_rate_round_trip=settings.fee_rate_round_trip,
            max_slippage=settings.max_slippage,
        )
        self._risk_manager = RiskManager.from_settings(settings)
        self._tx_builder = TransactionBuilder()
        self._executor = TradeExecutor(
            key_store=self._key_store,
            chain=self._chain,
            instruction_builder=self._instruction_builder,
            session=self._session,
            store=self._store,
            risk_manager=self._risk_manager,
            oracle=self._oracle,
            evaluator=self._evaluator,
            config=ExecutorConfig.from_settings(settings),
            transaction_builder=self._tx_builder,
            metrics=self._metrics,
        )
        self._reconciler = TradeReconciler(self._executor)
        self._loop = ControlLoop(
            session=self._session,
            oracle=self._oracle,
            evaluator=self._evaluator,
            executor=self._executor,
            risk_manager=self._risk_manager,
            whitelist=settings.whitelisted_mints,
            interval_seconds=settings.loop_interval_seconds,
            metrics=self._metrics,
        )

        self._closed = False

    async def setup(self) -> None:
        """Check connectivity and log the effective configuration."""
        logger.info("Initializing trading engine...")
        logger.info(
            f"Mode={'DRY RUN' if self._settings.dry_run else 'LIVE'} "
            f"tokens={len(self._settings.whitelisted_mints)} "
            f"min_profit={self._settings.min_profit_pct:.2f}% "
            f"trade_size={self._settings.trade_size_sol} SOL"
        )

        if not self._settings.whitelisted_mints:
            logger.warning("Token whitelist is empty; the control loop will not trade")

        try:
            lamports = await self._chain.get_balance(str(self._key_store.pubkey))
            logger.info(
                f"Custodial wallet {self._key_store.pubkey}: {lamports / LAMPORTS_PER_SOL:.9f} SOL"
            )
        except ChainClientError as e:
            logger.warning(f"Could not fetch custodial balance: {e}")

        logger.info("Engine initialization complete")

    # =========================================================================
    # Control
    # =========================================================================

    async def start(self, wallet: str | None) -> bool:
        """
        Record the owner wallet and start the control loop.

        Returns:
            True if the loop was started, False if it was already running.

        Raises:
            ValidationError: If the wallet is missing or invalid.
        """
        owner = parse_wallet(wallet)
        await self._session.set_owner_wallet(str(owner))
        return await self._loop.start()

    async def stop(self) -> bool:
        """Stop the control loop. Returns False if it was not running."""
        return await self._loop.stop()

    async def withdraw(self, wallet: str | None = None) -> tuple[Decimal, str]:
        """
        Transfer the accumulated profit to a wallet.

        Args:
            wallet: Destination; defaults to the wallet given at start.

        Returns:
            (amount withdrawn in SOL, transfer signature)

        Raises:
            ValidationError: If no valid destination is known.
            NoFunds: If there is nothing to withdraw.
            WithdrawalError: If the transfer failed (funds re-credited).
            WithdrawalReconciliationError: If the re-credit failed too.
        """
        destination = parse_wallet(wallet or await self._session.owner_wallet())
        signatures: list[str] = []

        async def transfer(address: str, amount: Decimal) -> str:
            signature = await self._transfer(Pubkey.from_string(address), amount)
            signatures.append(signature)
            return signature

        amount = await self._session.withdraw(str(destination), transfer)
        self._metrics.record_withdrawal(amount)
        return amount, signatures[-1]

    async def _transfer(self, destination: Pubkey, amount: Decimal) -> str:
        """Send `amount` SOL from the custodial wallet."""
        lamports = int((amount * LAMPORTS_PER_SOL).to_integral_value(rounding=ROUND_DOWN))

        if self._settings.dry_run:
            logger.info(f"[DRY RUN] Withdrawal of {lamports} lamports to {destination}")
            return f"DRY_WITHDRAW_{get_timestamp_us()}"

        blockhash = await self._chain.get_latest_blockhash()
        transaction = self._tx_builder.build_transfer(
            self._key_store.pubkey, destination, lamports, blockhash
        )
        self._key_store.sign(transaction)
        return await asyncio.shield(self._executor.send_signed(transaction))

    # =========================================================================
    # Queries
    # =========================================================================

    async def status(self) -> dict[str, Any]:
        """Session snapshot, metrics and record counts."""
        snapshot = await self._session.snapshot()
        return {
            **snapshot.to_dict(),
            "dryRun": self._settings.dry_run,
            "loopActive": self._loop.is_active,
            "cycles": self._loop.cycles,
            "trades": self._executor.counts_by_status(),
            "execution": self._executor.stats,
            "risk": self._risk_manager.to_dict(),
            "metrics": self._metrics.to_dict(),
        }

    def trades(self, status: TradeStatus | None = None) -> list[TradeRecord]:
        return self._executor.records(status)

    async def reconcile(self) -> ReconciliationResult:
        """Re-poll trades with an unknown outcome."""
        return await self._reconciler.reconcile()

    # =========================================================================
    # Shutdown
    # =========================================================================

    async def shutdown(self) -> None:
        """Gracefully shut down the engine."""
        if self._closed:
            return
        self._closed = True
        logger.info("Shutting down engine...")

        await self._loop.stop()
        await self._loop.wait_stopped()
        await self._executor.wait_inflight()
        await self._session.wait_withdrawals()

        await self._oracle.close()
        for resource in (self._chain, self._instruction_builder):
            close = getattr(resource, "close", None)
            if close is not None:
                await close()

        logger.info("Engine shutdown complete")

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def gate(self) -> SecurityGate:
        return self._gate

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._rate_limiter

    @property
    def session(self) -> SessionState:
        return self._session

    @property
    def executor(self) -> TradeExecutor:
        return self._executor

    @property
    def risk_manager(self) -> RiskManager:
        return self._risk_manager

    @property
    def loop(self) -> ControlLoop:
        return self._loop

    @property
    def metrics(self) -> MetricsCollector:
        """Get metrics collector."""
        return self._metrics


@asynccontextmanager
async def create_engine(settings: Settings, **components: Any) -> AsyncIterator[TradingEngine]:
    """
    Create and manage engine lifecycle.

    Usage:
        async with create_engine(settings) as engine:
            await engine.start(wallet)
    """
    engine = TradingEngine(settings, **components)

    try:
        await engine.setup()
        yield engine
    finally:
        await engine.shutdown()
