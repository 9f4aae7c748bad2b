"""
Trade execution engine.

Moves a trade through Received -> Validated -> Submitted -> Confirmed/
Failed with at-most-once submission per fingerprint:
- Atomic idempotency claim in the counter store right before signing
- Claim released only when nothing can have left the process
- Submission shielded from cancellation once signed
- Confirmation polling with a hard deadline; ambiguous outcomes are
  recorded as UNKNOWN and never credited
"""

import asyncio
import hashlib
import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass

from solders.instruction import Instruction
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from solarb.config.constants import (
    DEFAULT_CONFIRM_POLL_INTERVAL_SECONDS,
    DEFAULT_CONFIRM_TIMEOUT_SECONDS,
    DEFAULT_IDEMPOTENCY_TTL_SECONDS,
    DEFAULT_TRADE_RECORD_TTL_SECONDS,
    DEFAULT_TRADE_SIZE_SOL,
    KEY_IDEMPOTENCY_PREFIX,
    LAMPORTS_PER_SOL,
)
from solarb.config.settings import Settings
from solarb.core.errors import (
    ChainClientError,
    OracleError,
    SafetyCheckError,
    SigningError,
    SubmissionError,
    UnknownOutcome,
    ValidationError,
)
from solarb.core.models import TradeRequest
from solarb.core.session import SessionState
from solarb.core.types import (
    ChainClient,
    ProfitEstimate,
    SignatureStatus,
    TradeRecord,
    TradeStage,
    TradeStatus,
    Venue,
)
from solarb.execution.instructions import InstructionBuilder
from solarb.execution.risk import RiskManager
from solarb.execution.signer import KeyStore
from solarb.execution.transaction import TransactionBuilder
from solarb.oracle.oracle import PriceOracle
from solarb.store.base import CounterStore
from solarb.strategy.evaluator import ProfitabilityEvaluator
from solarb.telemetry.metrics import MetricsCollector
from solarb.utils.time import LatencyTimer, get_timestamp_us


logger = logging.getLogger(__name__)


@dataclass
class ExecutorConfig:
    """Executor configuration."""

    trade_size_sol: float = DEFAULT_TRADE_SIZE_SOL
    idempotency_ttl_seconds: int = DEFAULT_IDEMPOTENCY_TTL_SECONDS
    trade_record_ttl_seconds: int = DEFAULT_TRADE_RECORD_TTL_SECONDS
    confirm_timeout_seconds: float = DEFAULT_CONFIRM_TIMEOUT_SECONDS
    confirm_poll_interval_seconds: float = DEFAULT_CONFIRM_POLL_INTERVAL_SECONDS
    dry_run: bool = True  # Build and sign, never send

    @classmethod
    def from_settings(cls, settings: Settings) -> "ExecutorConfig":
        return cls(
            trade_size_sol=settings.trade_size_sol,
            idempotency_ttl_seconds=settings.idempotency_ttl_seconds,
            trade_record_ttl_seconds=settings.trade_record_ttl_seconds,
            confirm_timeout_seconds=settings.confirm_timeout_seconds,
            confirm_poll_interval_seconds=settings.confirm_poll_interval_seconds,
            dry_run=settings.dry_run,
        )

    @property
    def amount_lamports(self) -> int:
        return int(round(self.trade_size_sol * LAMPORTS_PER_SOL))


class TradeExecutor:
    """
    Executes cross-venue arbitrage trades.

    Features:
    - Direct API trades (full validation) and loop opportunities
    - At-most-once submission per fingerprint
    - Confirmation polling and profit crediting
    - Dry-run mode
    """

    def __init__(
        self,
        *,
        key_store: KeyStore,
        chain: ChainClient,
        instruction_builder: InstructionBuilder,
        session: SessionState,
        store: CounterStore,
        risk_manager: RiskManager,
        oracle: PriceOracle,
        evaluator: ProfitabilityEvaluator,
        config: ExecutorConfig | None = None,
        transaction_builder: TransactionBuilder | None = None,
        metrics: MetricsCollector | None = None,
        clock: Callable[[], int] = get_timestamp_us,
    ) -> None:
        """
        Initialize executor.

        Args:
            key_store: Custodial signer.
            chain: Chain RPC client.
            instruction_builder: Builds swap instructions.
            session: Session state credited on confirmation.
            store: Counter store holding idempotency markers.
            risk_manager: Pre-trade checks and failure breaker.
            oracle: Price oracle for direct trades.
            evaluator: Profitability evaluator for direct trades.
            config: Executor configuration.
            transaction_builder: Transaction assembly.
            metrics: Optional metrics collector.
            clock: Wall clock in microseconds, used for fingerprints.
        """
        self._key_store = key_store
        self._chain = chain
        self._instruction_builder = instruction_builder
        self._session = session
        self._store = store
        self._risk_manager = risk_manager
        self._oracle = oracle
        self._evaluator = evaluator
        self._config = config or ExecutorConfig()
        self._tx_builder = transaction_builder or TransactionBuilder()
        self._metrics = metrics
        self._clock = clock

        self._records: dict[str, TradeRecord] = {}
        self._inflight: set[asyncio.Task[TradeRecord]] = set()

        # Statistics
        self._total_executions = 0
        self._successful_executions = 0
        self._failed_executions = 0

    # =========================================================================
    # Fingerprints
    # =========================================================================

    def fingerprint(
        self,
        requester: str,
        token_mint: str,
        buy_venue: Venue,
        now_us: int | None = None,
    ) -> str:
        """
        Compute the idempotency fingerprint of a trade.

        Requests from the same requester for the same token and direction
        within one idempotency window share a fingerprint.
        """
        now = self._clock() if now_us is None else now_us
        bucket = now // (self._config.idempotency_ttl_seconds * 1_000_000)
        material = f"{requester}|{token_mint}|{buy_venue.value}|{bucket}"
        return hashlib.sha256(material.encode("utf-8")).hexdigest()

    # =========================================================================
    # Entry Points
    # =========================================================================

    async def submit(self, request: TradeRequest) -> TradeRecord:
        """
        Execute a direct trade request.

        Args:
            request: Authenticated, schema-validated request.

        Returns:
            The trade record, or the existing record for a duplicate.

        Raises:
            ValidationError: Token not whitelisted, ROI below threshold,
                trading halted or the live quotes are not profitable.
            OracleUnavailable: If quotes could not be obtained.
            UnknownToken: If a venue has no market for the token.
            SubmissionError: If the transaction could not be delivered.
            SafetyCheckError: If the built transaction is unsafe.
            SigningError: If signing failed.
        """
        record = self._new_record(
            requester=request.requester_id,
            fingerprint=self.fingerprint(request.requester_id, request.token_mint, request.buy_venue),
            token_mint=request.token_mint,
            buy_venue=request.buy_venue,
            sell_venue=request.sell_venue,
        )

        check = self._risk_manager.check_trade(request.token_mint, request.roi)
        if not check:
            self._fail(record, check.reason)
            raise ValidationError(check.reason)

        try:
            pair = await self._oracle.get_quote_pair(
                request.buy_venue, request.sell_venue, request.token_mint
            )
        except OracleError as e:
            self._fail(record, f"Quote unavailable: {e}")
            raise

        estimate = self._evaluator.evaluate(pair.buy, pair.sell)
        if not estimate:
            self._fail(record, estimate.reason)
            raise ValidationError(estimate.reason)

        return await self._execute(record, estimate)

    async def execute_opportunity(
        self,
        requester: str,
        token_mint: str,
        buy_venue: Venue,
        estimate: ProfitEstimate,
    ) -> TradeRecord:
        """
        Execute an opportunity already validated by the control loop.

        Raises:
            Same execution errors as submit().
        """
        record = self._new_record(
            requester=requester,
            fingerprint=self.fingerprint(requester, token_mint, buy_venue),
            token_mint=token_mint,
            buy_venue=buy_venue,
            sell_venue=buy_venue.other,
        )

        check = self._risk_manager.check_trade(token_mint)
        if not check:
            self._fail(record, check.reason)
            raise ValidationError(check.reason)

        return await self._execute(record, estimate)

    # =========================================================================
    # Pipeline
    # =========================================================================

    async def _execute(self, record: TradeRecord, estimate: ProfitEstimate) -> TradeRecord:
        """Validated -> signed -> Submitted -> settled."""
        self._total_executions += 1
        record.stage = TradeStage.VALIDATED
        record.net_profit_pct = estimate.net_profit_pct
        record.expected_profit = self._evaluator.expected_profit(estimate, self._config.trade_size_sol)
        self._touch(record)

        payer = self._key_store.pubkey
        try:
            instructions = await self._instruction_builder.build(
                record.token_mint,
                record.buy_venue,
                record.sell_venue,
                payer,
                self._config.amount_lamports,
            )
        except SubmissionError as e:
            self._fail(record, f"Instruction build failed: {e}")
            self._failed_executions += 1
            raise

        # Atomic claim; nothing below this point may run twice per fingerprint
        marker = f"{KEY_IDEMPOTENCY_PREFIX}{record.fingerprint}"
        claimed = await self._store.set_if_absent(
            marker, record.record_id, self._config.idempotency_ttl_seconds
        )
        if not claimed:
            return await self._duplicate_of(record, marker)

        try:
            transaction = await self._build_and_sign(instructions, payer)
        except (SafetyCheckError, SigningError, ChainClientError) as e:
            await self._store.delete(marker)
            self._fail(record, f"Not submitted: {e}")
            self._failed_executions += 1
            if isinstance(e, ChainClientError):
                raise SubmissionError(f"Blockhash unavailable: {e}") from e
            raise

        record.signature = str(transaction.signatures[0])

        if self._config.dry_run:
            return await self._settle_dry_run(record)

        task = asyncio.create_task(self._submit_signed(record, transaction))
        self._inflight.add(task)
        task.add_done_callback(self._collect_submission)
        return await asyncio.shield(task)

    def _collect_submission(self, task: asyncio.Task[TradeRecord]) -> None:
        """Retrieve the outcome of a shielded send, even when its caller is gone."""
        self._inflight.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(f"Shielded submission ended with {type(error).__name__}: {error}")

    async def _build_and_sign(self, instructions: list[Instruction], payer: Pubkey) -> Transaction:
        blockhash = await self._chain.get_latest_blockhash()
        transaction = self._tx_builder.build(instructions, payer, blockhash)
        self._tx_builder.safety_check(transaction)
        return self._key_store.sign(transaction)

    async def _duplicate_of(self, record: TradeRecord, marker: str) -> TradeRecord:
        """Resolve a lost idempotency claim to the record that won it."""
        self._records.pop(record.record_id, None)
        self._total_executions -= 1

        existing_id = await self._store.get(marker)
        existing = self._records.get(existing_id) if existing_id else None
        logger.info(
            f"Duplicate trade {record.token_mint} {record.buy_venue.value}: "
            f"fingerprint already claimed by {existing_id}"
        )
        if self._metrics:
            self._metrics.increment_counter("duplicate_trades")

        if existing is not None:
            return existing

        # Claimed by a record no longer held here; report without submitting
        record.stage = TradeStage.FAILED
        record.status = TradeStatus.FAILED
        record.reason = f"Duplicate of {existing_id}"
        self._touch(record)
        return record

    async def _settle_dry_run(self, record: TradeRecord) -> TradeRecord:
        record.signature = f"DRY_{record.record_id}"
        record.stage = TradeStage.SUBMITTED
        record.status = TradeStatus.SUBMITTED
        record.submitted_at_us = get_timestamp_us()
        self._touch(record)

        logger.info(
            f"[DRY RUN] {record.token_mint}: buy {record.buy_venue.value} "
            f"sell {record.sell_venue.value}, net={record.net_profit_pct:.4f}%, "
            f"expected={record.expected_profit} SOL"
        )
        await self._confirm(record)
        return record

    async def _submit_signed(self, record: TradeRecord, transaction: Transaction) -> TradeRecord:
        """Send and settle a signed transaction. Runs shielded."""
        with LatencyTimer() as timer:
            try:
                signature = await self.send_signed(transaction)
            except (SubmissionError, SafetyCheckError) as e:
                self._fail(record, f"Submission failed: {e}")
                self._failed_executions += 1
                self._risk_manager.record_failure()
                raise

        record.signature = signature
        record.stage = TradeStage.SUBMITTED
        record.status = TradeStatus.SUBMITTED
        record.submitted_at_us = get_timestamp_us()
        self._touch(record)

        if self._metrics:
            self._metrics.record_latency("submit", timer.latency_us)
            self._metrics.record_submission()

        logger.info(
            f"Submitted {record.record_id} {record.token_mint} "
            f"{record.buy_venue.value}->{record.sell_venue.value}: {signature}"
        )

        try:
            status = await self._await_confirmation(signature)
        except UnknownOutcome as e:
            self._mark_unknown(record, str(e))
            return record

        await self.settle(record, status)
        return record

    async def send_signed(self, transaction: Transaction) -> str:
        """
        Safety-check and send a signed transaction.

        Returns:
            Transaction signature.

        Raises:
            SafetyCheckError: If the transaction fails the safety check.
            SubmissionError: If the RPC node rejected or never got it.
        """
        self._tx_builder.safety_check(transaction)
        try:
            return await self._chain.send_transaction(bytes(transaction))
        except ChainClientError as e:
            raise SubmissionError(f"Send failed: {e}") from e

    async def _await_confirmation(self, signature: str) -> SignatureStatus:
        """
        Poll until the transaction is confirmed or failed.

        Raises:
            UnknownOutcome: If neither happened before the deadline.
        """
        deadline = time.monotonic() + self._config.confirm_timeout_seconds
        last_error = ""

        while True:
            try:
                status = await self._chain.get_signature_status(signature)
            except ChainClientError as e:
                last_error = str(e)
                logger.debug(f"Status poll for {signature} failed: {e}")
            else:
                if status is not None and (status.is_confirmed or status.is_failed):
                    return status

            if time.monotonic() >= deadline:
                detail = f" (last error: {last_error})" if last_error else ""
                raise UnknownOutcome(
                    f"No confirmation within {self._config.confirm_timeout_seconds}s{detail}",
                    signature=signature,
                )
            await asyncio.sleep(self._config.confirm_poll_interval_seconds)

    # =========================================================================
    # Settlement
    # =========================================================================

    async def settle(self, record: TradeRecord, status: SignatureStatus | None) -> bool:
        """
        Apply a chain-reported status to a submitted record.

        Args:
            record: SUBMITTED or UNKNOWN record.
            status: Latest status, or None if the chain has not seen it.

        Returns:
            True if the record reached a final status.
        """
        if record.is_final:
            return True
        if status is None or not (status.is_confirmed or status.is_failed):
            return False

        was_unknown = record.status == TradeStatus.UNKNOWN
        if was_unknown and self._metrics:
            self._metrics.resolve_unknown()

        if status.is_failed:
            self._fail(record, f"Transaction failed on chain: {status.error}")
            self._failed_executions += 1
            self._risk_manager.record_failure()
            return True

        await self._confirm(record)
        return True

    async def _confirm(self, record: TradeRecord) -> None:
        record.stage = TradeStage.CONFIRMED
        record.status = TradeStatus.CONFIRMED
        self._touch(record)

        await self._session.credit(record.expected_profit)
        self._successful_executions += 1
        self._risk_manager.record_success()
        if self._metrics:
            self._metrics.record_execution(TradeStatus.CONFIRMED.value, record.expected_profit)

        logger.info(
            f"Trade {record.record_id} confirmed: {record.signature}, "
            f"credited {record.expected_profit} SOL"
        )

    def _mark_unknown(self, record: TradeRecord, reason: str) -> None:
        record.status = TradeStatus.UNKNOWN
        record.reason = reason
        self._touch(record)
        if self._metrics:
            self._metrics.record_execution(TradeStatus.UNKNOWN.value)
        logger.warning(
            f"Trade {record.record_id} outcome unknown, signature {record.signature}: {reason}"
        )

    def _fail(self, record: TradeRecord, reason: str) -> None:
        record.stage = TradeStage.FAILED
        record.status = TradeStatus.FAILED
        record.reason = reason
        self._touch(record)
        if self._metrics:
            self._metrics.record_execution(TradeStatus.FAILED.value)
        logger.warning(f"Trade {record.record_id} {record.token_mint} failed: {reason}")

    # =========================================================================
    # Records
    # =========================================================================

    def _new_record(
        self,
        requester: str,
        fingerprint: str,
        token_mint: str,
        buy_venue: Venue,
        sell_venue: Venue,
    ) -> TradeRecord:
        self._evict_expired()
        now = get_timestamp_us()
        record = TradeRecord(
            record_id=uuid.uuid4().hex,
            fingerprint=fingerprint,
            requester=requester,
            token_mint=token_mint,
            buy_venue=buy_venue,
            sell_venue=sell_venue,
            created_at_us=now,
            updated_at_us=now,
        )
        self._records[record.record_id] = record
        return record

    @staticmethod
    def _touch(record: TradeRecord) -> None:
        record.updated_at_us = get_timestamp_us()

    def _evict_expired(self) -> int:
        """Drop final records older than the retention TTL."""
        cutoff = get_timestamp_us() - self._config.trade_record_ttl_seconds * 1_000_000
        expired = [
            record_id
            for record_id, record in self._records.items()
            if record.is_final and record.updated_at_us < cutoff
        ]
        for record_id in expired:
            del self._records[record_id]
        return len(expired)

    def get_record(self, record_id: str) -> TradeRecord | None:
        return self._records.get(record_id)

    def records(self, status: TradeStatus | None = None) -> list[TradeRecord]:
        """List retained records, newest first."""
        self._evict_expired()
        selected = [r for r in self._records.values() if status is None or r.status == status]
        return sorted(selected, key=lambda r: r.created_at_us, reverse=True)

    def unknown_records(self) -> list[TradeRecord]:
        """Records whose outcome needs reconciliation."""
        return self.records(TradeStatus.UNKNOWN)

    def counts_by_status(self) -> dict[str, int]:
        counts = {status.value: 0 for status in TradeStatus}
        for record in self._records.values():
            counts[record.status.value] += 1
        return counts

    async def wait_inflight(self) -> None:
        """Wait for shielded submissions to settle."""
        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)

    @property
    def config(self) -> ExecutorConfig:
        return self._config

    @property
    def chain(self) -> ChainClient:
        return self._chain

    @property
    def stats(self) -> dict[str, int]:
        """Get execution statistics."""
        return {
            "total": self._total_executions,
            "successful": self._successful_executions,
            "failed": self._failed_executions,
        }

    @property
    def success_rate(self) -> float:
        """Calculate success rate."""
        if self._total_executions == 0:
            return 0.0
        return self._successful_executions / self._total_executions
