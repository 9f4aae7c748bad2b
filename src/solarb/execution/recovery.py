"""
Reconciliation of trades with an unknown outcome.

A trade whose confirmation poll timed out may still land. The
reconciler re-polls the chain for every UNKNOWN record and settles the
ones that have become final; the rest stay visible to operators.
"""

import logging
from dataclasses import dataclass, field

from solarb.core.errors import ChainClientError
from solarb.core.types import ChainClient, TradeRecord, TradeStatus
from solarb.execution.executor import TradeExecutor
from solarb.utils.time import LatencyTimer


logger = logging.getLogger(__name__)


@dataclass
class ReconciliationResult:
    """Result of one reconciliation pass."""

    checked: int = 0
    confirmed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    unresolved: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    latency_us: int = 0

    def to_dict(self) -> dict[str, object]:
        return {
            "checked": self.checked,
            "confirmed": self.confirmed,
            "failed": self.failed,
            "unresolved": self.unresolved,
            "errors": self.errors,
            "latencyUs": self.latency_us,
        }


class TradeReconciler:
    """Settles UNKNOWN trade records from chain state."""

    def __init__(self, executor: TradeExecutor, chain: ChainClient | None = None) -> None:
        """
        Initialize reconciler.

        Args:
            executor: Executor owning the records.
            chain: Chain client to poll; defaults to the executor's.
        """
        self._executor = executor
        self._chain = chain or executor.chain

    async def reconcile(self) -> ReconciliationResult:
        """
        Re-poll every UNKNOWN record once.

        Returns:
            ReconciliationResult listing record ids by outcome.
        """
        result = ReconciliationResult()

        with LatencyTimer() as timer:
            for record in self._executor.unknown_records():
                result.checked += 1
                await self._reconcile_one(record, result)

        result.latency_us = timer.latency_us

        if result.checked:
            logger.info(
                f"Reconciliation: checked={result.checked} confirmed={len(result.confirmed)} "
                f"failed={len(result.failed)} unresolved={len(result.unresolved)}"
            )
        if result.unresolved:
            logger.warning(f"Trades still awaiting operator attention: {result.unresolved}")

        return result

    async def _reconcile_one(self, record: TradeRecord, result: ReconciliationResult) -> None:
        if not record.signature:
            result.unresolved.append(record.record_id)
            return

        try:
            status = await self._chain.get_signature_status(record.signature)
        except ChainClientError as e:
            logger.error(f"Reconciliation poll failed for {record.record_id}: {e}")
            result.errors.append(record.record_id)
            result.unresolved.append(record.record_id)
            return

        settled = await self._executor.settle(record, status)
        if not settled:
            result.unresolved.append(record.record_id)
        elif record.status == TradeStatus.CONFIRMED:
            result.confirmed.append(record.record_id)
        else:
            result.failed.append(record.record_id)
