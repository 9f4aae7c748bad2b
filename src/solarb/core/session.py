"""
Session state: running flag, owner wallet and accumulated profit.

All state lives in the CounterStore so that transitions are atomic
with respect to every coroutine, and so a withdrawal can be debited
and re-credited without a window where funds are counted twice.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from decimal import Decimal, InvalidOperation

from solarb.config.constants import KEY_SESSION_PROFIT, KEY_SESSION_RUNNING, KEY_SESSION_WALLET
from solarb.core.errors import NoFunds, ValidationError, WithdrawalError, WithdrawalReconciliationError
from solarb.core.types import SessionSnapshot
from solarb.store.base import CounterStore


logger = logging.getLogger(__name__)

_TRUE = "1"
_FALSE = "0"

# Sends `amount` to `destination` and returns the transfer signature
TransferFn = Callable[[str, Decimal], Awaitable[str]]


class SessionState:
    """
    Bot session backed by the shared counter store.

    Invariant: the accumulated profit is never negative.
    """

    def __init__(self, store: CounterStore) -> None:
        self._store = store
        self._withdraw_lock = asyncio.Lock()
        self._withdrawals: set[asyncio.Task[Decimal]] = set()

    # =========================================================================
    # Running Flag
    # =========================================================================

    async def is_running(self) -> bool:
        return await self._store.get(KEY_SESSION_RUNNING) == _TRUE

    async def set_running(self, expected: bool, new: bool) -> bool:
        """
        Atomically move the running flag from `expected` to `new`.

        An absent flag counts as not running.

        Returns:
            True if the transition happened.
        """
        expected_value = _TRUE if expected else _FALSE
        new_value = _TRUE if new else _FALSE

        if await self._store.compare_and_set(KEY_SESSION_RUNNING, expected_value, new_value):
            return True
        if not expected:
            # Never started in this process
            return await self._store.compare_and_set(KEY_SESSION_RUNNING, None, new_value)
        return False

    # =========================================================================
    # Owner Wallet
    # =========================================================================

    async def set_owner_wallet(self, wallet: str) -> None:
        await self._store.set(KEY_SESSION_WALLET, wallet)

    async def owner_wallet(self) -> str | None:
        return await self._store.get(KEY_SESSION_WALLET)

    # =========================================================================
    # Profit
    # =========================================================================

    async def balance(self) -> Decimal:
        """Get the accumulated, not yet withdrawn profit."""
        raw = await self._store.get(KEY_SESSION_PROFIT)
        if raw is None:
            return Decimal("0")
        try:
            return Decimal(raw)
        except InvalidOperation as e:
            raise ValueError(f"Corrupt profit balance in store: {raw!r}") from e

    async def credit(self, amount: Decimal) -> Decimal:
        """
        Add confirmed profit to the session.

        Returns:
            New balance.

        Raises:
            ValidationError: If the amount is negative or not finite.
        """
        if not amount.is_finite() or amount < 0:
            raise ValidationError(f"Cannot credit {amount}: amount must be non-negative")
        if amount == 0:
            return await self.balance()
        return await self._store.incr_decimal(KEY_SESSION_PROFIT, amount)

    async def withdraw(self, destination: str, transfer: TransferFn) -> Decimal:
        """
        Move the whole accumulated profit to `destination`.

        The balance is taken (swapped to zero) before the transfer, so a
        concurrent credit lands in the new balance rather than being lost.
        If the transfer fails the amount is re-credited. The debit and the
        transfer run shielded: cancelling the caller never strands a debit
        without its transfer or its re-credit.

        Args:
            destination: Recipient wallet address.
            transfer: Coroutine that performs the transfer.

        Returns:
            Amount withdrawn.

        Raises:
            NoFunds: If the balance is zero; state is untouched.
            WithdrawalError: If the transfer failed and funds were re-credited.
            WithdrawalReconciliationError: If the re-credit failed too.
        """
        task = asyncio.create_task(self._withdraw(destination, transfer))
        self._withdrawals.add(task)
        task.add_done_callback(self._withdrawals.discard)
        return await asyncio.shield(task)

    async def _withdraw(self, destination: str, transfer: TransferFn) -> Decimal:
        async with self._withdraw_lock:
            if await self.balance() <= 0:
                raise NoFunds("No accumulated profit to withdraw")

            previous = await self._store.get_and_set(KEY_SESSION_PROFIT, "0")
            amount = Decimal(previous or "0")
            if amount <= 0:
                raise NoFunds("No accumulated profit to withdraw")

            try:
                signature = await transfer(destination, amount)
            except Exception as transfer_error:
                try:
                    await self._store.incr_decimal(KEY_SESSION_PROFIT, amount)
                except Exception as recredit_error:
                    logger.critical(
                        f"Withdrawal of {amount} to {destination} failed and the re-credit "
                        f"failed too; manual reconciliation required: {recredit_error}"
                    )
                    raise WithdrawalReconciliationError(
                        f"Transfer failed and {amount} could not be re-credited",
                        amount=str(amount),
                    ) from recredit_error

                logger.error(f"Withdrawal of {amount} failed, funds re-credited: {transfer_error}")
                raise WithdrawalError(f"Transfer failed: {transfer_error}") from transfer_error

            logger.info(f"Withdrew {amount} SOL to {destination}: {signature}")
            return amount

    async def wait_withdrawals(self) -> None:
        """Wait for shielded withdrawals to finish."""
        if self._withdrawals:
            await asyncio.gather(*self._withdrawals, return_exceptions=True)

    # =========================================================================
    # Snapshot
    # =========================================================================

    async def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            running=await self.is_running(),
            accumulated_profit=await self.balance(),
            owner_wallet=await self.owner_wallet(),
        )
