"""
Counter store contract.

Every operation is atomic with respect to all concurrent callers, so a
single-process map and a networked store shared by several instances
satisfy the same contract.
"""

from decimal import Decimal
from typing import Protocol


class CounterStore(Protocol):
    """Protocol for shared counter store implementations."""

    async def get(self, key: str) -> str | None:
        """Get a live value, or None if absent or expired."""
        ...

    async def set(self, key: str, value: str, ttl_seconds: float | None = None) -> None:
        """Set a value, optionally expiring after ttl_seconds."""
        ...

    async def delete(self, key: str) -> bool:
        """Delete a key. Returns True if a live value was removed."""
        ...

    async def set_if_absent(self, key: str, value: str, ttl_seconds: float) -> bool:
        """Set a value only if no live value exists. Returns True if set."""
        ...

    async def compare_and_set(self, key: str, expected: str | None, new: str) -> bool:
        """Replace the value only if it currently equals expected (None = absent)."""
        ...

    async def get_and_set(self, key: str, value: str) -> str | None:
        """Set a value and return the previous live value."""
        ...

    async def incr_window(self, key: str, window_seconds: float) -> tuple[int, float]:
        """
        Increment a fixed-window counter.

        The window starts with the first increment and the key expires
        when it ends.

        Returns:
            Tuple of (count in window, seconds until the window resets).
        """
        ...

    async def incr_decimal(self, key: str, amount: Decimal) -> Decimal:
        """Add amount to a decimal value (absent = 0) and return the new value."""
        ...
