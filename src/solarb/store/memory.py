"""
In-memory counter store.

A dict guarded by an asyncio.Lock. Expired entries are invisible to
readers and purged lazily on access.
"""

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation


@dataclass(slots=True)
class _Entry:
    value: str
    expires_at: float | None = None  # monotonic seconds

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class InMemoryCounterStore:
    """
    Process-local CounterStore implementation.

    Args:
        clock: Monotonic clock in seconds, injectable for tests.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._data: dict[str, _Entry] = {}
        self._lock = asyncio.Lock()

    def _live(self, key: str, now: float) -> _Entry | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        if entry.is_expired(now):
            del self._data[key]
            return None
        return entry

    def _expiry(self, now: float, ttl_seconds: float | None) -> float | None:
        return None if ttl_seconds is None else now + ttl_seconds

    async def get(self, key: str) -> str | None:
        async with self._lock:
            entry = self._live(key, self._clock())
            return entry.value if entry else None

    async def set(self, key: str, value: str, ttl_seconds: float | None = None) -> None:
        async with self._lock:
            now = self._clock()
            self._data[key] = _Entry(value, self._expiry(now, ttl_seconds))

    async def delete(self, key: str) -> bool:
        async with self._lock:
            entry = self._live(key, self._clock())
            if entry is None:
                return False
            del self._data[key]
            return True

    async def set_if_absent(self, key: str, value: str, ttl_seconds: float) -> bool:
        async with self._lock:
            now = self._clock()
            if self._live(key, now) is not None:
                return False
            self._data[key] = _Entry(value, self._expiry(now, ttl_seconds))
            return True

    async def compare_and_set(self, key: str, expected: str | None, new: str) -> bool:
        async with self._lock:
            now = self._clock()
            entry = self._live(key, now)
            current = entry.value if entry else None
            if current != expected:
                return False
            expires_at = entry.expires_at if entry else None
            self._data[key] = _Entry(new, expires_at)
            return True

    async def get_and_set(self, key: str, value: str) -> str | None:
        async with self._lock:
            now = self._clock()
            entry = self._live(key, now)
            previous = entry.value if entry else None
            self._data[key] = _Entry(value, entry.expires_at if entry else None)
            return previous

    async def incr_window(self, key: str, window_seconds: float) -> tuple[int, float]:
        async with self._lock:
            now = self._clock()
            entry = self._live(key, now)
            if entry is None:
                entry = _Entry("0", now + window_seconds)
                self._data[key] = entry
            count = int(entry.value) + 1
            entry.value = str(count)
            remaining = (entry.expires_at or now) - now
            return count, max(0.0, remaining)

    async def incr_decimal(self, key: str, amount: Decimal) -> Decimal:
        async with self._lock:
            now = self._clock()
            entry = self._live(key, now)
            try:
                current = Decimal(entry.value) if entry else Decimal("0")
            except InvalidOperation as e:
                raise ValueError(f"Value at {key} is not a decimal") from e
            new_value = current + amount
            self._data[key] = _Entry(str(new_value), entry.expires_at if entry else None)
            return new_value

    def __len__(self) -> int:
        now = self._clock()
        return sum(1 for entry in self._data.values() if not entry.is_expired(now))
