"""Shared counter store for rate limits, idempotency markers and session state."""

from solarb.store.base import CounterStore
from solarb.store.memory import InMemoryCounterStore


__all__ = [
    "CounterStore",
    "InMemoryCounterStore",
]
