"""
Time helpers.

Wall-clock microsecond stamps for quotes and trade records, and a
monotonic timer for latency samples.
"""

import time


def get_timestamp_us() -> int:
    """
    Get current Unix timestamp in microseconds.

    Quote skew and trade record ages are compared in this unit.
    """
    return time.time_ns() // 1000


class LatencyTimer:
    """
    Context manager for measuring operation latency.

    Reads the monotonic performance counter, so samples never go
    negative when the wall clock is adjusted.

    Example:
        >>> with LatencyTimer() as timer:
        ...     await oracle.get_quote(Venue.RAYDIUM, mint)
        >>> metrics.record_latency("quote", timer.latency_us)
    """

    __slots__ = ("_start_ns", "latency_us")

    def __init__(self) -> None:
        self._start_ns: int = 0
        self.latency_us: int = 0

    def __enter__(self) -> "LatencyTimer":
        self._start_ns = time.perf_counter_ns()
        return self

    def __exit__(self, *args: object) -> None:
        self.latency_us = (time.perf_counter_ns() - self._start_ns) // 1000
