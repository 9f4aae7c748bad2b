"""Utility functions for the arbitrage service."""

from solarb.utils.time import LatencyTimer, get_timestamp_us


__all__ = [
    "LatencyTimer",
    "get_timestamp_us",
]
