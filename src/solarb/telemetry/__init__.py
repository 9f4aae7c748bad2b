"""Telemetry module for logging and metrics."""

from solarb.telemetry.logger import AsyncLogger, setup_logging
from solarb.telemetry.metrics import MetricsCollector


__all__ = [
    "AsyncLogger",
    "MetricsCollector",
    "setup_logging",
]
