"""Security gate: authentication, input sanitization and rate limiting."""

from solarb.security.gate import SecurityGate
from solarb.security.rate_limiter import RateLimitDecision, RateLimiter, RatePolicy


__all__ = [
    "RateLimitDecision",
    "RateLimiter",
    "RatePolicy",
    "SecurityGate",
]
