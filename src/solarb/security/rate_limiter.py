"""
Fixed-window rate limiter for inbound requests.

Counters live in the shared CounterStore so every handler, and every
instance sharing the store, sees the same windows. Each logical action
has its own policy and its own counters.
"""

import logging
import math
from dataclasses import dataclass

from solarb.config.constants import KEY_RATE_LIMIT_PREFIX
from solarb.config.settings import Settings
from solarb.core.errors import RateLimitError
from solarb.store.base import CounterStore


logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class RatePolicy:
    """Request budget for one action."""

    max_requests: int
    window_seconds: int


class RateLimitDecision:
    """Result of a rate-limit check."""

    __slots__ = ("allowed", "count", "limit", "retry_after")

    def __init__(self, allowed: bool, count: int, limit: int, retry_after: int = 0) -> None:
        self.allowed = allowed
        self.count = count
        self.limit = limit
        self.retry_after = retry_after

    def __bool__(self) -> bool:
        return self.allowed

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.count)


class RateLimiter:
    """
    Per-identity, per-action request limiter.

    Example:
        >>> limiter = RateLimiter(store, {"trade": RatePolicy(5, 60)})
        >>> await limiter.enforce("10.0.0.1", "trade")
    """

    def __init__(self, store: CounterStore, policies: dict[str, RatePolicy]) -> None:
        """
        Initialize rate limiter.

        Args:
            store: Shared counter store.
            policies: Request budget per action name.
        """
        self._store = store
        self._policies = dict(policies)

    @classmethod
    def from_settings(cls, store: CounterStore, settings: Settings) -> "RateLimiter":
        """Build the limiter with one policy per configured action."""
        policies = {
            action: RatePolicy(limit, settings.rate_window_seconds)
            for action, limit in settings.rate_limits.items()
        }
        return cls(store, policies)

    async def check(self, identity: str, action: str) -> RateLimitDecision:
        """
        Count a request and decide whether it is allowed.

        Denied requests still count, so hammering an exhausted window
        does not shorten it.

        Args:
            identity: Requester identity (source address or key).
            action: Logical action name.

        Returns:
            RateLimitDecision with a retry-after hint when denied.

        Raises:
            KeyError: If no policy is configured for the action.
        """
        policy = self._policies[action]
        key = f"{KEY_RATE_LIMIT_PREFIX}{action}:{identity or 'anonymous'}"

        count, ttl_remaining = await self._store.incr_window(key, policy.window_seconds)

        if count <= policy.max_requests:
            return RateLimitDecision(True, count, policy.max_requests)

        retry_after = max(1, math.ceil(ttl_remaining))
        return RateLimitDecision(False, count, policy.max_requests, retry_after)

    async def enforce(self, identity: str, action: str) -> RateLimitDecision:
        """
        Check a request and raise if it is over budget.

        Raises:
            RateLimitError: With retry_after seconds when denied.
        """
        decision = await self.check(identity, action)
        if not decision:
            logger.warning(
                f"Rate limit exceeded: action={action} identity={identity} "
                f"count={decision.count}/{decision.limit} retry_after={decision.retry_after}s"
            )
            raise RateLimitError(
                f"Too many {action} requests, retry after {decision.retry_after}s",
                retry_after=decision.retry_after,
            )
        return decision

    def policy(self, action: str) -> RatePolicy:
        """Get the policy for an action."""
        return self._policies[action]
