"""
Mock venue price sources for testing.

Serves configured prices without network access, with optional
latency and failure injection.
"""

import asyncio

from solarb.core.errors import UnknownToken
from solarb.core.types import Venue


class FakePriceSource:
    """
    In-process PriceSource.

    Args:
        venue: Venue this source quotes.
        prices: Token mint to price.
        delay: Seconds to wait before answering.
        error: Exception raised instead of answering.
    """

    def __init__(
        self,
        venue: Venue,
        prices: dict[str, float] | None = None,
        delay: float = 0.0,
        error: Exception | None = None,
    ) -> None:
        self._venue = venue
        self.prices = dict(prices or {})
        self.delay = delay
        self.error = error
        self.calls: list[str] = []
        self.closed = False

    @property
    def venue(self) -> Venue:
        return self._venue

    async def fetch_price(self, token_mint: str) -> float:
        self.calls.append(token_mint)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if token_mint not in self.prices:
            raise UnknownToken(f"{self._venue.value}: no market for {token_mint}")
        return self.prices[token_mint]

    async def close(self) -> None:
        self.closed = True
