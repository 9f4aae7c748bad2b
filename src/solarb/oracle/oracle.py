"""
Price oracle over the configured venues.

Captures quotes with a hard timeout per lookup and enforces a maximum
capture skew between the two sides of an arbitrage, since drift between
them invalidates the signal.
"""

import asyncio
import logging
from collections.abc import Iterable

from solarb.config.constants import DEFAULT_MAX_QUOTE_SKEW_MS, DEFAULT_QUOTE_TIMEOUT_SECONDS
from solarb.core.errors import OracleUnavailable
from solarb.core.types import PriceSource, Quote, QuotePair, Venue
from solarb.telemetry.metrics import MetricsCollector
from solarb.utils.time import LatencyTimer, get_timestamp_us


logger = logging.getLogger(__name__)


class PriceOracle:
    """
    Fetches fresh quotes from venue price sources.

    Quotes are never cached: every call goes to the venue.
    """

    def __init__(
        self,
        sources: Iterable[PriceSource],
        timeout_seconds: float = DEFAULT_QUOTE_TIMEOUT_SECONDS,
        max_skew_ms: int = DEFAULT_MAX_QUOTE_SKEW_MS,
        metrics: MetricsCollector | None = None,
    ) -> None:
        """
        Initialize oracle.

        Args:
            sources: One price source per venue.
            timeout_seconds: Upper bound on a single lookup.
            max_skew_ms: Maximum capture-time difference within a pair.
            metrics: Optional metrics collector.
        """
        self._sources: dict[Venue, PriceSource] = {source.venue: source for source in sources}
        self._timeout = timeout_seconds
        self._max_skew_us = max_skew_ms * 1000
        self._metrics = metrics

    @property
    def venues(self) -> frozenset[Venue]:
        return frozenset(self._sources)

    async def get_quote(self, venue: Venue, token_mint: str) -> Quote:
        """
        Fetch a fresh quote.

        Args:
            venue: Venue to query.
            token_mint: Token mint address.

        Returns:
            Quote stamped with its capture time.

        Raises:
            OracleUnavailable: On network error, timeout or bad data.
            UnknownToken: If the venue has no market for the token.
        """
        source = self._sources.get(venue)
        if source is None:
            raise OracleUnavailable(f"No price source configured for {venue.value}")

        with LatencyTimer() as timer:
            try:
                price = await asyncio.wait_for(source.fetch_price(token_mint), self._timeout)
            except TimeoutError as e:
                if self._metrics:
                    self._metrics.increment_counter("quote_timeouts")
                raise OracleUnavailable(
                    f"{venue.value}: quote for {token_mint} timed out after {self._timeout}s"
                ) from e

        if self._metrics:
            self._metrics.record_latency("quote", timer.latency_us)
            self._metrics.increment_counter("quotes")

        return Quote(
            venue=venue,
            token_mint=token_mint,
            price=price,
            timestamp_us=get_timestamp_us(),
        )

    async def get_quote_pair(
        self,
        buy_venue: Venue,
        sell_venue: Venue,
        token_mint: str,
    ) -> QuotePair:
        """
        Fetch buy-side and sell-side quotes concurrently.

        Raises:
            OracleUnavailable: If either lookup fails or the quotes were
                captured too far apart.
            UnknownToken: If either venue has no market for the token.
        """
        if buy_venue == sell_venue:
            raise OracleUnavailable("Buy and sell venues must differ")

        buy, sell = await asyncio.gather(
            self.get_quote(buy_venue, token_mint),
            self.get_quote(sell_venue, token_mint),
        )
        pair = QuotePair(buy=buy, sell=sell)

        if pair.skew_us > self._max_skew_us:
            if self._metrics:
                self._metrics.increment_counter("quote_skew_rejections")
            raise OracleUnavailable(
                f"Quote skew {pair.skew_us / 1000:.0f}ms exceeds "
                f"{self._max_skew_us / 1000:.0f}ms for {token_mint}"
            )

        logger.debug(
            f"Quotes {token_mint}: {buy_venue.value}={buy.price:.8f} "
            f"{sell_venue.value}={sell.price:.8f} skew={pair.skew_us}μs"
        )
        return pair

    async def close(self) -> None:
        """Close any sources that hold network resources."""
        for source in self._sources.values():
            close = getattr(source, "close", None)
            if close is not None:
                await close()

    def quote_age_us(self, quote: Quote) -> int:
        """Time elapsed since a quote was captured."""
        return get_timestamp_us() - quote.timestamp_us
