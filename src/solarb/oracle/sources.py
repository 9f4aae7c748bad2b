"""
Async venue price sources.

Each source fetches one token price from one venue's public HTTP API:
- Shared aiohttp session with keep-alive
- Fast JSON parsing with orjson
- Hard request timeout
- Strict price parsing (no silent zero/placeholder values)
"""

import logging
import math
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import aiohttp
import orjson

from solarb.config.constants import (
    DEFAULT_QUOTE_TIMEOUT_SECONDS,
    ENDPOINT_PUMPFUN_COIN,
    ENDPOINT_RAYDIUM_MINT_PRICE,
    PUMPFUN_API_URL,
    PUMPFUN_TOKEN_DECIMALS,
    RAYDIUM_API_URL,
)
from solarb.core.errors import OracleUnavailable, UnknownToken
from solarb.core.types import Venue


logger = logging.getLogger(__name__)


def parse_price(raw: Any, venue: Venue, token_mint: str) -> float:
    """
    Convert a venue-reported price into a float.

    Raises:
        OracleUnavailable: If the value is not a finite, non-negative number.
    """
    if isinstance(raw, bool) or raw is None:
        raise OracleUnavailable(f"{venue.value}: missing price for {token_mint}")
    try:
        price = float(raw)
    except (TypeError, ValueError) as e:
        raise OracleUnavailable(f"{venue.value}: non-numeric price {raw!r}") from e

    if not math.isfinite(price) or price < 0:
        raise OracleUnavailable(f"{venue.value}: invalid price {raw!r}")
    return price


class HttpPriceSource(ABC):
    """
    Base class for HTTP price sources.

    Owns (or borrows) an aiohttp session; subclasses implement
    fetch_price on top of _get_json.
    """

    venue: Venue

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = DEFAULT_QUOTE_TIMEOUT_SECONDS,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        """
        Initialize the source.

        Args:
            base_url: Venue API base URL.
            timeout_seconds: Total timeout for one lookup.
            session: Optional shared session; the source never closes a
                session it did not create.
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=20,
                keepalive_timeout=30,
                enable_cleanup_closed=True,
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=self._timeout,
                headers={"Accept": "application/json"},
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the session if this source created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    @asynccontextmanager
    async def _request_context(self) -> AsyncIterator[aiohttp.ClientSession]:
        """Map transport failures onto OracleUnavailable."""
        session = await self._get_session()
        try:
            yield session
        except (aiohttp.ClientError, TimeoutError) as e:
            raise OracleUnavailable(f"{self.venue.value}: network error: {e}") from e

    async def _get_json(
        self,
        path: str,
        params: dict[str, str] | None = None,
        token_mint: str = "",
    ) -> Any:
        """
        GET a JSON document.

        Raises:
            UnknownToken: On HTTP 404.
            OracleUnavailable: On network errors, timeouts, other HTTP
                errors or invalid JSON.
        """
        url = f"{self._base_url}{path}"
        async with self._request_context() as session:
            async with session.get(url, params=params, timeout=self._timeout) as response:
                text = await response.text()

                if response.status == 404:
                    raise UnknownToken(f"{self.venue.value}: no market for {token_mint}")
                if response.status >= 400:
                    raise OracleUnavailable(
                        f"{self.venue.value}: HTTP {response.status} from {path}"
                    )

        try:
            return orjson.loads(text)
        except orjson.JSONDecodeError as e:
            raise OracleUnavailable(f"{self.venue.value}: invalid JSON response: {e}") from e

    @abstractmethod
    async def fetch_price(self, token_mint: str) -> float:
        """Fetch the current SOL price of `token_mint` from this venue."""

    async def __aenter__(self) -> "HttpPriceSource":
        await self._get_session()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()


class RaydiumPriceSource(HttpPriceSource):
    """
    Raydium v3 mint price API.

    Response shape: {"success": true, "data": {"<mint>": "<usd price>"}}
    """

    venue = Venue.RAYDIUM

    def __init__(
        self,
        base_url: str = RAYDIUM_API_URL,
        timeout_seconds: float = DEFAULT_QUOTE_TIMEOUT_SECONDS,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        super().__init__(base_url, timeout_seconds, session)

    async def fetch_price(self, token_mint: str) -> float:
        data = await self._get_json(
            ENDPOINT_RAYDIUM_MINT_PRICE,
            params={"mints": token_mint},
            token_mint=token_mint,
        )

        if not isinstance(data, dict) or not data.get("success", False):
            raise OracleUnavailable(f"raydium: unsuccessful response for {token_mint}")

        prices = data.get("data")
        if not isinstance(prices, dict):
            raise OracleUnavailable(f"raydium: malformed payload for {token_mint}")

        raw = prices.get(token_mint)
        if raw is None or raw == "":
            raise UnknownToken(f"raydium: no market for {token_mint}")

        return parse_price(raw, self.venue, token_mint)


class PumpFunPriceSource(HttpPriceSource):
    """
    Pump.fun coin API.

    The USD price is derived from the reported market cap and supply:
    price = usd_market_cap / (total_supply / 10**decimals)
    """

    venue = Venue.PUMPFUN

    def __init__(
        self,
        base_url: str = PUMPFUN_API_URL,
        timeout_seconds: float = DEFAULT_QUOTE_TIMEOUT_SECONDS,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        super().__init__(base_url, timeout_seconds, session)

    async def fetch_price(self, token_mint: str) -> float:
        data = await self._get_json(
            ENDPOINT_PUMPFUN_COIN.format(mint=token_mint),
            token_mint=token_mint,
        )

        if not isinstance(data, dict) or data.get("mint") not in (None, token_mint):
            raise UnknownToken(f"pumpfun: no market for {token_mint}")

        market_cap = data.get("usd_market_cap")
        total_supply = data.get("total_supply")
        if market_cap is None or total_supply is None:
            raise UnknownToken(f"pumpfun: no market data for {token_mint}")

        cap = parse_price(market_cap, self.venue, token_mint)
        supply = parse_price(total_supply, self.venue, token_mint) / 10**PUMPFUN_TOKEN_DECIMALS
        if supply <= 0:
            raise OracleUnavailable(f"pumpfun: zero supply reported for {token_mint}")

        return cap / supply
