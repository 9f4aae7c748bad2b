"""Shared test data: token mints, credentials and request builders."""

from solarb.core.models import TradeRequest
from solarb.core.types import Quote, Venue
from solarb.utils.time import get_timestamp_us


# Real mainnet mints (RAY, BONK, USDC); only their format matters here
RAY_MINT = "4k3Dyjzvzp8eMZWUXbBCjEvwSkkk59S5iCNLY3QrkX6R"
BONK_MINT = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"
UNLISTED_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"

API_SECRET = "test-api-secret"
CLIENT_ADDRESS = "203.0.113.7"


class ManualClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def trade_payload(**overrides: object) -> dict[str, object]:
    """Valid /trade body buying RAY on Raydium."""
    payload: dict[str, object] = {
        "apiKey": API_SECRET,
        "ipAddress": CLIENT_ADDRESS,
        "tokenMint": RAY_MINT,
        "roi": 6.0,
        "dex": "raydium",
    }
    payload.update(overrides)
    return payload


def make_trade_request(**overrides: object) -> TradeRequest:
    return TradeRequest.model_validate(trade_payload(**overrides))


def make_quote(venue: Venue, price: float, token_mint: str = RAY_MINT) -> Quote:
    return Quote(venue=venue, token_mint=token_mint, price=price, timestamp_us=get_timestamp_us())
