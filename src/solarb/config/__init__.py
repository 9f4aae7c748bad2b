"""Configuration module for the arbitrage service."""

from solarb.config.constants import (
    DEFAULT_FEE_RATE_ROUND_TRIP,
    DEFAULT_MAX_SLIPPAGE,
    DEFAULT_MIN_PROFIT_PCT,
    PUMPFUN_API_URL,
    RAYDIUM_API_URL,
    SOLANA_RPC_URL,
)
from solarb.config.settings import Settings, get_settings


__all__ = [
    "Settings",
    "get_settings",
    "DEFAULT_FEE_RATE_ROUND_TRIP",
    "DEFAULT_MAX_SLIPPAGE",
    "DEFAULT_MIN_PROFIT_PCT",
    "PUMPFUN_API_URL",
    "RAYDIUM_API_URL",
    "SOLANA_RPC_URL",
]
