"""
Application settings with environment variable support.

Uses Pydantic Settings for type-safe configuration with automatic
environment variable loading and validation. A single Settings object
is built at startup and passed explicitly to every component.
"""

from functools import lru_cache
from typing import Literal

import orjson
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from solarb.config.constants import (
    DEFAULT_CONFIRM_POLL_INTERVAL_SECONDS,
    DEFAULT_CONFIRM_TIMEOUT_SECONDS,
    DEFAULT_CONTROL_RATE_LIMIT,
    DEFAULT_FEE_RATE_ROUND_TRIP,
    DEFAULT_IDEMPOTENCY_TTL_SECONDS,
    DEFAULT_LOOP_INTERVAL_SECONDS,
    DEFAULT_MAX_QUOTE_SKEW_MS,
    DEFAULT_MAX_SLIPPAGE,
    DEFAULT_MIN_PROFIT_PCT,
    DEFAULT_QUOTE_TIMEOUT_SECONDS,
    DEFAULT_RATE_WINDOW_SECONDS,
    DEFAULT_RPC_TIMEOUT_SECONDS,
    DEFAULT_STATUS_RATE_LIMIT,
    DEFAULT_TRADE_RATE_LIMIT,
    DEFAULT_TRADE_RECORD_TTL_SECONDS,
    DEFAULT_TRADE_SIZE_SOL,
    JUPITER_API_URL,
    PUMPFUN_API_URL,
    RAYDIUM_API_URL,
    SOLANA_RPC_URL,
)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    Sensitive values use SecretStr for safe handling.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # =========================================================================
    # Credentials
    # =========================================================================

    api_secret: SecretStr = Field(
        ...,
        description="Shared secret that authenticated /trade callers must present",
    )
    custodial_secret_key: SecretStr = Field(
        ...,
        description="Trading wallet secret key (comma-separated bytes, JSON array or base58)",
    )

    # =========================================================================
    # Network Configuration
    # =========================================================================

    rpc_url: str = Field(default=SOLANA_RPC_URL, description="Solana JSON-RPC endpoint")
    raydium_api_url: str = Field(default=RAYDIUM_API_URL)
    pumpfun_api_url: str = Field(default=PUMPFUN_API_URL)
    jupiter_api_url: str = Field(default=JUPITER_API_URL)

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080, ge=1, le=65535)

    # =========================================================================
    # Trading Configuration
    # =========================================================================

    whitelist: str = Field(
        default="",
        description="Token mints the bot may trade (comma-separated or JSON list)",
    )

    min_profit_pct: float = Field(
        default=DEFAULT_MIN_PROFIT_PCT,
        ge=0.0,
        le=100.0,
        description="Minimum net profit percentage to execute (e.g., 5.0 = 5%)",
    )

    fee_rate_round_trip: float = Field(
        default=DEFAULT_FEE_RATE_ROUND_TRIP,
        ge=0.0,
        le=0.1,
        description="Combined fee rate for buy and sell legs (e.g., 0.006 = 0.6%)",
    )

    max_slippage: float = Field(
        default=DEFAULT_MAX_SLIPPAGE,
        ge=0.0,
        le=0.5,
        description="Slippage budget applied against the buy price",
    )

    trade_size_sol: float = Field(
        default=DEFAULT_TRADE_SIZE_SOL,
        gt=0.0,
        description="Notional traded per opportunity in SOL",
    )

    # =========================================================================
    # Timing
    # =========================================================================

    loop_interval_seconds: float = Field(default=DEFAULT_LOOP_INTERVAL_SECONDS, gt=0.0)

    quote_timeout_seconds: float = Field(
        default=DEFAULT_QUOTE_TIMEOUT_SECONDS,
        gt=0.0,
        le=2.0,
        description="Upper bound on a single venue price lookup",
    )

    max_quote_skew_ms: int = Field(
        default=DEFAULT_MAX_QUOTE_SKEW_MS,
        ge=0,
        le=5000,
        description="Maximum capture-time difference between buy and sell quotes",
    )

    rpc_timeout_seconds: float = Field(default=DEFAULT_RPC_TIMEOUT_SECONDS, gt=0.0, le=30.0)
    confirm_timeout_seconds: float = Field(default=DEFAULT_CONFIRM_TIMEOUT_SECONDS, gt=0.0)
    confirm_poll_interval_seconds: float = Field(
        default=DEFAULT_CONFIRM_POLL_INTERVAL_SECONDS, gt=0.0
    )

    idempotency_ttl_seconds: int = Field(default=DEFAULT_IDEMPOTENCY_TTL_SECONDS, ge=1)
    trade_record_ttl_seconds: int = Field(default=DEFAULT_TRADE_RECORD_TTL_SECONDS, ge=1)

    # =========================================================================
    # Rate Limiting & Risk
    # =========================================================================

    trade_rate_limit: int = Field(default=DEFAULT_TRADE_RATE_LIMIT, ge=1)
    control_rate_limit: int = Field(default=DEFAULT_CONTROL_RATE_LIMIT, ge=1)
    status_rate_limit: int = Field(default=DEFAULT_STATUS_RATE_LIMIT, ge=1)
    rate_window_seconds: int = Field(default=DEFAULT_RATE_WINDOW_SECONDS, ge=1)

    max_consecutive_failures: int = Field(
        default=3,
        ge=1,
        description="Failed submissions in a row before trading halts",
    )

    # =========================================================================
    # Operation Mode
    # =========================================================================

    dry_run: bool = Field(
        default=True,
        description="Build and sign transactions without sending them",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )

    use_uvloop: bool = Field(
        default=True,
        description="Use uvloop for improved async performance",
    )

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("api_secret", "custodial_secret_key", mode="after")
    @classmethod
    def validate_credentials(cls, v: SecretStr) -> SecretStr:
        """Ensure credentials are not empty."""
        if not v.get_secret_value().strip():
            raise ValueError("Credential cannot be empty")
        return v

    @field_validator("whitelist", mode="after")
    @classmethod
    def validate_whitelist(cls, v: str) -> str:
        """Accept a JSON list or a comma-separated string; store the comma form."""
        value = v.strip()
        if value.startswith("["):
            try:
                mints = orjson.loads(value)
            except orjson.JSONDecodeError as e:
                raise ValueError("Whitelist JSON list is malformed") from e
            if not isinstance(mints, list) or not all(
                isinstance(mint, str) and mint.strip() for mint in mints
            ):
                raise ValueError("Whitelist JSON must be a list of non-empty strings")
            return ",".join(mint.strip() for mint in mints)
        return ",".join(mint.strip() for mint in value.split(",") if mint.strip())

    @field_validator("rpc_url", "raydium_api_url", "pumpfun_api_url", "jupiter_api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def whitelisted_mints(self) -> frozenset[str]:
        """Approved token mints, immutable for the lifetime of the process."""
        return frozenset(mint for mint in self.whitelist.split(",") if mint)

    @property
    def rate_limits(self) -> dict[str, int]:
        """Per-action request limits for one rate window."""
        return {
            "trade": self.trade_rate_limit,
            "control": self.control_rate_limit,
            "status": self.status_rate_limit,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached settings instance for the process entry point.

    Components never call this; they receive Settings explicitly.
    Clear cache with `get_settings.cache_clear()` if needed.
    """
    return Settings()  # type: ignore[call-arg, unused-ignore]
