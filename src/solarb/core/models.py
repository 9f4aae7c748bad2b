"""
Pydantic models for inbound control-surface requests.

Request bodies are parsed once at the security boundary into these
models; nothing downstream handles untyped dicts.
"""

import hashlib
import math

from pydantic import BaseModel, ConfigDict, Field, field_validator

from solarb.core.types import Venue


class TradeRequest(BaseModel):
    """Direct trade request submitted through POST /trade."""

    model_config = ConfigDict(
        populate_by_name=True,
        frozen=True,
        extra="forbid",
        str_strip_whitespace=True,
    )

    api_key: str = Field(alias="apiKey", min_length=1, max_length=256)
    ip_address: str = Field(alias="ipAddress", min_length=1, max_length=64)
    token_mint: str = Field(alias="tokenMint", min_length=32, max_length=44)
    roi: float = Field(ge=0.0, le=10_000.0)
    dex: Venue

    @field_validator("roi")
    @classmethod
    def validate_roi(cls, v: float) -> float:
        """Reject NaN and infinities."""
        if not math.isfinite(v):
            raise ValueError("roi must be a finite number")
        return v

    @field_validator("dex", mode="before")
    @classmethod
    def normalize_dex(cls, v: object) -> object:
        """Accept venue names in any case."""
        return v.strip().lower() if isinstance(v, str) else v

    @property
    def requester_key(self) -> str:
        return self.api_key

    @property
    def requester_id(self) -> str:
        """Stable, non-secret requester identity derived from the API key."""
        digest = hashlib.sha256(self.api_key.encode("utf-8")).hexdigest()
        return f"key:{digest[:16]}"

    @property
    def source_address(self) -> str:
        return self.ip_address

    @property
    def buy_venue(self) -> Venue:
        """Venue the token is bought on."""
        return self.dex

    @property
    def sell_venue(self) -> Venue:
        """Venue the token is sold on."""
        return self.dex.other


class StartRequest(BaseModel):
    """Body of POST /start."""

    model_config = ConfigDict(str_strip_whitespace=True)

    wallet: str | None = None


class WithdrawRequest(BaseModel):
    """Body of POST /withdraw."""

    model_config = ConfigDict(str_strip_whitespace=True)

    wallet: str | None = None
