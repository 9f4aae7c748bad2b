"""Core module containing the type definitions, error taxonomy and request models."""

from solarb.core.errors import (
    AuthenticationError,
    ExecutionError,
    NoFunds,
    OracleUnavailable,
    RateLimitError,
    SolarbError,
    SubmissionError,
    UnknownToken,
    ValidationError,
    WithdrawalError,
    WithdrawalReconciliationError,
)
from solarb.core.types import (
    ProfitEstimate,
    Quote,
    QuotePair,
    SessionSnapshot,
    TradeRecord,
    TradeStage,
    TradeStatus,
    Venue,
)


__all__ = [
    "AuthenticationError",
    "ExecutionError",
    "NoFunds",
    "OracleUnavailable",
    "ProfitEstimate",
    "Quote",
    "QuotePair",
    "RateLimitError",
    "SessionSnapshot",
    "SolarbError",
    "SubmissionError",
    "TradeRecord",
    "TradeStage",
    "TradeStatus",
    "UnknownToken",
    "ValidationError",
    "Venue",
    "WithdrawalError",
    "WithdrawalReconciliationError",
]
