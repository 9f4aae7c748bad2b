"""
Error taxonomy for the arbitrage service.

Every error carries enough context for the HTTP layer to map it to a
status code, and for operators to tell transient failures from ones
that need attention.
"""


class SolarbError(Exception):
    """Base exception for all service errors."""


# =============================================================================
# Request Errors
# =============================================================================


class ValidationError(SolarbError):
    """Bad or missing fields, unapproved token, or ROI below threshold."""


class KeyFormatError(ValidationError):
    """Custodial key material failed strict format validation."""


class AuthenticationError(SolarbError):
    """Request credential missing or not matching the configured secret."""


class RateLimitError(SolarbError):
    """Request rejected by a rate-limit window."""

    def __init__(self, message: str, retry_after: int) -> None:
        super().__init__(message)
        self.retry_after = retry_after


# =============================================================================
# Oracle Errors
# =============================================================================


class OracleError(SolarbError):
    """Base class for price lookup failures."""


class OracleUnavailable(OracleError):
    """Venue unreachable, timed out, or returned an unusable answer."""


class UnknownToken(OracleError):
    """Venue has no market for the requested token."""


# =============================================================================
# Execution Errors
# =============================================================================


class ChainClientError(SolarbError):
    """Transport or RPC-level failure talking to the chain."""

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


class ExecutionError(SolarbError):
    """Base class for trade execution failures."""


class SubmissionError(ExecutionError):
    """Transaction could not be delivered to the chain."""


class SafetyCheckError(ExecutionError):
    """Transaction is empty or malformed and was not sent."""


class SigningError(ExecutionError):
    """Custodial key could not sign the transaction."""


class UnknownOutcome(ExecutionError):
    """Submission outcome could not be determined before the deadline."""

    def __init__(self, message: str, signature: str) -> None:
        super().__init__(message)
        self.signature = signature


# =============================================================================
# Withdrawal Errors
# =============================================================================


class NoFunds(SolarbError):
    """Nothing to withdraw."""


class WithdrawalError(SolarbError):
    """Transfer failed after debit; the balance was re-credited."""


class WithdrawalReconciliationError(WithdrawalError):
    """Transfer failed and the compensating re-credit failed too."""

    def __init__(self, message: str, amount: str) -> None:
        super().__init__(message)
        self.amount = amount
