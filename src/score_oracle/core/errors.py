"""Error taxonomy for the score oracle.

Input and admission errors are recoverable by the caller and carry the data
needed to build a precise 4xx response. Signing errors are configuration
level and are reported to callers without any internal detail.
"""

from __future__ import annotations


class ScoreOracleError(RuntimeError):
    """Base class for all score-oracle failures."""


class ClaimValidationError(ScoreOracleError):
    """Raised when a score claim fails a bounds or format check.

    Attributes:
        reason: Machine-readable reason code such as ``SCORE_TOO_HIGH``.
    """

    def __init__(self, reason: str, message: str | None = None) -> None:
        super().__init__(message or f"Score submission validation failed: {reason}")
        self.reason = reason


class RateLimitExceeded(ScoreOracleError):
    """Raised when an address (or client) has used up its admission window."""

    def __init__(self, remaining: int, reset_at: int) -> None:
        super().__init__(f"Too many requests; window resets at {reset_at}")
        self.remaining = remaining
        self.reset_at = reset_at


class SigningError(ScoreOracleError):
    """Raised by the signer when key material is malformed or signing fails."""


class SigningFailed(ScoreOracleError):
    """Raised by the orchestrator when a claim could not be signed."""


class DigestEncodingError(ValueError):
    """Raised when a field cannot be packed into its fixed-width slot."""


class InvalidAdminInput(ScoreOracleError):
    """Raised when an operator endpoint receives a malformed path value."""

    def __init__(self, code: str) -> None:
        super().__init__(code)
        self.code = code
