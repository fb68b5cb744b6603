# src/score_oracle/services/__init__.py
"""Business logic services for the score oracle."""

from .maintenance import StateSweepWorker
from .nonce_ledger import InMemoryNonceLedger, NonceLedger, RedisNonceLedger
from .rate_limiter import AddressRateLimiter, AdmissionLimiter, RedisAddressRateLimiter
from .score_signing import ClaimState, ScoreSigningService, SigningAttempt

__all__ = [
    "StateSweepWorker",
    "InMemoryNonceLedger",
    "NonceLedger",
    "RedisNonceLedger",
    "AddressRateLimiter",
    "AdmissionLimiter",
    "RedisAddressRateLimiter",
    "ClaimState",
    "ScoreSigningService",
    "SigningAttempt",
]
