# src/score_oracle/models/__init__.py
"""Domain records for claims, nonces and admission windows."""

from .claim import GameMetadata, ScoreClaim, SignedClaim
from .nonce import NonceRecord
from .rate import LimitDecision, RateLimitStatus, RateWindow

__all__ = [
    "GameMetadata", "ScoreClaim", "SignedClaim",
    "NonceRecord",
    "LimitDecision", "RateLimitStatus", "RateWindow",
]
