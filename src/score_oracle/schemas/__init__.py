# src/score_oracle/schemas/__init__.py
"""Pydantic schemas for API requests and responses."""

from .admin import (
    AdminAck,
    NonceCommitRequest,
    NonceStatusResponse,
    OracleStatsResponse,
    RateLimitStatusResponse,
)
from .scores import ErrorResponse, SignScoreRequest, SignScoreResponse

__all__ = [
    "AdminAck",
    "NonceCommitRequest",
    "NonceStatusResponse",
    "OracleStatsResponse",
    "RateLimitStatusResponse",
    "ErrorResponse",
    "SignScoreRequest",
    "SignScoreResponse",
]
