"""Schemas for operator endpoints."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class RateWindowOut(_CamelModel):
    count: int | None = None
    remaining: int
    reset_at: int = Field(..., alias="resetAt")


class RateLimitStatusResponse(_CamelModel):
    address: str
    status: RateWindowOut


class NonceStatusResponse(_CamelModel):
    tournament_id: int = Field(..., alias="tournamentId")
    address: str
    current_nonce: str | None = Field(..., alias="currentNonce")
    next_nonce: str = Field(..., alias="nextNonce")


class NonceCommitRequest(BaseModel):
    """Nonce value observed on-chain for a player."""

    nonce: int = Field(..., ge=0)


class AdminAck(BaseModel):
    ok: bool = True
    message: str


class OracleStatsResponse(BaseModel):
    nonces: dict[str, int]
    rate_limits: dict[str, int] = Field(..., alias="rateLimits")

    model_config = ConfigDict(populate_by_name=True)
