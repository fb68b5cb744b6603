# src/score_oracle/schemas/scores.py
"""Score signing request and response schemas."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt


class SignScoreRequest(BaseModel):
    """Body of ``POST /api/scores/sign``.

    Numeric fields accept any JSON number so that bounds failures are
    reported with their specific reason code rather than a schema error.
    """

    model_config = ConfigDict(populate_by_name=True)

    tournament_id: StrictInt | StrictFloat = Field(..., alias="tournamentId")
    address: str = Field(..., description="Player wallet address, 0x + 40 hex digits")
    score: StrictInt | StrictFloat
    name: str = Field(default="", description="Wallet-derived display name")
    metadata: str = Field(default="", description="Game metadata as a JSON object string")


class SignScoreResponse(BaseModel):
    """Signed claim returned to the game client."""

    model_config = ConfigDict(populate_by_name=True)

    signature: str
    nonce: str = Field(..., description="Decimal nonce the contract expects next")
    rate_limit_remaining: int = Field(..., alias="rateLimitRemaining")
    rate_limit_reset_at: int = Field(..., alias="rateLimitResetAt")
    metadata: str = Field(..., description="Exact metadata string bound into the signature")


class ErrorResponse(BaseModel):
    """Error body shared by every non-2xx response."""

    error: str
    message: str | None = None
    reason: str | None = None
