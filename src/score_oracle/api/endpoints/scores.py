# src/score_oracle/api/endpoints/scores.py
"""Score signing endpoint."""

from __future__ import annotations

from fastapi import APIRouter

from score_oracle.api.dependencies import SigningServiceDep
from score_oracle.schemas.scores import ErrorResponse, SignScoreRequest, SignScoreResponse

router = APIRouter(prefix="/api/scores", tags=["scores"])


@router.post(
    "/sign",
    response_model=SignScoreResponse,
    responses={
        400: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def sign_score(body: SignScoreRequest, service: SigningServiceDep) -> SignScoreResponse:
    """Authorize a score claim and return the oracle signature.

    Validation, admission and signing failures are raised as domain errors
    and rendered by the exception handlers registered in ``create_app``.

    Args:
        body: The score claim submitted by the game client.
        service: Score signing orchestrator.

    Returns:
        Signature, nonce and the caller's remaining admission quota.
    """
    signed = await service.sign_claim(
        tournament_id=body.tournament_id,
        address=body.address,
        score=body.score,
        name=body.name,
        metadata=body.metadata,
    )
    return SignScoreResponse(
        signature=signed.signature,
        nonce=str(signed.nonce),
        rate_limit_remaining=signed.rate_limit_remaining,
        rate_limit_reset_at=signed.rate_limit_reset_at,
        metadata=signed.claim.metadata.canonical_json(),
    )
