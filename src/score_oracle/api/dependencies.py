"""Shared API dependencies.

Long-lived services are built once by ``create_app`` and stored on
``app.state``; these helpers hand them to route handlers.
"""

from typing import Annotated

from fastapi import Depends, Request

from score_oracle.core.errors import RateLimitExceeded
from score_oracle.core.settings import Settings
from score_oracle.services.nonce_ledger import NonceLedger
from score_oracle.services.rate_limiter import AdmissionLimiter
from score_oracle.services.score_signing import ScoreSigningService

UNKNOWN_CLIENT = "unknown"


def get_settings(request: Request) -> Settings:
    """Return the settings the running app was built with."""
    return request.app.state.settings


def get_signing_service(request: Request) -> ScoreSigningService:
    """Return the score signing orchestrator."""
    return request.app.state.signing_service


def get_nonce_ledger(request: Request) -> NonceLedger:
    """Return the nonce ledger."""
    return request.app.state.nonce_ledger


def get_score_limiter(request: Request) -> AdmissionLimiter:
    """Return the per-address admission limiter."""
    return request.app.state.score_limiter


def enforce_request_ceiling(request: Request) -> None:
    """Apply the global per-client request ceiling.

    Raises:
        RateLimitExceeded: When the client host is over ``RATE_LIMIT`` per minute.
    """
    limiter: AdmissionLimiter = request.app.state.request_limiter
    client_host = request.client.host if request.client else UNKNOWN_CLIENT
    decision = limiter.check(client_host)
    if not decision.allowed:
        raise RateLimitExceeded(decision.remaining, decision.reset_at)


SettingsDep = Annotated[Settings, Depends(get_settings)]
SigningServiceDep = Annotated[ScoreSigningService, Depends(get_signing_service)]
NonceLedgerDep = Annotated[NonceLedger, Depends(get_nonce_ledger)]
ScoreLimiterDep = Annotated[AdmissionLimiter, Depends(get_score_limiter)]
