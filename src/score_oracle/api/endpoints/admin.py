"""Operator endpoints for admission and nonce recovery.

These routes carry no authentication of their own: the deployment must
restrict them (private network, reverse proxy rule, ...) to operators.
"""

from __future__ import annotations

import logging
import time

from fastapi import APIRouter

from score_oracle.api.dependencies import NonceLedgerDep, ScoreLimiterDep
from score_oracle.core.errors import ClaimValidationError, InvalidAdminInput
from score_oracle.schemas.admin import (
    AdminAck,
    NonceCommitRequest,
    NonceStatusResponse,
    OracleStatsResponse,
    RateLimitStatusResponse,
    RateWindowOut,
)
from score_oracle.services.validation import normalize_address, validate_tournament_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


def _address(raw: str) -> str:
    try:
        return normalize_address(raw)
    except ClaimValidationError as err:
        raise InvalidAdminInput("INVALID_ADDRESS") from err


def _tournament(raw: str) -> int:
    try:
        return validate_tournament_id(int(raw, 10))
    except (ValueError, ClaimValidationError) as err:
        raise InvalidAdminInput("INVALID_TOURNAMENT_ID") from err


@router.get("/rate-limit/{address}", response_model=RateLimitStatusResponse)
async def get_rate_limit_status(address: str, limiter: ScoreLimiterDep) -> RateLimitStatusResponse:
    """Report the admission window for an address.

    Without a live window the address has its full quota available now.
    """
    player = _address(address)
    status = limiter.status(player)
    if status is None:
        window = RateWindowOut(remaining=limiter.max_requests, reset_at=int(time.time() * 1000))
    else:
        window = RateWindowOut(count=status.count, remaining=status.remaining, reset_at=status.reset_at)
    return RateLimitStatusResponse(address=player, status=window)


@router.post("/rate-limit/{address}/reset", response_model=AdminAck)
async def reset_rate_limit(address: str, limiter: ScoreLimiterDep) -> AdminAck:
    """Clear the admission window for an address."""
    player = _address(address)
    limiter.reset(player)
    logger.info("Rate limit reset: address=%s", player)
    return AdminAck(message=f"Rate limit reset for {player}")


@router.get("/nonce/{tournament_id}/{address}", response_model=NonceStatusResponse)
async def get_nonce(tournament_id: str, address: str, ledger: NonceLedgerDep) -> NonceStatusResponse:
    """Report the last recorded and the next nonce for a player."""
    tid = _tournament(tournament_id)
    player = _address(address)
    current = ledger.current_nonce(tid, player)
    return NonceStatusResponse(
        tournament_id=tid,
        address=player,
        current_nonce=None if current is None else str(current),
        next_nonce=str(ledger.next_nonce(tid, player)),
    )


@router.post("/nonce/{tournament_id}/{address}/commit", response_model=AdminAck)
async def commit_nonce(
    tournament_id: str,
    address: str,
    body: NonceCommitRequest,
    ledger: NonceLedgerDep,
) -> AdminAck:
    """Record the nonce last accepted on-chain for a player."""
    tid = _tournament(tournament_id)
    player = _address(address)
    ledger.commit(tid, player, body.nonce)
    logger.info("Nonce committed: tournament=%d address=%s nonce=%d", tid, player, body.nonce)
    return AdminAck(message=f"Nonce {body.nonce} recorded for {player} in tournament {tid}")


@router.post("/nonce/{tournament_id}/{address}/reset", response_model=AdminAck)
async def reset_player_nonce(tournament_id: str, address: str, ledger: NonceLedgerDep) -> AdminAck:
    """Forget a player's nonce in one tournament."""
    tid = _tournament(tournament_id)
    player = _address(address)
    ledger.reset_player(tid, player)
    logger.info("Nonce reset: tournament=%d address=%s", tid, player)
    return AdminAck(message=f"Nonce reset for player {player} in tournament {tid}")


@router.post("/nonce/{tournament_id}/reset", response_model=AdminAck)
async def reset_tournament_nonces(tournament_id: str, ledger: NonceLedgerDep) -> AdminAck:
    """Forget every nonce in a tournament."""
    tid = _tournament(tournament_id)
    ledger.reset_tournament(tid)
    logger.info("Tournament nonces reset: tournament=%d", tid)
    return AdminAck(message=f"All nonces reset for tournament {tid}")


@router.get("/stats", response_model=OracleStatsResponse)
async def get_stats(ledger: NonceLedgerDep, limiter: ScoreLimiterDep) -> OracleStatsResponse:
    """Return ledger and limiter sizes for monitoring."""
    return OracleStatsResponse(nonces=ledger.stats(), rate_limits=limiter.stats())
