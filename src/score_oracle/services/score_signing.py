"""Request orchestration for score signing.

A claim moves RECEIVED -> VALIDATED -> ADMITTED -> NONCE_ISSUED -> SIGNED ->
RESPONDED. Validation and admission failures exit to REJECTED before any
nonce state is touched; any failure after issuance exits to FAILED and the
reserved nonce is handed back.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from score_oracle.core.errors import (
    ClaimValidationError,
    RateLimitExceeded,
    SigningFailed,
)
from score_oracle.core.security import sign_digest
from score_oracle.models.claim import ScoreClaim, SignedClaim
from score_oracle.models.rate import LimitDecision
from score_oracle.services.digest import ARBITRUM_ONE_CHAIN_ID, CURRENT_VERSION, build_claim_digest
from score_oracle.services.nonce_ledger import NonceLedger
from score_oracle.services.rate_limiter import AdmissionLimiter
from score_oracle.services.validation import validate_score_claim

logger = logging.getLogger(__name__)

DEFAULT_SIGNING_TIMEOUT_SECONDS = 5.0


class ClaimState(str, Enum):
    """Lifecycle of one signing request."""

    RECEIVED = "received"
    VALIDATED = "validated"
    ADMITTED = "admitted"
    NONCE_ISSUED = "nonce_issued"
    SIGNED = "signed"
    RESPONDED = "responded"
    REJECTED = "rejected"
    FAILED = "failed"


@dataclass
class SigningAttempt:
    """Mutable trace of a request as it passes through the gates."""

    state: ClaimState = ClaimState.RECEIVED
    history: list[ClaimState] = field(default_factory=lambda: [ClaimState.RECEIVED])
    claim: ScoreClaim | None = None
    admission: LimitDecision | None = None
    nonce: int | None = None

    def advance(self, state: ClaimState) -> None:
        self.state = state
        self.history.append(state)


class ScoreSigningService:
    """Composes validator, limiter, ledger, digest builder and signer."""

    def __init__(
        self,
        *,
        signer_private_key: str,
        ledger: NonceLedger,
        limiter: AdmissionLimiter,
        chain_id: int = ARBITRUM_ONE_CHAIN_ID,
        signing_timeout_seconds: float = DEFAULT_SIGNING_TIMEOUT_SECONDS,
    ) -> None:
        self._private_key = signer_private_key
        self.ledger = ledger
        self.limiter = limiter
        self.chain_id = chain_id
        self.signing_timeout_seconds = signing_timeout_seconds

    async def sign_claim(
        self,
        *,
        tournament_id: Any,
        address: Any,
        score: Any,
        name: str | None = "",
        metadata: str | None = "",
        attempt: SigningAttempt | None = None,
    ) -> SignedClaim:
        """Run a raw claim through every gate and return the signed claim.

        Args:
            tournament_id: Tournament the score belongs to.
            address: Player wallet address.
            score: Claimed score.
            name: Wallet-derived display name.
            metadata: Raw metadata JSON string.
            attempt: Optional trace object, updated in place.

        Returns:
            The signed claim with its nonce and admission window.

        Raises:
            ClaimValidationError: A bounds check failed.
            RateLimitExceeded: The address has no quota left in its window.
            SigningFailed: Digest construction or the signer raised, or the
                signer did not answer in time.
        """
        attempt = attempt or SigningAttempt()

        try:
            claim = validate_score_claim(
                tournament_id=tournament_id,
                address=address,
                score=score,
                name=name,
                metadata=metadata,
            )
        except ClaimValidationError as err:
            attempt.advance(ClaimState.REJECTED)
            logger.warning(
                "Claim rejected: reason=%s address=%s score=%s", err.reason, address, score
            )
            raise
        attempt.claim = claim
        attempt.advance(ClaimState.VALIDATED)

        decision = self.limiter.check(claim.player)
        attempt.admission = decision
        if not decision.allowed:
            attempt.advance(ClaimState.REJECTED)
            logger.warning(
                "Rate limit exceeded: address=%s reset_at=%d", claim.player, decision.reset_at
            )
            raise RateLimitExceeded(decision.remaining, decision.reset_at)
        attempt.advance(ClaimState.ADMITTED)

        nonce = self.ledger.issue(claim.tournament_id, claim.player)
        attempt.nonce = nonce
        attempt.advance(ClaimState.NONCE_ISSUED)

        # From here on the nonce is reserved; every failure must hand it back.
        try:
            digest = build_claim_digest(
                tournament_id=claim.tournament_id,
                player=claim.player,
                score=claim.score,
                nonce=nonce,
                name=claim.name,
                metadata_json=claim.metadata.canonical_json(),
                version=CURRENT_VERSION,
                chain_id=self.chain_id,
            )
            signature = await asyncio.wait_for(
                asyncio.to_thread(sign_digest, self._private_key, digest),
                timeout=self.signing_timeout_seconds,
            )
        except Exception as err:
            attempt.advance(ClaimState.FAILED)
            released = self.ledger.release(claim.tournament_id, claim.player, nonce)
            logger.error(
                "Signing failed: address=%s tournament=%d nonce=%d released=%s",
                claim.player,
                claim.tournament_id,
                nonce,
                released,
                exc_info=True,
            )
            raise SigningFailed("Failed to sign score") from err
        attempt.advance(ClaimState.SIGNED)

        logger.info(
            "Score signed: address=%s tournament=%d score=%d nonce=%d remaining=%d",
            claim.player,
            claim.tournament_id,
            claim.score,
            nonce,
            decision.remaining,
        )
        attempt.advance(ClaimState.RESPONDED)
        return SignedClaim(
            claim=claim,
            nonce=nonce,
            signature=signature,
            digest=digest,
            rate_limit_remaining=decision.remaining,
            rate_limit_reset_at=decision.reset_at,
        )
