# src/score_oracle/main.py
"""Main entry point for the score oracle application."""

from __future__ import annotations

import logging

import redis
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from score_oracle.api.dependencies import enforce_request_ceiling
from score_oracle.api.endpoints import admin_router, scores_router, system_router
from score_oracle.core.errors import (
    ClaimValidationError,
    InvalidAdminInput,
    RateLimitExceeded,
    SigningError,
    SigningFailed,
)
from score_oracle.core.security import signer_matches
from score_oracle.core.settings import Settings
from score_oracle.core.settings import settings as env_settings
from score_oracle.services.maintenance import StateSweepWorker
from score_oracle.services.nonce_ledger import InMemoryNonceLedger, NonceLedger, RedisNonceLedger
from score_oracle.services.rate_limiter import (
    AddressRateLimiter,
    AdmissionLimiter,
    RedisAddressRateLimiter,
)
from score_oracle.services.score_signing import ScoreSigningService

logger = logging.getLogger(__name__)

REQUEST_CEILING_WINDOW_MS = 60 * 1000


def build_state(settings: Settings) -> tuple[NonceLedger, AdmissionLimiter, AdmissionLimiter]:
    """Construct the ledger, the score limiter and the request-ceiling limiter."""
    score_window_ms = int(settings.score_rate_limit_window_seconds * 1000)
    if settings.state_backend == "redis":
        client = redis.from_url(settings.redis_url)  # type: ignore[no-untyped-call]
        return (
            RedisNonceLedger(client),
            RedisAddressRateLimiter(
                client, settings.score_rate_limit_max_requests, score_window_ms, scope="score"
            ),
            RedisAddressRateLimiter(
                client, settings.rate_limit, REQUEST_CEILING_WINDOW_MS, scope="client"
            ),
        )
    return (
        InMemoryNonceLedger(),
        AddressRateLimiter(settings.score_rate_limit_max_requests, score_window_ms),
        AddressRateLimiter(settings.rate_limit, REQUEST_CEILING_WINDOW_MS),
    )


def check_signer(settings: Settings) -> bool:
    """Verify that the configured key controls the configured signer address."""
    try:
        matches = signer_matches(settings.score_signer_pk, settings.score_signer_addr)
    except SigningError:
        logger.error("Signer self-check failed: SCORE_SIGNER_PK is malformed")
        return False
    if not matches:
        logger.error(
            "Signer self-check failed: key does not control %s", settings.score_signer_addr
        )
    return matches


def _error_body(error: str, message: str, **extra: object) -> dict[str, object]:
    return {"error": error, "message": message, **extra}


def register_exception_handlers(app: FastAPI) -> None:
    """Render domain errors as the JSON bodies clients expect."""

    @app.exception_handler(ClaimValidationError)
    async def _validation_failed(request: Request, exc: ClaimValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content=_error_body("VALIDATION_FAILED", str(exc), reason=exc.reason),
        )

    @app.exception_handler(RequestValidationError)
    async def _invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.warning("Invalid request body on %s", request.url.path)
        return JSONResponse(
            status_code=400,
            content=_error_body(
                "INVALID_BODY",
                "Request body validation failed",
                details=[
                    {"loc": list(error.get("loc", ())), "msg": error.get("msg", "")}
                    for error in exc.errors()
                ],
            ),
        )

    @app.exception_handler(InvalidAdminInput)
    async def _invalid_admin_input(request: Request, exc: InvalidAdminInput) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": exc.code})

    @app.exception_handler(RateLimitExceeded)
    async def _rate_limited(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        return JSONResponse(
            status_code=429,
            content=_error_body(
                "RATE_LIMIT_EXCEEDED",
                f"Too many requests. Try again after {exc.reset_at}",
                remaining=exc.remaining,
                resetAt=exc.reset_at,
            ),
        )

    @app.exception_handler(SigningFailed)
    async def _sign_failed(request: Request, exc: SigningFailed) -> JSONResponse:
        return JSONResponse(
            status_code=500,
            content=_error_body("SIGN_FAIL", "Failed to sign score. Please try again later."),
        )


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build a fully wired application.

    Every call constructs its own ledger and limiters, so separate apps
    never share nonce or admission state.
    """
    settings = settings or env_settings

    app = FastAPI(
        title="Score Oracle API",
        description="Signs game-score claims for the on-chain tournament contract",
        version=settings.app_version,
        dependencies=[Depends(enforce_request_ceiling)],
    )

    ledger, score_limiter, request_limiter = build_state(settings)
    app.state.settings = settings
    app.state.nonce_ledger = ledger
    app.state.score_limiter = score_limiter
    app.state.request_limiter = request_limiter
    app.state.signing_service = ScoreSigningService(
        signer_private_key=settings.score_signer_pk,
        ledger=ledger,
        limiter=score_limiter,
        signing_timeout_seconds=settings.signing_timeout_seconds,
    )
    app.state.signer_ready = check_signer(settings)
    app.state.sweep_worker = StateSweepWorker(
        [score_limiter, request_limiter],
        ledger,
        interval_seconds=settings.rate_limit_sweep_interval_seconds,
        reservation_ttl_seconds=settings.nonce_reservation_ttl_seconds,
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    # Add GZip middleware for compression
    app.add_middleware(GZipMiddleware)

    register_exception_handlers(app)

    app.include_router(scores_router)
    app.include_router(admin_router)
    app.include_router(system_router)

    @app.on_event("startup")
    async def on_startup() -> None:
        await app.state.sweep_worker.start()

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        await app.state.sweep_worker.stop()

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.DEBUG if env_settings.debug else logging.INFO)
    uvicorn.run(app, host="0.0.0.0", port=env_settings.port)
