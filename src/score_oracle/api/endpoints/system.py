"""Health and transparency endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Request

from score_oracle.api.dependencies import SettingsDep, SigningServiceDep
from score_oracle.services.digest import CURRENT_VERSION, supported_versions

router = APIRouter(tags=["system"])


@router.get("/health")
async def health_check(request: Request) -> dict[str, bool]:
    """Report liveness and whether the signer passed its startup self-check."""
    return {"ok": True, "signer_ready": bool(getattr(request.app.state, "signer_ready", False))}


@router.get("/")
async def root(settings: SettingsDep) -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
    }


@router.get("/system/config")
async def get_public_config(settings: SettingsDep, service: SigningServiceDep) -> dict[str, object]:
    """Return a sanitized snapshot of runtime configuration.

    Excludes the signer key and connection strings.

    Returns:
        Signer address, chain binding, hash versions and admission limits
    """
    return {
        "signer": {
            "address": settings.score_signer_addr,
            "chain_id": service.chain_id,
            "hash_version": CURRENT_VERSION.name,
            "hash_versions": list(supported_versions()),
            "signing_timeout_seconds": service.signing_timeout_seconds,
        },
        "rate_limits": {
            "score_max_requests": service.limiter.max_requests,
            "score_window_ms": service.limiter.window_ms,
            "requests_per_minute": settings.rate_limit,
        },
        "state_backend": settings.state_backend,
    }
