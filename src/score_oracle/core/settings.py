"""Application settings and configuration.

This module defines all configuration options for the score oracle.
Settings are loaded once at process start from environment variables
(or a `.env` file) and treated as immutable inputs afterwards.
"""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ADDRESS_HEX_LENGTH = 42


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    Fields may also be passed by name, which is how tests build isolated
    configurations.
    """

    # Application metadata
    app_name: str = Field(default="Score Oracle", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    port: int = Field(default=8080, alias="PORT")

    # Signing authority
    score_signer_pk: str = Field(alias="SCORE_SIGNER_PK", repr=False)
    score_signer_addr: str = Field(alias="SCORE_SIGNER_ADDR")
    signing_timeout_seconds: float = Field(default=5.0, alias="SIGNING_TIMEOUT_SECONDS")

    # Global request ceiling (per client host, per minute)
    rate_limit: int = Field(default=120, alias="RATE_LIMIT")

    # Per-address admission control for the signing endpoint
    score_rate_limit_max_requests: int = Field(default=3, alias="SCORE_RATE_LIMIT_MAX_REQUESTS")
    score_rate_limit_window_seconds: float = Field(
        default=300.0,
        alias="SCORE_RATE_LIMIT_WINDOW_SECONDS",
    )
    rate_limit_sweep_interval_seconds: float = Field(
        default=60.0,
        alias="RATE_LIMIT_SWEEP_INTERVAL_SECONDS",
    )

    # Nonce reservations older than this are rolled back; 0 disables expiry
    nonce_reservation_ttl_seconds: float = Field(
        default=0.0,
        alias="NONCE_RESERVATION_TTL_SECONDS",
    )

    # State storage
    state_backend: Literal["memory", "redis"] = Field(default="memory", alias="STATE_BACKEND")
    redis_url: str = Field(default="redis://localhost:6379", alias="REDIS_URL")

    # CORS configuration for the game frontend
    allowed_origins: str = Field(default="*", alias="ALLOWED_ORIGINS")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("score_signer_pk")
    @classmethod
    def _check_private_key_shape(cls, value: str) -> str:
        if not value.startswith("0x") or len(value) < 10:
            raise ValueError("SCORE_SIGNER_PK must be a 0x-prefixed hex key")
        return value

    @field_validator("score_signer_addr")
    @classmethod
    def _check_signer_address(cls, value: str) -> str:
        if not value.startswith("0x") or len(value) != _ADDRESS_HEX_LENGTH:
            raise ValueError("SCORE_SIGNER_ADDR must be 0x followed by 40 hex digits")
        return value

    @property
    def cors_origins(self) -> list[str]:
        """Return the allowed CORS origins as a list.

        Returns:
            ``["*"]`` when every origin is allowed, otherwise the trimmed
            comma-separated entries of ``ALLOWED_ORIGINS``
        """
        if self.allowed_origins.strip() == "*":
            return ["*"]
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]


settings = Settings()  # type: ignore[call-arg]
