# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Iterator
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

# Well-known development key; never funded on any real network.
TEST_SIGNER_PK = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_SIGNER_ADDR = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
PLAYER = "0x" + "a" * 40
OTHER_PLAYER = "0x" + "b" * 40

os.environ["SCORE_SIGNER_PK"] = TEST_SIGNER_PK
os.environ["SCORE_SIGNER_ADDR"] = TEST_SIGNER_ADDR
os.environ["STATE_BACKEND"] = "memory"

from score_oracle.core.settings import Settings
from score_oracle.main import create_app
from score_oracle.services.nonce_ledger import InMemoryNonceLedger
from score_oracle.services.rate_limiter import AddressRateLimiter
from score_oracle.services.score_signing import ScoreSigningService


class FakeClock:
    """Manually advanced wall clock in epoch seconds."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "score_signer_pk": TEST_SIGNER_PK,
        "score_signer_addr": TEST_SIGNER_ADDR,
        "rate_limit": 1000,
        "score_rate_limit_max_requests": 3,
        "score_rate_limit_window_seconds": 300,
        "state_backend": "memory",
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture()
def test_settings() -> Settings:
    return make_settings()


@pytest.fixture()
def ledger(clock: FakeClock) -> InMemoryNonceLedger:
    return InMemoryNonceLedger(clock=clock)


@pytest.fixture()
def limiter(clock: FakeClock) -> AddressRateLimiter:
    return AddressRateLimiter(3, 300_000, clock=clock)


@pytest.fixture()
def signing_service(
    ledger: InMemoryNonceLedger, limiter: AddressRateLimiter
) -> ScoreSigningService:
    return ScoreSigningService(
        signer_private_key=TEST_SIGNER_PK,
        ledger=ledger,
        limiter=limiter,
    )


@pytest.fixture()
def app(test_settings: Settings) -> FastAPI:
    return create_app(test_settings)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def sign_payload() -> Callable[..., dict[str, Any]]:
    """Build a sign request body, overriding any field by keyword."""

    def _build(**overrides: Any) -> dict[str, Any]:
        body: dict[str, Any] = {
            "tournamentId": 1,
            "address": PLAYER,
            "score": 50_000,
            "name": "",
            "metadata": "",
        }
        body.update(overrides)
        return body

    return _build
