"""Tests for per-address admission control."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock

import pytest

from score_oracle.services.rate_limiter import AddressRateLimiter, RedisAddressRateLimiter
from tests.conftest import OTHER_PLAYER, PLAYER, FakeClock

WINDOW_MS = 60_000


@pytest.fixture()
def minute_limiter(clock: FakeClock) -> AddressRateLimiter:
    return AddressRateLimiter(3, WINDOW_MS, clock=clock)


def test_quota_counts_down_then_rejects(minute_limiter: AddressRateLimiter, clock: FakeClock) -> None:
    start_ms = int(clock() * 1000)
    decisions = [minute_limiter.check(PLAYER) for _ in range(4)]

    assert [d.allowed for d in decisions] == [True, True, True, False]
    assert [d.remaining for d in decisions] == [2, 1, 0, 0]
    assert {d.reset_at for d in decisions} == {start_ms + WINDOW_MS}


def test_window_resets_after_expiry(minute_limiter: AddressRateLimiter, clock: FakeClock) -> None:
    for _ in range(3):
        minute_limiter.check(PLAYER)
    assert minute_limiter.check(PLAYER).allowed is False

    clock.advance(WINDOW_MS / 1000)
    decision = minute_limiter.check(PLAYER)
    assert decision.allowed is True
    assert decision.remaining == 2
    assert decision.reset_at == int(clock() * 1000) + WINDOW_MS


def test_rejections_do_not_extend_window(
    minute_limiter: AddressRateLimiter, clock: FakeClock
) -> None:
    for _ in range(3):
        minute_limiter.check(PLAYER)
    first_reset = minute_limiter.check(PLAYER).reset_at

    for _ in range(10):
        clock.advance(5)
        rejected = minute_limiter.check(PLAYER)
        assert rejected.allowed is False
        assert rejected.reset_at == first_reset

    clock.advance(10)
    assert minute_limiter.check(PLAYER).allowed is True


def test_addresses_are_case_insensitive(minute_limiter: AddressRateLimiter) -> None:
    minute_limiter.check(PLAYER.upper().replace("0X", "0x"))
    minute_limiter.check(PLAYER)
    assert minute_limiter.check(PLAYER).remaining == 0


def test_addresses_are_independent(minute_limiter: AddressRateLimiter) -> None:
    for _ in range(3):
        minute_limiter.check(PLAYER)
    assert minute_limiter.check(OTHER_PLAYER).allowed is True


def test_reset_restores_full_quota(minute_limiter: AddressRateLimiter) -> None:
    for _ in range(4):
        minute_limiter.check(PLAYER)
    minute_limiter.reset(PLAYER)
    decision = minute_limiter.check(PLAYER)
    assert decision.allowed is True
    assert decision.remaining == 2


def test_status_reports_live_window(minute_limiter: AddressRateLimiter, clock: FakeClock) -> None:
    assert minute_limiter.status(PLAYER) is None

    minute_limiter.check(PLAYER)
    status = minute_limiter.status(PLAYER)
    assert status is not None
    assert status.count == 1
    assert status.remaining == 2

    # status is read-only
    assert minute_limiter.status(PLAYER).count == 1  # type: ignore[union-attr]

    clock.advance(WINDOW_MS / 1000)
    assert minute_limiter.status(PLAYER) is None


def test_cleanup_removes_only_lapsed_windows(
    minute_limiter: AddressRateLimiter, clock: FakeClock
) -> None:
    minute_limiter.check(PLAYER)
    clock.advance(30)
    minute_limiter.check(OTHER_PLAYER)
    clock.advance(30)

    assert minute_limiter.cleanup() == 1
    assert minute_limiter.stats() == {"totalTrackedAddresses": 1, "memoryUsageBytes": 100}

    clock.advance(30)
    assert minute_limiter.cleanup() == 1
    assert minute_limiter.stats()["totalTrackedAddresses"] == 0


def test_concurrent_checks_admit_exactly_quota(minute_limiter: AddressRateLimiter) -> None:
    with ThreadPoolExecutor(max_workers=16) as pool:
        decisions = list(pool.map(lambda _: minute_limiter.check(PLAYER), range(50)))
    assert sum(d.allowed for d in decisions) == 3


@pytest.mark.parametrize(("max_requests", "window_ms"), [(0, 1000), (3, 0), (-1, 1000)])
def test_rejects_non_positive_configuration(max_requests: int, window_ms: int) -> None:
    with pytest.raises(ValueError):
        AddressRateLimiter(max_requests, window_ms)


class TestRedisAddressRateLimiter:
    """Redis limiter wiring, with the client mocked out."""

    @pytest.fixture()
    def redis_client(self) -> MagicMock:
        return MagicMock()

    @pytest.fixture()
    def redis_limiter(self, redis_client: MagicMock, clock: FakeClock) -> RedisAddressRateLimiter:
        return RedisAddressRateLimiter(redis_client, 3, WINDOW_MS, clock=clock)

    def test_allowed_decision(
        self, redis_client: MagicMock, redis_limiter: RedisAddressRateLimiter, clock: FakeClock
    ) -> None:
        script = redis_client.register_script.return_value
        script.return_value = [1, 1, WINDOW_MS]

        decision = redis_limiter.check(PLAYER.upper().replace("0X", "0x"))

        assert decision.allowed is True
        assert decision.remaining == 2
        assert decision.reset_at == int(clock() * 1000) + WINDOW_MS
        script.assert_called_once_with(keys=[f"ratelimit:score:{PLAYER}"], args=[3, WINDOW_MS])

    def test_rejected_decision(
        self, redis_client: MagicMock, redis_limiter: RedisAddressRateLimiter
    ) -> None:
        redis_client.register_script.return_value.return_value = [0, 3, 1234]
        decision = redis_limiter.check(PLAYER)
        assert decision.allowed is False
        assert decision.remaining == 0

    def test_status(
        self, redis_client: MagicMock, redis_limiter: RedisAddressRateLimiter, clock: FakeClock
    ) -> None:
        redis_client.pipeline.return_value.execute.return_value = [b"2", 5000]
        status = redis_limiter.status(PLAYER)
        assert status is not None
        assert status.count == 2
        assert status.remaining == 1
        assert status.reset_at == int(clock() * 1000) + 5000

        redis_client.pipeline.return_value.execute.return_value = [None, -2]
        assert redis_limiter.status(PLAYER) is None

    def test_reset_and_stats(
        self, redis_client: MagicMock, redis_limiter: RedisAddressRateLimiter
    ) -> None:
        redis_limiter.reset(PLAYER)
        redis_client.delete.assert_called_once_with(f"ratelimit:score:{PLAYER}")

        redis_client.scan_iter.return_value = iter([b"ratelimit:score:a", b"ratelimit:score:b"])
        assert redis_limiter.stats() == {"totalTrackedAddresses": 2, "memoryUsageBytes": 200}
        assert redis_limiter.cleanup() == 0
