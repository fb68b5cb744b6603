"""Per-address admission control for the signing endpoint.

A fixed window counter per address. Rejected requests are free: they never
touch the counter, so a throttled client cannot push its own window out.
Check-and-increment is one critical section per limiter (or one Lua script
for the redis backend).
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Any, Final, Protocol

from score_oracle.models.rate import LimitDecision, RateLimitStatus, RateWindow

logger = logging.getLogger(__name__)

DEFAULT_MAX_REQUESTS: Final[int] = 3
DEFAULT_WINDOW_MS: Final[int] = 5 * 60 * 1000
MEMORY_PER_ENTRY_BYTES: Final[int] = 100

Clock = Callable[[], float]


def _now_ms(clock: Clock) -> int:
    return int(clock() * 1000)


class AdmissionLimiter(Protocol):
    """Interface shared by the in-memory and redis limiters."""

    max_requests: int
    window_ms: int

    def check(self, address: str) -> LimitDecision: ...

    def reset(self, address: str) -> None: ...

    def status(self, address: str) -> RateLimitStatus | None: ...

    def cleanup(self) -> int: ...

    def stats(self) -> dict[str, int]: ...


class AddressRateLimiter:
    """In-process fixed window limiter keyed by lowercase address."""

    def __init__(
        self,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window_ms: int = DEFAULT_WINDOW_MS,
        *,
        clock: Clock = time.time,
    ) -> None:
        if max_requests <= 0 or window_ms <= 0:
            raise ValueError("max_requests and window_ms must be positive")
        self.max_requests = max_requests
        self.window_ms = window_ms
        self._clock = clock
        self._windows: dict[str, RateWindow] = {}
        self._lock = threading.Lock()

    def check(self, address: str) -> LimitDecision:
        """Count a request against the address window and decide admission."""
        key = address.lower()
        now = _now_ms(self._clock)
        with self._lock:
            window = self._windows.get(key)
            if window is None or now >= window.reset_at:
                window = RateWindow(count=1, window_start=now, reset_at=now + self.window_ms)
                self._windows[key] = window
                return LimitDecision(
                    allowed=True,
                    remaining=self.max_requests - 1,
                    reset_at=window.reset_at,
                )

            if window.count >= self.max_requests:
                return LimitDecision(allowed=False, remaining=0, reset_at=window.reset_at)

            window.count += 1
            return LimitDecision(
                allowed=True,
                remaining=self.max_requests - window.count,
                reset_at=window.reset_at,
            )

    def reset(self, address: str) -> None:
        """Forget the window for an address (operator action)."""
        with self._lock:
            self._windows.pop(address.lower(), None)

    def status(self, address: str) -> RateLimitStatus | None:
        """Return the live window for an address without mutating it.

        Returns None when no window exists or the window has lapsed, even if
        the sweep has not removed it yet.
        """
        now = _now_ms(self._clock)
        with self._lock:
            window = self._windows.get(address.lower())
            if window is None or now >= window.reset_at:
                return None
            return RateLimitStatus(
                count=window.count,
                remaining=max(0, self.max_requests - window.count),
                reset_at=window.reset_at,
            )

    def cleanup(self) -> int:
        """Delete every lapsed window. Returns the number removed."""
        now = _now_ms(self._clock)
        with self._lock:
            expired = [key for key, window in self._windows.items() if now >= window.reset_at]
            for key in expired:
                del self._windows[key]
        if expired:
            logger.debug("Swept %d expired rate windows", len(expired))
        return len(expired)

    def stats(self) -> dict[str, int]:
        """Return a rough size report for monitoring."""
        with self._lock:
            tracked = len(self._windows)
        return {
            "totalTrackedAddresses": tracked,
            "memoryUsageBytes": tracked * MEMORY_PER_ENTRY_BYTES,
        }


# Returns {allowed, count, pttl}. Rejections leave the counter untouched.
_CHECK_SCRIPT: Final[str] = """
local current = redis.call('GET', KEYS[1])
if not current then
  redis.call('SET', KEYS[1], 1, 'PX', ARGV[2])
  return {1, 1, tonumber(ARGV[2])}
end
local ttl = redis.call('PTTL', KEYS[1])
if tonumber(current) >= tonumber(ARGV[1]) then
  return {0, tonumber(current), ttl}
end
local count = redis.call('INCR', KEYS[1])
return {1, count, ttl}
"""


class RedisAddressRateLimiter:
    """Limiter backed by redis so every instance shares one window per address.

    Windows are plain counters with a millisecond TTL; expiry is handled by
    redis itself, so ``cleanup`` has nothing to do.
    """

    def __init__(
        self,
        client: Any,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window_ms: int = DEFAULT_WINDOW_MS,
        *,
        scope: str = "score",
        clock: Clock = time.time,
    ) -> None:
        if max_requests <= 0 or window_ms <= 0:
            raise ValueError("max_requests and window_ms must be positive")
        self.max_requests = max_requests
        self.window_ms = window_ms
        self._redis = client
        self._prefix = f"ratelimit:{scope}:"
        self._clock = clock
        self._check_script = client.register_script(_CHECK_SCRIPT)

    def _key(self, address: str) -> str:
        return f"{self._prefix}{address.lower()}"

    def check(self, address: str) -> LimitDecision:
        """Count a request against the shared window and decide admission."""
        now = _now_ms(self._clock)
        allowed, count, ttl = self._check_script(
            keys=[self._key(address)],
            args=[self.max_requests, self.window_ms],
        )
        reset_at = now + max(0, int(ttl))
        if not int(allowed):
            return LimitDecision(allowed=False, remaining=0, reset_at=reset_at)
        return LimitDecision(
            allowed=True,
            remaining=max(0, self.max_requests - int(count)),
            reset_at=reset_at,
        )

    def reset(self, address: str) -> None:
        """Forget the window for an address (operator action)."""
        self._redis.delete(self._key(address))

    def status(self, address: str) -> RateLimitStatus | None:
        """Return the live window for an address without mutating it."""
        key = self._key(address)
        pipe = self._redis.pipeline()
        pipe.get(key)
        pipe.pttl(key)
        raw_count, ttl = pipe.execute()
        if raw_count is None or ttl is None or int(ttl) <= 0:
            return None
        count = int(raw_count)
        return RateLimitStatus(
            count=count,
            remaining=max(0, self.max_requests - count),
            reset_at=_now_ms(self._clock) + int(ttl),
        )

    def cleanup(self) -> int:
        """Expired windows are evicted by redis TTLs."""
        return 0

    def stats(self) -> dict[str, int]:
        """Return a rough size report for monitoring."""
        tracked = sum(1 for _ in self._redis.scan_iter(match=f"{self._prefix}*"))
        return {
            "totalTrackedAddresses": tracked,
            "memoryUsageBytes": tracked * MEMORY_PER_ENTRY_BYTES,
        }
