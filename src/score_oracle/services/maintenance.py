"""Background sweep of expired admission windows and stale nonce reservations.

The worker runs on its own asyncio task. Each sweep holds a limiter or
ledger lock only long enough to collect and drop expired entries, so
request handling is never blocked for more than a moment.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

from redis.exceptions import RedisError

from score_oracle.services.nonce_ledger import NonceLedger
from score_oracle.services.rate_limiter import AdmissionLimiter

logger = logging.getLogger(__name__)

MIN_INTERVAL_SECONDS = 0.1


class StateSweepWorker:
    """Periodically prunes in-memory state owned by the limiters and ledger."""

    def __init__(
        self,
        limiters: Iterable[AdmissionLimiter],
        ledger: NonceLedger | None = None,
        *,
        interval_seconds: float = 60.0,
        reservation_ttl_seconds: float = 0.0,
    ) -> None:
        """Initialize the sweep worker.

        Args:
            limiters: Limiters whose lapsed windows should be removed.
            ledger: Ledger whose stale reservations should be expired.
            interval_seconds: Delay between sweeps.
            reservation_ttl_seconds: Age after which an unconfirmed nonce is
                rolled back. Zero disables reservation expiry.
        """
        self.limiters = list(limiters)
        self.ledger = ledger
        self.interval_seconds = max(MIN_INTERVAL_SECONDS, float(interval_seconds))
        self.reservation_ttl_seconds = reservation_ttl_seconds
        self._task: asyncio.Task[None] | None = None
        self._stopping: asyncio.Event | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the background sweep loop."""
        if not self.running:
            self._stopping = asyncio.Event()
            self._task = asyncio.create_task(self._run(self._stopping))

    async def stop(self) -> None:
        """Stop the background sweep loop."""
        if self._task is None or self._stopping is None:
            return

        self._stopping.set()
        await self._task
        self._task = None

    def sweep_once(self) -> dict[str, int]:
        """Run one sweep synchronously and report what was removed."""
        windows = sum(limiter.cleanup() for limiter in self.limiters)
        reservations = 0
        if self.ledger is not None and self.reservation_ttl_seconds > 0:
            reservations = self.ledger.expire_reservations(self.reservation_ttl_seconds)
        return {"windows": windows, "reservations": reservations}

    async def _run(self, stopping: asyncio.Event) -> None:
        while not stopping.is_set():
            try:
                await asyncio.wait_for(stopping.wait(), timeout=self.interval_seconds)
            except TimeoutError:
                pass
            if stopping.is_set():
                return

            try:
                removed = self.sweep_once()
            except (OSError, RedisError) as e:
                logger.warning("StateSweepWorker encountered storage error: %s", e)
                continue
            if removed["windows"] or removed["reservations"]:
                logger.debug(
                    "Sweep removed %d windows and %d reservations",
                    removed["windows"],
                    removed["reservations"],
                )
