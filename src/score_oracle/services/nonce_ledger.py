"""Per-tournament, per-player nonce ledger.

The verifying contract accepts a submission only when its nonce equals the
last accepted nonce plus one. The ledger is the single source of truth for
which nonce the oracle signs next.

Issuance is atomic: ``issue`` derives the next value and stores it as a
provisional reservation under a lock striped by key, so two concurrent
requests for the same player never receive the same nonce. ``commit``
records a confirmed value (for example after reconciling with the chain).
Reservations that were never confirmed can be handed back with ``release``
or aged out with ``expire_reservations``.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, Final, Protocol

from score_oracle.models.nonce import NonceRecord

logger = logging.getLogger(__name__)

FIRST_NONCE: Final[int] = 1
LOCK_STRIPES: Final[int] = 256

Clock = Callable[[], float]
LedgerKey = tuple[int, str]


class NonceLedger(Protocol):
    """Interface shared by the in-memory and redis ledgers."""

    def next_nonce(self, tournament_id: int, address: str) -> int: ...

    def current_nonce(self, tournament_id: int, address: str) -> int | None: ...

    def is_valid_next(self, tournament_id: int, address: str, nonce: int) -> bool: ...

    def issue(self, tournament_id: int, address: str) -> int: ...

    def commit(self, tournament_id: int, address: str, nonce: int) -> None: ...

    def release(self, tournament_id: int, address: str, nonce: int) -> bool: ...

    def expire_reservations(self, max_age_seconds: float) -> int: ...

    def reset_player(self, tournament_id: int, address: str) -> None: ...

    def reset_tournament(self, tournament_id: int) -> None: ...

    def stats(self) -> dict[str, int]: ...


class InMemoryNonceLedger:
    """Process-local ledger: ``{tournament_id: {address: NonceRecord}}``.

    Suitable for a single instance and for tests. State is lost on restart.
    """

    def __init__(self, *, clock: Clock = time.time) -> None:
        self._clock = clock
        self._store: dict[int, dict[str, NonceRecord]] = {}
        self._store_lock = threading.Lock()
        # Fixed pool: keys hash onto stripes, so lock memory never grows with players.
        self._key_locks: tuple[threading.Lock, ...] = tuple(
            threading.Lock() for _ in range(LOCK_STRIPES)
        )

    @contextmanager
    def _locked(self, tournament_id: int, address: str) -> Iterator[str]:
        """Serialize work on one key; keys on other stripes proceed in parallel."""
        player = address.lower()
        key: LedgerKey = (tournament_id, player)
        with self._key_locks[hash(key) % LOCK_STRIPES]:
            yield player

    def _record(self, tournament_id: int, player: str) -> NonceRecord | None:
        with self._store_lock:
            return self._store.get(tournament_id, {}).get(player)

    def _store_record(self, tournament_id: int, player: str, record: NonceRecord) -> None:
        with self._store_lock:
            self._store.setdefault(tournament_id, {})[player] = record

    def _drop_record(self, tournament_id: int, player: str) -> None:
        with self._store_lock:
            players = self._store.get(tournament_id)
            if players is None:
                return
            players.pop(player, None)
            if not players:
                del self._store[tournament_id]

    def next_nonce(self, tournament_id: int, address: str) -> int:
        """Return the nonce the next claim for this key must carry."""
        record = self._record(tournament_id, address.lower())
        if record is None:
            return FIRST_NONCE
        return record.last_issued_nonce + 1

    def current_nonce(self, tournament_id: int, address: str) -> int | None:
        """Return the last recorded nonce, or None. Diagnostic read only."""
        record = self._record(tournament_id, address.lower())
        return None if record is None else record.last_issued_nonce

    def is_valid_next(self, tournament_id: int, address: str, nonce: int) -> bool:
        """Return True if ``nonce`` is exactly the next expected value."""
        return nonce == self.next_nonce(tournament_id, address)

    def issue(self, tournament_id: int, address: str) -> int:
        """Reserve and return the next nonce in a single atomic step."""
        with self._locked(tournament_id, address) as player:
            record = self._record(tournament_id, player)
            if record is None:
                nonce = FIRST_NONCE
                record = NonceRecord(last_issued_nonce=nonce, issued_at=self._clock())
                self._store_record(tournament_id, player, record)
            else:
                nonce = record.last_issued_nonce + 1
                record.last_issued_nonce = nonce
                record.issued_at = self._clock()
            return nonce

    def commit(self, tournament_id: int, address: str, nonce: int) -> None:
        """Overwrite the stored nonce with ``nonce`` and mark it confirmed.

        No sequencing check is performed; callers commit the value they were
        issued, or the value observed on-chain when reconciling.
        """
        if nonce < 0:
            raise ValueError("nonce must be non-negative")
        with self._locked(tournament_id, address) as player:
            self._store_record(
                tournament_id,
                player,
                NonceRecord(
                    last_issued_nonce=nonce,
                    issued_at=self._clock(),
                    confirmed_nonce=nonce,
                ),
            )

    def release(self, tournament_id: int, address: str, nonce: int) -> bool:
        """Hand back an unconfirmed reservation.

        Only the latest reservation can be released; anything else has
        already been followed by another issuance and stays burned.

        Returns:
            True if the ledger was rolled back by one.
        """
        with self._locked(tournament_id, address) as player:
            record = self._record(tournament_id, player)
            if record is None or record.last_issued_nonce != nonce or not record.provisional:
                return False
            if nonce - 1 <= 0:
                self._drop_record(tournament_id, player)
            else:
                record.last_issued_nonce = nonce - 1
            return True

    def expire_reservations(self, max_age_seconds: float) -> int:
        """Roll back reservations older than ``max_age_seconds``.

        A key whose newest reservation is stale falls back to its last
        confirmed nonce. Returns the number of keys rolled back.
        """
        cutoff = self._clock() - max_age_seconds
        with self._store_lock:
            stale = [
                (tournament_id, player)
                for tournament_id, players in self._store.items()
                for player, record in players.items()
                if record.provisional and record.issued_at <= cutoff
            ]

        expired = 0
        for tournament_id, player in stale:
            with self._locked(tournament_id, player):
                record = self._record(tournament_id, player)
                if record is None or not record.provisional or record.issued_at > cutoff:
                    continue
                if record.confirmed_nonce == 0:
                    self._drop_record(tournament_id, player)
                else:
                    record.last_issued_nonce = record.confirmed_nonce
                expired += 1
        if expired:
            logger.info("Expired %d unconfirmed nonce reservations", expired)
        return expired

    def reset_player(self, tournament_id: int, address: str) -> None:
        """Delete one player's record in one tournament."""
        with self._locked(tournament_id, address) as player:
            self._drop_record(tournament_id, player)

    def reset_tournament(self, tournament_id: int) -> None:
        """Delete every record in a tournament."""
        with self._store_lock:
            self._store.pop(tournament_id, None)

    def stats(self) -> dict[str, int]:
        """Return tournament and player counts for monitoring."""
        with self._store_lock:
            return {
                "totalTournaments": len(self._store),
                "totalPlayers": sum(len(players) for players in self._store.values()),
            }


# Roll back by one if ARGV[1] is still the latest unconfirmed nonce.
_RELEASE_SCRIPT: Final[str] = """
local last = tonumber(redis.call('HGET', KEYS[1], 'last') or '0')
local confirmed = tonumber(redis.call('HGET', KEYS[1], 'confirmed') or '0')
local nonce = tonumber(ARGV[1])
if last ~= nonce or last <= confirmed then
  return 0
end
if last - 1 <= 0 then
  redis.call('DEL', KEYS[1])
else
  redis.call('HSET', KEYS[1], 'last', last - 1)
end
return 1
"""

# Fall back to the confirmed nonce if the newest reservation is older than ARGV[1].
_EXPIRE_SCRIPT: Final[str] = """
local last = tonumber(redis.call('HGET', KEYS[1], 'last') or '0')
local confirmed = tonumber(redis.call('HGET', KEYS[1], 'confirmed') or '0')
local issued_at = tonumber(redis.call('HGET', KEYS[1], 'issued_at') or '0')
if last <= confirmed or issued_at > tonumber(ARGV[1]) then
  return 0
end
if confirmed == 0 then
  redis.call('DEL', KEYS[1])
else
  redis.call('HSET', KEYS[1], 'last', confirmed)
end
return 1
"""


class RedisNonceLedger:
    """Ledger stored in redis hashes ``nonce:{tournament}:{address}``.

    Lets several oracle instances behind a load balancer share one nonce
    sequence per key and survive restarts.
    """

    def __init__(self, client: Any, *, prefix: str = "nonce", clock: Clock = time.time) -> None:
        self._redis = client
        self._prefix = prefix
        self._clock = clock
        self._release_script = client.register_script(_RELEASE_SCRIPT)
        self._expire_script = client.register_script(_EXPIRE_SCRIPT)

    def _key(self, tournament_id: int, address: str) -> str:
        return f"{self._prefix}:{tournament_id}:{address.lower()}"

    def _last(self, tournament_id: int, address: str) -> int | None:
        raw = self._redis.hget(self._key(tournament_id, address), "last")
        return None if raw is None else int(raw)

    def next_nonce(self, tournament_id: int, address: str) -> int:
        """Return the nonce the next claim for this key must carry."""
        last = self._last(tournament_id, address)
        return FIRST_NONCE if last is None else last + 1

    def current_nonce(self, tournament_id: int, address: str) -> int | None:
        """Return the last recorded nonce, or None. Diagnostic read only."""
        return self._last(tournament_id, address)

    def is_valid_next(self, tournament_id: int, address: str, nonce: int) -> bool:
        """Return True if ``nonce`` is exactly the next expected value."""
        return nonce == self.next_nonce(tournament_id, address)

    def issue(self, tournament_id: int, address: str) -> int:
        """Reserve and return the next nonce with a MULTI/EXEC increment."""
        key = self._key(tournament_id, address)
        pipe = self._redis.pipeline(transaction=True)
        pipe.hincrby(key, "last", 1)
        pipe.hset(key, "issued_at", repr(self._clock()))
        nonce, _ = pipe.execute()
        return int(nonce)

    def commit(self, tournament_id: int, address: str, nonce: int) -> None:
        """Overwrite the stored nonce with ``nonce`` and mark it confirmed."""
        if nonce < 0:
            raise ValueError("nonce must be non-negative")
        self._redis.hset(
            self._key(tournament_id, address),
            mapping={"last": nonce, "confirmed": nonce, "issued_at": repr(self._clock())},
        )

    def release(self, tournament_id: int, address: str, nonce: int) -> bool:
        """Hand back the latest unconfirmed reservation."""
        return bool(int(self._release_script(keys=[self._key(tournament_id, address)], args=[nonce])))

    def expire_reservations(self, max_age_seconds: float) -> int:
        """Roll back reservations older than ``max_age_seconds``."""
        cutoff = repr(self._clock() - max_age_seconds)
        expired = 0
        for key in self._redis.scan_iter(match=f"{self._prefix}:*"):
            expired += int(self._expire_script(keys=[key], args=[cutoff]))
        if expired:
            logger.info("Expired %d unconfirmed nonce reservations", expired)
        return expired

    def reset_player(self, tournament_id: int, address: str) -> None:
        """Delete one player's record in one tournament."""
        self._redis.delete(self._key(tournament_id, address))

    def reset_tournament(self, tournament_id: int) -> None:
        """Delete every record in a tournament."""
        keys = list(self._redis.scan_iter(match=f"{self._prefix}:{tournament_id}:*"))
        if keys:
            self._redis.delete(*keys)

    def stats(self) -> dict[str, int]:
        """Return tournament and player counts for monitoring."""
        tournaments: set[str] = set()
        players = 0
        for key in self._redis.scan_iter(match=f"{self._prefix}:*"):
            name = key.decode() if isinstance(key, bytes) else str(key)
            tournaments.add(name.split(":")[1])
            players += 1
        return {"totalTournaments": len(tournaments), "totalPlayers": players}
