"""Bounds validation for incoming score claims.

Checks run in a fixed order (score, tournament id, address, metadata) and
the first failing check decides the reason code. All functions are pure.

Player names are not sanitized: they are derived from the wallet address
or a fixed default, never typed by the player. Any deployment that accepts
free-text names must add sanitization in ``player_name``.
"""

from __future__ import annotations

import json
import math
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Final

from score_oracle.core.errors import ClaimValidationError
from score_oracle.models.claim import GameMetadata, ScoreClaim

MAX_SCORE: Final[int] = 10_000_000
MAX_METADATA_BYTES: Final[int] = 10_000
MAX_UINT256: Final[int] = 2**256 - 1

_ADDRESS_PATTERN: Final = re.compile(r"0x[0-9a-fA-F]{40}")


@dataclass(frozen=True)
class _FieldRule:
    """Range rule for a known metadata field."""

    attribute: str
    reason: str
    minimum: float
    maximum: float | None = None
    exclusive_minimum: bool = False

    def accepts(self, value: Any) -> bool:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return False
        if not math.isfinite(value):
            return False
        if self.exclusive_minimum:
            if value <= self.minimum:
                return False
        elif value < self.minimum:
            return False
        return self.maximum is None or value <= self.maximum


_METADATA_RULES: Final[dict[str, _FieldRule]] = {
    "duration": _FieldRule("duration", "METADATA_INVALID_DURATION", 0, 3_600_000),
    "ballsUsed": _FieldRule("balls_used", "METADATA_INVALID_BALLS_USED", 0, 1000),
    "tableId": _FieldRule("table_id", "METADATA_INVALID_TABLE_ID", 0, 100),
    "timestamp": _FieldRule("timestamp", "METADATA_INVALID_TIMESTAMP", 0, exclusive_minimum=True),
}


def _as_integer(value: Any) -> int | None:
    """Return ``value`` as an int if it is an integral number, else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return int(value)
    return None


def validate_score_bounds(score: Any) -> int:
    """Check a score against ``[0, MAX_SCORE]``.

    Raises:
        ClaimValidationError: ``INVALID_SCORE`` for non-finite or non-integral
            values, ``NEGATIVE_SCORE`` below zero, ``SCORE_TOO_HIGH`` above
            ``MAX_SCORE``.
    """
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise ClaimValidationError("INVALID_SCORE")
    if isinstance(score, float) and not math.isfinite(score):
        raise ClaimValidationError("INVALID_SCORE")
    if score < 0:
        raise ClaimValidationError("NEGATIVE_SCORE")
    if score > MAX_SCORE:
        raise ClaimValidationError("SCORE_TOO_HIGH")
    value = _as_integer(score)
    if value is None:
        raise ClaimValidationError("INVALID_SCORE")
    return value


def validate_tournament_id(tournament_id: Any) -> int:
    """Return the tournament id as a positive int that fits in uint256."""
    value = _as_integer(tournament_id)
    if value is None or value <= 0 or value > MAX_UINT256:
        raise ClaimValidationError("INVALID_TOURNAMENT_ID")
    return value


def _encodes_as_utf8(text: str) -> bool:
    try:
        text.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def is_address(address: Any) -> bool:
    """Return True for ``0x`` followed by exactly 40 hex digits (any case)."""
    return isinstance(address, str) and _ADDRESS_PATTERN.fullmatch(address) is not None


def normalize_address(address: Any) -> str:
    """Validate an address and return its lowercase form.

    Every component keys state by the lowercase address.
    """
    if not is_address(address):
        raise ClaimValidationError("INVALID_ADDRESS_FORMAT")
    return address.lower()


def player_name(name: str | None) -> str:
    """Return the wallet-derived display name unchanged (empty if missing).

    The name is hashed as UTF-8, so text that has no UTF-8 encoding (lone
    surrogates) is rejected here rather than at signing time.
    """
    value = name or ""
    if not _encodes_as_utf8(value):
        raise ClaimValidationError("INVALID_NAME")
    return value


def parse_game_metadata(raw: str | None) -> GameMetadata:
    """Parse and range-check the metadata JSON string.

    Blank input yields an empty ``GameMetadata``. Unknown keys pass through
    into ``extra``.
    """
    text = raw or ""
    if not _encodes_as_utf8(text):
        raise ClaimValidationError("METADATA_INVALID_JSON")
    if len(text.encode("utf-8")) > MAX_METADATA_BYTES:
        raise ClaimValidationError("METADATA_TOO_LARGE")
    if not text.strip():
        return GameMetadata()

    try:
        data = json.loads(text)
    except (ValueError, RecursionError) as err:
        raise ClaimValidationError("METADATA_INVALID_JSON") from err

    if not isinstance(data, dict):
        raise ClaimValidationError("METADATA_NOT_OBJECT")

    metadata = _metadata_from_mapping(data)
    # The canonical form is what gets hashed and echoed; it must be strict JSON in UTF-8.
    try:
        metadata.canonical_json().encode("utf-8")
    except ValueError as err:
        raise ClaimValidationError("METADATA_INVALID_JSON") from err
    return metadata


def _metadata_from_mapping(data: Mapping[str, Any]) -> GameMetadata:
    known: dict[str, Any] = {}
    extra: dict[str, Any] = {}
    for key, value in data.items():
        rule = _METADATA_RULES.get(key)
        if rule is None:
            extra[key] = value
            continue
        if not rule.accepts(value):
            raise ClaimValidationError(rule.reason)
        known[rule.attribute] = value
    return GameMetadata(**known, extra=extra, source=dict(data))


def validate_score_claim(
    *,
    tournament_id: Any,
    address: Any,
    score: Any,
    name: str | None = None,
    metadata: str | None = None,
) -> ScoreClaim:
    """Validate a raw claim and return its sanitized form.

    Args:
        tournament_id: Positive integer tournament id.
        address: Player address, ``0x`` + 40 hex digits.
        score: Claimed score, an integer in ``[0, MAX_SCORE]``.
        name: Wallet-derived display name.
        metadata: Raw metadata JSON string.

    Returns:
        A ``ScoreClaim`` with the address lowercased and metadata parsed.

    Raises:
        ClaimValidationError: Carrying the reason of the first failed check.
    """
    checked_score = validate_score_bounds(score)
    checked_tournament = validate_tournament_id(tournament_id)
    player = normalize_address(address)
    parsed_metadata = parse_game_metadata(metadata)
    return ScoreClaim(
        tournament_id=checked_tournament,
        player=player,
        score=checked_score,
        name=player_name(name),
        metadata=parsed_metadata,
    )
