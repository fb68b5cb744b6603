# src/score_oracle/models/claim.py
"""Transient claim records flowing through the signing pipeline."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class GameMetadata:
    """Game telemetry attached to a claim.

    Known fields are range-checked by the validator; anything else is kept
    in ``extra`` without validation. ``source`` holds the parsed object in
    its original key order and is what gets hashed.
    """

    duration: float | None = None
    balls_used: float | None = None
    table_id: float | None = None
    timestamp: float | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)
    source: Mapping[str, Any] = field(default_factory=dict, repr=False)

    def canonical_json(self) -> str:
        """Return the compact JSON string bound into the metadata hash.

        An empty object maps to the empty string so that a claim submitted
        without metadata hashes the empty byte sequence.
        """
        if not self.source:
            return ""
        return json.dumps(
            self.source, separators=(",", ":"), ensure_ascii=False, allow_nan=False
        )


@dataclass(frozen=True)
class ScoreClaim:
    """A validated score claim. Never retained beyond a single request."""

    tournament_id: int
    player: str
    score: int
    name: str = ""
    metadata: GameMetadata = field(default_factory=GameMetadata)


@dataclass(frozen=True)
class SignedClaim:
    """A claim together with its issued nonce and the oracle signature."""

    claim: ScoreClaim
    nonce: int
    signature: str
    digest: bytes
    rate_limit_remaining: int
    rate_limit_reset_at: int
