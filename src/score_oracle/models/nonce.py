# src/score_oracle/models/nonce.py
"""Nonce ledger record."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class NonceRecord:
    """Per-(tournament, player) nonce state.

    ``last_issued_nonce`` is what ``next`` is derived from. Values above
    ``confirmed_nonce`` are provisional reservations that can be rolled
    back; ``confirmed_nonce`` only moves through an explicit commit.
    """

    last_issued_nonce: int
    issued_at: float
    confirmed_nonce: int = 0

    @property
    def provisional(self) -> bool:
        return self.last_issued_nonce > self.confirmed_nonce
