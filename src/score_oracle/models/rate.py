# models/rate.py
"""Admission window records. All timestamps are epoch milliseconds."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class RateWindow:
    """Fixed admission window for one address."""

    count: int
    window_start: int
    reset_at: int


@dataclass(frozen=True)
class LimitDecision:
    """Outcome of a single admission check."""

    allowed: bool
    remaining: int
    reset_at: int


@dataclass(frozen=True)
class RateLimitStatus:
    """Read-only view of a live window."""

    count: int
    remaining: int
    reset_at: int
