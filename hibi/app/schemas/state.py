from __future__ import annotations

from pydantic import BaseModel, Field


class StreakState(BaseModel):
    """Persisted streak cache. ``last_date`` and ``start_date`` are YYYY-MM-DD keys."""

    count: int = Field(default=0, ge=0)
    last_date: str | None = None
    start_date: str | None = None
    total_days: int = Field(default=0, ge=0)


class ReviewHistoryEntry(BaseModel):
    date: str
    text: str


__all__ = ["ReviewHistoryEntry", "StreakState"]
