from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field


class LogEntry(BaseModel):
    """A diary record as seen by the core, with a timezone-aware local timestamp."""

    model_config = ConfigDict(frozen=True)

    id: str
    created_at: datetime
    title: str
    mood: str
    tags: tuple[str, ...] = ()
    body: str | None = None
    image_ref: str | None = None

    @property
    def day(self) -> date:
        return self.created_at.date()

    @property
    def day_key(self) -> str:
        return self.day.isoformat()


class EntryStub(BaseModel):
    """Identifier and local day of an entry, used for uniform sampling."""

    model_config = ConfigDict(frozen=True)

    id: str
    day: date


class StreakResponse(BaseModel):
    count: int = Field(ge=0)
    start_date: str | None = None
    has_today_record: bool
    total_days: int = Field(ge=0)


class CountItem(BaseModel):
    label: str
    count: int


class StatsResponse(BaseModel):
    days: int
    entries: int
    unique_days: int
    record_rate: float
    moods: list[CountItem]
    tags: list[CountItem]
    weekdays: list[CountItem]


class TriggerResponse(BaseModel):
    job: str
    sent: bool
    detail: str | None = None


__all__ = [
    "CountItem",
    "EntryStub",
    "LogEntry",
    "StatsResponse",
    "StreakResponse",
    "TriggerResponse",
]
