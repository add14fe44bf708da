from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from datetime import date
from typing import Protocol

from pydantic import TypeAdapter, ValidationError

from ..schemas.state import ReviewHistoryEntry, StreakState
from ..utils.text import TRUNCATION_MARKER, push_safe_truncate

logger = logging.getLogger(__name__)

STREAK_COUNT_KEY = "streak_count"
STREAK_LAST_DATE_KEY = "streak_last_date"
STREAK_START_DATE_KEY = "streak_start_date"
STREAK_TOTAL_DAYS_KEY = "streak_total_days"
LAST_WEEKLY_REVIEW_KEY = "last_weekly_review"
WEEKLY_HISTORY_KEY = "weekly_review_history"
LAST_MONTHLY_REVIEW_KEY = "last_monthly_review"

_STREAK_KEYS = (
    STREAK_COUNT_KEY,
    STREAK_LAST_DATE_KEY,
    STREAK_START_DATE_KEY,
    STREAK_TOTAL_DAYS_KEY,
)
_HISTORY_ADAPTER = TypeAdapter(list[ReviewHistoryEntry])

HISTORY_CAPACITY = 5


class KeyValueStore(Protocol):  # pragma: no cover - structural typing helper
    async def get_setting(self, key: str) -> str | None: ...

    async def get_settings(self, keys: Iterable[str]) -> dict[str, str]: ...

    async def set_settings(self, values: Mapping[str, str]) -> None: ...


class ReviewStateRepository:
    """Typed access to review texts, weekly history and the streak cache."""

    def __init__(
        self,
        store: KeyValueStore,
        *,
        text_limit: int = 1000,
        capacity: int = HISTORY_CAPACITY,
    ) -> None:
        self._store = store
        self._text_limit = max(text_limit, len(TRUNCATION_MARKER))
        self._capacity = capacity

    @property
    def capacity(self) -> int:
        return self._capacity

    # -- streak ----------------------------------------------------------
    async def load_streak(self) -> StreakState | None:
        """Return the cached streak, or None when it was never written or is unreadable."""

        raw = await self._store.get_settings(_STREAK_KEYS)
        if STREAK_COUNT_KEY not in raw or STREAK_TOTAL_DAYS_KEY not in raw:
            return None
        try:
            return StreakState(
                count=int(raw[STREAK_COUNT_KEY]),
                last_date=raw.get(STREAK_LAST_DATE_KEY) or None,
                start_date=raw.get(STREAK_START_DATE_KEY) or None,
                total_days=int(raw[STREAK_TOTAL_DAYS_KEY]),
            )
        except (ValueError, ValidationError):
            logger.warning("streak cache unreadable, treating as empty", extra={"extra_fields": raw})
            return None

    async def save_streak(self, state: StreakState) -> None:
        await self._store.set_settings(
            {
                STREAK_COUNT_KEY: str(state.count),
                STREAK_LAST_DATE_KEY: state.last_date or "",
                STREAK_START_DATE_KEY: state.start_date or "",
                STREAK_TOTAL_DAYS_KEY: str(state.total_days),
            }
        )

    # -- weekly history --------------------------------------------------
    async def load_history(self) -> list[ReviewHistoryEntry]:
        raw = await self._store.get_setting(WEEKLY_HISTORY_KEY)
        if not raw:
            return []
        try:
            return _HISTORY_ADAPTER.validate_json(raw)
        except ValidationError:
            logger.warning("weekly review history unreadable, starting fresh")
            return []

    def _dump_history(self, history: Sequence[ReviewHistoryEntry]) -> str:
        return _HISTORY_ADAPTER.dump_json(list(history[-self._capacity :])).decode("utf-8")

    def history_entry(self, day: date, text: str) -> ReviewHistoryEntry:
        return ReviewHistoryEntry(
            date=day.isoformat(),
            text=push_safe_truncate(text, self._text_limit),
        )

    # -- last review texts -----------------------------------------------
    async def get_last_weekly_review(self) -> str | None:
        return await self._store.get_setting(LAST_WEEKLY_REVIEW_KEY) or None

    async def get_last_monthly_review(self) -> str | None:
        return await self._store.get_setting(LAST_MONTHLY_REVIEW_KEY) or None

    async def save_weekly_review(
        self,
        text: str,
        history: Sequence[ReviewHistoryEntry],
    ) -> None:
        """Store the latest weekly text and the updated ring buffer together."""

        await self._store.set_settings(
            {
                LAST_WEEKLY_REVIEW_KEY: push_safe_truncate(text, self._text_limit),
                WEEKLY_HISTORY_KEY: self._dump_history(history),
            }
        )

    async def save_monthly_review(self, text: str) -> None:
        await self._store.set_settings(
            {LAST_MONTHLY_REVIEW_KEY: push_safe_truncate(text, self._text_limit)}
        )


def append_review_to_history(
    history: Sequence[ReviewHistoryEntry],
    entry: ReviewHistoryEntry,
    *,
    capacity: int = HISTORY_CAPACITY,
) -> list[ReviewHistoryEntry]:
    """Append ``entry`` and keep only the ``capacity`` most recent items, oldest first."""

    updated = [*history, entry]
    if len(updated) > capacity:
        updated = updated[len(updated) - capacity :]
    return updated


def filter_history_by_month(
    history: Iterable[ReviewHistoryEntry],
    month_start: date,
    month_end: date,
) -> list[ReviewHistoryEntry]:
    """Reviews dated within ``month_start``..``month_end`` inclusive.

    Attribution is by the review's own date only: a review written on the 2nd
    mostly covers the previous month but is still kept here.
    """

    low, high = month_start.isoformat(), month_end.isoformat()
    return [item for item in history if low <= item.date <= high]


def latest_review_date(history: Iterable[ReviewHistoryEntry]) -> date | None:
    dates = []
    for item in history:
        try:
            dates.append(date.fromisoformat(item.date))
        except ValueError:
            logger.warning("skipping review with malformed date %r", item.date)
    return max(dates) if dates else None


__all__ = [
    "HISTORY_CAPACITY",
    "ReviewStateRepository",
    "append_review_to_history",
    "filter_history_by_month",
    "latest_review_date",
]
