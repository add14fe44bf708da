# ruff: noqa: RUF001
from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import date, datetime, tzinfo

from ..ai.fallback import FallbackExhausted
from ..insights.reviews import ReviewService, failure_message, month_bounds
from ..insights.streak import StreakEngine
from ..schemas.diary import TriggerResponse
from .logstore import LogStore, LogStoreError

logger = logging.getLogger(__name__)

Push = Callable[[str], Awaitable[bool]]


def reminder_text(streak_count: int) -> str:
    if streak_count:
        return (
            "📝 今日の日記はまだ記録されていません。\n"
            f"🔥 現在{streak_count}日連続記録中！今日も記録して連続記録を伸ばしましょう。"
        )
    return "📝 今日の日記はまだ記録されていません。\n今日の出来事をひとこと送ってみませんか？"


class TriggerService:
    """Time-based jobs, fired by an external scheduler through the admin API."""

    def __init__(
        self,
        *,
        log_store: LogStore,
        streak: StreakEngine,
        reviews: ReviewService,
        push: Push,
        tz: tzinfo,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._log_store = log_store
        self._streak = streak
        self._reviews = reviews
        self._push = push
        self._tz = tz
        self._clock = clock or (lambda: datetime.now(self._tz))

    def _today(self) -> date:
        return self._clock().astimezone(self._tz).date()

    async def run_reminder(self, *, force: bool = False) -> TriggerResponse:
        today = self._today()
        recorded = today in await self._log_store.recorded_days(today, today)
        if recorded and not force:
            return TriggerResponse(job="reminder", sent=False, detail="already recorded today")
        snapshot = await self._streak.query_streak(today)
        sent = await self._push(reminder_text(snapshot.count))
        return TriggerResponse(job="reminder", sent=sent)

    async def run_weekly(self) -> TriggerResponse:
        today = self._today()
        try:
            outcome = await self._reviews.weekly_review(today)
        except (LogStoreError, FallbackExhausted) as exc:
            logger.error("weekly review failed", extra={"kind": "weekly", "error": str(exc)})
            sent = await self._push(failure_message("weekly", exc))
            return TriggerResponse(job="weekly", sent=sent, detail="generation failed")
        sent = await self._push(outcome.text)
        detail = None if outcome.generated else "nothing to review"
        return TriggerResponse(job="weekly", sent=sent, detail=detail)

    async def run_monthly(self, *, force: bool = False) -> TriggerResponse:
        today = self._today()
        _, month_end = month_bounds(today)
        if today != month_end and not force:
            return TriggerResponse(job="monthly", sent=False, detail="not the last day of the month")
        try:
            outcome = await self._reviews.monthly_review(today)
        except (LogStoreError, FallbackExhausted) as exc:
            logger.error("monthly review failed", extra={"kind": "monthly", "error": str(exc)})
            sent = await self._push(failure_message("monthly", exc))
            return TriggerResponse(job="monthly", sent=sent, detail="generation failed")
        sent = await self._push(outcome.text)
        detail = None if outcome.generated else "nothing to review"
        return TriggerResponse(job="monthly", sent=sent, detail=detail)


__all__ = ["TriggerService", "reminder_text"]
