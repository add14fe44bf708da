# ruff: noqa: RUF001
from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass
from datetime import date, timedelta

from ..ai.fallback import FallbackExhausted
from ..ai.router import AIRouter
from ..metrics import REVIEWS_GENERATED
from ..services.logstore import LogStore, LogStoreError
from .aggregate import aggregate
from .history import (
    ReviewStateRepository,
    append_review_to_history,
    filter_history_by_month,
)
from .prompts import (
    compose_monthly_prompt,
    compose_weekly_prompt,
    select_supplemental_entries,
)

logger = logging.getLogger(__name__)

WEEKLY_HEADER = "📅 【週次レビュー】\n\n"
MONTHLY_HEADER = "🗓 【月次レビュー】\n\n"
NO_WEEKLY_ENTRIES = "今週は日記の記録がありませんでした。来週は記録してみましょう！📓"
NO_MONTHLY_DATA = "今月はまだ振り返る記録がありません。日記を書いてみましょう！📓"

_FAILURE_PREFIX = {
    "weekly": "週次レビューの生成に失敗しました。\n",
    "monthly": "月次レビューの生成に失敗しました。\n",
}


@dataclass
class ReviewOutcome:
    kind: str
    text: str
    generated: bool
    model: str | None = None


def failure_message(kind: str, exc: Exception) -> str:
    """User-facing text for a review attempt that produced nothing."""

    detail = exc.describe() if isinstance(exc, FallbackExhausted) else str(exc)
    return _FAILURE_PREFIX.get(kind, "レビューの生成に失敗しました。\n") + detail


def month_bounds(day: date) -> tuple[date, date]:
    last = calendar.monthrange(day.year, day.month)[1]
    return day.replace(day=1), day.replace(day=last)


class ReviewService:
    """Collects entries and prior reviews, asks the model, stores the result.

    Log store and model failures propagate to the caller so that no partial
    review is ever delivered.
    """

    def __init__(
        self,
        *,
        log_store: LogStore,
        repository: ReviewStateRepository,
        router: AIRouter,
        profile: str | None = None,
    ) -> None:
        self._log_store = log_store
        self._repository = repository
        self._router = router
        self._profile = profile

    async def weekly_review(self, today: date) -> ReviewOutcome:
        start = today - timedelta(days=6)
        try:
            entries = await self._log_store.query_by_date_range(start, today, with_body=True)
            if not entries:
                REVIEWS_GENERATED.labels(kind="weekly", result="empty").inc()
                return ReviewOutcome(kind="weekly", text=NO_WEEKLY_ENTRIES, generated=False)

            history = await self._repository.load_history()
            prior = await self._repository.get_last_weekly_review()
            prompt = compose_weekly_prompt(self._profile, prior, aggregate(entries), entries)
            response = await self._router.write("weekly_review", prompt)
        except (LogStoreError, FallbackExhausted):
            REVIEWS_GENERATED.labels(kind="weekly", result="failed").inc()
            raise

        history = append_review_to_history(
            history,
            self._repository.history_entry(today, response.text),
            capacity=self._repository.capacity,
        )
        await self._repository.save_weekly_review(response.text, history)
        REVIEWS_GENERATED.labels(kind="weekly", result="ok").inc()
        logger.info(
            "weekly review generated",
            extra={"kind": "weekly", "model": response.model, "extra_fields": {"entries": len(entries)}},
        )
        return ReviewOutcome(
            kind="weekly",
            text=WEEKLY_HEADER + response.text,
            generated=True,
            model=response.model,
        )

    async def monthly_review(self, today: date) -> ReviewOutcome:
        month_start, month_end = month_bounds(today)
        try:
            entries = await self._log_store.query_by_date_range(month_start, month_end)
            history = filter_history_by_month(
                await self._repository.load_history(), month_start, month_end
            )
            if not entries and not history:
                REVIEWS_GENERATED.labels(kind="monthly", result="empty").inc()
                return ReviewOutcome(kind="monthly", text=NO_MONTHLY_DATA, generated=False)

            supplemental = [
                entry.model_copy(update={"body": await self._log_store.fetch_body(entry.id)})
                for entry in select_supplemental_entries(entries, history, month_end)
            ]
            prior = await self._repository.get_last_monthly_review()
            elapsed = (min(today, month_end) - month_start).days + 1
            prompt = compose_monthly_prompt(
                self._profile,
                history,
                prior,
                aggregate(entries),
                entries,
                f"{today.year}年{today.month}月",
                supplemental,
                period_days=elapsed,
            )
            response = await self._router.write("monthly_review", prompt)
        except (LogStoreError, FallbackExhausted):
            REVIEWS_GENERATED.labels(kind="monthly", result="failed").inc()
            raise

        await self._repository.save_monthly_review(response.text)
        REVIEWS_GENERATED.labels(kind="monthly", result="ok").inc()
        logger.info(
            "monthly review generated",
            extra={
                "kind": "monthly",
                "model": response.model,
                "extra_fields": {"entries": len(entries), "supplemental": len(supplemental)},
            },
        )
        return ReviewOutcome(
            kind="monthly",
            text=MONTHLY_HEADER + response.text,
            generated=True,
            model=response.model,
        )


__all__ = [
    "ReviewOutcome",
    "ReviewService",
    "failure_message",
    "month_bounds",
]
