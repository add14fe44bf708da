# ruff: noqa: RUF001
from __future__ import annotations

import logging
import random
from collections.abc import Awaitable, Callable, Sequence
from datetime import date, datetime, timedelta, tzinfo

from sqlalchemy.exc import SQLAlchemyError

from ..ai.fallback import FallbackExhausted
from ..core.vocabulary import WEEKDAY_LABELS
from ..insights.aggregate import AggregateStats, aggregate
from ..insights.reviews import ReviewService, failure_message
from ..insights.streak import StreakEngine, StreakSnapshot
from ..schemas.diary import LogEntry
from ..utils.text import clip
from .logstore import LogStore, LogStoreError

logger = logging.getLogger(__name__)

COMMAND_PREFIX = "/"
STATS_PERIOD_DAYS = 30

HELP_TEXT = """📓 使えるコマンド
/today - 今日の記録
/yesterday - 昨日の記録
/stats - 直近30日の統計
/streak - 連続記録日数
/review - 週次レビューを今すぐ作成
/monthly - 今月の月次レビューを作成
/onthisday - 過去の同じ日の記録
/random - ランダムに過去の記録を振り返る
/help - このメニュー

テキストや写真を送ると日記として記録します。"""


def is_command(text: str | None) -> bool:
    return bool(text) and text.lstrip().startswith(COMMAND_PREFIX)


def parse_command(text: str) -> str:
    """``/Stats@hibi_bot extra`` -> ``stats``."""

    head = text.strip().split(maxsplit=1)[0]
    return head.removeprefix(COMMAND_PREFIX).split("@", 1)[0].lower()


def format_entry_line(entry: LogEntry) -> str:
    tags = " ".join(f"#{tag}" for tag in entry.tags)
    return f"{entry.created_at:%H:%M} {entry.mood} {entry.title} {tags}".rstrip()


def format_stats(stats: AggregateStats, period_days: int) -> str:
    if not stats.entry_count:
        return f"📊 直近{period_days}日の記録はありません。"
    moods = " ".join(f"{mood}{count}" for mood, count in stats.moods)
    tags = " ".join(f"#{tag}({count})" for tag, count in stats.top_tags(5)) or "なし"
    weekdays = " ".join(
        f"{WEEKDAY_LABELS[index]}{stats.weekdays.get(index, 0)}" for index in range(7)
    )
    return (
        f"📊 直近{period_days}日の統計\n"
        f"記録: {stats.entry_count}件 / {stats.unique_days}日"
        f"（記録率 {stats.record_rate(period_days)}%）\n"
        f"気分: {moods}\n"
        f"タグTOP5: {tags}\n"
        f"曜日: {weekdays}"
    )


def format_streak(snapshot: StreakSnapshot) -> str:
    lines = [f"🔥 連続記録: {snapshot.count}日"]
    if snapshot.count and snapshot.start_date:
        lines.append(f"開始日: {snapshot.start_date}")
    lines.append(f"累計記録日数: {snapshot.total_days}日")
    if not snapshot.has_today_record:
        lines.append("今日はまだ記録がありません。記録して連続記録を伸ばしましょう！")
    return "\n".join(lines)


class CommandService:
    """Answers slash commands from the owner."""

    def __init__(
        self,
        *,
        log_store: LogStore,
        streak: StreakEngine,
        reviews: ReviewService,
        tz: tzinfo,
        on_this_day_years: int = 5,
        clock: Callable[[], datetime] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._log_store = log_store
        self._streak = streak
        self._reviews = reviews
        self._tz = tz
        self._on_this_day_years = on_this_day_years
        self._clock = clock or (lambda: datetime.now(self._tz))
        self._rng = rng or random.Random()
        self._handlers: dict[str, Callable[[date], Awaitable[str]]] = {
            "today": self.today,
            "yesterday": self.yesterday,
            "stats": self.stats,
            "streak": self.streak,
            "review": self.weekly_review,
            "monthly": self.monthly_review,
            "onthisday": self.on_this_day,
            "random": self.random_recall,
            "help": self.help,
            "start": self.help,
        }

    def today_local(self) -> date:
        return self._clock().astimezone(self._tz).date()

    async def handle(self, text: str) -> str:
        name = parse_command(text)
        handler = self._handlers.get(name)
        if handler is None:
            return f"不明なコマンドです: {COMMAND_PREFIX}{name}\n\n{HELP_TEXT}"
        try:
            return await handler(self.today_local())
        except (LogStoreError, SQLAlchemyError) as exc:
            logger.warning("command failed", extra={"command": name, "error": str(exc)})
            return f"⚠️ コマンドの実行に失敗しました。時間をおいて再度お試しください。\n\n{HELP_TEXT}"

    async def help(self, today: date) -> str:
        return HELP_TEXT

    async def today(self, today: date) -> str:
        return self._entry_listing("今日", await self._log_store.query_by_exact_date(today))

    async def yesterday(self, today: date) -> str:
        day = today - timedelta(days=1)
        return self._entry_listing("昨日", await self._log_store.query_by_exact_date(day))

    async def stats(self, today: date) -> str:
        start = today - timedelta(days=STATS_PERIOD_DAYS - 1)
        entries = await self._log_store.query_by_date_range(start, today)
        return format_stats(aggregate(entries), STATS_PERIOD_DAYS)

    async def streak(self, today: date) -> str:
        return format_streak(await self._streak.query_streak(today))

    async def weekly_review(self, today: date) -> str:
        try:
            outcome = await self._reviews.weekly_review(today)
        except (LogStoreError, FallbackExhausted) as exc:
            return f"{failure_message('weekly', exc)}\n\n{HELP_TEXT}"
        return outcome.text

    async def monthly_review(self, today: date) -> str:
        try:
            outcome = await self._reviews.monthly_review(today)
        except (LogStoreError, FallbackExhausted) as exc:
            return f"{failure_message('monthly', exc)}\n\n{HELP_TEXT}"
        return outcome.text

    async def on_this_day(self, today: date) -> str:
        entries = await self._log_store.query_on_this_day(today, years=self._on_this_day_years)
        if not entries:
            return f"📆 過去{self._on_this_day_years}年の{today.month}月{today.day}日の記録はありません。"
        blocks = [
            f"【{entry.created_at.year}年】{entry.mood} {entry.title}\n{clip(entry.body or '', 200)}"
            for entry in entries
        ]
        return f"📆 {today.month}月{today.day}日の思い出\n\n" + "\n\n".join(blocks)

    async def random_recall(self, today: date) -> str:
        # Sampling is over entries, so busy days are not under-weighted.
        stubs = await self._log_store.query_all_ids_and_dates()
        if not stubs:
            return "まだ記録がありません。"
        stub = self._rng.choice(stubs)
        entry = await self._log_store.get_entry(stub.id)
        if entry is None:
            return "記録が見つかりませんでした。もう一度お試しください。"
        elapsed = (today - entry.day).days
        return (
            f"🎲 {entry.day_key}（{elapsed}日前）の記録\n"
            f"{format_entry_line(entry)}\n\n{entry.body or ''}"
        ).rstrip()

    @staticmethod
    def _entry_listing(label: str, entries: Sequence[LogEntry]) -> str:
        if not entries:
            return f"{label}の記録はまだありません。"
        lines = [format_entry_line(entry) for entry in entries]
        return f"📝 {label}の記録（{len(entries)}件）\n" + "\n".join(lines)


__all__ = [
    "COMMAND_PREFIX",
    "CommandService",
    "HELP_TEXT",
    "format_stats",
    "format_streak",
    "is_command",
    "parse_command",
]
