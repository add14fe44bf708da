# ruff: noqa: RUF001
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from ..ai.fallback import FallbackExhausted
from ..ai.router import AIRouter
from ..core.vocabulary import CATCH_ALL_TAG, NEUTRAL_MOOD
from ..insights.streak import StreakEngine
from ..schemas.diary import LogEntry
from ..schemas.state import StreakState
from .logstore import LogStore, LogStoreError

logger = logging.getLogger(__name__)

TEXT_FALLBACK_TITLE = "📝 日記"
IMAGE_FALLBACK_TITLE = "📷 写真日記"
SYSTEM_ERROR_TITLE = "❌ システムエラー"
SYSTEM_ERROR_MOOD = "😰"


@dataclass
class RecordResult:
    entry: LogEntry
    analysed: bool
    streak: StreakState | None = None

    def acknowledgement(self) -> str:
        tags = " ".join(f"#{tag}" for tag in self.entry.tags)
        lines = [f"✅ 記録しました: {self.entry.title} {self.entry.mood} {tags}".rstrip()]
        if not self.analysed:
            lines.append("⚠️ AI解析に失敗したため、原文のまま保存しました。")
        if self.streak is not None and self.streak.count:
            lines.append(f"🔥 {self.streak.count}日連続記録中")
        return "\n".join(lines)


def failure_body(errors: str, original: str) -> str:
    return f"⚠️ AI解析失敗\n\n【エラー】\n{errors}\n\n【原文】\n{original}"


def image_marker(name: str, caption: str | None = None) -> str:
    marker = f"📷 写真をアップロードしました\n({name})"
    return f"{marker}\n{caption}" if caption else marker


class EntryRecorder:
    """Turns an incoming message into a stored entry and bumps the streak.

    Enrichment failure never blocks capture: the raw text is kept under a
    neutral fallback title.
    """

    def __init__(self, *, log_store: LogStore, streak: StreakEngine, router: AIRouter) -> None:
        self._log_store = log_store
        self._streak = streak
        self._router = router

    async def record_text(self, text: str, *, received_at: datetime | None = None) -> RecordResult:
        return await self._record(
            text,
            fallback_title=TEXT_FALLBACK_TITLE,
            received_at=received_at,
        )

    async def record_image(
        self,
        image: bytes,
        *,
        description: str,
        image_ref: str | None = None,
        image_mime: str = "image/jpeg",
        received_at: datetime | None = None,
    ) -> RecordResult:
        return await self._record(
            description,
            fallback_title=IMAGE_FALLBACK_TITLE,
            image=image,
            image_mime=image_mime,
            image_ref=image_ref,
            received_at=received_at,
        )

    async def record_system_error(self, error: str) -> None:
        """Keep a trace of a processing failure; a failure here is only logged."""

        try:
            await self._log_store.add_entry(
                title=SYSTEM_ERROR_TITLE,
                mood=SYSTEM_ERROR_MOOD,
                tags=(CATCH_ALL_TAG,),
                body=error,
                source="system",
            )
        except Exception:
            logger.exception("system error entry could not be stored", extra={"error": error})

    async def _record(
        self,
        text: str,
        *,
        fallback_title: str,
        image: bytes | None = None,
        image_mime: str = "image/jpeg",
        image_ref: str | None = None,
        received_at: datetime | None = None,
    ) -> RecordResult:
        try:
            result = await self._router.analyze(text, image=image, image_mime=image_mime)
        except FallbackExhausted as exc:
            logger.warning("analysis failed, storing raw entry", extra={"error": exc.describe()})
            entry = await self._log_store.add_entry(
                title=fallback_title,
                mood=NEUTRAL_MOOD,
                tags=(CATCH_ALL_TAG,),
                body=failure_body(exc.describe(), text),
                image_ref=image_ref,
                created_at=received_at,
            )
            analysed = False
        else:
            entry = await self._log_store.add_entry(
                title=result.analysis.title,
                mood=result.analysis.mood,
                tags=result.analysis.tags,
                body=text,
                image_ref=image_ref,
                created_at=received_at,
            )
            analysed = True

        streak: StreakState | None = None
        try:
            streak = await self._streak.record_entry(entry.day)
        except (LogStoreError, SQLAlchemyError) as exc:
            logger.warning("streak update skipped", extra={"error": str(exc)})
        return RecordResult(entry=entry, analysed=analysed, streak=streak)


__all__ = [
    "EntryRecorder",
    "RecordResult",
    "failure_body",
    "image_marker",
]
