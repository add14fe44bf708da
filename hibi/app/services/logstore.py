from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta, tzinfo

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..db.models import LogEntryRecord
from ..metrics import LOGSTORE_PAGES
from ..schemas.diary import EntryStub, LogEntry
from ..utils.text import clip

logger = logging.getLogger(__name__)

TITLE_MAX_CHARS = 100

_METADATA_COLUMNS = (
    LogEntryRecord.id,
    LogEntryRecord.created_at,
    LogEntryRecord.title,
    LogEntryRecord.mood,
    LogEntryRecord.tags,
    LogEntryRecord.image_ref,
)


class LogStoreError(RuntimeError):
    """The entry store could not be read or written."""


@dataclass
class LogPage:
    entries: list[LogEntry]
    next_cursor: str | None


class LogStore:
    """Creation-time queries over diary entries with cursor pagination.

    Entries leave this class with ``created_at`` converted to the owner's
    timezone, so every ``entry.day`` is a local calendar day.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        tz: tzinfo,
        page_size: int = 100,
        max_pages: int = 50,
    ) -> None:
        self._session_factory = session_factory
        self._tz = tz
        self._page_size = max(1, page_size)
        self._max_pages = max(1, max_pages)

    @property
    def tz(self) -> tzinfo:
        return self._tz

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except SQLAlchemyError as exc:
            logger.error("log store %s failed", operation, extra={"error": str(exc)})
            raise LogStoreError(f"{operation} failed: {exc}") from exc

    # -- conversions -----------------------------------------------------
    def _local(self, stored: datetime) -> datetime:
        return stored.replace(tzinfo=UTC).astimezone(self._tz)

    def _utc_naive(self, moment: datetime) -> datetime:
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=self._tz)
        return moment.astimezone(UTC).replace(tzinfo=None)

    def _day_bounds(self, start: date, end: date) -> tuple[datetime, datetime]:
        lower = self._utc_naive(datetime.combine(start, time.min))
        upper = self._utc_naive(datetime.combine(end + timedelta(days=1), time.min))
        return lower, upper

    def _to_entry(self, row, *, with_body: bool) -> LogEntry:
        try:
            tags = tuple(json.loads(row.tags or "[]"))
        except json.JSONDecodeError:
            logger.warning("entry %s has unreadable tags", row.id)
            tags = ()
        return LogEntry(
            id=row.id,
            created_at=self._local(row.created_at),
            title=row.title,
            mood=row.mood,
            tags=tags,
            body=row.body if with_body else None,
            image_ref=row.image_ref,
        )

    @staticmethod
    def _encode_cursor(entry: LogEntry) -> str:
        stored = entry.created_at.astimezone(UTC).replace(tzinfo=None)
        return f"{stored.isoformat()}|{entry.id}"

    @staticmethod
    def _decode_cursor(cursor: str) -> tuple[datetime, str]:
        stamp, _, entry_id = cursor.partition("|")
        return datetime.fromisoformat(stamp), entry_id

    # -- writes ----------------------------------------------------------
    async def add_entry(
        self,
        *,
        title: str,
        mood: str,
        tags: Sequence[str],
        body: str,
        image_ref: str | None = None,
        source: str = "bot",
        created_at: datetime | None = None,
    ) -> LogEntry:
        stored_at = self._utc_naive(created_at or datetime.now(UTC))
        async with self._session("add_entry") as session:
            record = LogEntryRecord(
                created_at=stored_at,
                title=clip(title, TITLE_MAX_CHARS),
                mood=mood,
                tags=json.dumps(list(tags), ensure_ascii=False),
                body=body,
                image_ref=image_ref,
                source=source,
            )
            session.add(record)
            await session.commit()
            await session.refresh(record)
            return self._to_entry(record, with_body=True)

    # -- reads -----------------------------------------------------------
    async def query_page(
        self,
        start: date,
        end: date,
        *,
        cursor: str | None = None,
        with_body: bool = False,
    ) -> LogPage:
        """One ascending page of entries created between ``start`` and ``end`` inclusive."""

        lower, upper = self._day_bounds(start, end)
        columns = (*_METADATA_COLUMNS, LogEntryRecord.body) if with_body else _METADATA_COLUMNS
        query = (
            select(*columns)
            .where(LogEntryRecord.created_at >= lower)
            .where(LogEntryRecord.created_at < upper)
        )
        if cursor:
            after_at, after_id = self._decode_cursor(cursor)
            query = query.where(
                or_(
                    LogEntryRecord.created_at > after_at,
                    and_(LogEntryRecord.created_at == after_at, LogEntryRecord.id > after_id),
                )
            )
        query = query.order_by(
            LogEntryRecord.created_at.asc(), LogEntryRecord.id.asc()
        ).limit(self._page_size + 1)

        async with self._session("query_page") as session:
            rows = (await session.execute(query)).all()
        LOGSTORE_PAGES.inc()

        has_more = len(rows) > self._page_size
        entries = [self._to_entry(row, with_body=with_body) for row in rows[: self._page_size]]
        next_cursor = self._encode_cursor(entries[-1]) if has_more and entries else None
        return LogPage(entries=entries, next_cursor=next_cursor)

    async def query_by_date_range(
        self,
        start: date,
        end: date,
        *,
        with_body: bool = False,
    ) -> list[LogEntry]:
        collected: list[LogEntry] = []
        cursor: str | None = None
        for _ in range(self._max_pages):
            page = await self.query_page(start, end, cursor=cursor, with_body=with_body)
            collected.extend(page.entries)
            cursor = page.next_cursor
            if cursor is None:
                break
        else:
            if cursor is not None:
                logger.warning(
                    "range query stopped at page cap",
                    extra={"extra_fields": {"start": str(start), "end": str(end)}},
                )
        return sorted(collected, key=lambda entry: (entry.created_at, entry.id))

    async def query_by_exact_date(self, day: date, *, with_body: bool = False) -> list[LogEntry]:
        return await self.query_by_date_range(day, day, with_body=with_body)

    async def fetch_body(self, entry_id: str) -> str:
        async with self._session("fetch_body") as session:
            body = await session.scalar(
                select(LogEntryRecord.body).where(LogEntryRecord.id == entry_id)
            )
        if body is None:
            raise LogStoreError(f"entry {entry_id} not found")
        return body

    async def get_entry(self, entry_id: str) -> LogEntry | None:
        async with self._session("get_entry") as session:
            row = (
                await session.execute(
                    select(*_METADATA_COLUMNS, LogEntryRecord.body).where(
                        LogEntryRecord.id == entry_id
                    )
                )
            ).first()
        return self._to_entry(row, with_body=True) if row else None

    async def query_all_ids_and_dates(self) -> list[EntryStub]:
        async with self._session("query_all_ids_and_dates") as session:
            rows = (
                await session.execute(
                    select(LogEntryRecord.id, LogEntryRecord.created_at).order_by(
                        LogEntryRecord.created_at.asc()
                    )
                )
            ).all()
        return [EntryStub(id=row.id, day=self._local(row.created_at).date()) for row in rows]

    async def recorded_days(self, start: date, end: date) -> set[date]:
        """Local days between ``start`` and ``end`` inclusive holding at least one entry."""

        lower, upper = self._day_bounds(start, end)
        async with self._session("recorded_days") as session:
            stamps = (
                await session.scalars(
                    select(LogEntryRecord.created_at)
                    .where(LogEntryRecord.created_at >= lower)
                    .where(LogEntryRecord.created_at < upper)
                )
            ).all()
        return {self._local(stamp).date() for stamp in stamps}

    async def count_recorded_days(self) -> int:
        async with self._session("count_recorded_days") as session:
            stamps = (await session.scalars(select(LogEntryRecord.created_at))).all()
        return len({self._local(stamp).date() for stamp in stamps})

    async def query_on_this_day(self, today: date, *, years: int) -> list[LogEntry]:
        """Entries written on today's month/day in each of the previous ``years`` years."""

        found: list[LogEntry] = []
        for offset in range(1, years + 1):
            try:
                past = today.replace(year=today.year - offset)
            except ValueError:  # 29 February
                continue
            found.extend(await self.query_by_exact_date(past, with_body=True))
        return found


__all__ = ["LogPage", "LogStore", "LogStoreError"]
