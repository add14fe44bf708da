from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Protocol

from ..metrics import STREAK_REBUILDS
from ..schemas.state import StreakState
from ..services.logstore import LogStoreError
from .history import ReviewStateRepository

logger = logging.getLogger(__name__)

_ONE_DAY = timedelta(days=1)


class RecordedDaysSource(Protocol):  # pragma: no cover - structural typing helper
    async def recorded_days(self, start: date, end: date) -> set[date]: ...

    async def count_recorded_days(self) -> int: ...


@dataclass
class StreakSnapshot:
    """What a streak query reports for display."""

    count: int
    start_date: str | None
    has_today_record: bool
    total_days: int


class StreakEngine:
    """Maintain the consecutive-day counter.

    Writes update the cached state in constant time. When no cache exists the
    state is rebuilt by scanning backwards from today in fixed windows until
    the run of recorded days is broken or the lookback cap is reached.
    Staleness is decided at read time: a cached run whose last day is older
    than yesterday reads as zero without being rewritten.
    """

    def __init__(
        self,
        repository: ReviewStateRepository,
        log_store: RecordedDaysSource,
        *,
        window_days: int = 30,
        max_windows: int = 37,
    ) -> None:
        self._repository = repository
        self._log_store = log_store
        self._window_days = max(1, window_days)
        self._max_windows = max(1, max_windows)

    async def record_entry(self, today: date) -> StreakState:
        """Count ``today`` towards the streak; repeated calls on one day are no-ops."""

        state = await self._repository.load_streak()
        if state is None:
            state, _, _ = await self._rebuild_and_store(today)

        today_key = today.isoformat()
        if state.last_date and today_key <= state.last_date:
            # same day, or a late entry for a day already behind the run
            return state

        if state.last_date == (today - _ONE_DAY).isoformat():
            updated = StreakState(
                count=state.count + 1,
                last_date=today_key,
                start_date=state.start_date or today_key,
                total_days=state.total_days + 1,
            )
        else:
            updated = StreakState(
                count=1,
                last_date=today_key,
                start_date=today_key,
                total_days=state.total_days + 1,
            )
        await self._repository.save_streak(updated)
        logger.info(
            "streak updated",
            extra={"extra_fields": {"count": updated.count, "start_date": updated.start_date}},
        )
        return updated

    async def query_streak(self, today: date) -> StreakSnapshot:
        state = await self._repository.load_streak()
        if state is None:
            return await self.rebuild(today)

        today_key = today.isoformat()
        active = state.last_date in (today_key, (today - _ONE_DAY).isoformat())
        return StreakSnapshot(
            count=state.count if active else 0,
            start_date=state.start_date if active else None,
            has_today_record=state.last_date == today_key,
            total_days=state.total_days,
        )

    async def rebuild(self, today: date) -> StreakSnapshot:
        """Reconstruct the streak from the log store and cache the result."""

        state, has_today, _ = await self._rebuild_and_store(today)
        return StreakSnapshot(
            count=state.count,
            start_date=state.start_date,
            has_today_record=has_today,
            total_days=state.total_days,
        )

    async def _rebuild_and_store(self, today: date) -> tuple[StreakState, bool, bool]:
        state, has_today, scanned = await self._scan(today)
        if scanned:
            await self._repository.save_streak(state)
        return state, has_today, scanned

    async def _scan(self, today: date) -> tuple[StreakState, bool, bool]:
        recorded: set[date] = set()
        has_today = False
        cursor = today
        count = 0
        windows = 0
        complete = True
        window_end = today

        for index in range(self._max_windows):
            window_start = window_end - timedelta(days=self._window_days - 1)
            try:
                recorded |= await self._log_store.recorded_days(window_start, window_end)
            except LogStoreError as exc:
                complete = False
                logger.warning(
                    "streak scan stopped early",
                    extra={"error": str(exc), "extra_fields": {"windows": windows}},
                )
                break
            windows += 1

            if index == 0:
                has_today = today in recorded
                cursor = today if has_today else today - _ONE_DAY

            while cursor in recorded:
                count += 1
                cursor -= _ONE_DAY
            if cursor >= window_start:
                break
            window_end = window_start - _ONE_DAY
        else:
            logger.info("streak scan reached lookback cap", extra={"extra_fields": {"windows": windows}})

        if count:
            last_date = (today if has_today else today - _ONE_DAY).isoformat()
            start_date: str | None = (cursor + _ONE_DAY).isoformat()
        else:
            last_date = max(recorded).isoformat() if recorded else None
            start_date = None

        total_days = len(recorded)
        if windows:
            try:
                total_days = max(await self._log_store.count_recorded_days(), total_days)
            except LogStoreError as exc:
                complete = False
                logger.warning("total day count unavailable", extra={"error": str(exc)})

        STREAK_REBUILDS.labels(result="complete" if complete else "partial").inc()
        logger.info(
            "streak rebuilt",
            extra={
                "extra_fields": {
                    "count": count,
                    "windows": windows,
                    "complete": complete,
                }
            },
        )
        state = StreakState(
            count=count,
            last_date=last_date,
            start_date=start_date,
            total_days=total_days,
        )
        return state, has_today, windows > 0


__all__ = ["StreakEngine", "StreakSnapshot"]
