from __future__ import annotations

from collections.abc import AsyncIterator, Generator, Iterable, Mapping
from datetime import date, datetime
from pathlib import Path
from uuid import uuid4
from zoneinfo import ZoneInfo

import pytest
from fastapi.testclient import TestClient

from hibi.app.core import config
from hibi.app.schemas.diary import LogEntry
from hibi.db import create_engine, create_session_factory, init_db

TOKYO = ZoneInfo("Asia/Tokyo")


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture()
def reset_settings_cache() -> Generator[None, None, None]:
    config.get_settings.cache_clear()
    yield
    config.get_settings.cache_clear()


@pytest.fixture()
def test_client(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
    reset_settings_cache: None,
) -> Generator[TestClient, None, None]:
    for name in ("BOT_TOKEN", "WEBAPP_URL", "WEBHOOK_SECRET", "OPENAI_API_KEY", "OWNER_CHAT_ID"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("VERSION", "0.1.0-test")
    monkeypatch.setenv("ADMIN_TOKEN", "test-admin")
    monkeypatch.setenv("LOG_FILE", str(tmp_path / "logs" / "hibi.log"))
    db_path = tmp_path / f"api_{uuid4().hex}.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{db_path}")

    from hibi.app.main import app

    with TestClient(app) as client:
        client.headers.update({"Authorization": "Bearer test-admin"})
        yield client


@pytest.fixture()
async def session_factory(tmp_path: Path, anyio_backend: str) -> AsyncIterator:
    db_path = tmp_path / f"unit_{uuid4().hex}.db"
    database_url = f"sqlite+aiosqlite:///{db_path}"
    engine = create_engine(database_url)
    factory = create_session_factory(engine)
    await init_db(engine, factory, "test", database_url)
    try:
        yield factory
    finally:
        await engine.dispose()


class MemoryKeyValueStore:
    """In-memory stand-in for StorageService's key-value calls."""

    def __init__(self, initial: Mapping[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})
        self.writes = 0

    async def get_setting(self, key: str) -> str | None:
        return self.data.get(key)

    async def get_settings(self, keys: Iterable[str]) -> dict[str, str]:
        return {key: self.data[key] for key in keys if key in self.data}

    async def set_settings(self, values: Mapping[str, str]) -> None:
        self.writes += 1
        self.data.update(values)


class RecordedDays:
    """Serves ``recorded_days`` from a fixed set of dates, optionally failing."""

    def __init__(self, days: Iterable[date], *, fail_after: int | None = None) -> None:
        self.days = set(days)
        self.calls: list[tuple[date, date]] = []
        self.fail_after = fail_after

    async def recorded_days(self, start: date, end: date) -> set[date]:
        from hibi.app.services.logstore import LogStoreError

        if self.fail_after is not None and len(self.calls) >= self.fail_after:
            raise LogStoreError("window fetch failed")
        self.calls.append((start, end))
        return {day for day in self.days if start <= day <= end}

    async def count_recorded_days(self) -> int:
        return len(self.days)


@pytest.fixture()
def kv_store() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


def make_entry(
    day: date,
    *,
    mood: str = "😊",
    tags: tuple[str, ...] = (),
    title: str = "日記",
    body: str | None = None,
    hour: int = 12,
    entry_id: str | None = None,
) -> LogEntry:
    return LogEntry(
        id=entry_id or uuid4().hex,
        created_at=datetime(day.year, day.month, day.day, hour, tzinfo=TOKYO),
        title=title,
        mood=mood,
        tags=tags,
        body=body,
    )
