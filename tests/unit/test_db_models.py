from __future__ import annotations

import pytest
from sqlalchemy import select

from hibi.app.db import LogEntryRecord, SettingEntry


@pytest.mark.anyio
async def test_log_entry_defaults(session_factory):
    async with session_factory() as session:
        record = LogEntryRecord(mood="😊", body="本文")
        session.add(record)
        await session.commit()
        await session.refresh(record)

        assert len(record.id) == 32
        assert record.title == "無題"
        assert record.tags == "[]"
        assert record.source == "bot"
        assert record.created_at is not None


@pytest.mark.anyio
async def test_setting_upsert(session_factory):
    async with session_factory() as session:
        session.add(SettingEntry(key="streak_count", value="3"))
        await session.commit()

    async with session_factory() as session:
        setting = (
            await session.execute(select(SettingEntry).where(SettingEntry.key == "streak_count"))
        ).scalar_one()
        setting.value = "4"
        await session.commit()

    async with session_factory() as session:
        value = (
            await session.execute(select(SettingEntry.value).where(SettingEntry.key == "streak_count"))
        ).scalar_one()
        assert value == "4"
