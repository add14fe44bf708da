from __future__ import annotations

from collections.abc import Iterable, Mapping

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..db.models import SettingEntry


class StorageService:
    """Small string key-value state kept in the ``settings`` table."""

    def __init__(self, session_factory: async_sessionmaker) -> None:
        self._session_factory = session_factory

    async def healthcheck(self) -> None:
        async with self._session_factory() as session:
            await session.execute(text("SELECT 1"))

    async def get_setting(self, key: str) -> str | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(SettingEntry).where(SettingEntry.key == key)
            )
            entry = result.scalar_one_or_none()
            return entry.value if entry else None

    async def get_settings(self, keys: Iterable[str]) -> dict[str, str]:
        wanted = list(keys)
        async with self._session_factory() as session:
            result = await session.execute(
                select(SettingEntry).where(SettingEntry.key.in_(wanted))
            )
            return {entry.key: entry.value for entry in result.scalars().all()}

    async def set_settings(self, values: Mapping[str, str]) -> None:
        """Upsert several keys in a single transaction."""

        async with self._session_factory() as session:
            result = await session.execute(
                select(SettingEntry).where(SettingEntry.key.in_(list(values)))
            )
            existing = {entry.key: entry for entry in result.scalars().all()}
            for key, value in values.items():
                entry = existing.get(key)
                if entry is None:
                    session.add(SettingEntry(key=key, value=value))
                else:
                    entry.value = value
            await session.commit()


__all__ = ["StorageService"]
