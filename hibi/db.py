"""Engine construction and schema setup for the diary database.

Alembic is the only schema path: ``init_db`` upgrades to head and then
records the running version in the ``settings`` table.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from hibi.app.services.storage import StorageService

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///./data/hibi.db"
SCHEMA_VERSION_KEY = "schema_version"

_ALEMBIC_DIR = Path(__file__).resolve().parent / "alembic"
# sync scheme prefix -> async driver prefix
_ASYNC_DRIVERS = (
    ("postgres://", "postgresql+asyncpg://"),
    ("postgresql://", "postgresql+asyncpg://"),
    ("sqlite://", "sqlite+aiosqlite://"),
)


def normalize_database_url(raw_url: str | None) -> str:
    """Rewrite ``raw_url`` for an async driver and create the SQLite directory."""

    url = str(raw_url or DEFAULT_DATABASE_URL)
    for sync_prefix, async_prefix in _ASYNC_DRIVERS:
        if url.startswith(sync_prefix):
            url = async_prefix + url[len(sync_prefix) :]
            break

    if url.startswith("sqlite+aiosqlite:///"):
        Path(url.split("///", maxsplit=1)[1]).parent.mkdir(parents=True, exist_ok=True)
    return url


def create_engine(database_url: str | None) -> AsyncEngine:
    return create_async_engine(normalize_database_url(database_url), future=True)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


def _upgrade_to_head(database_url: str) -> None:
    config = Config()
    config.set_main_option("script_location", str(_ALEMBIC_DIR))
    config.set_main_option("sqlalchemy.url", database_url)
    command.upgrade(config, "head")


async def init_db(
    engine: AsyncEngine,
    session_factory: async_sessionmaker[AsyncSession],
    version: str,
    database_url: str | None = None,
) -> None:
    url = normalize_database_url(database_url or engine.url.render_as_string(hide_password=False))
    # env.py runs its own event loop, so migrate off this one
    await asyncio.to_thread(_upgrade_to_head, url)
    await StorageService(session_factory).set_settings({SCHEMA_VERSION_KEY: version})
    logger.info("database ready", extra={"extra_fields": {"schema_version": version}})


__all__ = [
    "DEFAULT_DATABASE_URL",
    "create_engine",
    "create_session_factory",
    "init_db",
    "normalize_database_url",
]
