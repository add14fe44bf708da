from __future__ import annotations

from datetime import datetime
from uuid import uuid4

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _new_entry_id() -> str:
    return uuid4().hex


class Base(DeclarativeBase):
    """Base declarative model."""


class LogEntryRecord(Base):
    """One diary entry with its AI-derived metadata."""

    __tablename__ = "log_entries"
    __table_args__ = (
        Index("ix_log_entries_created_at_id", "created_at", "id"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_entry_id)
    # naive UTC; local day keys are derived by the log store
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    title: Mapped[str] = mapped_column(String(100), nullable=False, default="無題")
    mood: Mapped[str] = mapped_column(String(16), nullable=False)
    tags: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    body: Mapped[str] = mapped_column(Text, nullable=False, default="")
    image_ref: Mapped[str | None] = mapped_column(String(255), nullable=True)
    source: Mapped[str] = mapped_column(String(20), default="bot")


class SettingEntry(Base):
    """Key-value state stored in DB."""

    __tablename__ = "settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )


__all__ = [
    "Base",
    "LogEntryRecord",
    "SettingEntry",
]
