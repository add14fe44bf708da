"""Database utilities for Hibi."""

from .models import (
    Base,
    LogEntryRecord,
    SettingEntry,
)

__all__ = [
    "Base",
    "LogEntryRecord",
    "SettingEntry",
]
