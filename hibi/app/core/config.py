from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from hibi.db import normalize_database_url

DEFAULT_MODEL_CANDIDATES = "gpt-4.1-mini,gpt-4o-mini,gpt-4.1-nano"


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
    )

    bot_token: str | None = Field(default=None, alias="BOT_TOKEN")
    webapp_url: HttpUrl | None = Field(default=None, alias="WEBAPP_URL")
    owner_chat_id: int | None = Field(default=None, alias="OWNER_CHAT_ID")
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/hibi.db",
        alias="DATABASE_URL",
    )
    log_file: Path = Field(default=Path("logs/hibi.log"))
    request_timeout_seconds: float = Field(default=10.0)
    webhook_secret_token: str | None = Field(default=None, alias="WEBHOOK_SECRET")
    admin_api_token: str | None = Field(default=None, alias="ADMIN_TOKEN")

    # AI enrichment and review writing
    openai_api_key: str | None = Field(default=None, alias="OPENAI_API_KEY")
    ai_model_candidates: str = Field(
        default=DEFAULT_MODEL_CANDIDATES,
        alias="AI_MODEL_CANDIDATES",
    )
    ai_max_tokens_analysis: int = Field(default=300, alias="AI_MAX_TOKENS_ANALYSIS")
    ai_max_tokens_review: int = Field(default=1500, alias="AI_MAX_TOKENS_REVIEW")

    # Diary owner
    user_profile: str | None = Field(default=None, alias="USER_PROFILE")
    timezone: str = Field(default="Asia/Tokyo", alias="TIMEZONE")

    # Reviews, streaks and log store paging
    push_text_limit: int = Field(default=4096, alias="PUSH_TEXT_LIMIT")
    review_store_chars: int = Field(default=1000, alias="REVIEW_STORE_CHARS")
    review_history_capacity: int = Field(default=5, alias="REVIEW_HISTORY_CAPACITY")
    streak_window_days: int = Field(default=30, alias="STREAK_WINDOW_DAYS")
    streak_max_windows: int = Field(default=37, alias="STREAK_MAX_WINDOWS")
    logstore_page_size: int = Field(default=100, alias="LOGSTORE_PAGE_SIZE")
    logstore_max_pages: int = Field(default=50, alias="LOGSTORE_MAX_PAGES")
    on_this_day_years: int = Field(default=5, alias="ON_THIS_DAY_YEARS")

    version: str = Field(default_factory=lambda: Settings._load_version())

    @staticmethod
    def _load_version() -> str:
        version_env = os.getenv("VERSION")
        if version_env:
            return version_env
        version_file = Path("VERSION")
        if version_file.exists():
            return version_file.read_text(encoding="utf-8").strip()
        return "0.0.0"

    @property
    def model_candidates(self) -> list[str]:
        return [item.strip() for item in self.ai_model_candidates.split(",") if item.strip()]

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def missing_required(self) -> list[str]:
        """Names of mandatory keys the surrounding system cannot run without."""

        required = {
            "BOT_TOKEN": self.bot_token,
            "WEBAPP_URL": self.webapp_url,
            "OPENAI_API_KEY": self.openai_api_key,
            "OWNER_CHAT_ID": self.owner_chat_id,
        }
        return [name for name, value in required.items() if not value]

    @field_validator("log_file", mode="before")
    @classmethod
    def _validate_log_file(cls, value: Path | str) -> Path:
        path = Path(value)
        if not path.parent.exists():
            path.parent.mkdir(parents=True, exist_ok=True)
        return path

    @field_validator("timezone", mode="before")
    @classmethod
    def _validate_timezone(cls, value: str | None) -> str:
        if not value:
            return "Asia/Tokyo"
        try:
            ZoneInfo(str(value))
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown timezone: {value}") from exc
        return str(value)

    @field_validator("ai_model_candidates", mode="before")
    @classmethod
    def _validate_models(cls, value: str | None) -> str:
        if not value or not str(value).strip(" ,"):
            return DEFAULT_MODEL_CANDIDATES
        return str(value)

    @field_validator("push_text_limit", mode="before")
    @classmethod
    def _validate_push_limit(cls, value: int | str | None) -> int:
        if value is None:
            return 4096
        return max(int(value), 100)

    @field_validator("review_store_chars", mode="before")
    @classmethod
    def _validate_review_store_chars(cls, value: int | str | None) -> int:
        if value is None:
            return 1000
        return max(int(value), 100)

    @field_validator("review_history_capacity", "streak_window_days", mode="before")
    @classmethod
    def _validate_positive(cls, value: int | str) -> int:
        return max(int(value), 1)

    @field_validator("streak_max_windows", "logstore_max_pages", mode="before")
    @classmethod
    def _validate_caps(cls, value: int | str) -> int:
        return max(int(value), 1)

    @field_validator("logstore_page_size", mode="before")
    @classmethod
    def _validate_page_size(cls, value: int | str) -> int:
        return min(max(int(value), 1), 500)

    @field_validator("database_url", mode="before")
    @classmethod
    def _validate_database_url(cls, value: str | None) -> str:
        return normalize_database_url(value)


@lru_cache
def get_settings() -> Settings:
    """Cached settings accessor."""

    return Settings()
