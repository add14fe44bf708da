from __future__ import annotations

from datetime import date, datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from ...core.config import Settings
from ...core.security import enforce_webhook_secret, require_admin_token
from ...core.vocabulary import WEEKDAY_LABELS
from ...insights.aggregate import aggregate
from ...insights.streak import StreakEngine
from ...schemas.diary import CountItem, StatsResponse, StreakResponse, TriggerResponse
from ...schemas.webhook import TelegramWebhookUpdate, WebhookResponse
from ...services.logstore import LogStore, LogStoreError
from ...services.telegram import TelegramService
from ...services.triggers import TriggerService

router = APIRouter(prefix="/api/v1", tags=["core"])


def get_settings_from_app(request: Request) -> Settings:
    return request.app.state.settings


def get_telegram_service(request: Request) -> TelegramService:
    return request.app.state.telegram_service


def get_log_store(request: Request) -> LogStore:
    return request.app.state.log_store


def get_streak_engine(request: Request) -> StreakEngine:
    return request.app.state.streak_engine


def get_trigger_service(request: Request) -> TriggerService:
    return request.app.state.trigger_service


def _local_today(settings: Settings) -> date:
    return datetime.now(settings.tz).date()


@router.post("/webhook", response_model=WebhookResponse)
async def handle_webhook(
    update: TelegramWebhookUpdate,
    telegram_service: TelegramService = Depends(get_telegram_service),
    _: None = Depends(enforce_webhook_secret),
) -> WebhookResponse:
    if not telegram_service.available:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="telegram unavailable",
        )
    return await telegram_service.process_update(update)


@router.get("/streak", response_model=StreakResponse)
async def read_streak(
    settings: Settings = Depends(get_settings_from_app),
    engine: StreakEngine = Depends(get_streak_engine),
    _: None = Depends(require_admin_token),
) -> StreakResponse:
    snapshot = await engine.query_streak(_local_today(settings))
    return StreakResponse(
        count=snapshot.count,
        start_date=snapshot.start_date,
        has_today_record=snapshot.has_today_record,
        total_days=snapshot.total_days,
    )


@router.get("/stats", response_model=StatsResponse)
async def read_stats(
    days: int = Query(30, ge=1, le=366),
    settings: Settings = Depends(get_settings_from_app),
    log_store: LogStore = Depends(get_log_store),
    _: None = Depends(require_admin_token),
) -> StatsResponse:
    today = _local_today(settings)
    try:
        entries = await log_store.query_by_date_range(today - timedelta(days=days - 1), today)
    except LogStoreError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="log store unavailable",
        ) from exc
    stats = aggregate(entries)
    return StatsResponse(
        days=days,
        entries=stats.entry_count,
        unique_days=stats.unique_days,
        record_rate=stats.record_rate(days),
        moods=[CountItem(label=mood, count=count) for mood, count in stats.moods],
        tags=[CountItem(label=tag, count=count) for tag, count in stats.tags],
        weekdays=[
            CountItem(label=WEEKDAY_LABELS[index], count=stats.weekdays.get(index, 0))
            for index in range(7)
        ],
    )


@router.post("/admin/run/reminder", response_model=TriggerResponse)
async def admin_run_reminder(
    force: bool = Query(False),
    triggers: TriggerService = Depends(get_trigger_service),
    _: None = Depends(require_admin_token),
) -> TriggerResponse:
    return await triggers.run_reminder(force=force)


@router.post("/admin/run/weekly", response_model=TriggerResponse)
async def admin_run_weekly(
    triggers: TriggerService = Depends(get_trigger_service),
    _: None = Depends(require_admin_token),
) -> TriggerResponse:
    return await triggers.run_weekly()


@router.post("/admin/run/monthly", response_model=TriggerResponse)
async def admin_run_monthly(
    force: bool = Query(False),
    triggers: TriggerService = Depends(get_trigger_service),
    _: None = Depends(require_admin_token),
) -> TriggerResponse:
    return await triggers.run_monthly(force=force)
