from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Request, Response, status
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from hibi.db import create_engine, create_session_factory, init_db

from .ai.openai_client import OpenAIClient
from .ai.router import AIRouter
from .api.v1.routes import router as v1_router
from .core.config import Settings, get_settings
from .core.logging import configure_logging
from .core.security import enforce_webhook_secret
from .insights.history import ReviewStateRepository
from .insights.reviews import ReviewService
from .insights.streak import StreakEngine
from .middleware import RequestLoggingMiddleware
from .schemas.webhook import TelegramWebhookUpdate, WebhookResponse
from .services.commands import CommandService
from .services.entries import EntryRecorder
from .services.logstore import LogStore
from .services.storage import StorageService
from .services.telegram import TelegramService
from .services.triggers import TriggerService

logger = logging.getLogger(__name__)


def get_telegram_service_from_app(request: Request) -> TelegramService:
    return request.app.state.telegram_service


def build_components(settings: Settings, session_factory) -> dict[str, Any]:
    """Wire every service from one settings object."""

    storage_service = StorageService(session_factory)
    log_store = LogStore(
        session_factory,
        tz=settings.tz,
        page_size=settings.logstore_page_size,
        max_pages=settings.logstore_max_pages,
    )
    repository = ReviewStateRepository(
        storage_service,
        text_limit=settings.review_store_chars,
        capacity=settings.review_history_capacity,
    )
    streak_engine = StreakEngine(
        repository,
        log_store,
        window_days=settings.streak_window_days,
        max_windows=settings.streak_max_windows,
    )
    ai_router = AIRouter(
        client=OpenAIClient(settings.openai_api_key, timeout=settings.request_timeout_seconds * 3),
        models=settings.model_candidates,
        max_tokens_analysis=settings.ai_max_tokens_analysis,
        max_tokens_review=settings.ai_max_tokens_review,
    )
    review_service = ReviewService(
        log_store=log_store,
        repository=repository,
        router=ai_router,
        profile=settings.user_profile,
    )
    recorder = EntryRecorder(log_store=log_store, streak=streak_engine, router=ai_router)
    command_service = CommandService(
        log_store=log_store,
        streak=streak_engine,
        reviews=review_service,
        tz=settings.tz,
        on_this_day_years=settings.on_this_day_years,
    )
    telegram_service = TelegramService(
        token=settings.bot_token,
        webhook_url=str(settings.webapp_url) if settings.webapp_url else None,
        timeout=settings.request_timeout_seconds,
        push_limit=settings.push_text_limit,
        owner_chat_id=settings.owner_chat_id,
        secret_token=settings.webhook_secret_token,
        recorder=recorder,
        commands=command_service,
    )
    trigger_service = TriggerService(
        log_store=log_store,
        streak=streak_engine,
        reviews=review_service,
        push=telegram_service.push_to_owner,
        tz=settings.tz,
    )
    return {
        "storage_service": storage_service,
        "log_store": log_store,
        "review_repository": repository,
        "streak_engine": streak_engine,
        "ai_router": ai_router,
        "review_service": review_service,
        "entry_recorder": recorder,
        "command_service": command_service,
        "telegram_service": telegram_service,
        "trigger_service": trigger_service,
    }


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Configure application services during startup and ensure graceful shutdown."""

    settings: Settings = get_settings()
    configure_logging(settings)

    engine = create_engine(settings.database_url)
    session_factory = create_session_factory(engine)
    await init_db(engine, session_factory, settings.version, settings.database_url)

    app.state.settings = settings
    app.state.db_engine = engine
    app.state.db_session_factory = session_factory
    for name, component in build_components(settings, session_factory).items():
        setattr(app.state, name, component)

    missing = settings.missing_required()
    if missing:
        logger.warning(
            "required configuration missing",
            extra={"extra_fields": {"missing": missing}},
        )

    telegram_service: TelegramService = app.state.telegram_service
    if telegram_service.available:
        if not await telegram_service.ensure_webhook():
            logger.warning("unable to configure telegram webhook")
    else:
        logger.info("telegram disabled")

    logger.info(
        "Hibi started",
        extra={"extra_fields": {"version": settings.version, "timezone": settings.timezone}},
    )

    try:
        yield
    finally:
        await telegram_service.close()
        await app.state.db_engine.dispose()


app = FastAPI(title="Hibi", version=get_settings().version, lifespan=lifespan)
app.add_middleware(RequestLoggingMiddleware)
app.include_router(v1_router)


@app.get("/healthz")
async def healthz(settings: Settings = Depends(get_settings)) -> dict[str, str]:
    return {"status": "ok", "version": settings.version}


@app.get("/readyz")
async def readyz(request: Request, settings: Settings = Depends(get_settings)) -> dict[str, Any]:
    storage: StorageService = request.app.state.storage_service
    telegram_service = get_telegram_service_from_app(request)

    db_ok = True
    db_detail = "ok"
    try:
        await storage.healthcheck()
    except Exception as exc:
        logger.warning("database readiness check failed", extra={"error": str(exc)})
        db_ok = False
        db_detail = str(exc)

    if settings.bot_token:
        tg_ok, tg_detail = await telegram_service.check_readiness(request_timeout=2.0)
    else:
        tg_ok, tg_detail = True, "telegram disabled"

    return {
        "ready": db_ok and tg_ok,
        "db": {"ok": db_ok, "detail": db_detail},
        "tg": {"ok": tg_ok, "detail": tg_detail},
        "missing_config": settings.missing_required(),
    }


@app.post("/webhook")
async def public_webhook(
    request: Request,
    update: TelegramWebhookUpdate,
    _: None = Depends(enforce_webhook_secret),
) -> WebhookResponse:
    telegram_service = get_telegram_service_from_app(request)
    if not telegram_service.available:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="telegram unavailable",
        )
    return await telegram_service.process_update(update)


@app.get("/metrics")
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
