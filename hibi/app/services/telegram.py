# ruff: noqa: RUF001
from __future__ import annotations

import logging

from aiogram import Bot
from aiogram.exceptions import TelegramAPIError, TelegramNetworkError, TelegramRetryAfter

from ..metrics import PUSH_TRUNCATIONS, WEBHOOK_EVENTS
from ..schemas.webhook import TelegramWebhookUpdate, WebhookResponse
from ..utils.text import push_safe_truncate
from .commands import HELP_TEXT, CommandService, is_command
from .entries import EntryRecorder, image_marker

logger = logging.getLogger(__name__)

NOT_OWNER_TEXT = "このボットは所有者専用です。"
PROCESSING_ERROR_TEXT = "⚠️ 処理中にエラーが発生しました。内容はエラーログとして保存しました。"
UNSUPPORTED_TEXT = "テキストか写真を送ってください。/help でコマンド一覧を表示します。"


class TelegramService:
    """Wrapper around aiogram Bot: webhook setup, delivery and update routing."""

    def __init__(
        self,
        token: str | None,
        webhook_url: str | None,
        *,
        timeout: float,
        push_limit: int = 4096,
        owner_chat_id: int | None = None,
        secret_token: str | None = None,
        recorder: EntryRecorder | None = None,
        commands: CommandService | None = None,
    ) -> None:
        self._token = token
        self._webhook_url = webhook_url if webhook_url else None
        self._timeout = timeout
        self._push_limit = push_limit
        self._owner_chat_id = owner_chat_id
        self._secret_token = secret_token
        self._recorder = recorder
        self._commands = commands
        self._bot: Bot | None = None

    @property
    def available(self) -> bool:
        return bool(self._token and self._webhook_url)

    def _timeout_seconds(self, override: float | None = None) -> int:
        value = self._timeout if override is None else override
        return max(1, int(value))

    def _ensure_bot(self) -> Bot:
        if not self._token:
            raise RuntimeError("Telegram bot token is not configured")
        if self._bot is None:
            self._bot = Bot(token=self._token)
        return self._bot

    async def ensure_webhook(self) -> bool:
        if not self.available:
            logger.warning("Telegram webhook skipped: missing configuration")
            return False

        bot = self._ensure_bot()
        url = str(self._webhook_url)
        timeout_seconds = self._timeout_seconds()

        try:
            info = await bot.get_webhook_info(request_timeout=timeout_seconds)
            if info and info.url == url:
                logger.info("Telegram webhook already configured", extra={"extra_fields": {"webhook": url}})
                return True
            await bot.set_webhook(
                url=url,
                request_timeout=timeout_seconds,
                secret_token=self._secret_token,
            )
        except TelegramAPIError as exc:
            logger.error(
                "Telegram webhook setup failed",
                extra={"status": getattr(exc, "error_code", "api"), "error": str(exc)},
            )
            return False
        logger.info("Telegram webhook configured", extra={"extra_fields": {"webhook": url}})
        return True

    async def _send_message(self, chat_id: int, text: str) -> bool:
        """Deliver one message; the only retry policy in the system lives in the AI layer."""

        if not self._token:
            logger.warning("Telegram send skipped: token not configured")
            return False
        if len(text) > self._push_limit:
            PUSH_TRUNCATIONS.inc()
        safe_text = push_safe_truncate(text, self._push_limit)
        bot = self._ensure_bot()
        try:
            await bot.send_message(
                chat_id=chat_id,
                text=safe_text,
                request_timeout=self._timeout_seconds(),
            )
        except TelegramRetryAfter as exc:
            logger.warning("Send message throttled", extra={"status": 429, "error": str(exc)})
            return False
        except TelegramNetworkError as exc:
            logger.warning("Send message network error", extra={"status": "network", "error": str(exc)})
            return False
        except TelegramAPIError as exc:
            logger.error(
                "Telegram API error sending message",
                extra={"status": getattr(exc, "error_code", "api"), "error": str(exc)},
            )
            return False
        return True

    async def push_to_owner(self, text: str) -> bool:
        if self._owner_chat_id is None:
            logger.warning("push skipped: OWNER_CHAT_ID not configured")
            return False
        return await self._send_message(self._owner_chat_id, text)

    async def check_readiness(self, *, request_timeout: float = 2.0) -> tuple[bool, str]:
        if not self._token:
            return False, "token not configured"
        if not self._webhook_url:
            return False, "webhook url missing"

        bot = self._ensure_bot()
        try:
            await bot.get_me(request_timeout=self._timeout_seconds(request_timeout))
        except TelegramNetworkError as exc:
            logger.warning("Telegram getMe network error", extra={"status": "network", "error": str(exc)})
            return False, "network"
        except TelegramRetryAfter as exc:
            logger.warning("Telegram getMe throttled", extra={"status": 429, "error": str(exc)})
            return False, "throttled"
        except TelegramAPIError as exc:
            logger.error(
                "Telegram getMe api error",
                extra={"status": getattr(exc, "error_code", "api"), "error": str(exc)},
            )
            return False, f"api:{getattr(exc, 'error_code', 'unknown')}"
        return True, "ok"

    async def _download_photo(self, file_id: str) -> bytes:
        bot = self._ensure_bot()
        buffer = await bot.download(file_id, timeout=self._timeout_seconds())
        if buffer is None:
            raise RuntimeError(f"photo {file_id} could not be downloaded")
        return buffer.read()

    async def _route(self, update: TelegramWebhookUpdate) -> str:
        if self._recorder is None or self._commands is None:
            raise RuntimeError("Telegram handlers are not attached")

        message = update.message
        if update.kind == "image" and message is not None:
            photo = update.largest_photo
            assert photo is not None
            image = await self._download_photo(photo.file_id)
            name = f"photo_{photo.file_unique_id or photo.file_id}.jpg"
            result = await self._recorder.record_image(
                image,
                description=image_marker(name, message.caption),
                image_ref=photo.file_id,
                received_at=update.timestamp,
            )
            return result.acknowledgement()

        text = update.message_text or ""
        if is_command(text):
            return await self._commands.handle(text)
        result = await self._recorder.record_text(text, received_at=update.timestamp)
        return result.acknowledgement()

    async def process_update(self, update: TelegramWebhookUpdate) -> WebhookResponse:
        chat_id = update.chat_id
        if chat_id is None or update.kind is None:
            WEBHOOK_EVENTS.labels(result="ignored").inc()
            if chat_id is None:
                return WebhookResponse(response="", delivered=False)
            delivered = await self._send_message(chat_id, UNSUPPORTED_TEXT)
            return WebhookResponse(response=UNSUPPORTED_TEXT, delivered=delivered)

        if self._owner_chat_id is not None and chat_id != self._owner_chat_id:
            logger.warning("message from non-owner chat ignored", extra={"extra_fields": {"chat_id": chat_id}})
            WEBHOOK_EVENTS.labels(result="forbidden").inc()
            delivered = await self._send_message(chat_id, NOT_OWNER_TEXT)
            return WebhookResponse(response=NOT_OWNER_TEXT, delivered=delivered)

        try:
            response_text = await self._route(update)
        except Exception as exc:
            logger.exception("webhook processing failed", extra={"kind": update.kind})
            if self._recorder is not None:
                await self._recorder.record_system_error(f"{exc.__class__.__name__}: {exc}")
            WEBHOOK_EVENTS.labels(result="error").inc()
            response_text = PROCESSING_ERROR_TEXT
            if update.kind == "text" and is_command(update.message_text):
                response_text = f"{PROCESSING_ERROR_TEXT}\n\n{HELP_TEXT}"

        delivered = await self._send_message(chat_id, response_text)
        WEBHOOK_EVENTS.labels(result="delivered" if delivered else "failed").inc()
        return WebhookResponse(response=response_text, delivered=delivered)

    async def close(self) -> None:
        if self._bot:
            await self._bot.session.close()
            self._bot = None


__all__ = ["TelegramService"]
