from __future__ import annotations

import io
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from aiogram.exceptions import TelegramNetworkError

from hibi.app.schemas.webhook import TelegramWebhookUpdate
from hibi.app.services.commands import HELP_TEXT, CommandService
from hibi.app.services.entries import EntryRecorder
from hibi.app.services.telegram import (
    NOT_OWNER_TEXT,
    PROCESSING_ERROR_TEXT,
    UNSUPPORTED_TEXT,
    TelegramService,
)
from hibi.app.utils.text import TRUNCATION_MARKER

OWNER = 123


class DummyTelegramNetworkError(TelegramNetworkError):
    def __init__(self) -> None:  # pragma: no cover
        Exception.__init__(self, "network")
        self.method = SimpleNamespace(name="dummy")
        self.message = "network"


def _service(**kwargs) -> tuple[TelegramService, AsyncMock, AsyncMock]:
    recorder = AsyncMock(spec=EntryRecorder)
    recorder.record_text.return_value = SimpleNamespace(acknowledgement=lambda: "✅ text")
    recorder.record_image.return_value = SimpleNamespace(acknowledgement=lambda: "✅ image")
    commands = AsyncMock(spec=CommandService)
    commands.handle.return_value = "command reply"
    service = TelegramService(
        token="token",
        webhook_url="https://example.com/webhook",
        timeout=1.0,
        owner_chat_id=kwargs.pop("owner_chat_id", OWNER),
        recorder=recorder,
        commands=commands,
        **kwargs,
    )
    return service, recorder, commands


def _update(chat_id: int | None = OWNER, **message) -> TelegramWebhookUpdate:
    payload: dict = {"message_id": 1, "date": 1749387600, **message}
    if chat_id is not None:
        payload["chat"] = {"id": chat_id}
    return TelegramWebhookUpdate.model_validate({"update_id": 1, "message": payload})


@pytest.mark.anyio
async def test_plain_text_is_recorded(monkeypatch: pytest.MonkeyPatch) -> None:
    service, recorder, commands = _service()
    sender = AsyncMock(return_value=True)
    monkeypatch.setattr(service, "_send_message", sender)

    result = await service.process_update(_update(text="今日は走った"))

    recorder.record_text.assert_awaited_once()
    assert recorder.record_text.await_args.args == ("今日は走った",)
    assert recorder.record_text.await_args.kwargs["received_at"].tzinfo is not None
    commands.handle.assert_not_awaited()
    sender.assert_awaited_once_with(OWNER, "✅ text")
    assert result.delivered is True


@pytest.mark.anyio
async def test_command_is_routed_to_command_service(monkeypatch: pytest.MonkeyPatch) -> None:
    service, recorder, commands = _service()
    monkeypatch.setattr(service, "_send_message", AsyncMock(return_value=True))

    result = await service.process_update(_update(text="/stats"))

    commands.handle.assert_awaited_once_with("/stats")
    recorder.record_text.assert_not_awaited()
    assert result.response == "command reply"


@pytest.mark.anyio
async def test_photo_downloads_largest_size(monkeypatch: pytest.MonkeyPatch) -> None:
    service, recorder, _ = _service()
    monkeypatch.setattr(service, "_send_message", AsyncMock(return_value=True))
    bot = AsyncMock()
    bot.download.return_value = io.BytesIO(b"jpeg-bytes")
    monkeypatch.setattr(service, "_ensure_bot", lambda: bot)

    update = _update(
        caption="夕焼け",
        photo=[
            {"file_id": "small", "file_unique_id": "s", "width": 90, "height": 90},
            {"file_id": "large", "file_unique_id": "l", "width": 1280, "height": 960},
        ],
    )
    result = await service.process_update(update)

    assert bot.download.await_args.args == ("large",)
    recorder.record_image.assert_awaited_once()
    call = recorder.record_image.await_args
    assert call.args == (b"jpeg-bytes",)
    assert call.kwargs["image_ref"] == "large"
    assert call.kwargs["description"].endswith("(photo_l.jpg)\n夕焼け")
    assert result.response == "✅ image"


@pytest.mark.anyio
async def test_non_owner_chat_is_refused(monkeypatch: pytest.MonkeyPatch) -> None:
    service, recorder, _ = _service()
    sender = AsyncMock(return_value=True)
    monkeypatch.setattr(service, "_send_message", sender)

    result = await service.process_update(_update(chat_id=999, text="hello"))

    recorder.record_text.assert_not_awaited()
    sender.assert_awaited_once_with(999, NOT_OWNER_TEXT)
    assert result.response == NOT_OWNER_TEXT


@pytest.mark.anyio
async def test_unsupported_and_chatless_updates(monkeypatch: pytest.MonkeyPatch) -> None:
    service, recorder, _ = _service()
    sender = AsyncMock(return_value=True)
    monkeypatch.setattr(service, "_send_message", sender)

    sticker = await service.process_update(_update())
    chatless = await service.process_update(_update(chat_id=None, text="orphan"))

    assert sticker.response == UNSUPPORTED_TEXT
    assert chatless.response == ""
    assert chatless.delivered is False
    sender.assert_awaited_once_with(OWNER, UNSUPPORTED_TEXT)
    recorder.record_text.assert_not_awaited()


@pytest.mark.anyio
async def test_processing_failure_is_logged_as_entry(monkeypatch: pytest.MonkeyPatch) -> None:
    service, recorder, _ = _service()
    recorder.record_text.side_effect = RuntimeError("disk full")
    monkeypatch.setattr(service, "_send_message", AsyncMock(return_value=True))

    result = await service.process_update(_update(text="今日"))

    recorder.record_system_error.assert_awaited_once_with("RuntimeError: disk full")
    assert result.response == PROCESSING_ERROR_TEXT


@pytest.mark.anyio
async def test_failed_command_reply_includes_menu(monkeypatch: pytest.MonkeyPatch) -> None:
    service, recorder, commands = _service()
    commands.handle.side_effect = KeyError("boom")
    monkeypatch.setattr(service, "_send_message", AsyncMock(return_value=True))

    result = await service.process_update(_update(text="/random"))

    recorder.record_system_error.assert_awaited_once()
    assert result.response == f"{PROCESSING_ERROR_TEXT}\n\n{HELP_TEXT}"


@pytest.mark.anyio
async def test_send_message_truncates_long_text(monkeypatch: pytest.MonkeyPatch) -> None:
    service, _, _ = _service(push_limit=200)
    bot = AsyncMock()
    monkeypatch.setattr(service, "_ensure_bot", lambda: bot)

    assert await service._send_message(OWNER, "あ" * 500) is True

    sent = bot.send_message.await_args.kwargs["text"]
    assert len(sent) <= 200
    assert sent.endswith(TRUNCATION_MARKER)


@pytest.mark.anyio
async def test_send_message_single_attempt_on_network_error(monkeypatch: pytest.MonkeyPatch) -> None:
    service, _, _ = _service()
    bot = AsyncMock()
    bot.send_message.side_effect = DummyTelegramNetworkError()
    monkeypatch.setattr(service, "_ensure_bot", lambda: bot)

    assert await service._send_message(OWNER, "hi") is False
    assert bot.send_message.await_count == 1


@pytest.mark.anyio
async def test_push_to_owner_requires_owner_chat() -> None:
    service, _, _ = _service(owner_chat_id=None)

    assert await service.push_to_owner("reminder") is False


@pytest.mark.anyio
async def test_ensure_webhook_sets_url_with_secret(monkeypatch: pytest.MonkeyPatch) -> None:
    service, _, _ = _service(secret_token="s3")
    bot = AsyncMock()
    bot.get_webhook_info.return_value = SimpleNamespace(url="https://other")
    monkeypatch.setattr(service, "_ensure_bot", lambda: bot)

    assert await service.ensure_webhook() is True

    bot.set_webhook.assert_awaited_once()
    assert bot.set_webhook.await_args.kwargs["url"] == "https://example.com/webhook"
    assert bot.set_webhook.await_args.kwargs["secret_token"] == "s3"


@pytest.mark.anyio
async def test_ensure_webhook_gives_up_after_one_network_error(monkeypatch: pytest.MonkeyPatch) -> None:
    service, _, _ = _service()
    bot = AsyncMock()
    bot.get_webhook_info.return_value = SimpleNamespace(url="https://other")
    bot.set_webhook.side_effect = DummyTelegramNetworkError()
    monkeypatch.setattr(service, "_ensure_bot", lambda: bot)

    assert await service.ensure_webhook() is False
    assert bot.set_webhook.await_count == 1


@pytest.mark.anyio
async def test_check_readiness(monkeypatch: pytest.MonkeyPatch) -> None:
    service, _, _ = _service()
    bot = AsyncMock()
    bot.get_me.return_value = SimpleNamespace(id=1)
    monkeypatch.setattr(service, "_ensure_bot", lambda: bot)

    assert await service.check_readiness() == (True, "ok")

    bot.get_me.side_effect = DummyTelegramNetworkError()
    assert await service.check_readiness() == (False, "network")


@pytest.mark.anyio
async def test_check_readiness_without_token() -> None:
    service = TelegramService(token=None, webhook_url=None, timeout=1.0)

    assert await service.check_readiness() == (False, "token not configured")
    assert await service._send_message(OWNER, "hi") is False
