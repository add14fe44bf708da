from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, Field


class TelegramChat(BaseModel):
    id: int
    type: str | None = None


class TelegramPhotoSize(BaseModel):
    file_id: str
    file_unique_id: str | None = None
    width: int = 0
    height: int = 0
    file_size: int | None = None


class TelegramMessage(BaseModel):
    message_id: int = Field(..., alias="message_id")
    date: int | None = None
    text: str | None = None
    caption: str | None = None
    photo: list[TelegramPhotoSize] | None = None
    chat: TelegramChat | None = None


class TelegramWebhookUpdate(BaseModel):
    update_id: int = Field(..., alias="update_id")
    message: TelegramMessage | None = None

    @property
    def message_text(self) -> str | None:
        if self.message and self.message.text:
            return self.message.text
        return None

    @property
    def chat_id(self) -> int | None:
        if self.message and self.message.chat:
            return self.message.chat.id
        return None

    @property
    def kind(self) -> str | None:
        """``text`` or ``image`` for diary-bearing messages, otherwise None."""

        if self.message is None:
            return None
        if self.message.photo:
            return "image"
        if self.message.text:
            return "text"
        return None

    @property
    def largest_photo(self) -> TelegramPhotoSize | None:
        if not self.message or not self.message.photo:
            return None
        return max(self.message.photo, key=lambda item: item.width * item.height)

    @property
    def timestamp(self) -> datetime | None:
        if self.message and self.message.date:
            return datetime.fromtimestamp(self.message.date, tz=UTC)
        return None


class WebhookResponse(BaseModel):
    response: str
    delivered: bool = False
