from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict


@dataclass(frozen=True)
class InboundMessage:
    chat_id: str
    text: str
    update_id: int


class TelegramChat(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int | str | None = None


class TelegramMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    chat: TelegramChat | None = None
    text: str | None = None


class TelegramUpdate(BaseModel):
    """Subset of a Bot API ``Update`` the bridge reads."""

    model_config = ConfigDict(extra="ignore")

    update_id: int
    message: TelegramMessage | None = None

    def to_inbound_message(self) -> InboundMessage | None:
        message = self.message
        if message is None or message.chat is None or not message.chat.id:
            return None
        text = (message.text or "").strip()
        if not text:
            return None
        return InboundMessage(chat_id=str(message.chat.id), text=text, update_id=self.update_id)
