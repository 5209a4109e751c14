"""Pydantic models for the subset of Telegram updates the bridge consumes."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from telemirror.core.models import InboundUpdate


class TelegramChat(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int | str
    type: Optional[str] = None


class TelegramUser(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int | str
    username: Optional[str] = None


class TelegramMessage(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    message_id: Optional[int] = None
    chat: TelegramChat
    from_user: Optional[TelegramUser] = Field(default=None, alias="from")
    text: Optional[str] = None


class TelegramCallbackQuery(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    from_user: Optional[TelegramUser] = Field(default=None, alias="from")
    message: Optional[TelegramMessage] = None
    data: Optional[str] = None


class TelegramUpdate(BaseModel):
    model_config = ConfigDict(extra="allow")

    update_id: Optional[int] = None
    message: Optional[TelegramMessage] = None
    callback_query: Optional[TelegramCallbackQuery] = None

    def to_inbound(self) -> Optional[InboundUpdate]:
        """Reduce to an `InboundUpdate`; None for update kinds the bridge ignores."""
        if self.message is not None:
            msg = self.message
            return InboundUpdate(
                chat_id=str(msg.chat.id),
                user_id=str(msg.from_user.id) if msg.from_user else None,
                text=(msg.text or "").strip(),
            )

        if self.callback_query is not None:
            cq = self.callback_query
            user_id = str(cq.from_user.id) if cq.from_user else None
            chat_id = str(cq.message.chat.id) if cq.message else user_id
            if chat_id is None:
                return None
            return InboundUpdate(
                chat_id=chat_id,
                user_id=user_id,
                callback_id=cq.id,
                callback_data=cq.data or "",
            )

        return None
