"""Telegram notification channel (mirror and legacy token layouts)."""

from __future__ import annotations

from typing import Optional

import structlog

from telemirror.config import TelegramConfig
from telemirror.constants import DEFAULT_TMUX_SESSION
from telemirror.core.errors import TelegramAPIError
from telemirror.core.models import Notification
from telemirror.core.token_sessions import TokenSessionStore
from telemirror.telegram.client import TelegramClient

from .formatting import format_mirror_messages, format_token_message, token_keyboard

logger = structlog.get_logger(__name__)


class TelegramChannel:
    """Send notifications to the configured group (or private chat).

    Mirror mode sends the full response as chunked HTML. Token mode sends a
    short Markdown summary with a session token and reply buttons.
    """

    name = "Telegram"

    def __init__(
        self,
        config: TelegramConfig,
        *,
        mode: str = "mirror",
        session_store: Optional[TokenSessionStore] = None,
        client: Optional[TelegramClient] = None,
    ) -> None:
        if not config.bot_token or not config.destination:
            raise ValueError("Telegram channel requires a bot token and a chat or group id")
        if mode == "token" and session_store is None:
            raise ValueError("Token mode requires a session store")
        self.config = config
        self.mode = mode
        self.session_store = session_store
        self._client = client

    def _new_client(self) -> TelegramClient:
        return TelegramClient(
            str(self.config.bot_token),
            force_ipv4=self.config.force_ipv4,
            message_delay=self.config.message_delay,
            fallback_username=self.config.bot_username,
        )

    async def send(self, notification: Notification) -> bool:
        if self._client is not None:
            return await self._send(self._client, notification)
        async with self._new_client() as client:
            return await self._send(client, notification)

    async def _send(self, client: TelegramClient, notification: Notification) -> bool:
        if self.mode == "token":
            return await self._send_token_mode(client, notification)
        return await self._send_mirror_mode(client, notification)

    async def _send_mirror_mode(self, client: TelegramClient, notification: Notification) -> bool:
        messages = format_mirror_messages(notification)
        return await client.deliver(messages, str(self.config.destination), parse_mode="HTML")

    async def _send_token_mode(self, client: TelegramClient, notification: Notification) -> bool:
        if self.session_store is None:
            raise RuntimeError("Token mode requires a session store")
        session = self.session_store.create(
            tmux_session=notification.metadata.tmux_session or DEFAULT_TMUX_SESSION,
            project=notification.project,
        )
        text = format_token_message(notification, session.token)
        try:
            await client.send_with_fallback(
                str(self.config.destination),
                text,
                parse_mode="Markdown",
                reply_markup=token_keyboard(session.token),
            )
        except TelegramAPIError as e:
            logger.error("Failed to send Telegram message", error=str(e), session_id=session.id)
            self.session_store.remove(session.id)
            return False

        logger.info("Telegram message sent", session_id=session.id)
        return True
