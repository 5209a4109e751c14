"""Telegram Bot API client used by both the webhook and notification paths."""

from __future__ import annotations

import asyncio
from typing import Optional, Sequence

import httpx
import structlog

from telemirror.constants import (
    DEFAULT_BOT_USERNAME,
    MESSAGE_DELAY_S,
    TELEGRAM_API_BASE,
    TELEGRAM_HTTP_TIMEOUT_S,
    WEBHOOK_ALLOWED_UPDATES,
)
from telemirror.core.errors import TelegramAPIError, is_formatting_rejection

logger = structlog.get_logger(__name__)

JsonPayload = dict[str, object]  # guard: loose-dict - Bot API bodies are method-specific JSON


class TelegramClient:
    """Bot API calls over one `httpx.AsyncClient`.

    With `force_ipv4`, the transport binds to 0.0.0.0 so every connection
    goes out over IPv4 (some hosts have broken IPv6 routes to Telegram).
    """

    def __init__(
        self,
        bot_token: str,
        *,
        force_ipv4: bool = False,
        message_delay: float = MESSAGE_DELAY_S,
        fallback_username: str = DEFAULT_BOT_USERNAME,
        timeout_s: float = TELEGRAM_HTTP_TIMEOUT_S,
        api_base: str = TELEGRAM_API_BASE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._bot_token = bot_token
        self.force_ipv4 = force_ipv4
        self.message_delay = message_delay
        self.fallback_username = fallback_username
        self._api_base = api_base.rstrip("/")
        self._bot_username: Optional[str] = None

        if transport is None and force_ipv4:
            transport = httpx.AsyncHTTPTransport(local_address="0.0.0.0")
        self._http = httpx.AsyncClient(timeout=timeout_s, transport=transport)

    async def __aenter__(self) -> "TelegramClient":
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    def _url(self, method: str) -> str:
        return f"{self._api_base}/bot{self._bot_token}/{method}"

    async def call(self, method: str, payload: Optional[JsonPayload] = None) -> object:
        """POST a Bot API method and return its `result`.

        Raises:
            TelegramAPIError: On transport errors, HTTP errors, non-JSON bodies or `ok: false`.
        """
        try:
            response = await self._http.post(self._url(method), json=payload or {})
        except httpx.HTTPError as exc:
            raise TelegramAPIError(method, f"{type(exc).__name__}: {exc}") from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise TelegramAPIError(method, f"non-JSON response: {response.text[:200]}", response.status_code) from exc

        if not isinstance(body, dict):
            raise TelegramAPIError(method, "unexpected response shape", response.status_code)

        if response.status_code >= 400 or not body.get("ok"):
            detail = str(body.get("description") or response.text[:200] or "telegram api error")
            raise TelegramAPIError(method, detail, response.status_code)

        return body.get("result")

    async def send_message(
        self,
        chat_id: str | int,
        text: str,
        *,
        parse_mode: Optional[str] = None,
        disable_notification: bool = False,
        reply_markup: Optional[JsonPayload] = None,
    ) -> object:
        payload: JsonPayload = {"chat_id": chat_id, "text": text}
        if parse_mode:
            payload["parse_mode"] = parse_mode
        if disable_notification:
            payload["disable_notification"] = True
        if reply_markup:
            payload["reply_markup"] = reply_markup
        return await self.call("sendMessage", payload)

    async def send_with_fallback(
        self,
        chat_id: str | int,
        text: str,
        *,
        parse_mode: Optional[str] = "HTML",
        disable_notification: bool = False,
        reply_markup: Optional[JsonPayload] = None,
    ) -> object:
        """Send with rich formatting; on a markup rejection resend once as plain text.

        Raises:
            TelegramAPIError: When the failure is not a markup rejection, or the
                plain-text resend also fails.
        """
        try:
            return await self.send_message(
                chat_id,
                text,
                parse_mode=parse_mode,
                disable_notification=disable_notification,
                reply_markup=reply_markup,
            )
        except TelegramAPIError as exc:
            if not parse_mode or not is_formatting_rejection(exc):
                raise
            logger.warning(
                "Rich formatting rejected, sending as plain text",
                parse_mode=parse_mode,
                error=exc.description,
            )

        return await self.send_message(
            chat_id,
            text,
            disable_notification=disable_notification,
            reply_markup=reply_markup,
        )

    async def deliver(
        self,
        chunks: Sequence[str],
        chat_id: str | int,
        *,
        parse_mode: Optional[str] = "HTML",
        disable_notification: bool = False,
    ) -> bool:
        """Send chunks one at a time, in order.

        A failed chunk is logged and does not stop the ones after it.

        Returns:
            True only if every chunk was accepted (rich or plain).
        """
        delivered = 0
        for index, chunk in enumerate(chunks):
            if index:
                await asyncio.sleep(self.message_delay)
            try:
                await self.send_with_fallback(
                    chat_id,
                    chunk,
                    parse_mode=parse_mode,
                    disable_notification=disable_notification,
                )
            except TelegramAPIError as exc:
                logger.error("Failed to send Telegram message", part=index + 1, total=len(chunks), error=str(exc))
                continue
            delivered += 1

        if delivered == len(chunks):
            logger.info("Telegram message sent", parts=len(chunks))
            return True
        return False

    async def answer_callback_query(self, callback_query_id: str, text: str = "") -> object:
        return await self.call("answerCallbackQuery", {"callback_query_id": callback_query_id, "text": text})

    async def get_me(self) -> object:
        return await self.call("getMe")

    async def set_webhook(self, url: str) -> object:
        result = await self.call("setWebhook", {"url": url, "allowed_updates": WEBHOOK_ALLOWED_UPDATES})
        logger.info("Webhook set", url=url)
        return result

    async def get_bot_username(self) -> str:
        """Bot username from `getMe`, cached after the first success."""
        if self._bot_username:
            return self._bot_username

        try:
            me = await self.get_me()
        except TelegramAPIError as e:
            logger.error("Failed to get bot username", error=str(e))
            return self.fallback_username

        username = me.get("username") if isinstance(me, dict) else None
        if not username:
            return self.fallback_username
        self._bot_username = str(username)
        return self._bot_username
