"""Inbound chat routing: authorize, interpret, inject, confirm.

Two routing modes exist. `mirror` (the default) sends any plain text, or
`/cmd <text>`, straight to the configured tmux session. `token` is the legacy
mode where each notification carries a short token and commands must name it.
"""

from __future__ import annotations

import asyncio
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import structlog

from telemirror.constants import LEGACY_CALLBACK_PREFIXES
from telemirror.core.errors import InjectionError, TelegramAPIError
from telemirror.core.injector import TerminalInjector
from telemirror.core.models import InboundUpdate
from telemirror.core.token_sessions import TokenSessionStore
from telemirror.telegram.client import TelegramClient

logger = structlog.get_logger(__name__)

UNAUTHORIZED_REPLY = "⚠️ You are not authorized to use this bot."
MIRROR_FORMAT_REPLY = "❌ Format: /cmd <your command>"
TOKEN_FORMAT_REPLY = "❌ Format: /cmd <TOKEN> <command>"
INVALID_TOKEN_REPLY = "❌ Invalid or expired token. Please wait for a new task notification."

_CMD_RE = re.compile(r"^/cmd\s+(.+)$", re.IGNORECASE | re.DOTALL)
_TOKEN_CMD_RE = re.compile(r"^/cmd\s+([A-Z0-9]{8})\s+(.+)$", re.IGNORECASE | re.DOTALL)
_BOT_COMMAND_RE = re.compile(r"^(/[A-Za-z0-9_]+)@([A-Za-z0-9_]+)(?=\s|$)")


class RoutingMode(str, Enum):
    MIRROR = "mirror"
    TOKEN = "token"


@dataclass(frozen=True)
class AuthorizationPolicy:
    """Who may drive the terminal.

    A whitelist entry matching either the chat id or the user id allows.
    With no whitelist, only the configured home chat is allowed.
    """

    whitelist: frozenset[str]
    home_chat_id: Optional[str] = None

    def is_authorized(self, chat_id: str, user_id: Optional[str]) -> bool:
        if str(chat_id) in self.whitelist or (user_id is not None and str(user_id) in self.whitelist):
            return True
        if not self.whitelist and self.home_chat_id:
            return str(chat_id) == str(self.home_chat_id)
        return False


class BaseRouter(ABC):
    """Shared router behaviour; subclasses implement `route_command` and `legacy_callback_reply`."""

    mode: RoutingMode

    WELCOME_TEXT = ""
    HELP_TEXT = ""

    def __init__(self, client: TelegramClient, policy: AuthorizationPolicy, injector: TerminalInjector) -> None:
        self.client = client
        self.policy = policy
        self.injector = injector

    async def handle(self, update: InboundUpdate) -> None:
        if update.is_callback:
            await self.handle_callback(update)
        else:
            await self.handle_message(update)

    async def handle_message(self, update: InboundUpdate) -> None:
        text = update.text.strip()
        if not text:
            return

        if not self.policy.is_authorized(update.chat_id, update.user_id):
            logger.warning("Unauthorized user/chat", user_id=update.user_id, chat_id=update.chat_id)
            await self.reply(update.chat_id, UNAUTHORIZED_REPLY)
            return

        text = await self._strip_bot_mention(text)

        if text == "/start":
            await self.reply(update.chat_id, self.WELCOME_TEXT, parse_mode="Markdown")
            return
        if text == "/help":
            await self.reply(update.chat_id, self.HELP_TEXT, parse_mode="Markdown")
            return

        await self.route_command(update.chat_id, text)

    async def handle_callback(self, update: InboundUpdate) -> None:
        await self.answer_callback(update.callback_id or "")

        data = update.callback_data or ""
        if data.startswith(LEGACY_CALLBACK_PREFIXES):
            _, _, payload = data.partition(":")
            await self.reply(update.chat_id, self.legacy_callback_reply(payload), parse_mode="Markdown")

    @abstractmethod
    async def route_command(self, chat_id: str, text: str) -> None:
        """Interpret an authorized, non-help message."""

    @abstractmethod
    def legacy_callback_reply(self, payload: str) -> str:
        """Reply text for a legacy inline-keyboard button press."""

    async def inject_and_confirm(self, chat_id: str, command: str, session_name: Optional[str] = None) -> bool:
        """Inject `command`, then report the outcome in chat. Returns True on success."""
        try:
            await self.injector.inject(command, session_name)
        except InjectionError as e:
            logger.error("Command injection failed", chat_id=chat_id, session=e.session_name, error=str(e))
            await self.reply(chat_id, f"❌ {e}")
            return False

        logger.info("Command injected", chat_id=chat_id, command=command)
        await self.reply(chat_id, f"✅ {command}")
        return True

    async def reply(self, chat_id: str, text: str, parse_mode: Optional[str] = None) -> None:
        """Send a chat reply; failures are logged, never raised."""
        try:
            if parse_mode:
                await self.client.send_with_fallback(chat_id, text, parse_mode=parse_mode)
            else:
                await self.client.send_message(chat_id, text)
        except TelegramAPIError as e:
            logger.error("Failed to send message", chat_id=chat_id, error=str(e))

    async def answer_callback(self, callback_id: str) -> None:
        try:
            await self.client.answer_callback_query(callback_id)
        except TelegramAPIError as e:
            logger.error("Failed to answer callback query", callback_id=callback_id, error=str(e))

    async def _strip_bot_mention(self, text: str) -> str:
        """Turn `/help@thisbot` into `/help`; mentions of other bots are left alone."""
        match = _BOT_COMMAND_RE.match(text)
        if not match:
            return text
        username = await self.client.get_bot_username()
        if match.group(2).lower() != username.lower():
            return text
        return match.group(1) + text[match.end() :]


class MirrorRouter(BaseRouter):
    mode = RoutingMode.MIRROR

    WELCOME_TEXT = (
        "🤖 *Welcome to Claude Code Remote Bot!*\n\n"
        "I'll notify you when Claude completes tasks or needs input.\n\n"
        "*Mirror Mode:* Just type your message and it goes directly to Claude.\n\n"
        "Or use: `/cmd <your command>`\n\n"
        "Type /help for more information."
    )
    HELP_TEXT = (
        "📚 *Claude Code Remote Bot Help*\n\n"
        "*Commands:*\n"
        "• `/start` - Welcome message\n"
        "• `/help` - Show this help\n"
        "• `/cmd <command>` - Send command to Claude\n\n"
        "*Mirror Mode:*\n"
        "Just type any message and it will be sent directly to your Claude session.\n\n"
        "*Example:*\n"
        "`analyze the performance of this function`"
    )

    async def route_command(self, chat_id: str, text: str) -> None:
        match = _CMD_RE.match(text)
        if match:
            await self.inject_and_confirm(chat_id, match.group(1))
            return

        if not text.startswith("/"):
            await self.inject_and_confirm(chat_id, text)
            return

        await self.reply(chat_id, MIRROR_FORMAT_REPLY)

    def legacy_callback_reply(self, payload: str) -> str:
        return (
            "📝 *Mirror Mode is active!*\n\n"
            "Just type your message directly, no token needed.\n\n"
            "Or use: `/cmd <your command>`"
        )


class TokenRouter(BaseRouter):
    mode = RoutingMode.TOKEN

    WELCOME_TEXT = (
        "🤖 *Welcome to Claude Code Remote Bot!*\n\n"
        "I'll notify you when Claude completes tasks or needs input.\n\n"
        "Each notification carries a token. Reply with:\n"
        "`/cmd <TOKEN> <your command>`\n\n"
        "Type /help for more information."
    )
    HELP_TEXT = (
        "📚 *Claude Code Remote Bot Help*\n\n"
        "*Commands:*\n"
        "• `/start` - Welcome message\n"
        "• `/help` - Show this help\n"
        "• `/cmd <TOKEN> <command>` - Send command to Claude\n\n"
        "*Example:*\n"
        "`/cmd ABC12345 analyze the performance of this function`\n\n"
        "Tokens are valid for 24 hours."
    )

    def __init__(
        self,
        client: TelegramClient,
        policy: AuthorizationPolicy,
        injector: TerminalInjector,
        session_store: TokenSessionStore,
    ) -> None:
        super().__init__(client, policy, injector)
        self.session_store = session_store

    async def route_command(self, chat_id: str, text: str) -> None:
        match = _TOKEN_CMD_RE.match(text)
        if not match:
            await self.reply(chat_id, TOKEN_FORMAT_REPLY)
            return

        token, command = match.group(1).upper(), match.group(2)
        session = await asyncio.to_thread(self.session_store.find_by_token, token)
        if session is None:
            logger.info("Rejected unknown or expired token", chat_id=chat_id)
            await self.reply(chat_id, INVALID_TOKEN_REPLY)
            return

        # Tokens are single use, whatever the injection outcome.
        await asyncio.to_thread(self.session_store.remove, session.id)
        await self.inject_and_confirm(chat_id, command, session.tmux_session)

    def legacy_callback_reply(self, payload: str) -> str:
        token = payload.strip() or "<TOKEN>"
        return f"📝 *Session {token}*\n\nSend: `/cmd {token} <your command>`"


def build_router(
    mode: RoutingMode | str,
    client: TelegramClient,
    policy: AuthorizationPolicy,
    injector: TerminalInjector,
    session_store: Optional[TokenSessionStore] = None,
) -> BaseRouter:
    """Router for the configured routing mode.

    Raises:
        ValueError: Unknown mode, or token mode without a session store.
    """
    mode = RoutingMode(mode)
    if mode is RoutingMode.MIRROR:
        return MirrorRouter(client, policy, injector)
    if session_store is None:
        raise ValueError("token routing mode requires a session store")
    return TokenRouter(client, policy, injector, session_store)
