"""Channel contract and assembly of the enabled channel set."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

import structlog

from telemirror.config import Config
from telemirror.core.models import Notification
from telemirror.core.token_sessions import TokenSessionStore

from .desktop import DesktopChannel
from .email import EmailChannel
from .telegram import TelegramChannel

logger = structlog.get_logger(__name__)


@runtime_checkable
class NotificationChannel(Protocol):
    """Anything that can deliver a notification; `send` reports success."""

    name: str

    async def send(self, notification: Notification) -> bool: ...


def build_channels(config: Config) -> list[NotificationChannel]:
    """Enabled and fully configured channels; anything else is skipped quietly."""
    channels: list[NotificationChannel] = []

    if config.desktop.enabled:
        channels.append(DesktopChannel(config.desktop))

    tg = config.telegram
    if tg.enabled and tg.is_configured:
        store = None
        if config.mirror.mode == "token":
            store = TokenSessionStore(Path(config.mirror.sessions_dir), ttl=config.mirror.session_ttl)
        channels.append(TelegramChannel(tg, mode=config.mirror.mode, session_store=store))
    elif tg.enabled:
        logger.debug("Telegram enabled but missing bot token or chat id; skipping")

    if config.email.enabled and config.email.is_configured:
        channels.append(EmailChannel(config.email))
    elif config.email.enabled:
        logger.debug("Email enabled but SMTP settings incomplete; skipping")

    return channels
