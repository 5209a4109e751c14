"""Telegram Bot API access."""

from .client import TelegramClient

__all__ = ["TelegramClient"]
