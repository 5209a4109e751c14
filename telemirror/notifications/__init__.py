"""Outbound notification channels and dispatch."""

from .channels import NotificationChannel, build_channels
from .desktop import DesktopChannel
from .dispatch import build_notification, dispatch, gather_context
from .email import EmailChannel
from .telegram import TelegramChannel

__all__ = [
    "DesktopChannel",
    "EmailChannel",
    "NotificationChannel",
    "TelegramChannel",
    "build_channels",
    "build_notification",
    "dispatch",
    "gather_context",
]
