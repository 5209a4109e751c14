"""Local desktop alert channel (macOS Notification Center or libnotify)."""

from __future__ import annotations

import asyncio
import json
import shutil
import sys

import structlog

from telemirror.config import DesktopConfig
from telemirror.core.models import Notification
from telemirror.core.tmux_bridge import SUBPROCESS_TIMEOUT_QUICK, SubprocessTimeoutError, communicate_with_timeout
from telemirror.utils import truncate

logger = structlog.get_logger(__name__)

DESKTOP_BODY_CHARS = 200


def build_command(notification: Notification, config: DesktopConfig, platform: str = sys.platform) -> list[str] | None:
    """Command line that raises the alert on this platform, or None if unsupported."""
    title = notification.title
    body = truncate(" ".join(notification.message.split()), DESKTOP_BODY_CHARS)
    subtitle = notification.project

    if platform == "darwin":
        sound = config.completed_sound if notification.is_completed else config.waiting_sound
        script = (
            f"display notification {json.dumps(body)} with title {json.dumps(title)} "
            f"subtitle {json.dumps(subtitle)} sound name {json.dumps(sound)}"
        )
        return ["osascript", "-e", script]

    if shutil.which("notify-send"):
        return ["notify-send", "--app-name=telemirror", f"{title} ({subtitle})", body]

    return None


class DesktopChannel:
    name = "Desktop"

    def __init__(self, config: DesktopConfig) -> None:
        self.config = config

    async def send(self, notification: Notification) -> bool:
        cmd = build_command(notification, self.config)
        if cmd is None:
            logger.debug("No desktop notifier available", platform=sys.platform)
            return False

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.PIPE
            )
            _, stderr = await communicate_with_timeout(process, None, SUBPROCESS_TIMEOUT_QUICK, cmd[0])
        except (OSError, SubprocessTimeoutError) as e:
            logger.warning("Desktop notification failed", notifier=cmd[0], error=str(e))
            return False

        if process.returncode != 0:
            logger.warning(
                "Desktop notification failed",
                notifier=cmd[0],
                returncode=process.returncode,
                stderr=stderr.decode(errors="replace").strip(),
            )
            return False
        return True
