"""Build a notification from an assistant event and fan it out to channels."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional, Sequence

import structlog

from telemirror.core.models import (
    Conversation,
    DispatchReport,
    DispatchResult,
    Notification,
    NotificationMetadata,
    NotificationType,
)
from telemirror.core.pane_reader import read_pane_conversation
from telemirror.core.transcript import extract_last_turn

from .channels import NotificationChannel

logger = structlog.get_logger(__name__)

_TITLES = {
    NotificationType.COMPLETED: "Claude Task Completed",
    NotificationType.WAITING: "Claude Waiting for Input",
}
_MESSAGES = {
    NotificationType.COMPLETED: "Claude has completed a task",
    NotificationType.WAITING: "Claude is waiting for input",
}


async def gather_context(transcript_path: Optional[str], tmux_session: Optional[str]) -> Conversation:
    """Best-effort conversation context: transcript, then live pane, then nothing."""
    conversation = extract_last_turn(transcript_path)
    if conversation is not None and not conversation.is_empty:
        return conversation

    if tmux_session:
        try:
            pane_conversation = await read_pane_conversation(tmux_session)
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.warning("Pane sampling failed", session=tmux_session, error=str(e))
            pane_conversation = None
        if pane_conversation is not None:
            return pane_conversation

    logger.debug("No conversation context available", transcript=transcript_path, session=tmux_session)
    return Conversation()


def build_notification(
    notification_type: NotificationType,
    cwd: str,
    context: Optional[Conversation] = None,
    tmux_session: Optional[str] = None,
) -> Notification:
    """Assemble the immutable notification for one hook event.

    Without any conversation context the generic status message stands in
    for the response, so every channel still has something to show.
    """
    conversation = context or Conversation()
    message = _MESSAGES[notification_type]
    return Notification(
        type=notification_type,
        title=_TITLES[notification_type],
        message=message,
        project=Path(cwd).name or cwd,
        metadata=NotificationMetadata(
            user_question=conversation.user_question or None,
            claude_response=conversation.claude_response or (message if conversation.is_empty else None),
            tmux_session=tmux_session,
        ),
    )


async def _send_one(channel: NotificationChannel, notification: Notification) -> DispatchResult:
    try:
        success = await channel.send(notification)
    except Exception as e:  # pylint: disable=broad-exception-caught
        logger.error("Notification channel error", channel=channel.name, error=str(e))
        return DispatchResult(name=channel.name, success=False, error=str(e))
    return DispatchResult(name=channel.name, success=bool(success))


async def dispatch(notification: Notification, channels: Sequence[NotificationChannel]) -> DispatchReport:
    """Send to every channel concurrently; one channel failing never affects another."""
    results = await asyncio.gather(*(_send_one(channel, notification) for channel in channels))
    report = DispatchReport(results=tuple(results))
    logger.info(
        "Notification dispatched",
        type=notification.type.value,
        successful=report.successful,
        total=report.total,
    )
    return report
