"""Stop / Notification hook: tell every enabled channel that Claude is done or waiting.

Usage (from Claude Code hook settings)::

    telemirror-notify completed
    telemirror-notify waiting
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from typing import Optional

import structlog

from telemirror.config import Config, load_config
from telemirror.constants import MAIN_MODULE
from telemirror.core import tmux_bridge
from telemirror.core.models import DispatchReport, NotificationType
from telemirror.logging_config import setup_logging
from telemirror.notifications import build_channels, build_notification, dispatch, gather_context

from .payload import HookPayload, payload_str, read_hook_input

logger = structlog.get_logger(__name__)


async def resolve_tmux_session(default_session: str) -> str:
    """The tmux session this hook runs inside, else `default_session`."""
    current = await tmux_bridge.current_session_name("#{session_name}:#{window_name}")
    return current or default_session


async def run_notify(notification_type: NotificationType, payload: HookPayload, config: Config) -> DispatchReport:
    cwd = payload_str(payload, "cwd") or os.getcwd()
    tmux_session = await resolve_tmux_session(config.mirror.default_session)
    context = await gather_context(payload_str(payload, "transcript_path"), tmux_session)

    notification = build_notification(notification_type, cwd, context, tmux_session)
    channels = build_channels(config)
    if not channels:
        logger.warning("No notification channels enabled")
    return await dispatch(notification, channels)


def _parse_args(argv: Optional[list[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Send a Claude Code notification to all enabled channels.")
    parser.add_argument(
        "type",
        nargs="?",
        default=NotificationType.COMPLETED.value,
        help="Notification type: completed (default) or waiting.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    args = _parse_args(argv)
    setup_logging()

    try:
        payload = read_hook_input()
        config = load_config()
        report = asyncio.run(run_notify(NotificationType.parse(args.type), payload, config))
    except Exception as e:  # pylint: disable=broad-exception-caught
        logger.error("Hook notification error", error=str(e), exc_info=True)
        print(f"Hook notification error: {e}", file=sys.stderr)
        return 1

    if report.ok:
        print(f"Notifications sent via {report.successful}/{report.total} channels")
        return 0

    print("All notification channels failed", file=sys.stderr)
    return 1


if __name__ == MAIN_MODULE:
    raise SystemExit(main())
