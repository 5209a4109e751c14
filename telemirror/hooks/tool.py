"""PostToolUse hook: post a one-line summary of each tool call, silently.

Never fails the hook. Claude Code must not be blocked by a chat outage.
"""

from __future__ import annotations

import asyncio
from typing import Mapping, Optional

import structlog

from telemirror.config import Config, load_config
from telemirror.constants import MAIN_MODULE
from telemirror.core.errors import TelegramAPIError
from telemirror.logging_config import setup_logging
from telemirror.notifications.formatting import format_tool_message
from telemirror.telegram.client import TelegramClient

from .payload import HookPayload, payload_str, read_hook_input

logger = structlog.get_logger(__name__)


def _mapping(value: object) -> Mapping[str, object]:
    return value if isinstance(value, Mapping) else {}


async def post_tool_call(payload: HookPayload, config: Config, client: Optional[TelegramClient] = None) -> bool:
    """Send the tool summary. Returns False when skipped or undeliverable."""
    tg = config.telegram
    tool_name = payload_str(payload, "tool_name")
    if not tool_name or not tg.is_configured:
        return False

    text = format_tool_message(tool_name, _mapping(payload.get("tool_input")), _mapping(payload.get("tool_response")))

    owned = client is None
    if client is None:
        client = TelegramClient(tg.bot_token or "", force_ipv4=tg.force_ipv4)
    try:
        await client.send_with_fallback(tg.destination or "", text, parse_mode="HTML", disable_notification=True)
    except TelegramAPIError as e:
        logger.debug("Tool notification not delivered", tool=tool_name, error=str(e))
        return False
    finally:
        if owned:
            await client.aclose()
    return True


def main(argv: Optional[list[str]] = None) -> int:  # pylint: disable=unused-argument
    setup_logging()
    try:
        asyncio.run(post_tool_call(read_hook_input(), load_config()))
    except Exception as e:  # pylint: disable=broad-exception-caught
        logger.debug("Tool hook failed", error=str(e))
    return 0


if __name__ == MAIN_MODULE:
    raise SystemExit(main())
