"""telemirror command line.

    telemirror serve [--host HOST] [--port PORT]
    telemirror set-webhook URL
    telemirror notify [completed|waiting]
    telemirror tool
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Optional

import structlog

from telemirror import __version__
from telemirror.config import Config, load_config
from telemirror.constants import MAIN_MODULE, WEBHOOK_PATH
from telemirror.core.errors import TelegramAPIError
from telemirror.logging_config import setup_logging
from telemirror.telegram.client import TelegramClient

logger = structlog.get_logger(__name__)


def _webhook_url(base_or_full: str) -> str:
    """Accept either the public base URL or the full webhook URL."""
    url = base_or_full.rstrip("/")
    return url if url.endswith(WEBHOOK_PATH) else f"{url}{WEBHOOK_PATH}"


def _cmd_serve(args: argparse.Namespace, config: Config) -> int:
    from telemirror.webhook.server import create_server

    host = args.host or config.webhook.host
    port = args.port or config.webhook.port
    try:
        server = create_server(config)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    async def _run() -> None:
        if config.webhook.public_url and server.client is not None:
            try:
                await server.client.set_webhook(_webhook_url(config.webhook.public_url))
            except TelegramAPIError as e:
                logger.error("Failed to set webhook", error=str(e))
        await server.serve(host, port)

    asyncio.run(_run())
    return 0


def _cmd_set_webhook(args: argparse.Namespace, config: Config) -> int:
    if not config.telegram.bot_token:
        print("Error: TELEGRAM_BOT_TOKEN is not set", file=sys.stderr)
        return 1

    async def _run() -> None:
        async with TelegramClient(config.telegram.bot_token, force_ipv4=config.telegram.force_ipv4) as client:
            await client.set_webhook(_webhook_url(args.url))

    try:
        asyncio.run(_run())
    except TelegramAPIError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(f"Webhook set: {_webhook_url(args.url)}")
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="telemirror", description="Mirror Claude Code sessions to Telegram.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", default=None, help="Override TELEMIRROR_LOG_LEVEL.")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the Telegram webhook server.")
    serve.add_argument("--host", default=None, help="Bind address (default from WEBHOOK_HOST).")
    serve.add_argument("--port", type=int, default=None, help="Bind port (default from WEBHOOK_PORT).")

    set_webhook = sub.add_parser("set-webhook", help="Register the webhook URL with Telegram.")
    set_webhook.add_argument("url", help="Public base URL or full webhook URL.")

    notify = sub.add_parser("notify", help="Run the Stop/Notification hook.")
    notify.add_argument("type", nargs="?", default="completed", help="completed (default) or waiting.")

    sub.add_parser("tool", help="Run the PostToolUse hook.")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    setup_logging(args.log_level)

    if args.command == "notify":
        from telemirror.hooks import notify

        return notify.main([args.type])
    if args.command == "tool":
        from telemirror.hooks import tool

        return tool.main([])

    config = load_config()
    if args.command == "serve":
        return _cmd_serve(args, config)
    return _cmd_set_webhook(args, config)


if __name__ == MAIN_MODULE:
    raise SystemExit(main())
