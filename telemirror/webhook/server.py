"""HTTP front door for Telegram webhooks.

`WebhookServer` owns the FastAPI app, the Telegram client used for replies and
the router. Handling is sequential per request; Telegram retries on non-2xx.
"""

from __future__ import annotations

import json
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from telemirror.config import Config
from telemirror.constants import SERVICE_NAME, WEBHOOK_PATH
from telemirror.core.injector import TerminalInjector
from telemirror.core.token_sessions import TokenSessionStore
from telemirror.telegram.client import TelegramClient

from .models import TelegramUpdate
from .routing import AuthorizationPolicy, BaseRouter, RoutingMode, build_router

logger = structlog.get_logger(__name__)


class WebhookServer:
    """FastAPI app exposing the Telegram webhook and a health check."""

    def __init__(self, router: BaseRouter, client: Optional[TelegramClient] = None) -> None:
        self.router = router
        self.client = client
        self.server: uvicorn.Server | None = None
        self.app = FastAPI(title="telemirror", docs_url=None, redoc_url=None, lifespan=self._lifespan)
        self._setup_routes()

    def _setup_routes(self) -> None:
        @self.app.post(WEBHOOK_PATH)
        async def telegram_webhook(request: Request) -> PlainTextResponse:  # pyright: ignore
            """Receive one Telegram update."""
            try:
                payload = await request.json()
                update = TelegramUpdate.model_validate(payload)
            except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as e:
                logger.warning("Rejected webhook body", error=str(e))
                return PlainTextResponse("Bad Request", status_code=400)

            inbound = update.to_inbound()
            if inbound is None:
                return PlainTextResponse("OK")

            try:
                await self.router.handle(inbound)
            except Exception as e:  # pylint: disable=broad-exception-caught
                logger.error("Webhook handling error", error=str(e), exc_info=True)
                return PlainTextResponse("Internal Server Error", status_code=500)

            return PlainTextResponse("OK")

        @self.app.get("/health")
        async def health() -> dict[str, str]:  # pyright: ignore
            """Health check endpoint."""
            return {"status": "ok", "service": SERVICE_NAME}

    @asynccontextmanager
    async def _lifespan(self, _app: FastAPI) -> AsyncIterator[None]:
        yield
        await self.aclose()

    async def aclose(self) -> None:
        if self.client is not None:
            await self.client.aclose()

    async def serve(self, host: str, port: int) -> None:
        """Run uvicorn until it is told to stop."""
        config = uvicorn.Config(self.app, host=host, port=port, log_level="warning")
        self.server = uvicorn.Server(config)
        logger.info("Telegram webhook server starting", host=host, port=port, mode=self.router.mode.value)
        await self.server.serve()


def create_server(config: Config) -> WebhookServer:
    """Wire client, injector and router from configuration.

    Raises:
        ValueError: If the bot token is missing.
    """
    tg = config.telegram
    if not tg.bot_token:
        raise ValueError("TELEGRAM_BOT_TOKEN is required to run the webhook server")

    client = TelegramClient(
        tg.bot_token,
        force_ipv4=tg.force_ipv4,
        message_delay=tg.message_delay,
        fallback_username=tg.bot_username,
    )
    policy = AuthorizationPolicy(whitelist=frozenset(tg.whitelist), home_chat_id=tg.home_chat_id)
    injector = TerminalInjector(default_session=config.mirror.default_session)

    mode = RoutingMode(config.mirror.mode)
    store = None
    if mode is RoutingMode.TOKEN:
        store = TokenSessionStore(Path(config.mirror.sessions_dir), ttl=config.mirror.session_ttl)
        purged = store.purge_expired()
        if purged:
            logger.info("Purged expired token sessions", count=purged)

    router = build_router(mode, client, policy, injector, store)
    return WebhookServer(router, client)
