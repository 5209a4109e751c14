"""Inbound Telegram webhook: update models, routers and the HTTP server."""

from .routing import AuthorizationPolicy, BaseRouter, MirrorRouter, RoutingMode, TokenRouter, build_router
from .server import WebhookServer, create_server

__all__ = [
    "AuthorizationPolicy",
    "BaseRouter",
    "MirrorRouter",
    "RoutingMode",
    "TokenRouter",
    "WebhookServer",
    "build_router",
    "create_server",
]
