"""Global configuration management.

Configuration is read once per process:
    from telemirror.config import load_config
    config = load_config()

Sources, lowest precedence first:
1. Environment variables (optionally loaded from `.env`), which is how the
   Claude Code hooks are normally configured.
2. `config.yml` (or `TELEMIRROR_CONFIG_PATH`), with `${VAR}` expansion.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import structlog
import yaml
from dotenv import load_dotenv

from telemirror.constants import (
    DEFAULT_BOT_USERNAME,
    DEFAULT_TMUX_SESSION,
    DEFAULT_WEBHOOK_HOST,
    DEFAULT_WEBHOOK_PORT,
    MESSAGE_DELAY_S,
    TOKEN_SESSION_TTL_S,
)
from telemirror.utils import expand_env_vars, parse_bool, split_csv

logger = structlog.get_logger(__name__)

# Project root (relative to this file)
_project_root = Path(__file__).parent.parent.parent

ROUTING_MODES = ("mirror", "token")


@dataclass(frozen=True)
class TelegramConfig:
    # pylint: disable=too-many-instance-attributes  # Config classes naturally have many fields
    enabled: bool
    bot_token: Optional[str]
    chat_id: Optional[str]
    group_id: Optional[str]
    whitelist: list[str] = field(default_factory=list)
    force_ipv4: bool = False
    bot_username: str = DEFAULT_BOT_USERNAME
    message_delay: float = MESSAGE_DELAY_S

    @property
    def destination(self) -> Optional[str]:
        """Chat that receives outbound notifications (group wins over private chat)."""
        return self.group_id or self.chat_id

    @property
    def home_chat_id(self) -> Optional[str]:
        """Chat authorized when no whitelist is configured."""
        return self.chat_id or self.group_id

    @property
    def is_configured(self) -> bool:
        return bool(self.bot_token and self.destination)


@dataclass(frozen=True)
class MirrorConfig:
    mode: str
    default_session: str
    sessions_dir: str
    session_ttl: int = TOKEN_SESSION_TTL_S


@dataclass(frozen=True)
class EmailConfig:
    # pylint: disable=too-many-instance-attributes
    enabled: bool
    host: Optional[str]
    port: int
    secure: bool
    user: Optional[str]
    password: Optional[str]
    from_address: Optional[str]
    from_name: str
    to: Optional[str]

    @property
    def is_configured(self) -> bool:
        return bool(self.host and self.user and self.to)


@dataclass(frozen=True)
class DesktopConfig:
    enabled: bool
    completed_sound: str
    waiting_sound: str


@dataclass(frozen=True)
class WebhookConfig:
    host: str
    port: int
    public_url: Optional[str] = None


@dataclass(frozen=True)
class Config:
    telegram: TelegramConfig
    mirror: MirrorConfig
    email: EmailConfig
    desktop: DesktopConfig
    webhook: WebhookConfig


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _default_config() -> dict[str, object]:  # guard: loose-dict - YAML configuration structure
    """Default configuration values, seeded from the environment."""
    return {
        "telegram": {
            "enabled": _env("TELEGRAM_ENABLED", "false"),
            "bot_token": _env("TELEGRAM_BOT_TOKEN"),
            "chat_id": _env("TELEGRAM_CHAT_ID"),
            "group_id": _env("TELEGRAM_GROUP_ID"),
            "whitelist": _env("TELEGRAM_WHITELIST", ""),
            "force_ipv4": _env("TELEGRAM_FORCE_IPV4", "false"),
            "bot_username": _env("TELEGRAM_BOT_USERNAME", DEFAULT_BOT_USERNAME),
            "message_delay": MESSAGE_DELAY_S,
        },
        "mirror": {
            "mode": "mirror" if parse_bool(_env("MIRROR_MODE"), default=True) else "token",
            "default_session": _env("TMUX_SESSION", DEFAULT_TMUX_SESSION),
            "sessions_dir": _env("TELEMIRROR_SESSIONS_DIR", str(_project_root / "data" / "sessions")),
            "session_ttl": TOKEN_SESSION_TTL_S,
        },
        "email": {
            "enabled": _env("EMAIL_ENABLED", "false"),
            "host": _env("SMTP_HOST"),
            "port": _env("SMTP_PORT", "587"),
            "secure": _env("SMTP_SECURE", "false"),
            "user": _env("SMTP_USER"),
            "password": _env("SMTP_PASS"),
            "from_address": _env("EMAIL_FROM"),
            "from_name": _env("EMAIL_FROM_NAME", "Claude Code Remote"),
            "to": _env("EMAIL_TO"),
        },
        "desktop": {
            "enabled": _env("DESKTOP_ENABLED", "true"),
            "completed_sound": "Glass",
            "waiting_sound": "Tink",
        },
        "webhook": {
            "host": _env("WEBHOOK_HOST", DEFAULT_WEBHOOK_HOST),
            "port": _env("WEBHOOK_PORT", str(DEFAULT_WEBHOOK_PORT)),
            "public_url": _env("WEBHOOK_URL"),
        },
    }


def _deep_merge(base: dict[str, object], override: dict[str, object]) -> dict[str, object]:  # guard: loose-dict - YAML config merge
    """Deep merge override dict into base dict.

    Args:
        base: Base dictionary with defaults
        override: Dictionary with overrides from user config

    Returns:
        Merged dictionary
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)  # type: ignore[arg-type]
        else:
            result[key] = value
    return result


def _optional_str(value: object) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _build_config(raw: dict[str, Any]) -> Config:  # guard: loose-dict - YAML deserialization input
    tg_raw = raw["telegram"]
    mirror_raw = raw["mirror"]
    email_raw = raw["email"]
    desktop_raw = raw["desktop"]
    webhook_raw = raw["webhook"]

    mode = str(mirror_raw["mode"]).strip().lower()
    if mode not in ROUTING_MODES:
        raise ValueError(f"Invalid mirror.mode: {mode!r}. Expected one of: {', '.join(ROUTING_MODES)}")

    return Config(
        telegram=TelegramConfig(
            enabled=parse_bool(tg_raw["enabled"]),
            bot_token=_optional_str(tg_raw["bot_token"]),
            chat_id=_optional_str(tg_raw["chat_id"]),
            group_id=_optional_str(tg_raw["group_id"]),
            whitelist=split_csv(tg_raw["whitelist"]),
            force_ipv4=parse_bool(tg_raw["force_ipv4"]),
            bot_username=str(tg_raw["bot_username"] or DEFAULT_BOT_USERNAME),
            message_delay=float(tg_raw["message_delay"]),
        ),
        mirror=MirrorConfig(
            mode=mode,
            default_session=str(mirror_raw["default_session"]),
            sessions_dir=str(Path(str(mirror_raw["sessions_dir"])).expanduser()),
            session_ttl=int(mirror_raw["session_ttl"]),
        ),
        email=EmailConfig(
            enabled=parse_bool(email_raw["enabled"]),
            host=_optional_str(email_raw["host"]),
            port=int(email_raw["port"]),
            secure=parse_bool(email_raw["secure"]),
            user=_optional_str(email_raw["user"]),
            password=_optional_str(email_raw["password"]),
            from_address=_optional_str(email_raw["from_address"]),
            from_name=str(email_raw["from_name"]),
            to=_optional_str(email_raw["to"]),
        ),
        desktop=DesktopConfig(
            enabled=parse_bool(desktop_raw["enabled"], default=True),
            completed_sound=str(desktop_raw["completed_sound"]),
            waiting_sound=str(desktop_raw["waiting_sound"]),
        ),
        webhook=WebhookConfig(
            host=str(webhook_raw["host"]),
            port=int(webhook_raw["port"]),
            public_url=_optional_str(webhook_raw.get("public_url")),
        ),
    )


def _resolve_path(env_name: str, default_name: str, explicit: Optional[Path]) -> Path:
    if explicit is not None:
        return explicit.expanduser()
    env_path = os.getenv(env_name)
    path = Path(env_path).expanduser() if env_path else _project_root / default_name
    if not path.is_absolute():
        path = (_project_root / path).resolve()
    return path


def load_config(config_path: Optional[Path] = None, env_path: Optional[Path] = None) -> Config:
    """Load configuration from `.env`, the environment and an optional YAML file.

    Args:
        config_path: YAML file; defaults to `TELEMIRROR_CONFIG_PATH` or `<root>/config.yml`.
        env_path: dotenv file; defaults to `TELEMIRROR_ENV_PATH` or `<root>/.env`.

    Returns:
        The typed configuration.
    """
    dotenv_path = _resolve_path("TELEMIRROR_ENV_PATH", ".env", env_path)
    if dotenv_path.exists():
        load_dotenv(dotenv_path)

    user_config: dict[str, object] = {}
    yaml_path = _resolve_path("TELEMIRROR_CONFIG_PATH", "config.yml", config_path)
    if yaml_path.exists():
        with open(yaml_path, encoding="utf-8") as f:
            raw_user_config = yaml.safe_load(f)
        if isinstance(raw_user_config, dict):
            user_config = expand_env_vars(raw_user_config)  # type: ignore[assignment]
        elif raw_user_config is not None:
            logger.warning("Ignoring non-mapping config file", path=str(yaml_path))

    merged = _deep_merge(_default_config(), user_config)
    return _build_config(merged)


__all__ = [
    "Config",
    "DesktopConfig",
    "EmailConfig",
    "MirrorConfig",
    "TelegramConfig",
    "WebhookConfig",
    "load_config",
]
