"""Utility functions for telemirror."""

import os
import re

_ANSI_PATTERN = re.compile(
    r"\x1b"  # ESC
    r"(?:"
    r"\[[0-9;?]*[a-zA-Z]"  # CSI sequences (ESC[...m, ESC[...H, etc.)
    r"|"
    r"\][^\x07\x1b]*(?:\x07|\x1b\\)"  # OSC sequences (ESC]...BEL or ESC]...ST)
    r"|"
    r"[=>]"  # Simple sequences (ESC=, ESC>)
    r")"
)

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


def expand_env_vars(config: object) -> object:
    """Recursively expand environment variables in config.

    Replaces ${VAR} patterns with environment variable values.

    Args:
        config: Configuration object (dict, list, str, or primitive)

    Returns:
        Configuration with all ${VAR} patterns replaced
    """
    if isinstance(config, dict):
        return {k: expand_env_vars(v) for k, v in config.items()}  # type: ignore[misc]
    if isinstance(config, list):
        return [expand_env_vars(item) for item in config]
    if isinstance(config, str):

        def replace_env_var(match: re.Match[str]) -> str:
            env_var = match.group(1)
            return os.getenv(env_var, match.group(0))

        return re.sub(r"\$\{([^}]+)\}", replace_env_var, config)
    return config


def parse_bool(value: object, default: bool = False) -> bool:
    """Interpret env-style booleans ("true", "1", "yes", "on")."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if not text:
        return default
    return text in _TRUE_VALUES


def split_csv(value: object) -> list[str]:
    """Split a comma-separated string (or pass through a list) into trimmed items."""
    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        items = [str(item) for item in value]
    else:
        items = str(value).split(",")
    return [item.strip() for item in items if item is not None and str(item).strip()]


def strip_ansi_codes(text: str) -> str:
    """Strip ANSI escape codes from text.

    Args:
        text: Text with ANSI escape codes

    Returns:
        Text with ANSI codes removed
    """
    return _ANSI_PATTERN.sub("", text)


def truncate(text: str, max_chars: int, suffix: str = "...") -> str:
    """Cut text to max_chars, appending suffix only when something was removed."""
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + suffix


def utf16_len(text: str) -> int:
    """Length as Telegram counts it: UTF-16 code units, so astral characters count twice."""
    return len(text.encode("utf-16-le")) // 2
