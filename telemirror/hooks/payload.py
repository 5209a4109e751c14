"""Hook payload reading shared by the hook entrypoints."""

from __future__ import annotations

import json
import sys
import threading
from typing import TextIO

import structlog

from telemirror.constants import HOOK_STDIN_TIMEOUT_S

logger = structlog.get_logger(__name__)

HookPayload = dict[str, object]  # guard: loose-dict - Raw stdin JSON payload at process boundary


def _read_with_deadline(stream: TextIO, timeout: float) -> str | None:
    """Read the whole stream, or None when it stays open past `timeout`.

    The reader is a daemon thread so an abandoned read never holds up exit.
    """
    chunks: list[str] = []

    def _reader() -> None:
        try:
            chunks.append(stream.read())
        except (OSError, ValueError) as e:
            logger.warning("Could not read hook payload", error=str(e))

    reader = threading.Thread(target=_reader, name="hook-stdin", daemon=True)
    reader.start()
    reader.join(timeout)
    if reader.is_alive():
        logger.warning("Timed out waiting for hook payload", timeout=timeout)
        return None
    return chunks[0] if chunks else ""


def read_hook_input(stream: TextIO | None = None, timeout: float = HOOK_STDIN_TIMEOUT_S) -> HookPayload:
    """Parse the hook JSON from stdin.

    An interactive terminal, a stream still open after `timeout` seconds, an
    empty body, invalid JSON or a non-object all yield `{}`; hooks must keep
    going without a payload.
    """
    stream = stream if stream is not None else sys.stdin
    if stream.isatty():
        return {}

    raw = _read_with_deadline(stream, timeout)
    if raw is None or not raw.strip():
        return {}

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning("Invalid hook payload JSON", error=str(e))
        return {}

    if not isinstance(parsed, dict):
        logger.warning("Hook payload is not a JSON object", kind=type(parsed).__name__)
        return {}
    return parsed


def payload_str(payload: HookPayload, key: str) -> str | None:
    value = payload.get(key)
    return value if isinstance(value, str) and value else None
