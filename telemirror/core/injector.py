"""Type chat commands into the mirrored tmux session."""

from __future__ import annotations

import asyncio
import string
from typing import Optional

import structlog

from telemirror.constants import DEFAULT_TMUX_SESSION, INJECT_SUBMIT_DELAY_S
from telemirror.core import tmux_bridge
from telemirror.core.errors import InjectionError

logger = structlog.get_logger(__name__)

_SPECIAL_CHARS = frozenset(set(string.punctuation) - {"/"})
_BRACKETED_PASTE_START = "\x1b[200~"
_BRACKETED_PASTE_END = "\x1b[201~"


def wrap_bracketed_paste(text: str) -> str:
    """Wrap text in bracketed-paste markers unless it is a bare slash command.

    Inside a bracketed paste the TUI treats newlines as content, so a
    multi-line payload is only submitted by the separate Enter.
    """
    if not text:
        return text
    stripped = text.lstrip()
    if stripped.startswith("/") and "\n" not in text:
        first_word = stripped.split()[0]
        # Single slash = command (/help), multiple slashes = path (/Users/...)
        if first_word.count("/") == 1:
            return text
    if "\n" in text or any(char in _SPECIAL_CHARS for char in text):
        return f"{_BRACKETED_PASTE_START}{text}{_BRACKETED_PASTE_END}"
    return text


class TerminalInjector:
    """Deliver text to a tmux pane as if typed, then submit it.

    At-most-once: nothing is retried, and every failure is raised as
    `InjectionError` for the caller to report.
    """

    def __init__(self, default_session: str = DEFAULT_TMUX_SESSION, submit_delay: float = INJECT_SUBMIT_DELAY_S):
        self.default_session = default_session
        self.submit_delay = submit_delay

    async def inject(self, command: str, session_name: Optional[str] = None) -> None:
        """Type `command` into `session_name` (default session if omitted) and press Enter.

        Raises:
            InjectionError: tmux missing, session missing, tmux timeout or tmux refusal.
        """
        target = session_name or self.default_session
        try:
            await self._inject(command, target)
        except InjectionError:
            raise
        except FileNotFoundError as exc:
            raise InjectionError("tmux is not available", target) from exc
        except tmux_bridge.SubprocessTimeoutError as exc:
            raise InjectionError(f"tmux did not respond: {exc}", target) from exc
        except OSError as exc:
            raise InjectionError(f"tmux failed: {exc}", target) from exc

        logger.info("Command injected", session=target, preview=command[:80])

    async def _inject(self, command: str, target: str) -> None:
        if not tmux_bridge.is_available():
            raise InjectionError("tmux is not available", target)

        if not await tmux_bridge.session_exists(target):
            raise InjectionError(f"tmux session '{target}' not found", target)

        if not await tmux_bridge.send_literal(target, wrap_bracketed_paste(command)):
            raise InjectionError(f"Failed to type into tmux session '{target}'", target)

        # Enter goes separately so a TUI never sees it as part of the paste
        await asyncio.sleep(self.submit_delay)

        if not await tmux_bridge.send_enter(target):
            raise InjectionError(f"Failed to submit command in tmux session '{target}'", target)
