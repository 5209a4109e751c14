"""Typed failures raised at the bridge's external boundaries."""

from __future__ import annotations

from typing import Optional

# Fragments Telegram uses when it refuses a message's HTML/Markdown entities,
# e.g. "Bad Request: can't parse entities: Unsupported start tag "foo"".
_FORMATTING_ERROR_MARKERS = (
    "parse entities",
    "can't parse",
    "can not parse",
    "unsupported start tag",
    "unclosed start tag",
    "unmatched end tag",
    "can't find end",
    "entity",
)


class InjectionError(RuntimeError):
    """Text could not be typed into the target tmux session."""

    def __init__(self, message: str, session_name: Optional[str] = None) -> None:
        super().__init__(message)
        self.session_name = session_name


class TelegramAPIError(RuntimeError):
    """A Telegram Bot API call failed (HTTP error, `ok: false`, or transport error)."""

    def __init__(self, method: str, description: str, status_code: Optional[int] = None) -> None:
        status = f" (HTTP {status_code})" if status_code is not None else ""
        super().__init__(f"Telegram {method} failed{status}: {description}")
        self.method = method
        self.description = description
        self.status_code = status_code


def is_formatting_rejection(error: BaseException) -> bool:
    """True when Telegram refused the message because of its rich-text markup.

    Any 400 whose description points at entity/markup parsing qualifies, not
    only the literal "can't parse entities" phrase.
    """
    if not isinstance(error, TelegramAPIError):
        return False
    if error.status_code not in (None, 400):
        return False
    description = error.description.lower()
    return any(marker in description for marker in _FORMATTING_ERROR_MARKERS)
