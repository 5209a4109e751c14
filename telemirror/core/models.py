"""Data models shared by the notification and webhook paths."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class NotificationType(str, Enum):
    """Assistant lifecycle moments that trigger a notification."""

    COMPLETED = "completed"
    WAITING = "waiting"

    @classmethod
    def parse(cls, value: Optional[str]) -> "NotificationType":
        """Map a hook argument to a type; anything unknown counts as completed."""
        if value and value.strip().lower() == cls.WAITING.value:
            return cls.WAITING
        return cls.COMPLETED


@dataclass(frozen=True)
class Conversation:
    """Latest question/answer pair pulled from a transcript or a pane."""

    user_question: str = ""
    claude_response: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.user_question and not self.claude_response


@dataclass(frozen=True)
class NotificationMetadata:
    user_question: Optional[str] = None
    claude_response: Optional[str] = None
    tmux_session: Optional[str] = None


@dataclass(frozen=True)
class Notification:
    """One assistant event, fanned out unchanged to every enabled channel."""

    type: NotificationType
    title: str
    message: str
    project: str
    metadata: NotificationMetadata = field(default_factory=NotificationMetadata)

    @property
    def is_completed(self) -> bool:
        return self.type is NotificationType.COMPLETED


@dataclass(frozen=True)
class InboundUpdate:
    """A single chat update reduced to what routing needs.

    Message updates carry `text`; callback updates carry `callback_id` and
    `callback_data`.
    """

    chat_id: str
    user_id: Optional[str] = None
    text: str = ""
    callback_id: Optional[str] = None
    callback_data: Optional[str] = None

    @property
    def is_callback(self) -> bool:
        return self.callback_id is not None


@dataclass(frozen=True)
class DispatchResult:
    name: str
    success: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class DispatchReport:
    results: tuple[DispatchResult, ...] = ()

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def successful(self) -> int:
        return sum(1 for result in self.results if result.success)

    @property
    def ok(self) -> bool:
        """At least one channel delivered."""
        return self.successful > 0
