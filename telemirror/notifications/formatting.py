"""Turn notifications into Telegram-ready message strings.

Mirror-mode layout (HTML parse mode):

    chunk 1:   <header>\\n\\n<body 1>
    chunk i>1: (i/total)\\n<body i>

Bodies are consecutive slices of the escaped response, each at most CHUNK_SIZE
UTF-16 units, so joining them in index order and unescaping gives back the
original response.
"""

from __future__ import annotations

import json
import re
from typing import Mapping, Optional

from telemirror.constants import CHUNK_SIZE, QUESTION_PREVIEW_CHARS
from telemirror.core.models import Notification
from telemirror.utils import truncate, utf16_len

_POSITION_MARKER_RE = re.compile(r"^\((\d+)/(\d+)\)\n")

_TOOL_ICONS = {
    "Bash": "💻",
    "Read": "📖",
    "Write": "✏️",
    "Edit": "📝",
    "Grep": "🔍",
    "Glob": "📂",
    "Task": "🤖",
    "WebSearch": "🌐",
    "WebFetch": "🌐",
}
_DEFAULT_TOOL_ICON = "🔧"
TOOL_SUMMARY_CHARS = 300
TOOL_RESULT_CHARS = 500


def escape_html(text: str) -> str:
    """Escape the characters Telegram's HTML parse mode treats as markup."""
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def unescape_html(text: str) -> str:
    """Inverse of `escape_html`."""
    return text.replace("&lt;", "<").replace("&gt;", ">").replace("&amp;", "&")


def status_glyph(notification: Notification) -> str:
    return "✅" if notification.is_completed else "⏳"


def build_header(notification: Notification) -> str:
    """Status glyph, project name and, when known, a preview of the question."""
    header = f"{status_glyph(notification)} {escape_html(notification.project)}"
    question = notification.metadata.user_question or ""
    if question:
        header += f"\n\n<b>Q:</b> {escape_html(truncate(question, QUESTION_PREVIEW_CHARS))}"
    return header


def split_chunks(text: str, size: int = CHUNK_SIZE) -> list[str]:
    """Slice text into consecutive pieces of at most `size` UTF-16 units.

    Telegram measures message length in UTF-16 code units, so an astral
    character (most emoji) weighs two. Code points are never split.
    """
    if size < 1:
        raise ValueError(f"Chunk size must be positive, got {size}")

    chunks: list[str] = []
    start = 0
    units = 0
    for index, char in enumerate(text):
        width = utf16_len(char)
        if units + width > size and index > start:
            chunks.append(text[start:index])
            start = index
            units = 0
        units += width
    if start < len(text):
        chunks.append(text[start:])
    return chunks


def format_mirror_messages(notification: Notification, chunk_size: int = CHUNK_SIZE) -> list[str]:
    """Build the ordered message sequence for one notification."""
    header = build_header(notification)
    response = notification.metadata.claude_response or ""
    if not response:
        return [header]

    bodies = split_chunks(escape_html(response), chunk_size)
    total = len(bodies)
    messages = [f"{header}\n\n{bodies[0]}"]
    for index, body in enumerate(bodies[1:], start=2):
        messages.append(f"({index}/{total})\n{body}")
    return messages


def strip_position_marker(chunk: str) -> str:
    """Drop a leading `(i/total)` line, if present."""
    return _POSITION_MARKER_RE.sub("", chunk, count=1)


def reassemble(messages: list[str], header: str) -> str:
    """Recover the escaped response body from a mirror-mode message sequence.

    Args:
        messages: Output of `format_mirror_messages`, in any order.
        header: The header the sequence was built with.
    """
    if not messages:
        return ""

    def _position(message: str) -> int:
        match = _POSITION_MARKER_RE.match(message)
        return int(match.group(1)) if match else 1

    ordered = sorted(messages, key=_position)
    first = ordered[0]
    prefix = f"{header}\n\n"
    body = first[len(prefix) :] if first.startswith(prefix) else ""
    return body + "".join(strip_position_marker(message) for message in ordered[1:])


def format_token_message(notification: Notification, token: str) -> str:
    """Legacy token-mode summary (Markdown) with reply instructions."""
    status = "Completed" if notification.is_completed else "Waiting for Input"
    text = f"{status_glyph(notification)} *Claude Task {status}*\n"
    text += f"*Project:* {notification.project}\n"
    text += f"*Session Token:* `{token}`\n\n"

    question = notification.metadata.user_question
    if question:
        text += f"📝 *Your Question:*\n{truncate(question, 200)}\n\n"

    response = notification.metadata.claude_response
    if response:
        text += f"🤖 *Claude Response:*\n{truncate(response, 300)}\n\n"

    text += "💬 *To send a new command:*\n"
    text += f"Reply with: `/cmd {token} <your command>`\n"
    text += f"Example: `/cmd {token} Please analyze this code`"
    return text


def token_keyboard(token: str) -> dict[str, object]:
    """Inline keyboard attached to token-mode notifications."""
    return {
        "inline_keyboard": [
            [
                {"text": "📝 Personal Chat", "callback_data": f"personal:{token}"},
                {"text": "👥 Group Chat", "callback_data": f"group:{token}"},
            ]
        ]
    }


def _tool_summary(tool_name: str, tool_input: Mapping[str, object]) -> str:
    if tool_name == "Bash":
        return str(tool_input.get("command") or "")
    if tool_name in ("Read", "Write", "Edit"):
        return str(tool_input.get("file_path") or "")
    if tool_name == "Grep":
        return f'"{tool_input.get("pattern") or ""}" {tool_input.get("path") or ""}'
    if tool_name == "Glob":
        return str(tool_input.get("pattern") or "")
    if tool_name == "Task":
        return str(tool_input.get("description") or "")
    if tool_name == "WebSearch":
        return str(tool_input.get("query") or "")
    if tool_name == "WebFetch":
        return str(tool_input.get("url") or "")
    return json.dumps(dict(tool_input), ensure_ascii=False)[:200]


def _tool_result(tool_name: str, tool_response: Mapping[str, object]) -> str:
    if tool_name == "Bash":
        stdout = tool_response.get("stdout") or tool_response.get("output") or ""
        return truncate(str(stdout), TOOL_RESULT_CHARS) if stdout else ""
    if tool_name == "Grep":
        matches = tool_response.get("match_count") or tool_response.get("numMatches")
        return f"{matches} matches" if matches else ""
    return ""


def format_tool_message(
    tool_name: Optional[str],
    tool_input: Optional[Mapping[str, object]] = None,
    tool_response: Optional[Mapping[str, object]] = None,
) -> str:
    """HTML line describing one tool call, for the PostToolUse hook."""
    name = tool_name or "Unknown"
    summary = truncate(_tool_summary(name, tool_input or {}), TOOL_SUMMARY_CHARS)
    result = _tool_result(name, tool_response or {})

    message = f"{_TOOL_ICONS.get(name, _DEFAULT_TOOL_ICON)} <b>{escape_html(name)}</b>\n{escape_html(summary)}"
    if result:
        message += f"\n<pre>{escape_html(result)}</pre>"
    return message
