"""Extract the latest turn from a Claude Code JSONL session transcript."""

import json
from pathlib import Path
from typing import Optional

import structlog

from telemirror.constants import TOOL_RESULT_PREVIEW_CHARS
from telemirror.core.models import Conversation
from telemirror.utils import truncate

logger = structlog.get_logger(__name__)

_USER_TYPES = frozenset({"user", "human"})
_TOOL_RESULT_TYPES = frozenset({"tool_result", "tool"})


def extract_last_turn(transcript_path: Optional[str]) -> Optional[Conversation]:
    """Return the last user prompt and everything the assistant did after it.

    The file is scanned backwards for the most recent user entry, then forward
    to the end collecting assistant text, tool-use summaries and abbreviated
    tool results, joined by blank lines.

    Args:
        transcript_path: Path to the session .jsonl file (from the hook payload)

    Returns:
        The conversation, or None when the transcript is missing, unreadable,
        or has no user entry.
    """
    if not transcript_path:
        return None

    path = Path(transcript_path).expanduser()
    if not path.is_file():
        return None

    try:
        raw_lines = path.read_text(encoding="utf-8", errors="replace").strip().splitlines()
    except OSError as e:
        logger.warning("Failed to read transcript", path=str(path), error=str(e))
        return None

    entries = [_parse_line(line) for line in raw_lines]

    last_user_idx = -1
    for idx in range(len(entries) - 1, -1, -1):
        entry = entries[idx]
        if entry is not None and _is_user_prompt(entry):
            last_user_idx = idx
            break

    if last_user_idx == -1:
        return None

    user_question = _user_text(entries[last_user_idx])  # type: ignore[arg-type]

    details: list[str] = []
    for entry in entries[last_user_idx + 1 :]:
        if entry is None:
            continue
        entry_type = entry.get("type")
        if entry_type == "assistant":
            details.extend(_assistant_parts(entry))
        elif entry_type in _TOOL_RESULT_TYPES or entry_type in _USER_TYPES:
            details.extend(_tool_result_parts(entry))

    return Conversation(user_question=user_question, claude_response="\n\n".join(details))


def _is_user_prompt(entry: dict[str, object]) -> bool:
    """User entries holding only tool_result blocks are tool output, not prompts."""
    if entry.get("type") not in _USER_TYPES:
        return False
    content = _message_content(entry)
    if isinstance(content, list) and content:
        return any(
            isinstance(block, str) or (isinstance(block, dict) and block.get("type") != "tool_result")
            for block in content
        )
    return True


def _parse_line(line: str) -> Optional[dict[str, object]]:
    if not line.strip():
        return None
    try:
        parsed = json.loads(line)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def _message_content(entry: dict[str, object]) -> object:
    message = entry.get("message")
    if isinstance(message, dict):
        return message.get("content")
    return None


def _user_text(entry: dict[str, object]) -> str:
    content = _message_content(entry)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        texts: list[str] = []
        for block in content:
            if isinstance(block, str):
                texts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                texts.append(str(block.get("text") or ""))
        return "\n".join(texts)
    return ""


def _assistant_parts(entry: dict[str, object]) -> list[str]:
    content = _message_content(entry)
    if not isinstance(content, list):
        return []

    parts: list[str] = []
    for block in content:
        if not isinstance(block, dict):
            continue
        block_type = block.get("type")
        if block_type == "text" and block.get("text"):
            parts.append(str(block["text"]))
        elif block_type == "tool_use":
            parts.append(summarize_tool_use(str(block.get("name") or "unknown"), block.get("input")))
    return parts


def summarize_tool_use(tool_name: str, tool_input: object) -> str:
    """One-line `[Tool: Name] detail` summary of a tool call."""
    data = tool_input if isinstance(tool_input, dict) else {}
    summary = f"[Tool: {tool_name}]"

    if tool_name == "Bash" and data.get("command"):
        return f"{summary} $ {data['command']}"
    if tool_name in ("Read", "Write", "Edit") and data.get("file_path"):
        return f"{summary} {data['file_path']}"
    if tool_name == "Grep" and data.get("pattern"):
        return f'{summary} "{data["pattern"]}"'
    if tool_name == "Glob" and data.get("pattern"):
        return f"{summary} {data['pattern']}"
    if tool_name == "Task":
        return f"{summary} {data.get('description') or ''}"
    if data.get("description"):
        return f"{summary} {data['description']}"
    return summary


def _tool_result_parts(entry: dict[str, object]) -> list[str]:
    content = _message_content(entry)
    if content is None:
        content = entry.get("content")
    if not isinstance(content, list):
        return []

    parts: list[str] = []
    for block in content:
        if not isinstance(block, dict):
            continue
        if block.get("type") == "text" and block.get("text"):
            parts.append(_result_line(str(block["text"])))
        elif block.get("type") == "tool_result":
            inner = block.get("content")
            if isinstance(inner, str) and inner:
                parts.append(_result_line(inner))
            elif isinstance(inner, list):
                parts.extend(
                    _result_line(str(item["text"]))
                    for item in inner
                    if isinstance(item, dict) and item.get("type") == "text" and item.get("text")
                )
    return parts


def _result_line(text: str) -> str:
    return f"[Result] {truncate(text, TOOL_RESULT_PREVIEW_CHARS)}"
