"""Recover the latest exchange from a live Claude Code tmux pane.

Used when the hook payload carries no transcript. Claude Code renders user
prompts as `> text` (or `❯ text`) and assistant output as `⏺ text` blocks;
this reads those markers from the captured scrollback.
"""

from __future__ import annotations

import re
from typing import Optional

from telemirror.constants import PANE_SAMPLE_LINES
from telemirror.core import tmux_bridge
from telemirror.core.models import Conversation
from telemirror.utils import strip_ansi_codes

_PROMPT_RE = re.compile(r"^\s*[>❯]\s+(\S.*)$")
_RESPONSE_MARK = "⏺"
_TOOL_OUTPUT_MARK = "⎿"
_BOX_CHARS = "│╭╮╰╯─"


def _clean(line: str) -> str:
    return line.strip().strip(_BOX_CHARS).rstrip()


def parse_pane_conversation(pane_text: str) -> Optional[Conversation]:
    """Parse captured pane text into the last question/answer pair."""
    lines = [_clean(line) for line in strip_ansi_codes(pane_text).splitlines()]

    prompt_indices = [idx for idx, line in enumerate(lines) if _PROMPT_RE.match(line)]
    if not prompt_indices:
        return None

    # The trailing prompt is usually the empty input box; prefer the last one
    # that actually got an answer.
    answered = [
        idx for idx in prompt_indices if any(line.lstrip().startswith(_RESPONSE_MARK) for line in lines[idx + 1 :])
    ]
    start = answered[-1] if answered else prompt_indices[-1]

    match = _PROMPT_RE.match(lines[start])
    question_lines = [match.group(1).strip()] if match else []
    cursor = start + 1
    while cursor < len(lines):
        line = lines[cursor]
        if not line.strip() or line.lstrip().startswith(_RESPONSE_MARK) or _PROMPT_RE.match(line):
            break
        question_lines.append(line.strip())
        cursor += 1

    response_lines: list[str] = []
    in_response = False
    for line in lines[cursor:]:
        stripped = line.strip()
        if _PROMPT_RE.match(line):
            break
        if stripped.startswith(_RESPONSE_MARK):
            in_response = True
            if response_lines:
                response_lines.append("")
            response_lines.append(stripped[len(_RESPONSE_MARK) :].strip())
            continue
        if in_response and stripped:
            if stripped.startswith(_TOOL_OUTPUT_MARK):
                stripped = stripped[len(_TOOL_OUTPUT_MARK) :].strip()
            response_lines.append(stripped)

    conversation = Conversation(
        user_question="\n".join(question_lines).strip(),
        claude_response="\n".join(response_lines).strip(),
    )
    return None if conversation.is_empty else conversation


async def read_pane_conversation(session_name: str, lines: int = PANE_SAMPLE_LINES) -> Optional[Conversation]:
    """Sample the pane's recent scrollback and parse it."""
    pane_text = await tmux_bridge.capture_pane(session_name, lines=lines)
    if not pane_text.strip():
        return None
    return parse_pane_conversation(pane_text)
