"""Unit tests for reading the latest exchange from a tmux pane."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from telemirror.core import tmux_bridge
from telemirror.core.pane_reader import parse_pane_conversation, read_pane_conversation

PANE = """\
> earlier question
⏺ earlier answer

> fix the failing test
⏺ I'll look at the test first.
  ⎿  Read tests/test_app.py (40 lines)
⏺ Fixed the assertion; tests pass now.

╭──────────────────────────────╮
│ >                            │
╰──────────────────────────────╯
"""


def test_parses_last_answered_prompt():
    conversation = parse_pane_conversation(PANE)

    assert conversation is not None
    assert conversation.user_question == "fix the failing test"
    assert conversation.claude_response == (
        "I'll look at the test first.\nRead tests/test_app.py (40 lines)\n\nFixed the assertion; tests pass now."
    )


def test_strips_ansi_codes():
    conversation = parse_pane_conversation("\x1b[1m> hi\x1b[0m\n\x1b[32m⏺ hello\x1b[0m\n")

    assert conversation.user_question == "hi"
    assert conversation.claude_response == "hello"


def test_unanswered_prompt_still_yields_question():
    conversation = parse_pane_conversation("❯ still thinking about it\n")

    assert conversation.user_question == "still thinking about it"
    assert conversation.claude_response == ""


def test_no_prompt_returns_none():
    assert parse_pane_conversation("just some shell output\n$ ls\n") is None


@pytest.mark.asyncio
async def test_read_pane_conversation_samples_scrollback():
    with patch.object(tmux_bridge, "capture_pane", new=AsyncMock(return_value=PANE)) as capture:
        conversation = await read_pane_conversation("claude-code")

    capture.assert_awaited_once_with("claude-code", lines=200)
    assert conversation.user_question == "fix the failing test"


@pytest.mark.asyncio
async def test_read_pane_conversation_empty_capture():
    with patch.object(tmux_bridge, "capture_pane", new=AsyncMock(return_value="")):
        assert await read_pane_conversation("claude-code") is None
