"""Unit tests for TerminalInjector and bracketed-paste wrapping."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from telemirror.core import tmux_bridge
from telemirror.core.errors import InjectionError
from telemirror.core.injector import TerminalInjector, wrap_bracketed_paste

PASTE_START = "\x1b[200~"
PASTE_END = "\x1b[201~"


def test_plain_words_are_not_wrapped():
    assert wrap_bracketed_paste("run the tests") == "run the tests"


def test_slash_command_is_not_wrapped():
    assert wrap_bracketed_paste("/compact") == "/compact"


def test_absolute_path_is_wrapped():
    text = "/Users/me/file.py: fix it"
    assert wrap_bracketed_paste(text) == f"{PASTE_START}{text}{PASTE_END}"


def test_multiline_text_is_wrapped():
    text = "line one\nline two"
    assert wrap_bracketed_paste(text) == f"{PASTE_START}{text}{PASTE_END}"


def test_empty_text_is_unchanged():
    assert wrap_bracketed_paste("") == ""


def _patch_bridge(*, available=True, exists=True, literal=True, enter=True):
    return (
        patch.object(tmux_bridge, "is_available", new=MagicMock(return_value=available)),
        patch.object(tmux_bridge, "session_exists", new=AsyncMock(return_value=exists)),
        patch.object(tmux_bridge, "send_literal", new=AsyncMock(return_value=literal)),
        patch.object(tmux_bridge, "send_enter", new=AsyncMock(return_value=enter)),
    )


@pytest.mark.asyncio
async def test_inject_types_text_then_presses_enter():
    avail, exists, literal, enter = _patch_bridge()
    with avail, exists, literal as send_literal, enter as send_enter:
        await TerminalInjector(default_session="claude-code", submit_delay=0).inject("run the tests")

    send_literal.assert_awaited_once_with("claude-code", "run the tests")
    send_enter.assert_awaited_once_with("claude-code")


@pytest.mark.asyncio
async def test_inject_uses_explicit_session():
    avail, exists, literal, enter = _patch_bridge()
    with avail, exists as session_exists, literal, enter as send_enter:
        await TerminalInjector(default_session="claude-code", submit_delay=0).inject("hi", "work:1")

    session_exists.assert_awaited_once_with("work:1")
    send_enter.assert_awaited_once_with("work:1")


@pytest.mark.asyncio
async def test_inject_missing_session_raises_and_sends_nothing():
    avail, exists, literal, enter = _patch_bridge(exists=False)
    with avail, exists, literal as send_literal, enter as send_enter:
        with pytest.raises(InjectionError, match="tmux session 'claude-code' not found") as exc_info:
            await TerminalInjector(default_session="claude-code", submit_delay=0).inject("hello")

    assert exc_info.value.session_name == "claude-code"
    send_literal.assert_not_awaited()
    send_enter.assert_not_awaited()


@pytest.mark.asyncio
async def test_inject_without_tmux_raises():
    avail, exists, literal, enter = _patch_bridge(available=False)
    with avail, exists, literal, enter:
        with pytest.raises(InjectionError, match="tmux is not available"):
            await TerminalInjector(submit_delay=0).inject("hello")


@pytest.mark.asyncio
async def test_inject_timeout_becomes_injection_error():
    avail, exists, literal, enter = _patch_bridge()
    with avail, exists as session_exists, literal, enter:
        session_exists.side_effect = tmux_bridge.SubprocessTimeoutError("tmux has-session", 5.0)
        with pytest.raises(InjectionError, match="tmux did not respond"):
            await TerminalInjector(submit_delay=0).inject("hello")


@pytest.mark.asyncio
async def test_inject_refused_keys_do_not_submit():
    avail, exists, literal, enter = _patch_bridge(literal=False)
    with avail, exists, literal, enter as send_enter:
        with pytest.raises(InjectionError):
            await TerminalInjector(submit_delay=0).inject("hello")

    send_enter.assert_not_awaited()
