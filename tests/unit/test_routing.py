"""Unit tests for the webhook routers (mirror and token modes)."""

from __future__ import annotations

import threading
from unittest.mock import AsyncMock, MagicMock

import pytest

from telemirror.core.errors import InjectionError, TelegramAPIError
from telemirror.core.models import InboundUpdate
from telemirror.core.token_sessions import TokenSessionStore
from telemirror.webhook.routing import (
    INVALID_TOKEN_REPLY,
    MIRROR_FORMAT_REPLY,
    TOKEN_FORMAT_REPLY,
    UNAUTHORIZED_REPLY,
    AuthorizationPolicy,
    BaseRouter,
    MirrorRouter,
    RoutingMode,
    TokenRouter,
    build_router,
)

HOME_CHAT = "1001"


def _client():
    client = MagicMock()
    client.send_message = AsyncMock()
    client.send_with_fallback = AsyncMock()
    client.answer_callback_query = AsyncMock()
    client.get_bot_username = AsyncMock(return_value="mirror_bot")
    return client


def _injector(error=None):
    injector = MagicMock()
    injector.inject = AsyncMock(side_effect=error)
    return injector


def _message(text, chat_id=HOME_CHAT, user_id="7"):
    return InboundUpdate(chat_id=chat_id, user_id=user_id, text=text)


def _mirror(client=None, injector=None, whitelist=()):
    policy = AuthorizationPolicy(whitelist=frozenset(whitelist), home_chat_id=HOME_CHAT)
    return MirrorRouter(client or _client(), policy, injector or _injector())


def _replies(client):
    """All reply texts, in order, regardless of which send method carried them."""
    calls = client.send_message.await_args_list + client.send_with_fallback.await_args_list
    return [c.args[1] for c in calls]


class TestAuthorizationPolicy:
    def test_whitelisted_user_in_any_chat(self):
        policy = AuthorizationPolicy(whitelist=frozenset({"7"}), home_chat_id=HOME_CHAT)
        assert policy.is_authorized("555", "7")

    def test_whitelisted_chat(self):
        policy = AuthorizationPolicy(whitelist=frozenset({"555"}), home_chat_id=HOME_CHAT)
        assert policy.is_authorized("555", "8")

    def test_whitelist_excludes_home_chat_when_not_listed(self):
        policy = AuthorizationPolicy(whitelist=frozenset({"555"}), home_chat_id=HOME_CHAT)
        assert not policy.is_authorized(HOME_CHAT, "8")

    def test_empty_whitelist_allows_only_home_chat(self):
        policy = AuthorizationPolicy(whitelist=frozenset(), home_chat_id=HOME_CHAT)
        assert policy.is_authorized(HOME_CHAT, "8")
        assert not policy.is_authorized("999", "8")

    def test_nothing_configured_denies(self):
        assert not AuthorizationPolicy(whitelist=frozenset()).is_authorized(HOME_CHAT, "8")


class TestMirrorRouter:
    @pytest.mark.asyncio
    async def test_plain_text_is_injected_and_confirmed(self):
        client, injector = _client(), _injector()
        await _mirror(client, injector).handle(_message("run the tests"))

        injector.inject.assert_awaited_once_with("run the tests", None)
        client.send_message.assert_awaited_once_with(HOME_CHAT, "✅ run the tests")

    @pytest.mark.asyncio
    async def test_cmd_prefix_injects_the_rest(self):
        client, injector = _client(), _injector()
        await _mirror(client, injector).handle(_message("/cmd deploy now"))

        injector.inject.assert_awaited_once_with("deploy now", None)
        assert _replies(client) == ["✅ deploy now"]

    @pytest.mark.asyncio
    async def test_cmd_prefix_is_case_insensitive_and_multiline(self):
        injector = _injector()
        await _mirror(injector=injector).handle(_message("/CMD first line\nsecond line"))

        injector.inject.assert_awaited_once_with("first line\nsecond line", None)

    @pytest.mark.asyncio
    async def test_unknown_slash_command_gets_format_hint(self):
        client, injector = _client(), _injector()
        await _mirror(client, injector).handle(_message("/bogus"))

        injector.inject.assert_not_awaited()
        assert _replies(client) == [MIRROR_FORMAT_REPLY]

    @pytest.mark.asyncio
    async def test_bare_cmd_gets_format_hint(self):
        client, injector = _client(), _injector()
        await _mirror(client, injector).handle(_message("/cmd"))

        injector.inject.assert_not_awaited()
        assert _replies(client) == [MIRROR_FORMAT_REPLY]

    @pytest.mark.asyncio
    async def test_unauthorized_never_injects(self):
        client, injector = _client(), _injector()
        await _mirror(client, injector).handle(_message("rm -rf /", chat_id="999", user_id="666"))

        injector.inject.assert_not_awaited()
        client.send_message.assert_awaited_once_with("999", UNAUTHORIZED_REPLY)

    @pytest.mark.asyncio
    async def test_empty_text_is_ignored(self):
        client, injector = _client(), _injector()
        await _mirror(client, injector).handle(_message("   "))

        injector.inject.assert_not_awaited()
        assert _replies(client) == []

    @pytest.mark.asyncio
    async def test_injection_failure_is_reported(self):
        client = _client()
        injector = _injector(InjectionError("tmux session 'claude-code' not found", "claude-code"))
        await _mirror(client, injector).handle(_message("hello"))

        assert _replies(client) == ["❌ tmux session 'claude-code' not found"]

    @pytest.mark.asyncio
    async def test_start_and_help_use_markdown(self):
        client = _client()
        router = _mirror(client)
        await router.handle(_message("/start"))
        await router.handle(_message("/help"))

        calls = client.send_with_fallback.await_args_list
        assert calls[0].args[1] == MirrorRouter.WELCOME_TEXT
        assert calls[1].args[1] == MirrorRouter.HELP_TEXT
        assert all(c.kwargs["parse_mode"] == "Markdown" for c in calls)

    @pytest.mark.asyncio
    async def test_help_addressed_to_this_bot(self):
        client, injector = _client(), _injector()
        await _mirror(client, injector).handle(_message("/help@Mirror_Bot"))

        assert _replies(client) == [MirrorRouter.HELP_TEXT]
        injector.inject.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_help_addressed_to_other_bot_is_not_ours(self):
        client = _client()
        await _mirror(client).handle(_message("/help@other_bot"))

        assert _replies(client) == [MIRROR_FORMAT_REPLY]

    @pytest.mark.asyncio
    async def test_reply_failure_does_not_propagate(self):
        client = _client()
        client.send_message.side_effect = TelegramAPIError("sendMessage", "Forbidden", 403)

        await _mirror(client).handle(_message("hello"))

    @pytest.mark.asyncio
    async def test_legacy_callback_is_answered_and_explained(self):
        client = _client()
        update = InboundUpdate(chat_id=HOME_CHAT, user_id="7", callback_id="cb1", callback_data="personal:ABCD1234")

        await _mirror(client).handle(update)

        client.answer_callback_query.assert_awaited_once_with("cb1")
        assert "Mirror Mode is active" in _replies(client)[0]

    @pytest.mark.asyncio
    async def test_other_callback_is_only_answered(self):
        client = _client()
        update = InboundUpdate(chat_id="999", callback_id="cb2", callback_data="something")

        await _mirror(client).handle(update)

        client.answer_callback_query.assert_awaited_once_with("cb2")
        assert _replies(client) == []

    @pytest.mark.asyncio
    async def test_callback_answer_failure_is_swallowed(self):
        client = _client()
        client.answer_callback_query.side_effect = TelegramAPIError("answerCallbackQuery", "query is too old", 400)

        await _mirror(client).handle(InboundUpdate(chat_id=HOME_CHAT, callback_id="cb3", callback_data="x"))


class TestTokenRouter:
    def _router(self, tmp_path, client=None, injector=None):
        store = TokenSessionStore(tmp_path)
        policy = AuthorizationPolicy(whitelist=frozenset(), home_chat_id=HOME_CHAT)
        return TokenRouter(client or _client(), policy, injector or _injector(), store), store

    @pytest.mark.asyncio
    async def test_valid_token_injects_into_session_and_consumes_it(self, tmp_path):
        client, injector = _client(), _injector()
        router, store = self._router(tmp_path, client, injector)
        session = store.create("work:1", "myapp")

        await router.handle(_message(f"/cmd {session.token} run the tests"))

        injector.inject.assert_awaited_once_with("run the tests", "work:1")
        assert _replies(client) == ["✅ run the tests"]
        assert store.find_by_token(session.token) is None

    @pytest.mark.asyncio
    async def test_lowercase_token_is_accepted(self, tmp_path):
        injector = _injector()
        router, store = self._router(tmp_path, injector=injector)
        session = store.create("claude-code", "myapp")

        await router.handle(_message(f"/cmd {session.token.lower()} go"))

        injector.inject.assert_awaited_once_with("go", "claude-code")

    @pytest.mark.asyncio
    async def test_unknown_token_never_injects(self, tmp_path):
        client, injector = _client(), _injector()
        router, _ = self._router(tmp_path, client, injector)

        await router.handle(_message("/cmd ZZZZ9999 run the tests"))

        injector.inject.assert_not_awaited()
        assert _replies(client) == [INVALID_TOKEN_REPLY]

    @pytest.mark.asyncio
    async def test_expired_token_never_injects(self, tmp_path):
        client, injector = _client(), _injector()
        router, store = self._router(tmp_path, client, injector)
        session = store.create("claude-code", "myapp", now=0)

        await router.handle(_message(f"/cmd {session.token} run the tests"))

        injector.inject.assert_not_awaited()
        assert _replies(client) == [INVALID_TOKEN_REPLY]
        assert list(tmp_path.glob("*.json")) == []

    @pytest.mark.asyncio
    async def test_session_lookup_runs_off_the_event_loop_thread(self, tmp_path):
        router, store = self._router(tmp_path)
        session = store.create("claude-code", "myapp")
        lookup_threads = []
        real_find = store.find_by_token

        def find_by_token(token):
            lookup_threads.append(threading.get_ident())
            return real_find(token)

        store.find_by_token = find_by_token

        await router.handle(_message(f"/cmd {session.token} go"))

        assert len(lookup_threads) == 1
        assert lookup_threads[0] != threading.get_ident()

    @pytest.mark.asyncio
    async def test_plain_text_gets_token_format_hint(self, tmp_path):
        client, injector = _client(), _injector()
        router, _ = self._router(tmp_path, client, injector)

        await router.handle(_message("run the tests"))

        injector.inject.assert_not_awaited()
        assert _replies(client) == [TOKEN_FORMAT_REPLY]

    @pytest.mark.asyncio
    async def test_legacy_callback_shows_token_instructions(self, tmp_path):
        client = _client()
        router, _ = self._router(tmp_path, client)

        await router.handle(InboundUpdate(chat_id=HOME_CHAT, callback_id="cb", callback_data="group:ABCD1234"))

        assert "`/cmd ABCD1234 <your command>`" in _replies(client)[0]


def test_build_router_selects_mode(tmp_path):
    policy = AuthorizationPolicy(whitelist=frozenset())
    assert isinstance(build_router("mirror", _client(), policy, _injector()), MirrorRouter)
    token_router = build_router(RoutingMode.TOKEN, _client(), policy, _injector(), TokenSessionStore(tmp_path))
    assert isinstance(token_router, TokenRouter)


def test_build_router_token_mode_requires_store():
    with pytest.raises(ValueError):
        build_router("token", _client(), AuthorizationPolicy(whitelist=frozenset()), _injector())


def test_build_router_rejects_unknown_mode():
    with pytest.raises(ValueError):
        build_router("broadcast", _client(), AuthorizationPolicy(whitelist=frozenset()), _injector())


def test_base_router_cannot_be_instantiated():
    with pytest.raises(TypeError):
        BaseRouter(_client(), AuthorizationPolicy(whitelist=frozenset()), _injector())
