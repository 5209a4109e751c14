"""Unit tests for the telemirror command line."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from telemirror import cli


def test_webhook_url_appends_path():
    assert cli._webhook_url("https://example.com/") == "https://example.com/webhook/telegram"
    assert cli._webhook_url("https://example.com/webhook/telegram") == "https://example.com/webhook/telegram"


def test_set_webhook_requires_token(make_config, capsys):
    with patch.object(cli, "load_config", return_value=make_config(telegram={"bot_token": None})):
        assert cli.main(["set-webhook", "https://example.com"]) == 1

    assert "TELEGRAM_BOT_TOKEN" in capsys.readouterr().err


def test_notify_delegates_to_hook():
    with patch("telemirror.hooks.notify.main", return_value=0) as hook_main:
        assert cli.main(["notify", "waiting"]) == 0

    hook_main.assert_called_once_with(["waiting"])


def test_serve_requires_token(make_config, capsys):
    with patch.object(cli, "load_config", return_value=make_config(telegram={"bot_token": None})):
        assert cli.main(["serve"]) == 1


def test_serve_runs_server(make_config):
    server = MagicMock()
    server.client = None

    async def fake_serve(host, port):
        server.bound = (host, port)

    server.serve = fake_serve
    with (
        patch.object(cli, "load_config", return_value=make_config()),
        patch("telemirror.webhook.server.create_server", return_value=server),
    ):
        assert cli.main(["serve", "--port", "9000"]) == 0

    assert server.bound == ("127.0.0.1", 9000)


def test_command_is_required():
    with pytest.raises(SystemExit):
        cli.main([])
