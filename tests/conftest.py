"""Pytest configuration for telemirror tests."""

import logging

import pytest
import structlog

structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(logging.CRITICAL))


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch):
    """Keep entrypoints from reconfiguring structlog onto stderr mid-test."""
    monkeypatch.setattr("telemirror.logging_config.structlog.configure", lambda **_kwargs: None)


def pytest_collection_modifyitems(config, items):
    """Set per-marker timeouts: unit=1s, integration=5s."""
    for item in items:
        if "unit" in item.keywords:
            item.add_marker(pytest.mark.timeout(1))
        elif "integration" in item.keywords:
            item.add_marker(pytest.mark.timeout(5))


@pytest.fixture
def make_config(tmp_path):
    """Build a `Config` from fixed test defaults plus nested overrides."""
    from telemirror.config import _build_config, _deep_merge

    base = {
        "telegram": {
            "enabled": True,
            "bot_token": "TOKEN",
            "chat_id": "1001",
            "group_id": None,
            "whitelist": "",
            "force_ipv4": False,
            "bot_username": "mirror_bot",
            "message_delay": 0,
        },
        "mirror": {
            "mode": "mirror",
            "default_session": "claude-code",
            "sessions_dir": str(tmp_path / "sessions"),
            "session_ttl": 86400,
        },
        "email": {
            "enabled": False,
            "host": None,
            "port": 587,
            "secure": False,
            "user": None,
            "password": None,
            "from_address": None,
            "from_name": "Claude Code Remote",
            "to": None,
        },
        "desktop": {"enabled": False, "completed_sound": "Glass", "waiting_sound": "Tink"},
        "webhook": {"host": "127.0.0.1", "port": 3001, "public_url": None},
    }

    def _make(**overrides):
        return _build_config(_deep_merge(base, overrides))

    return _make
