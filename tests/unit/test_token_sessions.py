"""Unit tests for file-backed token sessions."""

from __future__ import annotations

import json
import re

from telemirror.core.token_sessions import TokenSession, TokenSessionStore, generate_token


def test_generate_token_shape():
    for _ in range(50):
        assert re.fullmatch(r"[A-Z0-9]{8}", generate_token())


def test_create_persists_one_file_per_session(tmp_path):
    store = TokenSessionStore(tmp_path / "sessions", ttl=60)

    session = store.create("claude-code", "myapp", now=1000)

    path = tmp_path / "sessions" / f"{session.id}.json"
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["token"] == session.token
    assert data["created_at"] == 1000
    assert data["expires_at"] == 1060
    assert TokenSession.from_json(path.read_text(encoding="utf-8")) == session


def test_find_by_token_live_session(tmp_path):
    store = TokenSessionStore(tmp_path, ttl=60)
    session = store.create("work", "myapp", now=1000)

    assert store.find_by_token(session.token.lower(), now=1030) == session


def test_find_by_token_deletes_expired_session(tmp_path):
    store = TokenSessionStore(tmp_path, ttl=60)
    session = store.create("work", "myapp", now=1000)

    assert store.find_by_token(session.token, now=1060) is None
    assert not (tmp_path / f"{session.id}.json").exists()


def test_unreadable_files_are_skipped(tmp_path):
    store = TokenSessionStore(tmp_path)
    (tmp_path / "garbage.json").write_text("{broken", encoding="utf-8")
    session = store.create("work", "myapp")

    assert store.find_by_token(session.token) == session


def test_remove_is_idempotent(tmp_path):
    store = TokenSessionStore(tmp_path)
    session = store.create("work", "myapp")

    store.remove(session.id)
    store.remove(session.id)

    assert store.find_by_token(session.token) is None


def test_purge_expired(tmp_path):
    store = TokenSessionStore(tmp_path, ttl=10)
    store.create("a", "p", now=0)
    store.create("b", "p", now=0)
    live = store.create("c", "p", now=100)

    assert store.purge_expired(now=50) == 2
    assert store.find_by_token(live.token, now=50) == live


def test_missing_directory_means_no_sessions(tmp_path):
    assert TokenSessionStore(tmp_path / "never-created").find_by_token("ABCD1234") is None
