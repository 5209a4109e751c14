"""File-backed sessions for legacy token mode.

Each notification sent in token mode gets a short random token; the user
replies with `/cmd <TOKEN> <command>`. Sessions live one JSON file each under
the sessions directory and are deleted on use or once found expired.
"""

from __future__ import annotations

import json
import secrets
import time
import uuid
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

import structlog

from telemirror.constants import DEFAULT_TMUX_SESSION, TOKEN_ALPHABET, TOKEN_LENGTH, TOKEN_SESSION_TTL_S

logger = structlog.get_logger(__name__)


def generate_token() -> str:
    """Random 8-character token from A-Z0-9."""
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(TOKEN_LENGTH))


@dataclass(frozen=True)
class TokenSession:
    id: str
    token: str
    created_at: int
    expires_at: int
    tmux_session: str
    project: str

    def is_expired(self, now: Optional[float] = None) -> bool:
        return (now if now is not None else time.time()) >= self.expires_at

    def to_json(self) -> str:
        return json.dumps(asdict(self), indent=2)

    @classmethod
    def from_json(cls, data: str) -> "TokenSession":
        d = json.loads(data)
        return cls(
            id=str(d["id"]),
            token=str(d["token"]),
            created_at=int(d["created_at"]),
            expires_at=int(d["expires_at"]),
            tmux_session=str(d.get("tmux_session") or DEFAULT_TMUX_SESSION),
            project=str(d.get("project") or ""),
        )


class TokenSessionStore:
    """One JSON file per session, keyed by session id."""

    def __init__(self, sessions_dir: str | Path, ttl: int = TOKEN_SESSION_TTL_S) -> None:
        self.sessions_dir = Path(sessions_dir)
        self.ttl = ttl

    def _path(self, session_id: str) -> Path:
        return self.sessions_dir / f"{session_id}.json"

    def create(self, tmux_session: str, project: str, now: Optional[float] = None) -> TokenSession:
        """Persist a new session and return it."""
        created = int(now if now is not None else time.time())
        session = TokenSession(
            id=str(uuid.uuid4()),
            token=generate_token(),
            created_at=created,
            expires_at=created + self.ttl,
            tmux_session=tmux_session,
            project=project,
        )
        self.sessions_dir.mkdir(parents=True, exist_ok=True)
        self._path(session.id).write_text(session.to_json(), encoding="utf-8")
        logger.debug("Token session created", session_id=session.id)
        return session

    def remove(self, session_id: str) -> None:
        path = self._path(session_id)
        try:
            path.unlink()
        except FileNotFoundError:
            return
        logger.debug("Token session removed", session_id=session_id)

    def _iter_sessions(self) -> list[TokenSession]:
        if not self.sessions_dir.is_dir():
            return []
        sessions: list[TokenSession] = []
        for path in sorted(self.sessions_dir.glob("*.json")):
            try:
                sessions.append(TokenSession.from_json(path.read_text(encoding="utf-8")))
            except (OSError, ValueError, KeyError, TypeError) as e:
                logger.warning("Skipping unreadable session file", path=str(path), error=str(e))
        return sessions

    def find_by_token(self, token: str, now: Optional[float] = None) -> Optional[TokenSession]:
        """Return the live session for `token`; expired matches are deleted and ignored."""
        wanted = token.upper()
        for session in self._iter_sessions():
            if session.token != wanted:
                continue
            if session.is_expired(now):
                logger.info("Token session expired", session_id=session.id)
                self.remove(session.id)
                return None
            return session
        return None

    def purge_expired(self, now: Optional[float] = None) -> int:
        """Delete all expired sessions; returns how many were removed."""
        removed = 0
        for session in self._iter_sessions():
            if session.is_expired(now):
                self.remove(session.id)
                removed += 1
        return removed
