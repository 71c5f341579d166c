"""
adapters.cli.session - Local chat session storage.

The id of the last chat session is kept in ``<session_dir>/session.json``
so ``runcoach chat`` resumes the conversation between invocations. A
session older than the TTL is treated as absent and removed.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

_SESSION_FILE = "session.json"


@dataclass
class ChatSession:
    session_id: str
    user_id: str
    agent_id: str = ""
    saved_at: str = ""

    def expired(self, ttl_minutes: int, now: Optional[datetime] = None) -> bool:
        try:
            saved = datetime.fromisoformat(self.saved_at)
        except ValueError:
            return True
        return (now or datetime.now(timezone.utc)) - saved > timedelta(minutes=ttl_minutes)


def load_session(session_dir: Path, user_id: str, ttl_minutes: int) -> Optional[ChatSession]:
    """Return the stored session for *user_id*, or None if missing, foreign or expired."""
    path = session_dir / _SESSION_FILE
    if not path.exists():
        return None
    try:
        session = ChatSession(**json.loads(path.read_text(encoding="utf-8")))
    except (ValueError, TypeError):
        clear_session(session_dir)
        return None
    if session.user_id != user_id:
        return None
    if session.expired(ttl_minutes):
        clear_session(session_dir)
        return None
    return session


def save_session(session_dir: Path, session: ChatSession) -> None:
    session.saved_at = datetime.now(timezone.utc).isoformat()
    session_dir.mkdir(parents=True, exist_ok=True)
    (session_dir / _SESSION_FILE).write_text(json.dumps(asdict(session), indent=2), encoding="utf-8")


def clear_session(session_dir: Path) -> None:
    path = session_dir / _SESSION_FILE
    if path.exists():
        path.unlink()
