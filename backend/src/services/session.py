from __future__ import annotations

import asyncio
import time
import uuid
from typing import Dict, Optional

from errors import SessionNotFound
from models import Tournament


class TournamentSessionManager:
    """Simple in-memory tournament store keyed by session id.

    Entries expire ``ttl_sec`` after their last access. Each session has
    its own asyncio lock so battles for one session run one at a time.
    """

    def __init__(self, ttl_sec: int = 3600) -> None:
        self._sessions: Dict[str, Tournament] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._last_access: Dict[str, float] = {}
        self.ttl_sec = ttl_sec

    def create(self, session_id: Optional[str] = None) -> str:
        self._cleanup()
        sid = session_id or uuid.uuid4().hex
        self._sessions[sid] = Tournament()
        self._locks.setdefault(sid, asyncio.Lock())
        self._last_access[sid] = time.time()
        return sid

    def get(self, session_id: str) -> Tournament:
        self._cleanup()
        if not session_id or session_id not in self._sessions:
            raise SessionNotFound(f"Unknown tournament session: {session_id}")
        self._last_access[session_id] = time.time()
        return self._sessions[session_id]

    def put(self, session_id: str, tournament: Tournament) -> None:
        self._sessions[session_id] = tournament
        self._locks.setdefault(session_id, asyncio.Lock())
        self._last_access[session_id] = time.time()

    def lock(self, session_id: str) -> asyncio.Lock:
        self.get(session_id)
        return self._locks.setdefault(session_id, asyncio.Lock())

    def drop(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)
        self._locks.pop(session_id, None)
        self._last_access.pop(session_id, None)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def _cleanup(self) -> None:
        """Remove expired sessions."""
        now = time.time()
        expired = [
            sid for sid, last in self._last_access.items()
            if now - last > self.ttl_sec
        ]
        for sid in expired:
            lock = self._locks.get(sid)
            if lock is not None and lock.locked():
                continue
            self.drop(sid)
