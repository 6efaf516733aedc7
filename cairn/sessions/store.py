"""
CairnSessions - Storage backends.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from .core import Session, SessionID

logger = logging.getLogger("cairn.sessions.store")


class SessionStore(Protocol):
    """Abstract session storage interface."""

    async def load(self, session_id: SessionID) -> Session | None:
        ...

    async def save(self, session: Session) -> None:
        ...

    async def delete(self, session_id: SessionID) -> None:
        ...


class MemorySessionStore:
    """
    In-memory session storage.

    Expired sessions are dropped when loaded; when ``max_sessions`` is
    reached the oldest session is evicted. Not shared across processes.

    Example:
        >>> store = MemorySessionStore()
        >>> await store.save(session)
        >>> (await store.load(session.id)).id == session.id
        True
    """

    def __init__(self, max_sessions: int = 10000):
        self.max_sessions = max_sessions
        self._sessions: dict[str, Session] = {}
        self._lock = asyncio.Lock()

    async def load(self, session_id: SessionID) -> Session | None:
        async with self._lock:
            key = str(session_id)
            session = self._sessions.get(key)
            if session is not None and session.is_expired():
                del self._sessions[key]
                logger.debug("Dropped expired session %r", session_id)
                return None
            return session

    async def save(self, session: Session) -> None:
        async with self._lock:
            key = str(session.id)
            if key not in self._sessions and len(self._sessions) >= self.max_sessions:
                oldest = next(iter(self._sessions))
                del self._sessions[oldest]
                logger.info("Session store full; evicted oldest session")
            self._sessions[key] = session

    async def delete(self, session_id: SessionID) -> None:
        async with self._lock:
            self._sessions.pop(str(session_id), None)

    def __len__(self) -> int:
        return len(self._sessions)
