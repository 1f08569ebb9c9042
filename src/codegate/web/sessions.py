"""In-memory server-side session store."""

from __future__ import annotations

import logging
import secrets
import time
from collections import OrderedDict
from typing import Any, Callable

logger = logging.getLogger(__name__)

DEFAULT_IDLE_TIMEOUT = 3600.0
DEFAULT_MAX_SESSIONS = 10_000


class MemorySession:
    """Session backed by a ``SessionStore``.

    Holds arbitrary data under a random identifier that the store can
    rotate without losing the data.
    """

    def __init__(self, store: SessionStore, session_id: str) -> None:
        self._store = store
        self.id = session_id
        self.data: dict[str, Any] = {}
        self.last_access = 0.0

    async def regenerate_id(self) -> str:
        self.id = self._store.regenerate(self.id)
        return self.id


class SessionStore:
    """Maps session identifiers to sessions.

    Identifiers are 32 bytes of URL-safe randomness. A regenerated session
    keeps its data, and its old identifier no longer resolves.

    Sessions idle for longer than ``idle_timeout`` seconds expire. When the
    store holds ``max_sessions`` sessions, creating another evicts the least
    recently used one. Pass None to disable either limit.
    """

    def __init__(
        self,
        idle_timeout: float | None = DEFAULT_IDLE_TIMEOUT,
        max_sessions: int | None = DEFAULT_MAX_SESSIONS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.idle_timeout = idle_timeout
        self.max_sessions = max_sessions
        self._clock = clock
        # Least recently used first
        self._sessions: OrderedDict[str, MemorySession] = OrderedDict()

    def __len__(self) -> int:
        return len(self._sessions)

    @staticmethod
    def _new_id() -> str:
        return secrets.token_urlsafe(32)

    # ================================
    # Creation
    # ================================

    def create(self) -> MemorySession:
        self.evict_expired()
        if self.max_sessions is not None:
            while len(self._sessions) >= self.max_sessions:
                self._sessions.popitem(last=False)
                logger.debug("Evicted least recently used session")

        session = MemorySession(self, self._new_id())
        session.last_access = self._clock()
        self._sessions[session.id] = session

        logger.debug("Created session")
        return session

    # ================================
    # Access
    # ================================

    def get(self, session_id: str | None) -> MemorySession | None:
        """Get a live session by identifier and mark it as used.

        Returns None if the session doesn't exist or has expired.
        """
        if session_id is None:
            return None

        session = self._sessions.get(session_id)
        if session is None:
            return None

        now = self._clock()
        if self._is_expired(session, now):
            del self._sessions[session_id]
            logger.debug("Dropped expired session")
            return None

        session.last_access = now
        self._sessions.move_to_end(session_id)
        return session

    def get_or_create(self, session_id: str | None) -> MemorySession:
        return self.get(session_id) or self.create()

    def session_exists(self, session_id: str) -> bool:
        session = self._sessions.get(session_id)
        return session is not None and not self._is_expired(session, self._clock())

    def _is_expired(self, session: MemorySession, now: float) -> bool:
        if self.idle_timeout is None:
            return False
        return now - session.last_access > self.idle_timeout

    # ================================
    # Rotation
    # ================================

    def regenerate(self, session_id: str) -> str:
        """Move a session to a fresh identifier.

        Raises:
            KeyError: If the session doesn't exist
        """
        session = self._sessions.pop(session_id)
        new_id = self._new_id()
        session.last_access = self._clock()
        self._sessions[new_id] = session

        logger.debug("Regenerated session identifier")
        return new_id

    # ================================
    # Termination
    # ================================

    def terminate(self, session_id: str) -> bool:
        """Terminate a session.

        Returns True if session existed and was terminated, False otherwise.
        """
        return self._sessions.pop(session_id, None) is not None

    def terminate_all(self) -> None:
        self._sessions.clear()
        logger.debug("Terminated all sessions")

    def evict_expired(self) -> int:
        """Drop every expired session and return how many were dropped."""
        if self.idle_timeout is None:
            return 0

        now = self._clock()
        evicted = 0
        while self._sessions:
            session = next(iter(self._sessions.values()))
            if not self._is_expired(session, now):
                break
            self._sessions.popitem(last=False)
            evicted += 1

        if evicted:
            logger.debug(f"Evicted {evicted} expired sessions")
        return evicted
