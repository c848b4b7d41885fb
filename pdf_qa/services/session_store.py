"""
Session registry: maps session IDs to their namespace and conversation history.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from ..models import Session, Turn
import logging

logger = logging.getLogger(__name__)


class SessionStore(ABC):
    """Storage interface for sessions, independent of the backing datastore."""

    @abstractmethod
    def get(self, session_id: str) -> Optional[Session]:
        """Return the session or None if unknown."""

    @abstractmethod
    def put(self, session: Session) -> None:
        """Insert or replace a session."""

    @abstractmethod
    def delete(self, session_id: str) -> bool:
        """Remove a session. Returns False if it did not exist."""

    @abstractmethod
    def __contains__(self, session_id: str) -> bool:
        ...

    @abstractmethod
    def __len__(self) -> int:
        ...

    @abstractmethod
    def lock(self, session_id: str) -> asyncio.Lock:
        """Lock serialising mutations of one session."""

    def append_turns(self, session_id: str, turns: List[Turn]) -> Session:
        """Append turns to a session's history, in order."""
        session = self.get(session_id)
        if session is None:
            raise KeyError(session_id)
        session.history.extend(turns)
        self.put(session)
        return session


class InMemorySessionStore(SessionStore):
    """Process-local session store. Sessions are lost when the process exits."""

    def __init__(self):
        self._sessions: Dict[str, Session] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def get(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    def put(self, session: Session) -> None:
        self._sessions[session.session_id] = session

    def delete(self, session_id: str) -> bool:
        self._locks.pop(session_id, None)
        return self._sessions.pop(session_id, None) is not None

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def lock(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = self._locks[session_id] = asyncio.Lock()
        return lock
