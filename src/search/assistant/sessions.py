"""In-memory conversation sessions.

Maps an opaque session identifier to a live multi-turn Gemini chat so that
follow-up questions continue the same conversation.  Sessions are bounded by
an idle TTL and a capacity limit (least recently used evicted first), and each
carries a lock that serializes turns on its chat.

State is process-local: sessions do not survive a restart and are not
shared between workers.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Callable

logger = logging.getLogger(__name__)

_TOKEN_BYTES = 24


@dataclass
class ConversationSession:
    """A live conversation and its bookkeeping."""

    session_id: str
    chat: Any
    created_at: float
    last_used: float
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)


class SessionManager:
    """TTL- and capacity-bounded store of conversation sessions."""

    def __init__(
        self,
        ttl_seconds: float = 3600.0,
        max_sessions: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_sessions < 1:
            raise ValueError("max_sessions must be at least 1")
        self.ttl_seconds = ttl_seconds
        self.max_sessions = max_sessions
        self._clock = clock
        self._sessions: OrderedDict[str, ConversationSession] = OrderedDict()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def create(self) -> str:
        """Return a new, unguessable session identifier."""
        session_id = secrets.token_urlsafe(_TOKEN_BYTES)
        while session_id in self._sessions:
            session_id = secrets.token_urlsafe(_TOKEN_BYTES)
        return session_id

    def put(self, session_id: str, chat: Any) -> ConversationSession:
        """Store ``chat`` under ``session_id``, evicting if over capacity."""
        now = self._clock()
        self.evict_expired()
        session = ConversationSession(
            session_id=session_id,
            chat=chat,
            created_at=now,
            last_used=now,
        )
        self._sessions[session_id] = session
        self._sessions.move_to_end(session_id)
        while len(self._sessions) > self.max_sessions:
            evicted, _ = self._sessions.popitem(last=False)
            logger.info("Evicted least recently used session %s…", evicted[:8])
        return session

    def get(self, session_id: str) -> ConversationSession | None:
        """Look up a session and mark it used; expired sessions read as absent."""
        session = self._sessions.get(session_id)
        if session is None:
            return None
        now = self._clock()
        if self._is_expired(session, now):
            del self._sessions[session_id]
            logger.info("Session %s… expired", session_id[:8])
            return None
        session.last_used = now
        self._sessions.move_to_end(session_id)
        return session

    def evict_expired(self) -> int:
        """Drop every session idle for longer than the TTL; return how many."""
        now = self._clock()
        expired = [sid for sid, s in self._sessions.items() if self._is_expired(s, now)]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.info("Evicted %d expired session(s)", len(expired))
        return len(expired)

    def _is_expired(self, session: ConversationSession, now: float) -> bool:
        return now - session.last_used > self.ttl_seconds
