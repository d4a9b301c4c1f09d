"""In-memory chat session store.

Maps an opaque chat key to the dialogue state of the model currently
serving that conversation. Nothing here survives a restart.

When the model about to serve a turn differs from the one a session is
bound to, the session is replaced by a fresh dialogue and the earlier turns
are dropped. Conversations do not carry memory across a model switch.

Examples:
    >>> store = ChatSessionStore()
    >>> store.bind("abc", "gemini-2.0-flash", NativeDialogue("gemini-2.0-flash"))
    >>> store.resolve("abc").model_name
    'gemini-2.0-flash'

Tests:
    - tests/unit/test_sessions.py
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone

from medassist.core.providers.base import DialogueState

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _KeyLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


@dataclass
class ChatSession:
    """One conversation bound to one model.

    Attributes:
        key: Chat key supplied by the caller
        model_name: Registry name of the bound model
        dialogue: Provider-specific dialogue state
        turns: Messages served in this session
        created_at: When the session (or its replacement) was created
        updated_at: Last time a turn was stored
    """

    key: str
    model_name: str
    dialogue: DialogueState
    turns: int = 0
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)


class ChatSessionStore:
    """At most one active dialogue per chat key.

    Writes for a key are serialized by the orchestrator through ``lock(key)``.

    Attributes:
        max_sessions: Maximum sessions kept before the oldest are evicted
    """

    def __init__(self, max_sessions: int = 1000) -> None:
        """Initialize session store.

        Args:
            max_sessions: Maximum sessions to keep in memory
        """
        self.max_sessions = max_sessions
        self._sessions: dict[str, ChatSession] = {}
        self._locks: dict[str, _KeyLock] = {}

    @property
    def count(self) -> int:
        return len(self._sessions)

    def keys(self) -> list[str]:
        return list(self._sessions)

    def resolve(self, key: str) -> ChatSession | None:
        """Get the session for a key.

        Args:
            key: Chat key

        Returns:
            ChatSession or None if absent
        """
        return self._sessions.get(key)

    def bind(self, key: str, model_name: str, dialogue: DialogueState) -> ChatSession:
        """Store the dialogue state for a key after a served turn.

        If the key is bound to another model, the old session is discarded
        and a new one replaces it.

        Args:
            key: Chat key
            model_name: Model that served the turn
            dialogue: Dialogue state to keep

        Returns:
            The stored ChatSession
        """
        session = self._sessions.get(key)

        if session is not None and session.model_name == model_name:
            session.dialogue = dialogue
            session.turns += 1
            session.updated_at = _utcnow()
            return session

        if session is not None:
            logger.info(
                f"Chat session {key} switched from {session.model_name} to {model_name}; "
                f"dropping {session.turns} earlier turn(s)"
            )
        elif len(self._sessions) >= self.max_sessions:
            self._evict_oldest()

        session = ChatSession(key=key, model_name=model_name, dialogue=dialogue, turns=1)
        self._sessions[key] = session
        return session

    def clear(self, key: str) -> bool:
        """Remove one session.

        Args:
            key: Chat key

        Returns:
            True if a session was removed
        """
        return self._sessions.pop(key, None) is not None

    def clear_all(self) -> int:
        """Remove every session.

        Returns:
            Number of sessions removed
        """
        count = len(self._sessions)
        self._sessions.clear()
        return count

    @asynccontextmanager
    async def lock(self, key: str) -> AsyncIterator[None]:
        """Serialize access to one chat key."""
        entry = self._locks.get(key)
        if entry is None:
            entry = self._locks[key] = _KeyLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[key]

    def _evict_oldest(self) -> None:
        """Remove oldest sessions to make room for new ones."""
        # Sort by updated_at and remove oldest 10%
        ordered = sorted(self._sessions.items(), key=lambda item: item[1].updated_at)
        num_to_remove = max(1, len(ordered) // 10)
        for key, _ in ordered[:num_to_remove]:
            del self._sessions[key]
        logger.info(f"Evicted {num_to_remove} chat session(s)")
