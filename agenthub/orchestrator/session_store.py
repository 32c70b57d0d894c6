"""In-memory session state: one transcript and one lock per conversation."""

import asyncio
import threading
from dataclasses import dataclass, field
from typing import Optional

from ..models.transcript import Transcript
from ..utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class Session:
    """Resident state of one conversation.

    Attributes:
        conversation_id: Normalized (string) conversation id
        transcript: In-memory transcript, None until hydrated
        lock: Serializes turns of this conversation
    """
    conversation_id: str
    transcript: Optional[Transcript] = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    @property
    def is_hydrated(self) -> bool:
        return self.transcript is not None


class SessionManager:
    """Concurrency-safe map of conversation id to ``Session``.

    Sessions are created lazily; ``get_or_create`` always returns the same
    ``Session`` (and therefore the same lock) for a given id until it is
    cleared.

    Example:
        sessions = SessionManager()
        session = sessions.get_or_create(42)
        async with session.lock:
            ...
    """

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._mutex = threading.Lock()

    @staticmethod
    def normalize_id(conversation_id: str | int) -> str:
        return str(conversation_id)

    def get_or_create(self, conversation_id: str | int) -> Session:
        key = self.normalize_id(conversation_id)
        with self._mutex:
            session = self._sessions.get(key)
            if session is None:
                session = Session(conversation_id=key)
                self._sessions[key] = session
                logger.debug("Session created", extra={"conversation_id": key})
            return session

    def get(self, conversation_id: str | int) -> Optional[Session]:
        with self._mutex:
            return self._sessions.get(self.normalize_id(conversation_id))

    def contains(self, conversation_id: str | int) -> bool:
        with self._mutex:
            return self.normalize_id(conversation_id) in self._sessions

    def discard_transcript(self, conversation_id: str | int) -> None:
        """Drop the resident transcript but keep the lock."""
        session = self.get(conversation_id)
        if session is not None:
            session.transcript = None
            logger.info(
                "Session transcript discarded",
                extra={"conversation_id": session.conversation_id},
            )

    def clear(self, conversation_id: str | int) -> bool:
        """Remove transcript and lock. Returns False if nothing was resident."""
        key = self.normalize_id(conversation_id)
        with self._mutex:
            removed = self._sessions.pop(key, None)
        if removed is not None:
            logger.info("Session cleared", extra={"conversation_id": key})
        return removed is not None

    def clear_all(self) -> int:
        with self._mutex:
            count = len(self._sessions)
            self._sessions.clear()
        logger.info("All sessions cleared", extra={"session_count": count})
        return count

    def conversation_ids(self) -> list[str]:
        with self._mutex:
            return list(self._sessions.keys())

    def __len__(self) -> int:
        with self._mutex:
            return len(self._sessions)
