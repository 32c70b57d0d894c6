"""Conversation store: persisted conversations, messages and summaries."""

import asyncio
from datetime import datetime
from typing import Any, Optional, Protocol, Sequence

from sqlalchemy import func, select
from sqlalchemy.orm import selectinload

from ..models.conversation import Conversation, Message
from ..models.transcript import PersistedMessage, Role
from ..orchestrator.personas import (
    AgentType,
    default_conversation_title,
    is_default_title,
    title_from_message,
)
from ..utils.errors import ConversationNotFoundError
from ..utils.logger import get_logger
from .storage import StorageService

logger = get_logger(__name__)


class SummaryRefresher(Protocol):
    """The part of ``ChatOrchestrator`` the store needs for summary refresh."""

    summarizer: Any

    async def summarize_messages(self, messages: Sequence[PersistedMessage], agent_type: Any) -> str: ...

    def clear_session(self, conversation_id: str | int) -> bool: ...


def to_persisted(message: Message) -> PersistedMessage:
    return PersistedMessage(role=Role.parse(message.role), content=message.content, created_at=message.created_at)


class ConversationService:
    """Manages persisted conversations and their messages.

    Every ``summary.trigger_interval`` messages (from
    ``summary.trigger_min_messages`` on) the long-term summary is refreshed
    in the background and the resident session is evicted, so the next turn
    rehydrates with the new summary.
    """

    def __init__(self, storage: StorageService, orchestrator: Optional[SummaryRefresher] = None) -> None:
        self._storage = storage
        self._orchestrator = orchestrator
        self._background: set[asyncio.Task] = set()

    def attach_orchestrator(self, orchestrator: SummaryRefresher) -> None:
        self._orchestrator = orchestrator

    async def create_conversation(self, agent_type: AgentType | str = AgentType.DEFAULT, title: Optional[str] = None) -> Conversation:
        agent = AgentType.parse(agent_type)
        conversation = Conversation(
            agent_type=agent.value,
            title=title or default_conversation_title(agent),
            message_count=0,
        )
        async with self._storage.session() as db:
            db.add(conversation)
            await db.flush()
            await db.refresh(conversation)

        logger.info(
            "Created conversation",
            extra={"conversation_id": conversation.id, "agent_type": agent.value, "title": conversation.title},
        )
        return conversation

    async def get_conversation(self, conversation_id: int, with_messages: bool = False) -> Optional[Conversation]:
        stmt = select(Conversation).where(Conversation.id == conversation_id)
        if with_messages:
            stmt = stmt.options(selectinload(Conversation.messages))
        async with self._storage.session() as db:
            result = await db.execute(stmt)
            return result.scalar_one_or_none()

    async def require_conversation(self, conversation_id: int, with_messages: bool = False) -> Conversation:
        conversation = await self.get_conversation(conversation_id, with_messages=with_messages)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        return conversation

    async def list_conversations(
        self,
        limit: int = 50,
        agent_type: Optional[AgentType | str] = None,
        offset: int = 0,
    ) -> list[Conversation]:
        """Most recently active conversations first, one page at a time."""
        stmt = select(Conversation)
        if agent_type is not None:
            stmt = stmt.where(Conversation.agent_type == AgentType.parse(agent_type).value)
        stmt = stmt.order_by(
            func.coalesce(Conversation.last_message_at, Conversation.created_at).desc(),
            Conversation.id.desc(),
        ).offset(offset).limit(limit)
        async with self._storage.session() as db:
            result = await db.execute(stmt)
            return list(result.scalars().all())

    async def add_message(
        self,
        conversation_id: int,
        role: Role | str,
        content: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> Message:
        """Persist a message.

        The first user message retitles a conversation that still carries a
        default title. May schedule a background summary refresh.

        Raises:
            ConversationNotFoundError: If the conversation does not exist
        """
        role = Role.parse(role)
        async with self._storage.session() as db:
            conversation = await db.get(Conversation, conversation_id)
            if conversation is None:
                raise ConversationNotFoundError(conversation_id)

            if conversation.message_count == 0 and role == Role.USER and is_default_title(conversation.title):
                conversation.title = title_from_message(content, conversation.agent_type)

            message = Message(conversation_id=conversation_id, role=role.value, content=content)
            message.set_metadata(metadata)
            db.add(message)

            conversation.message_count += 1
            conversation.last_message_at = datetime.now()
            count = conversation.message_count
            agent_type = conversation.agent_type

            await db.flush()
            await db.refresh(message)

        logger.debug(
            "Added message to conversation",
            extra={
                "conversation_id": conversation_id,
                "message_id": message.id,
                "role": role.value,
                "content_length": len(content),
                "message_count": count,
            },
        )

        if self._orchestrator is not None and self._orchestrator.summarizer.should_refresh(count):
            logger.info(
                "Scheduling summary refresh",
                extra={"conversation_id": conversation_id, "message_count": count, "agent_type": agent_type},
            )
            task = asyncio.create_task(self.refresh_summary(conversation_id))
            self._background.add(task)
            task.add_done_callback(self._background.discard)
        return message

    async def get_messages(self, conversation_id: int) -> list[Message]:
        async with self._storage.session() as db:
            result = await db.execute(
                select(Message)
                .where(Message.conversation_id == conversation_id)
                .order_by(Message.id.asc())
            )
            return list(result.scalars().all())

    async def get_recent_messages(self, conversation_id: int, limit: Optional[int] = None) -> list[PersistedMessage]:
        """The newest ``limit`` messages (all when None), oldest first."""
        stmt = select(Message).where(Message.conversation_id == conversation_id).order_by(Message.id.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self._storage.session() as db:
            result = await db.execute(stmt)
            messages = list(result.scalars().all())
        messages.reverse()
        return [to_persisted(m) for m in messages]

    async def refresh_summary(self, conversation_id: int) -> Optional[str]:
        """Summarize all but the most recent messages and persist the summary.

        Runs in the background, so failures are logged and never raised.
        Returns the new summary, or None if nothing was refreshed.
        """
        if self._orchestrator is None:
            return None
        summarizer = self._orchestrator.summarizer
        try:
            conversation = await self.get_conversation(conversation_id)
            if conversation is None:
                logger.warning("Summary refresh skipped, conversation missing", extra={"conversation_id": conversation_id})
                return None

            messages = await self.get_recent_messages(conversation_id)
            if len(messages) < summarizer.config.trigger_min_messages:
                logger.info(
                    "Summary refresh skipped, not enough messages",
                    extra={"conversation_id": conversation_id, "message_count": len(messages)},
                )
                return None

            older = summarizer.select_messages_for_refresh(messages)
            if not older:
                return None

            summary = await self._orchestrator.summarize_messages(older, conversation.agent_type)
            async with self._storage.session() as db:
                stored = await db.get(Conversation, conversation_id)
                if stored is None:
                    return None
                stored.context_summary = summary

            self._orchestrator.clear_session(conversation_id)
            logger.info(
                "Conversation summary refreshed",
                extra={
                    "conversation_id": conversation_id,
                    "summary_length": len(summary),
                    "summarized_messages": len(older),
                },
            )
            return summary
        except Exception as e:
            logger.error(
                "Summary refresh failed",
                extra={"conversation_id": conversation_id, "error": str(e), "error_type": type(e).__name__},
            )
            return None

    async def update_title(self, conversation_id: int, title: str) -> Conversation:
        async with self._storage.session() as db:
            conversation = await db.get(Conversation, conversation_id)
            if conversation is None:
                raise ConversationNotFoundError(conversation_id)
            conversation.title = title.strip()[:200]
        logger.info("Conversation title updated", extra={"conversation_id": conversation_id, "title": title})
        return conversation

    async def delete_conversation(self, conversation_id: int) -> bool:
        """Delete a conversation with its messages and evict its session."""
        async with self._storage.session() as db:
            conversation = await db.get(Conversation, conversation_id)
            if conversation is None:
                return False
            await db.delete(conversation)

        if self._orchestrator is not None:
            self._orchestrator.clear_session(conversation_id)
        logger.info("Deleted conversation", extra={"conversation_id": conversation_id})
        return True

    async def wait_for_background(self) -> None:
        """Wait for scheduled summary refreshes (shutdown and tests)."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
