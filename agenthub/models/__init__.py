"""Data models for AgentHub.

SQLAlchemy models back the conversation store; ``transcript`` and
``events`` hold the engine's in-memory and streaming types.
"""

from .base import Base
from .conversation import Conversation, Message
from .transcript import PersistedMessage, Role, ToolInvocationRecord, Transcript, Turn

__all__ = [
    "Base",
    "Conversation",
    "Message",
    "PersistedMessage",
    "Role",
    "ToolInvocationRecord",
    "Transcript",
    "Turn",
]
