"""In-memory session transcript.

A transcript is the model-facing view of one conversation: exactly one
SYSTEM turn followed by user, assistant and tool turns in order. Tool turns
sit between an assistant tool-request turn and the next assistant answer and
never count toward conversation-message accounting.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Iterator, Optional


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    """Transcript turn roles."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"

    @classmethod
    def parse(cls, value: "str | Role") -> "Role":
        if isinstance(value, Role):
            return value
        return cls(value.strip().lower())


@dataclass
class Turn:
    """One role-tagged transcript entry."""

    role: Role
    content: str = ""
    tool_name: Optional[str] = None
    tool_call_id: Optional[str] = None
    tool_calls: list[dict[str, Any]] = field(default_factory=list)
    created_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def system(cls, content: str) -> "Turn":
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "Turn":
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(cls, content: str, tool_calls: Optional[list[dict[str, Any]]] = None) -> "Turn":
        return cls(role=Role.ASSISTANT, content=content, tool_calls=list(tool_calls or []))

    @classmethod
    def tool(cls, tool_name: str, tool_call_id: str, content: str) -> "Turn":
        return cls(role=Role.TOOL, content=content, tool_name=tool_name, tool_call_id=tool_call_id)

    @property
    def is_tool_request(self) -> bool:
        """Assistant turn that only asks for tool calls."""
        return self.role == Role.ASSISTANT and bool(self.tool_calls)

    @property
    def is_conversation_message(self) -> bool:
        """User turns and assistant answers; tool traffic is excluded."""
        if self.role == Role.USER:
            return True
        return self.role == Role.ASSISTANT and not self.tool_calls

    def to_message(self) -> dict[str, Any]:
        """Render as an OpenAI chat-completions message."""
        if self.role == Role.TOOL:
            return {
                "role": "tool",
                "tool_call_id": self.tool_call_id,
                "content": self.content,
            }
        message: dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.tool_calls:
            message["tool_calls"] = self.tool_calls
            # Some OpenAI-compatible endpoints reject "" alongside tool_calls
            if not self.content:
                message["content"] = None
        return message


class Transcript:
    """Ordered turns of one session, starting with a single SYSTEM turn."""

    def __init__(self, system_prompt: str, turns: Optional[Iterable[Turn]] = None) -> None:
        self._turns: list[Turn] = [Turn.system(system_prompt)]
        for turn in turns or ():
            self.append(turn)

    @property
    def system_turn(self) -> Turn:
        return self._turns[0]

    @property
    def turns(self) -> list[Turn]:
        """A copy of the turns; mutate through ``append``/``replace``/``truncate``."""
        return list(self._turns)

    def append(self, turn: Turn) -> None:
        if turn.role == Role.SYSTEM:
            raise ValueError("Transcript already has a system turn")
        self._turns.append(turn)

    def replace(self, turns: list[Turn]) -> None:
        """Swap in a rewritten turn list (used by compaction)."""
        if not turns or turns[0].role != Role.SYSTEM:
            raise ValueError("Transcript must begin with a system turn")
        if any(t.role == Role.SYSTEM for t in turns[1:]):
            raise ValueError("Transcript must contain exactly one system turn")
        self._turns = list(turns)

    def truncate(self, length: int) -> None:
        """Drop every turn at index >= length, never the system turn."""
        self._turns = self._turns[:max(length, 1)]

    def conversation_message_count(self) -> int:
        return sum(1 for t in self._turns if t.is_conversation_message)

    def to_messages(self) -> list[dict[str, Any]]:
        return [t.to_message() for t in self._turns]

    def __iter__(self) -> Iterator[Turn]:
        return iter(list(self._turns))

    def __len__(self) -> int:
        return len(self._turns)

    def __getitem__(self, index: int) -> Turn:
        return self._turns[index]

    def __repr__(self) -> str:
        return f"<Transcript(turns={len(self._turns)}, messages={self.conversation_message_count()})>"


@dataclass
class PersistedMessage:
    """A message as handed over by the conversation store."""

    role: Role
    content: str
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        self.role = Role.parse(self.role)

    def to_turn(self) -> Turn:
        if self.role == Role.USER:
            return Turn.user(self.content)
        if self.role == Role.ASSISTANT:
            return Turn.assistant(self.content)
        raise ValueError(f"Only user/assistant messages can be replayed, got {self.role.value}")


@dataclass
class ToolInvocationRecord:
    """Side-channel record of one tool call within a turn."""

    tool_name: str
    started_at: datetime
    result_preview: str
    success: bool = True
    tool_call_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "tool_name": self.tool_name,
            "tool_call_id": self.tool_call_id,
            "started_at": self.started_at.isoformat(),
            "result_preview": self.result_preview,
            "success": self.success,
        }


def preview(text: str, limit: int = 100) -> str:
    """Truncate tool output for events and logs."""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."
