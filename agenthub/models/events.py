"""Event type definitions for AgentHub streaming turns.

The engine yields one ordered stream of these events per turn; the SSE
transport forwards each one as ``event: <type>`` with the event as JSON data.

Order within a turn:
- ``status`` first
- any mix of ``content``, ``tool_call_start`` and ``tool_call_end``
- exactly one terminal ``done`` or ``error``
"""

from enum import Enum
from typing import Any, TypedDict, Union


class EventType(str, Enum):
    """Standard event types for the streaming protocol."""

    STATUS = "status"
    TOOL_CALL_START = "tool_call_start"
    TOOL_CALL_END = "tool_call_end"
    CONTENT = "content"

    # Terminal
    DONE = "done"
    ERROR = "error"


TERMINAL_EVENT_TYPES = frozenset({EventType.DONE.value, EventType.ERROR.value})


class StatusEvent(TypedDict):
    """Turn has started (lock acquired)."""
    type: str  # EventType.STATUS
    message: str
    conversation_id: str


class ToolCallStartEvent(TypedDict):
    type: str  # EventType.TOOL_CALL_START
    tool_name: str
    arguments: dict[str, Any]
    tool_call_id: str | None
    started_at: str


class ToolCallEndEvent(TypedDict):
    type: str  # EventType.TOOL_CALL_END
    tool_name: str
    tool_call_id: str | None
    success: bool
    result_preview: str


class ContentEvent(TypedDict):
    """Incremental text of the assistant answer."""
    type: str  # EventType.CONTENT
    delta: str


class DoneEvent(TypedDict):
    type: str  # EventType.DONE
    reply: str
    tool_invocations: list[dict[str, Any]]


class ErrorEvent(TypedDict):
    type: str  # EventType.ERROR
    error: str
    code: str
    status_code: int | None


StreamEvent = Union[
    StatusEvent,
    ToolCallStartEvent,
    ToolCallEndEvent,
    ContentEvent,
    DoneEvent,
    ErrorEvent,
]


def create_status_event(message: str, conversation_id: str) -> StatusEvent:
    return {
        "type": EventType.STATUS.value,
        "message": message,
        "conversation_id": conversation_id,
    }


def create_tool_call_start_event(
    tool_name: str,
    arguments: dict[str, Any],
    tool_call_id: str | None,
    started_at: str,
) -> ToolCallStartEvent:
    return {
        "type": EventType.TOOL_CALL_START.value,
        "tool_name": tool_name,
        "arguments": arguments,
        "tool_call_id": tool_call_id,
        "started_at": started_at,
    }


def create_tool_call_end_event(
    tool_name: str,
    tool_call_id: str | None,
    success: bool,
    result_preview: str,
) -> ToolCallEndEvent:
    return {
        "type": EventType.TOOL_CALL_END.value,
        "tool_name": tool_name,
        "tool_call_id": tool_call_id,
        "success": success,
        "result_preview": result_preview,
    }


def create_content_event(delta: str) -> ContentEvent:
    return {"type": EventType.CONTENT.value, "delta": delta}


def create_done_event(reply: str, tool_invocations: list[dict[str, Any]]) -> DoneEvent:
    return {
        "type": EventType.DONE.value,
        "reply": reply,
        "tool_invocations": tool_invocations,
    }


def create_error_event(error: str, code: str, status_code: int | None = None) -> ErrorEvent:
    return {
        "type": EventType.ERROR.value,
        "error": error,
        "code": code,
        "status_code": status_code,
    }
