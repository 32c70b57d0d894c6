"""Unit tests for ChatOrchestrator streaming turns.

Tests cover:
- Event order for plain and tool-using turns
- Exactly one terminal event per stream
- Recovery before any content and no recovery after content
- Error events instead of exceptions
- Lock release when the consumer stops early
"""

import pytest

from agenthub.models.events import TERMINAL_EVENT_TYPES, EventType
from agenthub.models.transcript import Role
from agenthub.orchestrator import ChatOrchestrator, TurnRequest
from agenthub.orchestrator.engine import STATUS_THINKING
from agenthub.utils.errors import ErrorCode, UpstreamError

from tests.conftest import (
    BrokenStream,
    ScriptedBackend,
    text_reply,
    tool_reply,
    tool_sequence_error,
)


async def collect(orchestrator: ChatOrchestrator, request: TurnRequest) -> list[dict]:
    return [event async for event in orchestrator.run_turn_streaming(request)]


def types(events: list[dict]) -> list[str]:
    return [e["type"] for e in events]


class TestStreamingEventOrder:
    """Successful streams."""

    async def test_plain_answer(self, orchestrator: ChatOrchestrator, backend: ScriptedBackend) -> None:
        backend.queue(text_reply("你好呀朋友"))

        events = await collect(orchestrator, TurnRequest(1, "你好"))

        assert types(events) == ["status", "content", "content", "done"]
        assert events[0]["message"] == STATUS_THINKING
        assert events[0]["conversation_id"] == "1"
        assert "".join(e["delta"] for e in events if e["type"] == "content") == "你好呀朋友"
        assert events[-1]["reply"] == "你好呀朋友"
        assert events[-1]["tool_invocations"] == []
        assert backend.calls[0]["stream"] is True

    async def test_tool_events_wrap_each_call(
        self, orchestrator: ChatOrchestrator, backend: ScriptedBackend
    ) -> None:
        backend.queue(tool_reply(("get_current_time", {})), text_reply("现在九点半"))

        events = await collect(orchestrator, TurnRequest(1, "几点了"))

        assert types(events) == ["status", "tool_call_start", "tool_call_end", "content", "content", "done"]
        start, end = events[1], events[2]
        assert start["tool_name"] == "get_current_time"
        assert start["arguments"] == {}
        assert start["tool_call_id"] == "call_0_get_current_time"
        assert end["success"] is True
        assert end["result_preview"] == "09:30:00"
        done = events[-1]
        assert done["tool_invocations"][0]["tool_name"] == "get_current_time"

    async def test_streamed_tool_arguments_are_assembled(
        self, orchestrator: ChatOrchestrator, backend: ScriptedBackend, search_client
    ) -> None:
        backend.queue(tool_reply(("search_web", {"query": "东莞 房价", "count": 2})), text_reply("东莞房价..."))

        events = await collect(orchestrator, TurnRequest(1, "东莞房价"))

        assert events[1]["arguments"] == {"query": "东莞 房价", "count": 2}
        search_client.search.assert_awaited_once_with("东莞 房价", 2)

    async def test_exactly_one_terminal_event(
        self, orchestrator: ChatOrchestrator, backend: ScriptedBackend
    ) -> None:
        backend.queue(tool_reply(("get_today", {})), text_reply("今天周五"))

        events = await collect(orchestrator, TurnRequest(1, "今天"))

        terminal = [e for e in events if e["type"] in TERMINAL_EVENT_TYPES]
        assert terminal == [events[-1]]

    async def test_streaming_commits_like_blocking(
        self, orchestrator: ChatOrchestrator, backend: ScriptedBackend
    ) -> None:
        backend.queue(tool_reply(("get_today", {})), text_reply("今天周五"))

        await collect(orchestrator, TurnRequest(1, "今天"))

        transcript = orchestrator.sessions.get(1).transcript
        assert [t.role for t in transcript] == [
            Role.SYSTEM, Role.USER, Role.ASSISTANT, Role.TOOL, Role.ASSISTANT,
        ]
        assert transcript[-1].content == "今天周五"


class TestStreamingFailures:
    """Streams ending in an error event."""

    async def test_empty_message_yields_single_error(
        self, orchestrator: ChatOrchestrator, backend: ScriptedBackend
    ) -> None:
        events = await collect(orchestrator, TurnRequest(1, ""))

        assert types(events) == ["error"]
        assert events[0]["code"] == ErrorCode.MESSAGE_EMPTY.value
        assert backend.calls == []

    async def test_rejection_before_content_is_retried(
        self, orchestrator: ChatOrchestrator, backend: ScriptedBackend
    ) -> None:
        await collect(orchestrator, TurnRequest(1, "第一"))
        backend.queue(tool_sequence_error(), text_reply("重来一次"))

        events = await collect(orchestrator, TurnRequest(1, "第二"))

        assert types(events) == ["status", "content", "content", "done"]
        assert events[-1]["reply"] == "重来一次"
        assert backend.roles() == ["system", "user"]

    async def test_no_retry_after_content_was_emitted(
        self, orchestrator: ChatOrchestrator, backend: ScriptedBackend
    ) -> None:
        backend.queue(BrokenStream(["部分回答"], tool_sequence_error()))

        events = await collect(orchestrator, TurnRequest(1, "你好"))

        assert types(events) == ["status", "content", "error"]
        assert events[-1]["code"] == ErrorCode.MODEL_TOOL_SEQUENCE_INVALID.value
        assert events[-1]["status_code"] == 400
        assert len(backend.calls) == 1
        assert [t.role for t in orchestrator.sessions.get(1).transcript] == [Role.SYSTEM]

    async def test_second_rejection_becomes_error_event(
        self, orchestrator: ChatOrchestrator, backend: ScriptedBackend
    ) -> None:
        backend.queue(tool_sequence_error(), tool_sequence_error())

        events = await collect(orchestrator, TurnRequest(1, "你好"))

        assert types(events) == ["status", "error"]
        assert len(backend.calls) == 2
        session = orchestrator.sessions.get(1)
        assert session.transcript is None
        assert not session.lock.locked()

    async def test_upstream_error_mid_stream(
        self, orchestrator: ChatOrchestrator, backend: ScriptedBackend
    ) -> None:
        backend.queue(BrokenStream(["一半"], UpstreamError("reset", ErrorCode.MODEL_UNAVAILABLE, status_code=502)))

        events = await collect(orchestrator, TurnRequest(1, "你好"))

        assert types(events)[-1] == EventType.ERROR.value
        assert events[-1]["code"] == ErrorCode.MODEL_UNAVAILABLE.value
        assert events[-1]["error"] == "reset"

    async def test_consumer_closing_early_releases_lock(
        self, orchestrator: ChatOrchestrator, backend: ScriptedBackend
    ) -> None:
        backend.queue(text_reply("很长的回答内容"))

        stream = orchestrator.run_turn_streaming(TurnRequest(1, "你好"))
        assert (await stream.__anext__())["type"] == "status"
        assert (await stream.__anext__())["type"] == "content"
        session = orchestrator.sessions.get(1)
        assert session.lock.locked()

        await stream.aclose()

        assert not session.lock.locked()
        # closed mid-answer, so the user turn is rolled back
        assert [t.role for t in session.transcript] == [Role.SYSTEM]

    @pytest.mark.parametrize("conversation_id", [1, "1"])
    async def test_int_and_str_ids_share_session(
        self, orchestrator: ChatOrchestrator, conversation_id
    ) -> None:
        await collect(orchestrator, TurnRequest(conversation_id, "你好"))

        assert orchestrator.sessions.contains("1")
        assert orchestrator.sessions.contains(1)
