"""Shared test fixtures.

The engine is exercised through the real ``ModelGateway`` on top of a
``ScriptedBackend`` that replays queued ``LLMResponse`` objects (or raises
queued exceptions) in place of ``LLMRouter``.
"""

import asyncio
import json
from collections.abc import AsyncGenerator
from datetime import datetime
from typing import Any, Optional
from unittest.mock import AsyncMock

import pytest

from agenthub.config.models import Config, ModelConfig
from agenthub.orchestrator import ChatOrchestrator
from agenthub.services.llm.gateway import ModelGateway
from agenthub.services.llm.provider import LLMResponse, StreamingLLMResponse, ToolCallDelta
from agenthub.tools.base import BaseTool, ToolResult
from agenthub.tools.builtin import SearchWebTool, get_datetime_tools
from agenthub.tools.manager import ToolManager
from agenthub.utils.errors import ErrorCode, UpstreamError

FIXED_NOW = datetime(2025, 3, 14, 9, 30, 0)

TOOL_SEQUENCE_MESSAGE = (
    "<400> InternalError.Algo.InvalidParameter: messages with role 'tool' must be "
    "a response to a preceeding message with 'tool_calls'."
)


def text_reply(content: str) -> LLMResponse:
    return LLMResponse(content=content, model="fake-model", finish_reason="stop")


def tool_reply(*calls: tuple[str, dict[str, Any]], content: str = "") -> LLMResponse:
    """A tool-request reply; each call is ``(tool_name, arguments)``."""
    return LLMResponse(
        content=content,
        model="fake-model",
        finish_reason="tool_calls",
        tool_calls=[
            {
                "id": f"call_{i}_{name}",
                "type": "function",
                "function": {"name": name, "arguments": json.dumps(args, ensure_ascii=False)},
            }
            for i, (name, args) in enumerate(calls)
        ],
    )


def tool_sequence_error() -> UpstreamError:
    return UpstreamError(
        TOOL_SEQUENCE_MESSAGE,
        ErrorCode.MODEL_TOOL_SEQUENCE_INVALID,
        status_code=400,
        provider="primary",
    )


class BrokenStream:
    """A streamed reply that emits ``chunks`` and then fails with ``error``."""

    def __init__(self, chunks: list[str], error: Exception) -> None:
        self.chunks = chunks
        self.error = error


async def _stream_reply(reply: LLMResponse) -> AsyncGenerator[StreamingLLMResponse, None]:
    content = reply.content or ""
    if content:
        middle = max(len(content) // 2, 1)
        for piece in (content[:middle], content[middle:]):
            if piece:
                yield StreamingLLMResponse(content=piece, model=reply.model)
    for index, call in enumerate(reply.tool_calls or []):
        arguments = call["function"]["arguments"]
        half = len(arguments) // 2
        yield StreamingLLMResponse(
            content="",
            tool_call_deltas=[ToolCallDelta(index=index, id=call["id"], name=call["function"]["name"],
                                            arguments=arguments[:half])],
        )
        yield StreamingLLMResponse(
            content="",
            tool_call_deltas=[ToolCallDelta(index=index, arguments=arguments[half:])],
        )
    yield StreamingLLMResponse(content="", is_finished=True, finish_reason=reply.finish_reason)


async def _broken_stream(script: BrokenStream) -> AsyncGenerator[StreamingLLMResponse, None]:
    for piece in script.chunks:
        yield StreamingLLMResponse(content=piece)
    raise script.error


class ScriptedBackend:
    """Stand-in for ``LLMRouter.chat`` replaying queued replies in order.

    When the queue is empty every call answers ``"好的"``. Setting ``hold``
    to an ``asyncio.Event`` parks each call until the event is set.
    """

    def __init__(self, *replies: Any) -> None:
        self.replies: list[Any] = list(replies)
        self.calls: list[dict[str, Any]] = []
        self.hold: Optional[asyncio.Event] = None

    def queue(self, *replies: Any) -> None:
        self.replies.extend(replies)

    async def chat(self, messages: list[dict[str, Any]], stream: bool = False, **kwargs: Any) -> Any:
        self.calls.append({"messages": [dict(m) for m in messages], "stream": stream, **kwargs})
        if self.hold is not None:
            await self.hold.wait()

        reply = self.replies.pop(0) if self.replies else text_reply("好的")
        if isinstance(reply, BrokenStream):
            return _broken_stream(reply)
        if isinstance(reply, BaseException):
            raise reply
        if stream:
            return _stream_reply(reply)
        return reply

    def roles(self, call_index: int = -1) -> list[str]:
        return [m["role"] for m in self.calls[call_index]["messages"]]


async def wait_for_calls(backend: ScriptedBackend, count: int, timeout: float = 2.0) -> None:
    """Wait until the backend has received ``count`` calls."""
    async def _poll() -> None:
        while len(backend.calls) < count:
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_poll(), timeout)


class ExplodingTool(BaseTool):
    """Tool whose execution always raises."""

    @property
    def name(self) -> str:
        return "explode"

    async def execute(self) -> ToolResult:
        raise RuntimeError("boom")


def make_config(**sections: Any) -> Config:
    """A valid ``Config`` with one primary model plus section overrides."""
    return Config(
        models=[
            ModelConfig(
                name="primary",
                provider="openai",
                base_url="https://llm.example.com/v1",
                api_key="sk-test",
                model_id="test-model",
                is_primary=True,
            )
        ],
        **sections,
    )


@pytest.fixture
def backend() -> ScriptedBackend:
    return ScriptedBackend()


@pytest.fixture
def gateway(backend: ScriptedBackend) -> ModelGateway:
    return ModelGateway(backend)


@pytest.fixture
def search_client() -> AsyncMock:
    client = AsyncMock()
    client.search.return_value = "搜索「东莞 在售楼盘」找到以下信息:\n\n1. 松山湖某楼盘\n   来源: https://example.com/1\n"
    return client


@pytest.fixture
def tool_manager(search_client: AsyncMock) -> ToolManager:
    manager = ToolManager()
    manager.register_all(get_datetime_tools(lambda: FIXED_NOW))
    manager.register(SearchWebTool(search_client))
    manager.register(ExplodingTool())
    return manager


@pytest.fixture
def orchestrator(gateway: ModelGateway, tool_manager: ToolManager) -> ChatOrchestrator:
    return ChatOrchestrator(gateway, tool_manager)
