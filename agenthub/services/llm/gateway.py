"""Model gateway: the engine's view of a chat-completion backend.

The gateway turns a transcript plus tool schemas into either a final answer
or a request to call tools, in blocking or streaming form. Whatever goes
wrong underneath surfaces as ``UpstreamError``.
"""

import json
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any, Literal, Optional, Protocol, Sequence

from ...config.models import GenerationConfig
from ...models.transcript import Transcript
from ...utils.errors import UpstreamError, classify_upstream_error
from ...utils.logger import get_logger
from .provider import LLMResponse, StreamingLLMResponse, ToolCallDelta

logger = get_logger(__name__)


class ChatBackend(Protocol):
    """What the gateway needs from ``LLMRouter``."""

    async def chat(self, messages: list[dict[str, Any]], stream: bool = False, **kwargs: Any) -> Any:
        ...


@dataclass(frozen=True)
class GenerationMode:
    """Sampling parameters for one completion."""
    temperature: float = 0.1
    max_tokens: int = 3000

    @classmethod
    def from_config(cls, config: GenerationConfig) -> "GenerationMode":
        return cls(temperature=config.temperature, max_tokens=config.max_tokens)


@dataclass
class ToolCallRequest:
    """A tool invocation requested by the model."""
    id: str
    name: str
    arguments: dict[str, Any]
    raw_arguments: str = ""

    def to_openai(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {
                "name": self.name,
                "arguments": self.raw_arguments or json.dumps(self.arguments, ensure_ascii=False),
            },
        }


@dataclass
class ModelReply:
    """Either a final answer or a tool request."""
    content: str = ""
    tool_calls: list[ToolCallRequest] = field(default_factory=list)
    finish_reason: Optional[str] = None
    model: Optional[str] = None

    @property
    def is_tool_request(self) -> bool:
        return bool(self.tool_calls)


@dataclass
class GatewayChunk:
    """One item of a streamed completion.

    ``text_delta`` chunks carry ``text``; the stream ends with either a
    ``tool_request`` chunk (``tool_calls`` set) or a ``completion`` chunk
    (``reply`` holds the assembled answer).
    """
    kind: Literal["text_delta", "tool_request", "completion"]
    text: str = ""
    tool_calls: list[ToolCallRequest] = field(default_factory=list)
    reply: Optional[ModelReply] = None


def parse_tool_arguments(raw: str | None) -> dict[str, Any]:
    """Decode tool-call arguments; undecodable text is kept under ``raw``."""
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return {"raw": raw}
    if not isinstance(parsed, dict):
        return {"raw": raw}
    return parsed


def _tool_calls_from_openai(tool_calls: list[dict[str, Any]] | None) -> list[ToolCallRequest]:
    requests = []
    for i, tc in enumerate(tool_calls or []):
        function = tc.get("function") or {}
        raw = function.get("arguments") or ""
        requests.append(ToolCallRequest(
            id=tc.get("id") or f"call_{i}",
            name=function.get("name") or "",
            arguments=parse_tool_arguments(raw),
            raw_arguments=raw,
        ))
    return requests


class ToolCallAssembler:
    """Accumulates streamed tool-call fragments by index."""

    def __init__(self) -> None:
        self._calls: dict[int, dict[str, Any]] = {}

    def add(self, delta: ToolCallDelta) -> None:
        entry = self._calls.setdefault(delta.index, {"id": None, "name": "", "arguments": ""})
        if delta.id:
            entry["id"] = delta.id
        if delta.name:
            entry["name"] += delta.name
        if delta.arguments:
            entry["arguments"] += delta.arguments

    def __bool__(self) -> bool:
        return bool(self._calls)

    def build(self) -> list[ToolCallRequest]:
        return [
            ToolCallRequest(
                id=entry["id"] or f"call_{index}",
                name=entry["name"],
                arguments=parse_tool_arguments(entry["arguments"]),
                raw_arguments=entry["arguments"],
            )
            for index, entry in sorted(self._calls.items())
        ]


class ModelGateway:
    """Completion facade over an ``LLMRouter``."""

    def __init__(self, backend: ChatBackend, generation: Optional[GenerationConfig] = None) -> None:
        self._backend = backend
        self._generation = generation or GenerationConfig()
        self.default_mode = GenerationMode.from_config(self._generation)

    def _build_request(
        self,
        transcript: Transcript | Sequence[dict[str, Any]],
        tools: Optional[list[dict[str, Any]]],
        mode: Optional[GenerationMode],
    ) -> tuple[list[dict[str, Any]], dict[str, Any]]:
        if isinstance(transcript, Transcript):
            messages = transcript.to_messages()
        else:
            messages = list(transcript)
        if not messages:
            raise ValueError("Transcript must contain at least one turn")

        mode = mode or self.default_mode
        kwargs: dict[str, Any] = {
            "temperature": mode.temperature,
            "max_tokens": mode.max_tokens,
        }
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = self._generation.tool_choice
        return messages, kwargs

    async def complete(
        self,
        transcript: Transcript | Sequence[dict[str, Any]],
        tools: Optional[list[dict[str, Any]]] = None,
        mode: Optional[GenerationMode] = None,
    ) -> ModelReply:
        """Run one blocking completion.

        Raises:
            ValueError: If the transcript is empty
            UpstreamError: On any provider or transport failure
        """
        messages, kwargs = self._build_request(transcript, tools, mode)
        try:
            response: LLMResponse = await self._backend.chat(messages, stream=False, **kwargs)
        except UpstreamError:
            raise
        except Exception as e:
            raise classify_upstream_error(e) from e

        reply = ModelReply(
            content=response.content or "",
            tool_calls=_tool_calls_from_openai(response.tool_calls),
            finish_reason=response.finish_reason,
            model=response.model,
        )
        logger.debug(
            "Model completion",
            extra={
                "message_count": len(messages),
                "tool_count": len(tools or []),
                "tool_calls": [tc.name for tc in reply.tool_calls],
                "finish_reason": reply.finish_reason,
            },
        )
        return reply

    async def complete_streaming(
        self,
        transcript: Transcript | Sequence[dict[str, Any]],
        tools: Optional[list[dict[str, Any]]] = None,
        mode: Optional[GenerationMode] = None,
    ) -> AsyncIterator[GatewayChunk]:
        """Stream one completion as text deltas plus a terminal chunk."""
        messages, kwargs = self._build_request(transcript, tools, mode)
        assembler = ToolCallAssembler()
        content_parts: list[str] = []
        finish_reason: Optional[str] = None
        model: Optional[str] = None

        try:
            stream = await self._backend.chat(messages, stream=True, **kwargs)
            async for chunk in stream:
                chunk: StreamingLLMResponse
                model = chunk.model or model
                for delta in chunk.tool_call_deltas:
                    assembler.add(delta)
                if chunk.finish_reason:
                    finish_reason = chunk.finish_reason
                if chunk.content:
                    content_parts.append(chunk.content)
                    yield GatewayChunk(kind="text_delta", text=chunk.content)
        except UpstreamError:
            raise
        except Exception as e:
            raise classify_upstream_error(e) from e

        content = "".join(content_parts)
        if assembler:
            tool_calls = assembler.build()
            yield GatewayChunk(
                kind="tool_request",
                tool_calls=tool_calls,
                reply=ModelReply(content=content, tool_calls=tool_calls,
                                 finish_reason=finish_reason, model=model),
            )
        else:
            yield GatewayChunk(
                kind="completion",
                reply=ModelReply(content=content, finish_reason=finish_reason, model=model),
            )
