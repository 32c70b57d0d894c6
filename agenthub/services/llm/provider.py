"""LLM Provider abstract base class."""

from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from typing import Any


@dataclass
class LLMResponse:
    """Standard LLM response."""
    content: str | None
    model: str
    usage: dict[str, int] | None = None
    tool_calls: list[dict[str, Any]] | None = None  # OpenAI function calls
    finish_reason: str | None = None  # "stop", "tool_calls", etc.


@dataclass
class ToolCallDelta:
    """Fragment of a streamed tool call; fragments share an ``index``."""
    index: int
    id: str | None = None
    name: str | None = None
    arguments: str = ""


@dataclass
class StreamingLLMResponse:
    """Streaming LLM response chunk."""
    content: str
    is_finished: bool = False
    model: str | None = None
    usage: dict[str, int] | None = None
    tool_call_deltas: list[ToolCallDelta] = field(default_factory=list)
    finish_reason: str | None = None


class LLMProvider(ABC):
    """Abstract base class for LLM providers.

    Implementations raise ``UpstreamError`` for every transport or provider
    failure, including failures raised while a stream is being consumed.
    """

    def __init__(self, config: dict[str, Any]) -> None:
        """Initialize provider with configuration.

        Args:
            config: Provider configuration derived from ``ModelConfig``
        """
        self.config = config
        self.name = config.get("name", "unknown")
        self.model_id = config.get("model_id", "unknown")
        self.timeout = config.get("timeout", 60.0)
        self.max_retries = config.get("max_retries", 2)
        self.priority = config.get("priority", 0)

    @abstractmethod
    async def chat(
        self,
        messages: list[dict[str, Any]],
        stream: bool = False,
        **kwargs: Any
    ) -> LLMResponse | AsyncGenerator[StreamingLLMResponse, None]:
        """Send chat completion request.

        Args:
            messages: List of messages in OpenAI format
            stream: Whether to stream the response
            **kwargs: Additional parameters (tools, temperature, max_tokens...)

        Returns:
            Either LLMResponse (non-streaming) or AsyncGenerator (streaming)
        """

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if provider is healthy."""

    @property
    @abstractmethod
    def is_available(self) -> bool:
        """Check if provider has the configuration it needs."""

    async def close(self) -> None:
        """Release network resources."""
