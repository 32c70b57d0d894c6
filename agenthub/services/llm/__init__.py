"""LLM service module."""

from .gateway import (
    GatewayChunk,
    GenerationMode,
    ModelGateway,
    ModelReply,
    ToolCallAssembler,
    ToolCallRequest,
    parse_tool_arguments,
)
from .provider import LLMProvider, LLMResponse, StreamingLLMResponse, ToolCallDelta
from .router import LLMRouter

__all__ = [
    "GatewayChunk",
    "GenerationMode",
    "LLMProvider",
    "LLMResponse",
    "LLMRouter",
    "ModelGateway",
    "ModelReply",
    "StreamingLLMResponse",
    "ToolCallAssembler",
    "ToolCallDelta",
    "ToolCallRequest",
    "parse_tool_arguments",
]
