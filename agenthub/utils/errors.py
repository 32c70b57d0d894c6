"""Error taxonomy for AgentHub.

Engine-facing failures carry a structured ``ErrorCode`` so callers select
recovery behaviour by code rather than by parsing provider messages.
"""

from enum import Enum
from typing import Any, Optional

import httpx
import openai
from pydantic import BaseModel


class ErrorCode(str, Enum):
    """Standard error codes for AgentHub."""
    # Configuration errors
    CONFIG_NOT_FOUND = "ERR_CONFIG_NOT_FOUND"
    CONFIG_INVALID = "ERR_CONFIG_INVALID"

    # Model/LLM errors
    MODEL_UNAVAILABLE = "ERR_MODEL_UNAVAILABLE"
    MODEL_TIMEOUT = "ERR_MODEL_TIMEOUT"
    MODEL_RATE_LIMITED = "ERR_MODEL_RATE_LIMITED"
    MODEL_AUTH_FAILED = "ERR_MODEL_AUTH_FAILED"
    MODEL_BAD_REQUEST = "ERR_MODEL_BAD_REQUEST"
    MODEL_TOOL_SEQUENCE_INVALID = "ERR_MODEL_TOOL_SEQUENCE_INVALID"

    # Session / conversation errors
    SESSION_NOT_FOUND = "ERR_SESSION_NOT_FOUND"

    # Message errors
    MESSAGE_EMPTY = "ERR_MESSAGE_EMPTY"

    # Tool errors
    TOOL_NOT_FOUND = "ERR_TOOL_NOT_FOUND"
    TOOL_EXECUTION_FAILED = "ERR_TOOL_EXECUTION_FAILED"
    TOOL_GUARD_REJECTED = "ERR_TOOL_GUARD_REJECTED"

    # Summary errors
    SUMMARIZATION_FAILED = "ERR_SUMMARIZATION_FAILED"

    # General errors
    INTERNAL = "ERR_INTERNAL"
    VALIDATION = "ERR_VALIDATION"
    NOT_FOUND = "ERR_NOT_FOUND"


class EngineErrorKind(str, Enum):
    """Classification of failures the orchestration engine distinguishes."""
    TOOL_EXECUTION = "tool_execution"
    GUARD_REJECTION = "guard_rejection"
    UPSTREAM = "upstream"
    SUMMARIZATION = "summarization"


# Router failover skips these codes
NON_RETRYABLE_CODES = frozenset({
    ErrorCode.MODEL_BAD_REQUEST,
    ErrorCode.MODEL_TOOL_SEQUENCE_INVALID,
    ErrorCode.MODEL_AUTH_FAILED,
})


class AgentHubError(Exception):
    """Base exception for AgentHub errors."""

    kind: EngineErrorKind | None = None

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert error to dictionary for API response."""
        return {
            "success": False,
            "error": {
                "code": self.code.value,
                "message": self.message,
                "details": self.details,
            },
        }


class ConfigError(AgentHubError):
    """Configuration-related errors."""
    pass


class ConversationNotFoundError(AgentHubError):
    """Raised when a persisted conversation does not exist."""

    def __init__(self, conversation_id: str | int) -> None:
        super().__init__(
            message=f"Conversation not found: {conversation_id}",
            code=ErrorCode.SESSION_NOT_FOUND,
            details={"conversation_id": str(conversation_id)},
        )


class UpstreamError(AgentHubError):
    """Model gateway failure (transport or provider)."""

    kind = EngineErrorKind.UPSTREAM

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.MODEL_UNAVAILABLE,
        status_code: Optional[int] = None,
        provider: Optional[str] = None,
    ) -> None:
        details: dict[str, Any] = {}
        if status_code is not None:
            details["status_code"] = status_code
        if provider:
            details["provider"] = provider
        super().__init__(message=message, code=code, details=details)
        self.status_code = status_code
        self.provider = provider

    @property
    def is_tool_sequence_error(self) -> bool:
        """Whether the provider rejected the transcript's tool message ordering."""
        return self.code == ErrorCode.MODEL_TOOL_SEQUENCE_INVALID

    @property
    def is_retryable(self) -> bool:
        """Whether another provider might succeed with the same request."""
        return self.code not in NON_RETRYABLE_CODES


class ToolExecutionError(AgentHubError):
    """Failure inside a tool invocation."""

    kind = EngineErrorKind.TOOL_EXECUTION

    def __init__(self, tool_name: str, message: str) -> None:
        super().__init__(
            message=message,
            code=ErrorCode.TOOL_EXECUTION_FAILED,
            details={"tool_name": tool_name},
        )
        self.tool_name = tool_name


class GuardRejection(AgentHubError):
    """Tool-call guard refused a guarded tool invocation."""

    kind = EngineErrorKind.GUARD_REJECTION

    def __init__(self, reason: str, message: str) -> None:
        super().__init__(
            message=message,
            code=ErrorCode.TOOL_GUARD_REJECTED,
            details={"reason": reason},
        )
        self.reason = reason


class SummarizationError(AgentHubError):
    """Summary generation failed."""

    kind = EngineErrorKind.SUMMARIZATION

    def __init__(self, message: str = "Summary generation failed") -> None:
        super().__init__(message=message, code=ErrorCode.SUMMARIZATION_FAILED)


def _extract_provider_error(exc: Exception) -> tuple[str | None, str | None, str]:
    """Pull (code, param, message) out of an openai SDK error body."""
    body = getattr(exc, "body", None)
    code = getattr(exc, "code", None)
    param = getattr(exc, "param", None)
    message = str(getattr(exc, "message", None) or exc)
    if isinstance(body, dict):
        error = body.get("error", body)
        if isinstance(error, dict):
            code = code or error.get("code")
            param = param or error.get("param")
            message = error.get("message") or message
    return (str(code) if code else None, str(param) if param else None, message)


def _is_tool_sequence_violation(param: str | None, message: str) -> bool:
    """Provider signature for a tool message without a preceding tool_calls turn."""
    if param and param.startswith("messages") and "tool" in message.lower():
        return True
    lowered = message.lower()
    return "role 'tool'" in lowered or ("tool" in lowered and "must be a response" in lowered)


def classify_upstream_error(exc: Exception, provider: str | None = None) -> UpstreamError:
    """Convert a provider SDK or transport exception into an ``UpstreamError``.

    This is the only place provider error payloads are inspected; everything
    downstream branches on ``UpstreamError.code``.
    """
    if isinstance(exc, UpstreamError):
        return exc

    if isinstance(exc, openai.APITimeoutError) or isinstance(exc, httpx.TimeoutException):
        return UpstreamError(str(exc), ErrorCode.MODEL_TIMEOUT, provider=provider)

    if isinstance(exc, openai.APIStatusError):
        status = exc.status_code
        code, param, message = _extract_provider_error(exc)
        if status == 400 and _is_tool_sequence_violation(param, message):
            error_code = ErrorCode.MODEL_TOOL_SEQUENCE_INVALID
        elif status in (401, 403):
            error_code = ErrorCode.MODEL_AUTH_FAILED
        elif status == 429:
            error_code = ErrorCode.MODEL_RATE_LIMITED
        elif 400 <= status < 500:
            error_code = ErrorCode.MODEL_BAD_REQUEST
        else:
            error_code = ErrorCode.MODEL_UNAVAILABLE
        return UpstreamError(message, error_code, status_code=status, provider=provider)

    if isinstance(exc, (openai.APIConnectionError, httpx.HTTPError)):
        return UpstreamError(str(exc), ErrorCode.MODEL_UNAVAILABLE, provider=provider)

    return UpstreamError(
        f"{type(exc).__name__}: {exc}", ErrorCode.MODEL_UNAVAILABLE, provider=provider
    )


class ErrorResponse(BaseModel):
    """Standard error response model."""
    success: bool = False
    error: dict[str, Any]
    trace_id: Optional[str] = None
