"""Unit tests for the error taxonomy and upstream classification."""

import httpx
import openai
import pytest

from agenthub.utils.errors import (
    ConversationNotFoundError,
    EngineErrorKind,
    ErrorCode,
    GuardRejection,
    ToolExecutionError,
    UpstreamError,
    classify_upstream_error,
)

REQUEST = httpx.Request("POST", "https://api.example.com/v1/chat/completions")


def status_error(cls: type, status: int, message: str, param: str | None = None) -> openai.APIStatusError:
    body = {"message": message, "type": "invalid_request_error", "param": param, "code": None}
    return cls(message, response=httpx.Response(status, request=REQUEST), body=body)


class TestClassifyUpstreamError:
    """Tests for classify_upstream_error."""

    def test_tool_sequence_violation(self) -> None:
        exc = status_error(
            openai.BadRequestError,
            400,
            "messages with role 'tool' must be a response to a preceeding message with 'tool_calls'.",
            param="messages.[3].role",
        )

        error = classify_upstream_error(exc, provider="primary")

        assert error.code == ErrorCode.MODEL_TOOL_SEQUENCE_INVALID
        assert error.is_tool_sequence_error
        assert error.status_code == 400
        assert error.provider == "primary"
        assert error.is_retryable is False

    def test_other_bad_request(self) -> None:
        exc = status_error(openai.BadRequestError, 400, "max_tokens is too large")

        error = classify_upstream_error(exc)

        assert error.code == ErrorCode.MODEL_BAD_REQUEST
        assert error.is_tool_sequence_error is False

    @pytest.mark.parametrize(
        "cls,status,code",
        [
            (openai.AuthenticationError, 401, ErrorCode.MODEL_AUTH_FAILED),
            (openai.PermissionDeniedError, 403, ErrorCode.MODEL_AUTH_FAILED),
            (openai.RateLimitError, 429, ErrorCode.MODEL_RATE_LIMITED),
            (openai.InternalServerError, 500, ErrorCode.MODEL_UNAVAILABLE),
        ],
    )
    def test_status_codes(self, cls: type, status: int, code: ErrorCode) -> None:
        error = classify_upstream_error(status_error(cls, status, "failure"))

        assert error.code == code
        assert error.status_code == status

    def test_timeout(self) -> None:
        error = classify_upstream_error(openai.APITimeoutError(request=REQUEST))

        assert error.code == ErrorCode.MODEL_TIMEOUT
        assert error.is_retryable

    def test_connection_error(self) -> None:
        error = classify_upstream_error(openai.APIConnectionError(request=REQUEST))

        assert error.code == ErrorCode.MODEL_UNAVAILABLE

    def test_httpx_errors(self) -> None:
        assert classify_upstream_error(httpx.ReadTimeout("slow")).code == ErrorCode.MODEL_TIMEOUT
        assert classify_upstream_error(httpx.ConnectError("refused")).code == ErrorCode.MODEL_UNAVAILABLE

    def test_upstream_error_returned_unchanged(self) -> None:
        original = UpstreamError("x", ErrorCode.MODEL_RATE_LIMITED)

        assert classify_upstream_error(original) is original

    def test_anything_else_is_unavailable(self) -> None:
        error = classify_upstream_error(KeyError("choices"))

        assert error.code == ErrorCode.MODEL_UNAVAILABLE
        assert error.message.startswith("KeyError")


class TestErrorTypes:
    """Tests for the AgentHubError subclasses."""

    def test_upstream_error_details(self) -> None:
        error = UpstreamError("rejected", ErrorCode.MODEL_BAD_REQUEST, status_code=400, provider="backup-1")

        assert error.kind == EngineErrorKind.UPSTREAM
        assert error.to_dict() == {
            "success": False,
            "error": {
                "code": "ERR_MODEL_BAD_REQUEST",
                "message": "rejected",
                "details": {"status_code": 400, "provider": "backup-1"},
            },
        }

    def test_conversation_not_found(self) -> None:
        error = ConversationNotFoundError(12)

        assert error.code == ErrorCode.SESSION_NOT_FOUND
        assert error.details == {"conversation_id": "12"}

    def test_tool_and_guard_kinds(self) -> None:
        assert ToolExecutionError("search_web", "boom").kind == EngineErrorKind.TOOL_EXECUTION
        rejection = GuardRejection("duplicate", "重复搜索")
        assert rejection.kind == EngineErrorKind.GUARD_REJECTION
        assert rejection.details == {"reason": "duplicate"}
