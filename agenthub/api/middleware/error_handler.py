"""Error handling middleware with unified response format.

Provides consistent error responses across all API endpoints.
"""

import traceback
from typing import Any, Callable, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from ...core.context import get_current_context
from ...utils.errors import AgentHubError, ErrorCode
from ...utils.logger import get_logger

logger = get_logger(__name__)

STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.SESSION_NOT_FOUND: 404,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.TOOL_NOT_FOUND: 404,
    ErrorCode.MESSAGE_EMPTY: 400,
    ErrorCode.VALIDATION: 400,
    ErrorCode.MODEL_RATE_LIMITED: 429,
    ErrorCode.MODEL_TIMEOUT: 504,
    ErrorCode.MODEL_UNAVAILABLE: 502,
    ErrorCode.MODEL_AUTH_FAILED: 502,
    ErrorCode.MODEL_BAD_REQUEST: 502,
    ErrorCode.MODEL_TOOL_SEQUENCE_INVALID: 502,
}


def status_for(code: ErrorCode) -> int:
    return STATUS_BY_CODE.get(code, 500)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Middleware that catches exceptions and returns unified error responses.

    Response format:
    {
        "success": false,
        "error": {
            "code": "ERR_XXX",
            "message": "Error description",
            "details": {...}
        },
        "trace_id": "xxx"
    }
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        include_traceback: bool = False,
    ) -> None:
        super().__init__(app)
        self.include_traceback = include_traceback

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request with error handling."""
        try:
            return await call_next(request)

        except AgentHubError as e:
            status_code = status_for(e.code)
            log = logger.error if status_code >= 500 else logger.warning
            log(
                "Request failed",
                extra={"error_code": e.code.value, "error": e.message, "status_code": status_code},
            )
            return self._create_error_response(status_code, e.code.value, e.message, e.details)

        except ValidationError as e:
            return self._create_error_response(
                400, ErrorCode.VALIDATION.value, "Validation error", {"errors": e.errors()},
            )

        except Exception as e:
            logger.exception("Unhandled exception", extra={"error_type": type(e).__name__})

            details: dict[str, Any] = {"type": type(e).__name__}
            if self.include_traceback:
                details["traceback"] = traceback.format_exc()
            message = str(e) if self.include_traceback else "An unexpected error occurred"
            return self._create_error_response(500, ErrorCode.INTERNAL.value, message, details)

    @staticmethod
    def _create_error_response(
        status_code: int,
        code: str,
        message: str,
        details: Optional[dict[str, Any]] = None,
    ) -> JSONResponse:
        """Create a standardized error response."""
        ctx = get_current_context()
        response_body: dict[str, Any] = {
            "success": False,
            "error": {"code": code, "message": message},
        }
        if details:
            response_body["error"]["details"] = details
        if ctx is not None:
            response_body["trace_id"] = ctx.trace_id

        return JSONResponse(status_code=status_code, content=response_body)
