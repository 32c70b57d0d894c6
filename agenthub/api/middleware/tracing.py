"""Request/Response tracing middleware.

Adds trace IDs to all requests for distributed tracing and debugging.
"""

import time
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from ...core.context import ContextSource, context_manager
from ...utils.logger import get_logger

logger = get_logger(__name__)

TRACE_ID_HEADER = "X-Trace-ID"
REQUEST_ID_HEADER = "X-Request-ID"


class TracingMiddleware(BaseHTTPMiddleware):
    """Middleware that adds tracing headers and context to requests.

    - Propagates ``X-Trace-ID`` or generates a new one
    - Sets up the request-scoped context used by every log line
    - Logs request/response timing
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        trace_id_header: str = TRACE_ID_HEADER,
        request_id_header: str = REQUEST_ID_HEADER,
    ) -> None:
        super().__init__(app)
        self.trace_id_header = trace_id_header
        self.request_id_header = request_id_header

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request with tracing."""
        conversation_id: Optional[str] = request.query_params.get("conversation_id")

        with context_manager.request(
            conversation_id=conversation_id,
            source=ContextSource.REST_API,
            trace_id=request.headers.get(self.trace_id_header),
            method=request.method,
            path=request.url.path,
            client_host=request.client.host if request.client else None,
        ) as ctx:
            start_time = time.time()
            logger.info(
                "Request started",
                extra={"method": request.method, "path": request.url.path},
            )

            response = await call_next(request)

            elapsed_ms = (time.time() - start_time) * 1000
            response.headers[self.trace_id_header] = ctx.trace_id
            response.headers[self.request_id_header] = ctx.request_id
            response.headers["X-Response-Time"] = f"{elapsed_ms:.2f}ms"

            logger.info(
                "Request completed",
                extra={"status_code": response.status_code, "elapsed_ms": round(elapsed_ms, 2)},
            )
            return response
