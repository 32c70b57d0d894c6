"""Middleware module for AgentHub."""

from .error_handler import ErrorHandlerMiddleware
from .tracing import TracingMiddleware

__all__ = ["ErrorHandlerMiddleware", "TracingMiddleware"]
