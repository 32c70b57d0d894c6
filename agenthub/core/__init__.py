"""Request context shared across the API and the engine."""

from .context import (
    ContextManager,
    ContextSource,
    RequestContext,
    context_manager,
    get_current_context,
    set_current_context,
)

__all__ = [
    "ContextManager",
    "ContextSource",
    "RequestContext",
    "context_manager",
    "get_current_context",
    "set_current_context",
]
