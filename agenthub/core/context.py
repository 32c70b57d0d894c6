"""Request-scoped context for AgentHub.

A ``RequestContext`` rides a ``ContextVar`` through one HTTP request or one
engine turn so every log line can carry the trace and conversation ids.
"""

import time
import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


class ContextSource(str, Enum):
    """Source of the context creation."""
    REST_API = "rest_api"
    SSE = "sse"
    INTERNAL = "internal"


_current_context: ContextVar[Optional["RequestContext"]] = ContextVar(
    "request_context", default=None
)


def get_current_context() -> Optional["RequestContext"]:
    """Get the current request context if set."""
    return _current_context.get()


def set_current_context(ctx: Optional["RequestContext"]) -> Token:
    """Set the current request context, returning a token for ``reset``."""
    return _current_context.set(ctx)


def clear_current_context() -> None:
    """Clear the current request context."""
    _current_context.set(None)


@dataclass
class RequestContext:
    """Execution context for a single request or engine turn.

    Attributes:
        trace_id: Unique identifier for request tracing
        request_id: Short request identifier
        conversation_id: Conversation this request operates on, if any
        agent_type: Agent persona handling the request
        source: Where this request originated from
        metadata: Additional context-specific data
        parent_trace_id: Trace id of the enclosing context for nested scopes
    """

    trace_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    request_id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    conversation_id: Optional[str] = None
    agent_type: Optional[str] = None
    source: ContextSource = ContextSource.INTERNAL
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    parent_trace_id: Optional[str] = None

    _start_time: float = field(default_factory=time.monotonic, repr=False)
    _end_time: Optional[float] = field(default=None, repr=False)

    @property
    def elapsed_ms(self) -> float:
        """Elapsed time in milliseconds since context creation."""
        end = self._end_time if self._end_time is not None else time.monotonic()
        return (end - self._start_time) * 1000

    def complete(self) -> None:
        """Mark this context as complete."""
        self._end_time = time.monotonic()

    def to_log_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "trace_id": self.trace_id,
            "request_id": self.request_id,
            "conversation_id": self.conversation_id,
            "agent_type": self.agent_type,
            "source": self.source.value,
            "elapsed_ms": round(self.elapsed_ms, 2),
            "metadata": {k: v for k, v in self.metadata.items() if not k.startswith("_")},
        }

    def child(self, **overrides: Any) -> "RequestContext":
        """Create a child context that inherits the trace id."""
        return RequestContext(
            trace_id=self.trace_id,
            conversation_id=overrides.get("conversation_id", self.conversation_id),
            agent_type=overrides.get("agent_type", self.agent_type),
            source=overrides.get("source", self.source),
            metadata={**self.metadata, **overrides.get("metadata", {})},
            parent_trace_id=self.trace_id,
        )


class ContextManager:
    """Manages context lifecycle for requests.

    Usage:
        async with context_manager.request(conversation_id="42") as ctx:
            # ctx is the current context until the block exits
            ...

    A request opened inside another one inherits its trace id and restores
    the outer context on exit.
    """

    def __init__(self) -> None:
        self._active_contexts: dict[str, RequestContext] = {}

    def request(
        self,
        conversation_id: Optional[str] = None,
        agent_type: Optional[str] = None,
        source: ContextSource = ContextSource.INTERNAL,
        trace_id: Optional[str] = None,
        **metadata: Any,
    ) -> "ContextGuard":
        """Create a request-scoped context.

        Args:
            conversation_id: Optional conversation identifier
            agent_type: Optional agent persona name
            source: Where the request originated
            trace_id: Explicit trace id (e.g. from an X-Trace-ID header)
            **metadata: Additional context metadata

        Returns:
            Context guard for use with ``with`` or ``async with``
        """
        parent = get_current_context()
        if parent is not None and trace_id is None:
            ctx = parent.child(
                conversation_id=conversation_id or parent.conversation_id,
                agent_type=agent_type or parent.agent_type,
                source=source,
                metadata=metadata,
            )
        else:
            ctx = RequestContext(
                trace_id=trace_id or str(uuid.uuid4()),
                conversation_id=conversation_id,
                agent_type=agent_type,
                source=source,
                metadata=metadata,
            )
        return ContextGuard(self, ctx)

    def register(self, ctx: RequestContext) -> Token:
        """Register an active context and make it current."""
        self._active_contexts[ctx.request_id] = ctx
        return set_current_context(ctx)

    def unregister(self, ctx: RequestContext, token: Token) -> None:
        """Unregister a context and restore the previous one."""
        self._active_contexts.pop(ctx.request_id, None)
        try:
            _current_context.reset(token)
        except ValueError:
            # Token created in a different Context (e.g. exited from another task)
            clear_current_context()

    def get_active_contexts(self) -> list[RequestContext]:
        """Get all active contexts."""
        return list(self._active_contexts.values())


class ContextGuard:
    """Context manager guard for request-scoped context."""

    def __init__(self, manager: ContextManager, ctx: RequestContext) -> None:
        self._manager = manager
        self._ctx = ctx
        self._token: Optional[Token] = None

    def __enter__(self) -> RequestContext:
        self._token = self._manager.register(self._ctx)
        return self._ctx

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self._ctx.complete()
        if self._token is not None:
            self._manager.unregister(self._ctx, self._token)
            self._token = None

    async def __aenter__(self) -> RequestContext:
        return self.__enter__()

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


context_manager = ContextManager()
