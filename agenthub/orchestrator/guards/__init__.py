"""Guards applied to tool calls before they run."""

from .tool_call_guard import (
    REASON_CAP_REACHED,
    REASON_DUPLICATE,
    REASON_EMPTY,
    REASON_TOO_LONG,
    GuardDecision,
    ToolCallGuard,
    jaccard_similarity,
    normalize_query,
    query_tokens,
)

__all__ = [
    "REASON_CAP_REACHED",
    "REASON_DUPLICATE",
    "REASON_EMPTY",
    "REASON_TOO_LONG",
    "GuardDecision",
    "ToolCallGuard",
    "jaccard_similarity",
    "normalize_query",
    "query_tokens",
]
