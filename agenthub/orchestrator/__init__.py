"""Orchestrator module for AgentHub.

This module provides the chat-session orchestration engine that:
- Serializes turns per conversation and runs conversations in parallel
- Rehydrates transcripts from persisted summaries and recent messages
- Runs tool-call rounds behind the tool-call guard
- Compacts transcripts and refreshes long-term summaries
"""

from .compaction import CompactionPolicy, ConversationSummarizer
from .engine import ChatOrchestrator, TurnRequest, TurnResult
from .guards import GuardDecision, ToolCallGuard
from .personas import (
    AgentType,
    build_memory_preamble,
    default_conversation_title,
    get_persona_prompt,
    title_from_message,
)
from .session_store import Session, SessionManager

__all__ = [
    "AgentType",
    "ChatOrchestrator",
    "CompactionPolicy",
    "ConversationSummarizer",
    "GuardDecision",
    "Session",
    "SessionManager",
    "ToolCallGuard",
    "TurnRequest",
    "TurnResult",
    "build_memory_preamble",
    "default_conversation_title",
    "get_persona_prompt",
    "title_from_message",
]
