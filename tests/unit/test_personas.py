"""Unit tests for agent personas and conversation titles."""

from datetime import datetime

import pytest

from agenthub.orchestrator.personas import (
    MEMORY_HEADER,
    AgentType,
    build_memory_preamble,
    build_system_prompt,
    default_conversation_title,
    get_agent_tool_names,
    get_persona_prompt,
    is_default_title,
    title_from_message,
)


class TestAgentType:
    """Tests for AgentType.parse."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("metaphysics", AgentType.METAPHYSICS),
            (" Stock ", AgentType.STOCK),
            (AgentType.HEALTH, AgentType.HEALTH),
            ("astrology", AgentType.DEFAULT),
            ("", AgentType.DEFAULT),
            (None, AgentType.DEFAULT),
        ],
    )
    def test_parse(self, value, expected: AgentType) -> None:
        assert AgentType.parse(value) == expected


class TestSystemPrompt:
    """Tests for persona prompts and the memory preamble."""

    def test_unknown_agent_uses_default_persona(self) -> None:
        assert get_persona_prompt("unknown") == get_persona_prompt(AgentType.DEFAULT)

    def test_no_summary_means_bare_persona(self) -> None:
        assert build_system_prompt("stock") == get_persona_prompt("stock")
        assert build_system_prompt("stock", "   ") == get_persona_prompt("stock")
        assert build_memory_preamble(None) == ""

    def test_summary_appended_after_blank_line(self) -> None:
        prompt = build_system_prompt("health", "用户张三,1990年出生")

        assert prompt == f"{get_persona_prompt('health')}\n\n{MEMORY_HEADER}\n用户张三,1990年出生\n"

    def test_tool_sets(self) -> None:
        assert get_agent_tool_names("metaphysics") is None
        assert "search_web" in get_agent_tool_names("default")
        assert "get_chinese_zodiac" not in get_agent_tool_names("stock")


class TestTitles:
    """Tests for conversation titles."""

    def test_default_title(self) -> None:
        title = default_conversation_title("metaphysics", now=lambda: datetime(2025, 3, 14, 9, 5))

        assert title == "玄学咨询 - 03-14 09:05"
        assert is_default_title(title)

    @pytest.mark.parametrize(
        "title,expected",
        [(None, True), ("", True), ("新对话 - 03-14 09:05", True), ("健康咨询 - 01-01 00:00", True), ("属马的运势", False)],
    )
    def test_is_default_title(self, title, expected: bool) -> None:
        assert is_default_title(title) is expected

    def test_title_from_short_message(self) -> None:
        assert title_from_message("  我属什么  ", "metaphysics") == "玄学:我属什么"

    def test_title_from_long_message_is_truncated(self) -> None:
        message = "我想了解一下东莞松山湖片区最近有哪些在售的新楼盘价格如何"

        assert title_from_message(message, "default") == f"对话:{message[:20]}..."
