"""Unit tests for the tool base classes, ToolManager and startup wiring."""

from datetime import datetime
from typing import Any
from unittest.mock import AsyncMock

import pytest

from agenthub.tools.base import BaseTool, ToolParameter, ToolParameterType, ToolResult
from agenthub.tools.manager import ToolManager
from agenthub.tools.registry import ToolServices, create_default_tool_manager
from agenthub.utils.errors import ToolExecutionError

from tests.conftest import make_config


class BirthYearTool(BaseTool):
    """Tool with integer, string and enum parameters."""

    def __init__(self) -> None:
        self.received: dict[str, Any] | None = None

    @property
    def name(self) -> str:
        return "birth_year"

    @property
    def description(self) -> str:
        return "测试工具"

    @property
    def parameters(self) -> list[ToolParameter]:
        return [
            ToolParameter(name="year", type=ToolParameterType.INTEGER, description="年份",
                          min_value=1900, max_value=2100),
            ToolParameter(name="period", description="周期", required=False,
                          enum=["today", "week"], default="today"),
        ]

    async def execute(self, **params: Any) -> ToolResult:
        self.received = params
        return ToolResult.ok(f"year={params['year']}")


class FailingTool(BaseTool):
    def __init__(self, error: Exception) -> None:
        self.error = error

    @property
    def name(self) -> str:
        return "failing"

    async def execute(self, **params: Any) -> ToolResult:
        raise self.error


class TestToolParameter:
    """Tests for ToolParameter."""

    def test_json_schema(self) -> None:
        param = ToolParameter(name="month", type=ToolParameterType.INTEGER, description="月份(1-12)",
                              min_value=1, max_value=12)

        assert param.to_json_schema() == {
            "type": "integer",
            "description": "月份(1-12)",
            "minimum": 1,
            "maximum": 12,
        }

    @pytest.mark.parametrize(
        "type_,raw,expected",
        [
            (ToolParameterType.INTEGER, " 1990 ", 1990),
            (ToolParameterType.NUMBER, "2.5", 2.5),
            (ToolParameterType.BOOLEAN, "True", True),
            (ToolParameterType.INTEGER, "abc", "abc"),
            (ToolParameterType.STRING, "1990", "1990"),
        ],
    )
    def test_coerce(self, type_: ToolParameterType, raw: str, expected: Any) -> None:
        assert ToolParameter(name="p", type=type_).coerce(raw) == expected

    def test_bool_is_not_an_integer(self) -> None:
        ok, error = ToolParameter(name="year", type=ToolParameterType.INTEGER).validate(True)

        assert ok is False
        assert error == "Parameter 'year' must be an integer"

    def test_bounds(self) -> None:
        param = ToolParameter(name="day", type=ToolParameterType.INTEGER, min_value=1, max_value=31)

        assert param.validate(31) == (True, None)
        assert param.validate(32) == (False, "Parameter 'day' must be at most 31")


class TestToolResult:
    """Tests for ToolResult."""

    def test_content_of_failure(self) -> None:
        assert ToolResult.error_result("timeout").to_content() == "Error: timeout"

    def test_content_of_success(self) -> None:
        result = ToolResult.ok("东莞", source="searxng")

        assert result.to_content() == "东莞"
        assert result.metadata == {"source": "searxng"}


class TestToolManager:
    """Tests for ToolManager."""

    @pytest.fixture
    def tool(self) -> BirthYearTool:
        return BirthYearTool()

    @pytest.fixture
    def manager(self, tool: BirthYearTool) -> ToolManager:
        manager = ToolManager()
        manager.register(tool)
        return manager

    def test_openai_schema(self, manager: ToolManager) -> None:
        [schema] = manager.get_openai_tools()

        assert schema["type"] == "function"
        assert schema["function"]["name"] == "birth_year"
        assert schema["function"]["parameters"]["required"] == ["year"]
        assert schema["function"]["parameters"]["properties"]["period"]["enum"] == ["today", "week"]

    def test_filtered_schemas_skip_unknown_names(self, manager: ToolManager) -> None:
        assert manager.get_openai_tools(["missing"]) == []
        assert len(manager.get_openai_tools(["birth_year", "missing"])) == 1

    async def test_string_arguments_are_coerced(self, manager: ToolManager, tool: BirthYearTool) -> None:
        result = await manager.execute("birth_year", {"year": "1990", "unexpected": 1})

        assert result.success
        assert result.output == "year=1990"
        assert tool.received == {"year": 1990}

    async def test_missing_required_parameter(self, manager: ToolManager) -> None:
        result = await manager.execute("birth_year", {})

        assert result.success is False
        assert result.error == "Missing required parameter: year"

    async def test_enum_violation(self, manager: ToolManager) -> None:
        result = await manager.execute("birth_year", {"year": 1990, "period": "decade"})

        assert result.success is False
        assert "must be one of" in result.error

    async def test_unknown_tool(self, manager: ToolManager) -> None:
        result = await manager.execute("nope", {})

        assert result.to_content() == "Error: Tool not found: nope"

    async def test_exception_becomes_failed_result(self) -> None:
        manager = ToolManager()
        manager.register(FailingTool(RuntimeError("boom")))

        result = await manager.execute("failing", {})

        assert result.success is False
        assert result.error == "Tool execution failed: boom"

    async def test_tool_execution_error_message_kept(self) -> None:
        manager = ToolManager()
        manager.register(FailingTool(ToolExecutionError("failing", "搜索服务不可用")))

        result = await manager.execute("failing", {})

        assert result.error == "搜索服务不可用"

    def test_register_replaces_and_unregister(self, manager: ToolManager) -> None:
        replacement = BirthYearTool()
        manager.register(replacement)

        assert manager.get_tool("birth_year") is replacement
        assert manager.unregister("birth_year") is True
        assert manager.unregister("birth_year") is False
        assert manager.get_stats() == {"tools_count": 0, "tool_names": []}


class TestDefaultToolManager:
    """Tests for create_default_tool_manager."""

    @pytest.fixture
    def services(self) -> ToolServices:
        return ToolServices(
            search=AsyncMock(),
            almanac=AsyncMock(),
            horoscope=AsyncMock(),
            real_estate=AsyncMock(),
            clock=lambda: datetime(2025, 3, 14, 9, 30),
        )

    def test_every_builtin_tool_registered(self, services: ToolServices) -> None:
        manager = create_default_tool_manager(make_config(), services)

        names = set(manager.get_tool_names())
        assert {"get_current_date_time", "get_today", "get_current_time", "get_day_of_week"} <= names
        assert {"get_chinese_zodiac", "get_constellation", "get_horoscope", "get_today_taboos"} <= names
        assert {"search_web", "search_property", "recommend_property"} <= names

    def test_search_is_guarded(self, services: ToolServices) -> None:
        manager = create_default_tool_manager(make_config(), services)

        assert manager.get_tool("search_web").guarded is True
        assert manager.get_tool("get_today").guarded is False

    async def test_services_close_tolerates_close_errors(self, services: ToolServices) -> None:
        services.search.close.side_effect = RuntimeError("already closed")

        await services.close()

        services.search.close.assert_awaited_once()
