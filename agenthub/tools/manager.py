"""Tool manager for registering and executing tools.

The ToolManager is the tool registry the engine dispatches through:
- explicit registration at startup (no discovery)
- OpenAI function-calling schemas, optionally filtered per agent
- execution that never raises for tool failures
"""

from typing import Any, Iterable

from ..utils.errors import ToolExecutionError
from ..utils.logger import get_logger
from .base import BaseTool, ToolResult

logger = get_logger(__name__)


class ToolManager:
    """Registry and executor for tools.

    Example:
        manager = ToolManager()
        manager.register(ChineseZodiacTool())

        tools = manager.get_openai_tools(["get_chinese_zodiac"])
        result = await manager.execute("get_chinese_zodiac", {"year": 1990})
    """

    def __init__(self) -> None:
        self._tools: dict[str, BaseTool] = {}

    def register(self, tool: BaseTool) -> None:
        """Register a tool, replacing any tool with the same name."""
        if tool.name in self._tools:
            logger.warning("Tool already registered, replacing", extra={"tool_name": tool.name})
        self._tools[tool.name] = tool
        logger.debug(
            "Tool registered",
            extra={"tool_name": tool.name, "guarded": tool.guarded},
        )

    def register_all(self, tools: Iterable[BaseTool]) -> None:
        for tool in tools:
            self.register(tool)

    def unregister(self, name: str) -> bool:
        """Unregister a tool. Returns False if it was not registered."""
        if name in self._tools:
            del self._tools[name]
            logger.info("Tool unregistered", extra={"tool_name": name})
            return True
        return False

    def get_tool(self, name: str) -> BaseTool | None:
        return self._tools.get(name)

    def has_tool(self, name: str) -> bool:
        return name in self._tools

    def get_all_tools(self) -> list[BaseTool]:
        return list(self._tools.values())

    def get_tool_names(self) -> list[str]:
        return list(self._tools.keys())

    def get_openai_tools(self, names: Iterable[str] | None = None) -> list[dict]:
        """Tool definitions in OpenAI format.

        Args:
            names: Restrict to these tools (unknown names are skipped);
                   None returns every registered tool
        """
        if names is None:
            return [tool.to_openai_tool() for tool in self._tools.values()]
        return [self._tools[n].to_openai_tool() for n in names if n in self._tools]

    async def execute(self, name: str, params: dict[str, Any]) -> ToolResult:
        """Execute a tool by name.

        Unknown tools, invalid parameters and exceptions raised by the tool
        all come back as a failed ``ToolResult``.
        """
        tool = self._tools.get(name)
        if tool is None:
            logger.warning(
                "Tool not found",
                extra={"tool_name": name, "available_tools": list(self._tools.keys())},
            )
            return ToolResult.error_result(f"Tool not found: {name}")

        params = tool.prepare_params(params or {})
        is_valid, error = tool.validate_params(params)
        if not is_valid:
            logger.warning(
                "Tool parameter validation failed",
                extra={"tool_name": name, "error": error},
            )
            return ToolResult.error_result(error or "Invalid parameters")

        logger.debug("Executing tool", extra={"tool_name": name, "params": str(params)[:200]})

        try:
            result = await tool.execute(**params)
        except ToolExecutionError as e:
            logger.warning(
                "Tool reported failure",
                extra={"tool_name": name, "error": e.message},
            )
            return ToolResult.error_result(e.message)
        except Exception as e:
            logger.error(
                "Tool execution failed",
                extra={"tool_name": name, "error": str(e), "error_type": type(e).__name__},
            )
            return ToolResult.error_result(f"Tool execution failed: {e}")

        logger.info(
            "Tool execution completed",
            extra={
                "tool_name": name,
                "success": result.success,
                "output_length": len(result.output) if result.output else 0,
            },
        )
        return result

    def get_stats(self) -> dict:
        return {
            "tools_count": len(self._tools),
            "tool_names": list(self._tools.keys()),
        }
